"""
Tests for annual tax records, deductions, payments and tax entries.
"""

import pytest
from datetime import date
from decimal import Decimal
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.exceptions import NotFoundError, ValidationError
from app.models.tax import Tax
from app.models.user import User
from app.services import sync, tax_ledger
from app.services.tax_calculator import DETAILED_BRACKETS

from conftest import income_data


@pytest.fixture
def incomes_2025(db_session: Session, test_user: User):
    """75,000 of income in 2025, plus a 2024 income that must not count."""
    sync.create_income(db_session, test_user.id, income_data(amount="50000", date="2025-03-01"))
    sync.create_income(db_session, test_user.id, income_data(amount="25000", date="2025-12-31"))
    sync.create_income(db_session, test_user.id, income_data(amount="10000", date="2024-12-31"))


@pytest.fixture
def tax_2025(db_session: Session, test_user: User, incomes_2025) -> Tax:
    return tax_ledger.calculate_tax(db_session, test_user.id, 2025)


class TestCalculateTax:
    """Test suite for the annual calculation."""

    def test_standard_table(self, tax_2025: Tax):
        assert tax_2025.year == 2025
        assert tax_2025.total_income == Decimal("75000")
        assert tax_2025.total_tax == Decimal("13750")
        assert tax_2025.taxable_income == Decimal("75000")
        assert tax_2025.balance == Decimal("13750")
        assert tax_2025.status == "Pending"

    def test_explicit_table(self, db_session: Session, test_user: User):
        sync.create_income(db_session, test_user.id, income_data(amount="50000", date="2023-06-01"))
        tax = tax_ledger.calculate_tax(db_session, test_user.id, 2023, brackets=DETAILED_BRACKETS)
        assert tax.total_tax == Decimal("6800")

    def test_no_income(self, db_session: Session, test_user: User):
        tax = tax_ledger.calculate_tax(db_session, test_user.id, 2020)
        assert tax.total_income == 0
        assert tax.total_tax == 0
        assert tax.effective_rate is None

    def test_recalculation_upserts(self, db_session: Session, test_user: User, tax_2025: Tax):
        tax_ledger.update_tax_status(db_session, test_user.id, tax_2025.id, "Completed")
        sync.create_income(db_session, test_user.id, income_data(amount="25000", date="2025-07-01"))

        tax = tax_ledger.calculate_tax(db_session, test_user.id, 2025)
        assert tax.id == tax_2025.id
        assert tax.total_income == Decimal("100000")
        assert tax.total_tax == Decimal("20000")
        assert tax.status == "Pending"
        assert db_session.query(Tax).count() == 1

    def test_invalid_year(self, db_session: Session, test_user: User):
        with pytest.raises(ValidationError) as exc_info:
            tax_ledger.calculate_tax(db_session, test_user.id, 12)
        assert "year" in exc_info.value.details

    def test_effective_rate(self, tax_2025: Tax):
        assert tax_2025.effective_rate.quantize(Decimal("0.01")) == Decimal("18.33")


class TestDerivedTotals:
    """Deductions and payments keep the derived fields in step."""

    def test_deduction_reduces_taxable_income(self, db_session: Session, test_user: User, tax_2025: Tax):
        tax = tax_ledger.add_deduction(db_session, test_user.id, tax_2025.id, {
            "category": "Home Office", "amount": "5000", "date": "2025-04-01",
        })
        assert tax.total_deductions == Decimal("5000")
        assert tax.taxable_income == Decimal("70000")

    def test_payment_reduces_balance(self, db_session: Session, test_user: User, tax_2025: Tax):
        tax = tax_ledger.add_payment(db_session, test_user.id, tax_2025.id, {
            "amount": "3000", "date": "2025-04-15", "payment_method": "Bank Transfer",
        })
        assert tax.total_paid == Decimal("3000")
        assert tax.balance == Decimal("10750")

    def test_removing_sub_entries_restores_totals(self, db_session: Session, test_user: User, tax_2025: Tax):
        tax = tax_ledger.add_deduction(db_session, test_user.id, tax_2025.id, {"category": "Travel", "amount": "1000"})
        tax = tax_ledger.add_payment(db_session, test_user.id, tax.id, {"amount": "500", "date": "2025-05-01"})

        tax = tax_ledger.remove_deduction(db_session, test_user.id, tax.id, tax.deductions[0].id)
        tax = tax_ledger.remove_payment(db_session, test_user.id, tax.id, tax.tax_payments[0].id)

        assert tax.total_deductions == 0
        assert tax.taxable_income == Decimal("75000")
        assert tax.total_paid == 0
        assert tax.balance == Decimal("13750")

    def test_recalculation_is_idempotent(self, db_session: Session, test_user: User, tax_2025: Tax):
        tax_ledger.add_deduction(db_session, test_user.id, tax_2025.id, {"category": "Equipment", "amount": "2500"})
        db_session.refresh(tax_2025)
        before = (tax_2025.total_deductions, tax_2025.taxable_income, tax_2025.total_paid, tax_2025.balance)

        tax_2025.recalculate_totals()
        tax_2025.recalculate_totals()
        db_session.commit()
        db_session.refresh(tax_2025)

        after = (tax_2025.total_deductions, tax_2025.taxable_income, tax_2025.total_paid, tax_2025.balance)
        assert after == before

    def test_missing_deduction(self, db_session: Session, test_user: User, tax_2025: Tax):
        with pytest.raises(NotFoundError):
            tax_ledger.remove_deduction(db_session, test_user.id, tax_2025.id, 999)

    def test_invalid_deduction_category(self, db_session: Session, test_user: User, tax_2025: Tax):
        with pytest.raises(ValidationError) as exc_info:
            tax_ledger.add_deduction(db_session, test_user.id, tax_2025.id, {"category": "Snacks", "amount": "10"})
        assert "category" in exc_info.value.details


class TestTaxRecords:
    """Test suite for status, lookup and filing details."""

    def test_update_status(self, db_session: Session, test_user: User, tax_2025: Tax):
        tax = tax_ledger.update_tax_status(db_session, test_user.id, tax_2025.id, "In Progress")
        assert tax.status == "In Progress"

    def test_invalid_status(self, db_session: Session, test_user: User, tax_2025: Tax):
        with pytest.raises(ValidationError):
            tax_ledger.update_tax_status(db_session, test_user.id, tax_2025.id, "done")

    def test_foreign_record(self, db_session: Session, other_user: User, tax_2025: Tax):
        with pytest.raises(NotFoundError):
            tax_ledger.update_tax_status(db_session, other_user.id, tax_2025.id, "Completed")

    def test_get_by_year(self, db_session: Session, test_user: User, tax_2025: Tax):
        assert tax_ledger.get_tax_by_year(db_session, test_user.id, 2025).id == tax_2025.id
        with pytest.raises(NotFoundError):
            tax_ledger.get_tax_by_year(db_session, test_user.id, 2019)

    def test_history_newest_first(self, db_session: Session, test_user: User, tax_2025: Tax):
        tax_ledger.calculate_tax(db_session, test_user.id, 2024)
        tax_ledger.calculate_tax(db_session, test_user.id, 2023)
        years = [t.year for t in tax_ledger.get_tax_history(db_session, test_user.id)]
        assert years == [2025, 2024, 2023]

    def test_update_filing_details(self, db_session: Session, test_user: User, tax_2025: Tax):
        tax = tax_ledger.update_tax(db_session, test_user.id, tax_2025.id, {
            "filing_status": "Married",
            "state": "CA",
            "state_tax": {"rate": "5.5", "amount": "4125"},
        })
        assert tax.filing_status == "Married"
        assert tax.state == "CA"
        assert tax.state_tax_rate == Decimal("5.5")
        assert tax.state_tax_amount == Decimal("4125")
        assert tax.local_tax_rate is None

    def test_update_rejects_derived_fields(self, db_session: Session, test_user: User, tax_2025: Tax):
        with pytest.raises(ValidationError) as exc_info:
            tax_ledger.update_tax(db_session, test_user.id, tax_2025.id, {"total_tax": "1"})
        assert "total_tax" in exc_info.value.details


class TestTaxEntries:
    """Test suite for one-off tax entries."""

    def test_sales_entry_default_rate(self, db_session: Session, test_user: User):
        entry = tax_ledger.create_tax_entry(db_session, test_user.id, {
            "type": "sales", "amount": "1000", "date": "2026-02-10",
        })
        assert entry.rate == Decimal("10")
        assert entry.tax_amount == Decimal("100")
        assert entry.year == 2026

    def test_custom_rate(self, db_session: Session, test_user: User):
        entry = tax_ledger.create_tax_entry(db_session, test_user.id, {
            "type": "property", "amount": "200000", "rate": "2", "date": "2026-01-01",
        })
        assert entry.tax_amount == Decimal("4000")

    def test_income_entry_uses_progressive_table(self, db_session: Session, test_user: User):
        entry = tax_ledger.create_tax_entry(db_session, test_user.id, {
            "type": "income", "amount": "50000", "date": "2026-01-01",
        })
        assert entry.tax_amount == Decimal("6800")
        assert entry.rate == Decimal("13.6")

    def test_list_and_delete(self, db_session: Session, test_user: User, other_user: User):
        first = tax_ledger.create_tax_entry(db_session, test_user.id, {"type": "sales", "amount": "10", "date": "2026-01-01"})
        second = tax_ledger.create_tax_entry(db_session, test_user.id, {"type": "sales", "amount": "20", "date": "2026-03-01"})
        first_id = first.id

        assert [e.id for e in tax_ledger.list_tax_entries(db_session, test_user.id)] == [second.id, first_id]

        with pytest.raises(NotFoundError):
            tax_ledger.delete_tax_entry(db_session, other_user.id, first_id)
        assert tax_ledger.delete_tax_entry(db_session, test_user.id, first_id) == {"deleted": True, "id": first_id}
        assert [e.id for e in tax_ledger.list_tax_entries(db_session, test_user.id)] == [second.id]

    def test_unknown_type(self, db_session: Session, test_user: User):
        with pytest.raises(ValidationError):
            tax_ledger.create_tax_entry(db_session, test_user.id, {"type": "luxury", "amount": "1", "date": "2026-01-01"})


class TestTaxApi:
    """Test suite for the tax endpoints."""

    def test_calculate_and_fetch(self, client: TestClient, test_user_with_auth: User, incomes_2025):
        response = client.post("/api/tax/calculate", json={"year": 2025})
        assert response.status_code == 200
        assert response.json()["total_tax"] == 13750.0

        response = client.get("/api/tax/year/2025")
        assert response.status_code == 200
        assert response.json()["total_income"] == 75000.0

    def test_year_not_found(self, client: TestClient, test_user_with_auth: User):
        response = client.get("/api/tax/year/2001")
        assert response.status_code == 404

    def test_deduction_and_payment_endpoints(self, client: TestClient, test_user_with_auth: User, tax_2025: Tax):
        tax_id = tax_2025.id
        response = client.post(f"/api/tax/{tax_id}/deductions", json={"category": "Other", "amount": "1000"})
        assert response.status_code == 201
        deduction_id = response.json()["deductions"][0]["id"]

        response = client.post(f"/api/tax/{tax_id}/payments", json={"amount": "750", "date": "2025-06-01"})
        assert response.json()["balance"] == 13000.0

        response = client.delete(f"/api/tax/{tax_id}/deductions/{deduction_id}")
        assert response.json()["total_deductions"] == 0

    def test_status_endpoint(self, client: TestClient, test_user_with_auth: User, tax_2025: Tax):
        response = client.patch(f"/api/tax/{tax_2025.id}/status", json={"status": "Overdue"})
        assert response.status_code == 200
        assert response.json()["status"] == "Overdue"

    def test_history_and_stats(self, client: TestClient, test_user_with_auth: User, tax_2025: Tax):
        assert [t["year"] for t in client.get("/api/tax/history").json()] == [2025]
        stats = client.get("/api/tax/stats").json()
        assert stats[0]["year"] == 2025

    def test_entries_endpoints(self, client: TestClient, test_user_with_auth: User):
        response = client.post("/api/tax/entries", json={"type": "corporate", "amount": "1000", "date": date.today().isoformat()})
        assert response.status_code == 201
        assert response.json()["tax_amount"] == 210.0

        entry_id = response.json()["id"]
        assert len(client.get("/api/tax/entries").json()) == 1
        assert client.delete(f"/api/tax/entries/{entry_id}").status_code == 200
