"""
Tests for ledger aggregations.

Uses a fixed ``today`` so the trailing windows are deterministic.
"""

import pytest
from datetime import date
from decimal import Decimal
from sqlalchemy.orm import Session

from app.models.expense import Expense
from app.models.income import Income
from app.models.tax import Tax
from app.models.user import User
from app.services import reporting, sync

from conftest import invoice_data

TODAY = date(2026, 6, 15)


def _add_income(db_session: Session, user: User, amount: str, day: date, category: str = "salary"):
    db_session.add(Income(user_id=user.id, source="Acme", amount=Decimal(amount), date=day, category=category))


@pytest.fixture
def ledger(db_session: Session, test_user: User, other_user: User):
    _add_income(db_session, test_user, "1000", date(2026, 6, 1))
    _add_income(db_session, test_user, "500", date(2026, 5, 10), "freelance")
    _add_income(db_session, test_user, "250", date(2026, 5, 20))
    _add_income(db_session, test_user, "999", date(2025, 6, 14))  # one day outside the window
    _add_income(db_session, other_user, "7777", date(2026, 6, 1))

    db_session.add(Expense(user_id=test_user.id, payee="Landlord", amount=Decimal("1200"), date=date(2026, 6, 1), category="rent"))
    db_session.add(Expense(user_id=test_user.id, payee="Store", amount=Decimal("80"), date=date(2026, 2, 1), category="supplies"))
    db_session.commit()


class TestIncomeReports:
    """Test suite for income aggregation."""

    def test_by_month(self, db_session: Session, test_user: User, ledger):
        rows = reporting.income_by_month(db_session, test_user.id, today=TODAY)
        assert rows == [
            {"year": 2026, "month": 6, "total_amount": Decimal("1000"), "count": 1},
            {"year": 2026, "month": 5, "total_amount": Decimal("750"), "count": 2},
        ]

    def test_window_includes_start_day(self, db_session: Session, test_user: User, ledger):
        rows = reporting.income_by_month(db_session, test_user.id, today=date(2026, 6, 14))
        assert rows[-1] == {"year": 2025, "month": 6, "total_amount": Decimal("999"), "count": 1}

    def test_by_category(self, db_session: Session, test_user: User, ledger):
        rows = reporting.income_by_category(db_session, test_user.id, today=TODAY)
        assert rows == [
            {"category": "salary", "total_amount": Decimal("1250"), "count": 2},
            {"category": "freelance", "total_amount": Decimal("500"), "count": 1},
        ]

    def test_empty(self, db_session: Session, test_user: User):
        assert reporting.income_by_month(db_session, test_user.id, today=TODAY) == []


class TestExpenseReports:
    """Test suite for expense aggregation."""

    def test_by_category(self, db_session: Session, test_user: User, ledger):
        rows = reporting.expense_by_category(db_session, test_user.id, today=TODAY)
        assert [(r["category"], r["total_amount"]) for r in rows] == [
            ("rent", Decimal("1200")),
            ("supplies", Decimal("80")),
        ]


class TestInvoiceStats:
    """Test suite for invoice statistics."""

    def test_grouped_by_status(self, db_session: Session, test_user: User):
        sync.create_invoice(db_session, test_user.id, invoice_data())
        sync.create_invoice(db_session, test_user.id, invoice_data(invoice_number="INV-2", status="cancelled", total="50.00", subtotal="50.00"))

        rows = reporting.invoice_stats(db_session, test_user.id)
        assert rows == [
            {"status": "cancelled", "count": 1, "total_amount": Decimal("50")},
            {"status": "pending", "count": 1, "total_amount": Decimal("300")},
        ]

    def test_window_excludes_old_invoices(self, db_session: Session, test_user: User):
        sync.create_invoice(db_session, test_user.id, invoice_data())
        # Seen from two years ahead, nothing was created in the trailing year
        future = date(date.today().year + 2, 1, 1)
        assert reporting.invoice_stats(db_session, test_user.id, today=future) == []


class TestTaxStats:
    """Test suite for tax statistics."""

    def test_trailing_five_years(self, db_session: Session, test_user: User):
        db_session.add_all([
            Tax(user_id=test_user.id, year=2025, total_income=Decimal("100000"), total_tax=Decimal("20000")),
            Tax(user_id=test_user.id, year=2024, total_income=Decimal("0"), total_tax=Decimal("0")),
            Tax(user_id=test_user.id, year=2019, total_income=Decimal("50000"), total_tax=Decimal("7500")),
        ])
        db_session.commit()

        rows = reporting.tax_stats(db_session, test_user.id, today=TODAY)
        assert [r["year"] for r in rows] == [2025, 2024]
        assert rows[0]["average_rate"] == Decimal("0.2")
        assert rows[0]["total_tax"] == Decimal("20000")
        assert rows[1]["average_rate"] is None


class TestShiftMonths:
    """Test suite for the month arithmetic behind the windows."""

    @pytest.mark.parametrize("day,months,expected", [
        (date(2026, 6, 15), -12, date(2025, 6, 15)),
        (date(2024, 2, 29), -12, date(2023, 2, 28)),
        (date(2026, 3, 31), -1, date(2026, 2, 28)),
        (date(2026, 1, 15), -1, date(2025, 12, 15)),
    ])
    def test_shift(self, day, months, expected):
        assert reporting._shift_months(day, months) == expected
