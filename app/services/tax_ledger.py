"""
Annual tax records and one-off tax entries.

``calculate_tax`` derives a year's liability from the owner's incomes and
upserts the (owner, year) record. Deductions and payments hang off that
record; its derived totals are recomputed by the model on every flush, so
nothing here sums them by hand.
"""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional, Sequence

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.config import get_settings
from app.db import unit_of_work
from app.exceptions import NotFoundError
from app.logging_config import get_logger
from app.models.income import Income
from app.models.tax import Tax, TaxDeduction, TaxEntry, TaxPayment
from app.schemas import (
    TaxCalculateRequest, TaxDeductionCreate, TaxEntryCreate, TaxPatch, TaxPaymentCreate,
    TaxStatusUpdate,
)
from app.services.ledger_store import get_owned, validate_input
from app.services.tax_calculator import (
    DEFAULT_TAX_RATES, DETAILED_BRACKETS, Bracket, compute_flat_tax, compute_progressive_tax,
    get_bracket_table,
)

logger = get_logger(__name__)

CENT = Decimal("0.01")
RATE_PLACES = Decimal("0.001")

# Rate/amount column pairs settable through update_tax
BREAKDOWN_FIELDS = ("state_tax", "local_tax", "self_employment_tax")


def _money(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(CENT, rounding=ROUND_HALF_UP)


def annual_brackets() -> Sequence[Bracket]:
    """Bracket table used for annual liability, per settings."""
    return get_bracket_table(get_settings().annual_bracket_table)


def sum_income_for_year(db: Session, owner_id: int, year: int) -> Decimal:
    total = db.query(func.coalesce(func.sum(Income.amount), 0)).filter(
        Income.user_id == owner_id,
        Income.date >= date(year, 1, 1),
        Income.date < date(year + 1, 1, 1)
    ).scalar()
    return _money(total)


# ==================== ANNUAL RECORDS ====================

def calculate_tax(db: Session, owner_id: int, year: int, brackets: Optional[Sequence[Bracket]] = None) -> Tax:
    """
    Compute the year's tax from recorded income and upsert the record.

    Overwrites total_income and total_tax and resets status to "Pending".
    Deductions, payments and breakdown fields on an existing record are kept.

    Args:
        year: Calendar year; incomes dated in [Jan 1, Jan 1 of next year) count
        brackets: Table to apply; defaults to the configured annual table
    """
    with unit_of_work(db, "calculate_tax") as uow:
        uow.step("validate")
        year = validate_input(TaxCalculateRequest, {"year": year}).year
        brackets = brackets or annual_brackets()

        uow.step("sum_income")
        total_income = sum_income_for_year(db, owner_id, year)
        computation = compute_progressive_tax(total_income, brackets)

        uow.step("upsert_tax")
        tax = db.query(Tax).filter(Tax.user_id == owner_id, Tax.year == year).first()
        if tax is None:
            tax = Tax(user_id=owner_id, year=year)
            db.add(tax)
        tax.total_income = total_income
        tax.total_tax = _money(computation.tax_amount)
        tax.status = "Pending"
        db.flush()

    logger.info(f"Tax {year} for user {owner_id}: income {total_income}, tax {tax.total_tax}")
    return tax


def get_tax_history(db: Session, owner_id: int) -> list[Tax]:
    return db.query(Tax).filter(Tax.user_id == owner_id).order_by(Tax.year.desc()).all()


def get_tax_by_year(db: Session, owner_id: int, year: int) -> Tax:
    tax = db.query(Tax).filter(Tax.user_id == owner_id, Tax.year == year).first()
    if tax is None:
        logger.warning(f"No tax record for {year} (user {owner_id})")
        raise NotFoundError("Tax record")
    return tax


def _get_tax(db: Session, owner_id: int, tax_id: int) -> Tax:
    return get_owned(db, Tax, owner_id, tax_id)


def update_tax_status(db: Session, owner_id: int, tax_id: int, status: str) -> Tax:
    with unit_of_work(db, "update_tax_status") as uow:
        uow.step("validate")
        status = validate_input(TaxStatusUpdate, {"status": status}).status
        uow.step("load_tax")
        tax = _get_tax(db, owner_id, tax_id)
        uow.step("update_status")
        tax.status = status
        db.flush()
    logger.info(f"Tax {tax_id} status set to {status}")
    return tax


def update_tax(db: Session, owner_id: int, tax_id: int, patch: Any) -> Tax:
    """Update filing details and the optional state/local/self-employment breakdowns."""
    with unit_of_work(db, "update_tax") as uow:
        uow.step("validate")
        changes = validate_input(TaxPatch, patch).model_dump(exclude_unset=True)
        uow.step("load_tax")
        tax = _get_tax(db, owner_id, tax_id)

        uow.step("apply_patch")
        for name, value in changes.items():
            if name in BREAKDOWN_FIELDS:
                value = value or {}
                if "rate" in value:
                    setattr(tax, f"{name}_rate", value["rate"])
                if "amount" in value:
                    setattr(tax, f"{name}_amount", value["amount"])
            elif value is not None:
                setattr(tax, name, value)
        db.flush()
    return tax


def add_deduction(db: Session, owner_id: int, tax_id: int, data: Any) -> Tax:
    with unit_of_work(db, "add_deduction") as uow:
        uow.step("validate")
        payload = validate_input(TaxDeductionCreate, data)
        uow.step("load_tax")
        tax = _get_tax(db, owner_id, tax_id)
        uow.step("insert_deduction")
        tax.deductions.append(TaxDeduction(**payload.model_dump()))
        db.flush()
    logger.info(f"Deduction added to tax {tax_id}: {payload.amount}")
    return tax


def remove_deduction(db: Session, owner_id: int, tax_id: int, deduction_id: int) -> Tax:
    with unit_of_work(db, "remove_deduction") as uow:
        uow.step("load_tax")
        tax = _get_tax(db, owner_id, tax_id)
        deduction = next((d for d in tax.deductions if d.id == deduction_id), None)
        if deduction is None:
            raise NotFoundError("Deduction")
        uow.step("delete_deduction")
        tax.deductions.remove(deduction)
        db.flush()
    return tax


def add_payment(db: Session, owner_id: int, tax_id: int, data: Any) -> Tax:
    with unit_of_work(db, "add_payment") as uow:
        uow.step("validate")
        payload = validate_input(TaxPaymentCreate, data)
        uow.step("load_tax")
        tax = _get_tax(db, owner_id, tax_id)
        uow.step("insert_payment")
        tax.tax_payments.append(TaxPayment(**payload.model_dump()))
        db.flush()
    logger.info(f"Payment recorded on tax {tax_id}: {payload.amount}")
    return tax


def remove_payment(db: Session, owner_id: int, tax_id: int, payment_id: int) -> Tax:
    with unit_of_work(db, "remove_payment") as uow:
        uow.step("load_tax")
        tax = _get_tax(db, owner_id, tax_id)
        payment = next((p for p in tax.tax_payments if p.id == payment_id), None)
        if payment is None:
            raise NotFoundError("Payment")
        uow.step("delete_payment")
        tax.tax_payments.remove(payment)
        db.flush()
    return tax


# ==================== TAX ENTRIES ====================

def estimate_entry_tax(entry_type: str, amount, rate=None) -> tuple[Decimal, Decimal]:
    """
    Tax owed on a single entry.

    Income entries use the detailed progressive table and record their
    effective rate; every other type is taxed flat at ``rate`` or the
    type's default rate.

    Returns:
        Tuple of (rate percent, tax amount)
    """
    if entry_type == "income":
        computation = compute_progressive_tax(amount, DETAILED_BRACKETS)
        rate = computation.effective_rate or Decimal("0")
        return rate.quantize(RATE_PLACES, rounding=ROUND_HALF_UP), _money(computation.tax_amount)

    rate = Decimal(str(rate)) if rate is not None else DEFAULT_TAX_RATES[entry_type]
    return rate, _money(compute_flat_tax(amount, rate))


def create_tax_entry(db: Session, owner_id: int, data: Any) -> TaxEntry:
    with unit_of_work(db, "create_tax_entry") as uow:
        uow.step("validate")
        payload = validate_input(TaxEntryCreate, data)
        rate, tax_amount = estimate_entry_tax(payload.type, payload.amount, payload.rate)

        uow.step("insert_tax_entry")
        entry = TaxEntry(
            user_id=owner_id,
            type=payload.type,
            amount=payload.amount,
            rate=rate,
            tax_amount=tax_amount,
            date=payload.date,
            year=payload.date.year,
            description=payload.description,
        )
        db.add(entry)
        db.flush()

    logger.info(f"Tax entry {entry.id} ({entry.type}) created for user {owner_id}")
    return entry


def list_tax_entries(db: Session, owner_id: int) -> list[TaxEntry]:
    return db.query(TaxEntry).filter(
        TaxEntry.user_id == owner_id
    ).order_by(TaxEntry.date.desc(), TaxEntry.id.desc()).all()


def delete_tax_entry(db: Session, owner_id: int, entry_id: int) -> dict:
    with unit_of_work(db, "delete_tax_entry") as uow:
        uow.step("load_tax_entry")
        entry = get_owned(db, TaxEntry, owner_id, entry_id)
        uow.step("delete_tax_entry")
        db.delete(entry)
        db.flush()
    logger.info(f"Tax entry {entry_id} deleted for user {owner_id}")
    return {"deleted": True, "id": entry_id}
