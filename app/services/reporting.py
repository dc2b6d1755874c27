"""
Read-only aggregations over an owner's ledger.

All windows are relative to ``today`` (defaults to the current date) so
results are reproducible in tests:

- income_by_month / income_by_category / expense_by_category: entries dated
  within the trailing 12 months
- invoice_stats: invoices created within the trailing 12 months
- tax_stats: tax records for the trailing 5 years
"""

from calendar import monthrange
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from sqlalchemy import extract, func
from sqlalchemy.orm import Session

from app.models.expense import Expense
from app.models.income import Income
from app.models.invoice import Invoice
from app.models.tax import Tax

CENT = Decimal("0.01")


def _money(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(CENT, rounding=ROUND_HALF_UP)


def _shift_months(day: date, months: int) -> date:
    """Move ``day`` by whole months, clamping to the end of shorter months."""
    index = day.year * 12 + day.month - 1 + months
    year, month = divmod(index, 12)
    month += 1
    return date(year, month, min(day.day, monthrange(year, month)[1]))


def trailing_year_start(today: Optional[date] = None) -> date:
    return _shift_months(today or date.today(), -12)


def income_by_month(db: Session, owner_id: int, today: Optional[date] = None) -> list[dict]:
    """Income totals per calendar month, newest month first."""
    year = extract("year", Income.date)
    month = extract("month", Income.date)
    rows = db.query(
        year.label("year"),
        month.label("month"),
        func.sum(Income.amount).label("total_amount"),
        func.count(Income.id).label("entries")
    ).filter(
        Income.user_id == owner_id,
        Income.date >= trailing_year_start(today)
    ).group_by(year, month).all()

    result = [
        {"year": int(r.year), "month": int(r.month), "total_amount": _money(r.total_amount), "count": r.entries}
        for r in rows
    ]
    return sorted(result, key=lambda r: (r["year"], r["month"]), reverse=True)


def _by_category(db: Session, model, owner_id: int, today: Optional[date]) -> list[dict]:
    rows = db.query(
        model.category,
        func.sum(model.amount).label("total_amount"),
        func.count(model.id).label("entries")
    ).filter(
        model.user_id == owner_id,
        model.date >= trailing_year_start(today)
    ).group_by(model.category).all()

    result = [
        {"category": r.category, "total_amount": _money(r.total_amount), "count": r.entries}
        for r in rows
    ]
    return sorted(result, key=lambda r: r["total_amount"], reverse=True)


def income_by_category(db: Session, owner_id: int, today: Optional[date] = None) -> list[dict]:
    return _by_category(db, Income, owner_id, today)


def expense_by_category(db: Session, owner_id: int, today: Optional[date] = None) -> list[dict]:
    return _by_category(db, Expense, owner_id, today)


def invoice_stats(db: Session, owner_id: int, today: Optional[date] = None) -> list[dict]:
    """Invoice count and summed total per status."""
    start = datetime.combine(trailing_year_start(today), datetime.min.time())
    rows = db.query(
        Invoice.status,
        func.count(Invoice.id).label("entries"),
        func.sum(Invoice.total).label("total_amount")
    ).filter(
        Invoice.user_id == owner_id,
        Invoice.created_at >= start
    ).group_by(Invoice.status).order_by(Invoice.status).all()

    return [
        {"status": r.status, "count": r.entries, "total_amount": _money(r.total_amount)}
        for r in rows
    ]


def tax_stats(db: Session, owner_id: int, today: Optional[date] = None) -> list[dict]:
    """
    Tax totals per year for the trailing five years, newest first.

    ``average_rate`` is the mean of total_tax / total_income (a fraction, not
    a percentage) over that year's records with non-zero income, or None when
    there are none.
    """
    today = today or date.today()
    records = db.query(Tax).filter(
        Tax.user_id == owner_id,
        Tax.year >= today.year - 5
    ).order_by(Tax.year.desc()).all()

    by_year: dict[int, list[Tax]] = {}
    for record in records:
        by_year.setdefault(record.year, []).append(record)

    stats = []
    for year, group in by_year.items():
        ratios = [
            _money(t.total_tax) / _money(t.total_income)
            for t in group if _money(t.total_income) != 0
        ]
        stats.append({
            "year": year,
            "total_tax": _money(sum((_money(t.total_tax) for t in group), Decimal("0"))),
            "total_income": _money(sum((_money(t.total_income) for t in group), Decimal("0"))),
            "average_rate": sum(ratios, Decimal("0")) / len(ratios) if ratios else None,
        })
    return stats
