from decimal import Decimal
from sqlalchemy import (
    Column, Integer, Numeric, String, ForeignKey, Date, Text, DateTime,
    UniqueConstraint, event,
)
from sqlalchemy.orm import relationship, Session
from datetime import datetime
from app.models import Base

TAX_STATUSES = ("Pending", "In Progress", "Completed", "Overdue")
FILING_STATUSES = ("Single", "Married", "Head of Household", "Qualifying Widow(er)")
DEDUCTION_CATEGORIES = ("Business Expenses", "Home Office", "Equipment", "Travel", "Other")
TAX_PAYMENT_METHODS = ("Bank Transfer", "Credit Card", "Check", "Other")
TAX_ENTRY_TYPES = ("income", "sales", "property", "self-employment", "corporate")

ZERO = Decimal("0")


def _money(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


class Tax(Base):
    """
    Annual tax liability record, one per owner and year.

    total_deductions, taxable_income, total_paid and balance are derived
    from the sub-entries and recomputed on every flush.
    """
    __tablename__ = "taxes"
    __table_args__ = (
        UniqueConstraint("user_id", "year", name="uq_taxes_user_year"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    year = Column(Integer, nullable=False)

    total_income = Column(Numeric(14, 2), nullable=False, default=0)
    total_deductions = Column(Numeric(14, 2), nullable=False, default=0)
    taxable_income = Column(Numeric(14, 2), nullable=False, default=0)
    total_tax = Column(Numeric(14, 2), nullable=False, default=0)
    total_paid = Column(Numeric(14, 2), nullable=False, default=0)
    balance = Column(Numeric(14, 2), nullable=False, default=0)

    status = Column(String(20), nullable=False, default="Pending")
    filing_status = Column(String(30), nullable=False, default="Single")
    state = Column(String(50), nullable=False, default="NA")

    # Optional breakdowns
    state_tax_rate = Column(Numeric(6, 3), nullable=True)
    state_tax_amount = Column(Numeric(14, 2), nullable=True)
    local_tax_rate = Column(Numeric(6, 3), nullable=True)
    local_tax_amount = Column(Numeric(14, 2), nullable=True)
    self_employment_tax_rate = Column(Numeric(6, 3), nullable=True)
    self_employment_tax_amount = Column(Numeric(14, 2), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    deductions = relationship(
        "TaxDeduction", back_populates="tax", cascade="all, delete-orphan",
        order_by="TaxDeduction.id",
    )
    tax_payments = relationship(
        "TaxPayment", back_populates="tax", cascade="all, delete-orphan",
        order_by="TaxPayment.id",
    )

    def recalculate_totals(self, excluded=()):
        """Recompute the derived totals from deductions and payments."""
        self.total_deductions = sum(
            (_money(d.amount) for d in self.deductions if d not in excluded), ZERO
        )
        self.taxable_income = _money(self.total_income) - self.total_deductions
        self.total_paid = sum(
            (_money(p.amount) for p in self.tax_payments if p not in excluded), ZERO
        )
        self.balance = _money(self.total_tax) - self.total_paid

    @property
    def effective_rate(self):
        """Total tax as a percentage of total income; None when there is no income."""
        income = _money(self.total_income)
        if income == 0:
            return None
        return _money(self.total_tax) / income * 100


class TaxDeduction(Base):
    __tablename__ = "tax_deductions"

    id = Column(Integer, primary_key=True, index=True)
    tax_id = Column(Integer, ForeignKey("taxes.id"), nullable=False)
    category = Column(String(50), nullable=False)  # see DEDUCTION_CATEGORIES
    description = Column(Text, nullable=True)
    amount = Column(Numeric(14, 2), nullable=False)
    date = Column(Date, nullable=True)

    tax = relationship("Tax", back_populates="deductions")


class TaxPayment(Base):
    __tablename__ = "tax_payments"

    id = Column(Integer, primary_key=True, index=True)
    tax_id = Column(Integer, ForeignKey("taxes.id"), nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    date = Column(Date, nullable=False)
    payment_method = Column(String(30), nullable=True)  # see TAX_PAYMENT_METHODS
    reference = Column(String(100), nullable=True)

    tax = relationship("Tax", back_populates="tax_payments")


class TaxEntry(Base):
    """One-off tax records (sales, property, ...) with a server-computed amount."""
    __tablename__ = "tax_entries"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String(30), nullable=False)  # see TAX_ENTRY_TYPES
    amount = Column(Numeric(14, 2), nullable=False)
    rate = Column(Numeric(6, 3), nullable=False)
    tax_amount = Column(Numeric(14, 2), nullable=False)
    date = Column(Date, nullable=False)
    year = Column(Integer, nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


@event.listens_for(Session, "before_flush")
def _recalculate_tax_totals(session, flush_context, instances):
    """Keep derived tax totals in step with whatever is being flushed."""
    touched = []
    for obj in list(session.new) + list(session.dirty) + list(session.deleted):
        if isinstance(obj, Tax):
            tax = obj
        elif isinstance(obj, (TaxDeduction, TaxPayment)):
            tax = obj.tax
        else:
            continue
        if tax is not None and tax not in session.deleted and tax not in touched:
            touched.append(tax)

    excluded = set(session.deleted)
    for tax in touched:
        tax.recalculate_totals(excluded=excluded)
