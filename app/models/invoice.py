from sqlalchemy import (
    Column, Integer, Numeric, String, ForeignKey, Date, Text, DateTime,
    UniqueConstraint, event,
)
from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy.orm import relationship
from datetime import date, datetime
from app.models import Base
from app.models.expense import EXPENSE_CATEGORIES, PAYMENT_METHODS

INVOICE_STATUSES = ("pending", "paid", "cancelled", "overdue")
INVOICE_TYPES = ("income", "expense")
INVOICE_CATEGORIES = EXPENSE_CATEGORIES
INVOICE_PAYMENT_METHODS = PAYMENT_METHODS

# Entry kinds an invoice can be derived from
SOURCE_ENTITY_TYPES = ("income", "expense")


class Invoice(Base):
    """
    Invoices, either entered directly or derived from an Income/Expense.

    A derived invoice points back at its entry through the pair
    (source_entity_type, source_entity_id). The unique constraint on that
    pair guarantees at most one invoice per entry.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        UniqueConstraint("user_id", "invoice_number", name="uq_invoices_user_number"),
        UniqueConstraint(
            "user_id", "source_entity_type", "source_entity_id",
            name="uq_invoices_user_source",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    invoice_number = Column(String(50), nullable=False)
    client_name = Column(String(200), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    due_date = Column(Date, nullable=False)
    date = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, default="pending")  # pending, paid, cancelled, overdue
    type = Column(String(20), nullable=False)  # income, expense
    category = Column(String(50), nullable=True)
    payment_method = Column(String(20), nullable=True)
    description = Column(Text, nullable=True)

    subtotal = Column(Numeric(12, 2), nullable=False)
    tax = Column(Numeric(12, 2), nullable=False, default=0)
    total = Column(Numeric(12, 2), nullable=False)

    # Canonical link to the entry this invoice mirrors
    source_entity_type = Column(String(20), nullable=True)  # income, expense
    source_entity_id = Column(Integer, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    items = relationship(
        "InvoiceItem",
        back_populates="invoice",
        order_by="InvoiceItem.position",
        collection_class=ordering_list("position"),
        cascade="all, delete-orphan",
    )

    @property
    def is_linked(self) -> bool:
        return self.source_entity_type is not None and self.source_entity_id is not None


class InvoiceItem(Base):
    """Line items, kept in the order they were submitted."""
    __tablename__ = "invoice_items"

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    description = Column(String(500), nullable=True)
    quantity = Column(Numeric(12, 2), nullable=False, default=1)
    price = Column(Numeric(12, 2), nullable=False, default=0)

    invoice = relationship("Invoice", back_populates="items")


def mark_overdue(invoice: Invoice, today: date | None = None) -> bool:
    """
    Flip a pending invoice whose due date has passed to "overdue".

    Comparison is by calendar day: an invoice due today is not overdue.
    Returns True when the status changed.
    """
    today = today or date.today()
    if invoice.status == "pending" and invoice.due_date is not None and invoice.due_date < today:
        invoice.status = "overdue"
        return True
    return False


@event.listens_for(Invoice, "before_insert")
@event.listens_for(Invoice, "before_update")
def _check_overdue_on_save(mapper, connection, target):
    # Runs on every persist, not only on explicit status changes
    mark_overdue(target)
