from sqlalchemy import Column, Integer, Numeric, String, ForeignKey, Date, Text, DateTime
from datetime import date, datetime
from app.models import Base

EXPENSE_STATUSES = ("pending", "paid", "cancelled")
# Shared with invoices so a mirrored category is always valid on both sides
EXPENSE_CATEGORIES = ("utilities", "rent", "salary", "supplies", "maintenance", "marketing", "other")
PAYMENT_METHODS = ("cash", "bank", "credit", "other")


class Expense(Base):
    """
    Individual expense entries.

    Mirrors Income: each expense created through the standard flow owns
    one linked invoice of type "expense" whose status follows the expense.
    """
    __tablename__ = "expenses"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    payee = Column(String(200), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    date = Column(Date, nullable=False, default=date.today)
    status = Column(String(20), nullable=False, default="pending")  # pending, paid, cancelled
    category = Column(String(50), nullable=False, default="other")
    payment_method = Column(String(20), nullable=True)  # cash, bank, credit, other
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
