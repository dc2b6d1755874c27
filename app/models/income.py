from sqlalchemy import Column, Integer, Numeric, String, ForeignKey, Date, Text, DateTime
from datetime import date, datetime
from app.models import Base

INCOME_CATEGORIES = ("salary", "freelance", "business", "investment", "rental", "other")


class Income(Base):
    """
    Individual income entries.

    Every income recorded through the standard flow owns exactly one linked
    invoice (see Invoice.source_entity_type / source_entity_id).
    """
    __tablename__ = "incomes"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    source = Column(String(200), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    date = Column(Date, nullable=False, default=date.today)
    category = Column(String(50), nullable=False, default="other")  # see INCOME_CATEGORIES
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
