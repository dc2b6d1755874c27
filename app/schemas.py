"""
Request and response schemas for LedgerFlow.

Create schemas describe a complete, valid entity. Patch schemas are the
allow-list of externally mutable fields for each entity: anything not
declared on them is rejected (``extra="forbid"``).
"""

import datetime as dt
from decimal import Decimal
from typing import Annotated, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, field_validator

# Serialized as JSON numbers; validated as exact decimals
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]

IncomeCategory = Literal["salary", "freelance", "business", "investment", "rental", "other"]
ExpenseStatus = Literal["pending", "paid", "cancelled"]
LedgerCategory = Literal["utilities", "rent", "salary", "supplies", "maintenance", "marketing", "other"]
PaymentMethod = Literal["cash", "bank", "credit", "other"]
InvoiceStatus = Literal["pending", "paid", "cancelled", "overdue"]
InvoiceType = Literal["income", "expense"]
TaxStatus = Literal["Pending", "In Progress", "Completed", "Overdue"]
FilingStatus = Literal["Single", "Married", "Head of Household", "Qualifying Widow(er)"]
DeductionCategory = Literal["Business Expenses", "Home Office", "Equipment", "Travel", "Other"]
TaxPaymentMethod = Literal["Bank Transfer", "Credit Card", "Check", "Other"]
TaxEntryType = Literal["income", "sales", "property", "self-employment", "corporate"]


class _Input(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


# ==================== INCOME ====================

class IncomeCreate(_Input):
    source: str = Field(..., min_length=1, max_length=200)
    amount: Money = Field(..., ge=0, max_digits=12, decimal_places=2)
    date: dt.date
    category: IncomeCategory = "other"
    description: Optional[str] = None


class IncomePatch(_Input):
    source: Optional[str] = Field(None, min_length=1, max_length=200)
    amount: Optional[Money] = Field(None, ge=0, max_digits=12, decimal_places=2)
    date: Optional[dt.date] = None
    category: Optional[IncomeCategory] = None
    description: Optional[str] = None


# ==================== EXPENSE ====================

class ExpenseCreate(_Input):
    payee: str = Field(..., min_length=1, max_length=200)
    amount: Money = Field(..., ge=0, max_digits=12, decimal_places=2)
    date: dt.date
    status: ExpenseStatus = "pending"
    category: LedgerCategory = "other"
    payment_method: Optional[PaymentMethod] = None
    description: Optional[str] = None


class ExpensePatch(_Input):
    payee: Optional[str] = Field(None, min_length=1, max_length=200)
    amount: Optional[Money] = Field(None, ge=0, max_digits=12, decimal_places=2)
    date: Optional[dt.date] = None
    status: Optional[ExpenseStatus] = None
    category: Optional[LedgerCategory] = None
    payment_method: Optional[PaymentMethod] = None
    description: Optional[str] = None


# ==================== INVOICE ====================

class InvoiceItemIn(_Input):
    description: Optional[str] = None
    quantity: Money = Field(1, ge=0)
    price: Money = Field(0, ge=0)


class InvoiceCreate(_Input):
    client_name: str = Field(..., min_length=1, max_length=200)
    amount: Money = Field(..., ge=0, max_digits=12, decimal_places=2)
    due_date: dt.date
    type: InvoiceType
    items: List[InvoiceItemIn]
    subtotal: Money = Field(..., ge=0)
    tax: Money = Field(..., ge=0)
    total: Money = Field(..., ge=0)
    date: dt.date
    invoice_number: str = Field(..., min_length=1, max_length=50)
    status: InvoiceStatus = "pending"
    category: Optional[LedgerCategory] = None
    payment_method: Optional[PaymentMethod] = None
    description: Optional[str] = None

    @field_validator("total")
    @classmethod
    def check_total(cls, total, info):
        subtotal = info.data.get("subtotal")
        tax = info.data.get("tax")
        if subtotal is not None and tax is not None and total != subtotal + tax:
            raise ValueError(f"must equal subtotal + tax ({subtotal + tax})")
        return total


class InvoicePatch(_Input):
    client_name: Optional[str] = Field(None, min_length=1, max_length=200)
    amount: Optional[Money] = Field(None, ge=0, max_digits=12, decimal_places=2)
    due_date: Optional[dt.date] = None
    items: Optional[List[InvoiceItemIn]] = None
    subtotal: Optional[Money] = Field(None, ge=0)
    tax: Optional[Money] = Field(None, ge=0)
    total: Optional[Money] = Field(None, ge=0)
    date: Optional[dt.date] = None
    invoice_number: Optional[str] = Field(None, min_length=1, max_length=50)
    status: Optional[InvoiceStatus] = None
    category: Optional[LedgerCategory] = None
    payment_method: Optional[PaymentMethod] = None
    description: Optional[str] = None


class InvoiceStatusUpdate(_Input):
    status: InvoiceStatus


# ==================== TAX ====================

class TaxCalculateRequest(_Input):
    year: int = Field(..., ge=1900, le=9999)


class TaxStatusUpdate(_Input):
    status: TaxStatus


class RateAmount(_Input):
    rate: Optional[Money] = Field(None, ge=0, le=100)
    amount: Optional[Money] = Field(None, ge=0)


class TaxPatch(_Input):
    filing_status: Optional[FilingStatus] = None
    state: Optional[str] = Field(None, max_length=50)
    state_tax: Optional[RateAmount] = None
    local_tax: Optional[RateAmount] = None
    self_employment_tax: Optional[RateAmount] = None


class TaxDeductionCreate(_Input):
    category: DeductionCategory
    description: Optional[str] = None
    amount: Money = Field(..., ge=0)
    date: Optional[dt.date] = None


class TaxPaymentCreate(_Input):
    amount: Money = Field(..., ge=0)
    date: dt.date
    payment_method: Optional[TaxPaymentMethod] = None
    reference: Optional[str] = Field(None, max_length=100)


class TaxEntryCreate(_Input):
    type: TaxEntryType
    amount: Money = Field(..., ge=0)
    rate: Optional[Money] = Field(None, ge=0, le=100)
    date: dt.date
    description: Optional[str] = None


# ==================== AUTH ====================

class RegisterRequest(_Input):
    name: str = Field(..., min_length=1)
    username: str = Field(..., min_length=3, max_length=50)
    password: str = Field(..., min_length=8)


class LoginRequest(_Input):
    username: str
    password: str


# ==================== RESPONSES ====================

class _Output(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class IncomeOut(_Output):
    id: int
    source: str
    amount: Money
    date: dt.date
    category: str
    description: Optional[str] = None
    created_at: Optional[dt.datetime] = None


class ExpenseOut(_Output):
    id: int
    payee: str
    amount: Money
    date: dt.date
    status: str
    category: str
    payment_method: Optional[str] = None
    description: Optional[str] = None
    created_at: Optional[dt.datetime] = None


class InvoiceItemOut(_Output):
    description: Optional[str] = None
    quantity: Money
    price: Money


class InvoiceOut(_Output):
    id: int
    invoice_number: str
    client_name: str
    amount: Money
    due_date: dt.date
    date: dt.date
    status: str
    type: str
    category: Optional[str] = None
    payment_method: Optional[str] = None
    description: Optional[str] = None
    items: List[InvoiceItemOut] = []
    subtotal: Money
    tax: Money
    total: Money
    source_entity_type: Optional[str] = None
    source_entity_id: Optional[int] = None
    created_at: Optional[dt.datetime] = None


class TaxDeductionOut(_Output):
    id: int
    category: str
    description: Optional[str] = None
    amount: Money
    date: Optional[dt.date] = None


class TaxPaymentOut(_Output):
    id: int
    amount: Money
    date: dt.date
    payment_method: Optional[str] = None
    reference: Optional[str] = None


class TaxOut(_Output):
    id: int
    year: int
    total_income: Money
    total_deductions: Money
    taxable_income: Money
    total_tax: Money
    total_paid: Money
    balance: Money
    effective_rate: Optional[Money] = None
    status: str
    filing_status: str
    state: str
    state_tax_rate: Optional[Money] = None
    state_tax_amount: Optional[Money] = None
    local_tax_rate: Optional[Money] = None
    local_tax_amount: Optional[Money] = None
    self_employment_tax_rate: Optional[Money] = None
    self_employment_tax_amount: Optional[Money] = None
    deductions: List[TaxDeductionOut] = []
    tax_payments: List[TaxPaymentOut] = []


class TaxEntryOut(_Output):
    id: int
    type: str
    amount: Money
    rate: Money
    tax_amount: Money
    date: dt.date
    year: int
    description: Optional[str] = None


def dump(schema: type[BaseModel], obj) -> dict:
    """Serialize an ORM object through ``schema`` into JSON-ready values."""
    return schema.model_validate(obj).model_dump(mode="json")


class UserOut(_Output):
    id: int
    name: str
    username: str
