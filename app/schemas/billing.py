"""Payment and invoice schemas for request/response validation."""

from datetime import date, datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator


class PaymentMethod(str, Enum):
    """Payment methods accepted by Philippine clinics."""

    CASH = "cash"
    CHECK = "check"
    BANK_TRANSFER = "bank_transfer"
    ONLINE_BANKING = "online_banking"
    INSTAPAY = "instapay"
    PESONET = "pesonet"
    GCASH = "gcash"
    PAYMAYA = "paymaya"
    GRABPAY = "grabpay"
    SHOPEEPAY = "shopeepay"
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    INSTALLMENT = "installment"


class PaymentCategory(str, Enum):
    """Payment method grouping."""

    CASH = "cash"
    DIGITAL_WALLET = "digital_wallet"
    BANK = "bank"
    CARD = "card"
    ALTERNATIVE = "alternative"


class PaymentStatus(str, Enum):
    """Payment status enumeration."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class VerificationStatus(str, Enum):
    """Manual verification state of a payment."""

    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class InvoicePaymentStatus(str, Enum):
    """Invoice settlement status."""

    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"
    CANCELLED = "cancelled"


class PaymentCreate(BaseModel):
    """Schema for recording a payment."""

    patient_id: UUID
    appointment_id: UUID | None = None
    invoice_id: UUID | None = None
    payment_date: date = Field(default_factory=date.today)
    amount: int = Field(..., gt=0, description="Centavos")
    payment_method: PaymentMethod
    transaction_reference: str | None = Field(None, max_length=255)
    notes: str | None = Field(None, max_length=1000)

    @field_validator("payment_date")
    @classmethod
    def validate_payment_date(cls, v: date) -> date:
        """Payments cannot be recorded for a future date."""
        if v > date.today():
            raise ValueError("Payment date cannot be in the future")
        return v


class PaymentVerify(BaseModel):
    """Schema for verifying or rejecting a non-cash payment."""

    verified: bool = True
    notes: str | None = Field(None, max_length=1000)


class PaymentResponse(BaseModel):
    """Schema for payment response."""

    id: UUID
    clinic_id: UUID
    patient_id: UUID
    appointment_id: UUID | None = None
    invoice_id: UUID | None = None
    payment_number: str
    payment_date: date
    amount: int
    payment_method: PaymentMethod
    payment_category: PaymentCategory
    transaction_reference: str | None = None
    status: PaymentStatus
    verification_status: VerificationStatus
    verification_notes: str | None = None
    notes: str | None = None
    received_by: UUID
    verified_by: UUID | None = None
    verified_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class PaymentHistoryEntry(PaymentResponse):
    """Payment with the patient's running confirmed balance."""

    running_balance: int


class InvoiceItemCreate(BaseModel):
    """Schema for an invoice line."""

    description: str = Field(..., min_length=1, max_length=500)
    quantity: int = Field(1, ge=1)
    unit_price: int = Field(..., ge=0, description="Centavos")


class InvoiceCreate(BaseModel):
    """Schema for issuing an invoice."""

    patient_id: UUID
    appointment_id: UUID | None = None
    invoice_date: date = Field(default_factory=date.today)
    due_date: date | None = None
    items: list[InvoiceItemCreate] = Field(..., min_length=1)
    discount_amount: int = Field(0, ge=0)
    tax_amount: int = Field(0, ge=0)
    notes: str | None = Field(None, max_length=1000)

    @model_validator(mode="after")
    def validate_totals(self) -> "InvoiceCreate":
        """Discounts cannot exceed the invoice value."""
        if self.due_date and self.due_date < self.invoice_date:
            raise ValueError("Due date must not be before the invoice date")
        if self.total_amount < 0:
            raise ValueError("Discount exceeds invoice amount")
        return self

    @property
    def subtotal(self) -> int:
        """Sum of line totals."""
        return sum(item.quantity * item.unit_price for item in self.items)

    @property
    def total_amount(self) -> int:
        """Amount due after discount and tax."""
        return self.subtotal - self.discount_amount + self.tax_amount


class InvoiceItemResponse(BaseModel):
    """Schema for invoice line response."""

    id: UUID
    description: str
    quantity: int
    unit_price: int
    total_price: int


class InvoiceResponse(BaseModel):
    """Schema for invoice response."""

    id: UUID
    clinic_id: UUID
    patient_id: UUID
    appointment_id: UUID | None = None
    invoice_number: str
    invoice_date: date
    due_date: date | None = None
    subtotal: int
    discount_amount: int
    tax_amount: int
    total_amount: int
    payment_status: InvoicePaymentStatus
    paid_amount: int
    notes: str | None = None
    items: list[InvoiceItemResponse]
    created_at: datetime
