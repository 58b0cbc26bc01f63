"""Payment recording and verification for Philippine payment methods."""

import re
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import Table, and_, func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import BadRequestException, NotFoundException, ValidationException
from app.core.tenant import TenantContext
from app.models.appointments import appointments
from app.models.billing import invoices, payments
from app.models.patients import patients
from app.schemas.billing import (
    InvoicePaymentStatus,
    PaymentCategory,
    PaymentCreate,
    PaymentHistoryEntry,
    PaymentMethod,
    PaymentResponse,
    PaymentStatus,
    PaymentVerify,
    VerificationStatus,
)
from app.services.activity_service import log_activity
from app.services.numbering import next_document_number

logger = structlog.get_logger(__name__)

PAYMENT_CATEGORIES: dict[PaymentMethod, PaymentCategory] = {
    PaymentMethod.CASH: PaymentCategory.CASH,
    PaymentMethod.BANK_TRANSFER: PaymentCategory.BANK,
    PaymentMethod.ONLINE_BANKING: PaymentCategory.BANK,
    PaymentMethod.INSTAPAY: PaymentCategory.BANK,
    PaymentMethod.PESONET: PaymentCategory.BANK,
    PaymentMethod.GCASH: PaymentCategory.DIGITAL_WALLET,
    PaymentMethod.PAYMAYA: PaymentCategory.DIGITAL_WALLET,
    PaymentMethod.GRABPAY: PaymentCategory.DIGITAL_WALLET,
    PaymentMethod.SHOPEEPAY: PaymentCategory.DIGITAL_WALLET,
    PaymentMethod.CREDIT_CARD: PaymentCategory.CARD,
    PaymentMethod.DEBIT_CARD: PaymentCategory.CARD,
    PaymentMethod.CHECK: PaymentCategory.ALTERNATIVE,
    PaymentMethod.INSTALLMENT: PaymentCategory.ALTERNATIVE,
}

_BANK_METHODS = {PaymentMethod.BANK_TRANSFER, PaymentMethod.INSTAPAY, PaymentMethod.PESONET}
_GCASH_RE = re.compile(r"^\d{13}$")
_PAYMAYA_RE = re.compile(r"^[A-Z0-9]{6,20}$")
_CHECK_RE = re.compile(r"^\d{6,12}$")


def validate_reference(method: PaymentMethod, reference: str | None) -> list[str]:
    """
    Validate a raw transaction reference for a payment method.

    Args:
        method: Payment method
        reference: Reference as entered

    Returns:
        Error messages, empty when the reference is acceptable
    """
    if method == PaymentMethod.CASH:
        return []

    reference = reference or ""
    errors = []
    if not reference.strip():
        errors.append("Transaction reference is required for non-cash payments")

    if method == PaymentMethod.GCASH and not _GCASH_RE.match(reference):
        errors.append("GCash reference must be 13 digits")
    elif method == PaymentMethod.PAYMAYA and not _PAYMAYA_RE.match(reference.strip().upper()):
        errors.append("PayMaya reference must be 6-20 alphanumeric characters")
    elif method in _BANK_METHODS and not 6 <= len(reference) <= 30:
        errors.append("Bank transfer reference must be 6-30 characters")
    elif method == PaymentMethod.CHECK and not _CHECK_RE.match(reference):
        errors.append("Check number must be 6-12 digits")

    return errors


def format_reference(method: PaymentMethod, reference: str) -> str:
    """Normalize a reference for storage."""
    if method == PaymentMethod.GCASH:
        return re.sub(r"\D", "", reference)
    if method == PaymentMethod.PAYMAYA:
        return re.sub(r"[^A-Z0-9]", "", reference.upper())
    if method in _BANK_METHODS:
        return reference.strip().upper()
    return reference.strip()


def invoice_status_for(total_amount: int, paid_amount: int) -> InvoicePaymentStatus:
    """Settlement status of an invoice from its confirmed payments."""
    if paid_amount >= total_amount:
        return InvoicePaymentStatus.PAID
    if paid_amount > 0:
        return InvoicePaymentStatus.PARTIAL
    return InvoicePaymentStatus.PENDING


class PaymentService:
    """Service for managing payments."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def _ensure_in_clinic(
        self,
        table: Table,
        record_id: UUID,
        clinic_id: UUID,
        label: str,
        patient_id: UUID | None = None,
    ) -> None:
        stmt = select(table.c.id).where(
            and_(table.c.id == record_id, table.c.clinic_id == clinic_id)
        )
        if patient_id is not None:
            stmt = stmt.where(table.c.patient_id == patient_id)
        result = await self.db.execute(stmt)
        if result.scalar_one_or_none() is None:
            raise NotFoundException(f"{label} not found")

    async def _get_row(self, clinic_id: UUID, payment_id: UUID) -> dict[str, Any]:
        stmt = select(payments).where(
            and_(payments.c.id == payment_id, payments.c.clinic_id == clinic_id)
        )
        result = await self.db.execute(stmt)
        row = result.mappings().first()
        if not row:
            raise NotFoundException("Payment not found")
        return dict(row)

    async def refresh_invoice_status(
        self, clinic_id: UUID, invoice_id: UUID
    ) -> InvoicePaymentStatus:
        """Recompute an invoice's payment status inside the current transaction."""
        result = await self.db.execute(
            select(invoices.c.total_amount, invoices.c.payment_status).where(
                and_(invoices.c.id == invoice_id, invoices.c.clinic_id == clinic_id)
            )
        )
        invoice = result.mappings().one()
        if invoice["payment_status"] == InvoicePaymentStatus.CANCELLED.value:
            return InvoicePaymentStatus.CANCELLED

        paid = await self.confirmed_total(clinic_id, invoice_id=invoice_id)
        status = invoice_status_for(invoice["total_amount"], paid)
        await self.db.execute(
            update(invoices)
            .where(invoices.c.id == invoice_id)
            .values(payment_status=status.value, updated_at=datetime.now(UTC))
        )
        return status

    async def confirmed_total(
        self,
        clinic_id: UUID,
        invoice_id: UUID | None = None,
        patient_id: UUID | None = None,
    ) -> int:
        """Sum of confirmed payments for an invoice or a patient."""
        conditions = [
            payments.c.clinic_id == clinic_id,
            payments.c.status == PaymentStatus.CONFIRMED.value,
        ]
        if invoice_id is not None:
            conditions.append(payments.c.invoice_id == invoice_id)
        if patient_id is not None:
            conditions.append(payments.c.patient_id == patient_id)

        result = await self.db.execute(
            select(func.coalesce(func.sum(payments.c.amount), 0)).where(and_(*conditions))
        )
        return int(result.scalar_one())

    async def record_payment(self, tenant: TenantContext, data: PaymentCreate) -> PaymentResponse:
        """
        Record a payment received by the acting staff member.

        Cash is confirmed and verified on the spot. Every other method waits
        for manual verification.

        Args:
            tenant: Request tenant context
            data: Payment details

        Returns:
            Recorded payment

        Raises:
            ValidationException: If the transaction reference is invalid
            NotFoundException: If a referenced record is not in the clinic
        """
        errors = validate_reference(data.payment_method, data.transaction_reference)
        if errors:
            raise ValidationException(field_errors={"transaction_reference": errors})

        is_cash = data.payment_method == PaymentMethod.CASH
        now = datetime.now(UTC)
        reference = (
            format_reference(data.payment_method, data.transaction_reference)
            if data.transaction_reference
            else None
        )

        try:
            await self._ensure_in_clinic(patients, data.patient_id, tenant.clinic_id, "Patient")
            if data.appointment_id is not None:
                await self._ensure_in_clinic(
                    appointments,
                    data.appointment_id,
                    tenant.clinic_id,
                    "Appointment",
                    patient_id=data.patient_id,
                )
            if data.invoice_id is not None:
                await self._ensure_in_clinic(
                    invoices,
                    data.invoice_id,
                    tenant.clinic_id,
                    "Invoice",
                    patient_id=data.patient_id,
                )

            payment_number = await next_document_number(
                self.db, payments, "payment_number", tenant.clinic_id, "PAY"
            )
            stmt = (
                insert(payments)
                .values(
                    clinic_id=tenant.clinic_id,
                    patient_id=data.patient_id,
                    appointment_id=data.appointment_id,
                    invoice_id=data.invoice_id,
                    payment_number=payment_number,
                    payment_date=data.payment_date,
                    amount=data.amount,
                    payment_method=data.payment_method.value,
                    payment_category=PAYMENT_CATEGORIES[data.payment_method].value,
                    transaction_reference=reference,
                    status=(PaymentStatus.CONFIRMED if is_cash else PaymentStatus.PENDING).value,
                    verification_status=(
                        VerificationStatus.VERIFIED if is_cash else VerificationStatus.PENDING
                    ).value,
                    notes=data.notes,
                    received_by=tenant.user_id,
                    verified_by=tenant.user_id if is_cash else None,
                    verified_at=now if is_cash else None,
                )
                .returning(payments)
            )
            result = await self.db.execute(stmt)
            row = dict(result.mappings().one())

            if data.invoice_id is not None:
                await self.refresh_invoice_status(tenant.clinic_id, data.invoice_id)

            await log_activity(
                self.db,
                clinic_id=tenant.clinic_id,
                user_id=tenant.user_id,
                action="create",
                resource_type="payment",
                resource_id=row["id"],
                description=(
                    f"Recorded {data.payment_method.value} payment of "
                    f"{settings.currency_code} {data.amount / 100:,.2f}"
                ),
                new_values={
                    "payment_number": payment_number,
                    "amount": data.amount,
                    "payment_method": data.payment_method.value,
                    "status": row["status"],
                },
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "payment_recorded",
            clinic_id=str(tenant.clinic_id),
            payment_id=str(row["id"]),
            payment_method=data.payment_method.value,
            requires_verification=not is_cash,
        )
        return PaymentResponse.model_validate(row)

    async def verify_payment(
        self, tenant: TenantContext, payment_id: UUID, data: PaymentVerify
    ) -> PaymentResponse:
        """
        Verify or reject a pending payment.

        Raises:
            NotFoundException: If payment not found
            BadRequestException: If the payment was already verified
        """
        try:
            existing = await self._get_row(tenant.clinic_id, payment_id)
            if existing["verification_status"] == VerificationStatus.VERIFIED.value:
                raise BadRequestException("Payment already verified")

            if data.verified:
                status, verification = PaymentStatus.CONFIRMED, VerificationStatus.VERIFIED
            else:
                status, verification = PaymentStatus.FAILED, VerificationStatus.REJECTED

            stmt = (
                update(payments)
                .where(and_(payments.c.id == payment_id, payments.c.clinic_id == tenant.clinic_id))
                .values(
                    status=status.value,
                    verification_status=verification.value,
                    verification_notes=data.notes,
                    verified_by=tenant.user_id,
                    verified_at=datetime.now(UTC),
                    updated_at=datetime.now(UTC),
                )
                .returning(payments)
            )
            result = await self.db.execute(stmt)
            row = dict(result.mappings().one())

            if row["invoice_id"] is not None:
                await self.refresh_invoice_status(tenant.clinic_id, row["invoice_id"])

            await log_activity(
                self.db,
                clinic_id=tenant.clinic_id,
                user_id=tenant.user_id,
                action="verify" if data.verified else "reject",
                resource_type="payment",
                resource_id=payment_id,
                description=f"Payment {verification.value}",
                old_values={
                    "status": existing["status"],
                    "verification_status": existing["verification_status"],
                },
                new_values={"status": status.value, "verification_status": verification.value},
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "payment_verified",
            clinic_id=str(tenant.clinic_id),
            payment_id=str(payment_id),
            verification_status=verification.value,
        )
        return PaymentResponse.model_validate(row)

    async def get_payment(self, tenant: TenantContext, payment_id: UUID) -> PaymentResponse:
        """Get payment by ID."""
        return PaymentResponse.model_validate(await self._get_row(tenant.clinic_id, payment_id))

    async def list_pending_verifications(self, tenant: TenantContext) -> list[PaymentResponse]:
        """Non-cash payments still waiting for verification, newest first."""
        stmt = (
            select(payments)
            .where(
                and_(
                    payments.c.clinic_id == tenant.clinic_id,
                    payments.c.verification_status == VerificationStatus.PENDING.value,
                    payments.c.payment_method != PaymentMethod.CASH.value,
                )
            )
            .order_by(payments.c.created_at.desc(), payments.c.payment_number.desc())
        )
        result = await self.db.execute(stmt)
        return [PaymentResponse.model_validate(dict(row)) for row in result.mappings()]

    async def get_patient_history(
        self, tenant: TenantContext, patient_id: UUID
    ) -> list[PaymentHistoryEntry]:
        """
        Patient payments in chronological order with a running balance.

        Only confirmed payments add to the running balance.
        """
        await self._ensure_in_clinic(patients, patient_id, tenant.clinic_id, "Patient")

        stmt = (
            select(payments)
            .where(
                and_(payments.c.clinic_id == tenant.clinic_id, payments.c.patient_id == patient_id)
            )
            .order_by(payments.c.payment_date, payments.c.payment_number)
        )
        result = await self.db.execute(stmt)

        history = []
        balance = 0
        for row in result.mappings():
            if row["status"] == PaymentStatus.CONFIRMED.value:
                balance += row["amount"]
            history.append(PaymentHistoryEntry(**dict(row), running_balance=balance))
        return history
