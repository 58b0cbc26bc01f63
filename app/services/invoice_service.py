"""Invoice service for business logic."""

from uuid import UUID

import structlog
from sqlalchemy import and_, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundException
from app.core.tenant import TenantContext
from app.models.appointments import appointments
from app.models.billing import invoice_items, invoices
from app.models.patients import patients
from app.schemas.billing import InvoiceCreate, InvoiceItemResponse, InvoiceResponse
from app.services.activity_service import log_activity
from app.services.numbering import next_document_number
from app.services.payment_service import PaymentService

logger = structlog.get_logger(__name__)


class InvoiceService:
    """Service for issuing and reading invoices."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db
        self.payments = PaymentService(db)

    async def create_invoice(self, tenant: TenantContext, data: InvoiceCreate) -> InvoiceResponse:
        """
        Issue an invoice with its line items.

        Args:
            tenant: Request tenant context
            data: Invoice details and items

        Returns:
            Created invoice

        Raises:
            NotFoundException: If the patient or appointment is not in the clinic
        """
        try:
            result = await self.db.execute(
                select(patients.c.id).where(
                    and_(patients.c.id == data.patient_id, patients.c.clinic_id == tenant.clinic_id)
                )
            )
            if result.scalar_one_or_none() is None:
                raise NotFoundException("Patient not found")

            if data.appointment_id is not None:
                result = await self.db.execute(
                    select(appointments.c.id).where(
                        and_(
                            appointments.c.id == data.appointment_id,
                            appointments.c.clinic_id == tenant.clinic_id,
                        )
                    )
                )
                if result.scalar_one_or_none() is None:
                    raise NotFoundException("Appointment not found")

            invoice_number = await next_document_number(
                self.db, invoices, "invoice_number", tenant.clinic_id, "INV", data.invoice_date
            )
            result = await self.db.execute(
                insert(invoices)
                .values(
                    clinic_id=tenant.clinic_id,
                    patient_id=data.patient_id,
                    appointment_id=data.appointment_id,
                    invoice_number=invoice_number,
                    invoice_date=data.invoice_date,
                    due_date=data.due_date,
                    subtotal=data.subtotal,
                    discount_amount=data.discount_amount,
                    tax_amount=data.tax_amount,
                    total_amount=data.total_amount,
                    notes=data.notes,
                    created_by=tenant.user_id,
                )
                .returning(invoices.c.id)
            )
            invoice_id = result.scalar_one()

            await self.db.execute(
                insert(invoice_items),
                [
                    {
                        "clinic_id": tenant.clinic_id,
                        "invoice_id": invoice_id,
                        "description": item.description,
                        "quantity": item.quantity,
                        "unit_price": item.unit_price,
                        "total_price": item.quantity * item.unit_price,
                    }
                    for item in data.items
                ],
            )

            await log_activity(
                self.db,
                clinic_id=tenant.clinic_id,
                user_id=tenant.user_id,
                action="create",
                resource_type="invoice",
                resource_id=invoice_id,
                description=f"Issued invoice {invoice_number}",
                new_values={"invoice_number": invoice_number, "total_amount": data.total_amount},
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "invoice_created",
            clinic_id=str(tenant.clinic_id),
            invoice_id=str(invoice_id),
            total_amount=data.total_amount,
        )
        return await self.get_invoice(tenant, invoice_id)

    async def get_invoice(self, tenant: TenantContext, invoice_id: UUID) -> InvoiceResponse:
        """
        Get an invoice with its items and confirmed paid amount.

        Raises:
            NotFoundException: If invoice not found
        """
        result = await self.db.execute(
            select(invoices).where(
                and_(invoices.c.id == invoice_id, invoices.c.clinic_id == tenant.clinic_id)
            )
        )
        invoice = result.mappings().first()
        if not invoice:
            raise NotFoundException("Invoice not found")

        result = await self.db.execute(
            select(invoice_items)
            .where(invoice_items.c.invoice_id == invoice_id)
            .order_by(invoice_items.c.created_at, invoice_items.c.description)
        )
        items = [InvoiceItemResponse.model_validate(dict(row)) for row in result.mappings()]
        paid = await self.payments.confirmed_total(tenant.clinic_id, invoice_id=invoice_id)

        return InvoiceResponse(**dict(invoice), paid_amount=paid, items=items)
