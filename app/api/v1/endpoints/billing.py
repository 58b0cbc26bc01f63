"""Payment and invoice endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status

from app.core.permissions import PermissionAction, Resource
from app.core.tenant import TenantContext
from app.dependencies import DatabaseSession, require_permission
from app.schemas.billing import (
    InvoiceCreate,
    InvoiceResponse,
    PaymentCreate,
    PaymentResponse,
    PaymentVerify,
)
from app.services.invoice_service import InvoiceService
from app.services.payment_service import PaymentService

router = APIRouter()


@router.post(
    "/payments",
    response_model=PaymentResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Payments"],
    summary="Record payment",
)
async def record_payment(
    data: PaymentCreate,
    tenant: Annotated[
        TenantContext, Depends(require_permission(Resource.PAYMENTS, PermissionAction.CREATE))
    ],
    db: DatabaseSession,
) -> PaymentResponse:
    """
    Record a payment.

    Cash is confirmed immediately; other methods wait for verification.
    """
    return await PaymentService(db).record_payment(tenant, data)


@router.get(
    "/payments/pending",
    response_model=list[PaymentResponse],
    status_code=status.HTTP_200_OK,
    tags=["Payments"],
    summary="Payments awaiting verification",
)
async def list_pending_payments(
    tenant: Annotated[
        TenantContext, Depends(require_permission(Resource.PAYMENTS, PermissionAction.READ))
    ],
    db: DatabaseSession,
) -> list[PaymentResponse]:
    """Non-cash payments waiting for verification, newest first."""
    return await PaymentService(db).list_pending_verifications(tenant)


@router.get(
    "/payments/{payment_id}",
    response_model=PaymentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Payments"],
    summary="Get payment",
)
async def get_payment(
    payment_id: UUID,
    tenant: Annotated[
        TenantContext, Depends(require_permission(Resource.PAYMENTS, PermissionAction.READ))
    ],
    db: DatabaseSession,
) -> PaymentResponse:
    """Get payment details."""
    return await PaymentService(db).get_payment(tenant, payment_id)


@router.post(
    "/payments/{payment_id}/verify",
    response_model=PaymentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Payments"],
    summary="Verify or reject payment",
)
async def verify_payment(
    payment_id: UUID,
    data: PaymentVerify,
    tenant: Annotated[
        TenantContext, Depends(require_permission(Resource.PAYMENTS, PermissionAction.UPDATE))
    ],
    db: DatabaseSession,
) -> PaymentResponse:
    """Confirm or reject a pending non-cash payment."""
    return await PaymentService(db).verify_payment(tenant, payment_id, data)


@router.post(
    "/invoices",
    response_model=InvoiceResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Invoices"],
    summary="Issue invoice",
)
async def create_invoice(
    data: InvoiceCreate,
    tenant: Annotated[
        TenantContext, Depends(require_permission(Resource.INVOICES, PermissionAction.CREATE))
    ],
    db: DatabaseSession,
) -> InvoiceResponse:
    """Issue an invoice with line items."""
    return await InvoiceService(db).create_invoice(tenant, data)


@router.get(
    "/invoices/{invoice_id}",
    response_model=InvoiceResponse,
    status_code=status.HTTP_200_OK,
    tags=["Invoices"],
    summary="Get invoice",
)
async def get_invoice(
    invoice_id: UUID,
    tenant: Annotated[
        TenantContext, Depends(require_permission(Resource.INVOICES, PermissionAction.READ))
    ],
    db: DatabaseSession,
) -> InvoiceResponse:
    """Get an invoice with items and paid amount."""
    return await InvoiceService(db).get_invoice(tenant, invoice_id)
