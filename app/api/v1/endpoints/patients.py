"""Patient endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from app.core.permissions import PermissionAction, Resource
from app.core.tenant import TenantContext
from app.dependencies import DatabaseSession, require_permission
from app.schemas.billing import PaymentHistoryEntry
from app.schemas.patients import (
    PatientCreate,
    PatientListResponse,
    PatientResponse,
    PatientUpdate,
)
from app.services.patient_service import PatientService
from app.services.payment_service import PaymentService

router = APIRouter()


@router.post(
    "/",
    response_model=PatientResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register patient",
)
async def create_patient(
    data: PatientCreate,
    tenant: Annotated[
        TenantContext, Depends(require_permission(Resource.PATIENTS, PermissionAction.CREATE))
    ],
    db: DatabaseSession,
) -> PatientResponse:
    """Register a patient; the clinic assigns the next patient number."""
    return await PatientService(db).create_patient(tenant, data)


@router.get(
    "/",
    response_model=PatientListResponse,
    status_code=status.HTTP_200_OK,
    summary="List patients",
)
async def list_patients(
    tenant: Annotated[
        TenantContext, Depends(require_permission(Resource.PATIENTS, PermissionAction.READ))
    ],
    db: DatabaseSession,
    search: str | None = Query(None, min_length=1, max_length=100),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    include_inactive: bool = Query(False),
) -> PatientListResponse:
    """
    List clinic patients.

    Args:
        tenant: Tenant context
        db: Database session
        search: Name or patient number fragment
        page: Page number
        page_size: Items per page
        include_inactive: Include deactivated patients

    Returns:
        Paginated list of patients
    """
    return await PatientService(db).list_patients(
        tenant,
        search=search,
        page=page,
        page_size=page_size,
        include_inactive=include_inactive,
    )


@router.get(
    "/{patient_id}",
    response_model=PatientResponse,
    status_code=status.HTTP_200_OK,
    summary="Get patient",
)
async def get_patient(
    patient_id: UUID,
    tenant: Annotated[
        TenantContext, Depends(require_permission(Resource.PATIENTS, PermissionAction.READ))
    ],
    db: DatabaseSession,
) -> PatientResponse:
    """Get patient details."""
    return await PatientService(db).get_patient(tenant, patient_id)


@router.patch(
    "/{patient_id}",
    response_model=PatientResponse,
    status_code=status.HTTP_200_OK,
    summary="Update patient",
)
async def update_patient(
    patient_id: UUID,
    data: PatientUpdate,
    tenant: Annotated[
        TenantContext, Depends(require_permission(Resource.PATIENTS, PermissionAction.UPDATE))
    ],
    db: DatabaseSession,
) -> PatientResponse:
    """Update patient details."""
    return await PatientService(db).update_patient(tenant, patient_id, data)


@router.get(
    "/{patient_id}/payments",
    response_model=list[PaymentHistoryEntry],
    status_code=status.HTTP_200_OK,
    summary="Patient payment history",
)
async def get_patient_payments(
    patient_id: UUID,
    tenant: Annotated[
        TenantContext, Depends(require_permission(Resource.PAYMENTS, PermissionAction.READ))
    ],
    db: DatabaseSession,
) -> list[PaymentHistoryEntry]:
    """Patient payments in chronological order with a running balance."""
    return await PaymentService(db).get_patient_history(tenant, patient_id)
