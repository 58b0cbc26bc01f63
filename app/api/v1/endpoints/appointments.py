"""Appointment endpoints."""

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from app.core.permissions import PermissionAction, Resource
from app.core.tenant import TenantContext
from app.dependencies import Cache, DatabaseSession, require_permission
from app.schemas.appointments import (
    AppointmentCancel,
    AppointmentCreate,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStatusUpdate,
    AppointmentUpdate,
    ConflictCheckRequest,
    ConflictCheckResponse,
)
from app.services.appointment_service import AppointmentService
from app.services.clinic_service import ClinicService

router = APIRouter()

CanReadAppointments = Annotated[
    TenantContext, Depends(require_permission(Resource.APPOINTMENTS, PermissionAction.READ))
]
CanManageAppointments = Annotated[
    TenantContext, Depends(require_permission(Resource.APPOINTMENTS, PermissionAction.MANAGE))
]


def _service(db: DatabaseSession, cache: Cache) -> AppointmentService:
    return AppointmentService(db, ClinicService(db, cache))


@router.post(
    "/",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Book appointment",
    responses={
        400: {"description": "Validation failed"},
        404: {"description": "Patient or staff member not found"},
        409: {"description": "Slot overlaps existing appointments"},
    },
)
async def create_appointment(
    data: AppointmentCreate,
    tenant: CanManageAppointments,
    service: Annotated[AppointmentService, Depends(_service)],
) -> AppointmentResponse:
    """
    Book an appointment in the caller's clinic.

    The first staff member is the primary dentist. The request is rejected
    with 409 and the list of conflicting bookings when any staff member is
    already booked in the requested slot.
    """
    return await service.create_appointment(tenant, data)


@router.post(
    "/conflicts",
    response_model=ConflictCheckResponse,
    status_code=status.HTTP_200_OK,
    summary="Check a slot for conflicts",
)
async def check_conflicts(
    data: ConflictCheckRequest,
    tenant: CanReadAppointments,
    service: Annotated[AppointmentService, Depends(_service)],
) -> ConflictCheckResponse:
    """Report overlapping bookings for a candidate slot without booking it."""
    return await service.check_conflicts(tenant, data)


@router.get(
    "/",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    summary="List appointments",
)
async def list_appointments(
    tenant: CanReadAppointments,
    service: Annotated[AppointmentService, Depends(_service)],
    from_date: date = Query(...),
    to_date: date = Query(...),
    dentist_id: UUID | None = Query(None),
) -> AppointmentListResponse:
    """
    List appointments in a date range with their payment position.

    Args:
        tenant: Tenant context
        service: Appointment service
        from_date: First date (inclusive)
        to_date: Last date (inclusive)
        dentist_id: Filter by primary dentist

    Returns:
        Appointments ordered by date and start time
    """
    return await service.list_appointments(tenant, from_date, to_date, dentist_id)


@router.get(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Get appointment",
)
async def get_appointment(
    appointment_id: UUID,
    tenant: CanReadAppointments,
    service: Annotated[AppointmentService, Depends(_service)],
) -> AppointmentResponse:
    """Get appointment details."""
    return await service.get_appointment(tenant, appointment_id)


@router.put(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Update appointment",
)
async def update_appointment(
    appointment_id: UUID,
    data: AppointmentUpdate,
    tenant: CanManageAppointments,
    service: Annotated[AppointmentService, Depends(_service)],
) -> AppointmentResponse:
    """Update an open appointment; moving it re-checks the new slot."""
    return await service.update_appointment(tenant, appointment_id, data)


@router.patch(
    "/{appointment_id}/status",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Update appointment status",
)
async def update_appointment_status(
    appointment_id: UUID,
    data: AppointmentStatusUpdate,
    tenant: CanManageAppointments,
    service: Annotated[AppointmentService, Depends(_service)],
) -> AppointmentResponse:
    """Move an open appointment to another status."""
    return await service.update_status(tenant, appointment_id, data)


@router.post(
    "/{appointment_id}/cancel",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Cancel appointment",
)
async def cancel_appointment(
    appointment_id: UUID,
    tenant: CanManageAppointments,
    service: Annotated[AppointmentService, Depends(_service)],
    data: AppointmentCancel | None = None,
) -> AppointmentResponse:
    """Cancel an appointment and free its slot."""
    return await service.cancel_appointment(tenant, appointment_id, data or AppointmentCancel())
