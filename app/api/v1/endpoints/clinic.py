"""Clinic and staff endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from app.core.permissions import PermissionAction, Resource, StaffRole
from app.core.tenant import TenantContext
from app.dependencies import Cache, CurrentTenant, DatabaseSession, require_permission
from app.schemas.staff import (
    ClinicResponse,
    ClinicSettings,
    ClinicSettingsUpdate,
    StaffCreate,
    StaffResponse,
)
from app.services.clinic_service import ClinicService
from app.services.staff_service import StaffService

router = APIRouter()


@router.get(
    "/clinic",
    response_model=ClinicResponse,
    status_code=status.HTTP_200_OK,
    tags=["Clinic"],
    summary="Get current clinic",
)
async def get_clinic(tenant: CurrentTenant, db: DatabaseSession, cache: Cache) -> ClinicResponse:
    """Get the caller's clinic with its effective settings."""
    return await ClinicService(db, cache).get_clinic(tenant.clinic_id)


@router.patch(
    "/clinic/settings",
    response_model=ClinicSettings,
    status_code=status.HTTP_200_OK,
    tags=["Clinic"],
    summary="Update clinic settings",
)
async def update_clinic_settings(
    data: ClinicSettingsUpdate,
    tenant: Annotated[
        TenantContext,
        Depends(require_permission(Resource.CLINIC_SETTINGS, PermissionAction.UPDATE)),
    ],
    db: DatabaseSession,
    cache: Cache,
) -> ClinicSettings:
    """Update scheduling settings such as the default appointment duration."""
    return await ClinicService(db, cache).update_settings(tenant, data)


@router.get(
    "/staff",
    response_model=list[StaffResponse],
    status_code=status.HTTP_200_OK,
    tags=["Staff"],
    summary="List staff",
)
async def list_staff(
    tenant: Annotated[
        TenantContext, Depends(require_permission(Resource.SCHEDULE, PermissionAction.READ))
    ],
    db: DatabaseSession,
    role: StaffRole | None = Query(None),
    is_active: bool | None = Query(True),
) -> list[StaffResponse]:
    """List clinic staff, e.g. to pick dentists for a booking."""
    return await StaffService(db).list_staff(tenant, role=role, is_active=is_active)


@router.get(
    "/staff/{staff_id}",
    response_model=StaffResponse,
    status_code=status.HTTP_200_OK,
    tags=["Staff"],
    summary="Get staff member",
)
async def get_staff(
    staff_id: UUID,
    tenant: Annotated[
        TenantContext, Depends(require_permission(Resource.SCHEDULE, PermissionAction.READ))
    ],
    db: DatabaseSession,
) -> StaffResponse:
    """Get a staff member of the clinic."""
    return await StaffService(db).get_staff(tenant, staff_id)


@router.post(
    "/staff",
    response_model=StaffResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Staff"],
    summary="Add staff member",
)
async def create_staff(
    data: StaffCreate,
    tenant: Annotated[
        TenantContext, Depends(require_permission(Resource.STAFF, PermissionAction.CREATE))
    ],
    db: DatabaseSession,
) -> StaffResponse:
    """Add a staff member to the clinic."""
    return await StaffService(db).create_staff(tenant, data)
