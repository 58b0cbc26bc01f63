"""Staff and clinic schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from app.core.permissions import StaffRole


class StaffCreate(BaseModel):
    """Schema for adding a staff member to the clinic."""

    email: EmailStr
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    role: StaffRole
    professional_title: str | None = Field(None, max_length=100)
    license_number: str | None = Field(None, max_length=100)
    phone: str | None = Field(None, max_length=20)


class StaffResponse(BaseModel):
    """Schema for staff member response."""

    id: UUID
    clinic_id: UUID
    email: str
    first_name: str
    last_name: str
    role: StaffRole
    professional_title: str | None = None
    license_number: str | None = None
    phone: str | None = None
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class ClinicSettingsUpdate(BaseModel):
    """Schema for updating clinic scheduling settings."""

    default_appointment_duration_minutes: int = Field(..., ge=1, le=720)


class ClinicSettings(BaseModel):
    """Effective scheduling settings for a clinic."""

    default_appointment_duration_minutes: int


class ClinicResponse(BaseModel):
    """Schema for clinic response."""

    id: UUID
    name: str
    subdomain: str
    email: str
    phone: str
    city: str | None = None
    province: str | None = None
    is_active: bool
    settings: ClinicSettings
