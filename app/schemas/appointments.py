"""Appointment schemas for request/response validation."""

from datetime import date, datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"

    @property
    def is_terminal(self) -> bool:
        """Whether no further changes are allowed from this status."""
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW}
)


def _unique_staff(v: list[UUID] | None) -> list[UUID] | None:
    if v is not None and len(set(v)) != len(v):
        raise ValueError("Staff members must not be listed twice")
    return v


class PrescriptionCreate(BaseModel):
    """A prescription written during booking."""

    text: str = Field(..., min_length=1, max_length=1000)


class AppointmentCreate(BaseModel):
    """Schema for booking a new appointment.

    The clinic and the creating staff member come from the tenant context.
    """

    patient_id: UUID
    staff_ids: list[UUID] = Field(
        ..., min_length=1, description="First entry is the primary clinician"
    )
    appointment_date: date
    start_minute: int = Field(..., ge=0, le=1439, description="Minutes from midnight")
    duration_minutes: int | None = Field(None, gt=0, le=1440)
    appointment_type: str = Field("consultation", min_length=1, max_length=100)
    complaint: str | None = Field(None, max_length=2000)
    notes: str | None = Field(None, max_length=2000)
    estimated_cost: int = Field(0, ge=0, description="Centavos")
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    prescriptions: list[PrescriptionCreate] = Field(default_factory=list)

    @field_validator("staff_ids")
    @classmethod
    def validate_staff_ids(cls, v: list[UUID] | None) -> list[UUID] | None:
        """Reject duplicate staff members."""
        return _unique_staff(v)

    @field_validator("status")
    @classmethod
    def validate_initial_status(cls, v: AppointmentStatus) -> AppointmentStatus:
        """Only open statuses can be booked."""
        if v not in (AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED):
            raise ValueError("New appointments must be scheduled or confirmed")
        return v


class AppointmentUpdate(BaseModel):
    """Schema for updating an existing appointment."""

    appointment_date: date | None = None
    start_minute: int | None = Field(None, ge=0, le=1439)
    duration_minutes: int | None = Field(None, gt=0, le=1440)
    staff_ids: list[UUID] | None = Field(None, min_length=1)
    complaint: str | None = Field(None, max_length=2000)
    notes: str | None = Field(None, max_length=2000)
    status: AppointmentStatus | None = None
    actual_cost: int | None = Field(None, ge=0)
    is_done: bool | None = None

    @field_validator("staff_ids")
    @classmethod
    def validate_staff_ids(cls, v: list[UUID] | None) -> list[UUID] | None:
        """Reject duplicate staff members."""
        return _unique_staff(v)

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: AppointmentStatus | None) -> AppointmentStatus | None:
        """Cancellation goes through the cancel operation."""
        if v is AppointmentStatus.CANCELLED:
            raise ValueError("Use the cancel endpoint to cancel an appointment")
        return v

    @property
    def changes_slot(self) -> bool:
        """Whether the update moves the appointment or changes who attends."""
        return any(
            value is not None
            for value in (
                self.appointment_date,
                self.start_minute,
                self.duration_minutes,
                self.staff_ids,
            )
        )


class AppointmentStatusUpdate(BaseModel):
    """Schema for updating appointment status."""

    status: AppointmentStatus
    notes: str | None = Field(None, max_length=2000)


class AppointmentCancel(BaseModel):
    """Schema for cancelling an appointment."""

    reason: str | None = Field(None, max_length=1000)


class ConflictCheckRequest(BaseModel):
    """Ask whether a slot is free for the given staff."""

    staff_ids: list[UUID] = Field(..., min_length=1)
    appointment_date: date
    start_minute: int = Field(..., ge=0, le=1439)
    duration_minutes: int | None = Field(None, gt=0, le=1440)
    exclude_appointment_id: UUID | None = None


class ConflictDescriptor(BaseModel):
    """An existing booking that overlaps a candidate slot."""

    appointment_id: UUID
    patient_name: str
    staff_name: str
    start_time: str
    end_time: str


class ConflictCheckResponse(BaseModel):
    """Result of a conflict check."""

    start_time: str
    end_time: str
    has_conflict: bool
    conflicts: list[ConflictDescriptor]


class AppointmentResponse(BaseModel):
    """Schema for appointment response."""

    id: UUID
    clinic_id: UUID
    patient_id: UUID
    dentist_id: UUID
    staff_ids: list[UUID]
    appointment_date: date
    start_time: str
    end_time: str
    start_minute: int
    duration_minutes: int
    appointment_type: str
    chief_complaint: str | None = None
    notes: str | None = None
    status: AppointmentStatus
    estimated_cost: int
    actual_cost: int | None = None
    cancellation_reason: str | None = None
    created_by: UUID
    created_at: datetime
    updated_at: datetime


class AppointmentWithBalance(AppointmentResponse):
    """Appointment enriched with its payment position."""

    paid_amount: int
    outstanding_amount: int
    is_paid: bool


class AppointmentListResponse(BaseModel):
    """Schema for appointment calendar listing."""

    total: int
    items: list[AppointmentWithBalance]
