"""Patient schemas for request/response validation."""

from datetime import date, datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator


class Gender(str, Enum):
    """Patient gender enumeration."""

    MALE = "male"
    FEMALE = "female"
    OTHER = "other"
    PREFER_NOT_TO_SAY = "prefer_not_to_say"


class PatientBase(BaseModel):
    """Base patient schema with common fields."""

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    middle_name: str | None = Field(None, max_length=100)
    date_of_birth: date | None = None
    gender: Gender | None = None
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=20)
    mobile_phone: str | None = Field(None, max_length=20)
    street: str | None = None
    barangay: str | None = Field(None, max_length=100)
    city: str | None = Field(None, max_length=100)
    province: str | None = Field(None, max_length=100)
    allergies: list[str] = Field(default_factory=list)
    medications: list[str] = Field(default_factory=list)
    philhealth_number: str | None = Field(None, max_length=20)

    @field_validator("date_of_birth")
    @classmethod
    def validate_date_of_birth(cls, v: date | None) -> date | None:
        """Birth dates cannot be in the future."""
        if v and v > date.today():
            raise ValueError("Date of birth cannot be in the future")
        return v


class PatientCreate(PatientBase):
    """Schema for registering a patient."""


class PatientUpdate(BaseModel):
    """Schema for updating a patient."""

    first_name: str | None = Field(None, min_length=1, max_length=100)
    last_name: str | None = Field(None, min_length=1, max_length=100)
    middle_name: str | None = Field(None, max_length=100)
    date_of_birth: date | None = None
    gender: Gender | None = None
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=20)
    mobile_phone: str | None = Field(None, max_length=20)
    street: str | None = None
    city: str | None = Field(None, max_length=100)
    province: str | None = Field(None, max_length=100)
    allergies: list[str] | None = None
    medications: list[str] | None = None
    is_active: bool | None = None


class PatientResponse(PatientBase):
    """Schema for patient response."""

    id: UUID
    clinic_id: UUID
    patient_number: str
    is_active: bool
    created_by: UUID
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class PatientListResponse(BaseModel):
    """Schema for paginated patient list response."""

    total: int
    page: int
    page_size: int
    items: list[PatientResponse]
