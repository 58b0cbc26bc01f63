"""Patient model definition using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    String,
    Table,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)

from app.models.base import metadata

patients = Table(
    "patients",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column(
        "clinic_id",
        Uuid,
        ForeignKey("clinics.id", ondelete="CASCADE"),
        nullable=False,
    ),
    # Clinic-specific identifier, zero padded ("000042")
    Column("patient_number", String(50), nullable=False),
    # Personal information
    Column("first_name", String(100), nullable=False),
    Column("last_name", String(100), nullable=False),
    Column("middle_name", String(100)),
    Column("date_of_birth", Date),
    Column("gender", String(20)),
    # Contact information
    Column("email", String(255)),
    Column("phone", String(20)),
    Column("mobile_phone", String(20)),
    # Philippine address
    Column("street", Text),
    Column("barangay", String(100)),
    Column("city", String(100)),
    Column("province", String(100)),
    # Medical information
    Column("allergies", JSON, nullable=False, default=list),
    Column("medications", JSON, nullable=False, default=list),
    Column("philhealth_number", String(20)),
    # Status
    Column("is_active", Boolean, nullable=False, default=True),
    # Metadata
    Column("created_by", Uuid, ForeignKey("users.id"), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    UniqueConstraint("clinic_id", "patient_number", name="uq_patients_clinic_number"),
    CheckConstraint(
        "gender IN ('male', 'female', 'other', 'prefer_not_to_say')",
        name="valid_gender",
    ),
)

Index("idx_patients_name", patients.c.clinic_id, patients.c.last_name, patients.c.first_name)
