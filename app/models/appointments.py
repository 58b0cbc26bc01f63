"""Appointment tables using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    Time,
    Uuid,
    func,
)

from app.models.base import metadata

appointments = Table(
    "appointments",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    # Ownership / references
    Column("clinic_id", Uuid, ForeignKey("clinics.id", ondelete="CASCADE"), nullable=False),
    Column("patient_id", Uuid, ForeignKey("patients.id", ondelete="CASCADE"), nullable=False),
    # Primary (operating) clinician; further staff live in appointment_staff
    Column("dentist_id", Uuid, ForeignKey("users.id"), nullable=False),
    # Slot
    Column("appointment_date", Date, nullable=False),
    Column("start_time", Time, nullable=False),
    Column("end_time", Time, nullable=False),
    Column("duration_minutes", Integer, nullable=False),
    # Appointment information
    Column("appointment_type", String(100), nullable=False, default="consultation"),
    Column("chief_complaint", Text),
    Column("notes", Text),
    # Status management
    Column("status", String(20), nullable=False, default="scheduled"),
    # Billing (centavos)
    Column("estimated_cost", Integer, nullable=False, default=0),
    Column("actual_cost", Integer),
    # Cancellation
    Column("cancellation_reason", Text),
    # Audit fields
    Column("created_by", Uuid, ForeignKey("users.id"), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    # Constraints
    CheckConstraint(
        "status IN ('scheduled', 'confirmed', 'in_progress', 'completed', 'cancelled', 'no_show')",
        name="valid_status",
    ),
    CheckConstraint("start_time < end_time", name="valid_times"),
    CheckConstraint("estimated_cost >= 0", name="non_negative_estimated_cost"),
    CheckConstraint("actual_cost IS NULL OR actual_cost >= 0", name="non_negative_actual_cost"),
)

# Staff beyond the primary dentist, in booking order
appointment_staff = Table(
    "appointment_staff",
    metadata,
    Column(
        "appointment_id",
        Uuid,
        ForeignKey("appointments.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("staff_id", Uuid, ForeignKey("users.id"), primary_key=True),
    Column("role", String(50), nullable=False, default="assistant"),
    Column("position", Integer, nullable=False),
)

prescriptions = Table(
    "prescriptions",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("clinic_id", Uuid, ForeignKey("clinics.id", ondelete="CASCADE"), nullable=False),
    Column(
        "appointment_id",
        Uuid,
        ForeignKey("appointments.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("patient_id", Uuid, ForeignKey("patients.id", ondelete="CASCADE"), nullable=False),
    Column("prescribed_by_id", Uuid, ForeignKey("users.id"), nullable=False),
    Column("medication_name", Text, nullable=False),
    Column("instructions", Text),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
)

# Conflict lookups filter on clinic, date and primary dentist
Index(
    "idx_appointments_slot_lookup",
    appointments.c.clinic_id,
    appointments.c.appointment_date,
    appointments.c.dentist_id,
)
Index("idx_appointments_patient_id", appointments.c.patient_id)
Index("idx_appointment_staff_staff_id", appointment_staff.c.staff_id)
