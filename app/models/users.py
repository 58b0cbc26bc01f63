"""Staff user model definition using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    Table,
    UniqueConstraint,
    Uuid,
    func,
)

from app.models.base import metadata

users = Table(
    "users",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column(
        "clinic_id",
        Uuid,
        ForeignKey("clinics.id", ondelete="CASCADE"),
        nullable=False,
    ),
    # Identity (credentials live with the auth provider)
    Column("email", String(255), nullable=False),
    Column("first_name", String(100), nullable=False),
    Column("last_name", String(100), nullable=False),
    # Role
    Column("role", String(50), nullable=False),
    # Professional Information
    Column("professional_title", String(100)),
    Column("license_number", String(100)),
    Column("phone", String(20)),
    # Status
    Column("is_active", Boolean, nullable=False, default=True),
    # Metadata
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    UniqueConstraint("clinic_id", "email", name="uq_users_clinic_email"),
    CheckConstraint(
        "role IN ('super_admin', 'clinic_admin', 'office_manager', 'dentist', "
        "'specialist_dentist', 'dental_assistant', 'receptionist')",
        name="valid_role",
    ),
)

Index("idx_users_clinic_role", users.c.clinic_id, users.c.role)
