"""Clinic (tenant) model definition using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    String,
    Table,
    Text,
    Uuid,
    func,
)

from app.models.base import metadata

clinics = Table(
    "clinics",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    # Basic Information
    Column("name", String(255), nullable=False),
    Column("subdomain", String(100), nullable=False, unique=True),
    # Contact Information
    Column("email", String(255), nullable=False),
    Column("phone", String(20), nullable=False),
    # Philippine address (abridged)
    Column("street", Text),
    Column("city", String(100)),
    Column("province", String(100)),
    # Per-clinic configuration
    Column("settings", JSON, nullable=False, default=dict),
    # Example: {"default_appointment_duration_minutes": 45}
    # Status
    Column("is_active", Boolean, nullable=False, default=True),
    # Metadata
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    CheckConstraint(
        "length(subdomain) >= 3",
        name="valid_subdomain_length",
    ),
)
