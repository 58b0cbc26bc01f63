"""Append-only activity (audit) log table."""

from uuid import uuid4

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Index, String, Table, Text, Uuid, func

from app.models.base import metadata

activity_logs = Table(
    "activity_logs",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("clinic_id", Uuid, ForeignKey("clinics.id", ondelete="CASCADE"), nullable=False),
    Column("user_id", Uuid, ForeignKey("users.id")),
    # Activity details
    Column("action", String(100), nullable=False),
    Column("resource_type", String(100), nullable=False),
    Column("resource_id", Uuid),
    Column("description", Text),
    Column("old_values", JSON),
    Column("new_values", JSON),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
)

Index("idx_activity_logs_resource", activity_logs.c.resource_type, activity_logs.c.resource_id)
