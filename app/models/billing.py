"""Invoice and payment tables using SQLAlchemy Core."""

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
    UniqueConstraint,
    Uuid,
    func,
)

from app.models.base import metadata

invoices = Table(
    "invoices",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("clinic_id", Uuid, ForeignKey("clinics.id", ondelete="CASCADE"), nullable=False),
    Column("patient_id", Uuid, ForeignKey("patients.id", ondelete="CASCADE"), nullable=False),
    Column("appointment_id", Uuid, ForeignKey("appointments.id")),
    # Invoice details
    Column("invoice_number", String(100), nullable=False),
    Column("invoice_date", Date, nullable=False),
    Column("due_date", Date),
    # Amounts (centavos)
    Column("subtotal", Integer, nullable=False, default=0),
    Column("discount_amount", Integer, nullable=False, default=0),
    Column("tax_amount", Integer, nullable=False, default=0),
    Column("total_amount", Integer, nullable=False, default=0),
    Column("payment_status", String(20), nullable=False, default="pending"),
    Column("notes", Text),
    # Metadata
    Column("created_by", Uuid, ForeignKey("users.id"), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    UniqueConstraint("clinic_id", "invoice_number", name="uq_invoices_clinic_number"),
    CheckConstraint(
        "payment_status IN ('pending', 'partial', 'paid', 'cancelled')",
        name="valid_payment_status",
    ),
    CheckConstraint("total_amount >= 0", name="non_negative_total"),
)

invoice_items = Table(
    "invoice_items",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("clinic_id", Uuid, ForeignKey("clinics.id", ondelete="CASCADE"), nullable=False),
    Column("invoice_id", Uuid, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False),
    Column("description", Text, nullable=False),
    Column("quantity", Integer, nullable=False, default=1),
    Column("unit_price", Integer, nullable=False),
    Column("total_price", Integer, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
)

payments = Table(
    "payments",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("clinic_id", Uuid, ForeignKey("clinics.id", ondelete="CASCADE"), nullable=False),
    Column("patient_id", Uuid, ForeignKey("patients.id", ondelete="CASCADE"), nullable=False),
    Column("appointment_id", Uuid, ForeignKey("appointments.id")),
    Column("invoice_id", Uuid, ForeignKey("invoices.id")),
    # Payment details
    Column("payment_number", String(100), nullable=False),
    Column("payment_date", Date, nullable=False),
    Column("amount", Integer, nullable=False),
    # Payment method
    Column("payment_method", String(50), nullable=False),
    Column("payment_category", String(50), nullable=False),
    Column("transaction_reference", String(255)),
    # Status and verification
    Column("status", String(20), nullable=False, default="pending"),
    Column("verification_status", String(20), nullable=False, default="pending"),
    Column("verification_notes", Text),
    Column("notes", Text),
    # Audit trail
    Column("received_by", Uuid, ForeignKey("users.id"), nullable=False),
    Column("verified_by", Uuid, ForeignKey("users.id")),
    Column("verified_at", DateTime(timezone=True)),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    UniqueConstraint("clinic_id", "payment_number", name="uq_payments_clinic_number"),
    CheckConstraint("amount > 0", name="positive_amount"),
    CheckConstraint(
        "status IN ('pending', 'confirmed', 'failed', 'cancelled', 'refunded')",
        name="valid_status",
    ),
    CheckConstraint(
        "verification_status IN ('pending', 'verified', 'rejected')",
        name="valid_verification_status",
    ),
)

Index("idx_payments_verification", payments.c.clinic_id, payments.c.verification_status)
Index("idx_payments_patient_id", payments.c.patient_id)
Index("idx_payments_appointment_id", payments.c.appointment_id)
Index("idx_payments_invoice_id", payments.c.invoice_id)
