"""Initial schema - clinics, staff, patients, scheduling and billing.

Revision ID: 001
Revises:
Create Date: 2026-10-16 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id_column() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=True),
        server_default=sa.text("gen_random_uuid()"),
        nullable=False,
    )


def _timestamp(name: str) -> sa.Column:
    return sa.Column(
        name,
        postgresql.TIMESTAMP(timezone=True),
        server_default=sa.text("NOW()"),
        nullable=False,
    )


def _fk(name: str, table: str, nullable: bool = False, cascade: bool = False) -> sa.Column:
    return sa.Column(
        name,
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey(f"{table}.id", ondelete="CASCADE" if cascade else None),
        nullable=nullable,
    )


def upgrade() -> None:
    """Upgrade database schema."""
    # Enable pgcrypto extension
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')

    # Clinics (tenants)
    op.create_table(
        "clinics",
        _id_column(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("subdomain", sa.String(length=100), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=20), nullable=False),
        sa.Column("street", sa.Text(), nullable=True),
        sa.Column("city", sa.String(length=100), nullable=True),
        sa.Column("province", sa.String(length=100), nullable=True),
        sa.Column(
            "settings",
            postgresql.JSON(astext_type=sa.Text()),
            server_default=sa.text("'{}'::json"),
            nullable=False,
        ),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint(
            "length(subdomain) >= 3", name="ck_clinics_valid_subdomain_length"
        ),
        sa.PrimaryKeyConstraint("id", name="pk_clinics"),
        sa.UniqueConstraint("subdomain", name="uq_clinics_subdomain"),
    )

    # Staff
    op.create_table(
        "users",
        _id_column(),
        _fk("clinic_id", "clinics", cascade=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("last_name", sa.String(length=100), nullable=False),
        sa.Column("role", sa.String(length=50), nullable=False),
        sa.Column("professional_title", sa.String(length=100), nullable=True),
        sa.Column("license_number", sa.String(length=100), nullable=True),
        sa.Column("phone", sa.String(length=20), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint(
            "role IN ('super_admin', 'clinic_admin', 'office_manager', 'dentist', "
            "'specialist_dentist', 'dental_assistant', 'receptionist')",
            name="ck_users_valid_role",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("clinic_id", "email", name="uq_users_clinic_email"),
    )
    op.create_index("idx_users_clinic_role", "users", ["clinic_id", "role"])

    # Patients
    op.create_table(
        "patients",
        _id_column(),
        _fk("clinic_id", "clinics", cascade=True),
        sa.Column("patient_number", sa.String(length=50), nullable=False),
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("last_name", sa.String(length=100), nullable=False),
        sa.Column("middle_name", sa.String(length=100), nullable=True),
        sa.Column("date_of_birth", sa.Date(), nullable=True),
        sa.Column("gender", sa.String(length=20), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("phone", sa.String(length=20), nullable=True),
        sa.Column("mobile_phone", sa.String(length=20), nullable=True),
        sa.Column("street", sa.Text(), nullable=True),
        sa.Column("barangay", sa.String(length=100), nullable=True),
        sa.Column("city", sa.String(length=100), nullable=True),
        sa.Column("province", sa.String(length=100), nullable=True),
        sa.Column(
            "allergies",
            postgresql.JSON(astext_type=sa.Text()),
            server_default=sa.text("'[]'::json"),
            nullable=False,
        ),
        sa.Column(
            "medications",
            postgresql.JSON(astext_type=sa.Text()),
            server_default=sa.text("'[]'::json"),
            nullable=False,
        ),
        sa.Column("philhealth_number", sa.String(length=20), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        _fk("created_by", "users"),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint(
            "gender IN ('male', 'female', 'other', 'prefer_not_to_say')",
            name="ck_patients_valid_gender",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_patients"),
        sa.UniqueConstraint("clinic_id", "patient_number", name="uq_patients_clinic_number"),
    )
    op.create_index("idx_patients_name", "patients", ["clinic_id", "last_name", "first_name"])

    # Appointments
    op.create_table(
        "appointments",
        _id_column(),
        _fk("clinic_id", "clinics", cascade=True),
        _fk("patient_id", "patients", cascade=True),
        _fk("dentist_id", "users"),
        sa.Column("appointment_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column(
            "appointment_type",
            sa.String(length=100),
            server_default="consultation",
            nullable=False,
        ),
        sa.Column("chief_complaint", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=20), server_default="scheduled", nullable=False),
        sa.Column("estimated_cost", sa.Integer(), server_default="0", nullable=False),
        sa.Column("actual_cost", sa.Integer(), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        _fk("created_by", "users"),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint(
            "status IN ('scheduled', 'confirmed', 'in_progress', 'completed', 'cancelled', "
            "'no_show')",
            name="ck_appointments_valid_status",
        ),
        sa.CheckConstraint("start_time < end_time", name="ck_appointments_valid_times"),
        sa.CheckConstraint(
            "estimated_cost >= 0", name="ck_appointments_non_negative_estimated_cost"
        ),
        sa.CheckConstraint(
            "actual_cost IS NULL OR actual_cost >= 0",
            name="ck_appointments_non_negative_actual_cost",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_appointments"),
    )
    op.create_index(
        "idx_appointments_slot_lookup",
        "appointments",
        ["clinic_id", "appointment_date", "dentist_id"],
    )
    op.create_index("idx_appointments_patient_id", "appointments", ["patient_id"])

    op.create_table(
        "appointment_staff",
        _fk("appointment_id", "appointments", cascade=True),
        _fk("staff_id", "users"),
        sa.Column("role", sa.String(length=50), server_default="assistant", nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("appointment_id", "staff_id", name="pk_appointment_staff"),
    )
    op.create_index("idx_appointment_staff_staff_id", "appointment_staff", ["staff_id"])

    op.create_table(
        "prescriptions",
        _id_column(),
        _fk("clinic_id", "clinics", cascade=True),
        _fk("appointment_id", "appointments", cascade=True),
        _fk("patient_id", "patients", cascade=True),
        _fk("prescribed_by_id", "users"),
        sa.Column("medication_name", sa.Text(), nullable=False),
        sa.Column("instructions", sa.Text(), nullable=True),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id", name="pk_prescriptions"),
    )

    # Billing
    op.create_table(
        "invoices",
        _id_column(),
        _fk("clinic_id", "clinics", cascade=True),
        _fk("patient_id", "patients", cascade=True),
        _fk("appointment_id", "appointments", nullable=True),
        sa.Column("invoice_number", sa.String(length=100), nullable=False),
        sa.Column("invoice_date", sa.Date(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("subtotal", sa.Integer(), server_default="0", nullable=False),
        sa.Column("discount_amount", sa.Integer(), server_default="0", nullable=False),
        sa.Column("tax_amount", sa.Integer(), server_default="0", nullable=False),
        sa.Column("total_amount", sa.Integer(), server_default="0", nullable=False),
        sa.Column("payment_status", sa.String(length=20), server_default="pending", nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        _fk("created_by", "users"),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint(
            "payment_status IN ('pending', 'partial', 'paid', 'cancelled')",
            name="ck_invoices_valid_payment_status",
        ),
        sa.CheckConstraint("total_amount >= 0", name="ck_invoices_non_negative_total"),
        sa.PrimaryKeyConstraint("id", name="pk_invoices"),
        sa.UniqueConstraint("clinic_id", "invoice_number", name="uq_invoices_clinic_number"),
    )

    op.create_table(
        "invoice_items",
        _id_column(),
        _fk("clinic_id", "clinics", cascade=True),
        _fk("invoice_id", "invoices", cascade=True),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("quantity", sa.Integer(), server_default="1", nullable=False),
        sa.Column("unit_price", sa.Integer(), nullable=False),
        sa.Column("total_price", sa.Integer(), nullable=False),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id", name="pk_invoice_items"),
    )

    op.create_table(
        "payments",
        _id_column(),
        _fk("clinic_id", "clinics", cascade=True),
        _fk("patient_id", "patients", cascade=True),
        _fk("appointment_id", "appointments", nullable=True),
        _fk("invoice_id", "invoices", nullable=True),
        sa.Column("payment_number", sa.String(length=100), nullable=False),
        sa.Column("payment_date", sa.Date(), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("payment_method", sa.String(length=50), nullable=False),
        sa.Column("payment_category", sa.String(length=50), nullable=False),
        sa.Column("transaction_reference", sa.String(length=255), nullable=True),
        sa.Column("status", sa.String(length=20), server_default="pending", nullable=False),
        sa.Column(
            "verification_status", sa.String(length=20), server_default="pending", nullable=False
        ),
        sa.Column("verification_notes", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        _fk("received_by", "users"),
        _fk("verified_by", "users", nullable=True),
        sa.Column("verified_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint("amount > 0", name="ck_payments_positive_amount"),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'failed', 'cancelled', 'refunded')",
            name="ck_payments_valid_status",
        ),
        sa.CheckConstraint(
            "verification_status IN ('pending', 'verified', 'rejected')",
            name="ck_payments_valid_verification_status",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_payments"),
        sa.UniqueConstraint("clinic_id", "payment_number", name="uq_payments_clinic_number"),
    )
    op.create_index("idx_payments_verification", "payments", ["clinic_id", "verification_status"])
    op.create_index("idx_payments_patient_id", "payments", ["patient_id"])
    op.create_index("idx_payments_appointment_id", "payments", ["appointment_id"])
    op.create_index("idx_payments_invoice_id", "payments", ["invoice_id"])

    # Audit trail
    op.create_table(
        "activity_logs",
        _id_column(),
        _fk("clinic_id", "clinics", cascade=True),
        _fk("user_id", "users", nullable=True),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("resource_type", sa.String(length=100), nullable=False),
        sa.Column("resource_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("old_values", postgresql.JSON(astext_type=sa.Text()), nullable=True),
        sa.Column("new_values", postgresql.JSON(astext_type=sa.Text()), nullable=True),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id", name="pk_activity_logs"),
    )
    op.create_index(
        "idx_activity_logs_resource", "activity_logs", ["resource_type", "resource_id"]
    )


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_index("idx_activity_logs_resource", table_name="activity_logs")
    op.drop_table("activity_logs")

    op.drop_index("idx_payments_invoice_id", table_name="payments")
    op.drop_index("idx_payments_appointment_id", table_name="payments")
    op.drop_index("idx_payments_patient_id", table_name="payments")
    op.drop_index("idx_payments_verification", table_name="payments")
    op.drop_table("payments")
    op.drop_table("invoice_items")
    op.drop_table("invoices")

    op.drop_table("prescriptions")
    op.drop_index("idx_appointment_staff_staff_id", table_name="appointment_staff")
    op.drop_table("appointment_staff")
    op.drop_index("idx_appointments_patient_id", table_name="appointments")
    op.drop_index("idx_appointments_slot_lookup", table_name="appointments")
    op.drop_table("appointments")

    op.drop_index("idx_patients_name", table_name="patients")
    op.drop_table("patients")
    op.drop_index("idx_users_clinic_role", table_name="users")
    op.drop_table("users")
    op.drop_table("clinics")
