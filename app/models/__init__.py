"""Database models."""

from app.models.activity_logs import activity_logs
from app.models.appointments import appointment_staff, appointments, prescriptions
from app.models.base import metadata
from app.models.billing import invoice_items, invoices, payments
from app.models.clinics import clinics
from app.models.patients import patients
from app.models.users import users

__all__ = [
    "activity_logs",
    "appointment_staff",
    "appointments",
    "clinics",
    "invoice_items",
    "invoices",
    "metadata",
    "patients",
    "payments",
    "prescriptions",
    "users",
]
