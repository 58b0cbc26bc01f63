"""API v1 router configuration."""

from fastapi import APIRouter

from app.api.v1.endpoints import appointments, billing, clinic, health, patients

api_router = APIRouter()

# Include routers
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(clinic.router)
api_router.include_router(patients.router, prefix="/patients", tags=["Patients"])
api_router.include_router(appointments.router, prefix="/appointments", tags=["Appointments"])
api_router.include_router(billing.router)
