"""Clinic service for tenant settings."""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import NotFoundException
from app.core.redis_client import CacheManager
from app.core.tenant import TenantContext
from app.models.clinics import clinics
from app.schemas.staff import ClinicResponse, ClinicSettings, ClinicSettingsUpdate
from app.services.activity_service import log_activity

logger = structlog.get_logger(__name__)


class ClinicService:
    """Service for clinic operations."""

    # Cache TTL in seconds
    SETTINGS_CACHE_TTL = 900  # 15 minutes

    def __init__(self, db: AsyncSession, cache_manager: CacheManager | None = None):
        """Initialize service with database session and optional cache manager."""
        self.db = db
        self.cache = cache_manager

    @staticmethod
    def _get_settings_cache_key(clinic_id: UUID) -> str:
        """Generate cache key for clinic settings."""
        return f"clinic:{clinic_id}:settings"

    async def _get_clinic_row(self, clinic_id: UUID) -> dict[str, Any]:
        result = await self.db.execute(select(clinics).where(clinics.c.id == clinic_id))
        row = result.mappings().first()
        if not row:
            raise NotFoundException("Clinic not found")
        return dict(row)

    @staticmethod
    def _effective_settings(raw: dict[str, Any] | None) -> ClinicSettings:
        raw = raw or {}
        return ClinicSettings(
            default_appointment_duration_minutes=raw.get(
                "default_appointment_duration_minutes",
                settings.default_appointment_duration_minutes,
            )
        )

    async def get_settings(self, clinic_id: UUID) -> ClinicSettings:
        """
        Get effective scheduling settings for a clinic, using the cache.

        Args:
            clinic_id: Clinic ID

        Returns:
            Settings with application defaults filled in

        Raises:
            NotFoundException: If the clinic does not exist
        """
        if self.cache:
            cached = self.cache.get_json(self._get_settings_cache_key(clinic_id))
            if cached:
                return ClinicSettings.model_validate(cached)

        clinic = await self._get_clinic_row(clinic_id)
        clinic_settings = self._effective_settings(clinic["settings"])

        if self.cache:
            self.cache.set_json(
                self._get_settings_cache_key(clinic_id),
                clinic_settings.model_dump(),
                ttl=self.SETTINGS_CACHE_TTL,
            )
        return clinic_settings

    async def get_clinic(self, clinic_id: UUID) -> ClinicResponse:
        """Get the clinic profile with effective settings."""
        clinic = await self._get_clinic_row(clinic_id)
        clinic["settings"] = self._effective_settings(clinic["settings"])
        return ClinicResponse.model_validate(clinic)

    async def update_settings(
        self, tenant: TenantContext, data: ClinicSettingsUpdate
    ) -> ClinicSettings:
        """
        Update clinic scheduling settings and invalidate the cached copy.

        Unknown keys already stored in the settings document are preserved.
        """
        clinic = await self._get_clinic_row(tenant.clinic_id)
        old_settings = dict(clinic["settings"] or {})
        new_settings = {**old_settings, **data.model_dump()}

        await self.db.execute(
            update(clinics)
            .where(clinics.c.id == tenant.clinic_id)
            .values(settings=new_settings, updated_at=datetime.now(UTC))
        )
        await log_activity(
            self.db,
            clinic_id=tenant.clinic_id,
            user_id=tenant.user_id,
            action="update",
            resource_type="clinic_settings",
            resource_id=tenant.clinic_id,
            description="Updated clinic settings",
            old_values=old_settings,
            new_values=new_settings,
        )
        await self.db.commit()

        if self.cache:
            self.cache.delete(self._get_settings_cache_key(tenant.clinic_id))

        logger.info("clinic_settings_updated", clinic_id=str(tenant.clinic_id))
        return self._effective_settings(new_settings)
