"""Tests for Redis caching implementation."""

import json
from unittest.mock import MagicMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.permissions import StaffRole, permissions_for_role
from app.core.redis_client import CacheManager
from app.core.tenant import TenantContext
from app.schemas.staff import ClinicSettingsUpdate
from app.services.clinic_service import ClinicService


def test_cache_manager_get_json():
    """Test CacheManager get_json method."""
    mock_redis = MagicMock()
    cache_manager = CacheManager(redis_client=mock_redis)

    # Test cache miss
    mock_redis.get.return_value = None
    result = cache_manager.get_json("test_key")
    assert result is None
    mock_redis.get.assert_called_once_with("test_key")

    # Test cache hit
    mock_redis.reset_mock()
    mock_redis.get.return_value = '{"default_appointment_duration_minutes": 45}'
    result = cache_manager.get_json("test_key")
    assert result == {"default_appointment_duration_minutes": 45}


def test_cache_manager_set_json():
    """Test CacheManager set_json method."""
    mock_redis = MagicMock()
    cache_manager = CacheManager(redis_client=mock_redis)

    assert cache_manager.set_json("test_key", {"value": 1}) is True
    mock_redis.set.assert_called_once()

    mock_redis.reset_mock()
    assert cache_manager.set_json("test_key", {"value": 1}, ttl=300) is True
    mock_redis.setex.assert_called_once_with("test_key", 300, '{"value": 1}')


def test_cache_manager_fails_open():
    """Test Redis errors degrade to cache misses."""
    mock_redis = MagicMock()
    mock_redis.get.side_effect = ConnectionError("redis down")
    mock_redis.setex.side_effect = ConnectionError("redis down")
    mock_redis.delete.side_effect = ConnectionError("redis down")
    cache_manager = CacheManager(redis_client=mock_redis)

    assert cache_manager.get_json("test_key") is None
    assert cache_manager.set_json("test_key", {"value": 1}, ttl=60) is False
    assert cache_manager.delete("test_key") is False


def _tenant(clinic: dict, user: dict) -> TenantContext:
    return TenantContext(
        clinic_id=clinic["id"],
        user_id=user["id"],
        role=StaffRole.CLINIC_ADMIN,
        permissions=permissions_for_role(StaffRole.CLINIC_ADMIN),
    )


@pytest.mark.asyncio
async def test_clinic_settings_cached(db_session: AsyncSession, clinic: dict):
    """Test settings are read from the database once and then from the cache."""
    mock_redis = MagicMock()
    mock_redis.get.return_value = None
    service = ClinicService(db_session, CacheManager(redis_client=mock_redis))

    result = await service.get_settings(clinic["id"])

    assert result.default_appointment_duration_minutes == 60
    key = f"clinic:{clinic['id']}:settings"
    mock_redis.setex.assert_called_once_with(
        key,
        ClinicService.SETTINGS_CACHE_TTL,
        json.dumps({"default_appointment_duration_minutes": 60}),
    )

    mock_redis.get.return_value = json.dumps({"default_appointment_duration_minutes": 25})
    cached = await service.get_settings(clinic["id"])
    assert cached.default_appointment_duration_minutes == 25


@pytest.mark.asyncio
async def test_clinic_settings_cache_invalidated_on_update(
    db_session: AsyncSession, clinic: dict, admin: dict
):
    """Test updating settings drops the cached copy."""
    mock_redis = MagicMock()
    service = ClinicService(db_session, CacheManager(redis_client=mock_redis))

    updated = await service.update_settings(
        _tenant(clinic, admin),
        ClinicSettingsUpdate(default_appointment_duration_minutes=40),
    )

    assert updated.default_appointment_duration_minutes == 40
    mock_redis.delete.assert_called_once_with(f"clinic:{clinic['id']}:settings")

    mock_redis.get.return_value = None
    fresh = await service.get_settings(clinic["id"])
    assert fresh.default_appointment_duration_minutes == 40
