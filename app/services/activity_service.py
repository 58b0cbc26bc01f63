"""Activity (audit) log writer."""

from typing import Any
from uuid import UUID

from fastapi.encoders import jsonable_encoder
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.activity_logs import activity_logs


async def log_activity(
    db: AsyncSession,
    *,
    clinic_id: UUID,
    user_id: UUID | None,
    action: str,
    resource_type: str,
    resource_id: UUID | None = None,
    description: str | None = None,
    old_values: dict[str, Any] | None = None,
    new_values: dict[str, Any] | None = None,
) -> None:
    """
    Append an activity log entry inside the caller's transaction.

    The caller owns the commit so that the entry is written together with
    the change it describes.
    """
    await db.execute(
        insert(activity_logs).values(
            clinic_id=clinic_id,
            user_id=user_id,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            description=description,
            old_values=jsonable_encoder(old_values) if old_values is not None else None,
            new_values=jsonable_encoder(new_values) if new_values is not None else None,
        )
    )
