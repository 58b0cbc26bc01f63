"""Script to initialize the database without running migrations.

Intended for local development; deployments use ``scripts/migrate.py``.
"""

import asyncio

from sqlalchemy import text

from app.config import settings
from app.database import engine
from app.models import metadata


async def init_db() -> None:
    """Initialize the database by creating all tables."""
    async with engine.begin() as conn:
        if not settings.uses_sqlite:
            # gen_random_uuid() for migration-created tables
            await conn.execute(text('CREATE EXTENSION IF NOT EXISTS "pgcrypto"'))

        # Create all tables
        await conn.run_sync(metadata.create_all)

    await engine.dispose()
    print("✓ Database initialized successfully!")


if __name__ == "__main__":
    asyncio.run(init_db())
