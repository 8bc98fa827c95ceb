"""Script to create the schema directly, bypassing migrations (local development only)."""

import asyncio

from sqlalchemy import text

from embassy.database import engine
from embassy.models.appointments import metadata as appointments_metadata
from embassy.models.notifications import metadata as notifications_metadata


async def init_db() -> None:
    """Initialize the database by creating all tables."""
    async with engine.begin() as conn:
        await conn.execute(text('CREATE EXTENSION IF NOT EXISTS "pgcrypto"'))

        await conn.run_sync(appointments_metadata.create_all)
        await conn.run_sync(notifications_metadata.create_all)

    await engine.dispose()
    print("✓ Database initialized successfully!")


if __name__ == "__main__":
    asyncio.run(init_db())
