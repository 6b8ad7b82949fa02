"""Script to initialize the database."""

import asyncio

from app.database import create_engine_from_settings
from app.models import combined_metadata


async def init_db() -> None:
    """Initialize the database by creating all tables."""
    engine = create_engine_from_settings()
    try:
        async with engine.begin() as conn:
            await conn.run_sync(combined_metadata().create_all)
    finally:
        await engine.dispose()

    print("✓ Database initialized successfully!")


if __name__ == "__main__":
    asyncio.run(init_db())
