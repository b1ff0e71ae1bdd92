"""Script to create the scheduling tables without running migrations.

Intended for local development databases; use ``scripts/migrate.py`` for
shared environments.
"""

import asyncio

from sqlalchemy import text

from carequeue.database import DATABASE_URL, engine
from carequeue.models import metadata


async def init_db(drop: bool = False) -> None:
    """Create all tables, optionally dropping them first."""
    async with engine.begin() as conn:
        if DATABASE_URL.startswith("postgresql"):
            await conn.execute(text('CREATE EXTENSION IF NOT EXISTS "pgcrypto"'))

        if drop:
            await conn.run_sync(metadata.drop_all)
        await conn.run_sync(metadata.create_all)

    await engine.dispose()
    print("✓ Database initialized successfully!")


if __name__ == "__main__":
    import sys

    asyncio.run(init_db(drop="--drop" in sys.argv[1:]))
