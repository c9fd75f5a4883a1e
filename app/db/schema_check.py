"""
Create any missing tables for the ORM models and report what was done.

Usage: python -m app.db.schema_check
"""
import asyncio
from typing import List

from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncEngine

# Register models on Base.metadata
from app.core import models  # noqa: F401
from app.db.session import Base, engine


def _existing_tables(sync_conn) -> List[str]:
    return inspect(sync_conn).get_table_names()


async def ensure_schema(db_engine: AsyncEngine = engine) -> List[str]:
    """Create missing tables. Returns the names of tables that were created."""
    async with db_engine.begin() as conn:
        before = set(await conn.run_sync(_existing_tables))
        await conn.run_sync(Base.metadata.create_all)
        after = set(await conn.run_sync(_existing_tables))
    return sorted(after - before)


async def run_schema_check() -> None:
    created = await ensure_schema()
    if created:
        print(f"Created tables: {', '.join(created)}")
    else:
        print("All tables already exist.")
    for table in sorted(Base.metadata.tables):
        print(f"  OK {table}")
    await engine.dispose()


def main() -> None:
    asyncio.run(run_schema_check())


if __name__ == "__main__":
    main()
