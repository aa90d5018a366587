"""Database initialization utilities."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from dentbook.db.base import Base
from dentbook.db.session import engine
from dentbook.fixtures.catalog import seed_catalog

# Import models so their tables are registered on the metadata
import dentbook.models  # noqa: F401

logger = logging.getLogger(__name__)


async def create_tables() -> None:
    """Create all database tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created")


async def drop_tables() -> None:
    """Drop all database tables (use with caution)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    logger.info("Database tables dropped")


async def init_db(session: AsyncSession) -> None:
    """Initialize database with the reference catalog.

    Args:
        session: Database session
    """
    await seed_catalog(session)
    logger.info("Database initialization complete")
