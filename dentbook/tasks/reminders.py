"""Scheduled task sending day-before appointment reminders.

Usage:
    # Run directly (reminds about tomorrow's appointments)
    python -m dentbook.tasks.reminders

    # A specific day
    python -m dentbook.tasks.reminders --date 2025-03-10

    # Or via cron, once a day in the morning
    0 9 * * * cd /path/to/project && python -m dentbook.tasks.reminders

    # Environment variables:
    DATABASE_URL - PostgreSQL connection string
"""

import asyncio
import logging
import sys
from datetime import date

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from dentbook.core.config import settings
from dentbook.core.logging import setup_logging
from dentbook.services.notifications import NotificationDispatcher
from dentbook.services.reminders import ReminderService
from dentbook.utils.time import parse_date

logger = logging.getLogger(__name__)


async def run_reminder_task(
    for_day: date | None = None,
    database_url: str | None = None,
    dispatcher: NotificationDispatcher | None = None,
) -> dict:
    """Send reminders for one day.

    Args:
        for_day: Day to remind about; defaults to tomorrow
        database_url: Database connection string; defaults to settings
        dispatcher: Notice dispatcher; defaults to the logging dispatcher

    Returns:
        Run summary
    """
    db_url = database_url or settings.database_url
    if db_url.startswith("postgresql://"):
        db_url = db_url.replace("postgresql://", "postgresql+asyncpg://", 1)

    engine = create_async_engine(db_url, echo=False)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    try:
        async with session_factory() as session:
            result = await ReminderService(session, dispatcher).send_due_reminders(for_day)
            logger.info(f"Reminder run complete: {result.as_dict()}")
            return result.as_dict()
    finally:
        await engine.dispose()


def main() -> None:
    """CLI entry point."""
    import argparse

    parser = argparse.ArgumentParser(description="Send day-before appointment reminders")
    parser.add_argument(
        "--date",
        type=parse_date,
        default=None,
        help="Appointment date to remind about (YYYY-MM-DD); defaults to tomorrow",
    )
    parser.add_argument(
        "--database-url",
        default=None,
        help="Database URL (overrides DATABASE_URL env var)",
    )
    args = parser.parse_args()

    setup_logging()
    try:
        results = asyncio.run(
            run_reminder_task(for_day=args.date, database_url=args.database_url)
        )
        print(f"Job completed successfully: {results}")
        sys.exit(0)
    except Exception as e:
        logger.exception(f"Job failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
