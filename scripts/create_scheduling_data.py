"""Create the booking catalog and demo referral codes in a local database."""

import asyncio

from sqlalchemy import select

from dentbook.db.init_db import create_tables
from dentbook.db.session import AsyncSessionLocal
from dentbook.fixtures.catalog import seed_catalog
from dentbook.models.referral import ReferralCode

DEMO_REFERRAL_CODES = [
    {"code": "AMIGO2025", "referrer_email": "referidos@novelldent.mx"},
    {"code": "SONRISA10", "referrer_email": "referidos@novelldent.mx"},
]


async def create_scheduling_data() -> None:
    """Create tables, seed branches and services, add demo referral codes."""
    await create_tables()

    async with AsyncSessionLocal() as session:
        await seed_catalog(session)
        print("Branches and services seeded")

        created = 0
        for data in DEMO_REFERRAL_CODES:
            result = await session.execute(
                select(ReferralCode).where(ReferralCode.code == data["code"])
            )
            if result.scalar_one_or_none():
                continue
            session.add(ReferralCode(**data, is_active=True))
            created += 1

        await session.commit()
        print(f"Created {created} referral codes")
        print("Scheduling data setup complete!")


if __name__ == "__main__":
    asyncio.run(create_scheduling_data())
