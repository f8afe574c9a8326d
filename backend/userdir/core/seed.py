"""Seed demo users into the database.

Idempotent: users whose email already exists are left alone.
Run: python -m userdir.core.seed
"""
import asyncio
import logging
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from userdir.core.logging import setup_logging
from userdir.db.session import AsyncSessionLocal
from userdir.services.user_store import SqlUserStore

logger = logging.getLogger(__name__)

# (name, email, ip_address, location, active, last_login)
DEMO_USERS = [
    ("Ada Lovelace", "ada@example.com", "10.0.0.11", "London", True, datetime(2024, 5, 2, 9, 30, tzinfo=timezone.utc)),
    ("Grace Hopper", "grace@example.com", "10.0.0.12", "Arlington", True, datetime(2024, 5, 3, 14, 5, tzinfo=timezone.utc)),
    ("Alan Turing", "alan@example.com", None, "Manchester", False, None),
    ("Edsger Dijkstra", "edsger@example.com", "10.0.0.14", "Austin", True, None),
]


async def seed_users(db: AsyncSession) -> int:
    """Insert missing demo users and return how many were created."""
    store = SqlUserStore(db)
    created = 0
    for name, email, ip_address, location, active, last_login in DEMO_USERS:
        if await store.find_by_email(email) is not None:
            logger.info("User already exists: %s, skipping", email)
            continue
        await store.insert({
            "name": name,
            "email": email,
            "ip_address": ip_address,
            "location": location,
            "active": active,
            "blocked": False,
            "last_login": last_login,
        })
        logger.info("Seeded user: %s", email)
        created += 1
    return created


async def run_seed() -> None:
    async with AsyncSessionLocal() as db:
        created = await seed_users(db)
    logger.info("Seeding complete: %d users created.", created)


if __name__ == "__main__":
    setup_logging()
    asyncio.run(run_seed())
