"""Exercise catalog seeding."""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fittrack.data.exercise_catalog import SYSTEM_EXERCISES
from fittrack.models.exercise import Exercise

logger = logging.getLogger(__name__)


async def seed_system_exercises(db: AsyncSession) -> int:
    """Insert the built-in catalog, skipping names that already exist.

    System exercises have no author. Commits once at the end.

    Args:
        db: Database session.

    Returns:
        Number of exercises created.
    """
    result = await db.execute(select(Exercise.name))
    existing = set(result.scalars().all())

    created = 0
    for entry in SYSTEM_EXERCISES:
        if entry["name"] in existing:
            continue
        db.add(Exercise(user_id=None, **entry))
        existing.add(entry["name"])
        created += 1

    await db.commit()
    logger.info("Seeded %d system exercises (%d already present)",
                created, len(SYSTEM_EXERCISES) - created)
    return created
