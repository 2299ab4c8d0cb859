#!/usr/bin/env python3
"""Insert the system exercise catalog.

Existing exercises with the same name are left alone, so the script can
be re-run safely.

Usage:
    python scripts/seed_exercises.py
"""

import asyncio
import logging
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy.exc import SQLAlchemyError

from fittrack.core.database import async_session_maker
from fittrack.data.exercise_catalog import SYSTEM_EXERCISES
from fittrack.services.catalog import seed_system_exercises


async def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    try:
        async with async_session_maker() as session:
            created = await seed_system_exercises(session)
    except SQLAlchemyError as e:
        print(f"\nDatabase error: {e}")
        print("\nMake sure the database is running and migrations are applied.")
        sys.exit(1)

    print(f"Seeded {created} of {len(SYSTEM_EXERCISES)} catalog exercises")


if __name__ == "__main__":
    asyncio.run(main())
