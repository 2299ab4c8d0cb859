"""Service layer for FitTrack.

Services contain business logic and data aggregation.
"""

from fittrack.services.catalog import seed_system_exercises
from fittrack.services.progress import ProgressService, get_progress_service

__all__ = [
    "ProgressService",
    "get_progress_service",
    "seed_system_exercises",
]
