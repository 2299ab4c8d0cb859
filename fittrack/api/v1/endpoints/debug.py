"""Database diagnostics, gated by debug mode or a shared secret."""

import logging
import secrets
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from fittrack.core.config import get_settings
from fittrack.core.database import get_db
from fittrack.models.base import utcnow
from fittrack.models.exercise import Exercise
from fittrack.models.progress import Progress
from fittrack.models.schemas import CamelModel
from fittrack.models.user import User
from fittrack.models.workout import Workout
from fittrack.models.workout_session import WorkoutSession

router = APIRouter()
logger = logging.getLogger(__name__)

COUNTED_TABLES = {
    "users": User,
    "exercises": Exercise,
    "workouts": Workout,
    "workoutSessions": WorkoutSession,
    "progress": Progress,
}


class DatabaseStatusResponse(CamelModel):
    status: str
    database_connected: bool
    counts: dict[str, int]
    timestamp: datetime


async def require_debug_access(
    x_debug_secret: Optional[str] = Header(None, alias="X-Debug-Secret"),
) -> None:
    """Allow access in debug mode or with the configured secret.

    Raises:
        HTTPException: 403 otherwise.
    """
    settings = get_settings()
    if settings.debug:
        return
    if settings.debug_secret and x_debug_secret and secrets.compare_digest(
        x_debug_secret, settings.debug_secret
    ):
        return
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="Debug endpoints are disabled",
    )


@router.get(
    "/db",
    response_model=DatabaseStatusResponse,
    dependencies=[Depends(require_debug_access)],
)
async def check_database(db: AsyncSession = Depends(get_db)):
    """Connectivity check with per-table row counts."""
    try:
        counts = {}
        for label, model in COUNTED_TABLES.items():
            result = await db.execute(select(func.count(model.id)))
            counts[label] = result.scalar() or 0
    except SQLAlchemyError as e:
        logger.exception("Database check failed")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "status": "error",
                "databaseConnected": False,
                "error": str(e),
                "errorName": type(e).__name__,
                "timestamp": utcnow().isoformat(),
            },
        )

    return DatabaseStatusResponse(
        status="success",
        database_connected=True,
        counts=counts,
        timestamp=utcnow(),
    )
