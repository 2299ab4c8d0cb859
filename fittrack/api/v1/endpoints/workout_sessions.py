"""Workout session endpoints.

A session is one timed performance of a workout. Recording writes the
session header, its exercises and their sets in a single transaction.
"""

import asyncio
import logging
import time
from datetime import datetime, timedelta
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from fittrack.api.v1.endpoints.auth import get_current_user
from fittrack.core.config import get_settings
from fittrack.core.database import get_db
from fittrack.models.base import as_utc, utcnow
from fittrack.models.exercise import Exercise
from fittrack.models.schemas import CamelModel
from fittrack.models.user import User
from fittrack.models.workout import Workout
from fittrack.models.workout_session import (
    WorkoutSession,
    WorkoutSessionExercise,
    WorkoutSessionSet,
)
from fittrack.observability import get_metrics_backend

settings = get_settings()
router = APIRouter()
logger = logging.getLogger(__name__)

RECENT_SESSIONS_LIMIT = 20
TOP_WORKOUTS_LIMIT = 5
WEEKLY_PROGRESS_WEEKS = 8

# Eager loads needed to serialize a full session
SESSION_DETAIL_OPTIONS = (
    selectinload(WorkoutSession.exercises).selectinload(WorkoutSessionExercise.exercise),
    selectinload(WorkoutSession.exercises).selectinload(WorkoutSessionExercise.sets),
)


# -------------------------------------------------------------------------
# Request/Response Models
# -------------------------------------------------------------------------


class SessionSetInput(CamelModel):
    """One set as reported by the client timer."""

    target_reps: Optional[int] = None
    actual_reps: Optional[int] = None
    target_weight: Optional[float] = None
    actual_weight: Optional[float] = None
    completed: Optional[bool] = None


class SessionExerciseInput(CamelModel):
    exercise_id: Optional[int] = None
    sets: list[SessionSetInput] = []


class WorkoutSessionCreateRequest(CamelModel):
    """Request to record a finished session.

    ``duration`` is elapsed milliseconds from the client timer.
    """

    workout_id: Optional[int] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration: Optional[float] = None
    notes: Optional[str] = None
    exercises: list[SessionExerciseInput] = []


class SessionSavedResponse(CamelModel):
    message: str
    session_id: int


class SessionSetResponse(CamelModel):
    id: int
    set_number: int
    target_reps: int
    actual_reps: Optional[int] = None
    target_weight: Optional[float] = None
    actual_weight: Optional[float] = None
    completed: bool
    rest_time: Optional[int] = None
    notes: Optional[str] = None


class SessionExerciseResponse(CamelModel):
    id: int
    exercise_id: int
    name: Optional[str] = None
    muscle_group: Optional[str] = None
    order: int
    sets: list[SessionSetResponse]


class WorkoutSessionResponse(CamelModel):
    """A recorded session with its exercises and sets."""

    id: int
    workout_id: Optional[int] = None
    workout_name: str
    start_time: datetime
    end_time: datetime
    duration: int  # seconds
    notes: Optional[str] = None
    exercises: list[SessionExerciseResponse]


class TopWorkout(CamelModel):
    workout_id: int
    workout_name: str
    sessions: int


class WeeklyProgress(CamelModel):
    week: str
    sessions: int
    total_minutes: int
    week_start: datetime


class SessionStats(CamelModel):
    total_sessions: int
    total_workout_time: int  # minutes
    recent_sessions: int
    average_session_time: int  # minutes
    top_workouts: list[TopWorkout]
    weekly_progress: list[WeeklyProgress]


class SessionStatsResponse(CamelModel):
    success: bool = True
    stats: SessionStats


# -------------------------------------------------------------------------
# Helper Functions
# -------------------------------------------------------------------------


def build_session_response(session: WorkoutSession) -> WorkoutSessionResponse:
    """Build session response. Exercises, their catalog rows and sets must be loaded."""
    return WorkoutSessionResponse(
        id=session.id,
        workout_id=session.workout_id,
        workout_name=session.workout_name,
        start_time=session.start_time,
        end_time=session.end_time,
        duration=session.duration,
        notes=session.notes,
        exercises=[
            SessionExerciseResponse(
                id=ex.id,
                exercise_id=ex.exercise_id,
                name=ex.exercise.name if ex.exercise else None,
                muscle_group=ex.exercise.muscle_group if ex.exercise else None,
                order=ex.order,
                sets=[SessionSetResponse.model_validate(s) for s in ex.sets],
            )
            for ex in session.exercises
        ],
    )


async def _resolve_exercises(
    db: AsyncSession,
    exercises: list[SessionExerciseInput],
) -> list[tuple[int, SessionExerciseInput]]:
    """Keep exercises that exist in the catalog, paired with their position.

    Unknown references are dropped with a warning; the rest of the session
    is still saved.
    """
    ids = {ex.exercise_id for ex in exercises if ex.exercise_id}
    found: set[int] = set()
    if ids:
        result = await db.execute(select(Exercise.id).where(Exercise.id.in_(ids)))
        found = set(result.scalars().all())

    valid: list[tuple[int, SessionExerciseInput]] = []
    for index, ex in enumerate(exercises):
        if not ex.exercise_id:
            logger.warning("Skipping session exercise %d: no exerciseId provided", index)
            continue
        if ex.exercise_id not in found:
            logger.warning("Exercise %s not found, skipping", ex.exercise_id)
            continue
        valid.append((index, ex))
    return valid


def _build_set(set_number: int, data: SessionSetInput) -> WorkoutSessionSet:
    target_reps = data.target_reps or 0
    return WorkoutSessionSet(
        set_number=set_number,
        target_reps=target_reps,
        actual_reps=data.actual_reps if data.actual_reps is not None else target_reps,
        target_weight=data.target_weight,
        actual_weight=(
            data.actual_weight if data.actual_weight is not None else data.target_weight
        ),
        completed=bool(data.completed),
    )


async def _write_session(
    db: AsyncSession,
    user_id: int,
    workout: Workout,
    data: WorkoutSessionCreateRequest,
    exercises: list[tuple[int, SessionExerciseInput]],
) -> tuple[WorkoutSession, int]:
    """Write header, exercises and sets as one unit of work and commit."""
    session = WorkoutSession(
        user_id=user_id,
        workout_id=workout.id,
        workout_name=workout.name,
        start_time=data.start_time,
        end_time=data.end_time,
        duration=int(data.duration // 1000),
        notes=data.notes,
    )

    sets_written = 0
    for order, ex_data in exercises:
        session_exercise = WorkoutSessionExercise(exercise_id=ex_data.exercise_id, order=order)
        for set_number, set_data in enumerate(ex_data.sets, start=1):
            session_exercise.sets.append(_build_set(set_number, set_data))
            sets_written += 1
        session.exercises.append(session_exercise)

    db.add(session)
    await db.flush()
    await db.commit()
    return session, sets_written


# -------------------------------------------------------------------------
# Endpoints
# -------------------------------------------------------------------------


@router.post("", response_model=SessionSavedResponse)
async def record_workout_session(
    data: WorkoutSessionCreateRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
) -> SessionSavedResponse:
    """Record a completed workout session.

    Raises:
        HTTPException: 400 if a required field is missing, 404 if the
            workout does not exist or is private to another user, 500 if
            the write fails.
    """
    if not data.workout_id or not data.start_time or not data.end_time or not data.duration:
        logger.info(
            "Rejected session with missing data: workout=%s start=%s end=%s duration=%s",
            data.workout_id, data.start_time, data.end_time, data.duration,
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing required session data",
        )

    workout = await db.get(Workout, data.workout_id)
    if not workout or (workout.user_id != current_user.id and not workout.public):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Workout not found",
        )

    valid_exercises = await _resolve_exercises(db, data.exercises)

    # Rollback expires loaded instances
    user_id = current_user.id
    metrics = get_metrics_backend()
    start = time.perf_counter()
    try:
        session, sets_written = await asyncio.wait_for(
            _write_session(db, user_id, workout, data, valid_exercises),
            timeout=settings.session_write_timeout_seconds,
        )
    except Exception as exc:
        await db.rollback()
        metrics.observe_session_write(False, (time.perf_counter() - start) * 1000)
        logger.exception("Error saving workout session for user %s", user_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "Internal server error", "details": str(exc) or type(exc).__name__},
        ) from exc

    metrics.observe_session_write(True, (time.perf_counter() - start) * 1000, sets_written)
    logger.info(
        "Saved workout session %s for user %s (%d exercises, %d sets)",
        session.id, user_id, len(valid_exercises), sets_written,
    )
    return SessionSavedResponse(
        message="Workout session saved successfully",
        session_id=session.id,
    )


@router.get("/history", response_model=list[WorkoutSessionResponse])
async def get_session_history(
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
) -> list[WorkoutSessionResponse]:
    """Full session history, newest first."""
    result = await db.execute(
        select(WorkoutSession)
        .options(*SESSION_DETAIL_OPTIONS)
        .execution_options(populate_existing=True)
        .where(WorkoutSession.user_id == current_user.id)
        .order_by(WorkoutSession.start_time.desc())
        .offset(offset)
        .limit(limit)
    )
    return [build_session_response(s) for s in result.scalars().all()]


@router.get("/recent", response_model=list[WorkoutSessionResponse])
async def get_recent_sessions(
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
) -> list[WorkoutSessionResponse]:
    """Most recent sessions, newest first."""
    result = await db.execute(
        select(WorkoutSession)
        .options(*SESSION_DETAIL_OPTIONS)
        .execution_options(populate_existing=True)
        .where(WorkoutSession.user_id == current_user.id)
        .order_by(WorkoutSession.start_time.desc())
        .limit(RECENT_SESSIONS_LIMIT)
    )
    return [build_session_response(s) for s in result.scalars().all()]


@router.get("/stats", response_model=SessionStatsResponse)
async def get_session_stats(
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
) -> SessionStatsResponse:
    """Session totals, top workouts and weekly activity for the last 8 weeks."""
    now = utcnow()
    user_filter = WorkoutSession.user_id == current_user.id

    totals = await db.execute(
        select(
            func.count(WorkoutSession.id),
            func.coalesce(func.sum(WorkoutSession.duration), 0),
        ).where(user_filter)
    )
    total_sessions, total_seconds = totals.one()

    recent_result = await db.execute(
        select(func.count(WorkoutSession.id)).where(
            user_filter,
            WorkoutSession.start_time >= now - timedelta(days=7),
        )
    )
    recent_sessions = recent_result.scalar() or 0

    session_count = func.count(WorkoutSession.id)
    top_result = await db.execute(
        select(
            WorkoutSession.workout_id,
            func.max(WorkoutSession.workout_name),
            session_count,
        )
        .where(user_filter, WorkoutSession.workout_id.is_not(None))
        .group_by(WorkoutSession.workout_id)
        .order_by(session_count.desc())
        .limit(TOP_WORKOUTS_LIMIT)
    )
    top_workouts = [
        TopWorkout(workout_id=workout_id, workout_name=name or "Unknown Workout", sessions=count)
        for workout_id, name, count in top_result.all()
    ]

    window_start = now - timedelta(weeks=WEEKLY_PROGRESS_WEEKS)
    weekly_result = await db.execute(
        select(WorkoutSession.start_time, WorkoutSession.duration).where(
            user_filter,
            WorkoutSession.start_time >= window_start,
        )
    )
    weekly_rows = [(as_utc(start), duration) for start, duration in weekly_result.all()]

    weekly_progress = []
    for weeks_ago in range(WEEKLY_PROGRESS_WEEKS - 1, -1, -1):
        week_start = (now - timedelta(weeks=weeks_ago)).replace(
            hour=0, minute=0, second=0, microsecond=0
        )
        week_end = week_start + timedelta(weeks=1)
        durations = [d for start, d in weekly_rows if week_start <= start < week_end]
        weekly_progress.append(
            WeeklyProgress(
                week="Week This" if weeks_ago == 0 else f"Week {weeks_ago}",
                sessions=len(durations),
                total_minutes=round(sum(durations) / 60),
                week_start=week_start,
            )
        )

    return SessionStatsResponse(
        stats=SessionStats(
            total_sessions=total_sessions,
            total_workout_time=round(total_seconds / 60),
            recent_sessions=recent_sessions,
            average_session_time=(
                round(total_seconds / total_sessions / 60) if total_sessions else 0
            ),
            top_workouts=top_workouts,
            weekly_progress=weekly_progress,
        )
    )
