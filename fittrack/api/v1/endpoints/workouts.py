"""Workout template endpoints.

A workout is an ordered list of prescribed exercises owned by one user,
optionally shared with everyone through the ``public`` flag.
"""

import logging
from datetime import datetime
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import Field
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from fittrack.api.v1.endpoints.auth import (
    get_current_user,
    get_optional_user,
    get_or_create_current_user,
)
from fittrack.api.v1.endpoints.workout_sessions import (
    SESSION_DETAIL_OPTIONS,
    WorkoutSessionResponse,
    build_session_response,
)
from fittrack.core.database import get_db
from fittrack.models.exercise import Exercise
from fittrack.models.schemas import CamelModel, MessageResponse
from fittrack.models.user import User
from fittrack.models.workout import Workout, WorkoutExercise
from fittrack.models.workout_session import WorkoutSession

router = APIRouter()
logger = logging.getLogger(__name__)

MIN_WORKOUT_EXERCISES = 3
RECENT_WORKOUTS_LIMIT = 3
WORKOUT_SESSIONS_LIMIT = 10

WORKOUT_DETAIL_OPTIONS = (
    selectinload(Workout.exercises).selectinload(WorkoutExercise.exercise),
    selectinload(Workout.user),
)


# -------------------------------------------------------------------------
# Request/Response Models
# -------------------------------------------------------------------------


class WorkoutExerciseInput(CamelModel):
    """Prescription for one exercise inside a workout."""

    exercise_id: Optional[int] = None
    sets: int = 0
    reps: int = 0
    weight: Optional[float] = None
    duration: Optional[int] = None
    notes: Optional[str] = None
    order: Optional[int] = None


class WorkoutCreateRequest(CamelModel):
    name: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    public: bool = False
    exercises: list[WorkoutExerciseInput] = []


class WorkoutUpdateRequest(CamelModel):
    """Replace a workout's header and exercise list."""

    name: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    public: Optional[bool] = None
    exercises: Optional[list[WorkoutExerciseInput]] = None


class WorkoutExerciseResponse(CamelModel):
    id: int
    exercise_id: int
    name: str
    muscle_group: Optional[str] = None
    sets: int
    reps: int
    weight: Optional[float] = None
    duration: Optional[int] = None
    notes: Optional[str] = None
    order: int


class WorkoutResponse(CamelModel):
    """Workout with derived catalog information."""

    id: int
    name: str
    description: Optional[str] = None
    image: Optional[str] = None
    public: bool
    is_owner: bool
    author: Optional[str] = None
    exercise_count: int
    muscle_groups: list[str]
    difficulty: Optional[str] = None
    times_completed: int
    created_at: datetime
    updated_at: datetime
    exercises: list[WorkoutExerciseResponse]


class WorkoutListResponse(CamelModel):
    workouts: list[WorkoutResponse]
    has_more: bool


class WorkoutCreateResponse(CamelModel):
    success: bool = True
    workout: WorkoutResponse


class WorkoutUpdateResponse(CamelModel):
    message: str
    workout: WorkoutResponse


class RecentWorkout(CamelModel):
    id: int
    name: str
    date: datetime
    exercises: int


class WorkoutSessionStats(CamelModel):
    total_sessions: int
    completion_rate: int
    last_performed: Optional[datetime] = None
    total_completed_sets: int
    total_sets: int


class WorkoutSessionsResponse(CamelModel):
    success: bool = True
    sessions: list[WorkoutSessionResponse]
    stats: WorkoutSessionStats


# -------------------------------------------------------------------------
# Helper Functions
# -------------------------------------------------------------------------


def build_workout_response(
    workout: Workout,
    current_user_id: Optional[int],
    times_completed: int = 0,
) -> WorkoutResponse:
    """Build workout response. Exercises, their catalog rows and the author must be loaded."""
    muscle_groups: list[str] = []
    for link in workout.exercises:
        group = link.exercise.muscle_group
        if group and group not in muscle_groups:
            muscle_groups.append(group)

    return WorkoutResponse(
        id=workout.id,
        name=workout.name,
        description=workout.description,
        image=workout.image,
        public=workout.public,
        is_owner=current_user_id is not None and workout.user_id == current_user_id,
        author=workout.user.name if workout.user else None,
        exercise_count=len(workout.exercises),
        muscle_groups=muscle_groups,
        difficulty=workout.exercises[0].exercise.difficulty if workout.exercises else None,
        times_completed=times_completed,
        created_at=workout.created_at,
        updated_at=workout.updated_at,
        exercises=[
            WorkoutExerciseResponse(
                id=link.id,
                exercise_id=link.exercise_id,
                name=link.exercise.name,
                muscle_group=link.exercise.muscle_group,
                sets=link.sets,
                reps=link.reps,
                weight=link.weight,
                duration=link.duration,
                notes=link.notes,
                order=link.order,
            )
            for link in workout.exercises
        ],
    )


def _validate_exercise_inputs(exercises: list[WorkoutExerciseInput]) -> None:
    for exercise in exercises:
        if not exercise.exercise_id or exercise.sets <= 0 or exercise.reps <= 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Each exercise must have valid exerciseId, sets, and reps",
            )


async def _ensure_exercises_exist(db: AsyncSession, exercises: list[WorkoutExerciseInput]) -> None:
    ids = {exercise.exercise_id for exercise in exercises}
    result = await db.execute(select(func.count(Exercise.id)).where(Exercise.id.in_(ids)))
    if (result.scalar() or 0) != len(ids):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="One or more exercises not found",
        )


async def _load_workout(db: AsyncSession, workout_id: int) -> Workout:
    result = await db.execute(
        select(Workout)
        .options(*WORKOUT_DETAIL_OPTIONS)
        .where(Workout.id == workout_id)
        .execution_options(populate_existing=True)
    )
    workout = result.scalar_one_or_none()
    if not workout:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Workout not found",
        )
    return workout


async def _count_sessions(db: AsyncSession, workout_ids: list[int]) -> dict[int, int]:
    if not workout_ids:
        return {}
    result = await db.execute(
        select(WorkoutSession.workout_id, func.count(WorkoutSession.id))
        .where(WorkoutSession.workout_id.in_(workout_ids))
        .group_by(WorkoutSession.workout_id)
    )
    return {workout_id: count for workout_id, count in result.all()}


def _apply_exercise_list(workout: Workout, exercises: list[WorkoutExerciseInput]) -> None:
    """Diff the workout's exercise links against the requested list.

    Links are matched by exercise id: matches are updated in place, new ids
    are added and links no longer requested are removed. Repeated exercise
    ids match existing links in order.
    """
    existing: dict[int, list[WorkoutExercise]] = {}
    for link in workout.exercises:
        existing.setdefault(link.exercise_id, []).append(link)

    kept: list[WorkoutExercise] = []
    for index, data in enumerate(exercises):
        candidates = existing.get(data.exercise_id)
        link = candidates.pop(0) if candidates else WorkoutExercise(exercise_id=data.exercise_id)
        link.sets = data.sets
        link.reps = data.reps
        link.weight = data.weight
        link.duration = data.duration
        link.notes = data.notes.strip() if data.notes else None
        link.order = index
        kept.append(link)

    # Replacing the collection orphans (and so deletes) unmatched links
    workout.exercises = kept


# -------------------------------------------------------------------------
# Endpoints
# -------------------------------------------------------------------------


@router.get("", response_model=WorkoutListResponse)
async def list_workouts(
    current_user: Annotated[Optional[User], Depends(get_optional_user)],
    db: AsyncSession = Depends(get_db),
    muscle_group: Optional[str] = Query(None, alias="muscleGroup"),
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
) -> WorkoutListResponse:
    """List the caller's workouts plus public ones; only public when signed out."""
    query = (
        select(Workout)
        .options(*WORKOUT_DETAIL_OPTIONS)
        .execution_options(populate_existing=True)
    )

    if current_user:
        query = query.where(or_(Workout.user_id == current_user.id, Workout.public.is_(True)))
    else:
        query = query.where(Workout.public.is_(True))

    if muscle_group:
        query = query.where(
            Workout.exercises.any(
                WorkoutExercise.exercise.has(Exercise.muscle_group == muscle_group)
            )
        )

    query = query.order_by(Workout.created_at.desc(), Workout.id.desc()).offset(offset).limit(limit)
    result = await db.execute(query)
    workouts = result.scalars().all()

    counts = await _count_sessions(db, [w.id for w in workouts])
    user_id = current_user.id if current_user else None

    return WorkoutListResponse(
        workouts=[build_workout_response(w, user_id, counts.get(w.id, 0)) for w in workouts],
        has_more=len(workouts) == limit,
    )


@router.get("/recent", response_model=list[RecentWorkout])
async def get_recent_workouts(
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
) -> list[RecentWorkout]:
    """The caller's most recently updated workouts."""
    result = await db.execute(
        select(Workout)
        .options(selectinload(Workout.exercises))
        .where(Workout.user_id == current_user.id)
        .order_by(Workout.updated_at.desc(), Workout.id.desc())
        .limit(RECENT_WORKOUTS_LIMIT)
    )
    return [
        RecentWorkout(id=w.id, name=w.name, date=w.updated_at, exercises=len(w.exercises))
        for w in result.scalars().all()
    ]


@router.post("", response_model=WorkoutCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_workout(
    data: WorkoutCreateRequest,
    current_user: Annotated[User, Depends(get_or_create_current_user)],
    db: AsyncSession = Depends(get_db),
) -> WorkoutCreateResponse:
    """Create a workout.

    Raises:
        HTTPException: 400 if the name is blank, fewer than 3 exercises are
            given, an exercise has non-positive sets/reps, or an exercise
            does not exist.
    """
    if not data.name or not data.name.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Workout name is required",
        )
    if len(data.exercises) < MIN_WORKOUT_EXERCISES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Workout must contain at least {MIN_WORKOUT_EXERCISES} exercises",
        )
    _validate_exercise_inputs(data.exercises)
    await _ensure_exercises_exist(db, data.exercises)

    workout = Workout(
        user_id=current_user.id,
        name=data.name.strip(),
        description=data.description.strip() if data.description else None,
        image=data.image,
        public=data.public,
    )
    for index, ex_data in enumerate(data.exercises):
        workout.exercises.append(
            WorkoutExercise(
                exercise_id=ex_data.exercise_id,
                sets=ex_data.sets,
                reps=ex_data.reps,
                weight=ex_data.weight,
                duration=ex_data.duration,
                notes=ex_data.notes.strip() if ex_data.notes else None,
                order=ex_data.order if ex_data.order is not None else index,
            )
        )
    db.add(workout)
    await db.commit()

    logger.info("User %s created workout %s", current_user.id, workout.id)
    workout = await _load_workout(db, workout.id)
    return WorkoutCreateResponse(workout=build_workout_response(workout, current_user.id))


@router.get("/{workout_id}", response_model=WorkoutResponse)
async def get_workout(
    workout_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
) -> WorkoutResponse:
    """Get workout details.

    Raises:
        HTTPException: 404 if not found, or private to another user.
    """
    workout = await _load_workout(db, workout_id)
    if workout.user_id != current_user.id and not workout.public:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Workout not found",
        )
    counts = await _count_sessions(db, [workout.id])
    return build_workout_response(workout, current_user.id, counts.get(workout.id, 0))


@router.get("/{workout_id}/sessions", response_model=WorkoutSessionsResponse)
async def get_workout_sessions(
    workout_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
) -> WorkoutSessionsResponse:
    """The caller's recent sessions of one workout with completion stats."""
    result = await db.execute(
        select(WorkoutSession)
        .options(*SESSION_DETAIL_OPTIONS)
        .execution_options(populate_existing=True)
        .where(
            WorkoutSession.user_id == current_user.id,
            WorkoutSession.workout_id == workout_id,
        )
        .order_by(WorkoutSession.start_time.desc())
        .limit(WORKOUT_SESSIONS_LIMIT)
    )
    sessions = result.scalars().all()

    total_sets = 0
    completed_sets = 0
    for session in sessions:
        for exercise in session.exercises:
            for session_set in exercise.sets:
                total_sets += 1
                if session_set.completed:
                    completed_sets += 1

    return WorkoutSessionsResponse(
        sessions=[build_session_response(s) for s in sessions],
        stats=WorkoutSessionStats(
            total_sessions=len(sessions),
            completion_rate=round(completed_sets / total_sets * 100) if total_sets else 0,
            last_performed=sessions[0].start_time if sessions else None,
            total_completed_sets=completed_sets,
            total_sets=total_sets,
        ),
    )


@router.put("/{workout_id}", response_model=WorkoutUpdateResponse)
async def update_workout(
    workout_id: int,
    data: WorkoutUpdateRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
) -> WorkoutUpdateResponse:
    """Update a workout and its exercise list in one transaction.

    Raises:
        HTTPException: 400 on invalid data, 403 if the caller is not the
            owner, 404 if not found.
    """
    if not data.name or not data.name.strip() or data.exercises is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid request data",
        )

    workout = await _load_workout(db, workout_id)
    if workout.user_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to update this workout",
        )

    _validate_exercise_inputs(data.exercises)
    if data.exercises:
        await _ensure_exercises_exist(db, data.exercises)

    workout.name = data.name.strip()
    workout.description = data.description.strip() if data.description else None
    if data.image is not None:
        workout.image = data.image
    if data.public is not None:
        workout.public = data.public
    _apply_exercise_list(workout, data.exercises)

    await db.commit()

    # Reload so new links carry their catalog rows
    workout = await _load_workout(db, workout_id)
    return WorkoutUpdateResponse(
        message="Workout updated successfully",
        workout=build_workout_response(workout, current_user.id),
    )


@router.delete("/{workout_id}", response_model=MessageResponse)
async def delete_workout(
    workout_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """Delete a workout and its exercise links.

    Recorded sessions are kept; they lose the workout reference but keep
    its name.

    Raises:
        HTTPException: 403 if the caller is not the owner, 404 if not found.
    """
    workout = await _load_workout(db, workout_id)
    if workout.user_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to delete this workout",
        )

    await db.delete(workout)
    await db.commit()

    logger.info("User %s deleted workout %s", current_user.id, workout_id)
    return MessageResponse(message="Workout deleted successfully")
