"""Exercise catalog endpoints."""

import logging
from datetime import datetime
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import Field
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from fittrack.api.v1.endpoints.auth import get_current_user, require_admin
from fittrack.core.database import get_db
from fittrack.models.exercise import Exercise
from fittrack.models.schemas import CamelModel
from fittrack.models.user import User
from fittrack.services.catalog import seed_system_exercises

router = APIRouter()
logger = logging.getLogger(__name__)

DEFAULT_DIFFICULTY = "intermediate"


# -------------------------------------------------------------------------
# Request/Response Models
# -------------------------------------------------------------------------


class ExerciseCreateRequest(CamelModel):
    """Request to add an exercise to the catalog."""

    name: Optional[str] = None
    description: Optional[str] = None
    muscle_group: Optional[str] = None
    difficulty: Optional[str] = None
    instructions: Optional[str] = None


class ExerciseResponse(CamelModel):
    """Catalog exercise."""

    id: int
    name: str
    description: Optional[str] = None
    muscle_group: Optional[str] = None
    difficulty: Optional[str] = None
    instructions: Optional[str] = None
    created_at: Optional[datetime] = None


class ExerciseCountResponse(CamelModel):
    count: int


class MuscleGroupCountsRequest(CamelModel):
    muscle_groups: list[str] = Field(...)


class MuscleGroupCount(CamelModel):
    muscle_group: str
    count: int


class MuscleGroupCountsResponse(CamelModel):
    counts: list[MuscleGroupCount]


class CatalogStats(CamelModel):
    total_exercises: int
    by_muscle_group: dict[str, int]


class ExerciseMetaResponse(CamelModel):
    """Distinct filter values and catalog counts."""

    muscle_groups: list[str]
    difficulties: list[str]
    stats: CatalogStats


class SeedResponse(CamelModel):
    message: str
    created: int


# -------------------------------------------------------------------------
# Endpoints
# -------------------------------------------------------------------------


@router.get("", response_model=list[ExerciseResponse])
async def list_exercises(
    db: AsyncSession = Depends(get_db),
    muscle_group: Optional[str] = Query(None, alias="muscleGroup"),
    difficulty: Optional[str] = Query(None),
    search: Optional[str] = Query(None, description="Matches name, description or muscle group"),
    limit: Optional[int] = Query(None, ge=1, le=500),
) -> list[ExerciseResponse]:
    """List catalog exercises ordered by name. Public."""
    query = select(Exercise)

    if muscle_group:
        query = query.where(Exercise.muscle_group == muscle_group)
    if difficulty:
        query = query.where(Exercise.difficulty == difficulty)
    if search:
        pattern = f"%{search.lower()}%"
        query = query.where(
            or_(
                func.lower(Exercise.name).like(pattern),
                func.lower(Exercise.description).like(pattern),
                func.lower(Exercise.muscle_group).like(pattern),
            )
        )

    query = query.order_by(Exercise.name.asc())
    if limit:
        query = query.limit(limit)

    result = await db.execute(query)
    return [ExerciseResponse.model_validate(ex) for ex in result.scalars().all()]


@router.post("", response_model=ExerciseResponse, status_code=status.HTTP_201_CREATED)
async def create_exercise(
    data: ExerciseCreateRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
) -> ExerciseResponse:
    """Add a user-authored exercise.

    Raises:
        HTTPException: 400 if name or muscle group is missing.
    """
    if not data.name or not data.muscle_group:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Name and muscle group are required",
        )

    exercise = Exercise(
        user_id=current_user.id,
        name=data.name,
        description=data.description or None,
        muscle_group=data.muscle_group,
        difficulty=data.difficulty or DEFAULT_DIFFICULTY,
        instructions=data.instructions or None,
    )
    db.add(exercise)
    await db.commit()
    await db.refresh(exercise)

    return ExerciseResponse.model_validate(exercise)


@router.get("/count", response_model=ExerciseCountResponse)
async def count_exercises(
    db: AsyncSession = Depends(get_db),
    muscle_groups: Optional[str] = Query(None, alias="muscleGroups", description="Comma separated"),
) -> ExerciseCountResponse:
    """Count exercises in any of the given muscle groups."""
    if not muscle_groups:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="muscleGroups parameter is required",
        )

    groups = [group.strip() for group in muscle_groups.split(",") if group.strip()]
    result = await db.execute(
        select(func.count(Exercise.id)).where(Exercise.muscle_group.in_(groups))
    )
    return ExerciseCountResponse(count=result.scalar() or 0)


@router.post("/count", response_model=MuscleGroupCountsResponse)
async def count_exercises_by_group(
    data: MuscleGroupCountsRequest,
    db: AsyncSession = Depends(get_db),
) -> MuscleGroupCountsResponse:
    """Count exercises per requested muscle group, preserving request order."""
    result = await db.execute(
        select(Exercise.muscle_group, func.count(Exercise.id))
        .where(Exercise.muscle_group.in_(data.muscle_groups))
        .group_by(Exercise.muscle_group)
    )
    found = {group: count for group, count in result.all()}

    return MuscleGroupCountsResponse(
        counts=[
            MuscleGroupCount(muscle_group=group, count=found.get(group, 0))
            for group in data.muscle_groups
        ]
    )


@router.get("/meta", response_model=ExerciseMetaResponse)
async def get_exercise_meta(
    db: AsyncSession = Depends(get_db),
) -> ExerciseMetaResponse:
    """Distinct muscle groups and difficulties plus catalog totals."""
    group_result = await db.execute(
        select(Exercise.muscle_group, func.count(Exercise.id))
        .where(Exercise.muscle_group.is_not(None))
        .group_by(Exercise.muscle_group)
        .order_by(Exercise.muscle_group)
    )
    by_group = {group: count for group, count in group_result.all()}

    difficulty_result = await db.execute(
        select(Exercise.difficulty)
        .where(Exercise.difficulty.is_not(None))
        .distinct()
        .order_by(Exercise.difficulty)
    )
    difficulties = list(difficulty_result.scalars().all())

    total_result = await db.execute(select(func.count(Exercise.id)))

    return ExerciseMetaResponse(
        muscle_groups=list(by_group.keys()),
        difficulties=difficulties,
        stats=CatalogStats(
            total_exercises=total_result.scalar() or 0,
            by_muscle_group=by_group,
        ),
    )


@router.post("/seed", response_model=SeedResponse)
async def seed_exercises(
    _admin: Annotated[User, Depends(require_admin)],
    db: AsyncSession = Depends(get_db),
) -> SeedResponse:
    """Insert the built-in system catalog. Admin only."""
    created = await seed_system_exercises(db)
    return SeedResponse(message="Exercise catalog seeded", created=created)


@router.get("/{exercise_id}", response_model=ExerciseResponse)
async def get_exercise(
    exercise_id: int,
    db: AsyncSession = Depends(get_db),
) -> ExerciseResponse:
    """Get a single exercise.

    Raises:
        HTTPException: 404 if not found.
    """
    exercise = await db.get(Exercise, exercise_id)
    if not exercise:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Exercise not found",
        )
    return ExerciseResponse.model_validate(exercise)
