"""Current-user profile, fitness goals and onboarding endpoints."""

import logging
from datetime import datetime
from typing import Annotated, Any, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import Field
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from fittrack.api.v1.endpoints.auth import get_current_user, get_or_create_current_user
from fittrack.core.database import get_db
from fittrack.models.schemas import CamelModel
from fittrack.models.user import FITNESS_GOAL_TYPES, User, UserFitnessGoal

router = APIRouter()
logger = logging.getLogger(__name__)


# -------------------------------------------------------------------------
# Request/Response Models
# -------------------------------------------------------------------------


class ProfileResponse(CamelModel):
    id: int
    email: str
    name: Optional[str] = None
    image: Optional[str] = None
    bio: Optional[str] = None
    height: Optional[float] = None
    weight: Optional[float] = None
    role: str
    onboarding_completed: bool
    spotify_connected: bool
    created_at: Optional[datetime] = None


class ProfileUpdateRequest(CamelModel):
    """Editable profile fields."""

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    bio: Optional[str] = None
    height: Optional[float] = Field(None, gt=0)
    weight: Optional[float] = Field(None, gt=0)


class FitnessGoalsRequest(CamelModel):
    goals: Optional[list[str]] = None


class FitnessGoalsResponse(CamelModel):
    goals: list[str]
    onboarding_completed: bool


class FitnessGoalsSavedResponse(CamelModel):
    success: bool = True
    goals_created: int


class OnboardingRequest(CamelModel):
    # Validated by hand so that non-boolean values get a specific message
    completed: Any = None


class OnboardingResponse(CamelModel):
    success: bool = True
    onboarding_completed: bool


def build_profile_response(user: User) -> ProfileResponse:
    return ProfileResponse(
        id=user.id,
        email=user.email,
        name=user.name,
        image=user.image,
        bio=user.bio,
        height=user.height,
        weight=user.weight,
        role=user.role,
        onboarding_completed=user.onboarding_completed,
        spotify_connected=bool(user.spotify_access_token),
        created_at=user.created_at,
    )


# -------------------------------------------------------------------------
# Endpoints
# -------------------------------------------------------------------------


@router.get("/profile", response_model=ProfileResponse)
async def get_profile(
    current_user: Annotated[User, Depends(get_current_user)],
) -> ProfileResponse:
    """Get the caller's profile."""
    return build_profile_response(current_user)


@router.patch("/profile", response_model=ProfileResponse)
async def update_profile(
    data: ProfileUpdateRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
) -> ProfileResponse:
    """Update name, bio, height or weight."""
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(current_user, field, value)

    await db.commit()
    await db.refresh(current_user)
    return build_profile_response(current_user)


@router.get("/fitness-goals", response_model=FitnessGoalsResponse)
async def get_fitness_goals(
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
) -> FitnessGoalsResponse:
    """The caller's goals and onboarding flag."""
    result = await db.execute(
        select(UserFitnessGoal.goal_type)
        .where(UserFitnessGoal.user_id == current_user.id)
        .order_by(UserFitnessGoal.id)
    )
    return FitnessGoalsResponse(
        goals=list(result.scalars().all()),
        onboarding_completed=current_user.onboarding_completed,
    )


@router.post("/fitness-goals", response_model=FitnessGoalsSavedResponse)
async def save_fitness_goals(
    data: FitnessGoalsRequest,
    current_user: Annotated[User, Depends(get_or_create_current_user)],
    db: AsyncSession = Depends(get_db),
) -> FitnessGoalsSavedResponse:
    """Replace the caller's goals.

    Raises:
        HTTPException: 400 if goals are missing, empty, or outside the
            known vocabulary.
    """
    if not data.goals:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Goals array is required and cannot be empty",
        )

    unknown = [goal for goal in data.goals if goal not in FITNESS_GOAL_TYPES]
    if unknown:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Unknown fitness goal", "details": unknown},
        )

    goals = list(dict.fromkeys(data.goals))

    await db.execute(delete(UserFitnessGoal).where(UserFitnessGoal.user_id == current_user.id))
    db.add_all(UserFitnessGoal(user_id=current_user.id, goal_type=goal) for goal in goals)
    await db.commit()

    logger.info("User %s set %d fitness goals", current_user.id, len(goals))
    return FitnessGoalsSavedResponse(goals_created=len(goals))


@router.post("/onboarding", response_model=OnboardingResponse)
async def update_onboarding(
    data: OnboardingRequest,
    current_user: Annotated[User, Depends(get_or_create_current_user)],
    db: AsyncSession = Depends(get_db),
) -> OnboardingResponse:
    """Set the onboarding flag, creating the account row if needed.

    Raises:
        HTTPException: 400 if ``completed`` is not a boolean.
    """
    if not isinstance(data.completed, bool):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Completed must be a boolean value",
        )

    current_user.onboarding_completed = data.completed
    await db.commit()

    return OnboardingResponse(onboarding_completed=current_user.onboarding_completed)
