"""Body progress endpoints and the comprehensive progress summary."""

import logging
from datetime import datetime
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import Field
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fittrack.api.v1.endpoints.auth import get_current_user
from fittrack.core.database import get_db
from fittrack.models.base import utcnow
from fittrack.models.progress import Progress
from fittrack.models.schemas import CamelModel, MessageResponse
from fittrack.models.user import User
from fittrack.services.progress import get_progress_service

router = APIRouter()
logger = logging.getLogger(__name__)

RECENT_PROGRESS_LIMIT = 5


# -------------------------------------------------------------------------
# Request/Response Models
# -------------------------------------------------------------------------


class ProgressFields(CamelModel):
    weight: Optional[float] = Field(None, ge=0)
    body_fat: Optional[float] = Field(None, ge=0, le=100)
    chest: Optional[float] = Field(None, ge=0)
    waist: Optional[float] = Field(None, ge=0)
    hips: Optional[float] = Field(None, ge=0)
    arms: Optional[float] = Field(None, ge=0)
    thighs: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = None


class ProgressCreateRequest(ProgressFields):
    """New body measurement entry. ``date`` defaults to now."""

    date: Optional[datetime] = None


class ProgressUpdateRequest(ProgressFields):
    date: Optional[datetime] = None


class ProgressResponse(ProgressFields):
    id: int
    date: datetime
    created_at: Optional[datetime] = None


class ProgressListResponse(CamelModel):
    items: list[ProgressResponse]
    total: int


class RecentProgressItem(CamelModel):
    date: datetime
    weight: float


class UserHeader(CamelModel):
    name: Optional[str] = None
    member_since: Optional[datetime] = None


class WeightTrend(CamelModel):
    current: Optional[float] = None
    trend_30d: float = Field(alias="trend30d")
    trend_7d: float = Field(alias="trend7d")


class BodyFatTrend(CamelModel):
    current: Optional[float] = None
    trend_30d: float = Field(alias="trend30d")


class BodyTrends(CamelModel):
    weight: WeightTrend
    body_fat: BodyFatTrend


class BodyMetrics(CamelModel):
    current: Optional[ProgressResponse] = None
    history: list[ProgressResponse]
    trends: BodyTrends


class WorkoutMetrics(CamelModel):
    total_sessions: int
    sessions_last_30_days: int
    sessions_last_7_days: int
    total_sets_completed: int
    total_sets: int
    completion_rate: int
    average_duration: int  # minutes
    total_weight_lifted: int
    total_reps: int
    consistency_score: int
    strength_progress: float


class RecentActivityItem(CamelModel):
    id: int
    date: datetime
    workout_name: str
    duration: Optional[int] = None  # minutes
    sets_completed: int
    total_sets: int


class OverallScores(CamelModel):
    consistency: int
    improvement: float


class ComprehensiveProgressResponse(CamelModel):
    """Body trends, workout totals and composite scores."""

    user: UserHeader
    body_metrics: BodyMetrics
    workout_metrics: WorkoutMetrics
    recent_activity: list[RecentActivityItem]
    overall_scores: OverallScores


# -------------------------------------------------------------------------
# Helper Functions
# -------------------------------------------------------------------------


async def _get_owned_entry(db: AsyncSession, progress_id: int, user_id: int) -> Progress:
    result = await db.execute(
        select(Progress).where(Progress.id == progress_id, Progress.user_id == user_id)
    )
    entry = result.scalar_one_or_none()
    if not entry:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Progress entry not found",
        )
    return entry


# -------------------------------------------------------------------------
# Endpoints
# -------------------------------------------------------------------------


@router.post("", response_model=ProgressResponse, status_code=status.HTTP_201_CREATED)
async def create_progress(
    data: ProgressCreateRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
) -> ProgressResponse:
    """Record a body measurement entry."""
    entry = Progress(
        user_id=current_user.id,
        date=data.date or utcnow(),
        **data.model_dump(exclude={"date"}),
    )
    db.add(entry)
    await db.commit()
    await db.refresh(entry)

    return ProgressResponse.model_validate(entry)


@router.get("", response_model=ProgressListResponse)
async def list_progress(
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
) -> ProgressListResponse:
    """List the caller's entries, newest first."""
    total_result = await db.execute(
        select(func.count(Progress.id)).where(Progress.user_id == current_user.id)
    )
    result = await db.execute(
        select(Progress)
        .where(Progress.user_id == current_user.id)
        .order_by(Progress.date.desc(), Progress.id.desc())
        .offset(offset)
        .limit(limit)
    )
    return ProgressListResponse(
        items=[ProgressResponse.model_validate(e) for e in result.scalars().all()],
        total=total_result.scalar() or 0,
    )


@router.get("/recent", response_model=list[RecentProgressItem])
async def get_recent_progress(
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
) -> list[RecentProgressItem]:
    """Latest weights for the dashboard. Missing weights read as 0."""
    result = await db.execute(
        select(Progress.date, Progress.weight)
        .where(Progress.user_id == current_user.id)
        .order_by(Progress.date.desc(), Progress.id.desc())
        .limit(RECENT_PROGRESS_LIMIT)
    )
    return [
        RecentProgressItem(date=when, weight=weight if weight is not None else 0)
        for when, weight in result.all()
    ]


@router.get("/comprehensive", response_model=ComprehensiveProgressResponse)
async def get_comprehensive_progress(
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
) -> ComprehensiveProgressResponse:
    """Body trends, workout totals, recent activity and overall scores."""
    service = get_progress_service(db, current_user.id)
    summary = await service.get_comprehensive()
    return ComprehensiveProgressResponse.model_validate(summary, from_attributes=True)


@router.get("/{progress_id}", response_model=ProgressResponse)
async def get_progress(
    progress_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
) -> ProgressResponse:
    """Get one of the caller's entries.

    Raises:
        HTTPException: 404 if missing or owned by someone else.
    """
    entry = await _get_owned_entry(db, progress_id, current_user.id)
    return ProgressResponse.model_validate(entry)


@router.put("/{progress_id}", response_model=ProgressResponse)
async def update_progress(
    progress_id: int,
    data: ProgressUpdateRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
) -> ProgressResponse:
    """Update the fields given in the body."""
    entry = await _get_owned_entry(db, progress_id, current_user.id)

    for field, value in data.model_dump(exclude_unset=True).items():
        if field == "date" and value is None:
            continue
        setattr(entry, field, value)

    await db.commit()
    await db.refresh(entry)
    return ProgressResponse.model_validate(entry)


@router.delete("/{progress_id}", response_model=MessageResponse)
async def delete_progress(
    progress_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """Delete one of the caller's entries."""
    entry = await _get_owned_entry(db, progress_id, current_user.id)
    await db.delete(entry)
    await db.commit()
    return MessageResponse(message="Progress entry deleted")
