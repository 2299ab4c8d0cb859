"""Admin endpoints: user management and admin promotion.

Paths:
  /api/admin/users, /users/{id}, /setup
"""

import logging
import math
import secrets
from datetime import datetime
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import EmailStr, Field
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from fittrack.api.v1.endpoints.auth import get_current_user, require_admin
from fittrack.core.config import get_settings
from fittrack.core.database import get_db
from fittrack.models.progress import Progress
from fittrack.models.schemas import CamelModel, MessageResponse
from fittrack.models.user import ROLE_ADMIN, User
from fittrack.models.workout import Workout
from fittrack.models.workout_session import WorkoutSession, WorkoutSessionExercise

settings = get_settings()
router = APIRouter()
logger = logging.getLogger(__name__)

RECENT_WORKOUTS_LIMIT = 10
RECENT_SESSIONS_LIMIT = 20
RECENT_PROGRESS_LIMIT = 20

SORT_COLUMNS = {
    "createdAt": User.created_at,
    "updatedAt": User.updated_at,
    "name": User.name,
    "email": User.email,
}


# -------------------------------------------------------------------------
# Request/Response Models
# -------------------------------------------------------------------------


class AdminUserSummary(CamelModel):
    id: int
    name: Optional[str] = None
    email: str
    image: Optional[str] = None
    role: str
    bio: Optional[str] = None
    height: Optional[float] = None
    weight: Optional[float] = None
    has_password: bool
    spotify_connected: bool
    onboarding_completed: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None
    total_workouts: int
    total_sessions: int
    total_progress_entries: int
    last_workout_session: Optional[datetime] = None
    last_progress_entry: Optional[datetime] = None


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    pages: int


class AdminUserListResponse(CamelModel):
    users: list[AdminUserSummary]
    pagination: Pagination


class AdminWorkoutItem(CamelModel):
    id: int
    name: str
    description: Optional[str] = None
    public: bool
    created_at: Optional[datetime] = None
    session_count: int


class AdminSessionItem(CamelModel):
    id: int
    workout_name: str
    start_time: datetime
    end_time: datetime
    duration: int  # seconds
    exercise_count: int


class AdminProgressItem(CamelModel):
    id: int
    date: datetime
    weight: Optional[float] = None
    body_fat: Optional[float] = None
    chest: Optional[float] = None
    waist: Optional[float] = None
    hips: Optional[float] = None
    arms: Optional[float] = None
    thighs: Optional[float] = None
    notes: Optional[str] = None


class ProgressChange(CamelModel):
    weight_change: Optional[float] = None
    body_fat_change: Optional[float] = None


class AdminUserStats(CamelModel):
    total_workout_time: int  # seconds, over the recent sessions
    recent_activity: Optional[datetime] = None
    progress_trend: Optional[ProgressChange] = None
    average_session_duration: float


class AdminUserCounts(CamelModel):
    workouts: int
    workout_sessions: int
    progress: int


class AdminUserDetail(AdminUserSummary):
    workouts: list[AdminWorkoutItem]
    workout_sessions: list[AdminSessionItem]
    progress: list[AdminProgressItem]
    counts: AdminUserCounts
    stats: AdminUserStats


class AdminUserUpdateRequest(CamelModel):
    """Fields an admin may edit on another account."""

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    bio: Optional[str] = None
    height: Optional[float] = Field(None, gt=0)
    weight: Optional[float] = Field(None, gt=0)


class AdminSetupRequest(CamelModel):
    admin_email: EmailStr
    secret_key: str


class PromotedUser(CamelModel):
    id: int
    email: str
    role: str


class AdminSetupResponse(CamelModel):
    message: str
    user: PromotedUser


# -------------------------------------------------------------------------
# Helper Functions
# -------------------------------------------------------------------------


def _owned_count(model):
    return (
        select(func.count(model.id))
        .where(model.user_id == User.id)
        .correlate(User)
        .scalar_subquery()
    )


def _owned_latest(column, owner_column):
    return (
        select(func.max(column))
        .where(owner_column == User.id)
        .correlate(User)
        .scalar_subquery()
    )


def _activity_columns() -> tuple:
    """Per-user counters: workouts, sessions, progress entries, last session, last entry."""
    return (
        _owned_count(Workout),
        _owned_count(WorkoutSession),
        _owned_count(Progress),
        _owned_latest(WorkoutSession.start_time, WorkoutSession.user_id),
        _owned_latest(Progress.date, Progress.user_id),
    )


async def _load_activity(db: AsyncSession, user_id: int) -> tuple:
    result = await db.execute(select(*_activity_columns()).where(User.id == user_id))
    return tuple(result.one())


def _summary_fields(user: User, activity: tuple) -> dict:
    workouts, sessions, progress, last_session, last_progress = activity
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "image": user.image,
        "role": user.role,
        "bio": user.bio,
        "height": user.height,
        "weight": user.weight,
        "has_password": bool(user.password_hash),
        "spotify_connected": bool(user.spotify_access_token),
        "onboarding_completed": user.onboarding_completed,
        "created_at": user.created_at,
        "updated_at": user.updated_at,
        "last_login_at": user.last_login_at,
        "total_workouts": workouts or 0,
        "total_sessions": sessions or 0,
        "total_progress_entries": progress or 0,
        "last_workout_session": last_session,
        "last_progress_entry": last_progress,
    }


async def _get_user_or_404(db: AsyncSession, user_id: int) -> User:
    user = await db.get(User, user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )
    return user


def _progress_trend(entries: list[Progress]) -> Optional[ProgressChange]:
    """Change between the two latest entries, newest minus previous."""
    if len(entries) < 2:
        return None
    latest, previous = entries[0], entries[1]

    weight_change = None
    if latest.weight is not None and previous.weight is not None:
        weight_change = round(latest.weight - previous.weight, 2)

    body_fat_change = None
    if latest.body_fat is not None and previous.body_fat is not None:
        body_fat_change = round(latest.body_fat - previous.body_fat, 2)

    return ProgressChange(weight_change=weight_change, body_fat_change=body_fat_change)


# -------------------------------------------------------------------------
# Endpoints
# -------------------------------------------------------------------------


@router.get("/users", response_model=AdminUserListResponse)
async def list_users(
    admin: Annotated[User, Depends(require_admin)],
    db: AsyncSession = Depends(get_db),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = Query(None),
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder", pattern="^(asc|desc)$"),
) -> AdminUserListResponse:
    """Paginated account list with activity counters.

    Raises:
        HTTPException: 400 on an unsupported sort field.
    """
    sort_column = SORT_COLUMNS.get(sort_by)
    if sort_column is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Invalid sort field", "details": sorted(SORT_COLUMNS)},
        )

    conditions = []
    if search:
        escaped = search.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        pattern = f"%{escaped}%"
        conditions.append(
            or_(
                func.lower(User.name).like(pattern, escape="\\"),
                func.lower(User.email).like(pattern, escape="\\"),
            )
        )

    total_result = await db.execute(select(func.count(User.id)).where(*conditions))
    total = total_result.scalar() or 0

    order = sort_column.asc() if sort_order == "asc" else sort_column.desc()
    result = await db.execute(
        select(User, *_activity_columns())
        .where(*conditions)
        .order_by(order, User.id)
        .offset((page - 1) * limit)
        .limit(limit)
    )

    return AdminUserListResponse(
        users=[
            AdminUserSummary(**_summary_fields(user, tuple(activity)))
            for user, *activity in result.all()
        ],
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            pages=math.ceil(total / limit),
        ),
    )


@router.get("/users/{user_id}", response_model=AdminUserDetail)
async def get_user_detail(
    user_id: int,
    admin: Annotated[User, Depends(require_admin)],
    db: AsyncSession = Depends(get_db),
) -> AdminUserDetail:
    """Account detail with recent activity and summary stats."""
    user = await _get_user_or_404(db, user_id)
    activity = await _load_activity(db, user_id)

    session_count = (
        select(func.count(WorkoutSession.id))
        .where(WorkoutSession.workout_id == Workout.id)
        .correlate(Workout)
        .scalar_subquery()
    )
    workouts_result = await db.execute(
        select(Workout, session_count)
        .where(Workout.user_id == user_id)
        .order_by(Workout.created_at.desc(), Workout.id.desc())
        .limit(RECENT_WORKOUTS_LIMIT)
    )
    workouts = [
        AdminWorkoutItem(
            id=workout.id,
            name=workout.name,
            description=workout.description,
            public=workout.public,
            created_at=workout.created_at,
            session_count=count,
        )
        for workout, count in workouts_result.all()
    ]

    exercise_count = (
        select(func.count(WorkoutSessionExercise.id))
        .where(WorkoutSessionExercise.session_id == WorkoutSession.id)
        .correlate(WorkoutSession)
        .scalar_subquery()
    )
    sessions_result = await db.execute(
        select(WorkoutSession, exercise_count)
        .where(WorkoutSession.user_id == user_id)
        .order_by(WorkoutSession.start_time.desc())
        .limit(RECENT_SESSIONS_LIMIT)
    )
    sessions = [
        AdminSessionItem(
            id=session.id,
            workout_name=session.workout_name,
            start_time=session.start_time,
            end_time=session.end_time,
            duration=session.duration or 0,
            exercise_count=count,
        )
        for session, count in sessions_result.all()
    ]

    progress_result = await db.execute(
        select(Progress)
        .where(Progress.user_id == user_id)
        .order_by(Progress.date.desc(), Progress.id.desc())
        .limit(RECENT_PROGRESS_LIMIT)
    )
    entries = list(progress_result.scalars().all())

    total_time = sum(item.duration for item in sessions)
    fields = _summary_fields(user, activity)

    return AdminUserDetail(
        **fields,
        workouts=workouts,
        workout_sessions=sessions,
        progress=[AdminProgressItem.model_validate(entry) for entry in entries],
        counts=AdminUserCounts(
            workouts=fields["total_workouts"],
            workout_sessions=fields["total_sessions"],
            progress=fields["total_progress_entries"],
        ),
        stats=AdminUserStats(
            total_workout_time=total_time,
            recent_activity=sessions[0].start_time if sessions else None,
            progress_trend=_progress_trend(entries),
            average_session_duration=total_time / len(sessions) if sessions else 0,
        ),
    )


@router.patch("/users/{user_id}", response_model=AdminUserSummary)
async def update_user(
    user_id: int,
    data: AdminUserUpdateRequest,
    admin: Annotated[User, Depends(require_admin)],
    db: AsyncSession = Depends(get_db),
) -> AdminUserSummary:
    """Edit name, bio, height or weight on an account.

    Raises:
        HTTPException: 400 if no editable field is given, 404 if missing.
    """
    updates = data.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No valid fields to update",
        )

    user = await _get_user_or_404(db, user_id)
    for field, value in updates.items():
        setattr(user, field, value)
    await db.commit()
    await db.refresh(user)

    logger.info("Admin %s updated user %s: %s", admin.id, user.id, sorted(updates))

    activity = await _load_activity(db, user.id)
    return AdminUserSummary(**_summary_fields(user, activity))


@router.delete("/users/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: int,
    admin: Annotated[User, Depends(require_admin)],
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """Delete an account and everything it owns.

    Raises:
        HTTPException: 400 on self-delete, 404 if missing.
    """
    if user_id == admin.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot delete your own account",
        )

    user = await _get_user_or_404(db, user_id)
    await db.delete(user)
    await db.commit()

    logger.info("Admin %s deleted user %s", admin.id, user_id)
    return MessageResponse(message="User deleted successfully")


@router.post("/setup", response_model=AdminSetupResponse)
async def setup_admin(
    data: AdminSetupRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
) -> AdminSetupResponse:
    """Promote an existing account to admin using the setup secret.

    Raises:
        HTTPException: 403 on a wrong secret, 404 if the email is unknown.
    """
    if not secrets.compare_digest(data.secret_key, settings.admin_setup_secret):
        logger.warning("Admin setup attempted with an invalid secret by user %s", current_user.id)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid secret key",
        )

    result = await db.execute(select(User).where(User.email == data.admin_email))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )

    user.role = ROLE_ADMIN
    await db.commit()

    logger.info("User %s promoted to admin by %s", user.id, current_user.id)
    return AdminSetupResponse(
        message="User promoted to admin successfully",
        user=PromotedUser(id=user.id, email=user.email, role=user.role),
    )
