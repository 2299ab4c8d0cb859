"""User model."""

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, String, Text, false
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fittrack.models.base import BaseModel

if TYPE_CHECKING:
    from fittrack.models.exercise import Exercise
    from fittrack.models.progress import Progress
    from fittrack.models.workout import Workout
    from fittrack.models.workout_session import WorkoutSession

ROLE_USER = "user"
ROLE_ADMIN = "admin"

FITNESS_GOAL_TYPES = (
    "weight-loss",
    "weight-gain",
    "muscle-building",
    "strength-training",
    "endurance",
    "mobility",
)


class User(BaseModel):
    """FitTrack account.

    Password-based accounts carry a bcrypt hash; accounts created from an
    external sign-in have none. Spotify tokens are explicit optional columns.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    image: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    password_hash: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    role: Mapped[str] = mapped_column(String(20), default=ROLE_USER, server_default=ROLE_USER)

    # Profile
    height: Mapped[Optional[float]] = mapped_column(Float, nullable=True)  # cm
    weight: Mapped[Optional[float]] = mapped_column(Float, nullable=True)  # kg
    bio: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    onboarding_completed: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=false()
    )
    last_login_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Spotify
    spotify_access_token: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    spotify_refresh_token: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    spotify_token_expiry: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Relationships
    exercises: Mapped[list["Exercise"]] = relationship(
        "Exercise",
        back_populates="user",
        passive_deletes=True,
    )
    workouts: Mapped[list["Workout"]] = relationship(
        "Workout",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    workout_sessions: Mapped[list["WorkoutSession"]] = relationship(
        "WorkoutSession",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    progress_entries: Mapped[list["Progress"]] = relationship(
        "Progress",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    fitness_goals: Mapped[list["UserFitnessGoal"]] = relationship(
        "UserFitnessGoal",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"


class UserFitnessGoal(BaseModel):
    """A fitness goal tag selected by a user."""

    __tablename__ = "user_fitness_goals"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
    )
    goal_type: Mapped[str] = mapped_column(String(50))

    user: Mapped["User"] = relationship("User", back_populates="fitness_goals")

    def __repr__(self) -> str:
        return f"<UserFitnessGoal(user_id={self.user_id}, goal={self.goal_type})>"
