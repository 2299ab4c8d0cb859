"""Performed workout session models."""

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fittrack.models.base import BaseModel

if TYPE_CHECKING:
    from fittrack.models.exercise import Exercise
    from fittrack.models.user import User
    from fittrack.models.workout import Workout


class WorkoutSession(BaseModel):
    """One timed performance of a workout."""

    __tablename__ = "workout_sessions"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
    )
    workout_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("workouts.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    workout_name: Mapped[str] = mapped_column(String(200))

    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    duration: Mapped[int] = mapped_column(Integer)  # seconds
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="workout_sessions")
    workout: Mapped[Optional["Workout"]] = relationship("Workout", back_populates="sessions")
    exercises: Mapped[list["WorkoutSessionExercise"]] = relationship(
        "WorkoutSessionExercise",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="WorkoutSessionExercise.order",
    )

    def __repr__(self) -> str:
        return f"<WorkoutSession(id={self.id}, workout={self.workout_name}, start={self.start_time})>"


class WorkoutSessionExercise(BaseModel):
    """An exercise performed during a session."""

    __tablename__ = "workout_session_exercises"

    id: Mapped[int] = mapped_column(primary_key=True)
    session_id: Mapped[int] = mapped_column(
        ForeignKey("workout_sessions.id", ondelete="CASCADE"),
        index=True,
    )
    exercise_id: Mapped[int] = mapped_column(
        ForeignKey("exercises.id", ondelete="CASCADE"),
        index=True,
    )
    order: Mapped[int] = mapped_column(Integer, default=0)

    session: Mapped["WorkoutSession"] = relationship("WorkoutSession", back_populates="exercises")
    exercise: Mapped["Exercise"] = relationship("Exercise")
    sets: Mapped[list["WorkoutSessionSet"]] = relationship(
        "WorkoutSessionSet",
        back_populates="session_exercise",
        cascade="all, delete-orphan",
        order_by="WorkoutSessionSet.set_number",
    )

    def __repr__(self) -> str:
        return f"<WorkoutSessionExercise(session_id={self.session_id}, exercise_id={self.exercise_id})>"


class WorkoutSessionSet(BaseModel):
    """Target vs actual numbers for one set."""

    __tablename__ = "workout_session_sets"

    id: Mapped[int] = mapped_column(primary_key=True)
    session_exercise_id: Mapped[int] = mapped_column(
        ForeignKey("workout_session_exercises.id", ondelete="CASCADE"),
        index=True,
    )
    set_number: Mapped[int] = mapped_column(Integer)
    target_reps: Mapped[int] = mapped_column(Integer, default=0)
    actual_reps: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    target_weight: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    actual_weight: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    completed: Mapped[bool] = mapped_column(Boolean, default=False)
    rest_time: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # seconds
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    session_exercise: Mapped["WorkoutSessionExercise"] = relationship(
        "WorkoutSessionExercise",
        back_populates="sets",
    )

    @property
    def volume(self) -> float:
        """Weight x reps for a completed set with both values, else 0."""
        if self.completed and self.actual_weight and self.actual_reps:
            return self.actual_weight * self.actual_reps
        return 0.0

    def __repr__(self) -> str:
        return f"<WorkoutSessionSet(set={self.set_number}, completed={self.completed})>"
