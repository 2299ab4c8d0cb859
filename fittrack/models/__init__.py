"""Database models for FitTrack."""

from fittrack.models.user import User, UserFitnessGoal
from fittrack.models.exercise import Exercise
from fittrack.models.workout import Workout, WorkoutExercise
from fittrack.models.workout_session import (
    WorkoutSession,
    WorkoutSessionExercise,
    WorkoutSessionSet,
)
from fittrack.models.progress import Progress

__all__ = [
    # User
    "User",
    "UserFitnessGoal",
    # Catalog
    "Exercise",
    # Workout
    "Workout",
    "WorkoutExercise",
    # Session
    "WorkoutSession",
    "WorkoutSessionExercise",
    "WorkoutSessionSet",
    # Progress
    "Progress",
]
