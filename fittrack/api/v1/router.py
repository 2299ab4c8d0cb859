"""API router aggregating all endpoint routers.

Authentication:
  /api/auth/register, /login, /logout, /me, /check-admin

Catalog and plans:
  /api/exercises (list, detail, count, meta, seed)
  /api/workouts (CRUD, recent, sessions)

Training log:
  /api/workout-sessions (record, history, recent, stats)
  /api/progress (CRUD, recent, comprehensive)

Account:
  /api/user (profile, fitness-goals, onboarding)
  /api/admin (users, setup)

Integrations:
  /api/spotify (OAuth, playlists, player)

Diagnostics:
  /api/debug/db
"""

from fastapi import APIRouter

from fittrack.api.v1.endpoints import (
    admin,
    auth,
    debug,
    exercises,
    progress,
    spotify,
    user,
    workout_sessions,
    workouts,
)

api_router = APIRouter()

# -------------------------------------------------------------------------
# Authentication
# -------------------------------------------------------------------------
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])

# -------------------------------------------------------------------------
# Exercise catalog and workout templates
# -------------------------------------------------------------------------
api_router.include_router(exercises.router, prefix="/exercises", tags=["exercises"])
api_router.include_router(workouts.router, prefix="/workouts", tags=["workouts"])

# -------------------------------------------------------------------------
# Performed sessions and body measurements
# -------------------------------------------------------------------------
api_router.include_router(
    workout_sessions.router, prefix="/workout-sessions", tags=["workout-sessions"]
)
api_router.include_router(progress.router, prefix="/progress", tags=["progress"])

# -------------------------------------------------------------------------
# Account and administration
# -------------------------------------------------------------------------
api_router.include_router(user.router, prefix="/user", tags=["user"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])

# -------------------------------------------------------------------------
# Spotify
# -------------------------------------------------------------------------
api_router.include_router(spotify.router, prefix="/spotify", tags=["spotify"])

# -------------------------------------------------------------------------
# Diagnostics
# -------------------------------------------------------------------------
api_router.include_router(debug.router, prefix="/debug", tags=["debug"])
