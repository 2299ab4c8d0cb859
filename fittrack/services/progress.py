"""Progress aggregation service.

Builds the comprehensive progress summary: body-metric trends, workout
totals and the consistency/improvement scores. Everything is computed
fresh from the database on each call; nothing derived is stored.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, Optional, Sequence

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from fittrack.models.base import as_utc, utcnow
from fittrack.models.progress import Progress
from fittrack.models.user import User
from fittrack.models.workout_session import WorkoutSession, WorkoutSessionExercise

logger = logging.getLogger(__name__)

PROGRESS_HISTORY_LIMIT = 30
RECENT_SESSIONS_LIMIT = 10
LONG_WINDOW_DAYS = 30
SHORT_WINDOW_DAYS = 7

# 3 sessions a week over 4 weeks is a perfect score
SESSIONS_PER_WEEK_TARGET = 3
WEEKS_PER_WINDOW = 4

STRENGTH_SAMPLE_SIZE = 5
IMPROVEMENT_BASELINE = 50.0
WEIGHT_GAIN_PENALTY = 10.0
WEIGHT_LOSS_BONUS = 5.0
RECENCY_BONUS_PER_SESSION = 2.5
RECENCY_BONUS_CAP = 20.0


# -------------------------------------------------------------------------
# Scoring
# -------------------------------------------------------------------------


def calculate_trend(
    points: Iterable[tuple[datetime, Optional[float]]],
    days: int,
    now: datetime,
) -> float:
    """Endpoint-to-endpoint percentage change inside a lookback window.

    Args:
        points: (date, value) pairs in any order; None values are ignored.
        days: Window length ending at ``now``.
        now: Reference time.

    Returns:
        ``(last - first) / first * 100`` over the window, or 0.0 with fewer
        than two points or a zero starting value.
    """
    cutoff = now - timedelta(days=days)
    window = sorted(
        (as_utc(when), value)
        for when, value in points
        if value is not None and as_utc(when) >= cutoff
    )
    if len(window) < 2:
        return 0.0

    first = window[0][1]
    last = window[-1][1]
    if first == 0:
        return 0.0
    return (last - first) / first * 100


def consistency_score(sessions_last_30_days: int) -> float:
    """Session frequency against a 3-per-week baseline, capped at 100."""
    weekly = sessions_last_30_days / WEEKS_PER_WINDOW
    return min(max(weekly * (100 / SESSIONS_PER_WEEK_TARGET), 0.0), 100.0)


def strength_progress(session_volumes: Sequence[float]) -> float:
    """Percent change in average volume, newest sessions against oldest.

    Args:
        session_volumes: Lifted volume per session, newest first.

    Returns:
        Change of the newest 5 sessions' average over the oldest 5, rounded
        to 2 decimals; 0 with fewer than 6 sessions or no old volume.
    """
    if len(session_volumes) <= STRENGTH_SAMPLE_SIZE:
        return 0.0

    newest = session_volumes[:STRENGTH_SAMPLE_SIZE]
    oldest = session_volumes[-STRENGTH_SAMPLE_SIZE:]
    new_avg = sum(newest) / len(newest)
    old_avg = sum(oldest) / len(oldest)
    if old_avg == 0:
        return 0.0
    return round((new_avg - old_avg) / old_avg * 100, 2)


def improvement_score(
    weight_trend_30d: float,
    strength: float,
    sessions_last_30_days: int,
) -> float:
    """Composite 0-100 score from weight direction, strength and recency.

    Weight gain costs 10 points per percent; weight loss earns 5.
    """
    if weight_trend_30d > 0:
        weight_term = -weight_trend_30d * WEIGHT_GAIN_PENALTY
    else:
        weight_term = abs(weight_trend_30d) * WEIGHT_LOSS_BONUS

    recency = min(sessions_last_30_days * RECENCY_BONUS_PER_SESSION, RECENCY_BONUS_CAP)
    score = IMPROVEMENT_BASELINE + weight_term + strength + recency
    return round(max(0.0, min(100.0, score)), 2)


# -------------------------------------------------------------------------
# Aggregation
# -------------------------------------------------------------------------


@dataclass
class SessionTotals:
    """Set-level totals accumulated over a group of sessions."""

    total_sets: int = 0
    completed_sets: int = 0
    volume: float = 0.0
    reps: int = 0
    duration_seconds: int = 0
    volumes: list[float] = field(default_factory=list)


def accumulate_sessions(sessions: Sequence[WorkoutSession]) -> SessionTotals:
    """Walk every set of every session. Exercises and sets must be loaded."""
    totals = SessionTotals()
    for session in sessions:
        totals.duration_seconds += session.duration or 0
        session_volume = 0.0
        for exercise in session.exercises:
            for session_set in exercise.sets:
                totals.total_sets += 1
                if not session_set.completed:
                    continue
                totals.completed_sets += 1
                set_volume = session_set.volume
                if set_volume:
                    session_volume += set_volume
                    totals.reps += session_set.actual_reps
        totals.volume += session_volume
        totals.volumes.append(session_volume)
    return totals


class ProgressService:
    """Service for progress summaries."""

    def __init__(self, db: AsyncSession, user_id: int):
        """Initialize progress service.

        Args:
            db: Database session.
            user_id: User ID.
        """
        self.db = db
        self.user_id = user_id

    async def get_comprehensive(self, now: Optional[datetime] = None) -> dict:
        """Build the comprehensive progress summary.

        Queries run one after another on the request's session; any failure
        propagates and no partial summary is returned.

        Args:
            now: Reference time (defaults to the current UTC time).

        Returns:
            Summary dict with user, bodyMetrics, workoutMetrics,
            recentActivity and overallScores sections.
        """
        now = now or utcnow()

        user = await self.db.get(User, self.user_id)
        entries = await self._get_progress_entries()
        total_sessions, sessions_30d, sessions_7d = await self._count_sessions(now)
        recent_sessions = await self._get_recent_sessions()

        totals = accumulate_sessions(recent_sessions)
        average_seconds = totals.duration_seconds / len(recent_sessions) if recent_sessions else 0

        weight_points = [(entry.date, entry.weight) for entry in entries]
        body_fat_points = [(entry.date, entry.body_fat) for entry in entries]
        weight_trend_30d = calculate_trend(weight_points, LONG_WINDOW_DAYS, now)
        weight_trend_7d = calculate_trend(weight_points, SHORT_WINDOW_DAYS, now)
        body_fat_trend_30d = calculate_trend(body_fat_points, LONG_WINDOW_DAYS, now)

        consistency = consistency_score(sessions_30d)
        strength = strength_progress(totals.volumes)
        current = entries[0] if entries else None

        logger.debug(
            "Progress summary for user %s: %d entries, %d recent sessions",
            self.user_id, len(entries), len(recent_sessions),
        )

        return {
            "user": {
                "name": user.name if user else None,
                "member_since": user.created_at if user else None,
            },
            "body_metrics": {
                "current": current,
                "history": entries,
                "trends": {
                    "weight": {
                        "current": current.weight if current else None,
                        "trend_30d": weight_trend_30d,
                        "trend_7d": weight_trend_7d,
                    },
                    "body_fat": {
                        "current": current.body_fat if current else None,
                        "trend_30d": body_fat_trend_30d,
                    },
                },
            },
            "workout_metrics": {
                "total_sessions": total_sessions,
                "sessions_last_30_days": sessions_30d,
                "sessions_last_7_days": sessions_7d,
                "total_sets_completed": totals.completed_sets,
                "total_sets": totals.total_sets,
                "completion_rate": (
                    round(totals.completed_sets / totals.total_sets * 100)
                    if totals.total_sets
                    else 0
                ),
                "average_duration": round(average_seconds / 60),
                "total_weight_lifted": round(totals.volume),
                "total_reps": totals.reps,
                "consistency_score": round(consistency),
                "strength_progress": strength,
            },
            "recent_activity": [
                self._activity_item(session) for session in recent_sessions
            ],
            "overall_scores": {
                "consistency": round(consistency),
                "improvement": improvement_score(weight_trend_30d, strength, sessions_30d),
            },
        }

    async def _get_progress_entries(self) -> list[Progress]:
        result = await self.db.execute(
            select(Progress)
            .where(Progress.user_id == self.user_id)
            .order_by(Progress.date.desc(), Progress.id.desc())
            .limit(PROGRESS_HISTORY_LIMIT)
        )
        return list(result.scalars().all())

    async def _count_sessions(self, now: datetime) -> tuple[int, int, int]:
        """Total, last-30-day and last-7-day session counts in one query."""
        long_cutoff = now - timedelta(days=LONG_WINDOW_DAYS)
        short_cutoff = now - timedelta(days=SHORT_WINDOW_DAYS)
        result = await self.db.execute(
            select(
                func.count(WorkoutSession.id),
                func.coalesce(
                    func.sum(case((WorkoutSession.start_time >= long_cutoff, 1), else_=0)), 0
                ),
                func.coalesce(
                    func.sum(case((WorkoutSession.start_time >= short_cutoff, 1), else_=0)), 0
                ),
            ).where(WorkoutSession.user_id == self.user_id)
        )
        total, last_30, last_7 = result.one()
        return int(total), int(last_30), int(last_7)

    async def _get_recent_sessions(self) -> list[WorkoutSession]:
        result = await self.db.execute(
            select(WorkoutSession)
            .options(selectinload(WorkoutSession.exercises).selectinload(WorkoutSessionExercise.sets))
            .execution_options(populate_existing=True)
            .where(WorkoutSession.user_id == self.user_id)
            .order_by(WorkoutSession.start_time.desc())
            .limit(RECENT_SESSIONS_LIMIT)
        )
        return list(result.scalars().all())

    @staticmethod
    def _activity_item(session: WorkoutSession) -> dict:
        sets = [s for exercise in session.exercises for s in exercise.sets]
        return {
            "id": session.id,
            "date": session.start_time,
            "workout_name": session.workout_name,
            "duration": round(session.duration / 60) if session.duration else None,
            "sets_completed": sum(1 for s in sets if s.completed),
            "total_sets": len(sets),
        }


def get_progress_service(db: AsyncSession, user_id: int) -> ProgressService:
    """Factory function for ProgressService."""
    return ProgressService(db, user_id)
