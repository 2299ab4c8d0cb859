"""Tests for workout session recording and history."""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fittrack.models.exercise import Exercise
from fittrack.models.user import User
from fittrack.models.workout import Workout
from fittrack.models.workout_session import (
    WorkoutSession,
    WorkoutSessionExercise,
    WorkoutSessionSet,
)
from fittrack.observability import get_metrics_backend


def _session_payload(workout: Workout, exercises: list[Exercise], **overrides) -> dict:
    start = datetime.now(timezone.utc) - timedelta(hours=1)
    payload = {
        "workoutId": workout.id,
        "startTime": start.isoformat(),
        "endTime": (start + timedelta(minutes=45)).isoformat(),
        "duration": 2_700_500,
        "notes": "Felt strong",
        "exercises": [
            {
                "exerciseId": exercises[0].id,
                "sets": [
                    {"targetReps": 10, "actualReps": 10, "targetWeight": 60, "completed": True},
                    {"targetReps": 10, "actualReps": 0, "targetWeight": 60, "actualWeight": 0,
                     "completed": False},
                ],
            },
            {
                "exerciseId": exercises[1].id,
                "sets": [{"targetReps": 15, "completed": True}],
            },
        ],
    }
    payload.update(overrides)
    return payload


async def _count(db_session: AsyncSession, model) -> int:
    result = await db_session.execute(select(func.count(model.id)))
    return result.scalar()


class TestRecordSession:
    """Tests for recording a completed session."""

    async def test_record_session(
        self,
        auth_client: AsyncClient,
        sample_workout: Workout,
        exercises: list[Exercise],
        db_session: AsyncSession,
    ):
        """Header, exercises and sets are all written."""
        response = await auth_client.post(
            "/api/workout-sessions", json=_session_payload(sample_workout, exercises)
        )

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Workout session saved successfully"

        session = await db_session.get(WorkoutSession, data["sessionId"])
        assert session.workout_name == "Full Body A"
        assert session.duration == 2700
        assert await _count(db_session, WorkoutSessionExercise) == 2
        assert await _count(db_session, WorkoutSessionSet) == 3

    async def test_actual_values_fall_back_only_when_missing(
        self,
        auth_client: AsyncClient,
        sample_workout: Workout,
        exercises: list[Exercise],
        db_session: AsyncSession,
    ):
        """A reported zero is kept; an omitted value copies the target."""
        await auth_client.post(
            "/api/workout-sessions", json=_session_payload(sample_workout, exercises)
        )

        result = await db_session.execute(
            select(WorkoutSessionSet).order_by(WorkoutSessionSet.id)
        )
        first, second, third = result.scalars().all()
        assert (first.actual_reps, first.actual_weight) == (10, 60)
        assert (second.actual_reps, second.actual_weight) == (0, 0)
        assert second.completed is False
        assert (third.set_number, third.actual_reps, third.actual_weight) == (1, 15, None)

    async def test_unknown_exercises_are_skipped(
        self,
        auth_client: AsyncClient,
        sample_workout: Workout,
        exercises: list[Exercise],
        db_session: AsyncSession,
    ):
        """Unknown references are dropped and the rest keep their original positions."""
        payload = _session_payload(sample_workout, exercises)
        payload["exercises"].insert(0, {"exerciseId": 9999, "sets": [{"targetReps": 5}]})

        response = await auth_client.post("/api/workout-sessions", json=payload)

        assert response.status_code == 200
        result = await db_session.execute(
            select(WorkoutSessionExercise.exercise_id, WorkoutSessionExercise.order)
            .order_by(WorkoutSessionExercise.order)
        )
        assert result.all() == [(exercises[0].id, 1), (exercises[1].id, 2)]

    async def test_missing_fields(
        self,
        auth_client: AsyncClient,
        sample_workout: Workout,
        exercises: list[Exercise],
        db_session: AsyncSession,
    ):
        payload = _session_payload(sample_workout, exercises)
        del payload["endTime"]

        response = await auth_client.post("/api/workout-sessions", json=payload)

        assert response.status_code == 400
        assert response.json()["error"] == "Missing required session data"
        assert await _count(db_session, WorkoutSession) == 0

    async def test_unknown_workout(
        self,
        auth_client: AsyncClient,
        sample_workout: Workout,
        exercises: list[Exercise],
    ):
        response = await auth_client.post(
            "/api/workout-sessions",
            json=_session_payload(sample_workout, exercises, workoutId=9999),
        )

        assert response.status_code == 404
        assert response.json()["error"] == "Workout not found"

    async def test_write_failure_leaves_nothing(
        self,
        auth_client: AsyncClient,
        sample_workout: Workout,
        exercises: list[Exercise],
        db_session: AsyncSession,
    ):
        """A commit failure after the tree is flushed rolls all of it back."""
        flushed: list[int] = []
        real_flush = AsyncSession.flush

        async def counting_flush(session, *args, **kwargs):
            await real_flush(session, *args, **kwargs)
            flushed.append(await _count(session, WorkoutSessionSet))

        with patch.object(AsyncSession, "flush", counting_flush), patch.object(
            AsyncSession, "commit", side_effect=RuntimeError("disk full")
        ):
            response = await auth_client.post(
                "/api/workout-sessions", json=_session_payload(sample_workout, exercises)
            )

        assert flushed and flushed[-1] == 3
        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error", "details": "disk full"}
        assert await _count(db_session, WorkoutSession) == 0
        assert await _count(db_session, WorkoutSessionExercise) == 0
        assert await _count(db_session, WorkoutSessionSet) == 0

    async def test_build_failure_leaves_nothing(
        self,
        auth_client: AsyncClient,
        sample_workout: Workout,
        exercises: list[Exercise],
        db_session: AsyncSession,
    ):
        with patch(
            "fittrack.api.v1.endpoints.workout_sessions._build_set",
            side_effect=RuntimeError("bad set"),
        ):
            response = await auth_client.post(
                "/api/workout-sessions", json=_session_payload(sample_workout, exercises)
            )

        assert response.status_code == 500
        assert response.json()["details"] == "bad set"
        assert await _count(db_session, WorkoutSession) == 0

    async def test_private_workout_of_another_user(
        self,
        other_client: AsyncClient,
        sample_workout: Workout,
        exercises: list[Exercise],
        db_session: AsyncSession,
    ):
        response = await other_client.post(
            "/api/workout-sessions", json=_session_payload(sample_workout, exercises)
        )

        assert response.status_code == 404
        assert response.json()["error"] == "Workout not found"
        assert await _count(db_session, WorkoutSession) == 0

    async def test_record_session_metrics(
        self,
        auth_client: AsyncClient,
        sample_workout: Workout,
        exercises: list[Exercise],
    ):
        await auth_client.post(
            "/api/workout-sessions", json=_session_payload(sample_workout, exercises)
        )

        rendered = get_metrics_backend().render_prometheus()
        assert "workout_session_writes_total" in rendered

    async def test_requires_auth(
        self,
        client: AsyncClient,
        sample_workout: Workout,
        exercises: list[Exercise],
    ):
        response = await client.post(
            "/api/workout-sessions", json=_session_payload(sample_workout, exercises)
        )

        assert response.status_code == 401


class TestSessionHistory:
    """Tests for history, recent and stats."""

    async def test_history_newest_first(
        self,
        auth_client: AsyncClient,
        test_user: User,
        sample_workout: Workout,
        exercises: list[Exercise],
        add_session,
    ):
        now = datetime.now(timezone.utc)
        older = await add_session(test_user, sample_workout, exercises[0], now - timedelta(days=2))
        newer = await add_session(
            test_user, sample_workout, exercises[0], now, sets=[(True, 10, 50.0)]
        )

        response = await auth_client.get("/api/workout-sessions/history")

        assert response.status_code == 200
        data = response.json()
        assert [s["id"] for s in data] == [newer.id, older.id]
        assert data[0]["exercises"][0]["name"] == exercises[0].name
        assert data[0]["exercises"][0]["sets"][0]["actualWeight"] == 50.0

    async def test_history_is_scoped_to_caller(
        self,
        other_client: AsyncClient,
        test_user: User,
        sample_workout: Workout,
        exercises: list[Exercise],
        add_session,
    ):
        await add_session(test_user, sample_workout, exercises[0], datetime.now(timezone.utc))

        response = await other_client.get("/api/workout-sessions/history")

        assert response.json() == []

    async def test_recent(
        self,
        auth_client: AsyncClient,
        test_user: User,
        sample_workout: Workout,
        exercises: list[Exercise],
        add_session,
    ):
        await add_session(test_user, sample_workout, exercises[0], datetime.now(timezone.utc))

        response = await auth_client.get("/api/workout-sessions/recent")

        assert len(response.json()) == 1

    async def test_stats(
        self,
        auth_client: AsyncClient,
        test_user: User,
        sample_workout: Workout,
        exercises: list[Exercise],
        add_session,
    ):
        now = datetime.now(timezone.utc)
        await add_session(test_user, sample_workout, exercises[0], now - timedelta(seconds=1), 1800)
        await add_session(test_user, sample_workout, exercises[0], now - timedelta(days=10), 3600)
        await add_session(test_user, sample_workout, exercises[0], now - timedelta(days=90), 3600)

        response = await auth_client.get("/api/workout-sessions/stats")

        assert response.status_code == 200
        stats = response.json()["stats"]
        assert stats["totalSessions"] == 3
        assert stats["totalWorkoutTime"] == 150
        assert stats["averageSessionTime"] == 50
        assert stats["recentSessions"] == 1
        assert stats["topWorkouts"] == [
            {"workoutId": sample_workout.id, "workoutName": "Full Body A", "sessions": 3}
        ]

        weekly = stats["weeklyProgress"]
        assert len(weekly) == 8
        assert weekly[-1]["week"] == "Week This"
        assert weekly[0]["week"] == "Week 7"
        assert sum(w["sessions"] for w in weekly) == 2
        assert weekly[-1]["sessions"] == 1
        assert weekly[-1]["totalMinutes"] == 30

    async def test_stats_empty(self, auth_client: AsyncClient):
        response = await auth_client.get("/api/workout-sessions/stats")

        stats = response.json()["stats"]
        assert stats["totalSessions"] == 0
        assert stats["averageSessionTime"] == 0
        assert all(w["sessions"] == 0 for w in stats["weeklyProgress"])
