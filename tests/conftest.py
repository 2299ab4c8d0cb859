"""Pytest configuration and fixtures for API tests."""

from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator
from unittest.mock import patch

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy import StaticPool, event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from fittrack.core.database import Base, get_db
from fittrack.core.security import get_password_hash
from fittrack.main import app as main_app

# Import all models to ensure they're registered with Base
from fittrack.models import (
    Exercise,
    Progress,
    User,
    Workout,
    WorkoutExercise,
    WorkoutSession,
    WorkoutSessionExercise,
    WorkoutSessionSet,
)
from fittrack.models.user import ROLE_ADMIN

TEST_PASSWORD = "testpassword123"


# -------------------------------------------------------------------------
# Database Fixtures
# -------------------------------------------------------------------------


@pytest.fixture
async def async_engine():
    """Create an async SQLite engine for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # ON DELETE CASCADE / SET NULL are enforced by the database
    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for testing."""
    async_session_maker = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with async_session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def app(db_session: AsyncSession) -> FastAPI:
    """Create a FastAPI app instance with test database."""

    async def override_get_db():
        yield db_session

    main_app.dependency_overrides[get_db] = override_get_db
    yield main_app
    main_app.dependency_overrides.clear()


# -------------------------------------------------------------------------
# Session Fixtures
# -------------------------------------------------------------------------


@pytest.fixture
def session_store():
    """In-memory replacement for the Redis session store."""
    store: dict[str, dict] = {}

    async def mock_create_session(user_id: int, user_data: dict) -> str:
        session_id = f"test_session_{user_id}"
        store[session_id] = {"user_id": user_id, **user_data}
        return session_id

    async def mock_get_session(session_id: str) -> dict | None:
        return store.get(session_id)

    async def mock_delete_session(session_id: str) -> None:
        store.pop(session_id, None)

    # Patch at the location where it's imported, not where it's defined
    with patch("fittrack.api.v1.endpoints.auth.get_session", mock_get_session):
        with patch("fittrack.api.v1.endpoints.auth.create_session", mock_create_session):
            with patch("fittrack.api.v1.endpoints.auth.delete_session", mock_delete_session):
                yield store


@pytest.fixture
async def client(app: FastAPI, session_store: dict) -> AsyncGenerator[AsyncClient, None]:
    """Create an anonymous HTTP client for testing."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def make_client(app: FastAPI, session_store: dict):
    """Factory for HTTP clients signed in as a given user."""

    def _make(user: User) -> AsyncClient:
        session_id = f"test_session_{user.id}"
        session_store[session_id] = {
            "user_id": user.id,
            "email": user.email,
            "name": user.name,
            "image": user.image,
        }
        return AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
            cookies={"session_id": session_id},
        )

    return _make


# -------------------------------------------------------------------------
# User Fixtures
# -------------------------------------------------------------------------


async def _create_user(db_session: AsyncSession, **fields) -> User:
    user = User(password_hash=get_password_hash(TEST_PASSWORD), **fields)
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
async def test_user(db_session: AsyncSession) -> User:
    """Create a test user."""
    return await _create_user(db_session, email="test@example.com", name="Test User")


@pytest.fixture
async def other_user(db_session: AsyncSession) -> User:
    """A second, unrelated account."""
    return await _create_user(db_session, email="other@example.com", name="Other User")


@pytest.fixture
async def admin_user(db_session: AsyncSession) -> User:
    """An account with the admin role."""
    return await _create_user(
        db_session, email="admin@example.com", name="Admin User", role=ROLE_ADMIN
    )


@pytest.fixture
async def auth_client(make_client, test_user: User) -> AsyncGenerator[AsyncClient, None]:
    """Create an authenticated HTTP client."""
    async with make_client(test_user) as ac:
        yield ac


@pytest.fixture
async def other_client(make_client, other_user: User) -> AsyncGenerator[AsyncClient, None]:
    async with make_client(other_user) as ac:
        yield ac


@pytest.fixture
async def admin_client(make_client, admin_user: User) -> AsyncGenerator[AsyncClient, None]:
    async with make_client(admin_user) as ac:
        yield ac


# -------------------------------------------------------------------------
# Catalog and Training Fixtures
# -------------------------------------------------------------------------


@pytest.fixture
async def exercises(db_session: AsyncSession) -> list[Exercise]:
    """A small system catalog spanning several muscle groups."""
    rows = [
        Exercise(name="Bench Press", muscle_group="chest", difficulty="intermediate",
                 description="Barbell press on a flat bench"),
        Exercise(name="Push-Up", muscle_group="chest", difficulty="beginner",
                 description="Bodyweight press"),
        Exercise(name="Squat", muscle_group="legs", difficulty="intermediate",
                 description="Barbell back squat"),
        Exercise(name="Deadlift", muscle_group="back", difficulty="advanced",
                 description="Conventional deadlift"),
        Exercise(name="Plank", muscle_group="core", difficulty="beginner",
                 description="Isometric core hold"),
    ]
    db_session.add_all(rows)
    await db_session.commit()
    return rows


@pytest.fixture
async def sample_workout(
    db_session: AsyncSession,
    test_user: User,
    exercises: list[Exercise],
) -> Workout:
    """A three-exercise workout owned by the test user."""
    workout = Workout(user_id=test_user.id, name="Full Body A", description="Starter routine")
    for index, exercise in enumerate(exercises[:3]):
        workout.exercises.append(
            WorkoutExercise(exercise_id=exercise.id, sets=3, reps=10, weight=20.0, order=index)
        )
    db_session.add(workout)
    await db_session.commit()
    return workout


@pytest.fixture
def add_session(db_session: AsyncSession):
    """Factory inserting a recorded session with one exercise and its sets."""

    async def _add(
        user: User,
        workout: Workout,
        exercise: Exercise,
        start_time: datetime,
        duration: int = 3600,
        sets: list[tuple[bool, int, float]] | None = None,
    ) -> WorkoutSession:
        session = WorkoutSession(
            user_id=user.id,
            workout_id=workout.id,
            workout_name=workout.name,
            start_time=start_time,
            end_time=start_time + timedelta(seconds=duration),
            duration=duration,
        )
        session_exercise = WorkoutSessionExercise(exercise_id=exercise.id, order=0)
        for number, (completed, reps, weight) in enumerate(sets or [], start=1):
            session_exercise.sets.append(
                WorkoutSessionSet(
                    set_number=number,
                    target_reps=reps,
                    actual_reps=reps,
                    target_weight=weight,
                    actual_weight=weight,
                    completed=completed,
                )
            )
        session.exercises.append(session_exercise)
        db_session.add(session)
        await db_session.commit()
        return session

    return _add


@pytest.fixture
async def progress_entries(db_session: AsyncSession, test_user: User) -> list[Progress]:
    """Weight entries 20 days and 1 day ago."""
    now = datetime.now(timezone.utc)
    entries = [
        Progress(user_id=test_user.id, date=now - timedelta(days=20), weight=82.0, body_fat=20.0),
        Progress(user_id=test_user.id, date=now - timedelta(days=1), weight=80.0, body_fat=19.0),
    ]
    db_session.add_all(entries)
    await db_session.commit()
    return entries
