"""Server-side login sessions stored in Redis."""

import json
import secrets
from datetime import datetime, timezone
from typing import Any, Optional

import redis.asyncio as redis

from fittrack.core.config import get_settings

settings = get_settings()

SESSION_KEY_PREFIX = "session:"
OAUTH_STATE_KEY_PREFIX = "spotify_state:"
OAUTH_STATE_TTL_SECONDS = 600

# Redis client (initialized lazily)
_redis_client: Optional[redis.Redis] = None


async def get_redis() -> redis.Redis:
    """Get Redis client instance."""
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
        )
    return _redis_client


def generate_session_id() -> str:
    """Generate a secure random session ID."""
    return secrets.token_urlsafe(32)


async def create_session(user_id: int, user_data: dict[str, Any]) -> str:
    """Create a new session.

    Args:
        user_id: User ID to store in session.
        user_data: Identity fields (email, name) carried with the session.

    Returns:
        Session ID.
    """
    redis_client = await get_redis()
    session_id = generate_session_id()

    session_data = {
        "user_id": user_id,
        "created_at": datetime.now(timezone.utc).isoformat(),
        **user_data,
    }

    await redis_client.setex(
        f"{SESSION_KEY_PREFIX}{session_id}",
        settings.session_ttl_seconds,
        json.dumps(session_data),
    )

    return session_id


async def get_session(session_id: str) -> Optional[dict[str, Any]]:
    """Get session data, or None if not found/expired."""
    redis_client = await get_redis()
    data = await redis_client.get(f"{SESSION_KEY_PREFIX}{session_id}")

    if data is None:
        return None

    return json.loads(data)


async def delete_session(session_id: str) -> bool:
    """Delete a session. Returns True if a session was removed."""
    redis_client = await get_redis()
    result = await redis_client.delete(f"{SESSION_KEY_PREFIX}{session_id}")
    return result > 0


async def create_oauth_state(user_id: int) -> str:
    """Issue a single-use Spotify OAuth state token bound to ``user_id``."""
    redis_client = await get_redis()
    state = secrets.token_urlsafe(32)
    await redis_client.setex(
        f"{OAUTH_STATE_KEY_PREFIX}{state}",
        OAUTH_STATE_TTL_SECONDS,
        str(user_id),
    )
    return state


async def consume_oauth_state(state: str) -> Optional[int]:
    """Take a state token. Returns its user id, or None if unknown or expired."""
    redis_client = await get_redis()
    value = await redis_client.getdel(f"{OAUTH_STATE_KEY_PREFIX}{state}")
    if value is None:
        return None
    return int(value)
