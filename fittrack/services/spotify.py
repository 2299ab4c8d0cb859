"""Spotify Web API client and OAuth token helpers.

All calls go through httpx and are recorded as external API metrics
under the ``spotify`` provider.
"""

import logging
import time
from datetime import timedelta
from typing import Any, Optional
from urllib.parse import urlencode

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from fittrack.core.config import get_settings
from fittrack.models.base import as_utc, utcnow
from fittrack.models.user import User
from fittrack.observability import get_metrics_backend

logger = logging.getLogger(__name__)
settings = get_settings()

PROVIDER = "spotify"

RECOMMENDATION_SEED_GENRES = "pop,rock,electronic"
WORKOUT_CATEGORY_ID = "workout"

# Target audio features per workout intensity
INTENSITY_TARGETS = {
    "low": {"target_energy": 0.3, "target_valence": 0.5, "target_tempo": 100},
    "medium": {"target_energy": 0.7, "target_valence": 0.7, "target_tempo": 128},
    "high": {"target_energy": 0.9, "target_valence": 0.8, "target_tempo": 140},
}


class SpotifyError(Exception):
    """Base exception for Spotify integration errors."""

    pass


class SpotifyAuthError(SpotifyError):
    """No usable token: not connected, expired, or rejected by Spotify."""

    pass


class SpotifyAPIError(SpotifyError):
    """Spotify answered with a non-auth error status."""

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


def is_configured() -> bool:
    return bool(settings.spotify_client_id and settings.spotify_client_secret)


def _observe(operation: str, status_code: int, start_time: float) -> None:
    duration_ms = (time.perf_counter() - start_time) * 1000
    get_metrics_backend().observe_external_api(PROVIDER, operation, status_code, duration_ms)
    logger.info(
        "Spotify API %s status=%s duration_ms=%.2f",
        operation,
        status_code,
        duration_ms,
    )


def build_authorize_url(state: str) -> str:
    """Authorization URL the browser is sent to."""
    params = {
        "response_type": "code",
        "client_id": settings.spotify_client_id,
        "scope": settings.spotify_scopes,
        "redirect_uri": settings.spotify_redirect_uri,
        "state": state,
    }
    return f"{settings.spotify_accounts_url}/authorize?{urlencode(params)}"


async def _token_request(
    client: httpx.AsyncClient,
    operation: str,
    data: dict[str, str],
) -> dict[str, Any]:
    start_time = time.perf_counter()
    status_code = 500
    try:
        response = await client.post(
            f"{settings.spotify_accounts_url}/api/token",
            data=data,
            auth=(settings.spotify_client_id or "", settings.spotify_client_secret or ""),
        )
        status_code = response.status_code
        response.raise_for_status()
        return response.json()
    except httpx.HTTPStatusError as e:
        raise SpotifyAuthError(f"Token request failed: {e.response.status_code}") from e
    except httpx.HTTPError as e:
        raise SpotifyError(f"Token request failed: {e}") from e
    finally:
        _observe(operation, status_code, start_time)


async def exchange_code_for_token(client: httpx.AsyncClient, code: str) -> dict[str, Any]:
    """Trade an authorization code for access and refresh tokens.

    Raises:
        SpotifyAuthError: If Spotify rejects the code.
        SpotifyError: On transport failure.
    """
    return await _token_request(
        client,
        "oauth_token",
        {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": settings.spotify_redirect_uri,
        },
    )


async def refresh_access_token(client: httpx.AsyncClient, refresh_token: str) -> dict[str, Any]:
    """Get a fresh access token from a refresh token."""
    return await _token_request(
        client,
        "oauth_refresh",
        {"grant_type": "refresh_token", "refresh_token": refresh_token},
    )


def store_tokens(user: User, tokens: dict[str, Any]) -> None:
    """Copy a token response onto the user. Spotify may omit the refresh token."""
    user.spotify_access_token = tokens["access_token"]
    if tokens.get("refresh_token"):
        user.spotify_refresh_token = tokens["refresh_token"]
    user.spotify_token_expiry = utcnow() + timedelta(seconds=int(tokens.get("expires_in", 3600)))


def clear_tokens(user: User) -> None:
    user.spotify_access_token = None
    user.spotify_refresh_token = None
    user.spotify_token_expiry = None


async def get_valid_spotify_token(
    db: AsyncSession,
    user: User,
    client: httpx.AsyncClient,
) -> str:
    """Return a usable access token, refreshing it first when expired.

    The refresh is a single blocking round-trip with no retry; the new
    token is committed before it is returned.

    Raises:
        SpotifyAuthError: If the user is not connected or the refresh fails.
    """
    if not user.spotify_access_token:
        raise SpotifyAuthError("No Spotify token found")

    expiry = as_utc(user.spotify_token_expiry) if user.spotify_token_expiry else None
    if expiry and utcnow() >= expiry and user.spotify_refresh_token:
        try:
            tokens = await refresh_access_token(client, user.spotify_refresh_token)
        except SpotifyError as e:
            logger.warning("Spotify token refresh failed for user %s: %s", user.id, e)
            raise SpotifyAuthError("Failed to refresh Spotify token") from e

        store_tokens(user, tokens)
        await db.commit()
        logger.info("Refreshed Spotify token for user %s", user.id)

    return user.spotify_access_token


class SpotifyClient:
    """Thin wrapper over the Spotify Web API for one user's token."""

    def __init__(self, access_token: str, client: httpx.AsyncClient):
        self._access_token = access_token
        self._client = client

    async def _request(
        self,
        method: str,
        path: str,
        operation: str,
        params: Optional[dict[str, Any]] = None,
        json: Optional[dict[str, Any]] = None,
    ) -> Any:
        """Send one API request.

        Returns:
            Decoded JSON body, or None for empty responses.

        Raises:
            SpotifyAuthError: On 401.
            SpotifyAPIError: On any other error status.
            SpotifyError: On transport failure.
        """
        start_time = time.perf_counter()
        status_code = 500
        try:
            response = await self._client.request(
                method,
                f"{settings.spotify_api_url}{path}",
                params={k: v for k, v in (params or {}).items() if v is not None},
                json=json,
                headers={"Authorization": f"Bearer {self._access_token}"},
            )
            status_code = response.status_code
        except httpx.HTTPError as e:
            raise SpotifyError(f"Spotify request failed: {e}") from e
        finally:
            _observe(operation, status_code, start_time)

        if status_code == 401:
            raise SpotifyAuthError("Spotify token expired")
        if status_code >= 400:
            raise SpotifyAPIError(f"Spotify API error: {response.reason_phrase}", status_code)
        if status_code == 204 or not response.content:
            return None
        return response.json()

    # Profile

    async def get_current_user(self) -> dict[str, Any]:
        return await self._request("GET", "/me", "get_current_user")

    # Playlists

    async def get_user_playlists(self, limit: int = 20, offset: int = 0) -> dict[str, Any]:
        return await self._request(
            "GET", "/me/playlists", "get_user_playlists",
            params={"limit": limit, "offset": offset},
        )

    async def get_playlist_tracks(
        self, playlist_id: str, limit: int = 50, offset: int = 0
    ) -> dict[str, Any]:
        return await self._request(
            "GET", f"/playlists/{playlist_id}/tracks", "get_playlist_tracks",
            params={"limit": limit, "offset": offset},
        )

    async def get_featured_playlists(self, limit: int = 20) -> dict[str, Any]:
        return await self._request(
            "GET", "/browse/featured-playlists", "get_featured_playlists",
            params={"limit": limit},
        )

    async def get_category_playlists(self, category_id: str, limit: int = 20) -> dict[str, Any]:
        return await self._request(
            "GET", f"/browse/categories/{category_id}/playlists", "get_category_playlists",
            params={"limit": limit},
        )

    async def get_workout_playlists(self, limit: int = 20) -> dict[str, Any]:
        return await self.get_category_playlists(WORKOUT_CATEGORY_ID, limit)

    async def create_playlist(
        self, spotify_user_id: str, name: str, description: str
    ) -> dict[str, Any]:
        """Create a private playlist owned by the Spotify user."""
        return await self._request(
            "POST", f"/users/{spotify_user_id}/playlists", "create_playlist",
            json={"name": name, "description": description, "public": False},
        )

    async def add_tracks_to_playlist(self, playlist_id: str, uris: list[str]) -> Any:
        return await self._request(
            "POST", f"/playlists/{playlist_id}/tracks", "add_tracks",
            json={"uris": uris},
        )

    # Search and recommendations

    async def search(self, query: str, search_type: str = "track", limit: int = 20) -> dict[str, Any]:
        return await self._request(
            "GET", "/search", "search",
            params={"q": query, "type": search_type, "limit": limit},
        )

    async def get_workout_recommendations(
        self, intensity: str = "medium", limit: int = 20
    ) -> dict[str, Any]:
        """Tracks tuned to the energy, valence and tempo of an intensity level."""
        params = {"seed_genres": RECOMMENDATION_SEED_GENRES, "limit": limit}
        params.update(INTENSITY_TARGETS[intensity])
        return await self._request("GET", "/recommendations", "get_recommendations", params=params)

    # Player

    async def get_playback_state(self) -> Optional[dict[str, Any]]:
        """Current playback, or None when no device is active."""
        return await self._request("GET", "/me/player", "get_playback_state")

    async def get_available_devices(self) -> dict[str, Any]:
        return await self._request("GET", "/me/player/devices", "get_devices")

    async def transfer_playback(self, device_id: str, play: bool = False) -> None:
        await self._request(
            "PUT", "/me/player", "transfer_playback",
            json={"device_ids": [device_id], "play": play},
        )

    async def play(
        self,
        device_id: Optional[str] = None,
        context_uri: Optional[str] = None,
        uris: Optional[list[str]] = None,
        position_ms: Optional[int] = None,
    ) -> None:
        body: dict[str, Any] = {}
        if context_uri:
            body["context_uri"] = context_uri
        if uris:
            body["uris"] = uris
        if position_ms:
            body["position_ms"] = position_ms
        await self._request(
            "PUT", "/me/player/play", "play",
            params={"device_id": device_id},
            json=body or None,
        )

    async def pause(self, device_id: Optional[str] = None) -> None:
        await self._request("PUT", "/me/player/pause", "pause", params={"device_id": device_id})

    async def skip_to_next(self, device_id: Optional[str] = None) -> None:
        await self._request("POST", "/me/player/next", "next", params={"device_id": device_id})

    async def skip_to_previous(self, device_id: Optional[str] = None) -> None:
        await self._request(
            "POST", "/me/player/previous", "previous", params={"device_id": device_id}
        )

    async def set_volume(self, volume_percent: int, device_id: Optional[str] = None) -> None:
        await self._request(
            "PUT", "/me/player/volume", "set_volume",
            params={"volume_percent": volume_percent, "device_id": device_id},
        )

    async def set_shuffle(self, state: bool, device_id: Optional[str] = None) -> None:
        await self._request(
            "PUT", "/me/player/shuffle", "set_shuffle",
            params={"state": "true" if state else "false", "device_id": device_id},
        )

    async def set_repeat_mode(self, state: str, device_id: Optional[str] = None) -> None:
        await self._request(
            "PUT", "/me/player/repeat", "set_repeat",
            params={"state": state, "device_id": device_id},
        )
