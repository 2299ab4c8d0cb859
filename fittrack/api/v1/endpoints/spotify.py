"""Spotify connection, playlist and player endpoints.

Spotify payloads are passed through as Spotify returns them.
"""

import logging
from typing import Annotated, Any, AsyncIterator, Awaitable, Literal, Optional, TypeVar
from urllib.parse import quote

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from fittrack.api.v1.endpoints.auth import (
    SessionIdentity,
    get_current_user,
    get_optional_identity,
)
from fittrack.core.config import get_settings
from fittrack.core.database import get_db
from fittrack.core.session import consume_oauth_state, create_oauth_state
from fittrack.models.schemas import CamelModel, MessageResponse
from fittrack.models.user import User
from fittrack.services import spotify as spotify_service
from fittrack.services.spotify import (
    SpotifyAPIError,
    SpotifyAuthError,
    SpotifyClient,
    SpotifyError,
)

settings = get_settings()
router = APIRouter()
logger = logging.getLogger(__name__)

DEFAULT_PLAYLIST_DESCRIPTION = "Created by FitTrack for workout sessions"

T = TypeVar("T")


# -------------------------------------------------------------------------
# Request/Response Models
# -------------------------------------------------------------------------


class SpotifyAuthUrlResponse(CamelModel):
    auth_url: str


class PlaylistCreateRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None


class AddTracksRequest(CamelModel):
    uris: list[str] = Field(..., min_length=1)


class TransferPlaybackRequest(CamelModel):
    device_id: str = Field(..., min_length=1)
    play: bool = False


class PlayRequest(CamelModel):
    device_id: Optional[str] = None
    context_uri: Optional[str] = None
    uris: Optional[list[str]] = None
    position_ms: Optional[int] = Field(None, ge=0)


class SuccessResponse(CamelModel):
    success: bool = True


def _music_redirect(query: str) -> RedirectResponse:
    return RedirectResponse(
        url=f"{settings.app_base_url.rstrip('/')}/music?{query}",
        status_code=status.HTTP_302_FOUND,
    )


# -------------------------------------------------------------------------
# Dependencies
# -------------------------------------------------------------------------


async def get_spotify_http_client() -> AsyncIterator[httpx.AsyncClient]:
    """HTTP client for one request's Spotify calls."""
    async with httpx.AsyncClient(timeout=settings.spotify_timeout_seconds) as client:
        yield client


async def get_spotify_client(
    current_user: Annotated[User, Depends(get_current_user)],
    http_client: Annotated[httpx.AsyncClient, Depends(get_spotify_http_client)],
    db: AsyncSession = Depends(get_db),
) -> SpotifyClient:
    """Spotify client holding a valid token for the caller.

    Raises:
        HTTPException: 401 if Spotify is not connected or the token
            cannot be refreshed.
    """
    try:
        token = await spotify_service.get_valid_spotify_token(db, current_user, http_client)
    except SpotifyAuthError as e:
        logger.info("Spotify unavailable for user %s: %s", current_user.id, e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Spotify not connected or token expired",
        ) from e
    return SpotifyClient(token, http_client)


async def _spotify_call(call: Awaitable[T]) -> T:
    """Await a Spotify call, mapping its errors to HTTP responses."""
    try:
        return await call
    except SpotifyAuthError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Spotify not connected or token expired",
        ) from e
    except SpotifyAPIError as e:
        logger.warning("Spotify API error %s: %s", e.status_code, e)
        if e.status_code in (status.HTTP_403_FORBIDDEN, status.HTTP_404_NOT_FOUND):
            raise HTTPException(status_code=e.status_code, detail=str(e)) from e
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"error": "Spotify request failed", "details": str(e)},
        ) from e
    except SpotifyError as e:
        logger.error("Spotify request failed: %s", e)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Spotify request failed",
        ) from e


# -------------------------------------------------------------------------
# Connection
# -------------------------------------------------------------------------


@router.get("/auth", response_model=SpotifyAuthUrlResponse)
async def get_auth_url(
    current_user: Annotated[User, Depends(get_current_user)],
) -> SpotifyAuthUrlResponse:
    """Authorization URL carrying a fresh state token.

    Raises:
        HTTPException: 501 if Spotify credentials are not configured.
    """
    if not spotify_service.is_configured():
        raise HTTPException(
            status_code=status.HTTP_501_NOT_IMPLEMENTED,
            detail="Spotify integration not configured",
        )

    state = await create_oauth_state(current_user.id)
    return SpotifyAuthUrlResponse(auth_url=spotify_service.build_authorize_url(state))


@router.get("/callback")
async def spotify_callback(
    http_client: Annotated[httpx.AsyncClient, Depends(get_spotify_http_client)],
    identity: Annotated[Optional[SessionIdentity], Depends(get_optional_identity)],
    db: AsyncSession = Depends(get_db),
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
) -> RedirectResponse:
    """OAuth redirect target. Always answers with a redirect to the music page."""
    if error:
        return _music_redirect(f"error={quote(error)}")
    if not code or not state:
        return _music_redirect("error=missing_params")

    user_id = await consume_oauth_state(state)
    if user_id is None or (
        identity is not None and identity.user_id is not None and identity.user_id != user_id
    ):
        logger.warning("Spotify callback with invalid or expired state")
        return _music_redirect("error=invalid_state")

    user = await db.get(User, user_id)
    if user is None:
        return _music_redirect("error=invalid_state")

    try:
        tokens = await spotify_service.exchange_code_for_token(http_client, code)
    except SpotifyError as e:
        logger.error("Spotify code exchange failed for user %s: %s", user_id, e)
        return _music_redirect("error=callback_failed")

    spotify_service.store_tokens(user, tokens)
    await db.commit()

    logger.info("Spotify connected for user %s", user_id)
    return _music_redirect("connected=true")


@router.get("/me")
async def get_spotify_profile(
    current_user: Annotated[User, Depends(get_current_user)],
    http_client: Annotated[httpx.AsyncClient, Depends(get_spotify_http_client)],
    db: AsyncSession = Depends(get_db),
) -> Any:
    """Connection check. Not connected or rejected tokens answer 401."""
    try:
        token = await spotify_service.get_valid_spotify_token(db, current_user, http_client)
        profile = await SpotifyClient(token, http_client).get_current_user()
    except SpotifyError as e:
        logger.info("Spotify connection check failed for user %s: %s", current_user.id, e)
        return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content={"connected": False})

    return {
        "connected": True,
        "profile": {
            "id": profile.get("id"),
            "display_name": profile.get("display_name"),
            "images": profile.get("images", []),
        },
    }


@router.delete("/disconnect", response_model=MessageResponse)
async def disconnect_spotify(
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """Forget the stored Spotify tokens."""
    spotify_service.clear_tokens(current_user)
    await db.commit()
    return MessageResponse(message="Spotify disconnected")


# -------------------------------------------------------------------------
# Playlists, search and recommendations
# -------------------------------------------------------------------------


@router.get("/playlists")
async def get_playlists(
    spotify: Annotated[SpotifyClient, Depends(get_spotify_client)],
    playlist_type: str = Query("user", alias="type"),
    limit: int = Query(20, ge=1, le=50),
    offset: int = Query(0, ge=0),
) -> Any:
    """The user's playlists, featured playlists, or the workout category."""
    if playlist_type == "user":
        return await _spotify_call(spotify.get_user_playlists(limit, offset))
    if playlist_type == "featured":
        return await _spotify_call(spotify.get_featured_playlists(limit))
    if playlist_type == "workout":
        return await _spotify_call(spotify.get_workout_playlists(limit))
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid type")


@router.post("/playlists", status_code=status.HTTP_201_CREATED)
async def create_playlist(
    data: PlaylistCreateRequest,
    spotify: Annotated[SpotifyClient, Depends(get_spotify_client)],
) -> Any:
    """Create a private playlist on the caller's Spotify account."""
    profile = await _spotify_call(spotify.get_current_user())
    return await _spotify_call(
        spotify.create_playlist(
            profile["id"],
            data.name,
            data.description or DEFAULT_PLAYLIST_DESCRIPTION,
        )
    )


@router.get("/playlists/{playlist_id}/tracks")
async def get_playlist_tracks(
    playlist_id: str,
    spotify: Annotated[SpotifyClient, Depends(get_spotify_client)],
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
) -> Any:
    return await _spotify_call(spotify.get_playlist_tracks(playlist_id, limit, offset))


@router.post("/playlists/{playlist_id}/tracks", response_model=SuccessResponse)
async def add_playlist_tracks(
    playlist_id: str,
    data: AddTracksRequest,
    spotify: Annotated[SpotifyClient, Depends(get_spotify_client)],
) -> SuccessResponse:
    await _spotify_call(spotify.add_tracks_to_playlist(playlist_id, data.uris))
    return SuccessResponse()


@router.get("/search")
async def search(
    spotify: Annotated[SpotifyClient, Depends(get_spotify_client)],
    q: str = Query(..., min_length=1),
    search_type: Literal["track", "playlist", "artist", "album"] = Query("track", alias="type"),
    limit: int = Query(20, ge=1, le=50),
) -> Any:
    return await _spotify_call(spotify.search(q, search_type, limit))


@router.get("/recommendations")
async def get_recommendations(
    spotify: Annotated[SpotifyClient, Depends(get_spotify_client)],
    intensity: Literal["low", "medium", "high"] = Query("medium"),
    limit: int = Query(20, ge=1, le=100),
) -> Any:
    """Tracks matched to a workout intensity."""
    return await _spotify_call(spotify.get_workout_recommendations(intensity, limit))


# -------------------------------------------------------------------------
# Player
# -------------------------------------------------------------------------


@router.get("/player")
async def get_player(
    spotify: Annotated[SpotifyClient, Depends(get_spotify_client)],
) -> Any:
    """Current playback; ``playback`` is null when no device is active."""
    playback = await _spotify_call(spotify.get_playback_state())
    return {"playback": playback}


@router.get("/player/devices")
async def get_devices(
    spotify: Annotated[SpotifyClient, Depends(get_spotify_client)],
) -> Any:
    return await _spotify_call(spotify.get_available_devices())


@router.put("/player/transfer", response_model=SuccessResponse)
async def transfer_playback(
    data: TransferPlaybackRequest,
    spotify: Annotated[SpotifyClient, Depends(get_spotify_client)],
) -> SuccessResponse:
    await _spotify_call(spotify.transfer_playback(data.device_id, data.play))
    return SuccessResponse()


@router.put("/player/play", response_model=SuccessResponse)
async def play(
    data: PlayRequest,
    spotify: Annotated[SpotifyClient, Depends(get_spotify_client)],
) -> SuccessResponse:
    await _spotify_call(
        spotify.play(data.device_id, data.context_uri, data.uris, data.position_ms)
    )
    return SuccessResponse()


@router.put("/player/pause", response_model=SuccessResponse)
async def pause(
    spotify: Annotated[SpotifyClient, Depends(get_spotify_client)],
    device_id: Optional[str] = Query(None, alias="deviceId"),
) -> SuccessResponse:
    await _spotify_call(spotify.pause(device_id))
    return SuccessResponse()


@router.post("/player/next", response_model=SuccessResponse)
async def skip_next(
    spotify: Annotated[SpotifyClient, Depends(get_spotify_client)],
    device_id: Optional[str] = Query(None, alias="deviceId"),
) -> SuccessResponse:
    await _spotify_call(spotify.skip_to_next(device_id))
    return SuccessResponse()


@router.post("/player/previous", response_model=SuccessResponse)
async def skip_previous(
    spotify: Annotated[SpotifyClient, Depends(get_spotify_client)],
    device_id: Optional[str] = Query(None, alias="deviceId"),
) -> SuccessResponse:
    await _spotify_call(spotify.skip_to_previous(device_id))
    return SuccessResponse()


@router.put("/player/volume", response_model=SuccessResponse)
async def set_volume(
    spotify: Annotated[SpotifyClient, Depends(get_spotify_client)],
    volume_percent: int = Query(..., alias="volumePercent", ge=0, le=100),
    device_id: Optional[str] = Query(None, alias="deviceId"),
) -> SuccessResponse:
    await _spotify_call(spotify.set_volume(volume_percent, device_id))
    return SuccessResponse()


@router.put("/player/shuffle", response_model=SuccessResponse)
async def set_shuffle(
    spotify: Annotated[SpotifyClient, Depends(get_spotify_client)],
    state: bool = Query(...),
    device_id: Optional[str] = Query(None, alias="deviceId"),
) -> SuccessResponse:
    await _spotify_call(spotify.set_shuffle(state, device_id))
    return SuccessResponse()


@router.put("/player/repeat", response_model=SuccessResponse)
async def set_repeat(
    spotify: Annotated[SpotifyClient, Depends(get_spotify_client)],
    state: Literal["track", "context", "off"] = Query(...),
    device_id: Optional[str] = Query(None, alias="deviceId"),
) -> SuccessResponse:
    await _spotify_call(spotify.set_repeat_mode(state, device_id))
    return SuccessResponse()
