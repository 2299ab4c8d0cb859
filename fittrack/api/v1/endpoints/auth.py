"""Authentication endpoints and request identity dependencies.

Paths:
  /api/auth/register, /login, /logout, /me, /check-admin
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Annotated, Any, Optional

from fastapi import APIRouter, Cookie, Depends, HTTPException, Response, status
from pydantic import EmailStr, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fittrack.core.config import get_settings
from fittrack.core.database import get_db
from fittrack.core.security import get_password_hash, verify_password
from fittrack.core.session import create_session, delete_session, get_session
from fittrack.models.schemas import CamelModel
from fittrack.models.user import User

settings = get_settings()
router = APIRouter()
logger = logging.getLogger(__name__)

SESSION_COOKIE_NAME = "session_id"


# -------------------------------------------------------------------------
# Request/Response Models
# -------------------------------------------------------------------------


class RegisterRequest(CamelModel):
    """Request body for password sign-up."""

    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=1)


class LoginRequest(CamelModel):
    """Request body for password login."""

    email: EmailStr
    password: str


class UserResponse(CamelModel):
    """Public view of an account."""

    id: int
    email: str
    name: str | None
    image: str | None = None
    role: str
    onboarding_completed: bool
    last_login_at: datetime | None = None
    created_at: datetime | None = None


class RegisterResponse(CamelModel):
    """Response for a successful sign-up."""

    message: str
    user: UserResponse


class LoginResponse(CamelModel):
    """Response for successful login."""

    success: bool
    message: str
    user: UserResponse


class AdminCheckResponse(CamelModel):
    """Whether the caller has the admin role."""

    is_admin: bool


# -------------------------------------------------------------------------
# Dependencies
# -------------------------------------------------------------------------


@dataclass
class SessionIdentity:
    """Who the session says the caller is."""

    user_id: Optional[int]
    email: str
    name: Optional[str] = None
    image: Optional[str] = None


async def get_optional_identity(
    session_id: Annotated[str | None, Cookie(alias=SESSION_COOKIE_NAME)] = None,
) -> Optional[SessionIdentity]:
    """Resolve the session cookie, or None for anonymous callers."""
    if not session_id:
        return None

    session_data = await get_session(session_id)
    if not session_data or not session_data.get("email"):
        return None

    return SessionIdentity(
        user_id=session_data.get("user_id"),
        email=session_data["email"],
        name=session_data.get("name"),
        image=session_data.get("image"),
    )


async def get_current_identity(
    identity: Annotated[Optional[SessionIdentity], Depends(get_optional_identity)],
) -> SessionIdentity:
    """Require a valid session.

    Raises:
        HTTPException: 401 if not authenticated.
    """
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )
    return identity


async def _find_user(db: AsyncSession, identity: SessionIdentity) -> Optional[User]:
    if identity.user_id is not None:
        result = await db.execute(select(User).where(User.id == identity.user_id))
        user = result.scalar_one_or_none()
        if user:
            return user
    result = await db.execute(select(User).where(User.email == identity.email))
    return result.scalar_one_or_none()


async def get_current_user(
    identity: Annotated[SessionIdentity, Depends(get_current_identity)],
    db: AsyncSession = Depends(get_db),
) -> User:
    """Get the authenticated user's row.

    Raises:
        HTTPException: 401 if not authenticated or the account is gone.
    """
    user = await _find_user(db, identity)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )
    return user


async def get_optional_user(
    identity: Annotated[Optional[SessionIdentity], Depends(get_optional_identity)],
    db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    """Get the caller's row if signed in, else None."""
    if identity is None:
        return None
    return await _find_user(db, identity)


async def get_or_create_current_user(
    identity: Annotated[SessionIdentity, Depends(get_current_identity)],
    db: AsyncSession = Depends(get_db),
) -> User:
    """Get the caller's row, creating it on first use.

    Sessions issued by an external sign-in can precede the local account
    row; the row is created from the identity the session carries.
    """
    user = await _find_user(db, identity)
    if user:
        return user

    logger.info("Creating local account for first-time sign-in %s", identity.email)
    user = User(
        email=identity.email,
        name=identity.name or "Unknown",
        image=identity.image,
        onboarding_completed=False,
    )
    db.add(user)
    await db.flush()
    return user


async def require_admin(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    """Require the admin role, read from the database on every request.

    Raises:
        HTTPException: 403 if the caller is not an admin.
    """
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return current_user


def build_user_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        email=user.email,
        name=user.name,
        image=user.image,
        role=user.role,
        onboarding_completed=user.onboarding_completed,
        last_login_at=user.last_login_at,
        created_at=user.created_at,
    )


# -------------------------------------------------------------------------
# Endpoints
# -------------------------------------------------------------------------


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    db: AsyncSession = Depends(get_db),
) -> RegisterResponse:
    """Create a password-based account.

    Raises:
        HTTPException: 409 if the email is already registered.
    """
    result = await db.execute(select(User).where(User.email == request.email))
    if result.scalar_one_or_none():
        logger.info("Registration rejected, email already exists: %s", request.email)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User with this email already exists",
        )

    user = User(
        name=request.name,
        email=request.email,
        password_hash=get_password_hash(request.password),
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)

    return RegisterResponse(
        message="User registered successfully",
        user=build_user_response(user),
    )


@router.post("/login", response_model=LoginResponse)
async def login(
    request: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
) -> LoginResponse:
    """Login with email and password.

    Raises:
        HTTPException: 401 if credentials are invalid.
    """
    result = await db.execute(select(User).where(User.email == request.email))
    user = result.scalar_one_or_none()

    if not user or not verify_password(request.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
        )

    user.last_login_at = datetime.now(timezone.utc)
    await db.commit()
    await db.refresh(user)

    session_id = await create_session(
        user_id=user.id,
        user_data={
            "email": user.email,
            "name": user.name,
            "image": user.image,
        },
    )

    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=session_id,
        httponly=True,
        secure=settings.cookie_secure,
        samesite=settings.cookie_samesite,
        max_age=settings.session_ttl_seconds,
    )

    return LoginResponse(
        success=True,
        message="Login successful",
        user=build_user_response(user),
    )


@router.post("/logout")
async def logout(
    response: Response,
    session_id: Annotated[str | None, Cookie(alias=SESSION_COOKIE_NAME)] = None,
) -> dict[str, Any]:
    """Logout and invalidate session."""
    if session_id:
        await delete_session(session_id)

    response.delete_cookie(
        key=SESSION_COOKIE_NAME,
        httponly=True,
        secure=settings.cookie_secure,
        samesite=settings.cookie_samesite,
    )

    return {"success": True, "message": "Logged out successfully"}


@router.get("/me", response_model=UserResponse)
async def get_me(
    current_user: Annotated[User, Depends(get_current_user)],
) -> UserResponse:
    """Get current authenticated user."""
    return build_user_response(current_user)


@router.get("/check-admin", response_model=AdminCheckResponse)
async def check_admin(
    current_user: Annotated[Optional[User], Depends(get_optional_user)],
) -> AdminCheckResponse:
    """Report whether the caller is an admin. Anonymous callers get False."""
    return AdminCheckResponse(is_admin=bool(current_user and current_user.is_admin))
