"""Auth routes: register, login, refresh, logout, me.

Route overview:
  POST /register  self-registration (always an operational user)
  POST /login     email + password login, sets the refresh cookie
  POST /refresh   rotate the refresh cookie, issue a new access token
  POST /logout    revoke the refresh cookie's token and clear it
  GET  /me        return the current user
"""

import logging

from fastapi import APIRouter, Cookie, Depends, HTTPException, Request, Response, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bbm.auth.deps import get_current_user
from bbm.auth.jwt import create_access_token
from bbm.auth.password import hash_password, verify_password
from bbm.auth.tokens import (
    create_refresh_token,
    delete_refresh_token,
    rotate_refresh_token,
)
from bbm.config import settings
from bbm.database import get_db
from bbm.models.enums import UserRole
from bbm.models.system_log import LogAction
from bbm.models.user import User
from bbm.schemas.auth import (
    LoginRequest,
    RegisterRequest,
    TokenResponse,
    UserEnvelope,
    UserOut,
)
from bbm.schemas.common import MessageResponse
from bbm.utils.activity import log_activity

logger = logging.getLogger(__name__)

router = APIRouter()

REFRESH_COOKIE_PATH = "/auth"


# ── Helpers ──────────────────────────────────────────────────

def _access_token_for(user: User) -> str:
    return create_access_token(
        user_id=user.id,
        email=user.email,
        role=user.role,
        location=user.location.value if user.location else None,
    )


def _set_refresh_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.refresh_cookie_name,
        value=token,
        max_age=settings.refresh_token_expire_days * 24 * 3600,
        httponly=True,
        secure=settings.environment == "production",
        samesite="lax",
        path=REFRESH_COOKIE_PATH,
    )


def _clear_refresh_cookie(response: Response) -> None:
    response.delete_cookie(key=settings.refresh_cookie_name, path=REFRESH_COOKIE_PATH)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


# ── POST /register ──────────────────────────────────────────

@router.post("/register", response_model=UserEnvelope, status_code=status.HTTP_201_CREATED)
async def register(
    body: RegisterRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """Self-registration. Admin accounts are created by an admin or the CLI."""
    existing = await db.execute(select(User).where(User.email == body.email))
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=400, detail="Email already registered")

    user = User(
        email=body.email,
        hashed_password=hash_password(body.password),
        name=body.name,
        role=UserRole.OPERATIONAL,
        location=body.location,
    )
    db.add(user)
    await db.flush()
    await db.refresh(user)

    await log_activity(
        db, request, user,
        action=LogAction.USER_CREATED,
        entity_type="user",
        entity_id=user.id,
        details=f"Self-registered {user.email}",
    )
    return UserEnvelope(user=UserOut.model_validate(user))


# ── POST /login ──────────────────────────────────────────────

@router.post("/login", response_model=TokenResponse)
async def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    """Email + password login. The refresh token travels only in the cookie."""
    result = await db.execute(select(User).where(User.email == body.email))
    user = result.scalar_one_or_none()

    if not user or not verify_password(body.password, user.hashed_password):
        await log_activity(
            db, request, user,
            action=LogAction.LOGIN_FAILED,
            entity_type="user",
            entity_id=user.id if user else None,
            details=f"Failed login for {body.email}",
        )
        # Keep the audit row; the error below rolls the session back
        await db.commit()
        logger.warning("Failed login attempt for %s", body.email)
        raise _unauthorized("Invalid email or password")

    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is deactivated")

    refresh_token = await create_refresh_token(db, user.id)
    _set_refresh_cookie(response, refresh_token)

    await log_activity(
        db, request, user,
        action=LogAction.LOGIN,
        entity_type="user",
        entity_id=user.id,
    )
    return TokenResponse(
        user=UserOut.model_validate(user),
        access_token=_access_token_for(user),
    )


# ── POST /refresh ────────────────────────────────────────────

@router.post("/refresh", response_model=TokenResponse)
async def refresh(
    request: Request,
    response: Response,
    refresh_token: str | None = Cookie(None, alias=settings.refresh_cookie_name),
    db: AsyncSession = Depends(get_db),
):
    """Exchange the refresh cookie for a new access token (and a new cookie)."""
    if not refresh_token:
        raise _unauthorized("Refresh token missing")

    rotated = await rotate_refresh_token(db, refresh_token)
    if rotated is None:
        # Expired rows were deleted by the rotation; keep that
        await db.commit()
        raise _unauthorized("Invalid or expired refresh token")

    new_token, user_id = rotated
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user or not user.is_active:
        raise _unauthorized("User not found or inactive")

    _set_refresh_cookie(response, new_token)
    await log_activity(
        db, request, user,
        action=LogAction.TOKEN_REFRESH,
        entity_type="user",
        entity_id=user.id,
    )
    return TokenResponse(
        user=UserOut.model_validate(user),
        access_token=_access_token_for(user),
    )


# ── POST /logout ─────────────────────────────────────────────

@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    response: Response,
    refresh_token: str | None = Cookie(None, alias=settings.refresh_cookie_name),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if refresh_token:
        await delete_refresh_token(db, refresh_token)
    _clear_refresh_cookie(response)

    await log_activity(
        db, request, user,
        action=LogAction.LOGOUT,
        entity_type="user",
        entity_id=user.id,
    )
    return MessageResponse(message="Logged out")


# ── GET /me ──────────────────────────────────────────────────

@router.get("/me", response_model=UserEnvelope)
async def me(user: User = Depends(get_current_user)):
    return UserEnvelope(user=UserOut.model_validate(user))
