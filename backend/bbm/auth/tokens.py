"""Rotating refresh tokens stored in the database.

A refresh token is a random opaque string held in an httpOnly cookie.
Each use deletes the presented row and issues a new one, so a token can
be exchanged exactly once.
"""

import secrets
from datetime import datetime, timedelta

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from bbm.config import settings
from bbm.models.refresh_token import RefreshToken


def _generate_token() -> str:
    return secrets.token_urlsafe(48)


async def create_refresh_token(
    db: AsyncSession,
    user_id: int,
    expires_in: timedelta | None = None,
) -> str:
    token = _generate_token()
    expires_at = datetime.utcnow() + (
        expires_in or timedelta(days=settings.refresh_token_expire_days)
    )
    db.add(RefreshToken(user_id=user_id, token=token, expires_at=expires_at))
    await db.flush()
    return token


async def consume_refresh_token(db: AsyncSession, token_id: int) -> bool:
    """Delete one token row; False when another request already removed it."""
    result = await db.execute(delete(RefreshToken).where(RefreshToken.id == token_id))
    return result.rowcount == 1


async def rotate_refresh_token(
    db: AsyncSession, old_token: str
) -> tuple[str, int] | None:
    """Exchange `old_token` for a fresh one.

    Returns (new_token, user_id), or None when the token is unknown or
    expired. Expired tokens are deleted on sight.
    """
    result = await db.execute(
        select(RefreshToken).where(RefreshToken.token == old_token)
    )
    existing = result.scalar_one_or_none()
    if existing is None:
        return None

    user_id = existing.user_id
    expired = existing.expires_at < datetime.utcnow()

    # Only the request whose delete removes the row may mint a successor
    if not await consume_refresh_token(db, existing.id) or expired:
        return None

    new_token = await create_refresh_token(db, user_id)
    return new_token, user_id


async def delete_refresh_token(db: AsyncSession, token: str) -> None:
    await db.execute(delete(RefreshToken).where(RefreshToken.token == token))


async def delete_user_refresh_tokens(db: AsyncSession, user_id: int) -> None:
    """Log a user out of every device."""
    await db.execute(delete(RefreshToken).where(RefreshToken.user_id == user_id))


async def delete_expired_refresh_tokens(
    db: AsyncSession, now: datetime | None = None
) -> int:
    result = await db.execute(
        delete(RefreshToken).where(RefreshToken.expires_at < (now or datetime.utcnow()))
    )
    return result.rowcount or 0
