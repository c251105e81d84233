"""FastAPI dependencies for authentication and authorization.

Dependencies:
  get_current_user   → decode JWT, load user from DB, return User
  require_role(...)  → restrict to specific roles
  require_admin      → shorthand for require_role(UserRole.ADMIN)

Helpers:
  location_scope()   → the location a caller may read, given a requested one
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bbm.auth.jwt import decode_token
from bbm.database import get_db
from bbm.models.enums import Location, UserRole
from bbm.models.user import User

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


# ── Core user dependency ────────────────────────────────────

async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Decode the access token and return the (still active) user.

    The decoded payload is stashed on the user as `_token_payload`.
    """
    payload = decode_token(token)
    user_id: str | None = payload.get("sub")
    if not user_id or payload.get("type") != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        user_pk = int(user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    result = await db.execute(select(User).where(User.id == user_pk))
    user = result.scalar_one_or_none()
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user._token_payload = payload  # type: ignore[attr-defined]
    return user


# ── Role-based access control ───────────────────────────────

def require_role(*roles: UserRole):
    """Dependency factory: restrict to one or more roles.

    Usage:
        @router.post("/in")
        async def stock_in(user: User = Depends(require_role(UserRole.ADMIN))):
            ...
    """
    async def _check(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires role: {', '.join(r.name.lower() for r in roles)}",
            )
        return user

    return _check


require_admin = require_role(UserRole.ADMIN)


# ── Location scope ──────────────────────────────────────────

def location_scope(user: User, requested: Location | None = None) -> Location | None:
    """Return the location filter to apply for `user`.

    Admins (and operational users without an assigned location) see what
    they ask for, where None means every location. Operational users with
    an assigned location only ever see that location.
    """
    if user.role == UserRole.OPERATIONAL and user.location is not None:
        return user.location
    return requested
