"""JWT access token creation and decoding.

Token claims:
  - sub:       user ID (string)
  - email:     user email
  - role:      1 = admin, 2 = operational
  - location:  assigned location ("GENSET" | "TUG_ASSIST") or null
  - type:      "access"
  - exp:       expiry timestamp

Refresh tokens are opaque database rows, see `bbm.auth.tokens`.
"""

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from bbm.config import settings

ALGORITHM = settings.jwt_algorithm


def create_access_token(
    user_id: int,
    email: str,
    role: int,
    location: str | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    payload = {
        "sub": str(user_id),
        "email": email,
        "role": int(role),
        "location": location,
        "type": "access",
        "exp": expire,
    }
    return jwt.encode(payload, settings.secret_key, algorithm=ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode and validate a JWT. Returns empty dict on failure."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except JWTError:
        return {}
