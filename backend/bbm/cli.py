"""Management CLI.

Usage:
    python -m bbm.cli create-admin EMAIL NAME PASSWORD   # Create (or promote) an admin
    python -m bbm.cli set-threshold LITERS               # Set the low-stock threshold
    python -m bbm.cli clean-logs                         # Purge old audit entries
"""

import sys
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation

from sqlalchemy import Engine, create_engine, delete, select
from sqlalchemy.orm import Session

from bbm.auth.password import hash_password
from bbm.config import settings
from bbm.models.enums import UserRole
from bbm.models.setting import LOW_STOCK_THRESHOLD, AppSetting
from bbm.models.system_log import SystemLog
from bbm.models.user import User


def get_engine() -> Engine:
    return create_engine(settings.database_url_sync)


def create_admin(email: str, name: str, password: str, engine: Engine | None = None) -> User:
    """Create an active admin, or promote and reset an existing account."""
    with Session(engine or get_engine()) as session:
        user = session.execute(select(User).where(User.email == email)).scalar_one_or_none()
        if user:
            user.role = UserRole.ADMIN
            user.is_active = True
            user.name = name
            user.hashed_password = hash_password(password)
            print(f"  Promoted existing user {email} to admin")
        else:
            user = User(
                email=email,
                name=name,
                hashed_password=hash_password(password),
                role=UserRole.ADMIN,
                is_active=True,
            )
            session.add(user)
            print(f"  Created admin {email}")
        session.commit()
        session.refresh(user)
        return user


def set_threshold(liters: str, engine: Engine | None = None) -> str:
    try:
        value = Decimal(liters)
    except InvalidOperation:
        raise SystemExit(f"Invalid threshold: {liters!r}")
    if not value.is_finite() or value < 0:
        raise SystemExit("Threshold must be a non-negative number")

    with Session(engine or get_engine()) as session:
        setting = session.execute(
            select(AppSetting).where(AppSetting.key == LOW_STOCK_THRESHOLD)
        ).scalar_one_or_none()
        if setting:
            setting.value = liters
        else:
            session.add(AppSetting(key=LOW_STOCK_THRESHOLD, value=liters))
        session.commit()
    print(f"  Low-stock threshold set to {liters} L")
    return liters


def clean_logs(engine: Engine | None = None, now: datetime | None = None) -> int:
    cutoff = (now or datetime.utcnow()) - timedelta(days=settings.audit_retention_days)
    with Session(engine or get_engine()) as session:
        result = session.execute(delete(SystemLog).where(SystemLog.created_at < cutoff))
        session.commit()
    deleted = result.rowcount or 0
    print(f"  Deleted {deleted} audit entries older than {settings.audit_retention_days} days")
    return deleted


USAGE = "Usage: python -m bbm.cli [create-admin EMAIL NAME PASSWORD|set-threshold LITERS|clean-logs]"


def main(argv: list[str]) -> int:
    cmd = argv[0] if argv else ""
    if cmd == "create-admin" and len(argv) == 4:
        create_admin(argv[1], argv[2], argv[3])
    elif cmd == "set-threshold" and len(argv) == 2:
        set_threshold(argv[1])
    elif cmd == "clean-logs":
        clean_logs()
    else:
        print(USAGE)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
