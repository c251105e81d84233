"""Audit log helper.

Usage:
    await log_activity(
        db, request, user, action=LogAction.STOCK_IN,
        entity_type="stock", entity_id=movement.id,
        details="IN 500.00 L at GENSET",
    )

The entry is written inside a SAVEPOINT of the request session and
committed with the enclosing transaction. A failed audit write is logged
and discarded; it never fails the request that triggered it.
"""

from __future__ import annotations

import logging

from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from bbm.models.system_log import SystemLog
from bbm.models.user import User

logger = logging.getLogger(__name__)


def client_ip(request: Request | None) -> str | None:
    if request is None:
        return None
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()[:45]
    return request.client.host if request.client else None


async def log_activity(
    db: AsyncSession,
    request: Request | None,
    user: User | None,
    *,
    action: str,
    entity_type: str | None = None,
    entity_id: int | None = None,
    details: str | None = None,
) -> None:
    """Append an audit entry; swallow (and log) any database failure."""
    user_agent = request.headers.get("user-agent", "") if request else ""
    entry = SystemLog(
        user_id=user.id if user else None,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        ip_address=client_ip(request),
        user_agent=user_agent[:500] or None,
        details=details[:1000] if details else None,
    )
    try:
        async with db.begin_nested():
            db.add(entry)
    except SQLAlchemyError:
        logger.exception("Failed to write audit log entry %s", action)
