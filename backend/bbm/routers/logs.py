"""Audit log router (admin only).

Endpoints:
    GET    /logs         Filtered, paginated audit entries (newest first)
    GET    /logs/stats   Activity summary for the last 30 days
    DELETE /logs/clean   Purge entries older than the retention window
"""

from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from bbm.auth.deps import require_admin
from bbm.config import settings
from bbm.database import get_db
from bbm.models.system_log import LogAction, SystemLog
from bbm.models.user import User
from bbm.schemas.common import PaginatedResponse, Pagination
from bbm.schemas.logs import ActionCount, CleanLogsResponse, LogsStats, SystemLogOut, UserActivity
from bbm.services.reporting import end_bound, naive_utc
from bbm.services.scheduler import purge_old_logs
from bbm.utils.activity import log_activity

router = APIRouter()

STATS_WINDOW_DAYS = 30
TOP_USERS = 5


@router.get("", response_model=PaginatedResponse[SystemLogOut])
async def list_logs(
    request: Request,
    action: str | None = Query(None),
    entity_type: str | None = Query(None),
    user_id: int | None = Query(None),
    start_date: datetime | None = Query(None),
    end_date: datetime | None = Query(None),
    search: str | None = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    query = (
        select(SystemLog, User.name, User.email)
        .outerjoin(User, User.id == SystemLog.user_id)
    )
    if action:
        query = query.where(SystemLog.action == action)
    if entity_type:
        query = query.where(SystemLog.entity_type == entity_type)
    if user_id is not None:
        query = query.where(SystemLog.user_id == user_id)
    if start_date:
        query = query.where(SystemLog.created_at >= naive_utc(start_date))
    if end_date:
        bound, exclusive = end_bound(naive_utc(end_date))
        query = query.where(
            SystemLog.created_at < bound if exclusive else SystemLog.created_at <= bound
        )
    if search:
        term = search.lower()
        query = query.where(
            or_(
                func.lower(SystemLog.details).contains(term, autoescape=True),
                func.lower(SystemLog.action).contains(term, autoescape=True),
            )
        )

    total_r = await db.execute(select(func.count()).select_from(query.subquery()))
    total = total_r.scalar() or 0

    result = await db.execute(
        query.order_by(SystemLog.id.desc()).offset((page - 1) * limit).limit(limit)
    )
    items = [
        SystemLogOut(
            id=log.id,
            user_id=log.user_id,
            user_name=name,
            user_email=email,
            action=log.action,
            entity_type=log.entity_type,
            entity_id=log.entity_id,
            ip_address=log.ip_address,
            details=log.details,
            created_at=log.created_at,
        )
        for log, name, email in result.all()
    ]

    await log_activity(
        db, request, admin,
        action=LogAction.LOGS_VIEWED,
        entity_type="system_log",
        details=f"page {page}, {total} matching entries",
    )
    return PaginatedResponse[SystemLogOut](
        items=items,
        pagination=Pagination.build(page, limit, total),
    )


@router.get("/stats", response_model=LogsStats)
async def logs_stats(
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
):
    since = datetime.utcnow() - timedelta(days=STATS_WINDOW_DAYS)

    total_r = await db.execute(
        select(func.count(SystemLog.id)).where(SystemLog.created_at >= since)
    )

    count = func.count(SystemLog.id).label("count")
    actions_r = await db.execute(
        select(SystemLog.action, count)
        .where(SystemLog.created_at >= since)
        .group_by(SystemLog.action)
        .order_by(count.desc(), SystemLog.action)
    )

    users_r = await db.execute(
        select(SystemLog.user_id, User.name, count)
        .join(User, User.id == SystemLog.user_id)
        .where(SystemLog.created_at >= since)
        .group_by(SystemLog.user_id, User.name)
        .order_by(count.desc(), SystemLog.user_id)
        .limit(TOP_USERS)
    )

    return LogsStats(
        total_logs=total_r.scalar() or 0,
        action_counts=[ActionCount(action=a, count=c) for a, c in actions_r.all()],
        user_activity=[
            UserActivity(user_id=uid, user_name=name, count=c)
            for uid, name, c in users_r.all()
        ],
    )


@router.delete("/clean", response_model=CleanLogsResponse)
async def clean_logs(
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
):
    deleted = await purge_old_logs(db)
    return CleanLogsResponse(
        message=f"Deleted audit entries older than {settings.audit_retention_days} days",
        deleted=deleted,
    )
