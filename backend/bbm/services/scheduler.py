"""Background maintenance: daily audit log purge and token cleanup.

Uses FastAPI's lifespan context to start/stop an asyncio background loop
that fires once per day at the configured hour (UTC):

  - delete system_logs rows older than AUDIT_RETENTION_DAYS (default 90)
  - delete expired refresh tokens

Stock movements are never touched.

Configuration (.env):
    SCHEDULER_ENABLED=true
    MAINTENANCE_HOUR=2
    AUDIT_RETENTION_DAYS=90
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

from fastapi import FastAPI
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from bbm.auth.tokens import delete_expired_refresh_tokens
from bbm.config import settings
from bbm.database import async_session
from bbm.models.system_log import SystemLog
from bbm.utils.redis_client import close_redis

logger = logging.getLogger("bbm.scheduler")


async def purge_old_logs(
    db: AsyncSession,
    retention_days: int | None = None,
    now: datetime | None = None,
) -> int:
    """Delete audit rows older than the retention window. Returns the count."""
    days = retention_days if retention_days is not None else settings.audit_retention_days
    cutoff = (now or datetime.utcnow()) - timedelta(days=days)
    result = await db.execute(delete(SystemLog).where(SystemLog.created_at < cutoff))
    return result.rowcount or 0


async def run_daily_maintenance() -> dict:
    logger.info("Starting daily maintenance run")
    async with async_session() as db:
        try:
            logs = await purge_old_logs(db)
            tokens = await delete_expired_refresh_tokens(db)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

    logger.info(
        "Maintenance complete: %d audit rows purged, %d expired refresh tokens removed",
        logs,
        tokens,
    )
    return {"logs_deleted": logs, "tokens_deleted": tokens}


def seconds_until(target_hour: int, now: datetime) -> float:
    """Seconds from `now` to the next `target_hour`:00 UTC."""
    next_run = now.replace(hour=target_hour, minute=0, second=0, microsecond=0)
    if next_run <= now:
        next_run += timedelta(days=1)
    return (next_run - now).total_seconds()


async def _scheduler_loop() -> None:
    while True:
        wait_seconds = seconds_until(settings.maintenance_hour, datetime.now(timezone.utc))
        logger.info("Next maintenance run in %.0f seconds", wait_seconds)

        await asyncio.sleep(wait_seconds)

        try:
            await run_daily_maintenance()
        except Exception:
            logger.exception("Unhandled error in daily maintenance")

        # Avoid running twice in the same minute
        await asyncio.sleep(60)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the maintenance loop on startup, cancel it on shutdown."""
    task = None
    if settings.scheduler_enabled:
        task = asyncio.create_task(_scheduler_loop())
        logger.info("Maintenance scheduler started")
    try:
        yield
    finally:
        if task:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            logger.info("Maintenance scheduler stopped")
        await close_redis()
