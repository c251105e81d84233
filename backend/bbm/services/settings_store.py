"""Key-value settings backed by the `settings` table."""

import logging
from decimal import Decimal, InvalidOperation

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bbm.config import settings
from bbm.models.setting import LOW_STOCK_THRESHOLD, AppSetting

logger = logging.getLogger(__name__)


def default_values() -> dict[str, str]:
    return {LOW_STOCK_THRESHOLD: _format_number(settings.default_low_stock_threshold)}


def _format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


async def get_all(db: AsyncSession) -> dict[str, str]:
    """All stored settings, with defaults for the missing known keys."""
    result = await db.execute(select(AppSetting))
    values = {s.key: s.value for s in result.scalars().all()}
    for key, value in default_values().items():
        values.setdefault(key, value)
    return values


async def upsert(db: AsyncSession, key: str, value: str) -> AppSetting:
    result = await db.execute(select(AppSetting).where(AppSetting.key == key))
    setting = result.scalar_one_or_none()
    if setting:
        setting.value = value
    else:
        setting = AppSetting(key=key, value=value)
        db.add(setting)
    await db.flush()
    return setting


async def get_low_stock_threshold(db: AsyncSession) -> Decimal:
    """Configured low-stock threshold in liters (default 100)."""
    default = Decimal(str(settings.default_low_stock_threshold))
    result = await db.execute(
        select(AppSetting.value).where(AppSetting.key == LOW_STOCK_THRESHOLD)
    )
    raw = result.scalar_one_or_none()
    if raw is None:
        return default
    try:
        threshold = Decimal(raw)
    except InvalidOperation:
        logger.warning("Ignoring unparsable %s setting: %r", LOW_STOCK_THRESHOLD, raw)
        return default
    if not threshold.is_finite() or threshold < 0:
        logger.warning("Ignoring invalid %s setting: %r", LOW_STOCK_THRESHOLD, raw)
        return default
    return threshold
