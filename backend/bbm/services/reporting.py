"""Read-only reports over the stock ledger.

history       filtered, paginated movement list (newest first)
trend         last balance per calendar day per location
today_stats   opening stock, today's IN/OUT and current stock per location
low_stock     locations whose current balance is under the threshold
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal

from sqlalchemy import Select, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from bbm.models.enums import Location, MovementType
from bbm.models.stock import StockMovement
from bbm.models.user import User
from bbm.services.ledger import ZERO, balance_before, current_balance, to_liters


@dataclass
class HistoryFilters:
    type: MovementType | None = None
    location: Location | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    search: str | None = None


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min)


def naive_utc(value: datetime | date) -> datetime | date:
    """Drop tzinfo after converting to UTC; `created_at` columns are naive UTC."""
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def end_bound(value: datetime | date) -> tuple[datetime, bool]:
    """Upper bound for an end date filter, and whether it is exclusive.

    A bare date (or a datetime at exactly midnight) covers that whole day.
    """
    if not isinstance(value, datetime):
        return start_of_day(value) + timedelta(days=1), True
    if value.time() == time.min:
        return value + timedelta(days=1), True
    return value, False


def _history_query(filters: HistoryFilters) -> Select:
    query = (
        select(StockMovement, User.name.label("user_name"))
        .outerjoin(User, User.id == StockMovement.user_id)
    )

    if filters.type:
        query = query.where(StockMovement.type == filters.type)
    if filters.location:
        query = query.where(StockMovement.location == filters.location)
    if filters.start_date:
        start = naive_utc(filters.start_date)
        if not isinstance(start, datetime):
            start = start_of_day(start)
        query = query.where(StockMovement.created_at >= start)
    if filters.end_date:
        bound, exclusive = end_bound(naive_utc(filters.end_date))
        if exclusive:
            query = query.where(StockMovement.created_at < bound)
        else:
            query = query.where(StockMovement.created_at <= bound)
    if filters.search:
        term = filters.search.lower()
        query = query.where(
            or_(
                func.lower(StockMovement.notes).contains(term, autoescape=True),
                func.lower(User.name).contains(term, autoescape=True),
            )
        )
    return query


async def history(
    db: AsyncSession,
    filters: HistoryFilters,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[tuple[StockMovement, str | None]], int]:
    """Return one page of (movement, user_name) rows and the total count."""
    base = _history_query(filters)

    count_result = await db.execute(
        select(func.count()).select_from(base.subquery())
    )
    total = count_result.scalar() or 0

    result = await db.execute(
        base.order_by(StockMovement.id.desc())
        .limit(limit)
        .offset((page - 1) * limit)
    )
    return [(row[0], row[1]) for row in result.all()], total


async def history_rows(
    db: AsyncSession, filters: HistoryFilters
) -> list[tuple[StockMovement, str | None]]:
    """Unpaginated history, newest first (used for export)."""
    result = await db.execute(
        _history_query(filters).order_by(StockMovement.id.desc())
    )
    return [(row[0], row[1]) for row in result.all()]


async def trend(
    db: AsyncSession,
    days: int = 7,
    location: Location | None = None,
    today: date | None = None,
) -> list[dict]:
    """Closing balance per day per location since 00:00 of `today - days`.

    Only days on which a location had movements produce a point.
    """
    today = today or datetime.utcnow().date()
    since = start_of_day(today - timedelta(days=days))

    query = select(
        StockMovement.created_at,
        StockMovement.location,
        StockMovement.balance,
    ).where(StockMovement.created_at >= since)
    if location:
        query = query.where(StockMovement.location == location)

    result = await db.execute(query.order_by(StockMovement.id))

    # Rows come in ledger order, so the last write per key wins
    closing: dict[tuple[date, Location], Decimal] = {}
    for created_at, loc, balance in result.all():
        closing[(created_at.date(), loc)] = to_liters(balance)

    ordered = sorted(closing.items(), key=lambda item: (item[0][0], item[0][1].value))
    return [
        {"date": day, "location": loc, "balance": balance}
        for (day, loc), balance in ordered
    ]


async def today_stats(
    db: AsyncSession,
    location: Location | None = None,
    today: date | None = None,
) -> list[dict]:
    today = today or datetime.utcnow().date()
    day_start = start_of_day(today)
    day_end = day_start + timedelta(days=1)
    locations = [location] if location else list(Location)

    stats = []
    for loc in locations:
        sums_result = await db.execute(
            select(StockMovement.type, func.sum(StockMovement.amount))
            .where(
                StockMovement.location == loc,
                StockMovement.created_at >= day_start,
                StockMovement.created_at < day_end,
            )
            .group_by(StockMovement.type)
        )
        sums = {row[0]: to_liters(row[1] or 0) for row in sums_result.all()}

        stats.append({
            "location": loc,
            "initial_stock": await balance_before(db, loc, day_start),
            "today_in": sums.get(MovementType.IN, ZERO),
            "today_out": sums.get(MovementType.OUT, ZERO),
            "final_stock": await current_balance(db, loc),
        })
    return stats


async def low_stock_check(
    db: AsyncSession,
    threshold: Decimal,
    locations: list[Location] | None = None,
) -> dict:
    """Flag every location whose current balance is under `threshold`."""
    threshold = to_liters(threshold)
    alerts = []
    for loc in locations or list(Location):
        balance = await current_balance(db, loc)
        if balance < threshold:
            alerts.append({
                "location": loc,
                "balance": balance,
                "threshold": threshold,
                "message": (
                    f"Low stock at {loc.value}: {balance} L "
                    f"(threshold: {threshold} L)"
                ),
            })

    return {
        "has_alerts": bool(alerts),
        "alerts": alerts,
        "threshold": threshold,
    }
