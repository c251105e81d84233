"""Stock ledger: balance resolution and movement processing.

The ledger is the append-only `stocks` table. A location's current stock
is the `balance` of its most recent row; every new movement computes its
balance from that value and appends one row.

Reading the current balance and inserting the next row happen under a
per-location lock that is held until the surrounding transaction ends,
so concurrent movements at one location are applied one after another:

  - PostgreSQL: transaction-scoped advisory locks, always taken in
    LOCK_ORDER so an OUT (both locations) cannot deadlock with an IN.
  - SQLite: the database admits a single writer at a time; no lock needed.

Stock OUT is not location-scoped: TUG_ASSIST is drained first and any
remainder is taken from GENSET.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession

from bbm.middleware.exceptions import InsufficientStockError, ValidationError
from bbm.models.enums import Location, MovementType
from bbm.models.stock import StockMovement

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")
CENTS = Decimal("0.01")

# Largest value a Numeric(10, 2) balance column holds
MAX_BALANCE = Decimal("99999999.99")

# Drain order for stock OUT
OUT_ORDER = (Location.TUG_ASSIST, Location.GENSET)

# Lock acquisition order
LOCK_ORDER = (Location.GENSET, Location.TUG_ASSIST)

# Stable advisory lock keys (never hash(): it is salted per process)
_ADVISORY_KEYS = {
    Location.GENSET: 0x42424D01,
    Location.TUG_ASSIST: 0x42424D02,
}


def to_liters(value) -> Decimal:
    """Coerce a number to a 2-place Decimal."""
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid amount: {value!r}")
    if not amount.is_finite():
        raise ValidationError(f"Invalid amount: {value!r}")
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def _positive_amount(value) -> Decimal:
    amount = to_liters(value)
    if amount <= ZERO:
        raise ValidationError("Amount must be greater than 0")
    return amount


async def lock_locations(db: AsyncSession, *locations: Location) -> None:
    """Serialize ledger writes for `locations` until the transaction ends."""
    if db.get_bind().dialect.name != "postgresql":
        return
    for location in LOCK_ORDER:
        if location in locations:
            await db.execute(
                text("SELECT pg_advisory_xact_lock(:key)"),
                {"key": _ADVISORY_KEYS[location]},
            )


# ── Balance resolver ─────────────────────────────────────────

async def current_balance(db: AsyncSession, location: Location) -> Decimal:
    """Balance of the newest row for `location`, or 0 with no history."""
    result = await db.execute(
        select(StockMovement.balance)
        .where(StockMovement.location == location)
        .order_by(StockMovement.id.desc())
        .limit(1)
    )
    balance = result.scalar_one_or_none()
    return to_liters(balance) if balance is not None else ZERO


async def current_balances(
    db: AsyncSession, locations: list[Location] | None = None
) -> dict[Location, Decimal]:
    """Current balance per location. Every requested location is present."""
    locations = locations or list(Location)
    return {loc: await current_balance(db, loc) for loc in locations}


async def balance_before(
    db: AsyncSession, location: Location, moment: datetime
) -> Decimal:
    """Balance of the last row created strictly before `moment`."""
    result = await db.execute(
        select(StockMovement.balance)
        .where(
            StockMovement.location == location,
            StockMovement.created_at < moment,
        )
        .order_by(StockMovement.id.desc())
        .limit(1)
    )
    balance = result.scalar_one_or_none()
    return to_liters(balance) if balance is not None else ZERO


# ── Movement processor ───────────────────────────────────────

def _movement(
    movement_type: MovementType,
    location: Location,
    amount: Decimal,
    balance: Decimal,
    notes: str | None,
    user_id: int,
) -> StockMovement:
    return StockMovement(
        type=movement_type,
        location=location,
        amount=amount,
        balance=balance,
        notes=notes,
        user_id=user_id,
    )


async def record_in(
    db: AsyncSession,
    location: Location,
    amount,
    notes: str | None,
    user_id: int,
) -> StockMovement:
    """Append an IN movement and return it (flushed, id assigned)."""
    amount = _positive_amount(amount)
    location = Location(location)

    await lock_locations(db, location)
    balance = await current_balance(db, location) + amount
    if balance > MAX_BALANCE:
        raise ValidationError(
            f"Stock at {location.value} would exceed {MAX_BALANCE} L (current {balance - amount} L)"
        )

    movement = _movement(MovementType.IN, location, amount, balance, notes, user_id)
    db.add(movement)
    await db.flush()

    logger.info(
        "Stock IN %s L at %s by user %s (balance %s)",
        amount, location.value, user_id, balance,
    )
    return movement


def plan_out(amount: Decimal, balances: dict[Location, Decimal]) -> dict[Location, Decimal]:
    """Split an OUT amount across locations in OUT_ORDER.

    Returns the deduction per location, omitting locations that give
    nothing. Raises InsufficientStockError when the total is too small.
    """
    available = sum(balances.values(), ZERO)
    if amount > available:
        raise InsufficientStockError(amount, available)

    plan: dict[Location, Decimal] = {}
    remaining = amount
    for location in OUT_ORDER:
        if remaining <= ZERO:
            break
        take = min(remaining, max(balances.get(location, ZERO), ZERO))
        if take > ZERO:
            plan[location] = take
            remaining -= take
    return plan


async def record_out(
    db: AsyncSession,
    amount,
    notes: str | None,
    user_id: int,
) -> list[StockMovement]:
    """Deduct `amount` across locations, TUG_ASSIST first.

    Returns the new rows in TUG_ASSIST-then-GENSET order; nothing is
    written when the total stock is insufficient.
    """
    amount = _positive_amount(amount)

    await lock_locations(db, *OUT_ORDER)
    balances = await current_balances(db, list(OUT_ORDER))
    plan = plan_out(amount, balances)

    movements = []
    for location, deduction in plan.items():
        movement = _movement(
            MovementType.OUT,
            location,
            deduction,
            balances[location] - deduction,
            notes,
            user_id,
        )
        db.add(movement)
        movements.append(movement)
    await db.flush()

    logger.info(
        "Stock OUT %s L by user %s: %s",
        amount,
        user_id,
        ", ".join(f"{loc.value}={qty}" for loc, qty in plan.items()),
    )
    return movements
