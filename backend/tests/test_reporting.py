"""Tests for ledger reports: history, trend, today stats, low stock."""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from bbm.models.enums import Location, MovementType
from bbm.models.stock import StockMovement
from bbm.models.user import User
from bbm.services import reporting
from bbm.services.reporting import HistoryFilters

from conftest import make_user

TODAY = date(2026, 10, 19)


async def add_movement(
    db: AsyncSession,
    user: User,
    movement_type: MovementType,
    location: Location,
    amount,
    balance,
    created_at: datetime,
    notes: str | None = None,
) -> StockMovement:
    movement = StockMovement(
        type=movement_type,
        location=location,
        amount=Decimal(str(amount)),
        balance=Decimal(str(balance)),
        notes=notes,
        user_id=user.id,
        created_at=created_at,
    )
    db.add(movement)
    await db.flush()
    return movement


@pytest.mark.asyncio
class TestHistory:

    @pytest_asyncio.fixture
    async def ledger_rows(self, db_session: AsyncSession, admin_user: User):
        other = await make_user(db_session, "sam@example.com", "Sam Fuel")
        rows = [
            await add_movement(db_session, admin_user, MovementType.IN, Location.GENSET,
                               500, 500, datetime(2026, 10, 1, 8), "Tanker delivery"),
            await add_movement(db_session, other, MovementType.IN, Location.TUG_ASSIST,
                               80, 80, datetime(2026, 10, 2, 9)),
            await add_movement(db_session, admin_user, MovementType.OUT, Location.TUG_ASSIST,
                               80, 0, datetime(2026, 10, 3, 10)),
            await add_movement(db_session, other, MovementType.OUT, Location.GENSET,
                               20, 480, datetime(2026, 10, 3, 23, 59), "Night shift"),
        ]
        return rows

    async def test_newest_first_with_user_name(self, db_session, ledger_rows):
        rows, total = await reporting.history(db_session, HistoryFilters())

        assert total == 4
        assert [m.id for m, _ in rows] == [r.id for r in reversed(ledger_rows)]
        assert rows[0][1] == "Sam Fuel"
        assert rows[-1][1] == "Admin"

    async def test_pagination(self, db_session, ledger_rows):
        rows, total = await reporting.history(db_session, HistoryFilters(), page=2, limit=3)

        assert total == 4
        assert [m.id for m, _ in rows] == [ledger_rows[0].id]

    async def test_type_and_location_filters(self, db_session, ledger_rows):
        rows, total = await reporting.history(
            db_session,
            HistoryFilters(type=MovementType.OUT, location=Location.GENSET),
        )
        assert total == 1
        assert rows[0][0].id == ledger_rows[3].id

    async def test_end_date_at_midnight_covers_the_whole_day(self, db_session, ledger_rows):
        rows, total = await reporting.history(
            db_session,
            HistoryFilters(start_date=datetime(2026, 10, 3), end_date=datetime(2026, 10, 3)),
        )
        assert total == 2
        assert {m.id for m, _ in rows} == {ledger_rows[2].id, ledger_rows[3].id}

    async def test_end_date_with_time_is_exact(self, db_session, ledger_rows):
        _, total = await reporting.history(
            db_session, HistoryFilters(end_date=datetime(2026, 10, 3, 12))
        )
        assert total == 3

    async def test_search_matches_notes_and_user_name(self, db_session, ledger_rows):
        _, by_notes = await reporting.history(db_session, HistoryFilters(search="TANKER"))
        _, by_user = await reporting.history(db_session, HistoryFilters(search="sam"))

        assert by_notes == 1
        assert by_user == 2

    async def test_search_wildcards_are_literal(self, db_session, admin_user, ledger_rows):
        await add_movement(db_session, admin_user, MovementType.IN, Location.GENSET,
                           10, 490, datetime(2026, 10, 4, 8), "tank_a 50% top-up")

        _, percent = await reporting.history(db_session, HistoryFilters(search="%"))
        _, underscore = await reporting.history(db_session, HistoryFilters(search="k_a"))
        _, no_match = await reporting.history(db_session, HistoryFilters(search="tanker_"))

        assert percent == 1
        assert underscore == 1
        assert no_match == 0

    async def test_timezone_aware_bounds_are_compared_in_utc(self, db_session, ledger_rows):
        plus_two = timezone(timedelta(hours=2))

        rows, total = await reporting.history(
            db_session,
            HistoryFilters(
                start_date=datetime(2026, 10, 3, 12, tzinfo=plus_two),
                end_date=datetime(2026, 10, 3, tzinfo=timezone.utc),
            ),
        )

        assert total == 2
        assert {m.id for m, _ in rows} == {ledger_rows[2].id, ledger_rows[3].id}

    async def test_history_rows_is_unpaginated(self, db_session, ledger_rows):
        rows = await reporting.history_rows(db_session, HistoryFilters(location=Location.GENSET))
        assert [m.id for m, _ in rows] == [ledger_rows[3].id, ledger_rows[0].id]


@pytest.mark.asyncio
class TestTrend:

    @pytest_asyncio.fixture
    async def trend_rows(self, db_session: AsyncSession, admin_user: User):
        await add_movement(db_session, admin_user, MovementType.IN, Location.GENSET,
                           100, 100, datetime(2026, 10, 10, 12))
        await add_movement(db_session, admin_user, MovementType.IN, Location.GENSET,
                           50, 150, datetime(2026, 10, 12, 8))
        await add_movement(db_session, admin_user, MovementType.OUT, Location.GENSET,
                           20, 130, datetime(2026, 10, 12, 17))
        await add_movement(db_session, admin_user, MovementType.IN, Location.TUG_ASSIST,
                           40, 40, datetime(2026, 10, 15, 6))

    async def test_last_balance_per_day_per_location(self, db_session, trend_rows):
        points = await reporting.trend(db_session, days=7, today=TODAY)

        assert points == [
            {"date": date(2026, 10, 12), "location": Location.GENSET, "balance": Decimal("130.00")},
            {"date": date(2026, 10, 15), "location": Location.TUG_ASSIST, "balance": Decimal("40.00")},
        ]

    async def test_location_filter(self, db_session, trend_rows):
        points = await reporting.trend(
            db_session, days=30, location=Location.GENSET, today=TODAY
        )
        assert [p["date"] for p in points] == [date(2026, 10, 10), date(2026, 10, 12)]
        assert all(p["location"] == Location.GENSET for p in points)


@pytest.mark.asyncio
class TestTodayStats:

    async def test_opening_movements_and_closing(self, db_session, admin_user):
        await add_movement(db_session, admin_user, MovementType.IN, Location.TUG_ASSIST,
                           70, 70, datetime(2026, 10, 17, 12))
        await add_movement(db_session, admin_user, MovementType.IN, Location.GENSET,
                           200, 200, datetime(2026, 10, 18, 12))
        await add_movement(db_session, admin_user, MovementType.IN, Location.GENSET,
                           100, 300, datetime(2026, 10, 19, 9))
        await add_movement(db_session, admin_user, MovementType.OUT, Location.GENSET,
                           50, 250, datetime(2026, 10, 19, 10))

        stats = {s["location"]: s for s in await reporting.today_stats(db_session, today=TODAY)}

        assert stats[Location.GENSET] == {
            "location": Location.GENSET,
            "initial_stock": Decimal("200.00"),
            "today_in": Decimal("100.00"),
            "today_out": Decimal("50.00"),
            "final_stock": Decimal("250.00"),
        }
        tug = stats[Location.TUG_ASSIST]
        assert tug["today_in"] == tug["today_out"] == Decimal("0")
        assert tug["final_stock"] == tug["initial_stock"] == Decimal("70.00")

    async def test_single_location(self, db_session):
        stats = await reporting.today_stats(db_session, location=Location.GENSET, today=TODAY)

        assert len(stats) == 1
        assert stats[0]["location"] == Location.GENSET
        assert stats[0]["final_stock"] == Decimal("0")


@pytest.mark.asyncio
class TestLowStockCheck:

    async def test_flags_locations_under_threshold(self, db_session, admin_user):
        await add_movement(db_session, admin_user, MovementType.IN, Location.GENSET,
                           250, 250, datetime(2026, 10, 18, 12))
        await add_movement(db_session, admin_user, MovementType.IN, Location.TUG_ASSIST,
                           70, 70, datetime(2026, 10, 18, 13))

        result = await reporting.low_stock_check(db_session, Decimal("100"))

        assert result["has_alerts"] is True
        assert result["threshold"] == Decimal("100.00")
        assert [a["location"] for a in result["alerts"]] == [Location.TUG_ASSIST]
        assert "TUG_ASSIST" in result["alerts"][0]["message"]

    async def test_balance_equal_to_threshold_is_not_low(self, db_session, admin_user):
        await add_movement(db_session, admin_user, MovementType.IN, Location.GENSET,
                           100, 100, datetime(2026, 10, 18, 12))

        result = await reporting.low_stock_check(db_session, 100, [Location.GENSET])

        assert result == {"has_alerts": False, "alerts": [], "threshold": Decimal("100.00")}

    async def test_location_without_history_is_low(self, db_session):
        result = await reporting.low_stock_check(db_session, 10, [Location.TUG_ASSIST])

        assert result["has_alerts"] is True
        assert result["alerts"][0]["balance"] == Decimal("0")
