"""Stock router: balances, movements, reports and export.

Endpoints:
  GET  /summary   Current balance per location
  POST /in        Record a delivery at one location (admin)
  POST /out       Record consumption, TUG_ASSIST drained first
  GET  /history   Filtered, paginated movement list
  GET  /trend     Closing balance per day for the last N days
  GET  /today     Opening stock, today's IN/OUT and current stock
  GET  /export    History as an .xlsx download

Operational users with an assigned location only see that location on
the read endpoints.
"""

from datetime import datetime

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from bbm.auth.deps import get_current_user, location_scope, require_admin
from bbm.database import get_db
from bbm.models.enums import Location, MovementType
from bbm.models.system_log import LogAction
from bbm.models.user import User
from bbm.schemas.common import PaginatedResponse, Pagination
from bbm.schemas.stock import (
    StockHistoryItem,
    StockInRequest,
    StockMovementOut,
    StockOutRequest,
    StockSummaryItem,
    TodayStats,
    TrendPoint,
)
from bbm.services import ledger, reporting
from bbm.services.export import build_stock_workbook, export_filename
from bbm.utils.activity import log_activity

router = APIRouter()

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _history_filters(
    type: MovementType | None = Query(None),
    location: Location | None = Query(None),
    start_date: datetime | None = Query(None),
    end_date: datetime | None = Query(None),
    search: str | None = Query(None, max_length=100),
) -> reporting.HistoryFilters:
    return reporting.HistoryFilters(
        type=type,
        location=location,
        start_date=start_date,
        end_date=end_date,
        search=search,
    )


# ── Balances ─────────────────────────────────────────────────

@router.get("/summary", response_model=list[StockSummaryItem])
async def stock_summary(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    scope = location_scope(user)
    balances = await ledger.current_balances(db, [scope] if scope else None)
    return [
        StockSummaryItem(location=loc, balance=balance)
        for loc, balance in balances.items()
    ]


# ── Movements ────────────────────────────────────────────────

@router.post("/in", response_model=StockMovementOut, status_code=status.HTTP_201_CREATED)
async def stock_in(
    body: StockInRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_admin),
):
    movement = await ledger.record_in(db, body.location, body.amount, body.notes, user.id)

    await log_activity(
        db, request, user,
        action=LogAction.STOCK_IN,
        entity_type="stock",
        entity_id=movement.id,
        details=f"IN {movement.amount} L at {movement.location.value} (balance {movement.balance} L)",
    )
    return StockMovementOut.model_validate(movement)


@router.post("/out", response_model=list[StockMovementOut], status_code=status.HTTP_201_CREATED)
async def stock_out(
    body: StockOutRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    movements = await ledger.record_out(db, body.amount, body.notes, user.id)

    for movement in movements:
        await log_activity(
            db, request, user,
            action=LogAction.STOCK_OUT,
            entity_type="stock",
            entity_id=movement.id,
            details=f"OUT {movement.amount} L from {movement.location.value} (balance {movement.balance} L)",
        )
    return [StockMovementOut.model_validate(m) for m in movements]


# ── Reports ──────────────────────────────────────────────────

@router.get("/history", response_model=PaginatedResponse[StockHistoryItem])
async def stock_history(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    filters: reporting.HistoryFilters = Depends(_history_filters),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    filters.location = location_scope(user, filters.location)
    rows, total = await reporting.history(db, filters, page=page, limit=limit)

    items = [
        StockHistoryItem(
            **StockMovementOut.model_validate(movement).model_dump(),
            user_name=user_name,
        )
        for movement, user_name in rows
    ]
    return PaginatedResponse[StockHistoryItem](
        items=items,
        pagination=Pagination.build(page, limit, total),
    )


@router.get("/trend", response_model=list[TrendPoint])
async def stock_trend(
    days: int = Query(7, ge=1, le=365),
    location: Location | None = Query(None),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    points = await reporting.trend(db, days=days, location=location_scope(user, location))
    return [TrendPoint(**point) for point in points]


@router.get("/today", response_model=list[TodayStats])
async def stock_today(
    location: Location | None = Query(None),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    stats = await reporting.today_stats(db, location=location_scope(user, location))
    return [TodayStats(**row) for row in stats]


@router.get("/export")
async def stock_export(
    filters: reporting.HistoryFilters = Depends(_history_filters),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    filters.location = location_scope(user, filters.location)
    rows = await reporting.history_rows(db, filters)
    return Response(
        content=build_stock_workbook(rows),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{export_filename()}"'},
    )
