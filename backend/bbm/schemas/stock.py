"""Pydantic schemas for the stock ledger."""

import datetime as dt

from pydantic import BaseModel, Field

from bbm.models.enums import Location, MovementType


# ── Requests ─────────────────────────────────────────────────

class StockInRequest(BaseModel):
    location: Location
    amount: float = Field(..., gt=0, le=99_999_999)
    notes: str | None = Field(None, max_length=500)


class StockOutRequest(BaseModel):
    """OUT is not location-scoped; the ledger decides the split."""
    amount: float = Field(..., gt=0, le=99_999_999)
    notes: str | None = Field(None, max_length=500)


# ── Responses ────────────────────────────────────────────────

class StockMovementOut(BaseModel):
    id: int
    type: MovementType
    location: Location
    amount: float
    balance: float
    notes: str | None = None
    user_id: int
    created_at: dt.datetime

    model_config = {"from_attributes": True}


class StockHistoryItem(StockMovementOut):
    user_name: str | None = None


class StockSummaryItem(BaseModel):
    location: Location
    balance: float


class TrendPoint(BaseModel):
    date: dt.date
    location: Location
    balance: float


class TodayStats(BaseModel):
    location: Location
    initial_stock: float
    today_in: float
    today_out: float
    final_stock: float
