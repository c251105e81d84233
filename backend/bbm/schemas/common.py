"""Common schemas used across the application."""

import math
from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(
            page=page,
            limit=limit,
            total=total,
            total_pages=math.ceil(total / limit) if limit else 0,
        )


class PaginatedResponse(BaseModel, Generic[T]):
    """Generic page-numbered response wrapper.

    Usage:
        response_model=PaginatedResponse[StockMovementOut]

    Returns:
        {
            "items": [...],
            "pagination": {"page": 1, "limit": 20, "total": 150, "total_pages": 8}
        }
    """
    items: list[T]
    pagination: Pagination


class MessageResponse(BaseModel):
    message: str
