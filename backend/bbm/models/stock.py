"""StockMovement: append-only fuel ledger.

Each row is one IN or OUT movement at a location together with the
running balance for that location right after the movement. The current
stock of a location is the `balance` of its row with the highest id;
no aggregate row is stored.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Enum as SAEnum, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from bbm.database import Base, BigIntPK
from bbm.models.enums import Location, MovementType


class StockMovement(Base):
    __tablename__ = "stocks"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)

    type: Mapped[MovementType] = mapped_column(
        SAEnum(MovementType, name="movement_type"), nullable=False
    )
    location: Mapped[Location] = mapped_column(
        SAEnum(Location, name="location"), nullable=False, index=True
    )

    # Liters, 2 decimal places
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    balance: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    notes: Mapped[str | None] = mapped_column(String(500))

    # No cascade: deleting a user who owns movements fails on this FK
    user_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("users.id"), nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False, index=True
    )
