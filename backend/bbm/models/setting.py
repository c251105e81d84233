"""Key-value application settings (e.g. the low-stock threshold)."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from bbm.database import Base, BigIntPK

LOW_STOCK_THRESHOLD = "low_stock_threshold"  # liters

SETTINGS_KEYS = (LOW_STOCK_THRESHOLD,)


class AppSetting(Base):
    __tablename__ = "settings"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    key: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    value: Mapped[str] = mapped_column(String(255), nullable=False)
