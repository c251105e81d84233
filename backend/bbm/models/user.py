from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum as SAEnum, SmallInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from bbm.database import Base, BigIntPK
from bbm.models.enums import Location, UserRole


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # 1 = admin, 2 = operational (restricted to `location`)
    role: Mapped[int] = mapped_column(
        SmallInteger, nullable=False, default=UserRole.OPERATIONAL
    )
    # null = both locations
    location: Mapped[Location | None] = mapped_column(
        SAEnum(Location, name="location"), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
