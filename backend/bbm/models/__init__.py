"""Aggregate model imports for Alembic auto-detection."""

from bbm.models.enums import Location, MovementType, UserRole  # noqa: F401
from bbm.models.user import User  # noqa: F401
from bbm.models.refresh_token import RefreshToken  # noqa: F401
from bbm.models.stock import StockMovement  # noqa: F401
from bbm.models.setting import AppSetting  # noqa: F401
from bbm.models.system_log import SystemLog  # noqa: F401
