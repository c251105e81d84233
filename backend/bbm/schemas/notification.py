from pydantic import BaseModel, Field

from bbm.models.enums import Location


class LowStockAlert(BaseModel):
    location: Location
    balance: float
    threshold: float
    message: str


class LowStockResponse(BaseModel):
    has_alerts: bool
    alerts: list[LowStockAlert]
    threshold: float


class SettingUpdate(BaseModel):
    key: str = Field(..., max_length=50)
    value: str = Field(..., max_length=255)


class SettingUpdateResponse(BaseModel):
    message: str
    key: str
    value: str
