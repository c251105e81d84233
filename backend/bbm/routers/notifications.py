"""Low-stock notifications and the settings they depend on.

Endpoints:
    GET  /notifications/check      Low-stock alerts for the caller's locations
    GET  /notifications/settings   All settings (admin)
    POST /notifications/settings   Update one setting (admin)
"""

from decimal import Decimal, InvalidOperation

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from bbm.auth.deps import get_current_user, location_scope, require_admin
from bbm.database import get_db
from bbm.middleware.exceptions import ValidationError
from bbm.models.setting import LOW_STOCK_THRESHOLD, SETTINGS_KEYS
from bbm.models.system_log import LogAction
from bbm.models.user import User
from bbm.schemas.notification import LowStockResponse, SettingUpdate, SettingUpdateResponse
from bbm.services import settings_store
from bbm.services.reporting import low_stock_check
from bbm.utils.activity import log_activity

router = APIRouter()


def _validate_setting(key: str, value: str) -> str:
    if key not in SETTINGS_KEYS:
        raise ValidationError(f"Unknown setting: {key}")

    if key == LOW_STOCK_THRESHOLD:
        try:
            threshold = Decimal(value.strip())
        except InvalidOperation:
            raise ValidationError("Threshold must be a number")
        if not threshold.is_finite() or threshold < 0:
            raise ValidationError("Threshold must be a non-negative number")
        return value.strip()
    return value


@router.get("/check", response_model=LowStockResponse)
async def check_low_stock(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    threshold = await settings_store.get_low_stock_threshold(db)
    scope = location_scope(user)
    return await low_stock_check(db, threshold, [scope] if scope else None)


@router.get("/settings", response_model=dict[str, str])
async def get_settings(
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
):
    return await settings_store.get_all(db)


@router.post("/settings", response_model=SettingUpdateResponse)
async def update_setting(
    body: SettingUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    value = _validate_setting(body.key, body.value)
    setting = await settings_store.upsert(db, body.key, value)

    await log_activity(
        db, request, admin,
        action=LogAction.SETTINGS_UPDATED,
        entity_type="setting",
        entity_id=setting.id,
        details=f"{setting.key} = {setting.value}",
    )
    return SettingUpdateResponse(
        message="Setting updated", key=setting.key, value=setting.value
    )
