from datetime import datetime

from pydantic import BaseModel


class SystemLogOut(BaseModel):
    id: int
    user_id: int | None = None
    user_name: str | None = None
    user_email: str | None = None
    action: str
    entity_type: str | None = None
    entity_id: int | None = None
    ip_address: str | None = None
    details: str | None = None
    created_at: datetime


class ActionCount(BaseModel):
    action: str
    count: int


class UserActivity(BaseModel):
    user_id: int | None = None
    user_name: str
    count: int


class LogsStats(BaseModel):
    total_logs: int
    action_counts: list[ActionCount]
    user_activity: list[UserActivity]


class CleanLogsResponse(BaseModel):
    message: str
    deleted: int
