from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class ORMSchema(BaseModel):
    """支持从 ORM 对象直接生成 Schema"""

    model_config = ConfigDict(from_attributes=True)


def require_full_timestamp(value: Any) -> Any:
    """拒绝仅有日期的输入（例如 2024-01-01）"""
    if isinstance(value, str) and "T" not in value and " " not in value.strip():
        raise ValueError("a full timestamp is required, not a date")
    return value


class HealthCheckResponse(BaseModel):
    """健康检查响应"""
    status: str = "healthy"
    service: str = "dropstore"
    version: str = "1.0.0"
    redis: Optional[bool] = None
    checked_at: Optional[datetime] = None
