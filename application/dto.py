"""
DTO 基类与分页参数
"""
from datetime import datetime, timezone

from pydantic import BaseModel, Field, model_serializer

from core.config import settings


def _to_utc_z(value):
    """递归地把 datetime 转成以 Z 结尾的 UTC ISO8601 字符串"""
    if isinstance(value, datetime):
        ts = value.astimezone(timezone.utc) if value.tzinfo else value.replace(tzinfo=timezone.utc)
        return ts.isoformat().replace("+00:00", "Z")
    if isinstance(value, dict):
        return {k: _to_utc_z(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return type(value)(_to_utc_z(v) for v in value)
    return value


class DTOBase(BaseModel):
    """所有 DTO 的时间字段统一序列化为 UTC-Z"""

    @model_serializer(mode="wrap")
    def _serialize_model(self, handler):  # type: ignore[override]
        return _to_utc_z(handler(self))


class PaginationParams(DTOBase):
    page: int = Field(1, ge=1, description="页码，从1开始")
    size: int = Field(
        default=settings.DEFAULT_PAGE_SIZE,
        ge=1,
        le=settings.MAX_PAGE_SIZE,
        description="每页大小",
    )

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.size

    @property
    def limit(self) -> int:
        return self.size
