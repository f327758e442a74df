"""
支付请求值对象 - 对外链接标识 linkId

linkId 是唯一逐字节对外的契约：``{slug}/{YYYYMMDD}/{4位补零订单号}``，
出现在外部 URL 中，必须可无损解析回 (slug, 日期, 订单号)。
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from domain.common.exceptions import InvalidLinkIdException


MAX_ORDER_NUMBER = 9999
ORDER_NUMBER_WIDTH = 4


def format_order_number(order_number: int) -> str:
    """1 -> "0001", 42 -> "0042" """
    return str(order_number).zfill(ORDER_NUMBER_WIDTH)


def _is_calendar_date(value: str) -> bool:
    if len(value) != 8 or not (value.isascii() and value.isdigit()):
        return False
    try:
        datetime.strptime(value, "%Y%m%d")
    except ValueError:
        return False
    return True


@dataclass(frozen=True)
class LinkId:
    slug: str
    order_date: str
    order_number: int

    def __post_init__(self):
        if not self.slug or "/" in self.slug:
            raise InvalidLinkIdException(str(self.slug), "slug must be non-empty and contain no '/'")
        if not _is_calendar_date(self.order_date):
            raise InvalidLinkIdException(self.order_date, "order date must be a valid YYYYMMDD date")
        if not 1 <= self.order_number <= MAX_ORDER_NUMBER:
            raise InvalidLinkIdException(
                str(self.order_number), f"order number must be within 1-{MAX_ORDER_NUMBER}"
            )

    @property
    def value(self) -> str:
        return f"{self.slug}/{self.order_date}/{format_order_number(self.order_number)}"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, link_id: str) -> "LinkId":
        parts = (link_id or "").split("/")
        if len(parts) != 3:
            raise InvalidLinkIdException(link_id, "expected slug/YYYYMMDD/NNNN")
        slug, order_date, number = parts
        if len(number) != ORDER_NUMBER_WIDTH or not (number.isascii() and number.isdigit()):
            raise InvalidLinkIdException(link_id, f"order number must be {ORDER_NUMBER_WIDTH} digits")
        return cls(slug=slug, order_date=order_date, order_number=int(number))


def generate_link_id(slug: str, order_date: str, order_number: int) -> str:
    """示例："jumasm/20251106/0001" """
    return LinkId(slug=slug, order_date=order_date, order_number=order_number).value
