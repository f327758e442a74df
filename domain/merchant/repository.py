"""
商户目录接口 - 只读访问外部维护的商户数据
"""
from abc import ABC, abstractmethod
from typing import Optional

from .entity import Merchant


class MerchantDirectory(ABC):
    """商户目录抽象接口"""

    @abstractmethod
    async def get_by_id(self, merchant_id: str) -> Optional[Merchant]:
        """根据ID获取商户"""
        pass

    @abstractmethod
    async def get_by_slug(self, slug: str) -> Optional[Merchant]:
        """根据 slug 获取商户"""
        pass
