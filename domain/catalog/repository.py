"""
商品 / 评价仓储接口
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, List, Optional, Set

from .entity import Product


class ProductRepository(ABC):

    @abstractmethod
    async def get_with_variants(self, product_id: int) -> Optional[Product]:
        """获取商品及其全部变体"""

    @abstractmethod
    async def get_by_ids(self, product_ids: Iterable[int]) -> List[Product]:
        """批量获取商品摘要（不含变体）"""

    @abstractmethod
    async def adjust_variant_stock(self, product_id: int, variant_id: int, delta: int) -> bool:
        """
        单条条件 UPDATE 调整变体库存。

        delta < 0 时要求当前库存 >= -delta；返回是否有行被更新。
        """


class ReviewRepository(ABC):

    @abstractmethod
    async def reviewed_product_ids(self, user_id: str, product_ids: Iterable[int]) -> Set[int]:
        """返回用户已评价过的商品ID集合"""
