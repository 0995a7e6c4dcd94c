"""
订单仓储接口
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple

from .entity import Order, OrderState, OrderPaymentStatus, ShippingStatus, PaymentMethod


@dataclass(frozen=True)
class OrderSearchCriteria:
    """订单列表过滤条件；user_id 为空表示管理端全量查询"""

    user_id: Optional[str] = None
    payment_status: Optional[OrderPaymentStatus] = None
    shipping_status: Optional[ShippingStatus] = None
    payment_method: Optional[PaymentMethod] = None
    search: Optional[str] = None  # 订单号 / 收件人 / 电话
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None


class OrderRepository(ABC):

    @abstractmethod
    async def add(self, order: Order) -> Order:
        """持久化新订单（含订单行）；订单号冲突时抛出 OrderCodeConflict"""

    @abstractmethod
    async def exists_by_code(self, order_code: str) -> bool:
        ...

    @abstractmethod
    async def get_by_id(self, order_id: int) -> Optional[Order]:
        ...

    @abstractmethod
    async def get_for_user(self, order_id: int, user_id: str) -> Optional[Order]:
        """仅返回属于该用户的订单"""

    @abstractmethod
    async def save_transition(self, order: Order, expected: OrderState) -> Order:
        """
        条件更新：仅当数据库中的 (payment_status, shipping_status) 仍为 expected 时写入。

        失败（被并发请求抢先）抛出 InvalidOrderStateException。
        """

    @abstractmethod
    async def search(
        self,
        criteria: OrderSearchCriteria,
        skip: int = 0,
        limit: int = 10,
    ) -> Tuple[List[Order], int]:
        """按创建时间倒序分页，返回 (订单, 总数)"""


class OrderCodeConflict(Exception):
    """订单号唯一索引冲突"""
