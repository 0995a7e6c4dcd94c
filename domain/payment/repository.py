"""
支付流水仓储接口 - 定义数据访问的抽象接口
"""
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

from .entity import PaymentHistoryRecord, PaymentStatus


class PaymentAttemptConflict(Exception):
    """交易号唯一索引冲突"""


class PaymentHistoryRepository(ABC):
    """支付流水仓储抽象接口 - 只定义能做什么，不管怎么做"""

    @abstractmethod
    async def add(self, record: PaymentHistoryRecord) -> PaymentHistoryRecord:
        """新增支付尝试记录"""

    @abstractmethod
    async def get_by_transaction_id(self, transaction_id: str) -> Optional[PaymentHistoryRecord]:
        ...

    @abstractmethod
    async def get_by_order_and_transaction(
        self, order_id: int, transaction_id: str
    ) -> Optional[PaymentHistoryRecord]:
        """按 (订单ID, 交易号) 定位一次支付尝试"""

    @abstractmethod
    async def transition_if_pending(self, record: PaymentHistoryRecord) -> bool:
        """
        条件更新：仅当数据库中状态仍为 PENDING 时写入 record 的终态。

        返回是否实际更新（并发重复回调时只有一个会返回 True）。
        """

    @abstractmethod
    async def list_by_user(
        self,
        user_id: str,
        status: Optional[PaymentStatus] = None,
        skip: int = 0,
        limit: int = 10,
    ) -> Tuple[List[PaymentHistoryRecord], int]:
        """获取用户的支付记录（带总数）"""

    @abstractmethod
    async def list_all(
        self,
        status: Optional[PaymentStatus] = None,
        skip: int = 0,
        limit: int = 10,
    ) -> Tuple[List[PaymentHistoryRecord], int]:
        """管理端支付记录（带总数）"""
