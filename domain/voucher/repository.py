"""
优惠券仓储接口
"""
from abc import ABC, abstractmethod
from typing import Optional

from .entity import Voucher


class VoucherRepository(ABC):

    @abstractmethod
    async def get_by_code(self, code: str) -> Optional[Voucher]:
        ...

    @abstractmethod
    async def get_by_id(self, voucher_id: int) -> Optional[Voucher]:
        ...

    @abstractmethod
    async def increment_usage(self, voucher_id: int) -> bool:
        """used_count + 1，仅当未达到 usage_limit；返回是否成功"""
