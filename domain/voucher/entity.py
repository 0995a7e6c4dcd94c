"""
优惠券实体
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from domain.common.clock import ensure_utc
from domain.common.money import ZERO, to_money


class DiscountType(str, Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED = "FIXED"


@dataclass
class Voucher:
    id: Optional[int]
    code: str
    discount_type: DiscountType
    value: Decimal
    min_order_value: Decimal = ZERO
    max_discount_value: Optional[Decimal] = None
    usage_limit: Optional[int] = None  # None 表示不限次数
    used_count: int = 0
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        self.valid_from = ensure_utc(self.valid_from)
        self.valid_until = ensure_utc(self.valid_until)
        self.created_at = ensure_utc(self.created_at)
        self.updated_at = ensure_utc(self.updated_at)

    @property
    def is_exhausted(self) -> bool:
        return self.usage_limit is not None and self.used_count >= self.usage_limit

    def is_within_window(self, now: datetime) -> bool:
        if self.valid_from and now < self.valid_from:
            return False
        if self.valid_until and now > self.valid_until:
            return False
        return True

    def invalid_reason(self, subtotal: Decimal, now: Optional[datetime] = None) -> Optional[str]:
        """返回不可用原因；可用时返回 None"""
        now = now or datetime.now(timezone.utc)
        if not self.is_active:
            return "voucher is inactive"
        if not self.is_within_window(now):
            return "voucher is expired or not yet valid"
        if self.is_exhausted:
            return "voucher usage limit reached"
        if subtotal < self.min_order_value:
            return f"order subtotal must be at least {to_money(self.min_order_value)}"
        return None

    def compute_discount(self, subtotal: Decimal) -> Decimal:
        subtotal = to_money(subtotal)
        if self.discount_type == DiscountType.PERCENTAGE:
            discount = subtotal * self.value / Decimal(100)
            if self.max_discount_value is not None:
                discount = min(discount, self.max_discount_value)
        else:
            discount = min(self.value, subtotal)
        return max(ZERO, min(to_money(discount), subtotal))
