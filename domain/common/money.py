"""金额工具：统一使用 Decimal，保留两位小数，四舍五入（half-up）"""
from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Union

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Union[Decimal, int, float, str]) -> Decimal:
    if not isinstance(value, Decimal):
        # float 先转 str，避免二进制误差
        value = Decimal(str(value))
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def to_minor_units(amount: Decimal) -> int:
    """金额 × 100 转为最小货币单位整数"""
    return int((to_money(amount) * 100).to_integral_value(rounding=ROUND_HALF_UP))
