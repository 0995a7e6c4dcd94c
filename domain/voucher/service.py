"""
优惠券领域服务 - 校验与核销
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from domain.common.exceptions import VoucherInvalidException, VoucherNotFoundException
from domain.common.money import ZERO, to_money

from .entity import Voucher
from .repository import VoucherRepository


@dataclass(frozen=True)
class VoucherVerification:
    valid: bool
    discount_amount: Decimal
    voucher: Voucher
    reason: Optional[str] = None


class VoucherApplier:
    """
    校验规则：启用 且 在有效期内 且 未用尽 且 小计 >= 最低订单金额。

    apply 每个订单只调用一次，并且必须在校验通过之后；
    重复调用的防护由调用方负责。
    """

    def __init__(self, voucher_repository: VoucherRepository):
        self.voucher_repository = voucher_repository

    async def verify(self, code: str, subtotal: Decimal, now: Optional[datetime] = None) -> VoucherVerification:
        voucher = await self.voucher_repository.get_by_code(code.strip())
        if voucher is None:
            raise VoucherNotFoundException(code)
        reason = voucher.invalid_reason(to_money(subtotal), now)
        if reason:
            return VoucherVerification(valid=False, discount_amount=ZERO, voucher=voucher, reason=reason)
        return VoucherVerification(
            valid=True,
            discount_amount=voucher.compute_discount(subtotal),
            voucher=voucher,
        )

    async def apply(self, voucher_id: int) -> None:
        if await self.voucher_repository.increment_usage(voucher_id):
            return
        voucher = await self.voucher_repository.get_by_id(voucher_id)
        if voucher is None:
            raise VoucherNotFoundException(voucher_id=voucher_id)
        raise VoucherInvalidException(voucher.code, "voucher usage limit reached")
