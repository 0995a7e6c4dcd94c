"""
Voucher DTOs.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import Field

from application.dto import DTOBase
from domain.voucher.entity import DiscountType
from domain.voucher.service import VoucherVerification


class VerifyVoucherDTO(DTOBase):
    code: str = Field(..., min_length=1, max_length=50)
    subtotal: Decimal = Field(..., ge=0, max_digits=15, decimal_places=2)


class VoucherVerificationDTO(DTOBase):
    valid: bool
    code: str
    voucher_id: int
    discount_type: DiscountType
    value: Decimal
    discount_amount: Decimal
    min_order_value: Decimal
    max_discount_value: Optional[Decimal] = None
    valid_until: Optional[datetime] = None
    reason: Optional[str] = None

    @classmethod
    def from_verification(cls, result: VoucherVerification) -> "VoucherVerificationDTO":
        voucher = result.voucher
        return cls(
            valid=result.valid,
            code=voucher.code,
            voucher_id=voucher.id,
            discount_type=voucher.discount_type,
            value=voucher.value,
            discount_amount=result.discount_amount,
            min_order_value=voucher.min_order_value,
            max_discount_value=voucher.max_discount_value,
            valid_until=voucher.valid_until,
            reason=result.reason,
        )
