"""
支付流水领域实体 - 每次支付尝试一条记录，独立于订单生命周期，用于审计与对账
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from domain.common.clock import ensure_utc
from domain.common.exceptions import DomainValidationException


class PaymentStatus(str, Enum):
    """支付尝试状态：PENDING -> COMPLETED | FAILED（终态）"""
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class PaymentProvider(str, Enum):
    VNPAY = "VNPAY"


@dataclass
class PaymentDetails:
    """
    网关返回的已知字段 + 扩展字段

    已知字段显式建模，其余渠道特有信息放入 extras。
    """

    order_info: Optional[str] = None
    response_code: Optional[str] = None
    transaction_no: Optional[str] = None
    bank_code: Optional[str] = None
    card_type: Optional[str] = None
    pay_date: Optional[str] = None
    extras: dict[str, str] = field(default_factory=dict)

    _KNOWN = ("order_info", "response_code", "transaction_no", "bank_code", "card_type", "pay_date")

    def merge(self, other: "PaymentDetails") -> "PaymentDetails":
        merged = {k: getattr(other, k) or getattr(self, k) for k in self._KNOWN}
        return PaymentDetails(**merged, extras={**self.extras, **other.extras})

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {k: getattr(self, k) for k in self._KNOWN if getattr(self, k) is not None}
        if self.extras:
            data["extras"] = dict(self.extras)
        return data

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "PaymentDetails":
        data = dict(data or {})
        extras = data.pop("extras", None) or {}
        known = {k: data.pop(k) for k in cls._KNOWN if k in data}
        # 未知键并入 extras，避免丢失
        extras.update({k: str(v) for k, v in data.items()})
        return cls(**known, extras=extras)


@dataclass
class PaymentHistoryRecord:
    """
    支付尝试记录

    业务规则：
    1. 金额必须大于0
    2. 只有 PENDING 可以转为 COMPLETED / FAILED，终态不可再变
    """

    id: Optional[int]
    order_id: int
    user_id: str
    amount: Decimal
    currency: str
    provider: PaymentProvider
    transaction_id: str
    status: PaymentStatus = PaymentStatus.PENDING
    payment_details: PaymentDetails = field(default_factory=PaymentDetails)
    completed_at: Optional[datetime] = None
    failure_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        if self.amount <= 0:
            raise DomainValidationException(f"支付金额必须大于0: {self.amount}", field="amount")
        if self.payment_details is None:
            self.payment_details = PaymentDetails()
        self.completed_at = ensure_utc(self.completed_at)
        self.created_at = ensure_utc(self.created_at)
        self.updated_at = ensure_utc(self.updated_at)

    @property
    def is_terminal(self) -> bool:
        return self.status in (PaymentStatus.COMPLETED, PaymentStatus.FAILED)

    def _ensure_pending(self, target: PaymentStatus) -> None:
        if self.status != PaymentStatus.PENDING:
            raise DomainValidationException(
                f"无法从状态 {self.status.value} 转换为 {target.value}",
                field="status",
            )

    def mark_completed(self, details: Optional[PaymentDetails] = None, at: Optional[datetime] = None) -> None:
        self._ensure_pending(PaymentStatus.COMPLETED)
        at = ensure_utc(at) or datetime.now(timezone.utc)
        self.status = PaymentStatus.COMPLETED
        self.completed_at = at
        self.updated_at = at
        self.failure_reason = None
        if details is not None:
            self.payment_details = self.payment_details.merge(details)

    def mark_failed(self, reason: str, details: Optional[PaymentDetails] = None, at: Optional[datetime] = None) -> None:
        self._ensure_pending(PaymentStatus.FAILED)
        self.status = PaymentStatus.FAILED
        self.failure_reason = reason
        self.updated_at = ensure_utc(at) or datetime.now(timezone.utc)
        if details is not None:
            self.payment_details = self.payment_details.merge(details)
