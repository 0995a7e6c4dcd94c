"""
Payment DTOs (Pydantic v2) used at application boundaries.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import Field

from application.dto import DTOBase
from domain.order.entity import OrderPaymentStatus, ShippingStatus
from domain.payment.entity import PaymentDetails, PaymentHistoryRecord, PaymentStatus
from shared.codes.payment_codes import VNPAY_SUCCESS_CODE


class GatewayCallback(DTOBase):
    """已验签的网关回调参数"""

    txn_ref: str
    order_id: int
    response_code: str
    amount_minor: Optional[int] = None
    transaction_no: Optional[str] = None
    transaction_status: Optional[str] = None
    bank_code: Optional[str] = None
    card_type: Optional[str] = None
    pay_date: Optional[str] = None
    order_info: Optional[str] = None
    raw: dict[str, str] = Field(default_factory=dict)

    @property
    def is_success(self) -> bool:
        return self.response_code == VNPAY_SUCCESS_CODE

    def to_details(self) -> PaymentDetails:
        known = {
            "vnp_TxnRef", "vnp_ResponseCode", "vnp_Amount", "vnp_TransactionNo",
            "vnp_BankCode", "vnp_CardType", "vnp_PayDate", "vnp_OrderInfo",
        }
        return PaymentDetails(
            order_info=self.order_info,
            response_code=self.response_code,
            transaction_no=self.transaction_no,
            bank_code=self.bank_code,
            card_type=self.card_type,
            pay_date=self.pay_date,
            extras={k: v for k, v in self.raw.items() if k not in known},
        )


class CallbackResult(DTOBase):
    success: bool
    order_id: int
    message: str
    redirect_url: str
    duplicate: bool = False


class PaymentHistoryDTO(DTOBase):
    id: int
    order_id: int
    user_id: str
    amount: Decimal
    currency: str
    provider: str
    transaction_id: str
    status: PaymentStatus
    payment_details: dict[str, Any] = Field(default_factory=dict)
    completed_at: Optional[datetime] = None
    failure_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, record: PaymentHistoryRecord) -> "PaymentHistoryDTO":
        return cls(
            id=record.id,
            order_id=record.order_id,
            user_id=record.user_id,
            amount=record.amount,
            currency=record.currency,
            provider=record.provider.value,
            transaction_id=record.transaction_id,
            status=record.status,
            payment_details=record.payment_details.to_dict(),
            completed_at=record.completed_at,
            failure_reason=record.failure_reason,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


class PaymentLandingDTO(DTOBase):
    """支付完成/取消落地页返回的订单当前状态"""

    success: bool
    order_id: int
    order_code: str
    payment_status: OrderPaymentStatus
    shipping_status: ShippingStatus
    message: str
