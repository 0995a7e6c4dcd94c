"""
订单领域实体 - 订单聚合根

支付状态与物流状态是两个正交的小状态机：
  payment:  PENDING -> COMPLETED | FAILED
  shipping: PENDING -> SHIPPED -> DELIVERED
            PENDING -> CANCELED（仅当 payment 为 PENDING 或 FAILED）
"""
from __future__ import annotations

import random
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional, Tuple

from domain.common.exceptions import DomainValidationException, InvalidOrderStateException
from domain.common.clock import ensure_utc
from domain.common.money import ZERO, to_money


class PaymentMethod(str, Enum):
    CASH_ON_DELIVERY = "CASH_ON_DELIVERY"
    ONLINE_PAYMENT = "ONLINE_PAYMENT"


class OrderPaymentStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class ShippingStatus(str, Enum):
    PENDING = "PENDING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELED = "CANCELED"


OrderState = Tuple[OrderPaymentStatus, ShippingStatus]


def generate_order_code(now: Optional[datetime] = None) -> str:
    """ORD- + 毫秒时间戳后8位 + 4位随机数"""
    millis = int(now.timestamp() * 1000) if now else int(time.time() * 1000)
    return f"ORD-{str(millis)[-8:]}{random.randint(0, 9999):04d}"


@dataclass(frozen=True)
class ShippingAddress:
    """收货地址快照"""

    full_name: str
    phone: str
    address_line1: str
    city: str
    address_line2: Optional[str] = None
    district: Optional[str] = None
    ward: Optional[str] = None
    postal_code: Optional[str] = None

    def __post_init__(self):
        for name in ("full_name", "phone", "address_line1", "city"):
            if not (getattr(self, name) or "").strip():
                raise DomainValidationException(f"{name} is required", field=f"shipping_address.{name}")

    def to_dict(self) -> dict:
        return {
            "full_name": self.full_name,
            "phone": self.phone,
            "address_line1": self.address_line1,
            "address_line2": self.address_line2,
            "ward": self.ward,
            "district": self.district,
            "city": self.city,
            "postal_code": self.postal_code,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ShippingAddress":
        return cls(
            full_name=data["full_name"],
            phone=data["phone"],
            address_line1=data["address_line1"],
            address_line2=data.get("address_line2"),
            ward=data.get("ward"),
            district=data.get("district"),
            city=data["city"],
            postal_code=data.get("postal_code"),
        )


@dataclass(frozen=True)
class StockAllocation:
    """一行订单实际扣减的变体与数量"""

    variant_id: int
    quantity: int


@dataclass(frozen=True)
class OrderItem:
    """
    订单行快照，创建后不可变

    商品后续修改名称、价格、属性都不会影响历史订单。
    """

    product_id: int
    quantity: int
    unit_price: Decimal
    product_name: str
    variant_id: Optional[int] = None
    attributes: dict = field(default_factory=dict)
    allocations: Tuple[StockAllocation, ...] = ()

    def __post_init__(self):
        if self.quantity < 1:
            raise DomainValidationException(
                f"quantity must be at least 1: {self.quantity}", field="items.quantity"
            )
        if self.unit_price < 0:
            raise DomainValidationException(
                f"unit price must not be negative: {self.unit_price}", field="items.unit_price"
            )
        object.__setattr__(self, "unit_price", to_money(self.unit_price))
        if self.allocations and sum(a.quantity for a in self.allocations) != self.quantity:
            raise DomainValidationException(
                "stock allocation does not cover the line quantity", field="items.quantity"
            )

    @property
    def line_total(self) -> Decimal:
        return to_money(self.unit_price * self.quantity)

    def stock_allocations(self) -> Tuple[StockAllocation, ...]:
        if self.allocations:
            return self.allocations
        if self.variant_id is not None:
            return (StockAllocation(variant_id=self.variant_id, quantity=self.quantity),)
        return ()


@dataclass
class Order:
    """
    订单聚合根

    业务规则：
    1. subtotal / total_amount 只由订单行与折扣计算，从不信任客户端
    2. 折扣被限制在 [0, subtotal]
    3. 支付方式创建后不可变
    4. 状态转换必须通过下列方法完成
    """

    id: Optional[int]
    user_id: str
    order_code: str
    items: list[OrderItem]
    payment_method: PaymentMethod
    shipping_address: ShippingAddress
    payment_status: OrderPaymentStatus = OrderPaymentStatus.PENDING
    shipping_status: ShippingStatus = ShippingStatus.PENDING
    discount_amount: Decimal = ZERO
    voucher_id: Optional[int] = None
    contact_email: Optional[str] = None
    note: Optional[str] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancelled_reason: Optional[str] = None

    def __post_init__(self):
        if not self.items:
            raise DomainValidationException("order must contain at least one item", field="items")
        discount = to_money(self.discount_amount or ZERO)
        self.discount_amount = min(max(discount, ZERO), self.subtotal)
        self.created_at = ensure_utc(self.created_at)
        self.updated_at = ensure_utc(self.updated_at)
        self.paid_at = ensure_utc(self.paid_at)
        self.shipped_at = ensure_utc(self.shipped_at)
        self.delivered_at = ensure_utc(self.delivered_at)
        self.cancelled_at = ensure_utc(self.cancelled_at)

    @classmethod
    def place(
        cls,
        *,
        user_id: str,
        items: list[OrderItem],
        payment_method: PaymentMethod,
        shipping_address: ShippingAddress,
        discount_amount: Decimal = ZERO,
        voucher_id: Optional[int] = None,
        contact_email: Optional[str] = None,
        note: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> "Order":
        now = now or datetime.now(timezone.utc)
        return cls(
            id=None,
            user_id=user_id,
            order_code=generate_order_code(now),
            items=list(items),
            payment_method=payment_method,
            shipping_address=shipping_address,
            discount_amount=discount_amount,
            voucher_id=voucher_id,
            contact_email=contact_email,
            note=note,
            created_at=now,
            updated_at=now,
        )

    @property
    def subtotal(self) -> Decimal:
        return to_money(sum((item.line_total for item in self.items), ZERO))

    @property
    def total_amount(self) -> Decimal:
        return max(ZERO, to_money(self.subtotal - self.discount_amount))

    @property
    def state(self) -> OrderState:
        return (self.payment_status, self.shipping_status)

    def _touch(self, at: datetime) -> datetime:
        at = ensure_utc(at) or datetime.now(timezone.utc)
        self.updated_at = at
        return at

    def _reject(self, message: str) -> InvalidOrderStateException:
        return InvalidOrderStateException(
            message,
            order_id=self.id,
            details={
                "payment_status": self.payment_status.value,
                "shipping_status": self.shipping_status.value,
            },
        )

    def cancel(self, at: Optional[datetime] = None) -> None:
        """用户取消：支付失败 + 物流取消"""
        if self.payment_status != OrderPaymentStatus.PENDING:
            raise self._reject("Cannot cancel order in current status")
        if self.shipping_status != ShippingStatus.PENDING:
            raise self._reject("Cannot cancel an order that has already been shipped")
        at = self._touch(at or datetime.now(timezone.utc))
        self.payment_status = OrderPaymentStatus.FAILED
        self.shipping_status = ShippingStatus.CANCELED
        self.cancelled_at = at

    def cancel_cash_on_delivery(self, reason: Optional[str] = None, at: Optional[datetime] = None) -> None:
        if self.payment_method != PaymentMethod.CASH_ON_DELIVERY:
            raise self._reject("Only cash-on-delivery orders can be cancelled this way")
        if self.payment_status != OrderPaymentStatus.PENDING or self.shipping_status != ShippingStatus.PENDING:
            raise self._reject("Cannot cancel order in current status")
        at = self._touch(at or datetime.now(timezone.utc))
        self.shipping_status = ShippingStatus.CANCELED
        self.cancelled_at = at
        self.cancelled_reason = reason

    def ensure_payable(self) -> None:
        if self.payment_method != PaymentMethod.ONLINE_PAYMENT:
            raise self._reject("Order is not set for online payment")
        if self.payment_status != OrderPaymentStatus.PENDING:
            raise self._reject("Order is not in a payable state")
        if self.shipping_status == ShippingStatus.CANCELED:
            raise self._reject("Order has been cancelled")

    def mark_paid(self, at: Optional[datetime] = None) -> None:
        if self.payment_status != OrderPaymentStatus.PENDING:
            raise self._reject("Order payment is not pending")
        at = self._touch(at or datetime.now(timezone.utc))
        self.payment_status = OrderPaymentStatus.COMPLETED
        self.paid_at = at

    def mark_shipped(self, at: Optional[datetime] = None) -> None:
        if self.shipping_status != ShippingStatus.PENDING:
            raise self._reject("Only pending orders can be shipped")
        cod_unpaid = (
            self.payment_method == PaymentMethod.CASH_ON_DELIVERY
            and self.payment_status == OrderPaymentStatus.PENDING
        )
        if self.payment_status != OrderPaymentStatus.COMPLETED and not cod_unpaid:
            raise self._reject("Order must be paid before shipping")
        at = self._touch(at or datetime.now(timezone.utc))
        self.shipping_status = ShippingStatus.SHIPPED
        self.shipped_at = at

    def mark_delivered(self, at: Optional[datetime] = None) -> None:
        if self.shipping_status != ShippingStatus.SHIPPED:
            raise self._reject("Only shipped orders can be delivered")
        at = self._touch(at or datetime.now(timezone.utc))
        self.shipping_status = ShippingStatus.DELIVERED
        self.delivered_at = at
