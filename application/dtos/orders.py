"""
Order DTOs (Pydantic v2) used at application boundaries.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import ConfigDict, Field, field_validator

from application.dto import DTOBase
from domain.order.entity import (
    Order,
    OrderItem,
    OrderPaymentStatus,
    PaymentMethod,
    ShippingAddress,
    ShippingStatus,
)


class OrderLineDTO(DTOBase):
    product_id: int = Field(..., ge=1)
    variant_id: Optional[int] = Field(default=None, ge=1)
    quantity: int = Field(..., ge=1, le=1000)
    attributes: Optional[dict[str, str]] = None


class ShippingAddressDTO(DTOBase):
    full_name: str = Field(..., min_length=1, max_length=100)
    phone: str = Field(..., min_length=6, max_length=20, pattern=r"^\+?[0-9 ]+$")
    address_line1: str = Field(..., min_length=1, max_length=255)
    address_line2: Optional[str] = Field(default=None, max_length=255)
    ward: Optional[str] = Field(default=None, max_length=100)
    district: Optional[str] = Field(default=None, max_length=100)
    city: str = Field(..., min_length=1, max_length=100)
    postal_code: Optional[str] = Field(default=None, max_length=20)

    def to_value(self) -> ShippingAddress:
        return ShippingAddress(**self.model_dump())

    @classmethod
    def from_value(cls, address: ShippingAddress) -> "ShippingAddressDTO":
        return cls(**address.to_dict())


class CreateOrderDTO(DTOBase):
    """下单请求；客户端提交的任何金额字段都会被忽略"""

    model_config = ConfigDict(extra="ignore")

    items: list[OrderLineDTO] = Field(..., min_length=1, max_length=100)
    payment_method: PaymentMethod
    shipping_address: ShippingAddressDTO
    voucher_code: Optional[str] = Field(default=None, max_length=50)
    note: Optional[str] = Field(default=None, max_length=500)

    @field_validator("voucher_code")
    @classmethod
    def _strip_code(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None


class CancelCashOnDeliveryDTO(DTOBase):
    reason: Optional[str] = Field(default=None, max_length=500)


class OrderItemDTO(DTOBase):
    product_id: int
    variant_id: Optional[int]
    quantity: int
    unit_price: Decimal
    line_total: Decimal
    product_name: str
    attributes: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_entity(cls, item: OrderItem) -> "OrderItemDTO":
        return cls(
            product_id=item.product_id,
            variant_id=item.variant_id,
            quantity=item.quantity,
            unit_price=item.unit_price,
            line_total=item.line_total,
            product_name=item.product_name,
            attributes=dict(item.attributes),
        )


class OrderDTO(DTOBase):
    id: int
    order_code: str
    user_id: str
    items: list[OrderItemDTO]
    payment_method: PaymentMethod
    payment_status: OrderPaymentStatus
    shipping_status: ShippingStatus
    subtotal: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    voucher_id: Optional[int] = None
    shipping_address: ShippingAddressDTO
    note: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    paid_at: Optional[datetime] = None
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancelled_reason: Optional[str] = None

    @classmethod
    def from_entity(cls, order: Order) -> "OrderDTO":
        return cls(**_order_fields(order), items=[OrderItemDTO.from_entity(i) for i in order.items])


class OrderDetailItemDTO(OrderItemDTO):
    product_slug: Optional[str] = None
    product_image: Optional[str] = None
    reviewed: bool = False


class OrderDetailDTO(OrderDTO):
    items: list[OrderDetailItemDTO]  # type: ignore[assignment]


def _order_fields(order: Order) -> dict:
    return dict(
        id=order.id,
        order_code=order.order_code,
        user_id=order.user_id,
        payment_method=order.payment_method,
        payment_status=order.payment_status,
        shipping_status=order.shipping_status,
        subtotal=order.subtotal,
        discount_amount=order.discount_amount,
        total_amount=order.total_amount,
        voucher_id=order.voucher_id,
        shipping_address=ShippingAddressDTO.from_value(order.shipping_address),
        note=order.note,
        created_at=order.created_at,
        updated_at=order.updated_at,
        paid_at=order.paid_at,
        shipped_at=order.shipped_at,
        delivered_at=order.delivered_at,
        cancelled_at=order.cancelled_at,
        cancelled_reason=order.cancelled_reason,
    )


def order_detail_from_entity(
    order: Order,
    products: dict,
    reviewed: set[int],
) -> OrderDetailDTO:
    """订单详情：订单行附加当前商品 slug / 图片以及是否已评价"""
    items = []
    for item in order.items:
        product = products.get(item.product_id)
        items.append(
            OrderDetailItemDTO(
                **OrderItemDTO.from_entity(item).model_dump(mode="python"),
                product_slug=product.slug if product else None,
                product_image=product.image if product else None,
                reviewed=item.product_id in reviewed,
            )
        )
    return OrderDetailDTO(**_order_fields(order), items=items)


class PaymentRedirectDTO(DTOBase):
    transaction_id: str
    payment_url: str


class CashOnDeliveryOrderResult(DTOBase):
    payment_method: Literal["CASH_ON_DELIVERY"] = "CASH_ON_DELIVERY"
    order: OrderDTO


class OnlinePaymentOrderResult(DTOBase):
    payment_method: Literal["ONLINE_PAYMENT"] = "ONLINE_PAYMENT"
    order: OrderDTO
    payment: PaymentRedirectDTO


CreateOrderResult = Annotated[
    Union[CashOnDeliveryOrderResult, OnlinePaymentOrderResult],
    Field(discriminator="payment_method"),
]


class OrderConfirmationDTO(DTOBase):
    """确认邮件内容（模板渲染由外部邮件服务负责）"""

    order_id: int
    order_code: str
    created_at: datetime
    items: list[OrderItemDTO]
    total: Decimal
    shipping_address: ShippingAddressDTO

    @classmethod
    def from_entity(cls, order: Order) -> "OrderConfirmationDTO":
        return cls(
            order_id=order.id,
            order_code=order.order_code,
            created_at=order.created_at,
            items=[OrderItemDTO.from_entity(i) for i in order.items],
            total=order.total_amount,
            shipping_address=ShippingAddressDTO.from_value(order.shipping_address),
        )
