"""
订单数据库模型 - SQLAlchemy ORM模型
注意：这是基础设施层的实现细节，不是领域模型
"""
from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, Text, JSON,
    Index, ForeignKey
)
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from .base import Base


class OrderModel(Base):
    """
    订单数据库模型

    所有业务规则都在 domain.order.entity.Order 中；
    金额列为计算结果的冗余存储，便于查询与报表。
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_code = Column(String(32), unique=True, nullable=False, comment="订单号")
    user_id = Column(String(64), nullable=False, index=True, comment="用户ID")

    payment_method = Column(String(32), nullable=False, comment="CASH_ON_DELIVERY/ONLINE_PAYMENT")
    payment_status = Column(String(16), nullable=False, default="PENDING", index=True, comment="PENDING/COMPLETED/FAILED")
    shipping_status = Column(String(16), nullable=False, default="PENDING", index=True, comment="PENDING/SHIPPED/DELIVERED/CANCELED")

    subtotal = Column(Numeric(precision=15, scale=2), nullable=False, comment="小计")
    discount_amount = Column(Numeric(precision=15, scale=2), nullable=False, default=0, comment="折扣")
    total_amount = Column(Numeric(precision=15, scale=2), nullable=False, comment="应付金额")

    voucher_id = Column(Integer, ForeignKey("vouchers.id"), nullable=True, comment="优惠券ID")
    contact_email = Column(String(255), nullable=True, comment="确认邮件收件地址")
    note = Column(Text, nullable=True, comment="备注")

    # 收货地址快照；收件人与电话冗余一份用于搜索
    shipping_address = Column(JSON, nullable=False, comment="收货地址快照")
    recipient_name = Column(String(100), nullable=False, comment="收件人")
    recipient_phone = Column(String(32), nullable=False, comment="收件人电话")

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="创建时间"
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="更新时间"
    )
    paid_at = Column(DateTime(timezone=True), nullable=True, comment="支付时间")
    shipped_at = Column(DateTime(timezone=True), nullable=True, comment="发货时间")
    delivered_at = Column(DateTime(timezone=True), nullable=True, comment="送达时间")
    cancelled_at = Column(DateTime(timezone=True), nullable=True, comment="取消时间")
    cancelled_reason = Column(Text, nullable=True, comment="取消原因")

    items = relationship(
        "OrderItemModel",
        back_populates="order",
        order_by="OrderItemModel.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        Index("ix_orders_user_created", "user_id", "created_at"),
        Index("ix_orders_status", "payment_status", "shipping_status"),
    )

    def __repr__(self):
        return (
            f"<OrderModel(id={self.id}, order_code='{self.order_code}', "
            f"payment_status='{self.payment_status}', shipping_status='{self.shipping_status}')>"
        )


class OrderItemModel(Base):
    """订单行快照"""
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(
        Integer,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="订单ID"
    )
    position = Column(Integer, nullable=False, default=0, comment="行序号")

    product_id = Column(Integer, nullable=False, index=True, comment="商品ID")
    variant_id = Column(Integer, nullable=True, comment="变体ID（未指定时为空）")
    quantity = Column(Integer, nullable=False, comment="数量")
    unit_price = Column(Numeric(precision=15, scale=2), nullable=False, comment="下单时单价")
    product_name = Column(String(255), nullable=False, comment="商品名快照")
    attributes = Column(JSON, nullable=True, comment="属性快照")
    # [{"variant_id": 1, "quantity": 2}, ...] 实际扣减的变体
    allocations = Column(JSON, nullable=True, comment="库存分配")

    order = relationship("OrderModel", back_populates="items")

    def __repr__(self):
        return f"<OrderItemModel(id={self.id}, order_id={self.order_id}, product_id={self.product_id}, quantity={self.quantity})>"
