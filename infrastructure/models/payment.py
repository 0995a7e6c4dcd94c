"""
支付流水数据库模型 - SQLAlchemy ORM模型
注意：这是基础设施层的实现细节，不是领域模型
"""
from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, Text, JSON,
    Index, ForeignKey
)
from datetime import datetime, timezone

from .base import Base


class PaymentHistoryModel(Base):
    """
    支付流水数据库模型

    每次支付尝试一行；所有业务规则都在 domain.payment.entity.PaymentHistoryRecord 中
    """
    __tablename__ = "payment_history"

    id = Column(Integer, primary_key=True, index=True)

    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True, comment="订单ID")
    user_id = Column(String(64), nullable=False, index=True, comment="用户ID")

    amount = Column(Numeric(precision=15, scale=2), nullable=False, comment="支付金额")
    currency = Column(String(3), nullable=False, default="VND", comment="货币代码 ISO-4217")
    provider = Column(String(32), nullable=False, comment="支付提供商")
    transaction_id = Column(String(100), unique=True, nullable=False, comment="交易号（每次尝试唯一）")

    status = Column(
        String(16),
        nullable=False,
        default="PENDING",
        index=True,
        comment="PENDING/COMPLETED/FAILED"
    )
    payment_details = Column(JSON, nullable=True, comment="网关返回字段")
    failure_reason = Column(Text, nullable=True, comment="失败原因")

    completed_at = Column(DateTime(timezone=True), nullable=True, comment="完成时间")
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
        comment="创建时间"
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="更新时间"
    )

    __table_args__ = (
        Index("ix_payment_history_order_txn", "order_id", "transaction_id"),
        Index("ix_payment_history_user_status", "user_id", "status"),
    )

    def __repr__(self):
        return (
            f"<PaymentHistoryModel(id={self.id}, order_id={self.order_id}, "
            f"transaction_id='{self.transaction_id}', status='{self.status}')>"
        )
