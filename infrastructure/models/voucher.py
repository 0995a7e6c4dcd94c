"""
优惠券数据库模型
"""
from sqlalchemy import Column, Integer, String, Numeric, DateTime, Boolean
from datetime import datetime, timezone

from .base import Base


class VoucherModel(Base):
    __tablename__ = "vouchers"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(50), unique=True, index=True, nullable=False, comment="优惠码")
    discount_type = Column(String(16), nullable=False, comment="PERCENTAGE/FIXED")
    value = Column(Numeric(precision=15, scale=2), nullable=False, comment="折扣值")
    min_order_value = Column(Numeric(precision=15, scale=2), nullable=False, default=0, comment="最低订单金额")
    max_discount_value = Column(Numeric(precision=15, scale=2), nullable=True, comment="最高折扣（百分比券）")
    usage_limit = Column(Integer, nullable=True, comment="使用上限，空表示不限")
    used_count = Column(Integer, nullable=False, default=0, comment="已使用次数")
    valid_from = Column(DateTime(timezone=True), nullable=True, comment="生效时间")
    valid_until = Column(DateTime(timezone=True), nullable=True, comment="失效时间")
    is_active = Column(Boolean, nullable=False, default=True, comment="是否启用")

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="创建时间"
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="更新时间"
    )

    def __repr__(self):
        return f"<VoucherModel(id={self.id}, code='{self.code}', used={self.used_count}/{self.usage_limit})>"
