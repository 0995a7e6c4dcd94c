"""
商品目录数据库模型（外部聚合，本服务只读并调整库存）
"""
from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, Boolean, JSON,
    ForeignKey, Index
)
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from .base import Base


class ProductModel(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, comment="商品名")
    slug = Column(String(255), nullable=True, index=True, comment="URL 标识")
    image = Column(String(500), nullable=True, comment="主图")
    is_active = Column(Boolean, nullable=False, default=True, comment="是否上架")

    variants = relationship(
        "ProductVariantModel",
        back_populates="product",
        order_by="ProductVariantModel.id",
        lazy="selectin",
    )

    def __repr__(self):
        return f"<ProductModel(id={self.id}, name='{self.name}')>"


class ProductVariantModel(Base):
    __tablename__ = "product_variants"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    sku = Column(String(100), nullable=True, comment="SKU")
    price = Column(Numeric(precision=15, scale=2), nullable=False, comment="价格")
    quantity = Column(Integer, nullable=False, default=0, comment="库存")
    attributes = Column(JSON, nullable=True, comment="属性，如颜色/尺码")

    product = relationship("ProductModel", back_populates="variants")

    def __repr__(self):
        return f"<ProductVariantModel(id={self.id}, product_id={self.product_id}, quantity={self.quantity})>"


class ProductReviewModel(Base):
    __tablename__ = "product_reviews"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(64), nullable=False)
    rating = Column(Integer, nullable=False)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_product_reviews_user_product", "user_id", "product_id"),
    )
