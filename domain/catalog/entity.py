"""
商品目录实体（外部聚合，此处只读，库存仅经由库存服务调整）
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional


@dataclass
class ProductVariant:
    id: int
    product_id: int
    price: Decimal
    quantity: int
    sku: Optional[str] = None
    attributes: dict = field(default_factory=dict)


@dataclass
class Product:
    id: int
    name: str
    slug: Optional[str] = None
    image: Optional[str] = None
    is_active: bool = True
    variants: List[ProductVariant] = field(default_factory=list)

    def find_variant(self, variant_id: int) -> Optional[ProductVariant]:
        return next((v for v in self.variants if v.id == variant_id), None)

    @property
    def total_stock(self) -> int:
        return sum(v.quantity for v in self.variants)
