"""
库存领域服务 - 下单时解析商品/变体/价格，下单后与取消时调整库存
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Optional, Tuple

from domain.catalog.entity import Product
from domain.catalog.repository import ProductRepository
from domain.common.exceptions import (
    InsufficientStockException,
    NoPurchasableVariantException,
    ProductNotFoundException,
    VariantNotFoundException,
)
from domain.order.entity import OrderItem, StockAllocation


class StockDirection(str, Enum):
    DEBIT = "DEBIT"    # 扣减
    CREDIT = "CREDIT"  # 回补


@dataclass(frozen=True)
class LineRequest:
    product_id: int
    quantity: int
    variant_id: Optional[int] = None
    attributes: Optional[dict] = None


@dataclass(frozen=True)
class ResolvedLine:
    product_id: int
    variant_id: Optional[int]
    quantity: int
    unit_price: Decimal
    product_name: str
    attributes: dict = field(default_factory=dict)
    allocations: Tuple[StockAllocation, ...] = ()

    def to_order_item(self) -> OrderItem:
        return OrderItem(
            product_id=self.product_id,
            variant_id=self.variant_id,
            quantity=self.quantity,
            unit_price=self.unit_price,
            product_name=self.product_name,
            attributes=dict(self.attributes),
            allocations=self.allocations,
        )


class InventoryReservation:
    """
    库存预留

    职责：
    1. 校验商品存在且上架、变体存在、库存充足
    2. 解析单价（指定变体取变体价，否则取最低变体价）
    3. 未指定变体时按价格从低到高分配扣减数量，保证扣减与回补作用于同一批变体
    4. 以单条条件 UPDATE 调整库存
    """

    def __init__(self, product_repository: ProductRepository):
        self.product_repository = product_repository

    async def resolve(self, line: LineRequest) -> ResolvedLine:
        product = await self.product_repository.get_with_variants(line.product_id)
        if product is None or not product.is_active:
            raise ProductNotFoundException(line.product_id)
        if not product.variants:
            raise NoPurchasableVariantException(product.name, product_id=product.id)

        if line.variant_id is not None:
            return self._resolve_variant(product, line)
        return self._resolve_cheapest(product, line)

    def _resolve_variant(self, product: Product, line: LineRequest) -> ResolvedLine:
        variant = product.find_variant(line.variant_id)
        if variant is None:
            raise VariantNotFoundException(product.id, line.variant_id)
        if variant.quantity < line.quantity:
            raise InsufficientStockException(
                product.name,
                product_id=product.id,
                variant_id=variant.id,
                requested=line.quantity,
                available=variant.quantity,
            )
        return ResolvedLine(
            product_id=product.id,
            variant_id=variant.id,
            quantity=line.quantity,
            unit_price=variant.price,
            product_name=product.name,
            attributes=dict(variant.attributes or line.attributes or {}),
            allocations=(StockAllocation(variant_id=variant.id, quantity=line.quantity),),
        )

    def _resolve_cheapest(self, product: Product, line: LineRequest) -> ResolvedLine:
        available = product.total_stock
        if available < line.quantity:
            raise InsufficientStockException(
                product.name,
                product_id=product.id,
                requested=line.quantity,
                available=available,
            )

        remaining = line.quantity
        allocations = []
        for variant in sorted(product.variants, key=lambda v: (v.price, v.id)):
            if remaining == 0:
                break
            take = min(variant.quantity, remaining)
            if take > 0:
                allocations.append(StockAllocation(variant_id=variant.id, quantity=take))
                remaining -= take

        return ResolvedLine(
            product_id=product.id,
            variant_id=None,
            quantity=line.quantity,
            unit_price=min(v.price for v in product.variants),
            product_name=product.name,
            attributes=dict(line.attributes or {}),
            allocations=tuple(allocations),
        )

    async def adjust_stock(
        self,
        product_id: int,
        variant_id: int,
        quantity: int,
        direction: StockDirection,
    ) -> None:
        delta = -quantity if direction == StockDirection.DEBIT else quantity
        updated = await self.product_repository.adjust_variant_stock(product_id, variant_id, delta)
        if updated:
            return
        # 更新失败时区分“变体不存在”与“库存不足”
        product = await self.product_repository.get_with_variants(product_id)
        variant = product.find_variant(variant_id) if product else None
        if variant is None:
            raise VariantNotFoundException(product_id, variant_id)
        raise InsufficientStockException(
            product.name,
            product_id=product_id,
            variant_id=variant_id,
            requested=quantity,
            available=variant.quantity,
        )

    async def adjust_item(self, item: OrderItem, direction: StockDirection) -> None:
        for allocation in item.stock_allocations():
            await self.adjust_stock(item.product_id, allocation.variant_id, allocation.quantity, direction)
