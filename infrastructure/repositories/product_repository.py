"""
商品 / 评价仓储实现
"""
from typing import Iterable, List, Optional, Set
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from domain.catalog.entity import Product, ProductVariant
from domain.catalog.repository import ProductRepository, ReviewRepository
from infrastructure.models.product import ProductModel, ProductReviewModel, ProductVariantModel


class SQLAlchemyProductRepository(ProductRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    def _variant_to_entity(self, model: ProductVariantModel) -> ProductVariant:
        return ProductVariant(
            id=model.id,
            product_id=model.product_id,
            sku=model.sku,
            price=Decimal(str(model.price)),
            quantity=model.quantity,
            attributes=dict(model.attributes or {}),
        )

    def _to_entity(self, model: ProductModel, *, with_variants: bool) -> Product:
        return Product(
            id=model.id,
            name=model.name,
            slug=model.slug,
            image=model.image,
            is_active=model.is_active,
            variants=[self._variant_to_entity(v) for v in model.variants] if with_variants else [],
        )

    async def get_with_variants(self, product_id: int) -> Optional[Product]:
        result = await self.session.execute(
            select(ProductModel)
            .options(selectinload(ProductModel.variants))
            .where(ProductModel.id == product_id)
            .execution_options(populate_existing=True)
        )
        model = result.scalar_one_or_none()
        return self._to_entity(model, with_variants=True) if model else None

    async def get_by_ids(self, product_ids: Iterable[int]) -> List[Product]:
        ids = list(set(product_ids))
        if not ids:
            return []
        result = await self.session.execute(select(ProductModel).where(ProductModel.id.in_(ids)))
        return [self._to_entity(m, with_variants=False) for m in result.scalars().all()]

    async def adjust_variant_stock(self, product_id: int, variant_id: int, delta: int) -> bool:
        conditions = [
            ProductVariantModel.id == variant_id,
            ProductVariantModel.product_id == product_id,
        ]
        if delta < 0:
            conditions.append(ProductVariantModel.quantity >= -delta)
        stmt = (
            update(ProductVariantModel)
            .where(*conditions)
            .values(quantity=ProductVariantModel.quantity + delta)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1


class SQLAlchemyReviewRepository(ReviewRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def reviewed_product_ids(self, user_id: str, product_ids: Iterable[int]) -> Set[int]:
        ids = list(set(product_ids))
        if not ids:
            return set()
        result = await self.session.execute(
            select(ProductReviewModel.product_id)
            .where(ProductReviewModel.user_id == user_id, ProductReviewModel.product_id.in_(ids))
            .distinct()
        )
        return set(result.scalars().all())
