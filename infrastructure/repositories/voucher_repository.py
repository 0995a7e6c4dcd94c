"""
优惠券仓储实现
"""
from typing import Optional
from decimal import Decimal
from datetime import datetime, timezone

from sqlalchemy import select, update, or_
from sqlalchemy.ext.asyncio import AsyncSession

from domain.voucher.entity import DiscountType, Voucher
from domain.voucher.repository import VoucherRepository
from infrastructure.models.voucher import VoucherModel
from core.logging_config import get_logger


logger = get_logger(__name__)


def _decimal(value) -> Optional[Decimal]:
    return Decimal(str(value)) if value is not None else None


class SQLAlchemyVoucherRepository(VoucherRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: VoucherModel) -> Voucher:
        return Voucher(
            id=model.id,
            code=model.code,
            discount_type=DiscountType(model.discount_type),
            value=_decimal(model.value),
            min_order_value=_decimal(model.min_order_value) or Decimal("0"),
            max_discount_value=_decimal(model.max_discount_value),
            usage_limit=model.usage_limit,
            used_count=model.used_count,
            valid_from=model.valid_from,
            valid_until=model.valid_until,
            is_active=model.is_active,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    async def get_by_code(self, code: str) -> Optional[Voucher]:
        result = await self.session.execute(select(VoucherModel).where(VoucherModel.code == code))
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def get_by_id(self, voucher_id: int) -> Optional[Voucher]:
        model = await self.session.get(VoucherModel, voucher_id, populate_existing=True)
        return self._to_entity(model) if model else None

    async def increment_usage(self, voucher_id: int) -> bool:
        stmt = (
            update(VoucherModel)
            .where(
                VoucherModel.id == voucher_id,
                or_(VoucherModel.usage_limit.is_(None), VoucherModel.used_count < VoucherModel.usage_limit),
            )
            .values(used_count=VoucherModel.used_count + 1, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        applied = result.rowcount == 1
        if applied:
            logger.info("voucher_usage_incremented", voucher_id=voucher_id)
        return applied
