"""
支付流水仓储实现 - 使用SQLAlchemy实现数据访问
"""
from typing import Optional, List, Tuple
from decimal import Decimal
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError

from domain.payment.entity import (
    PaymentDetails,
    PaymentHistoryRecord,
    PaymentProvider,
    PaymentStatus,
)
from domain.payment.repository import PaymentAttemptConflict, PaymentHistoryRepository
from infrastructure.models.payment import PaymentHistoryModel
from core.logging_config import get_logger


logger = get_logger(__name__)


class SQLAlchemyPaymentHistoryRepository(PaymentHistoryRepository):
    """支付流水仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: PaymentHistoryModel) -> PaymentHistoryRecord:
        """将数据库模型转换为领域实体"""
        return PaymentHistoryRecord(
            id=model.id,
            order_id=model.order_id,
            user_id=model.user_id,
            amount=Decimal(str(model.amount)),
            currency=model.currency,
            provider=PaymentProvider(model.provider),
            transaction_id=model.transaction_id,
            status=PaymentStatus(model.status),
            payment_details=PaymentDetails.from_dict(model.payment_details),
            completed_at=model.completed_at,
            failure_reason=model.failure_reason,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def _to_model(self, entity: PaymentHistoryRecord) -> PaymentHistoryModel:
        """将领域实体转换为数据库模型"""
        return PaymentHistoryModel(
            id=entity.id,
            order_id=entity.order_id,
            user_id=entity.user_id,
            amount=entity.amount,
            currency=entity.currency,
            provider=entity.provider.value,
            transaction_id=entity.transaction_id,
            status=entity.status.value,
            payment_details=entity.payment_details.to_dict(),
            completed_at=entity.completed_at,
            failure_reason=entity.failure_reason,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )

    async def add(self, record: PaymentHistoryRecord) -> PaymentHistoryRecord:
        db_record = self._to_model(record)
        try:
            self.session.add(db_record)
            await self.session.flush()
        except IntegrityError as e:
            if "transaction_id" in str(e).lower():
                logger.warning("payment_attempt_conflict", transaction_id=record.transaction_id)
                raise PaymentAttemptConflict(record.transaction_id) from e
            raise
        await self.session.refresh(db_record)
        logger.info(
            "payment_attempt_created",
            payment_id=db_record.id,
            order_id=db_record.order_id,
            transaction_id=db_record.transaction_id,
        )
        return self._to_entity(db_record)

    async def get_by_transaction_id(self, transaction_id: str) -> Optional[PaymentHistoryRecord]:
        result = await self.session.execute(
            select(PaymentHistoryModel).where(PaymentHistoryModel.transaction_id == transaction_id)
        )
        db_record = result.scalar_one_or_none()
        return self._to_entity(db_record) if db_record else None

    async def get_by_order_and_transaction(
        self, order_id: int, transaction_id: str
    ) -> Optional[PaymentHistoryRecord]:
        result = await self.session.execute(
            select(PaymentHistoryModel).where(
                PaymentHistoryModel.order_id == order_id,
                PaymentHistoryModel.transaction_id == transaction_id,
            )
        )
        db_record = result.scalar_one_or_none()
        return self._to_entity(db_record) if db_record else None

    async def transition_if_pending(self, record: PaymentHistoryRecord) -> bool:
        stmt = (
            update(PaymentHistoryModel)
            .where(
                PaymentHistoryModel.id == record.id,
                PaymentHistoryModel.status == PaymentStatus.PENDING.value,
            )
            .values(
                status=record.status.value,
                payment_details=record.payment_details.to_dict(),
                completed_at=record.completed_at,
                failure_reason=record.failure_reason,
                updated_at=record.updated_at,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def _paginate(self, query, count_query, skip: int, limit: int) -> Tuple[List[PaymentHistoryRecord], int]:
        total = (await self.session.execute(count_query)).scalar_one()
        query = query.order_by(PaymentHistoryModel.created_at.desc(), PaymentHistoryModel.id.desc())
        result = await self.session.execute(query.offset(skip).limit(limit))
        return [self._to_entity(r) for r in result.scalars().all()], int(total)

    async def list_by_user(
        self,
        user_id: str,
        status: Optional[PaymentStatus] = None,
        skip: int = 0,
        limit: int = 10,
    ) -> Tuple[List[PaymentHistoryRecord], int]:
        query = select(PaymentHistoryModel).where(PaymentHistoryModel.user_id == user_id)
        count_query = select(func.count(PaymentHistoryModel.id)).where(PaymentHistoryModel.user_id == user_id)
        if status:
            query = query.where(PaymentHistoryModel.status == status.value)
            count_query = count_query.where(PaymentHistoryModel.status == status.value)
        return await self._paginate(query, count_query, skip, limit)

    async def list_all(
        self,
        status: Optional[PaymentStatus] = None,
        skip: int = 0,
        limit: int = 10,
    ) -> Tuple[List[PaymentHistoryRecord], int]:
        query = select(PaymentHistoryModel)
        count_query = select(func.count(PaymentHistoryModel.id))
        if status:
            query = query.where(PaymentHistoryModel.status == status.value)
            count_query = count_query.where(PaymentHistoryModel.status == status.value)
        return await self._paginate(query, count_query, skip, limit)
