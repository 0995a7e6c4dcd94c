"""
订单仓储实现 - 使用SQLAlchemy实现数据访问
"""
from typing import List, Optional, Tuple
from decimal import Decimal

from sqlalchemy import select, update, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from domain.common.exceptions import InvalidOrderStateException, OrderNotFoundException
from domain.order.entity import (
    Order,
    OrderItem,
    OrderPaymentStatus,
    OrderState,
    PaymentMethod,
    ShippingAddress,
    ShippingStatus,
    StockAllocation,
)
from domain.order.repository import OrderCodeConflict, OrderRepository, OrderSearchCriteria
from infrastructure.models.order import OrderItemModel, OrderModel
from core.logging_config import get_logger


logger = get_logger(__name__)


class SQLAlchemyOrderRepository(OrderRepository):
    """订单仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _item_to_entity(self, model: OrderItemModel) -> OrderItem:
        return OrderItem(
            product_id=model.product_id,
            variant_id=model.variant_id,
            quantity=model.quantity,
            unit_price=Decimal(str(model.unit_price)),
            product_name=model.product_name,
            attributes=dict(model.attributes or {}),
            allocations=tuple(
                StockAllocation(variant_id=a["variant_id"], quantity=a["quantity"])
                for a in (model.allocations or [])
            ),
        )

    def _to_entity(self, model: OrderModel) -> Order:
        """将数据库模型转换为领域实体"""
        return Order(
            id=model.id,
            user_id=model.user_id,
            order_code=model.order_code,
            items=[self._item_to_entity(i) for i in model.items],
            payment_method=PaymentMethod(model.payment_method),
            payment_status=OrderPaymentStatus(model.payment_status),
            shipping_status=ShippingStatus(model.shipping_status),
            shipping_address=ShippingAddress.from_dict(model.shipping_address),
            discount_amount=Decimal(str(model.discount_amount)),
            voucher_id=model.voucher_id,
            contact_email=model.contact_email,
            note=model.note,
            created_at=model.created_at,
            updated_at=model.updated_at,
            paid_at=model.paid_at,
            shipped_at=model.shipped_at,
            delivered_at=model.delivered_at,
            cancelled_at=model.cancelled_at,
            cancelled_reason=model.cancelled_reason,
        )

    def _to_model(self, entity: Order) -> OrderModel:
        """将领域实体转换为数据库模型"""
        model = OrderModel(
            id=entity.id,
            order_code=entity.order_code,
            user_id=entity.user_id,
            payment_method=entity.payment_method.value,
            payment_status=entity.payment_status.value,
            shipping_status=entity.shipping_status.value,
            subtotal=entity.subtotal,
            discount_amount=entity.discount_amount,
            total_amount=entity.total_amount,
            voucher_id=entity.voucher_id,
            contact_email=entity.contact_email,
            note=entity.note,
            shipping_address=entity.shipping_address.to_dict(),
            recipient_name=entity.shipping_address.full_name,
            recipient_phone=entity.shipping_address.phone,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
            paid_at=entity.paid_at,
            shipped_at=entity.shipped_at,
            delivered_at=entity.delivered_at,
            cancelled_at=entity.cancelled_at,
            cancelled_reason=entity.cancelled_reason,
        )
        model.items = [
            OrderItemModel(
                position=index,
                product_id=item.product_id,
                variant_id=item.variant_id,
                quantity=item.quantity,
                unit_price=item.unit_price,
                product_name=item.product_name,
                attributes=dict(item.attributes),
                allocations=[
                    {"variant_id": a.variant_id, "quantity": a.quantity}
                    for a in item.stock_allocations()
                ],
            )
            for index, item in enumerate(entity.items)
        ]
        return model

    def _select(self):
        return select(OrderModel).options(selectinload(OrderModel.items))

    async def add(self, order: Order) -> Order:
        """创建订单；订单号冲突抛出 OrderCodeConflict，由调用方在新事务中重试"""
        db_order = self._to_model(order)
        try:
            self.session.add(db_order)
            await self.session.flush()
        except IntegrityError as e:
            if "order_code" in str(e).lower():
                logger.warning("order_code_conflict", order_code=order.order_code)
                raise OrderCodeConflict(order.order_code) from e
            raise
        logger.info(
            "order_persisted",
            order_id=db_order.id,
            order_code=db_order.order_code,
            user_id=db_order.user_id,
        )
        return await self.get_by_id(db_order.id)

    async def exists_by_code(self, order_code: str) -> bool:
        result = await self.session.execute(
            select(func.count(OrderModel.id)).where(OrderModel.order_code == order_code)
        )
        return result.scalar_one() > 0

    async def get_by_id(self, order_id: int) -> Optional[Order]:
        result = await self.session.execute(
            self._select().where(OrderModel.id == order_id).execution_options(populate_existing=True)
        )
        db_order = result.scalar_one_or_none()
        return self._to_entity(db_order) if db_order else None

    async def get_for_user(self, order_id: int, user_id: str) -> Optional[Order]:
        result = await self.session.execute(
            self._select().where(OrderModel.id == order_id, OrderModel.user_id == user_id)
        )
        db_order = result.scalar_one_or_none()
        return self._to_entity(db_order) if db_order else None

    async def save_transition(self, order: Order, expected: OrderState) -> Order:
        expected_payment, expected_shipping = expected
        stmt = (
            update(OrderModel)
            .where(
                OrderModel.id == order.id,
                OrderModel.payment_status == expected_payment.value,
                OrderModel.shipping_status == expected_shipping.value,
            )
            .values(
                payment_status=order.payment_status.value,
                shipping_status=order.shipping_status.value,
                paid_at=order.paid_at,
                shipped_at=order.shipped_at,
                delivered_at=order.delivered_at,
                cancelled_at=order.cancelled_at,
                cancelled_reason=order.cancelled_reason,
                updated_at=order.updated_at,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if result.rowcount != 1:
            logger.warning(
                "order_transition_conflict",
                order_id=order.id,
                expected_payment_status=expected_payment.value,
                expected_shipping_status=expected_shipping.value,
            )
            raise InvalidOrderStateException(
                "Order state changed concurrently, please retry",
                order_id=order.id,
            )
        updated = await self.get_by_id(order.id)
        if updated is None:
            raise OrderNotFoundException(order.id)
        return updated

    def _apply_criteria(self, query, criteria: OrderSearchCriteria):
        if criteria.user_id is not None:
            query = query.where(OrderModel.user_id == criteria.user_id)
        if criteria.payment_status:
            query = query.where(OrderModel.payment_status == criteria.payment_status.value)
        if criteria.shipping_status:
            query = query.where(OrderModel.shipping_status == criteria.shipping_status.value)
        if criteria.payment_method:
            query = query.where(OrderModel.payment_method == criteria.payment_method.value)
        if criteria.created_from:
            query = query.where(OrderModel.created_at >= criteria.created_from)
        if criteria.created_to:
            query = query.where(OrderModel.created_at <= criteria.created_to)
        if criteria.search:
            pattern = f"%{criteria.search.strip().lower()}%"
            query = query.where(
                or_(
                    func.lower(OrderModel.order_code).like(pattern),
                    func.lower(OrderModel.recipient_name).like(pattern),
                    OrderModel.recipient_phone.like(pattern),
                )
            )
        return query

    async def search(
        self,
        criteria: OrderSearchCriteria,
        skip: int = 0,
        limit: int = 10,
    ) -> Tuple[List[Order], int]:
        count_query = self._apply_criteria(select(func.count(OrderModel.id)), criteria)
        total = (await self.session.execute(count_query)).scalar_one()

        query = (
            self._apply_criteria(self._select(), criteria)
            .order_by(OrderModel.created_at.desc(), OrderModel.id.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.session.execute(query)
        return [self._to_entity(o) for o in result.scalars().all()], int(total)
