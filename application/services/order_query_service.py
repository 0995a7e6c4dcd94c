"""
Read-side order use-cases: customer listing/detail and admin search.
"""
from __future__ import annotations

from typing import Callable, List, Optional, Tuple

from application.dto import PaginationParams
from application.dtos.orders import OrderDetailDTO, OrderDTO, order_detail_from_entity
from domain.common.exceptions import OrderNotFoundException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.entity import Order, OrderPaymentStatus, ShippingStatus
from domain.order.repository import OrderSearchCriteria


class OrderQueryService:
    def __init__(self, uow_factory: Callable[..., AbstractUnitOfWork]) -> None:
        self._uow_factory = uow_factory

    async def list_for_user(
        self,
        user_id: str,
        pagination: PaginationParams,
        *,
        payment_status: Optional[OrderPaymentStatus] = None,
        shipping_status: Optional[ShippingStatus] = None,
    ) -> Tuple[List[OrderDTO], int]:
        criteria = OrderSearchCriteria(
            user_id=user_id,
            payment_status=payment_status,
            shipping_status=shipping_status,
        )
        return await self.search(criteria, pagination)

    async def search(self, criteria: OrderSearchCriteria, pagination: PaginationParams) -> Tuple[List[OrderDTO], int]:
        async with self._uow_factory(readonly=True) as uow:
            orders, total = await uow.order_repository.search(criteria, pagination.skip, pagination.limit)
        return [OrderDTO.from_entity(o) for o in orders], total

    async def get_detail(self, order_id: int, user_id: str) -> OrderDetailDTO:
        async with self._uow_factory(readonly=True) as uow:
            order = await uow.order_repository.get_for_user(order_id, user_id)
            if order is None:
                raise OrderNotFoundException(order_id)
            return await self._enrich(uow, order)

    async def get_any(self, order_id: int) -> OrderDetailDTO:
        """管理端：不做归属校验"""
        async with self._uow_factory(readonly=True) as uow:
            order = await uow.order_repository.get_by_id(order_id)
            if order is None:
                raise OrderNotFoundException(order_id)
            return await self._enrich(uow, order)

    async def _enrich(self, uow: AbstractUnitOfWork, order: Order) -> OrderDetailDTO:
        product_ids = {item.product_id for item in order.items}
        products = await uow.product_repository.get_by_ids(product_ids)
        reviewed = await uow.review_repository.reviewed_product_ids(order.user_id, product_ids)
        return order_detail_from_entity(order, {p.id: p for p in products}, set(reviewed))
