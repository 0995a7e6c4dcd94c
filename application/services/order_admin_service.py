"""
Admin fulfilment transitions.
"""
from __future__ import annotations

from typing import Callable

from application.dtos.orders import OrderDTO
from core.logging_config import get_logger
from domain.common.exceptions import OrderNotFoundException
from domain.common.unit_of_work import AbstractUnitOfWork


logger = get_logger(__name__)


class OrderAdminService:
    def __init__(self, uow_factory: Callable[..., AbstractUnitOfWork]) -> None:
        self._uow_factory = uow_factory

    async def ship(self, order_id: int) -> OrderDTO:
        async with self._uow_factory() as uow:
            order = await uow.order_repository.get_by_id(order_id)
            if order is None:
                raise OrderNotFoundException(order_id)
            expected = order.state
            order.mark_shipped()
            order = await uow.order_repository.save_transition(order, expected)
        logger.info("order_shipped", order_id=order.id)
        return OrderDTO.from_entity(order)

    async def deliver(self, order_id: int) -> OrderDTO:
        async with self._uow_factory() as uow:
            order = await uow.order_repository.get_by_id(order_id)
            if order is None:
                raise OrderNotFoundException(order_id)
            expected = order.state
            order.mark_delivered()
            order = await uow.order_repository.save_transition(order, expected)
        logger.info("order_delivered", order_id=order.id)
        return OrderDTO.from_entity(order)
