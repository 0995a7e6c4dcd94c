"""
Application service orchestrating order write use-cases.

Stock is validated and priced concurrently before the order transaction
opens. The order row and the voucher usage increment share one transaction;
stock debits run afterwards, one item per transaction.
"""
from __future__ import annotations

import asyncio
from typing import Callable, Optional, Union

from application.dtos.orders import (
    CashOnDeliveryOrderResult,
    CreateOrderDTO,
    OnlinePaymentOrderResult,
    OrderDTO,
    PaymentRedirectDTO,
)
from application.services.payment_service import PaymentApplicationService
from core.config import settings
from core.logging_config import get_logger
from domain.common.exceptions import (
    BusinessException,
    DomainValidationException,
    OrderNotFoundException,
    StockRestorationFailedException,
    VoucherInvalidException,
)
from domain.common.money import ZERO, to_money
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.inventory.service import InventoryReservation, LineRequest, ResolvedLine, StockDirection
from domain.order.entity import Order, OrderItem, PaymentMethod
from domain.order.repository import OrderCodeConflict
from domain.voucher.service import VoucherApplier
from shared.codes import BusinessCode


logger = get_logger(__name__)


class OrderApplicationService:
    """
    订单应用服务

    - create: 解析订单行 -> 校验优惠券 -> 持久化订单并核销优惠券 -> 扣减库存 -> 在线支付时生成跳转
    - cancel / cancel_cash_on_delivery: 条件状态转换 + 回补库存
    - process_payment: 为待支付的在线订单重新生成支付跳转
    """

    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        payment_service: PaymentApplicationService,
    ) -> None:
        self._uow_factory = uow_factory
        self.payment_service = payment_service

    async def _resolve_line(self, line: LineRequest) -> ResolvedLine:
        async with self._uow_factory(readonly=True) as uow:
            return await InventoryReservation(uow.product_repository).resolve(line)

    async def create(
        self,
        user_id: str,
        dto: CreateOrderDTO,
        *,
        client_ip: str,
        contact_email: Optional[str] = None,
    ) -> Union[CashOnDeliveryOrderResult, OnlinePaymentOrderResult]:
        lines = [
            LineRequest(
                product_id=line.product_id,
                quantity=line.quantity,
                variant_id=line.variant_id,
                attributes=line.attributes,
            )
            for line in dto.items
        ]
        resolved = await asyncio.gather(*(self._resolve_line(line) for line in lines))
        items = [r.to_order_item() for r in resolved]

        order = await self._persist(user_id, dto, items, contact_email)
        logger.info(
            "order_created",
            order_id=order.id,
            order_code=order.order_code,
            user_id=user_id,
            payment_method=order.payment_method.value,
            total=str(order.total_amount),
        )
        await self._adjust_stock(order, StockDirection.DEBIT)

        order_dto = OrderDTO.from_entity(order)
        if order.payment_method == PaymentMethod.ONLINE_PAYMENT:
            redirect = await self.payment_service.create_redirect(order, client_ip)
            return OnlinePaymentOrderResult(order=order_dto, payment=redirect)
        return CashOnDeliveryOrderResult(order=order_dto)

    async def _persist(
        self,
        user_id: str,
        dto: CreateOrderDTO,
        items: list[OrderItem],
        contact_email: Optional[str],
    ) -> Order:
        max_attempts = settings.ORDER_CODE_MAX_ATTEMPTS
        for attempt in range(1, max_attempts + 1):
            try:
                async with self._uow_factory() as uow:
                    discount, voucher_id = ZERO, None
                    if dto.voucher_code:
                        discount, voucher_id = await self._apply_voucher(uow, dto.voucher_code, items)

                    order = Order.place(
                        user_id=user_id,
                        items=items,
                        payment_method=dto.payment_method,
                        shipping_address=dto.shipping_address.to_value(),
                        discount_amount=discount,
                        voucher_id=voucher_id,
                        contact_email=contact_email,
                        note=dto.note,
                    )
                    if order.payment_method == PaymentMethod.ONLINE_PAYMENT and order.total_amount <= ZERO:
                        raise DomainValidationException(
                            "online payment requires a positive order total", field="payment_method"
                        )
                    if await uow.order_repository.exists_by_code(order.order_code):
                        raise OrderCodeConflict(order.order_code)
                    return await uow.order_repository.add(order)
            except OrderCodeConflict as exc:
                logger.warning("order_code_conflict", order_code=str(exc), attempt=attempt)

        raise BusinessException(
            code=BusinessCode.SYSTEM_ERROR,
            message="Could not allocate a unique order code",
            error_type="OrderCodeExhausted",
        )

    async def _apply_voucher(self, uow: AbstractUnitOfWork, code: str, items: list[OrderItem]):
        subtotal = to_money(sum((item.line_total for item in items), ZERO))
        applier = VoucherApplier(uow.voucher_repository)
        verification = await applier.verify(code, subtotal)
        if not verification.valid:
            raise VoucherInvalidException(verification.voucher.code, verification.reason or "invalid")
        await applier.apply(verification.voucher.id)
        return verification.discount_amount, verification.voucher.id

    async def _adjust_stock(self, order: Order, direction: StockDirection) -> None:
        """尽力而为：逐行独立事务，失败只记录日志"""
        for item in order.items:
            try:
                async with self._uow_factory() as uow:
                    await InventoryReservation(uow.product_repository).adjust_item(item, direction)
            except Exception as exc:
                logger.error(
                    "stock_adjust_failed",
                    order_id=order.id,
                    product_id=item.product_id,
                    variant_id=item.variant_id,
                    quantity=item.quantity,
                    direction=direction.value,
                    error=str(exc),
                )

    async def _load_owned(self, uow: AbstractUnitOfWork, order_id: int, user_id: str) -> Order:
        order = await uow.order_repository.get_for_user(order_id, user_id)
        if order is None:
            raise OrderNotFoundException(order_id)
        return order

    async def cancel(self, order_id: int, user_id: str) -> OrderDTO:
        async with self._uow_factory() as uow:
            order = await self._load_owned(uow, order_id, user_id)
            expected = order.state
            order.cancel()
            order = await uow.order_repository.save_transition(order, expected)

        await self._adjust_stock(order, StockDirection.CREDIT)
        logger.info("order_cancelled", order_id=order.id, user_id=user_id)
        return OrderDTO.from_entity(order)

    async def cancel_cash_on_delivery(self, order_id: int, user_id: str, reason: Optional[str] = None) -> OrderDTO:
        async with self._uow_factory() as uow:
            order = await self._load_owned(uow, order_id, user_id)
            expected = order.state
            order.cancel_cash_on_delivery(reason)
            order = await uow.order_repository.save_transition(order, expected)

            # 回补失败则整笔回滚，订单保持原状态
            inventory = InventoryReservation(uow.product_repository)
            for item in order.items:
                try:
                    await inventory.adjust_item(item, StockDirection.CREDIT)
                except BusinessException as exc:
                    logger.error(
                        "stock_restore_failed",
                        order_id=order.id,
                        product_id=item.product_id,
                        error=exc.message,
                    )
                    raise StockRestorationFailedException(order.id, exc.message) from exc

        logger.info("order_cancelled", order_id=order.id, user_id=user_id, cash_on_delivery=True)
        return OrderDTO.from_entity(order)

    async def process_payment(self, order_id: int, user_id: str, client_ip: str) -> PaymentRedirectDTO:
        async with self._uow_factory(readonly=True) as uow:
            order = await self._load_owned(uow, order_id, user_id)
        order.ensure_payable()
        return await self.payment_service.create_redirect(order, client_ip)
