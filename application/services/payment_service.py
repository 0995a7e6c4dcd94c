"""
Application service orchestrating payment use-cases.

This class depends only on the application ports (PaymentGateway,
OrderConfirmationSender) and DTOs. Implementations are provided by
infrastructure and injected from the composition root, keeping dependencies
one-way.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, List, Mapping, Optional, Tuple

from application.dto import PaginationParams
from application.dtos.orders import OrderConfirmationDTO, PaymentRedirectDTO
from application.dtos.payments import CallbackResult, GatewayCallback, PaymentHistoryDTO, PaymentLandingDTO
from application.ports.notifications import OrderConfirmationSender
from application.ports.payment_gateway import PaymentGateway
from core.config import settings
from core.logging_config import get_logger
from domain.common.exceptions import (
    InvalidOrderStateException,
    OrderNotFoundException,
    PaymentRecordNotFoundException,
)
from domain.common.money import to_minor_units
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.entity import Order, OrderPaymentStatus, ShippingStatus
from domain.payment.entity import PaymentDetails, PaymentHistoryRecord, PaymentProvider, PaymentStatus
from domain.payment.repository import PaymentAttemptConflict
from domain.payment.service import PaymentLedgerService
from shared.codes.payment_codes import describe_vnpay_response


logger = get_logger(__name__)

TXN_REF_MAX_ATTEMPTS = 3


class PaymentApplicationService:
    """
    支付应用服务

    - create_redirect: 生成签名跳转 URL 并记录 PENDING 支付尝试
    - verify_callback: 验签 -> 定位支付尝试 -> 终态短路 -> 条件更新流水与订单 -> 尽力发送确认邮件
    """

    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        gateway: PaymentGateway,
        email_sender: OrderConfirmationSender,
        *,
        frontend_url: Optional[str] = None,
    ) -> None:
        self._uow_factory = uow_factory
        self.gateway = gateway
        self.email_sender = email_sender
        self._frontend_url = (frontend_url or settings.FRONTEND_URL).rstrip("/")

    def _publish(self, events: List) -> None:
        for event in events:
            logger.info(
                "payment_event",
                event_type=type(event).__name__,
                event_id=event.event_id,
                order_id=event.order_id,
                transaction_id=event.transaction_id,
            )

    def _redirect_url(self, success: bool, order_id: int) -> str:
        page = "success" if success else "cancel"
        return f"{self._frontend_url}/payment/{page}?orderId={order_id}"

    async def create_redirect(self, order: Order, client_ip: str) -> PaymentRedirectDTO:
        order.ensure_payable()
        order_info = f"Payment for order {order.order_code}"
        at = self.gateway.now()
        for _ in range(TXN_REF_MAX_ATTEMPTS):
            txn_ref = self.gateway.make_txn_ref(order.id, at)
            try:
                async with self._uow_factory() as uow:
                    ledger = PaymentLedgerService(uow.payment_history_repository)
                    record = await ledger.record_attempt(
                        order_id=order.id,
                        user_id=order.user_id,
                        amount=order.total_amount,
                        currency=self.gateway.currency,
                        transaction_id=txn_ref,
                        provider=PaymentProvider(self.gateway.provider),
                        details=PaymentDetails(order_info=order_info),
                    )
                    events = ledger.clear_events()
            except PaymentAttemptConflict:
                # 并发请求已写入同一交易号，沿用其记录
                async with self._uow_factory(readonly=True) as uow:
                    record = await uow.payment_history_repository.get_by_transaction_id(txn_ref)
                if record is None:
                    continue
                events = []
            self._publish(events)
            if not record.is_terminal:
                break
            # 同一秒内的上一次尝试已结束，交易号顺延一秒
            at += timedelta(seconds=1)
        else:
            raise InvalidOrderStateException("Payment attempt already processed, retry shortly", order_id=order.id)

        url = self.gateway.build_payment_url(
            txn_ref=txn_ref,
            amount=order.total_amount,
            order_info=order_info,
            client_ip=client_ip,
            created_at=at,
        )
        logger.info("payment_redirect_created", order_id=order.id, transaction_id=record.transaction_id)
        return PaymentRedirectDTO(transaction_id=record.transaction_id, payment_url=url)

    async def verify_callback(self, query: Mapping[str, str]) -> CallbackResult:
        # 验签失败直接抛出，不触碰任何状态
        callback = self.gateway.parse_callback(query)
        logger.info(
            "payment_callback_received",
            order_id=callback.order_id,
            transaction_id=callback.txn_ref,
            response_code=callback.response_code,
        )

        paid_order: Optional[Order] = None
        async with self._uow_factory() as uow:
            record = await uow.payment_history_repository.get_by_order_and_transaction(
                callback.order_id, callback.txn_ref
            )
            if record is None:
                raise PaymentRecordNotFoundException(callback.order_id, callback.txn_ref)
            if record.is_terminal:
                return self._duplicate(record)

            ledger = PaymentLedgerService(uow.payment_history_repository)
            success, reason = self._evaluate(callback, record)
            details = callback.to_details()
            if success:
                now = datetime.now(timezone.utc)
                transitioned = await ledger.complete_attempt(record, details, at=now)
                if transitioned:
                    paid_order = await self._mark_order_paid(uow, callback.order_id, now)
            else:
                transitioned = await ledger.fail_attempt(record, reason, details)

            if not transitioned:
                # 并发重复回调抢先完成了转换
                latest = await uow.payment_history_repository.get_by_order_and_transaction(
                    callback.order_id, callback.txn_ref
                )
                return self._duplicate(latest or record)
            events = ledger.clear_events()

        self._publish(events)
        if paid_order is not None:
            await self._send_confirmation(paid_order)

        if success:
            message = "Payment successful"
        elif callback.is_success:
            message = f"Payment failed: {reason}"
        else:
            message = f"Payment failed: {describe_vnpay_response(callback.response_code)}"
        return CallbackResult(
            success=success,
            order_id=callback.order_id,
            message=message,
            redirect_url=self._redirect_url(success, callback.order_id),
        )

    def _evaluate(self, callback: GatewayCallback, record: PaymentHistoryRecord) -> Tuple[bool, str]:
        if not callback.is_success:
            return False, f"VNPay error code: {callback.response_code}"
        expected = to_minor_units(record.amount)
        if callback.amount_minor is not None and callback.amount_minor != expected:
            logger.warning(
                "payment_amount_mismatch",
                order_id=record.order_id,
                transaction_id=record.transaction_id,
                expected=expected,
                received=callback.amount_minor,
            )
            return False, "amount mismatch"
        return True, ""

    async def _mark_order_paid(self, uow: AbstractUnitOfWork, order_id: int, at: datetime) -> Optional[Order]:
        order = await uow.order_repository.get_by_id(order_id)
        if order is None:
            logger.warning("payment_completed_for_missing_order", order_id=order_id)
            return None
        if order.payment_status != OrderPaymentStatus.PENDING or order.shipping_status == ShippingStatus.CANCELED:
            logger.warning(
                "payment_completed_for_unpayable_order",
                order_id=order_id,
                payment_status=order.payment_status.value,
                shipping_status=order.shipping_status.value,
            )
            return None
        expected = order.state
        order.mark_paid(at)
        try:
            return await uow.order_repository.save_transition(order, expected)
        except InvalidOrderStateException:
            logger.warning("payment_completed_for_unpayable_order", order_id=order_id, reason="concurrent transition")
            return None

    def _duplicate(self, record: PaymentHistoryRecord) -> CallbackResult:
        success = record.status == PaymentStatus.COMPLETED
        logger.info(
            "payment_callback_duplicate",
            order_id=record.order_id,
            transaction_id=record.transaction_id,
            status=record.status.value,
        )
        return CallbackResult(
            success=success,
            order_id=record.order_id,
            message="Payment already processed",
            redirect_url=self._redirect_url(success, record.order_id),
            duplicate=True,
        )

    async def _send_confirmation(self, order: Order) -> None:
        if not order.contact_email:
            logger.warning("order_confirmation_skipped", order_id=order.id, reason="no contact email")
            return
        try:
            await self.email_sender.send_order_confirmation(
                order.contact_email,
                order.shipping_address.full_name,
                OrderConfirmationDTO.from_entity(order),
            )
        except Exception as exc:
            # 邮件失败不影响支付结果
            logger.error("order_confirmation_failed", order_id=order.id, error=str(exc), exc_info=True)

    async def get_landing(self, order_id: int, *, success: bool) -> PaymentLandingDTO:
        async with self._uow_factory(readonly=True) as uow:
            order = await uow.order_repository.get_by_id(order_id)
        if order is None:
            raise OrderNotFoundException(order_id)
        if success:
            message = describe_vnpay_response("00") if order.payment_status == OrderPaymentStatus.COMPLETED \
                else "Payment is being processed"
        else:
            message = "Payment was canceled"
        return PaymentLandingDTO(
            success=success and order.payment_status == OrderPaymentStatus.COMPLETED,
            order_id=order.id,
            order_code=order.order_code,
            payment_status=order.payment_status,
            shipping_status=order.shipping_status,
            message=message,
        )

    async def list_user_history(
        self,
        user_id: str,
        pagination: PaginationParams,
        status: Optional[PaymentStatus] = None,
    ) -> Tuple[List[PaymentHistoryDTO], int]:
        async with self._uow_factory(readonly=True) as uow:
            records, total = await uow.payment_history_repository.list_by_user(
                user_id, status, pagination.skip, pagination.limit
            )
        return [PaymentHistoryDTO.from_entity(r) for r in records], total

    async def list_history(
        self,
        pagination: PaginationParams,
        status: Optional[PaymentStatus] = None,
    ) -> Tuple[List[PaymentHistoryDTO], int]:
        async with self._uow_factory(readonly=True) as uow:
            records, total = await uow.payment_history_repository.list_all(status, pagination.skip, pagination.limit)
        return [PaymentHistoryDTO.from_entity(r) for r in records], total
