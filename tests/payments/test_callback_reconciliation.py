import asyncio
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from application.dtos.orders import CreateOrderDTO
from application.services.order_service import OrderApplicationService
from application.services.payment_service import PaymentApplicationService
from domain.common.exceptions import PaymentRecordNotFoundException
from domain.order.entity import OrderPaymentStatus, PaymentMethod, ShippingStatus
from domain.payment.entity import PaymentStatus
from infrastructure.external.payments.exceptions import PaymentSignatureError


@pytest.fixture
def payment_service(uow_factory, gateway, email_sender):
    return PaymentApplicationService(uow_factory, gateway, email_sender, frontend_url="http://shop.test")


@pytest.fixture
def place_online_order(uow_factory, payment_service, seed, make_order_payload):
    orders = OrderApplicationService(uow_factory, payment_service)

    async def _place(price: Decimal = Decimal("150000")):
        product_id, _ = await seed.product("Lamp", [(price, 10)])
        dto = CreateOrderDTO(**make_order_payload(product_id, payment_method=PaymentMethod.ONLINE_PAYMENT))
        return await orders.create("u1", dto, client_ip="10.0.0.1", contact_email="buyer@example.com")

    _place.orders = orders
    return _place


async def _state(uow_factory, order_id: int, txn_ref: str):
    async with uow_factory(readonly=True) as uow:
        order = await uow.order_repository.get_by_id(order_id)
        record = await uow.payment_history_repository.get_by_transaction_id(txn_ref)
    return order, record


@pytest.mark.asyncio
async def test_success_completes_ledger_and_order_and_sends_email(
    payment_service, place_online_order, uow_factory, email_sender, make_callback
):
    created = await place_online_order()
    txn = created.payment.transaction_id

    result = await payment_service.verify_callback(make_callback(txn, amount_minor=15000000))

    assert result.success is True
    assert result.duplicate is False
    assert result.order_id == created.order.id
    assert result.redirect_url == f"http://shop.test/payment/success?orderId={created.order.id}"

    order, record = await _state(uow_factory, created.order.id, txn)
    assert record.status == PaymentStatus.COMPLETED
    assert record.completed_at is not None
    assert record.payment_details.transaction_no == "14123456"
    assert record.payment_details.bank_code == "NCB"
    assert order.payment_status == OrderPaymentStatus.COMPLETED
    assert order.paid_at is not None

    assert len(email_sender.sent) == 1
    to_email, name, confirmation = email_sender.sent[0]
    assert to_email == "buyer@example.com"
    assert name == "Nguyen Van A"
    assert confirmation.order_code == created.order.order_code
    assert confirmation.total == Decimal("150000.00")


@pytest.mark.asyncio
async def test_replayed_success_is_a_no_op(payment_service, place_online_order, uow_factory, email_sender, make_callback):
    created = await place_online_order()
    query = make_callback(created.payment.transaction_id, amount_minor=15000000)

    await payment_service.verify_callback(query)
    replay = await payment_service.verify_callback(query)

    assert replay.duplicate is True
    assert replay.success is True
    assert len(email_sender.sent) == 1
    order, record = await _state(uow_factory, created.order.id, created.payment.transaction_id)
    assert record.status == PaymentStatus.COMPLETED
    assert order.payment_status == OrderPaymentStatus.COMPLETED


@pytest.mark.asyncio
async def test_customer_cancel_marks_attempt_failed(
    payment_service, place_online_order, uow_factory, email_sender, make_callback
):
    created = await place_online_order()
    txn = created.payment.transaction_id

    result = await payment_service.verify_callback(make_callback(txn, response_code="24", amount_minor=15000000))

    assert result.success is False
    assert "Customer cancelled" in result.message
    assert result.redirect_url == f"http://shop.test/payment/cancel?orderId={created.order.id}"
    order, record = await _state(uow_factory, created.order.id, txn)
    assert record.status == PaymentStatus.FAILED
    assert record.failure_reason == "VNPay error code: 24"
    assert order.payment_status == OrderPaymentStatus.PENDING
    assert email_sender.sent == []

    # 终态之后的成功回调不会再改变任何状态
    late = await payment_service.verify_callback(make_callback(txn, amount_minor=15000000))
    assert late.duplicate is True
    assert late.success is False
    order, _ = await _state(uow_factory, created.order.id, txn)
    assert order.payment_status == OrderPaymentStatus.PENDING

    # 失败后可重新发起支付，得到新的待支付尝试
    retry = await place_online_order.orders.process_payment(created.order.id, "u1", "10.0.0.1")
    assert retry.transaction_id != txn
    _, retry_record = await _state(uow_factory, created.order.id, retry.transaction_id)
    assert retry_record.status == PaymentStatus.PENDING


@pytest.mark.asyncio
async def test_amount_mismatch_is_recorded_as_failure(payment_service, place_online_order, uow_factory, make_callback):
    created = await place_online_order()
    txn = created.payment.transaction_id

    result = await payment_service.verify_callback(make_callback(txn, amount_minor=100))

    assert result.success is False
    order, record = await _state(uow_factory, created.order.id, txn)
    assert record.status == PaymentStatus.FAILED
    assert record.failure_reason == "amount mismatch"
    assert order.payment_status == OrderPaymentStatus.PENDING


@pytest.mark.asyncio
async def test_bad_signature_touches_nothing(payment_service, place_online_order, uow_factory, make_callback):
    created = await place_online_order()
    txn = created.payment.transaction_id
    query = make_callback(txn, amount_minor=15000000)
    query["vnp_ResponseCode"] = "24"

    with pytest.raises(PaymentSignatureError):
        await payment_service.verify_callback(query)

    order, record = await _state(uow_factory, created.order.id, txn)
    assert record.status == PaymentStatus.PENDING
    assert order.payment_status == OrderPaymentStatus.PENDING


@pytest.mark.asyncio
async def test_unknown_attempt_is_not_found(payment_service, make_callback):
    with pytest.raises(PaymentRecordNotFoundException):
        await payment_service.verify_callback(make_callback("20240102003000_999", amount_minor=100))


@pytest.mark.asyncio
async def test_success_after_cancellation_keeps_order_cancelled(
    payment_service, place_online_order, uow_factory, email_sender, make_callback
):
    created = await place_online_order()
    txn = created.payment.transaction_id
    await place_online_order.orders.cancel(created.order.id, "u1")

    result = await payment_service.verify_callback(make_callback(txn, amount_minor=15000000))

    assert result.success is True
    order, record = await _state(uow_factory, created.order.id, txn)
    assert record.status == PaymentStatus.COMPLETED
    assert order.payment_status == OrderPaymentStatus.FAILED
    assert order.shipping_status == ShippingStatus.CANCELED
    assert email_sender.sent == []


@pytest.mark.asyncio
async def test_email_failure_does_not_fail_callback(payment_service, place_online_order, uow_factory, make_callback):
    created = await place_online_order()
    payment_service.email_sender.fail = True

    result = await payment_service.verify_callback(
        make_callback(created.payment.transaction_id, amount_minor=15000000)
    )

    assert result.success is True
    order, _ = await _state(uow_factory, created.order.id, created.payment.transaction_id)
    assert order.payment_status == OrderPaymentStatus.COMPLETED


@pytest.mark.asyncio
async def test_landing_and_history(payment_service, place_online_order, make_callback):
    from application.dto import PaginationParams

    created = await place_online_order()
    await payment_service.verify_callback(make_callback(created.payment.transaction_id, amount_minor=15000000))

    landing = await payment_service.get_landing(created.order.id, success=True)
    assert landing.success is True
    assert landing.payment_status == OrderPaymentStatus.COMPLETED

    cancel_landing = await payment_service.get_landing(created.order.id, success=False)
    assert cancel_landing.success is False

    items, total = await payment_service.list_user_history("u1", PaginationParams())
    assert total == 1
    assert items[0].status == PaymentStatus.COMPLETED

    _, total_failed = await payment_service.list_history(PaginationParams(), PaymentStatus.FAILED)
    assert total_failed == 0


@pytest.mark.asyncio
async def test_concurrent_success_callbacks_complete_once(
    payment_service, place_online_order, uow_factory, email_sender, make_callback
):
    created = await place_online_order()
    query = make_callback(created.payment.transaction_id, amount_minor=15000000)

    results = await asyncio.gather(*(payment_service.verify_callback(dict(query)) for _ in range(5)))

    assert all(r.success for r in results)
    assert [r.duplicate for r in results].count(False) == 1
    order, record = await _state(uow_factory, created.order.id, created.payment.transaction_id)
    assert record.status == PaymentStatus.COMPLETED
    assert order.payment_status == OrderPaymentStatus.COMPLETED
    assert len(email_sender.sent) == 1


@pytest.mark.asyncio
async def test_concurrent_payment_redirects_share_one_attempt(
    place_online_order, gateway, uow_factory, monkeypatch
):
    created = await place_online_order()
    # 固定时钟，让并发请求生成同一交易号
    at = datetime(2030, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    monkeypatch.setattr(gateway, "now", lambda: at)

    redirects = await asyncio.gather(
        *(place_online_order.orders.process_payment(created.order.id, "u1", "10.0.0.1") for _ in range(4))
    )

    expected_txn = gateway.make_txn_ref(created.order.id, at)
    assert {r.transaction_id for r in redirects} == {expected_txn}
    _, record = await _state(uow_factory, created.order.id, expected_txn)
    assert record.status == PaymentStatus.PENDING
    async with uow_factory(readonly=True) as uow:
        _, total = await uow.payment_history_repository.list_by_user("u1")
    assert total == 2
