from decimal import Decimal

import pytest

from application.dtos.orders import CreateOrderDTO, OnlinePaymentOrderResult, CashOnDeliveryOrderResult
from application.services.order_service import OrderApplicationService
from application.services.payment_service import PaymentApplicationService
from domain.common.exceptions import (
    InsufficientStockException,
    InvalidOrderStateException,
    OrderNotFoundException,
    StockRestorationFailedException,
    VoucherInvalidException,
)
from domain.order.entity import OrderPaymentStatus, PaymentMethod, ShippingStatus
from domain.order.repository import OrderSearchCriteria
from domain.payment.entity import PaymentStatus
from infrastructure.models import ProductVariantModel


@pytest.fixture
def payment_service(uow_factory, gateway, email_sender):
    return PaymentApplicationService(uow_factory, gateway, email_sender, frontend_url="http://shop.test")


@pytest.fixture
def service(uow_factory, payment_service):
    return OrderApplicationService(uow_factory, payment_service)


async def _count_orders(uow_factory) -> int:
    async with uow_factory(readonly=True) as uow:
        _, total = await uow.order_repository.search(OrderSearchCriteria())
    return total


@pytest.mark.asyncio
async def test_create_cash_on_delivery_debits_stock(service, seed, make_order_payload):
    product_id, (variant_id,) = await seed.product("Mug", [(Decimal("50000"), 5)])
    dto = CreateOrderDTO(**make_order_payload(product_id, quantity=2, variant_id=variant_id))

    result = await service.create("u1", dto, client_ip="10.0.0.1", contact_email="a@example.com")

    assert isinstance(result, CashOnDeliveryOrderResult)
    order = result.order
    assert order.order_code.startswith("ORD-")
    assert order.subtotal == Decimal("100000.00")
    assert order.total_amount == Decimal("100000.00")
    assert order.payment_status == OrderPaymentStatus.PENDING
    assert order.items[0].product_name == "Mug"
    assert await seed.stock(variant_id) == 3


@pytest.mark.asyncio
async def test_client_supplied_totals_are_ignored(service, seed, make_order_payload):
    product_id, _ = await seed.product("Pen", [(Decimal("12000"), 5)])
    payload = make_order_payload(product_id, quantity=1)
    payload["total_amount"] = "1"
    payload["items"][0]["unit_price"] = "1"

    result = await service.create("u1", CreateOrderDTO(**payload), client_ip="10.0.0.1")

    assert result.order.total_amount == Decimal("12000.00")


@pytest.mark.asyncio
async def test_create_online_payment_returns_signed_redirect(service, seed, uow_factory, make_order_payload):
    product_id, _ = await seed.product("Lamp", [(Decimal("150000"), 2)])
    dto = CreateOrderDTO(**make_order_payload(product_id, payment_method=PaymentMethod.ONLINE_PAYMENT))

    result = await service.create("u1", dto, client_ip="10.0.0.1")

    assert isinstance(result, OnlinePaymentOrderResult)
    assert result.payment.payment_url.startswith("https://sandbox.vnpayment.vn/paymentv2/vpcpay.html?")
    assert "vnp_Amount=15000000" in result.payment.payment_url
    assert "vnp_SecureHash=" in result.payment.payment_url
    assert result.payment.transaction_id.endswith(f"_{result.order.id}")

    async with uow_factory(readonly=True) as uow:
        record = await uow.payment_history_repository.get_by_transaction_id(result.payment.transaction_id)
    assert record.status == PaymentStatus.PENDING
    assert record.amount == Decimal("150000.00")
    assert record.currency == "VND"
    assert record.payment_details.order_info == f"Payment for order {result.order.order_code}"


@pytest.mark.asyncio
async def test_voucher_discount_and_usage(service, seed, make_order_payload):
    product_id, _ = await seed.product("Bag", [(Decimal("200000"), 5)])
    voucher_id = await seed.voucher("SAVE10", value=Decimal("10"), usage_limit=5)

    result = await service.create(
        "u1", CreateOrderDTO(**make_order_payload(product_id, voucher_code="SAVE10")), client_ip="10.0.0.1"
    )

    assert result.order.discount_amount == Decimal("20000.00")
    assert result.order.total_amount == Decimal("180000.00")
    assert result.order.voucher_id == voucher_id
    assert await seed.voucher_usage(voucher_id) == 1


@pytest.mark.asyncio
async def test_two_lines_with_fixed_voucher(service, seed, make_order_payload):
    product_a, (variant_a,) = await seed.product("A", [(Decimal("100"), 5)])
    product_b, (variant_b,) = await seed.product("B", [(Decimal("50"), 1)])
    await seed.voucher("FLAT30", discount_type="FIXED", value=Decimal("30"))
    payload = make_order_payload(product_a, quantity=2, variant_id=variant_a, voucher_code="FLAT30")
    payload["items"].append({"product_id": product_b, "variant_id": variant_b, "quantity": 1})

    result = await service.create("u1", CreateOrderDTO(**payload), client_ip="10.0.0.1")

    assert result.order.subtotal == Decimal("250.00")
    assert result.order.discount_amount == Decimal("30.00")
    assert result.order.total_amount == Decimal("220.00")
    assert result.order.payment_status == OrderPaymentStatus.PENDING
    assert await seed.stock(variant_a) == 3
    assert await seed.stock(variant_b) == 0


@pytest.mark.asyncio
async def test_exhausted_voucher_persists_nothing(service, seed, uow_factory, make_order_payload):
    product_id, (variant_id,) = await seed.product("Bag", [(Decimal("200000"), 5)])
    await seed.voucher("USED", usage_limit=1, used_count=1)

    with pytest.raises(VoucherInvalidException):
        await service.create(
            "u1", CreateOrderDTO(**make_order_payload(product_id, voucher_code="USED")), client_ip="10.0.0.1"
        )

    assert await _count_orders(uow_factory) == 0
    assert await seed.stock(variant_id) == 5


@pytest.mark.asyncio
async def test_insufficient_stock_persists_nothing(service, seed, uow_factory, make_order_payload):
    product_id, (variant_id,) = await seed.product("Vase", [(Decimal("300000"), 1)])

    with pytest.raises(InsufficientStockException):
        await service.create(
            "u1", CreateOrderDTO(**make_order_payload(product_id, quantity=3)), client_ip="10.0.0.1"
        )

    assert await _count_orders(uow_factory) == 0
    assert await seed.stock(variant_id) == 1


@pytest.mark.asyncio
async def test_cancel_restores_stock_on_allocated_variants(service, seed, make_order_payload):
    product_id, (dear, cheap) = await seed.product("Cap", [(Decimal("90000"), 10), (Decimal("60000"), 3)])
    result = await service.create(
        "u1", CreateOrderDTO(**make_order_payload(product_id, quantity=5)), client_ip="10.0.0.1"
    )
    assert await seed.stock(cheap) == 0
    assert await seed.stock(dear) == 8

    cancelled = await service.cancel(result.order.id, "u1")

    assert cancelled.payment_status == OrderPaymentStatus.FAILED
    assert cancelled.shipping_status == ShippingStatus.CANCELED
    assert await seed.stock(cheap) == 3
    assert await seed.stock(dear) == 10


@pytest.mark.asyncio
async def test_cancel_foreign_order_is_not_found(service, seed, make_order_payload):
    product_id, _ = await seed.product()
    result = await service.create("u1", CreateOrderDTO(**make_order_payload(product_id)), client_ip="10.0.0.1")

    with pytest.raises(OrderNotFoundException):
        await service.cancel(result.order.id, "someone-else")


@pytest.mark.asyncio
async def test_cancel_twice_is_rejected(service, seed, make_order_payload):
    product_id, _ = await seed.product()
    result = await service.create("u1", CreateOrderDTO(**make_order_payload(product_id)), client_ip="10.0.0.1")
    await service.cancel(result.order.id, "u1")

    with pytest.raises(InvalidOrderStateException):
        await service.cancel(result.order.id, "u1")


@pytest.mark.asyncio
async def test_cancel_cash_on_delivery_restores_stock(service, seed, make_order_payload):
    product_id, (variant_id,) = await seed.product("Jar", [(Decimal("30000"), 4)])
    result = await service.create(
        "u1", CreateOrderDTO(**make_order_payload(product_id, quantity=2, variant_id=variant_id)),
        client_ip="10.0.0.1",
    )

    cancelled = await service.cancel_cash_on_delivery(result.order.id, "u1", "wrong size")

    assert cancelled.payment_status == OrderPaymentStatus.PENDING
    assert cancelled.shipping_status == ShippingStatus.CANCELED
    assert cancelled.cancelled_reason == "wrong size"
    assert await seed.stock(variant_id) == 4


@pytest.mark.asyncio
async def test_cancel_cash_on_delivery_rolls_back_when_restore_fails(
    service, seed, session_factory, uow_factory, make_order_payload
):
    product_id, (variant_id,) = await seed.product("Bowl", [(Decimal("30000"), 4)])
    result = await service.create(
        "u1", CreateOrderDTO(**make_order_payload(product_id, variant_id=variant_id)), client_ip="10.0.0.1"
    )
    async with session_factory() as session:
        await session.delete(await session.get(ProductVariantModel, variant_id))
        await session.commit()

    with pytest.raises(StockRestorationFailedException):
        await service.cancel_cash_on_delivery(result.order.id, "u1")

    async with uow_factory(readonly=True) as uow:
        order = await uow.order_repository.get_by_id(result.order.id)
    assert order.shipping_status == ShippingStatus.PENDING


@pytest.mark.asyncio
async def test_process_payment_only_for_pending_online_orders(service, seed, make_order_payload):
    product_id, _ = await seed.product(variants=((Decimal("100000"), 10),))
    cod = await service.create("u1", CreateOrderDTO(**make_order_payload(product_id)), client_ip="10.0.0.1")
    online = await service.create(
        "u1",
        CreateOrderDTO(**make_order_payload(product_id, payment_method=PaymentMethod.ONLINE_PAYMENT)),
        client_ip="10.0.0.1",
    )

    with pytest.raises(InvalidOrderStateException):
        await service.process_payment(cod.order.id, "u1", "10.0.0.1")

    redirect = await service.process_payment(online.order.id, "u1", "10.0.0.1")
    assert redirect.transaction_id.endswith(f"_{online.order.id}")

    await service.cancel(online.order.id, "u1")
    with pytest.raises(InvalidOrderStateException):
        await service.process_payment(online.order.id, "u1", "10.0.0.1")
