"""Pytest bootstrap configuration.

Ensure mandatory environment variables are set before test collection
and module imports that depend on application settings.
"""
import os

# Mandatory secret key for settings validation
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE__URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("VNPAY__TMN_CODE", "TESTTMN1")
os.environ.setdefault("VNPAY__HASH_SECRET", "test-hash-secret")

import functools
from decimal import Decimal
from typing import Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from domain.order.entity import PaymentMethod
from infrastructure.external.payments.vnpay_client import VnpayConfig, VnpayGateway, sign
from infrastructure.models import Base, ProductModel, ProductReviewModel, ProductVariantModel, VoucherModel
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork


TEST_HASH_SECRET = "test-hash-secret"


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    """每个测试一个临时 SQLite 文件库"""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield async_sessionmaker(bind=engine, expire_on_commit=False)
    finally:
        await engine.dispose()


@pytest.fixture
def uow_factory(session_factory):
    return functools.partial(SQLAlchemyUnitOfWork, session_factory)


@pytest.fixture
def gateway() -> VnpayGateway:
    return VnpayGateway(
        VnpayConfig(
            tmn_code="TESTTMN1",
            hash_secret=TEST_HASH_SECRET,
            payment_url="https://sandbox.vnpayment.vn/paymentv2/vpcpay.html",
            return_url="http://localhost:8000/api/v1/payments/vnpay-return",
        )
    )


class RecordingEmailSender:
    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail

    async def send_order_confirmation(self, to_email, customer_name, order):
        if self.fail:
            raise RuntimeError("email provider down")
        self.sent.append((to_email, customer_name, order))


@pytest.fixture
def email_sender() -> RecordingEmailSender:
    return RecordingEmailSender()


async def seed_product(
    session_factory,
    name: str = "T-Shirt",
    variants=((Decimal("100.00"), 10),),
    *,
    is_active: bool = True,
    slug: Optional[str] = None,
):
    """返回 (product_id, [variant_id, ...])，variants 为 (price, quantity) 序列"""
    async with session_factory() as session:
        product = ProductModel(name=name, slug=slug or name.lower().replace(" ", "-"), image=f"/img/{name}.png",
                               is_active=is_active)
        session.add(product)
        await session.flush()
        variant_models = [
            ProductVariantModel(product_id=product.id, price=price, quantity=qty, sku=f"{name}-{i}",
                                attributes={"size": str(i)})
            for i, (price, qty) in enumerate(variants)
        ]
        session.add_all(variant_models)
        await session.commit()
        return product.id, [v.id for v in variant_models]


async def seed_voucher(session_factory, code: str = "SAVE10", **fields) -> int:
    values = dict(discount_type="PERCENTAGE", value=Decimal("10"), min_order_value=Decimal("0"),
                  used_count=0, is_active=True)
    values.update(fields)
    async with session_factory() as session:
        voucher = VoucherModel(code=code, **values)
        session.add(voucher)
        await session.commit()
        return voucher.id


async def seed_review(session_factory, product_id: int, user_id: str) -> None:
    async with session_factory() as session:
        session.add(ProductReviewModel(product_id=product_id, user_id=user_id, rating=5))
        await session.commit()


async def variant_stock(session_factory, variant_id: int) -> int:
    async with session_factory() as session:
        variant = await session.get(ProductVariantModel, variant_id)
        return variant.quantity


async def voucher_usage(session_factory, voucher_id: int) -> int:
    async with session_factory() as session:
        voucher = await session.get(VoucherModel, voucher_id)
        return voucher.used_count


def signed_callback(txn_ref: str, *, response_code: str = "00", amount_minor: Optional[int] = None,
                    secret: str = TEST_HASH_SECRET, **extra) -> dict:
    """构造一份带合法签名的 VNPay 回跳参数"""
    params = {
        "vnp_TmnCode": "TESTTMN1",
        "vnp_TxnRef": txn_ref,
        "vnp_ResponseCode": response_code,
        "vnp_TransactionStatus": response_code,
        "vnp_TransactionNo": "14123456",
        "vnp_BankCode": "NCB",
        "vnp_CardType": "ATM",
        "vnp_PayDate": "20240102003000",
        "vnp_OrderInfo": "Payment for order",
    }
    if amount_minor is not None:
        params["vnp_Amount"] = str(amount_minor)
    params.update(extra)
    params["vnp_SecureHash"] = sign(params, secret)
    return params


def order_payload(product_id: int, *, quantity: int = 1, variant_id: Optional[int] = None,
                  payment_method: PaymentMethod = PaymentMethod.CASH_ON_DELIVERY,
                  voucher_code: Optional[str] = None) -> dict:
    item = {"product_id": product_id, "quantity": quantity}
    if variant_id is not None:
        item["variant_id"] = variant_id
    payload = {
        "items": [item],
        "payment_method": payment_method.value,
        "shipping_address": {
            "full_name": "Nguyen Van A",
            "phone": "0901234567",
            "address_line1": "1 Le Loi",
            "city": "Ho Chi Minh",
        },
    }
    if voucher_code:
        payload["voucher_code"] = voucher_code
    return payload


class Seeder:
    """测试数据构造入口，绑定到当前测试的 session_factory"""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def product(self, *args, **kwargs):
        return await seed_product(self.session_factory, *args, **kwargs)

    async def voucher(self, *args, **kwargs):
        return await seed_voucher(self.session_factory, *args, **kwargs)

    async def review(self, product_id: int, user_id: str) -> None:
        await seed_review(self.session_factory, product_id, user_id)

    async def stock(self, variant_id: int) -> int:
        return await variant_stock(self.session_factory, variant_id)

    async def voucher_usage(self, voucher_id: int) -> int:
        return await voucher_usage(self.session_factory, voucher_id)


@pytest.fixture
def seed(session_factory) -> Seeder:
    return Seeder(session_factory)


@pytest.fixture
def make_callback():
    return signed_callback


@pytest.fixture
def make_order_payload():
    return order_payload
