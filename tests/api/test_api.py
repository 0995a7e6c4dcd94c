from datetime import datetime, timedelta, timezone
from decimal import Decimal

import httpx
import jwt
import pytest
import pytest_asyncio

from api.dependencies import get_email_sender, get_payment_gateway, get_uow_factory
from domain.order.entity import PaymentMethod
from main import app


SECRET_KEY = "test-secret-key"


def _token(user_id: str = "u1", *, role: str = "customer", expires_in: int = 3600) -> str:
    payload = {
        "sub": user_id,
        "email": f"{user_id}@example.com",
        "name": "Test User",
        "role": role,
        "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in),
    }
    return jwt.encode(payload, SECRET_KEY, algorithm="HS256")


def _auth(user_id: str = "u1", **kwargs) -> dict:
    return {"Authorization": f"Bearer {_token(user_id, **kwargs)}"}


@pytest_asyncio.fixture
async def client(uow_factory, gateway, email_sender):
    app.dependency_overrides[get_uow_factory] = lambda: uow_factory
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_email_sender] = lambda: email_sender
    transport = httpx.ASGITransport(app=app)
    try:
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
            yield c
    finally:
        app.dependency_overrides.clear()


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["data"] == {"status": "healthy"}
    assert "X-Request-ID" in resp.headers


@pytest.mark.asyncio
async def test_orders_require_token(client):
    resp = await client.get("/api/v1/orders")
    assert resp.status_code == 401
    body = resp.json()
    assert body["error"]["type"] == "Unauthorized"

    expired = await client.get("/api/v1/orders", headers=_auth(expires_in=-10))
    assert expired.status_code == 401
    assert expired.json()["error"]["type"] == "TokenExpired"


@pytest.mark.asyncio
async def test_create_list_and_detail(client, seed, make_order_payload):
    product_id, (variant_id,) = await seed.product("Mug", [(Decimal("50000"), 5)])

    created = await client.post(
        "/api/v1/orders",
        json=make_order_payload(product_id, quantity=2, variant_id=variant_id),
        headers=_auth(),
    )
    assert created.status_code == 201
    body = created.json()
    assert body["code"] == 0
    order = body["data"]["order"]
    assert Decimal(order["total_amount"]) == Decimal("100000")
    assert order["payment_status"] == "PENDING"
    assert await seed.stock(variant_id) == 3

    listing = await client.get("/api/v1/orders", headers=_auth())
    assert listing.status_code == 200
    page = listing.json()["data"]
    assert page["total"] == 1
    assert page["items"][0]["id"] == order["id"]

    detail = await client.get(f"/api/v1/orders/{order['id']}", headers=_auth())
    assert detail.status_code == 200
    item = detail.json()["data"]["items"][0]
    assert item["product_name"] == "Mug"
    assert item["reviewed"] is False

    foreign = await client.get(f"/api/v1/orders/{order['id']}", headers=_auth("u2"))
    assert foreign.status_code == 404


@pytest.mark.asyncio
async def test_invalid_page_size_is_rejected(client):
    resp = await client.get("/api/v1/orders", params={"size": 1000}, headers=_auth())
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_insufficient_stock_is_conflict(client, seed, make_order_payload):
    product_id, _ = await seed.product("Vase", [(Decimal("300000"), 1)])
    resp = await client.post("/api/v1/orders", json=make_order_payload(product_id, quantity=2), headers=_auth())
    assert resp.status_code == 409
    assert resp.json()["error"]["type"] == "InsufficientStock"


@pytest.mark.asyncio
async def test_admin_routes_require_admin_role(client, seed, make_order_payload):
    product_id, _ = await seed.product()
    created = await client.post("/api/v1/orders", json=make_order_payload(product_id), headers=_auth())
    order_id = created.json()["data"]["order"]["id"]

    forbidden = await client.post(f"/api/v1/admin/orders/{order_id}/ship", headers=_auth())
    assert forbidden.status_code == 403

    shipped = await client.post(f"/api/v1/admin/orders/{order_id}/ship", headers=_auth("ops", role="admin"))
    assert shipped.status_code == 200
    assert shipped.json()["data"]["shipping_status"] == "SHIPPED"

    listing = await client.get(
        "/api/v1/admin/orders", params={"shipping_status": "SHIPPED"}, headers=_auth("ops", role="admin")
    )
    assert listing.json()["data"]["total"] == 1

    cancel = await client.post(f"/api/v1/orders/{order_id}/cancel", headers=_auth())
    assert cancel.status_code == 409


@pytest.mark.asyncio
async def test_vnpay_return_flow(client, seed, make_order_payload, make_callback):
    product_id, _ = await seed.product("Lamp", [(Decimal("150000"), 3)])
    created = await client.post(
        "/api/v1/orders",
        json=make_order_payload(product_id, payment_method=PaymentMethod.ONLINE_PAYMENT),
        headers=_auth(),
    )
    assert created.status_code == 201
    data = created.json()["data"]
    txn = data["payment"]["transaction_id"]
    assert data["payment"]["payment_url"].startswith("https://sandbox.vnpayment.vn/")

    tampered = make_callback(txn, amount_minor=15000000)
    tampered["vnp_Amount"] = "1"
    bad = await client.get("/api/v1/payments/vnpay-return", params=tampered)
    assert bad.status_code == 400
    assert bad.json()["error"]["type"] == "PaymentSignatureError"

    good = await client.get("/api/v1/payments/vnpay-return", params=make_callback(txn, amount_minor=15000000))
    assert good.status_code == 200
    result = good.json()["data"]
    assert result["success"] is True
    assert result["duplicate"] is False

    landing = await client.get("/api/v1/payments/success", params={"order_id": data["order"]["id"]})
    assert landing.json()["data"]["payment_status"] == "COMPLETED"

    history = await client.get("/api/v1/payments/history", headers=_auth())
    assert history.json()["data"]["items"][0]["status"] == "COMPLETED"


@pytest.mark.asyncio
async def test_verify_voucher(client, seed):
    await seed.voucher("SAVE10", value=Decimal("10"))

    ok = await client.post(
        "/api/v1/vouchers/verify", json={"code": "SAVE10", "subtotal": "200000"}, headers=_auth()
    )
    assert ok.status_code == 200
    assert ok.json()["data"]["valid"] is True
    assert Decimal(ok.json()["data"]["discount_amount"]) == Decimal("20000")

    missing = await client.post(
        "/api/v1/vouchers/verify", json={"code": "NOPE", "subtotal": "200000"}, headers=_auth()
    )
    assert missing.status_code == 404
