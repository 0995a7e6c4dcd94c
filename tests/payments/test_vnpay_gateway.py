from datetime import datetime, timezone
from decimal import Decimal
from urllib.parse import parse_qsl, urlsplit

import pytest

from infrastructure.external.payments import build_payment_gateway
from infrastructure.external.payments.exceptions import (
    GatewayConfigurationError,
    PaymentCallbackMalformedError,
    PaymentSignatureError,
)
from infrastructure.external.payments.vnpay_client import VnpayConfig, canonical_query, sign
from core.settings import PaymentSettings, VnpaySettings


def test_canonical_query_sorts_drops_none_and_quotes_plus():
    params = {
        "vnp_TxnRef": "a b&c",
        "vnp_OrderInfo": "Thanh toan don hang:5",
        "vnp_Amount": "1000000",
        "vnp_BankCode": None,
    }
    assert canonical_query(params) == (
        "vnp_Amount=1000000&vnp_OrderInfo=Thanh+toan+don+hang%3A5&vnp_TxnRef=a+b%26c"
    )


def test_sign_is_hmac_sha512_over_canonical_query():
    params = {"vnp_TxnRef": "20240102003000_7", "vnp_Amount": "15000000"}
    # HMAC-SHA512("secret", "vnp_Amount=15000000&vnp_TxnRef=20240102003000_7")
    assert sign(params, "secret") == (
        "8d8c2298fc98a50c7f8f701b96fe24012b1a581139b680e23d7e9dccfff84334"
        "1ffcda25c5e00c5dbdea68b2191735e2924b98a20a74f9a41b09ed090f82cf4d"
    )


def test_txn_ref_uses_gateway_timezone(gateway):
    at = datetime(2024, 1, 1, 17, 30, tzinfo=timezone.utc)
    assert gateway.make_txn_ref(42, at) == "20240102003000_42"


def test_payment_url_round_trips_through_verification(gateway):
    at = datetime(2024, 1, 1, 17, 30, tzinfo=timezone.utc)
    url = gateway.build_payment_url(
        txn_ref="20240102003000_42",
        amount=Decimal("150000.00"),
        order_info="Payment for order ORD-123456780001",
        client_ip="10.0.0.1",
        created_at=at,
    )
    parts = urlsplit(url)
    query = dict(parse_qsl(parts.query))

    assert f"{parts.scheme}://{parts.netloc}{parts.path}" == gateway.config.payment_url
    assert query["vnp_Amount"] == "15000000"
    assert query["vnp_CreateDate"] == "20240102003000"
    assert query["vnp_TmnCode"] == "TESTTMN1"
    assert query["vnp_CurrCode"] == "VND"
    assert query["vnp_IpAddr"] == "10.0.0.1"
    assert query["vnp_OrderInfo"] == "Payment for order ORD-123456780001"
    assert gateway.verify_signature(query)["vnp_TxnRef"] == "20240102003000_42"


def test_tampered_callback_is_rejected(gateway, make_callback):
    query = make_callback("20240102003000_42", amount_minor=15000000)
    query["vnp_Amount"] = "100"
    with pytest.raises(PaymentSignatureError) as exc:
        gateway.parse_callback(query)
    assert "expected" not in str(exc.value.details)


def test_missing_signature_is_rejected(gateway, make_callback):
    query = make_callback("20240102003000_42")
    del query["vnp_SecureHash"]
    with pytest.raises(PaymentSignatureError):
        gateway.parse_callback(query)


def test_wrong_secret_is_rejected(gateway, make_callback):
    with pytest.raises(PaymentSignatureError):
        gateway.parse_callback(make_callback("20240102003000_42", secret="other-secret"))


def test_signature_is_case_insensitive_and_ignores_foreign_params(gateway, make_callback):
    query = make_callback("20240102003000_42", amount_minor=15000000)
    query["vnp_SecureHash"] = query["vnp_SecureHash"].upper()
    query["vnp_SecureHashType"] = "HmacSHA512"
    query["utm_source"] = "email"

    callback = gateway.parse_callback(query)

    assert callback.order_id == 42
    assert callback.txn_ref == "20240102003000_42"
    assert callback.amount_minor == 15000000
    assert callback.is_success
    assert callback.bank_code == "NCB"
    assert "utm_source" not in callback.raw


def test_malformed_txn_ref_is_rejected(gateway, make_callback):
    with pytest.raises(PaymentCallbackMalformedError):
        gateway.parse_callback(make_callback("no-order-id"))


def test_missing_credentials_fail_fast():
    with pytest.raises(GatewayConfigurationError) as exc:
        VnpayConfig(tmn_code="", hash_secret="", payment_url="https://pay", return_url="https://ret")
    assert exc.value.missing == ["tmn_code", "hash_secret"]

    with pytest.raises(GatewayConfigurationError):
        build_payment_gateway(PaymentSettings(vnpay=VnpaySettings(tmn_code="TMN", hash_secret=None)))
