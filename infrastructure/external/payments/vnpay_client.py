"""
VNPay signed-redirect gateway adapter.

Outbound: parameters are key-sorted, URL-encoded with ``quote_plus`` and signed
with HMAC-SHA512 over that exact string. Inbound: the same canonical routine is
applied to the echoed ``vnp_*`` parameters (minus the hash fields) and the result
is compared in constant time.
"""
from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Mapping, Optional
from urllib.parse import quote_plus, urlencode

from application.dtos.payments import GatewayCallback
from application.ports.payment_gateway import PaymentGateway
from core.logging_config import get_logger
from core.settings import VnpaySettings
from domain.common.money import to_minor_units
from infrastructure.external.payments.exceptions import (
    GatewayConfigurationError,
    PaymentCallbackMalformedError,
    PaymentSignatureError,
)


logger = get_logger(__name__)

PROVIDER = "VNPAY"
HASH_FIELDS = ("vnp_SecureHash", "vnp_SecureHashType")
CREATE_DATE_FORMAT = "%Y%m%d%H%M%S"


def canonical_query(params: Mapping[str, Any]) -> str:
    """Key-sorted, ``None``-free, quote_plus encoded query string."""
    items = sorted((str(k), str(v)) for k, v in params.items() if v is not None)
    return urlencode(items, quote_via=quote_plus)


def sign(params: Mapping[str, Any], secret: str) -> str:
    data = canonical_query(params).encode("utf-8")
    return hmac.new(secret.encode("utf-8"), data, hashlib.sha512).hexdigest()


@dataclass(frozen=True)
class VnpayConfig:
    tmn_code: str
    hash_secret: str
    payment_url: str
    return_url: str
    version: str = "2.1.0"
    command: str = "pay"
    locale: str = "vn"
    currency: str = "VND"
    order_type: str = "billpayment"
    utc_offset_hours: int = 7

    def __post_init__(self):
        missing = [name for name in ("tmn_code", "hash_secret", "payment_url", "return_url") if not getattr(self, name)]
        if missing:
            raise GatewayConfigurationError(PROVIDER, missing)

    @classmethod
    def from_settings(cls, settings: VnpaySettings) -> "VnpayConfig":
        return cls(
            tmn_code=settings.tmn_code or "",
            hash_secret=settings.hash_secret or "",
            payment_url=settings.payment_url,
            return_url=settings.return_url,
            version=settings.version,
            command=settings.command,
            locale=settings.locale,
            currency=settings.currency,
            order_type=settings.order_type,
            utc_offset_hours=settings.utc_offset_hours,
        )

    @property
    def tz(self) -> timezone:
        return timezone(timedelta(hours=self.utc_offset_hours))


class VnpayGateway(PaymentGateway):
    provider: str = PROVIDER

    def __init__(self, config: VnpayConfig) -> None:
        self.config = config

    @property
    def currency(self) -> str:  # type: ignore[override]
        return self.config.currency

    def now(self) -> datetime:
        return datetime.now(self.config.tz)

    def format_create_date(self, at: datetime) -> str:
        if at.tzinfo is None:
            at = at.replace(tzinfo=timezone.utc)
        return at.astimezone(self.config.tz).strftime(CREATE_DATE_FORMAT)

    def make_txn_ref(self, order_id: int, at: datetime) -> str:
        return f"{self.format_create_date(at)}_{order_id}"

    def build_params(
        self,
        *,
        txn_ref: str,
        amount: Decimal,
        order_info: str,
        client_ip: str,
        created_at: datetime,
    ) -> dict[str, str]:
        cfg = self.config
        return {
            "vnp_Version": cfg.version,
            "vnp_Command": cfg.command,
            "vnp_TmnCode": cfg.tmn_code,
            "vnp_Locale": cfg.locale,
            "vnp_CurrCode": cfg.currency,
            "vnp_TxnRef": txn_ref,
            "vnp_OrderInfo": order_info,
            "vnp_OrderType": cfg.order_type,
            "vnp_Amount": str(to_minor_units(amount)),
            "vnp_ReturnUrl": cfg.return_url,
            "vnp_IpAddr": client_ip,
            "vnp_CreateDate": self.format_create_date(created_at),
        }

    def build_payment_url(
        self,
        *,
        txn_ref: str,
        amount: Decimal,
        order_info: str,
        client_ip: str,
        created_at: datetime,
    ) -> str:
        params = self.build_params(
            txn_ref=txn_ref,
            amount=amount,
            order_info=order_info,
            client_ip=client_ip,
            created_at=created_at,
        )
        query = canonical_query(params)
        secure_hash = sign(params, self.config.hash_secret)
        logger.info("vnpay_payment_url_built", txn_ref=txn_ref, amount=params["vnp_Amount"])
        return f"{self.config.payment_url}?{query}&{urlencode({'vnp_SecureHash': secure_hash})}"

    def verify_signature(self, query: Mapping[str, str]) -> dict[str, str]:
        """Return the signed ``vnp_*`` parameters; raise PaymentSignatureError on mismatch."""
        provided: Optional[str] = query.get("vnp_SecureHash")
        params = {
            k: v for k, v in query.items()
            if k.startswith("vnp_") and k not in HASH_FIELDS
        }
        if not provided:
            raise PaymentSignatureError("Missing signature", provider=self.provider)
        expected = sign(params, self.config.hash_secret)
        if not hmac.compare_digest(expected.lower(), provided.strip().lower()):
            logger.warning("vnpay_signature_mismatch", txn_ref=params.get("vnp_TxnRef"))
            raise PaymentSignatureError(provider=self.provider)
        return params

    def parse_callback(self, query: Mapping[str, str]) -> GatewayCallback:
        params = self.verify_signature(query)

        txn_ref = params.get("vnp_TxnRef")
        if not txn_ref:
            raise PaymentCallbackMalformedError("Missing transaction reference", provider=self.provider, field="vnp_TxnRef")
        _, sep, order_part = txn_ref.rpartition("_")
        if not sep or not order_part.isdigit():
            raise PaymentCallbackMalformedError("Malformed transaction reference", provider=self.provider, field="vnp_TxnRef")
        response_code = params.get("vnp_ResponseCode")
        if not response_code:
            raise PaymentCallbackMalformedError("Missing response code", provider=self.provider, field="vnp_ResponseCode")

        amount_raw = params.get("vnp_Amount")
        if amount_raw is not None and not amount_raw.isdigit():
            raise PaymentCallbackMalformedError("Malformed amount", provider=self.provider, field="vnp_Amount")

        return GatewayCallback(
            txn_ref=txn_ref,
            order_id=int(order_part),
            response_code=response_code,
            amount_minor=int(amount_raw) if amount_raw is not None else None,
            transaction_no=params.get("vnp_TransactionNo"),
            transaction_status=params.get("vnp_TransactionStatus"),
            bank_code=params.get("vnp_BankCode"),
            card_type=params.get("vnp_CardType"),
            pay_date=params.get("vnp_PayDate"),
            order_info=params.get("vnp_OrderInfo"),
            raw=dict(params),
        )
