"""
Payment and notification settings using pydantic-settings v2 with nested env keys.

Kept apart from core.config.Settings so gateway secrets live in their own group
(``VNPAY__HASH_SECRET``, ``EMAIL__API_URL`` ...).
"""
from __future__ import annotations

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field


class VnpaySettings(BaseModel):
    tmn_code: Optional[str] = None
    hash_secret: Optional[str] = None
    payment_url: str = "https://sandbox.vnpayment.vn/paymentv2/vpcpay.html"
    return_url: str = "http://localhost:8000/api/v1/payments/vnpay-return"
    version: str = "2.1.0"
    command: str = "pay"
    locale: str = "vn"
    currency: str = "VND"
    order_type: str = "billpayment"
    # VNPay expects vnp_CreateDate in GMT+7
    utc_offset_hours: int = 7


class EmailSettings(BaseModel):
    api_url: Optional[str] = None  # transactional email endpoint; unset -> log only
    api_key: Optional[str] = None
    sender: str = "no-reply@shop.local"
    timeout: float = 5.0
    max_retries: int = 2
    base_backoff: float = 0.2


class PaymentSettings(BaseSettings):
    provider: str = Field(default="vnpay")
    vnpay: VnpaySettings = Field(default_factory=VnpaySettings)
    email: EmailSettings = Field(default_factory=EmailSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )


payment_settings = PaymentSettings()
