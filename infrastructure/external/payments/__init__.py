"""
Factory for the payment gateway adapter.
"""
from __future__ import annotations

from typing import Optional

from core.settings import PaymentSettings, payment_settings
from application.ports.payment_gateway import PaymentGateway


def build_payment_gateway(settings: Optional[PaymentSettings] = None) -> PaymentGateway:
    """Build the configured gateway; raises GatewayConfigurationError when incomplete."""
    settings = settings or payment_settings
    name = (settings.provider or "").lower()
    if name == "vnpay":
        from .vnpay_client import VnpayConfig, VnpayGateway
        return VnpayGateway(VnpayConfig.from_settings(settings.vnpay))
    raise ValueError(f"Unsupported payment provider: {name}")
