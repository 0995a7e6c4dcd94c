"""
Exceptions for the payment gateway adapter mapped to unified BusinessException variants.
"""
from __future__ import annotations

from typing import Optional
from domain.common.exceptions import BusinessException
from shared.codes.payment_codes import PaymentCode


class GatewayConfigurationError(RuntimeError):
    """Merchant code / hash secret missing at startup."""

    def __init__(self, provider: str, missing: list[str]):
        self.provider = provider
        self.missing = missing
        super().__init__(f"{provider} gateway is not configured, missing: {', '.join(missing)}")


class PaymentSignatureError(BusinessException):
    """Callback signature absent or mismatched. Never carries the expected value."""

    def __init__(self, message: str = "Invalid signature", *, provider: str, details: Optional[dict] = None):
        full_details = {"provider": provider}
        if details:
            full_details.update(details)
        super().__init__(
            code=PaymentCode.SIGNATURE_ERROR,
            message=message,
            error_type="PaymentSignatureError",
            details=full_details,
        )


class PaymentCallbackMalformedError(BusinessException):
    def __init__(self, message: str, *, provider: str, field: Optional[str] = None):
        super().__init__(
            code=PaymentCode.CALLBACK_MALFORMED,
            message=message,
            error_type="PaymentCallbackMalformed",
            details={"provider": provider},
            field=field,
        )
