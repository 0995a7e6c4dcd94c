"""
Payment specific codes and VNPay response code descriptions.
"""
from __future__ import annotations

from enum import IntEnum


class PaymentCode(IntEnum):
    # Generic success
    SUCCESS = 0

    # Provider/Network errors (6xxxx)
    PROVIDER_ERROR = 60000
    SIGNATURE_ERROR = 60002
    CALLBACK_MALFORMED = 60005


VNPAY_SUCCESS_CODE = "00"

# vnp_ResponseCode -> human readable reason (subset documented by VNPay)
VNPAY_RESPONSE_MESSAGES = {
    "00": "Transaction successful",
    "07": "Money deducted, transaction suspected of fraud",
    "09": "Card/account not registered for internet banking",
    "10": "Card/account authentication failed more than 3 times",
    "11": "Payment window expired",
    "12": "Card/account is locked",
    "13": "Wrong OTP",
    "24": "Customer cancelled the transaction",
    "51": "Insufficient balance",
    "65": "Daily transaction limit exceeded",
    "75": "Paying bank under maintenance",
    "79": "Wrong payment password too many times",
    "99": "Other error",
}


def describe_vnpay_response(code: str | None) -> str:
    return VNPAY_RESPONSE_MESSAGES.get(code or "", "Unknown response code")
