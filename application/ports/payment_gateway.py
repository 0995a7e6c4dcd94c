"""
Payment gateway port (application/ports) exposing a replaceable protocol.

Application depends on this Protocol; infrastructure implements the adapter.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Mapping, Protocol, runtime_checkable

from application.dtos.payments import GatewayCallback


@runtime_checkable
class PaymentGateway(Protocol):
    """Signed-redirect gateway protocol.

    Implementations are pure: they build URLs and verify callbacks, no IO.
    """

    provider: str
    currency: str

    def now(self) -> datetime: ...

    def make_txn_ref(self, order_id: int, at: datetime) -> str: ...

    def build_payment_url(
        self,
        *,
        txn_ref: str,
        amount: Decimal,
        order_info: str,
        client_ip: str,
        created_at: datetime,
    ) -> str: ...

    def parse_callback(self, query: Mapping[str, str]) -> GatewayCallback: ...
