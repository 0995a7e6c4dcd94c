"""
Notification port: order confirmation email collaborator.
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable

from application.dtos.orders import OrderConfirmationDTO


@runtime_checkable
class OrderConfirmationSender(Protocol):
    async def send_order_confirmation(
        self,
        to_email: str,
        customer_name: str,
        order: OrderConfirmationDTO,
    ) -> None: ...
