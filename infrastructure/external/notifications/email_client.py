"""
Order confirmation email senders.

HttpEmailSender posts to a transactional email API with httpx and retries
transport failures with tenacity. LoggingEmailSender is used when no API is
configured (local development).
"""
from __future__ import annotations

from typing import Optional

import httpx
from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential, retry_if_exception_type

from application.dtos.orders import OrderConfirmationDTO
from application.ports.notifications import OrderConfirmationSender
from core.logging_config import get_logger
from core.settings import EmailSettings


logger = get_logger(__name__)


class HttpEmailSender(OrderConfirmationSender):
    def __init__(self, settings: EmailSettings, *, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        if not settings.api_url:
            raise ValueError("EMAIL__API_URL is required for HttpEmailSender")
        self._settings = settings
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"Authorization": f"Bearer {self._settings.api_key}"} if self._settings.api_key else {}
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._settings.timeout),
                headers=headers,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        """Close underlying HTTP client if created."""
        if self._client is not None:
            try:
                await self._client.aclose()
            finally:
                self._client = None

    async def send_order_confirmation(
        self,
        to_email: str,
        customer_name: str,
        order: OrderConfirmationDTO,
    ) -> None:
        payload = {
            "from": self._settings.sender,
            "to": to_email,
            "template": "order_confirmation",
            "data": {"customer_name": customer_name, "order": order.model_dump(mode="json")},
        }
        client = self._get_client()
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(int(self._settings.max_retries) + 1),
            wait=wait_exponential(multiplier=self._settings.base_backoff, min=0.1, max=2.0),
            retry=retry_if_exception_type((httpx.TimeoutException, httpx.TransportError)),
            reraise=True,
        ):
            with attempt:
                response = await client.post(self._settings.api_url, json=payload)
                response.raise_for_status()
        logger.info("order_confirmation_sent", order_id=order.order_id, attempts=attempt.retry_state.attempt_number)


class LoggingEmailSender(OrderConfirmationSender):
    async def send_order_confirmation(
        self,
        to_email: str,
        customer_name: str,
        order: OrderConfirmationDTO,
    ) -> None:
        logger.info(
            "order_confirmation_logged",
            order_id=order.order_id,
            order_code=order.order_code,
            customer_name=customer_name,
            total=str(order.total),
        )


def build_email_sender(settings: EmailSettings) -> OrderConfirmationSender:
    if settings.api_url:
        return HttpEmailSender(settings)
    return LoggingEmailSender()
