"""
Payment domain events.

Dataclass events record payment attempt outcomes; the application layer logs
them after the unit of work commits. Domain remains free of infrastructure imports.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional
import uuid


@dataclass
class PaymentEvent:
    order_id: int
    transaction_id: str
    provider: str
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class PaymentAttemptRecorded(PaymentEvent):
    amount: str = ""


@dataclass
class PaymentSucceeded(PaymentEvent):
    amount: str = ""


@dataclass
class PaymentFailed(PaymentEvent):
    reason: Optional[str] = None
