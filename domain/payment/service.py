"""
支付流水领域服务 - 记录支付尝试并完成终态转换
"""
from typing import List, Optional
from decimal import Decimal
from datetime import datetime, timezone

from .entity import PaymentDetails, PaymentHistoryRecord, PaymentProvider, PaymentStatus
from .repository import PaymentHistoryRepository
from .events import PaymentAttemptRecorded, PaymentSucceeded, PaymentFailed


class PaymentLedgerService:
    """
    支付流水领域服务

    职责：
    1. 记录支付尝试（同一交易号重复请求复用已有记录）
    2. PENDING -> COMPLETED / FAILED 的条件转换，并发重复回调最多转换一次
    3. 产生领域事件
    """

    def __init__(self, repository: PaymentHistoryRepository):
        self.repository = repository
        self.events: List = []  # 领域事件收集

    async def record_attempt(
        self,
        *,
        order_id: int,
        user_id: str,
        amount: Decimal,
        currency: str,
        transaction_id: str,
        provider: PaymentProvider = PaymentProvider.VNPAY,
        details: Optional[PaymentDetails] = None,
    ) -> PaymentHistoryRecord:
        existing = await self.repository.get_by_transaction_id(transaction_id)
        if existing is not None:
            return existing

        now = datetime.now(timezone.utc)
        record = PaymentHistoryRecord(
            id=None,
            order_id=order_id,
            user_id=user_id,
            amount=amount,
            currency=currency,
            provider=provider,
            transaction_id=transaction_id,
            status=PaymentStatus.PENDING,
            payment_details=details or PaymentDetails(),
            created_at=now,
            updated_at=now,
        )
        created = await self.repository.add(record)
        self.events.append(PaymentAttemptRecorded(
            order_id=order_id,
            transaction_id=transaction_id,
            provider=provider.value,
            amount=str(amount),
        ))
        return created

    async def complete_attempt(
        self,
        record: PaymentHistoryRecord,
        details: Optional[PaymentDetails] = None,
        at: Optional[datetime] = None,
    ) -> bool:
        """标记完成；返回 False 表示已被其它请求转换"""
        record.mark_completed(details, at)
        if not await self.repository.transition_if_pending(record):
            return False
        self.events.append(PaymentSucceeded(
            order_id=record.order_id,
            transaction_id=record.transaction_id,
            provider=record.provider.value,
            amount=str(record.amount),
        ))
        return True

    async def fail_attempt(
        self,
        record: PaymentHistoryRecord,
        reason: str,
        details: Optional[PaymentDetails] = None,
    ) -> bool:
        record.mark_failed(reason, details)
        if not await self.repository.transition_if_pending(record):
            return False
        self.events.append(PaymentFailed(
            order_id=record.order_id,
            transaction_id=record.transaction_id,
            provider=record.provider.value,
            reason=reason,
        ))
        return True

    def clear_events(self) -> List:
        """清空并返回领域事件"""
        events = self.events.copy()
        self.events.clear()
        return events
