from decimal import Decimal

import pytest

from domain.payment.entity import PaymentHistoryRecord, PaymentProvider
from domain.payment.repository import PaymentAttemptConflict


def _attempt(txn_ref: str) -> PaymentHistoryRecord:
    return PaymentHistoryRecord(
        id=None,
        order_id=1,
        user_id="u1",
        amount=Decimal("150000"),
        currency="VND",
        provider=PaymentProvider.VNPAY,
        transaction_id=txn_ref,
    )


@pytest.mark.asyncio
async def test_duplicate_transaction_id_raises_conflict(uow_factory):
    async with uow_factory() as uow:
        await uow.payment_history_repository.add(_attempt("20300102100405_1"))

    with pytest.raises(PaymentAttemptConflict):
        async with uow_factory() as uow:
            await uow.payment_history_repository.add(_attempt("20300102100405_1"))

    async with uow_factory(readonly=True) as uow:
        _, total = await uow.payment_history_repository.list_by_user("u1")
    assert total == 1
