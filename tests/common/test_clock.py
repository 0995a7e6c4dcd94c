from datetime import datetime, timedelta, timezone

from domain.common.clock import ensure_utc
from domain.payment.entity import PaymentHistoryRecord, PaymentProvider
from domain.voucher.entity import DiscountType, Voucher


def test_ensure_utc_handles_naive_aware_and_none():
    assert ensure_utc(None) is None
    assert ensure_utc(datetime(2024, 1, 1, 8, 0)) == datetime(2024, 1, 1, 8, 0, tzinfo=timezone.utc)

    ict = timezone(timedelta(hours=7))
    converted = ensure_utc(datetime(2024, 1, 2, 0, 30, tzinfo=ict))
    assert converted.tzinfo == timezone.utc
    assert converted == datetime(2024, 1, 1, 17, 30, tzinfo=timezone.utc)


def test_entities_normalize_timestamps_to_utc():
    voucher = Voucher(
        id=None,
        code="SALE10",
        discount_type=DiscountType.FIXED,
        value=10,
        valid_until=datetime(2030, 1, 1),
    )
    assert voucher.valid_until.tzinfo == timezone.utc

    record = PaymentHistoryRecord(
        id=None,
        order_id=1,
        user_id="u1",
        amount=100,
        currency="VND",
        provider=PaymentProvider.VNPAY,
        transaction_id="20240102003000_1",
        created_at=datetime(2024, 1, 2, 0, 30, tzinfo=timezone(timedelta(hours=7))),
    )
    assert record.created_at == datetime(2024, 1, 1, 17, 30, tzinfo=timezone.utc)
    assert record.created_at.tzinfo == timezone.utc
