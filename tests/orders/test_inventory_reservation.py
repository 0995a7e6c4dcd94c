from decimal import Decimal

import pytest

from domain.common.exceptions import (
    InsufficientStockException,
    NoPurchasableVariantException,
    ProductNotFoundException,
    VariantNotFoundException,
)
from domain.inventory.service import InventoryReservation, LineRequest, StockDirection
from domain.order.entity import StockAllocation


async def _resolve(uow_factory, line: LineRequest):
    async with uow_factory(readonly=True) as uow:
        return await InventoryReservation(uow.product_repository).resolve(line)


@pytest.mark.asyncio
async def test_explicit_variant_uses_variant_price(uow_factory, seed):
    product_id, (cheap, dear) = await seed.product("Hoodie", [(Decimal("200000"), 5), (Decimal("250000"), 5)])

    resolved = await _resolve(uow_factory, LineRequest(product_id=product_id, variant_id=dear, quantity=2))

    assert resolved.unit_price == Decimal("250000.00")
    assert resolved.variant_id == dear
    assert resolved.product_name == "Hoodie"
    assert resolved.allocations == (StockAllocation(variant_id=dear, quantity=2),)


@pytest.mark.asyncio
async def test_without_variant_allocates_cheapest_first(uow_factory, seed):
    product_id, (dear, cheap) = await seed.product("Cap", [(Decimal("90000"), 10), (Decimal("60000"), 3)])

    resolved = await _resolve(uow_factory, LineRequest(product_id=product_id, quantity=5))

    assert resolved.unit_price == Decimal("60000.00")
    assert resolved.variant_id is None
    assert resolved.allocations == (
        StockAllocation(variant_id=cheap, quantity=3),
        StockAllocation(variant_id=dear, quantity=2),
    )


@pytest.mark.asyncio
async def test_insufficient_stock_names_product(uow_factory, seed):
    product_id, (variant_id,) = await seed.product("Scarf", [(Decimal("10000"), 1)])

    with pytest.raises(InsufficientStockException) as exc:
        await _resolve(uow_factory, LineRequest(product_id=product_id, variant_id=variant_id, quantity=2))
    assert "Scarf" in exc.value.message
    assert exc.value.details["available"] == 1

    with pytest.raises(InsufficientStockException):
        await _resolve(uow_factory, LineRequest(product_id=product_id, quantity=2))


@pytest.mark.asyncio
async def test_missing_inactive_and_variantless_products(uow_factory, seed):
    inactive_id, _ = await seed.product("Old", is_active=False)
    empty_id, _ = await seed.product("Empty", variants=())
    product_id, _ = await seed.product("Shoe")

    with pytest.raises(ProductNotFoundException):
        await _resolve(uow_factory, LineRequest(product_id=9999, quantity=1))
    with pytest.raises(ProductNotFoundException):
        await _resolve(uow_factory, LineRequest(product_id=inactive_id, quantity=1))
    with pytest.raises(NoPurchasableVariantException):
        await _resolve(uow_factory, LineRequest(product_id=empty_id, quantity=1))
    with pytest.raises(VariantNotFoundException):
        await _resolve(uow_factory, LineRequest(product_id=product_id, variant_id=9999, quantity=1))


@pytest.mark.asyncio
async def test_adjust_stock_debit_and_credit(uow_factory, seed):
    product_id, (variant_id,) = await seed.product("Sock", [(Decimal("5000"), 3)])

    async with uow_factory() as uow:
        await InventoryReservation(uow.product_repository).adjust_stock(product_id, variant_id, 2, StockDirection.DEBIT)
    assert await seed.stock(variant_id) == 1

    with pytest.raises(InsufficientStockException):
        async with uow_factory() as uow:
            await InventoryReservation(uow.product_repository).adjust_stock(
                product_id, variant_id, 2, StockDirection.DEBIT
            )
    assert await seed.stock(variant_id) == 1

    async with uow_factory() as uow:
        await InventoryReservation(uow.product_repository).adjust_stock(product_id, variant_id, 4, StockDirection.CREDIT)
    assert await seed.stock(variant_id) == 5


@pytest.mark.asyncio
async def test_adjust_unknown_variant(uow_factory, seed):
    product_id, _ = await seed.product("Belt")
    with pytest.raises(VariantNotFoundException):
        async with uow_factory() as uow:
            await InventoryReservation(uow.product_repository).adjust_stock(
                product_id, 4242, 1, StockDirection.CREDIT
            )
