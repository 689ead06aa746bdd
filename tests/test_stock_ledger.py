import uuid

import pytest
from sqlalchemy import select

from app.core.exceptions import InsufficientStock, NotFound, ValidationFailed
from app.models.inventory import StockMovement
from app.services.order_service import OrderService
from app.services.stock_ledger_service import StockLedgerService


async def _movements(session, product_id):
    result = await session.execute(
        select(StockMovement)
        .where(StockMovement.product_id == product_id)
        .order_by(StockMovement.created_at)
    )
    return list(result.scalars().all())


async def test_restock_writes_one_movement(db_session, make_product, make_user):
    warehouse = await make_user("warehouse")
    product = await make_product(stock=0)
    ledger = StockLedgerService(db_session)

    new_stock = await ledger.restock(
        product.id, 12, user_id=warehouse.id, supplier_name="Atlas Supply", invoice_number="INV-7"
    )
    await db_session.commit()

    assert new_stock == 12
    movements = await _movements(db_session, product.id)
    assert len(movements) == 1
    m = movements[0]
    assert (m.movement_type, m.change_amount, m.previous_stock, m.new_stock) == ("restock", 12, 0, 12)
    assert m.supplier_name == "Atlas Supply"
    assert m.invoice_number == "INV-7"
    assert m.user_id == warehouse.id


async def test_deduct_and_replay(db_session, make_product):
    product = await make_product(stock=10)
    ledger = StockLedgerService(db_session)

    assert await ledger.deduct(product.id, 3) == 7
    assert await ledger.deduct(product.id, 7) == 0
    await db_session.commit()

    await db_session.refresh(product)
    assert product.stock_quantity == 0
    assert await ledger.replay_stock(product.id) == product.stock_quantity


async def test_replay_matches_stock_through_mixed_operations(db_session, make_product, make_user, make_order):
    agent = await make_user("agent")
    product = await make_product(stock=0)
    order = await make_order(status="take", product=product, quantity=4)
    ledger = StockLedgerService(db_session)

    async def assert_balanced(expected):
        await db_session.commit()
        await db_session.refresh(product)
        assert product.stock_quantity == expected
        assert await ledger.replay_stock(product.id) == expected

    await ledger.restock(product.id, 10)
    await assert_balanced(10)

    await ledger.deduct(product.id, 3)
    await assert_balanced(7)

    await ledger.adjust(product.id, 5, notes="shelf count")
    await assert_balanced(5)

    with pytest.raises(InsufficientStock):
        await ledger.deduct(product.id, 6)
    await assert_balanced(5)

    await ledger.adjust(product.id, 9)
    await assert_balanced(9)

    await OrderService(db_session).update_status(order.id, "confirmed", agent)
    await assert_balanced(5)

    await ledger.adjust(product.id, 5)
    await ledger.restock(product.id, 2)
    await assert_balanced(7)

    movements = await _movements(db_session, product.id)
    assert [m.change_amount for m in movements] == [10, -3, -2, 4, -4, 2]
    assert all(m.new_stock == m.previous_stock + m.change_amount for m in movements)


async def test_insufficient_stock_changes_nothing(db_session, make_product):
    product = await make_product(stock=2)
    ledger = StockLedgerService(db_session)

    with pytest.raises(InsufficientStock) as exc:
        await ledger.deduct(product.id, 3)

    assert exc.value.available == 2
    assert exc.value.required == 3
    assert exc.value.to_dict()["type"] == "insufficient_stock"
    await db_session.rollback()

    await db_session.refresh(product)
    assert product.stock_quantity == 2
    assert len(await _movements(db_session, product.id)) == 1


@pytest.mark.parametrize("quantity", [0, -4])
async def test_non_positive_quantities_rejected(db_session, make_product, quantity):
    product = await make_product(stock=5)
    ledger = StockLedgerService(db_session)

    with pytest.raises(ValidationFailed):
        await ledger.deduct(product.id, quantity)
    with pytest.raises(ValidationFailed):
        await ledger.restock(product.id, quantity)


async def test_adjust_records_signed_difference(db_session, make_product, make_user):
    admin = await make_user("admin")
    product = await make_product(stock=10)
    ledger = StockLedgerService(db_session)

    assert await ledger.adjust(product.id, 4, user_id=admin.id, notes="cycle count") == 4
    assert await ledger.adjust(product.id, 9, user_id=admin.id) == 9
    await db_session.commit()

    movements = await _movements(db_session, product.id)
    adjustments = [m for m in movements if m.movement_type == "manual_adjust"]
    assert [m.change_amount for m in adjustments] == [-6, 5]
    assert adjustments[0].notes == "cycle count"
    assert await ledger.replay_stock(product.id) == 9


async def test_adjust_to_current_value_is_noop(db_session, make_product):
    product = await make_product(stock=6)
    ledger = StockLedgerService(db_session)

    assert await ledger.adjust(product.id, 6) == 6
    await db_session.commit()

    assert len(await _movements(db_session, product.id)) == 1


async def test_adjust_below_zero_rejected(db_session, make_product):
    product = await make_product(stock=6)
    with pytest.raises(ValidationFailed):
        await StockLedgerService(db_session).adjust(product.id, -1)


async def test_unknown_product(db_session):
    with pytest.raises(NotFound):
        await StockLedgerService(db_session).restock(uuid.uuid4(), 1)


async def test_movements_filter_newest_first(db_session, make_product):
    product = await make_product(stock=5)
    other = await make_product(stock=3, name="Rose Water")
    ledger = StockLedgerService(db_session)
    await ledger.deduct(product.id, 2)
    await db_session.commit()

    movements = await ledger.get_movements(product_id=product.id)
    assert [m.movement_type for m in movements] == ["order_deduction", "restock"]

    restocks = await ledger.get_movements(movement_type="restock")
    assert {m.product_id for m in restocks} == {product.id, other.id}


async def test_low_stock_flag(make_product):
    product = await make_product(stock=5)
    assert product.is_low_stock
    product = await make_product(stock=6, name="Rose Water")
    assert not product.is_low_stock
