import asyncio
import json
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from delicute.crud.catalog import load_catalog
from delicute.crud.coupon import resolve_coupon
from delicute.crud.order import get_order_by_id, persist_order, place_order, quote_coupon
from delicute.errors import (
    CouponExhausted,
    InsufficientQuantity,
    InvalidReference,
    TransientStorageError,
    ValidationError,
)
from delicute.models import Coupon, CouponTypeEnum, Order, OrderItem, OrderStatusEnum
from delicute.schemas.order import CouponQuoteRequest, OrderRead, PlaceOrderItem, PlaceOrderRequest
from delicute.services.pricing import price_order


def order_request(lines, coupon_code=None, **overrides):
    data = {
        "customer_name": "Anna",
        "table_number": 4,
        "items": [PlaceOrderItem(menu_item_id=i, quantity=q) for i, q in lines],
        "coupon_code": coupon_code,
    }
    data.update(overrides)
    return PlaceOrderRequest(**data)


async def count_rows(session_factory, model):
    async with session_factory() as session:
        result = await session.execute(select(func.count()).select_from(model))
        return result.scalar_one()


async def coupon_quantity(session_factory, coupon_id):
    async with session_factory() as session:
        coupon = await session.get(Coupon, coupon_id)
        return coupon.quantity


async def test_order_without_coupon(db, menu, session_factory):
    result = await place_order(db, order_request([(menu["margherita"], 2), (menu["cola"], 1)]))

    assert result.subtotal == Decimal("350.00")
    assert result.discount == Decimal("0")
    assert result.total == Decimal("350.00")

    async with session_factory() as session:
        order = await get_order_by_id(session, result.order_id)
        assert order.status == OrderStatusEnum.pending
        assert order.coupon_code is None
        assert sorted((i.menu_item_id, i.quantity, i.price_at_order) for i in order.items) == sorted([
            (menu["margherita"], 2, Decimal("150.00")),
            (menu["cola"], 1, Decimal("50.00")),
        ])


async def test_client_prices_never_reach_the_order(db, menu):
    request = order_request(
        [], items=[PlaceOrderItem(menu_item_id=menu["pepperoni"], quantity=1, price=Decimal("0.01"))],
    )

    result = await place_order(db, request)

    assert result.subtotal == Decimal("200.00")


async def test_buy_x_coupon_is_applied_and_decremented(db, menu, make_coupon, session_factory):
    coupon_id = await make_coupon(
        code="PIZZA2", type=CouponTypeEnum.buy_x, category_id=menu["pizza"],
        buy_x=2, discount=Decimal("10"), quantity=5,
    )

    result = await place_order(db, order_request([(menu["margherita"], 3)], coupon_code="pizza2"))

    assert (result.subtotal, result.discount, result.total) == (
        Decimal("450.00"), Decimal("45.00"), Decimal("405.00"),
    )
    assert await coupon_quantity(session_factory, coupon_id) == 4

    async with session_factory() as session:
        order = await session.get(Order, result.order_id)
        assert order.coupon_code == "PIZZA2"
        assert order.total == Decimal("405.00")


async def test_unlimited_coupon_is_not_decremented(db, menu, make_coupon, session_factory):
    coupon_id = await make_coupon(
        code="DRINKS10", type=CouponTypeEnum.percentage, category_id=menu["drinks"], discount=Decimal("10"),
    )

    await place_order(db, order_request([(menu["lemonade"], 2)], coupon_code="DRINKS10"))

    assert await coupon_quantity(session_factory, coupon_id) is None


async def test_rejected_coupon_leaves_nothing_behind(db, menu, make_coupon, session_factory):
    coupon_id = await make_coupon(
        code="PIZZA3", type=CouponTypeEnum.buy_x, category_id=menu["pizza"],
        buy_x=3, discount=Decimal("10"), quantity=2,
    )

    with pytest.raises(InsufficientQuantity):
        await place_order(db, order_request([(menu["margherita"], 1)], coupon_code="PIZZA3"))

    assert await count_rows(session_factory, Order) == 0
    assert await coupon_quantity(session_factory, coupon_id) == 2


async def test_exhausted_during_write_rolls_back_order_and_items(menu, make_coupon, session_factory):
    coupon_id = await make_coupon(
        code="LAST", type=CouponTypeEnum.percentage, category_id=menu["pizza"],
        discount=Decimal("20"), quantity=1,
    )
    request = order_request([(menu["pepperoni"], 1)], coupon_code="LAST")

    async with session_factory() as session:
        resolved = await resolve_coupon(session, "LAST")
        catalog = await load_catalog(session, [menu["pepperoni"]])
    quote = price_order(request.items, catalog, resolved)

    # кто-то другой успел израсходовать купон
    async with session_factory() as session:
        coupon = await session.get(Coupon, coupon_id)
        coupon.quantity = 0
        await session.commit()

    async with session_factory() as session:
        with pytest.raises(CouponExhausted):
            await persist_order(session, request, quote, resolved)

    assert await count_rows(session_factory, Order) == 0
    assert await count_rows(session_factory, OrderItem) == 0
    assert await coupon_quantity(session_factory, coupon_id) == 0


async def test_last_use_is_redeemed_once_after_both_checks_pass(menu, make_coupon, session_factory):
    coupon_id = await make_coupon(
        code="ONCE", type=CouponTypeEnum.fixed, category_id=menu["pizza"],
        discount=Decimal("50"), quantity=1,
    )
    request = order_request([(menu["margherita"], 1)], coupon_code="ONCE")

    # оба запроса видят quantity=1 до записи
    async with session_factory() as session:
        first = await resolve_coupon(session, "ONCE")
    async with session_factory() as session:
        second = await resolve_coupon(session, "once")
        catalog = await load_catalog(session, [menu["margherita"]])
    assert first.quantity == second.quantity == 1

    async with session_factory() as session:
        await persist_order(session, request, price_order(request.items, catalog, first), first)
    async with session_factory() as session:
        with pytest.raises(CouponExhausted):
            await persist_order(session, request, price_order(request.items, catalog, second), second)

    assert await count_rows(session_factory, Order) == 1
    assert await coupon_quantity(session_factory, coupon_id) == 0


async def test_concurrent_orders_for_last_coupon_use(menu, make_coupon, session_factory):
    coupon_id = await make_coupon(
        code="RACE", type=CouponTypeEnum.percentage, category_id=menu["pizza"],
        discount=Decimal("10"), quantity=1,
    )

    async def attempt():
        async with session_factory() as session:
            return await place_order(session, order_request([(menu["pepperoni"], 1)], coupon_code="RACE"))

    results = await asyncio.gather(attempt(), attempt(), return_exceptions=True)

    placed = [r for r in results if not isinstance(r, Exception)]
    rejected = [r for r in results if isinstance(r, CouponExhausted)]
    assert len(placed) == 1
    assert len(rejected) == 1
    assert await count_rows(session_factory, Order) == 1
    assert await coupon_quantity(session_factory, coupon_id) == 0


async def test_unknown_menu_item_is_rejected_before_writing(db, menu, session_factory):
    with pytest.raises(InvalidReference):
        await place_order(db, order_request([(menu["cola"], 1), (9999, 1)]))

    assert await count_rows(session_factory, Order) == 0


async def test_foreign_key_violation_becomes_invalid_reference(menu, session_factory):
    request = order_request([(menu["cola"], 1)])
    async with session_factory() as session:
        catalog = await load_catalog(session, [menu["cola"]])
    quote = price_order(request.items, catalog)
    quote.lines[0].menu_item_id = 9999

    async with session_factory() as session:
        with pytest.raises(InvalidReference):
            await persist_order(session, request, quote)

    assert await count_rows(session_factory, Order) == 0
    assert await count_rows(session_factory, OrderItem) == 0


async def test_storage_failure_on_commit_is_transient(db, menu, make_coupon, session_factory, monkeypatch):
    coupon_id = await make_coupon(
        code="FLAKY", type=CouponTypeEnum.percentage, category_id=menu["drinks"],
        discount=Decimal("10"), quantity=3,
    )

    async def broken_commit(self):
        raise OperationalError("COMMIT", {}, Exception("server closed the connection unexpectedly"))

    monkeypatch.setattr(AsyncSession, "commit", broken_commit)

    with pytest.raises(TransientStorageError):
        await place_order(db, order_request([(menu["cola"], 2)], coupon_code="FLAKY"))

    assert await count_rows(session_factory, Order) == 0
    assert await count_rows(session_factory, OrderItem) == 0
    assert await coupon_quantity(session_factory, coupon_id) == 3


async def test_storage_failure_during_coupon_quote_is_transient(db, menu, make_coupon, monkeypatch):
    await make_coupon(
        code="FLAKY", type=CouponTypeEnum.percentage, category_id=menu["drinks"], discount=Decimal("10"),
    )

    async def broken_execute(self, *args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("server closed the connection unexpectedly"))

    monkeypatch.setattr(AsyncSession, "execute", broken_execute)

    with pytest.raises(TransientStorageError):
        await quote_coupon(db, CouponQuoteRequest(
            coupon_code="FLAKY", items=[PlaceOrderItem(menu_item_id=menu["cola"], quantity=1)],
        ))


@pytest.mark.parametrize("overrides", [
    {"customer_name": "   "},
    {"table_number": 0},
    {"table_number": 101},
    {"items": []},
    {"items": [PlaceOrderItem(menu_item_id=1, quantity=0)]},
])
async def test_malformed_requests(db, overrides):
    request = order_request([(1, 1)], **overrides)

    with pytest.raises(ValidationError):
        await place_order(db, request, max_table_number=100)


async def test_legacy_json_items_are_read_back(session_factory):
    async with session_factory() as session:
        order = Order(
            customer_name="Old guest", table_number=2, subtotal=Decimal("300"), discount=Decimal("0"),
            total=Decimal("300"), status=OrderStatusEnum.delivered,
            items_json=json.dumps([{"id": 3, "name": "Cola", "price": 50, "qty": 2},
                                   {"id": 4, "name": "Lemonade", "price": 100, "qty": 2}]),
        )
        session.add(order)
        await session.commit()
        order_id = order.id

    async with session_factory() as session:
        read = OrderRead.from_orm_with_name(await get_order_by_id(session, order_id))

    assert read.count_items == 4
    assert [i.menu_item_name for i in read.items] == ["Cola", "Lemonade"]
    assert read.items[1].price_at_order == Decimal("100")
