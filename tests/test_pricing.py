from decimal import Decimal
from types import SimpleNamespace

import pytest

from delicute.errors import CategoryMismatch, InsufficientCartAmount, InsufficientQuantity, InvalidReference, ValidationError
from delicute.schemas.coupon import (
    BogoRule,
    BuyXRule,
    FixedRule,
    MinCartAmountRule,
    PercentageRule,
    ResolvedCoupon,
)
from delicute.schemas.menu import CatalogEntry
from delicute.schemas.order import PlaceOrderItem
from delicute.services.pricing import catalog_by_id, price_order

PIZZA, DRINKS = 1, 2

CATALOG = catalog_by_id([
    CatalogEntry(id=1, name="Margherita", price=Decimal("150"), category_id=PIZZA, category_name="Pizza"),
    CatalogEntry(id=2, name="Pepperoni", price=Decimal("200"), category_id=PIZZA, category_name="Pizza"),
    CatalogEntry(id=3, name="Cola", price=Decimal("50"), category_id=DRINKS, category_name="Drinks"),
    CatalogEntry(id=4, name="Lemonade", price=Decimal("100"), category_id=DRINKS, category_name="Drinks"),
    CatalogEntry(id=5, name="Seasonal", price=Decimal("90"), category_id=DRINKS, category_name="Drinks",
                 is_available=False),
])


def cart(*pairs):
    return [PlaceOrderItem(menu_item_id=item_id, quantity=qty) for item_id, qty in pairs]


def coupon(rule, quantity=None):
    return ResolvedCoupon(id=1, code="TEST", quantity=quantity, rule=rule)


def pizza_scope():
    return {"category_id": PIZZA, "category_name": "Pizza"}


def test_no_coupon_uses_catalog_prices():
    quote = price_order(cart((1, 2)), CATALOG)

    assert quote.subtotal == Decimal("300.00")
    assert quote.discount == Decimal("0")
    assert quote.total == Decimal("300.00")
    assert quote.lines[0].price_at_order == Decimal("150.00")


def test_scenario_a_catalog_price_100_times_two():
    catalog = catalog_by_id([
        CatalogEntry(id=1, name="Thali", price=Decimal("100"), category_id=PIZZA, category_name="Pizza"),
    ])
    quote = price_order(cart((1, 2)), catalog)

    assert (quote.subtotal, quote.discount, quote.total) == (Decimal("200"), Decimal("0"), Decimal("200"))


def test_client_price_is_ignored():
    items = [PlaceOrderItem(menu_item_id=1, quantity=2, price=Decimal("1.00"))]

    quote = price_order(items, CATALOG)

    assert quote.subtotal == Decimal("300.00")
    assert quote.lines[0].price_at_order == Decimal("150.00")


def test_unknown_menu_item():
    with pytest.raises(InvalidReference):
        price_order(cart((99, 1)), CATALOG)


def test_unavailable_menu_item():
    with pytest.raises(ValidationError):
        price_order(cart((5, 1)), CATALOG)


def test_scenario_b_buy_x_threshold_met():
    # 3 пиццы по 150, купон buy_x=2 на 10%
    catalog = catalog_by_id([
        CatalogEntry(id=1, name="Margherita", price=Decimal("150"), category_id=PIZZA, category_name="Pizza"),
    ])
    rule = BuyXRule(buy_x=2, discount=Decimal("10"), **pizza_scope())

    quote = price_order(cart((1, 3)), catalog, coupon(rule))

    assert quote.eligible_quantity == 3
    assert quote.discount == Decimal("45.00")
    assert quote.total == Decimal("405.00")


def test_buy_x_threshold_not_met_names_shortfall():
    rule = BuyXRule(buy_x=3, discount=Decimal("10"), **pizza_scope())

    with pytest.raises(InsufficientQuantity) as exc:
        price_order(cart((1, 1), (2, 1), (3, 5)), CATALOG, coupon(rule))

    assert "at least 3 items from Pizza" in str(exc.value)


def test_buy_x_discount_only_on_category_items():
    rule = BuyXRule(buy_x=2, discount=Decimal("10"), **pizza_scope())

    quote = price_order(cart((1, 1), (2, 1), (4, 2)), CATALOG, coupon(rule))

    assert quote.subtotal == Decimal("550.00")
    assert quote.eligible_subtotal == Decimal("350.00")
    assert quote.discount == Decimal("35.00")
    assert quote.total == Decimal("515.00")


def test_percentage_requires_category_items():
    rule = PercentageRule(discount=Decimal("20"), **pizza_scope())

    with pytest.raises(CategoryMismatch):
        price_order(cart((3, 2)), CATALOG, coupon(rule))


def test_percentage_rounds_to_cents():
    rule = PercentageRule(discount=Decimal("12.5"), category_id=DRINKS, category_name="Drinks")

    quote = price_order(cart((3, 1), (4, 1)), CATALOG, coupon(rule))

    # 150 * 12.5% = 18.75
    assert quote.discount == Decimal("18.75")
    assert quote.total == Decimal("131.25")


def test_scenario_c_min_cart_amount_not_reached():
    catalog = catalog_by_id([
        CatalogEntry(id=1, name="Tea", price=Decimal("40"), category_id=DRINKS, category_name="Drinks"),
    ])
    rule = MinCartAmountRule(min_cart_amount=Decimal("100"), discount=Decimal("10"))

    with pytest.raises(InsufficientCartAmount):
        price_order(cart((1, 2)), catalog, coupon(rule))


def test_min_cart_amount_applies_to_whole_cart():
    rule = MinCartAmountRule(min_cart_amount=Decimal("100"), discount=Decimal("10"))

    quote = price_order(cart((1, 1), (3, 1)), CATALOG, coupon(rule))

    assert quote.eligible_subtotal == quote.subtotal == Decimal("200.00")
    assert quote.discount == Decimal("20.00")


def test_scenario_d_fixed_discount_capped_at_eligible_subtotal():
    catalog = catalog_by_id([
        CatalogEntry(id=1, name="Family pizza", price=Decimal("250"), category_id=PIZZA, category_name="Pizza"),
    ])
    rule = FixedRule(discount=Decimal("600"), **pizza_scope())

    quote = price_order(cart((1, 2)), catalog, coupon(rule))

    assert quote.subtotal == Decimal("500.00")
    assert quote.discount == Decimal("500.00")
    assert quote.total == Decimal("0.00")


def test_fixed_discount_never_touches_other_categories():
    rule = FixedRule(discount=Decimal("600"), **pizza_scope())

    quote = price_order(cart((1, 1), (4, 1)), CATALOG, coupon(rule))

    assert quote.discount == Decimal("150.00")
    assert quote.total == Decimal("100.00")


def test_bogo_cheapest_item_free_per_group():
    rule = BogoRule(buy_x=2, **pizza_scope())

    # 5 пицц -> 2 полные группы, бесплатна самая дешёвая (150) дважды
    quote = price_order(cart((1, 2), (2, 3)), CATALOG, coupon(rule))

    assert quote.subtotal == Decimal("900.00")
    assert quote.discount == Decimal("300.00")
    assert quote.total == Decimal("600.00")


def test_bogo_needs_a_full_group():
    rule = BogoRule(buy_x=2, **pizza_scope())

    with pytest.raises(InsufficientQuantity):
        price_order(cart((1, 1), (3, 3)), CATALOG, coupon(rule))


@pytest.mark.parametrize("rule", [
    BuyXRule(buy_x=1, discount=Decimal("100"), category_id=PIZZA, category_name="Pizza"),
    PercentageRule(discount=Decimal("100"), category_id=PIZZA, category_name="Pizza"),
    FixedRule(discount=Decimal("10000"), category_id=PIZZA, category_name="Pizza"),
    BogoRule(buy_x=1, category_id=PIZZA, category_name="Pizza"),
])
def test_total_never_negative(rule):
    quote = price_order(cart((1, 1), (2, 2)), CATALOG, coupon(rule))

    assert quote.total == max(quote.subtotal - quote.discount, Decimal("0"))
    assert quote.total >= 0
    assert quote.discount <= quote.eligible_subtotal


def test_pricing_is_deterministic():
    rule = BuyXRule(buy_x=2, discount=Decimal("15"), **pizza_scope())
    items = cart((1, 2), (3, 1))

    assert price_order(items, CATALOG, coupon(rule)) == price_order(items, CATALOG, coupon(rule))


def test_rule_built_from_coupon_row():
    row = SimpleNamespace(
        id=7, code="PIZZA2", type="buy_x", discount=Decimal("10"), buy_x=2, min_cart_amount=None,
        quantity=5, category=SimpleNamespace(id=PIZZA, name="Pizza"),
    )

    resolved = ResolvedCoupon.from_orm_coupon(row)

    assert resolved.is_limited
    assert isinstance(resolved.rule, BuyXRule)
    assert resolved.rule.buy_x == 2
    assert resolved.rule.category_name == "Pizza"


def test_bogo_rule_defaults_group_size():
    row = SimpleNamespace(
        id=8, code="BOGO", type="bogo", discount=Decimal("0"), buy_x=None, min_cart_amount=None,
        quantity=None, category=SimpleNamespace(id=PIZZA, name="Pizza"),
    )

    resolved = ResolvedCoupon.from_orm_coupon(row)

    assert not resolved.is_limited
    assert resolved.rule.buy_x == 2
