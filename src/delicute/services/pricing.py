"""
Расчёт стоимости заказа и скидки по купону.

Чистые функции: на вход позиции корзины, снимок меню (id -> CatalogEntry)
и найденный купон; база не используется. Цены берутся только из меню,
цена клиента игнорируется.
"""
import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Mapping, Optional, Sequence

from pydantic import BaseModel

from delicute.errors import (
    CategoryMismatch,
    InsufficientCartAmount,
    InsufficientQuantity,
    InvalidReference,
    ValidationError,
)
from delicute.schemas.coupon import (
    BogoRule,
    BuyXRule,
    DateRangeRule,
    FixedRule,
    MinCartAmountRule,
    PercentageRule,
    ResolvedCoupon,
)
from delicute.schemas.menu import CatalogEntry
from delicute.schemas.order import PlaceOrderItem

log = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


class PricedLine(BaseModel):
    menu_item_id: int
    quantity: int
    price_at_order: Decimal
    line_total: Decimal
    category_id: int


class PriceQuote(BaseModel):
    lines: List[PricedLine]
    subtotal: Decimal
    eligible_subtotal: Decimal = ZERO
    eligible_quantity: int = 0
    discount: Decimal = ZERO
    total: Decimal


def money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def price_lines(items: Sequence[PlaceOrderItem], catalog: Mapping[int, CatalogEntry]) -> List[PricedLine]:
    lines = []
    for item in items:
        entry = catalog.get(item.menu_item_id)
        if entry is None:
            raise InvalidReference(f"Menu item with id={item.menu_item_id} not found")
        if not entry.is_available:
            raise ValidationError(f"{entry.name} is not available right now")
        if item.price is not None and money(item.price) != money(entry.price):
            log.warning(
                "Client price %s for menu item %s differs from menu price %s, using menu price",
                item.price, entry.id, entry.price,
            )
        lines.append(
            PricedLine(
                menu_item_id=entry.id,
                quantity=item.quantity,
                price_at_order=money(entry.price),
                line_total=money(entry.price * item.quantity),
                category_id=entry.category_id,
            )
        )
    return lines


def eligible_lines(rule, lines: List[PricedLine]) -> List[PricedLine]:
    # min_cart_amount действует на всю корзину, остальные типы - на свою категорию
    if isinstance(rule, MinCartAmountRule):
        return list(lines)
    return [line for line in lines if line.category_id == rule.category_id]


def _percent_of(amount: Decimal, percent: Decimal) -> Decimal:
    return amount * percent / HUNDRED


def compute_discount(rule, subtotal: Decimal, eligible: List[PricedLine]) -> Decimal:
    """
    Скидка по правилу купона, до округления и ограничения сверху.
    Если условие купона не выполнено - исключение с описанием нехватки.
    """
    eligible_subtotal = sum((line.line_total for line in eligible), ZERO)
    eligible_quantity = sum(line.quantity for line in eligible)

    if isinstance(rule, MinCartAmountRule):
        if subtotal < rule.min_cart_amount:
            raise InsufficientCartAmount(
                f"Cart total must be at least {money(rule.min_cart_amount)} to use this coupon"
            )
        return _percent_of(eligible_subtotal, rule.discount)

    if eligible_subtotal <= 0:
        raise CategoryMismatch(f"Coupon applies only to items from {rule.category_name}")

    if isinstance(rule, BuyXRule):
        if eligible_quantity < rule.buy_x:
            raise InsufficientQuantity(
                f"Coupon requires at least {rule.buy_x} items from {rule.category_name}"
            )
        return _percent_of(eligible_subtotal, rule.discount)

    if isinstance(rule, (PercentageRule, DateRangeRule)):
        return _percent_of(eligible_subtotal, rule.discount)

    if isinstance(rule, FixedRule):
        return min(rule.discount, eligible_subtotal)

    if isinstance(rule, BogoRule):
        # самая дешёвая позиция категории бесплатно за каждые buy_x штук
        groups = eligible_quantity // rule.buy_x
        if groups == 0:
            raise InsufficientQuantity(
                f"Coupon requires at least {rule.buy_x} items from {rule.category_name}"
            )
        cheapest = min(line.price_at_order for line in eligible)
        return cheapest * groups

    raise TypeError(f"Unsupported coupon rule: {rule!r}")


def price_order(
    items: Sequence[PlaceOrderItem],
    catalog: Mapping[int, CatalogEntry],
    coupon: Optional[ResolvedCoupon] = None,
) -> PriceQuote:
    lines = price_lines(items, catalog)
    subtotal = money(sum((line.line_total for line in lines), ZERO))

    if coupon is None:
        return PriceQuote(lines=lines, subtotal=subtotal, total=subtotal)

    eligible = eligible_lines(coupon.rule, lines)
    eligible_subtotal = money(sum((line.line_total for line in eligible), ZERO))
    raw_discount = compute_discount(coupon.rule, subtotal, eligible)
    discount = money(min(raw_discount, eligible_subtotal))
    total = max(subtotal - discount, ZERO)

    return PriceQuote(
        lines=lines,
        subtotal=subtotal,
        eligible_subtotal=eligible_subtotal,
        eligible_quantity=sum(line.quantity for line in eligible),
        discount=discount,
        total=total,
    )


def catalog_by_id(entries: Sequence[CatalogEntry]) -> Dict[int, CatalogEntry]:
    return {entry.id: entry for entry in entries}
