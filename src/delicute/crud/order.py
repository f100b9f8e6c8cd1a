import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from delicute.config import settings
from delicute.crud.catalog import load_catalog
from delicute.crud.coupon import resolve_coupon
from delicute.errors import (
    CouponExhausted,
    InvalidReference,
    OrderingError,
    TransientStorageError,
    ValidationError,
)
from delicute.models import Coupon, Order, OrderItem, OrderStatusEnum
from delicute.schemas.coupon import ResolvedCoupon
from delicute.schemas.order import (
    CouponQuoteRead,
    CouponQuoteRequest,
    PlaceOrderItem,
    PlaceOrderRequest,
    PlaceOrderResult,
)
from delicute.services.pricing import PriceQuote, price_order

log = logging.getLogger(__name__)


def validate_items(items: List[PlaceOrderItem]) -> None:
    if not items:
        raise ValidationError("Items array is required and must not be empty")
    for item in items:
        if item.quantity < 1:
            raise ValidationError(f"Quantity for menu item {item.menu_item_id} must be at least 1")


def validate_order_request(order_in: PlaceOrderRequest, max_table_number: int) -> None:
    """
    Проверка формы заказа до любых обращений к базе.
    """
    if not order_in.customer_name or not order_in.customer_name.strip():
        raise ValidationError("Customer name is required and must be a non-empty string")
    if not 1 <= order_in.table_number <= max_table_number:
        raise ValidationError(f"Table number must be an integer between 1 and {max_table_number}")
    validate_items(order_in.items)


async def persist_order(
    db: AsyncSession,
    order_in: PlaceOrderRequest,
    quote: PriceQuote,
    coupon: Optional[ResolvedCoupon] = None,
) -> Order:
    """
    Одна транзакция: заказ, его позиции и списание купона.
    Купон с ограниченным количеством списывается условным UPDATE
    (quantity > 0); если ни одна строка не обновилась - купон уже
    израсходован и весь заказ откатывается.
    """
    instructions = (order_in.special_instructions or "").strip() or None
    try:
        order = Order(
            customer_name=order_in.customer_name.strip(),
            table_number=order_in.table_number,
            coupon_code=coupon.code if coupon else None,
            subtotal=quote.subtotal,
            discount=quote.discount,
            total=quote.total,
            special_instructions=instructions,
            status=OrderStatusEnum.pending,
        )
        db.add(order)
        await db.flush()

        db.add_all([
            OrderItem(
                order_id=order.id,
                menu_item_id=line.menu_item_id,
                quantity=line.quantity,
                price_at_order=line.price_at_order,
                line_total=line.line_total,
            )
            for line in quote.lines
        ])
        await db.flush()

        if coupon is not None and coupon.is_limited:
            result = await db.execute(
                update(Coupon)
                .where(Coupon.id == coupon.id, Coupon.quantity > 0)
                .values(quantity=Coupon.quantity - 1)
            )
            if result.rowcount != 1:
                raise CouponExhausted(f"Coupon {coupon.code} has been fully redeemed")

        await db.commit()
    except OrderingError:
        await db.rollback()
        raise
    except IntegrityError as exc:
        await db.rollback()
        raise InvalidReference("Order references a menu item that does not exist") from exc
    except DBAPIError as exc:
        await db.rollback()
        log.error("Order transaction failed: %s", exc)
        raise TransientStorageError("Failed to place order, please retry") from exc

    return order


async def place_order(
    db: AsyncSession,
    order_in: PlaceOrderRequest,
    now: Optional[datetime] = None,
    max_table_number: Optional[int] = None,
) -> PlaceOrderResult:
    """
    Оформление заказа: проверка -> меню -> купон -> расчёт -> запись.
    Чтения выполняются до транзакции записи и в той же сессии.
    """
    validate_order_request(order_in, max_table_number or settings.MAX_TABLE_NUMBER)

    try:
        catalog = await load_catalog(db, [item.menu_item_id for item in order_in.items])
        coupon = None
        if order_in.coupon_code is not None:
            coupon = await resolve_coupon(db, order_in.coupon_code, now)
        quote = price_order(order_in.items, catalog, coupon)
    except OrderingError:
        await db.rollback()
        raise
    except DBAPIError as exc:
        await db.rollback()
        log.error("Order lookup failed: %s", exc)
        raise TransientStorageError("Failed to place order, please retry") from exc

    order = await persist_order(db, order_in, quote, coupon)
    log.info(
        "Order %s placed: table=%s subtotal=%s discount=%s total=%s coupon=%s",
        order.id, order.table_number, quote.subtotal, quote.discount, quote.total,
        coupon.code if coupon else None,
    )
    return PlaceOrderResult(
        order_id=order.id,
        subtotal=quote.subtotal,
        discount=quote.discount,
        total=quote.total,
    )


async def quote_coupon(
    db: AsyncSession,
    quote_in: CouponQuoteRequest,
    now: Optional[datetime] = None,
) -> CouponQuoteRead:
    """
    Проверка купона для корзины без записи заказа.
    """
    validate_items(quote_in.items)
    try:
        catalog = await load_catalog(db, [item.menu_item_id for item in quote_in.items])
        coupon = await resolve_coupon(db, quote_in.coupon_code, now)
    except DBAPIError as exc:
        await db.rollback()
        log.error("Coupon quote lookup failed: %s", exc)
        raise TransientStorageError("Failed to check coupon, please retry") from exc

    quote = price_order(quote_in.items, catalog, coupon)
    return CouponQuoteRead(
        code=coupon.code,
        subtotal=quote.subtotal,
        eligible_subtotal=quote.eligible_subtotal,
        discount=quote.discount,
        total=quote.total,
    )


async def get_orders(
    db: AsyncSession,
    status: Optional[OrderStatusEnum] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
) -> List[Order]:
    """
    Возвращает список заказов с опциональной фильтрацией по статусу и дате.
    Подгружаем items и menu_item.
    Сортируем по created_at (новые первыми).
    """
    stmt = (
        select(Order)
        .options(selectinload(Order.items).selectinload(OrderItem.menu_item))
        .order_by(Order.created_at.desc(), Order.id.desc())
    )

    if status:
        stmt = stmt.where(Order.status == status)
    if date_from:
        stmt = stmt.where(Order.created_at >= date_from)
    if date_to:
        stmt = stmt.where(Order.created_at <= date_to)
    if limit:
        stmt = stmt.limit(limit)
    if offset:
        stmt = stmt.offset(offset)

    result = await db.execute(stmt)
    return result.scalars().unique().all()


async def get_order_by_id(db: AsyncSession, order_id: int) -> Optional[Order]:
    """
    Возвращает заказ по ID с подгруженными items и menu_item.
    Предотвращает MissingGreenlet при сериализации.
    """
    stmt = (
        select(Order)
        .where(Order.id == order_id)
        .options(selectinload(Order.items).selectinload(OrderItem.menu_item))
        .execution_options(populate_existing=True)
    )
    result = await db.execute(stmt)
    return result.scalars().unique().first()


async def update_order_status(db: AsyncSession, order_id: int, status: OrderStatusEnum) -> Optional[Order]:
    """
    Меняет статус заказа (Pending -> Preparing -> Delivered, либо Cancelled).
    """
    order = await db.get(Order, order_id)
    if not order:
        return None

    order.status = status
    await db.commit()
    log.info("Order %s marked as %s", order_id, status.value)

    # Явная загрузка items + menu_item, чтобы не было lazy load
    return await get_order_by_id(db, order_id)


async def cancel_order(db: AsyncSession, order_id: int) -> Optional[Order]:
    return await update_order_status(db, order_id, OrderStatusEnum.cancelled)


async def delete_order(session: AsyncSession, order_id: int) -> bool:
    """
    Удаляет заказ вместе с позициями.
    """
    order = await session.get(Order, order_id)
    if not order:
        return False
    await session.delete(order)
    await session.commit()
    return True
