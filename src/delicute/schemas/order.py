import json
from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime
from decimal import Decimal, InvalidOperation

from delicute.models.order import OrderStatusEnum


class PlaceOrderItem(BaseModel):
    menu_item_id: int
    quantity: int
    price: Optional[Decimal] = None  # цену клиента не используем, считаем по меню


class PlaceOrderRequest(BaseModel):
    customer_name: str
    table_number: int
    items: List[PlaceOrderItem]
    coupon_code: Optional[str] = None
    special_instructions: Optional[str] = None


class PlaceOrderResult(BaseModel):
    order_id: int
    subtotal: Decimal
    discount: Decimal
    total: Decimal


class CouponQuoteRequest(BaseModel):
    coupon_code: str
    items: List[PlaceOrderItem]


class CouponQuoteRead(BaseModel):
    code: str
    subtotal: Decimal
    eligible_subtotal: Decimal
    discount: Decimal
    total: Decimal


class OrderItemRead(BaseModel):
    id: Optional[int] = None
    menu_item_id: Optional[int] = None
    quantity: int
    price_at_order: Decimal
    menu_item_name: str | None = None

    @classmethod
    def from_orm_with_name(cls, item):
        return cls(
            id=item.id,
            menu_item_id=item.menu_item_id,
            quantity=item.quantity,
            price_at_order=item.price_at_order,
            menu_item_name=item.menu_item.name if item.menu_item else None
        )

    @classmethod
    def from_legacy_entry(cls, entry: dict):
        """
        Позиция из старого JSON-поля orders.items: {id|_id, name, price, qty|quantity}.
        """
        try:
            price = Decimal(str(entry.get("price", 0)))
        except InvalidOperation:
            price = Decimal("0")
        menu_item_id = entry.get("id", entry.get("_id"))
        return cls(
            menu_item_id=int(menu_item_id) if menu_item_id is not None else None,
            quantity=int(entry.get("qty", entry.get("quantity", 1))),
            price_at_order=price,
            menu_item_name=entry.get("name"),
        )

    class Config:
        from_attributes = True


def legacy_items(raw: Optional[str]) -> List[OrderItemRead]:
    if not raw:
        return []
    try:
        entries = json.loads(raw)
    except ValueError:
        return []
    if not isinstance(entries, list):
        return []
    return [OrderItemRead.from_legacy_entry(e) for e in entries if isinstance(e, dict)]


class OrderRead(BaseModel):
    id: int
    customer_name: str
    table_number: int
    status: OrderStatusEnum
    coupon_code: Optional[str] = None
    subtotal: Decimal
    discount: Decimal
    total: Decimal
    special_instructions: Optional[str] = None
    created_at: datetime
    items: List[OrderItemRead] = []
    count_items: int

    @classmethod
    def from_orm_with_name(cls, order):
        if order.items:
            items = [OrderItemRead.from_orm_with_name(i) for i in order.items]
        else:
            # заказы до нормализации: позиции только в JSON
            items = legacy_items(order.items_json)
        count = sum(item.quantity for item in items)

        return cls(
            id=order.id,
            customer_name=order.customer_name,
            table_number=order.table_number,
            status=order.status,
            coupon_code=order.coupon_code,
            subtotal=order.subtotal,
            discount=order.discount,
            total=order.total,
            special_instructions=order.special_instructions,
            created_at=order.created_at,
            items=items,
            count_items=count,
        )

    class Config:
        from_attributes = True


class OrderStatusUpdate(BaseModel):
    status: OrderStatusEnum

    class Config:
        extra = "forbid"
