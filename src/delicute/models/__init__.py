from .category import Category
from .menu_item import MenuItem
from .coupon import Coupon, CouponTypeEnum
from .order import Order, OrderStatusEnum
from .order_item import OrderItem
from .promotion import Promotion

__all__ = [
    "Category",
    "MenuItem",
    "Coupon",
    "CouponTypeEnum",
    "Order",
    "OrderStatusEnum",
    "OrderItem",
    "Promotion",
]
