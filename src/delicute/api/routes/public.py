from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from delicute.crud.catalog import get_categories, get_menu_items, get_top_picks
from delicute.crud.coupon import get_available_coupons
from delicute.crud.order import place_order, quote_coupon
from delicute.db.deps import get_async_session
from delicute.schemas.coupon import CouponRead
from delicute.schemas.menu import CategoryRead, MenuItemRead
from delicute.schemas.order import CouponQuoteRead, CouponQuoteRequest, PlaceOrderRequest, PlaceOrderResult


router = APIRouter(prefix="/api", tags=["customer"])


@router.get("/menu", response_model=List[MenuItemRead])
async def list_menu(db: AsyncSession = Depends(get_async_session)):
    """
    Меню для гостей, сгруппированное по категориям.
    """
    items = await get_menu_items(db)
    return [MenuItemRead.from_orm_with_category(i) for i in items]


@router.get("/top-picks", response_model=List[MenuItemRead])
async def list_top_picks(db: AsyncSession = Depends(get_async_session)):
    items = await get_top_picks(db)
    return [MenuItemRead.from_orm_with_category(i) for i in items]


@router.get("/categories", response_model=List[CategoryRead])
async def list_categories(db: AsyncSession = Depends(get_async_session)):
    return await get_categories(db)


@router.get("/coupons", response_model=List[CouponRead])
async def list_available_coupons(db: AsyncSession = Depends(get_async_session)):
    """
    Купоны, действующие прямо сейчас.
    """
    coupons = await get_available_coupons(db)
    return [CouponRead.from_orm_with_category(c) for c in coupons]


@router.post("/coupons/validate", response_model=CouponQuoteRead)
async def validate_coupon_endpoint(quote_in: CouponQuoteRequest, db: AsyncSession = Depends(get_async_session)):
    """
    Считает скидку по купону для корзины, заказ не создаётся.
    """
    return await quote_coupon(db, quote_in)


@router.post("/orders", response_model=PlaceOrderResult, status_code=201)
async def place_order_endpoint(order_in: PlaceOrderRequest, db: AsyncSession = Depends(get_async_session)):
    """
    Оформляет заказ. Цены и скидка считаются на сервере.
    """
    return await place_order(db, order_in)
