from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from delicute.crud.coupon import create_coupon, delete_coupon, get_coupon_by_id, get_coupons, update_coupon
from delicute.db.deps import get_async_session
from delicute.schemas.coupon import CouponCreate, CouponRead


router = APIRouter(prefix="/api/admin/coupons", tags=["coupons"])


@router.get("/", response_model=List[CouponRead])
async def list_coupons(db: AsyncSession = Depends(get_async_session)):
    coupons = await get_coupons(db)
    return [CouponRead.from_orm_with_category(c) for c in coupons]


@router.get("/{coupon_id}", response_model=CouponRead)
async def get_coupon(coupon_id: int, db: AsyncSession = Depends(get_async_session)):
    coupon = await get_coupon_by_id(db, coupon_id)
    if not coupon:
        raise HTTPException(status_code=404, detail="Coupon not found")
    return CouponRead.from_orm_with_category(coupon)


@router.post("/", response_model=CouponRead, status_code=201)
async def create_coupon_endpoint(coupon_in: CouponCreate, db: AsyncSession = Depends(get_async_session)):
    """
    Код купона сохраняется в верхнем регистре.
    """
    coupon = await create_coupon(db, coupon_in)
    return CouponRead.from_orm_with_category(coupon)


@router.put("/{coupon_id}", response_model=CouponRead)
async def update_coupon_endpoint(
    coupon_id: int,
    coupon_in: CouponCreate,
    db: AsyncSession = Depends(get_async_session),
):
    coupon = await update_coupon(db, coupon_id, coupon_in)
    if not coupon:
        raise HTTPException(status_code=404, detail="Coupon not found")
    return CouponRead.from_orm_with_category(coupon)


@router.delete("/{coupon_id}", status_code=204)
async def remove_coupon(coupon_id: int, db: AsyncSession = Depends(get_async_session)):
    deleted = await delete_coupon(db, coupon_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Coupon not found")
