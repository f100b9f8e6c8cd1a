from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from delicute.crud.promotion import (
    create_promotion,
    delete_promotion,
    get_promotion_by_id,
    get_promotions,
    update_promotion,
)
from delicute.db.deps import get_async_session
from delicute.schemas.promotion import PromotionCreate, PromotionRead, PromotionUpdate


router = APIRouter(prefix="/api/admin/promotions", tags=["promotions"])


@router.get("/", response_model=List[PromotionRead])
async def list_promotions(db: AsyncSession = Depends(get_async_session)):
    return await get_promotions(db)


@router.get("/{promotion_id}", response_model=PromotionRead)
async def get_promotion(promotion_id: int, db: AsyncSession = Depends(get_async_session)):
    promotion = await get_promotion_by_id(db, promotion_id)
    if not promotion:
        raise HTTPException(status_code=404, detail="Promotion not found")
    return promotion


@router.post("/", response_model=PromotionRead, status_code=201)
async def create_promotion_endpoint(promotion_in: PromotionCreate, db: AsyncSession = Depends(get_async_session)):
    return await create_promotion(db, promotion_in)


@router.patch("/{promotion_id}", response_model=PromotionRead)
async def patch_promotion_endpoint(
    promotion_id: int,
    promotion_in: PromotionUpdate,
    db: AsyncSession = Depends(get_async_session),
):
    """
    Частичное обновление акции. Конец акции должен быть позже начала.
    """
    promotion = await update_promotion(db, promotion_id, promotion_in)
    if not promotion:
        raise HTTPException(status_code=404, detail="Promotion not found")
    return promotion


@router.delete("/{promotion_id}", status_code=204)
async def remove_promotion(promotion_id: int, db: AsyncSession = Depends(get_async_session)):
    deleted = await delete_promotion(db, promotion_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Promotion not found")
