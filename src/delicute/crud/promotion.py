from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from delicute.errors import ValidationError
from delicute.models import Promotion
from delicute.schemas.promotion import PromotionCreate, PromotionUpdate


async def get_promotions(db: AsyncSession) -> List[Promotion]:
    result = await db.execute(select(Promotion).order_by(Promotion.created_at.desc(), Promotion.id.desc()))
    return result.scalars().all()


async def get_promotion_by_id(db: AsyncSession, promotion_id: int) -> Optional[Promotion]:
    return await db.get(Promotion, promotion_id)


async def create_promotion(db: AsyncSession, promotion_in: PromotionCreate) -> Promotion:
    promotion = Promotion(**promotion_in.model_dump())
    db.add(promotion)
    await db.commit()
    await db.refresh(promotion)
    return promotion


async def update_promotion(db: AsyncSession, promotion_id: int, promotion_in: PromotionUpdate) -> Optional[Promotion]:
    """
    Частичное обновление; даты проверяются вместе с уже сохранёнными.
    """
    promotion = await db.get(Promotion, promotion_id)
    if not promotion:
        return None

    update_data = promotion_in.model_dump(exclude_unset=True)
    if not update_data:
        raise ValidationError("No fields to update")

    start_date = update_data.get("start_date", promotion.start_date)
    end_date = update_data.get("end_date", promotion.end_date)
    if start_date is None or end_date is None:
        raise ValidationError("Promotion dates cannot be empty")
    if _naive(end_date) <= _naive(start_date):
        raise ValidationError("End date must be after start date")

    for key, value in update_data.items():
        setattr(promotion, key, value)

    await db.commit()
    await db.refresh(promotion)
    return promotion


async def delete_promotion(db: AsyncSession, promotion_id: int) -> bool:
    promotion = await db.get(Promotion, promotion_id)
    if not promotion:
        return False
    await db.delete(promotion)
    await db.commit()
    return True


def _naive(value):
    # сравниваем сохранённые и новые даты в одной системе отсчёта
    if value.tzinfo is not None:
        return value.replace(tzinfo=None) - value.utcoffset()
    return value
