import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from delicute.errors import CouponExhausted, CouponExpired, CouponNotFound, ValidationError
from delicute.models import Coupon, CouponTypeEnum
from delicute.crud.catalog import get_category_by_name
from delicute.schemas.coupon import ResolvedCoupon, CouponCreate

log = logging.getLogger(__name__)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite отдаёт naive datetime, Postgres - с таймзоной
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


async def resolve_coupon(db: AsyncSession, code, now: Optional[datetime] = None) -> ResolvedCoupon:
    """
    Ищет купон по коду без учёта регистра и проверяет, что он активен,
    действует на момент now и ещё не исчерпан.
    Количество здесь только проверяется; списание - в persist_order.
    """
    if not isinstance(code, str) or not code.strip():
        raise ValidationError("Invalid coupon code")

    now = _as_utc(now) or datetime.now(timezone.utc)
    stmt = (
        select(Coupon)
        .where(func.upper(Coupon.code) == code.strip().upper())
        .options(selectinload(Coupon.category))
    )
    result = await db.execute(stmt)
    coupon = result.scalars().first()

    if coupon is None:
        raise CouponNotFound("Invalid coupon code")

    valid_from = _as_utc(coupon.valid_from)
    valid_to = _as_utc(coupon.valid_to)
    if not coupon.is_active or (valid_from and valid_from > now) or (valid_to and valid_to < now):
        raise CouponExpired("Invalid or expired coupon")

    if coupon.quantity is not None and coupon.quantity <= 0:
        raise CouponExhausted(f"Coupon {coupon.code} has been fully redeemed")

    log.debug("Resolved coupon %s (type=%s, quantity=%s)", coupon.code, coupon.type, coupon.quantity)
    return ResolvedCoupon.from_orm_coupon(coupon)


async def get_available_coupons(db: AsyncSession, now: Optional[datetime] = None) -> List[Coupon]:
    """
    Купоны, которые покупатель может применить прямо сейчас.
    """
    now = now or datetime.now(timezone.utc)
    stmt = (
        select(Coupon)
        .where(Coupon.is_active.is_(True))
        .where(or_(Coupon.valid_from.is_(None), Coupon.valid_from <= now))
        .where(or_(Coupon.valid_to.is_(None), Coupon.valid_to >= now))
        .where(or_(Coupon.quantity.is_(None), Coupon.quantity > 0))
        .options(selectinload(Coupon.category))
        .order_by(Coupon.id)
    )
    result = await db.execute(stmt)
    return result.scalars().all()


async def get_coupons(db: AsyncSession) -> List[Coupon]:
    stmt = select(Coupon).options(selectinload(Coupon.category)).order_by(Coupon.id.desc())
    result = await db.execute(stmt)
    return result.scalars().all()


async def get_coupon_by_id(db: AsyncSession, coupon_id: int) -> Optional[Coupon]:
    stmt = (
        select(Coupon)
        .where(Coupon.id == coupon_id)
        .options(selectinload(Coupon.category))
        .execution_options(populate_existing=True)
    )
    result = await db.execute(stmt)
    return result.scalars().first()


async def _coupon_fields(db: AsyncSession, coupon_in: CouponCreate) -> dict:
    category_id = None
    if coupon_in.category:
        category = await get_category_by_name(db, coupon_in.category)
        if not category:
            raise ValidationError(f"Invalid category: {coupon_in.category}")
        category_id = category.id

    data = coupon_in.model_dump(exclude={"category"})
    data["category_id"] = category_id
    # поля, не относящиеся к типу купона, не храним
    if coupon_in.type not in (CouponTypeEnum.buy_x, CouponTypeEnum.bogo):
        data["buy_x"] = None
    if coupon_in.type != CouponTypeEnum.min_cart_amount:
        data["min_cart_amount"] = None
    return data


async def _ensure_code_free(db: AsyncSession, code: str, coupon_id: Optional[int] = None) -> None:
    stmt = select(Coupon.id).where(func.upper(Coupon.code) == code.upper())
    if coupon_id is not None:
        stmt = stmt.where(Coupon.id != coupon_id)
    result = await db.execute(stmt)
    if result.first():
        raise ValidationError(f"Coupon code {code} already exists")


async def create_coupon(db: AsyncSession, coupon_in: CouponCreate) -> Coupon:
    await _ensure_code_free(db, coupon_in.code)
    coupon = Coupon(**await _coupon_fields(db, coupon_in))
    db.add(coupon)
    await db.commit()
    log.info("Coupon %s created", coupon.code)
    return await get_coupon_by_id(db, coupon.id)


async def update_coupon(db: AsyncSession, coupon_id: int, coupon_in: CouponCreate) -> Optional[Coupon]:
    """
    Полная замена купона (как PUT в админке).
    """
    coupon = await db.get(Coupon, coupon_id)
    if not coupon:
        return None

    await _ensure_code_free(db, coupon_in.code, coupon_id)
    data = await _coupon_fields(db, coupon_in)
    if data.get("image") is None:
        data.pop("image")  # без новой картинки оставляем старую

    for key, value in data.items():
        setattr(coupon, key, value)

    await db.commit()
    return await get_coupon_by_id(db, coupon_id)


async def delete_coupon(db: AsyncSession, coupon_id: int) -> bool:
    coupon = await db.get(Coupon, coupon_id)
    if not coupon:
        return False
    await db.delete(coupon)
    await db.commit()
    return True
