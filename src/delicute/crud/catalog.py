from typing import Dict, Iterable, List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from delicute.errors import InvalidReference, ValidationError
from delicute.models import Category, Coupon, MenuItem
from delicute.schemas.menu import CatalogEntry, CategoryCreate, MenuItemCreate, MenuItemUpdate
from delicute.services.pricing import catalog_by_id


async def load_catalog(db: AsyncSession, menu_item_ids: Iterable[int]) -> Dict[int, CatalogEntry]:
    """
    Снимок цен и категорий для позиций корзины.
    Если какой-то id не найден - InvalidReference.
    """
    ids = set(menu_item_ids)
    if not ids:
        return {}

    stmt = (
        select(MenuItem)
        .where(MenuItem.id.in_(ids))
        .options(selectinload(MenuItem.category))
    )
    result = await db.execute(stmt)
    entries = [
        CatalogEntry(
            id=item.id,
            name=item.name,
            price=item.price,
            category_id=item.category_id,
            category_name=item.category.name if item.category else "",
            is_available=item.is_available,
        )
        for item in result.scalars().all()
    ]

    catalog = catalog_by_id(entries)
    missing = sorted(ids - catalog.keys())
    if missing:
        raise InvalidReference(f"Menu item with id={missing[0]} not found")
    return catalog


# ---------- категории ----------

async def get_categories(db: AsyncSession) -> List[Category]:
    result = await db.execute(select(Category).order_by(Category.name))
    return result.scalars().all()


async def get_category_by_name(db: AsyncSession, name: str) -> Optional[Category]:
    result = await db.execute(select(Category).where(Category.name == name.strip()))
    return result.scalars().first()


async def create_category(db: AsyncSession, category_in: CategoryCreate) -> Category:
    name = category_in.name.strip()
    if not name:
        raise ValidationError("Category name is required")
    if await get_category_by_name(db, name):
        raise ValidationError("Category already exists")

    category = Category(name=name)
    db.add(category)
    await db.commit()
    await db.refresh(category)
    return category


async def rename_category(db: AsyncSession, category_id: int, category_in: CategoryCreate) -> Optional[Category]:
    category = await db.get(Category, category_id)
    if not category:
        return None

    name = category_in.name.strip()
    existing = await get_category_by_name(db, name)
    if existing and existing.id != category.id:
        raise ValidationError("Category already exists")

    category.name = name
    await db.commit()
    await db.refresh(category)
    return category


async def delete_category(db: AsyncSession, category_id: int) -> bool:
    category = await db.get(Category, category_id)
    if not category:
        return False
    in_use = await db.execute(
        select(func.count(MenuItem.id)).where(MenuItem.category_id == category_id)
    )
    coupons = await db.execute(
        select(func.count(Coupon.id)).where(Coupon.category_id == category_id)
    )
    if in_use.scalar_one() or coupons.scalar_one():
        raise ValidationError("Category is still used by menu items or coupons")

    await db.delete(category)
    await db.commit()
    return True


async def _require_category(db: AsyncSession, name: str) -> Category:
    category = await get_category_by_name(db, name)
    if not category:
        raise ValidationError(f"Invalid category: {name}")
    return category


# ---------- позиции меню ----------

async def get_menu_items(db: AsyncSession) -> List[MenuItem]:
    """
    Меню с категориями, отсортированное по категории и названию.
    """
    stmt = (
        select(MenuItem)
        .join(MenuItem.category)
        .options(selectinload(MenuItem.category))
        .order_by(Category.name, MenuItem.name)
    )
    result = await db.execute(stmt)
    return result.scalars().unique().all()


async def get_top_picks(db: AsyncSession) -> List[MenuItem]:
    """
    Блюда, отмеченные в админке как top pick; недоступные не показываем.
    """
    stmt = (
        select(MenuItem)
        .join(MenuItem.category)
        .where(MenuItem.is_top_pick.is_(True), MenuItem.is_available.is_(True))
        .options(selectinload(MenuItem.category))
        .order_by(Category.name, MenuItem.name)
    )
    result = await db.execute(stmt)
    return result.scalars().unique().all()


async def get_menu_item_by_id(db: AsyncSession, menu_item_id: int) -> Optional[MenuItem]:
    stmt = (
        select(MenuItem)
        .where(MenuItem.id == menu_item_id)
        .options(selectinload(MenuItem.category))
        .execution_options(populate_existing=True)
    )
    result = await db.execute(stmt)
    return result.scalars().first()


async def create_menu_item(db: AsyncSession, item_in: MenuItemCreate) -> MenuItem:
    category = await _require_category(db, item_in.category)
    data = item_in.model_dump(exclude={"category"})
    item = MenuItem(category_id=category.id, **data)
    db.add(item)
    await db.commit()
    return await get_menu_item_by_id(db, item.id)


async def update_menu_item(db: AsyncSession, menu_item_id: int, item_in: MenuItemUpdate) -> Optional[MenuItem]:
    item = await db.get(MenuItem, menu_item_id)
    if not item:
        return None

    update_data = item_in.model_dump(exclude_unset=True)

    if "category" in update_data:
        category = await _require_category(db, update_data.pop("category"))
        item.category_id = category.id

    for key, value in update_data.items():
        setattr(item, key, value)

    await db.commit()
    # перечитываем вместе с category, чтобы не было lazy load
    return await get_menu_item_by_id(db, menu_item_id)


async def delete_menu_item(db: AsyncSession, menu_item_id: int) -> bool:
    item = await db.get(MenuItem, menu_item_id)
    if not item:
        return False
    await db.delete(item)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ValidationError("Menu item is referenced by existing orders")
    return True
