from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from delicute.crud.catalog import (
    create_category,
    create_menu_item,
    delete_category,
    delete_menu_item,
    get_categories,
    get_menu_item_by_id,
    get_menu_items,
    rename_category,
    update_menu_item,
)
from delicute.db.deps import get_async_session
from delicute.schemas.menu import CategoryCreate, CategoryRead, MenuItemCreate, MenuItemRead, MenuItemUpdate


categories_router = APIRouter(prefix="/api/admin/categories", tags=["categories"])
menu_router = APIRouter(prefix="/api/admin/menu", tags=["menu"])


@categories_router.get("/", response_model=List[CategoryRead])
async def list_categories(db: AsyncSession = Depends(get_async_session)):
    return await get_categories(db)


@categories_router.post("/", response_model=CategoryRead, status_code=201)
async def create_category_endpoint(category_in: CategoryCreate, db: AsyncSession = Depends(get_async_session)):
    return await create_category(db, category_in)


@categories_router.put("/{category_id}", response_model=CategoryRead)
async def rename_category_endpoint(
    category_id: int,
    category_in: CategoryCreate,
    db: AsyncSession = Depends(get_async_session),
):
    category = await rename_category(db, category_id, category_in)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    return category


@categories_router.delete("/{category_id}", status_code=204)
async def remove_category(category_id: int, db: AsyncSession = Depends(get_async_session)):
    """
    Удаляет категорию, если на неё не ссылаются блюда и купоны.
    """
    deleted = await delete_category(db, category_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Category not found")


@menu_router.get("/", response_model=List[MenuItemRead])
async def list_menu_items(db: AsyncSession = Depends(get_async_session)):
    items = await get_menu_items(db)
    return [MenuItemRead.from_orm_with_category(i) for i in items]


@menu_router.get("/{menu_item_id}", response_model=MenuItemRead)
async def get_menu_item(menu_item_id: int, db: AsyncSession = Depends(get_async_session)):
    item = await get_menu_item_by_id(db, menu_item_id)
    if not item:
        raise HTTPException(status_code=404, detail="Menu item not found")
    return MenuItemRead.from_orm_with_category(item)


@menu_router.post("/", response_model=MenuItemRead, status_code=201)
async def create_menu_item_endpoint(item_in: MenuItemCreate, db: AsyncSession = Depends(get_async_session)):
    item = await create_menu_item(db, item_in)
    return MenuItemRead.from_orm_with_category(item)


@menu_router.patch("/{menu_item_id}", response_model=MenuItemRead)
async def patch_menu_item_endpoint(
    menu_item_id: int,
    item_in: MenuItemUpdate,
    db: AsyncSession = Depends(get_async_session),
):
    """
    Частичное обновление позиции меню. Новая цена не влияет на уже оформленные заказы.
    """
    item = await update_menu_item(db, menu_item_id, item_in)
    if not item:
        raise HTTPException(status_code=404, detail="Menu item not found")
    return MenuItemRead.from_orm_with_category(item)


@menu_router.delete("/{menu_item_id}", status_code=204)
async def remove_menu_item(menu_item_id: int, db: AsyncSession = Depends(get_async_session)):
    deleted = await delete_menu_item(db, menu_item_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Menu item not found")
