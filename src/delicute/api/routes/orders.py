from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from delicute.crud.order import cancel_order, delete_order, get_order_by_id, get_orders, update_order_status
from delicute.db.deps import get_async_session
from delicute.models.order import OrderStatusEnum
from delicute.schemas.order import OrderRead, OrderStatusUpdate


router = APIRouter(prefix="/api/admin/orders", tags=["orders"])

@router.get("/", response_model=List[OrderRead])
async def list_orders(
    status: Optional[OrderStatusEnum] = Query(None, description="Фильтр по статусу"),
    date_from: Optional[datetime] = Query(None, description="Начальная дата"),
    date_to: Optional[datetime] = Query(None, description="Конечная дата"),
    limit: Optional[int] = Query(None, ge=1, description="Количество записей для вывода"),
    offset: Optional[int] = Query(None, ge=0, description="Смещение для пагинации"),
    db: AsyncSession = Depends(get_async_session),
):
    """
    Возвращает список заказов.
    Поддерживает фильтрацию по статусу и диапазону дат, фильтрацию и пагинацию.
    """
    orders = await get_orders(
        db, status=status, date_from=date_from, date_to=date_to, limit=limit, offset=offset
    )
    return [OrderRead.from_orm_with_name(o) for o in orders]


@router.get("/{order_id}", response_model=OrderRead)
async def get_order(
    order_id: int = Path(..., description="ID заказа"),
    db: AsyncSession = Depends(get_async_session),
):
    """
    Возвращает детализацию заказа по id.
    """
    order = await get_order_by_id(db, order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return OrderRead.from_orm_with_name(order)


@router.put("/{order_id}/status", response_model=OrderRead)
async def update_order_status_endpoint(
    order_id: int,
    status_in: OrderStatusUpdate,
    db: AsyncSession = Depends(get_async_session),
):
    """
    Смена статуса: Pending -> Preparing -> Delivered, либо Cancelled.
    """
    order = await update_order_status(db, order_id, status_in.status)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return OrderRead.from_orm_with_name(order)


@router.put("/{order_id}/cancel", response_model=OrderRead)
async def cancel_order_endpoint(order_id: int, db: AsyncSession = Depends(get_async_session)):
    order = await cancel_order(db, order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return OrderRead.from_orm_with_name(order)


@router.delete("/{order_id}", status_code=204)
async def remove_order(order_id: int, session: AsyncSession = Depends(get_async_session)):
    """
    Удаляет заказ.
    """
    deleted = await delete_order(session, order_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Order not found")
