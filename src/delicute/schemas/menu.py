from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=64)


class CategoryRead(BaseModel):
    id: int
    name: str

    class Config:
        from_attributes = True


class MenuItemCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    description: Optional[str] = None
    category: str  # имя категории, как в админке
    price: Decimal = Field(..., ge=0)
    image: Optional[str] = None
    is_top_pick: bool = False
    is_available: bool = True


class MenuItemUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=128)
    description: Optional[str] = None
    category: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0)
    image: Optional[str] = None
    is_top_pick: Optional[bool] = None
    is_available: Optional[bool] = None

    class Config:
        extra = "forbid"


class MenuItemRead(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    price: Decimal
    image: Optional[str] = None
    is_top_pick: bool
    is_available: bool
    created_at: datetime

    @classmethod
    def from_orm_with_category(cls, item):
        return cls(
            id=item.id,
            name=item.name,
            description=item.description,
            category=item.category.name if item.category else None,
            price=item.price,
            image=item.image,
            is_top_pick=item.is_top_pick,
            is_available=item.is_available,
            created_at=item.created_at,
        )


class CatalogEntry(BaseModel):
    """Цена и категория позиции меню на момент заказа."""
    id: int
    name: str
    price: Decimal
    category_id: int
    category_name: str
    is_available: bool = True

    class Config:
        frozen = True
