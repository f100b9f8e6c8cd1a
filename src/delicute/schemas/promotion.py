from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, model_validator


class PromotionCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str
    image: Optional[str] = None
    start_date: datetime
    end_date: datetime

    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date <= self.start_date:
            raise ValueError("End date must be after start date")
        return self


class PromotionUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    image: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    class Config:
        extra = "forbid"


class PromotionRead(BaseModel):
    id: int
    title: str
    description: str
    image: Optional[str] = None
    start_date: datetime
    end_date: datetime
    created_at: datetime

    class Config:
        from_attributes = True
