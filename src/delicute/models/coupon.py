import enum
from sqlalchemy import Column, Integer, String, Text, Numeric, Boolean, DateTime, ForeignKey, Enum as SAEnum, func
from sqlalchemy.orm import relationship
from ..db.base import Base


class CouponTypeEnum(str, enum.Enum):
    buy_x = "buy_x"
    percentage = "percentage"
    fixed = "fixed"
    bogo = "bogo"
    min_cart_amount = "min_cart_amount"
    date_range = "date_range"


class Coupon(Base):
    __tablename__ = "coupons"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(64), nullable=False, unique=True, index=True)  # всегда в верхнем регистре
    description = Column(Text, nullable=True)
    image = Column(String(512), nullable=True)
    discount = Column(Numeric(10, 2), nullable=False, default=0)  # процент или сумма, зависит от type
    type = Column(SAEnum(CouponTypeEnum, name="coupon_type"), nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    buy_x = Column(Integer, nullable=True)
    min_cart_amount = Column(Numeric(10, 2), nullable=True)
    valid_from = Column(DateTime(timezone=True), nullable=True)
    valid_to = Column(DateTime(timezone=True), nullable=True)
    quantity = Column(Integer, nullable=True)  # None = без ограничений
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    category = relationship("Category", back_populates="coupons")
