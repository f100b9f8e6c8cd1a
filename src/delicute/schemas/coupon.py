from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional, Union

from pydantic import BaseModel, Field, conint, field_validator, model_validator
from typing_extensions import Annotated

from delicute.errors import InvalidReference
from delicute.models.coupon import CouponTypeEnum


# Типы купонов, которые действуют только на позиции своей категории
CATEGORY_SCOPED_TYPES = {
    CouponTypeEnum.buy_x,
    CouponTypeEnum.percentage,
    CouponTypeEnum.fixed,
    CouponTypeEnum.bogo,
    CouponTypeEnum.date_range,
}

DEFAULT_BOGO_GROUP = 2


class CategoryScopedRule(BaseModel):
    category_id: int
    category_name: str


class BuyXRule(CategoryScopedRule):
    type: Literal["buy_x"] = "buy_x"
    buy_x: conint(ge=1)
    discount: Decimal  # процент


class PercentageRule(CategoryScopedRule):
    type: Literal["percentage"] = "percentage"
    discount: Decimal  # процент


class DateRangeRule(CategoryScopedRule):
    type: Literal["date_range"] = "date_range"
    discount: Decimal  # процент, окно действия проверяется при поиске купона


class FixedRule(CategoryScopedRule):
    type: Literal["fixed"] = "fixed"
    discount: Decimal  # сумма


class BogoRule(CategoryScopedRule):
    type: Literal["bogo"] = "bogo"
    buy_x: conint(ge=1) = DEFAULT_BOGO_GROUP


class MinCartAmountRule(BaseModel):
    type: Literal["min_cart_amount"] = "min_cart_amount"
    min_cart_amount: Decimal
    discount: Decimal  # процент


CouponRule = Annotated[
    Union[BuyXRule, PercentageRule, DateRangeRule, FixedRule, BogoRule, MinCartAmountRule],
    Field(discriminator="type"),
]


class ResolvedCoupon(BaseModel):
    """
    Снимок купона на момент поиска. Отвязан от ORM-сессии,
    поэтому расчёт скидки не трогает базу.
    """
    id: int
    code: str
    quantity: Optional[int] = None
    rule: CouponRule

    @property
    def is_limited(self) -> bool:
        return self.quantity is not None

    @classmethod
    def from_orm_coupon(cls, coupon):
        coupon_type = CouponTypeEnum(coupon.type)
        discount = coupon.discount or Decimal("0")

        if coupon_type == CouponTypeEnum.min_cart_amount:
            rule = MinCartAmountRule(
                min_cart_amount=coupon.min_cart_amount or Decimal("0"),
                discount=discount,
            )
        else:
            if coupon.category is None:
                raise InvalidReference(f"Coupon {coupon.code} has no category")
            scope = {"category_id": coupon.category.id, "category_name": coupon.category.name}
            if coupon_type == CouponTypeEnum.buy_x:
                rule = BuyXRule(buy_x=coupon.buy_x or 1, discount=discount, **scope)
            elif coupon_type == CouponTypeEnum.bogo:
                rule = BogoRule(buy_x=coupon.buy_x or DEFAULT_BOGO_GROUP, **scope)
            elif coupon_type == CouponTypeEnum.fixed:
                rule = FixedRule(discount=discount, **scope)
            elif coupon_type == CouponTypeEnum.date_range:
                rule = DateRangeRule(discount=discount, **scope)
            else:
                rule = PercentageRule(discount=discount, **scope)

        return cls(id=coupon.id, code=coupon.code, quantity=coupon.quantity, rule=rule)


class CouponCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=64)
    description: Optional[str] = None
    image: Optional[str] = None
    discount: Decimal = Field(Decimal("0"), ge=0)
    type: CouponTypeEnum
    category: Optional[str] = None  # админка присылает имя категории
    buy_x: Optional[conint(ge=1)] = None
    min_cart_amount: Optional[Decimal] = Field(None, ge=0)
    valid_from: Optional[datetime] = None
    valid_to: Optional[datetime] = None
    quantity: Optional[conint(ge=0)] = None
    is_active: bool = True

    class Config:
        extra = "forbid"

    @field_validator("code")
    @classmethod
    def normalize_code(cls, value: str) -> str:
        value = value.strip().upper()
        if not value:
            raise ValueError("Coupon code must not be blank")
        return value

    @model_validator(mode="after")
    def check_type_fields(self):
        if self.type in CATEGORY_SCOPED_TYPES and not self.category:
            raise ValueError(f"Category is required for {self.type.value} coupons")
        if self.type == CouponTypeEnum.buy_x and self.buy_x is None:
            raise ValueError("buy_x is required for buy_x coupons")
        if self.type == CouponTypeEnum.min_cart_amount and self.min_cart_amount is None:
            raise ValueError("min_cart_amount is required for min_cart_amount coupons")
        if self.type != CouponTypeEnum.fixed and self.discount > 100:
            raise ValueError("Percentage discount cannot exceed 100")
        if self.valid_from and self.valid_to and self.valid_to < self.valid_from:
            raise ValueError("valid_to must not be earlier than valid_from")
        return self


class CouponRead(BaseModel):
    id: int
    code: str
    description: Optional[str] = None
    image: Optional[str] = None
    discount: Decimal
    type: CouponTypeEnum
    category: Optional[str] = None
    buy_x: Optional[int] = None
    min_cart_amount: Optional[Decimal] = None
    valid_from: Optional[datetime] = None
    valid_to: Optional[datetime] = None
    quantity: Optional[int] = None
    is_active: bool

    @classmethod
    def from_orm_with_category(cls, coupon):
        return cls(
            id=coupon.id,
            code=coupon.code,
            description=coupon.description,
            image=coupon.image,
            discount=coupon.discount,
            type=coupon.type,
            category=coupon.category.name if coupon.category else None,
            buy_x=coupon.buy_x,
            min_cart_amount=coupon.min_cart_amount,
            valid_from=coupon.valid_from,
            valid_to=coupon.valid_to,
            quantity=coupon.quantity,
            is_active=coupon.is_active,
        )

    class Config:
        from_attributes = True
