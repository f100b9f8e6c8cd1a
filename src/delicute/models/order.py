import enum
from sqlalchemy import Column, Integer, String, Text, Numeric, DateTime, Enum as SAEnum, func
from sqlalchemy.orm import relationship
from ..db.base import Base


class OrderStatusEnum(str, enum.Enum):
    pending = "Pending"
    preparing = "Preparing"
    delivered = "Delivered"
    cancelled = "Cancelled"


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    customer_name = Column(String(128), nullable=False)
    table_number = Column(Integer, nullable=False)
    coupon_code = Column(String(64), nullable=True)
    subtotal = Column(Numeric(10, 2), nullable=False)
    discount = Column(Numeric(10, 2), nullable=False, default=0)
    total = Column(Numeric(10, 2), nullable=False)
    special_instructions = Column(Text, nullable=True)
    status = Column(
        SAEnum(OrderStatusEnum, name="order_status", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=OrderStatusEnum.pending,
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    # старые заказы хранили позиции JSON-строкой; только для чтения
    items_json = Column(Text, nullable=True)

    # связи
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")
