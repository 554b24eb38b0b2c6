from backoffice.database.database import Base
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Numeric, Enum, JSON, CheckConstraint
from sqlalchemy.orm import relationship
from backoffice.common.mixins import TimestampMixin
import enum


class OrderStatus(str, enum.Enum):
    OPEN = "OPEN"
    CANCELLED = "CANCELLED"
    INVOICED = "INVOICED"


class Order(Base, TimestampMixin):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_code = Column(String(40), nullable=False, unique=True, index=True)
    table_id = Column(String(40), ForeignKey("dining_tables.id", ondelete="SET NULL"), nullable=True, index=True)
    waiter_code = Column(String(40), nullable=True)
    waiter_name = Column(String(160), nullable=True)
    guests = Column(Integer, nullable=True)
    status = Column(Enum(OrderStatus), nullable=False, default=OrderStatus.OPEN, index=True)
    opened_at = Column(DateTime, nullable=False)
    closed_at = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)

    table = relationship("DiningTable")
    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id"
    )


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    article_code = Column(String(40), nullable=False)
    description = Column(String(200), nullable=False)
    quantity = Column(Numeric(18, 3), nullable=False)
    unit_price = Column(Numeric(18, 2), nullable=False, default=0)
    modifiers = Column(JSON, nullable=False, default=list)
    notes = Column(String(200), nullable=True)

    order = relationship("Order", back_populates="items")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_items_quantity"),
        CheckConstraint("unit_price >= 0", name="ck_order_items_unit_price"),
    )
