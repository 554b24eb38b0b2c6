from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from decimal import Decimal

from backoffice.modules.orders.models import OrderStatus


class OrderItemInput(BaseModel):
    article_code: str
    name: str
    quantity: Decimal
    unit_price: Decimal = Field(Decimal("0"), ge=0)
    modifiers: List[str] = []
    notes: Optional[str] = Field(None, max_length=200)


class OrderItemUpdate(BaseModel):
    quantity: Optional[Decimal] = None
    unit_price: Optional[Decimal] = Field(None, ge=0)
    modifiers: Optional[List[str]] = None
    notes: Optional[str] = Field(None, max_length=200)


class OrderCreate(BaseModel):
    table_id: Optional[str] = Field(None, max_length=40)
    waiter_code: Optional[str] = Field(None, max_length=40)
    waiter_name: Optional[str] = Field(None, max_length=160)
    guests: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = None
    items: List[OrderItemInput] = []


class OrderNotesUpdate(BaseModel):
    notes: Optional[str] = None


class OrderGuestsUpdate(BaseModel):
    guests: Optional[int] = Field(None, ge=0)


class OrderItemOut(BaseModel):
    id: int
    article_code: str
    name: str
    quantity: Decimal
    unit_price: Decimal
    modifiers: List[str] = []
    notes: Optional[str] = None


class OrderOut(BaseModel):
    id: int
    order_code: str
    table_id: Optional[str] = None
    table_label: Optional[str] = None
    waiter_code: Optional[str] = None
    waiter_name: Optional[str] = None
    guests: Optional[int] = None
    status: OrderStatus
    opened_at: datetime
    closed_at: Optional[datetime] = None
    notes: Optional[str] = None
    items: List[OrderItemOut] = []
    total: Decimal = Decimal("0")
