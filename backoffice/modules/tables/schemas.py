from pydantic import BaseModel, Field
from typing import Optional, List, Union, Literal
from datetime import datetime

from backoffice.modules.tables.models import TableStatus, ReservationStatus


# Zone schemas
class ZoneCreate(BaseModel):
    name: str = Field(..., max_length=120)
    is_active: bool = True


class ZoneUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=120)
    is_active: Optional[bool] = None
    sort_order: Optional[int] = None


class ZoneOut(BaseModel):
    id: str
    name: str
    is_active: bool
    sort_order: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# Table definition schemas
class TableCreate(BaseModel):
    id: str = Field(..., min_length=1, max_length=40, description="Código de la mesa")
    label: str = Field(..., max_length=120)
    zone_id: Optional[str] = Field(None, max_length=60)
    capacity: Optional[int] = Field(None, gt=0)
    is_active: bool = True
    sort_order: int = 0


class TableUpdate(BaseModel):
    label: Optional[str] = Field(None, max_length=120)
    zone_id: Optional[str] = Field(None, max_length=60)
    capacity: Optional[int] = Field(None, gt=0)
    is_active: Optional[bool] = None
    sort_order: Optional[int] = None


class TableDefinitionOut(BaseModel):
    id: str
    label: str
    zone_id: Optional[str] = None
    zone: Optional[str] = None
    capacity: Optional[int] = None
    is_active: bool
    sort_order: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# Waiter order lines (JSON en table_state)
class OrderLine(BaseModel):
    article_code: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    unit_price: Optional[float] = None
    quantity: float = Field(..., gt=0)
    notes: Optional[str] = Field(None, max_length=200)


class ReservationOut(BaseModel):
    status: ReservationStatus
    reserved_by: str
    contact_name: Optional[str] = None
    contact_phone: Optional[str] = None
    party_size: Optional[int] = None
    notes: Optional[str] = None
    scheduled_for: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TableOrderOut(BaseModel):
    status: TableStatus
    pending_items: List[OrderLine] = []
    sent_items: List[OrderLine] = []


class TableAdminSnapshot(TableDefinitionOut):
    assigned_waiter_id: Optional[int] = None
    assigned_waiter_name: Optional[str] = None
    updated_state_at: Optional[datetime] = None
    order_status: Union[TableStatus, Literal["libre"]] = "libre"
    pending_items_count: float = 0
    sent_items_count: float = 0
    reservation: Optional[ReservationOut] = None
    order: Optional[TableOrderOut] = None


class WaiterTableSnapshot(BaseModel):
    id: str
    label: str
    zone_id: Optional[str] = None
    zone: Optional[str] = None
    capacity: Optional[int] = None
    assigned_waiter_id: Optional[int] = None
    assigned_waiter_name: Optional[str] = None
    updated_at: Optional[datetime] = None
    reservation: Optional[ReservationOut] = None
    order: Optional[TableOrderOut] = None


class ClaimTableRequest(BaseModel):
    waiter_code: str = Field(..., min_length=1, max_length=40)


class StoreTableOrderRequest(BaseModel):
    waiter_code: str = Field(..., min_length=1, max_length=40)
    pending_items: List[OrderLine] = []
    sent_items: List[OrderLine] = []


class TableStatusUpdate(BaseModel):
    status: TableStatus


class ReservationCreate(BaseModel):
    reserved_by: str = Field("", max_length=160)
    contact_name: Optional[str] = Field(None, max_length=160)
    contact_phone: Optional[str] = Field(None, max_length=40)
    party_size: Optional[int] = None
    scheduled_for: Optional[str] = Field(None, max_length=40)
    notes: Optional[str] = None
