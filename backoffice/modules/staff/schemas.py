from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class AdminUserCreate(BaseModel):
    username: str = Field(..., min_length=1, max_length=60)
    display_name: Optional[str] = Field(None, max_length=150)
    is_active: bool = True


class AdminUserOut(BaseModel):
    id: int
    username: str
    display_name: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class WaiterCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    full_name: str = Field(..., min_length=1, max_length=150)
    is_active: bool = True


class WaiterOut(BaseModel):
    id: int
    code: str
    full_name: str
    is_active: bool

    class Config:
        from_attributes = True
