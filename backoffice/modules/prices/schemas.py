from pydantic import BaseModel, Field
from typing import Optional
from datetime import date, datetime
from decimal import Decimal


class PriceListUpsert(BaseModel):
    code: str = Field(..., min_length=1, max_length=30)
    name: Optional[str] = Field(None, max_length=120)
    description: Optional[str] = None
    currency_code: Optional[str] = Field(None, min_length=3, max_length=3)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_active: Optional[bool] = None
    is_default: Optional[bool] = None


class PriceListOut(BaseModel):
    id: int
    code: str
    name: str
    description: Optional[str] = None
    currency_code: str
    start_date: date
    end_date: Optional[date] = None
    is_active: bool
    is_default: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PriceListItemOut(BaseModel):
    article_id: int
    article_code: str
    name: str
    unit: Optional[str] = None
    price: Decimal
    currency_code: str
    is_active: bool
    start_date: date
    end_date: Optional[date] = None


class ArticlePriceSet(BaseModel):
    article_code: str = Field(..., min_length=1, max_length=40)
    price_list_code: Optional[str] = Field(None, max_length=30)
    price: Decimal
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class ActiveStateUpdate(BaseModel):
    is_active: bool


class ResolvedPrice(BaseModel):
    article_code: str
    price_list_code: str
    price: Decimal
    currency_code: str
