from pydantic import BaseModel, Field
from typing import Optional, List
from decimal import Decimal

from backoffice.modules.catalog.models import ArticleType


# Unit schemas
class UnitCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=20)
    name: str = Field(..., min_length=1, max_length=60)


class UnitOut(BaseModel):
    id: int
    code: str
    name: str
    is_active: bool

    class Config:
        from_attributes = True


# Warehouse schemas
class WarehouseCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=30)
    name: str = Field(..., min_length=1, max_length=120)
    is_active: bool = True


class WarehouseUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    is_active: Optional[bool] = None


class WarehouseOut(BaseModel):
    id: int
    code: str
    name: str
    is_active: bool

    class Config:
        from_attributes = True


# Article schemas
class ArticleCreate(BaseModel):
    article_code: str = Field(..., min_length=1, max_length=40)
    name: str = Field(..., min_length=1, max_length=200)
    article_type: ArticleType = ArticleType.TERMINADO
    storage_unit_code: Optional[str] = Field(None, max_length=20)
    retail_unit_code: Optional[str] = Field(None, max_length=20)
    conversion_factor: Decimal = Field(Decimal("1"), gt=0, description="Unidades de detalle por unidad de almacenamiento")
    default_warehouse_code: Optional[str] = Field(None, max_length=30)
    is_active: bool = True


class ArticleUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    storage_unit_code: Optional[str] = Field(None, max_length=20)
    retail_unit_code: Optional[str] = Field(None, max_length=20)
    conversion_factor: Optional[Decimal] = Field(None, gt=0)
    default_warehouse_code: Optional[str] = Field(None, max_length=30)
    is_active: Optional[bool] = None


class ArticleOut(BaseModel):
    id: int
    article_code: str
    name: str
    article_type: ArticleType
    conversion_factor: Decimal
    storage_unit_name: Optional[str] = None
    retail_unit_name: Optional[str] = None
    default_warehouse_code: Optional[str] = None
    is_active: bool


class KitComponentInput(BaseModel):
    component_code: str = Field(..., min_length=1, max_length=40)
    component_qty_retail: Decimal = Field(..., gt=0)


class KitComponentsUpdate(BaseModel):
    components: List[KitComponentInput]


class KitComponentOut(BaseModel):
    component_article_id: int
    component_code: str
    component_name: str
    component_qty_retail: Decimal


class ArticleWarehouseOut(BaseModel):
    warehouse_id: int
    warehouse_code: str
    warehouse_name: str
    is_primary: bool
