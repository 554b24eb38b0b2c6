from fastapi import APIRouter, Depends, Query, status
from typing import List, Optional
from sqlalchemy.orm import Session

from backoffice.dependencies.dbDependencies import get_db
from backoffice.modules.catalog.models import ArticleType
from backoffice.modules.catalog.service import UnitService, WarehouseService, ArticleService
from backoffice.modules.catalog.schemas import (
    UnitCreate, UnitOut, WarehouseCreate, WarehouseUpdate, WarehouseOut,
    ArticleCreate, ArticleUpdate, ArticleOut, KitComponentsUpdate, KitComponentOut,
    ArticleWarehouseOut
)

units_router = APIRouter(prefix="/units", tags=["Catalog"])


@units_router.get("/", response_model=List[UnitOut])
def list_units(db: Session = Depends(get_db)):
    return UnitService(db).list_units()


@units_router.post("/", response_model=UnitOut, status_code=status.HTTP_201_CREATED)
def create_unit(data: UnitCreate, db: Session = Depends(get_db)):
    return UnitService(db).create_unit(data)


warehouses_router = APIRouter(prefix="/warehouses", tags=["Catalog"])


@warehouses_router.get("/", response_model=List[WarehouseOut])
def list_warehouses(
    include_inactive: bool = Query(False),
    db: Session = Depends(get_db)
):
    """Listar almacenes (bodegas)."""
    return WarehouseService(db).list_warehouses(include_inactive)


@warehouses_router.post("/", response_model=WarehouseOut, status_code=status.HTTP_201_CREATED)
def create_warehouse(data: WarehouseCreate, db: Session = Depends(get_db)):
    return WarehouseService(db).create_warehouse(data)


@warehouses_router.patch("/{code}", response_model=WarehouseOut)
def update_warehouse(code: str, data: WarehouseUpdate, db: Session = Depends(get_db)):
    return WarehouseService(db).update_warehouse(code, data)


articles_router = APIRouter(prefix="/articles", tags=["Catalog"])


@articles_router.get("/", response_model=List[ArticleOut])
def list_articles(
    search: Optional[str] = Query(None, description="Código o nombre"),
    article_type: Optional[ArticleType] = Query(None),
    include_inactive: bool = Query(False),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db)
):
    """Listar artículos con búsqueda por código o nombre."""
    return ArticleService(db).list_articles(search, article_type, include_inactive, limit, offset)


@articles_router.post("/", response_model=ArticleOut, status_code=status.HTTP_201_CREATED)
def create_article(data: ArticleCreate, db: Session = Depends(get_db)):
    return ArticleService(db).create_article(data)


@articles_router.get("/{code}", response_model=ArticleOut)
def get_article(code: str, db: Session = Depends(get_db)):
    service = ArticleService(db)
    return service.to_output(service.get_by_code_or_404(code))


@articles_router.patch("/{code}", response_model=ArticleOut)
def update_article(code: str, data: ArticleUpdate, db: Session = Depends(get_db)):
    return ArticleService(db).update_article(code, data)


@articles_router.get("/{code}/kit", response_model=List[KitComponentOut])
def get_kit_components(code: str, db: Session = Depends(get_db)):
    return ArticleService(db).list_kit_components(code)


@articles_router.put("/{code}/kit", response_model=List[KitComponentOut])
def set_kit_components(code: str, data: KitComponentsUpdate, db: Session = Depends(get_db)):
    """Reemplazar los componentes de un kit."""
    return ArticleService(db).set_kit_components(code, data.components)


@articles_router.get("/{code}/warehouses", response_model=List[ArticleWarehouseOut])
def get_article_warehouses(code: str, db: Session = Depends(get_db)):
    return ArticleService(db).list_article_warehouses(code)
