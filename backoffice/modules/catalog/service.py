from typing import List, Optional
from sqlalchemy.orm import Session, selectinload
from sqlalchemy import or_, func
from fastapi import HTTPException, status
import logging

from backoffice.common.validators import normalize_code, normalize_optional_code
from backoffice.modules.catalog.models import (
    Unit, Warehouse, Article, ArticleKitComponent, ArticleWarehouse, ArticleType
)
from backoffice.modules.catalog.schemas import (
    UnitCreate, WarehouseCreate, WarehouseUpdate, ArticleCreate, ArticleUpdate,
    ArticleOut, KitComponentInput, KitComponentOut, ArticleWarehouseOut
)

logger = logging.getLogger(__name__)


class UnitService:
    def __init__(self, db: Session):
        self.db = db

    def list_units(self) -> List[Unit]:
        return self.db.query(Unit).filter(Unit.is_active == True).order_by(Unit.name).all()

    def get_by_code(self, code: str) -> Optional[Unit]:
        return self.db.query(Unit).filter(Unit.code == normalize_code(code)).first()

    def create_unit(self, data: UnitCreate) -> Unit:
        code = normalize_code(data.code)
        if self.get_by_code(code):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Ya existe la unidad {code}"
            )
        unit = Unit(code=code, name=data.name.strip())
        self.db.add(unit)
        self.db.commit()
        self.db.refresh(unit)
        return unit


class WarehouseService:
    def __init__(self, db: Session):
        self.db = db

    def list_warehouses(self, include_inactive: bool = False) -> List[Warehouse]:
        query = self.db.query(Warehouse)
        if not include_inactive:
            query = query.filter(Warehouse.is_active == True)
        return query.order_by(Warehouse.name).all()

    def get_by_code(self, code: Optional[str]) -> Optional[Warehouse]:
        normalized = normalize_code(code)
        if not normalized:
            return None
        return self.db.query(Warehouse).filter(Warehouse.code == normalized).first()

    def get_by_code_or_404(self, code: Optional[str]) -> Warehouse:
        warehouse = self.get_by_code(code)
        if not warehouse:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Almacén no encontrado: {normalize_code(code)}"
            )
        return warehouse

    def create_warehouse(self, data: WarehouseCreate) -> Warehouse:
        code = normalize_code(data.code)
        if self.get_by_code(code):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Ya existe un almacén con el código {code}"
            )
        warehouse = Warehouse(code=code, name=data.name.strip(), is_active=data.is_active)
        self.db.add(warehouse)
        self.db.commit()
        self.db.refresh(warehouse)
        logger.info(f"Almacén creado: {code}")
        return warehouse

    def update_warehouse(self, code: str, data: WarehouseUpdate) -> Warehouse:
        warehouse = self.get_by_code_or_404(code)
        if data.name is not None:
            warehouse.name = data.name.strip()
        if data.is_active is not None:
            warehouse.is_active = data.is_active
        self.db.commit()
        self.db.refresh(warehouse)
        return warehouse


class ArticleService:
    """Artículos, sus unidades y la composición de kits."""

    def __init__(self, db: Session):
        self.db = db

    def _base_query(self):
        return self.db.query(Article).options(
            selectinload(Article.storage_unit),
            selectinload(Article.retail_unit),
            selectinload(Article.default_warehouse)
        )

    def get_by_code(self, code: Optional[str]) -> Optional[Article]:
        normalized = normalize_code(code)
        if not normalized:
            return None
        return self._base_query().filter(Article.article_code == normalized).first()

    def get_by_code_or_404(self, code: Optional[str]) -> Article:
        article = self.get_by_code(code)
        if not article:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Artículo no encontrado: {normalize_code(code)}"
            )
        return article

    def list_articles(
        self,
        search: Optional[str] = None,
        article_type: Optional[ArticleType] = None,
        include_inactive: bool = False,
        limit: int = 100,
        offset: int = 0
    ) -> List[ArticleOut]:
        query = self._base_query()
        if not include_inactive:
            query = query.filter(Article.is_active == True)
        if article_type:
            query = query.filter(Article.article_type == article_type)
        if search and search.strip():
            term = f"%{search.strip().lower()}%"
            query = query.filter(or_(
                func.lower(Article.article_code).like(term),
                func.lower(Article.name).like(term)
            ))
        articles = query.order_by(Article.article_code).offset(offset).limit(limit).all()
        return [self.to_output(article) for article in articles]

    def _resolve_unit(self, code: Optional[str]) -> Optional[Unit]:
        normalized = normalize_optional_code(code)
        if not normalized:
            return None
        unit = self.db.query(Unit).filter(Unit.code == normalized).first()
        if not unit:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unidad no encontrada: {normalized}"
            )
        return unit

    def _resolve_default_warehouse(self, code: Optional[str]) -> Optional[Warehouse]:
        normalized = normalize_optional_code(code)
        if not normalized:
            return None
        warehouse = WarehouseService(self.db).get_by_code(normalized)
        if not warehouse or not warehouse.is_active:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"El almacén {normalized} no existe o está inactivo"
            )
        return warehouse

    def create_article(self, data: ArticleCreate) -> ArticleOut:
        code = normalize_code(data.article_code)
        if self.get_by_code(code):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Ya existe un artículo con el código {code}"
            )
        storage_unit = self._resolve_unit(data.storage_unit_code)
        retail_unit = self._resolve_unit(data.retail_unit_code)
        warehouse = self._resolve_default_warehouse(data.default_warehouse_code)

        article = Article(
            article_code=code,
            name=data.name.strip(),
            article_type=data.article_type,
            storage_unit_id=storage_unit.id if storage_unit else None,
            retail_unit_id=retail_unit.id if retail_unit else None,
            conversion_factor=data.conversion_factor,
            default_warehouse_id=warehouse.id if warehouse else None,
            is_active=data.is_active
        )
        self.db.add(article)
        self.db.commit()
        logger.info(f"Artículo creado: {code} ({data.article_type.value})")
        return self.to_output(self.get_by_code(code))

    def update_article(self, code: str, data: ArticleUpdate) -> ArticleOut:
        article = self.get_by_code_or_404(code)
        fields = data.model_dump(exclude_unset=True)

        if "name" in fields and data.name is not None:
            article.name = data.name.strip()
        if "storage_unit_code" in fields:
            unit = self._resolve_unit(data.storage_unit_code)
            article.storage_unit_id = unit.id if unit else None
        if "retail_unit_code" in fields:
            unit = self._resolve_unit(data.retail_unit_code)
            article.retail_unit_id = unit.id if unit else None
        if "conversion_factor" in fields and data.conversion_factor is not None:
            article.conversion_factor = data.conversion_factor
        if "default_warehouse_code" in fields:
            warehouse = self._resolve_default_warehouse(data.default_warehouse_code)
            article.default_warehouse_id = warehouse.id if warehouse else None
        if "is_active" in fields and data.is_active is not None:
            article.is_active = data.is_active

        self.db.commit()
        self.db.expire(article)
        return self.to_output(self.get_by_code(article.article_code))

    def list_kit_components(self, kit_code: str) -> List[KitComponentOut]:
        kit = self.get_by_code_or_404(kit_code)
        return [
            KitComponentOut(
                component_article_id=component.component_article_id,
                component_code=component.component.article_code,
                component_name=component.component.name,
                component_qty_retail=component.component_qty_retail
            )
            for component in kit.kit_components
        ]

    def set_kit_components(self, kit_code: str, components: List[KitComponentInput]) -> List[KitComponentOut]:
        """Reemplaza la composición completa de un kit."""
        kit = self.get_by_code(kit_code)
        if not kit:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Kit no encontrado"
            )
        if kit.article_type != ArticleType.KIT:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"El artículo {kit.article_code} no es un kit"
            )

        resolved = []
        seen = set()
        for item in components:
            component_code = normalize_code(item.component_code)
            component = self.get_by_code(component_code)
            if not component:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=f"Componente no encontrado: {component_code}"
                )
            if component.id == kit.id:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Un kit no puede contenerse a sí mismo"
                )
            if component.article_type == ArticleType.KIT:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=f"El componente {component_code} es un kit; no se permiten kits anidados"
                )
            if component.id in seen:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=f"El componente {component_code} está repetido"
                )
            seen.add(component.id)
            resolved.append((component, item.component_qty_retail))

        kit.kit_components.clear()
        self.db.flush()
        for component, qty in resolved:
            kit.kit_components.append(
                ArticleKitComponent(component_article_id=component.id, component_qty_retail=qty)
            )
        self.db.commit()
        self.db.expire(kit)
        logger.info(f"Kit {kit.article_code} actualizado con {len(resolved)} componentes")
        return self.list_kit_components(kit.article_code)

    def list_article_warehouses(self, code: str) -> List[ArticleWarehouseOut]:
        article = self.get_by_code_or_404(code)
        rows = self.db.query(ArticleWarehouse).options(
            selectinload(ArticleWarehouse.warehouse)
        ).filter(ArticleWarehouse.article_id == article.id).all()
        rows.sort(key=lambda row: (not row.is_primary, row.warehouse.code))
        return [
            ArticleWarehouseOut(
                warehouse_id=row.warehouse_id,
                warehouse_code=row.warehouse.code,
                warehouse_name=row.warehouse.name,
                is_primary=row.is_primary
            )
            for row in rows
        ]

    def to_output(self, article: Article) -> ArticleOut:
        return ArticleOut(
            id=article.id,
            article_code=article.article_code,
            name=article.name,
            article_type=article.article_type,
            conversion_factor=article.conversion_factor,
            storage_unit_name=article.storage_unit_name,
            retail_unit_name=article.retail_unit_name,
            default_warehouse_code=article.default_warehouse.code if article.default_warehouse else None,
            is_active=article.is_active
        )
