"""
Modelos del catálogo: unidades, almacenes, artículos y kits.

- Article.conversion_factor: unidades de detalle (retail) por unidad de
  almacenamiento (storage). Ej. caja de 24 botellas -> factor 24.
- ArticleKitComponent: un artículo KIT se descompone en componentes con
  cantidades expresadas en unidad de detalle por cada kit.
- ArticleWarehouse: almacenes donde el artículo ha tenido existencias.
"""

from backoffice.database.database import Base
from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, Numeric, Enum, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
from backoffice.common.mixins import TimestampMixin, ActiveMixin
import enum


class ArticleType(str, enum.Enum):
    TERMINADO = "TERMINADO"  # Producto terminado / insumo simple
    KIT = "KIT"              # Combo que descuenta sus componentes


class Unit(Base, TimestampMixin, ActiveMixin):
    __tablename__ = "units"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(20), nullable=False, unique=True, index=True)
    name = Column(String(60), nullable=False)


class Warehouse(Base, TimestampMixin, ActiveMixin):
    __tablename__ = "warehouses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(30), nullable=False, unique=True, index=True)
    name = Column(String(120), nullable=False)


class Article(Base, TimestampMixin, ActiveMixin):
    __tablename__ = "articles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    article_code = Column(String(40), nullable=False, unique=True, index=True)
    name = Column(String(200), nullable=False, index=True)
    article_type = Column(Enum(ArticleType), nullable=False, default=ArticleType.TERMINADO)
    storage_unit_id = Column(Integer, ForeignKey("units.id"), nullable=True)
    retail_unit_id = Column(Integer, ForeignKey("units.id"), nullable=True)
    conversion_factor = Column(Numeric(18, 6), nullable=False, default=1)
    default_warehouse_id = Column(Integer, ForeignKey("warehouses.id"), nullable=True)

    storage_unit = relationship("Unit", foreign_keys=[storage_unit_id])
    retail_unit = relationship("Unit", foreign_keys=[retail_unit_id])
    default_warehouse = relationship("Warehouse")
    kit_components = relationship(
        "ArticleKitComponent",
        foreign_keys="ArticleKitComponent.kit_article_id",
        back_populates="kit",
        cascade="all, delete-orphan",
        order_by="ArticleKitComponent.id"
    )

    __table_args__ = (
        CheckConstraint("conversion_factor > 0", name="ck_articles_conversion_factor"),
    )

    @property
    def is_kit(self) -> bool:
        return self.article_type == ArticleType.KIT

    @property
    def storage_unit_name(self):
        return self.storage_unit.name if self.storage_unit else None

    @property
    def retail_unit_name(self):
        return self.retail_unit.name if self.retail_unit else None


class ArticleKitComponent(Base, TimestampMixin):
    __tablename__ = "article_kits"

    id = Column(Integer, primary_key=True, autoincrement=True)
    kit_article_id = Column(Integer, ForeignKey("articles.id", ondelete="CASCADE"), nullable=False, index=True)
    component_article_id = Column(Integer, ForeignKey("articles.id"), nullable=False)
    component_qty_retail = Column(Numeric(18, 6), nullable=False)

    kit = relationship("Article", foreign_keys=[kit_article_id], back_populates="kit_components")
    component = relationship("Article", foreign_keys=[component_article_id])

    __table_args__ = (
        UniqueConstraint("kit_article_id", "component_article_id", name="uq_article_kit_component"),
        CheckConstraint("component_qty_retail > 0", name="ck_article_kits_qty"),
    )


class ArticleWarehouse(Base, TimestampMixin):
    __tablename__ = "article_warehouses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    article_id = Column(Integer, ForeignKey("articles.id", ondelete="CASCADE"), nullable=False, index=True)
    warehouse_id = Column(Integer, ForeignKey("warehouses.id"), nullable=False, index=True)
    is_primary = Column(Boolean, nullable=False, default=False)

    article = relationship("Article")
    warehouse = relationship("Warehouse")

    __table_args__ = (
        UniqueConstraint("article_id", "warehouse_id", name="uq_article_warehouse"),
    )
