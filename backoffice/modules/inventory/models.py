"""
Modelos del motor de inventario

- WarehouseStock: existencias por artículo y almacén (en detalle y almacenamiento)
- InventoryTransaction: documento (folio) de compra, consumo, ajuste o traspaso
- InventoryTransactionEntry: línea capturada por el usuario
- InventoryMovement: efecto real sobre existencias; un kit genera un movimiento
  por componente con source_kit_article_id apuntando al kit
"""

from backoffice.database.database import Base
from sqlalchemy import (
    Column, Integer, String, Text, DateTime, ForeignKey, Numeric, Enum,
    UniqueConstraint, CheckConstraint
)
from sqlalchemy.orm import relationship
from backoffice.common.mixins import TimestampMixin
import enum


class TransactionType(str, enum.Enum):
    PURCHASE = "PURCHASE"
    CONSUMPTION = "CONSUMPTION"
    ADJUSTMENT = "ADJUSTMENT"
    TRANSFER = "TRANSFER"


class TransactionStatus(str, enum.Enum):
    PENDIENTE = "PENDIENTE"
    PARCIAL = "PARCIAL"
    PAGADA = "PAGADA"
    CONFIRMADO = "CONFIRMADO"


class MovementDirection(str, enum.Enum):
    IN = "IN"
    OUT = "OUT"


class InventoryUnit(str, enum.Enum):
    STORAGE = "STORAGE"
    RETAIL = "RETAIL"


class WarehouseStock(Base, TimestampMixin):
    __tablename__ = "warehouse_stock"

    id = Column(Integer, primary_key=True, autoincrement=True)
    article_id = Column(Integer, ForeignKey("articles.id", ondelete="CASCADE"), nullable=False, index=True)
    warehouse_id = Column(Integer, ForeignKey("warehouses.id"), nullable=False, index=True)
    quantity_retail = Column(Numeric(18, 6), nullable=False, default=0)
    quantity_storage = Column(Numeric(18, 6), nullable=False, default=0)

    article = relationship("Article")
    warehouse = relationship("Warehouse")

    __table_args__ = (
        UniqueConstraint("article_id", "warehouse_id", name="uq_warehouse_stock"),
        CheckConstraint("quantity_retail >= 0", name="ck_warehouse_stock_retail"),
        CheckConstraint("quantity_storage >= 0", name="ck_warehouse_stock_storage"),
    )


class InventoryTransaction(Base, TimestampMixin):
    __tablename__ = "inventory_transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    transaction_code = Column(String(40), nullable=False, unique=True, index=True)
    transaction_type = Column(Enum(TransactionType), nullable=False, index=True)
    warehouse_id = Column(Integer, ForeignKey("warehouses.id"), nullable=False)
    reference = Column(String(120), nullable=True, index=True)
    counterparty_name = Column(String(200), nullable=True)
    status = Column(Enum(TransactionStatus), nullable=False, default=TransactionStatus.CONFIRMADO)
    notes = Column(Text, nullable=True)
    occurred_at = Column(DateTime, nullable=False, index=True)
    authorized_by = Column(String(120), nullable=True)
    created_by = Column(String(120), nullable=True)
    total_amount = Column(Numeric(18, 2), nullable=False, default=0)

    warehouse = relationship("Warehouse")
    entries = relationship(
        "InventoryTransactionEntry",
        back_populates="transaction",
        cascade="all, delete-orphan",
        order_by="InventoryTransactionEntry.id"
    )
    movements = relationship(
        "InventoryMovement",
        back_populates="transaction",
        cascade="all, delete-orphan",
        order_by="InventoryMovement.id"
    )


class InventoryTransactionEntry(Base):
    __tablename__ = "inventory_transaction_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    transaction_id = Column(Integer, ForeignKey("inventory_transactions.id", ondelete="CASCADE"), nullable=False, index=True)
    article_id = Column(Integer, ForeignKey("articles.id"), nullable=False)
    quantity_entered = Column(Numeric(18, 6), nullable=False)
    entered_unit = Column(Enum(InventoryUnit), nullable=False, default=InventoryUnit.RETAIL)
    direction = Column(Enum(MovementDirection), nullable=False)
    unit_conversion_factor = Column(Numeric(18, 6), nullable=True)
    kit_multiplier = Column(Numeric(18, 6), nullable=True)
    cost_per_unit = Column(Numeric(18, 4), nullable=True)
    subtotal = Column(Numeric(18, 2), nullable=True)
    notes = Column(Text, nullable=True)

    transaction = relationship("InventoryTransaction", back_populates="entries")
    article = relationship("Article")
    movements = relationship("InventoryMovement", back_populates="entry", order_by="InventoryMovement.id")


class InventoryMovement(Base):
    __tablename__ = "inventory_movements"

    id = Column(Integer, primary_key=True, autoincrement=True)
    transaction_id = Column(Integer, ForeignKey("inventory_transactions.id", ondelete="CASCADE"), nullable=False, index=True)
    entry_id = Column(Integer, ForeignKey("inventory_transaction_entries.id", ondelete="CASCADE"), nullable=True, index=True)
    article_id = Column(Integer, ForeignKey("articles.id"), nullable=False, index=True)
    direction = Column(Enum(MovementDirection), nullable=False)
    quantity_retail = Column(Numeric(18, 6), nullable=False)
    warehouse_id = Column(Integer, ForeignKey("warehouses.id"), nullable=False, index=True)
    source_kit_article_id = Column(Integer, ForeignKey("articles.id"), nullable=True)

    transaction = relationship("InventoryTransaction", back_populates="movements")
    entry = relationship("InventoryTransactionEntry", back_populates="movements")
    article = relationship("Article", foreign_keys=[article_id])
    source_kit = relationship("Article", foreign_keys=[source_kit_article_id])
    warehouse = relationship("Warehouse")
