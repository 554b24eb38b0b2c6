"""
Consecutivos (folios) para facturas y documentos de inventario.

Una definición describe el formato (prefijo, relleno, sufijo). Los contadores
guardan el último valor emitido por ámbito:
- GLOBAL: un único contador por definición (documentos de inventario)
- CASH_REGISTER: un contador por caja (facturas), scope_key = id de la caja
"""

from backoffice.database.database import Base
from sqlalchemy import Column, Integer, String, ForeignKey, Enum, UniqueConstraint, BigInteger
from sqlalchemy.orm import relationship
from backoffice.common.mixins import TimestampMixin, ActiveMixin
import enum


class SequenceScope(str, enum.Enum):
    INVOICE = "INVOICE"
    INVENTORY = "INVENTORY"


class CounterScope(str, enum.Enum):
    GLOBAL = "GLOBAL"
    CASH_REGISTER = "CASH_REGISTER"


class SequenceDefinition(Base, TimestampMixin, ActiveMixin):
    __tablename__ = "sequence_definitions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(40), nullable=False, unique=True, index=True)
    name = Column(String(120), nullable=False)
    scope = Column(Enum(SequenceScope), nullable=False)
    prefix = Column(String(20), nullable=False, default="")
    suffix = Column(String(20), nullable=False, default="")
    padding = Column(Integer, nullable=False, default=6)
    start_value = Column(BigInteger, nullable=False, default=1)
    step = Column(Integer, nullable=False, default=1)

    counters = relationship("SequenceCounter", back_populates="definition", cascade="all, delete-orphan")


class SequenceCounter(Base, TimestampMixin):
    __tablename__ = "sequence_counters"

    id = Column(Integer, primary_key=True, autoincrement=True)
    definition_id = Column(Integer, ForeignKey("sequence_definitions.id", ondelete="CASCADE"), nullable=False)
    scope_type = Column(Enum(CounterScope), nullable=False, default=CounterScope.GLOBAL)
    scope_key = Column(String(60), nullable=False, default="")
    current_value = Column(BigInteger, nullable=False)

    definition = relationship("SequenceDefinition", back_populates="counters")

    __table_args__ = (
        UniqueConstraint("definition_id", "scope_type", "scope_key", name="uq_sequence_counter_scope"),
    )


class InventorySequenceSetting(Base, TimestampMixin):
    __tablename__ = "inventory_sequence_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    transaction_type = Column(String(20), nullable=False, unique=True)
    definition_id = Column(Integer, ForeignKey("sequence_definitions.id"), nullable=False)

    definition = relationship("SequenceDefinition")
