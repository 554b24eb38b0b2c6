"""
Mesas del restaurante

- TableZone: agrupación (salón, terraza, barra); id derivado del nombre
- DiningTable: definición de la mesa; id es el código visible (MESA-1)
- TableState: estado operativo de la comanda del mesero (JSON de líneas)
- TableReservation: reservación activa (holding) o comensales sentados (seated)
"""

from backoffice.database.database import Base
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Enum, JSON, CheckConstraint
from sqlalchemy.orm import relationship
from backoffice.common.mixins import TimestampMixin, ActiveMixin
import enum


class TableStatus(str, enum.Enum):
    NORMAL = "normal"
    FACTURADO = "facturado"
    ANULADO = "anulado"


class ReservationStatus(str, enum.Enum):
    HOLDING = "holding"
    SEATED = "seated"


class TableZone(Base, TimestampMixin, ActiveMixin):
    __tablename__ = "table_zones"

    id = Column(String(60), primary_key=True)
    name = Column(String(120), nullable=False, unique=True)
    sort_order = Column(Integer, nullable=False, default=0)


class DiningTable(Base, TimestampMixin, ActiveMixin):
    __tablename__ = "dining_tables"

    id = Column(String(40), primary_key=True)
    label = Column(String(120), nullable=False)
    zone_id = Column(String(60), ForeignKey("table_zones.id"), nullable=True)
    capacity = Column(Integer, nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)

    zone = relationship("TableZone")
    state = relationship("TableState", uselist=False, back_populates="table", cascade="all, delete-orphan")
    reservation = relationship("TableReservation", uselist=False, back_populates="table", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("capacity IS NULL OR capacity > 0", name="ck_dining_tables_capacity"),
    )


class TableState(Base):
    __tablename__ = "table_state"

    table_id = Column(String(40), ForeignKey("dining_tables.id", ondelete="CASCADE"), primary_key=True)
    assigned_waiter_id = Column(Integer, ForeignKey("waiters.id"), nullable=True)
    assigned_waiter_name = Column(String(160), nullable=True)
    status = Column(Enum(TableStatus, values_callable=lambda e: [m.value for m in e]), nullable=False, default=TableStatus.NORMAL)
    pending_items = Column(JSON, nullable=False, default=list)
    sent_items = Column(JSON, nullable=False, default=list)
    updated_at = Column(DateTime, nullable=True)

    table = relationship("DiningTable", back_populates="state")


class TableReservation(Base, TimestampMixin):
    __tablename__ = "table_reservations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    table_id = Column(String(40), ForeignKey("dining_tables.id", ondelete="CASCADE"), nullable=False, unique=True)
    status = Column(Enum(ReservationStatus, values_callable=lambda e: [m.value for m in e]), nullable=False, default=ReservationStatus.HOLDING)
    reserved_by = Column(String(160), nullable=False)
    contact_name = Column(String(160), nullable=True)
    contact_phone = Column(String(40), nullable=True)
    party_size = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)
    scheduled_for = Column(String(40), nullable=True)

    table = relationship("DiningTable", back_populates="reservation")
