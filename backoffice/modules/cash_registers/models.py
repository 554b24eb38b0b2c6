"""
Modelos de cajas

- CashRegister: caja física ligada a un almacén de ventas y a un consecutivo
  de facturas
- CashRegisterUser: cajas que puede operar cada usuario del back office
- CashRegisterSession: apertura/cierre (arqueo) de una caja
- CashRegisterSessionPayment: esperado vs. reportado por método de pago al cierre
"""

from backoffice.database.database import Base
from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, ForeignKey, Numeric, Enum, JSON,
    UniqueConstraint, CheckConstraint
)
from sqlalchemy.orm import relationship
from backoffice.common.mixins import TimestampMixin, ActiveMixin
import enum


class SessionStatus(str, enum.Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class CashRegister(Base, TimestampMixin, ActiveMixin):
    __tablename__ = "cash_registers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(30), nullable=False, unique=True, index=True)
    name = Column(String(120), nullable=False)
    warehouse_id = Column(Integer, ForeignKey("warehouses.id"), nullable=False)
    allow_manual_warehouse_override = Column(Boolean, nullable=False, default=False)
    notes = Column(String(250), nullable=True)
    invoice_sequence_definition_id = Column(Integer, ForeignKey("sequence_definitions.id"), nullable=True)

    warehouse = relationship("Warehouse")
    invoice_sequence = relationship("SequenceDefinition")


class CashRegisterUser(Base, TimestampMixin):
    __tablename__ = "cash_register_users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    cash_register_id = Column(Integer, ForeignKey("cash_registers.id", ondelete="CASCADE"), nullable=False, index=True)
    admin_user_id = Column(Integer, ForeignKey("admin_users.id", ondelete="CASCADE"), nullable=False, index=True)
    is_default = Column(Boolean, nullable=False, default=False)

    cash_register = relationship("CashRegister")

    __table_args__ = (
        UniqueConstraint("cash_register_id", "admin_user_id", name="uq_cash_register_users"),
    )


class CashRegisterSession(Base, TimestampMixin):
    __tablename__ = "cash_register_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    cash_register_id = Column(Integer, ForeignKey("cash_registers.id"), nullable=False, index=True)
    admin_user_id = Column(Integer, ForeignKey("admin_users.id"), nullable=False, index=True)
    status = Column(Enum(SessionStatus), nullable=False, default=SessionStatus.OPEN, index=True)

    # Apertura
    opening_amount = Column(Numeric(18, 2), nullable=False, default=0)
    opening_at = Column(DateTime, nullable=False)
    opening_notes = Column(String(400), nullable=True)
    opening_denominations = Column(JSON, nullable=True)

    # Cierre
    closing_amount = Column(Numeric(18, 2), nullable=True)
    closing_at = Column(DateTime, nullable=True)
    closing_notes = Column(String(400), nullable=True)
    closing_user_id = Column(Integer, ForeignKey("admin_users.id"), nullable=True)
    closing_denominations = Column(JSON, nullable=True)
    totals_snapshot = Column(JSON, nullable=True)

    invoice_sequence_start = Column(String(60), nullable=True)
    invoice_sequence_end = Column(String(60), nullable=True)

    cash_register = relationship("CashRegister")
    payments = relationship(
        "CashRegisterSessionPayment",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="CashRegisterSessionPayment.payment_method"
    )

    __table_args__ = (
        CheckConstraint("opening_amount >= 0", name="ck_cash_sessions_opening_amount"),
    )


class CashRegisterSessionPayment(Base):
    __tablename__ = "cash_register_session_payments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(Integer, ForeignKey("cash_register_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    payment_method = Column(String(30), nullable=False)
    expected_amount = Column(Numeric(18, 2), nullable=False, default=0)
    reported_amount = Column(Numeric(18, 2), nullable=False, default=0)
    difference_amount = Column(Numeric(18, 2), nullable=False, default=0)
    transaction_count = Column(Integer, nullable=False, default=0)

    session = relationship("CashRegisterSession", back_populates="payments")

    __table_args__ = (
        UniqueConstraint("session_id", "payment_method", name="uq_cash_session_payment_method"),
    )
