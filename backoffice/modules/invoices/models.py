from backoffice.database.database import Base
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Numeric, Enum, Text
from sqlalchemy.orm import relationship
from backoffice.common.mixins import TimestampMixin
import enum


class InvoiceStatus(str, enum.Enum):
    FACTURADA = "FACTURADA"  # Emitida, afecta inventario
    ANULADA = "ANULADA"      # Anulada, movimientos revertidos


class PaymentMethod(str, enum.Enum):
    CASH = "CASH"           # Efectivo
    CARD = "CARD"           # Tarjeta
    TRANSFER = "TRANSFER"   # Transferencia
    OTHER = "OTHER"         # Otro


class Invoice(Base, TimestampMixin):
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, autoincrement=True)
    invoice_number = Column(String(60), nullable=False, unique=True, index=True)
    table_code = Column(String(40), nullable=True)
    waiter_code = Column(String(50), nullable=True)
    invoice_date = Column(DateTime, nullable=False, index=True)
    origin_order_id = Column(Integer, ForeignKey("orders.id", ondelete="SET NULL"), nullable=True)

    # Totals
    subtotal = Column(Numeric(18, 2), nullable=False, default=0)
    service_charge = Column(Numeric(18, 2), nullable=False, default=0)
    vat_amount = Column(Numeric(18, 2), nullable=False, default=0)
    vat_rate = Column(Numeric(9, 4), nullable=False, default=0)
    total_amount = Column(Numeric(18, 2), nullable=False, default=0)
    currency_code = Column(String(3), nullable=False)

    # Customer snapshot
    customer_name = Column(String(150), nullable=True)
    customer_tax_id = Column(String(40), nullable=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True, index=True)
    notes = Column(Text, nullable=True)

    # Issuer
    cash_register_id = Column(Integer, ForeignKey("cash_registers.id"), nullable=True, index=True)
    cash_register_session_id = Column(Integer, ForeignKey("cash_register_sessions.id"), nullable=True, index=True)
    issuer_admin_user_id = Column(Integer, ForeignKey("admin_users.id"), nullable=True)

    status = Column(Enum(InvoiceStatus), nullable=False, default=InvoiceStatus.FACTURADA, index=True)
    cancelled_at = Column(DateTime, nullable=True)

    items = relationship(
        "InvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.line_number"
    )
    payments = relationship(
        "InvoicePayment",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoicePayment.id"
    )
    cash_register = relationship("CashRegister")
    customer = relationship("Customer")

    @property
    def paid_amount(self):
        """Suma de pagos registrados"""
        return sum(payment.amount for payment in self.payments)

    @property
    def balance_due(self):
        return self.total_amount - self.paid_amount


class InvoiceItem(Base):
    __tablename__ = "invoice_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    line_number = Column(Integer, nullable=False)
    article_code = Column(String(40), nullable=True, index=True)
    description = Column(String(200), nullable=False)
    quantity = Column(Numeric(18, 3), nullable=False)
    unit_price = Column(Numeric(18, 2), nullable=False)
    line_total = Column(Numeric(18, 2), nullable=False)  # quantity * unit_price

    invoice = relationship("Invoice", back_populates="items")


class InvoicePayment(Base):
    __tablename__ = "invoice_payments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    payment_method = Column(Enum(PaymentMethod), nullable=False)
    amount = Column(Numeric(18, 2), nullable=False)
    reference = Column(String(100), nullable=True)  # Voucher, número de transferencia, etc.

    invoice = relationship("Invoice", back_populates="payments")
