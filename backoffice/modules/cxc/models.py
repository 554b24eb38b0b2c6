"""
Modelos de cuentas por cobrar (CxC)

- PaymentTerm: condición de pago (días de crédito + días de gracia)
- Customer: cliente con línea de crédito
- CustomerDocument: facturas, notas, recibos, retenciones y ajustes con saldo
- CustomerDocumentApplication: aplicación de un documento de crédito a uno de
  débito (ej. recibo contra factura)
- CustomerCreditLine: historial de líneas de crédito aprobadas
- CustomerDispute: disputas sobre el saldo o un documento
- CollectionLog: gestiones de cobro (llamadas, visitas, promesas de pago)
"""

from backoffice.database.database import Base
from sqlalchemy import (
    Column, Integer, String, Date, DateTime, ForeignKey, Numeric, Enum, Text, UniqueConstraint, CheckConstraint
)
from sqlalchemy.orm import relationship
from backoffice.common.mixins import TimestampMixin, ActiveMixin
import enum


class CreditStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    ON_HOLD = "ON_HOLD"
    BLOCKED = "BLOCKED"


class CreditLineStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    BLOCKED = "BLOCKED"


class DisputeStatus(str, enum.Enum):
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"


class DocumentType(str, enum.Enum):
    INVOICE = "INVOICE"
    CREDIT_NOTE = "CREDIT_NOTE"
    DEBIT_NOTE = "DEBIT_NOTE"
    RECEIPT = "RECEIPT"
    RETENTION = "RETENTION"
    ADJUSTMENT = "ADJUSTMENT"


class DocumentStatus(str, enum.Enum):
    PENDIENTE = "PENDIENTE"
    PAGADO = "PAGADO"
    CANCELADO = "CANCELADO"
    BORRADOR = "BORRADOR"


# Documentos que aumentan la deuda del cliente; el resto la disminuyen
DEBIT_DOCUMENT_TYPES = (DocumentType.INVOICE, DocumentType.DEBIT_NOTE)


class PaymentTerm(Base, TimestampMixin, ActiveMixin):
    __tablename__ = "payment_terms"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(32), nullable=False, unique=True, index=True)
    name = Column(String(120), nullable=False)
    description = Column(String(250), nullable=True)
    days = Column(Integer, nullable=False, default=0)
    grace_days = Column(Integer, nullable=True)

    __table_args__ = (
        CheckConstraint("days >= 0", name="ck_payment_terms_days"),
    )


class Customer(Base, TimestampMixin, ActiveMixin):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(40), nullable=False, unique=True, index=True)
    name = Column(String(200), nullable=False, index=True)
    trade_name = Column(String(200), nullable=True)
    tax_id = Column(String(40), nullable=True, index=True)
    email = Column(String(150), nullable=True)
    phone = Column(String(40), nullable=True)
    payment_term_id = Column(Integer, ForeignKey("payment_terms.id"), nullable=True)

    # Credit line
    credit_limit = Column(Numeric(18, 2), nullable=False, default=0)
    credit_used = Column(Numeric(18, 2), nullable=False, default=0)
    credit_on_hold = Column(Numeric(18, 2), nullable=False, default=0)
    credit_status = Column(Enum(CreditStatus), nullable=False, default=CreditStatus.ACTIVE)
    credit_hold_reason = Column(String(250), nullable=True)
    last_credit_review_at = Column(DateTime, nullable=True)
    next_credit_review_at = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)

    payment_term = relationship("PaymentTerm")


class CustomerDocument(Base, TimestampMixin):
    __tablename__ = "customer_documents"

    id = Column(Integer, primary_key=True, autoincrement=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    payment_term_id = Column(Integer, ForeignKey("payment_terms.id"), nullable=True)
    related_invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=True, index=True)
    document_type = Column(Enum(DocumentType), nullable=False, index=True)
    document_number = Column(String(60), nullable=False)
    document_date = Column(Date, nullable=False, index=True)
    due_date = Column(Date, nullable=True, index=True)
    currency_code = Column(String(3), nullable=False)
    original_amount = Column(Numeric(18, 2), nullable=False)
    balance_amount = Column(Numeric(18, 2), nullable=False)
    status = Column(Enum(DocumentStatus), nullable=False, default=DocumentStatus.PENDIENTE, index=True)
    reference = Column(String(120), nullable=True)
    notes = Column(Text, nullable=True)

    customer = relationship("Customer")
    payment_term = relationship("PaymentTerm")

    __table_args__ = (
        UniqueConstraint("document_type", "document_number", name="uq_customer_documents_type_number"),
        CheckConstraint("original_amount > 0", name="ck_customer_documents_amount"),
    )

    @property
    def is_debit(self) -> bool:
        return self.document_type in DEBIT_DOCUMENT_TYPES


class CustomerDocumentApplication(Base, TimestampMixin):
    __tablename__ = "customer_document_applications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    applied_document_id = Column(Integer, ForeignKey("customer_documents.id"), nullable=False, index=True)
    target_document_id = Column(Integer, ForeignKey("customer_documents.id"), nullable=False, index=True)
    amount = Column(Numeric(18, 2), nullable=False)
    application_date = Column(Date, nullable=False)
    reference = Column(String(120), nullable=True)
    notes = Column(Text, nullable=True)

    applied_document = relationship("CustomerDocument", foreign_keys=[applied_document_id])
    target_document = relationship("CustomerDocument", foreign_keys=[target_document_id])

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_customer_document_applications_amount"),
    )


class CustomerCreditLine(Base, TimestampMixin):
    __tablename__ = "customer_credit_lines"

    id = Column(Integer, primary_key=True, autoincrement=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    status = Column(Enum(CreditLineStatus), nullable=False, default=CreditLineStatus.ACTIVE)
    approved_limit = Column(Numeric(18, 2), nullable=False)
    available_limit = Column(Numeric(18, 2), nullable=False, default=0)
    blocked_amount = Column(Numeric(18, 2), nullable=False, default=0)
    reviewer_admin_user_id = Column(Integer, ForeignKey("admin_users.id"), nullable=True)
    review_notes = Column(Text, nullable=True)
    reviewed_at = Column(DateTime, nullable=False)
    next_review_at = Column(DateTime, nullable=True)

    customer = relationship("Customer")

    __table_args__ = (
        CheckConstraint("approved_limit > 0", name="ck_customer_credit_lines_limit"),
    )


class CustomerDispute(Base, TimestampMixin):
    __tablename__ = "customer_disputes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    document_id = Column(Integer, ForeignKey("customer_documents.id"), nullable=True, index=True)
    dispute_code = Column(String(60), nullable=True)
    description = Column(String(600), nullable=True)
    status = Column(Enum(DisputeStatus), nullable=False, default=DisputeStatus.OPEN, index=True)
    resolution_notes = Column(String(600), nullable=True)
    resolved_at = Column(DateTime, nullable=True)
    created_by = Column(Integer, ForeignKey("admin_users.id"), nullable=True)

    customer = relationship("Customer")
    document = relationship("CustomerDocument")


class CollectionLog(Base, TimestampMixin):
    __tablename__ = "collection_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    document_id = Column(Integer, ForeignKey("customer_documents.id"), nullable=True, index=True)
    contact_method = Column(String(120), nullable=True)
    contact_name = Column(String(160), nullable=True)
    notes = Column(String(512), nullable=True)
    outcome = Column(String(240), nullable=True)
    follow_up_at = Column(DateTime, nullable=True)
    created_by = Column(Integer, ForeignKey("admin_users.id"), nullable=True)

    customer = relationship("Customer")
    document = relationship("CustomerDocument")
