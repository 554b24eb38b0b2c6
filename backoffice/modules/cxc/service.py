"""
Servicios de cuentas por cobrar (CxC)

- PaymentTermService: condiciones de pago y cálculo de vencimientos
- CustomerService: clientes y uso de su línea de crédito
- CustomerDocumentService: documentos con saldo (facturas, notas, recibos...)
- DocumentApplicationService: aplicación de documentos de crédito contra
  documentos de débito
- CreditLineService: asignación y revisión de líneas de crédito
- DisputeService y CollectionLogService: disputas y gestiones de cobro
"""
from typing import List, Optional, Dict, Iterable
from datetime import date, timedelta
from decimal import Decimal
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import func, or_
from fastapi import HTTPException, status
import logging

from backoffice.core.config import settings
from backoffice.common.utils import utcnow, to_naive_utc, business_date, round_money, to_decimal
from backoffice.common.validators import normalize_code, normalize_optional_code, clean_text
from backoffice.modules.cxc.models import (
    PaymentTerm, Customer, CustomerDocument, CustomerDocumentApplication, CustomerCreditLine,
    CustomerDispute, CollectionLog, CreditStatus, CreditLineStatus, DisputeStatus,
    DocumentType, DocumentStatus, DEBIT_DOCUMENT_TYPES
)
from backoffice.modules.cxc.schemas import (
    PaymentTermCreate, PaymentTermUpdate, CustomerCreate, CustomerUpdate, CustomerOut,
    DocumentCreate, DocumentOut, ApplicationInput, ApplicationOut, CreditLineAssign, CreditLineUpdate,
    CreditLineOut, CreditLineResult, CreditOverviewOut, CreditStatusUpdate, DisputeCreate, DisputeUpdate,
    CollectionLogCreate
)

logger = logging.getLogger(__name__)

DEFAULT_PAYMENT_TERMS = [
    ("CONTADO", "Contado", 0),
    ("PT-15", "Crédito 15 días", 15),
    ("PT-30", "Crédito 30 días", 30),
    ("PT-60", "Crédito 60 días", 60),
    ("PT-90", "Crédito 90 días", 90),
    ("PT-120", "Crédito 120 días", 120),
]

# Orden en que se aplican los documentos de un mismo lote
APPLICATION_PRIORITY = {
    DocumentType.RETENTION: 0,
    DocumentType.CREDIT_NOTE: 1,
    DocumentType.ADJUSTMENT: 2,
    DocumentType.RECEIPT: 3,
    DocumentType.DEBIT_NOTE: 4,
    DocumentType.INVOICE: 5,
}

BALANCE_TOLERANCE = Decimal("0.0001")


def seed_payment_terms(db: Session) -> int:
    """Crea las condiciones de pago base que falten. Devuelve cuántas creó."""
    existing = {code for (code,) in db.query(PaymentTerm.code).all()}
    created = 0
    for code, name, days in DEFAULT_PAYMENT_TERMS:
        if code in existing:
            continue
        db.add(PaymentTerm(code=code, name=name, days=days, is_active=True))
        created += 1
    if created:
        db.commit()
        logger.info(f"Condiciones de pago creadas: {created}")
    return created


def calculate_due_date(base: date, term: Optional[PaymentTerm]) -> date:
    if term is None:
        return base
    return base + timedelta(days=(term.days or 0) + (term.grace_days or 0))


class PaymentTermService:
    def __init__(self, db: Session):
        self.db = db

    def list_terms(self, include_inactive: bool = False) -> List[PaymentTerm]:
        query = self.db.query(PaymentTerm)
        if not include_inactive:
            query = query.filter(PaymentTerm.is_active == True)
        return query.order_by(PaymentTerm.days, PaymentTerm.code).all()

    def get_by_code(self, code: Optional[str]) -> Optional[PaymentTerm]:
        normalized = normalize_code(code)
        if not normalized:
            return None
        return self.db.query(PaymentTerm).filter(PaymentTerm.code == normalized).first()

    def get_by_code_or_404(self, code: str) -> PaymentTerm:
        term = self.get_by_code(code)
        if not term:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"La condición {normalize_code(code)} no existe"
            )
        return term

    def resolve(self, code: Optional[str]) -> Optional[PaymentTerm]:
        """Condición indicada por código; 400 si el código no existe."""
        if not normalize_code(code):
            return None
        term = self.get_by_code(code)
        if not term:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="La condición de pago indicada no existe"
            )
        return term

    def create_term(self, data: PaymentTermCreate) -> PaymentTerm:
        code = normalize_code(data.code)
        if self.get_by_code(code):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Ya existe una condición de pago con el código {code}"
            )
        term = PaymentTerm(
            code=code,
            name=data.name.strip(),
            description=clean_text(data.description, 250),
            days=data.days,
            grace_days=data.grace_days,
            is_active=data.is_active
        )
        self.db.add(term)
        self.db.commit()
        self.db.refresh(term)
        return term

    def update_term(self, code: str, data: PaymentTermUpdate) -> PaymentTerm:
        term = self.get_by_code_or_404(code)
        fields = data.model_dump(exclude_unset=True)
        if data.name is not None:
            term.name = data.name.strip()
        if "description" in fields:
            term.description = clean_text(data.description, 250)
        if data.days is not None:
            term.days = data.days
        if "grace_days" in fields:
            term.grace_days = data.grace_days
        if data.is_active is not None:
            term.is_active = data.is_active
        self.db.commit()
        self.db.refresh(term)
        return term

    def delete_term(self, code: str) -> None:
        term = self.get_by_code_or_404(code)
        in_use = self.db.query(Customer.id).filter(Customer.payment_term_id == term.id).first()
        if in_use:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="No se puede eliminar la condición porque hay clientes asociados"
            )
        self.db.query(CustomerDocument).filter(CustomerDocument.payment_term_id == term.id).update(
            {CustomerDocument.payment_term_id: None}, synchronize_session=False
        )
        self.db.delete(term)
        self.db.commit()


class CustomerService:
    def __init__(self, db: Session):
        self.db = db
        self.terms = PaymentTermService(db)

    def _query(self):
        return self.db.query(Customer).options(joinedload(Customer.payment_term))

    def list_customers(self, search: Optional[str] = None, include_inactive: bool = False, limit: int = 100) -> List[CustomerOut]:
        query = self._query()
        if not include_inactive:
            query = query.filter(Customer.is_active == True)
        if search and search.strip():
            term = f"%{search.strip()}%"
            query = query.filter(or_(
                Customer.code.ilike(term),
                Customer.name.ilike(term),
                Customer.trade_name.ilike(term),
                Customer.tax_id.ilike(term)
            ))
        limit = max(1, min(limit or 100, 500))
        return [self.to_output(c) for c in query.order_by(Customer.name).limit(limit).all()]

    def get_by_code(self, code: Optional[str]) -> Optional[Customer]:
        normalized = normalize_code(code)
        if not normalized:
            return None
        return self._query().filter(Customer.code == normalized).first()

    def get_by_code_or_404(self, code: str) -> Customer:
        customer = self.get_by_code(code)
        if not customer:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"El cliente {normalize_code(code)} no existe"
            )
        return customer

    def get_by_id(self, customer_id: int) -> Optional[Customer]:
        return self._query().filter(Customer.id == customer_id).first()

    def create_customer(self, data: CustomerCreate) -> CustomerOut:
        code = normalize_code(data.code)
        name = data.name.strip()
        if not code or not name:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="El código y nombre del cliente son obligatorios"
            )
        if self.get_by_code(code):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Ya existe un cliente con el código {code}"
            )
        term = self.terms.resolve(data.payment_term_code)
        customer = Customer(
            code=code,
            name=name,
            trade_name=clean_text(data.trade_name, 200),
            tax_id=clean_text(data.tax_id, 40),
            email=clean_text(data.email, 150),
            phone=clean_text(data.phone, 40),
            payment_term_id=term.id if term else None,
            credit_limit=round_money(data.credit_limit),
            credit_used=Decimal("0"),
            credit_on_hold=Decimal("0"),
            credit_status=data.credit_status,
            notes=clean_text(data.notes)
        )
        self.db.add(customer)
        self.db.commit()
        logger.info(f"Cliente creado: {code}")
        return self.to_output(self.get_by_code_or_404(code))

    def update_customer(self, code: str, data: CustomerUpdate) -> CustomerOut:
        customer = self.get_by_code_or_404(code)
        fields = data.model_dump(exclude_unset=True)
        if data.name is not None:
            customer.name = data.name.strip()
        for field, length in (("trade_name", 200), ("tax_id", 40), ("email", 150), ("phone", 40)):
            if field in fields:
                setattr(customer, field, clean_text(fields[field], length))
        if "payment_term_code" in fields:
            term = self.terms.resolve(data.payment_term_code)
            customer.payment_term_id = term.id if term else None
        if data.credit_limit is not None:
            customer.credit_limit = round_money(data.credit_limit)
        if data.credit_on_hold is not None:
            customer.credit_on_hold = round_money(data.credit_on_hold)
        if data.credit_status is not None:
            customer.credit_status = data.credit_status
        if data.is_active is not None:
            customer.is_active = data.is_active
        if "notes" in fields:
            customer.notes = clean_text(data.notes)
        self.db.commit()
        self.db.expire(customer)
        return self.to_output(self.get_by_code_or_404(customer.code))

    def sync_credit_usage(self, customer_id: int) -> Optional[Customer]:
        """credit_used = saldo de facturas y notas de débito pendientes. No hace commit."""
        customer = self.db.get(Customer, customer_id)
        if customer is None:
            return None
        self.db.flush()
        used = self.db.query(func.coalesce(func.sum(CustomerDocument.balance_amount), 0)).filter(
            CustomerDocument.customer_id == customer_id,
            CustomerDocument.status == DocumentStatus.PENDIENTE,
            CustomerDocument.document_type.in_(DEBIT_DOCUMENT_TYPES)
        ).scalar()
        customer.credit_used = round_money(used or 0)
        return customer

    def to_output(self, customer: Customer) -> CustomerOut:
        limit = to_decimal(customer.credit_limit)
        used = to_decimal(customer.credit_used)
        on_hold = to_decimal(customer.credit_on_hold)
        return CustomerOut(
            id=customer.id,
            code=customer.code,
            name=customer.name,
            trade_name=customer.trade_name,
            tax_id=customer.tax_id,
            email=customer.email,
            phone=customer.phone,
            payment_term_code=customer.payment_term.code if customer.payment_term else None,
            credit_limit=round_money(limit),
            credit_used=round_money(used),
            credit_on_hold=round_money(on_hold),
            credit_available=round_money(max(limit - used - on_hold, Decimal("0"))),
            credit_status=customer.credit_status,
            credit_hold_reason=customer.credit_hold_reason,
            last_credit_review_at=customer.last_credit_review_at,
            next_credit_review_at=customer.next_credit_review_at,
            is_active=customer.is_active,
            notes=customer.notes,
            created_at=customer.created_at,
            updated_at=customer.updated_at
        )


class CustomerDocumentService:
    def __init__(self, db: Session):
        self.db = db
        self.customers = CustomerService(db)
        self.terms = PaymentTermService(db)

    def _query(self):
        return self.db.query(CustomerDocument).options(
            joinedload(CustomerDocument.customer),
            joinedload(CustomerDocument.payment_term)
        )

    def get_document(self, document_id: int) -> Optional[CustomerDocument]:
        return self._query().filter(CustomerDocument.id == document_id).first()

    def get_document_or_404(self, document_id: int) -> CustomerDocument:
        document = self.get_document(document_id)
        if not document:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="El documento indicado no existe"
            )
        return document

    def get_by_invoice_id(self, invoice_id: int) -> Optional[CustomerDocument]:
        return self._query().filter(CustomerDocument.related_invoice_id == invoice_id).first()

    def create_document(
        self,
        data: DocumentCreate,
        related_invoice_id: Optional[int] = None,
        commit: bool = True
    ) -> DocumentOut:
        """
        Registrar un documento.

        Vencimiento: el indicado; si no, fecha del documento + condición de
        pago (del documento o del cliente); si no, la fecha del documento.
        """
        original = round_money(data.original_amount)
        if original <= 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="El monto del documento debe ser mayor a cero"
            )
        customer = self.customers.get_by_code_or_404(data.customer_code)
        number = data.document_number.strip()
        duplicate = self.db.query(CustomerDocument.id).filter(
            CustomerDocument.document_type == data.document_type,
            CustomerDocument.document_number == number
        ).first()
        if duplicate:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Ya existe un documento {data.document_type.value} con el número {number}"
            )

        term = self.terms.resolve(data.payment_term_code) or customer.payment_term
        document_date = data.document_date or business_date(utcnow())
        if data.due_date is not None:
            due_date = data.due_date
        else:
            due_date = calculate_due_date(document_date, term)

        balance = round_money(data.balance_amount) if data.balance_amount is not None else original
        if data.status is not None:
            doc_status = data.status
        else:
            doc_status = DocumentStatus.PAGADO if balance <= 0 else DocumentStatus.PENDIENTE

        document = CustomerDocument(
            customer_id=customer.id,
            payment_term_id=term.id if term else None,
            related_invoice_id=related_invoice_id,
            document_type=data.document_type,
            document_number=number,
            document_date=document_date,
            due_date=due_date,
            currency_code=normalize_optional_code(data.currency_code) or settings.LOCAL_CURRENCY_CODE,
            original_amount=original,
            balance_amount=balance,
            status=doc_status,
            reference=clean_text(data.reference, 120),
            notes=clean_text(data.notes)
        )
        self.db.add(document)
        self.db.flush()
        self.customers.sync_credit_usage(customer.id)
        if commit:
            self.db.commit()
        logger.info(f"Documento CxC registrado: {data.document_type.value} {number} ({customer.code})")
        return self.to_output(document)

    def list_documents(
        self,
        customer_code: Optional[str] = None,
        types: Optional[Iterable[DocumentType]] = None,
        statuses: Optional[Iterable[DocumentStatus]] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        search: Optional[str] = None,
        include_settled: bool = False,
        order_by: str = "document_date",
        order_direction: str = "desc",
        limit: Optional[int] = None
    ) -> List[DocumentOut]:
        query = self._query()
        if customer_code:
            customer = self.customers.get_by_code_or_404(customer_code)
            query = query.filter(CustomerDocument.customer_id == customer.id)
        if not include_settled:
            query = query.filter(CustomerDocument.status != DocumentStatus.PAGADO)
        types = list(types or [])
        if types:
            query = query.filter(CustomerDocument.document_type.in_(types))
        statuses = list(statuses or [])
        if statuses:
            query = query.filter(CustomerDocument.status.in_(statuses))
        if date_from:
            query = query.filter(CustomerDocument.document_date >= date_from)
        if date_to:
            query = query.filter(CustomerDocument.document_date <= date_to)
        if search and search.strip():
            term = f"%{search.strip()}%"
            query = query.filter(or_(
                CustomerDocument.document_number.ilike(term),
                CustomerDocument.reference.ilike(term),
                CustomerDocument.notes.ilike(term)
            ))

        column = {
            "due_date": CustomerDocument.due_date,
            "created_at": CustomerDocument.created_at,
        }.get(order_by, CustomerDocument.document_date)
        ordering = column.asc() if order_direction == "asc" else column.desc()
        query = query.order_by(ordering, CustomerDocument.id)
        if limit and limit > 0:
            query = query.limit(limit)
        return [self.to_output(doc) for doc in query.all()]

    def _has_applications(self, document_id: int) -> bool:
        return self.db.query(CustomerDocumentApplication.id).filter(or_(
            CustomerDocumentApplication.applied_document_id == document_id,
            CustomerDocumentApplication.target_document_id == document_id
        )).first() is not None

    def cancel_document(self, document_id: int) -> DocumentOut:
        """Anular un documento sin aplicaciones que no provenga de facturación."""
        document = self.get_document_or_404(document_id)
        if document.related_invoice_id:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Este documento proviene del módulo de facturación. Debes anularlo desde su módulo de origen."
            )
        if self._has_applications(document.id):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="No puedes anular un documento con aplicaciones activas. Reviértelas antes de continuar."
            )
        if document.status != DocumentStatus.CANCELADO:
            self._mark_cancelled(document)
            self.db.commit()
            logger.info(f"Documento CxC anulado: {document.document_type.value} {document.document_number}")
        return self.to_output(document)

    def cancel_invoice_document(self, invoice_id: int) -> Optional[CustomerDocument]:
        """Anula el documento de una factura anulada, si no tiene aplicaciones. No hace commit."""
        document = self.get_by_invoice_id(invoice_id)
        if document is None or document.status == DocumentStatus.CANCELADO:
            return document
        if self._has_applications(document.id):
            logger.warning(
                f"Documento {document.document_number} de la factura {invoice_id} tiene aplicaciones; se conserva"
            )
            return document
        self._mark_cancelled(document)
        return document

    def _mark_cancelled(self, document: CustomerDocument) -> None:
        document.status = DocumentStatus.CANCELADO
        document.balance_amount = Decimal("0")
        self.customers.sync_credit_usage(document.customer_id)

    def to_output(self, document: CustomerDocument) -> DocumentOut:
        return DocumentOut(
            id=document.id,
            customer_id=document.customer_id,
            customer_code=document.customer.code,
            customer_name=document.customer.name,
            document_type=document.document_type,
            document_number=document.document_number,
            document_date=document.document_date,
            due_date=document.due_date,
            payment_term_code=document.payment_term.code if document.payment_term else None,
            related_invoice_id=document.related_invoice_id,
            currency_code=document.currency_code,
            original_amount=document.original_amount,
            balance_amount=document.balance_amount,
            status=document.status,
            reference=document.reference,
            notes=document.notes,
            created_at=document.created_at
        )


class DocumentApplicationService:
    def __init__(self, db: Session):
        self.db = db
        self.customers = CustomerService(db)

    def _load(self, document_id: int, role: str) -> CustomerDocument:
        document = self.db.get(CustomerDocument, document_id)
        if not document:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"El documento {role} {document_id} no existe"
            )
        return document

    def _validate(self, applied: CustomerDocument, target: CustomerDocument, amount: Decimal) -> None:
        if amount <= 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="El monto aplicado debe ser mayor a cero"
            )
        if applied.customer_id != target.customer_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Los documentos deben pertenecer al mismo cliente"
            )
        if target.status == DocumentStatus.PAGADO:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="El documento objetivo ya está pagado"
            )
        if amount > to_decimal(applied.balance_amount) + BALANCE_TOLERANCE:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="El monto excede el saldo disponible del documento aplicado"
            )
        if amount > to_decimal(target.balance_amount) + BALANCE_TOLERANCE:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="El monto excede el saldo pendiente del documento objetivo"
            )

    def _reduce_balance(self, document: CustomerDocument, amount: Decimal) -> None:
        balance = round_money(to_decimal(document.balance_amount) - amount)
        document.balance_amount = max(balance, Decimal("0"))
        if document.balance_amount <= 0:
            document.status = DocumentStatus.PAGADO

    def apply_documents(self, inputs: List[ApplicationInput]) -> List[ApplicationOut]:
        """
        Aplica un lote de documentos en una sola transacción.

        Se procesan por prioridad del documento aplicado: retenciones, notas de
        crédito, ajustes, recibos, notas de débito y facturas.
        """
        if not inputs:
            return []
        try:
            applied_docs: Dict[int, CustomerDocument] = {}
            for item in inputs:
                if item.applied_document_id not in applied_docs:
                    applied_docs[item.applied_document_id] = self._load(item.applied_document_id, "aplicado")

            ordered = sorted(
                inputs,
                key=lambda item: APPLICATION_PRIORITY.get(applied_docs[item.applied_document_id].document_type, 99)
            )

            created: List[CustomerDocumentApplication] = []
            customers_to_sync = set()
            for item in ordered:
                applied = applied_docs[item.applied_document_id]
                target = self._load(item.target_document_id, "objetivo")
                amount = round_money(item.amount)
                self._validate(applied, target, amount)

                application = CustomerDocumentApplication(
                    applied_document_id=applied.id,
                    target_document_id=target.id,
                    amount=amount,
                    application_date=item.application_date or business_date(utcnow()),
                    reference=clean_text(item.reference, 120),
                    notes=clean_text(item.notes)
                )
                self.db.add(application)
                created.append(application)

                self._reduce_balance(applied, amount)
                self._reduce_balance(target, amount)
                customers_to_sync.add(applied.customer_id)
                self.db.flush()

            for customer_id in customers_to_sync:
                self.customers.sync_credit_usage(customer_id)
            self.db.commit()
            logger.info(f"Aplicaciones CxC registradas: {len(created)}")
            return [self.to_output(app) for app in created]
        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error aplicando documentos CxC: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error interno del servidor: {str(e)}"
            )

    def list_applications(
        self,
        applied_document_id: Optional[int] = None,
        target_document_id: Optional[int] = None
    ) -> List[ApplicationOut]:
        query = self.db.query(CustomerDocumentApplication).options(
            joinedload(CustomerDocumentApplication.applied_document),
            joinedload(CustomerDocumentApplication.target_document)
        )
        if applied_document_id is not None:
            query = query.filter(CustomerDocumentApplication.applied_document_id == applied_document_id)
        if target_document_id is not None:
            query = query.filter(CustomerDocumentApplication.target_document_id == target_document_id)
        rows = query.order_by(CustomerDocumentApplication.application_date, CustomerDocumentApplication.id).all()
        return [self.to_output(row) for row in rows]

    def to_output(self, application: CustomerDocumentApplication) -> ApplicationOut:
        return ApplicationOut(
            id=application.id,
            applied_document_id=application.applied_document_id,
            applied_document_number=application.applied_document.document_number if application.applied_document else None,
            target_document_id=application.target_document_id,
            target_document_number=application.target_document.document_number if application.target_document else None,
            amount=application.amount,
            application_date=application.application_date,
            reference=application.reference,
            notes=application.notes,
            created_at=application.created_at
        )


# Estado del cliente que corresponde a cada estado de la línea
LINE_TO_CUSTOMER_STATUS = {
    CreditLineStatus.ACTIVE: CreditStatus.ACTIVE,
    CreditLineStatus.PAUSED: CreditStatus.ON_HOLD,
    CreditLineStatus.BLOCKED: CreditStatus.BLOCKED,
}

# Uso del crédito a partir del cual se advierte al usuario
CREDIT_WARNING_RATIO = Decimal("0.8")


def compute_available(approved_limit, credit_used, blocked_amount) -> Decimal:
    available = to_decimal(approved_limit) - to_decimal(credit_used) - to_decimal(blocked_amount)
    return round_money(max(available, Decimal("0")))


class CreditLineService:
    """
    Líneas de crédito de clientes.

    Cada asignación o revisión queda en el historial y se refleja en el
    cliente: límite, monto retenido, estado de crédito y fechas de revisión.
    """

    def __init__(self, db: Session):
        self.db = db
        self.customers = CustomerService(db)

    def get_line_or_404(self, line_id: int) -> CustomerCreditLine:
        line = self.db.get(CustomerCreditLine, line_id)
        if not line:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="La línea de crédito indicada no existe"
            )
        return line

    def list_lines(self, customer_code: str) -> List[CustomerCreditLine]:
        customer = self.customers.get_by_code_or_404(customer_code)
        return self.db.query(CustomerCreditLine).filter(
            CustomerCreditLine.customer_id == customer.id
        ).order_by(CustomerCreditLine.reviewed_at.desc(), CustomerCreditLine.id.desc()).all()

    def get_overview(self, customer_code: str) -> CreditOverviewOut:
        customer = self.customers.get_by_code_or_404(customer_code)
        lines = [CreditLineOut.model_validate(line) for line in self.list_lines(customer.code)]
        output = self.customers.to_output(customer)

        limit = output.credit_limit
        committed = output.credit_used + output.credit_on_hold
        usage = (committed / limit).quantize(Decimal("0.0001")) if limit > 0 else Decimal("0")
        return CreditOverviewOut(
            customer=output,
            lines=lines,
            latest_line=lines[0] if lines else None,
            available_credit=output.credit_available,
            usage_percentage=usage,
            limit_warning=usage >= CREDIT_WARNING_RATIO,
            is_blocked=customer.credit_status == CreditStatus.BLOCKED
        )

    def _apply_to_customer(
        self,
        customer: Customer,
        line: CustomerCreditLine,
        customer_status: CreditStatus,
        hold_reason: Optional[str]
    ) -> None:
        customer.credit_limit = line.approved_limit
        customer.credit_on_hold = line.blocked_amount
        customer.credit_status = customer_status
        if customer_status == CreditStatus.ACTIVE:
            customer.credit_hold_reason = None
        elif hold_reason:
            customer.credit_hold_reason = hold_reason
        customer.last_credit_review_at = line.reviewed_at
        customer.next_credit_review_at = line.next_review_at

    def _result(self, line: CustomerCreditLine, customer: Customer) -> CreditLineResult:
        self.db.refresh(line)
        return CreditLineResult(
            line=CreditLineOut.model_validate(line),
            customer=self.customers.to_output(self.customers.get_by_code_or_404(customer.code))
        )

    def assign_credit_line(self, data: CreditLineAssign, reviewer_id: Optional[int] = None) -> CreditLineResult:
        """
        Nueva línea de crédito para el cliente.

        Sin monto retenido explícito se conserva el del cliente. El disponible
        se calcula con el saldo pendiente actual si no viene indicado.
        """
        customer = self.customers.get_by_code_or_404(data.customer_code)
        try:
            self.customers.sync_credit_usage(customer.id)
            approved = round_money(data.approved_limit)
            blocked = round_money(data.blocked_amount) if data.blocked_amount is not None else round_money(customer.credit_on_hold)
            if data.available_limit is not None:
                available = round_money(data.available_limit)
            else:
                available = compute_available(approved, customer.credit_used, blocked)

            line = CustomerCreditLine(
                customer_id=customer.id,
                status=data.status,
                approved_limit=approved,
                available_limit=available,
                blocked_amount=blocked,
                reviewer_admin_user_id=reviewer_id,
                review_notes=clean_text(data.review_notes),
                reviewed_at=to_naive_utc(data.reviewed_at) if data.reviewed_at else utcnow(),
                next_review_at=to_naive_utc(data.next_review_at) if data.next_review_at else None
            )
            self.db.add(line)
            self._apply_to_customer(
                customer,
                line,
                data.customer_status or LINE_TO_CUSTOMER_STATUS[data.status],
                clean_text(data.credit_hold_reason, 250)
            )
            self.db.commit()
            logger.info(f"Línea de crédito asignada a {customer.code}: {approved}")
            return self._result(line, customer)
        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error asignando línea de crédito: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error interno del servidor: {str(e)}"
            )

    def update_credit_line(self, line_id: int, data: CreditLineUpdate) -> CreditLineResult:
        """Revisión de una línea existente; los campos omitidos conservan su valor."""
        line = self.get_line_or_404(line_id)
        customer = self.customers.get_by_id(line.customer_id)
        fields = data.model_dump(exclude_unset=True)
        try:
            self.customers.sync_credit_usage(customer.id)
            if data.approved_limit is not None:
                line.approved_limit = round_money(data.approved_limit)
            if data.blocked_amount is not None:
                line.blocked_amount = round_money(data.blocked_amount)
            if data.status is not None:
                line.status = data.status
            if data.available_limit is not None:
                line.available_limit = round_money(data.available_limit)
            else:
                line.available_limit = compute_available(line.approved_limit, customer.credit_used, line.blocked_amount)
            if "review_notes" in fields:
                line.review_notes = clean_text(data.review_notes)
            if data.reviewed_at is not None:
                line.reviewed_at = to_naive_utc(data.reviewed_at)
            if "next_review_at" in fields:
                line.next_review_at = to_naive_utc(data.next_review_at) if data.next_review_at else None

            self._apply_to_customer(
                customer,
                line,
                data.customer_status or LINE_TO_CUSTOMER_STATUS[line.status],
                clean_text(data.credit_hold_reason, 250)
            )
            self.db.commit()
            logger.info(f"Línea de crédito {line.id} actualizada para {customer.code}")
            return self._result(line, customer)
        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error actualizando línea de crédito: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error interno del servidor: {str(e)}"
            )

    def update_credit_status(self, customer_code: str, data: CreditStatusUpdate) -> CustomerOut:
        customer = self.customers.get_by_code_or_404(customer_code)
        customer.credit_status = data.status
        if data.status == CreditStatus.ACTIVE:
            customer.credit_hold_reason = None
        else:
            customer.credit_hold_reason = clean_text(data.credit_hold_reason, 250)
        self.db.commit()
        logger.info(f"Estado de crédito de {customer.code}: {data.status.value}")
        self.db.expire(customer)
        return self.customers.to_output(self.customers.get_by_code_or_404(customer.code))


def resolve_customer_document(
    documents: CustomerDocumentService,
    customer: Customer,
    document_id: Optional[int]
) -> Optional[CustomerDocument]:
    """Documento opcional de una disputa o gestión; debe ser del mismo cliente."""
    if not document_id:
        return None
    document = documents.get_document_or_404(document_id)
    if document.customer_id != customer.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="El documento no pertenece al cliente indicado"
        )
    return document


class DisputeService:
    # Estados en los que la disputa se da por terminada
    FINAL_STATUSES = (DisputeStatus.RESOLVED, DisputeStatus.CLOSED)

    def __init__(self, db: Session):
        self.db = db
        self.customers = CustomerService(db)
        self.documents = CustomerDocumentService(db)

    def get_dispute_or_404(self, dispute_id: int) -> CustomerDispute:
        dispute = self.db.get(CustomerDispute, dispute_id)
        if not dispute:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="La disputa indicada no existe"
            )
        return dispute

    def list_disputes(
        self,
        customer_code: str,
        document_id: Optional[int] = None,
        statuses: Optional[Iterable[DisputeStatus]] = None
    ) -> List[CustomerDispute]:
        customer = self.customers.get_by_code_or_404(customer_code)
        query = self.db.query(CustomerDispute).filter(CustomerDispute.customer_id == customer.id)
        if document_id:
            query = query.filter(CustomerDispute.document_id == document_id)
        statuses = list(statuses or [])
        if statuses:
            query = query.filter(CustomerDispute.status.in_(statuses))
        return query.order_by(CustomerDispute.created_at.desc(), CustomerDispute.id.desc()).all()

    def create_dispute(self, data: DisputeCreate, created_by: Optional[int] = None) -> CustomerDispute:
        customer = self.customers.get_by_code_or_404(data.customer_code)
        document = resolve_customer_document(self.documents, customer, data.document_id)
        resolved_at = to_naive_utc(data.resolved_at) if data.resolved_at else None
        if resolved_at is None and data.status in self.FINAL_STATUSES:
            resolved_at = utcnow()

        dispute = CustomerDispute(
            customer_id=customer.id,
            document_id=document.id if document else None,
            dispute_code=clean_text(data.dispute_code, 60),
            description=clean_text(data.description, 600),
            status=data.status,
            resolution_notes=clean_text(data.resolution_notes, 600),
            resolved_at=resolved_at,
            created_by=created_by
        )
        self.db.add(dispute)
        self.db.commit()
        self.db.refresh(dispute)
        logger.info(f"Disputa registrada para {customer.code}: {dispute.id}")
        return dispute

    def update_dispute(self, dispute_id: int, data: DisputeUpdate) -> CustomerDispute:
        dispute = self.get_dispute_or_404(dispute_id)
        fields = data.model_dump(exclude_unset=True)
        if "document_id" in fields:
            customer = self.customers.get_by_id(dispute.customer_id)
            document = resolve_customer_document(self.documents, customer, data.document_id)
            dispute.document_id = document.id if document else None
        if "dispute_code" in fields:
            dispute.dispute_code = clean_text(data.dispute_code, 60)
        if "description" in fields:
            dispute.description = clean_text(data.description, 600)
        if "resolution_notes" in fields:
            dispute.resolution_notes = clean_text(data.resolution_notes, 600)
        if "resolved_at" in fields:
            dispute.resolved_at = to_naive_utc(data.resolved_at) if data.resolved_at else None
        if data.status is not None:
            dispute.status = data.status
            if data.status in self.FINAL_STATUSES and dispute.resolved_at is None:
                dispute.resolved_at = utcnow()
            elif data.status not in self.FINAL_STATUSES and "resolved_at" not in fields:
                dispute.resolved_at = None
        self.db.commit()
        self.db.refresh(dispute)
        return dispute


class CollectionLogService:
    def __init__(self, db: Session):
        self.db = db
        self.customers = CustomerService(db)
        self.documents = CustomerDocumentService(db)

    def list_logs(self, customer_code: str, document_id: Optional[int] = None) -> List[CollectionLog]:
        customer = self.customers.get_by_code_or_404(customer_code)
        query = self.db.query(CollectionLog).filter(CollectionLog.customer_id == customer.id)
        if document_id:
            query = query.filter(CollectionLog.document_id == document_id)
        return query.order_by(CollectionLog.created_at.desc(), CollectionLog.id.desc()).all()

    def create_log(self, data: CollectionLogCreate, created_by: Optional[int] = None) -> CollectionLog:
        customer = self.customers.get_by_code_or_404(data.customer_code)
        document = resolve_customer_document(self.documents, customer, data.document_id)
        log = CollectionLog(
            customer_id=customer.id,
            document_id=document.id if document else None,
            contact_method=clean_text(data.contact_method, 120),
            contact_name=clean_text(data.contact_name, 160),
            notes=clean_text(data.notes, 512),
            outcome=clean_text(data.outcome, 240),
            follow_up_at=to_naive_utc(data.follow_up_at) if data.follow_up_at else None,
            created_by=created_by
        )
        self.db.add(log)
        self.db.commit()
        self.db.refresh(log)
        return log

    def delete_log(self, log_id: int) -> None:
        log = self.db.get(CollectionLog, log_id)
        if not log:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="La gestión de cobro indicada no existe"
            )
        self.db.delete(log)
        self.db.commit()
