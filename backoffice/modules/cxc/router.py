from fastapi import APIRouter, Depends, Query, status
from typing import List, Optional
from datetime import date
from sqlalchemy.orm import Session

from backoffice.dependencies.dbDependencies import get_db
from backoffice.dependencies.operatorDependencies import optional_operator_dependency
from backoffice.modules.cxc.models import DocumentType, DocumentStatus, DisputeStatus
from backoffice.modules.cxc.service import (
    PaymentTermService, CustomerService, CustomerDocumentService, DocumentApplicationService,
    CreditLineService, DisputeService, CollectionLogService
)
from backoffice.modules.cxc.schemas import (
    PaymentTermCreate, PaymentTermUpdate, PaymentTermOut, CustomerCreate, CustomerUpdate,
    CustomerOut, DocumentCreate, DocumentOut, DocumentOrderBy, ApplyDocumentsRequest, ApplicationOut,
    CreditLineAssign, CreditLineUpdate, CreditLineResult, CreditOverviewOut, CreditStatusUpdate,
    DisputeCreate, DisputeUpdate, DisputeOut, CollectionLogCreate, CollectionLogOut
)

payment_terms_router = APIRouter(prefix="/payment-terms", tags=["CxC"])


@payment_terms_router.get("/", response_model=List[PaymentTermOut])
def list_payment_terms(
    include_inactive: bool = Query(False),
    db: Session = Depends(get_db)
):
    return PaymentTermService(db).list_terms(include_inactive)


@payment_terms_router.post("/", response_model=PaymentTermOut, status_code=status.HTTP_201_CREATED)
def create_payment_term(data: PaymentTermCreate, db: Session = Depends(get_db)):
    return PaymentTermService(db).create_term(data)


@payment_terms_router.get("/{code}", response_model=PaymentTermOut)
def get_payment_term(code: str, db: Session = Depends(get_db)):
    return PaymentTermService(db).get_by_code_or_404(code)


@payment_terms_router.patch("/{code}", response_model=PaymentTermOut)
def update_payment_term(code: str, data: PaymentTermUpdate, db: Session = Depends(get_db)):
    return PaymentTermService(db).update_term(code, data)


@payment_terms_router.delete("/{code}", status_code=status.HTTP_204_NO_CONTENT)
def delete_payment_term(code: str, db: Session = Depends(get_db)):
    PaymentTermService(db).delete_term(code)


cxc_router = APIRouter(prefix="/cxc", tags=["CxC"])


# Customers
@cxc_router.get("/customers", response_model=List[CustomerOut])
def list_customers(
    search: Optional[str] = Query(None, description="Código, nombre o identificación fiscal"),
    include_inactive: bool = Query(False),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db)
):
    return CustomerService(db).list_customers(search, include_inactive, limit)


@cxc_router.post("/customers", response_model=CustomerOut, status_code=status.HTTP_201_CREATED)
def create_customer(data: CustomerCreate, db: Session = Depends(get_db)):
    return CustomerService(db).create_customer(data)


@cxc_router.get("/customers/{code}", response_model=CustomerOut)
def get_customer(code: str, db: Session = Depends(get_db)):
    service = CustomerService(db)
    return service.to_output(service.get_by_code_or_404(code))


@cxc_router.patch("/customers/{code}", response_model=CustomerOut)
def update_customer(code: str, data: CustomerUpdate, db: Session = Depends(get_db)):
    return CustomerService(db).update_customer(code, data)


@cxc_router.patch("/customers/{code}/credit-status", response_model=CustomerOut)
def update_credit_status(code: str, data: CreditStatusUpdate, db: Session = Depends(get_db)):
    """Activar, retener o bloquear el crédito del cliente sin crear una nueva línea."""
    return CreditLineService(db).update_credit_status(code, data)


# Documents
@cxc_router.get("/documents", response_model=List[DocumentOut])
def list_documents(
    customer: Optional[str] = Query(None, description="Código del cliente"),
    document_type: Optional[List[DocumentType]] = Query(None, alias="type"),
    document_status: Optional[List[DocumentStatus]] = Query(None, alias="status"),
    date_from: Optional[date] = Query(None, alias="from"),
    date_to: Optional[date] = Query(None, alias="to"),
    search: Optional[str] = Query(None),
    include_settled: bool = Query(False),
    order_by: DocumentOrderBy = Query("document_date"),
    order_direction: str = Query("desc", pattern="^(asc|desc)$"),
    limit: Optional[int] = Query(None, ge=1, le=1000),
    db: Session = Depends(get_db)
):
    """Documentos de clientes; por defecto excluye los pagados."""
    return CustomerDocumentService(db).list_documents(
        customer, document_type, document_status, date_from, date_to, search,
        include_settled, order_by, order_direction, limit
    )


@cxc_router.post("/documents", response_model=DocumentOut, status_code=status.HTTP_201_CREATED)
def create_document(data: DocumentCreate, db: Session = Depends(get_db)):
    return CustomerDocumentService(db).create_document(data)


@cxc_router.get("/documents/{document_id}", response_model=DocumentOut)
def get_document(document_id: int, db: Session = Depends(get_db)):
    service = CustomerDocumentService(db)
    return service.to_output(service.get_document_or_404(document_id))


@cxc_router.post("/documents/{document_id}/cancel", response_model=DocumentOut)
def cancel_document(document_id: int, db: Session = Depends(get_db)):
    return CustomerDocumentService(db).cancel_document(document_id)


# Applications
@cxc_router.get("/applications", response_model=List[ApplicationOut])
def list_applications(
    applied_document_id: Optional[int] = Query(None),
    target_document_id: Optional[int] = Query(None),
    db: Session = Depends(get_db)
):
    return DocumentApplicationService(db).list_applications(applied_document_id, target_document_id)


@cxc_router.post("/applications", response_model=List[ApplicationOut], status_code=status.HTTP_201_CREATED)
def apply_documents(data: ApplyDocumentsRequest, db: Session = Depends(get_db)):
    """Aplicar recibos, notas de crédito o retenciones contra facturas."""
    return DocumentApplicationService(db).apply_documents(data.applications)


# Credit lines
@cxc_router.get("/credit-lines", response_model=CreditOverviewOut)
def get_credit_overview(
    customer: str = Query(..., description="Código del cliente"),
    db: Session = Depends(get_db)
):
    """Historial de líneas de crédito y uso actual del cliente."""
    return CreditLineService(db).get_overview(customer)


@cxc_router.post("/credit-lines", response_model=CreditLineResult, status_code=status.HTTP_201_CREATED)
def assign_credit_line(
    data: CreditLineAssign,
    reviewer_id: optional_operator_dependency,
    db: Session = Depends(get_db)
):
    return CreditLineService(db).assign_credit_line(data, reviewer_id)


@cxc_router.patch("/credit-lines/{line_id}", response_model=CreditLineResult)
def update_credit_line(line_id: int, data: CreditLineUpdate, db: Session = Depends(get_db)):
    return CreditLineService(db).update_credit_line(line_id, data)


# Disputes
@cxc_router.get("/disputes", response_model=List[DisputeOut])
def list_disputes(
    customer: str = Query(..., description="Código del cliente"),
    document_id: Optional[int] = Query(None),
    dispute_status: Optional[List[DisputeStatus]] = Query(None, alias="status"),
    db: Session = Depends(get_db)
):
    return DisputeService(db).list_disputes(customer, document_id, dispute_status)


@cxc_router.post("/disputes", response_model=DisputeOut, status_code=status.HTTP_201_CREATED)
def create_dispute(data: DisputeCreate, operator_id: optional_operator_dependency, db: Session = Depends(get_db)):
    return DisputeService(db).create_dispute(data, operator_id)


@cxc_router.patch("/disputes/{dispute_id}", response_model=DisputeOut)
def update_dispute(dispute_id: int, data: DisputeUpdate, db: Session = Depends(get_db)):
    return DisputeService(db).update_dispute(dispute_id, data)


# Collection follow-ups
@cxc_router.get("/collection-logs", response_model=List[CollectionLogOut])
def list_collection_logs(
    customer: str = Query(..., description="Código del cliente"),
    document_id: Optional[int] = Query(None),
    db: Session = Depends(get_db)
):
    return CollectionLogService(db).list_logs(customer, document_id)


@cxc_router.post("/collection-logs", response_model=CollectionLogOut, status_code=status.HTTP_201_CREATED)
def create_collection_log(data: CollectionLogCreate, operator_id: optional_operator_dependency, db: Session = Depends(get_db)):
    return CollectionLogService(db).create_log(data, operator_id)


@cxc_router.delete("/collection-logs/{log_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_collection_log(log_id: int, db: Session = Depends(get_db)):
    CollectionLogService(db).delete_log(log_id)
