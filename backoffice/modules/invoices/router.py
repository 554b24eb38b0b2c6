from fastapi import APIRouter, Depends, Query, status
from typing import Optional
from datetime import date
from sqlalchemy.orm import Session

from backoffice.dependencies.dbDependencies import get_db
from backoffice.dependencies.operatorDependencies import operator_dependency
from backoffice.modules.invoices.service import InvoiceService
from backoffice.modules.invoices.schemas import (
    InvoiceCreate, InvoiceCreated, InvoiceDetail, InvoiceList, InvoiceCancelResult
)

invoices_router = APIRouter(prefix="/invoices", tags=["Invoices"])


@invoices_router.post("/", response_model=InvoiceCreated, status_code=status.HTTP_201_CREATED)
def create_invoice(data: InvoiceCreate, operator_id: operator_dependency, db: Session = Depends(get_db)):
    """
    Emitir una factura en la caja abierta del operador.

    - El folio sale del consecutivo de la caja si no se indica
    - Descarga inventario del almacén de la caja
    - Ventas a crédito (modo retail) generan un documento en CxC
    """
    return InvoiceService(db).create_invoice(operator_id, data)


@invoices_router.get("/", response_model=InvoiceList)
def list_invoices(
    date_from: Optional[date] = Query(None, alias="from"),
    date_to: Optional[date] = Query(None, alias="to"),
    q: Optional[str] = Query(None, description="Folio, cliente o notas"),
    table_code: Optional[str] = Query(None, alias="table"),
    waiter_code: Optional[str] = Query(None, alias="waiter"),
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db)
):
    return InvoiceService(db).list_invoices(date_from, date_to, q, table_code, waiter_code, page, page_size)


@invoices_router.get("/{invoice_id}", response_model=InvoiceDetail)
def get_invoice(invoice_id: int, db: Session = Depends(get_db)):
    return InvoiceService(db).get_invoice(invoice_id)


@invoices_router.post("/{invoice_id}/cancel", response_model=InvoiceCancelResult)
def cancel_invoice(invoice_id: int, db: Session = Depends(get_db)):
    """Anular la factura y revertir sus movimientos de inventario."""
    return InvoiceService(db).cancel_invoice(invoice_id)
