"""
Router de reportes de ventas

Resumen, desempeño por mesero, artículos top y estado de cobro de facturas.
Todos aceptan `export=csv`.
"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from backoffice.dependencies.dbDependencies import get_db
from backoffice.modules.invoices.models import PaymentMethod

from ..services.sales import SalesReportService
from ..schemas import (
    SalesSummaryResponse,
    WaiterPerformanceResponse,
    TopItemsResponse,
    InvoiceStatusResponse
)
from ..utils import (
    create_csv_response,
    prepare_sales_summary_csv,
    prepare_waiter_performance_csv,
    prepare_top_items_csv,
    prepare_invoice_status_csv,
    CSV_HEADERS
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reports/sales", tags=["Reports"])


def report_error(name: str, error: Exception) -> HTTPException:
    logger.error(f"Error generando el reporte {name}: {str(error)}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Error generando el reporte: {str(error)}"
    )


@router.get("/summary", response_model=None)
def get_sales_summary(
    date_from: date = Query(..., alias="from", description="Día inicial del periodo"),
    date_to: date = Query(..., alias="to", description="Día final del periodo"),
    waiter_code: Optional[str] = Query(None, alias="waiter"),
    table_code: Optional[str] = Query(None, alias="table"),
    customer: Optional[str] = Query(None, description="Nombre o identificación fiscal"),
    payment_method: Optional[PaymentMethod] = Query(None),
    currency: Optional[str] = Query(None, min_length=3, max_length=3),
    export: Optional[str] = Query(None, pattern="^(csv)$", description="Formato de exportación: csv"),
    db: Session = Depends(get_db)
):
    """
    Resumen de ventas del periodo.

    Totales (subtotal, servicio, IVA, total, ticket promedio), cobros por
    método de pago y ventas por día. Excluye facturas anuladas.
    """
    try:
        report_data = SalesReportService(db).get_sales_summary(
            date_from, date_to, waiter_code, table_code, customer,
            payment_method.value if payment_method else None, currency
        )
        if export == "csv":
            return create_csv_response(
                data=prepare_sales_summary_csv(report_data),
                filename=f"ventas_resumen_{date_from}_{date_to}.csv",
                headers=CSV_HEADERS["sales_summary"]
            )
        return SalesSummaryResponse(**report_data)
    except HTTPException:
        raise
    except Exception as e:
        raise report_error("de ventas", e)


@router.get("/waiters", response_model=None)
def get_waiter_performance(
    date_from: date = Query(..., alias="from"),
    date_to: date = Query(..., alias="to"),
    waiter_code: Optional[str] = Query(None, alias="waiter"),
    export: Optional[str] = Query(None, pattern="^(csv)$"),
    db: Session = Depends(get_db)
):
    """Facturas, ventas, ticket promedio y servicio por mesero."""
    try:
        report_data = SalesReportService(db).get_waiter_performance(date_from, date_to, waiter_code)
        if export == "csv":
            return create_csv_response(
                data=prepare_waiter_performance_csv(report_data),
                filename=f"ventas_meseros_{date_from}_{date_to}.csv",
                headers=CSV_HEADERS["waiter_performance"]
            )
        return WaiterPerformanceResponse(**report_data)
    except HTTPException:
        raise
    except Exception as e:
        raise report_error("por mesero", e)


@router.get("/top-items", response_model=None)
def get_top_items(
    date_from: date = Query(..., alias="from"),
    date_to: date = Query(..., alias="to"),
    search: Optional[str] = Query(None, description="Texto en la descripción"),
    limit: int = Query(15, ge=1, le=100),
    export: Optional[str] = Query(None, pattern="^(csv)$"),
    db: Session = Depends(get_db)
):
    try:
        report_data = SalesReportService(db).get_top_items(date_from, date_to, search, limit)
        if export == "csv":
            return create_csv_response(
                data=prepare_top_items_csv(report_data),
                filename=f"articulos_top_{date_from}_{date_to}.csv",
                headers=CSV_HEADERS["top_items"]
            )
        return TopItemsResponse(**report_data)
    except HTTPException:
        raise
    except Exception as e:
        raise report_error("de artículos top", e)


@router.get("/invoice-status", response_model=None)
def get_invoice_status(
    date_from: date = Query(..., alias="from"),
    date_to: date = Query(..., alias="to"),
    customer: Optional[str] = Query(None),
    waiter_code: Optional[str] = Query(None, alias="waiter"),
    export: Optional[str] = Query(None, pattern="^(csv)$"),
    db: Session = Depends(get_db)
):
    """Facturas por estado de cobro (PAGADA, PARCIAL, PENDIENTE) y las de mayor saldo."""
    try:
        report_data = SalesReportService(db).get_invoice_status(date_from, date_to, customer, waiter_code)
        if export == "csv":
            return create_csv_response(
                data=prepare_invoice_status_csv(report_data),
                filename=f"facturas_estatus_{date_from}_{date_to}.csv",
                headers=CSV_HEADERS["invoice_status"]
            )
        return InvoiceStatusResponse(**report_data)
    except HTTPException:
        raise
    except Exception as e:
        raise report_error("de estado de facturas", e)
