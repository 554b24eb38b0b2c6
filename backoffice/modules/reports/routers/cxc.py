"""
Router de reportes de cuentas por cobrar

`to` es la fecha de corte para antigüedad y vencimientos.
"""

import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from backoffice.dependencies.dbDependencies import get_db
from backoffice.modules.cxc.models import DocumentStatus, DocumentType

from ..services.cxc import CxcReportService
from ..schemas import CxcAgingResponse, CxcStatementResponse, CxcDueAnalysisResponse, CxcSummaryResponse
from ..utils import (
    create_csv_response,
    prepare_cxc_aging_csv,
    prepare_cxc_statement_csv,
    prepare_cxc_due_analysis_csv,
    prepare_cxc_summary_csv,
    CSV_HEADERS
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reports/cxc", tags=["Reports"])


def parse_customer_codes(value: Optional[str]) -> Optional[List[str]]:
    """Lista separada por comas, sin duplicados y en mayúsculas."""
    if not value:
        return None
    codes = []
    for token in value.split(","):
        code = token.strip().upper()
        if code and code not in codes:
            codes.append(code)
    return codes or None


def parse_enum_list(value: Optional[str], enum_type) -> Optional[List]:
    """Lista separada por comas; los valores desconocidos se ignoran."""
    if not value:
        return None
    allowed = {item.value: item for item in enum_type}
    items = []
    for token in value.split(","):
        item = allowed.get(token.strip().upper())
        if item is not None and item not in items:
            items.append(item)
    return items or None


def report_error(error: Exception) -> HTTPException:
    logger.error(f"Error generando el reporte de CxC: {str(error)}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Error generando el reporte: {str(error)}"
    )


@router.get("/aging", response_model=None)
def get_cxc_aging(
    date_to: Optional[date] = Query(None, alias="to", description="Fecha de corte; por defecto hoy"),
    customer: Optional[str] = Query(None, description="Código, nombre o identificación fiscal"),
    customer_codes: Optional[str] = Query(None, description="Códigos separados por coma"),
    limit: Optional[int] = Query(None, ge=1),
    export: Optional[str] = Query(None, pattern="^(csv)$"),
    db: Session = Depends(get_db)
):
    """
    Antigüedad de saldos por cliente.

    Tramos: al día, 1-30, 31-60, 61-90 y más de 90 días vencidos.
    """
    try:
        report_data = CxcReportService(db).get_aging(
            date_to, customer, parse_customer_codes(customer_codes), limit
        )
        if export == "csv":
            return create_csv_response(
                data=prepare_cxc_aging_csv(report_data),
                filename=f"cxc_antiguedad_{report_data['as_of']}.csv",
                headers=CSV_HEADERS["cxc_aging"]
            )
        return CxcAgingResponse(**report_data)
    except HTTPException:
        raise
    except Exception as e:
        raise report_error(e)


@router.get("/statement", response_model=None)
def get_cxc_statement(
    customer_code: str = Query(..., alias="customer"),
    date_from: date = Query(..., alias="from"),
    date_to: date = Query(..., alias="to"),
    include_applications: bool = Query(True),
    export: Optional[str] = Query(None, pattern="^(csv)$"),
    db: Session = Depends(get_db)
):
    """Estado de cuenta del cliente con saldo inicial y saldo corrido."""
    try:
        report_data = CxcReportService(db).get_statement(
            customer_code, date_from, date_to, include_applications
        )
        if export == "csv":
            return create_csv_response(
                data=prepare_cxc_statement_csv(report_data),
                filename=f"cxc_estado_cuenta_{report_data['customer_code']}_{date_from}_{date_to}.csv",
                headers=CSV_HEADERS["cxc_statement"]
            )
        return CxcStatementResponse(**report_data)
    except HTTPException:
        raise
    except Exception as e:
        raise report_error(e)


@router.get("/due", response_model=None)
def get_cxc_due_analysis(
    date_from: Optional[date] = Query(None, alias="from", description="Vencimiento mínimo"),
    date_to: Optional[date] = Query(None, alias="to", description="Fecha de corte; por defecto hoy"),
    customer: Optional[str] = Query(None),
    customer_codes: Optional[str] = Query(None),
    include_future: bool = Query(False),
    export: Optional[str] = Query(None, pattern="^(csv)$"),
    db: Session = Depends(get_db)
):
    """Documentos vencidos y, con include_future, los que aún no vencen."""
    try:
        report_data = CxcReportService(db).get_due_analysis(
            date_to, date_from, customer, parse_customer_codes(customer_codes), include_future
        )
        if export == "csv":
            return create_csv_response(
                data=prepare_cxc_due_analysis_csv(report_data),
                filename=f"cxc_vencimientos_{report_data['as_of']}.csv",
                headers=CSV_HEADERS["cxc_due_analysis"]
            )
        return CxcDueAnalysisResponse(**report_data)
    except HTTPException:
        raise
    except Exception as e:
        raise report_error(e)


@router.get("/summary", response_model=None)
def get_cxc_summary(
    date_from: date = Query(..., alias="from"),
    date_to: date = Query(..., alias="to"),
    customer: Optional[str] = Query(None),
    customer_codes: Optional[str] = Query(None),
    document_status: Optional[str] = Query(None, alias="status", description="Estados separados por coma"),
    document_types: Optional[str] = Query(None, description="Tipos separados por coma"),
    export: Optional[str] = Query(None, pattern="^(csv)$"),
    db: Session = Depends(get_db)
):
    """Documentos del periodo agrupados por cliente, tipo y estado."""
    try:
        report_data = CxcReportService(db).get_summary(
            date_from,
            date_to,
            customer,
            parse_customer_codes(customer_codes),
            parse_enum_list(document_status, DocumentStatus),
            parse_enum_list(document_types, DocumentType)
        )
        if export == "csv":
            return create_csv_response(
                data=prepare_cxc_summary_csv(report_data),
                filename=f"cxc_resumen_{date_from}_{date_to}.csv",
                headers=CSV_HEADERS["cxc_summary"]
            )
        return CxcSummaryResponse(**report_data)
    except HTTPException:
        raise
    except Exception as e:
        raise report_error(e)
