"""
Servicio base del módulo de reportes

Sesión de base de datos, validación de rangos y consultas base compartidas por
todos los reportes. Los rangos "desde"/"hasta" son días de negocio.
"""

from datetime import date
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from backoffice.common.utils import business_date, utcnow
from backoffice.modules.inventory.service import date_bounds
from backoffice.modules.invoices.models import Invoice, InvoiceStatus


class BaseReportService:
    """Clase base de todos los servicios de reportes"""

    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def today() -> date:
        return business_date(utcnow())

    def _validate_date_range(self, date_from: date, date_to: date) -> None:
        if date_from and date_to and date_to < date_from:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="La fecha final debe ser mayor o igual a la fecha inicial"
            )

    def _apply_date_filter(self, query, date_field, date_from: Optional[date], date_to: Optional[date]):
        start, end = date_bounds(date_from, date_to)
        if start:
            query = query.filter(date_field >= start)
        if end:
            query = query.filter(date_field <= end)
        return query

    def _exclude_cancelled(self, query):
        """Las facturas anuladas no cuentan en ningún reporte de ventas."""
        return query.filter(Invoice.status != InvoiceStatus.ANULADA)
