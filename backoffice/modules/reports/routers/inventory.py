"""
Router de reportes de inventario y compras
"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from backoffice.dependencies.dbDependencies import get_db
from backoffice.modules.inventory.models import TransactionStatus, TransactionType

from ..services.inventory import InventoryReportService
from ..services.purchases import PurchaseReportService
from ..schemas import InventoryMovementsResponse, PurchasesReportResponse
from ..utils import (
    create_csv_response,
    prepare_inventory_movements_csv,
    prepare_purchases_csv,
    CSV_HEADERS
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reports/inventory", tags=["Reports"])


@router.get("/movements", response_model=None)
def get_inventory_movements(
    date_from: date = Query(..., alias="from"),
    date_to: date = Query(..., alias="to"),
    article: Optional[str] = Query(None, description="Código o nombre del artículo"),
    warehouse_code: Optional[str] = Query(None, alias="warehouse"),
    transaction_type: Optional[TransactionType] = Query(None, alias="type"),
    export: Optional[str] = Query(None, pattern="^(csv)$"),
    db: Session = Depends(get_db)
):
    """
    Entradas, salidas y neto por tipo de transacción.

    Cantidades en unidad de detalle y en unidad de almacén.
    """
    try:
        report_data = InventoryReportService(db).get_movements_summary(
            date_from, date_to, article, warehouse_code,
            transaction_type.value if transaction_type else None
        )
        if export == "csv":
            return create_csv_response(
                data=prepare_inventory_movements_csv(report_data),
                filename=f"inventario_movimientos_{date_from}_{date_to}.csv",
                headers=CSV_HEADERS["inventory_movements"]
            )
        return InventoryMovementsResponse(**report_data)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error generando el reporte de movimientos: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error generando el reporte: {str(e)}"
        )


@router.get("/purchases", response_model=None)
def get_purchases_by_supplier(
    date_from: date = Query(..., alias="from"),
    date_to: date = Query(..., alias="to"),
    supplier: Optional[str] = Query(None),
    purchase_status: Optional[TransactionStatus] = Query(None, alias="status"),
    export: Optional[str] = Query(None, pattern="^(csv)$"),
    db: Session = Depends(get_db)
):
    """Compras por proveedor con montos pendientes, parciales y pagados."""
    try:
        report_data = PurchaseReportService(db).get_purchases_by_supplier(
            date_from, date_to, supplier,
            purchase_status.value if purchase_status else None
        )
        if export == "csv":
            return create_csv_response(
                data=prepare_purchases_csv(report_data),
                filename=f"compras_{date_from}_{date_to}.csv",
                headers=CSV_HEADERS["purchases"]
            )
        return PurchasesReportResponse(**report_data)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error generando el reporte de compras: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error generando el reporte: {str(e)}"
        )
