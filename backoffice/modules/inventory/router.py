from fastapi import APIRouter, Depends, Query, status
from typing import List, Optional
from datetime import date
from sqlalchemy.orm import Session

from backoffice.dependencies.dbDependencies import get_db
from backoffice.modules.inventory.models import TransactionStatus
from backoffice.modules.inventory.service import InventoryService
from backoffice.modules.inventory.schemas import (
    PurchaseCreate, ConsumptionCreate, TransferCreate, TransactionResult, TransferResult,
    KardexRow, StockSummaryRow, PurchaseListItem, ConsumptionRow, TransferListItem,
    InventoryDocumentOut, TransactionHeaderOut
)

inventory_router = APIRouter(prefix="/inventory", tags=["Inventory"])


@inventory_router.post("/purchases", response_model=TransactionResult, status_code=status.HTTP_201_CREATED)
def register_purchase(data: PurchaseCreate, db: Session = Depends(get_db)):
    """
    Registrar una compra.

    Cada línea entra al almacén indicado; los kits se descomponen en sus
    componentes. El total es la suma de costo * cantidad capturada.
    """
    return InventoryService(db).register_purchase(data)


@inventory_router.get("/purchases", response_model=List[PurchaseListItem])
def list_purchases(
    status_filter: Optional[TransactionStatus] = Query(None, alias="status"),
    supplier: Optional[str] = Query(None),
    date_from: Optional[date] = Query(None, alias="from"),
    date_to: Optional[date] = Query(None, alias="to"),
    db: Session = Depends(get_db)
):
    return InventoryService(db).list_purchases(status_filter, supplier, date_from, date_to)


@inventory_router.post("/consumptions", response_model=TransactionResult, status_code=status.HTTP_201_CREATED)
def register_consumption(data: ConsumptionCreate, db: Session = Depends(get_db)):
    """Registrar un consumo interno. Requiere quién autoriza."""
    return InventoryService(db).register_consumption(data)


@inventory_router.get("/consumptions", response_model=List[ConsumptionRow])
def list_consumptions(
    article: Optional[str] = Query(None),
    warehouse: Optional[str] = Query(None),
    date_from: Optional[date] = Query(None, alias="from"),
    date_to: Optional[date] = Query(None, alias="to"),
    db: Session = Depends(get_db)
):
    return InventoryService(db).list_consumptions(article, warehouse, date_from, date_to)


@inventory_router.post("/transfers", response_model=TransferResult, status_code=status.HTTP_201_CREATED)
def register_transfer(data: TransferCreate, db: Session = Depends(get_db)):
    """Traspasar mercadería entre dos almacenes distintos."""
    return InventoryService(db).register_transfer(data)


@inventory_router.get("/transfers", response_model=List[TransferListItem])
def list_transfers(
    date_from: Optional[date] = Query(None, alias="from"),
    date_to: Optional[date] = Query(None, alias="to"),
    article: Optional[str] = Query(None),
    from_warehouse: Optional[str] = Query(None),
    to_warehouse: Optional[str] = Query(None),
    db: Session = Depends(get_db)
):
    return InventoryService(db).list_transfers(date_from, date_to, article, from_warehouse, to_warehouse)


@inventory_router.get("/kardex", response_model=List[KardexRow])
def list_kardex(
    article: Optional[List[str]] = Query(None),
    warehouse: Optional[List[str]] = Query(None),
    date_from: Optional[date] = Query(None, alias="from"),
    date_to: Optional[date] = Query(None, alias="to"),
    db: Session = Depends(get_db)
):
    """
    Kardex de movimientos con saldo acumulado.

    El saldo inicial de cada artículo/almacén es la suma de movimientos
    anteriores a la fecha "from".
    """
    return InventoryService(db).list_kardex(article, warehouse, date_from, date_to)


@inventory_router.get("/stock", response_model=List[StockSummaryRow])
def get_stock_summary(
    article: Optional[List[str]] = Query(None),
    search: Optional[str] = Query(None, description="Código o nombre"),
    warehouse: Optional[List[str]] = Query(None),
    db: Session = Depends(get_db)
):
    """Existencias por artículo y almacén."""
    return InventoryService(db).get_stock_summary(article, search, warehouse)


@inventory_router.get("/documents", response_model=List[TransactionHeaderOut])
def list_documents(
    transaction_type: Optional[List[str]] = Query(None, alias="type"),
    warehouse: Optional[List[str]] = Query(None),
    search: Optional[str] = Query(None),
    date_from: Optional[date] = Query(None, alias="from"),
    date_to: Optional[date] = Query(None, alias="to"),
    limit: int = Query(50),
    db: Session = Depends(get_db)
):
    """Encabezados de documentos de inventario (máximo 200)."""
    return InventoryService(db).list_transaction_headers(
        transaction_type, warehouse, search, date_from, date_to, limit
    )


@inventory_router.get("/documents/{transaction_code}", response_model=InventoryDocumentOut)
def get_document(transaction_code: str, db: Session = Depends(get_db)):
    return InventoryService(db).get_transaction_document(transaction_code)
