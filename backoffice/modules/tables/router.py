from fastapi import APIRouter, Depends, Query, status
from typing import List
from sqlalchemy.orm import Session

from backoffice.dependencies.dbDependencies import get_db
from backoffice.modules.tables.service import TableZoneService, TableService
from backoffice.modules.tables.schemas import (
    ZoneCreate, ZoneUpdate, ZoneOut, TableCreate, TableUpdate, TableDefinitionOut,
    TableAdminSnapshot, WaiterTableSnapshot, ClaimTableRequest, StoreTableOrderRequest,
    TableStatusUpdate, ReservationCreate
)

zones_router = APIRouter(prefix="/table-zones", tags=["Tables"])


@zones_router.get("/", response_model=List[ZoneOut])
def list_zones(
    include_inactive: bool = Query(False),
    db: Session = Depends(get_db)
):
    return TableZoneService(db).list_zones(include_inactive)


@zones_router.post("/", response_model=ZoneOut, status_code=status.HTTP_201_CREATED)
def create_zone(data: ZoneCreate, db: Session = Depends(get_db)):
    """Crear una zona; el identificador se deriva del nombre."""
    return TableZoneService(db).create_zone(data)


@zones_router.patch("/{zone_id}", response_model=ZoneOut)
def update_zone(zone_id: str, data: ZoneUpdate, db: Session = Depends(get_db)):
    return TableZoneService(db).update_zone(zone_id, data)


@zones_router.delete("/{zone_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_zone(zone_id: str, db: Session = Depends(get_db)):
    TableZoneService(db).delete_zone(zone_id)


tables_router = APIRouter(prefix="/tables", tags=["Tables"])


@tables_router.get("/", response_model=List[TableDefinitionOut])
def list_tables(
    include_inactive: bool = Query(True),
    db: Session = Depends(get_db)
):
    return TableService(db).list_table_definitions(include_inactive)


@tables_router.post("/", response_model=TableDefinitionOut, status_code=status.HTTP_201_CREATED)
def create_table(data: TableCreate, db: Session = Depends(get_db)):
    return TableService(db).create_table(data)


@tables_router.get("/admin", response_model=List[TableAdminSnapshot])
def list_admin_snapshots(db: Session = Depends(get_db)):
    """Estado operativo de todas las mesas para el panel de administración."""
    return TableService(db).list_admin_snapshots()


@tables_router.get("/available", response_model=List[TableAdminSnapshot])
def list_available_tables(db: Session = Depends(get_db)):
    """Mesas activas sin reservación, sin mesero y sin líneas abiertas."""
    return TableService(db).list_available_tables()


@tables_router.get("/waiter", response_model=List[WaiterTableSnapshot])
def list_waiter_tables(db: Session = Depends(get_db)):
    return TableService(db).list_waiter_tables()


@tables_router.get("/{table_id}", response_model=TableAdminSnapshot)
def get_table(table_id: str, db: Session = Depends(get_db)):
    return TableService(db).get_admin_snapshot(table_id)


@tables_router.patch("/{table_id}", response_model=TableDefinitionOut)
def update_table(table_id: str, data: TableUpdate, db: Session = Depends(get_db)):
    return TableService(db).update_table(table_id, data)


@tables_router.delete("/{table_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_table(table_id: str, db: Session = Depends(get_db)):
    TableService(db).delete_table(table_id)


@tables_router.post("/{table_id}/claim", response_model=WaiterTableSnapshot)
def claim_table(table_id: str, data: ClaimTableRequest, db: Session = Depends(get_db)):
    """Asignar la mesa a un mesero."""
    return TableService(db).claim_table(table_id, data.waiter_code)


@tables_router.put("/{table_id}/order", response_model=WaiterTableSnapshot)
def store_table_order(table_id: str, data: StoreTableOrderRequest, db: Session = Depends(get_db)):
    """
    Guardar la comanda del mesero.

    Las líneas enviadas reemplazan las del pedido OPEN de la mesa.
    """
    return TableService(db).store_table_order(
        table_id, data.waiter_code, data.pending_items, data.sent_items
    )


@tables_router.put("/{table_id}/status", response_model=TableAdminSnapshot)
def set_table_status(table_id: str, data: TableStatusUpdate, db: Session = Depends(get_db)):
    return TableService(db).set_table_status(table_id, data.status)


@tables_router.post("/{table_id}/reservation", response_model=TableAdminSnapshot)
def reserve_table(table_id: str, data: ReservationCreate, db: Session = Depends(get_db)):
    return TableService(db).reserve_table(table_id, data)


@tables_router.delete("/{table_id}/reservation", response_model=TableAdminSnapshot)
def release_reservation(table_id: str, db: Session = Depends(get_db)):
    return TableService(db).release_reservation(table_id)
