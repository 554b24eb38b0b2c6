"""
Servicios de mesas

- TableZoneService: catálogo de zonas
- TableService: definiciones, estado operativo, reservaciones y comandas de
  meseros
"""
from typing import List, Optional
from sqlalchemy.orm import Session, selectinload
from sqlalchemy import func
from fastapi import HTTPException, status
import logging

from backoffice.common.utils import utcnow
from backoffice.common.validators import normalize_code, clean_text, slugify_zone_id
from backoffice.modules.staff.models import Waiter
from backoffice.modules.staff.service import StaffService
from backoffice.modules.orders.models import Order, OrderStatus
from backoffice.modules.orders.schemas import OrderItemInput
from backoffice.modules.orders.service import OrderService
from backoffice.modules.tables.models import (
    TableZone, DiningTable, TableState, TableReservation, TableStatus, ReservationStatus
)
from backoffice.modules.tables.schemas import (
    ZoneCreate, ZoneUpdate, TableCreate, TableUpdate, TableDefinitionOut, TableAdminSnapshot,
    WaiterTableSnapshot, TableOrderOut, ReservationOut, ReservationCreate, OrderLine
)
from backoffice.modules.tables.state import get_or_create_state, apply_table_status

logger = logging.getLogger(__name__)


def line_quantity_total(lines) -> float:
    return sum(float(line.get("quantity") or 0) for line in lines or [])


def is_table_available(table: DiningTable) -> bool:
    """Libre: sin reservación, sin mesero y sin líneas abiertas."""
    state = table.state
    if table.reservation is not None:
        return False
    if state is None:
        return True
    if state.assigned_waiter_id is not None:
        return False
    if state.pending_items:
        return False
    if state.status == TableStatus.NORMAL and state.sent_items:
        return False
    return True


class TableZoneService:
    def __init__(self, db: Session):
        self.db = db

    def list_zones(self, include_inactive: bool = False) -> List[TableZone]:
        query = self.db.query(TableZone)
        if not include_inactive:
            query = query.filter(TableZone.is_active == True)
        return query.order_by(TableZone.sort_order, TableZone.name).all()

    def get_zone_or_404(self, zone_id: str) -> TableZone:
        zone = self.db.get(TableZone, normalize_code(zone_id))
        if not zone:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Zona no encontrada"
            )
        return zone

    def create_zone(self, data: ZoneCreate) -> TableZone:
        name = (data.name or "").strip()
        if not name:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="El nombre de la zona es obligatorio"
            )
        zone_id = slugify_zone_id(name)
        if not zone_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="La zona debe tener un identificador válido"
            )
        if self.db.get(TableZone, zone_id):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Ya existe una zona con ese nombre"
            )
        max_order = self.db.query(func.max(TableZone.sort_order)).scalar() or 0
        zone = TableZone(id=zone_id, name=name, is_active=data.is_active, sort_order=max_order + 1)
        self.db.add(zone)
        self.db.commit()
        self.db.refresh(zone)
        logger.info(f"Zona creada: {zone_id}")
        return zone

    def update_zone(self, zone_id: str, data: ZoneUpdate) -> TableZone:
        zone = self.get_zone_or_404(zone_id)
        if data.name is not None:
            name = data.name.strip()
            if not name:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="El nombre de la zona es obligatorio"
                )
            zone.name = name
        if data.is_active is True:
            zone.activate()
        elif data.is_active is False:
            zone.deactivate()
        if data.sort_order is not None:
            zone.sort_order = data.sort_order
        self.db.commit()
        self.db.refresh(zone)
        return zone

    def delete_zone(self, zone_id: str) -> None:
        zone = self.get_zone_or_404(zone_id)
        in_use = self.db.query(DiningTable).filter(DiningTable.zone_id == zone.id).count()
        if in_use > 0:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="No puedes eliminar una zona asignada a mesas"
            )
        self.db.delete(zone)
        self.db.commit()
        logger.info(f"Zona eliminada: {zone.id}")


class TableService:
    """Mesas, su estado operativo y reservaciones."""

    def __init__(self, db: Session):
        self.db = db

    def _query(self):
        return self.db.query(DiningTable).options(
            selectinload(DiningTable.zone),
            selectinload(DiningTable.state),
            selectinload(DiningTable.reservation)
        )

    def _get_table(self, table_id: str) -> Optional[DiningTable]:
        return self._query().filter(DiningTable.id == normalize_code(table_id)).first()

    def get_table_or_404(self, table_id: str) -> DiningTable:
        table = self._get_table(table_id)
        if not table:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Mesa no encontrada"
            )
        return table

    def _get_active_table(self, table_id: str) -> DiningTable:
        table = self.get_table_or_404(table_id)
        if not table.is_active:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="La mesa está inactiva"
            )
        return table

    def _get_waiter(self, waiter_code: str) -> Waiter:
        waiter = StaffService(self.db).get_waiter_by_code(waiter_code)
        if not waiter or not waiter.is_active:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Mesero no encontrado"
            )
        return waiter

    def _guard_waiter(self, table: DiningTable, waiter: Waiter) -> None:
        state = table.state
        if (
            state is not None
            and state.assigned_waiter_id
            and state.assigned_waiter_id != waiter.id
            and state.status == TableStatus.NORMAL
        ):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="La mesa está asignada a otro mesero"
            )

    def _validate_zone(self, zone_id: Optional[str]) -> Optional[str]:
        normalized = normalize_code(zone_id)
        if not normalized:
            return None
        if not self.db.get(TableZone, normalized):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="La zona seleccionada no existe"
            )
        return normalized

    # Definitions
    def list_table_definitions(self, include_inactive: bool = True) -> List[TableDefinitionOut]:
        query = self._query()
        if not include_inactive:
            query = query.filter(DiningTable.is_active == True)
        tables = query.order_by(DiningTable.sort_order, DiningTable.id).all()
        return [self.to_definition(table) for table in tables]

    def create_table(self, data: TableCreate) -> TableDefinitionOut:
        table_id = normalize_code(data.id)
        label = (data.label or "").strip()
        if not label:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="El nombre de la mesa es obligatorio"
            )
        if self.db.get(DiningTable, table_id):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Ya existe una mesa con ese código"
            )
        table = DiningTable(
            id=table_id,
            label=label,
            zone_id=self._validate_zone(data.zone_id),
            capacity=data.capacity,
            is_active=data.is_active,
            sort_order=data.sort_order
        )
        self.db.add(table)
        self.db.commit()
        logger.info(f"Mesa creada: {table_id}")
        return self.to_definition(self.get_table_or_404(table_id))

    def update_table(self, table_id: str, data: TableUpdate) -> TableDefinitionOut:
        table = self.get_table_or_404(table_id)
        fields = data.model_dump(exclude_unset=True)
        if data.label is not None:
            label = data.label.strip()
            if not label:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="El nombre de la mesa es obligatorio"
                )
            table.label = label
        if "zone_id" in fields:
            table.zone_id = self._validate_zone(data.zone_id)
        if "capacity" in fields:
            table.capacity = data.capacity
        if data.is_active is not None:
            table.is_active = data.is_active
        if data.sort_order is not None:
            table.sort_order = data.sort_order
        self.db.commit()
        self.db.expire(table)
        return self.to_definition(self.get_table_or_404(table.id))

    def delete_table(self, table_id: str) -> None:
        table = self.get_table_or_404(table_id)
        has_active_order = self.db.query(Order.id).filter(
            Order.table_id == table.id,
            Order.status == OrderStatus.OPEN
        ).first()
        if has_active_order:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="No puedes eliminar una mesa con una comanda activa"
            )
        if table.reservation is not None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="No puedes eliminar una mesa con una reservación activa"
            )
        self.db.query(Order).filter(Order.table_id == table.id).update(
            {Order.table_id: None}, synchronize_session=False
        )
        self.db.delete(table)
        self.db.commit()
        logger.info(f"Mesa eliminada: {table.id}")

    # Snapshots
    def get_admin_snapshot(self, table_id: str) -> TableAdminSnapshot:
        return self.to_admin_snapshot(self.get_table_or_404(table_id))

    def list_admin_snapshots(self) -> List[TableAdminSnapshot]:
        tables = self._query().order_by(DiningTable.sort_order, DiningTable.id).all()
        return [self.to_admin_snapshot(table) for table in tables]

    def list_available_tables(self) -> List[TableAdminSnapshot]:
        tables = self._query().filter(DiningTable.is_active == True).order_by(
            DiningTable.sort_order, DiningTable.id
        ).all()
        return [self.to_admin_snapshot(table) for table in tables if is_table_available(table)]

    def list_waiter_tables(self) -> List[WaiterTableSnapshot]:
        tables = self._query().filter(DiningTable.is_active == True).order_by(
            DiningTable.sort_order, DiningTable.id
        ).all()
        return [self.to_waiter_snapshot(table) for table in tables]

    def get_waiter_table(self, table_id: str) -> WaiterTableSnapshot:
        return self.to_waiter_snapshot(self.get_table_or_404(table_id))

    # Waiter operations
    def claim_table(self, table_id: str, waiter_code: str) -> WaiterTableSnapshot:
        """Asignar la mesa al mesero; una reservación pasa a "seated"."""
        table = self._get_active_table(table_id)
        waiter = self._get_waiter(waiter_code)
        self._guard_waiter(table, waiter)

        state = get_or_create_state(self.db, table.id)
        if state.status in (TableStatus.FACTURADO, TableStatus.ANULADO):
            state.status = TableStatus.NORMAL
        state.assigned_waiter_id = waiter.id
        state.assigned_waiter_name = waiter.full_name
        state.updated_at = utcnow()
        if table.reservation is not None:
            table.reservation.status = ReservationStatus.SEATED
        self.db.commit()
        logger.info(f"Mesa {table.id} asignada a {waiter.code}")
        self.db.expire_all()
        return self.get_waiter_table(table.id)

    def store_table_order(
        self,
        table_id: str,
        waiter_code: str,
        pending_items: List[OrderLine],
        sent_items: List[OrderLine]
    ) -> WaiterTableSnapshot:
        """Guarda la comanda del mesero y sincroniza el pedido OPEN de la mesa."""
        table = self._get_active_table(table_id)
        waiter = self._get_waiter(waiter_code)
        self._guard_waiter(table, waiter)

        try:
            state = get_or_create_state(self.db, table.id)
            if state.status in (TableStatus.FACTURADO, TableStatus.ANULADO):
                state.status = TableStatus.NORMAL
            state.assigned_waiter_id = waiter.id
            state.assigned_waiter_name = waiter.full_name
            state.pending_items = [line.model_dump() for line in pending_items]
            state.sent_items = [line.model_dump() for line in sent_items]
            state.updated_at = utcnow()
            self.db.flush()

            OrderService(self.db).sync_waiter_order_for_table(
                table.id,
                waiter.code,
                waiter.full_name,
                [
                    OrderItemInput(
                        article_code=line.article_code,
                        name=line.name,
                        quantity=line.quantity,
                        unit_price=line.unit_price or 0,
                        notes=line.notes
                    )
                    for line in sent_items
                ]
            )
            self.db.commit()
        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error guardando comanda de la mesa {table.id}: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error interno del servidor: {str(e)}"
            )
        self.db.expire_all()
        return self.get_waiter_table(table.id)

    def set_table_status(self, table_id: str, table_status: TableStatus) -> TableAdminSnapshot:
        table = self.get_table_or_404(table_id)
        apply_table_status(self.db, table, table_status)
        self.db.commit()
        self.db.expire_all()
        return self.get_admin_snapshot(table.id)

    # Reservations
    def reserve_table(self, table_id: str, data: ReservationCreate) -> TableAdminSnapshot:
        reserved_by = (data.reserved_by or "").strip()
        if not reserved_by:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Debes indicar quién realiza la reservación"
            )
        table = self._get_active_table(table_id)
        if table.reservation is not None:
            if table.reservation.status == ReservationStatus.HOLDING:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail="La mesa ya está reservada"
                )
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="La mesa está ocupada"
            )
        state = table.state
        if state is not None and (state.assigned_waiter_id is not None or state.pending_items or state.sent_items):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="La mesa está ocupada"
            )

        state = get_or_create_state(self.db, table.id)
        if state.status in (TableStatus.FACTURADO, TableStatus.ANULADO):
            state.status = TableStatus.NORMAL
        state.updated_at = utcnow()
        party_size = data.party_size if data.party_size and data.party_size > 0 else None
        self.db.add(TableReservation(
            table_id=table.id,
            status=ReservationStatus.HOLDING,
            reserved_by=reserved_by,
            contact_name=clean_text(data.contact_name, 160),
            contact_phone=clean_text(data.contact_phone, 40),
            party_size=party_size,
            notes=clean_text(data.notes),
            scheduled_for=clean_text(data.scheduled_for, 40)
        ))
        self.db.commit()
        logger.info(f"Mesa {table.id} reservada por {reserved_by}")
        self.db.expire_all()
        return self.get_admin_snapshot(table.id)

    def release_reservation(self, table_id: str) -> TableAdminSnapshot:
        table = self.get_table_or_404(table_id)
        if table.reservation is not None:
            self.db.delete(table.reservation)
            self.db.commit()
            self.db.expire_all()
        return self.get_admin_snapshot(table.id)

    # Output helpers
    def to_definition(self, table: DiningTable) -> TableDefinitionOut:
        return TableDefinitionOut(
            id=table.id,
            label=table.label,
            zone_id=table.zone_id,
            zone=table.zone.name if table.zone else None,
            capacity=table.capacity,
            is_active=table.is_active,
            sort_order=table.sort_order,
            created_at=table.created_at,
            updated_at=table.updated_at
        )

    def _order_out(self, state: Optional[TableState]) -> Optional[TableOrderOut]:
        if state is None:
            return None
        return TableOrderOut(
            status=state.status,
            pending_items=[OrderLine(**line) for line in state.pending_items or []],
            sent_items=[OrderLine(**line) for line in state.sent_items or []]
        )

    def to_admin_snapshot(self, table: DiningTable) -> TableAdminSnapshot:
        state = table.state
        pending = line_quantity_total(state.pending_items) if state else 0
        sent = line_quantity_total(state.sent_items) if state else 0
        has_movement = pending + sent > 0 or bool(state and state.assigned_waiter_id)
        order_status = state.status if state is not None and has_movement else "libre"
        definition = self.to_definition(table)
        return TableAdminSnapshot(
            **definition.model_dump(),
            assigned_waiter_id=state.assigned_waiter_id if state else None,
            assigned_waiter_name=state.assigned_waiter_name if state else None,
            updated_state_at=state.updated_at if state else None,
            order_status=order_status,
            pending_items_count=pending,
            sent_items_count=sent,
            reservation=ReservationOut.model_validate(table.reservation) if table.reservation else None,
            order=self._order_out(state)
        )

    def to_waiter_snapshot(self, table: DiningTable) -> WaiterTableSnapshot:
        state = table.state
        visible = state is not None and bool(
            state.pending_items or state.sent_items or state.assigned_waiter_id is not None
        )
        return WaiterTableSnapshot(
            id=table.id,
            label=table.label,
            zone_id=table.zone_id,
            zone=table.zone.name if table.zone else None,
            capacity=table.capacity,
            assigned_waiter_id=state.assigned_waiter_id if state else None,
            assigned_waiter_name=state.assigned_waiter_name if state else None,
            updated_at=state.updated_at if state else None,
            reservation=ReservationOut.model_validate(table.reservation) if table.reservation else None,
            order=self._order_out(state) if visible else None
        )
