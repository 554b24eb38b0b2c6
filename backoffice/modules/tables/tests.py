"""
Tests para el módulo de Mesas

Tests que cubren:
- Zonas y definiciones de mesas
- Asignación de mesero y comandas
- Reservaciones
- Estados facturado/anulado que liberan la mesa
"""

import pytest
from fastapi import HTTPException

from backoffice.modules.orders.service import OrderService
from backoffice.modules.staff.schemas import WaiterCreate
from backoffice.modules.staff.service import StaffService
from backoffice.modules.tables.models import TableStatus, ReservationStatus
from backoffice.modules.tables.schemas import (
    ZoneCreate, TableCreate, TableUpdate, ReservationCreate, OrderLine
)
from backoffice.modules.tables.service import TableService, TableZoneService


@pytest.fixture
def zone(db_session):
    return TableZoneService(db_session).create_zone(ZoneCreate(name="Salón Principal"))


@pytest.fixture
def table(db_session, zone):
    return TableService(db_session).create_table(TableCreate(
        id="m1", label="Mesa 1", zone_id=zone.id, capacity=4
    ))


def beer_line(quantity=2):
    return OrderLine(article_code="CER-001", name="Cerveza Toña", unit_price=45, quantity=quantity)


# ===== ZONAS =====

class TestZones:
    """Tests para zonas"""

    def test_zone_id_from_name(self, zone):
        assert zone.id == "SALON-PRINCIPAL"
        assert zone.sort_order == 1

    def test_duplicate_zone_conflict(self, db_session, zone):
        with pytest.raises(HTTPException) as exc_info:
            TableZoneService(db_session).create_zone(ZoneCreate(name="salon principal"))
        assert exc_info.value.status_code == 409

    def test_zone_in_use_cannot_be_deleted(self, db_session, table):
        with pytest.raises(HTTPException) as exc_info:
            TableZoneService(db_session).delete_zone("SALON-PRINCIPAL")
        assert exc_info.value.status_code == 409


# ===== DEFINICIONES =====

class TestTableDefinitions:
    """Tests para definiciones de mesas"""

    def test_create_table(self, table):
        assert table.id == "M1"
        assert table.zone == "Salón Principal"
        assert table.capacity == 4

    def test_duplicate_table_conflict(self, db_session, table):
        with pytest.raises(HTTPException) as exc_info:
            TableService(db_session).create_table(TableCreate(id="M1", label="Otra"))
        assert exc_info.value.status_code == 409

    def test_unknown_zone_rejected(self, db_session):
        with pytest.raises(HTTPException) as exc_info:
            TableService(db_session).create_table(TableCreate(id="M2", label="Mesa 2", zone_id="TERRAZA"))
        assert exc_info.value.status_code == 400

    def test_update_table(self, db_session, table):
        updated = TableService(db_session).update_table("M1", TableUpdate(label="Mesa ventana", zone_id=None))
        assert updated.label == "Mesa ventana"
        assert updated.zone_id is None

    def test_table_with_open_order_cannot_be_deleted(self, db_session, table, waiter):
        TableService(db_session).store_table_order("M1", "M01", [], [beer_line()])
        with pytest.raises(HTTPException) as exc_info:
            TableService(db_session).delete_table("M1")
        assert exc_info.value.status_code == 409


# ===== OPERACIÓN DEL MESERO =====

class TestWaiterOperations:
    """Tests para asignación de mesero y comandas"""

    def test_new_table_is_free(self, db_session, table):
        snapshot = TableService(db_session).get_admin_snapshot("M1")
        assert snapshot.order_status == "libre"
        assert [t.id for t in TableService(db_session).list_available_tables()] == ["M1"]

    def test_claim_table(self, db_session, table, waiter):
        snapshot = TableService(db_session).claim_table("m1", "m01")
        assert snapshot.assigned_waiter_id == waiter.id
        assert snapshot.assigned_waiter_name == "Ana López"
        assert TableService(db_session).list_available_tables() == []

    def test_claim_by_unknown_waiter(self, db_session, table):
        with pytest.raises(HTTPException) as exc_info:
            TableService(db_session).claim_table("M1", "NOEXISTE")
        assert exc_info.value.status_code == 404

    def test_other_waiter_cannot_claim(self, db_session, table, waiter):
        StaffService(db_session).create_waiter(WaiterCreate(code="M02", full_name="Luis Ruiz"))
        service = TableService(db_session)
        service.claim_table("M1", "M01")

        with pytest.raises(HTTPException) as exc_info:
            service.claim_table("M1", "M02")
        assert exc_info.value.status_code == 409

    def test_store_order_creates_open_order(self, db_session, table, waiter):
        snapshot = TableService(db_session).store_table_order(
            "M1", "M01", [beer_line(1)], [beer_line(2)]
        )
        assert len(snapshot.order.pending_items) == 1
        assert snapshot.order.sent_items[0].quantity == 2

        orders = OrderService(db_session).list_open_orders()
        assert len(orders) == 1
        assert orders[0].table_id == "M1"
        assert orders[0].waiter_code == "M01"
        assert orders[0].total == 90

    def test_store_order_replaces_sent_items(self, db_session, table, waiter):
        service = TableService(db_session)
        service.store_table_order("M1", "M01", [], [beer_line(2)])
        service.store_table_order("M1", "M01", [], [beer_line(3)])

        orders = OrderService(db_session).list_open_orders()
        assert len(orders) == 1
        assert [item.quantity for item in orders[0].items] == [3]

    def test_pending_only_does_not_create_order(self, db_session, table, waiter):
        TableService(db_session).store_table_order("M1", "M01", [beer_line()], [])
        assert OrderService(db_session).list_open_orders() == []

    def test_inactive_table_rejected(self, db_session, table, waiter):
        TableService(db_session).update_table("M1", TableUpdate(is_active=False))
        with pytest.raises(HTTPException) as exc_info:
            TableService(db_session).claim_table("M1", "M01")
        assert exc_info.value.status_code == 400


# ===== ESTADOS Y RESERVACIONES =====

class TestStatusAndReservations:
    """Tests para estados y reservaciones"""

    def test_invoiced_status_frees_table(self, db_session, table, waiter):
        service = TableService(db_session)
        service.store_table_order("M1", "M01", [beer_line()], [beer_line()])

        snapshot = service.set_table_status("M1", TableStatus.FACTURADO)
        assert snapshot.assigned_waiter_id is None
        assert snapshot.order.sent_items == []
        assert snapshot.order_status == "libre"
        assert [t.id for t in service.list_available_tables()] == ["M1"]

    def test_reservation_blocks_availability(self, db_session, table):
        service = TableService(db_session)
        snapshot = service.reserve_table("M1", ReservationCreate(reserved_by="Familia Pérez", party_size=6))

        assert snapshot.reservation.status == ReservationStatus.HOLDING
        assert snapshot.reservation.party_size == 6
        assert service.list_available_tables() == []

    def test_reservation_requires_name(self, db_session, table):
        with pytest.raises(HTTPException) as exc_info:
            TableService(db_session).reserve_table("M1", ReservationCreate(reserved_by="  "))
        assert exc_info.value.status_code == 400

    def test_double_reservation_conflict(self, db_session, table):
        service = TableService(db_session)
        service.reserve_table("M1", ReservationCreate(reserved_by="Familia Pérez"))
        with pytest.raises(HTTPException) as exc_info:
            service.reserve_table("M1", ReservationCreate(reserved_by="Otro"))
        assert exc_info.value.status_code == 409

    def test_occupied_table_cannot_be_reserved(self, db_session, table, waiter):
        service = TableService(db_session)
        service.claim_table("M1", "M01")
        with pytest.raises(HTTPException) as exc_info:
            service.reserve_table("M1", ReservationCreate(reserved_by="Familia Pérez"))
        assert exc_info.value.status_code == 409

    def test_claim_seats_reservation(self, db_session, table, waiter):
        service = TableService(db_session)
        service.reserve_table("M1", ReservationCreate(reserved_by="Familia Pérez"))
        snapshot = service.claim_table("M1", "M01")
        assert snapshot.reservation.status == ReservationStatus.SEATED

    def test_release_reservation(self, db_session, table):
        service = TableService(db_session)
        service.reserve_table("M1", ReservationCreate(reserved_by="Familia Pérez"))
        snapshot = service.release_reservation("M1")
        assert snapshot.reservation is None


class TestTableEndpoints:
    """Tests de endpoints"""

    def test_create_zone_and_table(self, client):
        zone = client.post("/table-zones/", json={"name": "Terraza"})
        assert zone.status_code == 201
        assert zone.json()["id"] == "TERRAZA"

        response = client.post("/tables/", json={"id": "t1", "label": "Terraza 1", "zone_id": "TERRAZA"})
        assert response.status_code == 201
        assert response.json()["id"] == "T1"

        snapshots = client.get("/tables/admin")
        assert snapshots.status_code == 200
        assert snapshots.json()[0]["order_status"] == "libre"

    def test_claim_endpoint(self, client, table, waiter):
        response = client.post("/tables/M1/claim", json={"waiter_code": "M01"})
        assert response.status_code == 200
        assert response.json()["assigned_waiter_name"] == "Ana López"

    def test_missing_table(self, client):
        assert client.get("/tables/NOEXISTE").status_code == 404
