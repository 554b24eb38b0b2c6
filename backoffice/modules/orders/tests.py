"""
Tests para el módulo de Pedidos
"""

import pytest
from decimal import Decimal
from fastapi import HTTPException

from backoffice.modules.orders.models import OrderStatus
from backoffice.modules.orders.schemas import OrderCreate, OrderItemInput, OrderItemUpdate
from backoffice.modules.orders.service import OrderService
from backoffice.modules.tables.models import TableStatus
from backoffice.modules.tables.schemas import TableCreate
from backoffice.modules.tables.service import TableService


def item(code="CER-001", name="Cerveza Toña", quantity="2", unit_price="45", **fields):
    return OrderItemInput(
        article_code=code, name=name, quantity=Decimal(quantity), unit_price=Decimal(unit_price), **fields
    )


@pytest.fixture
def table(db_session):
    return TableService(db_session).create_table(TableCreate(id="M1", label="Mesa 1"))


@pytest.fixture
def order(db_session, table):
    return OrderService(db_session).create_order(OrderCreate(
        table_id="m1",
        waiter_code="m01",
        waiter_name="Ana López",
        guests=2,
        items=[item(), item("BOQ-001", "Boca de la casa", "1", "80", modifiers=["sin cebolla"])]
    ))


class TestCreateOrder:
    """Tests para creación de pedidos"""

    def test_create_order(self, order):
        assert order.order_code.startswith("ORD-")
        assert order.status == OrderStatus.OPEN
        assert order.table_label == "Mesa 1"
        assert order.waiter_code == "M01"
        assert order.total == Decimal("170.00")
        assert order.items[1].modifiers == ["sin cebolla"]

    def test_order_mirrors_table_state(self, db_session, order):
        snapshot = TableService(db_session).get_admin_snapshot("M1")
        assert [line.article_code for line in snapshot.order.sent_items] == ["CER-001", "BOQ-001"]
        assert snapshot.sent_items_count == 3

    def test_unknown_table_404(self, db_session):
        with pytest.raises(HTTPException) as exc_info:
            OrderService(db_session).create_order(OrderCreate(table_id="NOEXISTE"))
        assert exc_info.value.status_code == 404

    def test_order_without_table(self, db_session):
        created = OrderService(db_session).create_order(OrderCreate(items=[item()]))
        assert created.table_id is None
        assert created.total == Decimal("90.00")

    def test_zero_quantity_rejected(self, db_session):
        with pytest.raises(HTTPException) as exc_info:
            OrderService(db_session).create_order(OrderCreate(items=[item(quantity="0")]))
        assert exc_info.value.status_code == 400


class TestOrderItems:
    """Tests para líneas del pedido"""

    def test_add_item(self, db_session, order):
        updated = OrderService(db_session).add_order_item(order.id, item("REF-001", "Refresco", "1", "30"))
        assert len(updated.items) == 3
        assert updated.total == Decimal("200.00")

    def test_update_item_quantity(self, db_session, order):
        first = order.items[0]
        updated = OrderService(db_session).update_order_item(order.id, first.id, OrderItemUpdate(quantity=Decimal("4")))
        assert updated.items[0].quantity == Decimal("4")
        assert updated.total == Decimal("260.00")

        snapshot = TableService(db_session).get_admin_snapshot("M1")
        assert snapshot.order.sent_items[0].quantity == 4

    def test_update_item_non_positive_quantity(self, db_session, order):
        with pytest.raises(HTTPException) as exc_info:
            OrderService(db_session).update_order_item(order.id, order.items[0].id, OrderItemUpdate(quantity=Decimal("0")))
        assert exc_info.value.status_code == 400

    def test_update_missing_item(self, db_session, order):
        with pytest.raises(HTTPException) as exc_info:
            OrderService(db_session).update_order_item(order.id, 9999, OrderItemUpdate(quantity=Decimal("1")))
        assert exc_info.value.status_code == 404

    def test_remove_item(self, db_session, order):
        updated = OrderService(db_session).remove_order_item(order.id, order.items[1].id)
        assert [i.article_code for i in updated.items] == ["CER-001"]
        assert updated.total == Decimal("90.00")


class TestOrderLifecycle:
    """Tests para cierre de pedidos"""

    def test_notes_and_guests(self, db_session, order):
        service = OrderService(db_session)
        service.update_order_notes(order.id, "  Cumpleaños  ")
        updated = service.update_order_guests(order.id, 5)
        assert updated.notes == "Cumpleaños"
        assert updated.guests == 5

    def test_cancel_order_marks_table(self, db_session, order):
        cancelled = OrderService(db_session).cancel_order(order.id)
        assert cancelled.status == OrderStatus.CANCELLED
        assert cancelled.closed_at is not None

        snapshot = TableService(db_session).get_admin_snapshot("M1")
        assert snapshot.order.status == TableStatus.ANULADO
        assert snapshot.order.sent_items == []

    def test_closed_order_cannot_change(self, db_session, order):
        service = OrderService(db_session)
        service.cancel_order(order.id)
        with pytest.raises(HTTPException) as exc_info:
            service.add_order_item(order.id, item())
        assert exc_info.value.status_code == 409

    def test_closed_order_keeps_notes_and_guests(self, db_session, order):
        service = OrderService(db_session)
        service.update_order_guests(order.id, 2)
        service.cancel_order(order.id)

        with pytest.raises(HTTPException) as exc_info:
            service.update_order_notes(order.id, "tarde")
        assert exc_info.value.status_code == 409
        with pytest.raises(HTTPException) as exc_info:
            service.update_order_guests(order.id, 4)
        assert exc_info.value.status_code == 409

        unchanged = service.get_order(order.id)
        assert unchanged.notes is None
        assert unchanged.guests == 2

    def test_mark_as_invoiced(self, db_session, order):
        invoiced = OrderService(db_session).mark_order_as_invoiced(order.id)
        assert invoiced.status == OrderStatus.INVOICED
        assert OrderService(db_session).list_open_orders() == []

        snapshot = TableService(db_session).get_admin_snapshot("M1")
        assert snapshot.order.status == TableStatus.FACTURADO

    def test_missing_order_404(self, db_session):
        with pytest.raises(HTTPException) as exc_info:
            OrderService(db_session).get_order(9999)
        assert exc_info.value.status_code == 404


class TestOrderEndpoints:
    """Tests de endpoints"""

    def test_create_and_cancel(self, client, table):
        response = client.post("/orders/", json={
            "table_id": "M1",
            "items": [{"article_code": "CER-001", "name": "Cerveza", "quantity": "2", "unit_price": "45"}]
        })
        assert response.status_code == 201
        order_id = response.json()["id"]

        assert [o["id"] for o in client.get("/orders/").json()] == [order_id]

        cancelled = client.post(f"/orders/{order_id}/cancel")
        assert cancelled.status_code == 200
        assert cancelled.json()["status"] == "CANCELLED"

        again = client.post(f"/orders/{order_id}/cancel")
        assert again.status_code == 409
