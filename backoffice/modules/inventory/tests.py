"""
Tests para el motor de Inventario

Tests que cubren:
- Conversión entre unidad de almacenamiento y de detalle
- Compras, consumos y traspasos con sus folios
- Expansión de kits a componentes
- Existencias insuficientes y reversión de la transacción
- Descarga por factura y su reverso
- Kardex con saldo acumulado
"""

import pytest
from datetime import date, datetime
from decimal import Decimal
from fastapi import HTTPException

from backoffice.modules.catalog.models import Article, ArticleType
from backoffice.modules.catalog.schemas import KitComponentInput, WarehouseCreate
from backoffice.modules.catalog.service import ArticleService, WarehouseService
from backoffice.modules.inventory.models import (
    InventoryMovement, InventoryUnit, MovementDirection, TransactionType, TransactionStatus
)
from backoffice.modules.inventory.schemas import (
    PurchaseCreate, ConsumptionCreate, TransferCreate, InventoryLineInput, InvoiceMovementLine
)
from backoffice.modules.inventory.service import InventoryService, date_bounds, INVOICE_AUTHORIZER


def stock_of(db_session, article_code, warehouse_code="PRINCIPAL"):
    rows = InventoryService(db_session).get_stock_summary(
        article_codes=[article_code], warehouse_codes=[warehouse_code]
    )
    return rows[0].available_retail if rows else Decimal("0")


def line(article_code, quantity, unit=InventoryUnit.RETAIL):
    return InventoryLineInput(article_code=article_code, quantity=Decimal(str(quantity)), unit=unit)


@pytest.fixture
def beer(make_article, warehouse):
    """Cerveza: caja de 24 unidades"""
    return make_article("CER-001", name="Cerveza Toña", conversion_factor=24)


@pytest.fixture
def combo(db_session, make_article, warehouse):
    """Kit: 2 cervezas + 1 boca"""
    make_article("CER-001", name="Cerveza Toña")
    make_article("BOQ-001", name="Boca de la casa")
    make_article("COMBO-1", name="Combo cervecero", article_type=ArticleType.KIT)
    ArticleService(db_session).set_kit_components("COMBO-1", [
        KitComponentInput(component_code="CER-001", component_qty_retail=Decimal("2")),
        KitComponentInput(component_code="BOQ-001", component_qty_retail=Decimal("1")),
    ])
    return "COMBO-1"


class TestDateBounds:
    """Tests para los límites de día de negocio (UTC-6)"""

    def test_bounds_are_shifted_to_utc(self):
        start, end = date_bounds(date(2025, 1, 31), date(2025, 1, 31))
        assert start == datetime(2025, 1, 31, 6, 0)
        assert end == datetime(2025, 2, 1, 5, 59, 59, 999999)

    def test_open_bounds(self):
        assert date_bounds(None, None) == (None, None)


class TestComputeMovement:
    """Tests para el cálculo de cantidades"""

    def test_storage_unit_converts_to_retail(self, db_session, beer):
        computation = InventoryService(db_session).compute_movement("CER-001", Decimal("2"), InventoryUnit.STORAGE)
        assert computation.quantity_retail == Decimal("48")
        assert computation.quantity_storage == Decimal("2")

    def test_retail_unit_converts_to_storage(self, db_session, beer):
        computation = InventoryService(db_session).compute_movement("CER-001", Decimal("12"), InventoryUnit.RETAIL)
        assert computation.quantity_storage == Decimal("0.5")

    def test_kit_expands_components(self, db_session, combo):
        computation = InventoryService(db_session).compute_movement("COMBO-1", Decimal("3"))
        assert computation.kit_multiplier == Decimal("3")
        assert {c.article.article_code: c.quantity_retail for c in computation.components} == {
            "CER-001": Decimal("6"),
            "BOQ-001": Decimal("3"),
        }

    def test_kit_without_components_rejected(self, db_session, make_article):
        make_article("COMBO-9", article_type=ArticleType.KIT)
        with pytest.raises(HTTPException) as exc_info:
            InventoryService(db_session).compute_movement("COMBO-9", Decimal("1"))
        assert exc_info.value.status_code == 400

    def test_non_positive_quantity_rejected(self, db_session, beer):
        with pytest.raises(HTTPException) as exc_info:
            InventoryService(db_session).compute_movement("CER-001", Decimal("0"))
        assert exc_info.value.status_code == 400

    def test_unknown_article_rejected(self, db_session):
        with pytest.raises(HTTPException) as exc_info:
            InventoryService(db_session).compute_movement("NOEXISTE", Decimal("1"))
        assert exc_info.value.status_code == 400


class TestPurchases:
    """Tests para compras"""

    def test_purchase_in_storage_units(self, db_session, beer, receive_stock):
        result = receive_stock("CER-001", 2, cost="240", unit=InventoryUnit.STORAGE, supplier_name="Compañía Cervecera")

        assert result.transaction_code == "INV-00001"
        assert result.total_amount == Decimal("480.00")
        assert stock_of(db_session, "CER-001") == Decimal("48")

        row = InventoryService(db_session).get_stock_summary(article_codes=["CER-001"])[0]
        assert row.available_storage == Decimal("2")

    def test_purchase_defaults_to_pending(self, db_session, beer, receive_stock):
        receive_stock("CER-001", 24)
        purchases = InventoryService(db_session).list_purchases()
        assert len(purchases) == 1
        assert purchases[0].status == TransactionStatus.PENDIENTE

    def test_purchase_requires_sequence(self, db_session, beer):
        with pytest.raises(HTTPException) as exc_info:
            InventoryService(db_session).register_purchase(PurchaseCreate(
                warehouse_code="PRINCIPAL", lines=[line("CER-001", 1)]
            ))
        assert exc_info.value.status_code == 409
        assert stock_of(db_session, "CER-001") == Decimal("0")

    def test_consecutive_codes(self, db_session, beer, receive_stock):
        first = receive_stock("CER-001", 1)
        second = receive_stock("CER-001", 1)
        assert (first.transaction_code, second.transaction_code) == ("INV-00001", "INV-00002")


class TestConsumptions:
    """Tests para consumos internos"""

    def test_consumption_reduces_stock(self, db_session, beer, receive_stock):
        receive_stock("CER-001", 24)
        result = InventoryService(db_session).register_consumption(ConsumptionCreate(
            warehouse_code="PRINCIPAL",
            lines=[line("CER-001", 4)],
            reason="Cortesía",
            authorized_by="Gerente"
        ))
        assert result.transaction_code == "INV-00002"
        assert stock_of(db_session, "CER-001") == Decimal("20")

    def test_consumption_requires_authorizer(self, db_session, beer, receive_stock):
        receive_stock("CER-001", 24)
        with pytest.raises(HTTPException) as exc_info:
            InventoryService(db_session).register_consumption(ConsumptionCreate(
                warehouse_code="PRINCIPAL", lines=[line("CER-001", 1)]
            ))
        assert exc_info.value.status_code == 400

    def test_insufficient_stock_rolls_back(self, db_session, beer, receive_stock):
        receive_stock("CER-001", 5)
        with pytest.raises(HTTPException) as exc_info:
            InventoryService(db_session).register_consumption(ConsumptionCreate(
                warehouse_code="PRINCIPAL",
                lines=[line("CER-001", 2), line("CER-001", 4)],
                authorized_by="Gerente"
            ))
        assert exc_info.value.status_code == 409
        assert "Existencias insuficientes" in exc_info.value.detail
        assert stock_of(db_session, "CER-001") == Decimal("5")
        assert InventoryService(db_session).list_consumptions() == []

    def test_kit_consumption_discounts_components(self, db_session, combo, receive_stock):
        receive_stock("CER-001", 10)
        receive_stock("BOQ-001", 5)
        InventoryService(db_session).register_consumption(ConsumptionCreate(
            warehouse_code="PRINCIPAL", lines=[line("COMBO-1", 2)], authorized_by="Chef"
        ))

        assert stock_of(db_session, "CER-001") == Decimal("6")
        assert stock_of(db_session, "BOQ-001") == Decimal("3")
        assert stock_of(db_session, "COMBO-1") == Decimal("0")

        rows = InventoryService(db_session).list_consumptions()
        assert {r.article_code for r in rows} == {"CER-001", "BOQ-001"}
        assert all(r.source_kit_code == "COMBO-1" for r in rows)


class TestTransfers:
    """Tests para traspasos"""

    def test_transfer_moves_stock(self, db_session, beer, bar_warehouse, receive_stock):
        receive_stock("CER-001", 24)
        result = InventoryService(db_session).register_transfer(TransferCreate(
            from_warehouse_code="principal",
            to_warehouse_code="bar",
            lines=[line("CER-001", 1, InventoryUnit.STORAGE)]
        ))
        assert (result.from_warehouse, result.to_warehouse) == ("PRINCIPAL", "BAR")
        assert stock_of(db_session, "CER-001", "PRINCIPAL") == Decimal("0")
        assert stock_of(db_session, "CER-001", "BAR") == Decimal("24")

        transfers = InventoryService(db_session).list_transfers()
        assert transfers[0].to_warehouse_code == "BAR"
        assert transfers[0].lines_count == 1

    def test_same_warehouse_rejected(self, db_session, beer):
        with pytest.raises(HTTPException) as exc_info:
            InventoryService(db_session).register_transfer(TransferCreate(
                from_warehouse_code="PRINCIPAL",
                to_warehouse_code="principal",
                lines=[line("CER-001", 1)]
            ))
        assert exc_info.value.status_code == 400

    def test_kit_transfer_keeps_source_kit(self, db_session, combo, bar_warehouse, receive_stock):
        receive_stock("CER-001", 10)
        receive_stock("BOQ-001", 5)
        result = InventoryService(db_session).register_transfer(TransferCreate(
            from_warehouse_code="PRINCIPAL",
            to_warehouse_code="BAR",
            lines=[line("COMBO-1", 2)]
        ))

        assert stock_of(db_session, "CER-001", "BAR") == Decimal("4")
        assert stock_of(db_session, "BOQ-001", "BAR") == Decimal("2")
        assert stock_of(db_session, "CER-001", "PRINCIPAL") == Decimal("6")

        kit = db_session.query(Article).filter(Article.article_code == "COMBO-1").one()
        movements = db_session.query(InventoryMovement).filter(
            InventoryMovement.transaction_id == result.id
        ).all()
        assert len(movements) == 4
        assert sorted(m.direction.value for m in movements) == ["IN", "IN", "OUT", "OUT"]
        assert all(m.source_kit_article_id == kit.id for m in movements)

    def test_list_transfers_filters(self, db_session, make_article, warehouse, bar_warehouse, receive_stock):
        make_article("CER-001")
        make_article("BOQ-001")
        receive_stock("CER-001", 10)
        receive_stock("BOQ-001", 10)
        service = InventoryService(db_session)
        kitchen = WarehouseService(db_session).create_warehouse(WarehouseCreate(code="COCINA", name="Cocina"))
        service.register_transfer(TransferCreate(
            from_warehouse_code="PRINCIPAL", to_warehouse_code="BAR", lines=[line("CER-001", 2)]
        ))
        service.register_transfer(TransferCreate(
            from_warehouse_code="PRINCIPAL", to_warehouse_code=kitchen.code, lines=[line("BOQ-001", 3)]
        ))

        to_bar = service.list_transfers(to_warehouse_code="bar")
        assert [t.to_warehouse_code for t in to_bar] == ["BAR"]

        by_article = service.list_transfers(article_code="boq-001")
        assert [t.to_warehouse_code for t in by_article] == ["COCINA"]

        assert service.list_transfers(to_warehouse_code="BAR", article_code="BOQ-001") == []
        assert len(service.list_transfers(from_warehouse_code="PRINCIPAL")) == 2


class TestInvoiceMovements:
    """Tests para la descarga por factura y su reverso"""

    def test_register_and_reverse(self, db_session, beer, receive_stock):
        receive_stock("CER-001", 24)
        service = InventoryService(db_session)

        transactions = service.register_invoice_movements(
            "F-000001", None, "M1", "Consumidor final",
            [InvoiceMovementLine(article_code="CER-001", quantity=Decimal("3"), warehouse_code="PRINCIPAL")]
        )
        db_session.commit()
        assert len(transactions) == 1
        assert transactions[0].transaction_type == TransactionType.CONSUMPTION
        assert transactions[0].reference == "F-000001"
        assert transactions[0].authorized_by == INVOICE_AUTHORIZER
        assert stock_of(db_session, "CER-001") == Decimal("21")

        result = service.reverse_invoice_movements("F-000001")
        db_session.commit()
        assert result == {"reversed": 1}
        assert stock_of(db_session, "CER-001") == Decimal("24")

    def test_lines_without_article_are_skipped(self, db_session, beer, receive_stock):
        receive_stock("CER-001", 24)
        transactions = InventoryService(db_session).register_invoice_movements(
            "F-000002", None, None, None,
            [InvoiceMovementLine(article_code=None, quantity=Decimal("1"))]
        )
        assert transactions == []

    def test_reverse_without_movements(self, db_session):
        assert InventoryService(db_session).reverse_invoice_movements("F-999999") == {"reversed": 0}

    def test_explicit_warehouse_is_used(self, db_session, beer, bar_warehouse, receive_stock):
        receive_stock("CER-001", 24)
        receive_stock("CER-001", 6, warehouse_code="BAR")
        transactions = InventoryService(db_session).register_invoice_movements(
            "F-000003", None, None, None,
            [InvoiceMovementLine(article_code="CER-001", quantity=Decimal("2"), warehouse_code="bar")]
        )
        db_session.commit()

        assert transactions[0].warehouse.code == "BAR"
        assert stock_of(db_session, "CER-001", "BAR") == Decimal("4")
        assert stock_of(db_session, "CER-001", "PRINCIPAL") == Decimal("24")

    def test_unknown_explicit_warehouse_rejected(self, db_session, beer, receive_stock):
        receive_stock("CER-001", 24)
        with pytest.raises(HTTPException) as exc_info:
            InventoryService(db_session).register_invoice_movements(
                "F-000004", None, None, None,
                [InvoiceMovementLine(article_code="CER-001", quantity=Decimal("2"), warehouse_code="NOEXISTE")]
            )
        db_session.rollback()

        assert exc_info.value.status_code == 400
        assert exc_info.value.detail == "Almacén no encontrado: NOEXISTE"
        assert stock_of(db_session, "CER-001") == Decimal("24")


class TestQueries:
    """Tests para kardex y documentos"""

    def test_kardex_running_balance(self, db_session, beer, receive_stock):
        receive_stock("CER-001", 10, occurred_at=date(2025, 1, 10))
        receive_stock("CER-001", 5, occurred_at=date(2025, 1, 12))
        InventoryService(db_session).register_consumption(ConsumptionCreate(
            warehouse_code="PRINCIPAL",
            lines=[line("CER-001", 3)],
            authorized_by="Gerente",
            occurred_at=date(2025, 1, 15)
        ))

        rows = InventoryService(db_session).list_kardex(article_codes=["CER-001"])
        assert [r.direction for r in rows] == [MovementDirection.IN, MovementDirection.IN, MovementDirection.OUT]
        assert [r.balance_retail for r in rows] == [Decimal("10"), Decimal("15"), Decimal("12")]

    def test_kardex_opening_balance(self, db_session, beer, receive_stock):
        receive_stock("CER-001", 10, occurred_at=date(2025, 1, 10))
        receive_stock("CER-001", 5, occurred_at=date(2025, 1, 12))

        rows = InventoryService(db_session).list_kardex(date_from=date(2025, 1, 11))
        assert len(rows) == 1
        assert rows[0].balance_retail == Decimal("15")

    def test_transaction_document(self, db_session, beer, receive_stock):
        result = receive_stock("CER-001", 2, cost="240", unit=InventoryUnit.STORAGE)
        document = InventoryService(db_session).get_transaction_document(result.transaction_code)

        assert document.transaction_type == TransactionType.PURCHASE
        assert document.entries[0].quantity_retail == Decimal("48")
        assert document.entries[0].subtotal == Decimal("480")
        assert document.entries[0].movements[0].warehouse_code == "PRINCIPAL"

    def test_headers_limit_is_clamped(self, db_session, beer, receive_stock):
        for _ in range(3):
            receive_stock("CER-001", 1)
        service = InventoryService(db_session)

        assert len(service.list_transaction_headers(limit=0)) == 1
        assert len(service.list_transaction_headers(limit=-5)) == 1
        assert len(service.list_transaction_headers(limit=2)) == 2
        assert len(service.list_transaction_headers(limit=None)) == 3
        assert len(service.list_transaction_headers(limit=500)) == 3
        assert [h.transaction_code for h in service.list_transaction_headers()] == [
            "INV-00003", "INV-00002", "INV-00001"
        ]

    def test_stock_search_ignores_case(self, db_session, combo, receive_stock):
        receive_stock("CER-001", 2)
        receive_stock("BOQ-001", 2)
        service = InventoryService(db_session)

        assert [r.article_code for r in service.get_stock_summary(search="CERVEZA")] == ["CER-001"]
        assert [r.article_code for r in service.get_stock_summary(search="boq")] == ["BOQ-001"]
        assert [r.article_code for r in service.get_stock_summary(search="  casa ")] == ["BOQ-001"]
        assert service.get_stock_summary(search="vino") == []

    def test_stock_delta_snaps_to_zero(self, db_session, beer, receive_stock):
        receive_stock("CER-001", 1)
        service = InventoryService(db_session)
        article = db_session.query(Article).filter(Article.article_code == "CER-001").one()
        warehouse = service.warehouses.get_by_code("PRINCIPAL")

        stock = service.apply_stock_delta(article, warehouse, Decimal("-0.9999995"))
        assert stock.quantity_retail == Decimal("0")
        assert stock.quantity_storage == Decimal("0")

        stock = service.apply_stock_delta(article, warehouse, Decimal("-0.0000005"))
        assert stock.quantity_retail == Decimal("0")

        with pytest.raises(HTTPException) as exc_info:
            service.apply_stock_delta(article, warehouse, Decimal("-0.01"))
        assert exc_info.value.status_code == 409

    def test_missing_document_404(self, db_session):
        with pytest.raises(HTTPException) as exc_info:
            InventoryService(db_session).get_transaction_document("INV-99999")
        assert exc_info.value.status_code == 404


class TestInventoryEndpoints:
    """Tests de endpoints"""

    def test_purchase_and_stock(self, client, beer, inventory_sequences):
        response = client.post("/inventory/purchases", json={
            "warehouse_code": "PRINCIPAL",
            "supplier_name": "Compañía Cervecera",
            "lines": [{"article_code": "CER-001", "quantity": "1", "unit": "STORAGE", "cost_per_unit": "240"}]
        })
        assert response.status_code == 201
        assert response.json()["transaction_code"] == "INV-00001"

        stock = client.get("/inventory/stock", params={"article": "CER-001"})
        assert stock.status_code == 200
        assert Decimal(stock.json()[0]["available_retail"]) == Decimal("24")

    def test_consumption_over_stock(self, client, beer, inventory_sequences):
        response = client.post("/inventory/consumptions", json={
            "warehouse_code": "PRINCIPAL",
            "authorized_by": "Gerente",
            "lines": [{"article_code": "CER-001", "quantity": "1"}]
        })
        assert response.status_code == 409
