"""
Tests para el módulo de Facturación

Tests que cubren:
- Emisión con folio del consecutivo de la caja
- Descarga de inventario desde el almacén de la caja
- Cierre del pedido de origen y liberación de la mesa
- Ventas a crédito en modo retail con documento en CxC
- Anulación con reverso de inventario
- Arqueo de caja con las facturas de la sesión
"""

import pytest
from datetime import timedelta
from decimal import Decimal
from fastapi import HTTPException

from backoffice.core.config import settings
from backoffice.common.utils import business_date, utcnow
from backoffice.modules.cash_registers.schemas import CloseSessionRequest, Denomination, ReportedPayment
from backoffice.modules.cash_registers.service import CashSessionService
from backoffice.modules.cxc.models import DocumentStatus, DocumentType
from backoffice.modules.cxc.service import CustomerService, CustomerDocumentService
from backoffice.modules.inventory.models import TransactionType
from backoffice.modules.inventory.service import InventoryService
from backoffice.modules.invoices.models import InvoiceStatus, PaymentMethod
from backoffice.modules.invoices.schemas import InvoiceCreate, InvoiceItemInput, InvoicePaymentInput
from backoffice.modules.invoices.service import InvoiceService
from backoffice.modules.orders.models import OrderStatus
from backoffice.modules.orders.schemas import OrderCreate, OrderItemInput
from backoffice.modules.orders.service import OrderService
from backoffice.modules.tables.models import TableStatus
from backoffice.modules.tables.schemas import TableCreate
from backoffice.modules.tables.service import TableService


def stock_of(db_session, article_code, warehouse_code="PRINCIPAL"):
    rows = InventoryService(db_session).get_stock_summary(
        article_codes=[article_code], warehouse_codes=[warehouse_code]
    )
    return rows[0].available_retail if rows else Decimal("0")


def beer_invoice(quantity=3, paid=None, **fields):
    """Factura de cervezas a C$45 pagada en efectivo"""
    total = Decimal("45") * quantity
    payments = fields.pop("payments", None)
    if payments is None:
        payments = [InvoicePaymentInput(method=PaymentMethod.CASH, amount=total if paid is None else Decimal(str(paid)))]
    return InvoiceCreate(
        subtotal=total,
        total_amount=total,
        items=[InvoiceItemInput(
            article_code="CER-001", description="Cerveza Toña", quantity=Decimal(quantity), unit_price=Decimal("45")
        )],
        payments=payments,
        **fields
    )


@pytest.fixture
def stocked_beer(make_article, warehouse, receive_stock):
    make_article("CER-001", name="Cerveza Toña", conversion_factor=24)
    receive_stock("CER-001", 24)
    return "CER-001"


@pytest.fixture
def retail_mode(monkeypatch):
    monkeypatch.setattr(settings, "RETAIL_MODE_ENABLED", True)


# ===== EMISIÓN =====

class TestCreateInvoice:
    """Tests para emisión de facturas"""

    def test_requires_open_session(self, db_session, cash_register, admin_user):
        with pytest.raises(HTTPException) as exc_info:
            InvoiceService(db_session).create_invoice(admin_user.id, beer_invoice())
        assert exc_info.value.status_code == 409
        assert "abrir una caja" in exc_info.value.detail

    def test_invoice_uses_register_sequence(self, db_session, open_session, admin_user, stocked_beer):
        service = InvoiceService(db_session)
        first = service.create_invoice(admin_user.id, beer_invoice())
        second = service.create_invoice(admin_user.id, beer_invoice(1))

        assert first.invoice_number == "F-000001"
        assert second.invoice_number == "F-000002"
        assert first.pending_amount == Decimal("0")
        assert first.cxc_document_id is None

        session = CashSessionService(db_session).get_session(open_session.id)
        assert session.invoice_sequence_start == "F-000001"
        assert session.invoice_sequence_end == "F-000002"

    def test_invoice_discharges_register_warehouse(self, db_session, open_session, admin_user, stocked_beer):
        created = InvoiceService(db_session).create_invoice(admin_user.id, beer_invoice(3))

        assert stock_of(db_session, "CER-001") == Decimal("21")
        documents = InventoryService(db_session).list_transaction_headers(transaction_types=["CONSUMPTION"])
        assert [d.reference for d in documents] == [created.invoice_number]

    def test_invoice_detail(self, db_session, open_session, admin_user, stocked_beer):
        created = InvoiceService(db_session).create_invoice(admin_user.id, beer_invoice(2))
        detail = InvoiceService(db_session).get_invoice(created.id)

        assert detail.status == InvoiceStatus.FACTURADA
        assert detail.currency_code == "NIO"
        assert detail.items[0].line_total == Decimal("90")
        assert detail.payments[0].payment_method == PaymentMethod.CASH
        assert detail.cash_register_session_id == open_session.id
        assert detail.issuer_admin_user_id == admin_user.id

    def test_pending_balance_rejected(self, db_session, open_session, admin_user, stocked_beer):
        service = InvoiceService(db_session)
        with pytest.raises(HTTPException) as exc_info:
            service.create_invoice(admin_user.id, beer_invoice(3, paid=100))
        assert exc_info.value.status_code == 409
        assert stock_of(db_session, "CER-001") == Decimal("24")

        assert service.create_invoice(admin_user.id, beer_invoice()).invoice_number == "F-000001"

    def test_insufficient_stock_rolls_back(self, db_session, open_session, admin_user, stocked_beer):
        service = InvoiceService(db_session)
        with pytest.raises(HTTPException) as exc_info:
            service.create_invoice(admin_user.id, beer_invoice(30))
        assert exc_info.value.status_code == 409
        assert service.list_invoices().total == 0

    def test_duplicate_number_conflict(self, db_session, open_session, admin_user, stocked_beer):
        service = InvoiceService(db_session)
        service.create_invoice(admin_user.id, beer_invoice(1, invoice_number="MAN-1"))
        with pytest.raises(HTTPException) as exc_info:
            service.create_invoice(admin_user.id, beer_invoice(1, invoice_number="MAN-1"))
        assert exc_info.value.status_code == 409

    def test_unknown_table_and_waiter_are_dropped(self, db_session, open_session, admin_user, stocked_beer):
        created = InvoiceService(db_session).create_invoice(
            admin_user.id, beer_invoice(1, table_code="NOEXISTE", waiter_code="NOEXISTE")
        )
        detail = InvoiceService(db_session).get_invoice(created.id)
        assert detail.table_code is None
        assert detail.waiter_code is None

    def test_lines_without_article_skip_inventory(self, db_session, open_session, admin_user):
        created = InvoiceService(db_session).create_invoice(admin_user.id, InvoiceCreate(
            subtotal=Decimal("50"),
            total_amount=Decimal("50"),
            items=[InvoiceItemInput(description="Servicio de descorche", quantity=Decimal("1"), unit_price=Decimal("50"))],
            payments=[InvoicePaymentInput(method=PaymentMethod.CARD, amount=Decimal("50"))]
        ))
        assert created.invoice_number == "F-000001"


# ===== PEDIDO DE ORIGEN =====

class TestOriginOrder:
    """Tests para facturas de pedidos de mesa"""

    @pytest.fixture
    def table_order(self, db_session, waiter):
        TableService(db_session).create_table(TableCreate(id="M1", label="Mesa 1"))
        return OrderService(db_session).create_order(OrderCreate(
            table_id="M1",
            waiter_code="M01",
            items=[OrderItemInput(article_code="CER-001", name="Cerveza Toña", quantity=Decimal("2"), unit_price=Decimal("45"))]
        ))

    def test_order_is_invoiced_and_table_freed(self, db_session, open_session, admin_user, stocked_beer, table_order):
        InvoiceService(db_session).create_invoice(
            admin_user.id, beer_invoice(2, table_code="m1", waiter_code="m01", origin_order_id=table_order.id)
        )

        order = OrderService(db_session).get_order(table_order.id)
        assert order.status == OrderStatus.INVOICED
        snapshot = TableService(db_session).get_admin_snapshot("M1")
        assert snapshot.order.status == TableStatus.FACTURADO
        assert snapshot.order_status == "libre"

    def test_order_lines_used_when_invoice_has_no_articles(self, db_session, open_session, admin_user, stocked_beer, table_order):
        InvoiceService(db_session).create_invoice(admin_user.id, InvoiceCreate(
            subtotal=Decimal("90"),
            total_amount=Decimal("90"),
            origin_order_id=table_order.id,
            items=[InvoiceItemInput(description="Consumo mesa 1", quantity=Decimal("1"), unit_price=Decimal("90"))],
            payments=[InvoicePaymentInput(method=PaymentMethod.CASH, amount=Decimal("90"))]
        ))
        assert stock_of(db_session, "CER-001") == Decimal("22")

    def test_missing_origin_order_is_ignored(self, db_session, open_session, admin_user, stocked_beer):
        created = InvoiceService(db_session).create_invoice(admin_user.id, beer_invoice(1, origin_order_id=9999))
        assert InvoiceService(db_session).get_invoice(created.id).origin_order_id is None


# ===== MODO RETAIL Y CRÉDITO =====

class TestRetailCredit:
    """Tests para ventas a crédito"""

    def test_retail_requires_customer(self, db_session, retail_mode, open_session, admin_user, stocked_beer):
        with pytest.raises(HTTPException) as exc_info:
            InvoiceService(db_session).create_invoice(admin_user.id, beer_invoice())
        assert exc_info.value.status_code == 400

    def test_credit_sale_creates_cxc_document(self, db_session, retail_mode, open_session, admin_user, stocked_beer, customer):
        created = InvoiceService(db_session).create_invoice(
            admin_user.id, beer_invoice(4, paid=80, customer_code="CLI001", sale_type="CREDITO")
        )
        assert created.pending_amount == Decimal("100.00")
        assert created.cxc_document_id is not None

        document = CustomerDocumentService(db_session).get_document(created.cxc_document_id)
        assert document.document_type == DocumentType.INVOICE
        assert document.document_number == created.invoice_number
        assert document.balance_amount == Decimal("100")
        assert document.due_date == business_date(utcnow()) + timedelta(days=30)
        assert document.related_invoice_id == created.id

        detail = InvoiceService(db_session).get_invoice(created.id)
        assert detail.customer_name == "Distribuidora El Sol"
        assert detail.customer_tax_id == "J0310000000001"

        assert CustomerService(db_session).get_by_code("CLI001").credit_used == Decimal("100")

    def test_cash_sale_type_keeps_pending_rule(self, db_session, retail_mode, open_session, admin_user, stocked_beer, customer):
        with pytest.raises(HTTPException) as exc_info:
            InvoiceService(db_session).create_invoice(
                admin_user.id, beer_invoice(4, paid=80, customer_code="CLI001", sale_type="CONTADO")
            )
        assert exc_info.value.status_code == 409

    def test_credit_outside_retail_mode_rejected(self, db_session, open_session, admin_user, stocked_beer, customer):
        with pytest.raises(HTTPException) as exc_info:
            InvoiceService(db_session).create_invoice(
                admin_user.id, beer_invoice(4, paid=80, customer_code="CLI001", sale_type="CREDITO")
            )
        assert exc_info.value.status_code == 409


# ===== ANULACIÓN =====

class TestCancelInvoice:
    """Tests para anulación de facturas"""

    def test_cancel_restores_stock(self, db_session, open_session, admin_user, stocked_beer):
        service = InvoiceService(db_session)
        created = service.create_invoice(admin_user.id, beer_invoice(5))
        result = service.cancel_invoice(created.id)

        assert result.status == InvoiceStatus.ANULADA
        assert result.reversed_lines == 1
        assert result.cancelled_at is not None
        assert stock_of(db_session, "CER-001") == Decimal("24")

        adjustments = InventoryService(db_session).list_transaction_headers(transaction_types=["ADJUSTMENT"])
        assert adjustments[0].transaction_type == TransactionType.ADJUSTMENT
        assert adjustments[0].reference == f"ANULACION {created.invoice_number}"

    def test_cancel_twice_conflict(self, db_session, open_session, admin_user, stocked_beer):
        service = InvoiceService(db_session)
        created = service.create_invoice(admin_user.id, beer_invoice(1))
        service.cancel_invoice(created.id)
        with pytest.raises(HTTPException) as exc_info:
            service.cancel_invoice(created.id)
        assert exc_info.value.status_code == 409

    def test_cancel_credit_invoice_cancels_document(self, db_session, retail_mode, open_session, admin_user, stocked_beer, customer):
        service = InvoiceService(db_session)
        created = service.create_invoice(
            admin_user.id, beer_invoice(4, paid=0, customer_code="CLI001", sale_type="CREDITO")
        )
        service.cancel_invoice(created.id)

        document = CustomerDocumentService(db_session).get_document(created.cxc_document_id)
        assert document.status == DocumentStatus.CANCELADO
        assert document.balance_amount == Decimal("0")
        assert CustomerService(db_session).get_by_code("CLI001").credit_used == Decimal("0")

    def test_missing_invoice_404(self, db_session):
        with pytest.raises(HTTPException) as exc_info:
            InvoiceService(db_session).cancel_invoice(9999)
        assert exc_info.value.status_code == 404


# ===== CONSULTA Y ARQUEO =====

class TestInvoiceQueriesAndClosure:
    """Tests para el listado y el arqueo de la sesión"""

    def test_list_invoices_with_filters(self, db_session, open_session, admin_user, stocked_beer):
        service = InvoiceService(db_session)
        service.create_invoice(admin_user.id, beer_invoice(1, customer_name="Juan Pérez"))
        service.create_invoice(admin_user.id, beer_invoice(1, customer_name="María Gómez"))
        service.create_invoice(admin_user.id, beer_invoice(1))

        assert service.list_invoices().total == 3
        assert [i.customer_name for i in service.list_invoices(q="gómez").items] == ["María Gómez"]

        page = service.list_invoices(page=2, page_size=2)
        assert page.total == 3
        assert len(page.items) == 1

    def test_closure_compares_session_invoices(self, db_session, open_session, admin_user, stocked_beer):
        service = InvoiceService(db_session)
        service.create_invoice(admin_user.id, beer_invoice(3))
        cancelled = service.create_invoice(admin_user.id, beer_invoice(1))
        service.cancel_invoice(cancelled.id)

        summary = CashSessionService(db_session).close_session(admin_user.id, CloseSessionRequest(
            closing_amount=Decimal("130"),
            payments=[ReportedPayment(method="CASH", reported_amount=Decimal("130"), transaction_count=1)],
            closing_denominations=[
                Denomination(currency="NIO", value=Decimal("100"), qty=1),
                Denomination(currency="NIO", value=Decimal("10"), qty=3),
            ]
        ))
        assert summary.total_invoices == 1
        assert summary.expected_total_amount == Decimal("135")
        assert summary.reported_total_amount == Decimal("130")
        assert summary.difference_total_amount == Decimal("-5")
        assert summary.payments[0].method == "CASH"


class TestInvoiceEndpoints:
    """Tests de endpoints"""

    def test_create_requires_operator(self, client, open_session):
        response = client.post("/invoices/", json={"subtotal": "0", "total_amount": "0"})
        assert response.status_code == 400

    def test_create_and_get(self, client, open_session, admin_user, stocked_beer):
        response = client.post(
            "/invoices/",
            headers={"X-Admin-User-ID": str(admin_user.id)},
            json={
                "subtotal": "90",
                "total_amount": "90",
                "items": [{"article_code": "CER-001", "description": "Cerveza", "quantity": "2", "unit_price": "45"}],
                "payments": [{"method": "CASH", "amount": "90"}]
            }
        )
        assert response.status_code == 201
        invoice_id = response.json()["id"]

        detail = client.get(f"/invoices/{invoice_id}")
        assert detail.status_code == 200
        assert detail.json()["invoice_number"] == "F-000001"

        cancelled = client.post(f"/invoices/{invoice_id}/cancel")
        assert cancelled.json()["status"] == "ANULADA"
