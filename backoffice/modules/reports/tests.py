"""
Tests para el módulo de Reportes

Tests que cubren:
- Resumen de ventas, meseros, artículos top y estado de cobro
- Movimientos de inventario y compras por proveedor
- Antigüedad de saldos, estado de cuenta, vencimientos y resumen de CxC
- Exportación CSV
"""

import pytest
from datetime import date, timedelta
from decimal import Decimal
from fastapi import HTTPException

from backoffice.core.config import settings
from backoffice.common.utils import business_date, utcnow
from backoffice.modules.cxc.models import DocumentStatus, DocumentType
from backoffice.modules.cxc.schemas import ApplicationInput, CustomerCreate, DocumentCreate
from backoffice.modules.cxc.service import CustomerDocumentService, CustomerService, DocumentApplicationService
from backoffice.modules.inventory.models import TransactionType
from backoffice.modules.invoices.models import PaymentMethod
from backoffice.modules.invoices.schemas import InvoiceCreate, InvoiceItemInput, InvoicePaymentInput
from backoffice.modules.invoices.service import InvoiceService
from backoffice.modules.reports.services import (
    SalesReportService, PurchaseReportService, InventoryReportService, CxcReportService
)
from backoffice.modules.reports.services.cxc import aging_bucket
from backoffice.modules.reports.services.sales import invoice_payment_status


def sale(description, quantity, unit_price, paid=None, **fields):
    total = Decimal(str(unit_price)) * quantity
    return InvoiceCreate(
        subtotal=total,
        total_amount=total,
        items=[InvoiceItemInput(
            description=description, quantity=Decimal(quantity), unit_price=Decimal(str(unit_price))
        )],
        payments=[InvoicePaymentInput(method=PaymentMethod.CASH, amount=total if paid is None else Decimal(str(paid)))],
        **fields
    )


@pytest.fixture
def today():
    return business_date(utcnow())


@pytest.fixture
def sales(db_session, open_session, admin_user, waiter):
    """Dos facturas del día: una de mesa con mesero y una de mostrador"""
    service = InvoiceService(db_session)
    first = service.create_invoice(admin_user.id, sale("Cerveza Toña", 3, 45, waiter_code="M01"))
    second = service.create_invoice(admin_user.id, sale("Boca de la casa", 1, 80))
    return first, second


@pytest.fixture
def make_document(db_session, customer):
    def _make(document_type, number, amount, document_date, **fields):
        return CustomerDocumentService(db_session).create_document(DocumentCreate(
            customer_code="CLI001",
            document_type=document_type,
            document_number=number,
            document_date=document_date,
            original_amount=Decimal(str(amount)),
            **fields
        ))
    return _make


# ===== VENTAS =====

class TestSalesReports:
    """Tests para reportes de ventas"""

    def test_payment_status_labels(self):
        assert invoice_payment_status(Decimal("100"), Decimal("100")) == "PAGADA"
        assert invoice_payment_status(Decimal("100"), Decimal("40")) == "PARCIAL"
        assert invoice_payment_status(Decimal("100"), Decimal("0")) == "PENDIENTE"

    def test_sales_summary(self, db_session, sales, today):
        report = SalesReportService(db_session).get_sales_summary(today, today)

        assert report["totals"]["invoices"] == 2
        assert report["totals"]["total"] == Decimal("215.00")
        assert report["totals"]["average_ticket"] == Decimal("107.50")
        assert report["payments"] == [{"method": "CASH", "amount": Decimal("215.00")}]
        assert [d["invoices"] for d in report["by_day"]] == [2]

    def test_summary_excludes_cancelled(self, db_session, sales, today):
        InvoiceService(db_session).cancel_invoice(sales[0].id)
        report = SalesReportService(db_session).get_sales_summary(today, today)
        assert report["totals"]["invoices"] == 1
        assert report["totals"]["total"] == Decimal("80.00")

    def test_summary_filters_by_waiter(self, db_session, sales, today):
        report = SalesReportService(db_session).get_sales_summary(today, today, waiter_code="m01")
        assert report["totals"]["total"] == Decimal("135.00")

    def test_other_days_not_included(self, db_session, sales, today):
        report = SalesReportService(db_session).get_sales_summary(today - timedelta(days=7), today - timedelta(days=1))
        assert report["totals"]["invoices"] == 0
        assert report["totals"]["average_ticket"] == Decimal("0.00")

    def test_inverted_range_rejected(self, db_session, today):
        with pytest.raises(HTTPException) as exc_info:
            SalesReportService(db_session).get_sales_summary(today, today - timedelta(days=1))
        assert exc_info.value.status_code == 422

    def test_waiter_performance(self, db_session, sales, today):
        report = SalesReportService(db_session).get_waiter_performance(today, today)
        waiters = report["waiters"]

        assert [w["waiter_name"] for w in waiters] == ["Ana López", "Sin asignar"]
        assert waiters[0]["total_sales"] == Decimal("135.00")
        assert waiters[1]["waiter_code"] is None

    def test_top_items(self, db_session, sales, today):
        report = SalesReportService(db_session).get_top_items(today, today, limit=1)
        assert report["limit"] == 1
        assert [i["description"] for i in report["items"]] == ["Cerveza Toña"]
        assert report["items"][0]["average_price"] == Decimal("45.00")

    def test_invoice_status_with_credit_sale(self, db_session, monkeypatch, open_session, admin_user, customer, today):
        monkeypatch.setattr(settings, "RETAIL_MODE_ENABLED", True)
        service = InvoiceService(db_session)
        service.create_invoice(admin_user.id, sale("Caja de cerveza", 1, 1000, paid=400, customer_code="CLI001", sale_type="CREDITO"))
        service.create_invoice(admin_user.id, sale("Refresco", 2, 30, customer_code="CLI001"))

        report = SalesReportService(db_session).get_invoice_status(today, today)
        assert [row["status"] for row in report["summary"]] == ["PAGADA", "PARCIAL"]
        assert report["summary"][1]["balance"] == Decimal("600.00")
        assert [p["balance"] for p in report["top_pending"]] == [Decimal("600.00")]


# ===== INVENTARIO Y COMPRAS =====

class TestInventoryReports:
    """Tests para reportes de inventario y compras"""

    @pytest.fixture
    def purchases(self, make_article, warehouse, receive_stock):
        make_article("CER-001", name="Cerveza Toña", conversion_factor=24)
        make_article("HAR-001", name="Harina")
        receive_stock("CER-001", 48, cost="20", supplier_name="Distribuidora Nacional")
        receive_stock("HAR-001", 10, cost="15", supplier_name="Distribuidora Nacional")
        receive_stock("HAR-001", 5, cost="15")

    def test_movements_by_type(self, db_session, purchases, today):
        report = InventoryReportService(db_session).get_movements_summary(today, today)
        assert [row["transaction_type"] for row in report["summary"]] == ["PURCHASE"]

        row = report["summary"][0]
        assert row["entries_retail"] == Decimal("63")
        assert row["entries_storage"] == Decimal("17")
        assert row["exits_retail"] == Decimal("0")
        assert report["totals"]["net_retail"] == Decimal("63")

    def test_movements_filtered_by_article(self, db_session, purchases, today):
        report = InventoryReportService(db_session).get_movements_summary(today, today, article="toña")
        assert report["summary"][0]["entries_retail"] == Decimal("48")
        assert report["summary"][0]["entries_storage"] == Decimal("2")

    def test_invoice_sales_are_consumptions(self, db_session, purchases, open_session, admin_user, today):
        InvoiceService(db_session).create_invoice(admin_user.id, InvoiceCreate(
            subtotal=Decimal("90"),
            total_amount=Decimal("90"),
            items=[InvoiceItemInput(article_code="CER-001", description="Cerveza Toña", quantity=Decimal("2"), unit_price=Decimal("45"))],
            payments=[InvoicePaymentInput(method=PaymentMethod.CASH, amount=Decimal("90"))]
        ))
        report = InventoryReportService(db_session).get_movements_summary(
            today, today, transaction_type=TransactionType.CONSUMPTION.value
        )
        assert report["summary"][0]["exits_retail"] == Decimal("2")
        assert report["totals"]["net_retail"] == Decimal("-2")

    def test_purchases_by_supplier(self, db_session, purchases, today):
        report = PurchaseReportService(db_session).get_purchases_by_supplier(today, today)
        suppliers = report["suppliers"]

        assert [s["supplier_name"] for s in suppliers] == ["Distribuidora Nacional", "Sin proveedor"]
        assert suppliers[0]["purchases"] == 2
        assert suppliers[0]["total_amount"] == Decimal("1110.00")
        assert suppliers[0]["pending_amount"] == Decimal("1110.00")
        assert suppliers[0]["average_ticket"] == Decimal("555.00")


@pytest.fixture
def cxc_period(db_session, make_document):
    """Enero 2025: cuatro documentos vigentes de CLI001, uno anulado y una factura de CLI002"""
    make_document(DocumentType.INVOICE, "F-0", 900, date(2024, 12, 20))
    make_document(DocumentType.INVOICE, "F-1", 1000, date(2025, 1, 5))
    make_document(DocumentType.CREDIT_NOTE, "NC-1", 50, date(2025, 1, 10))
    make_document(DocumentType.INVOICE, "F-2", 400, date(2025, 1, 20))
    make_document(DocumentType.RECEIPT, "R-1", 300, date(2025, 1, 25))
    cancelled = make_document(DocumentType.INVOICE, "F-3", 200, date(2025, 1, 28))
    CustomerDocumentService(db_session).cancel_document(cancelled.id)

    CustomerService(db_session).create_customer(CustomerCreate(code="CLI002", name="Hotel Las Brisas"))
    CustomerDocumentService(db_session).create_document(DocumentCreate(
        customer_code="CLI002",
        document_type=DocumentType.INVOICE,
        document_number="F-9",
        document_date=date(2025, 1, 15),
        original_amount=Decimal("5000")
    ))


# ===== CUENTAS POR COBRAR =====

class TestCxcReports:
    """Tests para reportes de cuentas por cobrar"""

    def test_aging_bucket_limits(self):
        assert aging_bucket(0) == "current"
        assert aging_bucket(30) == "days_1_30"
        assert aging_bucket(31) == "days_31_60"
        assert aging_bucket(90) == "days_61_90"
        assert aging_bucket(91) == "days_90_plus"

    def test_aging(self, db_session, make_document):
        as_of = date(2025, 6, 30)
        make_document(DocumentType.INVOICE, "F-1", 1000, as_of - timedelta(days=75))
        make_document(DocumentType.INVOICE, "F-2", 500, as_of - timedelta(days=10))
        make_document(DocumentType.RECEIPT, "R-1", 100, as_of - timedelta(days=5))

        report = CxcReportService(db_session).get_aging(as_of)
        row = report["customers"][0]
        assert row["customer_code"] == "CLI001"
        assert row["documents"] == 3
        assert row["days_31_60"] == Decimal("1000.00")
        assert row["current"] == Decimal("400.00")
        assert row["total"] == Decimal("1400.00")
        assert report["totals"]["total"] == Decimal("1400.00")

    def test_aging_ignores_later_documents(self, db_session, make_document):
        make_document(DocumentType.INVOICE, "F-1", 1000, date(2025, 7, 15))
        report = CxcReportService(db_session).get_aging(date(2025, 6, 30))
        assert report["customers"] == []

    def test_statement(self, db_session, make_document):
        invoice = make_document(DocumentType.INVOICE, "F-1", 1000, date(2025, 1, 5))
        receipt = make_document(DocumentType.RECEIPT, "R-1", 300, date(2025, 2, 10))
        DocumentApplicationService(db_session).apply_documents([ApplicationInput(
            applied_document_id=receipt.id,
            target_document_id=invoice.id,
            amount=Decimal("300"),
            application_date=date(2025, 2, 10)
        )])

        report = CxcReportService(db_session).get_statement("CLI001", date(2025, 2, 1), date(2025, 2, 28))
        assert report["opening_balance"] == Decimal("1000.00")
        assert report["total_credit"] == Decimal("300.00")
        assert report["closing_balance"] == Decimal("700.00")
        assert [m["kind"] for m in report["movements"]] == ["DOCUMENT", "APPLICATION"]

        application = report["movements"][1]
        assert application["applied_amount"] == Decimal("300.00")
        assert application["balance"] == Decimal("700.00")
        assert application["reference"] == "Aplicado a INVOICE F-1"

    def test_statement_unknown_customer(self, db_session, payment_terms):
        with pytest.raises(HTTPException) as exc_info:
            CxcReportService(db_session).get_statement("NOEXISTE", date(2025, 1, 1), date(2025, 1, 31))
        assert exc_info.value.status_code == 404

    def test_due_analysis(self, db_session, make_document):
        as_of = date(2025, 6, 30)
        make_document(DocumentType.INVOICE, "F-1", 1000, as_of - timedelta(days=45))
        make_document(DocumentType.INVOICE, "F-2", 500, as_of - timedelta(days=10))

        service = CxcReportService(db_session)
        overdue = service.get_due_analysis(as_of)
        assert [d["document_number"] for d in overdue["documents"]] == ["F-1"]
        assert overdue["documents"][0]["days_overdue"] == 15
        assert overdue["overdue_amount"] == Decimal("1000.00")

        everything = service.get_due_analysis(as_of, include_future=True)
        assert [d["due_status"] for d in everything["documents"]] == ["VENCIDO", "POR_VENCER"]
        assert everything["upcoming_amount"] == Decimal("500.00")

    def test_summary(self, db_session, cxc_period):
        report = CxcReportService(db_session).get_summary(date(2025, 1, 1), date(2025, 1, 31))

        assert report["totals"]["documents"] == 5
        assert [c["customer_code"] for c in report["customers"]] == ["CLI002", "CLI001"]

        row = report["customers"][1]
        assert row["documents"] == 4
        assert row["debit_amount"] == Decimal("1400.00")
        assert row["credit_amount"] == Decimal("350.00")
        assert row["balance_amount"] == Decimal("1050.00")
        assert row["overdue_amount"] == Decimal("0.00")

        assert [g["key"] for g in report["by_type"]] == ["CREDIT_NOTE", "INVOICE", "RECEIPT"]
        assert report["by_type"][1]["documents"] == 3
        assert report["by_type"][1]["original_amount"] == Decimal("6400.00")
        assert [g["key"] for g in report["by_status"]] == ["PENDIENTE"]

    def test_summary_overdue_at_period_end(self, db_session, cxc_period):
        report = CxcReportService(db_session).get_summary(
            date(2025, 1, 1), date(2025, 2, 10), customer_codes=["cli001"]
        )
        assert [c["customer_code"] for c in report["customers"]] == ["CLI001"]
        assert report["totals"]["overdue_amount"] == Decimal("1000.00")

    def test_summary_filters(self, db_session, cxc_period):
        service = CxcReportService(db_session)

        cancelled = service.get_summary(date(2025, 1, 1), date(2025, 1, 31), statuses=[DocumentStatus.CANCELADO])
        assert cancelled["totals"]["documents"] == 1
        assert cancelled["by_status"][0]["key"] == "CANCELADO"

        invoices = service.get_summary(
            date(2025, 1, 1), date(2025, 1, 31), customer="sol", document_types=[DocumentType.INVOICE]
        )
        assert invoices["totals"]["documents"] == 2
        assert invoices["totals"]["credit_amount"] == Decimal("0.00")
        assert invoices["totals"]["balance_amount"] == Decimal("1400.00")

    def test_summary_inverted_range(self, db_session):
        with pytest.raises(HTTPException) as exc_info:
            CxcReportService(db_session).get_summary(date(2025, 2, 1), date(2025, 1, 1))
        assert exc_info.value.status_code == 422


class TestReportEndpoints:
    """Tests de endpoints"""

    def test_sales_summary_endpoint(self, client, sales, today):
        response = client.get("/reports/sales/summary", params={"from": str(today), "to": str(today)})
        assert response.status_code == 200
        assert Decimal(response.json()["totals"]["total"]) == Decimal("215.00")

    def test_sales_summary_csv(self, client, sales, today):
        response = client.get("/reports/sales/summary", params={"from": str(today), "to": str(today), "export": "csv"})
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        lines = response.text.strip().splitlines()
        assert lines[0] == "Fecha,Facturas,Total"
        assert lines[-1] == "TOTAL,2,215.00"

    def test_cxc_aging_endpoint(self, client, make_document):
        make_document(DocumentType.INVOICE, "F-1", 250, date(2025, 1, 1))
        response = client.get("/reports/cxc/aging", params={"to": "2025-06-30", "customer_codes": "cli001"})
        assert response.status_code == 200
        assert Decimal(response.json()["totals"]["days_90_plus"]) == Decimal("250.00")

    def test_missing_dates_rejected(self, client):
        assert client.get("/reports/inventory/movements").status_code == 422

    def test_cxc_summary_endpoint(self, client, cxc_period):
        response = client.get("/reports/cxc/summary", params={
            "from": "2025-01-01", "to": "2025-01-31", "status": "pendiente,desconocido", "document_types": "INVOICE"
        })
        assert response.status_code == 200
        body = response.json()
        assert body["totals"]["documents"] == 3
        assert [g["key"] for g in body["by_type"]] == ["INVOICE"]

    def test_cxc_summary_csv(self, client, cxc_period):
        response = client.get("/reports/cxc/summary", params={
            "from": "2025-01-01", "to": "2025-01-31", "customer_codes": "CLI001", "export": "csv"
        })
        assert response.status_code == 200
        lines = response.text.strip().splitlines()
        assert lines[0] == "Código,Cliente,Documentos,Cargos,Abonos,Saldo,Vencido"
        assert lines[1] == "CLI001,Distribuidora El Sol,4,1400.00,350.00,1050.00,0.00"
        assert lines[-1] == "TOTAL,,4,1400.00,350.00,1050.00,0.00"
