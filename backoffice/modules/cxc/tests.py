"""
Tests para el módulo de Cuentas por Cobrar (CxC)

Tests que cubren:
- Condiciones de pago y vencimientos
- Clientes y línea de crédito
- Documentos con saldo
- Aplicación de documentos por prioridad
- Líneas de crédito, disputas y gestiones de cobro
"""

import pytest
from datetime import date
from decimal import Decimal
from types import SimpleNamespace
from fastapi import HTTPException

from backoffice.modules.cxc.models import (
    CreditLineStatus, CreditStatus, DisputeStatus, DocumentType, DocumentStatus
)
from backoffice.modules.cxc.schemas import (
    CustomerCreate, CustomerUpdate, DocumentCreate, ApplicationInput, PaymentTermCreate,
    CreditLineAssign, CreditLineUpdate, CreditStatusUpdate, DisputeCreate, DisputeUpdate, CollectionLogCreate
)
from backoffice.modules.cxc.service import (
    CustomerService, CustomerDocumentService, DocumentApplicationService, PaymentTermService,
    CreditLineService, DisputeService, CollectionLogService, calculate_due_date, seed_payment_terms
)


@pytest.fixture
def make_document(db_session, customer):
    """Fábrica de documentos del cliente CLI001"""
    def _make(document_type, number, amount, customer_code="CLI001", **fields):
        return CustomerDocumentService(db_session).create_document(DocumentCreate(
            customer_code=customer_code,
            document_type=document_type,
            document_number=number,
            original_amount=Decimal(str(amount)),
            **fields
        ))
    return _make


# ===== CONDICIONES DE PAGO =====

class TestPaymentTerms:
    """Tests para condiciones de pago"""

    def test_seed_is_idempotent(self, db_session, payment_terms):
        assert seed_payment_terms(db_session) == 0
        codes = [t.code for t in PaymentTermService(db_session).list_terms()]
        assert codes == ["CONTADO", "PT-15", "PT-30", "PT-60", "PT-90", "PT-120"]

    def test_due_date_includes_grace_days(self):
        term = SimpleNamespace(days=30, grace_days=5)
        assert calculate_due_date(date(2025, 1, 1), term) == date(2025, 2, 5)
        assert calculate_due_date(date(2025, 1, 1), None) == date(2025, 1, 1)

    def test_duplicate_term_conflict(self, db_session, payment_terms):
        with pytest.raises(HTTPException) as exc_info:
            PaymentTermService(db_session).create_term(PaymentTermCreate(code="pt-30", name="Otra"))
        assert exc_info.value.status_code == 409

    def test_term_in_use_cannot_be_deleted(self, db_session, customer):
        with pytest.raises(HTTPException) as exc_info:
            PaymentTermService(db_session).delete_term("PT-30")
        assert exc_info.value.status_code == 409


# ===== CLIENTES =====

class TestCustomers:
    """Tests para clientes"""

    def test_new_customer_has_full_credit(self, customer):
        assert customer.code == "CLI001"
        assert customer.payment_term_code == "PT-30"
        assert customer.credit_used == Decimal("0")
        assert customer.credit_available == Decimal("5000")

    def test_duplicate_customer_conflict(self, db_session, customer):
        with pytest.raises(HTTPException) as exc_info:
            CustomerService(db_session).create_customer(CustomerCreate(code="cli001", name="Otro"))
        assert exc_info.value.status_code == 409

    def test_unknown_payment_term_rejected(self, db_session, payment_terms):
        with pytest.raises(HTTPException) as exc_info:
            CustomerService(db_session).create_customer(CustomerCreate(
                code="CLI002", name="Cliente", payment_term_code="PT-999"
            ))
        assert exc_info.value.status_code == 400

    def test_credit_on_hold_reduces_available(self, db_session, customer):
        updated = CustomerService(db_session).update_customer("CLI001", CustomerUpdate(credit_on_hold=Decimal("1000")))
        assert updated.credit_available == Decimal("4000")

    def test_search_customers(self, db_session, customer):
        service = CustomerService(db_session)
        assert [c.code for c in service.list_customers(search="sol")] == ["CLI001"]
        assert [c.code for c in service.list_customers(search="J031")] == ["CLI001"]
        assert service.list_customers(search="nada") == []


# ===== DOCUMENTOS =====

class TestDocuments:
    """Tests para documentos"""

    def test_invoice_due_date_from_customer_term(self, db_session, make_document):
        document = make_document(DocumentType.INVOICE, "F-100", 1000, document_date=date(2025, 1, 10))
        assert document.due_date == date(2025, 2, 9)
        assert document.payment_term_code == "PT-30"
        assert document.status == DocumentStatus.PENDIENTE
        assert document.balance_amount == Decimal("1000")

    def test_document_term_overrides_customer(self, db_session, make_document):
        document = make_document(
            DocumentType.INVOICE, "F-101", 1000, document_date=date(2025, 1, 10), payment_term_code="PT-15"
        )
        assert document.due_date == date(2025, 1, 25)

    def test_invoice_updates_credit_usage(self, db_session, make_document):
        make_document(DocumentType.INVOICE, "F-100", 1200)
        make_document(DocumentType.RECEIPT, "R-1", 300)

        customer = CustomerService(db_session).get_by_code("CLI001")
        assert customer.credit_used == Decimal("1200")
        assert CustomerService(db_session).to_output(customer).credit_available == Decimal("3800")

    def test_non_positive_amount_rejected(self, db_session, make_document):
        with pytest.raises(HTTPException) as exc_info:
            make_document(DocumentType.INVOICE, "F-100", 0)
        assert exc_info.value.status_code == 400

    def test_duplicate_number_per_type(self, db_session, make_document):
        make_document(DocumentType.INVOICE, "F-100", 100)
        make_document(DocumentType.RECEIPT, "F-100", 100)
        with pytest.raises(HTTPException) as exc_info:
            make_document(DocumentType.INVOICE, "F-100", 100)
        assert exc_info.value.status_code == 409

    def test_list_hides_settled_by_default(self, db_session, make_document):
        make_document(DocumentType.INVOICE, "F-100", 100)
        make_document(DocumentType.INVOICE, "F-101", 100, balance_amount=Decimal("0"))
        service = CustomerDocumentService(db_session)

        assert [d.document_number for d in service.list_documents(customer_code="CLI001")] == ["F-100"]
        assert len(service.list_documents(customer_code="CLI001", include_settled=True)) == 2

    def test_cancel_document(self, db_session, make_document):
        document = make_document(DocumentType.INVOICE, "F-100", 500)
        cancelled = CustomerDocumentService(db_session).cancel_document(document.id)

        assert cancelled.status == DocumentStatus.CANCELADO
        assert cancelled.balance_amount == Decimal("0")
        assert CustomerService(db_session).get_by_code("CLI001").credit_used == Decimal("0")

    def test_invoice_document_cannot_be_cancelled_here(self, db_session, customer):
        document = CustomerDocumentService(db_session).create_document(DocumentCreate(
            customer_code="CLI001",
            document_type=DocumentType.INVOICE,
            document_number="F-000001",
            original_amount=Decimal("100")
        ), related_invoice_id=1)
        with pytest.raises(HTTPException) as exc_info:
            CustomerDocumentService(db_session).cancel_document(document.id)
        assert exc_info.value.status_code == 409


# ===== APLICACIONES =====

class TestApplications:
    """Tests para aplicación de documentos"""

    def test_receipt_pays_invoice(self, db_session, make_document):
        invoice = make_document(DocumentType.INVOICE, "F-100", 1000)
        receipt = make_document(DocumentType.RECEIPT, "R-1", 1000)

        applications = DocumentApplicationService(db_session).apply_documents([
            ApplicationInput(applied_document_id=receipt.id, target_document_id=invoice.id, amount=Decimal("1000"))
        ])
        assert applications[0].target_document_number == "F-100"

        documents = CustomerDocumentService(db_session)
        assert documents.get_document(invoice.id).status == DocumentStatus.PAGADO
        assert documents.get_document(receipt.id).status == DocumentStatus.PAGADO
        assert CustomerService(db_session).get_by_code("CLI001").credit_used == Decimal("0")

    def test_partial_application(self, db_session, make_document):
        invoice = make_document(DocumentType.INVOICE, "F-100", 1000)
        receipt = make_document(DocumentType.RECEIPT, "R-1", 400)

        DocumentApplicationService(db_session).apply_documents([
            ApplicationInput(applied_document_id=receipt.id, target_document_id=invoice.id, amount=Decimal("400"))
        ])
        target = CustomerDocumentService(db_session).get_document(invoice.id)
        assert target.balance_amount == Decimal("600")
        assert target.status == DocumentStatus.PENDIENTE
        assert CustomerService(db_session).get_by_code("CLI001").credit_used == Decimal("600")

    def test_batch_processed_by_priority(self, db_session, make_document):
        invoice = make_document(DocumentType.INVOICE, "F-100", 1000)
        receipt = make_document(DocumentType.RECEIPT, "R-1", 600)
        credit_note = make_document(DocumentType.CREDIT_NOTE, "NC-1", 400)

        applications = DocumentApplicationService(db_session).apply_documents([
            ApplicationInput(applied_document_id=receipt.id, target_document_id=invoice.id, amount=Decimal("600")),
            ApplicationInput(applied_document_id=credit_note.id, target_document_id=invoice.id, amount=Decimal("400")),
        ])
        assert [a.applied_document_id for a in applications] == [credit_note.id, receipt.id]
        assert CustomerDocumentService(db_session).get_document(invoice.id).status == DocumentStatus.PAGADO

    def test_amount_exceeding_balance_rolls_back_batch(self, db_session, make_document):
        invoice = make_document(DocumentType.INVOICE, "F-100", 500)
        receipt = make_document(DocumentType.RECEIPT, "R-1", 300)
        credit_note = make_document(DocumentType.CREDIT_NOTE, "NC-1", 400)

        with pytest.raises(HTTPException) as exc_info:
            DocumentApplicationService(db_session).apply_documents([
                ApplicationInput(applied_document_id=credit_note.id, target_document_id=invoice.id, amount=Decimal("400")),
                ApplicationInput(applied_document_id=receipt.id, target_document_id=invoice.id, amount=Decimal("300")),
            ])
        assert exc_info.value.status_code == 400
        assert CustomerDocumentService(db_session).get_document(invoice.id).balance_amount == Decimal("500")
        assert DocumentApplicationService(db_session).list_applications() == []

    def test_documents_of_different_customers(self, db_session, make_document):
        CustomerService(db_session).create_customer(CustomerCreate(code="CLI002", name="Otro cliente"))
        invoice = make_document(DocumentType.INVOICE, "F-100", 500)
        receipt = make_document(DocumentType.RECEIPT, "R-1", 500, customer_code="CLI002")

        with pytest.raises(HTTPException) as exc_info:
            DocumentApplicationService(db_session).apply_documents([
                ApplicationInput(applied_document_id=receipt.id, target_document_id=invoice.id, amount=Decimal("100"))
            ])
        assert exc_info.value.status_code == 400

    def test_paid_target_conflict(self, db_session, make_document):
        invoice = make_document(DocumentType.INVOICE, "F-100", 100, balance_amount=Decimal("0"))
        receipt = make_document(DocumentType.RECEIPT, "R-1", 100)

        with pytest.raises(HTTPException) as exc_info:
            DocumentApplicationService(db_session).apply_documents([
                ApplicationInput(applied_document_id=receipt.id, target_document_id=invoice.id, amount=Decimal("100"))
            ])
        assert exc_info.value.status_code == 409

    def test_document_with_applications_cannot_be_cancelled(self, db_session, make_document):
        invoice = make_document(DocumentType.INVOICE, "F-100", 1000)
        receipt = make_document(DocumentType.RECEIPT, "R-1", 200)
        DocumentApplicationService(db_session).apply_documents([
            ApplicationInput(applied_document_id=receipt.id, target_document_id=invoice.id, amount=Decimal("200"))
        ])
        with pytest.raises(HTTPException) as exc_info:
            CustomerDocumentService(db_session).cancel_document(invoice.id)
        assert exc_info.value.status_code == 409


# ===== LÍNEAS DE CRÉDITO =====

class TestCreditLines:
    """Tests para líneas de crédito"""

    def test_assign_updates_customer(self, db_session, make_document):
        make_document(DocumentType.INVOICE, "F-100", 1200)
        result = CreditLineService(db_session).assign_credit_line(CreditLineAssign(
            customer_code="cli001", approved_limit=Decimal("8000"), blocked_amount=Decimal("500")
        ))

        assert result.line.status == CreditLineStatus.ACTIVE
        assert result.line.available_limit == Decimal("6300")
        assert result.customer.credit_limit == Decimal("8000")
        assert result.customer.credit_on_hold == Decimal("500")
        assert result.customer.credit_used == Decimal("1200")
        assert result.customer.credit_available == Decimal("6300")
        assert result.customer.credit_status == CreditStatus.ACTIVE
        assert result.customer.last_credit_review_at is not None

    def test_blocked_amount_defaults_to_customer_hold(self, db_session, customer):
        CustomerService(db_session).update_customer("CLI001", CustomerUpdate(credit_on_hold=Decimal("300")))
        result = CreditLineService(db_session).assign_credit_line(CreditLineAssign(
            customer_code="CLI001", approved_limit=Decimal("6000")
        ))
        assert result.line.blocked_amount == Decimal("300")
        assert result.customer.credit_available == Decimal("5700")

    def test_paused_line_holds_customer(self, db_session, customer):
        service = CreditLineService(db_session)
        paused = service.assign_credit_line(CreditLineAssign(
            customer_code="CLI001",
            approved_limit=Decimal("5000"),
            status=CreditLineStatus.PAUSED,
            credit_hold_reason="Cheque devuelto"
        ))
        assert paused.customer.credit_status == CreditStatus.ON_HOLD
        assert paused.customer.credit_hold_reason == "Cheque devuelto"

        resumed = service.update_credit_line(paused.line.id, CreditLineUpdate(status=CreditLineStatus.ACTIVE))
        assert resumed.line.status == CreditLineStatus.ACTIVE
        assert resumed.customer.credit_status == CreditStatus.ACTIVE
        assert resumed.customer.credit_hold_reason is None

    def test_explicit_customer_status_wins(self, db_session, customer):
        result = CreditLineService(db_session).assign_credit_line(CreditLineAssign(
            customer_code="CLI001",
            approved_limit=Decimal("5000"),
            customer_status=CreditStatus.BLOCKED,
            credit_hold_reason="Revisión legal"
        ))
        assert result.line.status == CreditLineStatus.ACTIVE
        assert result.customer.credit_status == CreditStatus.BLOCKED

    def test_update_keeps_omitted_fields(self, db_session, make_document):
        service = CreditLineService(db_session)
        line = service.assign_credit_line(CreditLineAssign(
            customer_code="CLI001", approved_limit=Decimal("5000"), blocked_amount=Decimal("200"),
            review_notes="Aprobado por gerencia"
        )).line
        make_document(DocumentType.INVOICE, "F-100", 1000)

        updated = service.update_credit_line(line.id, CreditLineUpdate(approved_limit=Decimal("7000")))
        assert updated.line.blocked_amount == Decimal("200")
        assert updated.line.review_notes == "Aprobado por gerencia"
        assert updated.line.available_limit == Decimal("5800")
        assert updated.customer.credit_limit == Decimal("7000")

    def test_overview_warns_near_limit(self, db_session, make_document):
        service = CreditLineService(db_session)
        service.assign_credit_line(CreditLineAssign(customer_code="CLI001", approved_limit=Decimal("4000")))
        service.assign_credit_line(CreditLineAssign(
            customer_code="CLI001", approved_limit=Decimal("5000"), blocked_amount=Decimal("500")
        ))
        make_document(DocumentType.INVOICE, "F-100", 3500)

        overview = service.get_overview("CLI001")
        assert len(overview.lines) == 2
        assert overview.latest_line.approved_limit == Decimal("5000")
        assert overview.available_credit == Decimal("1000")
        assert overview.usage_percentage == Decimal("0.8")
        assert overview.limit_warning is True
        assert overview.is_blocked is False

    def test_overview_without_limit(self, db_session, payment_terms):
        CustomerService(db_session).create_customer(CustomerCreate(code="CLI002", name="Contado"))
        overview = CreditLineService(db_session).get_overview("CLI002")
        assert overview.lines == []
        assert overview.latest_line is None
        assert overview.usage_percentage == Decimal("0")
        assert overview.limit_warning is False

    def test_missing_line_404(self, db_session):
        with pytest.raises(HTTPException) as exc_info:
            CreditLineService(db_session).update_credit_line(9999, CreditLineUpdate(approved_limit=Decimal("10")))
        assert exc_info.value.status_code == 404

    def test_credit_status_update(self, db_session, customer):
        service = CreditLineService(db_session)
        blocked = service.update_credit_status("CLI001", CreditStatusUpdate(
            status=CreditStatus.BLOCKED, credit_hold_reason="Mora mayor a 90 días"
        ))
        assert blocked.credit_status == CreditStatus.BLOCKED
        assert blocked.credit_hold_reason == "Mora mayor a 90 días"
        assert service.get_overview("CLI001").is_blocked is True

        active = service.update_credit_status("CLI001", CreditStatusUpdate(
            status=CreditStatus.ACTIVE, credit_hold_reason="ignorado"
        ))
        assert active.credit_status == CreditStatus.ACTIVE
        assert active.credit_hold_reason is None


# ===== DISPUTAS Y GESTIONES =====

@pytest.fixture
def other_customer_invoice(db_session, make_document, payment_terms):
    CustomerService(db_session).create_customer(CustomerCreate(code="CLI002", name="Hotel Las Brisas"))
    return make_document(DocumentType.INVOICE, "F-900", 700, customer_code="CLI002")


class TestDisputes:
    """Tests para disputas"""

    def test_create_and_list(self, db_session, make_document, admin_user):
        invoice = make_document(DocumentType.INVOICE, "F-100", 1000)
        service = DisputeService(db_session)
        dispute = service.create_dispute(DisputeCreate(
            customer_code="CLI001", document_id=invoice.id, dispute_code=" D-1 ",
            description="El cliente no reconoce el cargo"
        ), created_by=admin_user.id)
        service.create_dispute(DisputeCreate(customer_code="CLI001", status=DisputeStatus.IN_PROGRESS))

        assert dispute.status == DisputeStatus.OPEN
        assert dispute.dispute_code == "D-1"
        assert dispute.created_by == admin_user.id
        assert dispute.resolved_at is None

        assert len(service.list_disputes("CLI001")) == 2
        assert [d.id for d in service.list_disputes("CLI001", document_id=invoice.id)] == [dispute.id]
        assert [d.status for d in service.list_disputes("CLI001", statuses=[DisputeStatus.IN_PROGRESS])] == [
            DisputeStatus.IN_PROGRESS
        ]

    def test_document_of_other_customer_rejected(self, db_session, customer, other_customer_invoice):
        with pytest.raises(HTTPException) as exc_info:
            DisputeService(db_session).create_dispute(DisputeCreate(
                customer_code="CLI001", document_id=other_customer_invoice.id
            ))
        assert exc_info.value.status_code == 400
        assert exc_info.value.detail == "El documento no pertenece al cliente indicado"

    def test_unknown_document_404(self, db_session, customer):
        with pytest.raises(HTTPException) as exc_info:
            DisputeService(db_session).create_dispute(DisputeCreate(customer_code="CLI001", document_id=9999))
        assert exc_info.value.status_code == 404

    def test_resolution_sets_and_clears_date(self, db_session, customer):
        service = DisputeService(db_session)
        dispute = service.create_dispute(DisputeCreate(customer_code="CLI001"))

        resolved = service.update_dispute(dispute.id, DisputeUpdate(
            status=DisputeStatus.RESOLVED, resolution_notes="Se emitió nota de crédito"
        ))
        assert resolved.resolved_at is not None
        assert resolved.resolution_notes == "Se emitió nota de crédito"

        reopened = service.update_dispute(dispute.id, DisputeUpdate(status=DisputeStatus.IN_PROGRESS))
        assert reopened.resolved_at is None
        assert reopened.resolution_notes == "Se emitió nota de crédito"

    def test_missing_dispute_404(self, db_session):
        with pytest.raises(HTTPException) as exc_info:
            DisputeService(db_session).update_dispute(9999, DisputeUpdate(status=DisputeStatus.CLOSED))
        assert exc_info.value.status_code == 404


class TestCollectionLogs:
    """Tests para gestiones de cobro"""

    def test_create_and_list(self, db_session, make_document):
        invoice = make_document(DocumentType.INVOICE, "F-100", 1000)
        service = CollectionLogService(db_session)
        first = service.create_log(CollectionLogCreate(
            customer_code="CLI001", contact_method="Llamada", contact_name="Marta Ruiz",
            outcome="Promete pagar el viernes"
        ))
        second = service.create_log(CollectionLogCreate(
            customer_code="CLI001", document_id=invoice.id, contact_method="Visita", notes="   "
        ))

        assert second.notes is None
        assert {log.id for log in service.list_logs("CLI001")} == {first.id, second.id}
        assert [log.id for log in service.list_logs("CLI001", document_id=invoice.id)] == [second.id]

    def test_document_of_other_customer_rejected(self, db_session, customer, other_customer_invoice):
        with pytest.raises(HTTPException) as exc_info:
            CollectionLogService(db_session).create_log(CollectionLogCreate(
                customer_code="CLI001", document_id=other_customer_invoice.id
            ))
        assert exc_info.value.status_code == 400

    def test_delete(self, db_session, customer):
        service = CollectionLogService(db_session)
        log = service.create_log(CollectionLogCreate(customer_code="CLI001", contact_method="Correo"))
        service.delete_log(log.id)
        assert service.list_logs("CLI001") == []

        with pytest.raises(HTTPException) as exc_info:
            service.delete_log(log.id)
        assert exc_info.value.status_code == 404


class TestCxcEndpoints:
    """Tests de endpoints"""

    def test_customer_and_document(self, client, payment_terms):
        response = client.post("/cxc/customers", json={
            "code": "cli010", "name": "Hotel Las Brisas", "payment_term_code": "PT-60", "credit_limit": "10000"
        })
        assert response.status_code == 201
        assert response.json()["code"] == "CLI010"

        document = client.post("/cxc/documents", json={
            "customer_code": "CLI010",
            "document_type": "INVOICE",
            "document_number": "F-500",
            "document_date": "2025-03-01",
            "original_amount": "2500"
        })
        assert document.status_code == 201
        assert document.json()["due_date"] == "2025-04-30"

        customer = client.get("/cxc/customers/CLI010").json()
        assert Decimal(customer["credit_available"]) == Decimal("7500")

    def test_list_payment_terms(self, client, payment_terms):
        response = client.get("/payment-terms/")
        assert response.status_code == 200
        assert len(response.json()) == 6

    def test_credit_line_endpoints(self, client, customer, admin_user):
        response = client.post(
            "/cxc/credit-lines",
            json={"customer_code": "CLI001", "approved_limit": "9000", "status": "PAUSED"},
            headers={"X-Admin-User-ID": str(admin_user.id)}
        )
        assert response.status_code == 201
        body = response.json()
        assert body["line"]["reviewer_admin_user_id"] == admin_user.id
        assert body["customer"]["credit_status"] == "ON_HOLD"

        overview = client.get("/cxc/credit-lines", params={"customer": "CLI001"})
        assert overview.status_code == 200
        assert Decimal(overview.json()["latest_line"]["approved_limit"]) == Decimal("9000")

        line_id = body["line"]["id"]
        updated = client.patch(f"/cxc/credit-lines/{line_id}", json={"status": "BLOCKED"})
        assert updated.json()["customer"]["credit_status"] == "BLOCKED"

        active = client.patch("/cxc/customers/CLI001/credit-status", json={"status": "ACTIVE"})
        assert active.status_code == 200
        assert active.json()["credit_status"] == "ACTIVE"

    def test_non_positive_limit_rejected(self, client, customer):
        response = client.post("/cxc/credit-lines", json={"customer_code": "CLI001", "approved_limit": "0"})
        assert response.status_code == 422

    def test_dispute_and_collection_endpoints(self, client, customer):
        dispute = client.post("/cxc/disputes", json={"customer_code": "CLI001", "description": "Cobro duplicado"})
        assert dispute.status_code == 201
        assert dispute.json()["created_by"] is None

        closed = client.patch(f"/cxc/disputes/{dispute.json()['id']}", json={"status": "CLOSED"})
        assert closed.json()["resolved_at"] is not None
        listed = client.get("/cxc/disputes", params={"customer": "CLI001", "status": "CLOSED"})
        assert len(listed.json()) == 1

        log = client.post("/cxc/collection-logs", json={"customer_code": "CLI001", "contact_method": "Llamada"})
        assert log.status_code == 201
        assert client.delete(f"/cxc/collection-logs/{log.json()['id']}").status_code == 204
        assert client.get("/cxc/collection-logs", params={"customer": "CLI001"}).json() == []
