"""
Tests para el módulo de Cajas

Tests que cubren:
- Catálogo de cajas y consecutivo de facturas
- Asignaciones por usuario y caja predeterminada
- Apertura con denominaciones
- Cierre con arqueo por método de pago
"""

import pytest
from decimal import Decimal
from fastapi import HTTPException

from backoffice.modules.cash_registers.models import SessionStatus
from backoffice.modules.cash_registers.schemas import (
    CashRegisterCreate, CashRegisterUpdate, OpenSessionRequest, CloseSessionRequest,
    Denomination, ReportedPayment
)
from backoffice.modules.cash_registers.service import CashRegisterService, CashSessionService
from backoffice.modules.sequences.models import SequenceScope
from backoffice.modules.sequences.schemas import SequenceDefinitionCreate
from backoffice.modules.sequences.service import SequenceService
from backoffice.modules.staff.schemas import AdminUserCreate
from backoffice.modules.staff.service import StaffService


def nio(value, qty):
    return Denomination(currency="NIO", value=Decimal(str(value)), qty=qty)


@pytest.fixture
def second_register(db_session, cash_register, bar_warehouse):
    return CashRegisterService(db_session).create_cash_register(CashRegisterCreate(
        code="caja2", name="Caja barra", warehouse_code="BAR"
    ))


@pytest.fixture
def other_admin(db_session):
    return StaffService(db_session).create_admin_user(AdminUserCreate(username="cajero2"))


# ===== CATÁLOGO =====

class TestCashRegisters:
    """Tests para el catálogo de cajas"""

    def test_register_output(self, db_session, cash_register):
        output = CashRegisterService(db_session).to_output(cash_register)
        assert output.code == "CAJA1"
        assert output.warehouse_code == "PRINCIPAL"
        assert output.invoice_sequence_code == "FAC"

    def test_duplicate_code_conflict(self, db_session, cash_register):
        with pytest.raises(HTTPException) as exc_info:
            CashRegisterService(db_session).create_cash_register(CashRegisterCreate(
                code="caja1", name="Otra", warehouse_code="PRINCIPAL"
            ))
        assert exc_info.value.status_code == 409

    def test_unknown_warehouse_rejected(self, db_session):
        with pytest.raises(HTTPException) as exc_info:
            CashRegisterService(db_session).create_cash_register(CashRegisterCreate(
                code="CAJA9", name="Caja", warehouse_code="NOEXISTE"
            ))
        assert exc_info.value.status_code == 400

    def test_inventory_sequence_cannot_be_assigned(self, db_session, cash_register):
        SequenceService(db_session).create_definition(SequenceDefinitionCreate(
            code="INV", name="Inventario", scope=SequenceScope.INVENTORY
        ))
        with pytest.raises(HTTPException) as exc_info:
            CashRegisterService(db_session).set_invoice_sequence("CAJA1", "INV")
        assert exc_info.value.status_code == 400

    def test_remove_invoice_sequence(self, db_session, cash_register):
        output = CashRegisterService(db_session).set_invoice_sequence("CAJA1", None)
        assert output.invoice_sequence_code is None

    def test_deactivated_register_hidden(self, db_session, cash_register):
        service = CashRegisterService(db_session)
        service.update_cash_register("CAJA1", CashRegisterUpdate(is_active=False))
        assert service.list_cash_registers() == []
        assert [r.code for r in service.list_cash_registers(include_inactive=True)] == ["CAJA1"]


# ===== ASIGNACIONES =====

class TestAssignments:
    """Tests para asignaciones de cajas"""

    def test_first_assignment_is_default(self, db_session, cash_register, admin_user):
        group = CashRegisterService(db_session).list_assignments([admin_user.id])[0]
        assert group.default_cash_register_id == cash_register.id
        assert group.assignments[0].is_default is True

    def test_make_default(self, db_session, second_register, admin_user):
        group = CashRegisterService(db_session).assign_cash_register(admin_user.id, "CAJA2", make_default=True)
        defaults = [a.cash_register_code for a in group.assignments if a.is_default]
        assert defaults == ["CAJA2"]

    def test_unassign_default_promotes_next(self, db_session, second_register, admin_user):
        service = CashRegisterService(db_session)
        service.assign_cash_register(admin_user.id, "CAJA2")
        group = service.unassign_cash_register(admin_user.id, "CAJA1")

        assert [a.cash_register_code for a in group.assignments] == ["CAJA2"]
        assert group.assignments[0].is_default is True

    def test_set_default_requires_assignment(self, db_session, second_register, admin_user):
        with pytest.raises(HTTPException) as exc_info:
            CashRegisterService(db_session).set_default_cash_register(admin_user.id, "CAJA2")
        assert exc_info.value.status_code == 404

    def test_set_default_without_assignments(self, db_session, cash_register, other_admin):
        with pytest.raises(HTTPException) as exc_info:
            CashRegisterService(db_session).set_default_cash_register(other_admin.id, "CAJA1")
        assert exc_info.value.status_code == 404

    def test_registers_for_user(self, db_session, second_register, admin_user):
        registers = CashRegisterService(db_session).list_registers_for_user(admin_user.id)
        assert [r.cash_register_code for r in registers] == ["CAJA1"]


# ===== APERTURA =====

class TestOpenSession:
    """Tests para apertura de caja"""

    def test_open_with_denominations(self, db_session, cash_register, admin_user):
        session = CashSessionService(db_session).open_session(admin_user.id, OpenSessionRequest(
            cash_register_code="CAJA1",
            opening_amount=Decimal("1500"),
            opening_denominations=[nio(500, 2), nio(100, 5)]
        ))
        assert session.status == SessionStatus.OPEN
        assert session.opening_amount == Decimal("1500")
        assert CashSessionService(db_session).get_active_session(admin_user.id).id == session.id

    def test_negative_amount_rejected(self, db_session, cash_register, admin_user):
        with pytest.raises(HTTPException) as exc_info:
            CashSessionService(db_session).open_session(admin_user.id, OpenSessionRequest(
                cash_register_code="CAJA1", opening_amount=Decimal("-1")
            ))
        assert exc_info.value.status_code == 400

    def test_amount_requires_denominations(self, db_session, cash_register, admin_user):
        with pytest.raises(HTTPException) as exc_info:
            CashSessionService(db_session).open_session(admin_user.id, OpenSessionRequest(
                cash_register_code="CAJA1", opening_amount=Decimal("100")
            ))
        assert exc_info.value.status_code == 400

    def test_denominations_must_match_amount(self, db_session, cash_register, admin_user):
        with pytest.raises(HTTPException) as exc_info:
            CashSessionService(db_session).open_session(admin_user.id, OpenSessionRequest(
                cash_register_code="CAJA1",
                opening_amount=Decimal("1000"),
                opening_denominations=[nio(500, 1)]
            ))
        assert exc_info.value.status_code == 400

    def test_denominations_in_local_currency(self, db_session, cash_register, admin_user):
        with pytest.raises(HTTPException) as exc_info:
            CashSessionService(db_session).open_session(admin_user.id, OpenSessionRequest(
                cash_register_code="CAJA1",
                opening_amount=Decimal("100"),
                opening_denominations=[Denomination(currency="USD", value=Decimal("100"), qty=1)]
            ))
        assert exc_info.value.status_code == 400

    def test_unassigned_user_forbidden(self, db_session, cash_register, other_admin):
        with pytest.raises(HTTPException) as exc_info:
            CashSessionService(db_session).open_session(other_admin.id, OpenSessionRequest(
                cash_register_code="CAJA1", opening_amount=Decimal("0")
            ))
        assert exc_info.value.status_code == 403

    def test_unassigned_allowed_when_flagged(self, db_session, cash_register, other_admin):
        session = CashSessionService(db_session).open_session(other_admin.id, OpenSessionRequest(
            cash_register_code="CAJA1", opening_amount=Decimal("0"), allow_unassigned=True
        ))
        assert session.admin_user_id == other_admin.id

    def test_register_already_open(self, db_session, open_session, other_admin):
        with pytest.raises(HTTPException) as exc_info:
            CashSessionService(db_session).open_session(other_admin.id, OpenSessionRequest(
                cash_register_code="CAJA1", opening_amount=Decimal("0"), allow_unassigned=True
            ))
        assert exc_info.value.status_code == 409

    def test_user_already_open(self, db_session, open_session, second_register, admin_user):
        CashRegisterService(db_session).assign_cash_register(admin_user.id, "CAJA2")
        with pytest.raises(HTTPException) as exc_info:
            CashSessionService(db_session).open_session(admin_user.id, OpenSessionRequest(
                cash_register_code="CAJA2", opening_amount=Decimal("0")
            ))
        assert exc_info.value.status_code == 409


# ===== CIERRE =====

class TestCloseSession:
    """Tests para cierre de caja"""

    def test_close_without_invoices(self, db_session, open_session, admin_user):
        summary = CashSessionService(db_session).close_session(admin_user.id, CloseSessionRequest(
            closing_amount=Decimal("200"),
            payments=[ReportedPayment(method="efectivo", reported_amount=Decimal("200"), transaction_count=1)],
            closing_denominations=[nio(100, 2)]
        ))
        assert summary.session_id == open_session.id
        assert summary.expected_total_amount == Decimal("0")
        assert summary.reported_total_amount == Decimal("200")
        assert summary.difference_total_amount == Decimal("200")
        assert summary.payments[0].method == "EFECTIVO"
        assert summary.total_invoices == 0

        closed = CashSessionService(db_session).get_session(open_session.id)
        assert closed.status == SessionStatus.CLOSED
        assert CashSessionService(db_session).get_active_session(admin_user.id) is None

    def test_cash_requires_denominations(self, db_session, open_session, admin_user):
        with pytest.raises(HTTPException) as exc_info:
            CashSessionService(db_session).close_session(admin_user.id, CloseSessionRequest(
                closing_amount=Decimal("200"),
                payments=[ReportedPayment(method="CASH", reported_amount=Decimal("200"))]
            ))
        assert exc_info.value.status_code == 400

    def test_close_without_active_session(self, db_session, admin_user):
        with pytest.raises(HTTPException) as exc_info:
            CashSessionService(db_session).close_session(admin_user.id, CloseSessionRequest(
                closing_amount=Decimal("0")
            ))
        assert exc_info.value.status_code == 404

    def test_close_twice_conflict(self, db_session, open_session, admin_user):
        service = CashSessionService(db_session)
        service.close_session(admin_user.id, CloseSessionRequest(closing_amount=Decimal("0")))
        with pytest.raises(HTTPException) as exc_info:
            service.close_session(admin_user.id, CloseSessionRequest(
                session_id=open_session.id, closing_amount=Decimal("0")
            ))
        assert exc_info.value.status_code == 409

    def test_other_user_cannot_close(self, db_session, open_session, other_admin):
        with pytest.raises(HTTPException) as exc_info:
            CashSessionService(db_session).close_session(other_admin.id, CloseSessionRequest(
                session_id=open_session.id, closing_amount=Decimal("0")
            ))
        assert exc_info.value.status_code == 403

    def test_closure_report_is_stored(self, db_session, open_session, admin_user):
        service = CashSessionService(db_session)
        summary = service.close_session(admin_user.id, CloseSessionRequest(
            closing_amount=Decimal("0"),
            payments=[ReportedPayment(method="CARD", reported_amount=Decimal("350"), transaction_count=2)]
        ))
        report = service.get_closure_report(open_session.id)
        assert report.reported_total_amount == summary.reported_total_amount
        assert report.payments[0].transaction_count == 2


class TestCashRegisterEndpoints:
    """Tests de endpoints"""

    def test_open_requires_operator_header(self, client, cash_register):
        response = client.post("/cash-registers/sessions", json={
            "cash_register_code": "CAJA1", "opening_amount": "0"
        })
        assert response.status_code == 400

    def test_open_and_query_active(self, client, cash_register, admin_user):
        headers = {"X-Admin-User-ID": str(admin_user.id)}
        response = client.post("/cash-registers/sessions", headers=headers, json={
            "cash_register_code": "CAJA1", "opening_amount": "0"
        })
        assert response.status_code == 201
        assert response.json()["cash_register"]["cash_register_code"] == "CAJA1"

        active = client.get("/cash-registers/sessions/active", headers=headers)
        assert active.status_code == 200
        assert active.json()["id"] == response.json()["id"]

    def test_list_my_registers(self, client, cash_register, admin_user):
        response = client.get("/cash-registers/mine", headers={"X-Admin-User-ID": str(admin_user.id)})
        assert response.status_code == 200
        assert [r["cash_register_code"] for r in response.json()] == ["CAJA1"]
