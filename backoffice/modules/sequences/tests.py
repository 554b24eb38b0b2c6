"""
Tests para el módulo de Consecutivos

- Formato de folios (prefijo, relleno, sufijo)
- Contadores globales para inventario y por caja para facturas
- Asignación de consecutivos a tipos de movimiento de inventario
"""

import pytest
from types import SimpleNamespace
from fastapi import HTTPException

from backoffice.modules.sequences.models import SequenceScope
from backoffice.modules.sequences.schemas import SequenceDefinitionCreate, SequenceDefinitionUpdate
from backoffice.modules.sequences.service import SequenceService, format_sequence, clamp_padding


def make_definition(db_session, code="INV", scope=SequenceScope.INVENTORY, **fields):
    return SequenceService(db_session).create_definition(SequenceDefinitionCreate(
        code=code,
        name=f"Consecutivo {code}",
        scope=scope,
        **fields
    ))


class TestFormatting:
    """Tests de formato"""

    def test_format_sequence(self):
        definition = SimpleNamespace(prefix="F-", suffix="/A", padding=5)
        assert format_sequence(definition, 42) == "F-00042/A"

    def test_padding_is_clamped(self):
        assert clamp_padding(None) == 6
        assert clamp_padding(0) == 1
        assert clamp_padding(40) == 18

    def test_definition_normalizes_values(self, db_session):
        definition = make_definition(db_session, code="inv", padding=0, start_value=-5, step=0)
        assert definition.code == "INV"
        assert definition.padding == 1
        assert definition.start_value == 0
        assert definition.step == 1


class TestDefinitions:
    """Tests de definiciones"""

    def test_duplicate_code_conflict(self, db_session):
        make_definition(db_session)
        with pytest.raises(HTTPException) as exc_info:
            make_definition(db_session, code="inv")
        assert exc_info.value.status_code == 409

    def test_preview_does_not_consume(self, db_session):
        make_definition(db_session, prefix="INV-", padding=4, start_value=10)
        service = SequenceService(db_session)
        definition = service.get_by_code("INV")

        assert service.preview_next(definition) == "INV-0010"
        assert service.preview_next(definition) == "INV-0010"

    def test_update_definition(self, db_session):
        make_definition(db_session)
        updated = SequenceService(db_session).update_definition(
            "INV", SequenceDefinitionUpdate(prefix="MOV-", step=5)
        )
        assert updated.prefix == "MOV-"
        assert updated.step == 5


class TestInventoryAssignments:
    """Tests de asignación a movimientos de inventario"""

    def test_generate_without_assignment_conflict(self, db_session):
        with pytest.raises(HTTPException) as exc_info:
            SequenceService(db_session).generate_inventory_code("PURCHASE")
        assert exc_info.value.status_code == 409

    def test_shared_definition_uses_global_counter(self, db_session):
        make_definition(db_session, prefix="INV-", padding=3)
        service = SequenceService(db_session)
        service.assign_inventory_sequence("purchase", "INV")
        service.assign_inventory_sequence("TRANSFER", "INV")

        assert service.generate_inventory_code("PURCHASE") == "INV-001"
        assert service.generate_inventory_code("TRANSFER") == "INV-002"
        assert service.generate_inventory_code("PURCHASE") == "INV-003"

    def test_step_increments_counter(self, db_session):
        make_definition(db_session, padding=2, start_value=1, step=10)
        service = SequenceService(db_session)
        service.assign_inventory_sequence("CONSUMPTION", "INV")

        assert service.generate_inventory_code("CONSUMPTION") == "01"
        assert service.generate_inventory_code("CONSUMPTION") == "11"

    def test_invalid_transaction_type(self, db_session):
        make_definition(db_session)
        with pytest.raises(HTTPException) as exc_info:
            SequenceService(db_session).assign_inventory_sequence("VENTA", "INV")
        assert exc_info.value.status_code == 400

    def test_invoice_scope_rejected_for_inventory(self, db_session):
        make_definition(db_session, code="FAC", scope=SequenceScope.INVOICE)
        with pytest.raises(HTTPException) as exc_info:
            SequenceService(db_session).assign_inventory_sequence("PURCHASE", "FAC")
        assert exc_info.value.status_code == 400

    def test_inactive_definition_cannot_generate(self, db_session):
        make_definition(db_session)
        service = SequenceService(db_session)
        service.assign_inventory_sequence("PURCHASE", "INV")
        service.update_definition("INV", SequenceDefinitionUpdate(is_active=False))

        with pytest.raises(HTTPException) as exc_info:
            service.generate_inventory_code("PURCHASE")
        assert exc_info.value.status_code == 409

    def test_list_assignments_covers_all_types(self, db_session):
        make_definition(db_session)
        service = SequenceService(db_session)
        service.assign_inventory_sequence("ADJUSTMENT", "INV")

        assignments = {a.transaction_type: a.sequence_code for a in service.list_inventory_assignments()}
        assert assignments == {
            "PURCHASE": None,
            "CONSUMPTION": None,
            "ADJUSTMENT": "INV",
            "TRANSFER": None,
        }


class TestInvoiceNumbers:
    """Tests de folios de factura por caja"""

    def test_register_without_sequence_conflict(self, db_session):
        register = SimpleNamespace(code="CAJA9", id=9, invoice_sequence_definition_id=None)
        with pytest.raises(HTTPException) as exc_info:
            SequenceService(db_session).generate_invoice_number(register)
        assert exc_info.value.status_code == 409

    def test_counter_per_register(self, db_session):
        definition = make_definition(db_session, code="FAC", scope=SequenceScope.INVOICE, prefix="F-", padding=4)
        service = SequenceService(db_session)
        caja1 = SimpleNamespace(code="CAJA1", id=1, invoice_sequence_definition_id=definition.id)
        caja2 = SimpleNamespace(code="CAJA2", id=2, invoice_sequence_definition_id=definition.id)

        assert service.generate_invoice_number(caja1) == "F-0001"
        assert service.generate_invoice_number(caja1) == "F-0002"
        assert service.generate_invoice_number(caja2) == "F-0001"


class TestSequenceEndpoints:
    """Tests de endpoints"""

    def test_create_and_assign(self, client):
        response = client.post("/sequences/", json={
            "code": "inv", "name": "Inventario", "scope": "INVENTORY", "prefix": "INV-", "padding": 4
        })
        assert response.status_code == 201
        assert response.json()["next_preview"] == "INV-0001"

        assigned = client.put("/sequences/inventory/PURCHASE", json={"sequence_code": "INV"})
        assert assigned.status_code == 200
        assert assigned.json()["sequence_code"] == "INV"
