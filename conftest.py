"""
Fixtures compartidas por los tests de todos los módulos.

La base de datos es sqlite en memoria: las variables de entorno se fijan
antes de importar la configuración de la aplicación.
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["DEBUG"] = "false"

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from backoffice.main import app
from backoffice.database.database import Base, SessionLocal, sync_engine
from backoffice.dependencies.dbDependencies import get_db
from backoffice.modules.staff.schemas import AdminUserCreate, WaiterCreate
from backoffice.modules.staff.service import StaffService
from backoffice.modules.catalog.models import ArticleType
from backoffice.modules.catalog.schemas import ArticleCreate, WarehouseCreate, UnitCreate
from backoffice.modules.catalog.service import ArticleService, WarehouseService, UnitService
from backoffice.modules.sequences.models import SequenceScope
from backoffice.modules.sequences.schemas import SequenceDefinitionCreate
from backoffice.modules.sequences.service import SequenceService
from backoffice.modules.inventory.models import InventoryUnit
from backoffice.modules.inventory.schemas import PurchaseCreate, InventoryLineInput
from backoffice.modules.inventory.service import InventoryService
from backoffice.modules.cash_registers.schemas import CashRegisterCreate, OpenSessionRequest
from backoffice.modules.cash_registers.service import CashRegisterService, CashSessionService
from backoffice.modules.cxc.schemas import CustomerCreate
from backoffice.modules.cxc.service import CustomerService, seed_payment_terms


INVENTORY_TYPES = ("PURCHASE", "CONSUMPTION", "ADJUSTMENT", "TRANSFER")


# ===== BASE DE DATOS =====

@pytest.fixture
def db_session():
    """Esquema limpio por test"""
    Base.metadata.create_all(bind=sync_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=sync_engine)


@pytest.fixture
def client(db_session):
    """TestClient que comparte la sesión del test"""
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


# ===== PERSONAL =====

@pytest.fixture
def admin_user(db_session):
    return StaffService(db_session).create_admin_user(
        AdminUserCreate(username="cajero1", display_name="Cajero Uno")
    )


@pytest.fixture
def waiter(db_session):
    return StaffService(db_session).create_waiter(WaiterCreate(code="M01", full_name="Ana López"))


# ===== CATÁLOGO =====

@pytest.fixture
def units(db_session):
    service = UnitService(db_session)
    return [
        service.create_unit(UnitCreate(code="CAJA", name="Caja")),
        service.create_unit(UnitCreate(code="UND", name="Unidad")),
    ]


@pytest.fixture
def warehouse(db_session):
    return WarehouseService(db_session).create_warehouse(WarehouseCreate(code="PRINCIPAL", name="Bodega principal"))


@pytest.fixture
def bar_warehouse(db_session):
    return WarehouseService(db_session).create_warehouse(WarehouseCreate(code="BAR", name="Barra"))


@pytest.fixture
def make_article(db_session):
    """Fábrica de artículos"""
    def _make(code, name=None, conversion_factor=1, article_type=ArticleType.TERMINADO, **fields):
        return ArticleService(db_session).create_article(ArticleCreate(
            article_code=code,
            name=name or f"Artículo {code}",
            article_type=article_type,
            conversion_factor=Decimal(str(conversion_factor)),
            **fields
        ))
    return _make


# ===== CONSECUTIVOS E INVENTARIO =====

@pytest.fixture
def inventory_sequences(db_session):
    """Un consecutivo de inventario asignado a todos los tipos de movimiento"""
    service = SequenceService(db_session)
    service.create_definition(SequenceDefinitionCreate(
        code="INV",
        name="Movimientos de inventario",
        scope=SequenceScope.INVENTORY,
        prefix="INV-",
        padding=5
    ))
    for transaction_type in INVENTORY_TYPES:
        service.assign_inventory_sequence(transaction_type, "INV")
    return "INV"


@pytest.fixture
def receive_stock(db_session, inventory_sequences):
    """Registra una compra para dejar existencias disponibles"""
    def _receive(article_code, quantity, warehouse_code="PRINCIPAL", cost="10", unit=InventoryUnit.RETAIL, **fields):
        return InventoryService(db_session).register_purchase(PurchaseCreate(
            warehouse_code=warehouse_code,
            lines=[InventoryLineInput(
                article_code=article_code,
                quantity=Decimal(str(quantity)),
                unit=unit,
                cost_per_unit=Decimal(str(cost))
            )],
            **fields
        ))
    return _receive


# ===== CAJAS =====

@pytest.fixture
def cash_register(db_session, warehouse, admin_user):
    """Caja con consecutivo de facturas, asignada al cajero"""
    SequenceService(db_session).create_definition(SequenceDefinitionCreate(
        code="FAC",
        name="Facturas caja 1",
        scope=SequenceScope.INVOICE,
        prefix="F-",
        padding=6
    ))
    registers = CashRegisterService(db_session)
    registers.create_cash_register(CashRegisterCreate(
        code="CAJA1",
        name="Caja principal",
        warehouse_code=warehouse.code
    ))
    registers.set_invoice_sequence("CAJA1", "FAC")
    registers.assign_cash_register(admin_user.id, "CAJA1")
    return registers.get_by_code_or_404("CAJA1")


@pytest.fixture
def open_session(db_session, cash_register, admin_user):
    return CashSessionService(db_session).open_session(
        admin_user.id,
        OpenSessionRequest(cash_register_code=cash_register.code, opening_amount=Decimal("0"))
    )


# ===== CxC =====

@pytest.fixture
def payment_terms(db_session):
    seed_payment_terms(db_session)


@pytest.fixture
def customer(db_session, payment_terms):
    return CustomerService(db_session).create_customer(CustomerCreate(
        code="CLI001",
        name="Distribuidora El Sol",
        tax_id="J0310000000001",
        payment_term_code="PT-30",
        credit_limit=Decimal("5000")
    ))
