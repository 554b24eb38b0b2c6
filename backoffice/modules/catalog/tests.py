"""
Tests para el módulo de Catálogo

Cubren:
- Unidades y almacenes
- Artículos con factor de conversión y almacén predeterminado
- Composición de kits y sus validaciones
"""

import pytest
from decimal import Decimal
from fastapi import HTTPException

from backoffice.modules.catalog.models import ArticleType
from backoffice.modules.catalog.schemas import (
    ArticleCreate, ArticleUpdate, KitComponentInput, WarehouseCreate, WarehouseUpdate, UnitCreate
)
from backoffice.modules.catalog.service import ArticleService, WarehouseService, UnitService


class TestWarehouses:
    """Tests para almacenes"""

    def test_duplicate_warehouse_conflict(self, db_session, warehouse):
        with pytest.raises(HTTPException) as exc_info:
            WarehouseService(db_session).create_warehouse(WarehouseCreate(code="principal", name="Otra"))
        assert exc_info.value.status_code == 409

    def test_deactivated_warehouse_hidden_from_list(self, db_session, warehouse, bar_warehouse):
        service = WarehouseService(db_session)
        service.update_warehouse("BAR", WarehouseUpdate(is_active=False))

        assert [w.code for w in service.list_warehouses()] == ["PRINCIPAL"]
        assert len(service.list_warehouses(include_inactive=True)) == 2

    def test_missing_warehouse_404(self, db_session):
        with pytest.raises(HTTPException) as exc_info:
            WarehouseService(db_session).get_by_code_or_404("NOEXISTE")
        assert exc_info.value.status_code == 404
        assert "NOEXISTE" in exc_info.value.detail


class TestArticles:
    """Tests para artículos"""

    def test_create_article_with_units(self, db_session, units, warehouse):
        article = ArticleService(db_session).create_article(ArticleCreate(
            article_code="cer-001",
            name="Cerveza Toña",
            storage_unit_code="CAJA",
            retail_unit_code="UND",
            conversion_factor=Decimal("24"),
            default_warehouse_code="PRINCIPAL"
        ))
        assert article.article_code == "CER-001"
        assert article.storage_unit_name == "Caja"
        assert article.retail_unit_name == "Unidad"
        assert article.conversion_factor == Decimal("24")
        assert article.default_warehouse_code == "PRINCIPAL"

    def test_duplicate_article_conflict(self, db_session, make_article):
        make_article("CER-001")
        with pytest.raises(HTTPException) as exc_info:
            make_article("cer-001")
        assert exc_info.value.status_code == 409

    def test_unknown_unit_rejected(self, db_session):
        with pytest.raises(HTTPException) as exc_info:
            ArticleService(db_session).create_article(ArticleCreate(
                article_code="X1", name="X", storage_unit_code="GALON"
            ))
        assert exc_info.value.status_code == 400

    def test_zero_conversion_factor_rejected_by_schema(self):
        with pytest.raises(ValueError):
            ArticleCreate(article_code="X1", name="X", conversion_factor=Decimal("0"))

    def test_search_and_type_filters(self, db_session, make_article):
        make_article("CER-001", name="Cerveza Toña")
        make_article("REF-001", name="Refresco")
        make_article("COMBO-1", name="Combo cervecero", article_type=ArticleType.KIT)
        service = ArticleService(db_session)

        assert [a.article_code for a in service.list_articles(search="cerve")] == ["CER-001", "COMBO-1"]
        assert [a.article_code for a in service.list_articles(article_type=ArticleType.KIT)] == ["COMBO-1"]

    def test_update_article(self, db_session, make_article):
        make_article("CER-001")
        updated = ArticleService(db_session).update_article(
            "CER-001", ArticleUpdate(name="Cerveza Victoria", conversion_factor=Decimal("12"))
        )
        assert updated.name == "Cerveza Victoria"
        assert updated.conversion_factor == Decimal("12")


class TestKits:
    """Tests para la composición de kits"""

    def test_set_kit_components(self, db_session, make_article):
        make_article("CER-001")
        make_article("BOQ-001")
        make_article("COMBO-1", article_type=ArticleType.KIT)

        components = ArticleService(db_session).set_kit_components("COMBO-1", [
            KitComponentInput(component_code="CER-001", component_qty_retail=Decimal("2")),
            KitComponentInput(component_code="boq-001", component_qty_retail=Decimal("1")),
        ])
        assert {c.component_code: c.component_qty_retail for c in components} == {
            "CER-001": Decimal("2"),
            "BOQ-001": Decimal("1"),
        }

    def test_replacing_components(self, db_session, make_article):
        make_article("CER-001")
        make_article("BOQ-001")
        make_article("COMBO-1", article_type=ArticleType.KIT)
        service = ArticleService(db_session)
        service.set_kit_components("COMBO-1", [
            KitComponentInput(component_code="CER-001", component_qty_retail=Decimal("2")),
        ])

        components = service.set_kit_components("COMBO-1", [
            KitComponentInput(component_code="BOQ-001", component_qty_retail=Decimal("3")),
        ])
        assert [c.component_code for c in components] == ["BOQ-001"]

    def test_non_kit_article_rejected(self, db_session, make_article):
        make_article("CER-001")
        with pytest.raises(HTTPException) as exc_info:
            ArticleService(db_session).set_kit_components("CER-001", [])
        assert exc_info.value.status_code == 400

    def test_missing_kit_404(self, db_session):
        with pytest.raises(HTTPException) as exc_info:
            ArticleService(db_session).set_kit_components("NOEXISTE", [])
        assert exc_info.value.status_code == 404

    def test_kit_cannot_contain_itself(self, db_session, make_article):
        make_article("COMBO-1", article_type=ArticleType.KIT)
        with pytest.raises(HTTPException) as exc_info:
            ArticleService(db_session).set_kit_components("COMBO-1", [
                KitComponentInput(component_code="COMBO-1", component_qty_retail=Decimal("1")),
            ])
        assert exc_info.value.status_code == 400

    def test_nested_kits_rejected(self, db_session, make_article):
        make_article("COMBO-1", article_type=ArticleType.KIT)
        make_article("COMBO-2", article_type=ArticleType.KIT)
        with pytest.raises(HTTPException) as exc_info:
            ArticleService(db_session).set_kit_components("COMBO-1", [
                KitComponentInput(component_code="COMBO-2", component_qty_retail=Decimal("1")),
            ])
        assert exc_info.value.status_code == 400
        assert "anidados" in exc_info.value.detail

    def test_duplicate_component_rejected(self, db_session, make_article):
        make_article("CER-001")
        make_article("COMBO-1", article_type=ArticleType.KIT)
        with pytest.raises(HTTPException) as exc_info:
            ArticleService(db_session).set_kit_components("COMBO-1", [
                KitComponentInput(component_code="CER-001", component_qty_retail=Decimal("1")),
                KitComponentInput(component_code="CER-001", component_qty_retail=Decimal("2")),
            ])
        assert exc_info.value.status_code == 400


class TestCatalogEndpoints:
    """Tests de endpoints"""

    def test_create_unit_and_article(self, client):
        assert client.post("/units/", json={"code": "und", "name": "Unidad"}).status_code == 201
        assert client.post("/warehouses/", json={"code": "principal", "name": "Principal"}).status_code == 201

        response = client.post("/articles/", json={
            "article_code": "cer-001",
            "name": "Cerveza",
            "retail_unit_code": "UND",
            "default_warehouse_code": "PRINCIPAL"
        })
        assert response.status_code == 201
        assert response.json()["article_code"] == "CER-001"

        detail = client.get("/articles/CER-001")
        assert detail.status_code == 200
        assert detail.json()["retail_unit_name"] == "Unidad"

    def test_get_missing_article(self, client):
        assert client.get("/articles/NOEXISTE").status_code == 404

    def test_unit_service_rejects_duplicates(self, db_session, units):
        with pytest.raises(HTTPException) as exc_info:
            UnitService(db_session).create_unit(UnitCreate(code="und", name="Otra"))
        assert exc_info.value.status_code == 409
