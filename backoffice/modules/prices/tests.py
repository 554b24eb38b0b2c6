"""
Tests para el módulo de Listas de Precios
"""

import pytest
from datetime import date, timedelta
from decimal import Decimal
from fastapi import HTTPException

from backoffice.modules.prices.schemas import PriceListUpsert, ArticlePriceSet
from backoffice.modules.prices.service import PriceListService


@pytest.fixture
def base_list(db_session):
    return PriceListService(db_session).upsert_price_list(PriceListUpsert(
        code="base", name="Precios base", is_default=True
    ))


class TestPriceLists:
    """Tests para listas de precios"""

    def test_upsert_creates_with_local_currency(self, db_session, base_list):
        assert base_list.code == "BASE"
        assert base_list.currency_code == "NIO"
        assert base_list.is_active is True
        assert base_list.is_default is True

    def test_upsert_updates_existing(self, db_session, base_list):
        updated = PriceListService(db_session).upsert_price_list(PriceListUpsert(
            code="BASE", name="Lista general", currency_code="usd"
        ))
        assert updated.id == base_list.id
        assert updated.name == "Lista general"
        assert updated.currency_code == "USD"

    def test_end_before_start_rejected(self, db_session):
        with pytest.raises(HTTPException) as exc_info:
            PriceListService(db_session).upsert_price_list(PriceListUpsert(
                code="PROMO", start_date=date(2025, 2, 1), end_date=date(2025, 1, 1)
            ))
        assert exc_info.value.status_code == 400

    def test_single_default(self, db_session, base_list):
        service = PriceListService(db_session)
        service.upsert_price_list(PriceListUpsert(code="HAPPY", name="Hora feliz"))
        service.set_default("happy")

        assert service.get_default_code() == "HAPPY"
        assert service.get_by_code("BASE").is_default is False

    def test_missing_list_404(self, db_session):
        with pytest.raises(HTTPException) as exc_info:
            PriceListService(db_session).list_items("NOEXISTE")
        assert exc_info.value.status_code == 404


class TestArticlePrices:
    """Tests para precios por artículo"""

    def test_set_price_creates_missing_list(self, db_session, make_article):
        make_article("CER-001", name="Cerveza Toña")
        item = PriceListService(db_session).set_article_price(ArticlePriceSet(
            article_code="cer-001", price=Decimal("45.555")
        ))
        assert item.article_code == "CER-001"
        assert item.price == Decimal("45.56")
        assert item.currency_code == "NIO"
        assert PriceListService(db_session).get_by_code("BASE") is not None

    def test_set_price_uses_default_list(self, db_session, make_article, base_list):
        service = PriceListService(db_session)
        service.upsert_price_list(PriceListUpsert(code="VIP", is_default=True))
        make_article("CER-001")

        service.set_article_price(ArticlePriceSet(article_code="CER-001", price=Decimal("60")))

        assert [i.article_code for i in service.list_items("VIP")] == ["CER-001"]
        assert service.list_items("BASE") == []

    def test_negative_price_rejected(self, db_session, make_article):
        make_article("CER-001")
        with pytest.raises(HTTPException) as exc_info:
            PriceListService(db_session).set_article_price(ArticlePriceSet(
                article_code="CER-001", price=Decimal("-1")
            ))
        assert exc_info.value.status_code == 400

    def test_unknown_article_404(self, db_session, base_list):
        with pytest.raises(HTTPException) as exc_info:
            PriceListService(db_session).set_article_price(ArticlePriceSet(
                article_code="NOEXISTE", price=Decimal("10")
            ))
        assert exc_info.value.status_code == 404

    def test_updating_price_keeps_single_row(self, db_session, make_article, base_list):
        make_article("CER-001")
        service = PriceListService(db_session)
        service.set_article_price(ArticlePriceSet(article_code="CER-001", price=Decimal("45")))
        service.set_article_price(ArticlePriceSet(article_code="CER-001", price=Decimal("50")))

        items = service.list_items("BASE")
        assert len(items) == 1
        assert items[0].price == Decimal("50")

    def test_remove_article(self, db_session, make_article, base_list):
        make_article("CER-001")
        service = PriceListService(db_session)
        service.set_article_price(ArticlePriceSet(article_code="CER-001", price=Decimal("45")))
        service.remove_article("CER-001", "BASE")

        assert service.list_items("BASE") == []
        with pytest.raises(HTTPException) as exc_info:
            service.remove_article("CER-001", "BASE")
        assert exc_info.value.status_code == 404


class TestResolvePrice:
    """Tests para el precio vigente"""

    def test_resolve_from_default_list(self, db_session, make_article, base_list):
        make_article("CER-001")
        service = PriceListService(db_session)
        service.set_article_price(ArticlePriceSet(article_code="CER-001", price=Decimal("45")))

        resolved = service.resolve_price("cer-001")
        assert resolved.price_list_code == "BASE"
        assert resolved.price == Decimal("45")

    def test_without_default_list(self, db_session, make_article):
        make_article("CER-001")
        with pytest.raises(HTTPException) as exc_info:
            PriceListService(db_session).resolve_price("CER-001")
        assert exc_info.value.status_code == 404

    def test_inactive_price_not_resolved(self, db_session, make_article, base_list):
        make_article("CER-001")
        service = PriceListService(db_session)
        service.set_article_price(ArticlePriceSet(article_code="CER-001", price=Decimal("45")))
        service.set_article_active("CER-001", "BASE", False)

        with pytest.raises(HTTPException) as exc_info:
            service.resolve_price("CER-001")
        assert exc_info.value.status_code == 404

    def test_future_price_not_resolved(self, db_session, make_article, base_list):
        make_article("CER-001")
        service = PriceListService(db_session)
        service.set_article_price(ArticlePriceSet(
            article_code="CER-001", price=Decimal("45"), start_date=date.today() + timedelta(days=30)
        ))
        with pytest.raises(HTTPException) as exc_info:
            service.resolve_price("CER-001")
        assert exc_info.value.status_code == 404

    def test_inactive_list_not_resolved(self, db_session, make_article, base_list):
        make_article("CER-001")
        service = PriceListService(db_session)
        service.set_article_price(ArticlePriceSet(article_code="CER-001", price=Decimal("45")))
        service.set_active("BASE", False)

        with pytest.raises(HTTPException) as exc_info:
            service.resolve_price("CER-001", "BASE")
        assert exc_info.value.status_code == 404

    @pytest.mark.parametrize("start_offset,end_offset", [(30, None), (-60, -30)])
    def test_list_outside_its_dates_not_resolved(self, db_session, make_article, start_offset, end_offset):
        make_article("CER-001")
        today = date.today()
        service = PriceListService(db_session)
        service.upsert_price_list(PriceListUpsert(
            code="TEMPORADA",
            name="Temporada",
            start_date=today + timedelta(days=start_offset),
            end_date=today + timedelta(days=end_offset) if end_offset is not None else None
        ))
        service.set_article_price(ArticlePriceSet(
            article_code="CER-001", price_list_code="TEMPORADA", price=Decimal("50"),
            start_date=today - timedelta(days=90)
        ))

        with pytest.raises(HTTPException) as exc_info:
            service.resolve_price("CER-001", "TEMPORADA")
        assert exc_info.value.status_code == 404


class TestPriceEndpoints:
    """Tests de endpoints"""

    def test_set_and_resolve(self, client, make_article):
        make_article("CER-001")
        assert client.put("/price-lists/", json={"code": "BASE", "is_default": True}).status_code == 200

        response = client.put("/price-lists/items", json={"article_code": "CER-001", "price": "45"})
        assert response.status_code == 200

        resolved = client.get("/price-lists/resolve", params={"article": "CER-001"})
        assert resolved.status_code == 200
        assert Decimal(resolved.json()["price"]) == Decimal("45")

    def test_default_code(self, client, base_list):
        assert client.get("/price-lists/default").json() == {"code": "BASE"}
