from fastapi import APIRouter, Depends, Query, status
from typing import List, Optional
from sqlalchemy.orm import Session

from backoffice.dependencies.dbDependencies import get_db
from backoffice.modules.prices.service import PriceListService
from backoffice.modules.prices.schemas import (
    PriceListUpsert, PriceListOut, PriceListItemOut, ArticlePriceSet, ActiveStateUpdate, ResolvedPrice
)

prices_router = APIRouter(prefix="/price-lists", tags=["Prices"])


@prices_router.get("/", response_model=List[PriceListOut])
def list_price_lists(db: Session = Depends(get_db)):
    """Listas de precios; la predeterminada primero."""
    return PriceListService(db).list_price_lists()


@prices_router.put("/", response_model=PriceListOut)
def upsert_price_list(data: PriceListUpsert, db: Session = Depends(get_db)):
    return PriceListService(db).upsert_price_list(data)


@prices_router.get("/default")
def get_default_price_list(db: Session = Depends(get_db)):
    return {"code": PriceListService(db).get_default_code()}


@prices_router.get("/resolve", response_model=ResolvedPrice)
def resolve_price(
    article: str = Query(..., min_length=1),
    price_list: Optional[str] = Query(None),
    db: Session = Depends(get_db)
):
    """Precio vigente de un artículo (lista predeterminada si no se indica)."""
    return PriceListService(db).resolve_price(article, price_list)


@prices_router.put("/items", response_model=PriceListItemOut)
def set_article_price(data: ArticlePriceSet, db: Session = Depends(get_db)):
    return PriceListService(db).set_article_price(data)


@prices_router.get("/{code}", response_model=PriceListOut)
def get_price_list(code: str, db: Session = Depends(get_db)):
    return PriceListService(db).get_by_code_or_404(code)


@prices_router.patch("/{code}/active", response_model=PriceListOut)
def set_price_list_active(code: str, data: ActiveStateUpdate, db: Session = Depends(get_db)):
    return PriceListService(db).set_active(code, data.is_active)


@prices_router.post("/{code}/default", response_model=PriceListOut)
def set_default_price_list(code: str, db: Session = Depends(get_db)):
    return PriceListService(db).set_default(code)


@prices_router.get("/{code}/items", response_model=List[PriceListItemOut])
def list_price_list_items(code: str, db: Session = Depends(get_db)):
    return PriceListService(db).list_items(code)


@prices_router.patch("/{code}/items/{article_code}", status_code=status.HTTP_204_NO_CONTENT)
def set_article_price_active(code: str, article_code: str, data: ActiveStateUpdate, db: Session = Depends(get_db)):
    PriceListService(db).set_article_active(article_code, code, data.is_active)


@prices_router.delete("/{code}/items/{article_code}", status_code=status.HTTP_204_NO_CONTENT)
def remove_article_price(code: str, article_code: str, db: Session = Depends(get_db)):
    PriceListService(db).remove_article(article_code, code)
