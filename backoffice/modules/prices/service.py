from typing import List, Optional
from sqlalchemy.orm import Session, selectinload
from fastapi import HTTPException, status
import logging

from backoffice.core.config import settings
from backoffice.common.utils import business_date, utcnow, round_money, to_decimal
from backoffice.common.validators import normalize_code, clean_text
from backoffice.modules.catalog.models import Article
from backoffice.modules.prices.models import PriceList, ArticlePrice
from backoffice.modules.prices.schemas import (
    PriceListUpsert, PriceListItemOut, ArticlePriceSet, ResolvedPrice
)

logger = logging.getLogger(__name__)


class PriceListService:
    """Listas de precios y precio vigente por artículo."""

    def __init__(self, db: Session):
        self.db = db

    def list_price_lists(self) -> List[PriceList]:
        return self.db.query(PriceList).order_by(PriceList.is_default.desc(), PriceList.name).all()

    def get_by_code(self, code: str) -> Optional[PriceList]:
        return self.db.query(PriceList).filter(PriceList.code == normalize_code(code)).first()

    def get_by_code_or_404(self, code: str) -> PriceList:
        price_list = self.get_by_code(code)
        if not price_list:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Lista de precios no encontrada: {normalize_code(code)}"
            )
        return price_list

    def get_default_code(self) -> Optional[str]:
        row = self.db.query(PriceList).filter(PriceList.is_default == True).first()
        return row.code if row else None

    def _clear_default(self, keep_code: str) -> None:
        self.db.query(PriceList).filter(
            PriceList.is_default == True,
            PriceList.code != keep_code
        ).update({PriceList.is_default: False}, synchronize_session=False)

    def upsert_price_list(self, data: PriceListUpsert) -> PriceList:
        """Crea o actualiza una lista; marcarla como predeterminada desmarca las demás."""
        code = normalize_code(data.code)
        if not code:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="El código de la lista es obligatorio"
            )
        if data.end_date and data.start_date and data.end_date < data.start_date:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="La fecha final no puede ser anterior a la inicial"
            )

        fields = data.model_dump(exclude_unset=True)
        price_list = self.get_by_code(code)
        if price_list is None:
            price_list = PriceList(
                code=code,
                start_date=data.start_date or business_date(utcnow()),
                is_active=True if data.is_active is None else data.is_active,
                is_default=False
            )
            self.db.add(price_list)
        elif data.start_date:
            price_list.start_date = data.start_date

        price_list.name = (data.name or code).strip()
        price_list.description = clean_text(data.description)
        price_list.currency_code = (data.currency_code or settings.LOCAL_CURRENCY_CODE).strip().upper()
        if "end_date" in fields:
            price_list.end_date = data.end_date
        if data.is_active is not None:
            price_list.is_active = data.is_active
        if data.is_default is True:
            self._clear_default(code)
            price_list.is_default = True
        elif data.is_default is False:
            price_list.is_default = False

        self.db.commit()
        self.db.refresh(price_list)
        logger.info(f"Lista de precios guardada: {code}")
        return price_list

    def set_active(self, code: str, is_active: bool) -> PriceList:
        price_list = self.get_by_code_or_404(code)
        price_list.is_active = is_active
        self.db.commit()
        self.db.refresh(price_list)
        return price_list

    def set_default(self, code: str) -> PriceList:
        price_list = self.get_by_code_or_404(code)
        self._clear_default(price_list.code)
        price_list.is_default = True
        self.db.commit()
        self.db.refresh(price_list)
        logger.info(f"Lista de precios predeterminada: {price_list.code}")
        return price_list

    def list_items(self, code: str) -> List[PriceListItemOut]:
        price_list = self.get_by_code_or_404(code)
        rows = self.db.query(ArticlePrice).options(
            selectinload(ArticlePrice.article).selectinload(Article.retail_unit)
        ).filter(ArticlePrice.price_list_id == price_list.id).all()
        rows.sort(key=lambda row: row.article.article_code)
        return [
            PriceListItemOut(
                article_id=row.article_id,
                article_code=row.article.article_code,
                name=row.article.name,
                unit=row.article.retail_unit_name,
                price=row.price,
                currency_code=price_list.currency_code,
                is_active=row.is_active,
                start_date=row.start_date,
                end_date=row.end_date
            )
            for row in rows
        ]

    def _get_article_or_404(self, article_code: str) -> Article:
        article = self.db.query(Article).filter(Article.article_code == normalize_code(article_code)).first()
        if not article:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Artículo no encontrado"
            )
        return article

    def _get_article_price(self, article_code: str, list_code: str) -> ArticlePrice:
        price_list = self.get_by_code_or_404(list_code)
        article = self._get_article_or_404(article_code)
        row = self.db.query(ArticlePrice).filter(
            ArticlePrice.article_id == article.id,
            ArticlePrice.price_list_id == price_list.id
        ).first()
        if not row:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"El artículo {article.article_code} no está en la lista {price_list.code}"
            )
        return row

    def set_article_price(self, data: ArticlePriceSet) -> PriceListItemOut:
        """Asigna el precio de un artículo; crea la lista si aún no existe."""
        price = to_decimal(data.price)
        if price < 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="El precio no puede ser negativo"
            )
        list_code = normalize_code(data.price_list_code) or self.get_default_code() or settings.DEFAULT_PRICE_LIST_CODE
        article = self._get_article_or_404(data.article_code)

        price_list = self.get_by_code(list_code)
        if price_list is None:
            price_list = PriceList(
                code=list_code,
                name=list_code,
                currency_code=settings.LOCAL_CURRENCY_CODE,
                start_date=business_date(utcnow()),
                is_active=True,
                is_default=False
            )
            self.db.add(price_list)
            self.db.flush()

        fields = data.model_dump(exclude_unset=True)
        row = self.db.query(ArticlePrice).filter(
            ArticlePrice.article_id == article.id,
            ArticlePrice.price_list_id == price_list.id
        ).first()
        if row is None:
            row = ArticlePrice(
                article_id=article.id,
                price_list_id=price_list.id,
                start_date=data.start_date or business_date(utcnow())
            )
            self.db.add(row)
        elif data.start_date:
            row.start_date = data.start_date
        if "end_date" in fields:
            row.end_date = data.end_date
        row.price = round_money(price)
        row.is_active = True

        self.db.commit()
        logger.info(f"Precio {article.article_code} en {price_list.code}: {row.price}")
        return PriceListItemOut(
            article_id=article.id,
            article_code=article.article_code,
            name=article.name,
            unit=article.retail_unit_name,
            price=row.price,
            currency_code=price_list.currency_code,
            is_active=row.is_active,
            start_date=row.start_date,
            end_date=row.end_date
        )

    def set_article_active(self, article_code: str, list_code: str, is_active: bool) -> None:
        row = self._get_article_price(article_code, list_code)
        row.is_active = is_active
        self.db.commit()

    def remove_article(self, article_code: str, list_code: str) -> None:
        row = self._get_article_price(article_code, list_code)
        self.db.delete(row)
        self.db.commit()

    def resolve_price(self, article_code: str, list_code: Optional[str] = None) -> ResolvedPrice:
        """Precio vigente del artículo en la lista indicada o en la predeterminada."""
        code = normalize_code(list_code) or self.get_default_code()
        if not code:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="No hay una lista de precios predeterminada"
            )
        row = self._get_article_price(article_code, code)
        today = business_date(utcnow())
        price_list = row.price_list
        in_range = row.start_date <= today and (row.end_date is None or row.end_date >= today)
        list_in_range = price_list.start_date <= today and (price_list.end_date is None or price_list.end_date >= today)
        if not row.is_active or not price_list.is_active or not in_range or not list_in_range:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"El artículo {row.article.article_code} no tiene precio vigente en la lista {row.price_list.code}"
            )
        return ResolvedPrice(
            article_code=row.article.article_code,
            price_list_code=row.price_list.code,
            price=to_decimal(row.price),
            currency_code=row.price_list.currency_code
        )
