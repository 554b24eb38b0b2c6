from backoffice.database.database import Base
from sqlalchemy import Column, Integer, String, Text, Boolean, Date, ForeignKey, Numeric, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
from backoffice.common.mixins import TimestampMixin, ActiveMixin


class PriceList(Base, TimestampMixin, ActiveMixin):
    __tablename__ = "price_lists"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(30), nullable=False, unique=True, index=True)
    name = Column(String(120), nullable=False)
    description = Column(Text, nullable=True)
    currency_code = Column(String(3), nullable=False, default="NIO")
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    is_default = Column(Boolean, nullable=False, default=False)

    items = relationship("ArticlePrice", back_populates="price_list", cascade="all, delete-orphan")


class ArticlePrice(Base, TimestampMixin, ActiveMixin):
    __tablename__ = "article_prices"

    id = Column(Integer, primary_key=True, autoincrement=True)
    article_id = Column(Integer, ForeignKey("articles.id", ondelete="CASCADE"), nullable=False, index=True)
    price_list_id = Column(Integer, ForeignKey("price_lists.id", ondelete="CASCADE"), nullable=False, index=True)
    price = Column(Numeric(18, 2), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)

    article = relationship("Article")
    price_list = relationship("PriceList", back_populates="items")

    __table_args__ = (
        UniqueConstraint("article_id", "price_list_id", name="uq_article_price_list"),
        CheckConstraint("price >= 0", name="ck_article_prices_price"),
    )
