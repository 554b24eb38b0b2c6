"""
Fechas de negocio y aritmética decimal compartida.

Las marcas de tiempo se guardan como UTC sin zona horaria. Los filtros por día
("desde"/"hasta") se interpretan en la hora local del negocio, configurada con
BUSINESS_UTC_OFFSET_HOURS.
"""
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

from backoffice.core.config import settings

MONEY = Decimal("0.01")
QUANTITY = Decimal("0.000001")
EPSILON = Decimal("0.000001")

Number = Union[Decimal, int, float, str]


def business_tz() -> timezone:
    return timezone(timedelta(hours=settings.BUSINESS_UTC_OFFSET_HOURS))


def utcnow() -> datetime:
    """UTC actual sin tzinfo, el formato en que se persisten las fechas."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def start_of_business_day(day: date) -> datetime:
    local_midnight = datetime.combine(day, time.min, tzinfo=business_tz())
    return to_naive_utc(local_midnight)


def end_of_business_day(day: date) -> datetime:
    return start_of_business_day(day + timedelta(days=1)) - timedelta(microseconds=1)


def business_date(value: datetime) -> date:
    """Fecha local del negocio para una marca UTC sin zona."""
    aware = value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value
    return aware.astimezone(business_tz()).date()


def resolve_occurred_at(value: Optional[Union[datetime, date]]) -> datetime:
    """
    Normaliza la fecha de un documento.
    - None: ahora
    - date: mediodía local de ese día (evita saltos de día al convertir a UTC)
    - datetime: convertido a UTC sin zona
    """
    if value is None:
        return utcnow()
    if isinstance(value, datetime):
        return to_naive_utc(value)
    return to_naive_utc(datetime.combine(value, time(12, 0), tzinfo=business_tz()))


def to_decimal(value: Optional[Number]) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def round_money(value: Number) -> Decimal:
    return to_decimal(value).quantize(MONEY, rounding=ROUND_HALF_UP)


def round_quantity(value: Number) -> Decimal:
    return to_decimal(value).quantize(QUANTITY, rounding=ROUND_HALF_UP)


def snap_to_zero(value: Decimal) -> Decimal:
    """Valores menores a EPSILON en magnitud se consideran cero."""
    return Decimal("0") if abs(value) < EPSILON else value
