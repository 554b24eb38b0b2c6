"""
Normalizadores y validadores compartidos por los módulos
"""
import re
import unicodedata
from typing import Optional


def normalize_code(value: Optional[str]) -> str:
    """
    Normaliza un código de catálogo (artículo, almacén, caja, lista de precios).
    Elimina espacios externos y lo convierte a mayúsculas.
    """
    if value is None:
        return ""
    return value.strip().upper()


def normalize_optional_code(value: Optional[str]) -> Optional[str]:
    """Igual que normalize_code pero devuelve None para valores vacíos"""
    code = normalize_code(value)
    return code or None


def clean_text(value: Optional[str], max_length: Optional[int] = None) -> Optional[str]:
    """Recorta texto libre; cadenas vacías se guardan como NULL"""
    if value is None:
        return None
    cleaned = value.strip()
    if not cleaned:
        return None
    if max_length is not None:
        cleaned = cleaned[:max_length]
    return cleaned


def slugify_zone_id(name: str) -> str:
    """
    Deriva el identificador de una zona a partir de su nombre.
    - Elimina acentos y caracteres no ASCII
    - Mayúsculas, espacios a guiones
    - Solo A-Z, 0-9 y guiones simples

    >>> slugify_zone_id("Salón Principal")
    'SALON-PRINCIPAL'
    """
    decomposed = unicodedata.normalize("NFD", name)
    ascii_only = decomposed.encode("ascii", "ignore").decode("ascii")
    value = ascii_only.strip().upper()
    value = re.sub(r"\s+", "-", value)
    value = re.sub(r"[^A-Z0-9-]", "", value)
    value = re.sub(r"-+", "-", value)
    return value
