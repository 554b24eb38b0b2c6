"""
Inventory module

Motor de movimientos: compras, consumos, traspasos, descarga por facturación,
kardex y existencias por almacén.
"""

from .router import inventory_router
from .service import InventoryService

__all__ = ["inventory_router", "InventoryService"]
