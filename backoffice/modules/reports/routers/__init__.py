"""
Routers del módulo de reportes
"""

from .sales import router as sales_reports_router
from .inventory import router as inventory_reports_router
from .cxc import router as cxc_reports_router

__all__ = [
    "sales_reports_router",
    "inventory_reports_router",
    "cxc_reports_router"
]
