"""
Servicios del módulo de reportes
"""

from .sales import SalesReportService
from .purchases import PurchaseReportService
from .inventory import InventoryReportService
from .cxc import CxcReportService

__all__ = [
    "SalesReportService",
    "PurchaseReportService",
    "InventoryReportService",
    "CxcReportService"
]
