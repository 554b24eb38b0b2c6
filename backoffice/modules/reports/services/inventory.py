"""
Servicio de reportes de inventario

Resume los movimientos del kardex por tipo de transacción, en unidades de
detalle y en unidades de almacén (detalle / factor de conversión).
"""

from datetime import date
from decimal import Decimal
from typing import Dict, Optional

from sqlalchemy import func, or_

from .base import BaseReportService
from backoffice.common.utils import round_quantity, to_decimal
from backoffice.common.validators import normalize_code
from backoffice.modules.catalog.models import Article, Warehouse
from backoffice.modules.inventory.models import (
    InventoryMovement, InventoryTransaction, MovementDirection
)


class InventoryReportService(BaseReportService):

    def get_movements_summary(
        self,
        date_from: date,
        date_to: date,
        article: Optional[str] = None,
        warehouse_code: Optional[str] = None,
        transaction_type: Optional[str] = None
    ) -> Dict:
        """
        Entradas, salidas y neto por tipo de transacción.

        Args:
            article: filtra por código o nombre de artículo (contiene)
            warehouse_code: código exacto del almacén
            transaction_type: PURCHASE, CONSUMPTION, ADJUSTMENT o TRANSFER
        """
        self._validate_date_range(date_from, date_to)
        query = self.db.query(
            InventoryTransaction.transaction_type,
            InventoryMovement.direction,
            InventoryMovement.quantity_retail,
            Article.conversion_factor
        ).join(
            InventoryTransaction, InventoryTransaction.id == InventoryMovement.transaction_id
        ).join(
            Article, Article.id == InventoryMovement.article_id
        ).join(
            Warehouse, Warehouse.id == InventoryMovement.warehouse_id
        )
        query = self._apply_date_filter(query, InventoryTransaction.occurred_at, date_from, date_to)
        if article and article.strip():
            term = f"%{article.strip()}%"
            query = query.filter(or_(Article.article_code.ilike(term), Article.name.ilike(term)))
        if normalize_code(warehouse_code):
            query = query.filter(func.upper(Warehouse.code) == normalize_code(warehouse_code))
        if normalize_code(transaction_type):
            query = query.filter(InventoryTransaction.transaction_type == normalize_code(transaction_type))

        grouped: Dict[str, Dict[str, Decimal]] = {}
        for tx_type, direction, quantity_retail, conversion_factor in query.all():
            key = tx_type.value
            row = grouped.setdefault(key, {
                "entries_retail": Decimal("0"),
                "exits_retail": Decimal("0"),
                "entries_storage": Decimal("0"),
                "exits_storage": Decimal("0")
            })
            quantity = to_decimal(quantity_retail)
            factor = to_decimal(conversion_factor)
            storage = quantity / factor if factor > 0 else Decimal("0")
            if direction == MovementDirection.IN:
                row["entries_retail"] += quantity
                row["entries_storage"] += storage
            else:
                row["exits_retail"] += quantity
                row["exits_storage"] += storage

        summary = []
        net_retail_total = Decimal("0")
        net_storage_total = Decimal("0")
        for tx_type in sorted(grouped):
            row = grouped[tx_type]
            net_retail = row["entries_retail"] - row["exits_retail"]
            net_storage = row["entries_storage"] - row["exits_storage"]
            net_retail_total += net_retail
            net_storage_total += net_storage
            summary.append({
                "transaction_type": tx_type,
                "entries_retail": round_quantity(row["entries_retail"]),
                "exits_retail": round_quantity(row["exits_retail"]),
                "net_retail": round_quantity(net_retail),
                "entries_storage": round_quantity(row["entries_storage"]),
                "exits_storage": round_quantity(row["exits_storage"]),
                "net_storage": round_quantity(net_storage)
            })

        return {
            "date_from": date_from,
            "date_to": date_to,
            "summary": summary,
            "totals": {
                "net_retail": round_quantity(net_retail_total),
                "net_storage": round_quantity(net_storage_total)
            }
        }
