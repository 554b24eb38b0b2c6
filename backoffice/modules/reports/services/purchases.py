"""
Servicio de reportes de compras

Compras agrupadas por proveedor con los montos según su estado de pago.
"""

from datetime import date
from decimal import Decimal
from typing import Dict, Optional

from .base import BaseReportService
from backoffice.common.utils import round_money, to_decimal
from backoffice.common.validators import normalize_code
from backoffice.modules.inventory.models import (
    InventoryTransaction, TransactionStatus, TransactionType
)

NO_SUPPLIER = "Sin proveedor"

STATUS_COLUMNS = {
    TransactionStatus.PENDIENTE: "pending_amount",
    TransactionStatus.PARCIAL: "partial_amount",
    TransactionStatus.PAGADA: "paid_amount",
}


class PurchaseReportService(BaseReportService):

    def get_purchases_by_supplier(
        self,
        date_from: date,
        date_to: date,
        supplier: Optional[str] = None,
        purchase_status: Optional[str] = None
    ) -> Dict:
        self._validate_date_range(date_from, date_to)
        query = self.db.query(InventoryTransaction).filter(
            InventoryTransaction.transaction_type == TransactionType.PURCHASE
        )
        query = self._apply_date_filter(query, InventoryTransaction.occurred_at, date_from, date_to)
        if supplier and supplier.strip():
            query = query.filter(InventoryTransaction.counterparty_name.ilike(f"%{supplier.strip()}%"))
        if normalize_code(purchase_status):
            query = query.filter(InventoryTransaction.status == normalize_code(purchase_status))

        grouped: Dict[str, Dict] = {}
        for purchase in query.all():
            name = (purchase.counterparty_name or "").strip() or NO_SUPPLIER
            row = grouped.setdefault(name, {
                "supplier_name": name,
                "purchases": 0,
                "total_amount": Decimal("0"),
                "pending_amount": Decimal("0"),
                "partial_amount": Decimal("0"),
                "paid_amount": Decimal("0"),
                "last_purchase_at": None
            })
            amount = to_decimal(purchase.total_amount)
            row["purchases"] += 1
            row["total_amount"] += amount
            column = STATUS_COLUMNS.get(purchase.status)
            if column:
                row[column] += amount
            if row["last_purchase_at"] is None or purchase.occurred_at > row["last_purchase_at"]:
                row["last_purchase_at"] = purchase.occurred_at

        suppliers = []
        for row in grouped.values():
            total = row["total_amount"]
            suppliers.append({
                **row,
                "total_amount": round_money(total),
                "pending_amount": round_money(row["pending_amount"]),
                "partial_amount": round_money(row["partial_amount"]),
                "paid_amount": round_money(row["paid_amount"]),
                "average_ticket": round_money(total / row["purchases"]) if row["purchases"] else Decimal("0.00")
            })
        suppliers.sort(key=lambda s: s["total_amount"], reverse=True)

        return {"date_from": date_from, "date_to": date_to, "suppliers": suppliers}
