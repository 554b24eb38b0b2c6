"""
Servicio de reportes de ventas

Resumen del periodo, desempeño por mesero, artículos más vendidos y estado de
cobro de las facturas.
"""

from collections import OrderedDict
from datetime import date
from decimal import Decimal
from typing import Dict, Optional

from sqlalchemy import desc, func, or_

from .base import BaseReportService
from backoffice.common.utils import business_date, round_money, round_quantity, to_decimal
from backoffice.common.validators import normalize_code
from backoffice.modules.invoices.models import Invoice, InvoiceItem, InvoicePayment
from backoffice.modules.staff.models import Waiter

UNASSIGNED_WAITER = "Sin asignar"
TOP_ITEMS_DEFAULT_LIMIT = 15
TOP_ITEMS_MAX_LIMIT = 100
TOP_PENDING_LIMIT = 15


def invoice_payment_status(total: Decimal, paid: Decimal) -> str:
    if paid >= total:
        return "PAGADA"
    if paid == 0:
        return "PENDIENTE"
    return "PARCIAL"


class SalesReportService(BaseReportService):
    """Reportes de ventas sobre facturas no anuladas"""

    def _filtered_invoices(
        self,
        query,
        date_from: date,
        date_to: date,
        waiter_code: Optional[str] = None,
        table_code: Optional[str] = None,
        customer: Optional[str] = None,
        currency: Optional[str] = None
    ):
        query = self._apply_date_filter(self._exclude_cancelled(query), Invoice.invoice_date, date_from, date_to)
        if normalize_code(waiter_code):
            query = query.filter(func.upper(Invoice.waiter_code) == normalize_code(waiter_code))
        if normalize_code(table_code):
            query = query.filter(func.upper(Invoice.table_code) == normalize_code(table_code))
        if customer and customer.strip():
            term = f"%{customer.strip()}%"
            query = query.filter(or_(
                Invoice.customer_name.ilike(term),
                Invoice.customer_tax_id.ilike(term)
            ))
        if normalize_code(currency):
            query = query.filter(func.upper(Invoice.currency_code) == normalize_code(currency))
        return query

    def get_sales_summary(
        self,
        date_from: date,
        date_to: date,
        waiter_code: Optional[str] = None,
        table_code: Optional[str] = None,
        customer: Optional[str] = None,
        payment_method: Optional[str] = None,
        currency: Optional[str] = None
    ) -> Dict:
        """
        Totales del periodo, cobros por método y ventas por día.

        El filtro de método de pago solo afecta el desglose de pagos.
        """
        self._validate_date_range(date_from, date_to)
        filters = dict(
            date_from=date_from, date_to=date_to, waiter_code=waiter_code,
            table_code=table_code, customer=customer, currency=currency
        )

        invoices = self._filtered_invoices(self.db.query(Invoice), **filters).all()

        subtotal = sum((to_decimal(i.subtotal) for i in invoices), Decimal("0"))
        service_charge = sum((to_decimal(i.service_charge) for i in invoices), Decimal("0"))
        vat = sum((to_decimal(i.vat_amount) for i in invoices), Decimal("0"))
        total = sum((to_decimal(i.total_amount) for i in invoices), Decimal("0"))
        count = len(invoices)

        by_day: "OrderedDict[date, Dict]" = OrderedDict()
        for invoice in sorted(invoices, key=lambda i: i.invoice_date):
            day = business_date(invoice.invoice_date)
            entry = by_day.setdefault(day, {"date": day, "invoices": 0, "total": Decimal("0")})
            entry["invoices"] += 1
            entry["total"] += to_decimal(invoice.total_amount)

        payments_query = self._filtered_invoices(
            self.db.query(
                InvoicePayment.payment_method,
                func.sum(InvoicePayment.amount)
            ).join(Invoice, Invoice.id == InvoicePayment.invoice_id),
            **filters
        )
        if normalize_code(payment_method):
            payments_query = payments_query.filter(InvoicePayment.payment_method == normalize_code(payment_method))
        payments = [
            {"method": method.value, "amount": round_money(amount or 0)}
            for method, amount in payments_query.group_by(InvoicePayment.payment_method).all()
        ]
        payments.sort(key=lambda p: p["amount"], reverse=True)

        return {
            "date_from": date_from,
            "date_to": date_to,
            "totals": {
                "invoices": count,
                "subtotal": round_money(subtotal),
                "service_charge": round_money(service_charge),
                "vat": round_money(vat),
                "total": round_money(total),
                "average_ticket": round_money(total / count) if count else Decimal("0.00")
            },
            "payments": payments,
            "by_day": [
                {"date": entry["date"], "invoices": entry["invoices"], "total": round_money(entry["total"])}
                for entry in by_day.values()
            ]
        }

    def get_waiter_performance(
        self,
        date_from: date,
        date_to: date,
        waiter_code: Optional[str] = None
    ) -> Dict:
        """Ventas agrupadas por mesero; facturas sin mesero quedan como "Sin asignar"."""
        self._validate_date_range(date_from, date_to)
        query = self.db.query(
            Invoice.waiter_code,
            Waiter.full_name,
            func.count(Invoice.id),
            func.sum(Invoice.total_amount),
            func.sum(Invoice.service_charge),
            func.max(Invoice.invoice_date)
        ).outerjoin(Waiter, Waiter.code == Invoice.waiter_code)
        query = self._filtered_invoices(query, date_from, date_to, waiter_code=waiter_code)
        rows = query.group_by(Invoice.waiter_code, Waiter.full_name).all()

        waiters = []
        for code, full_name, invoices, total_sales, service_charge, last_sale_at in rows:
            total_sales = to_decimal(total_sales)
            waiters.append({
                "waiter_code": code,
                "waiter_name": full_name or code or UNASSIGNED_WAITER,
                "invoices": invoices,
                "total_sales": round_money(total_sales),
                "average_ticket": round_money(total_sales / invoices) if invoices else Decimal("0.00"),
                "service_charge": round_money(to_decimal(service_charge)),
                "last_sale_at": last_sale_at
            })
        waiters.sort(key=lambda w: w["total_sales"], reverse=True)

        return {"date_from": date_from, "date_to": date_to, "waiters": waiters}

    def get_top_items(
        self,
        date_from: date,
        date_to: date,
        search: Optional[str] = None,
        limit: Optional[int] = None
    ) -> Dict:
        self._validate_date_range(date_from, date_to)
        limit = max(1, min(limit or TOP_ITEMS_DEFAULT_LIMIT, TOP_ITEMS_MAX_LIMIT))

        total_column = func.sum(InvoiceItem.line_total)
        query = self.db.query(
            InvoiceItem.description,
            func.sum(InvoiceItem.quantity),
            total_column,
            func.min(Invoice.invoice_date),
            func.max(Invoice.invoice_date)
        ).join(Invoice, Invoice.id == InvoiceItem.invoice_id)
        query = self._filtered_invoices(query, date_from, date_to)
        if search and search.strip():
            query = query.filter(InvoiceItem.description.ilike(f"%{search.strip()}%"))
        rows = query.group_by(InvoiceItem.description).order_by(desc(total_column)).limit(limit).all()

        items = []
        for description, quantity, total, first_sale_at, last_sale_at in rows:
            quantity = to_decimal(quantity)
            total = to_decimal(total)
            items.append({
                "description": description,
                "quantity": round_quantity(quantity),
                "total": round_money(total),
                "average_price": round_money(total / quantity) if quantity > 0 else Decimal("0.00"),
                "first_sale_at": first_sale_at,
                "last_sale_at": last_sale_at
            })

        return {"date_from": date_from, "date_to": date_to, "limit": limit, "items": items}

    def get_invoice_status(
        self,
        date_from: date,
        date_to: date,
        customer: Optional[str] = None,
        waiter_code: Optional[str] = None
    ) -> Dict:
        """Facturas agrupadas por estado de cobro y las de mayor saldo pendiente."""
        self._validate_date_range(date_from, date_to)
        invoices = self._filtered_invoices(
            self.db.query(Invoice), date_from, date_to, waiter_code=waiter_code, customer=customer
        ).all()

        summary: Dict[str, Dict] = {}
        pending = []
        for invoice in invoices:
            total = to_decimal(invoice.total_amount)
            paid = sum((to_decimal(p.amount) for p in invoice.payments), Decimal("0"))
            balance = total - paid
            invoice_status = invoice_payment_status(total, paid)

            row = summary.setdefault(invoice_status, {
                "status": invoice_status,
                "invoices": 0,
                "total_amount": Decimal("0"),
                "paid_amount": Decimal("0"),
                "balance": Decimal("0")
            })
            row["invoices"] += 1
            row["total_amount"] += total
            row["paid_amount"] += paid
            row["balance"] += balance

            if balance > 0:
                pending.append({
                    "invoice_number": invoice.invoice_number,
                    "customer_name": invoice.customer_name,
                    "waiter_code": invoice.waiter_code,
                    "invoice_date": invoice.invoice_date,
                    "total_amount": round_money(total),
                    "paid_amount": round_money(paid),
                    "balance": round_money(balance),
                    "status": invoice_status
                })

        for row in summary.values():
            for key in ("total_amount", "paid_amount", "balance"):
                row[key] = round_money(row[key])
        pending.sort(key=lambda p: (-p["balance"], p["invoice_date"]))

        return {
            "date_from": date_from,
            "date_to": date_to,
            "summary": sorted(summary.values(), key=lambda r: r["status"]),
            "top_pending": pending[:TOP_PENDING_LIMIT]
        }
