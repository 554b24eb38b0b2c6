"""
Utilidades del módulo de reportes

Exportación CSV compartida por todos los endpoints (`export=csv`) y las
funciones que aplanan cada reporte a filas.
"""

import csv
import io
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from fastapi import Response


def create_csv_response(
    data: List[Dict[str, Any]],
    filename: str,
    headers: Optional[Dict[str, str]] = None
) -> Response:
    """
    Construye una respuesta CSV a partir de una lista de diccionarios.

    Args:
        data: filas del reporte
        filename: nombre del archivo descargado
        headers: mapeo campo -> encabezado; define también el orden de columnas
    """
    if not data:
        csv_content = ""
        if headers:
            csv_content = ",".join(headers.values()) + "\n"
    else:
        output = io.StringIO()

        fieldnames = list(headers.keys()) if headers else list(data[0].keys())
        csv_headers = list(headers.values()) if headers else fieldnames

        writer = csv.DictWriter(output, fieldnames=fieldnames)
        writer.writerow(dict(zip(fieldnames, csv_headers)))

        for row in data:
            formatted_row = {}
            for key, value in row.items():
                if key in fieldnames:
                    formatted_row[key] = format_csv_value(value)
            writer.writerow(formatted_row)

        csv_content = output.getvalue()
        output.close()

    return Response(
        content=csv_content,
        media_type="text/csv",
        headers={
            "Content-Disposition": f"attachment; filename={filename}",
            "Content-Type": "text/csv; charset=utf-8"
        }
    )


def format_csv_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "Sí" if value else "No"
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def prepare_sales_summary_csv(report_data: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Una fila por día más una fila final con los totales del periodo."""
    rows = [
        {"date": day["date"], "invoices": day["invoices"], "total": day["total"]}
        for day in report_data["by_day"]
    ]
    totals = report_data["totals"]
    rows.append({"date": "TOTAL", "invoices": totals["invoices"], "total": totals["total"]})
    return rows


def prepare_waiter_performance_csv(report_data: Dict[str, Any]) -> List[Dict[str, Any]]:
    return list(report_data["waiters"])


def prepare_top_items_csv(report_data: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [
        {"rank": index, **item}
        for index, item in enumerate(report_data["items"], start=1)
    ]


def prepare_invoice_status_csv(report_data: Dict[str, Any]) -> List[Dict[str, Any]]:
    return list(report_data["summary"])


def prepare_inventory_movements_csv(report_data: Dict[str, Any]) -> List[Dict[str, Any]]:
    rows = list(report_data["summary"])
    totals = report_data["totals"]
    rows.append({
        "transaction_type": "TOTAL",
        "net_retail": totals["net_retail"],
        "net_storage": totals["net_storage"]
    })
    return rows


def prepare_purchases_csv(report_data: Dict[str, Any]) -> List[Dict[str, Any]]:
    return list(report_data["suppliers"])


def prepare_cxc_aging_csv(report_data: Dict[str, Any]) -> List[Dict[str, Any]]:
    rows = list(report_data["customers"])
    rows.append({"customer_code": "TOTAL", **report_data["totals"]})
    return rows


def prepare_cxc_statement_csv(report_data: Dict[str, Any]) -> List[Dict[str, Any]]:
    rows = [{
        "movement_date": report_data["date_from"],
        "reference": "Saldo inicial",
        "balance": report_data["opening_balance"]
    }]
    rows.extend(report_data["movements"])
    return rows


def prepare_cxc_due_analysis_csv(report_data: Dict[str, Any]) -> List[Dict[str, Any]]:
    return list(report_data["documents"])


def prepare_cxc_summary_csv(report_data: Dict[str, Any]) -> List[Dict[str, Any]]:
    rows = list(report_data["customers"])
    rows.append({"customer_code": "TOTAL", **report_data["totals"]})
    return rows


# Encabezados CSV por reporte
CSV_HEADERS = {
    "sales_summary": {
        "date": "Fecha",
        "invoices": "Facturas",
        "total": "Total"
    },
    "waiter_performance": {
        "waiter_code": "Código",
        "waiter_name": "Mesero",
        "invoices": "Facturas",
        "total_sales": "Ventas",
        "average_ticket": "Ticket Promedio",
        "service_charge": "Servicio",
        "last_sale_at": "Última Venta"
    },
    "top_items": {
        "rank": "#",
        "description": "Artículo",
        "quantity": "Cantidad",
        "average_price": "Precio Promedio",
        "total": "Total",
        "first_sale_at": "Primera Venta",
        "last_sale_at": "Última Venta"
    },
    "invoice_status": {
        "status": "Estado",
        "invoices": "Facturas",
        "total_amount": "Monto Total",
        "paid_amount": "Monto Pagado",
        "balance": "Saldo"
    },
    "inventory_movements": {
        "transaction_type": "Tipo",
        "entries_retail": "Entradas (detalle)",
        "exits_retail": "Salidas (detalle)",
        "net_retail": "Neto (detalle)",
        "entries_storage": "Entradas (almacén)",
        "exits_storage": "Salidas (almacén)",
        "net_storage": "Neto (almacén)"
    },
    "purchases": {
        "supplier_name": "Proveedor",
        "purchases": "Compras",
        "total_amount": "Monto Total",
        "pending_amount": "Pendiente",
        "partial_amount": "Parcial",
        "paid_amount": "Pagado",
        "average_ticket": "Ticket Promedio",
        "last_purchase_at": "Última Compra"
    },
    "cxc_aging": {
        "customer_code": "Código",
        "customer_name": "Cliente",
        "current": "Al día",
        "days_1_30": "1-30",
        "days_31_60": "31-60",
        "days_61_90": "61-90",
        "days_90_plus": "90+",
        "total": "Total"
    },
    "cxc_statement": {
        "movement_date": "Fecha",
        "kind": "Movimiento",
        "document_type": "Tipo",
        "document_number": "Documento",
        "reference": "Referencia",
        "debit": "Cargo",
        "credit": "Abono",
        "applied_amount": "Aplicado",
        "balance": "Saldo"
    },
    "cxc_due_analysis": {
        "customer_code": "Código",
        "customer_name": "Cliente",
        "document_type": "Tipo",
        "document_number": "Documento",
        "document_date": "Fecha",
        "due_date": "Vencimiento",
        "days_overdue": "Días Vencido",
        "balance_amount": "Saldo",
        "due_status": "Estado"
    },
    "cxc_summary": {
        "customer_code": "Código",
        "customer_name": "Cliente",
        "documents": "Documentos",
        "debit_amount": "Cargos",
        "credit_amount": "Abonos",
        "balance_amount": "Saldo",
        "overdue_amount": "Vencido"
    }
}
