"""
Servicio de reportes de cuentas por cobrar

- Antigüedad de saldos por cliente a una fecha de corte
- Estado de cuenta de un cliente con saldo inicial y saldo corrido
- Análisis de vencimientos (vencidos y, opcionalmente, por vencer)
- Resumen de documentos de un periodo por cliente, tipo y estado

Los documentos de débito (factura, nota de débito) suman; los de crédito
(nota de crédito, recibo, retención, ajuste) restan.
"""

from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import joinedload

from .base import BaseReportService
from backoffice.common.utils import round_money, to_decimal
from backoffice.common.validators import normalize_code
from backoffice.modules.cxc.models import (
    Customer, CustomerDocument, CustomerDocumentApplication, DocumentStatus, DocumentType, DEBIT_DOCUMENT_TYPES
)
from backoffice.modules.cxc.service import CustomerService

AGING_BUCKETS = ("current", "days_1_30", "days_31_60", "days_61_90", "days_90_plus")

# Documentos que no forman parte del saldo del cliente
EXCLUDED_STATUSES = (DocumentStatus.CANCELADO, DocumentStatus.BORRADOR)


def aging_bucket(days_past_due: int) -> str:
    if days_past_due <= 0:
        return "current"
    if days_past_due <= 30:
        return "days_1_30"
    if days_past_due <= 60:
        return "days_31_60"
    if days_past_due <= 90:
        return "days_61_90"
    return "days_90_plus"


def signed_amount(document: CustomerDocument, amount) -> Decimal:
    value = to_decimal(amount)
    return value if document.is_debit else -value


def effective_due_date(document: CustomerDocument) -> date:
    return document.due_date or document.document_date


class CxcReportService(BaseReportService):

    def _filter_customers(self, query, customer: Optional[str], customer_codes: Optional[List[str]]):
        if customer and customer.strip():
            term = f"%{customer.strip()}%"
            query = query.filter(or_(
                Customer.code.ilike(term),
                Customer.name.ilike(term),
                Customer.tax_id.ilike(term)
            ))
        codes = [normalize_code(code) for code in customer_codes or [] if normalize_code(code)]
        if codes:
            query = query.filter(Customer.code.in_(codes))
        return query

    def _open_documents(self, as_of: date, customer: Optional[str], customer_codes: Optional[List[str]]):
        query = self.db.query(CustomerDocument).join(
            Customer, Customer.id == CustomerDocument.customer_id
        ).options(joinedload(CustomerDocument.customer)).filter(
            CustomerDocument.status == DocumentStatus.PENDIENTE,
            CustomerDocument.balance_amount > 0,
            CustomerDocument.document_date <= as_of
        )
        return self._filter_customers(query, customer, customer_codes)

    def get_aging(
        self,
        as_of: Optional[date] = None,
        customer: Optional[str] = None,
        customer_codes: Optional[List[str]] = None,
        limit: Optional[int] = None
    ) -> Dict:
        """
        Antigüedad de saldos a la fecha de corte.

        Los días vencidos se cuentan desde el vencimiento (o la fecha del
        documento si no tiene). Los documentos de crédito restan en el tramo
        "al día", ya que no tienen vencimiento propio.
        """
        as_of = as_of or self.today()
        documents = self._open_documents(as_of, customer, customer_codes).all()

        rows: Dict[int, Dict] = {}
        for document in documents:
            row = rows.setdefault(document.customer_id, {
                "customer_id": document.customer_id,
                "customer_code": document.customer.code,
                "customer_name": document.customer.name,
                "documents": 0,
                **{bucket: Decimal("0") for bucket in AGING_BUCKETS},
                "total": Decimal("0")
            })
            amount = signed_amount(document, document.balance_amount)
            if document.is_debit:
                bucket = aging_bucket((as_of - effective_due_date(document)).days)
            else:
                bucket = "current"
            row[bucket] += amount
            row["total"] += amount
            row["documents"] += 1

        customers = sorted(rows.values(), key=lambda r: r["total"], reverse=True)
        if limit and limit > 0:
            customers = customers[:limit]

        totals = {bucket: Decimal("0") for bucket in AGING_BUCKETS}
        totals["total"] = Decimal("0")
        for row in customers:
            for key in (*AGING_BUCKETS, "total"):
                row[key] = round_money(row[key])
                totals[key] += row[key]

        return {"as_of": as_of, "customers": customers, "totals": totals}

    def get_statement(
        self,
        customer_code: str,
        date_from: date,
        date_to: date,
        include_applications: bool = True
    ) -> Dict:
        """
        Estado de cuenta de un cliente.

        El saldo inicial es la suma con signo de los documentos anteriores a
        `date_from`. Las aplicaciones se listan como referencia y no alteran
        el saldo: el documento aplicado ya lo movió al registrarse.
        """
        self._validate_date_range(date_from, date_to)
        customer = CustomerService(self.db).get_by_code_or_404(customer_code)

        documents = self.db.query(CustomerDocument).filter(
            CustomerDocument.customer_id == customer.id,
            CustomerDocument.status.notin_(EXCLUDED_STATUSES),
            CustomerDocument.document_date <= date_to
        ).order_by(CustomerDocument.document_date, CustomerDocument.id).all()

        opening_balance = Decimal("0")
        movements = []
        for document in documents:
            if document.document_date < date_from:
                opening_balance += signed_amount(document, document.original_amount)
                continue
            amount = to_decimal(document.original_amount)
            movements.append({
                "movement_date": document.document_date,
                "kind": "DOCUMENT",
                "document_id": document.id,
                "document_type": document.document_type.value,
                "document_number": document.document_number,
                "reference": document.reference,
                "debit": amount if document.is_debit else Decimal("0"),
                "credit": Decimal("0") if document.is_debit else amount,
                "applied_amount": Decimal("0")
            })

        if include_applications:
            document_ids = [document.id for document in documents]
            applications = []
            if document_ids:
                applications = self.db.query(CustomerDocumentApplication).options(
                    joinedload(CustomerDocumentApplication.applied_document),
                    joinedload(CustomerDocumentApplication.target_document)
                ).filter(
                    CustomerDocumentApplication.applied_document_id.in_(document_ids),
                    CustomerDocumentApplication.application_date >= date_from,
                    CustomerDocumentApplication.application_date <= date_to
                ).all()
            for application in applications:
                applied = application.applied_document
                target = application.target_document
                movements.append({
                    "movement_date": application.application_date,
                    "kind": "APPLICATION",
                    "document_id": applied.id,
                    "document_type": applied.document_type.value,
                    "document_number": applied.document_number,
                    "reference": f"Aplicado a {target.document_type.value} {target.document_number}",
                    "debit": Decimal("0"),
                    "credit": Decimal("0"),
                    "applied_amount": round_money(application.amount)
                })

        movements.sort(key=lambda m: (m["movement_date"], m["kind"] != "DOCUMENT", m["document_id"]))

        balance = opening_balance
        total_debit = Decimal("0")
        total_credit = Decimal("0")
        for movement in movements:
            balance += movement["debit"] - movement["credit"]
            total_debit += movement["debit"]
            total_credit += movement["credit"]
            movement["debit"] = round_money(movement["debit"])
            movement["credit"] = round_money(movement["credit"])
            movement["balance"] = round_money(balance)

        return {
            "customer_id": customer.id,
            "customer_code": customer.code,
            "customer_name": customer.name,
            "date_from": date_from,
            "date_to": date_to,
            "opening_balance": round_money(opening_balance),
            "total_debit": round_money(total_debit),
            "total_credit": round_money(total_credit),
            "closing_balance": round_money(balance),
            "movements": movements
        }

    def get_due_analysis(
        self,
        as_of: Optional[date] = None,
        date_from: Optional[date] = None,
        customer: Optional[str] = None,
        customer_codes: Optional[List[str]] = None,
        include_future: bool = False
    ) -> Dict:
        """
        Documentos de débito con saldo: vencidos a la fecha de corte y, si se
        pide, los que vencen después. `date_from` acota el vencimiento mínimo.
        """
        as_of = as_of or self.today()
        self._validate_date_range(date_from, as_of)
        query = self._open_documents(as_of, customer, customer_codes).filter(
            CustomerDocument.document_type.in_(DEBIT_DOCUMENT_TYPES)
        )

        documents = []
        overdue_amount = Decimal("0")
        upcoming_amount = Decimal("0")
        overdue_count = 0
        upcoming_count = 0
        for document in query.all():
            due_date = effective_due_date(document)
            if date_from and due_date < date_from:
                continue
            days_overdue = (as_of - due_date).days
            balance = round_money(document.balance_amount)
            if days_overdue > 0:
                due_status = "VENCIDO"
                overdue_amount += balance
                overdue_count += 1
            elif include_future:
                due_status = "POR_VENCER"
                upcoming_amount += balance
                upcoming_count += 1
            else:
                continue
            documents.append({
                "document_id": document.id,
                "customer_code": document.customer.code,
                "customer_name": document.customer.name,
                "document_type": document.document_type.value,
                "document_number": document.document_number,
                "document_date": document.document_date,
                "due_date": due_date,
                "days_overdue": days_overdue,
                "balance_amount": balance,
                "due_status": due_status
            })
        documents.sort(key=lambda d: (d["due_date"], d["document_id"]))

        return {
            "as_of": as_of,
            "include_future": include_future,
            "overdue_amount": round_money(overdue_amount),
            "overdue_documents": overdue_count,
            "upcoming_amount": round_money(upcoming_amount),
            "upcoming_documents": upcoming_count,
            "documents": documents
        }

    def get_summary(
        self,
        date_from: date,
        date_to: date,
        customer: Optional[str] = None,
        customer_codes: Optional[List[str]] = None,
        statuses: Optional[Iterable[DocumentStatus]] = None,
        document_types: Optional[Iterable[DocumentType]] = None
    ) -> Dict:
        """
        Resumen de los documentos emitidos en el periodo.

        Sin filtro de estado se omiten anulados y borradores. El saldo por
        cliente lleva signo; lo vencido solo cuenta débitos con vencimiento
        anterior a `date_to`.
        """
        self._validate_date_range(date_from, date_to)
        query = self.db.query(CustomerDocument).join(
            Customer, Customer.id == CustomerDocument.customer_id
        ).options(joinedload(CustomerDocument.customer)).filter(
            CustomerDocument.document_date >= date_from,
            CustomerDocument.document_date <= date_to
        )
        query = self._filter_customers(query, customer, customer_codes)
        statuses = list(statuses or [])
        if statuses:
            query = query.filter(CustomerDocument.status.in_(statuses))
        else:
            query = query.filter(CustomerDocument.status.notin_(EXCLUDED_STATUSES))
        document_types = list(document_types or [])
        if document_types:
            query = query.filter(CustomerDocument.document_type.in_(document_types))

        customers: Dict[int, Dict] = {}
        by_type: Dict[str, Dict] = {}
        by_status: Dict[str, Dict] = {}
        totals = {
            "documents": 0,
            "debit_amount": Decimal("0"),
            "credit_amount": Decimal("0"),
            "balance_amount": Decimal("0"),
            "overdue_amount": Decimal("0")
        }

        for document in query.order_by(CustomerDocument.document_date, CustomerDocument.id).all():
            original = to_decimal(document.original_amount)
            balance = signed_amount(document, document.balance_amount)
            overdue = Decimal("0")
            if document.is_debit and document.status == DocumentStatus.PENDIENTE and effective_due_date(document) < date_to:
                overdue = to_decimal(document.balance_amount)

            row = customers.setdefault(document.customer_id, {
                "customer_id": document.customer_id,
                "customer_code": document.customer.code,
                "customer_name": document.customer.name,
                "documents": 0,
                "debit_amount": Decimal("0"),
                "credit_amount": Decimal("0"),
                "balance_amount": Decimal("0"),
                "overdue_amount": Decimal("0")
            })
            for target in (row, totals):
                target["documents"] += 1
                target["debit_amount" if document.is_debit else "credit_amount"] += original
                target["balance_amount"] += balance
                target["overdue_amount"] += overdue

            for groups, key in ((by_type, document.document_type.value), (by_status, document.status.value)):
                group = groups.setdefault(key, {
                    "key": key,
                    "documents": 0,
                    "original_amount": Decimal("0"),
                    "balance_amount": Decimal("0")
                })
                group["documents"] += 1
                group["original_amount"] += original
                group["balance_amount"] += to_decimal(document.balance_amount)

        for row in (*customers.values(), totals):
            for key in ("debit_amount", "credit_amount", "balance_amount", "overdue_amount"):
                row[key] = round_money(row[key])
        for group in (*by_type.values(), *by_status.values()):
            group["original_amount"] = round_money(group["original_amount"])
            group["balance_amount"] = round_money(group["balance_amount"])

        return {
            "date_from": date_from,
            "date_to": date_to,
            "totals": totals,
            "customers": sorted(customers.values(), key=lambda r: (-r["balance_amount"], r["customer_code"])),
            "by_type": [by_type[key] for key in sorted(by_type)],
            "by_status": [by_status[key] for key in sorted(by_status)]
        }
