"""
Esquemas Pydantic del módulo de reportes

Modelos de respuesta de cada endpoint; los servicios devuelven diccionarios
que se validan aquí antes de salir por la API.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field


# Ventas
class SalesTotals(BaseModel):
    invoices: int = 0
    subtotal: Decimal = Decimal("0")
    service_charge: Decimal = Decimal("0")
    vat: Decimal = Decimal("0")
    total: Decimal = Decimal("0")
    average_ticket: Decimal = Decimal("0")


class PaymentMethodTotal(BaseModel):
    method: str
    amount: Decimal


class SalesByDay(BaseModel):
    date: date
    invoices: int
    total: Decimal


class SalesSummaryResponse(BaseModel):
    """Resumen de ventas del periodo, excluye facturas anuladas"""
    date_from: date
    date_to: date
    totals: SalesTotals
    payments: List[PaymentMethodTotal] = []
    by_day: List[SalesByDay] = []


class WaiterPerformanceItem(BaseModel):
    waiter_code: Optional[str] = None
    waiter_name: str
    invoices: int
    total_sales: Decimal
    average_ticket: Decimal
    service_charge: Decimal
    last_sale_at: Optional[datetime] = None


class WaiterPerformanceResponse(BaseModel):
    date_from: date
    date_to: date
    waiters: List[WaiterPerformanceItem] = []


class TopItem(BaseModel):
    description: str
    quantity: Decimal
    total: Decimal
    average_price: Decimal
    first_sale_at: Optional[datetime] = None
    last_sale_at: Optional[datetime] = None


class TopItemsResponse(BaseModel):
    date_from: date
    date_to: date
    limit: int
    items: List[TopItem] = []


class InvoiceStatusRow(BaseModel):
    status: str = Field(description="PAGADA, PARCIAL o PENDIENTE")
    invoices: int
    total_amount: Decimal
    paid_amount: Decimal
    balance: Decimal


class PendingInvoiceRow(BaseModel):
    invoice_number: str
    customer_name: Optional[str] = None
    waiter_code: Optional[str] = None
    invoice_date: datetime
    total_amount: Decimal
    paid_amount: Decimal
    balance: Decimal
    status: str


class InvoiceStatusResponse(BaseModel):
    date_from: date
    date_to: date
    summary: List[InvoiceStatusRow] = []
    top_pending: List[PendingInvoiceRow] = []


# Inventario y compras
class InventoryMovementsSummaryRow(BaseModel):
    transaction_type: str
    entries_retail: Decimal
    exits_retail: Decimal
    net_retail: Decimal
    entries_storage: Decimal
    exits_storage: Decimal
    net_storage: Decimal


class InventoryMovementsTotals(BaseModel):
    net_retail: Decimal = Decimal("0")
    net_storage: Decimal = Decimal("0")


class InventoryMovementsResponse(BaseModel):
    date_from: date
    date_to: date
    summary: List[InventoryMovementsSummaryRow] = []
    totals: InventoryMovementsTotals


class SupplierPurchasesRow(BaseModel):
    supplier_name: str
    purchases: int
    total_amount: Decimal
    pending_amount: Decimal
    partial_amount: Decimal
    paid_amount: Decimal
    average_ticket: Decimal
    last_purchase_at: Optional[datetime] = None


class PurchasesReportResponse(BaseModel):
    date_from: date
    date_to: date
    suppliers: List[SupplierPurchasesRow] = []


# Cuentas por cobrar
class AgingBuckets(BaseModel):
    current: Decimal = Decimal("0")
    days_1_30: Decimal = Decimal("0")
    days_31_60: Decimal = Decimal("0")
    days_61_90: Decimal = Decimal("0")
    days_90_plus: Decimal = Decimal("0")
    total: Decimal = Decimal("0")


class CustomerAgingRow(AgingBuckets):
    customer_id: int
    customer_code: str
    customer_name: str
    documents: int = 0


class CxcAgingResponse(BaseModel):
    as_of: date
    customers: List[CustomerAgingRow] = []
    totals: AgingBuckets


class StatementMovement(BaseModel):
    movement_date: date
    kind: str = Field(description="DOCUMENT o APPLICATION")
    document_id: int
    document_type: str
    document_number: str
    reference: Optional[str] = None
    debit: Decimal = Decimal("0")
    credit: Decimal = Decimal("0")
    applied_amount: Decimal = Decimal("0")
    balance: Decimal


class CxcStatementResponse(BaseModel):
    customer_id: int
    customer_code: str
    customer_name: str
    date_from: date
    date_to: date
    opening_balance: Decimal
    total_debit: Decimal
    total_credit: Decimal
    closing_balance: Decimal
    movements: List[StatementMovement] = []


class DueDocumentRow(BaseModel):
    document_id: int
    customer_code: str
    customer_name: str
    document_type: str
    document_number: str
    document_date: date
    due_date: date
    days_overdue: int = Field(description="Negativo para documentos por vencer")
    balance_amount: Decimal
    due_status: str = Field(description="VENCIDO o POR_VENCER")


class CxcDueAnalysisResponse(BaseModel):
    as_of: date
    include_future: bool
    overdue_amount: Decimal
    overdue_documents: int
    upcoming_amount: Decimal
    upcoming_documents: int
    documents: List[DueDocumentRow] = []


class CxcSummaryTotals(BaseModel):
    documents: int = 0
    debit_amount: Decimal = Decimal("0")
    credit_amount: Decimal = Decimal("0")
    balance_amount: Decimal = Decimal("0")
    overdue_amount: Decimal = Decimal("0")


class CxcSummaryCustomerRow(CxcSummaryTotals):
    customer_id: int
    customer_code: str
    customer_name: str


class CxcSummaryGroup(BaseModel):
    key: str = Field(description="Tipo o estado del documento")
    documents: int
    original_amount: Decimal
    balance_amount: Decimal


class CxcSummaryResponse(BaseModel):
    date_from: date
    date_to: date
    totals: CxcSummaryTotals
    customers: List[CxcSummaryCustomerRow] = []
    by_type: List[CxcSummaryGroup] = []
    by_status: List[CxcSummaryGroup] = []
