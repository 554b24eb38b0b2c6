from pydantic import BaseModel, Field
from decimal import Decimal
from typing import Optional, List, Literal
from datetime import date, datetime

from backoffice.modules.inventory.models import InventoryUnit
from backoffice.modules.inventory.schemas import OccurredAt
from backoffice.modules.invoices.models import InvoiceStatus, PaymentMethod


# Input schemas
class InvoiceItemInput(BaseModel):
    article_code: Optional[str] = Field(None, max_length=40)
    description: str = Field(..., min_length=1, max_length=200)
    quantity: Decimal = Field(..., gt=0)
    unit_price: Decimal = Field(..., ge=0)
    unit: InventoryUnit = InventoryUnit.RETAIL
    warehouse_code: Optional[str] = Field(None, max_length=30)


class InvoicePaymentInput(BaseModel):
    method: PaymentMethod
    amount: Decimal = Field(..., ge=0)
    reference: Optional[str] = Field(None, max_length=100)


class InvoiceCreate(BaseModel):
    invoice_number: Optional[str] = Field(None, max_length=60, description="Vacío para usar el consecutivo de la caja")
    table_code: Optional[str] = Field(None, max_length=40)
    waiter_code: Optional[str] = Field(None, max_length=50)
    invoice_date: OccurredAt = None
    origin_order_id: Optional[int] = None

    subtotal: Decimal = Field(..., ge=0)
    service_charge: Decimal = Field(Decimal("0"), ge=0)
    vat_amount: Decimal = Field(Decimal("0"), ge=0)
    vat_rate: Decimal = Field(Decimal("0"), ge=0)
    total_amount: Decimal = Field(..., ge=0)
    currency_code: Optional[str] = Field(None, min_length=3, max_length=3)
    notes: Optional[str] = Field(None, max_length=300)

    customer_name: Optional[str] = Field(None, max_length=150)
    customer_tax_id: Optional[str] = Field(None, max_length=40)
    customer_code: Optional[str] = Field(None, max_length=40)
    sale_type: Optional[Literal["CONTADO", "CREDITO"]] = None
    payment_term_code: Optional[str] = Field(None, max_length=32)
    due_date: Optional[date] = None

    items: List[InvoiceItemInput] = []
    payments: List[InvoicePaymentInput] = []


# Output schemas
class InvoiceCreated(BaseModel):
    id: int
    invoice_number: str
    pending_amount: Decimal = Decimal("0")
    cxc_document_id: Optional[int] = None


class InvoiceItemOut(BaseModel):
    id: int
    line_number: int
    article_code: Optional[str] = None
    description: str
    quantity: Decimal
    unit_price: Decimal
    line_total: Decimal

    class Config:
        from_attributes = True


class InvoicePaymentOut(BaseModel):
    id: int
    payment_method: PaymentMethod
    amount: Decimal
    reference: Optional[str] = None

    class Config:
        from_attributes = True


class InvoiceListItem(BaseModel):
    id: int
    invoice_number: str
    status: InvoiceStatus
    invoice_date: datetime
    table_code: Optional[str] = None
    waiter_code: Optional[str] = None
    subtotal: Decimal
    service_charge: Decimal
    vat_amount: Decimal
    total_amount: Decimal
    currency_code: str
    customer_name: Optional[str] = None

    class Config:
        from_attributes = True


class InvoiceDetail(InvoiceListItem):
    vat_rate: Decimal
    notes: Optional[str] = None
    customer_tax_id: Optional[str] = None
    customer_id: Optional[int] = None
    origin_order_id: Optional[int] = None
    cash_register_id: Optional[int] = None
    cash_register_session_id: Optional[int] = None
    issuer_admin_user_id: Optional[int] = None
    cancelled_at: Optional[datetime] = None
    items: List[InvoiceItemOut] = []
    payments: List[InvoicePaymentOut] = []


class InvoiceList(BaseModel):
    items: List[InvoiceListItem]
    total: int
    page: int
    page_size: int


class InvoiceCancelResult(BaseModel):
    id: int
    invoice_number: str
    status: InvoiceStatus
    cancelled_at: Optional[datetime] = None
    reversed_lines: int = 0
