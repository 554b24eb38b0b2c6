from pydantic import BaseModel, Field
from typing import Optional, List, Union
from datetime import date, datetime
from decimal import Decimal

from backoffice.modules.inventory.models import (
    TransactionType, TransactionStatus, MovementDirection, InventoryUnit
)

# date va primero: "2025-01-31" se interpreta como día de negocio
OccurredAt = Optional[Union[date, datetime]]


class InventoryLineInput(BaseModel):
    article_code: str = Field(..., min_length=1, max_length=40)
    quantity: Decimal
    unit: InventoryUnit = InventoryUnit.RETAIL
    cost_per_unit: Optional[Decimal] = Field(None, ge=0)
    notes: Optional[str] = None


class PurchaseCreate(BaseModel):
    warehouse_code: str = Field(..., min_length=1, max_length=30)
    lines: List[InventoryLineInput]
    supplier_name: Optional[str] = Field(None, max_length=200)
    document_number: Optional[str] = Field(None, max_length=120)
    status: Optional[TransactionStatus] = None
    notes: Optional[str] = None
    occurred_at: OccurredAt = None
    created_by: Optional[str] = Field(None, max_length=120)


class ConsumptionCreate(BaseModel):
    warehouse_code: str = Field(..., min_length=1, max_length=30)
    lines: List[InventoryLineInput]
    reason: Optional[str] = Field(None, max_length=120)
    area: Optional[str] = Field(None, max_length=200)
    authorized_by: Optional[str] = Field(None, max_length=120)
    notes: Optional[str] = None
    occurred_at: OccurredAt = None
    created_by: Optional[str] = Field(None, max_length=120)


class TransferCreate(BaseModel):
    from_warehouse_code: Optional[str] = Field(None, max_length=30)
    to_warehouse_code: Optional[str] = Field(None, max_length=30)
    lines: List[InventoryLineInput]
    reference: Optional[str] = Field(None, max_length=120)
    notes: Optional[str] = None
    requested_by: Optional[str] = Field(None, max_length=120)
    authorized_by: Optional[str] = Field(None, max_length=120)
    occurred_at: OccurredAt = None


class InvoiceMovementLine(BaseModel):
    article_code: Optional[str] = None
    quantity: Decimal = Decimal("0")
    unit: InventoryUnit = InventoryUnit.RETAIL
    warehouse_code: Optional[str] = None


class TransactionResult(BaseModel):
    id: int
    transaction_code: str
    total_amount: Decimal = Decimal("0")


class TransferResult(BaseModel):
    id: int
    transaction_code: str
    occurred_at: datetime
    from_warehouse: str
    to_warehouse: str
    lines: List[InventoryLineInput]


class KardexRow(BaseModel):
    id: int
    occurred_at: datetime
    created_at: Optional[datetime] = None
    transaction_type: TransactionType
    transaction_code: str
    article_code: str
    article_name: str
    direction: MovementDirection
    quantity_retail: Decimal
    quantity_storage: Decimal
    retail_unit: Optional[str] = None
    storage_unit: Optional[str] = None
    reference: Optional[str] = None
    counterparty_name: Optional[str] = None
    warehouse_code: str
    warehouse_name: str
    source_kit_code: Optional[str] = None
    balance_retail: Decimal
    balance_storage: Decimal


class StockSummaryRow(BaseModel):
    article_code: str
    article_name: str
    warehouse_code: str
    warehouse_name: str
    available_retail: Decimal
    available_storage: Decimal
    retail_unit: Optional[str] = None
    storage_unit: Optional[str] = None


class PurchaseListItem(BaseModel):
    id: int
    transaction_code: str
    document_number: Optional[str] = None
    supplier_name: Optional[str] = None
    occurred_at: datetime
    status: TransactionStatus
    total_amount: Decimal
    warehouse_name: str


class ConsumptionRow(BaseModel):
    id: int
    occurred_at: datetime
    article_code: str
    article_name: str
    reason: Optional[str] = None
    authorized_by: Optional[str] = None
    area: Optional[str] = None
    warehouse_code: str
    direction: MovementDirection
    quantity_retail: Decimal
    quantity_storage: Decimal
    retail_unit: Optional[str] = None
    storage_unit: Optional[str] = None
    source_kit_code: Optional[str] = None


class TransferListItem(BaseModel):
    id: int
    transaction_code: str
    occurred_at: datetime
    from_warehouse_code: str
    from_warehouse_name: str
    to_warehouse_code: str = ""
    to_warehouse_name: str = ""
    lines_count: int
    notes: Optional[str] = None
    authorized_by: Optional[str] = None


class DocumentMovementOut(BaseModel):
    article_code: str
    article_name: str
    direction: MovementDirection
    quantity_retail: Decimal
    warehouse_code: str
    warehouse_name: str
    retail_unit: Optional[str] = None
    storage_unit: Optional[str] = None
    source_kit_article_code: Optional[str] = None


class DocumentEntryOut(BaseModel):
    line_number: int
    article_code: str
    article_name: str
    direction: MovementDirection
    entered_unit: InventoryUnit
    quantity_entered: Decimal
    quantity_retail: Decimal
    quantity_storage: Decimal
    retail_unit: Optional[str] = None
    storage_unit: Optional[str] = None
    kit_multiplier: Optional[Decimal] = None
    cost_per_unit: Optional[Decimal] = None
    subtotal: Optional[Decimal] = None
    notes: Optional[str] = None
    movements: List[DocumentMovementOut] = []


class InventoryDocumentOut(BaseModel):
    transaction_code: str
    transaction_type: TransactionType
    occurred_at: datetime
    created_at: Optional[datetime] = None
    warehouse_code: str
    warehouse_name: str
    reference: Optional[str] = None
    counterparty_name: Optional[str] = None
    status: TransactionStatus
    notes: Optional[str] = None
    authorized_by: Optional[str] = None
    created_by: Optional[str] = None
    total_amount: Optional[Decimal] = None
    entries: List[DocumentEntryOut] = []


class TransactionHeaderOut(BaseModel):
    transaction_code: str
    transaction_type: TransactionType
    occurred_at: datetime
    warehouse_code: str
    warehouse_name: str
    reference: Optional[str] = None
    counterparty_name: Optional[str] = None
    status: TransactionStatus
    notes: Optional[str] = None
    total_amount: Optional[Decimal] = None
    entries_count: int
    entries_in: int
    entries_out: int


class ReverseResult(BaseModel):
    reversed: int
