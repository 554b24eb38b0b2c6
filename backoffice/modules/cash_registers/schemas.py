"""
Esquemas de cajas: catálogo, asignaciones, aperturas y cierres (arqueo)
"""
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from decimal import Decimal

from backoffice.modules.cash_registers.models import SessionStatus


# ===== CASH REGISTERS =====

class CashRegisterCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=30)
    name: str = Field(..., min_length=1, max_length=120)
    warehouse_code: str = Field(..., min_length=1, max_length=30)
    allow_manual_warehouse_override: bool = False
    notes: Optional[str] = Field(None, max_length=250)


class CashRegisterUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    warehouse_code: Optional[str] = Field(None, max_length=30)
    allow_manual_warehouse_override: Optional[bool] = None
    is_active: Optional[bool] = None
    notes: Optional[str] = Field(None, max_length=250)


class InvoiceSequenceAssignment(BaseModel):
    sequence_code: Optional[str] = Field(None, max_length=40, description="Vacío para quitar el consecutivo")


class CashRegisterOut(BaseModel):
    id: int
    code: str
    name: str
    warehouse_id: int
    warehouse_code: str
    warehouse_name: str
    allow_manual_warehouse_override: bool
    is_active: bool
    notes: Optional[str] = None
    invoice_sequence_code: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ===== ASSIGNMENTS =====

class CashRegisterAssignmentOut(BaseModel):
    cash_register_id: int
    cash_register_code: str
    cash_register_name: str
    allow_manual_warehouse_override: bool
    warehouse_id: int
    warehouse_code: str
    warehouse_name: str
    is_default: bool = False


class CashRegisterAssignmentGroup(BaseModel):
    admin_user_id: int
    assignments: List[CashRegisterAssignmentOut] = []
    default_cash_register_id: Optional[int] = None


class AssignmentRequest(BaseModel):
    admin_user_id: int
    cash_register_code: str = Field(..., min_length=1, max_length=30)
    make_default: bool = False


# ===== SESSIONS =====

class Denomination(BaseModel):
    """Billete o moneda contada: value * qty"""
    currency: str = Field(..., min_length=3, max_length=3)
    value: Decimal = Field(..., ge=0)
    qty: int = Field(..., ge=0)


class OpenSessionRequest(BaseModel):
    cash_register_code: str = Field(..., min_length=1, max_length=30)
    opening_amount: Decimal
    opening_notes: Optional[str] = None
    opening_denominations: List[Denomination] = []
    admin_user_id: Optional[int] = Field(None, description="Usuario que opera la caja; por defecto el operador")
    allow_unassigned: bool = False


class ReportedPayment(BaseModel):
    method: str = Field(..., min_length=1, max_length=30)
    reported_amount: Decimal = Decimal("0")
    transaction_count: Optional[int] = None


class CloseSessionRequest(BaseModel):
    session_id: Optional[int] = None
    closing_amount: Decimal
    payments: List[ReportedPayment] = []
    closing_notes: Optional[str] = None
    closing_denominations: Optional[List[Denomination]] = None
    allow_different_user: bool = False


class SessionOut(BaseModel):
    id: int
    status: SessionStatus
    admin_user_id: int
    cash_register: CashRegisterAssignmentOut
    opening_amount: Decimal
    opening_at: datetime
    opening_notes: Optional[str] = None
    opening_denominations: Optional[List[Denomination]] = None
    closing_amount: Optional[Decimal] = None
    closing_at: Optional[datetime] = None
    closing_notes: Optional[str] = None
    closing_user_id: Optional[int] = None
    closing_denominations: Optional[List[Denomination]] = None
    invoice_sequence_start: Optional[str] = None
    invoice_sequence_end: Optional[str] = None


class PaymentBreakdown(BaseModel):
    method: str
    expected_amount: Decimal = Decimal("0")
    reported_amount: Decimal = Decimal("0")
    difference_amount: Decimal = Decimal("0")
    transaction_count: int = 0


class ClosureSummary(BaseModel):
    session_id: int
    cash_register: CashRegisterAssignmentOut
    opened_by_admin_id: int
    opening_amount: Decimal
    opening_at: datetime
    closing_by_admin_id: Optional[int] = None
    closing_amount: Optional[Decimal] = None
    closing_at: Optional[datetime] = None
    closing_notes: Optional[str] = None
    expected_total_amount: Decimal = Decimal("0")
    reported_total_amount: Decimal = Decimal("0")
    difference_total_amount: Decimal = Decimal("0")
    total_invoices: int = 0
    payments: List[PaymentBreakdown] = []
