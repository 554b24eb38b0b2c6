from pydantic import BaseModel, Field
from typing import Optional, List, Literal
from datetime import date, datetime
from decimal import Decimal

from backoffice.modules.cxc.models import CreditStatus, CreditLineStatus, DisputeStatus, DocumentType, DocumentStatus


# ===== PAYMENT TERMS =====

class PaymentTermCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=32)
    name: str = Field(..., min_length=1, max_length=120)
    description: Optional[str] = Field(None, max_length=250)
    days: int = Field(0, ge=0)
    grace_days: Optional[int] = Field(None, ge=0)
    is_active: bool = True


class PaymentTermUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    description: Optional[str] = Field(None, max_length=250)
    days: Optional[int] = Field(None, ge=0)
    grace_days: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None


class PaymentTermOut(BaseModel):
    id: int
    code: str
    name: str
    description: Optional[str] = None
    days: int
    grace_days: Optional[int] = None
    is_active: bool

    class Config:
        from_attributes = True


# ===== CUSTOMERS =====

class CustomerCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=40)
    name: str = Field(..., min_length=1, max_length=200)
    trade_name: Optional[str] = Field(None, max_length=200)
    tax_id: Optional[str] = Field(None, max_length=40)
    email: Optional[str] = Field(None, max_length=150)
    phone: Optional[str] = Field(None, max_length=40)
    payment_term_code: Optional[str] = Field(None, max_length=32)
    credit_limit: Decimal = Field(Decimal("0"), ge=0)
    credit_status: CreditStatus = CreditStatus.ACTIVE
    notes: Optional[str] = None


class CustomerUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    trade_name: Optional[str] = Field(None, max_length=200)
    tax_id: Optional[str] = Field(None, max_length=40)
    email: Optional[str] = Field(None, max_length=150)
    phone: Optional[str] = Field(None, max_length=40)
    payment_term_code: Optional[str] = Field(None, max_length=32)
    credit_limit: Optional[Decimal] = Field(None, ge=0)
    credit_on_hold: Optional[Decimal] = Field(None, ge=0)
    credit_status: Optional[CreditStatus] = None
    is_active: Optional[bool] = None
    notes: Optional[str] = None


class CustomerOut(BaseModel):
    id: int
    code: str
    name: str
    trade_name: Optional[str] = None
    tax_id: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    payment_term_code: Optional[str] = None
    credit_limit: Decimal
    credit_used: Decimal
    credit_on_hold: Decimal
    credit_available: Decimal
    credit_status: CreditStatus
    credit_hold_reason: Optional[str] = None
    last_credit_review_at: Optional[datetime] = None
    next_credit_review_at: Optional[datetime] = None
    is_active: bool
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ===== DOCUMENTS =====

class DocumentCreate(BaseModel):
    customer_code: str = Field(..., min_length=1, max_length=40)
    document_type: DocumentType
    document_number: str = Field(..., min_length=1, max_length=60)
    document_date: Optional[date] = None
    due_date: Optional[date] = None
    payment_term_code: Optional[str] = Field(None, max_length=32)
    currency_code: Optional[str] = Field(None, min_length=3, max_length=3)
    original_amount: Decimal
    balance_amount: Optional[Decimal] = None
    status: Optional[DocumentStatus] = None
    reference: Optional[str] = Field(None, max_length=120)
    notes: Optional[str] = None


class DocumentOut(BaseModel):
    id: int
    customer_id: int
    customer_code: str
    customer_name: str
    document_type: DocumentType
    document_number: str
    document_date: date
    due_date: Optional[date] = None
    payment_term_code: Optional[str] = None
    related_invoice_id: Optional[int] = None
    currency_code: str
    original_amount: Decimal
    balance_amount: Decimal
    status: DocumentStatus
    reference: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


DocumentOrderBy = Literal["document_date", "due_date", "created_at"]


# ===== APPLICATIONS =====

class ApplicationInput(BaseModel):
    applied_document_id: int
    target_document_id: int
    amount: Decimal
    application_date: Optional[date] = None
    reference: Optional[str] = Field(None, max_length=120)
    notes: Optional[str] = None


class ApplicationOut(BaseModel):
    id: int
    applied_document_id: int
    applied_document_number: Optional[str] = None
    target_document_id: int
    target_document_number: Optional[str] = None
    amount: Decimal
    application_date: date
    reference: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


class ApplyDocumentsRequest(BaseModel):
    applications: List[ApplicationInput] = []


# ===== CREDIT LINES =====

class CreditLineAssign(BaseModel):
    customer_code: str = Field(..., min_length=1, max_length=40)
    approved_limit: Decimal = Field(..., gt=0)
    blocked_amount: Optional[Decimal] = Field(None, ge=0)
    available_limit: Optional[Decimal] = Field(None, ge=0)
    status: CreditLineStatus = CreditLineStatus.ACTIVE
    review_notes: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    next_review_at: Optional[datetime] = None
    credit_hold_reason: Optional[str] = Field(None, max_length=250)
    customer_status: Optional[CreditStatus] = None


class CreditLineUpdate(BaseModel):
    approved_limit: Optional[Decimal] = Field(None, gt=0)
    blocked_amount: Optional[Decimal] = Field(None, ge=0)
    available_limit: Optional[Decimal] = Field(None, ge=0)
    status: Optional[CreditLineStatus] = None
    review_notes: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    next_review_at: Optional[datetime] = None
    credit_hold_reason: Optional[str] = Field(None, max_length=250)
    customer_status: Optional[CreditStatus] = None


class CreditStatusUpdate(BaseModel):
    status: CreditStatus
    credit_hold_reason: Optional[str] = Field(None, max_length=250)


class CreditLineOut(BaseModel):
    id: int
    customer_id: int
    status: CreditLineStatus
    approved_limit: Decimal
    available_limit: Decimal
    blocked_amount: Decimal
    reviewer_admin_user_id: Optional[int] = None
    review_notes: Optional[str] = None
    reviewed_at: datetime
    next_review_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CreditLineResult(BaseModel):
    line: CreditLineOut
    customer: CustomerOut


class CreditOverviewOut(BaseModel):
    customer: CustomerOut
    lines: List[CreditLineOut] = []
    latest_line: Optional[CreditLineOut] = None
    available_credit: Decimal
    usage_percentage: Decimal = Field(description="(usado + retenido) / límite, 4 decimales")
    limit_warning: bool
    is_blocked: bool


# ===== DISPUTES =====

class DisputeCreate(BaseModel):
    customer_code: str = Field(..., min_length=1, max_length=40)
    document_id: Optional[int] = None
    dispute_code: Optional[str] = Field(None, max_length=60)
    description: Optional[str] = None
    status: DisputeStatus = DisputeStatus.OPEN
    resolution_notes: Optional[str] = None
    resolved_at: Optional[datetime] = None


class DisputeUpdate(BaseModel):
    document_id: Optional[int] = None
    dispute_code: Optional[str] = Field(None, max_length=60)
    description: Optional[str] = None
    status: Optional[DisputeStatus] = None
    resolution_notes: Optional[str] = None
    resolved_at: Optional[datetime] = None


class DisputeOut(BaseModel):
    id: int
    customer_id: int
    document_id: Optional[int] = None
    dispute_code: Optional[str] = None
    description: Optional[str] = None
    status: DisputeStatus
    resolution_notes: Optional[str] = None
    resolved_at: Optional[datetime] = None
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ===== COLLECTION LOGS =====

class CollectionLogCreate(BaseModel):
    customer_code: str = Field(..., min_length=1, max_length=40)
    document_id: Optional[int] = None
    contact_method: Optional[str] = None
    contact_name: Optional[str] = None
    notes: Optional[str] = None
    outcome: Optional[str] = None
    follow_up_at: Optional[datetime] = None


class CollectionLogOut(BaseModel):
    id: int
    customer_id: int
    document_id: Optional[int] = None
    contact_method: Optional[str] = None
    contact_name: Optional[str] = None
    notes: Optional[str] = None
    outcome: Optional[str] = None
    follow_up_at: Optional[datetime] = None
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
