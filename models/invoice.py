"""Invoice Models"""

from pydantic import AliasChoices, BaseModel, Field
from typing import Optional, List
from datetime import datetime
from enum import Enum

from models.document import DocumentCreateBase, DocumentUpdateBase, DocumentResponseBase


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class InvoiceCreate(DocumentCreateBase):
    due_date: Optional[datetime] = None
    po_number: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("po_number", "poNumber")
    )
    status: InvoiceStatus = InvoiceStatus.DRAFT


class InvoiceUpdate(DocumentUpdateBase):
    due_date: Optional[datetime] = None
    po_number: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("po_number", "poNumber")
    )
    status: Optional[InvoiceStatus] = None


class InvoiceStatusUpdate(BaseModel):
    status: InvoiceStatus


class PaymentCreate(BaseModel):
    """Model for recording a payment against an invoice"""
    amount: float
    payment_date: Optional[datetime] = Field(
        default=None, validation_alias=AliasChoices("payment_date", "paymentDate")
    )
    method: Optional[str] = None
    reference: Optional[str] = None
    notes: Optional[str] = None


class PaymentResponse(BaseModel):
    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    invoice_id: str
    user_id: str
    amount: float
    payment_date: datetime
    method: Optional[str] = None
    reference: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime


class InvoiceResponse(DocumentResponseBase):
    due_date: datetime
    po_number: Optional[str] = None
    status: InvoiceStatus
    amount_paid: float = 0
    quotation_id: Optional[str] = None
    payments: Optional[List[PaymentResponse]] = None


class DashboardStats(BaseModel):
    outstanding: float
    paid_this_month: float
    drafts: int
    recent_invoices: List[InvoiceResponse] = []
