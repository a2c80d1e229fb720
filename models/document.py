"""Shared models for quotations and invoices"""

from pydantic import AliasChoices, BaseModel, Field
from typing import Optional, List
from datetime import datetime


class LineItem(BaseModel):
    """
    Line item as authored.

    ``rate`` is accepted for ``unit_price`` at the API edge. Items with an
    empty description are dropped before totals and persistence.
    """
    description: str = ""
    quantity: float = 1
    unit: str = "unit"
    unit_price: float = Field(
        default=0, validation_alias=AliasChoices("unit_price", "unitPrice", "rate")
    )
    group_name: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("group_name", "groupName")
    )
    model: Optional[str] = None


class StoredLineItem(LineItem):
    """Line item as persisted, with its computed amount"""
    amount: float = 0


class DocumentTotals(BaseModel):
    subtotal: float
    discount_amount: float
    tax_amount: float
    total: float


class DocumentCreateBase(BaseModel):
    """
    Fields common to quotation and invoice creation.

    ``discount`` is always a percent; the stored currency amount is derived.
    """
    client_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("client_id", "clientId")
    )
    issue_date: Optional[datetime] = None
    project_name: Optional[str] = None
    items: List[LineItem] = []
    tax_rate: Optional[float] = None
    discount_percent: Optional[float] = Field(
        default=None,
        validation_alias=AliasChoices("discount_percent", "discountPercent", "discount")
    )
    notes: Optional[str] = None
    terms: Optional[str] = None
    bank_account: Optional[str] = None
    signature_name: Optional[str] = None


class DocumentUpdateBase(BaseModel):
    """Partial update; the document number can never be changed"""
    client_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("client_id", "clientId")
    )
    issue_date: Optional[datetime] = None
    project_name: Optional[str] = None
    items: Optional[List[LineItem]] = None
    tax_rate: Optional[float] = None
    discount_percent: Optional[float] = Field(
        default=None,
        validation_alias=AliasChoices("discount_percent", "discountPercent", "discount")
    )
    notes: Optional[str] = None
    terms: Optional[str] = None
    bank_account: Optional[str] = None
    signature_name: Optional[str] = None


class DocumentResponseBase(BaseModel):
    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    document_number: str
    user_id: str
    client_id: str
    issue_date: datetime
    project_name: Optional[str] = None
    items: List[StoredLineItem] = []
    subtotal: float
    discount_percent: float = 0
    discount_amount: float = 0
    tax_rate: float
    tax_amount: float
    total: float
    notes: Optional[str] = None
    terms: Optional[str] = None
    bank_account: Optional[str] = None
    signature_name: Optional[str] = None
    created_at: datetime
    updated_at: datetime
