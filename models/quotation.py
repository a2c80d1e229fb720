"""Quotation Models (SPH series)"""

from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from enum import Enum

from models.document import DocumentCreateBase, DocumentUpdateBase, DocumentResponseBase


class QuotationStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"


class QuotationCreate(DocumentCreateBase):
    valid_until: Optional[datetime] = None
    status: QuotationStatus = QuotationStatus.DRAFT


class QuotationUpdate(DocumentUpdateBase):
    valid_until: Optional[datetime] = None
    status: Optional[QuotationStatus] = None


class QuotationStatusUpdate(BaseModel):
    status: QuotationStatus


class QuotationResponse(DocumentResponseBase):
    valid_until: datetime
    status: QuotationStatus
    invoice_id: Optional[str] = None
