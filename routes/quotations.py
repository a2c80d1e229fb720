"""Quotation Routes for InvoiceFlow"""

from fastapi import APIRouter, Depends, Query, Response, status
from typing import List, Optional
from motor.motor_asyncio import AsyncIOMotorDatabase
from database.mongodb import get_database
from services.auth_deps import get_current_user
from models.quotation import (
    QuotationCreate,
    QuotationUpdate,
    QuotationStatusUpdate,
    QuotationResponse,
    QuotationStatus,
)
from models.invoice import InvoiceResponse
from models.user import User
from services.quotation_service import QuotationService
from services.invoice_service import InvoiceService
from services.pdf_service import pdf_filename, render_document_pdf
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/quotations", tags=["quotations"])


def get_quotation_service(db: AsyncIOMotorDatabase = Depends(get_database)) -> QuotationService:
    return QuotationService.from_settings(db)


def get_invoice_service(db: AsyncIOMotorDatabase = Depends(get_database)) -> InvoiceService:
    return InvoiceService.from_settings(db)


@router.get("", response_model=List[QuotationResponse])
async def list_quotations(
    search: Optional[str] = None,
    status_filter: Optional[QuotationStatus] = Query(None, alias="status"),
    client_id: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    service: QuotationService = Depends(get_quotation_service)
):
    """List the user's quotations, newest first"""
    return await service.list(
        current_user.id,
        search=search,
        status=status_filter.value if status_filter else None,
        client_id=client_id
    )


@router.get("/{quotation_id}", response_model=QuotationResponse)
async def get_quotation(
    quotation_id: str,
    current_user: User = Depends(get_current_user),
    service: QuotationService = Depends(get_quotation_service)
):
    return await service.get(current_user.id, quotation_id)


@router.post("", response_model=QuotationResponse, status_code=status.HTTP_201_CREATED)
async def create_quotation(
    quotation_data: QuotationCreate,
    current_user: User = Depends(get_current_user),
    service: QuotationService = Depends(get_quotation_service)
):
    """Create a quotation and assign its SPH number"""
    return await service.create(current_user.id, quotation_data)


@router.put("/{quotation_id}", response_model=QuotationResponse)
async def update_quotation(
    quotation_id: str,
    quotation_data: QuotationUpdate,
    current_user: User = Depends(get_current_user),
    service: QuotationService = Depends(get_quotation_service)
):
    """Update a quotation; items, when sent, replace the stored ones"""
    return await service.update(current_user.id, quotation_id, quotation_data)


@router.patch("/{quotation_id}/status", response_model=QuotationResponse)
async def update_quotation_status(
    quotation_id: str,
    status_data: QuotationStatusUpdate,
    current_user: User = Depends(get_current_user),
    service: QuotationService = Depends(get_quotation_service)
):
    return await service.set_status(current_user.id, quotation_id, status_data.status.value)


@router.delete("/{quotation_id}")
async def delete_quotation(
    quotation_id: str,
    current_user: User = Depends(get_current_user),
    service: QuotationService = Depends(get_quotation_service)
):
    await service.delete(current_user.id, quotation_id)
    return {"message": "Quotation deleted successfully"}


@router.post("/{quotation_id}/convert", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
async def convert_quotation(
    quotation_id: str,
    current_user: User = Depends(get_current_user),
    invoice_service: InvoiceService = Depends(get_invoice_service)
):
    """Turn a quotation into an invoice and mark it accepted"""
    return await invoice_service.create_from_quotation(current_user.id, quotation_id)


@router.get("/{quotation_id}/pdf")
async def get_quotation_pdf(
    quotation_id: str,
    current_user: User = Depends(get_current_user),
    service: QuotationService = Depends(get_quotation_service),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    quotation = await service.get(current_user.id, quotation_id)
    client = await db.clients.find_one({"_id": quotation["client_id"], "user_id": current_user.id})
    company_settings = await service.settings.get_or_create(current_user.id)

    pdf_bytes = render_document_pdf("quotation", quotation, client, company_settings)

    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{pdf_filename(quotation)}"'}
    )
