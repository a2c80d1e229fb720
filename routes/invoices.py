"""Invoice Routes for InvoiceFlow"""

from fastapi import APIRouter, Depends, Query, Response, status
from typing import List, Optional
from motor.motor_asyncio import AsyncIOMotorDatabase
from database.mongodb import get_database
from services.auth_deps import get_current_user
from models.invoice import (
    InvoiceCreate,
    InvoiceUpdate,
    InvoiceStatusUpdate,
    InvoiceResponse,
    InvoiceStatus,
    PaymentCreate,
    PaymentResponse,
)
from models.user import User
from services.invoice_service import InvoiceService
from services.pdf_service import pdf_filename, render_document_pdf
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/invoices", tags=["invoices"])


def get_invoice_service(db: AsyncIOMotorDatabase = Depends(get_database)) -> InvoiceService:
    return InvoiceService.from_settings(db)


@router.get("", response_model=List[InvoiceResponse])
async def list_invoices(
    search: Optional[str] = None,
    status_filter: Optional[InvoiceStatus] = Query(None, alias="status"),
    client_id: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service)
):
    """List the user's invoices, newest first"""
    return await service.list(
        current_user.id,
        search=search,
        status=status_filter.value if status_filter else None,
        client_id=client_id
    )


@router.get("/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(
    invoice_id: str,
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service)
):
    """Get one invoice with its payments, newest first"""
    invoice = await service.get(current_user.id, invoice_id)
    payments = await service.list_payments(current_user.id, invoice_id)
    return {**invoice, "payments": payments}


@router.post("", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
async def create_invoice(
    invoice_data: InvoiceCreate,
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service)
):
    """Create an invoice and assign its number"""
    return await service.create(current_user.id, invoice_data)


@router.put("/{invoice_id}", response_model=InvoiceResponse)
async def update_invoice(
    invoice_id: str,
    invoice_data: InvoiceUpdate,
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service)
):
    """Update an invoice; items, when sent, replace the stored ones"""
    return await service.update(current_user.id, invoice_id, invoice_data)


@router.patch("/{invoice_id}/status", response_model=InvoiceResponse)
async def update_invoice_status(
    invoice_id: str,
    status_data: InvoiceStatusUpdate,
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service)
):
    return await service.set_status(current_user.id, invoice_id, status_data.status.value)


@router.delete("/{invoice_id}")
async def delete_invoice(
    invoice_id: str,
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service)
):
    """Delete an invoice and its payments"""
    await service.delete(current_user.id, invoice_id)
    return {"message": "Invoice deleted successfully"}


@router.get("/{invoice_id}/payments", response_model=List[PaymentResponse])
async def list_payments(
    invoice_id: str,
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service)
):
    return await service.list_payments(current_user.id, invoice_id)


@router.post("/{invoice_id}/payments", response_model=PaymentResponse, status_code=status.HTTP_201_CREATED)
async def add_payment(
    invoice_id: str,
    payment_data: PaymentCreate,
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service)
):
    """Record a payment; the invoice becomes partial or paid"""
    return await service.add_payment(current_user.id, invoice_id, payment_data)


@router.get("/{invoice_id}/pdf")
async def get_invoice_pdf(
    invoice_id: str,
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    invoice = await service.get(current_user.id, invoice_id)
    client = await db.clients.find_one({"_id": invoice["client_id"], "user_id": current_user.id})
    company_settings = await service.settings.get_or_create(current_user.id)

    pdf_bytes = render_document_pdf("invoice", invoice, client, company_settings)

    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{pdf_filename(invoice)}"'}
    )
