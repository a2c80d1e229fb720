"""Company Settings Routes"""

from fastapi import APIRouter, Depends, status
from typing import List
from datetime import datetime, timezone
from decimal import Decimal
from motor.motor_asyncio import AsyncIOMotorDatabase
from database.mongodb import get_database
from services.auth_deps import get_current_user
from models.settings import (
    BankAccount,
    BankAccountCreate,
    CompanySettingsResponse,
    CompanySettingsUpdate,
    DocumentSeries,
    NumberingPreview,
)
from models.invoice import DashboardStats, InvoiceStatus
from models.user import User
from services.numbering import NumberingService
from services.settings_service import SettingsService
from services.totals import as_number
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/settings", tags=["settings"])

OUTSTANDING_STATUSES = [InvoiceStatus.SENT.value, InvoiceStatus.PARTIAL.value, InvoiceStatus.OVERDUE.value]


def get_settings_service(db: AsyncIOMotorDatabase = Depends(get_database)) -> SettingsService:
    return SettingsService(db)


@router.get("", response_model=CompanySettingsResponse)
async def get_company_settings(
    current_user: User = Depends(get_current_user),
    service: SettingsService = Depends(get_settings_service)
):
    """Get company settings, creating the defaults on first access"""
    return await service.get_or_create(current_user.id)


@router.put("", response_model=CompanySettingsResponse)
async def update_company_settings(
    settings_data: CompanySettingsUpdate,
    current_user: User = Depends(get_current_user),
    service: SettingsService = Depends(get_settings_service)
):
    return await service.update(current_user.id, settings_data)


@router.get("/numbering/preview", response_model=NumberingPreview)
async def preview_numbering(
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Numbers the next documents would get today; nothing is reserved"""
    numbering = NumberingService(db)
    now = datetime.now(timezone.utc)
    return NumberingPreview(
        invoice=await numbering.preview(current_user.id, DocumentSeries.INVOICE, now),
        quotation=await numbering.preview(current_user.id, DocumentSeries.QUOTATION, now)
    )


@router.get("/bank-accounts", response_model=List[BankAccount])
async def get_bank_accounts(
    current_user: User = Depends(get_current_user),
    service: SettingsService = Depends(get_settings_service)
):
    settings_doc = await service.get_or_create(current_user.id)
    accounts = settings_doc.get("bank_accounts", [])
    return sorted(accounts, key=lambda acc: not acc.get("is_default"))


@router.post("/bank-accounts", response_model=BankAccount, status_code=status.HTTP_201_CREATED)
async def add_bank_account(
    account_data: BankAccountCreate,
    current_user: User = Depends(get_current_user),
    service: SettingsService = Depends(get_settings_service)
):
    return await service.add_bank_account(current_user.id, account_data)


@router.delete("/bank-accounts/{account_id}")
async def delete_bank_account(
    account_id: str,
    current_user: User = Depends(get_current_user),
    service: SettingsService = Depends(get_settings_service)
):
    await service.delete_bank_account(current_user.id, account_id)
    return {"message": "Bank account deleted successfully"}


@router.get("/dashboard", response_model=DashboardStats)
async def get_dashboard_stats(
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Outstanding and paid totals, draft count and the latest invoices"""
    now = datetime.now(timezone.utc)
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)

    outstanding_invoices = await db.invoices.find({
        "user_id": current_user.id,
        "status": {"$in": OUTSTANDING_STATUSES}
    }).to_list(length=None)
    outstanding = sum(
        (Decimal(str(inv.get("total", 0))) - Decimal(str(inv.get("amount_paid", 0))) for inv in outstanding_invoices),
        Decimal(0)
    )

    paid_invoices = await db.invoices.find({
        "user_id": current_user.id,
        "status": InvoiceStatus.PAID.value,
        "updated_at": {"$gte": month_start}
    }).to_list(length=None)
    paid_this_month = sum((Decimal(str(inv.get("total", 0))) for inv in paid_invoices), Decimal(0))

    drafts = await db.invoices.count_documents({
        "user_id": current_user.id,
        "status": InvoiceStatus.DRAFT.value
    })

    recent_invoices = await db.invoices.find(
        {"user_id": current_user.id}
    ).sort("created_at", -1).limit(5).to_list(length=5)

    return DashboardStats(
        outstanding=as_number(outstanding),
        paid_this_month=as_number(paid_this_month),
        drafts=drafts,
        recent_invoices=recent_invoices
    )
