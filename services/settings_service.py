"""
Company Settings Service

One settings document per user in ``company_settings``, created lazily
with defaults the first time it is read. The numbering counters in it are
only advanced by NumberingService.
"""

import logging
import uuid
from datetime import datetime, timezone
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from config import get_settings
from models.settings import (
    BankAccountCreate,
    CompanySettingsUpdate,
    DEFAULT_PADDING,
    DEFAULT_PREFIXES,
    DocumentSeries,
    NumberingConfig,
)
from services.errors import NotFound, ValidationError

logger = logging.getLogger(__name__)

# Flag to avoid creating indexes more than once
_indexes_ensured = False


async def ensure_settings_indexes(db: AsyncIOMotorDatabase) -> None:
    global _indexes_ensured

    if _indexes_ensured:
        return

    try:
        await db.company_settings.create_index("user_id", unique=True, name="uniq_settings_user")
        _indexes_ensured = True
    except Exception as e:
        logger.error(f"[SETTINGS] Failed to ensure indexes: {e}")


def numbering_config(settings_doc: dict, series: DocumentSeries) -> NumberingConfig:
    """Numbering state of one series, read from the flat settings document"""
    key = series.value
    return NumberingConfig(
        prefix=settings_doc.get(f"{key}_prefix") or DEFAULT_PREFIXES[series],
        next_number=settings_doc.get(f"{key}_next_num") or 1,
        padding=settings_doc.get(f"{key}_padding") or DEFAULT_PADDING
    )


def default_settings(now: datetime) -> dict:
    app_settings = get_settings()
    return {
        "_id": str(uuid.uuid4()),
        "company_name": "My Company",
        "default_tax_name": app_settings.default_tax_name,
        "default_tax_rate": app_settings.default_tax_rate,
        "invoice_prefix": DEFAULT_PREFIXES[DocumentSeries.INVOICE],
        "invoice_next_num": 1,
        "invoice_padding": DEFAULT_PADDING,
        "quotation_prefix": DEFAULT_PREFIXES[DocumentSeries.QUOTATION],
        "quotation_next_num": 1,
        "quotation_padding": DEFAULT_PADDING,
        "bank_accounts": [],
        "created_at": now,
        "updated_at": now,
    }


class SettingsService:
    """Reads and writes the per-user settings document"""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db

    async def get_or_create(self, user_id: str, session=None) -> dict:
        await ensure_settings_indexes(self.db)

        now = datetime.now(timezone.utc)
        return await self.db.company_settings.find_one_and_update(
            {"user_id": user_id},
            {"$setOnInsert": default_settings(now)},
            upsert=True,
            return_document=ReturnDocument.AFTER,
            session=session
        )

    async def update(self, user_id: str, data: CompanySettingsUpdate) -> dict:
        """
        Apply a partial update.

        Counters only move forward: a next number below the stored one would
        hand out numbers that are already taken. They are written with ``$max``
        so a reservation racing this update is never undone.
        """
        current = await self.get_or_create(user_id)

        update_data = data.model_dump(exclude_unset=True, exclude_none=True)
        counters = {}
        for series in DocumentSeries:
            field = f"{series.value}_next_num"
            if field not in update_data:
                continue
            stored = current.get(field) or 1
            if update_data[field] < stored:
                raise ValidationError(
                    f"{series.value.capitalize()} next number cannot be lower than the current value {stored}"
                )
            counters[field] = update_data.pop(field)
        update_data["updated_at"] = datetime.now(timezone.utc)

        update = {"$set": update_data}
        if counters:
            update["$max"] = counters

        settings_doc = await self.db.company_settings.find_one_and_update(
            {"user_id": user_id},
            update,
            return_document=ReturnDocument.AFTER
        )
        logger.info(f"Updated settings for user {user_id}: {sorted([*update_data, *counters])}")
        return settings_doc

    async def add_bank_account(self, user_id: str, data: BankAccountCreate) -> dict:
        settings_doc = await self.get_or_create(user_id)

        account = {"id": str(uuid.uuid4()), **data.model_dump()}
        accounts = settings_doc.get("bank_accounts", [])
        if account["is_default"]:
            accounts = [{**acc, "is_default": False} for acc in accounts]
        accounts.append(account)

        await self.db.company_settings.update_one(
            {"user_id": user_id},
            {"$set": {"bank_accounts": accounts, "updated_at": datetime.now(timezone.utc)}}
        )
        logger.info(f"Added bank account {account['id']} for user {user_id}")
        return account

    async def delete_bank_account(self, user_id: str, account_id: str) -> None:
        settings_doc = await self.get_or_create(user_id)

        accounts = settings_doc.get("bank_accounts", [])
        remaining = [acc for acc in accounts if acc.get("id") != account_id]
        if len(remaining) == len(accounts):
            raise NotFound("Bank account not found")

        await self.db.company_settings.update_one(
            {"user_id": user_id},
            {"$set": {"bank_accounts": remaining, "updated_at": datetime.now(timezone.utc)}}
        )
        logger.info(f"Deleted bank account {account_id} for user {user_id}")

