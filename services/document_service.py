"""
Document Lifecycle Service

Shared create/update/delete flow for quotations and invoices:

- create: validate -> compute totals -> reserve number -> insert, as one
  unit of work (number reservation and insert commit or roll back together)
- update: re-derive totals from the percent fields, replace items wholesale,
  never touch the document number
- delete: owner-scoped, with per-type cascade

Line items are embedded in the document, so replacing them is a single
``$set``; readers never see a document without items.
"""

import logging
import re
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from config import get_settings
from database.mongodb import run_transaction
from models.document import DocumentCreateBase, DocumentUpdateBase, LineItem
from models.settings import DocumentSeries
from services.errors import InvoicingError, NotFound, PersistenceError, ValidationError
from services.numbering import DEFAULT_MAX_ATTEMPTS, GeneratedNumber, NumberingService
from services.settings_service import SettingsService
from services.totals import compute_totals, prepare_line_items, stored_line_items

logger = logging.getLogger(__name__)

_indexed_collections = set()

AfterInsert = Callable[[dict, Any], Awaitable[None]]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def check_percent(value: Optional[float], label: str) -> None:
    if value is not None and value < 0:
        raise ValidationError(f"{label} cannot be negative")


class DocumentService:
    """Base class; subclasses pin the collection, series and date field"""

    collection_name = ""
    series: DocumentSeries = DocumentSeries.INVOICE
    label = "Document"
    # Field holding the due / valid-until date
    term_field = ""
    # Probe each candidate number against existing documents
    enforce_unique_numbers = False

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        use_transactions: bool = True,
        max_number_attempts: int = DEFAULT_MAX_ATTEMPTS,
        conflict_retries: int = 50,
        clock: Callable[[], datetime] = utcnow
    ):
        self.db = db
        self.collection = db[self.collection_name]
        self.use_transactions = use_transactions
        self.numbering = NumberingService(db, max_number_attempts, conflict_retries)
        self.settings = SettingsService(db)
        self.clock = clock

    @classmethod
    def from_settings(cls, db: AsyncIOMotorDatabase):
        app_settings = get_settings()
        return cls(
            db,
            use_transactions=app_settings.mongo_transactions,
            max_number_attempts=app_settings.number_generation_max_attempts,
            conflict_retries=app_settings.counter_conflict_retries
        )

    # ========================================================
    # Hooks
    # ========================================================

    def term_days(self) -> int:
        raise NotImplementedError

    def initial_fields(self) -> Dict[str, Any]:
        """Type-specific fields every new document starts with"""
        return {}

    async def after_delete(self, user_id: str, doc_id: str, deleted: dict, session) -> None:
        pass

    # ========================================================
    # Helpers
    # ========================================================

    async def _ensure_indexes(self) -> None:
        if self.collection_name in _indexed_collections:
            return
        try:
            await self.collection.create_index(
                [("user_id", 1), ("document_number", 1)],
                unique=True,
                name=f"uniq_{self.collection_name}_number"
            )
            await self.collection.create_index(
                [("user_id", 1), ("created_at", -1)],
                name=f"{self.collection_name}_by_user"
            )
            _indexed_collections.add(self.collection_name)
        except Exception as e:
            logger.error(f"[{self.label.upper()}] Failed to ensure indexes: {e}")

    async def _run(self, callback: Callable[[Any], Awaitable[Any]], action: str) -> Any:
        try:
            return await run_transaction(self.db, callback, enabled=self.use_transactions)
        except InvoicingError:
            raise
        except PyMongoError as e:
            outcome = "transaction rolled back" if self.use_transactions else "no transaction"
            logger.error(f"[{self.label.upper()}] Failed to {action} ({outcome}): {e}")
            raise PersistenceError(f"Failed to {action}: {e}") from e

    async def _undo_create(self, user_id: str, doc: dict, generated: GeneratedNumber) -> None:
        """Remove a half-created document and give its number back"""
        try:
            await self.collection.delete_one({"_id": doc["_id"], "user_id": user_id})
            released = await self.numbering.release(user_id, self.series, generated)
        except PyMongoError as e:
            logger.error(f"[{self.label.upper()}] Could not undo failed create of {doc['document_number']}: {e}")
            return
        logger.warning(
            f"[{self.label.upper()}] Undid failed create of {doc['document_number']}: document removed, "
            + ("number released" if released else "number left as a gap")
        )

    async def _require_client(self, user_id: str, client_id: str, session=None) -> dict:
        client = await self.db.clients.find_one({"_id": client_id, "user_id": user_id}, session=session)
        if client is None:
            raise NotFound("Client not found")
        return client

    def _uniqueness_check(self, user_id: str, session):
        if not self.enforce_unique_numbers:
            return None

        async def is_unique(candidate: str) -> bool:
            existing = await self.collection.find_one(
                {"user_id": user_id, "document_number": candidate},
                session=session
            )
            return existing is None

        return is_unique

    # ========================================================
    # Queries
    # ========================================================

    async def get(self, user_id: str, doc_id: str, session=None) -> dict:
        doc = await self.collection.find_one({"_id": doc_id, "user_id": user_id}, session=session)
        if doc is None:
            raise NotFound(f"{self.label} not found")
        return doc

    async def list(
        self,
        user_id: str,
        search: Optional[str] = None,
        status: Optional[str] = None,
        client_id: Optional[str] = None
    ) -> List[dict]:
        query: Dict[str, Any] = {"user_id": user_id}
        if search:
            query["document_number"] = {"$regex": re.escape(search), "$options": "i"}
        if status:
            query["status"] = status
        if client_id:
            query["client_id"] = client_id

        cursor = self.collection.find(query).sort("created_at", -1)
        return await cursor.to_list(length=None)

    # ========================================================
    # Lifecycle
    # ========================================================

    async def create(
        self,
        user_id: str,
        data: DocumentCreateBase,
        extra_fields: Optional[Dict[str, Any]] = None,
        after_insert: Optional[AfterInsert] = None
    ) -> dict:
        if not data.client_id or not data.items:
            raise ValidationError("Client and items are required")

        items = prepare_line_items(data.items)
        if not items:
            raise ValidationError("At least one line item with a description is required")
        check_percent(data.tax_rate, "Tax rate")
        check_percent(data.discount_percent, "Discount")

        await self._ensure_indexes()
        await self._require_client(user_id, data.client_id)

        settings_doc = await self.settings.get_or_create(user_id)
        tax_rate = data.tax_rate if data.tax_rate is not None else settings_doc.get("default_tax_rate", 0)
        discount_percent = data.discount_percent or 0
        totals = compute_totals(items, tax_rate, discount_percent)

        now = self.clock()
        issue_date = data.issue_date or now
        term_date = getattr(data, self.term_field) or issue_date + timedelta(days=self.term_days())

        passthrough = data.model_dump(exclude={
            "client_id", "issue_date", "items", "tax_rate", "discount_percent", "status", self.term_field
        })

        async def _insert(session) -> dict:
            generated = await self.numbering.reserve(
                user_id,
                self.series,
                now,
                is_unique=self._uniqueness_check(user_id, session),
                session=session
            )
            doc = {
                "_id": str(uuid.uuid4()),
                "document_number": generated.number,
                "user_id": user_id,
                "client_id": data.client_id,
                "issue_date": issue_date,
                self.term_field: term_date,
                "items": [item.model_dump() for item in stored_line_items(items)],
                "tax_rate": tax_rate,
                "discount_percent": discount_percent,
                **totals.model_dump(),
                "status": data.status.value,
                **passthrough,
                **self.initial_fields(),
                **(extra_fields or {}),
                "created_at": now,
                "updated_at": now,
            }
            try:
                await self.collection.insert_one(doc, session=session)
                if after_insert is not None:
                    await after_insert(doc, session)
            except Exception:
                if session is None:
                    await self._undo_create(user_id, doc, generated)
                raise
            return doc

        doc = await self._run(_insert, f"create {self.label.lower()}")
        logger.info(
            f"Created {self.label.lower()} {doc['document_number']} for user {user_id} "
            f"(total={doc['total']}, items={len(doc['items'])})"
        )
        return doc

    async def update(self, user_id: str, doc_id: str, data: DocumentUpdateBase) -> dict:
        changes = data.model_dump(exclude_unset=True, exclude={"items"})
        # Explicit nulls on these keys mean "keep what is stored"
        for key in ("client_id", "issue_date", "tax_rate", "discount_percent", "status", self.term_field):
            if changes.get(key) is None:
                changes.pop(key, None)
        if "status" in changes:
            changes["status"] = changes["status"].value

        check_percent(changes.get("tax_rate"), "Tax rate")
        check_percent(changes.get("discount_percent"), "Discount")

        new_items = None
        if data.items is not None:
            new_items = prepare_line_items(data.items)
            if not new_items:
                raise ValidationError("At least one line item with a description is required")

        now = self.clock()

        async def _update(session) -> dict:
            existing = await self.get(user_id, doc_id, session=session)
            if "client_id" in changes:
                await self._require_client(user_id, changes["client_id"], session=session)

            items = new_items
            if items is None:
                items = [LineItem(**item) for item in existing.get("items", [])]
            # Discount is always re-derived from the percent, never from the stored amount
            tax_rate = changes.get("tax_rate", existing.get("tax_rate", 0))
            discount_percent = changes.get("discount_percent", existing.get("discount_percent", 0))
            totals = compute_totals(items, tax_rate, discount_percent)

            update_doc = {
                **changes,
                **totals.model_dump(),
                "tax_rate": tax_rate,
                "discount_percent": discount_percent,
                "updated_at": now,
            }
            if new_items is not None:
                update_doc["items"] = [item.model_dump() for item in stored_line_items(new_items)]

            await self.collection.update_one(
                {"_id": doc_id, "user_id": user_id},
                {"$set": update_doc},
                session=session
            )
            return {**existing, **update_doc}

        doc = await self._run(_update, f"update {self.label.lower()}")
        logger.info(f"Updated {self.label.lower()} {doc['document_number']} for user {user_id}")
        return doc

    async def set_status(self, user_id: str, doc_id: str, status: str) -> dict:
        """Explicit status change from the user, bypassing derived transitions"""
        now = self.clock()

        async def _set(session) -> dict:
            existing = await self.get(user_id, doc_id, session=session)
            await self.collection.update_one(
                {"_id": doc_id, "user_id": user_id},
                {"$set": {"status": status, "updated_at": now}},
                session=session
            )
            return {**existing, "status": status, "updated_at": now}

        doc = await self._run(_set, f"update {self.label.lower()} status")
        logger.info(f"{self.label} {doc['document_number']} status set to {status}")
        return doc

    async def delete(self, user_id: str, doc_id: str) -> None:
        async def _delete(session) -> dict:
            existing = await self.get(user_id, doc_id, session=session)
            await self.collection.delete_one({"_id": doc_id, "user_id": user_id}, session=session)
            await self.after_delete(user_id, doc_id, existing, session)
            return existing

        deleted = await self._run(_delete, f"delete {self.label.lower()}")
        logger.info(f"Deleted {self.label.lower()} {deleted['document_number']} for user {user_id}")
