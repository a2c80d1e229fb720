"""Quotation (SPH) lifecycle"""

import logging

from config import get_settings
from models.settings import DocumentSeries
from services.document_service import DocumentService

logger = logging.getLogger(__name__)


class QuotationService(DocumentService):
    collection_name = "quotations"
    series = DocumentSeries.QUOTATION
    label = "Quotation"
    term_field = "valid_until"
    enforce_unique_numbers = True

    def term_days(self) -> int:
        return get_settings().quotation_valid_days

    def initial_fields(self):
        return {"invoice_id": None}

    async def after_delete(self, user_id: str, doc_id: str, deleted: dict, session) -> None:
        # The invoice stays; it just no longer points at a quotation
        if deleted.get("invoice_id"):
            await self.db.invoices.update_one(
                {"_id": deleted["invoice_id"], "user_id": user_id, "quotation_id": doc_id},
                {"$set": {"quotation_id": None}},
                session=session
            )
            logger.info(f"Unlinked invoice {deleted['invoice_id']} from deleted quotation {doc_id}")
