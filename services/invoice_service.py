"""
Invoice lifecycle and payments

Payments are append-only. Recording one recomputes the cumulative paid
amount and derives the invoice status from it:

    paid >= total      -> paid
    0 < paid < total   -> partial

This is the only place status is inferred from payments; an explicit status
change sticks until the next payment.
"""

import logging
import uuid
from decimal import Decimal
from typing import List, Optional, Union

from config import get_settings
from models.document import LineItem
from models.invoice import InvoiceCreate, InvoiceStatus, PaymentCreate
from models.quotation import QuotationStatus
from models.settings import DocumentSeries
from services.document_service import DocumentService
from services.errors import InvalidPayment, NotFound, ValidationError
from services.totals import as_number, round_currency

logger = logging.getLogger(__name__)

_payment_indexes_ensured = False


def derive_payment_status(
    total_paid: Union[int, float],
    invoice_total: Union[int, float]
) -> Optional[InvoiceStatus]:
    """Status implied by cumulative payments, or None to leave it unchanged"""
    if total_paid <= 0:
        return None
    if total_paid >= invoice_total:
        return InvoiceStatus.PAID
    return InvoiceStatus.PARTIAL


class InvoiceService(DocumentService):
    collection_name = "invoices"
    series = DocumentSeries.INVOICE
    label = "Invoice"
    term_field = "due_date"
    # Sequential numbering; the counter compare-and-set prevents duplicates
    enforce_unique_numbers = False

    def term_days(self) -> int:
        return get_settings().invoice_due_days

    def initial_fields(self):
        return {"amount_paid": 0, "quotation_id": None}

    async def after_delete(self, user_id: str, doc_id: str, deleted: dict, session) -> None:
        result = await self.db.payments.delete_many({"invoice_id": doc_id}, session=session)
        if result.deleted_count:
            logger.info(f"Deleted {result.deleted_count} payments of invoice {doc_id}")

        if deleted.get("quotation_id"):
            await self.db.quotations.update_one(
                {"_id": deleted["quotation_id"], "user_id": user_id},
                {"$set": {"invoice_id": None}},
                session=session
            )

    async def _ensure_payment_indexes(self) -> None:
        global _payment_indexes_ensured

        if _payment_indexes_ensured:
            return
        try:
            await self.db.payments.create_index(
                [("invoice_id", 1), ("payment_date", -1)],
                name="payments_by_invoice"
            )
            _payment_indexes_ensured = True
        except Exception as e:
            logger.error(f"[INVOICE] Failed to ensure payment indexes: {e}")

    # ========================================================
    # Quotation conversion
    # ========================================================

    async def create_from_quotation(self, user_id: str, quotation_id: str) -> dict:
        """Create an invoice from a quotation and mark the quotation accepted"""
        quotation = await self.db.quotations.find_one({"_id": quotation_id, "user_id": user_id})
        if quotation is None:
            raise NotFound("Quotation not found")
        if quotation.get("invoice_id"):
            raise ValidationError("Quotation has already been converted to an invoice")

        data = InvoiceCreate(
            client_id=quotation["client_id"],
            project_name=quotation.get("project_name"),
            items=[LineItem(**item) for item in quotation.get("items", [])],
            tax_rate=quotation.get("tax_rate"),
            discount_percent=quotation.get("discount_percent", 0),
            notes=quotation.get("notes"),
            terms=quotation.get("terms"),
            bank_account=quotation.get("bank_account"),
            signature_name=quotation.get("signature_name"),
        )

        async def _mark_accepted(invoice: dict, session) -> None:
            result = await self.db.quotations.update_one(
                {"_id": quotation_id, "user_id": user_id, "invoice_id": None},
                {"$set": {
                    "status": QuotationStatus.ACCEPTED.value,
                    "invoice_id": invoice["_id"],
                    "updated_at": invoice["created_at"],
                }},
                session=session
            )
            if result.modified_count == 0:
                raise ValidationError("Quotation has already been converted to an invoice")

        invoice = await self.create(
            user_id,
            data,
            extra_fields={"quotation_id": quotation_id},
            after_insert=_mark_accepted
        )
        logger.info(f"Converted quotation {quotation['document_number']} into invoice {invoice['document_number']}")
        return invoice

    # ========================================================
    # Payments
    # ========================================================

    async def _total_paid(self, invoice_id: str, session=None) -> Union[int, float]:
        payments = await self.db.payments.find({"invoice_id": invoice_id}, session=session).to_list(length=None)
        total = sum((Decimal(str(p["amount"])) for p in payments), Decimal(0))
        return as_number(total)

    async def add_payment(self, user_id: str, invoice_id: str, data: PaymentCreate) -> dict:
        if data.amount is None or data.amount <= 0:
            raise InvalidPayment("Payment amount must be greater than 0")
        amount = as_number(round_currency(data.amount))
        if amount <= 0:
            raise InvalidPayment("Payment amount must be greater than 0")

        await self._ensure_payment_indexes()
        now = self.clock()

        async def _record(session) -> dict:
            invoice = await self.get(user_id, invoice_id, session=session)

            payment = {
                "_id": str(uuid.uuid4()),
                "invoice_id": invoice_id,
                "user_id": user_id,
                "amount": amount,
                "payment_date": data.payment_date or now,
                "method": data.method,
                "reference": data.reference,
                "notes": data.notes,
                "created_at": now,
            }
            await self.db.payments.insert_one(payment, session=session)

            total_paid = await self._total_paid(invoice_id, session=session)
            update_doc = {"amount_paid": total_paid, "updated_at": now}
            new_status = derive_payment_status(total_paid, invoice["total"])
            if new_status is not None:
                update_doc["status"] = new_status.value

            await self.collection.update_one(
                {"_id": invoice_id, "user_id": user_id},
                {"$set": update_doc},
                session=session
            )
            logger.info(
                f"Recorded payment of {amount} on invoice {invoice['document_number']} "
                f"(paid {total_paid}/{invoice['total']}, status={update_doc.get('status', invoice['status'])})"
            )
            return payment

        return await self._run(_record, "record payment")

    async def list_payments(self, user_id: str, invoice_id: str) -> List[dict]:
        await self.get(user_id, invoice_id)
        cursor = self.db.payments.find({"invoice_id": invoice_id}).sort("payment_date", -1)
        return await cursor.to_list(length=None)
