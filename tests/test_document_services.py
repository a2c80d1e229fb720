"""
Tests for the quotation and invoice lifecycles

Services run without transactions against the in-memory database, with a
fixed clock so numbers and dates are predictable.
"""

import asyncio
from datetime import timedelta

import pytest

from models.document import LineItem
from models.invoice import InvoiceCreate, InvoiceStatus, InvoiceUpdate, PaymentCreate
from models.quotation import QuotationCreate, QuotationStatus, QuotationUpdate
from services.errors import InvalidLineItem, InvalidPayment, NotFound, ValidationError
from services.invoice_service import InvoiceService, derive_payment_status
from services.quotation_service import QuotationService
from tests.helpers import NOW, OTHER_USER_ID, USER_ID, fixed_clock, seed_client


def quotation_service(db):
    return QuotationService(db, use_transactions=False, clock=fixed_clock)


def invoice_service(db):
    return InvoiceService(db, use_transactions=False, clock=fixed_clock)


def sample_items():
    return [
        LineItem(description="Sound system rental", quantity=2, unit_price=100000),
        LineItem(description="Operator", quantity=1, unit_price=50000),
    ]


def run(coro):
    return asyncio.run(coro)


class TestCreate:

    def test_create_quotation(self, fake_db, client_doc):
        service = quotation_service(fake_db)

        doc = run(service.create(USER_ID, QuotationCreate(client_id=client_doc["_id"], items=sample_items())))

        assert doc["document_number"] == "QT/2024/03/00001"
        assert doc["status"] == QuotationStatus.DRAFT.value
        assert doc["subtotal"] == 250000
        assert doc["tax_rate"] == 11
        assert doc["tax_amount"] == 27500
        assert doc["total"] == 277500
        assert doc["valid_until"] == NOW + timedelta(days=30)
        assert doc["invoice_id"] is None

        stored = run(fake_db.quotations.find_one({"_id": doc["_id"]}))
        assert [item["amount"] for item in stored["items"]] == [200000, 50000]
        settings_doc = run(fake_db.company_settings.find_one({"user_id": USER_ID}))
        assert settings_doc["quotation_next_num"] == 2

    def test_create_invoice_with_discount_and_status(self, fake_db, client_doc):
        service = invoice_service(fake_db)
        data = InvoiceCreate.model_validate({
            "clientId": client_doc["_id"],
            "items": [item.model_dump() for item in sample_items()],
            "discount": 10,
            "poNumber": "PO-88",
            "status": "sent",
        })

        doc = run(service.create(USER_ID, data))

        assert doc["document_number"] == "INV/2024/03/00001"
        assert doc["status"] == "sent"
        assert doc["discount_percent"] == 10
        assert doc["discount_amount"] == 25000
        assert doc["tax_amount"] == 24750
        assert doc["total"] == 249750
        assert doc["po_number"] == "PO-88"
        assert doc["amount_paid"] == 0
        assert doc["due_date"] == NOW + timedelta(days=14)

    def test_numbers_advance_per_series(self, fake_db, client_doc):
        quotations = quotation_service(fake_db)
        invoices = invoice_service(fake_db)

        run(quotations.create(USER_ID, QuotationCreate(client_id=client_doc["_id"], items=sample_items())))
        second = run(quotations.create(USER_ID, QuotationCreate(client_id=client_doc["_id"], items=sample_items())))
        invoice = run(invoices.create(USER_ID, InvoiceCreate(client_id=client_doc["_id"], items=sample_items())))

        assert second["document_number"] == "QT/2024/03/00002"
        assert invoice["document_number"] == "INV/2024/03/00001"

    def test_quotation_skips_numbers_already_taken(self, fake_db, client_doc):
        run(fake_db.quotations.insert_one({
            "_id": "imported", "user_id": USER_ID, "document_number": "QT/2024/03/00001"
        }))
        service = quotation_service(fake_db)

        doc = run(service.create(USER_ID, QuotationCreate(client_id=client_doc["_id"], items=sample_items())))

        assert doc["document_number"] == "QT/2024/03/00002"

    def test_concurrent_creates_get_unique_numbers(self, fake_db, client_doc):
        service = invoice_service(fake_db)

        async def create_many():
            return await asyncio.gather(*[
                service.create(USER_ID, InvoiceCreate(client_id=client_doc["_id"], items=sample_items()))
                for _ in range(8)
            ])

        docs = run(create_many())

        numbers = sorted(doc["document_number"] for doc in docs)
        assert numbers == [f"INV/2024/03/{n:05d}" for n in range(1, 9)]

    def test_blank_items_are_not_persisted(self, fake_db, client_doc):
        service = quotation_service(fake_db)
        items = sample_items() + [LineItem(description="", quantity=3, unit_price=5000)]

        doc = run(service.create(USER_ID, QuotationCreate(client_id=client_doc["_id"], items=items)))

        assert len(doc["items"]) == 2
        assert doc["subtotal"] == 250000

    def test_missing_client_rejected(self, fake_db):
        service = quotation_service(fake_db)

        with pytest.raises(ValidationError, match="Client and items are required"):
            run(service.create(USER_ID, QuotationCreate(items=sample_items())))

    def test_missing_items_rejected(self, fake_db, client_doc):
        service = invoice_service(fake_db)

        with pytest.raises(ValidationError):
            run(service.create(USER_ID, InvoiceCreate(client_id=client_doc["_id"], items=[])))

    def test_only_blank_items_rejected(self, fake_db, client_doc):
        service = invoice_service(fake_db)
        data = InvoiceCreate(client_id=client_doc["_id"], items=[LineItem(description="  ")])

        with pytest.raises(ValidationError):
            run(service.create(USER_ID, data))

        assert run(fake_db.invoices.count_documents({})) == 0

    def test_invalid_item_rejected_without_consuming_number(self, fake_db, client_doc):
        service = invoice_service(fake_db)
        data = InvoiceCreate(client_id=client_doc["_id"], items=[LineItem(description="Bad", quantity=0)])

        with pytest.raises(InvalidLineItem):
            run(service.create(USER_ID, data))

        assert run(fake_db.company_settings.find_one({"user_id": USER_ID})) is None

    def test_negative_discount_rejected(self, fake_db, client_doc):
        service = quotation_service(fake_db)
        data = QuotationCreate(client_id=client_doc["_id"], items=sample_items(), discount_percent=-5)

        with pytest.raises(ValidationError):
            run(service.create(USER_ID, data))

    def test_client_of_another_user_not_found(self, fake_db):
        seed_client(fake_db, user_id=OTHER_USER_ID, client_id="foreign")
        service = quotation_service(fake_db)

        with pytest.raises(NotFound):
            run(service.create(USER_ID, QuotationCreate(client_id="foreign", items=sample_items())))


class TestUpdate:

    def create_quotation(self, db, client_id, **kwargs):
        return run(quotation_service(db).create(
            USER_ID, QuotationCreate(client_id=client_id, items=sample_items(), **kwargs)
        ))

    def test_update_items_rederives_discount_from_percent(self, fake_db, client_doc):
        created = self.create_quotation(fake_db, client_doc["_id"], discount_percent=10)
        service = quotation_service(fake_db)

        updated = run(service.update(USER_ID, created["_id"], QuotationUpdate(
            items=[LineItem(description="Stage", quantity=1, unit_price=500000)]
        )))

        assert updated["subtotal"] == 500000
        assert updated["discount_amount"] == 50000
        assert updated["tax_amount"] == 49500
        assert updated["total"] == 499500
        assert updated["document_number"] == created["document_number"]

        stored = run(fake_db.quotations.find_one({"_id": created["_id"]}))
        assert [item["description"] for item in stored["items"]] == ["Stage"]
        assert stored["total"] == 499500

    def test_update_percent_only_keeps_items(self, fake_db, client_doc):
        created = self.create_quotation(fake_db, client_doc["_id"])
        service = quotation_service(fake_db)

        updated = run(service.update(USER_ID, created["_id"], QuotationUpdate(discount_percent=10)))

        assert len(updated["items"]) == 2
        assert updated["discount_amount"] == 25000
        assert updated["total"] == 249750

    def test_update_status_and_notes(self, fake_db, client_doc):
        created = self.create_quotation(fake_db, client_doc["_id"])
        service = quotation_service(fake_db)

        updated = run(service.update(USER_ID, created["_id"], QuotationUpdate(
            status=QuotationStatus.SENT, notes="Valid for one event"
        )))

        assert updated["status"] == "sent"
        stored = run(fake_db.quotations.find_one({"_id": created["_id"]}))
        assert stored["notes"] == "Valid for one event"
        assert stored["status"] == "sent"

    def test_explicit_nulls_keep_stored_values(self, fake_db, client_doc):
        created = self.create_quotation(fake_db, client_doc["_id"], tax_rate=5)
        service = quotation_service(fake_db)

        updated = run(service.update(USER_ID, created["_id"], QuotationUpdate.model_validate({
            "client_id": None, "tax_rate": None, "notes": "Updated"
        })))

        assert updated["client_id"] == client_doc["_id"]
        assert updated["tax_rate"] == 5

    def test_update_with_only_blank_items_rejected(self, fake_db, client_doc):
        created = self.create_quotation(fake_db, client_doc["_id"])

        with pytest.raises(ValidationError):
            run(quotation_service(fake_db).update(
                USER_ID, created["_id"], QuotationUpdate(items=[LineItem(description="")])
            ))

    def test_update_by_other_user_not_found(self, fake_db, client_doc):
        created = self.create_quotation(fake_db, client_doc["_id"])

        with pytest.raises(NotFound):
            run(quotation_service(fake_db).update(OTHER_USER_ID, created["_id"], QuotationUpdate(notes="x")))

    def test_set_status(self, fake_db, client_doc):
        created = self.create_quotation(fake_db, client_doc["_id"])

        doc = run(quotation_service(fake_db).set_status(USER_ID, created["_id"], "rejected"))

        assert doc["status"] == "rejected"
        assert run(fake_db.quotations.find_one({"_id": created["_id"]}))["status"] == "rejected"


class TestQueries:

    def test_list_filters_by_owner_status_and_search(self, fake_db, client_doc):
        service = invoice_service(fake_db)
        seed_client(fake_db, user_id=OTHER_USER_ID, client_id="foreign")
        run(service.create(USER_ID, InvoiceCreate(client_id=client_doc["_id"], items=sample_items())))
        run(service.create(USER_ID, InvoiceCreate(
            client_id=client_doc["_id"], items=sample_items(), status=InvoiceStatus.SENT
        )))
        run(service.create(OTHER_USER_ID, InvoiceCreate(client_id="foreign", items=sample_items())))

        assert len(run(service.list(USER_ID))) == 2
        assert len(run(service.list(USER_ID, status="sent"))) == 1
        assert [d["document_number"] for d in run(service.list(USER_ID, search="00002"))] == ["INV/2024/03/00002"]
        assert run(service.list(USER_ID, client_id="foreign")) == []

    def test_get_of_other_user_not_found(self, fake_db, client_doc):
        service = invoice_service(fake_db)
        created = run(service.create(USER_ID, InvoiceCreate(client_id=client_doc["_id"], items=sample_items())))

        with pytest.raises(NotFound):
            run(service.get(OTHER_USER_ID, created["_id"]))


class TestPayments:

    def create_invoice(self, db, client_id):
        data = InvoiceCreate(
            client_id=client_id,
            items=[LineItem(description="Event package", quantity=1, unit_price=100000)],
            tax_rate=0,
            status=InvoiceStatus.SENT,
        )
        return run(invoice_service(db).create(USER_ID, data))

    def test_partial_then_paid(self, fake_db, client_doc):
        invoice = self.create_invoice(fake_db, client_doc["_id"])
        service = invoice_service(fake_db)

        run(service.add_payment(USER_ID, invoice["_id"], PaymentCreate(amount=40000)))
        after_first = run(service.get(USER_ID, invoice["_id"]))
        assert after_first["amount_paid"] == 40000
        assert after_first["status"] == "partial"

        run(service.add_payment(USER_ID, invoice["_id"], PaymentCreate(amount=60000, method="transfer")))
        after_second = run(service.get(USER_ID, invoice["_id"]))
        assert after_second["amount_paid"] == 100000
        assert after_second["status"] == "paid"

        payments = run(service.list_payments(USER_ID, invoice["_id"]))
        assert sorted(p["amount"] for p in payments) == [40000, 60000]

    def test_overpayment_marks_paid(self, fake_db, client_doc):
        invoice = self.create_invoice(fake_db, client_doc["_id"])
        service = invoice_service(fake_db)

        run(service.add_payment(USER_ID, invoice["_id"], PaymentCreate(amount=150000)))

        assert run(service.get(USER_ID, invoice["_id"]))["status"] == "paid"

    @pytest.mark.parametrize("amount", [0, -100, 0.4])
    def test_non_positive_payment_rejected(self, fake_db, client_doc, amount):
        invoice = self.create_invoice(fake_db, client_doc["_id"])

        with pytest.raises(InvalidPayment):
            run(invoice_service(fake_db).add_payment(USER_ID, invoice["_id"], PaymentCreate(amount=amount)))

        assert run(fake_db.payments.count_documents({})) == 0

    def test_payment_on_missing_invoice(self, fake_db):
        with pytest.raises(NotFound):
            run(invoice_service(fake_db).add_payment(USER_ID, "missing", PaymentCreate(amount=1000)))

    def test_derive_payment_status(self):
        assert derive_payment_status(0, 100) is None
        assert derive_payment_status(1, 100) == InvoiceStatus.PARTIAL
        assert derive_payment_status(100, 100) == InvoiceStatus.PAID

    def test_invoice_update_does_not_touch_payments(self, fake_db, client_doc):
        invoice = self.create_invoice(fake_db, client_doc["_id"])
        service = invoice_service(fake_db)
        run(service.add_payment(USER_ID, invoice["_id"], PaymentCreate(amount=40000)))

        updated = run(service.update(USER_ID, invoice["_id"], InvoiceUpdate(po_number="PO-1")))

        assert updated["amount_paid"] == 40000
        assert updated["status"] == "partial"


class TestConversionAndDelete:

    def test_convert_quotation_to_invoice(self, fake_db, client_doc):
        quotation = run(quotation_service(fake_db).create(USER_ID, QuotationCreate(
            client_id=client_doc["_id"], items=sample_items(), discount_percent=10, notes="Thanks"
        )))
        service = invoice_service(fake_db)

        invoice = run(service.create_from_quotation(USER_ID, quotation["_id"]))

        assert invoice["document_number"] == "INV/2024/03/00001"
        assert invoice["quotation_id"] == quotation["_id"]
        assert invoice["total"] == quotation["total"]
        assert invoice["notes"] == "Thanks"
        stored = run(fake_db.quotations.find_one({"_id": quotation["_id"]}))
        assert stored["status"] == "accepted"
        assert stored["invoice_id"] == invoice["_id"]

        with pytest.raises(ValidationError):
            run(service.create_from_quotation(USER_ID, quotation["_id"]))

    def test_convert_missing_quotation(self, fake_db):
        with pytest.raises(NotFound):
            run(invoice_service(fake_db).create_from_quotation(USER_ID, "missing"))

    def test_delete_invoice_cascades(self, fake_db, client_doc):
        quotation = run(quotation_service(fake_db).create(
            USER_ID, QuotationCreate(client_id=client_doc["_id"], items=sample_items())
        ))
        service = invoice_service(fake_db)
        invoice = run(service.create_from_quotation(USER_ID, quotation["_id"]))
        run(service.add_payment(USER_ID, invoice["_id"], PaymentCreate(amount=1000)))

        run(service.delete(USER_ID, invoice["_id"]))

        with pytest.raises(NotFound):
            run(service.get(USER_ID, invoice["_id"]))
        assert run(fake_db.payments.count_documents({"invoice_id": invoice["_id"]})) == 0
        assert run(fake_db.quotations.find_one({"_id": quotation["_id"]}))["invoice_id"] is None

    def test_delete_by_other_user_not_found(self, fake_db, client_doc):
        quotation = run(quotation_service(fake_db).create(
            USER_ID, QuotationCreate(client_id=client_doc["_id"], items=sample_items())
        ))

        with pytest.raises(NotFound):
            run(quotation_service(fake_db).delete(OTHER_USER_ID, quotation["_id"]))

        assert run(fake_db.quotations.count_documents({})) == 1
