import os

# Settings are read once; point them at test values before anything imports config
os.environ.setdefault("MONGO_TRANSACTIONS", "false")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("ENVIRONMENT", "development")

import pytest

from tests.fake_mongo import FakeDatabase
from tests.helpers import seed_client


@pytest.fixture
def fake_db(monkeypatch):
    """Empty in-memory database; index flags reset so indexes are re-created"""
    from services import document_service, invoice_service, settings_service

    monkeypatch.setattr(document_service, "_indexed_collections", set())
    monkeypatch.setattr(settings_service, "_indexes_ensured", False)
    monkeypatch.setattr(invoice_service, "_payment_indexes_ensured", False)
    return FakeDatabase()


@pytest.fixture
def client_doc(fake_db):
    return seed_client(fake_db)
