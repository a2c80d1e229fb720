"""Shared test data"""

import asyncio
from datetime import datetime, timezone

USER_ID = "user-1"
OTHER_USER_ID = "user-2"
NOW = datetime(2024, 3, 5, 9, 30, tzinfo=timezone.utc)


def fixed_clock():
    return NOW


def seed_client(db, user_id=USER_ID, client_id="client-1", name="PT Maju Jaya"):
    doc = {
        "_id": client_id,
        "user_id": user_id,
        "name": name,
        "email": "finance@majujaya.co.id",
        "city": "Jakarta",
        "country": "Indonesia",
        "status": "active",
        "created_at": NOW,
        "updated_at": NOW,
    }
    asyncio.run(db.clients.insert_one(doc))
    return doc
