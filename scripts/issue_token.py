"""
Issue an API access token

Creates a password-less user record if it does not exist yet and prints a
bearer token for it. Meant for service accounts; people register through
POST /api/auth/register.

Run with: python scripts/issue_token.py --email owner@example.com --name "Owner"
"""

import argparse
import asyncio
import os
import sys
import uuid
from datetime import datetime, timedelta, timezone

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from motor.motor_asyncio import AsyncIOMotorClient
from dotenv import load_dotenv

load_dotenv()

from services.auth_service import create_access_token


async def ensure_user(db, email: str, name: str) -> dict:
    """Find the user by email, creating it when missing"""
    existing = await db.users.find_one({"email": email})
    if existing:
        return existing

    user_doc = {
        "_id": str(uuid.uuid4()),
        "email": email,
        "name": name,
        "created_at": datetime.now(timezone.utc),
    }
    await db.users.insert_one(user_doc)
    print(f"Created user {user_doc['_id']} <{email}>")
    return user_doc


async def main():
    parser = argparse.ArgumentParser(description="Issue an InvoiceFlow access token")
    parser.add_argument("--email", required=True)
    parser.add_argument("--name", default=None, help="Display name for a new user")
    parser.add_argument("--days", type=int, default=None, help="Token lifetime in days")
    args = parser.parse_args()

    mongo_url = os.getenv("MONGO_URL", "mongodb://localhost:27017")
    db_name = os.getenv("DB_NAME", "invoiceflow")

    client = AsyncIOMotorClient(mongo_url)
    db = client[db_name]

    try:
        user = await ensure_user(db, args.email, args.name or args.email.split("@")[0])
        expires = timedelta(days=args.days) if args.days else None
        token = create_access_token({"sub": user["_id"]}, expires_delta=expires)
    finally:
        client.close()

    print(token)
    return 0


if __name__ == "__main__":
    exit_code = asyncio.run(main())
    sys.exit(exit_code)
