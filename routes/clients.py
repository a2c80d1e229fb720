"""Client Routes for InvoiceFlow"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from typing import List, Optional
from datetime import datetime, timezone
from motor.motor_asyncio import AsyncIOMotorDatabase
from database.mongodb import get_database
from services.auth_deps import get_current_user
from models.client import ClientCreate, ClientUpdate, ClientResponse
from models.user import User
import logging
import re
import uuid

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/clients", tags=["clients"])


@router.get("", response_model=List[ClientResponse])
async def get_clients(
    search: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Get all clients of the user, newest first"""
    query = {"user_id": current_user.id}
    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        query["$or"] = [
            {"name": pattern},
            {"email": pattern},
            {"contact_name": pattern},
        ]
    if status_filter:
        query["status"] = status_filter

    return await db.clients.find(query).sort("created_at", -1).to_list(length=None)


@router.get("/{client_id}", response_model=ClientResponse)
async def get_client(
    client_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    client = await db.clients.find_one({"_id": client_id, "user_id": current_user.id})
    if not client:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Client not found"
        )
    return client


@router.post("", response_model=ClientResponse, status_code=status.HTTP_201_CREATED)
async def create_client(
    client_data: ClientCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    if not client_data.name.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Client name is required"
        )

    now = datetime.now(timezone.utc)
    client_doc = {
        "_id": str(uuid.uuid4()),
        "user_id": current_user.id,
        **client_data.model_dump(),
        "created_at": now,
        "updated_at": now
    }
    await db.clients.insert_one(client_doc)

    logger.info(f"Created client {client_doc['_id']} for user {current_user.id}")
    return client_doc


@router.put("/{client_id}", response_model=ClientResponse)
async def update_client(
    client_id: str,
    client_data: ClientUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    update_data = client_data.model_dump(exclude_unset=True)
    update_data["updated_at"] = datetime.now(timezone.utc)

    result = await db.clients.update_one(
        {"_id": client_id, "user_id": current_user.id},
        {"$set": update_data}
    )
    if result.matched_count == 0:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Client not found"
        )

    return await db.clients.find_one({"_id": client_id, "user_id": current_user.id})


@router.delete("/{client_id}")
async def delete_client(
    client_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Delete a client that has no quotations or invoices"""
    scope = {"client_id": client_id, "user_id": current_user.id}
    if await db.invoices.count_documents(scope) or await db.quotations.count_documents(scope):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Client still has quotations or invoices"
        )

    result = await db.clients.delete_one({"_id": client_id, "user_id": current_user.id})
    if result.deleted_count == 0:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Client not found"
        )

    logger.info(f"Deleted client {client_id}")
    return {"message": "Client deleted successfully"}
