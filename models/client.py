"""Client Models"""

from pydantic import AliasChoices, BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime


class ClientBase(BaseModel):
    name: str
    contact_name: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("contact_name", "contactName")
    )
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("postal_code", "postalCode")
    )
    country: str = "Indonesia"
    tax_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("tax_id", "taxId")
    )
    status: str = "active"
    notes: Optional[str] = None


class ClientCreate(ClientBase):
    pass


class ClientUpdate(BaseModel):
    name: Optional[str] = None
    contact_name: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("contact_name", "contactName")
    )
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("postal_code", "postalCode")
    )
    country: Optional[str] = None
    tax_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("tax_id", "taxId")
    )
    status: Optional[str] = None
    notes: Optional[str] = None


class ClientResponse(ClientBase):
    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    user_id: str
    created_at: datetime
    updated_at: datetime
