"""
Company Settings Models

Collection: company_settings (one document per user)

Holds the company profile used on PDFs, the default tax, bank accounts and
the numbering state of both document series. The numbering fields are kept
flat on the document:

    invoice_prefix, invoice_next_num, invoice_padding,
    quotation_prefix, quotation_next_num, quotation_padding
"""

from pydantic import AliasChoices, BaseModel, Field
from typing import List, Optional
from datetime import datetime
from enum import Enum


class DocumentSeries(str, Enum):
    """Independent numbering sequences"""
    INVOICE = "invoice"
    QUOTATION = "quotation"


DEFAULT_PREFIXES = {
    DocumentSeries.INVOICE: "INV/{YYYY}/{MM}/",
    DocumentSeries.QUOTATION: "QT/{YYYY}/{MM}/",
}
DEFAULT_PADDING = 5


class NumberingConfig(BaseModel):
    """Numbering state of one series"""
    prefix: str
    next_number: int = Field(default=1, ge=1)
    padding: int = Field(default=DEFAULT_PADDING, ge=1)


class BankAccount(BaseModel):
    id: str
    bank_name: str
    account_number: str
    account_holder: str = ""
    is_default: bool = False


class BankAccountCreate(BaseModel):
    bank_name: str = Field(validation_alias=AliasChoices("bank_name", "bankName"))
    account_number: str = Field(
        validation_alias=AliasChoices("account_number", "accountNumber", "accountNum")
    )
    account_holder: str = Field(
        default="",
        validation_alias=AliasChoices("account_holder", "accountHolder", "holderName")
    )
    is_default: bool = Field(default=False, validation_alias=AliasChoices("is_default", "isDefault"))


class CompanySettingsUpdate(BaseModel):
    """
    Partial settings update.

    ``sph_*`` and ``tax_rate`` are accepted as older names for the quotation
    series and the default tax rate.
    """
    company_name: Optional[str] = None
    legal_name: Optional[str] = None
    tax_id: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    workshop: Optional[str] = None
    logo: Optional[str] = None
    signature_image: Optional[str] = None
    signature_name: Optional[str] = None

    default_tax_name: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("default_tax_name", "tax_name")
    )
    default_tax_rate: Optional[float] = Field(
        default=None, ge=0, validation_alias=AliasChoices("default_tax_rate", "tax_rate")
    )

    invoice_prefix: Optional[str] = None
    invoice_next_num: Optional[int] = Field(default=None, ge=1)
    invoice_padding: Optional[int] = Field(default=None, ge=1, le=12)
    quotation_prefix: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("quotation_prefix", "sph_prefix")
    )
    quotation_next_num: Optional[int] = Field(
        default=None, ge=1, validation_alias=AliasChoices("quotation_next_num", "sph_next_num")
    )
    quotation_padding: Optional[int] = Field(
        default=None, ge=1, le=12,
        validation_alias=AliasChoices("quotation_padding", "sph_padding")
    )


class CompanySettingsResponse(BaseModel):
    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    user_id: str
    company_name: str
    legal_name: Optional[str] = None
    tax_id: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    workshop: Optional[str] = None
    logo: Optional[str] = None
    signature_image: Optional[str] = None
    signature_name: Optional[str] = None
    default_tax_name: str
    default_tax_rate: float
    invoice_prefix: str
    invoice_next_num: int
    invoice_padding: int
    quotation_prefix: str
    quotation_next_num: int
    quotation_padding: int
    bank_accounts: List[BankAccount] = []
    created_at: datetime
    updated_at: datetime


class NumberingPreview(BaseModel):
    invoice: str
    quotation: str
