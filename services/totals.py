"""
Line-Item Totals Calculator

One rule for create and update:

    subtotal        = sum(quantity * unit_price)
    discount_amount = round(subtotal * discount_percent / 100)
    tax_amount      = round((subtotal - discount_amount) * tax_rate / 100)
    total           = subtotal - discount_amount + tax_amount

Currency values are rounded half-up to whole rupiah. Items with an empty
description are dropped before anything is computed or stored.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Union

from models.document import DocumentTotals, LineItem, StoredLineItem
from services.errors import InvalidLineItem

# Minor-unit precision of the document currency (IDR has none)
CURRENCY_DECIMALS = 0
CURRENCY_QUANTUM = Decimal(1).scaleb(-CURRENCY_DECIMALS)

HUNDRED = Decimal(100)

Number = Union[int, float, Decimal]


def _dec(value: Number) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def round_currency(value: Number) -> Decimal:
    return _dec(value).quantize(CURRENCY_QUANTUM, rounding=ROUND_HALF_UP)


def as_number(value: Decimal) -> Union[int, float]:
    """BSON has no Decimal; whole amounts are stored as int"""
    if value == value.to_integral_value():
        return int(value)
    return float(value)


def prepare_line_items(items: Iterable[LineItem]) -> List[LineItem]:
    """Drop items without a description and reject invalid quantities/prices"""
    kept = [item for item in items if item.description and item.description.strip()]

    for item in kept:
        if item.quantity <= 0:
            raise InvalidLineItem(f"Quantity must be greater than 0 for '{item.description}'")
        if item.unit_price < 0:
            raise InvalidLineItem(f"Unit price cannot be negative for '{item.description}'")

    return kept


def line_amount(item: LineItem) -> Decimal:
    return round_currency(_dec(item.quantity) * _dec(item.unit_price))


def stored_line_items(items: Iterable[LineItem]) -> List[StoredLineItem]:
    """Items as persisted: filtered, with their line amount"""
    return [
        StoredLineItem(**item.model_dump(), amount=as_number(line_amount(item)))
        for item in prepare_line_items(items)
    ]


def compute_totals(
    items: Iterable[LineItem],
    tax_rate_percent: Number,
    discount_percent: Number = 0
) -> DocumentTotals:
    """Compute subtotal, discount, tax and total for a list of line items"""
    kept = prepare_line_items(items)

    subtotal = round_currency(sum(
        (_dec(item.quantity) * _dec(item.unit_price) for item in kept),
        Decimal(0)
    ))
    discount_amount = round_currency(subtotal * _dec(discount_percent) / HUNDRED)
    tax_amount = round_currency((subtotal - discount_amount) * _dec(tax_rate_percent) / HUNDRED)
    total = subtotal - discount_amount + tax_amount

    return DocumentTotals(
        subtotal=as_number(subtotal),
        discount_amount=as_number(discount_amount),
        tax_amount=as_number(tax_amount),
        total=as_number(total)
    )
