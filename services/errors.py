"""
Invoicing error taxonomy.

Services raise these; server.py turns them into JSON responses with the
status code carried by each class.
"""

from fastapi import status


class InvoicingError(Exception):
    """Base class for every business error raised by the services."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(InvoicingError):
    """Missing client, no usable line items, or another rejected input."""

    status_code = status.HTTP_400_BAD_REQUEST


class InvalidLineItem(ValidationError):
    """A line item with a non-positive quantity or a negative unit price."""


class InvalidPayment(ValidationError):
    """A payment whose amount is not strictly positive."""


class NotFound(InvoicingError):
    """Record absent or owned by another user."""

    status_code = status.HTTP_404_NOT_FOUND


class NumberGenerationExhausted(InvoicingError):
    """The uniqueness loop ran out of attempts; the series is likely corrupt."""


class PersistenceError(InvoicingError):
    """A store or transaction failure; the unit of work was rolled back."""
