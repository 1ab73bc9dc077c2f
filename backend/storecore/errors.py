# Overview: Domain error taxonomy shared by services and routes.

"""
Every failure the core reports derives from StoreCoreError.

Routes translate the class into an HTTP status via ``http_status``;
services never swallow these and never retry them automatically.
"""

from __future__ import annotations


class StoreCoreError(Exception):
    """Base class for domain errors. Carries an optional details dict."""
    http_status = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "code": type(self).__name__,
            "details": self.details,
        }


class ValidationError(StoreCoreError, ValueError):
    """400-level input problem, raised before any state change."""
    http_status = 400


class InvalidQuantity(ValidationError):
    """Quantity is not a positive integer."""


class InvalidReason(ValidationError):
    """Adjustment reason is not one of the known codes."""


class InvalidAmount(ValidationError):
    """Monetary amount is malformed or negative."""


class EmptyLineSet(ValidationError):
    """Purchase order was submitted with no lines."""


class InvalidLineQuantity(ValidationError):
    """Purchase order line has a non-positive quantity or unit price."""


class NotFoundError(StoreCoreError):
    """Referenced record does not exist."""
    http_status = 404


class InsufficientStock(StoreCoreError):
    """A stock delta would drive on-hand quantity below zero."""
    http_status = 409


class InvalidStateTransition(StoreCoreError):
    """Transition requested out of a terminal state."""
    http_status = 409


class SessionAlreadyOpen(StoreCoreError):
    """A cash session is already open."""
    http_status = 409


class InvalidSessionState(StoreCoreError):
    """Cash session is not in the state the operation requires."""
    http_status = 409


class PersistenceError(StoreCoreError):
    """Backing store failed; the underlying exception is chained."""
    http_status = 503


class PartialReceiptError(StoreCoreError):
    """
    Order receipt stopped on a failing line.

    ``result`` is the ReceiptResult describing which lines were applied
    (with their before/after stock) and which line failed.
    """
    http_status = 409

    def __init__(self, message: str, result):
        super().__init__(message, details=result.to_dict())
        self.result = result
