"""
Error taxonomy of the coordination engine.

Every error carries a stable ``code`` so that the realtime router and the
REST layer can report it to the sender as a structured payload.
"""

from __future__ import annotations

from typing import Any


class CoordinationError(Exception):
    """Base class for failures that terminate a single inbound request."""

    code = "coordination_error"

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_payload(self) -> dict[str, Any]:
        return {"code": self.code, "error": self.message, **self.context}


class ValidationError(CoordinationError):
    """Malformed or missing booking / identity fields."""

    code = "validation_error"


class PersistenceError(CoordinationError):
    """The durable store rejected a read or write."""

    code = "persistence_error"


class NotFound(CoordinationError):
    code = "not_found"


class OfferNotFound(CoordinationError):
    """No pending offer is registered under the request id (or it expired)."""

    code = "offer_not_found"


class OfferAlreadyResolved(CoordinationError):
    """Another vendor won the race for this offer."""

    code = "offer_already_resolved"


class InvalidTransition(CoordinationError):
    """Raised when a booking status change violates the state machine."""

    code = "invalid_transition"


class NoPartnersAvailable(CoordinationError):
    """Informational: the booking exists but nobody could be offered it."""

    code = "no_partners_available"
