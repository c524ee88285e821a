# Overview: Domain error taxonomy shared by the ledger services.

from __future__ import annotations


class LedgerError(Exception):
    """
    Base class for expected, user-facing ledger failures.

    code:  stable machine-readable kind (maps to HTTP status at the boundary)
    field: input field the failure belongs to, when there is one
    """
    code = "LEDGER_ERROR"
    http_status = 400

    def __init__(self, message: str, *, field: str | None = None, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.field = field
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {"error": self.message, "code": self.code}
        if self.field:
            payload["field"] = self.field
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(LedgerError):
    """Malformed or missing input (zero quantity, missing customer, ...)."""
    code = "VALIDATION_ERROR"


class NotFoundError(LedgerError):
    """Referenced entity does not exist in the addressed business."""
    code = "NOT_FOUND"
    http_status = 404


class InvalidStateTransitionError(LedgerError):
    """Operation attempted on an entity outside the required source state."""
    code = "INVALID_STATE_TRANSITION"
    http_status = 409


class AlreadyProcessedError(InvalidStateTransitionError):
    """Payment (or wallet transaction) already confirmed or rejected."""
    code = "ALREADY_PROCESSED"


class OverpaymentError(LedgerError):
    """Amount would push confirmed payments past the purchase total."""
    code = "OVERPAYMENT"
    http_status = 409


class OverrefundError(LedgerError):
    """Amount would push processed refunds past the purchase total."""
    code = "OVERREFUND"
    http_status = 409


class ConcurrencyConflictError(LedgerError):
    """Row lock or version conflict that survived the retry budget."""
    code = "CONCURRENCY_CONFLICT"
    http_status = 409


class PermissionDeniedError(LedgerError):
    """Actor lacks the capability the operation requires."""
    code = "PERMISSION_DENIED"
    http_status = 403
