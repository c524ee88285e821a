# Overview: Discriminated success/failure result used at the service boundary.

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

from .errors import LedgerError
from .extensions import db

T = TypeVar("T")


@dataclass
class ActionResult(Generic[T]):
    """
    Outcome of a ledger action.

    success=True carries `value`; success=False carries the error message,
    its kind (`code`) and the offending field, so callers can render inline
    messages without catching exceptions.
    """
    success: bool
    value: Optional[T] = None
    error: Optional[str] = None
    code: Optional[str] = None
    field: Optional[str] = None
    http_status: int = 200
    details: dict = dataclasses.field(default_factory=dict)

    @classmethod
    def ok(cls, value: T, http_status: int = 200) -> "ActionResult[T]":
        return cls(success=True, value=value, http_status=http_status)

    @classmethod
    def fail(cls, exc: LedgerError) -> "ActionResult[T]":
        return cls(
            success=False,
            error=exc.message,
            code=exc.code,
            field=exc.field,
            http_status=exc.http_status,
            details=exc.details,
        )

    def error_payload(self) -> dict:
        payload: dict[str, Any] = {"error": self.error, "code": self.code}
        if self.field:
            payload["field"] = self.field
        if self.details:
            payload["details"] = self.details
        return payload


def run_action(func: Callable[..., T], *args, **kwargs) -> ActionResult[T]:
    """
    Invoke a service function and fold domain errors into an ActionResult.

    Only LedgerError subclasses are folded (after rolling back the unit of
    work); anything else, such as an unreachable database, propagates to the
    caller's generic error handler.
    """
    try:
        return ActionResult.ok(func(*args, **kwargs))
    except LedgerError as exc:
        db.session.rollback()
        return ActionResult.fail(exc)
