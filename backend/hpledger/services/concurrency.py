# Overview: Row locking and retry helpers for ledger writes.

from __future__ import annotations

import time

from flask import current_app, has_app_context
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConcurrencyConflictError
from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    The version_id columns still catch lost updates there.
    """
    return query.with_for_update()


def _configured_attempts() -> int:
    if has_app_context():
        return int(current_app.config.get("CONCURRENCY_RETRY_ATTEMPTS", 2))
    return 2


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float = 0.05):
    """
    Execute a DB unit of work with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, lock timeouts) and StaleDataError
    (optimistic version conflicts). The session is rolled back before every
    retry so `func` always starts from fresh rows. When the budget is spent
    the failure surfaces as ConcurrencyConflictError.
    """
    attempts = attempts or _configured_attempts()
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if has_app_context():
                current_app.logger.warning(
                    "Concurrency conflict (attempt %s/%s): %s", attempt + 1, attempts, exc
                )
            if attempt >= attempts - 1:
                raise ConcurrencyConflictError(
                    "The record was changed by another request; please retry"
                ) from exc
            time.sleep(backoff_base * (2 ** attempt))
    raise ConcurrencyConflictError("The record was changed by another request; please retry")


def run_unit(func, *, commit: bool):
    """
    Run `func` as its own retried transaction, or inline inside the caller's.

    commit=False is used when the caller (an import savepoint, a composite
    workflow) owns the transaction; no retry happens there because a rollback
    would discard the caller's work.
    """
    if not commit:
        return func()

    def _op():
        result = func()
        db.session.commit()
        return result

    return run_with_retry(_op)
