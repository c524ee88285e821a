"""
Tests for the retry wrapper around ledger units of work.

A version conflict is retried once; a conflict that survives the retry
surfaces as ConcurrencyConflictError (HTTP 409).
"""

import pytest
from sqlalchemy.orm.exc import StaleDataError

from hpledger.errors import ConcurrencyConflictError
from hpledger.models import Customer
from hpledger.services import concurrency, payment_service


class TestRunUnit:

    def test_conflict_is_retried_then_committed(self, db_session, customer, monkeypatch):
        monkeypatch.setattr(concurrency.time, "sleep", lambda _seconds: None)
        calls = []

        def _op():
            calls.append(1)
            if len(calls) == 1:
                raise StaleDataError("row changed underneath")
            row = db_session.get(Customer, customer.id)
            row.city = "Mombasa"
            return row.id

        result = concurrency.run_unit(_op, commit=True)
        db_session.rollback()

        assert result == customer.id
        assert len(calls) == 2
        assert db_session.get(Customer, customer.id).city == "Mombasa"

    def test_persistent_conflict_raises(self, app, db_session, monkeypatch):
        monkeypatch.setattr(concurrency.time, "sleep", lambda _seconds: None)
        calls = []

        def _op():
            calls.append(1)
            raise StaleDataError("row changed underneath")

        with pytest.raises(ConcurrencyConflictError):
            concurrency.run_unit(_op, commit=True)

        assert len(calls) == app.config["CONCURRENCY_RETRY_ATTEMPTS"]

    def test_inline_unit_is_not_retried(self, db_session):
        calls = []

        def _op():
            calls.append(1)
            raise StaleDataError("row changed underneath")

        with pytest.raises(StaleDataError):
            concurrency.run_unit(_op, commit=False)

        assert len(calls) == 1


class TestConflictOverHttp:

    def test_record_payment_conflict_is_409(self, client, headers, make_purchase, admin_user, monkeypatch):
        purchase = make_purchase()
        monkeypatch.setattr(concurrency.time, "sleep", lambda _seconds: None)

        def _stale(*_args, **_kwargs):
            raise StaleDataError("row changed underneath")

        monkeypatch.setattr(payment_service, "lock_purchase", _stale)

        response = client.post(
            "/api/payments/",
            json={"purchase_id": purchase.id, "amount": "100"},
            headers=headers(admin_user),
        )

        assert response.status_code == 409
        assert response.get_json()["code"] == "CONCURRENCY_CONFLICT"
