"""
Tests for the pure balance/status derivation.
"""

from datetime import date, datetime
from types import SimpleNamespace

from hpledger.services.reconciliation import (
    derive_status,
    is_waybill_eligible,
    outstanding_balance,
    reconcile,
    refundable_ceiling,
)


def _payment(amount, confirmed=True, rejected=False):
    return SimpleNamespace(
        amount_cents=amount,
        is_confirmed=confirmed,
        rejected_at=datetime(2026, 1, 2) if rejected else None,
    )


def _refund(amount, status="PROCESSED", refund_id=None):
    return SimpleNamespace(id=refund_id, amount_cents=amount, status=status)


DUE = date(2026, 6, 1)


class TestOutstanding:

    def test_never_negative(self):
        assert outstanding_balance(1000, 1500) == 0

    def test_processed_refunds_are_netted(self):
        assert outstanding_balance(110000, 0, 20000) == 90000


class TestDeriveStatus:

    def test_completed_wins_over_overdue(self):
        assert derive_status(0, 110000, DUE, date(2026, 7, 1)) == "COMPLETED"

    def test_overdue_when_past_due_with_balance(self):
        assert derive_status(500, 0, DUE, date(2026, 6, 2)) == "OVERDUE"

    def test_due_today_is_not_overdue(self):
        assert derive_status(500, 0, DUE, DUE) == "PENDING"

    def test_active_after_a_payment(self):
        assert derive_status(500, 100, DUE, date(2026, 1, 1)) == "ACTIVE"


class TestReconcile:
    """Only confirmed, unrejected payments and processed refunds count."""

    def test_ignores_unconfirmed_and_rejected_payments(self):
        state = reconcile(
            110000,
            [_payment(50000, confirmed=False), _payment(30000), _payment(10000, rejected=True)],
            [],
            DUE,
            date(2026, 1, 1),
        )
        assert state.amount_paid_cents == 30000
        assert state.outstanding_cents == 80000
        assert state.status == "ACTIVE"

    def test_ignores_unprocessed_refunds(self):
        state = reconcile(
            110000, [], [_refund(20000, status="APPROVED"), _refund(5000)], DUE, date(2026, 1, 1)
        )
        assert state.refunded_cents == 5000
        assert state.outstanding_cents == 105000

    def test_waybill_eligibility_only_for_deliverable_types(self):
        paid = [_payment(1000)]
        assert reconcile(1000, paid, [], DUE, DUE, purchase_type="LAYAWAY").waybill_eligible
        assert not reconcile(1000, paid, [], DUE, DUE, purchase_type="CREDIT").waybill_eligible

    def test_recomputing_is_idempotent(self):
        payments = [_payment(40000), _payment(2000, confirmed=False)]
        refunds = [_refund(1000)]
        first = reconcile(110000, payments, refunds, DUE, date(2026, 1, 1))
        second = reconcile(110000, payments, refunds, DUE, date(2026, 1, 1))
        assert first == second


class TestRefundableCeiling:

    def test_excludes_the_refund_being_processed(self):
        refunds = [_refund(20000, refund_id=1), _refund(30000, refund_id=2)]
        assert refundable_ceiling(110000, refunds) == 60000
        assert refundable_ceiling(110000, refunds, exclude_id=2) == 90000

    def test_bounded_by_money_collected(self):
        refunds = [_refund(20000, refund_id=1)]
        assert refundable_ceiling(110000, [], paid_cents=0) == 0
        assert refundable_ceiling(110000, refunds, paid_cents=50000) == 30000
        assert refundable_ceiling(110000, refunds, exclude_id=1, paid_cents=50000) == 50000


class TestWaybillEligibility:

    def test_refunded_layaway_is_not_eligible(self):
        state = reconcile(110000, [], [_refund(110000)], DUE, DUE, purchase_type="LAYAWAY")

        assert state.status == "COMPLETED"
        assert not state.waybill_eligible

    def test_refund_on_settled_layaway_withdraws_eligibility(self):
        assert is_waybill_eligible(110000, 110000, 0, "LAYAWAY")
        assert not is_waybill_eligible(110000, 110000, 10000, "LAYAWAY")
        assert not is_waybill_eligible(110000, 110000, 0, "CREDIT")
