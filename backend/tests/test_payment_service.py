"""
Tests for payment recording and the confirmation lifecycle.

Key invariants:
- Only confirmed, unrejected payments reduce the balance
- Confirmed payments never exceed the purchase total
- CONFIRMED and REJECTED are terminal
"""

import pytest

from hpledger.errors import (
    AlreadyProcessedError,
    NotFoundError,
    OverpaymentError,
    PermissionDeniedError,
    ValidationError,
)
from hpledger.models import Payment, WalletTransaction
from hpledger.services import payment_service, purchase_service, wallet_service
from hpledger.services.permission_service import capability_for


class TestRecordPayment:

    def test_confirming_recorder_settles_purchase(self, make_purchase, admin, as_of):
        """A full payment by someone with confirm authority completes the purchase."""
        purchase = make_purchase()

        payment = payment_service.record_payment(purchase.id, 110000, "CASH", "R-1", admin, as_of=as_of)

        assert payment.state == "CONFIRMED"
        purchase = purchase_service.get_purchase(purchase.id)
        assert purchase.amount_paid_cents == 110000
        assert purchase.outstanding_cents == 0
        assert purchase.status == "COMPLETED"

    def test_collector_payment_waits_for_confirmation(self, make_purchase, collector, as_of):
        purchase = make_purchase()

        payment = payment_service.record_payment(purchase.id, 50000, "MOBILE_MONEY", "MP-1", collector, as_of=as_of)

        assert payment.state == "UNCONFIRMED"
        assert payment.recorded_by_role == "DEBT_COLLECTOR"
        purchase = purchase_service.get_purchase(purchase.id)
        assert purchase.outstanding_cents == 110000
        assert purchase.status == "PENDING"

    def test_overpayment_is_rejected_without_side_effects(self, db_session, make_purchase, admin, as_of):
        purchase = make_purchase()

        with pytest.raises(OverpaymentError) as exc:
            payment_service.record_payment(purchase.id, 120000, "CASH", None, admin, as_of=as_of)
        db_session.rollback()

        assert exc.value.details["outstanding_cents"] == 110000
        assert db_session.query(Payment).count() == 0
        assert purchase_service.get_purchase(purchase.id).outstanding_cents == 110000

    def test_payment_on_settled_purchase_is_refused(self, make_purchase, admin, as_of):
        purchase = make_purchase(down_payment_cents=110000)
        with pytest.raises(OverpaymentError):
            payment_service.record_payment(purchase.id, 1, "CASH", None, admin, as_of=as_of)

    @pytest.mark.parametrize("amount,method", [(0, "CASH"), (-5, "CASH"), ("x", "CASH"), (100, "CHEQUE")])
    def test_invalid_input(self, make_purchase, admin, amount, method):
        purchase = make_purchase()
        with pytest.raises(ValidationError):
            payment_service.record_payment(purchase.id, amount, method, None, admin)

    def test_other_business_cannot_pay(self, make_purchase, other_business):
        purchase = make_purchase()
        outsider = capability_for(other_business.users[0])
        with pytest.raises(NotFoundError):
            payment_service.record_payment(purchase.id, 1000, "CASH", None, outsider)


class TestWalletPayments:

    def test_wallet_payment_debits_balance(self, db_session, make_purchase, customer, admin, as_of):
        purchase = make_purchase()
        wallet_service.deposit(customer.id, 50000, admin)

        payment_service.record_payment(purchase.id, 30000, "WALLET", None, admin, as_of=as_of)

        assert wallet_service.get_wallet(customer.id)["balance_cents"] == 20000
        debit = db_session.query(WalletTransaction).filter_by(type="PAYMENT").one()
        assert debit.amount_cents == -30000
        assert debit.balance_before_cents == 50000
        assert debit.balance_after_cents == 20000

    def test_wallet_payment_beyond_balance_is_refused(self, make_purchase, customer, admin, as_of):
        purchase = make_purchase()
        wallet_service.deposit(customer.id, 50000, admin)

        with pytest.raises(ValidationError):
            payment_service.record_payment(purchase.id, 60000, "WALLET", None, admin, as_of=as_of)


class TestConfirmation:

    def test_confirm_applies_payment(self, make_purchase, collector, accountant, as_of):
        purchase = make_purchase()
        payment = payment_service.record_payment(purchase.id, 50000, "CASH", None, collector, as_of=as_of)

        confirmed = payment_service.confirm_payment(payment.id, accountant, as_of=as_of)

        assert confirmed.state == "CONFIRMED"
        assert confirmed.confirmed_by_user_id == accountant.user_id
        purchase = purchase_service.get_purchase(purchase.id)
        assert purchase.outstanding_cents == 60000
        assert purchase.status == "ACTIVE"

    def test_confirm_without_authority_is_denied(self, make_purchase, collector, plain_accountant, as_of):
        purchase = make_purchase()
        payment = payment_service.record_payment(purchase.id, 50000, "CASH", None, collector, as_of=as_of)

        with pytest.raises(PermissionDeniedError):
            payment_service.confirm_payment(payment.id, plain_accountant)
        with pytest.raises(PermissionDeniedError):
            payment_service.confirm_payment(payment.id, collector)

        assert payment_service.get_payment(payment.id).state == "UNCONFIRMED"

    def test_reject_leaves_balance_untouched(self, make_purchase, collector, accountant, as_of):
        purchase = make_purchase()
        payment = payment_service.record_payment(purchase.id, 50000, "CASH", None, collector, as_of=as_of)

        rejected = payment_service.reject_payment(payment.id, accountant, "Receipt does not match")

        assert rejected.state == "REJECTED"
        assert rejected.rejection_reason == "Receipt does not match"
        assert purchase_service.get_purchase(purchase.id).outstanding_cents == 110000

    def test_reject_requires_reason(self, make_purchase, collector, accountant, as_of):
        purchase = make_purchase()
        payment = payment_service.record_payment(purchase.id, 50000, "CASH", None, collector, as_of=as_of)
        with pytest.raises(ValidationError):
            payment_service.reject_payment(payment.id, accountant, "  ")

    def test_terminal_states_cannot_be_reprocessed(self, db_session, make_purchase, collector, accountant, as_of):
        purchase = make_purchase()
        confirmed = payment_service.record_payment(purchase.id, 10000, "CASH", None, collector, as_of=as_of)
        rejected = payment_service.record_payment(purchase.id, 10000, "CASH", None, collector, as_of=as_of)
        payment_service.confirm_payment(confirmed.id, accountant, as_of=as_of)
        payment_service.reject_payment(rejected.id, accountant, "duplicate")

        with pytest.raises(AlreadyProcessedError):
            payment_service.confirm_payment(confirmed.id, accountant, as_of=as_of)
        db_session.rollback()
        with pytest.raises(AlreadyProcessedError):
            payment_service.reject_payment(confirmed.id, accountant, "late")
        db_session.rollback()
        with pytest.raises(AlreadyProcessedError):
            payment_service.confirm_payment(rejected.id, accountant, as_of=as_of)
        db_session.rollback()

        assert purchase_service.get_purchase(purchase.id).outstanding_cents == 100000

    def test_confirm_rechecks_overpayment(self, db_session, make_purchase, collector, accountant, as_of):
        """Two pending payments that each fit cannot both be confirmed past the total."""
        purchase = make_purchase()
        first = payment_service.record_payment(purchase.id, 80000, "CASH", None, collector, as_of=as_of)
        second = payment_service.record_payment(purchase.id, 80000, "CASH", None, collector, as_of=as_of)

        payment_service.confirm_payment(first.id, accountant, as_of=as_of)
        with pytest.raises(OverpaymentError):
            payment_service.confirm_payment(second.id, accountant, as_of=as_of)
        db_session.rollback()

        assert payment_service.get_payment(second.id).state == "UNCONFIRMED"
        assert purchase_service.get_purchase(purchase.id).outstanding_cents == 30000


class TestPaymentQueries:

    def test_pending_queue_and_summary(self, business, make_purchase, collector, admin, as_of):
        purchase = make_purchase(down_payment_cents=10000)
        payment_service.record_payment(purchase.id, 20000, "CASH", None, collector, as_of=as_of)
        payment_service.record_payment(purchase.id, 5000, "CARD", None, admin, as_of=as_of)

        pending = payment_service.get_pending_payments(business.id)
        summary = payment_service.get_payment_summary(purchase.id, business.id)

        assert [p.amount_cents for p in pending] == [20000]
        assert summary["confirmed_cents"] == 15000
        assert summary["pending_cents"] == 20000
        assert summary["outstanding_cents"] == 95000
        assert summary["counts"]["CONFIRMED"] == 2
