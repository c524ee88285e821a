"""
Tests for the refund workflow (request -> approve -> process / reject).
"""

import pytest

from hpledger.errors import (
    InvalidStateTransitionError,
    OverrefundError,
    PermissionDeniedError,
    ValidationError,
)
from hpledger.models import Customer, WalletTransaction
from hpledger.services import delivery_service, payment_service, purchase_service, refund_service, wallet_service


@pytest.fixture
def purchase(make_purchase):
    """Total 1100.00 with 500.00 collected as a down payment."""
    return make_purchase(down_payment_cents=50000)


def _request(purchase, actor, amount, reason="CUSTOMER_REQUEST", **kwargs):
    return refund_service.create_refund_request(
        purchase.id, purchase.customer_id, reason, amount, actor, **kwargs
    )


class TestRefundWorkflow:

    def test_processed_refund_reduces_outstanding(self, purchase, collector, accountant):
        refund = _request(purchase, collector, 20000)
        assert refund.refund_number == "RF-000001"
        assert refund.status == "PENDING"

        refund_service.approve_refund(refund.id, accountant)
        processed = refund_service.process_refund(refund.id, "MPESA123", collector)

        assert processed.status == "PROCESSED"
        assert processed.transaction_reference == "MPESA123"
        purchase = purchase_service.get_purchase(purchase.id)
        assert purchase.refunded_cents == 20000
        assert purchase.outstanding_cents == 40000

    def test_refund_beyond_remaining_total_is_refused(self, db_session, purchase, collector, accountant):
        refund = _request(purchase, collector, 20000)
        refund_service.approve_refund(refund.id, accountant)
        refund_service.process_refund(refund.id, "MPESA123", collector)

        with pytest.raises(OverrefundError) as exc:
            _request(purchase, collector, 100000)
        db_session.rollback()

        assert exc.value.details["refundable_cents"] == 30000

    def test_ceiling_is_rechecked_at_processing(self, db_session, purchase, collector, accountant):
        first = _request(purchase, collector, 30000)
        second = _request(purchase, collector, 30000)
        refund_service.approve_refund(first.id, accountant)
        refund_service.approve_refund(second.id, accountant)

        refund_service.process_refund(first.id, "BANK-1", collector)
        with pytest.raises(OverrefundError):
            refund_service.process_refund(second.id, "BANK-2", collector)
        db_session.rollback()

        assert refund_service.get_refund(second.id).status == "APPROVED"

    def test_refund_to_wallet(self, db_session, purchase, customer, collector, accountant):
        refund = _request(purchase, collector, 15000)
        refund_service.approve_refund(refund.id, accountant)

        processed = refund_service.process_refund(refund.id, "WALLET", collector)

        assert processed.refund_method == "WALLET"
        assert processed.transaction_reference == "wallet"
        assert wallet_service.get_wallet(customer.id)["balance_cents"] == 15000
        credit = db_session.get(WalletTransaction, processed.wallet_transaction_id)
        assert credit.type == "REFUND"
        assert credit.status == "CONFIRMED"

    def test_reject_is_terminal(self, purchase, collector, accountant):
        refund = _request(purchase, collector, 5000)

        rejected = refund_service.reject_refund(refund.id, accountant, "Not eligible")

        assert rejected.status == "REJECTED"
        with pytest.raises(InvalidStateTransitionError):
            refund_service.approve_refund(refund.id, accountant)


class TestRefundRules:

    def test_other_reason_needs_description(self, purchase, collector):
        with pytest.raises(ValidationError):
            _request(purchase, collector, 1000, reason="OTHER")

        refund = _request(purchase, collector, 1000, reason="OTHER", custom_reason="Late delivery")
        assert refund.custom_reason == "Late delivery"

    def test_unknown_reason_is_refused(self, purchase, collector):
        with pytest.raises(ValidationError):
            _request(purchase, collector, 1000, reason="BORED")

    def test_customer_must_own_purchase(self, db_session, purchase, shop, collector):
        other = Customer(
            business_id=purchase.business_id,
            shop_id=shop.id,
            first_name="Peter",
            last_name="Otieno",
            phone="0700000002",
        )
        db_session.add(other)
        db_session.commit()

        with pytest.raises(ValidationError):
            refund_service.create_refund_request(purchase.id, other.id, "CUSTOMER_REQUEST", 1000, collector)

    def test_approval_requires_authority(self, purchase, collector, plain_accountant):
        refund = _request(purchase, collector, 1000)
        with pytest.raises(PermissionDeniedError):
            refund_service.approve_refund(refund.id, collector)
        with pytest.raises(PermissionDeniedError):
            refund_service.reject_refund(refund.id, plain_accountant)

    def test_pending_refund_cannot_be_processed(self, purchase, collector):
        refund = _request(purchase, collector, 1000)
        with pytest.raises(InvalidStateTransitionError):
            refund_service.process_refund(refund.id, "CASH-1", collector)

    def test_processing_requires_reference(self, purchase, collector, accountant):
        refund = _request(purchase, collector, 1000)
        refund_service.approve_refund(refund.id, accountant)
        with pytest.raises(ValidationError):
            refund_service.process_refund(refund.id, " ", collector)

    def test_list_by_status(self, business, purchase, collector, accountant):
        first = _request(purchase, collector, 1000)
        _request(purchase, collector, 2000)
        refund_service.approve_refund(first.id, accountant)

        approved = refund_service.list_refunds(business.id, status="approved")

        assert [r.id for r in approved] == [first.id]


class TestRefundsAgainstCollectedMoney:

    def test_unpaid_layaway_cannot_be_refunded(self, db_session, make_purchase, collector):
        layaway = make_purchase(purchase_type="LAYAWAY")

        with pytest.raises(OverrefundError) as exc:
            _request(layaway, collector, 110000)
        db_session.rollback()

        assert exc.value.details["refundable_cents"] == 0
        assert not purchase_service.get_purchase(layaway.id).waybill_eligible

    def test_unconfirmed_payments_are_not_refundable(self, db_session, make_purchase, collector, as_of):
        purchase = make_purchase()
        payment_service.record_payment(purchase.id, 50000, "CASH", None, collector, as_of=as_of)

        with pytest.raises(OverrefundError):
            _request(purchase, collector, 1000)
        db_session.rollback()

    def test_refund_on_settled_layaway_blocks_waybill(self, db_session, make_purchase, admin, collector, accountant):
        layaway = make_purchase(purchase_type="LAYAWAY", down_payment_cents=110000)
        assert layaway.waybill_eligible

        refund = _request(layaway, collector, 10000, reason="OVERCHARGE")
        refund_service.approve_refund(refund.id, accountant)
        refund_service.process_refund(refund.id, "wallet", collector)

        assert not purchase_service.get_purchase(layaway.id).waybill_eligible
        with pytest.raises(InvalidStateTransitionError):
            delivery_service.generate_waybill(layaway.id, admin)
        db_session.rollback()
