"""
Tests for customer wallets.

The balance only moves when a transaction is confirmed and never goes
negative.
"""

import pytest

from hpledger.errors import (
    AlreadyProcessedError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from hpledger.models import Customer
from hpledger.services import wallet_service
from hpledger.services.permission_service import capability_for


class TestDeposits:

    def test_confirmer_deposit_applies_immediately(self, customer, admin):
        txn = wallet_service.deposit(customer.id, 50000, admin, reference="MP-77")

        assert txn.status == "CONFIRMED"
        assert txn.balance_before_cents == 0
        assert txn.balance_after_cents == 50000
        assert wallet_service.get_wallet(customer.id)["balance_cents"] == 50000

    def test_collector_deposit_waits_for_confirmation(self, customer, collector, accountant):
        txn = wallet_service.deposit(customer.id, 50000, collector)

        wallet = wallet_service.get_wallet(customer.id)
        assert txn.status == "PENDING"
        assert wallet["balance_cents"] == 0
        assert wallet["pending_cents"] == 50000

        confirmed = wallet_service.confirm_wallet_transaction(txn.id, accountant)

        assert confirmed.status == "CONFIRMED"
        assert confirmed.confirmed_by_user_id == accountant.user_id
        assert wallet_service.get_wallet(customer.id)["balance_cents"] == 50000

    def test_confirm_twice_is_refused(self, customer, collector, accountant):
        txn = wallet_service.deposit(customer.id, 1000, collector)
        wallet_service.confirm_wallet_transaction(txn.id, accountant)

        with pytest.raises(AlreadyProcessedError):
            wallet_service.confirm_wallet_transaction(txn.id, accountant)

    def test_rejected_deposit_never_counts(self, customer, collector, accountant):
        txn = wallet_service.deposit(customer.id, 1000, collector)

        rejected = wallet_service.reject_wallet_transaction(txn.id, accountant, "No such transfer")

        assert rejected.status == "REJECTED"
        assert "No such transfer" in rejected.description
        assert wallet_service.get_wallet(customer.id)["balance_cents"] == 0

    def test_confirmation_needs_authority(self, customer, collector, plain_accountant):
        txn = wallet_service.deposit(customer.id, 1000, collector)
        with pytest.raises(PermissionDeniedError):
            wallet_service.confirm_wallet_transaction(txn.id, plain_accountant)

    def test_other_business_cannot_deposit(self, customer, other_business):
        outsider = capability_for(other_business.users[0])
        with pytest.raises(NotFoundError):
            wallet_service.deposit(customer.id, 1000, outsider)

    def test_amount_must_be_positive(self, customer, admin):
        with pytest.raises(ValidationError):
            wallet_service.deposit(customer.id, 0, admin)


class TestAdjustments:

    def test_addition_and_subtraction(self, customer, admin):
        wallet_service.adjust_wallet(customer.id, 5000, "Opening balance", True, admin)
        txn = wallet_service.adjust_wallet(customer.id, 2000, "Correction", False, admin)

        assert txn.type == "ADJUSTMENT"
        assert txn.amount_cents == -2000
        assert wallet_service.get_wallet(customer.id)["balance_cents"] == 3000

    def test_cannot_go_negative(self, db_session, customer, admin):
        wallet_service.adjust_wallet(customer.id, 1000, "Opening balance", True, admin)

        with pytest.raises(ValidationError):
            wallet_service.adjust_wallet(customer.id, 1500, "Too much", False, admin)
        db_session.rollback()

        assert db_session.get(Customer, customer.id).wallet_balance_cents == 1000

    def test_description_required(self, customer, admin):
        with pytest.raises(ValidationError):
            wallet_service.adjust_wallet(customer.id, 100, " ", True, admin)

    def test_collector_cannot_adjust(self, customer, collector):
        with pytest.raises(PermissionDeniedError):
            wallet_service.adjust_wallet(customer.id, 100, "Gift", True, collector)
