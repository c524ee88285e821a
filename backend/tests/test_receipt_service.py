"""
Tests for receipt data (payment and wallet deposit receipts).
"""

import pytest

from hpledger.errors import NotFoundError, ValidationError
from hpledger.models import WalletTransaction
from hpledger.services import payment_service, receipt_service, wallet_service


class TestPaymentReceipt:

    def test_balances_before_and_after(self, make_purchase, admin, as_of):
        purchase = make_purchase()
        payment_service.record_payment(purchase.id, 30000, "CASH", "R-1", admin, as_of=as_of)
        second = payment_service.record_payment(purchase.id, 50000, "MOBILE_MONEY", "MP-2", admin, as_of=as_of)

        receipt = receipt_service.build_payment_receipt(second.id, purchase.business_id)

        assert receipt["receipt_type"] == "PAYMENT"
        assert receipt["receipt_number"] == f"{purchase.purchase_number}-P{second.id}"
        assert receipt["previous_balance"] == {"cents": 80000, "formatted": "800.00"}
        assert receipt["new_balance"]["cents"] == 30000
        assert receipt["payment"]["method"] == "MOBILE_MONEY"
        assert receipt["customer"]["name"] == "Jane Wanjiru"
        assert receipt["shop"]["slug"] == "main"
        assert receipt["items"][0]["line_total"]["cents"] == 100000
        assert receipt["confirmed_by"]["role"] == "BUSINESS_ADMIN"

    def test_unconfirmed_payment_shows_current_balance(self, make_purchase, collector, as_of):
        purchase = make_purchase()
        payment = payment_service.record_payment(purchase.id, 30000, "CASH", None, collector, as_of=as_of)

        receipt = receipt_service.build_payment_receipt(payment.id)

        assert receipt["payment"]["state"] == "UNCONFIRMED"
        assert receipt["previous_balance"]["cents"] == 110000
        assert receipt["new_balance"]["cents"] == 110000
        assert receipt["confirmed_by"] is None

    def test_receipt_is_tenant_scoped(self, make_purchase, admin, other_business, as_of):
        purchase = make_purchase()
        payment = payment_service.record_payment(purchase.id, 1000, "CASH", None, admin, as_of=as_of)
        with pytest.raises(NotFoundError):
            receipt_service.build_payment_receipt(payment.id, other_business.id)


class TestWalletReceipt:

    def test_deposit_receipt(self, customer, admin):
        wallet_service.deposit(customer.id, 20000, admin)
        txn = wallet_service.deposit(customer.id, 5000, admin, reference="MP-9")

        receipt = receipt_service.build_wallet_deposit_receipt(txn.id)

        assert receipt["receipt_number"] == f"WD-{txn.id:06d}"
        assert receipt["previous_balance"]["cents"] == 20000
        assert receipt["new_balance"]["cents"] == 25000
        assert receipt["reference"] == "MP-9"

    def test_only_deposits_get_receipts(self, db_session, make_purchase, customer, admin, as_of):
        purchase = make_purchase()
        wallet_service.deposit(customer.id, 5000, admin)
        payment_service.record_payment(purchase.id, 5000, "WALLET", None, admin, as_of=as_of)
        debit = db_session.query(WalletTransaction).filter_by(type="PAYMENT").one()

        with pytest.raises(ValidationError):
            receipt_service.build_wallet_deposit_receipt(debit.id)

    def test_deposit_receipt_is_tenant_scoped(self, customer, admin, other_business):
        txn = wallet_service.deposit(customer.id, 5000, admin)

        with pytest.raises(NotFoundError):
            receipt_service.build_wallet_deposit_receipt(txn.id, other_business.id)
        assert wallet_service.get_wallet_transaction(txn.id, customer.business_id).id == txn.id
