# Overview: Customer prepaid wallet: deposits, adjustments, refund credits, payment debits.

"""
Wallet Service

WHY: Customers can pre-load money and spend it on purchase payments, and
refunds can be credited back to the wallet instead of paid out.

INVARIANTS:
- Customer.wallet_balance_cents never goes negative.
- The balance only moves when a WalletTransaction becomes CONFIRMED; the
  transaction records balance_before/after at that moment.
- amount_cents is the signed change to the balance (credits positive,
  debits negative).
"""

from __future__ import annotations

from ..constants import (
    WALLET_STATUS_CONFIRMED,
    WALLET_STATUS_PENDING,
    WALLET_STATUS_REJECTED,
    WALLET_TXN_ADJUSTMENT,
    WALLET_TXN_DEPOSIT,
    WALLET_TXN_PAYMENT,
    WALLET_TXN_REFUND,
)
from ..errors import AlreadyProcessedError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Customer, WalletTransaction
from hpledger.time_utils import utcnow
from .audit_service import append_audit_event
from .concurrency import lock_for_update, run_unit
from .permission_service import RecorderCapability, require_confirm_authority, require_same_business


def _locked_customer(customer_id: int) -> Customer:
    customer = lock_for_update(db.session.query(Customer).filter_by(id=customer_id)).first()
    if not customer:
        raise NotFoundError(f"Customer {customer_id} not found", field="customer_id")
    return customer


def _apply(customer: Customer, txn: WalletTransaction, actor_user_id: int | None) -> None:
    before = int(customer.wallet_balance_cents or 0)
    after = before + int(txn.amount_cents)
    if after < 0:
        raise ValidationError(
            "Insufficient wallet balance",
            field="amount",
            details={"balance_cents": before, "requested_cents": -int(txn.amount_cents)},
        )
    customer.wallet_balance_cents = after
    txn.balance_before_cents = before
    txn.balance_after_cents = after
    txn.status = WALLET_STATUS_CONFIRMED
    txn.confirmed_by_user_id = actor_user_id
    txn.confirmed_at = utcnow()


def _audit(customer: Customer, txn: WalletTransaction, event_type: str, actor_user_id: int | None) -> None:
    append_audit_event(
        business_id=customer.business_id,
        event_type=event_type,
        entity_type="wallet_transaction",
        entity_id=txn.id,
        actor_user_id=actor_user_id,
        payment_id=txn.payment_id,
        refund_id=txn.refund_id,
        payload={"type": txn.type, "amount_cents": txn.amount_cents, "status": txn.status},
    )


def _positive(amount_cents: int) -> int:
    try:
        amount = int(amount_cents)
    except (TypeError, ValueError):
        raise ValidationError("Amount must be a whole number of cents", field="amount")
    if amount <= 0:
        raise ValidationError("Amount must be greater than zero", field="amount")
    return amount


# =============================================================================
# DEPOSITS
# =============================================================================

def deposit(
    customer_id: int,
    amount_cents: int,
    recorder: RecorderCapability,
    reference: str | None = None,
    description: str | None = None,
    commit: bool = True,
) -> WalletTransaction:
    """
    Record money loaded onto a customer's wallet.

    Confirmed immediately when the recorder can auto-confirm, otherwise left
    PENDING for an accountant.
    """
    amount = _positive(amount_cents)

    def _op() -> WalletTransaction:
        customer = _locked_customer(customer_id)
        require_same_business(recorder, customer.business_id)

        txn = WalletTransaction(
            customer_id=customer.id,
            shop_id=customer.shop_id,
            type=WALLET_TXN_DEPOSIT,
            amount_cents=amount,
            status=WALLET_STATUS_PENDING,
            reference=(reference or "").strip() or None,
            description=description or "Wallet deposit",
            created_by_user_id=recorder.user_id,
        )
        db.session.add(txn)
        if recorder.can_auto_confirm:
            _apply(customer, txn, recorder.user_id)
        db.session.flush()
        _audit(customer, txn, "WALLET_DEPOSIT_RECORDED", recorder.user_id)
        return txn

    return run_unit(_op, commit=commit)


def confirm_wallet_transaction(
    transaction_id: int,
    confirmer: RecorderCapability,
    commit: bool = True,
) -> WalletTransaction:
    require_confirm_authority(confirmer, "confirm wallet transactions")

    def _op() -> WalletTransaction:
        txn = lock_for_update(db.session.query(WalletTransaction).filter_by(id=transaction_id)).first()
        if not txn:
            raise NotFoundError(f"Wallet transaction {transaction_id} not found")
        customer = _locked_customer(txn.customer_id)
        require_same_business(confirmer, customer.business_id)
        if txn.status != WALLET_STATUS_PENDING:
            raise AlreadyProcessedError(f"Wallet transaction is already {txn.status.lower()}")
        _apply(customer, txn, confirmer.user_id)
        db.session.flush()
        _audit(customer, txn, "WALLET_TRANSACTION_CONFIRMED", confirmer.user_id)
        return txn

    return run_unit(_op, commit=commit)


def reject_wallet_transaction(
    transaction_id: int,
    rejecter: RecorderCapability,
    reason: str | None = None,
    commit: bool = True,
) -> WalletTransaction:
    require_confirm_authority(rejecter, "reject wallet transactions")

    def _op() -> WalletTransaction:
        txn = lock_for_update(db.session.query(WalletTransaction).filter_by(id=transaction_id)).first()
        if not txn:
            raise NotFoundError(f"Wallet transaction {transaction_id} not found")
        customer = db.session.get(Customer, txn.customer_id)
        require_same_business(rejecter, customer.business_id)
        if txn.status != WALLET_STATUS_PENDING:
            raise AlreadyProcessedError(f"Wallet transaction is already {txn.status.lower()}")
        txn.status = WALLET_STATUS_REJECTED
        txn.rejected_by_user_id = rejecter.user_id
        txn.rejected_at = utcnow()
        if reason:
            txn.description = f"{txn.description or ''} (rejected: {reason})".strip()
        db.session.flush()
        _audit(customer, txn, "WALLET_TRANSACTION_REJECTED", rejecter.user_id)
        return txn

    return run_unit(_op, commit=commit)


# =============================================================================
# ADJUSTMENTS
# =============================================================================

def adjust_wallet(
    customer_id: int,
    amount_cents: int,
    description: str,
    is_addition: bool,
    actor: RecorderCapability,
    commit: bool = True,
) -> WalletTransaction:
    """Manual correction by someone with confirm authority. Never leaves a negative balance."""
    require_confirm_authority(actor, "adjust wallet balances")
    amount = _positive(amount_cents)
    if not (description or "").strip():
        raise ValidationError("Description is required for adjustments", field="description")

    def _op() -> WalletTransaction:
        customer = _locked_customer(customer_id)
        require_same_business(actor, customer.business_id)
        txn = WalletTransaction(
            customer_id=customer.id,
            shop_id=customer.shop_id,
            type=WALLET_TXN_ADJUSTMENT,
            amount_cents=amount if is_addition else -amount,
            status=WALLET_STATUS_PENDING,
            description=description.strip(),
            created_by_user_id=actor.user_id,
        )
        db.session.add(txn)
        _apply(customer, txn, actor.user_id)
        db.session.flush()
        _audit(customer, txn, "WALLET_ADJUSTED", actor.user_id)
        return txn

    return run_unit(_op, commit=commit)


# =============================================================================
# INTERNAL: used by refunds and WALLET payments (caller owns the transaction)
# =============================================================================

def credit_refund(customer: Customer, amount_cents: int, refund_id: int, actor_user_id: int | None, reference: str | None = None) -> WalletTransaction:
    txn = WalletTransaction(
        customer_id=customer.id,
        shop_id=customer.shop_id,
        type=WALLET_TXN_REFUND,
        amount_cents=_positive(amount_cents),
        status=WALLET_STATUS_PENDING,
        reference=reference,
        description=f"Refund credit {reference}" if reference else "Refund credit",
        created_by_user_id=actor_user_id,
        refund_id=refund_id,
    )
    db.session.add(txn)
    _apply(customer, txn, actor_user_id)
    db.session.flush()
    _audit(customer, txn, "WALLET_REFUND_CREDITED", actor_user_id)
    return txn


def debit_for_payment(customer: Customer, amount_cents: int, payment_id: int, actor_user_id: int | None, reference: str | None = None) -> WalletTransaction:
    txn = WalletTransaction(
        customer_id=customer.id,
        shop_id=customer.shop_id,
        type=WALLET_TXN_PAYMENT,
        amount_cents=-_positive(amount_cents),
        status=WALLET_STATUS_PENDING,
        reference=reference,
        description=f"Payment {reference}" if reference else "Purchase payment",
        created_by_user_id=actor_user_id,
        payment_id=payment_id,
    )
    db.session.add(txn)
    _apply(customer, txn, actor_user_id)
    db.session.flush()
    _audit(customer, txn, "WALLET_PAYMENT_DEBITED", actor_user_id)
    return txn


# =============================================================================
# QUERIES
# =============================================================================

def get_wallet(customer_id: int, business_id: int | None = None) -> dict:
    customer = db.session.get(Customer, customer_id)
    if not customer or (business_id is not None and customer.business_id != business_id):
        raise NotFoundError(f"Customer {customer_id} not found", field="customer_id")
    txns = (
        db.session.query(WalletTransaction)
        .filter(WalletTransaction.customer_id == customer.id)
        .order_by(WalletTransaction.created_at.desc(), WalletTransaction.id.desc())
        .all()
    )
    return {
        "customer": customer.to_dict(),
        "balance_cents": customer.wallet_balance_cents,
        "pending_cents": sum(t.amount_cents for t in txns if t.status == WALLET_STATUS_PENDING),
        "transactions": [t.to_dict() for t in txns],
    }


def get_wallet_transaction(transaction_id: int, business_id: int | None = None) -> WalletTransaction:
    txn = db.session.get(WalletTransaction, transaction_id)
    if not txn or (business_id is not None and txn.customer.business_id != business_id):
        raise NotFoundError(f"Wallet transaction {transaction_id} not found")
    return txn
