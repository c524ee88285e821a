# Overview: Refund request -> approval -> processing workflow.

"""
Refund Service

LIFECYCLE:
1. Create refund request (PENDING)
2. Approve (PENDING -> APPROVED, confirm authority required) or
   Reject (PENDING -> REJECTED, terminal, no funds movement)
3. Process (APPROVED -> PROCESSED, terminal): funds leave through an external
   channel identified by a transaction reference, or are credited to the
   customer wallet when the reference is "wallet"

NETTING: processed refunds reduce the owning purchase's outstanding balance
(outstanding = total - paid - processed refunds). Processed refunds on a
purchase never exceed its total nor the confirmed payments collected on it;
the ceiling is checked at request time and again at processing time under the
purchase lock.
"""

from __future__ import annotations

from typing import Any

from ..constants import (
    DOC_TYPE_REFUND,
    PAYMENT_METHOD_WALLET,
    REFUND_NUMBER_PREFIX,
    REFUND_REASON_OTHER,
    REFUND_STATUS_APPROVED,
    REFUND_STATUS_PENDING,
    REFUND_STATUS_PROCESSED,
    REFUND_STATUS_REJECTED,
    VALID_REFUND_METHODS,
    VALID_REFUND_REASONS,
    WALLET_REFERENCE,
)
from ..errors import InvalidStateTransitionError, NotFoundError, OverrefundError, ValidationError
from ..extensions import db
from ..models import Customer, Payment, Refund
from hpledger.time_utils import utcnow
from .audit_service import append_audit_event
from .concurrency import lock_for_update, run_unit
from .document_service import next_document_number
from .permission_service import RecorderCapability, require_confirm_authority
from .purchase_service import lock_purchase, recalculate_locked
from .reconciliation import confirmed_total, refundable_ceiling
from .wallet_service import credit_refund


def _check_ceiling(purchase, amount: int, exclude_id: int | None = None) -> None:
    refunds = db.session.query(Refund).filter(Refund.purchase_id == purchase.id).all()
    payments = db.session.query(Payment).filter(Payment.purchase_id == purchase.id).all()
    ceiling = refundable_ceiling(
        purchase.total_cents,
        refunds,
        exclude_id=exclude_id,
        paid_cents=confirmed_total(payments),
    )
    if amount > ceiling:
        raise OverrefundError(
            f"Refund exceeds the refundable amount of {ceiling / 100:,.2f}",
            field="amount",
            details={"refundable_cents": ceiling, "amount_cents": amount},
        )


def _audit(refund: Refund, event_type: str, actor_user_id: int | None, payload: dict | None = None) -> None:
    append_audit_event(
        business_id=refund.business_id,
        event_type=event_type,
        entity_type="refund",
        entity_id=refund.id,
        actor_user_id=actor_user_id,
        purchase_id=refund.purchase_id,
        refund_id=refund.id,
        payload=payload or {"status": refund.status, "amount_cents": refund.amount_cents},
    )


def _locked_refund(refund_id: int, actor: RecorderCapability) -> Refund:
    q = db.session.query(Refund).filter(Refund.id == refund_id)
    if actor.business_id is not None:
        q = q.filter(Refund.business_id == actor.business_id)
    refund = lock_for_update(q).first()
    if not refund:
        raise NotFoundError(f"Refund {refund_id} not found", field="refund_id")
    return refund


def _require_status(refund: Refund, expected: str, action: str) -> None:
    if refund.status != expected:
        raise InvalidStateTransitionError(
            f"Cannot {action} a refund that is {refund.status.lower()}",
            details={"status": refund.status, "expected": expected},
        )


# =============================================================================
# REQUEST
# =============================================================================

def create_refund_request(
    purchase_id: int,
    customer_id: int,
    reason: str,
    amount_cents: int,
    requested_by: RecorderCapability,
    custom_reason: str | None = None,
    refund_method: str = "CASH",
    items: list[dict[str, Any]] | None = None,
    notes: str | None = None,
    commit: bool = True,
) -> Refund:
    reason = (reason or "").strip().upper()
    if reason not in VALID_REFUND_REASONS:
        raise ValidationError(f"Invalid refund reason: {reason or '(empty)'}", field="reason")
    custom_reason = (custom_reason or "").strip() or None
    if reason == REFUND_REASON_OTHER and not custom_reason:
        raise ValidationError("Please describe the reason for the refund", field="custom_reason")
    refund_method = (refund_method or "CASH").strip().upper()
    if refund_method not in VALID_REFUND_METHODS:
        raise ValidationError(f"Invalid refund method: {refund_method}", field="refund_method")
    try:
        amount = int(amount_cents)
    except (TypeError, ValueError):
        raise ValidationError("Amount must be a whole number of cents", field="amount")
    if amount <= 0:
        raise ValidationError("Refund amount must be greater than zero", field="amount")

    def _op() -> Refund:
        purchase = lock_purchase(purchase_id, requested_by.business_id)
        if purchase.customer_id != customer_id:
            raise ValidationError("Customer does not own this purchase", field="customer_id")
        _check_ceiling(purchase, amount)

        refund = Refund(
            business_id=purchase.business_id,
            refund_number=next_document_number(
                business_id=purchase.business_id,
                document_type=DOC_TYPE_REFUND,
                prefix=REFUND_NUMBER_PREFIX,
            ),
            purchase_id=purchase.id,
            customer_id=customer_id,
            reason=reason,
            custom_reason=custom_reason,
            amount_cents=amount,
            refund_method=refund_method,
            items=list(items or []),
            notes=notes,
            status=REFUND_STATUS_PENDING,
            requested_by_user_id=requested_by.user_id,
        )
        db.session.add(refund)
        db.session.flush()
        _audit(refund, "REFUND_REQUESTED", requested_by.user_id)
        return refund

    return run_unit(_op, commit=commit)


# =============================================================================
# TRANSITIONS
# =============================================================================

def approve_refund(refund_id: int, approver: RecorderCapability, commit: bool = True) -> Refund:
    require_confirm_authority(approver, "approve refunds")

    def _op() -> Refund:
        refund = _locked_refund(refund_id, approver)
        _require_status(refund, REFUND_STATUS_PENDING, "approve")
        refund.status = REFUND_STATUS_APPROVED
        refund.approved_by_user_id = approver.user_id
        refund.approved_at = utcnow()
        db.session.flush()
        _audit(refund, "REFUND_APPROVED", approver.user_id)
        return refund

    return run_unit(_op, commit=commit)


def process_refund(
    refund_id: int,
    transaction_reference: str,
    processor: RecorderCapability,
    commit: bool = True,
) -> Refund:
    """
    Move the funds and net the refund against the purchase.

    A reference of "wallet" (any case) credits the customer wallet with a
    confirmed REFUND transaction instead of recording an external payout.
    """
    reference = (transaction_reference or "").strip()
    if not reference:
        raise ValidationError("A transaction reference is required", field="transaction_reference")

    def _op() -> Refund:
        refund = _locked_refund(refund_id, processor)
        _require_status(refund, REFUND_STATUS_APPROVED, "process")
        purchase = lock_purchase(refund.purchase_id)
        _check_ceiling(purchase, refund.amount_cents, exclude_id=refund.id)

        to_wallet = reference.lower() == WALLET_REFERENCE
        if to_wallet:
            customer = lock_for_update(db.session.query(Customer).filter_by(id=refund.customer_id)).first()
            txn = credit_refund(customer, refund.amount_cents, refund.id, processor.user_id, refund.refund_number)
            refund.wallet_transaction_id = txn.id
            refund.refund_method = PAYMENT_METHOD_WALLET
            refund.transaction_reference = WALLET_REFERENCE
        else:
            refund.transaction_reference = reference

        refund.status = REFUND_STATUS_PROCESSED
        refund.processed_by_user_id = processor.user_id
        refund.processed_at = utcnow()
        db.session.flush()

        state = recalculate_locked(purchase)
        _audit(
            refund,
            "REFUND_PROCESSED",
            processor.user_id,
            payload={
                "amount_cents": refund.amount_cents,
                "transaction_reference": refund.transaction_reference,
                "outstanding_cents": state.outstanding_cents,
            },
        )
        return refund

    return run_unit(_op, commit=commit)


def reject_refund(
    refund_id: int,
    rejecter: RecorderCapability,
    reason: str | None = None,
    commit: bool = True,
) -> Refund:
    require_confirm_authority(rejecter, "reject refunds")

    def _op() -> Refund:
        refund = _locked_refund(refund_id, rejecter)
        _require_status(refund, REFUND_STATUS_PENDING, "reject")
        refund.status = REFUND_STATUS_REJECTED
        refund.rejected_by_user_id = rejecter.user_id
        refund.rejected_at = utcnow()
        refund.rejection_reason = (reason or "").strip() or None
        db.session.flush()
        _audit(refund, "REFUND_REJECTED", rejecter.user_id)
        return refund

    return run_unit(_op, commit=commit)


# =============================================================================
# QUERIES
# =============================================================================

def get_refund(refund_id: int, business_id: int | None = None) -> Refund:
    refund = db.session.get(Refund, refund_id)
    if not refund or (business_id is not None and refund.business_id != business_id):
        raise NotFoundError(f"Refund {refund_id} not found", field="refund_id")
    return refund


def list_refunds(business_id: int, status: str | None = None, purchase_id: int | None = None) -> list[Refund]:
    q = db.session.query(Refund).filter(Refund.business_id == business_id)
    if status:
        q = q.filter(Refund.status == status.upper())
    if purchase_id is not None:
        q = q.filter(Refund.purchase_id == purchase_id)
    return q.order_by(Refund.created_at.desc(), Refund.id.desc()).all()
