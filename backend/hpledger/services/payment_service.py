# Overview: Payment ledger: recording, confirmation lifecycle and queries.

"""
Payment Service

LIFECYCLE:
1. UNCONFIRMED: recorded by someone without confirm authority; does not
   affect the balance
2. CONFIRMED: recorded by (or later confirmed by) someone with confirm
   authority; counted toward amount_paid
3. REJECTED: never counted

CONFIRMED and REJECTED are terminal.

OVERPAYMENT: rejected outright, never partially applied. The amount is checked
against the outstanding balance when recorded and again when confirmed, both
under the purchase row lock, so confirmed payments can never exceed the
purchase total.
"""

from __future__ import annotations

from datetime import date, datetime

from ..constants import (
    PAYMENT_METHOD_WALLET,
    PAYMENT_STATE_CONFIRMED,
    PAYMENT_STATE_REJECTED,
    PAYMENT_STATE_UNCONFIRMED,
    VALID_PAYMENT_METHODS,
)
from ..errors import AlreadyProcessedError, NotFoundError, OverpaymentError, ValidationError
from ..extensions import db
from ..models import Customer, Payment, Purchase
from hpledger.time_utils import utcnow
from .audit_service import append_audit_event
from .concurrency import lock_for_update, run_unit
from .permission_service import RecorderCapability, require_confirm_authority
from .purchase_service import ledger_state, lock_purchase, recalculate_locked
from .wallet_service import debit_for_payment


def _validate_amount(amount_cents) -> int:
    try:
        amount = int(amount_cents)
    except (TypeError, ValueError):
        raise ValidationError("Amount must be a whole number of cents", field="amount")
    if amount <= 0:
        raise ValidationError("Amount must be greater than zero", field="amount")
    return amount


def _validate_method(method: str | None) -> str:
    method = (method or "").strip().upper()
    if method not in VALID_PAYMENT_METHODS:
        raise ValidationError(f"Invalid payment method: {method or '(empty)'}", field="payment_method")
    return method


def _ensure_fits(purchase: Purchase, amount: int, as_of: date | None) -> None:
    state = ledger_state(purchase, as_of)
    if state.outstanding_cents <= 0:
        raise OverpaymentError(
            f"Purchase {purchase.purchase_number} is already fully paid",
            field="amount",
            details={"outstanding_cents": 0},
        )
    if amount > state.outstanding_cents:
        raise OverpaymentError(
            f"Payment exceeds the outstanding balance of {state.outstanding_cents / 100:,.2f}",
            field="amount",
            details={"outstanding_cents": state.outstanding_cents, "amount_cents": amount},
        )


def _apply_confirmation(payment: Payment, purchase: Purchase, confirmer: RecorderCapability) -> None:
    payment.is_confirmed = True
    payment.confirmed_at = utcnow()
    payment.confirmed_by_user_id = confirmer.user_id
    if payment.payment_method == PAYMENT_METHOD_WALLET:
        customer = lock_for_update(db.session.query(Customer).filter_by(id=purchase.customer_id)).first()
        debit_for_payment(customer, payment.amount_cents, payment.id, confirmer.user_id, purchase.purchase_number)


# =============================================================================
# RECORDING
# =============================================================================

def record_payment(
    purchase_id: int,
    amount_cents: int,
    method: str,
    reference: str | None,
    recorder: RecorderCapability,
    notes: str | None = None,
    paid_at: datetime | None = None,
    imported_from_batch_id: int | None = None,
    source_row_number: int | None = None,
    as_of: date | None = None,
    commit: bool = True,
) -> Payment:
    """
    Record a payment against a purchase.

    Confirmed immediately (and the purchase recomputed) when the recorder can
    auto-confirm; otherwise left UNCONFIRMED with the balance untouched.
    """
    amount = _validate_amount(amount_cents)
    method = _validate_method(method)

    def _op() -> Payment:
        purchase = lock_purchase(purchase_id, recorder.business_id)
        _ensure_fits(purchase, amount, as_of)

        if method == PAYMENT_METHOD_WALLET:
            customer = db.session.get(Customer, purchase.customer_id)
            if int(customer.wallet_balance_cents or 0) < amount:
                raise ValidationError(
                    "Insufficient wallet balance",
                    field="amount",
                    details={"balance_cents": customer.wallet_balance_cents},
                )

        payment = Payment(
            purchase_id=purchase.id,
            amount_cents=amount,
            payment_method=method,
            reference=(reference or "").strip() or None,
            notes=notes,
            paid_at=paid_at or utcnow(),
            recorded_by_user_id=recorder.user_id,
            recorded_by_role=recorder.role,
            is_confirmed=False,
            imported_from_batch_id=imported_from_batch_id,
        )
        db.session.add(payment)
        db.session.flush()

        if recorder.can_auto_confirm:
            _apply_confirmation(payment, purchase, recorder)
            recalculate_locked(purchase, as_of)

        append_audit_event(
            business_id=purchase.business_id,
            event_type="PAYMENT_RECORDED",
            entity_type="payment",
            entity_id=payment.id,
            actor_user_id=recorder.user_id,
            purchase_id=purchase.id,
            payment_id=payment.id,
            import_batch_id=imported_from_batch_id,
            source_row_number=source_row_number,
            payload={
                "amount_cents": amount,
                "method": method,
                "state": payment.state,
                "recorded_by_role": recorder.role,
            },
        )
        return payment

    return run_unit(_op, commit=commit)


# =============================================================================
# CONFIRMATION LIFECYCLE
# =============================================================================

def _load_for_transition(payment_id: int, actor: RecorderCapability) -> tuple[Payment, Purchase]:
    payment = db.session.get(Payment, payment_id)
    if not payment:
        raise NotFoundError(f"Payment {payment_id} not found", field="payment_id")
    purchase = lock_purchase(payment.purchase_id, actor.business_id)
    payment = lock_for_update(db.session.query(Payment).filter_by(id=payment_id)).populate_existing().first()
    if payment.state != PAYMENT_STATE_UNCONFIRMED:
        raise AlreadyProcessedError(
            f"Payment is already {payment.state.lower()}",
            details={"state": payment.state},
        )
    return payment, purchase


def confirm_payment(
    payment_id: int,
    confirmer: RecorderCapability,
    as_of: date | None = None,
    commit: bool = True,
) -> Payment:
    require_confirm_authority(confirmer, "confirm payments")

    def _op() -> Payment:
        payment, purchase = _load_for_transition(payment_id, confirmer)
        _ensure_fits(purchase, payment.amount_cents, as_of)
        _apply_confirmation(payment, purchase, confirmer)
        state = recalculate_locked(purchase, as_of)
        append_audit_event(
            business_id=purchase.business_id,
            event_type="PAYMENT_CONFIRMED",
            entity_type="payment",
            entity_id=payment.id,
            actor_user_id=confirmer.user_id,
            purchase_id=purchase.id,
            payment_id=payment.id,
            payload={"amount_cents": payment.amount_cents, "outstanding_cents": state.outstanding_cents},
        )
        return payment

    return run_unit(_op, commit=commit)


def reject_payment(
    payment_id: int,
    rejecter: RecorderCapability,
    reason: str,
    commit: bool = True,
) -> Payment:
    require_confirm_authority(rejecter, "reject payments")
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("A rejection reason is required", field="reason")

    def _op() -> Payment:
        payment, purchase = _load_for_transition(payment_id, rejecter)
        payment.rejected_at = utcnow()
        payment.rejected_by_user_id = rejecter.user_id
        payment.rejection_reason = reason
        db.session.flush()
        append_audit_event(
            business_id=purchase.business_id,
            event_type="PAYMENT_REJECTED",
            entity_type="payment",
            entity_id=payment.id,
            actor_user_id=rejecter.user_id,
            purchase_id=purchase.id,
            payment_id=payment.id,
            note=reason[:255],
        )
        return payment

    return run_unit(_op, commit=commit)


# =============================================================================
# QUERIES
# =============================================================================

def get_payment(payment_id: int, business_id: int | None = None) -> Payment:
    payment = db.session.get(Payment, payment_id)
    if not payment or (business_id is not None and payment.purchase.business_id != business_id):
        raise NotFoundError(f"Payment {payment_id} not found", field="payment_id")
    return payment


def get_pending_payments(business_id: int, shop_id: int | None = None) -> list[Payment]:
    q = (
        db.session.query(Payment)
        .join(Purchase, Payment.purchase_id == Purchase.id)
        .filter(Purchase.business_id == business_id)
        .filter(Payment.is_confirmed.is_(False))
        .filter(Payment.rejected_at.is_(None))
    )
    if shop_id is not None:
        q = q.filter(Purchase.shop_id == shop_id)
    return q.order_by(Payment.created_at.asc(), Payment.id.asc()).all()


def list_purchase_payments(purchase_id: int, business_id: int | None = None) -> list[Payment]:
    q = (
        db.session.query(Payment)
        .join(Purchase, Payment.purchase_id == Purchase.id)
        .filter(Payment.purchase_id == purchase_id)
    )
    if business_id is not None:
        q = q.filter(Purchase.business_id == business_id)
    return q.order_by(Payment.paid_at.asc(), Payment.id.asc()).all()


def get_payment_summary(purchase_id: int, business_id: int | None = None) -> dict:
    """Per-state totals for one purchase alongside its current balance."""
    q = db.session.query(Purchase).filter(Purchase.id == purchase_id)
    if business_id is not None:
        q = q.filter(Purchase.business_id == business_id)
    purchase = q.first()
    if not purchase:
        raise NotFoundError(f"Purchase {purchase_id} not found", field="purchase_id")

    totals = {"CONFIRMED": 0, "UNCONFIRMED": 0, "REJECTED": 0}
    counts = {"CONFIRMED": 0, "UNCONFIRMED": 0, "REJECTED": 0}
    for payment in purchase.payments:
        totals[payment.state] += payment.amount_cents
        counts[payment.state] += 1

    return {
        "purchase_id": purchase.id,
        "purchase_number": purchase.purchase_number,
        "total_cents": purchase.total_cents,
        "amount_paid_cents": purchase.amount_paid_cents,
        "refunded_cents": purchase.refunded_cents,
        "outstanding_cents": purchase.outstanding_cents,
        "status": purchase.status,
        "confirmed_cents": totals[PAYMENT_STATE_CONFIRMED],
        "pending_cents": totals[PAYMENT_STATE_UNCONFIRMED],
        "rejected_cents": totals[PAYMENT_STATE_REJECTED],
        "counts": counts,
    }
