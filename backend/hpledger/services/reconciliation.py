# Overview: Pure balance and status derivation for a purchase.

"""
Balance/status reconciliation.

Pure functions only: no session, no clock. Callers pass the payments, refunds
and an explicit `as_of` date, so recomputing twice with unchanged inputs
always yields the same LedgerState.

Netting policy: PROCESSED refunds are netted against the purchase.

    outstanding = max(0, total - confirmed_paid - processed_refunds)

Refunds can only return money that was collected, and a CASH/LAYAWAY purchase
is eligible for a waybill only while confirmed_paid - processed_refunds still
covers the total.

Status precedence:
    COMPLETED  outstanding == 0
    OVERDUE    due date before as_of with a balance left
    ACTIVE     at least one confirmed payment
    PENDING    otherwise
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional

from ..constants import (
    DELIVERABLE_PURCHASE_TYPES,
    PURCHASE_STATUS_ACTIVE,
    PURCHASE_STATUS_COMPLETED,
    PURCHASE_STATUS_OVERDUE,
    PURCHASE_STATUS_PENDING,
    REFUND_STATUS_PROCESSED,
)


@dataclass(frozen=True)
class LedgerState:
    amount_paid_cents: int
    refunded_cents: int
    outstanding_cents: int
    status: str
    waybill_eligible: bool = False


def is_counted(payment) -> bool:
    """A payment counts iff it is confirmed and was never rejected."""
    return bool(getattr(payment, "is_confirmed", False)) and getattr(payment, "rejected_at", None) is None


def confirmed_total(payments: Iterable) -> int:
    return sum((int(p.amount_cents) for p in payments if is_counted(p)), 0)


def processed_refund_total(refunds: Iterable) -> int:
    return sum((int(r.amount_cents) for r in refunds if r.status == REFUND_STATUS_PROCESSED), 0)


def outstanding_balance(total_cents: int, paid_cents: int, refunded_cents: int = 0) -> int:
    return max(0, int(total_cents) - int(paid_cents) - int(refunded_cents))


def derive_status(
    outstanding_cents: int,
    paid_cents: int,
    due_date: Optional[date],
    as_of: Optional[date],
) -> str:
    if outstanding_cents <= 0:
        return PURCHASE_STATUS_COMPLETED
    if due_date is not None and as_of is not None and due_date < as_of:
        return PURCHASE_STATUS_OVERDUE
    if paid_cents > 0:
        return PURCHASE_STATUS_ACTIVE
    return PURCHASE_STATUS_PENDING


def refundable_ceiling(
    total_cents: int,
    refunds: Iterable,
    exclude_id: int | None = None,
    paid_cents: int | None = None,
) -> int:
    """
    Largest amount a new (or the given) refund may still carry.

    Bounded by the purchase total and, when `paid_cents` is given, by the money
    actually collected, both net of refunds already processed.
    """
    already = sum(
        (
            int(r.amount_cents)
            for r in refunds
            if r.status == REFUND_STATUS_PROCESSED and (exclude_id is None or r.id != exclude_id)
        ),
        0,
    )
    ceiling = int(total_cents) - already
    if paid_cents is not None:
        ceiling = min(ceiling, int(paid_cents) - already)
    return max(0, ceiling)


def is_waybill_eligible(total_cents: int, paid_cents: int, refunded_cents: int, purchase_type: str | None) -> bool:
    """Goods leave only once the money kept by the business covers the total."""
    if purchase_type not in DELIVERABLE_PURCHASE_TYPES:
        return False
    return int(paid_cents) - int(refunded_cents) >= int(total_cents)


def reconcile(
    total_cents: int,
    payments: Iterable,
    refunds: Iterable,
    due_date: Optional[date],
    as_of: Optional[date],
    purchase_type: str | None = None,
) -> LedgerState:
    paid = confirmed_total(payments)
    refunded = processed_refund_total(refunds)
    outstanding = outstanding_balance(total_cents, paid, refunded)
    status = derive_status(outstanding, paid, due_date, as_of)
    return LedgerState(
        amount_paid_cents=paid,
        refunded_cents=refunded,
        outstanding_cents=outstanding,
        status=status,
        waybill_eligible=is_waybill_eligible(total_cents, paid, refunded, purchase_type),
    )
