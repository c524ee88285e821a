# Overview: Waybill generation and delivery status transitions for CASH/LAYAWAY purchases.

from __future__ import annotations

from ..constants import (
    DELIVERABLE_PURCHASE_TYPES,
    DELIVERY_STATUS_PENDING,
    DELIVERY_STATUS_SCHEDULED,
    DELIVERY_TRANSITIONS,
    DOC_TYPE_WAYBILL,
    WAYBILL_NUMBER_PREFIX,
)
from ..errors import InvalidStateTransitionError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Purchase, Waybill
from hpledger.time_utils import utcnow
from .audit_service import append_audit_event
from .concurrency import run_unit
from .document_service import next_document_number
from .permission_service import RecorderCapability
from .purchase_service import lock_purchase, recalculate_locked


def generate_waybill(
    purchase_id: int,
    generated_by: RecorderCapability,
    special_instructions: str | None = None,
    commit: bool = True,
) -> Waybill:
    """
    Issue the waybill for a fully paid CASH or LAYAWAY purchase.

    Explicit action; recomputation only flags eligibility. Moves the delivery
    status from PENDING to SCHEDULED.
    """

    def _op() -> Waybill:
        purchase = lock_purchase(purchase_id, generated_by.business_id)
        if purchase.purchase_type not in DELIVERABLE_PURCHASE_TYPES:
            raise ValidationError(
                f"{purchase.purchase_type} purchases are not delivered by waybill",
                field="purchase_type",
            )
        if db.session.query(Waybill.id).filter_by(purchase_id=purchase.id).first():
            raise InvalidStateTransitionError(f"Purchase {purchase.purchase_number} already has a waybill")

        state = recalculate_locked(purchase)
        if not state.waybill_eligible:
            raise InvalidStateTransitionError(
                f"Purchase {purchase.purchase_number} is not fully paid",
                details={"outstanding_cents": state.outstanding_cents},
            )
        if purchase.delivery_status not in (None, DELIVERY_STATUS_PENDING):
            raise InvalidStateTransitionError(f"Delivery is already {purchase.delivery_status.lower()}")

        customer = purchase.customer
        waybill = Waybill(
            business_id=purchase.business_id,
            purchase_id=purchase.id,
            waybill_number=next_document_number(
                business_id=purchase.business_id,
                document_type=DOC_TYPE_WAYBILL,
                prefix=WAYBILL_NUMBER_PREFIX,
                year=utcnow().year,
            ),
            recipient_name=customer.full_name,
            recipient_phone=customer.phone,
            delivery_address=customer.address,
            delivery_city=customer.city,
            delivery_region=customer.region,
            special_instructions=(special_instructions or "").strip() or None,
            generated_by_user_id=generated_by.user_id,
        )
        db.session.add(waybill)
        purchase.delivery_status = DELIVERY_STATUS_SCHEDULED
        db.session.flush()

        append_audit_event(
            business_id=purchase.business_id,
            event_type="WAYBILL_GENERATED",
            entity_type="waybill",
            entity_id=waybill.id,
            actor_user_id=generated_by.user_id,
            purchase_id=purchase.id,
            payload={"waybill_number": waybill.waybill_number},
        )
        return waybill

    return run_unit(_op, commit=commit)


def update_delivery_status(
    purchase_id: int,
    new_status: str,
    actor: RecorderCapability,
    commit: bool = True,
) -> Purchase:
    """PENDING -> SCHEDULED -> IN_TRANSIT -> DELIVERED | FAILED."""
    new_status = (new_status or "").strip().upper()
    if new_status not in DELIVERY_TRANSITIONS:
        raise ValidationError(f"Invalid delivery status: {new_status or '(empty)'}", field="delivery_status")

    def _op() -> Purchase:
        purchase = lock_purchase(purchase_id, actor.business_id)
        if purchase.purchase_type not in DELIVERABLE_PURCHASE_TYPES:
            raise ValidationError(
                f"{purchase.purchase_type} purchases have no delivery status",
                field="purchase_type",
            )
        current = purchase.delivery_status or DELIVERY_STATUS_PENDING
        if new_status not in DELIVERY_TRANSITIONS[current]:
            raise InvalidStateTransitionError(
                f"Cannot move delivery from {current} to {new_status}",
                details={"from": current, "to": new_status},
            )
        if new_status == DELIVERY_STATUS_SCHEDULED and not purchase.waybill_eligible:
            raise InvalidStateTransitionError(f"Purchase {purchase.purchase_number} is not fully paid")

        purchase.delivery_status = new_status
        db.session.flush()
        append_audit_event(
            business_id=purchase.business_id,
            event_type="DELIVERY_STATUS_CHANGED",
            entity_type="purchase",
            entity_id=purchase.id,
            actor_user_id=actor.user_id,
            purchase_id=purchase.id,
            payload={"from": current, "to": new_status},
        )
        return purchase

    return run_unit(_op, commit=commit)


def get_waybill(purchase_id: int, business_id: int | None = None) -> Waybill:
    waybill = db.session.query(Waybill).filter_by(purchase_id=purchase_id).first()
    if not waybill or (business_id is not None and waybill.business_id != business_id):
        raise NotFoundError(f"No waybill for purchase {purchase_id}")
    return waybill
