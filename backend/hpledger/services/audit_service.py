# Overview: Append-only audit trail for ledger state changes.

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from ..extensions import db
from ..models import AuditEvent
from hpledger.time_utils import utcnow

"""
Audit trail invariants

- Append-only: events are never updated or deleted.
- No domain logic here; callers decide what happened.
- Written inside the same DB transaction as the change it records, so a
  rolled-back change leaves no event behind.
"""


def append_audit_event(
    *,
    business_id: int,
    event_type: str,
    entity_type: str,
    entity_id: int,
    actor_user_id: int | None = None,
    purchase_id: int | None = None,
    payment_id: int | None = None,
    refund_id: int | None = None,
    import_batch_id: int | None = None,
    source_row_number: int | None = None,
    note: Optional[str] = None,
    payload: Optional[dict[str, Any]] = None,
    occurred_at: Optional[datetime] = None,
) -> AuditEvent:
    ev = AuditEvent(
        business_id=business_id,
        event_type=event_type,
        entity_type=entity_type,
        entity_id=entity_id,
        actor_user_id=actor_user_id,
        purchase_id=purchase_id,
        payment_id=payment_id,
        refund_id=refund_id,
        import_batch_id=import_batch_id,
        source_row_number=source_row_number,
        note=note,
        payload=payload,
        occurred_at=occurred_at or utcnow(),
    )
    db.session.add(ev)
    db.session.flush()
    return ev


def list_audit_events(
    *,
    business_id: int,
    entity_type: str | None = None,
    entity_id: int | None = None,
    purchase_id: int | None = None,
    limit: int = 100,
) -> list[AuditEvent]:
    q = db.session.query(AuditEvent).filter(AuditEvent.business_id == business_id)
    if entity_type:
        q = q.filter(AuditEvent.entity_type == entity_type)
    if entity_id is not None:
        q = q.filter(AuditEvent.entity_id == entity_id)
    if purchase_id is not None:
        q = q.filter(AuditEvent.purchase_id == purchase_id)
    return q.order_by(AuditEvent.occurred_at.asc(), AuditEvent.id.asc()).limit(limit).all()
