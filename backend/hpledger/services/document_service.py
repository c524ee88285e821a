# Overview: Business-scoped sequential document numbers (purchases, refunds, waybills).

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..errors import ValidationError
from ..extensions import db
from ..models import DocumentSequence


def _allocate(business_id: int, document_type: str) -> int:
    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.business_id == business_id,
            DocumentSequence.document_type == document_type,
        )
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(business_id=business_id, document_type=document_type)
            .scalar()
        )
        return current - 1

    # First number for this business/type. The insert runs in a savepoint so a
    # concurrent first allocation only discards the insert, not the caller's work.
    try:
        with db.session.begin_nested():
            db.session.add(
                DocumentSequence(business_id=business_id, document_type=document_type, next_number=2)
            )
        return 1
    except IntegrityError:
        result = db.session.execute(stmt)
        if not result.rowcount:
            raise
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(business_id=business_id, document_type=document_type)
            .scalar()
        )
        return current - 1


def next_document_number(
    *,
    business_id: int,
    document_type: str,
    prefix: str,
    pad: int = 6,
    year: int | None = None,
) -> str:
    """
    Atomically allocate the next document number for a business/type.

    Runs inside the caller's transaction: the sequence bump commits or rolls
    back together with the document that uses it, so numbers are never
    reused. Gaps are possible when a caller rolls back, duplicates are not.

    Format: "HP-000001", or "WB-2026-000001" when a year is given.
    """
    if not business_id:
        raise ValidationError("business_id is required", field="business_id")
    if not document_type:
        raise ValidationError("document_type is required", field="document_type")

    number = _allocate(business_id, document_type)
    if year is not None:
        return f"{prefix}-{year}-{number:0{pad}d}"
    return f"{prefix}-{number:0{pad}d}"
