from __future__ import annotations

from ..extensions import db
from hpledger.time_utils import to_utc_z


class Refund(db.Model):
    """
    Refund document against a purchase.

    LIFECYCLE:
    1. PENDING: Requested, awaiting approval
    2. APPROVED: Approved by someone with confirm authority
    3. PROCESSED: Funds moved (external reference or wallet credit)
    4. REJECTED: Declined, no funds movement

    PROCESSED and REJECTED are terminal. Processed refunds are netted against
    the purchase and reduce its outstanding balance.
    """
    __tablename__ = "refunds"
    __table_args__ = (
        db.UniqueConstraint("business_id", "refund_number", name="uq_refunds_business_number"),
        db.Index("ix_refunds_business_status", "business_id", "status"),
        db.CheckConstraint("amount_cents > 0", name="ck_refunds_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)

    # Human-readable number (e.g., "RF-000007")
    refund_number = db.Column(db.String(64), nullable=False)

    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    reason = db.Column(db.String(32), nullable=False)
    custom_reason = db.Column(db.Text, nullable=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    refund_method = db.Column(db.String(32), nullable=False, default="CASH")
    items = db.Column(db.JSON, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default="PENDING", index=True)

    requested_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    approved_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    processed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    processed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejected_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    rejected_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejection_reason = db.Column(db.Text, nullable=True)

    transaction_reference = db.Column(db.String(128), nullable=True)
    wallet_transaction_id = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    purchase = db.relationship("Purchase", backref=db.backref("refunds", lazy=True, order_by="Refund.id"))
    customer = db.relationship("Customer")
    requested_by = db.relationship("User", foreign_keys=[requested_by_user_id])
    approved_by = db.relationship("User", foreign_keys=[approved_by_user_id])
    processed_by = db.relationship("User", foreign_keys=[processed_by_user_id])
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "refund_number": self.refund_number,
            "purchase_id": self.purchase_id,
            "customer_id": self.customer_id,
            "reason": self.reason,
            "custom_reason": self.custom_reason,
            "amount_cents": self.amount_cents,
            "refund_method": self.refund_method,
            "items": self.items or [],
            "notes": self.notes,
            "status": self.status,
            "requested_by_user_id": self.requested_by_user_id,
            "approved_by_user_id": self.approved_by_user_id,
            "approved_at": to_utc_z(self.approved_at) if self.approved_at else None,
            "processed_by_user_id": self.processed_by_user_id,
            "processed_at": to_utc_z(self.processed_at) if self.processed_at else None,
            "rejected_by_user_id": self.rejected_by_user_id,
            "rejected_at": to_utc_z(self.rejected_at) if self.rejected_at else None,
            "rejection_reason": self.rejection_reason,
            "transaction_reference": self.transaction_reference,
            "wallet_transaction_id": self.wallet_transaction_id,
            "created_at": to_utc_z(self.created_at),
            "version_id": self.version_id,
        }


class Waybill(db.Model):
    """Delivery authorization for a fully paid CASH or LAYAWAY purchase. One per purchase."""
    __tablename__ = "waybills"
    __table_args__ = (
        db.UniqueConstraint("purchase_id", name="uq_waybills_purchase"),
        db.UniqueConstraint("business_id", "waybill_number", name="uq_waybills_business_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=False)

    waybill_number = db.Column(db.String(64), nullable=False)
    recipient_name = db.Column(db.String(255), nullable=False)
    recipient_phone = db.Column(db.String(32), nullable=False)
    delivery_address = db.Column(db.String(255), nullable=True)
    delivery_city = db.Column(db.String(128), nullable=True)
    delivery_region = db.Column(db.String(128), nullable=True)
    special_instructions = db.Column(db.Text, nullable=True)

    generated_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    purchase = db.relationship("Purchase", backref=db.backref("waybill", uselist=False, lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "purchase_id": self.purchase_id,
            "waybill_number": self.waybill_number,
            "recipient_name": self.recipient_name,
            "recipient_phone": self.recipient_phone,
            "delivery_address": self.delivery_address,
            "delivery_city": self.delivery_city,
            "delivery_region": self.delivery_region,
            "special_instructions": self.special_instructions,
            "generated_by_user_id": self.generated_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }


class DocumentSequence(db.Model):
    """
    Per-business, per-type document number counter.

    next_number is bumped with a single UPDATE so concurrent allocations never
    hand out the same number.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("business_id", "document_type", name="uq_document_sequences_business_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)
    document_type = db.Column(db.String(32), nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())


class AuditEvent(db.Model):
    """
    Append-only record of every ledger state change.

    Never updated or deleted. Written in the same transaction as the change it
    describes.
    """
    __tablename__ = "audit_events"
    __table_args__ = (
        db.Index("ix_audit_events_business_occurred", "business_id", "occurred_at"),
        db.Index("ix_audit_events_entity", "entity_type", "entity_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False)

    event_type = db.Column(db.String(64), nullable=False, index=True)
    entity_type = db.Column(db.String(32), nullable=False)
    entity_id = db.Column(db.Integer, nullable=False)
    actor_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=True, index=True)
    payment_id = db.Column(db.Integer, db.ForeignKey("payments.id"), nullable=True)
    refund_id = db.Column(db.Integer, db.ForeignKey("refunds.id"), nullable=True)
    import_batch_id = db.Column(db.Integer, db.ForeignKey("import_batches.id"), nullable=True)
    source_row_number = db.Column(db.Integer, nullable=True)

    note = db.Column(db.String(255), nullable=True)
    payload = db.Column(db.JSON, nullable=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "event_type": self.event_type,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "actor_user_id": self.actor_user_id,
            "purchase_id": self.purchase_id,
            "payment_id": self.payment_id,
            "refund_id": self.refund_id,
            "import_batch_id": self.import_batch_id,
            "source_row_number": self.source_row_number,
            "note": self.note,
            "payload": self.payload,
            "occurred_at": to_utc_z(self.occurred_at),
        }
