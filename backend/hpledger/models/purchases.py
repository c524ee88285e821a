from __future__ import annotations

from ..extensions import db
from hpledger.time_utils import to_iso_date, to_utc_z


class Purchase(db.Model):
    """
    Hire-purchase sale: one customer, one shop, one or more line items.

    WHY: The purchase is the unit of balance. Every confirmed payment and
    processed refund recomputes the derived fields below while holding a row
    lock on this purchase.

    DERIVED (never written directly by callers):
    - amount_paid_cents: confirmed, non-rejected payments
    - refunded_cents: PROCESSED refunds
    - outstanding_cents: max(0, total - paid - refunded)
    - status: PENDING, ACTIVE, COMPLETED, OVERDUE
    - waybill_eligible: CASH/LAYAWAY with nothing outstanding

    MULTI-TENANT: purchase_number is unique per business.
    """
    __tablename__ = "purchases"
    __table_args__ = (
        db.UniqueConstraint("business_id", "purchase_number", name="uq_purchases_business_number"),
        db.Index("ix_purchases_business_status", "business_id", "status"),
        db.Index("ix_purchases_shop_created", "shop_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    # Human-readable number (e.g., "HP-000042")
    purchase_number = db.Column(db.String(64), nullable=False)
    purchase_type = db.Column(db.String(16), nullable=False, default="CREDIT")
    status = db.Column(db.String(16), nullable=False, default="PENDING", index=True)

    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    interest_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)
    down_payment_cents = db.Column(db.Integer, nullable=False, default=0)
    amount_paid_cents = db.Column(db.Integer, nullable=False, default=0)
    refunded_cents = db.Column(db.Integer, nullable=False, default=0)
    outstanding_cents = db.Column(db.Integer, nullable=False, default=0)

    # Policy snapshot at sale time
    interest_type = db.Column(db.String(16), nullable=True)
    interest_rate_bps = db.Column(db.Integer, nullable=False, default=0)
    installments = db.Column(db.Integer, nullable=False, default=1)
    tenor_days = db.Column(db.Integer, nullable=True)

    start_date = db.Column(db.Date, nullable=False)
    due_date = db.Column(db.Date, nullable=False, index=True)
    notes = db.Column(db.Text, nullable=True)

    # CASH/LAYAWAY only; NULL for CREDIT
    delivery_status = db.Column(db.String(16), nullable=True)
    waybill_eligible = db.Column(db.Boolean, nullable=False, default=False)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    imported_from_batch_id = db.Column(db.Integer, db.ForeignKey("import_batches.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    business = db.relationship("Business")
    shop = db.relationship("Shop", backref=db.backref("purchases", lazy=True))
    customer = db.relationship("Customer", backref=db.backref("purchases", lazy=True))
    created_by = db.relationship("User", foreign_keys=[created_by_user_id])
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "shop_id": self.shop_id,
            "customer_id": self.customer_id,
            "purchase_number": self.purchase_number,
            "purchase_type": self.purchase_type,
            "status": self.status,
            "subtotal_cents": self.subtotal_cents,
            "interest_cents": self.interest_cents,
            "total_cents": self.total_cents,
            "down_payment_cents": self.down_payment_cents,
            "amount_paid_cents": self.amount_paid_cents,
            "refunded_cents": self.refunded_cents,
            "outstanding_cents": self.outstanding_cents,
            "interest_type": self.interest_type,
            "interest_rate_bps": self.interest_rate_bps,
            "installments": self.installments,
            "tenor_days": self.tenor_days,
            "start_date": to_iso_date(self.start_date),
            "due_date": to_iso_date(self.due_date),
            "notes": self.notes,
            "delivery_status": self.delivery_status,
            "waybill_eligible": self.waybill_eligible,
            "created_by_user_id": self.created_by_user_id,
            "imported_from_batch_id": self.imported_from_batch_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class PurchaseItem(db.Model):
    """Line item. product_name is a snapshot so history survives catalog edits."""
    __tablename__ = "purchase_items"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_purchase_items_quantity"),
        db.CheckConstraint("unit_price_cents >= 0", name="ck_purchase_items_unit_price"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    purchase = db.relationship(
        "Purchase",
        backref=db.backref("items", lazy=True, order_by="PurchaseItem.id"),
    )
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_id": self.purchase_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "sku": self.product.sku if self.product else None,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
        }


class Payment(db.Model):
    """
    Payment applied against a purchase.

    LIFECYCLE:
    1. UNCONFIRMED: recorded by someone without confirm authority
    2. CONFIRMED: counted toward amount_paid (terminal)
    3. REJECTED: never counted (terminal)

    Who recorded and who confirmed are explicit columns; nothing is parsed
    back out of notes.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_payments_amount_positive"),
        db.Index("ix_payments_purchase_confirmed", "purchase_id", "is_confirmed"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=False, index=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    payment_method = db.Column(db.String(32), nullable=False)
    reference = db.Column(db.String(128), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    is_down_payment = db.Column(db.Boolean, nullable=False, default=False)

    recorded_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    recorded_by_role = db.Column(db.String(32), nullable=True)

    is_confirmed = db.Column(db.Boolean, nullable=False, default=False, index=True)
    confirmed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    confirmed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    rejected_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejected_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    rejection_reason = db.Column(db.Text, nullable=True)

    imported_from_batch_id = db.Column(db.Integer, db.ForeignKey("import_batches.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    purchase = db.relationship(
        "Purchase",
        backref=db.backref("payments", lazy=True, order_by="Payment.id"),
    )
    recorded_by = db.relationship("User", foreign_keys=[recorded_by_user_id])
    confirmed_by = db.relationship("User", foreign_keys=[confirmed_by_user_id])
    rejected_by = db.relationship("User", foreign_keys=[rejected_by_user_id])
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def state(self) -> str:
        if self.rejected_at is not None:
            return "REJECTED"
        if self.is_confirmed:
            return "CONFIRMED"
        return "UNCONFIRMED"

    @property
    def counts_toward_balance(self) -> bool:
        return bool(self.is_confirmed) and self.rejected_at is None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_id": self.purchase_id,
            "amount_cents": self.amount_cents,
            "payment_method": self.payment_method,
            "reference": self.reference,
            "notes": self.notes,
            "paid_at": to_utc_z(self.paid_at),
            "is_down_payment": self.is_down_payment,
            "state": self.state,
            "recorded_by_user_id": self.recorded_by_user_id,
            "recorded_by_role": self.recorded_by_role,
            "is_confirmed": self.is_confirmed,
            "confirmed_at": to_utc_z(self.confirmed_at) if self.confirmed_at else None,
            "confirmed_by_user_id": self.confirmed_by_user_id,
            "rejected_at": to_utc_z(self.rejected_at) if self.rejected_at else None,
            "rejected_by_user_id": self.rejected_by_user_id,
            "rejection_reason": self.rejection_reason,
            "created_at": to_utc_z(self.created_at),
            "version_id": self.version_id,
        }
