from __future__ import annotations

from ..extensions import db
from hpledger.time_utils import to_utc_z


class Business(db.Model):
    """
    Multi-tenant root: every tenant is a Business.

    WHY: Shops, customers, purchases and document sequences all belong to
    exactly one business. No ledger data may cross business boundaries.
    """
    __tablename__ = "businesses"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(64), nullable=False, unique=True, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Business id={self.id} slug={self.slug!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class BusinessPolicy(db.Model):
    """
    Credit policy for a business.

    interest_rate_bps: basis points (1000 = 10%).
    FLAT interest is charged once on the subtotal; MONTHLY is charged per
    installment.
    """
    __tablename__ = "business_policies"
    __table_args__ = (
        db.UniqueConstraint("business_id", name="uq_business_policies_business"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)

    interest_type = db.Column(db.String(16), nullable=False, default="FLAT")
    interest_rate_bps = db.Column(db.Integer, nullable=False, default=0)
    max_tenor_days = db.Column(db.Integer, nullable=False, default=90)
    default_installments = db.Column(db.Integer, nullable=False, default=3)

    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    business = db.relationship("Business", backref=db.backref("policy", uselist=False, lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "interest_type": self.interest_type,
            "interest_rate_bps": self.interest_rate_bps,
            "max_tenor_days": self.max_tenor_days,
            "default_installments": self.default_installments,
        }


class Shop(db.Model):
    """Shop within a business. Slugs are unique within a business, not globally."""
    __tablename__ = "shops"
    __table_args__ = (
        db.UniqueConstraint("business_id", "shop_slug", name="uq_shops_business_slug"),
        db.UniqueConstraint("business_id", "name", name="uq_shops_business_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    shop_slug = db.Column(db.String(64), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    business = db.relationship("Business", backref=db.backref("shops", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "name": self.name,
            "shop_slug": self.shop_slug,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
