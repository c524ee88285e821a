from __future__ import annotations

from ..extensions import db
from hpledger.time_utils import to_utc_z


class User(db.Model):
    """
    Staff member acting on the ledger.

    Authentication lives outside this service; the ledger only needs identity,
    role and the confirm-authority flag for attribution and capability checks.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.UniqueConstraint("business_id", "email", name="uq_users_business_email"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=True, index=True)

    name = db.Column(db.String(128), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    role = db.Column(db.String(32), nullable=False, index=True)
    can_confirm_payments = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    business = db.relationship("Business", backref=db.backref("users", lazy=True))
    shop = db.relationship("Shop")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "shop_id": self.shop_id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "can_confirm_payments": self.can_confirm_payments,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
