from __future__ import annotations

from ..extensions import db
from hpledger.time_utils import to_utc_z


class Product(db.Model):
    """
    Business-wide product master.

    Prices differ per purchase type (cash, layaway, credit). Stock lives on
    ShopProduct, one row per shop the product is assigned to.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("business_id", "sku", name="uq_products_business_sku"),
        db.Index("ix_products_business_name", "business_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(64), nullable=True)
    description = db.Column(db.Text, nullable=True)

    cost_price_cents = db.Column(db.Integer, nullable=False, default=0)
    cash_price_cents = db.Column(db.Integer, nullable=False, default=0)
    layaway_price_cents = db.Column(db.Integer, nullable=False, default=0)
    credit_price_cents = db.Column(db.Integer, nullable=False, default=0)
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=5)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    imported_from_batch_id = db.Column(db.Integer, db.ForeignKey("import_batches.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "name": self.name,
            "sku": self.sku,
            "description": self.description,
            "cost_price_cents": self.cost_price_cents,
            "cash_price_cents": self.cash_price_cents,
            "layaway_price_cents": self.layaway_price_cents,
            "credit_price_cents": self.credit_price_cents,
            "low_stock_threshold": self.low_stock_threshold,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ShopProduct(db.Model):
    """Assignment of a product to a shop, with that shop's stock on hand."""
    __tablename__ = "shop_products"
    __table_args__ = (
        db.UniqueConstraint("shop_id", "product_id", name="uq_shop_products_shop_product"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    shop = db.relationship("Shop")
    product = db.relationship("Product", backref=db.backref("shop_products", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "product_id": self.product_id,
            "stock_quantity": self.stock_quantity,
            "is_active": self.is_active,
        }
