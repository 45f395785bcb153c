from __future__ import annotations

from ..extensions import db
from retailpos.time_utils import to_utc_z


class Category(db.Model):
    """Store-scoped product grouping. Names are unique within a store."""
    __tablename__ = "categories"
    __table_args__ = (
        db.UniqueConstraint("store_id", "name", name="uq_categories_store_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    name = db.Column(db.String(128), nullable=False)
    description = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    store = db.relationship("Store", backref=db.backref("categories", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "name": self.name,
            "description": self.description,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Product(db.Model):
    """
    Sellable item in a store's catalog.

    WHY: SKU is unique per store so that two shops can reuse their own codes.
    Products are soft-deleted (is_active=False) because sale items and
    online order items keep referencing them.

    stock_quantity is decremented by completed sales and online checkouts,
    and restored when a sale is voided or an order cancelled.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("store_id", "sku", name="uq_products_store_sku"),
        db.Index("ix_products_store_barcode", "store_id", "barcode"),
        db.Index("ix_products_store_active", "store_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True, index=True)

    sku = db.Column(db.String(64), nullable=False)
    barcode = db.Column(db.String(64), nullable=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    unit = db.Column(db.String(32), nullable=True)  # e.g. "bag", "kg", "bottle"

    price = db.Column(db.Integer, nullable=False, default=0)
    cost_price = db.Column(db.Integer, nullable=True)
    stock_quantity = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    # Listed on the online storefront when the store has it enabled
    is_online = db.Column(db.Boolean, nullable=False, default=False)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    store = db.relationship("Store", backref=db.backref("products", lazy=True))
    category = db.relationship("Category", backref=db.backref("products", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "category_id": self.category_id,
            "category_name": self.category.name if self.category else None,
            "sku": self.sku,
            "barcode": self.barcode,
            "name": self.name,
            "description": self.description,
            "unit": self.unit,
            "price": self.price,
            "cost_price": self.cost_price,
            "stock_quantity": self.stock_quantity,
            "is_active": self.is_active,
            "is_online": self.is_online,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

    def to_public_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "unit": self.unit,
            "price": self.price,
            "category_name": self.category.name if self.category else None,
            "in_stock": self.stock_quantity > 0,
        }
