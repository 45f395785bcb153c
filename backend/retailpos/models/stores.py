from __future__ import annotations

from ..extensions import db
from retailpos.time_utils import to_utc_z


class Store(db.Model):
    """
    A physical shop, optionally exposed as an online storefront.

    WHY: Every piece of business data (catalog, customers, sales, shifts,
    cash flow) is owned by exactly one store. Requests select the store
    explicitly; there is no implicit "current store".

    ONLINE: When online_enabled is set the store's catalog is published at
    /api/storefront/<slug> and carts/orders can be created anonymously.
    """
    __tablename__ = "stores"
    __table_args__ = (
        db.UniqueConstraint("slug", name="uq_stores_slug"),
        db.UniqueConstraint("code", name="uq_stores_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    code = db.Column(db.String(32), nullable=True, index=True)
    slug = db.Column(db.String(120), nullable=False, index=True)

    address = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)

    owner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    # Storefront settings
    online_enabled = db.Column(db.Boolean, nullable=False, default=False)
    shipping_fee = db.Column(db.Integer, nullable=False, default=0)  # Flat fee per online order

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    owner = db.relationship("User", foreign_keys=[owner_id])
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Store id={self.id} slug={self.slug!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "slug": self.slug,
            "address": self.address,
            "phone": self.phone,
            "owner_id": self.owner_id,
            "is_active": self.is_active,
            "online_enabled": self.online_enabled,
            "shipping_fee": self.shipping_fee,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

    def to_public_dict(self) -> dict:
        """Storefront-safe projection (no owner or internal flags)."""
        return {
            "name": self.name,
            "slug": self.slug,
            "address": self.address,
            "phone": self.phone,
            "shipping_fee": self.shipping_fee,
        }


class UserStore(db.Model):
    """
    Grant of store access to a non-admin user.

    WHY: Cashiers and managers may work in several stores. Every
    store-scoped request is checked against these grants (admins bypass).
    """
    __tablename__ = "user_stores"
    __table_args__ = (
        db.UniqueConstraint("user_id", "store_id", name="uq_user_stores_user_store"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    granted_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    granted_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    user = db.relationship("User", foreign_keys=[user_id], backref=db.backref("store_grants", lazy=True))
    store = db.relationship("Store", backref=db.backref("user_grants", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "store_id": self.store_id,
            "granted_by_user_id": self.granted_by_user_id,
            "granted_at": to_utc_z(self.granted_at),
        }
