from __future__ import annotations

from ..extensions import db
from retailpos.time_utils import to_utc_z

ORDER_PENDING = "pending"
ORDER_CONFIRMED = "confirmed"
ORDER_SHIPPING = "shipping"
ORDER_DELIVERED = "delivered"
ORDER_CANCELLED = "cancelled"
ORDER_STATUSES = (ORDER_PENDING, ORDER_CONFIRMED, ORDER_SHIPPING, ORDER_DELIVERED, ORDER_CANCELLED)

PAYMENT_UNPAID = "unpaid"
PAYMENT_PAID = "paid"

ORDER_PAYMENT_METHODS = ("cod", "transfer")


class ShoppingCart(db.Model):
    """Anonymous storefront cart, identified by an opaque session key per store."""
    __tablename__ = "shopping_carts"
    __table_args__ = (
        db.UniqueConstraint("store_id", "session_key", name="uq_carts_store_session"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    session_key = db.Column(db.String(128), nullable=False, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    items = db.relationship(
        "CartItem", backref="cart", lazy=True, cascade="all, delete-orphan", order_by="CartItem.id"
    )

    def to_dict(self) -> dict:
        items = [item.to_dict() for item in self.items]
        return {
            "id": self.id,
            "items": items,
            "item_count": sum(item["quantity"] for item in items),
            "subtotal": sum(item["line_total"] for item in items),
        }


class CartItem(db.Model):
    __tablename__ = "cart_items"
    __table_args__ = (
        db.UniqueConstraint("cart_id", "product_id", name="uq_cart_items_cart_product"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    cart_id = db.Column(db.Integer, db.ForeignKey("shopping_carts.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=1)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        # Price is read live from the product; it is only frozen at checkout
        price = self.product.price if self.product else 0
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "unit_price": price,
            "quantity": self.quantity,
            "line_total": price * self.quantity,
        }


class OnlineOrder(db.Model):
    """
    Order placed through a store's public storefront.

    LIFECYCLE:
    - pending -> confirmed -> shipping -> delivered
    - pending/confirmed -> cancelled (stock is returned)

    total_amount = subtotal + shipping_fee, fixed at checkout.
    """
    __tablename__ = "online_orders"
    __table_args__ = (
        db.UniqueConstraint("order_number", name="uq_online_orders_number"),
        db.Index("ix_online_orders_store_status", "store_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    order_number = db.Column(db.String(32), nullable=False, index=True)

    customer_name = db.Column(db.String(255), nullable=False)
    customer_phone = db.Column(db.String(32), nullable=False)
    customer_email = db.Column(db.String(255), nullable=True)
    shipping_address = db.Column(db.String(512), nullable=False)
    note = db.Column(db.Text, nullable=True)

    subtotal = db.Column(db.Integer, nullable=False, default=0)
    shipping_fee = db.Column(db.Integer, nullable=False, default=0)
    total_amount = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default=ORDER_PENDING, index=True)
    payment_method = db.Column(db.String(16), nullable=False, default="cod")
    payment_status = db.Column(db.String(16), nullable=False, default=PAYMENT_UNPAID)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    items = db.relationship("OnlineOrderItem", backref="order", lazy=True, order_by="OnlineOrderItem.id")
    store = db.relationship("Store", backref=db.backref("online_orders", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "order_number": self.order_number,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "customer_email": self.customer_email,
            "shipping_address": self.shipping_address,
            "note": self.note,
            "subtotal": self.subtotal,
            "shipping_fee": self.shipping_fee,
            "total_amount": self.total_amount,
            "status": self.status,
            "payment_method": self.payment_method,
            "payment_status": self.payment_status,
            "paid_at": to_utc_z(self.paid_at) if self.paid_at else None,
            "items": [item.to_dict() for item in self.items],
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class OnlineOrderItem(db.Model):
    __tablename__ = "online_order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("online_orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    product_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Integer, nullable=False)
    line_total = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "line_total": self.line_total,
        }
