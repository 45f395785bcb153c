# Overview: Public storefront; catalog browsing, anonymous carts, and checkout.

"""
Storefront Service

WHY: A store with online_enabled publishes its is_online products at
/api/storefront/<slug>. Shoppers are anonymous: a cart is identified by an
opaque session key (X-Cart-Session) that the server issues on first use.

CHECKOUT: Prices are frozen into the order, stock is decremented under
row locks, and the cart is emptied. Stock comes back only if the order
is cancelled (see online_order_service).
"""

from __future__ import annotations

import re
import secrets

from ..extensions import db
from ..models import CartItem, Category, OnlineOrder, OnlineOrderItem, Product, ShoppingCart, Store
from ..models.online import ORDER_PAYMENT_METHODS, ORDER_PENDING, PAYMENT_UNPAID
from ..validation import (
    ConflictError,
    NotFoundError,
    coerce_choice,
    coerce_int,
    coerce_str,
    require_object,
)
from retailpos.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .pagination import paginate

_SESSION_KEY = re.compile(r"^[A-Za-z0-9_-]{16,128}$")


class StorefrontError(Exception):
    """Raised for invalid storefront requests (400)."""


def new_cart_session_key() -> str:
    return secrets.token_urlsafe(24)


def validate_session_key(value: str | None) -> str | None:
    if value is None or value == "":
        return None
    if not _SESSION_KEY.match(value):
        raise StorefrontError("Invalid cart session")
    return value


# =============================================================================
# CATALOG
# =============================================================================

def get_storefront(slug: str) -> Store:
    store = db.session.query(Store).filter_by(slug=slug, is_active=True, online_enabled=True).first()
    if not store:
        raise NotFoundError("Store not found")
    return store


def _online_products(store: Store):
    return db.session.query(Product).filter(
        Product.store_id == store.id,
        Product.is_active.is_(True),
        Product.is_online.is_(True),
    )


def list_products(
    store: Store,
    *,
    search: str | None = None,
    category_id: int | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    query = _online_products(store)
    if category_id is not None:
        query = query.filter(Product.category_id == category_id)
    if search:
        query = query.filter(Product.name.ilike(f"%{search.strip()}%"))
    query = query.order_by(Product.name.asc(), Product.id.asc())
    return paginate(query, page, per_page, serialize=lambda p: p.to_public_dict())


def get_product(store: Store, product_id: int) -> Product:
    product = _online_products(store).filter(Product.id == product_id).first()
    if not product:
        raise NotFoundError("Product not found")
    return product


def list_categories(store: Store) -> list[dict]:
    """Categories that contain at least one online product."""
    rows = (
        db.session.query(Category.id, Category.name)
        .join(Product, Product.category_id == Category.id)
        .filter(
            Category.store_id == store.id,
            Product.is_active.is_(True),
            Product.is_online.is_(True),
        )
        .distinct()
        .order_by(Category.name.asc())
        .all()
    )
    return [{"id": cid, "name": name} for cid, name in rows]


# =============================================================================
# CART
# =============================================================================

def find_cart(store: Store, session_key: str | None) -> ShoppingCart | None:
    if not session_key:
        return None
    return db.session.query(ShoppingCart).filter_by(store_id=store.id, session_key=session_key).first()


def _get_or_create_cart(store: Store, session_key: str) -> ShoppingCart:
    cart = find_cart(store, session_key)
    if cart is None:
        cart = ShoppingCart(store_id=store.id, session_key=session_key)
        db.session.add(cart)
        db.session.flush()
    return cart


def empty_cart_dict() -> dict:
    return {"id": None, "items": [], "item_count": 0, "subtotal": 0}


def _check_stock(product: Product, quantity: int) -> None:
    if quantity > product.stock_quantity:
        raise ConflictError(f"Only {product.stock_quantity} of {product.name} in stock")


def add_to_cart(store: Store, session_key: str, product_id, quantity=1) -> ShoppingCart:
    product_id = coerce_int(product_id, "product_id", minimum=1)
    quantity = coerce_int(quantity, "quantity", minimum=1)

    product = get_product(store, product_id)
    cart = _get_or_create_cart(store, session_key)

    item = db.session.query(CartItem).filter_by(cart_id=cart.id, product_id=product.id).first()
    new_quantity = quantity + (item.quantity if item else 0)
    _check_stock(product, new_quantity)

    if item:
        item.quantity = new_quantity
    else:
        db.session.add(CartItem(cart_id=cart.id, product_id=product.id, quantity=new_quantity))
    cart.updated_at = utcnow()

    db.session.commit()
    return cart


def update_cart_item(store: Store, session_key: str | None, product_id, quantity) -> ShoppingCart:
    """Set an item's quantity; 0 removes it."""
    product_id = coerce_int(product_id, "product_id", minimum=1)
    quantity = coerce_int(quantity, "quantity", minimum=0)

    cart = find_cart(store, session_key)
    item = None
    if cart is not None:
        item = db.session.query(CartItem).filter_by(cart_id=cart.id, product_id=product_id).first()
    if item is None:
        raise NotFoundError("Item not in cart")

    if quantity == 0:
        db.session.delete(item)
    else:
        _check_stock(get_product(store, product_id), quantity)
        item.quantity = quantity
    cart.updated_at = utcnow()

    db.session.commit()
    db.session.refresh(cart)
    return cart


def clear_cart(store: Store, session_key: str | None, product_id=None) -> ShoppingCart | None:
    """Remove one product, or everything when product_id is None."""
    cart = find_cart(store, session_key)
    if cart is None:
        return None

    query = db.session.query(CartItem).filter_by(cart_id=cart.id)
    if product_id is not None:
        query = query.filter_by(product_id=coerce_int(product_id, "product_id", minimum=1))
    query.delete(synchronize_session=False)

    db.session.commit()
    db.session.refresh(cart)
    return cart


# =============================================================================
# CHECKOUT & ORDER LOOKUP
# =============================================================================

def generate_order_number() -> str:
    return f"ORD-{utcnow():%Y%m%d}-{secrets.token_hex(3).upper()}"


def checkout(store: Store, session_key: str | None, payload: dict) -> OnlineOrder:
    """
    Turn the cart into a pending order.

    Request payload:
    {
        "customer_name": "...",
        "customer_phone": "...",
        "customer_email": "...",     (optional)
        "shipping_address": "...",
        "note": "...",               (optional)
        "payment_method": "cod"      (cod | transfer)
    }
    """
    payload = require_object(payload)
    customer_name = coerce_str(payload.get("customer_name") or "", "customer_name", max_length=255)
    customer_phone = coerce_str(payload.get("customer_phone") or "", "customer_phone", max_length=32)
    shipping_address = coerce_str(payload.get("shipping_address") or "", "shipping_address", max_length=512)
    email = payload.get("customer_email")
    email = (coerce_str(email, "customer_email", max_length=255, allow_blank=True) or None) if email is not None else None
    note = payload.get("note")
    note = (coerce_str(note, "note", allow_blank=True) or None) if note is not None else None
    payment_method = coerce_choice(payload.get("payment_method", "cod"), "payment_method", ORDER_PAYMENT_METHODS)

    def _op():
        cart = find_cart(store, session_key)
        if cart is None or not cart.items:
            raise StorefrontError("Cart is empty")

        quantities = {item.product_id: item.quantity for item in cart.items}
        products = lock_for_update(
            _online_products(store).filter(Product.id.in_(list(quantities)))
        ).all()
        by_id = {p.id: p for p in products}

        unavailable = sorted(set(quantities) - set(by_id))
        if unavailable:
            raise ConflictError("Some products are no longer available")
        for pid, qty in quantities.items():
            _check_stock(by_id[pid], qty)

        subtotal = sum(by_id[pid].price * qty for pid, qty in quantities.items())
        order = OnlineOrder(
            store_id=store.id,
            order_number=generate_order_number(),
            customer_name=customer_name,
            customer_phone=customer_phone,
            customer_email=email,
            shipping_address=shipping_address,
            note=note,
            subtotal=subtotal,
            shipping_fee=store.shipping_fee,
            total_amount=subtotal + store.shipping_fee,
            status=ORDER_PENDING,
            payment_method=payment_method,
            payment_status=PAYMENT_UNPAID,
        )
        db.session.add(order)
        db.session.flush()

        for pid, qty in quantities.items():
            product = by_id[pid]
            db.session.add(OnlineOrderItem(
                order_id=order.id,
                product_id=product.id,
                product_name=product.name,
                quantity=qty,
                unit_price=product.price,
                line_total=product.price * qty,
            ))
            product.stock_quantity -= qty

        db.session.delete(cart)
        db.session.commit()
        return order

    return run_with_retry(_op)


def get_order(store: Store, order_number: str, phone: str | None) -> OnlineOrder:
    """Order lookup for shoppers; the contact phone must match."""
    order = db.session.query(OnlineOrder).filter_by(store_id=store.id, order_number=order_number).first()
    if not order or not phone or order.customer_phone != phone.strip():
        raise NotFoundError("Order not found")
    return order
