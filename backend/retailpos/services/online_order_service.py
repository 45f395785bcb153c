from __future__ import annotations

from ..context import RequestContext
from ..extensions import db
from ..models import OnlineOrder, Product
from ..models.online import (
    ORDER_CANCELLED,
    ORDER_CONFIRMED,
    ORDER_DELIVERED,
    ORDER_PENDING,
    ORDER_SHIPPING,
    ORDER_STATUSES,
    PAYMENT_PAID,
)
from ..validation import ConflictError, NotFoundError, ValidationError, coerce_choice
from retailpos.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .pagination import paginate

ALLOWED_TRANSITIONS = {
    ORDER_PENDING: {ORDER_CONFIRMED, ORDER_CANCELLED},
    ORDER_CONFIRMED: {ORDER_SHIPPING, ORDER_CANCELLED},
    ORDER_SHIPPING: {ORDER_DELIVERED},
    ORDER_DELIVERED: set(),
    ORDER_CANCELLED: set(),
}


def list_orders(
    ctx: RequestContext,
    *,
    status: str | None = None,
    search: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    if status is not None and status not in ORDER_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(ORDER_STATUSES)}")

    query = db.session.query(OnlineOrder).filter(OnlineOrder.store_id == ctx.store_id)
    if status:
        query = query.filter(OnlineOrder.status == status)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(db.or_(
            OnlineOrder.order_number.ilike(like),
            OnlineOrder.customer_name.ilike(like),
            OnlineOrder.customer_phone.ilike(like),
        ))
    query = query.order_by(OnlineOrder.created_at.desc(), OnlineOrder.id.desc())
    return paginate(query, page, per_page)


def get_order(ctx: RequestContext, order_id: int) -> OnlineOrder:
    order = db.session.query(OnlineOrder).filter_by(id=order_id, store_id=ctx.store_id).first()
    if not order:
        raise NotFoundError("Order not found")
    return order


def update_status(ctx: RequestContext, order_id: int, new_status) -> OnlineOrder:
    """
    Advance an order through its lifecycle.

    Cancelling returns every line's quantity to stock.
    """
    new_status = coerce_choice(new_status, "status", ORDER_STATUSES)

    def _op():
        order = lock_for_update(
            db.session.query(OnlineOrder).filter_by(id=order_id, store_id=ctx.store_id)
        ).first()
        if not order:
            raise NotFoundError("Order not found")
        if new_status not in ALLOWED_TRANSITIONS[order.status]:
            raise ConflictError(f"Cannot change order from {order.status} to {new_status}")

        if new_status == ORDER_CANCELLED:
            for item in order.items:
                product = lock_for_update(db.session.query(Product).filter_by(id=item.product_id)).first()
                if product:
                    product.stock_quantity += item.quantity

        order.status = new_status
        db.session.commit()
        return order

    return run_with_retry(_op)


def mark_paid(ctx: RequestContext, order_id: int) -> OnlineOrder:
    def _op():
        order = lock_for_update(
            db.session.query(OnlineOrder).filter_by(id=order_id, store_id=ctx.store_id)
        ).first()
        if not order:
            raise NotFoundError("Order not found")
        if order.status == ORDER_CANCELLED:
            raise ConflictError("Cancelled orders cannot be paid")
        if order.payment_status == PAYMENT_PAID:
            raise ConflictError("Order is already paid")

        order.payment_status = PAYMENT_PAID
        order.paid_at = utcnow()
        db.session.commit()
        return order

    return run_with_retry(_op)
