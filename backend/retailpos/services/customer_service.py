from __future__ import annotations

from ..context import RequestContext
from ..extensions import db
from ..models import Customer
from ..updates import CustomerUpdate
from ..validation import ConflictError, NotFoundError
from .concurrency import lock_for_update, run_with_retry
from .pagination import paginate


def list_customers(
    ctx: RequestContext,
    *,
    search: str | None = None,
    include_inactive: bool = False,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    query = db.session.query(Customer).filter(Customer.store_id == ctx.store_id)
    if not include_inactive:
        query = query.filter(Customer.is_active.is_(True))
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(db.or_(
            Customer.name.ilike(like),
            Customer.phone.ilike(like),
            Customer.email.ilike(like),
        ))
    query = query.order_by(Customer.name.asc(), Customer.id.asc())
    return paginate(query, page, per_page)


def get_customer(ctx: RequestContext, customer_id: int, *, active_only: bool = False) -> Customer:
    query = db.session.query(Customer).filter_by(id=customer_id, store_id=ctx.store_id)
    if active_only:
        query = query.filter(Customer.is_active.is_(True))
    customer = query.first()
    if not customer:
        raise NotFoundError("Customer not found")
    return customer


def _ensure_phone_free(ctx: RequestContext, phone: str | None, exclude_id: int | None = None) -> None:
    if not phone:
        return
    query = db.session.query(Customer.id).filter(
        Customer.store_id == ctx.store_id,
        Customer.phone == phone,
        Customer.is_active.is_(True),
    )
    if exclude_id is not None:
        query = query.filter(Customer.id != exclude_id)
    if query.first():
        raise ConflictError(f"A customer with phone {phone} already exists")


def create_customer(ctx: RequestContext, update: CustomerUpdate) -> Customer:
    values = update.provided()
    _ensure_phone_free(ctx, values.get("phone"))

    customer = Customer(store_id=ctx.store_id)
    update.apply(customer)
    db.session.add(customer)
    db.session.commit()
    return customer


def update_customer(ctx: RequestContext, customer_id: int, update: CustomerUpdate) -> Customer:
    def _op():
        customer = lock_for_update(
            db.session.query(Customer).filter_by(id=customer_id, store_id=ctx.store_id)
        ).first()
        if not customer:
            raise NotFoundError("Customer not found")

        values = update.provided()
        if "phone" in values:
            _ensure_phone_free(ctx, values["phone"], exclude_id=customer.id)

        update.apply(customer)
        db.session.commit()
        return customer

    return run_with_retry(_op)


def deactivate_customer(ctx: RequestContext, customer_id: int) -> Customer:
    """Customers are soft-deleted so their sales and payments stay attributable."""
    return update_customer(ctx, customer_id, CustomerUpdate(is_active=False))
