"""
Sales Service - counter sales with stock and debt effects

WHY: A sale is recorded in one step at the counter: lines are priced from
the catalog, stock is decremented under row locks, and the payment method
decides how the customer's balance moves.

PAYMENT METHODS:
- cash: amount_tendered >= total, change_due = tendered - total
- card / transfer: paid in full, no change
- credit: on account; requires a customer and counts entirely as debt

DEBT: A non-credit sale to a known customer also records a Payment for
the full total, so that debt (sales - payments) only grows by credit
sales. Voiding the sale voids that payment with it.
"""

from __future__ import annotations

import secrets
from datetime import datetime

from ..context import RequestContext
from ..extensions import db
from ..models import Customer, Payment, Product, Sale, SaleItem
from ..models.sales import (
    METHOD_CASH,
    METHOD_CREDIT,
    PAYMENT_STATUS_COMPLETED,
    PAYMENT_STATUS_VOIDED,
    SALE_PAYMENT_METHODS,
    SALE_STATUS_COMPLETED,
    SALE_STATUS_VOIDED,
)
from ..validation import (
    ConflictError,
    NotFoundError,
    coerce_bool,
    coerce_choice,
    coerce_int,
    coerce_str,
    require_object,
)
from retailpos.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .pagination import paginate


class SaleError(Exception):
    """Raised for sale operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class CreditLimitError(ConflictError):
    """A credit sale would push the customer over their credit limit."""


def generate_invoice_number(now: datetime | None = None) -> str:
    now = now or utcnow()
    return f"INV-{now:%Y%m%d-%H%M%S}-{secrets.token_hex(2).upper()}"


def _parse_lines(raw_items) -> dict[int, int]:
    """Validate request lines into {product_id: total_quantity}."""
    if not isinstance(raw_items, list) or not raw_items:
        raise SaleError("At least one item is required")

    quantities: dict[int, int] = {}
    for index, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            raise SaleError(f"items[{index}] must be an object")
        product_id = coerce_int(raw.get("product_id"), f"items[{index}].product_id", minimum=1)
        quantity = coerce_int(raw.get("quantity"), f"items[{index}].quantity", minimum=1)
        quantities[product_id] = quantities.get(product_id, 0) + quantity
    return quantities


def create_sale(ctx: RequestContext, payload: dict) -> Sale:
    """
    Record a completed sale.

    Request payload:
    {
        "items": [{"product_id": 1, "quantity": 2}],
        "payment_method": "cash",
        "customer_id": 3,            (required for credit)
        "amount_tendered": 50000,    (cash only; defaults to the total)
        "discount": 0,
        "notes": "...",
        "override_credit_limit": false  (managers only)
    }

    Raises:
        SaleError: invalid lines, payment, or stock
        CreditLimitError: credit sale beyond the customer's limit
        NotFoundError: unknown customer
    """
    from . import debt_service, shift_service

    payload = require_object(payload)
    quantities = _parse_lines(payload.get("items"))
    method = coerce_choice(payload.get("payment_method", METHOD_CASH), "payment_method", SALE_PAYMENT_METHODS)
    discount = coerce_int(payload.get("discount", 0), "discount", minimum=0)
    notes = payload.get("notes")
    notes = (coerce_str(notes, "notes", max_length=255, allow_blank=True) or None) if notes is not None else None
    override_limit = coerce_bool(payload.get("override_credit_limit", False), "override_credit_limit")

    customer_id = payload.get("customer_id")
    if customer_id is not None:
        customer_id = coerce_int(customer_id, "customer_id", minimum=1)
    if method == METHOD_CREDIT and customer_id is None:
        raise SaleError("A customer is required for credit sales")

    raw_tendered = payload.get("amount_tendered")
    tendered = None if raw_tendered is None else coerce_int(raw_tendered, "amount_tendered", minimum=0)

    def _op():
        customer = None
        if customer_id is not None:
            customer = db.session.query(Customer).filter_by(
                id=customer_id, store_id=ctx.store_id, is_active=True
            ).first()
            if not customer:
                raise NotFoundError("Customer not found")

        products = lock_for_update(
            db.session.query(Product).filter(
                Product.store_id == ctx.store_id,
                Product.id.in_(list(quantities)),
                Product.is_active.is_(True),
            )
        ).all()
        by_id = {p.id: p for p in products}

        missing = sorted(set(quantities) - set(by_id))
        if missing:
            raise SaleError("Product(s) not found", details={"product_ids": missing})

        insufficient = [
            {"product_id": pid, "requested_quantity": qty, "in_stock": by_id[pid].stock_quantity}
            for pid, qty in quantities.items()
            if by_id[pid].stock_quantity < qty
        ]
        if insufficient:
            raise SaleError("Insufficient stock", details={"items": insufficient})

        subtotal = sum(by_id[pid].price * qty for pid, qty in quantities.items())
        if discount > subtotal:
            raise SaleError("discount cannot exceed the subtotal")
        total = subtotal - discount

        if method == METHOD_CASH:
            amount_tendered = total if tendered is None else tendered
            if amount_tendered < total:
                raise SaleError("amount_tendered is less than the total")
            change_due = amount_tendered - total
        elif method == METHOD_CREDIT:
            if tendered:
                raise SaleError("Credit sales cannot take an upfront payment")
            amount_tendered, change_due = 0, 0
        else:
            if tendered is not None and tendered != total:
                raise SaleError(f"{method} sales must be paid in full")
            amount_tendered, change_due = total, 0

        if method == METHOD_CREDIT:
            check = debt_service.check_credit_limit(ctx, customer.id, total)
            if not check.data["within_limit"] and not (override_limit and ctx.is_manager):
                raise CreditLimitError(check.data["warning"])

        now = utcnow()
        open_shift = shift_service.find_open_shift(ctx.store_id, ctx.user_id)

        sale = Sale(
            store_id=ctx.store_id,
            invoice_number=generate_invoice_number(now),
            customer_id=customer.id if customer else None,
            shift_id=open_shift.id if open_shift else None,
            created_by_user_id=ctx.user_id,
            transaction_date=now,
            status=SALE_STATUS_COMPLETED,
            payment_method=method,
            subtotal=subtotal,
            discount=discount,
            total_amount=total,
            amount_tendered=amount_tendered,
            change_due=change_due,
            notes=notes,
        )
        db.session.add(sale)
        db.session.flush()

        for pid, qty in quantities.items():
            product = by_id[pid]
            db.session.add(SaleItem(
                sale_id=sale.id,
                product_id=product.id,
                product_name=product.name,
                quantity=qty,
                unit_price=product.price,
                unit_cost=product.cost_price,
                line_total=product.price * qty,
            ))
            product.stock_quantity -= qty

        if customer is not None and method != METHOD_CREDIT and total > 0:
            db.session.add(Payment(
                store_id=ctx.store_id,
                customer_id=customer.id,
                sale_id=sale.id,
                amount=total,
                method=method,
                payment_date=now,
                notes=f"Paid at sale {sale.invoice_number}",
                status=PAYMENT_STATUS_COMPLETED,
                created_by_user_id=ctx.user_id,
            ))

        db.session.commit()
        return sale

    return run_with_retry(_op)


def void_sale(ctx: RequestContext, sale_id: int, reason: str | None = None) -> Sale:
    """
    Void a completed sale and reverse its stock and debt effects.

    Sales attributed to a closed shift stay as they are: the shift's
    figures are already frozen.

    A void that would take the customer's balance below zero (the sale
    was already paid off by separate debt payments) is refused.
    """
    from . import debt_service

    def _op():
        sale = lock_for_update(
            db.session.query(Sale).filter_by(id=sale_id, store_id=ctx.store_id)
        ).first()
        if not sale:
            raise NotFoundError("Sale not found")
        if sale.status == SALE_STATUS_VOIDED:
            raise ConflictError("Sale already voided")
        if sale.shift is not None and not sale.shift.is_open:
            raise ConflictError("Sales of a closed shift cannot be voided")

        if sale.customer_id is not None:
            linked_paid = sum(p.amount for p in sale.payments if p.status == PAYMENT_STATUS_COMPLETED)
            debt_after = debt_service.current_debt(ctx, sale.customer_id) - sale.total_amount + linked_paid
            if debt_after < 0:
                raise ConflictError(
                    f"Voiding {sale.invoice_number} would leave the customer with a balance of "
                    f"{debt_after}; void their debt payments first"
                )

        for item in sale.items:
            product = lock_for_update(db.session.query(Product).filter_by(id=item.product_id)).first()
            if product:
                product.stock_quantity += item.quantity

        now = utcnow()
        for payment in sale.payments:
            if payment.status == PAYMENT_STATUS_COMPLETED:
                payment.status = PAYMENT_STATUS_VOIDED
                payment.voided_at = now
                payment.voided_by_user_id = ctx.user_id
                payment.void_reason = f"Sale {sale.invoice_number} voided"

        sale.status = SALE_STATUS_VOIDED
        sale.voided_at = now
        sale.voided_by_user_id = ctx.user_id
        sale.void_reason = reason

        db.session.commit()
        return sale

    return run_with_retry(_op)


def get_sale(ctx: RequestContext, sale_id: int) -> Sale:
    sale = db.session.query(Sale).filter_by(id=sale_id, store_id=ctx.store_id).first()
    if not sale:
        raise NotFoundError("Sale not found")
    return sale


def list_sales(
    ctx: RequestContext,
    *,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    customer_id: int | None = None,
    shift_id: int | None = None,
    status: str | None = None,
    payment_method: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    query = db.session.query(Sale).filter(Sale.store_id == ctx.store_id)
    if date_from is not None:
        query = query.filter(Sale.transaction_date >= date_from)
    if date_to is not None:
        query = query.filter(Sale.transaction_date <= date_to)
    if customer_id is not None:
        query = query.filter(Sale.customer_id == customer_id)
    if shift_id is not None:
        query = query.filter(Sale.shift_id == shift_id)
    if status:
        query = query.filter(Sale.status == status)
    if payment_method:
        query = query.filter(Sale.payment_method == payment_method)

    query = query.order_by(Sale.transaction_date.desc(), Sale.id.desc())
    return paginate(query, page, per_page, serialize=lambda s: s.to_dict(include_items=False))
