# Overview: Customer debt payments; record and void.

from __future__ import annotations

from datetime import datetime

from ..context import RequestContext
from ..extensions import db
from ..models import Customer, Payment
from ..models.sales import (
    DEBT_PAYMENT_METHODS,
    METHOD_CASH,
    PAYMENT_STATUS_COMPLETED,
    PAYMENT_STATUS_VOIDED,
    SALE_STATUS_COMPLETED,
)
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    coerce_choice,
    coerce_datetime,
    coerce_int,
    coerce_str,
    require_object,
)
from retailpos.time_utils import to_utc_z, utcnow
from .concurrency import lock_for_update, run_with_retry
from .pagination import paginate

# Sorts a not-yet-inserted payment after existing payments of the same instant
_PENDING_ID = 2**63 - 1


class PaymentError(Exception):
    """Raised for payment operation errors."""


def record_payment(ctx: RequestContext, payload: dict) -> Payment:
    """
    Record money received against a customer's debt.

    Request payload:
    {
        "customer_id": 3,
        "amount": 100000,
        "method": "cash",       (cash | card | transfer)
        "payment_date": "...",  (optional, defaults to now)
        "notes": "..."
    }

    Payments larger than the current debt are rejected so that a
    customer's balance never goes negative. A backdated payment_date is
    also checked against the debt owed at that date, so the running
    balance in the history stays non-negative throughout.
    payment_date may not be in the future.
    """
    from . import debt_service

    payload = require_object(payload)
    customer_id = coerce_int(payload.get("customer_id"), "customer_id", minimum=1)
    amount = coerce_int(payload.get("amount"), "amount", minimum=1)
    method = coerce_choice(payload.get("method", METHOD_CASH), "method", DEBT_PAYMENT_METHODS)
    payment_date = payload.get("payment_date")
    now = utcnow()
    payment_date = coerce_datetime(payment_date, "payment_date") if payment_date else now
    if payment_date > now:
        raise ValidationError("payment_date cannot be in the future")
    notes = payload.get("notes")
    notes = (coerce_str(notes, "notes", max_length=255, allow_blank=True) or None) if notes is not None else None

    def _op():
        customer = lock_for_update(
            db.session.query(Customer).filter_by(id=customer_id, store_id=ctx.store_id)
        ).first()
        if not customer:
            raise NotFoundError("Customer not found")

        entries = debt_service.ledger_entries(ctx.store_id, customer.id)
        debt = sum(e.amount if e.kind == "sale" else -e.amount for e in entries)
        if amount > debt:
            raise ValidationError(f"Payment of {amount} exceeds current debt of {debt}")

        # Backdated payments must not settle purchases made after them
        entries.append(debt_service.LedgerEntry(payment_date, "payment", _PENDING_ID, amount, ""))
        if debt_service.lowest_running_balance(entries) < 0:
            raise ValidationError(
                f"Payment of {amount} dated {to_utc_z(payment_date)} exceeds the debt owed at that date"
            )

        payment = Payment(
            store_id=ctx.store_id,
            customer_id=customer.id,
            amount=amount,
            method=method,
            payment_date=payment_date,
            notes=notes,
            status=PAYMENT_STATUS_COMPLETED,
            created_by_user_id=ctx.user_id,
        )
        db.session.add(payment)
        db.session.commit()
        return payment

    return run_with_retry(_op)


def void_payment(ctx: RequestContext, payment_id: int, reason: str | None = None) -> Payment:
    """
    Void a debt payment; the amount becomes owed again.

    Payments recorded automatically with a sale are voided by voiding
    that sale instead.
    """
    def _op():
        payment = lock_for_update(
            db.session.query(Payment).filter_by(id=payment_id, store_id=ctx.store_id)
        ).first()
        if not payment:
            raise NotFoundError("Payment not found")
        if payment.status == PAYMENT_STATUS_VOIDED:
            raise ConflictError("Payment already voided")
        if payment.sale is not None and payment.sale.status == SALE_STATUS_COMPLETED:
            raise PaymentError("This payment belongs to a sale; void the sale instead")

        payment.status = PAYMENT_STATUS_VOIDED
        payment.voided_at = utcnow()
        payment.voided_by_user_id = ctx.user_id
        payment.void_reason = reason

        db.session.commit()
        return payment

    return run_with_retry(_op)


def list_payments(
    ctx: RequestContext,
    *,
    customer_id: int | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    include_voided: bool = False,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    query = db.session.query(Payment).filter(Payment.store_id == ctx.store_id)
    if customer_id is not None:
        query = query.filter(Payment.customer_id == customer_id)
    if date_from is not None:
        query = query.filter(Payment.payment_date >= date_from)
    if date_to is not None:
        query = query.filter(Payment.payment_date <= date_to)
    if not include_voided:
        query = query.filter(Payment.status == PAYMENT_STATUS_COMPLETED)

    query = query.order_by(Payment.payment_date.desc(), Payment.id.desc())
    return paginate(query, page, per_page)
