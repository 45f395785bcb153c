# Overview: Customer debt aggregation from sale and payment history.

"""
Debt Service

WHY: A customer's debt is never stored. It is derived every time from the
customer's completed sales (debt incurred) and completed payments (debt
settled), so corrections (voids) are reflected immediately and the
balance cannot drift from the underlying records.

ALGORITHM:
- Fetch completed sales and completed payments for the customer
- Merge by date ascending (ties: sales before payments, then by id)
- Fold a running balance: +sale total, -payment amount
- Current debt is the final running balance (= total sales - total payments)

CREDIT LIMIT:
- available_credit = max(0, credit_limit - current_debt)
- is_over_limit = current_debt > credit_limit (strict; false at equality)

Read-only: nothing in this module writes to the database.
"""

from __future__ import annotations

from datetime import datetime
from typing import NamedTuple

from ..context import RequestContext
from ..extensions import db
from ..models import Customer, Payment, Sale
from ..models.sales import PAYMENT_STATUS_COMPLETED, SALE_STATUS_COMPLETED
from ..validation import ValidationError, coerce_int
from retailpos.time_utils import to_utc_z
from .result import NOT_FOUND, VALIDATION, ServiceResult


class LedgerEntry(NamedTuple):
    date: datetime
    kind: str  # "sale" | "payment"
    id: int
    amount: int
    description: str


# Sales sort before payments recorded at the same instant
_KIND_ORDER = {"sale": 0, "payment": 1}


def compute_debt_info(total_sales: int, total_payments: int, credit_limit: int) -> dict:
    current_debt = total_sales - total_payments
    return {
        "total_sales": total_sales,
        "total_payments": total_payments,
        "current_debt": current_debt,
        "credit_limit": credit_limit,
        "available_credit": max(0, credit_limit - current_debt),
        "is_over_limit": current_debt > credit_limit,
    }


def _ordered(entries: list[LedgerEntry]) -> list[LedgerEntry]:
    return sorted(entries, key=lambda e: (e.date, _KIND_ORDER[e.kind], e.id))


def build_history(entries: list[LedgerEntry]) -> list[dict]:
    """Order entries and attach the running balance after each one."""
    history = []
    balance = 0
    for entry in _ordered(entries):
        balance += entry.amount if entry.kind == "sale" else -entry.amount
        history.append({
            "id": entry.id,
            "type": entry.kind,
            "date": to_utc_z(entry.date),
            "amount": entry.amount,
            "description": entry.description,
            "running_balance": balance,
        })
    return history


def lowest_running_balance(entries: list[LedgerEntry]) -> int:
    """Minimum of 0 and every running balance along the ordered entries."""
    lowest = balance = 0
    for entry in _ordered(entries):
        balance += entry.amount if entry.kind == "sale" else -entry.amount
        lowest = min(lowest, balance)
    return lowest


def ledger_entries(store_id: int, customer_id: int) -> list[LedgerEntry]:
    sales = (
        db.session.query(Sale)
        .filter(
            Sale.store_id == store_id,
            Sale.customer_id == customer_id,
            Sale.status == SALE_STATUS_COMPLETED,
        )
        .all()
    )
    payments = (
        db.session.query(Payment)
        .filter(
            Payment.store_id == store_id,
            Payment.customer_id == customer_id,
            Payment.status == PAYMENT_STATUS_COMPLETED,
        )
        .all()
    )

    entries = [
        LedgerEntry(s.transaction_date, "sale", s.id, s.total_amount, f"Purchase {s.invoice_number}")
        for s in sales
    ]
    entries.extend(
        LedgerEntry(p.payment_date, "payment", p.id, p.amount, p.notes or "Debt payment")
        for p in payments
    )
    return entries


def _find_customer(ctx: RequestContext, customer_id: int) -> Customer | None:
    return db.session.query(Customer).filter_by(id=customer_id, store_id=ctx.store_id).first()


def get_customer_debt(ctx: RequestContext, customer_id: int, include_history: bool = False) -> ServiceResult:
    """
    Current debt and credit position of one customer.

    data = {"customer", "debt_info", "history"?}. A customer without any
    sales or payments has zero debt and an empty history.
    """
    customer = _find_customer(ctx, customer_id)
    if not customer:
        return ServiceResult.fail(NOT_FOUND, "Customer not found")

    entries = ledger_entries(ctx.store_id, customer.id)
    total_sales = sum(e.amount for e in entries if e.kind == "sale")
    total_payments = sum(e.amount for e in entries if e.kind == "payment")

    data = {
        "customer": customer.to_dict(),
        "debt_info": compute_debt_info(total_sales, total_payments, customer.credit_limit),
    }
    if include_history:
        data["history"] = build_history(entries)
    return ServiceResult.ok(data)


def current_debt(ctx: RequestContext, customer_id: int) -> int:
    """Bare current balance; 0 for unknown customers."""
    entries = ledger_entries(ctx.store_id, customer_id)
    return sum(e.amount if e.kind == "sale" else -e.amount for e in entries)


def check_credit_limit(ctx: RequestContext, customer_id: int, additional_debt) -> ServiceResult:
    """Would taking on `additional_debt` keep the customer within their limit?"""
    try:
        additional = coerce_int(additional_debt, "additional_debt", minimum=0)
    except ValidationError as e:
        return ServiceResult.fail(VALIDATION, str(e))

    customer = _find_customer(ctx, customer_id)
    if not customer:
        return ServiceResult.fail(NOT_FOUND, "Customer not found")

    debt = current_debt(ctx, customer.id)
    projected = debt + additional
    within_limit = projected <= customer.credit_limit

    warning = None
    if not within_limit:
        warning = (
            f"Projected debt {projected} exceeds credit limit {customer.credit_limit} "
            f"by {projected - customer.credit_limit}"
        )

    return ServiceResult.ok({
        "customer_id": customer.id,
        "current_debt": debt,
        "additional_debt": additional,
        "projected_debt": projected,
        "credit_limit": customer.credit_limit,
        "within_limit": within_limit,
        "warning": warning,
    })


def debt_report(
    ctx: RequestContext,
    *,
    search: str | None = None,
    has_debt_only: bool = False,
    over_limit_only: bool = False,
) -> ServiceResult:
    """
    Debt position of every customer in the store, highest debt first.

    Totals are aggregated in SQL per customer; the per-customer figures
    follow the same rules as get_customer_debt.
    """
    sales_agg = (
        db.session.query(
            Sale.customer_id.label("customer_id"),
            db.func.coalesce(db.func.sum(Sale.total_amount), 0).label("total"),
            db.func.max(Sale.transaction_date).label("last_date"),
        )
        .filter(
            Sale.store_id == ctx.store_id,
            Sale.customer_id.isnot(None),
            Sale.status == SALE_STATUS_COMPLETED,
        )
        .group_by(Sale.customer_id)
        .subquery()
    )
    payments_agg = (
        db.session.query(
            Payment.customer_id.label("customer_id"),
            db.func.coalesce(db.func.sum(Payment.amount), 0).label("total"),
            db.func.max(Payment.payment_date).label("last_date"),
        )
        .filter(
            Payment.store_id == ctx.store_id,
            Payment.status == PAYMENT_STATUS_COMPLETED,
        )
        .group_by(Payment.customer_id)
        .subquery()
    )

    query = (
        db.session.query(
            Customer,
            sales_agg.c.total,
            sales_agg.c.last_date,
            payments_agg.c.total,
            payments_agg.c.last_date,
        )
        .outerjoin(sales_agg, sales_agg.c.customer_id == Customer.id)
        .outerjoin(payments_agg, payments_agg.c.customer_id == Customer.id)
        .filter(Customer.store_id == ctx.store_id)
    )
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(db.or_(Customer.name.ilike(like), Customer.phone.ilike(like)))

    rows = []
    for customer, sales_total, last_sale, payments_total, last_payment in query.all():
        info = compute_debt_info(int(sales_total or 0), int(payments_total or 0), customer.credit_limit)
        if has_debt_only and info["current_debt"] <= 0:
            continue
        if over_limit_only and not info["is_over_limit"]:
            continue
        rows.append({
            "customer_id": customer.id,
            "customer_name": customer.name,
            "phone": customer.phone,
            "is_active": customer.is_active,
            **info,
            "last_sale_date": to_utc_z(last_sale) if last_sale else None,
            "last_payment_date": to_utc_z(last_payment) if last_payment else None,
        })

    rows.sort(key=lambda r: (-r["current_debt"], r["customer_name"].lower()))

    return ServiceResult.ok({
        "customers": rows,
        "summary": {
            "customer_count": len(rows),
            "total_debt": sum(max(0, r["current_debt"]) for r in rows),
            "over_limit_count": sum(1 for r in rows if r["is_over_limit"]),
        },
    })
