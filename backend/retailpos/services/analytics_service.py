# Overview: Builds analytics inputs from store data and delegates to the configured backend.

from __future__ import annotations

import logging
from datetime import timedelta

from flask import current_app

from ..analytics import get_analytics_backend
from ..context import RequestContext
from ..extensions import db
from ..models import Customer, Product, Sale, SaleItem
from ..models.sales import SALE_STATUS_COMPLETED
from ..validation import NotFoundError, coerce_int, coerce_str
from retailpos.time_utils import to_utc_z, utcnow
from . import debt_service

logger = logging.getLogger(__name__)

DEFAULT_TRANSACTION_LIMIT = 1000
MAX_TRANSACTION_LIMIT = 5000


def collect_transactions(ctx: RequestContext, days: int, limit: int) -> list[dict]:
    """Most recent completed sales as baskets of distinct product names."""
    since = utcnow() - timedelta(days=days)
    sales = (
        db.session.query(Sale)
        .filter(
            Sale.store_id == ctx.store_id,
            Sale.status == SALE_STATUS_COMPLETED,
            Sale.transaction_date >= since,
        )
        .order_by(Sale.transaction_date.desc(), Sale.id.desc())
        .limit(limit)
        .all()
    )

    transactions = []
    for sale in sales:
        names = sorted({item.product_name for item in sale.items})
        if names:
            transactions.append({"id": sale.id, "items": names})
    return transactions


def market_basket(ctx: RequestContext, days=None, limit=None) -> dict:
    days = coerce_int(days, "days", minimum=1, maximum=3650) if days is not None \
        else current_app.config["MARKET_BASKET_DAYS"]
    limit = coerce_int(limit, "limit", minimum=1, maximum=MAX_TRANSACTION_LIMIT) if limit is not None \
        else DEFAULT_TRANSACTION_LIMIT

    backend = get_analytics_backend()
    transactions = collect_transactions(ctx, days, limit)
    logger.info("Market basket analysis for store %s: %d transactions via %s",
                ctx.store_id, len(transactions), backend.name)

    result = backend.analyze_market_basket(transactions)
    return {"days": days, "transaction_count": len(transactions), "backend": backend.name, **result}


def build_debt_profile(ctx: RequestContext, customer: Customer) -> dict:
    """
    Snapshot of a customer's debt behaviour for risk scoring.

    days_since_first_unpaid_sale applies payments to the oldest sales
    first and reports the age of the oldest sale not yet covered.
    """
    entries = sorted(debt_service.ledger_entries(ctx.store_id, customer.id), key=lambda e: (e.date, e.id))
    sales = [e for e in entries if e.kind == "sale"]
    payments = [e for e in entries if e.kind == "payment"]

    total_debt = sum(e.amount for e in sales) - sum(e.amount for e in payments)
    now = utcnow()

    days_since_last_payment = None
    if payments:
        days_since_last_payment = (now - payments[-1].date).days

    days_since_first_unpaid_sale = None
    covered = sum(e.amount for e in payments)
    for sale in sales:
        if covered >= sale.amount:
            covered -= sale.amount
            continue
        days_since_first_unpaid_sale = (now - sale.date).days
        break

    return {
        "customer_id": customer.id,
        "customer_name": customer.name,
        "total_debt": total_debt,
        "credit_limit": customer.credit_limit,
        "payment_history": [
            {"date": to_utc_z(e.date), "amount": e.amount} for e in payments[-20:]
        ],
        "days_since_last_payment": days_since_last_payment,
        "days_since_first_unpaid_sale": days_since_first_unpaid_sale,
    }


def debt_risk(ctx: RequestContext, customer_id: int) -> dict:
    customer = db.session.query(Customer).filter_by(id=customer_id, store_id=ctx.store_id).first()
    if not customer:
        raise NotFoundError("Customer not found")

    backend = get_analytics_backend()
    profile = build_debt_profile(ctx, customer)
    prediction = backend.predict_debt_risk(profile)
    return {"profile": profile, "prediction": prediction, "backend": backend.name}


def build_forecast_request(ctx: RequestContext, history_days: int, period_days: int,
                           market_context: str | None = None) -> dict:
    """Per-line sales history and current stock of the store's active products."""
    since = utcnow() - timedelta(days=history_days)
    rows = (
        db.session.query(SaleItem.product_id, SaleItem.quantity, Sale.transaction_date)
        .join(Sale, SaleItem.sale_id == Sale.id)
        .filter(
            Sale.store_id == ctx.store_id,
            Sale.status == SALE_STATUS_COMPLETED,
            Sale.transaction_date >= since,
        )
        .order_by(Sale.transaction_date.asc(), SaleItem.id.asc())
        .all()
    )
    products = (
        db.session.query(Product)
        .filter(Product.store_id == ctx.store_id, Product.is_active.is_(True))
        .order_by(Product.name.asc(), Product.id.asc())
        .all()
    )
    return {
        "history_days": history_days,
        "forecast_period_days": period_days,
        "market_context": market_context,
        "sales": [
            {"product_id": product_id, "quantity": quantity, "date": to_utc_z(date)}
            for product_id, quantity, date in rows
        ],
        "inventory": [
            {"product_id": p.id, "product_name": p.name, "current_stock": p.stock_quantity}
            for p in products
        ],
    }


def forecast_sales(ctx: RequestContext, days=None, period_days=None, market_context=None) -> dict:
    days = coerce_int(days, "days", minimum=1, maximum=3650) if days is not None \
        else current_app.config["FORECAST_HISTORY_DAYS"]
    period_days = coerce_int(period_days, "period_days", minimum=1, maximum=365) if period_days is not None \
        else current_app.config["FORECAST_PERIOD_DAYS"]
    if market_context is not None:
        market_context = coerce_str(market_context, "market_context", max_length=1000, allow_blank=True) or None

    backend = get_analytics_backend()
    request = build_forecast_request(ctx, days, period_days, market_context)
    logger.info("Sales forecast for store %s: %d products, %d sale lines via %s",
                ctx.store_id, len(request["inventory"]), len(request["sales"]), backend.name)

    result = backend.forecast_sales(request)
    return {"days": days, "period_days": period_days, "backend": backend.name, **result}
