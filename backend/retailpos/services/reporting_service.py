# Overview: Sales and inventory reporting for one store.

from __future__ import annotations

from datetime import datetime

from flask import current_app

from ..context import RequestContext
from ..extensions import db
from ..models import Category, Product, Sale, SaleItem
from ..models.sales import SALE_STATUS_COMPLETED
from retailpos.time_utils import to_utc_z

TOP_PRODUCT_COUNT = 10


class ReportError(Exception):
    """Raised when report generation fails."""


def sales_report(
    ctx: RequestContext,
    *,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    group_by: str = "day",
) -> dict:
    """
    Revenue totals, per-period and per-method breakdowns, and top products.

    Grouping is done in Python on transaction_date so the report works the
    same on every database backend.
    """
    if group_by not in ("day", "month"):
        raise ReportError("group_by must be day or month")
    if date_from and date_to and date_from > date_to:
        raise ReportError("date_from must not be after date_to")

    query = db.session.query(Sale).filter(
        Sale.store_id == ctx.store_id,
        Sale.status == SALE_STATUS_COMPLETED,
    )
    if date_from is not None:
        query = query.filter(Sale.transaction_date >= date_from)
    if date_to is not None:
        query = query.filter(Sale.transaction_date <= date_to)
    sales = query.order_by(Sale.transaction_date.asc(), Sale.id.asc()).all()

    period_format = "%Y-%m-%d" if group_by == "day" else "%Y-%m"
    periods: dict[str, dict] = {}
    by_method: dict[str, int] = {}
    total_revenue = total_discount = 0

    for sale in sales:
        key = sale.transaction_date.strftime(period_format)
        bucket = periods.setdefault(key, {"period": key, "sales_count": 0, "revenue": 0})
        bucket["sales_count"] += 1
        bucket["revenue"] += sale.total_amount
        by_method[sale.payment_method] = by_method.get(sale.payment_method, 0) + sale.total_amount
        total_revenue += sale.total_amount
        total_discount += sale.discount

    top_products = []
    if sales:
        rows = (
            db.session.query(
                SaleItem.product_id,
                SaleItem.product_name,
                db.func.sum(SaleItem.quantity),
                db.func.sum(SaleItem.line_total),
                db.func.sum(SaleItem.quantity * db.func.coalesce(SaleItem.unit_cost, 0)),
            )
            .filter(SaleItem.sale_id.in_([s.id for s in sales]))
            .group_by(SaleItem.product_id, SaleItem.product_name)
            .order_by(db.func.sum(SaleItem.line_total).desc())
            .limit(TOP_PRODUCT_COUNT)
            .all()
        )
        top_products = [
            {
                "product_id": product_id,
                "product_name": name,
                "quantity": int(qty),
                "revenue": int(revenue),
                "gross_profit": int(revenue) - int(cost),
            }
            for product_id, name, qty, revenue, cost in rows
        ]

    return {
        "date_from": to_utc_z(date_from) if date_from else None,
        "date_to": to_utc_z(date_to) if date_to else None,
        "group_by": group_by,
        "summary": {
            "sales_count": len(sales),
            "total_revenue": total_revenue,
            "total_discount": total_discount,
            "average_sale": total_revenue // len(sales) if sales else 0,
            "revenue_by_payment_method": by_method,
        },
        "periods": list(periods.values()),
        "top_products": top_products,
    }


def inventory_report(
    ctx: RequestContext,
    *,
    category_id: int | None = None,
    search: str | None = None,
    low_stock_only: bool = False,
    low_stock_threshold: int | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
) -> dict:
    """
    Stock on hand and its value for every active product.

    stock_value is valued at cost (products without a cost count as 0),
    retail_value at the selling price. sold_quantity counts completed
    sales between date_from and date_to. A product is low on stock when
    stock_quantity <= low_stock_threshold (LOW_STOCK_THRESHOLD by default).
    """
    if low_stock_threshold is None:
        low_stock_threshold = current_app.config["LOW_STOCK_THRESHOLD"]
    if low_stock_threshold < 0:
        raise ReportError("low_stock_threshold must be >= 0")
    if date_from and date_to and date_from > date_to:
        raise ReportError("date_from must not be after date_to")

    query = (
        db.session.query(Product, Category.name)
        .outerjoin(Category, Product.category_id == Category.id)
        .filter(Product.store_id == ctx.store_id, Product.is_active.is_(True))
    )
    if category_id is not None:
        query = query.filter(Product.category_id == category_id)
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(db.or_(
            Product.name.ilike(term),
            Product.sku.ilike(term),
            Product.barcode.ilike(term),
        ))
    if low_stock_only:
        query = query.filter(Product.stock_quantity <= low_stock_threshold)
    rows = query.order_by(Product.name.asc(), Product.id.asc()).all()

    sold: dict[int, int] = {}
    if rows:
        sold_query = (
            db.session.query(SaleItem.product_id, db.func.sum(SaleItem.quantity))
            .join(Sale, SaleItem.sale_id == Sale.id)
            .filter(
                Sale.store_id == ctx.store_id,
                Sale.status == SALE_STATUS_COMPLETED,
                SaleItem.product_id.in_([p.id for p, _ in rows]),
            )
        )
        if date_from is not None:
            sold_query = sold_query.filter(Sale.transaction_date >= date_from)
        if date_to is not None:
            sold_query = sold_query.filter(Sale.transaction_date <= date_to)
        sold = {pid: int(qty) for pid, qty in sold_query.group_by(SaleItem.product_id).all()}

    items = []
    total_stock_value = total_retail_value = low_stock_count = 0
    for product, category_name in rows:
        stock_value = product.stock_quantity * (product.cost_price or 0)
        retail_value = product.stock_quantity * product.price
        is_low = product.stock_quantity <= low_stock_threshold
        items.append({
            "product_id": product.id,
            "sku": product.sku,
            "barcode": product.barcode,
            "name": product.name,
            "category": category_name,
            "unit": product.unit,
            "stock_quantity": product.stock_quantity,
            "cost_price": product.cost_price,
            "price": product.price,
            "stock_value": stock_value,
            "retail_value": retail_value,
            "sold_quantity": sold.get(product.id, 0),
            "is_low_stock": is_low,
        })
        total_stock_value += stock_value
        total_retail_value += retail_value
        low_stock_count += is_low

    return {
        "date_from": to_utc_z(date_from) if date_from else None,
        "date_to": to_utc_z(date_to) if date_to else None,
        "low_stock_threshold": low_stock_threshold,
        "summary": {
            "product_count": len(items),
            "total_stock_quantity": sum(i["stock_quantity"] for i in items),
            "total_stock_value": total_stock_value,
            "total_retail_value": total_retail_value,
            "low_stock_count": low_stock_count,
        },
        "items": items,
    }
