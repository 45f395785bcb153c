# Overview: Flask API routes for manager reports (debt positions, sales totals, inventory).

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_role, require_store_access
from ..models.auth import ROLE_MANAGER
from ..services import debt_service, reporting_service
from ..services.reporting_service import ReportError
from .common import arg_date_range, arg_flag, arg_int, result_error

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/debt")
@require_auth
@require_store_access
@require_role(ROLE_MANAGER)
def debt_report_route():
    """
    Query params:
    - search: Name or phone
    - has_debt_only: Skip customers with zero balance
    - over_limit_only: Only customers above their credit limit
    """
    result = debt_service.debt_report(
        g.ctx,
        search=request.args.get("search"),
        has_debt_only=arg_flag("has_debt_only"),
        over_limit_only=arg_flag("over_limit_only"),
    )
    if not result.success:
        return result_error(result)
    return jsonify(result.data)


@reports_bp.get("/sales")
@require_auth
@require_store_access
@require_role(ROLE_MANAGER)
def sales_report_route():
    """
    Query params:
    - date_from, date_to: ISO dates (date_to inclusive)
    - group_by: day | month (default day)
    """
    try:
        date_from, date_to = arg_date_range()
        report = reporting_service.sales_report(
            g.ctx,
            date_from=date_from,
            date_to=date_to,
            group_by=request.args.get("group_by", "day"),
        )
        return jsonify(report)
    except (ReportError, ValueError) as e:
        return jsonify({"error": str(e)}), 400


@reports_bp.get("/inventory")
@require_auth
@require_store_access
@require_role(ROLE_MANAGER)
def inventory_report_route():
    """
    Query params:
    - category_id: Only products of this category
    - search: Name, SKU or barcode
    - low_stock_only: Only products at or below the threshold
    - low_stock_threshold: Overrides LOW_STOCK_THRESHOLD
    - date_from, date_to: Window for sold_quantity
    """
    try:
        date_from, date_to = arg_date_range()
        report = reporting_service.inventory_report(
            g.ctx,
            category_id=arg_int("category_id", minimum=1),
            search=request.args.get("search"),
            low_stock_only=arg_flag("low_stock_only"),
            low_stock_threshold=arg_int("low_stock_threshold", minimum=0),
            date_from=date_from,
            date_to=date_to,
        )
        return jsonify(report)
    except (ReportError, ValueError) as e:
        return jsonify({"error": str(e)}), 400
