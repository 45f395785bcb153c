# Overview: Flask API routes exposing the analytics backend (basket analysis, debt risk, forecasts).

from flask import Blueprint, current_app, g, jsonify

from ..analytics import AnalyticsError
from ..decorators import require_auth, require_role, require_store_access
from ..models.auth import ROLE_MANAGER
from ..services import analytics_service
from ..validation import NotFoundError
from .common import json_body

analytics_bp = Blueprint("analytics", __name__, url_prefix="/api/analytics")


@analytics_bp.post("/market-basket")
@require_auth
@require_store_access
@require_role(ROLE_MANAGER)
def market_basket_route():
    """
    Products frequently bought together.

    Request body: {"days": 90, "limit": 1000}   (both optional)
    """
    try:
        data = json_body()
        return jsonify(analytics_service.market_basket(g.ctx, data.get("days"), data.get("limit")))
    except AnalyticsError as e:
        current_app.logger.warning("Market basket analysis failed: %s", e)
        return jsonify({"error": f"Analytics backend error: {e}"}), 502
    except ValueError as e:
        return jsonify({"error": str(e)}), 400


@analytics_bp.get("/customers/<int:customer_id>/debt-risk")
@require_auth
@require_store_access
@require_role(ROLE_MANAGER)
def debt_risk_route(customer_id: int):
    try:
        return jsonify(analytics_service.debt_risk(g.ctx, customer_id))
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except AnalyticsError as e:
        current_app.logger.warning("Debt risk prediction failed: %s", e)
        return jsonify({"error": f"Analytics backend error: {e}"}), 502


@analytics_bp.post("/sales-forecast")
@require_auth
@require_store_access
@require_role(ROLE_MANAGER)
def sales_forecast_route():
    """
    Forecast product sales and suggest reorders.

    Request body: {"days": 30, "period_days": 14, "market_context": "..."}   (all optional)
    """
    try:
        data = json_body()
        return jsonify(analytics_service.forecast_sales(
            g.ctx, data.get("days"), data.get("period_days"), data.get("market_context"),
        ))
    except AnalyticsError as e:
        current_app.logger.warning("Sales forecast failed: %s", e)
        return jsonify({"error": f"Analytics backend error: {e}"}), 502
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
