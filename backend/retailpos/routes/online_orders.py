# Overview: Flask API routes for staff handling of storefront orders.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_store_access
from ..extensions import db
from ..services import online_order_service
from ..validation import ConflictError, NotFoundError
from .common import json_body, page_args

online_orders_bp = Blueprint("online_orders", __name__, url_prefix="/api/online-orders")


@online_orders_bp.get("")
@require_auth
@require_store_access
def list_orders_route():
    try:
        page, per_page = page_args()
        return jsonify(online_order_service.list_orders(
            g.ctx,
            status=request.args.get("status") or None,
            search=request.args.get("search"),
            page=page,
            per_page=per_page,
        ))
    except ValueError as e:
        return jsonify({"error": str(e)}), 400


@online_orders_bp.get("/<int:order_id>")
@require_auth
@require_store_access
def get_order_route(order_id: int):
    try:
        return jsonify({"order": online_order_service.get_order(g.ctx, order_id).to_dict()})
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@online_orders_bp.patch("/<int:order_id>/status")
@require_auth
@require_store_access
def update_status_route(order_id: int):
    """
    Request body: {"status": "confirmed"}

    pending -> confirmed | cancelled; confirmed -> shipping | cancelled;
    shipping -> delivered. Cancelling restocks the items.
    """
    try:
        order = online_order_service.update_status(g.ctx, order_id, json_body().get("status"))
        return jsonify({"order": order.to_dict()})
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update order status")
        return jsonify({"error": "Internal server error"}), 500


@online_orders_bp.post("/<int:order_id>/payment")
@require_auth
@require_store_access
def mark_paid_route(order_id: int):
    try:
        order = online_order_service.mark_paid(g.ctx, order_id)
        return jsonify({"order": order.to_dict()})
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to mark order paid")
        return jsonify({"error": "Internal server error"}), 500
