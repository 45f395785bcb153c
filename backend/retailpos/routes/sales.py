# Overview: Flask API routes for POS sales; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_role, require_store_access
from ..extensions import db
from ..models.auth import ROLE_MANAGER
from ..services import sales_service
from ..services.sales_service import SaleError
from ..validation import ConflictError, NotFoundError
from .common import arg_date_range, arg_int, json_body, page_args

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.get("")
@require_auth
@require_store_access
def list_sales_route():
    """
    Query params:
    - date_from, date_to: ISO dates (date_to inclusive)
    - customer_id, shift_id: Filters
    - status: completed | voided
    - payment_method: cash | card | transfer | credit
    - page, per_page: Pagination
    """
    try:
        date_from, date_to = arg_date_range()
        page, per_page = page_args()
        return jsonify(sales_service.list_sales(
            g.ctx,
            date_from=date_from,
            date_to=date_to,
            customer_id=arg_int("customer_id"),
            shift_id=arg_int("shift_id"),
            status=request.args.get("status"),
            payment_method=request.args.get("payment_method"),
            page=page,
            per_page=per_page,
        ))
    except ValueError as e:
        return jsonify({"error": str(e)}), 400


@sales_bp.post("")
@require_auth
@require_store_access
def create_sale_route():
    """
    Record a completed sale.

    Request body:
    {
        "items": [{"product_id": 1, "quantity": 2}],
        "payment_method": "cash",         (cash | card | transfer | credit)
        "customer_id": 3,                 (required for credit)
        "amount_tendered": 100000,        (cash only)
        "discount": 0,
        "notes": "...",
        "override_credit_limit": false    (managers only)
    }
    """
    try:
        sale = sales_service.create_sale(g.ctx, json_body())
        return jsonify({"sale": sale.to_dict()}), 201

    except SaleError as e:
        body = {"error": str(e)}
        if e.details:
            body["details"] = e.details
        return jsonify(body), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:sale_id>")
@require_auth
@require_store_access
def get_sale_route(sale_id: int):
    try:
        return jsonify({"sale": sales_service.get_sale(g.ctx, sale_id).to_dict()})
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@sales_bp.post("/<int:sale_id>/void")
@require_auth
@require_store_access
@require_role(ROLE_MANAGER)
def void_sale_route(sale_id: int):
    """
    Void a sale: stock is restored and its payments are voided.

    Request body: {"reason": "..."}
    """
    try:
        sale = sales_service.void_sale(g.ctx, sale_id, json_body().get("reason"))
        return jsonify({"sale": sale.to_dict()})
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to void sale")
        return jsonify({"error": "Internal server error"}), 500
