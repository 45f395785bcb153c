# Overview: Flask API routes for customers and their debt position.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_role, require_store_access
from ..extensions import db
from ..models.auth import ROLE_MANAGER
from ..services import customer_service, debt_service
from ..updates import CustomerUpdate
from ..validation import ConflictError, NotFoundError
from .common import arg_flag, json_body, page_args, result_error

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
@require_store_access
def list_customers_route():
    try:
        page, per_page = page_args()
        return jsonify(customer_service.list_customers(
            g.ctx,
            search=request.args.get("search"),
            include_inactive=arg_flag("include_inactive"),
            page=page,
            per_page=per_page,
        ))
    except ValueError as e:
        return jsonify({"error": str(e)}), 400


@customers_bp.post("")
@require_auth
@require_store_access
def create_customer_route():
    """
    Request body:
    {
        "name": "...",
        "phone": "...",            (unique among active customers of the store)
        "email": "...",
        "address": "...",
        "credit_limit": 500000     (default 0)
    }
    """
    try:
        update = CustomerUpdate.from_payload(json_body(), required=("name",))
        customer = customer_service.create_customer(g.ctx, update)
        return jsonify({"customer": customer.to_dict()}), 201
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("/<int:customer_id>")
@require_auth
@require_store_access
def get_customer_route(customer_id: int):
    try:
        return jsonify({"customer": customer_service.get_customer(g.ctx, customer_id).to_dict()})
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@customers_bp.patch("/<int:customer_id>")
@require_auth
@require_store_access
def update_customer_route(customer_id: int):
    """Changing credit_limit requires a manager."""
    try:
        update = CustomerUpdate.from_payload(json_body())
        if update.is_empty():
            return jsonify({"error": "No fields to update"}), 400
        if "credit_limit" in update.provided() and not g.ctx.is_manager:
            return jsonify({"error": "Permission denied", "required_role": ROLE_MANAGER}), 403

        customer = customer_service.update_customer(g.ctx, customer_id, update)
        return jsonify({"customer": customer.to_dict()})
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.delete("/<int:customer_id>")
@require_auth
@require_store_access
@require_role(ROLE_MANAGER)
def delete_customer_route(customer_id: int):
    """Deactivates the customer; sales and payments stay on record."""
    try:
        customer = customer_service.deactivate_customer(g.ctx, customer_id)
        return jsonify({"customer": customer.to_dict()})
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to deactivate customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("/<int:customer_id>/debt")
@require_auth
@require_store_access
def get_customer_debt_route(customer_id: int):
    """
    Current debt of a customer.

    Query params:
    - include_history: Add the ordered ledger with running balances

    Returns: {"success": true, "customer": {...}, "debt_info": {...}, "history": [...]}
    """
    result = debt_service.get_customer_debt(
        g.ctx, customer_id, include_history=arg_flag("include_history")
    )
    if not result.success:
        return result_error(result)
    return jsonify({"success": True, **result.data})


@customers_bp.post("/<int:customer_id>/debt")
@require_auth
@require_store_access
def check_credit_limit_route(customer_id: int):
    """Request body: {"additional_debt": 150000}"""
    try:
        data = json_body()
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    result = debt_service.check_credit_limit(g.ctx, customer_id, data.get("additional_debt", 0))
    if not result.success:
        return result_error(result)
    return jsonify({"success": True, **result.data})
