# Overview: Flask API routes for the manual cash book (receipts and disbursements).

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_role, require_store_access
from ..extensions import db
from ..models.auth import ROLE_MANAGER
from ..services import cash_flow_service
from ..updates import CashTransactionUpdate
from ..validation import ConflictError, NotFoundError
from .common import arg_date_range, arg_flag, json_body, page_args

cash_flow_bp = Blueprint("cash_flow", __name__, url_prefix="/api/cash-flow")


@cash_flow_bp.get("")
@require_auth
@require_store_access
def list_transactions_route():
    """
    Query params:
    - type: receipt | disbursement
    - category: Exact category
    - date_from, date_to: ISO dates (date_to inclusive)
    - include_summary: Add totals for the same date range
    - page, per_page: Pagination
    """
    try:
        date_from, date_to = arg_date_range()
        page, per_page = page_args()
        result = cash_flow_service.list_transactions(
            g.ctx,
            transaction_type=request.args.get("type") or None,
            category=request.args.get("category") or None,
            date_from=date_from,
            date_to=date_to,
            page=page,
            per_page=per_page,
        )
        if arg_flag("include_summary"):
            result["summary"] = cash_flow_service.get_summary(g.ctx, date_from, date_to)
        return jsonify(result)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400


@cash_flow_bp.get("/summary")
@require_auth
@require_store_access
def summary_route():
    try:
        date_from, date_to = arg_date_range()
        return jsonify(cash_flow_service.get_summary(g.ctx, date_from, date_to))
    except ValueError as e:
        return jsonify({"error": str(e)}), 400


@cash_flow_bp.get("/categories")
@require_auth
@require_store_access
def categories_route():
    return jsonify({"categories": cash_flow_service.list_categories(g.ctx)})


@cash_flow_bp.post("")
@require_auth
@require_store_access
def create_transaction_route():
    """
    Request body:
    {
        "transaction_type": "disbursement",   (receipt | disbursement)
        "amount": 20000,
        "reason": "Electricity bill",
        "category": "utilities",
        "related_invoice": "...",
        "transaction_date": "...",            (optional, default now)
        "customer_id": 3                      (optional)
    }
    """
    try:
        update = CashTransactionUpdate.from_payload(
            json_body(), required=("transaction_type", "amount", "reason")
        )
        txn = cash_flow_service.create_transaction(g.ctx, update)
        return jsonify({"transaction": txn.to_dict()}), 201
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create cash transaction")
        return jsonify({"error": "Internal server error"}), 500


@cash_flow_bp.get("/<int:transaction_id>")
@require_auth
@require_store_access
def get_transaction_route(transaction_id: int):
    try:
        return jsonify({"transaction": cash_flow_service.get_transaction(g.ctx, transaction_id).to_dict()})
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@cash_flow_bp.put("/<int:transaction_id>")
@require_auth
@require_store_access
@require_role(ROLE_MANAGER)
def replace_transaction_route(transaction_id: int):
    """
    Correct an entry. The original is kept as REPLACED and a new entry
    carrying the merged fields is returned.
    """
    try:
        update = CashTransactionUpdate.from_payload(json_body())
        if update.is_empty():
            return jsonify({"error": "No fields to update"}), 400
        txn = cash_flow_service.replace_transaction(g.ctx, transaction_id, update)
        return jsonify({"transaction": txn.to_dict(), "replaced_id": transaction_id})
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to replace cash transaction")
        return jsonify({"error": "Internal server error"}), 500
