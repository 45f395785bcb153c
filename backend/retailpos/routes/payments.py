# Overview: Flask API routes for customer debt payments.

from flask import Blueprint, current_app, g, jsonify

from ..decorators import require_auth, require_role, require_store_access
from ..extensions import db
from ..models.auth import ROLE_MANAGER
from ..services import payment_service
from ..services.payment_service import PaymentError
from ..validation import ConflictError, NotFoundError
from .common import arg_date_range, arg_flag, arg_int, json_body, page_args

payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


@payments_bp.get("")
@require_auth
@require_store_access
def list_payments_route():
    try:
        date_from, date_to = arg_date_range()
        page, per_page = page_args()
        return jsonify(payment_service.list_payments(
            g.ctx,
            customer_id=arg_int("customer_id"),
            date_from=date_from,
            date_to=date_to,
            include_voided=arg_flag("include_voided"),
            page=page,
            per_page=per_page,
        ))
    except ValueError as e:
        return jsonify({"error": str(e)}), 400


@payments_bp.post("")
@require_auth
@require_store_access
def record_payment_route():
    """
    Record a payment against a customer's debt.

    Request body:
    {
        "customer_id": 3,
        "amount": 50000,
        "method": "cash",          (cash | card | transfer)
        "payment_date": "...",     (optional ISO-8601, default now)
        "notes": "..."
    }
    """
    try:
        payment = payment_service.record_payment(g.ctx, json_body())
        return jsonify({"payment": payment.to_dict()}), 201
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except (PaymentError, ValueError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to record payment")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.post("/<int:payment_id>/void")
@require_auth
@require_store_access
@require_role(ROLE_MANAGER)
def void_payment_route(payment_id: int):
    """Payments taken at the till with a sale are voided through the sale."""
    try:
        payment = payment_service.void_payment(g.ctx, payment_id, json_body().get("reason"))
        return jsonify({"payment": payment.to_dict()})
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except (PaymentError, ValueError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to void payment")
        return jsonify({"error": "Internal server error"}), 500
