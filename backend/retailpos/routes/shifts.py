# Overview: Flask API routes for cashier shifts and drawer reconciliation.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_store_access
from ..extensions import db
from ..services import shift_service
from ..updates import ShiftCashUpdate
from .common import arg_date_range, arg_flag, arg_int, json_body, page_args, result_error

shifts_bp = Blueprint("shifts", __name__, url_prefix="/api/shifts")


@shifts_bp.post("")
@require_auth
@require_store_access
def start_shift_route():
    """
    Open a shift for the current user.

    Request body: {"starting_cash": 100000, "notes": "..."}
    Returns 201 {"shift": {...}}; 409 when the user already has an open shift.
    """
    try:
        data = json_body()
        result = shift_service.start_shift(g.ctx, data.get("starting_cash"), data.get("notes"))
        if not result.success:
            return result_error(result)
        return jsonify({"shift": result.data}), 201
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to start shift")
        return jsonify({"error": "Internal server error"}), 500


@shifts_bp.get("")
@require_auth
@require_store_access
def list_shifts_route():
    """
    Query params:
    - active_only: Return only the caller's (or user_id's) open shift
    - user_id: Managers may look at other users
    - status: open | closed
    - date_from, date_to: Filter on start time
    - page, per_page: Pagination
    """
    try:
        user_id = arg_int("user_id")
        if user_id is not None and not g.ctx.is_manager and user_id != g.ctx.user_id:
            return jsonify({"error": "Permission denied"}), 403

        if arg_flag("active_only"):
            result = shift_service.get_active_shift(g.ctx, user_id)
            return jsonify({"shift": result.data})

        date_from, date_to = arg_date_range()
        page, per_page = page_args()
        result = shift_service.list_shifts(
            g.ctx,
            page=page,
            page_size=per_page,
            user_id=user_id,
            status=request.args.get("status") or None,
            date_from=date_from,
            date_to=date_to,
        )
        if not result.success:
            return result_error(result)
        return jsonify(result.data)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to list shifts")
        return jsonify({"error": "Internal server error"}), 500


@shifts_bp.get("/<int:shift_id>")
@require_auth
@require_store_access
def get_shift_route(shift_id: int):
    """?with_summary=true adds live (or frozen, once closed) totals."""
    try:
        if arg_flag("with_summary"):
            result = shift_service.get_shift_summary(g.ctx, shift_id)
            if not result.success:
                return result_error(result)
            return jsonify(result.data)

        result = shift_service.get_shift(g.ctx, shift_id)
        if not result.success:
            return result_error(result)
        return jsonify({"shift": result.data})
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to load shift")
        return jsonify({"error": "Internal server error"}), 500


@shifts_bp.post("/<int:shift_id>/close")
@require_auth
@require_store_access
def close_shift_route(shift_id: int):
    """
    Close a shift with the counted drawer.

    Request body: {"ending_cash": 175000, "notes": "..."}
    Returns {"shift": {...}} with expected_cash and cash_difference.
    """
    try:
        data = json_body()
        result = shift_service.close_shift(g.ctx, shift_id, data.get("ending_cash"), data.get("notes"))
        if not result.success:
            return result_error(result)
        return jsonify({"shift": result.data})
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to close shift")
        return jsonify({"error": "Internal server error"}), 500


@shifts_bp.patch("/<int:shift_id>")
@require_auth
@require_store_access
def update_shift_route(shift_id: int):
    """Correct the starting cash or notes of an open shift."""
    try:
        update = ShiftCashUpdate.from_payload(json_body())
        result = shift_service.update_shift_cash(g.ctx, shift_id, update)
        if not result.success:
            return result_error(result)
        return jsonify({"shift": result.data})
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update shift")
        return jsonify({"error": "Internal server error"}), 500
