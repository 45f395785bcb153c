# Overview: Flask API routes for store operations; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify

from ..decorators import require_auth, require_role
from ..extensions import db
from ..models.auth import ROLE_ADMIN, ROLE_MANAGER
from ..services import store_access_service, store_service
from ..services.store_service import StoreError
from ..updates import StoreUpdate
from ..validation import ConflictError, NotFoundError
from .common import arg_flag, json_body

stores_bp = Blueprint("stores", __name__, url_prefix="/api/stores")


@stores_bp.get("")
@require_auth
def list_stores_route():
    """Stores the current user may act in (every store for admins)."""
    include_inactive = arg_flag("include_inactive") and g.current_user.role == ROLE_ADMIN
    stores = store_service.list_stores(
        store_access_service.accessible_store_ids(g.current_user),
        include_inactive=include_inactive,
    )
    return jsonify({"items": [s.to_dict() for s in stores], "count": len(stores)})


@stores_bp.post("")
@require_auth
@require_role(ROLE_ADMIN)
def create_store_route():
    """
    Request body:
    {
        "name": "Main Street",
        "code": "MAIN",             (optional, unique)
        "slug": "main-street",      (optional, derived from name)
        "address": "...",
        "phone": "...",
        "online_enabled": false,
        "shipping_fee": 0
    }
    """
    try:
        update = StoreUpdate.from_payload(json_body(), required=("name",))
        store = store_service.create_store(update, owner_id=g.current_user.id)
        return jsonify({"store": store.to_dict()}), 201

    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except (StoreError, ValueError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create store")
        return jsonify({"error": "Internal server error"}), 500


@stores_bp.get("/<int:store_id>")
@require_auth
def get_store_route(store_id: int):
    if not store_access_service.user_can_access_store(g.current_user, store_id):
        return jsonify({"error": "Access to this store is not allowed"}), 403

    store = store_service.get_store(store_id)
    if not store:
        return jsonify({"error": "Store not found"}), 404
    return jsonify({"store": store.to_dict()})


@stores_bp.patch("/<int:store_id>")
@require_auth
@require_role(ROLE_MANAGER)
def update_store_route(store_id: int):
    try:
        if not store_access_service.user_can_access_store(g.current_user, store_id):
            return jsonify({"error": "Access to this store is not allowed"}), 403

        update = StoreUpdate.from_payload(json_body())
        if update.is_empty():
            return jsonify({"error": "No fields to update"}), 400

        store = store_service.update_store(store_id, update)
        return jsonify({"store": store.to_dict()})

    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except (StoreError, ValueError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update store")
        return jsonify({"error": "Internal server error"}), 500


@stores_bp.delete("/<int:store_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_store_route(store_id: int):
    """Deactivates the store; its history is kept."""
    try:
        store = store_service.deactivate_store(store_id)
        return jsonify({"store": store.to_dict()})
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to deactivate store")
        return jsonify({"error": "Internal server error"}), 500
