# Overview: Flask API routes for staff account administration (admin only).

from flask import Blueprint, current_app, g, jsonify

from ..decorators import require_auth, require_role
from ..extensions import db
from ..models.auth import ROLE_ADMIN, ROLE_CASHIER
from ..services import auth_service, store_access_service
from ..updates import UserUpdate
from ..validation import ConflictError, NotFoundError, ValidationError, coerce_int
from .common import arg_flag, json_body

users_bp = Blueprint("users", __name__, url_prefix="/api/users")


def _user_payload(user) -> dict:
    data = user.to_dict()
    data["store_ids"] = [grant.store_id for grant in store_access_service.list_user_grants(user.id)]
    return data


@users_bp.get("")
@require_auth
@require_role(ROLE_ADMIN)
def list_users_route():
    users = auth_service.list_users(include_inactive=arg_flag("include_inactive"))
    return jsonify({"items": [_user_payload(u) for u in users], "count": len(users)})


@users_bp.post("")
@require_auth
@require_role(ROLE_ADMIN)
def create_user_route():
    """
    Request body:
    {
        "username": "cashier1",
        "email": "c1@example.com",
        "password": "...",
        "role": "cashier",          (admin | manager | cashier)
        "display_name": "...",      (optional)
        "store_ids": [1, 2]         (optional)
    }
    """
    try:
        data = json_body()
        user = auth_service.create_user(
            username=data.get("username"),
            email=data.get("email"),
            password=data.get("password"),
            role=data.get("role") or ROLE_CASHIER,
            display_name=data.get("display_name"),
        )

        store_ids = data.get("store_ids")
        if store_ids:
            if not isinstance(store_ids, list):
                raise ValidationError("store_ids must be a list")
            store_access_service.set_user_stores(
                user_id=user.id,
                store_ids=[coerce_int(s, "store_ids", minimum=1) for s in store_ids],
                granted_by_user_id=g.current_user.id,
            )

        return jsonify({"user": _user_payload(user)}), 201

    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except NotFoundError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 404
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.get("/<int:user_id>")
@require_auth
@require_role(ROLE_ADMIN)
def get_user_route(user_id: int):
    try:
        return jsonify({"user": _user_payload(auth_service.get_user(user_id))})
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@users_bp.patch("/<int:user_id>")
@require_auth
@require_role(ROLE_ADMIN)
def update_user_route(user_id: int):
    try:
        update = UserUpdate.from_payload(json_body())
        user = auth_service.update_user(user_id, update, acting_user_id=g.current_user.id)
        return jsonify({"user": _user_payload(user)})

    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update user")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.put("/<int:user_id>/stores")
@require_auth
@require_role(ROLE_ADMIN)
def set_user_stores_route(user_id: int):
    """Replace the user's store grants. Request body: {"store_ids": [1, 2]}"""
    try:
        store_ids = json_body().get("store_ids")
        if not isinstance(store_ids, list):
            return jsonify({"error": "store_ids must be a list"}), 400

        grants = store_access_service.set_user_stores(
            user_id=user_id,
            store_ids=[coerce_int(s, "store_ids", minimum=1) for s in store_ids],
            granted_by_user_id=g.current_user.id,
        )
        return jsonify({"grants": [grant.to_dict() for grant in grants]})

    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to set user stores")
        return jsonify({"error": "Internal server error"}), 500
