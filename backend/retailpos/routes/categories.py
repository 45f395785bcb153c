# Overview: Flask API routes for product categories of the selected store.

from flask import Blueprint, current_app, g, jsonify

from ..decorators import require_auth, require_role, require_store_access
from ..extensions import db
from ..models.auth import ROLE_MANAGER
from ..services import catalog_service
from ..updates import CategoryUpdate
from ..validation import ConflictError, NotFoundError
from .common import json_body

categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


@categories_bp.get("")
@require_auth
@require_store_access
def list_categories_route():
    categories = catalog_service.list_categories(g.ctx)
    return jsonify({"items": [c.to_dict() for c in categories], "count": len(categories)})


@categories_bp.post("")
@require_auth
@require_store_access
@require_role(ROLE_MANAGER)
def create_category_route():
    try:
        update = CategoryUpdate.from_payload(json_body(), required=("name",))
        category = catalog_service.create_category(g.ctx, update)
        return jsonify({"category": category.to_dict()}), 201
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create category")
        return jsonify({"error": "Internal server error"}), 500


@categories_bp.get("/<int:category_id>")
@require_auth
@require_store_access
def get_category_route(category_id: int):
    try:
        return jsonify({"category": catalog_service.get_category(g.ctx, category_id).to_dict()})
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@categories_bp.patch("/<int:category_id>")
@require_auth
@require_store_access
@require_role(ROLE_MANAGER)
def update_category_route(category_id: int):
    try:
        update = CategoryUpdate.from_payload(json_body())
        if update.is_empty():
            return jsonify({"error": "No fields to update"}), 400
        category = catalog_service.update_category(g.ctx, category_id, update)
        return jsonify({"category": category.to_dict()})
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update category")
        return jsonify({"error": "Internal server error"}), 500


@categories_bp.delete("/<int:category_id>")
@require_auth
@require_store_access
@require_role(ROLE_MANAGER)
def delete_category_route(category_id: int):
    """Products of the category are kept and become uncategorised."""
    try:
        catalog_service.delete_category(g.ctx, category_id)
        return jsonify({"message": "Category deleted"})
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to delete category")
        return jsonify({"error": "Internal server error"}), 500
