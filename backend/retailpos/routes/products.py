# Overview: Flask API routes for products of the selected store.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_role, require_store_access
from ..extensions import db
from ..models.auth import ROLE_MANAGER
from ..services import catalog_service
from ..updates import ProductUpdate
from ..validation import ConflictError, NotFoundError
from .common import arg_flag, arg_int, page_args

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
@require_store_access
def list_products_route():
    """
    Query params:
    - search: Matches name, SKU or barcode
    - category_id: Filter by category
    - include_inactive: Include soft-deleted products (default false)
    - page, per_page: Pagination
    """
    try:
        page, per_page = page_args()
        result = catalog_service.list_products(
            g.ctx,
            search=request.args.get("search"),
            category_id=arg_int("category_id"),
            include_inactive=arg_flag("include_inactive"),
            page=page,
            per_page=per_page,
        )
        return jsonify(result)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400


@products_bp.post("")
@require_auth
@require_store_access
@require_role(ROLE_MANAGER)
def create_product_route():
    try:
        update = ProductUpdate.from_payload(request.get_json(silent=True), required=("sku", "name", "price"))
        product = catalog_service.create_product(g.ctx, update)
        return jsonify({"product": product.to_dict()}), 201
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/barcode/<string:barcode>")
@require_auth
@require_store_access
def get_product_by_barcode_route(barcode: str):
    """Scanner lookup; falls back to SKU."""
    try:
        return jsonify({"product": catalog_service.get_product_by_barcode(g.ctx, barcode).to_dict()})
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@products_bp.get("/<int:product_id>")
@require_auth
@require_store_access
def get_product_route(product_id: int):
    try:
        return jsonify({"product": catalog_service.get_product(g.ctx, product_id).to_dict()})
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@products_bp.patch("/<int:product_id>")
@require_auth
@require_store_access
@require_role(ROLE_MANAGER)
def update_product_route(product_id: int):
    try:
        update = ProductUpdate.from_payload(request.get_json(silent=True))
        if update.is_empty():
            return jsonify({"error": "No fields to update"}), 400
        product = catalog_service.update_product(g.ctx, product_id, update)
        return jsonify({"product": product.to_dict()})
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.delete("/<int:product_id>")
@require_auth
@require_store_access
@require_role(ROLE_MANAGER)
def delete_product_route(product_id: int):
    """Soft delete: the product stays referenced by past sales."""
    try:
        product = catalog_service.delete_product(g.ctx, product_id)
        return jsonify({"product": product.to_dict()})
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to delete product")
        return jsonify({"error": "Internal server error"}), 500
