# Overview: Public storefront API (catalog, cart, checkout, order lookup) addressed by store slug.

"""
Storefront routes need no authentication.

The cart is identified by an opaque key sent in the X-Cart-Session
header. When a shopper adds the first item without a key, a new one is
generated and returned in the body as "session_key"; the client keeps
sending it from then on.
"""

from flask import Blueprint, current_app, jsonify, request

from ..extensions import db
from ..services import storefront_service
from ..services.storefront_service import StorefrontError
from ..validation import ConflictError, NotFoundError
from .common import arg_int, json_body, page_args

storefront_bp = Blueprint("storefront", __name__, url_prefix="/api/storefront")

CART_HEADER = "X-Cart-Session"


def _cart_key() -> str | None:
    return storefront_service.validate_session_key(request.headers.get(CART_HEADER))


def _cart_response(cart, session_key: str | None, status: int = 200):
    body = cart.to_dict() if cart is not None else storefront_service.empty_cart_dict()
    return jsonify({"cart": body, "session_key": session_key}), status


@storefront_bp.get("/<string:slug>")
def storefront_config_route(slug: str):
    try:
        store = storefront_service.get_storefront(slug)
        return jsonify({"store": store.to_public_dict()})
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@storefront_bp.get("/<string:slug>/products")
def list_products_route(slug: str):
    try:
        store = storefront_service.get_storefront(slug)
        page, per_page = page_args()
        return jsonify(storefront_service.list_products(
            store,
            search=request.args.get("search"),
            category_id=arg_int("category_id"),
            page=page,
            per_page=per_page,
        ))
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except (StorefrontError, ValueError) as e:
        return jsonify({"error": str(e)}), 400


@storefront_bp.get("/<string:slug>/products/<int:product_id>")
def get_product_route(slug: str, product_id: int):
    try:
        store = storefront_service.get_storefront(slug)
        return jsonify({"product": storefront_service.get_product(store, product_id).to_public_dict()})
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@storefront_bp.get("/<string:slug>/categories")
def list_categories_route(slug: str):
    try:
        store = storefront_service.get_storefront(slug)
        return jsonify({"categories": storefront_service.list_categories(store)})
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@storefront_bp.get("/<string:slug>/cart")
def get_cart_route(slug: str):
    try:
        store = storefront_service.get_storefront(slug)
        key = _cart_key()
        return _cart_response(storefront_service.find_cart(store, key), key)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except (StorefrontError, ValueError) as e:
        return jsonify({"error": str(e)}), 400


@storefront_bp.post("/<string:slug>/cart")
def add_to_cart_route(slug: str):
    """Request body: {"product_id": 1, "quantity": 2}"""
    try:
        store = storefront_service.get_storefront(slug)
        key = _cart_key() or storefront_service.new_cart_session_key()
        data = json_body()
        cart = storefront_service.add_to_cart(store, key, data.get("product_id"), data.get("quantity", 1))
        return _cart_response(cart, key)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except (StorefrontError, ValueError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to add to cart")
        return jsonify({"error": "Internal server error"}), 500


@storefront_bp.put("/<string:slug>/cart")
def update_cart_route(slug: str):
    """Request body: {"product_id": 1, "quantity": 3}; quantity 0 removes the line."""
    try:
        store = storefront_service.get_storefront(slug)
        key = _cart_key()
        data = json_body()
        cart = storefront_service.update_cart_item(store, key, data.get("product_id"), data.get("quantity"))
        return _cart_response(cart, key)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except (StorefrontError, ValueError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update cart")
        return jsonify({"error": "Internal server error"}), 500


@storefront_bp.delete("/<string:slug>/cart")
def clear_cart_route(slug: str):
    """?product_id= removes one line; without it the cart is emptied."""
    try:
        store = storefront_service.get_storefront(slug)
        key = _cart_key()
        cart = storefront_service.clear_cart(store, key, request.args.get("product_id"))
        return _cart_response(cart, key)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except (StorefrontError, ValueError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to clear cart")
        return jsonify({"error": "Internal server error"}), 500


@storefront_bp.post("/<string:slug>/checkout")
def checkout_route(slug: str):
    try:
        store = storefront_service.get_storefront(slug)
        order = storefront_service.checkout(store, _cart_key(), json_body())
        return jsonify({"order": order.to_dict()}), 201
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except (StorefrontError, ValueError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to checkout")
        return jsonify({"error": "Internal server error"}), 500


@storefront_bp.get("/<string:slug>/orders/<string:order_number>")
def get_order_route(slug: str, order_number: str):
    """?phone= must match the phone given at checkout."""
    try:
        store = storefront_service.get_storefront(slug)
        order = storefront_service.get_order(store, order_number, request.args.get("phone"))
        return jsonify({"order": order.to_dict()})
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
