# Overview: Request authentication, store selection, and role decorators for API routes.

from functools import wraps

from flask import g, jsonify, request

from .models.auth import ROLE_ADMIN, ROLE_MANAGER
from .services import session_service, store_access_service
from .services.store_access_service import StoreAccessError
from .validation import ValidationError

STORE_HEADER = "X-Store-Id"

# Role levels: a decorator requiring "manager" also admits admins
_ROLE_RANK = {"cashier": 0, ROLE_MANAGER: 1, ROLE_ADMIN: 2}


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a valid session token.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.session_token: The plaintext bearer token of this request
    - g.session_context: The full SessionContext object

    Returns 401 if the header is missing, or the token is invalid,
    expired, revoked, or belongs to a deactivated user.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        context = session_service.validate_session(token)
        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.session_token = token
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def _requested_store_id():
    raw = request.headers.get(STORE_HEADER) or request.args.get("store_id")
    if raw is None or str(raw).strip() == "":
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"{STORE_HEADER} must be an integer")


def require_store_access(f):
    """
    Resolve the store this request acts in and build g.ctx.

    Must run after @require_auth. The store comes from the X-Store-Id
    header (or ?store_id=) and is checked against the user's grants.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not hasattr(g, "current_user"):
            return jsonify({"error": "Authentication required"}), 401

        try:
            g.ctx = store_access_service.resolve_context(g.current_user, _requested_store_id())
        except ValidationError as e:
            return jsonify({"error": str(e)}), 400
        except StoreAccessError as e:
            return jsonify({"error": str(e)}), 403

        return f(*args, **kwargs)

    return decorated_function


def require_role(role: str):
    """Require at least `role` (cashier < manager < admin)."""
    required_rank = _ROLE_RANK[role]

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not hasattr(g, "current_user"):
                return jsonify({"error": "Authentication required"}), 401

            if _ROLE_RANK.get(g.current_user.role, -1) < required_rank:
                return jsonify({
                    "error": "Permission denied",
                    "required_role": role,
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
