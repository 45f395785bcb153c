# Overview: Per-store access grants and resolution of the request's store.

from __future__ import annotations

from typing import Optional

from ..context import RequestContext
from ..extensions import db
from ..models import Store, User, UserStore
from ..validation import NotFoundError, ValidationError


class StoreAccessError(Exception):
    """403: the user may not act in the requested store."""


def accessible_store_ids(user: User) -> set[int] | None:
    """
    Store IDs the user may act in.

    Returns None for admins, meaning "every store".
    """
    if user.is_admin:
        return None
    rows = db.session.query(UserStore.store_id).filter_by(user_id=user.id).all()
    return {row[0] for row in rows}


def user_can_access_store(user: User, store_id: int) -> bool:
    allowed = accessible_store_ids(user)
    return allowed is None or store_id in allowed


def resolve_context(user: User, requested_store_id: Optional[int]) -> RequestContext:
    """
    Build the RequestContext for a store-scoped request.

    - An explicit store must exist, be active, and be granted to the user
    - Without an explicit store, a user with exactly one granted store
      gets that store; anyone else must choose
    """
    if requested_store_id is None:
        allowed = accessible_store_ids(user)
        if allowed is not None and len(allowed) == 1:
            requested_store_id = next(iter(allowed))
        else:
            raise ValidationError("Store selection required (X-Store-Id header or store_id parameter)")

    store = db.session.get(Store, requested_store_id)
    if not store or not store.is_active:
        raise StoreAccessError("Store not found or inactive")

    if not user_can_access_store(user, store.id):
        raise StoreAccessError("Store access denied")

    return RequestContext(user_id=user.id, store_id=store.id, role=user.role)


def list_user_grants(user_id: int) -> list[UserStore]:
    return (
        db.session.query(UserStore)
        .filter_by(user_id=user_id)
        .order_by(UserStore.store_id.asc())
        .all()
    )


def grant_access(*, user_id: int, store_id: int, granted_by_user_id: int | None = None) -> UserStore:
    if not db.session.get(User, user_id):
        raise NotFoundError("User not found")
    if not db.session.get(Store, store_id):
        raise NotFoundError("Store not found")

    existing = db.session.query(UserStore).filter_by(user_id=user_id, store_id=store_id).first()
    if existing:
        return existing

    grant = UserStore(user_id=user_id, store_id=store_id, granted_by_user_id=granted_by_user_id)
    db.session.add(grant)
    db.session.commit()
    return grant


def set_user_stores(*, user_id: int, store_ids: list[int], granted_by_user_id: int | None = None) -> list[UserStore]:
    """Replace the user's grants with exactly `store_ids`."""
    if not db.session.get(User, user_id):
        raise NotFoundError("User not found")

    wanted = set(store_ids)
    if wanted:
        found = {row[0] for row in db.session.query(Store.id).filter(Store.id.in_(wanted)).all()}
        missing = sorted(wanted - found)
        if missing:
            raise NotFoundError(f"Store(s) not found: {', '.join(str(s) for s in missing)}")

    current = {grant.store_id: grant for grant in list_user_grants(user_id)}
    for store_id, grant in current.items():
        if store_id not in wanted:
            db.session.delete(grant)
    for store_id in sorted(wanted - set(current)):
        db.session.add(UserStore(user_id=user_id, store_id=store_id, granted_by_user_id=granted_by_user_id))

    db.session.commit()
    return list_user_grants(user_id)
