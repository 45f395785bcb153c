from __future__ import annotations

import re
import unicodedata

from ..extensions import db
from ..models import Store, UserStore
from ..updates import StoreUpdate
from ..validation import ConflictError, NotFoundError
from .concurrency import lock_for_update, run_with_retry


class StoreError(Exception):
    """Raised when store operations fail."""


_SLUG_STRIP = re.compile(r"[^a-z0-9]+")


def slugify(value: str) -> str:
    """ASCII, lowercase, hyphen-separated ("Cửa Hàng Số 1" -> "cua-hang-so-1")."""
    # đ has no decomposition, map it explicitly
    value = value.replace("đ", "d").replace("Đ", "D")
    ascii_value = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    return _SLUG_STRIP.sub("-", ascii_value.lower()).strip("-") or "store"


def _unique_slug(base: str, *, exclude_store_id: int | None = None) -> str:
    candidate = base
    suffix = 2
    while True:
        query = db.session.query(Store.id).filter(Store.slug == candidate)
        if exclude_store_id is not None:
            query = query.filter(Store.id != exclude_store_id)
        if query.first() is None:
            return candidate
        candidate = f"{base}-{suffix}"
        suffix += 1


def create_store(update: StoreUpdate, *, owner_id: int | None = None) -> Store:
    """
    Create a store from a validated StoreUpdate (name required).

    The slug defaults to a slugified name and is de-duplicated with a
    numeric suffix. An explicit slug that is already taken is a conflict.
    The owner (when not an admin) is granted access immediately.
    """
    def _op():
        values = update.provided()
        if not values.get("name"):
            raise StoreError("Store name is required")

        if values.get("code"):
            if db.session.query(Store.id).filter_by(code=values["code"]).first():
                raise ConflictError("Store code already exists")

        if values.get("slug"):
            slug = slugify(values["slug"])
            if db.session.query(Store.id).filter_by(slug=slug).first():
                raise ConflictError("Store slug already exists")
        else:
            slug = _unique_slug(slugify(values["name"]))
        values["slug"] = slug

        store = Store(owner_id=owner_id, **values)
        db.session.add(store)
        db.session.flush()

        if owner_id is not None:
            db.session.add(UserStore(user_id=owner_id, store_id=store.id, granted_by_user_id=owner_id))

        db.session.commit()
        return store

    return run_with_retry(_op)


def update_store(store_id: int, update: StoreUpdate) -> Store:
    def _op():
        store = lock_for_update(db.session.query(Store).filter_by(id=store_id)).first()
        if not store:
            raise NotFoundError("Store not found")

        values = update.provided()
        if "slug" in values:
            slug = slugify(values["slug"])
            clash = db.session.query(Store.id).filter(Store.slug == slug, Store.id != store_id).first()
            if clash:
                raise ConflictError("Store slug already exists")
            values["slug"] = slug
        if values.get("code"):
            clash = db.session.query(Store.id).filter(Store.code == values["code"], Store.id != store_id).first()
            if clash:
                raise ConflictError("Store code already exists")

        for name, value in values.items():
            setattr(store, name, value)

        db.session.commit()
        return store

    return run_with_retry(_op)


def deactivate_store(store_id: int) -> Store:
    """Stores are never deleted; history (sales, shifts) keeps pointing at them."""
    return update_store(store_id, StoreUpdate(is_active=False, online_enabled=False))


def get_store(store_id: int) -> Store | None:
    return db.session.get(Store, store_id)


def get_store_by_slug(slug: str) -> Store | None:
    return db.session.query(Store).filter_by(slug=slug).first()


def list_stores(store_ids: set[int] | None = None, include_inactive: bool = False) -> list[Store]:
    """All stores, or only those in store_ids when given (non-admin callers)."""
    query = db.session.query(Store)
    if store_ids is not None:
        if not store_ids:
            return []
        query = query.filter(Store.id.in_(store_ids))
    if not include_inactive:
        query = query.filter(Store.is_active.is_(True))
    return query.order_by(Store.name.asc()).all()
