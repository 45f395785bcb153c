# Overview: Store-scoped categories and products.

"""
Catalog Service

Every function takes a RequestContext and only ever sees rows of
ctx.store_id. An ID that exists in another store is reported as not
found, never as forbidden.

SKU is unique per store. Products are soft-deleted (is_active=False)
because sale lines and online order lines keep referencing them.
"""
from __future__ import annotations

from ..context import RequestContext
from ..extensions import db
from ..models import Category, Product
from ..updates import CategoryUpdate, ProductUpdate
from ..validation import ConflictError, NotFoundError
from .concurrency import lock_for_update, run_with_retry
from .pagination import paginate


# =============================================================================
# CATEGORIES
# =============================================================================

def list_categories(ctx: RequestContext) -> list[Category]:
    return (
        db.session.query(Category)
        .filter_by(store_id=ctx.store_id)
        .order_by(Category.name.asc())
        .all()
    )


def get_category(ctx: RequestContext, category_id: int) -> Category:
    category = db.session.query(Category).filter_by(id=category_id, store_id=ctx.store_id).first()
    if not category:
        raise NotFoundError("Category not found")
    return category


def _ensure_category_name_free(ctx: RequestContext, name: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Category.id).filter(
        Category.store_id == ctx.store_id,
        db.func.lower(Category.name) == name.lower(),
    )
    if exclude_id is not None:
        query = query.filter(Category.id != exclude_id)
    if query.first():
        raise ConflictError(f"Category '{name}' already exists")


def create_category(ctx: RequestContext, update: CategoryUpdate) -> Category:
    _ensure_category_name_free(ctx, update.name)
    category = Category(store_id=ctx.store_id)
    update.apply(category)
    db.session.add(category)
    db.session.commit()
    return category


def update_category(ctx: RequestContext, category_id: int, update: CategoryUpdate) -> Category:
    category = get_category(ctx, category_id)
    if update.provided().get("name"):
        _ensure_category_name_free(ctx, update.name, exclude_id=category.id)
    update.apply(category)
    db.session.commit()
    return category


def delete_category(ctx: RequestContext, category_id: int) -> None:
    """Delete a category; its products become uncategorised."""
    category = get_category(ctx, category_id)
    db.session.query(Product).filter_by(category_id=category.id).update(
        {Product.category_id: None}, synchronize_session=False
    )
    db.session.delete(category)
    db.session.commit()


# =============================================================================
# PRODUCTS
# =============================================================================

def list_products(
    ctx: RequestContext,
    *,
    search: str | None = None,
    category_id: int | None = None,
    include_inactive: bool = False,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    query = db.session.query(Product).filter(Product.store_id == ctx.store_id)

    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    if category_id is not None:
        query = query.filter(Product.category_id == category_id)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(db.or_(
            Product.name.ilike(like),
            Product.sku.ilike(like),
            Product.barcode.ilike(like),
        ))

    query = query.order_by(Product.name.asc(), Product.id.asc())
    return paginate(query, page, per_page)


def get_product(ctx: RequestContext, product_id: int) -> Product:
    product = db.session.query(Product).filter_by(id=product_id, store_id=ctx.store_id).first()
    if not product:
        raise NotFoundError("Product not found")
    return product


def get_product_by_barcode(ctx: RequestContext, barcode: str) -> Product:
    """Scanner lookup: barcode first, then SKU. Active products only."""
    code = (barcode or "").strip()
    product = (
        db.session.query(Product)
        .filter(
            Product.store_id == ctx.store_id,
            Product.is_active.is_(True),
            db.or_(Product.barcode == code, Product.sku == code),
        )
        .order_by((Product.barcode == code).desc(), Product.id.asc())
        .first()
    )
    if not product:
        raise NotFoundError("Product not found")
    return product


def _check_product_refs(ctx: RequestContext, values: dict, exclude_id: int | None = None) -> None:
    if values.get("category_id") is not None:
        get_category(ctx, values["category_id"])

    if values.get("sku"):
        query = db.session.query(Product.id).filter_by(store_id=ctx.store_id, sku=values["sku"])
        if exclude_id is not None:
            query = query.filter(Product.id != exclude_id)
        if query.first():
            raise ConflictError(f"SKU '{values['sku']}' already exists in this store")


def create_product(ctx: RequestContext, update: ProductUpdate) -> Product:
    _check_product_refs(ctx, update.provided())

    product = Product(store_id=ctx.store_id)
    update.apply(product)
    db.session.add(product)
    db.session.commit()
    return product


def update_product(ctx: RequestContext, product_id: int, update: ProductUpdate) -> Product:
    def _op():
        product = lock_for_update(
            db.session.query(Product).filter_by(id=product_id, store_id=ctx.store_id)
        ).first()
        if not product:
            raise NotFoundError("Product not found")

        _check_product_refs(ctx, update.provided(), exclude_id=product.id)
        update.apply(product)
        db.session.commit()
        return product

    return run_with_retry(_op)


def delete_product(ctx: RequestContext, product_id: int) -> Product:
    """Soft delete: the product disappears from the POS and the storefront."""
    return update_product(ctx, product_id, ProductUpdate(is_active=False, is_online=False))
