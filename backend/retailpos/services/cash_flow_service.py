# Overview: Manual cash book (receipts and disbursements outside of sales).

"""
Cash Flow Service

IMMUTABLE: Entries are never edited in place. replace_transaction()
creates a new ACTIVE row carrying the corrected values and marks the old
row REPLACED with a forward link (replaced_by_id). Only active rows are
listed or summed.
"""

from __future__ import annotations

from datetime import datetime

from ..context import RequestContext
from ..extensions import db
from ..models import CashTransaction, Customer
from ..models.cash import CASH_DISBURSEMENT, CASH_RECEIPT, CASH_STATUS_ACTIVE, CASH_STATUS_REPLACED
from ..updates import CashTransactionUpdate
from ..validation import ConflictError, NotFoundError, ValidationError
from retailpos.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .pagination import paginate

# Columns copied from a replaced entry unless the update overrides them
_CARRIED_FIELDS = (
    "transaction_type",
    "amount",
    "category",
    "reason",
    "related_invoice",
    "transaction_date",
    "customer_id",
)


def _active_query(ctx: RequestContext):
    return db.session.query(CashTransaction).filter(
        CashTransaction.store_id == ctx.store_id,
        CashTransaction.status == CASH_STATUS_ACTIVE,
    )


def _date_filtered(query, date_from: datetime | None, date_to: datetime | None):
    if date_from is not None:
        query = query.filter(CashTransaction.transaction_date >= date_from)
    if date_to is not None:
        query = query.filter(CashTransaction.transaction_date <= date_to)
    return query


def _check_customer(ctx: RequestContext, customer_id: int | None) -> None:
    if customer_id is None:
        return
    if not db.session.query(Customer.id).filter_by(id=customer_id, store_id=ctx.store_id).first():
        raise NotFoundError("Customer not found")


def list_transactions(
    ctx: RequestContext,
    *,
    transaction_type: str | None = None,
    category: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    if transaction_type is not None and transaction_type not in (CASH_RECEIPT, CASH_DISBURSEMENT):
        raise ValidationError(f"type must be one of: {CASH_RECEIPT}, {CASH_DISBURSEMENT}")

    query = _date_filtered(_active_query(ctx), date_from, date_to)
    if transaction_type:
        query = query.filter(CashTransaction.transaction_type == transaction_type)
    if category:
        query = query.filter(CashTransaction.category == category)

    query = query.order_by(CashTransaction.transaction_date.desc(), CashTransaction.id.desc())
    return paginate(query, page, per_page)


def get_transaction(ctx: RequestContext, transaction_id: int) -> CashTransaction:
    """Fetch any entry of the store, including replaced ones (audit trail)."""
    txn = db.session.query(CashTransaction).filter_by(id=transaction_id, store_id=ctx.store_id).first()
    if not txn:
        raise NotFoundError("Cash transaction not found")
    return txn


def get_summary(ctx: RequestContext, date_from: datetime | None = None, date_to: datetime | None = None) -> dict:
    rows = (
        _date_filtered(_active_query(ctx), date_from, date_to)
        .with_entities(
            CashTransaction.transaction_type,
            CashTransaction.category,
            db.func.count(CashTransaction.id),
            db.func.coalesce(db.func.sum(CashTransaction.amount), 0),
        )
        .group_by(CashTransaction.transaction_type, CashTransaction.category)
        .all()
    )

    receipts = disbursements = count = 0
    by_category: dict[str, dict] = {}
    for txn_type, category, n, total in rows:
        total = int(total)
        count += n
        if txn_type == CASH_RECEIPT:
            receipts += total
        else:
            disbursements += total
        bucket = by_category.setdefault(category or "uncategorized", {"receipts": 0, "disbursements": 0})
        bucket["receipts" if txn_type == CASH_RECEIPT else "disbursements"] += total

    return {
        "total_receipts": receipts,
        "total_disbursements": disbursements,
        "net": receipts - disbursements,
        "transaction_count": count,
        "by_category": by_category,
    }


def list_categories(ctx: RequestContext) -> list[str]:
    rows = (
        _active_query(ctx)
        .with_entities(CashTransaction.category)
        .filter(CashTransaction.category.isnot(None))
        .distinct()
        .order_by(CashTransaction.category.asc())
        .all()
    )
    return [row[0] for row in rows]


def create_transaction(ctx: RequestContext, update: CashTransactionUpdate) -> CashTransaction:
    values = update.provided()
    for required in ("transaction_type", "amount", "reason"):
        if values.get(required) is None:
            raise ValidationError(f"{required} is required")
    _check_customer(ctx, values.get("customer_id"))

    txn = CashTransaction(
        store_id=ctx.store_id,
        status=CASH_STATUS_ACTIVE,
        created_by_user_id=ctx.user_id,
        transaction_date=utcnow(),
    )
    update.apply(txn)
    db.session.add(txn)
    db.session.commit()
    return txn


def replace_transaction(ctx: RequestContext, transaction_id: int, update: CashTransactionUpdate) -> CashTransaction:
    """Supersede an active entry with a corrected copy; returns the new entry."""
    if update.is_empty():
        raise ValidationError("No fields to update")
    _check_customer(ctx, update.provided().get("customer_id"))

    def _op():
        old = lock_for_update(
            db.session.query(CashTransaction).filter_by(id=transaction_id, store_id=ctx.store_id)
        ).first()
        if not old:
            raise NotFoundError("Cash transaction not found")
        if old.status == CASH_STATUS_REPLACED:
            raise ConflictError("Cash transaction was already replaced")

        new = CashTransaction(
            store_id=old.store_id,
            status=CASH_STATUS_ACTIVE,
            created_by_user_id=ctx.user_id,
            **{name: getattr(old, name) for name in _CARRIED_FIELDS},
        )
        update.apply(new)
        db.session.add(new)
        db.session.flush()

        old.status = CASH_STATUS_REPLACED
        old.replaced_by_id = new.id

        db.session.commit()
        return new

    return run_with_retry(_op)
