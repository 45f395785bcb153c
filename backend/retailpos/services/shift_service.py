# Overview: Service-layer operations for shifts; open, reconcile, and close cash drawers.

"""
Shift Service

WHY: Cashier accountability. A shift is opened with a counted cash float
and closed with a counted ending cash amount; the difference against the
expected drawer total exposes errors or shrinkage.

WINDOW RULE: A sale counts toward a shift when it
- belongs to the shift's store
- is completed (voided sales are excluded)
- has transaction_date in [start_time, end_time or now)
- is attributed to this shift (sales made without an open shift
  belong to no drawer)

RECONCILIATION:
- expected_cash = starting_cash + sum(total_amount of cash-method sales)
- cash_difference = ending_cash - expected_cash

LIFECYCLE: open -> close(ending_cash) -> closed (terminal). Closing
locks the row and relies on version_id; a concurrent close loses with
StaleDataError, is retried, and then observes the closed status.

Every public function returns a ServiceResult; domain failures are
never raised.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.exc import IntegrityError

from ..context import RequestContext
from ..extensions import db
from ..models import Sale, Shift
from ..models.sales import METHOD_CASH, SALE_STATUS_COMPLETED
from ..models.shifts import SHIFT_CLOSED, SHIFT_OPEN
from ..updates import ShiftCashUpdate
from ..validation import ValidationError, coerce_int, coerce_str
from retailpos.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .pagination import paginate
from .result import CONFLICT, FORBIDDEN, INVALID_STATE, NOT_FOUND, VALIDATION, ServiceResult

logger = logging.getLogger(__name__)


def _shift_query(ctx: RequestContext, shift_id: int):
    return db.session.query(Shift).filter_by(id=shift_id, store_id=ctx.store_id)


def _can_manage(ctx: RequestContext, shift: Shift) -> bool:
    return shift.user_id == ctx.user_id or ctx.is_manager


def _window_filter(shift: Shift, until: datetime):
    return (
        Sale.store_id == shift.store_id,
        Sale.status == SALE_STATUS_COMPLETED,
        Sale.transaction_date >= shift.start_time,
        Sale.transaction_date < until,
        Sale.shift_id == shift.id,
    )


def summarize(shift: Shift, until: datetime | None = None) -> dict:
    """
    Live figures for a shift's window ending at `until`.

    Defaults to the shift's end_time when closed, otherwise now.
    """
    if until is None:
        until = shift.end_time or utcnow()

    rows = (
        db.session.query(
            Sale.payment_method,
            db.func.count(Sale.id),
            db.func.coalesce(db.func.sum(Sale.total_amount), 0),
        )
        .filter(*_window_filter(shift, until))
        .group_by(Sale.payment_method)
        .all()
    )

    revenue_by_method = {method: int(total) for method, _count, total in rows}
    sales_count = sum(int(count) for _method, count, _total in rows)
    cash_sales = revenue_by_method.get(METHOD_CASH, 0)
    expected_cash = shift.starting_cash + cash_sales

    summary = {
        "sales_count": sales_count,
        "total_revenue": sum(revenue_by_method.values()),
        "revenue_by_payment_method": revenue_by_method,
        "cash_sales": cash_sales,
        "expected_cash": expected_cash,
        "cash_difference": None,
    }
    if shift.ending_cash is not None:
        summary["cash_difference"] = shift.ending_cash - expected_cash
    return summary


# =============================================================================
# LIFECYCLE
# =============================================================================

def start_shift(ctx: RequestContext, starting_cash, notes: str | None = None) -> ServiceResult:
    """Open a shift for ctx.user_id in ctx.store_id."""
    try:
        starting_cash = coerce_int(starting_cash, "starting_cash", minimum=0)
        if notes is not None:
            notes = coerce_str(notes, "notes", allow_blank=True) or None
    except ValidationError as e:
        return ServiceResult.fail(VALIDATION, str(e))

    existing = db.session.query(Shift).filter_by(
        store_id=ctx.store_id, user_id=ctx.user_id, status=SHIFT_OPEN
    ).first()
    if existing:
        return ServiceResult.fail(CONFLICT, f"You already have an open shift (shift {existing.id})")

    shift = Shift(
        store_id=ctx.store_id,
        user_id=ctx.user_id,
        status=SHIFT_OPEN,
        start_time=utcnow(),
        starting_cash=starting_cash,
        notes=notes,
    )
    db.session.add(shift)
    try:
        db.session.commit()
    except IntegrityError:
        # Lost a race with a concurrent start for the same user
        db.session.rollback()
        return ServiceResult.fail(CONFLICT, "You already have an open shift")

    logger.info("Shift %s opened by user %s in store %s (starting cash %s)",
                shift.id, ctx.user_id, ctx.store_id, starting_cash)
    return ServiceResult.ok(shift.to_dict())


def close_shift(ctx: RequestContext, shift_id: int, ending_cash, notes: str | None = None) -> ServiceResult:
    """
    Count the drawer and close the shift.

    Writes end_time, ending_cash and the frozen summary in one
    transaction. Closing a closed shift returns INVALID_STATE and writes
    nothing.
    """
    try:
        ending_cash = coerce_int(ending_cash, "ending_cash", minimum=0)
        if notes is not None:
            notes = coerce_str(notes, "notes", allow_blank=True) or None
    except ValidationError as e:
        return ServiceResult.fail(VALIDATION, str(e))

    def _op() -> ServiceResult:
        shift = lock_for_update(_shift_query(ctx, shift_id)).first()
        if not shift:
            return ServiceResult.fail(NOT_FOUND, "Shift not found")
        if shift.status != SHIFT_OPEN:
            return ServiceResult.fail(INVALID_STATE, "Shift is already closed")
        if not _can_manage(ctx, shift):
            return ServiceResult.fail(FORBIDDEN, "Only the shift owner or a manager can close this shift")

        now = utcnow()
        summary = summarize(shift, now)

        shift.status = SHIFT_CLOSED
        shift.end_time = now
        shift.ending_cash = ending_cash
        shift.expected_cash = summary["expected_cash"]
        shift.cash_difference = ending_cash - summary["expected_cash"]
        shift.cash_sales = summary["cash_sales"]
        shift.total_revenue = summary["total_revenue"]
        shift.sales_count = summary["sales_count"]
        if notes:
            shift.notes = f"{shift.notes}\n{notes}" if shift.notes else notes

        db.session.commit()
        return ServiceResult.ok(shift.to_dict())

    result = run_with_retry(_op)
    if result.success:
        logger.info("Shift %s closed: expected %s, counted %s, difference %s",
                    shift_id, result.data["expected_cash"], ending_cash, result.data["cash_difference"])
    return result


def update_shift_cash(ctx: RequestContext, shift_id: int, update: ShiftCashUpdate) -> ServiceResult:
    """Correct the starting float (or notes) of an open shift."""
    if update.is_empty():
        return ServiceResult.fail(VALIDATION, "No fields to update")

    def _op() -> ServiceResult:
        shift = lock_for_update(_shift_query(ctx, shift_id)).first()
        if not shift:
            return ServiceResult.fail(NOT_FOUND, "Shift not found")
        if shift.status != SHIFT_OPEN:
            return ServiceResult.fail(INVALID_STATE, "Closed shifts cannot be modified")
        if not _can_manage(ctx, shift):
            return ServiceResult.fail(FORBIDDEN, "Only the shift owner or a manager can modify this shift")

        update.apply(shift)
        db.session.commit()
        return ServiceResult.ok(shift.to_dict())

    return run_with_retry(_op)


# =============================================================================
# QUERIES
# =============================================================================

def find_open_shift(store_id: int, user_id: int) -> Shift | None:
    return db.session.query(Shift).filter_by(
        store_id=store_id, user_id=user_id, status=SHIFT_OPEN
    ).first()


def get_active_shift(ctx: RequestContext, user_id: int | None = None) -> ServiceResult:
    """The open shift of `user_id` (default: the caller), or None."""
    shift = find_open_shift(ctx.store_id, user_id or ctx.user_id)
    return ServiceResult.ok(shift.to_dict() if shift else None)


def get_shift(ctx: RequestContext, shift_id: int) -> ServiceResult:
    shift = _shift_query(ctx, shift_id).first()
    if not shift:
        return ServiceResult.fail(NOT_FOUND, "Shift not found")
    return ServiceResult.ok(shift.to_dict())


def get_shift_summary(ctx: RequestContext, shift_id: int) -> ServiceResult:
    shift = _shift_query(ctx, shift_id).first()
    if not shift:
        return ServiceResult.fail(NOT_FOUND, "Shift not found")
    return ServiceResult.ok({"shift": shift.to_dict(), "summary": summarize(shift)})


def list_shifts(
    ctx: RequestContext,
    *,
    page: int | None = None,
    page_size: int | None = None,
    user_id: int | None = None,
    status: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
) -> ServiceResult:
    """
    Shifts of the store, newest first.

    Cashiers only ever see their own shifts; managers may filter by user.
    """
    if status is not None and status not in (SHIFT_OPEN, SHIFT_CLOSED):
        return ServiceResult.fail(VALIDATION, f"status must be one of: {SHIFT_OPEN}, {SHIFT_CLOSED}")

    if not ctx.is_manager:
        user_id = ctx.user_id

    query = db.session.query(Shift).filter(Shift.store_id == ctx.store_id)
    if user_id is not None:
        query = query.filter(Shift.user_id == user_id)
    if status is not None:
        query = query.filter(Shift.status == status)
    if date_from is not None:
        query = query.filter(Shift.start_time >= date_from)
    if date_to is not None:
        query = query.filter(Shift.start_time <= date_to)

    query = query.order_by(Shift.start_time.desc(), Shift.id.desc())
    return ServiceResult.ok(paginate(query, page, page_size))
