# Overview: Pytest coverage for shift lifecycle and cash reconciliation.

from datetime import timedelta

import pytest

from retailpos.models import Sale, Shift
from retailpos.models.sales import METHOD_CARD, METHOD_CASH, SALE_STATUS_COMPLETED, SALE_STATUS_VOIDED
from retailpos.models.shifts import SHIFT_CLOSED, SHIFT_OPEN
from retailpos.services import shift_service
from retailpos.services.result import CONFLICT, FORBIDDEN, INVALID_STATE, NOT_FOUND, VALIDATION
from retailpos.time_utils import utcnow
from retailpos.updates import ShiftCashUpdate


def backdate(db_session, shift_id, hours=2):
    """Move the shift start into the past so sales can be placed inside its window."""
    shift = db_session.get(Shift, shift_id)
    shift.start_time = utcnow() - timedelta(hours=hours)
    db_session.commit()
    return shift


def add_sale(db_session, shift, amount, minutes, method=METHOD_CASH, status=SALE_STATUS_COMPLETED, attach=True):
    sale = Sale(
        store_id=shift.store_id,
        invoice_number=f"INV-SHIFT-{shift.id}-{minutes}-{amount}",
        shift_id=shift.id if attach else None,
        created_by_user_id=shift.user_id,
        transaction_date=shift.start_time + timedelta(minutes=minutes),
        status=status,
        payment_method=method,
        subtotal=amount,
        total_amount=amount,
        amount_tendered=amount,
    )
    db_session.add(sale)
    db_session.commit()
    return sale


@pytest.fixture
def open_shift(db_session, ctx_cashier_a):
    result = shift_service.start_shift(ctx_cashier_a, 100000)
    assert result.success
    return backdate(db_session, result.data["id"])


class TestStartShift:
    def test_start_returns_open_shift(self, ctx_cashier_a):
        result = shift_service.start_shift(ctx_cashier_a, 100000, notes="morning")

        assert result.success
        assert result.data["status"] == SHIFT_OPEN
        assert result.data["starting_cash"] == 100000

    def test_second_open_shift_conflicts(self, ctx_cashier_a):
        assert shift_service.start_shift(ctx_cashier_a, 0).success

        result = shift_service.start_shift(ctx_cashier_a, 0)

        assert not result.success
        assert result.code == CONFLICT

    def test_negative_starting_cash_rejected(self, ctx_cashier_a):
        result = shift_service.start_shift(ctx_cashier_a, -1)

        assert result.code == VALIDATION


class TestCloseShift:
    def test_expected_cash_and_difference(self, db_session, ctx_cashier_a, open_shift):
        add_sale(db_session, open_shift, 50000, 10)
        add_sale(db_session, open_shift, 30000, 20)

        summary = shift_service.summarize(open_shift)
        assert summary["expected_cash"] == 180000

        result = shift_service.close_shift(ctx_cashier_a, open_shift.id, 175000)

        assert result.success
        assert result.data["status"] == SHIFT_CLOSED
        assert result.data["expected_cash"] == 180000
        assert result.data["cash_difference"] == -5000
        assert result.data["sales_count"] == 2

    def test_only_cash_sales_count_toward_drawer(self, db_session, ctx_cashier_a, open_shift):
        add_sale(db_session, open_shift, 50000, 10)
        add_sale(db_session, open_shift, 70000, 15, method=METHOD_CARD)
        add_sale(db_session, open_shift, 40000, 20, status=SALE_STATUS_VOIDED)

        summary = shift_service.summarize(open_shift)

        assert summary["cash_sales"] == 50000
        assert summary["total_revenue"] == 120000
        assert summary["revenue_by_payment_method"] == {METHOD_CASH: 50000, METHOD_CARD: 70000}
        assert summary["expected_cash"] == 150000

    def test_concurrent_shifts_only_count_their_own_sales(self, db_session, ctx_manager_a, open_shift):
        result = shift_service.start_shift(ctx_manager_a, 100000)
        manager_shift = backdate(db_session, result.data["id"])
        add_sale(db_session, open_shift, 30000, 5)
        add_sale(db_session, manager_shift, 20000, 6)
        add_sale(db_session, open_shift, 50000, 7, attach=False)

        cashier_summary = shift_service.summarize(open_shift)
        manager_summary = shift_service.summarize(manager_shift)

        assert cashier_summary["cash_sales"] == 30000
        assert manager_summary["cash_sales"] == 20000
        assert cashier_summary["cash_sales"] + manager_summary["cash_sales"] == 50000

    def test_sales_without_a_shift_belong_to_no_drawer(self, db_session, open_shift):
        add_sale(db_session, open_shift, 25000, 5, attach=False)

        assert shift_service.summarize(open_shift)["cash_sales"] == 0

    def test_sales_before_start_are_excluded(self, db_session, open_shift):
        add_sale(db_session, open_shift, 99000, -30, attach=False)

        assert shift_service.summarize(open_shift)["sales_count"] == 0

    def test_closing_twice_is_invalid_state_and_keeps_figures(self, db_session, ctx_cashier_a, open_shift):
        add_sale(db_session, open_shift, 50000, 10)
        add_sale(db_session, open_shift, 30000, 20)
        first = shift_service.close_shift(ctx_cashier_a, open_shift.id, 175000)
        assert first.success

        second = shift_service.close_shift(ctx_cashier_a, open_shift.id, 999999)

        assert not second.success
        assert second.code == INVALID_STATE
        assert second.http_status == 409

        stored = db_session.get(Shift, open_shift.id)
        assert stored.ending_cash == 175000
        assert stored.expected_cash == 180000
        assert stored.cash_difference == -5000

    def test_close_unknown_shift_is_not_found(self, ctx_cashier_a):
        result = shift_service.close_shift(ctx_cashier_a, 424242, 0)

        assert result.code == NOT_FOUND

    def test_other_cashier_cannot_close(self, db_session, open_shift, store_a):
        from retailpos.context import RequestContext
        from retailpos.models import User, UserStore

        other = User(username="cashier_x", email="x@example.com", password_hash="x", role="cashier")
        db_session.add(other)
        db_session.commit()
        db_session.add(UserStore(user_id=other.id, store_id=store_a.id))
        db_session.commit()
        ctx = RequestContext(user_id=other.id, store_id=store_a.id, role="cashier")

        result = shift_service.close_shift(ctx, open_shift.id, 100000)

        assert result.code == FORBIDDEN
        assert db_session.get(Shift, open_shift.id).status == SHIFT_OPEN

    def test_manager_can_close_cashier_shift(self, ctx_manager_a, open_shift):
        result = shift_service.close_shift(ctx_manager_a, open_shift.id, 100000)

        assert result.success
        assert result.data["cash_difference"] == 0


class TestShiftQueries:
    def test_active_shift_cleared_after_close(self, ctx_cashier_a, open_shift):
        assert shift_service.get_active_shift(ctx_cashier_a).data["id"] == open_shift.id

        shift_service.close_shift(ctx_cashier_a, open_shift.id, 100000)

        assert shift_service.get_active_shift(ctx_cashier_a).data is None

    def test_update_starting_cash_of_open_shift(self, ctx_cashier_a, open_shift):
        result = shift_service.update_shift_cash(ctx_cashier_a, open_shift.id, ShiftCashUpdate(starting_cash=120000))

        assert result.success
        assert result.data["starting_cash"] == 120000

    def test_closed_shift_cannot_be_modified(self, ctx_cashier_a, open_shift):
        shift_service.close_shift(ctx_cashier_a, open_shift.id, 100000)

        result = shift_service.update_shift_cash(ctx_cashier_a, open_shift.id, ShiftCashUpdate(starting_cash=1))

        assert result.code == INVALID_STATE

    def test_cashier_lists_only_own_shifts(self, ctx_cashier_a, ctx_manager_a):
        shift_service.start_shift(ctx_cashier_a, 0)
        shift_service.start_shift(ctx_manager_a, 0)

        mine = shift_service.list_shifts(ctx_cashier_a).data
        everyone = shift_service.list_shifts(ctx_manager_a).data

        assert mine["count"] == 1
        assert everyone["count"] == 2
