# Overview: Pytest coverage for customer debt aggregation and credit checks.

"""
Debt aggregation tests.

Sales and payments are inserted directly with explicit dates so the
ledger order is deterministic.
"""

from datetime import datetime, timedelta

import pytest

from retailpos.models import Customer, Payment, Sale
from retailpos.models.sales import (
    METHOD_CASH, METHOD_CREDIT, PAYMENT_STATUS_COMPLETED, PAYMENT_STATUS_VOIDED,
    SALE_STATUS_COMPLETED, SALE_STATUS_VOIDED,
)
from retailpos.services import debt_service
from retailpos.services.debt_service import LedgerEntry, build_history, compute_debt_info, lowest_running_balance
from retailpos.services.result import NOT_FOUND, VALIDATION

BASE = datetime(2026, 3, 1, 9, 0, 0)


def add_sale(db_session, ctx, customer, total, when, status=SALE_STATUS_COMPLETED):
    sale = Sale(
        store_id=ctx.store_id,
        invoice_number=f"INV-TEST-{customer.id}-{when:%d%H%M%S}-{total}",
        customer_id=customer.id,
        created_by_user_id=ctx.user_id,
        transaction_date=when,
        status=status,
        payment_method=METHOD_CREDIT,
        subtotal=total,
        total_amount=total,
    )
    db_session.add(sale)
    db_session.commit()
    return sale


def add_payment(db_session, ctx, customer, amount, when, status=PAYMENT_STATUS_COMPLETED):
    payment = Payment(
        store_id=ctx.store_id,
        customer_id=customer.id,
        amount=amount,
        method=METHOD_CASH,
        payment_date=when,
        status=status,
        created_by_user_id=ctx.user_id,
    )
    db_session.add(payment)
    db_session.commit()
    return payment


class TestComputeDebtInfo:
    def test_over_limit_is_strict(self):
        assert compute_debt_info(200000, 0, 200000)["is_over_limit"] is False
        assert compute_debt_info(200001, 0, 200000)["is_over_limit"] is True

    def test_available_credit_never_negative(self):
        info = compute_debt_info(300000, 50000, 200000)
        assert info["current_debt"] == 250000
        assert info["available_credit"] == 0

    def test_available_credit_with_headroom(self):
        info = compute_debt_info(100000, 40000, 200000)
        assert info["available_credit"] == 140000


class TestBuildHistory:
    def test_sales_sort_before_payments_at_same_instant(self):
        entries = [
            LedgerEntry(BASE, "payment", 1, 30000, "Debt payment"),
            LedgerEntry(BASE, "sale", 9, 50000, "Purchase X"),
        ]
        history = build_history(entries)

        assert [h["type"] for h in history] == ["sale", "payment"]
        assert [h["running_balance"] for h in history] == [50000, 20000]

    def test_ties_of_same_kind_order_by_id(self):
        entries = [
            LedgerEntry(BASE, "sale", 5, 10000, "b"),
            LedgerEntry(BASE, "sale", 2, 20000, "a"),
        ]
        assert [h["id"] for h in build_history(entries)] == [2, 5]


class TestGetCustomerDebt:
    def test_customer_without_activity_has_zero_debt(self, ctx_cashier_a, customer_a):
        result = debt_service.get_customer_debt(ctx_cashier_a, customer_a.id, include_history=True)

        assert result.success
        assert result.data["debt_info"]["current_debt"] == 0
        assert result.data["debt_info"]["is_over_limit"] is False
        assert result.data["history"] == []

    def test_running_balance_matches_current_debt(self, db_session, ctx_cashier_a, customer_a):
        add_sale(db_session, ctx_cashier_a, customer_a, 120000, BASE)
        add_payment(db_session, ctx_cashier_a, customer_a, 50000, BASE + timedelta(days=1))
        add_sale(db_session, ctx_cashier_a, customer_a, 80000, BASE + timedelta(days=2))
        add_payment(db_session, ctx_cashier_a, customer_a, 30000, BASE + timedelta(days=3))

        result = debt_service.get_customer_debt(ctx_cashier_a, customer_a.id, include_history=True)
        info = result.data["debt_info"]
        history = result.data["history"]

        assert info["total_sales"] == 200000
        assert info["total_payments"] == 80000
        assert info["current_debt"] == 120000
        assert [h["running_balance"] for h in history] == [120000, 70000, 150000, 120000]
        assert history[-1]["running_balance"] == info["current_debt"]

    def test_history_is_omitted_unless_requested(self, db_session, ctx_cashier_a, customer_a):
        add_sale(db_session, ctx_cashier_a, customer_a, 10000, BASE)

        result = debt_service.get_customer_debt(ctx_cashier_a, customer_a.id)

        assert "history" not in result.data

    def test_voided_rows_are_ignored(self, db_session, ctx_cashier_a, customer_a):
        add_sale(db_session, ctx_cashier_a, customer_a, 100000, BASE)
        add_sale(db_session, ctx_cashier_a, customer_a, 70000, BASE, status=SALE_STATUS_VOIDED)
        add_payment(db_session, ctx_cashier_a, customer_a, 40000, BASE, status=PAYMENT_STATUS_VOIDED)

        result = debt_service.get_customer_debt(ctx_cashier_a, customer_a.id)

        assert result.data["debt_info"]["current_debt"] == 100000

    def test_repeated_reads_are_identical(self, db_session, ctx_cashier_a, customer_a):
        add_sale(db_session, ctx_cashier_a, customer_a, 90000, BASE)
        add_payment(db_session, ctx_cashier_a, customer_a, 10000, BASE + timedelta(hours=2))

        first = debt_service.get_customer_debt(ctx_cashier_a, customer_a.id, include_history=True)
        second = debt_service.get_customer_debt(ctx_cashier_a, customer_a.id, include_history=True)

        assert first.data == second.data

    def test_over_limit_flag_at_and_above_limit(self, db_session, ctx_cashier_a, customer_a):
        add_sale(db_session, ctx_cashier_a, customer_a, 200000, BASE)
        at_limit = debt_service.get_customer_debt(ctx_cashier_a, customer_a.id)
        assert at_limit.data["debt_info"]["is_over_limit"] is False

        add_sale(db_session, ctx_cashier_a, customer_a, 1, BASE + timedelta(days=1))
        above = debt_service.get_customer_debt(ctx_cashier_a, customer_a.id)
        assert above.data["debt_info"]["is_over_limit"] is True

    def test_unknown_customer_is_not_found(self, ctx_cashier_a):
        result = debt_service.get_customer_debt(ctx_cashier_a, 99999)

        assert not result.success
        assert result.code == NOT_FOUND
        assert result.http_status == 404

    def test_customer_of_other_store_is_not_found(self, db_session, ctx_cashier_a, store_b):
        other = Customer(store_id=store_b.id, name="Other store customer")
        db_session.add(other)
        db_session.commit()

        result = debt_service.get_customer_debt(ctx_cashier_a, other.id)

        assert result.code == NOT_FOUND


class TestCheckCreditLimit:
    def test_projection_within_limit(self, db_session, ctx_cashier_a, customer_a):
        add_sale(db_session, ctx_cashier_a, customer_a, 150000, BASE)

        result = debt_service.check_credit_limit(ctx_cashier_a, customer_a.id, 50000)

        assert result.success
        assert result.data["projected_debt"] == 200000
        assert result.data["within_limit"] is True
        assert result.data["warning"] is None

    def test_projection_over_limit_has_warning(self, db_session, ctx_cashier_a, customer_a):
        add_sale(db_session, ctx_cashier_a, customer_a, 150000, BASE)

        result = debt_service.check_credit_limit(ctx_cashier_a, customer_a.id, 60000)

        assert result.data["within_limit"] is False
        assert "exceeds credit limit" in result.data["warning"]

    def test_negative_amount_is_validation_error(self, ctx_cashier_a, customer_a):
        result = debt_service.check_credit_limit(ctx_cashier_a, customer_a.id, -5)

        assert result.code == VALIDATION


class TestDebtReport:
    def test_report_sorted_by_debt_with_filters(self, db_session, ctx_cashier_a, customer_a, store_a):
        small = Customer(store_id=store_a.id, name="Small Debtor", credit_limit=1000)
        clean = Customer(store_id=store_a.id, name="No Debt")
        db_session.add_all([small, clean])
        db_session.commit()

        add_sale(db_session, ctx_cashier_a, customer_a, 100000, BASE)
        add_sale(db_session, ctx_cashier_a, small, 5000, BASE)

        report = debt_service.debt_report(ctx_cashier_a).data
        assert [r["customer_id"] for r in report["customers"]][:2] == [customer_a.id, small.id]
        assert report["summary"]["total_debt"] == 105000

        with_debt = debt_service.debt_report(ctx_cashier_a, has_debt_only=True).data
        assert clean.id not in [r["customer_id"] for r in with_debt["customers"]]

        over = debt_service.debt_report(ctx_cashier_a, over_limit_only=True).data
        assert [r["customer_id"] for r in over["customers"]] == [small.id]
        assert over["summary"]["over_limit_count"] == 1


@pytest.mark.parametrize("amounts", [[10000], [10000, 20000, 30000]])
def test_current_debt_matches_sum_of_sales(db_session, ctx_cashier_a, customer_a, amounts):
    for offset, amount in enumerate(amounts):
        add_sale(db_session, ctx_cashier_a, customer_a, amount, BASE + timedelta(minutes=offset))

    assert debt_service.current_debt(ctx_cashier_a, customer_a.id) == sum(amounts)


def test_lowest_running_balance_sees_dips_the_final_balance_hides():
    entries = [
        LedgerEntry(BASE, "sale", 1, 10000, ""),
        LedgerEntry(BASE + timedelta(days=2), "sale", 2, 50000, ""),
        LedgerEntry(BASE + timedelta(days=1), "payment", 1, 40000, ""),
    ]

    assert lowest_running_balance(entries) == -30000
    assert lowest_running_balance(entries[:2]) == 0
    assert lowest_running_balance([]) == 0
