# Overview: Pytest coverage for POS sales, voids, and debt payments.

from datetime import timedelta

import pytest

from conftest import auth_headers, get_auth_token
from retailpos.models import Payment, Product
from retailpos.time_utils import utcnow


@pytest.fixture
def cashier_headers(client, cashier_a, store_a):
    return auth_headers(get_auth_token(client, 'cashier_a'), store_a.id)


@pytest.fixture
def manager_headers(client, manager_a, store_a):
    return auth_headers(get_auth_token(client, 'manager_a'), store_a.id)


def _sell(client, headers, **body):
    return client.post('/api/sales', json=body, headers=headers)


class TestCreateSale:
    def test_cash_sale_decrements_stock_and_gives_change(self, client, db_session, cashier_headers, product_a):
        response = _sell(client, cashier_headers, items=[{'product_id': product_a.id, 'quantity': 2}],
                         payment_method='cash', amount_tendered=120000)

        assert response.status_code == 201
        sale = response.json['sale']
        assert sale['total_amount'] == 100000
        assert sale['change_due'] == 20000
        assert len(sale['items']) == 1
        assert db_session.get(Product, product_a.id).stock_quantity == 98

    def test_insufficient_stock_lists_items(self, client, cashier_headers, product_a):
        response = _sell(client, cashier_headers, items=[{'product_id': product_a.id, 'quantity': 101}])

        assert response.status_code == 400
        assert response.json['details']['items'][0]['in_stock'] == 100

    def test_product_of_other_store_not_sellable(self, client, cashier_headers, product_b):
        response = _sell(client, cashier_headers, items=[{'product_id': product_b.id, 'quantity': 1}])

        assert response.status_code == 400
        assert response.json['details']['product_ids'] == [product_b.id]

    def test_credit_sale_requires_customer(self, client, cashier_headers, product_a):
        response = _sell(client, cashier_headers, items=[{'product_id': product_a.id, 'quantity': 1}],
                         payment_method='credit')

        assert response.status_code == 400

    def test_credit_sale_adds_debt(self, client, cashier_headers, product_a, customer_a):
        response = _sell(client, cashier_headers, items=[{'product_id': product_a.id, 'quantity': 3}],
                         payment_method='credit', customer_id=customer_a.id)
        assert response.status_code == 201

        debt = client.get(f'/api/customers/{customer_a.id}/debt', headers=cashier_headers)
        assert debt.json['debt_info']['current_debt'] == 150000

    def test_credit_limit_blocks_cashier_but_manager_may_override(
        self, client, cashier_headers, manager_headers, product_a, customer_a
    ):
        body = {
            'items': [{'product_id': product_a.id, 'quantity': 5}],
            'payment_method': 'credit',
            'customer_id': customer_a.id,
            'override_credit_limit': True,
        }

        blocked = client.post('/api/sales', json=body, headers=cashier_headers)
        allowed = client.post('/api/sales', json=body, headers=manager_headers)

        assert blocked.status_code == 409
        assert allowed.status_code == 201

    def test_paid_sale_to_customer_leaves_no_debt(self, client, db_session, cashier_headers, product_a, customer_a):
        response = _sell(client, cashier_headers, items=[{'product_id': product_a.id, 'quantity': 1}],
                         payment_method='card', customer_id=customer_a.id)
        assert response.status_code == 201

        debt = client.get(f'/api/customers/{customer_a.id}/debt?include_history=true', headers=cashier_headers)
        assert debt.json['debt_info']['total_sales'] == 50000
        assert debt.json['debt_info']['current_debt'] == 0
        assert [h['running_balance'] for h in debt.json['history']] == [50000, 0]

    def test_sale_attaches_to_open_shift(self, client, cashier_headers, product_a):
        shift = client.post('/api/shifts', json={'starting_cash': 0}, headers=cashier_headers).json['shift']

        sale = _sell(client, cashier_headers, items=[{'product_id': product_a.id, 'quantity': 1}]).json['sale']

        assert sale['shift_id'] == shift['id']


class TestVoidSale:
    def test_void_restores_stock_and_debt(self, client, db_session, cashier_headers, manager_headers,
                                          product_a, customer_a):
        sale = _sell(client, cashier_headers, items=[{'product_id': product_a.id, 'quantity': 2}],
                     payment_method='credit', customer_id=customer_a.id).json['sale']

        assert client.post(f"/api/sales/{sale['id']}/void", json={}, headers=cashier_headers).status_code == 403

        voided = client.post(f"/api/sales/{sale['id']}/void", json={'reason': 'mistake'}, headers=manager_headers)
        assert voided.status_code == 200
        assert voided.json['sale']['status'] == 'voided'
        assert db_session.get(Product, product_a.id).stock_quantity == 100

        debt = client.get(f'/api/customers/{customer_a.id}/debt', headers=cashier_headers)
        assert debt.json['debt_info']['current_debt'] == 0

        again = client.post(f"/api/sales/{sale['id']}/void", json={}, headers=manager_headers)
        assert again.status_code == 409

    def test_void_voids_linked_payment(self, client, db_session, cashier_headers, manager_headers,
                                       product_a, customer_a):
        sale = _sell(client, cashier_headers, items=[{'product_id': product_a.id, 'quantity': 1}],
                     payment_method='cash', customer_id=customer_a.id).json['sale']

        client.post(f"/api/sales/{sale['id']}/void", json={}, headers=manager_headers)

        payment = db_session.query(Payment).filter_by(sale_id=sale['id']).one()
        assert payment.status == 'voided'

    def test_void_of_paid_off_credit_sale_is_refused(self, client, cashier_headers, manager_headers,
                                                     product_a, customer_a):
        sale = _sell(client, cashier_headers, items=[{'product_id': product_a.id, 'quantity': 1}],
                     payment_method='credit', customer_id=customer_a.id).json['sale']
        payment = client.post('/api/payments', json={
            'customer_id': customer_a.id, 'amount': 50000,
        }, headers=cashier_headers).json['payment']

        refused = client.post(f"/api/sales/{sale['id']}/void", json={}, headers=manager_headers)

        assert refused.status_code == 409
        debt = client.get(f'/api/customers/{customer_a.id}/debt', headers=cashier_headers).json['debt_info']
        assert debt['current_debt'] == 0
        assert debt['available_credit'] == debt['credit_limit']

        client.post(f"/api/payments/{payment['id']}/void", json={}, headers=manager_headers)
        voided = client.post(f"/api/sales/{sale['id']}/void", json={}, headers=manager_headers)

        assert voided.status_code == 200
        debt = client.get(f'/api/customers/{customer_a.id}/debt', headers=cashier_headers).json['debt_info']
        assert debt['current_debt'] == 0


class TestPayments:
    def test_payment_reduces_debt(self, client, cashier_headers, product_a, customer_a):
        _sell(client, cashier_headers, items=[{'product_id': product_a.id, 'quantity': 2}],
              payment_method='credit', customer_id=customer_a.id)

        response = client.post('/api/payments', json={
            'customer_id': customer_a.id, 'amount': 40000, 'method': 'transfer',
        }, headers=cashier_headers)

        assert response.status_code == 201
        debt = client.get(f'/api/customers/{customer_a.id}/debt', headers=cashier_headers)
        assert debt.json['debt_info']['current_debt'] == 60000

    def test_overpayment_rejected(self, client, cashier_headers, customer_a):
        response = client.post('/api/payments', json={
            'customer_id': customer_a.id, 'amount': 1,
        }, headers=cashier_headers)

        assert response.status_code == 400

    def test_future_payment_date_rejected(self, client, cashier_headers, product_a, customer_a):
        _sell(client, cashier_headers, items=[{'product_id': product_a.id, 'quantity': 1}],
              payment_method='credit', customer_id=customer_a.id)
        tomorrow = (utcnow() + timedelta(days=1)).isoformat()

        response = client.post('/api/payments', json={
            'customer_id': customer_a.id, 'amount': 10000, 'payment_date': tomorrow,
        }, headers=cashier_headers)

        assert response.status_code == 400

    def test_payment_dated_before_the_debt_existed_rejected(self, client, cashier_headers, product_a, customer_a):
        _sell(client, cashier_headers, items=[{'product_id': product_a.id, 'quantity': 1}],
              payment_method='credit', customer_id=customer_a.id)
        last_week = (utcnow() - timedelta(days=7)).isoformat()

        response = client.post('/api/payments', json={
            'customer_id': customer_a.id, 'amount': 10000, 'payment_date': last_week,
        }, headers=cashier_headers)

        assert response.status_code == 400
        history = client.get(f'/api/customers/{customer_a.id}/debt?include_history=true',
                             headers=cashier_headers).json['history']
        assert [h['running_balance'] for h in history] == [50000]

    def test_void_payment_restores_debt(self, client, cashier_headers, manager_headers, product_a, customer_a):
        _sell(client, cashier_headers, items=[{'product_id': product_a.id, 'quantity': 1}],
              payment_method='credit', customer_id=customer_a.id)
        payment = client.post('/api/payments', json={
            'customer_id': customer_a.id, 'amount': 50000,
        }, headers=cashier_headers).json['payment']

        voided = client.post(f"/api/payments/{payment['id']}/void", json={}, headers=manager_headers)

        assert voided.status_code == 200
        debt = client.get(f'/api/customers/{customer_a.id}/debt', headers=cashier_headers)
        assert debt.json['debt_info']['current_debt'] == 50000

    def test_sale_payment_cannot_be_voided_directly(self, client, db_session, cashier_headers, manager_headers,
                                                    product_a, customer_a):
        sale = _sell(client, cashier_headers, items=[{'product_id': product_a.id, 'quantity': 1}],
                     payment_method='cash', customer_id=customer_a.id).json['sale']
        payment = db_session.query(Payment).filter_by(sale_id=sale['id']).one()

        response = client.post(f'/api/payments/{payment.id}/void', json={}, headers=manager_headers)

        assert response.status_code == 400

    def test_list_payments_for_customer(self, client, cashier_headers, product_a, customer_a):
        _sell(client, cashier_headers, items=[{'product_id': product_a.id, 'quantity': 1}],
              payment_method='cash', customer_id=customer_a.id)

        response = client.get(f'/api/payments?customer_id={customer_a.id}', headers=cashier_headers)

        assert response.json['count'] == 1
