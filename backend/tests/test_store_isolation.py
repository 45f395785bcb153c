# Overview: Pytest coverage for store scoping; users only see the stores they were granted.

import pytest

from conftest import auth_headers, get_auth_token


@pytest.fixture
def headers_b(client, cashier_b, store_b):
    return auth_headers(get_auth_token(client, 'cashier_b'), store_b.id)


def test_cashier_cannot_select_other_store(client, cashier_b, store_a):
    token = get_auth_token(client, 'cashier_b')

    response = client.get('/api/products', headers=auth_headers(token, store_a.id))

    assert response.status_code == 403


def test_product_lists_are_scoped(client, headers_b, product_a, product_b):
    response = client.get('/api/products', headers=headers_b)

    assert [p['id'] for p in response.json['items']] == [product_b.id]


@pytest.mark.parametrize('path', [
    '/api/products/{product}',
    '/api/customers/{customer}',
    '/api/customers/{customer}/debt',
])
def test_other_store_records_are_404(client, headers_b, product_a, customer_a, path):
    url = path.format(product=product_a.id, customer=customer_a.id)

    assert client.get(url, headers=headers_b).status_code == 404


def test_cannot_pay_other_store_customer(client, headers_b, customer_a):
    response = client.post('/api/payments', json={'customer_id': customer_a.id, 'amount': 1000}, headers=headers_b)

    assert response.status_code in (400, 404)


def test_cannot_replace_other_store_cash_entry(client, manager_a, store_a, store_b, admin_user):
    headers_a = auth_headers(get_auth_token(client, 'manager_a'), store_a.id)
    txn = client.post('/api/cash-flow', json={'transaction_type': 'receipt', 'amount': 1000, 'reason': 'Float'},
                      headers=headers_a).json['transaction']

    admin_b = auth_headers(get_auth_token(client, 'admin'), store_b.id)

    assert client.get(f"/api/cash-flow/{txn['id']}", headers=admin_b).status_code == 404
    assert client.put(f"/api/cash-flow/{txn['id']}", json={'amount': 2}, headers=admin_b).status_code == 404


def test_admin_can_work_in_any_store(client, admin_user, store_b, product_b):
    headers = auth_headers(get_auth_token(client, 'admin'), store_b.id)

    response = client.get('/api/products', headers=headers)

    assert response.status_code == 200
    assert [p['id'] for p in response.json['items']] == [product_b.id]


def test_store_list_only_shows_granted(client, cashier_b, store_a, store_b):
    headers = auth_headers(get_auth_token(client, 'cashier_b'))

    response = client.get('/api/stores', headers=headers)

    assert [s['id'] for s in response.json['items']] == [store_b.id]
