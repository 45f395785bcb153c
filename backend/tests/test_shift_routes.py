# Overview: Pytest coverage for the shift endpoints.

import pytest

from conftest import auth_headers, get_auth_token
from retailpos.services import shift_service


@pytest.fixture
def headers(client, cashier_a, store_a):
    return auth_headers(get_auth_token(client, 'cashier_a'), store_a.id)


def test_start_returns_201_open_shift(client, headers):
    response = client.post('/api/shifts', json={'starting_cash': 100000}, headers=headers)

    assert response.status_code == 201
    assert response.json['shift']['status'] == 'open'


def test_second_start_is_409(client, headers):
    client.post('/api/shifts', json={'starting_cash': 0}, headers=headers)

    response = client.post('/api/shifts', json={'starting_cash': 0}, headers=headers)

    assert response.status_code == 409


def test_close_reconciles_cash_sales(client, headers, product_a):
    shift = client.post('/api/shifts', json={'starting_cash': 100000}, headers=headers).json['shift']
    client.post('/api/sales', json={'items': [{'product_id': product_a.id, 'quantity': 1}]}, headers=headers)

    live = client.get(f"/api/shifts/{shift['id']}?with_summary=true", headers=headers)
    assert live.json['summary']['expected_cash'] == 150000

    closed = client.post(f"/api/shifts/{shift['id']}/close", json={'ending_cash': 148000}, headers=headers)

    assert closed.status_code == 200
    assert closed.json['shift']['status'] == 'closed'
    assert closed.json['shift']['expected_cash'] == 150000
    assert closed.json['shift']['cash_difference'] == -2000

    again = client.post(f"/api/shifts/{shift['id']}/close", json={'ending_cash': 1}, headers=headers)
    assert again.status_code == 409


def test_close_missing_ending_cash_is_400(client, headers):
    shift = client.post('/api/shifts', json={'starting_cash': 0}, headers=headers).json['shift']

    response = client.post(f"/api/shifts/{shift['id']}/close", json={}, headers=headers)

    assert response.status_code == 400


def test_active_only(client, headers):
    assert client.get('/api/shifts?active_only=true', headers=headers).json['shift'] is None

    shift = client.post('/api/shifts', json={'starting_cash': 0}, headers=headers).json['shift']

    assert client.get('/api/shifts?active_only=true', headers=headers).json['shift']['id'] == shift['id']


def test_unknown_shift_is_404(client, headers):
    assert client.get('/api/shifts/9999', headers=headers).status_code == 404


def test_patch_starting_cash(client, headers):
    shift = client.post('/api/shifts', json={'starting_cash': 0}, headers=headers).json['shift']

    response = client.patch(f"/api/shifts/{shift['id']}", json={'starting_cash': 50000}, headers=headers)

    assert response.status_code == 200
    assert response.json['shift']['starting_cash'] == 50000


def test_cashier_cannot_query_other_users(client, headers, manager_a):
    response = client.get(f'/api/shifts?user_id={manager_a.id}', headers=headers)

    assert response.status_code == 403


def test_sale_without_own_shift_stays_out_of_open_drawers(client, headers, manager_a, admin_user, store_a, product_a):
    manager_headers = auth_headers(get_auth_token(client, 'manager_a'), store_a.id)
    admin_headers = auth_headers(get_auth_token(client, 'admin'), store_a.id)
    cashier_shift = client.post('/api/shifts', json={'starting_cash': 100000}, headers=headers).json['shift']
    manager_shift = client.post('/api/shifts', json={'starting_cash': 100000}, headers=manager_headers).json['shift']

    sale = client.post('/api/sales', json={'items': [{'product_id': product_a.id, 'quantity': 1}]},
                       headers=admin_headers)
    assert sale.status_code == 201
    assert sale.json['sale']['shift_id'] is None

    closed = [
        client.post(f"/api/shifts/{cashier_shift['id']}/close", json={'ending_cash': 100000}, headers=headers),
        client.post(f"/api/shifts/{manager_shift['id']}/close", json={'ending_cash': 100000},
                    headers=manager_headers),
    ]

    assert [c.json['shift']['cash_sales'] for c in closed] == [0, 0]
    assert [c.json['shift']['cash_difference'] for c in closed] == [0, 0]


@pytest.mark.parametrize('url', ['/api/shifts', '/api/shifts/1', '/api/shifts/1?with_summary=true'])
def test_unexpected_read_failure_is_500(client, headers, monkeypatch, url):
    def broken(*args, **kwargs):
        raise RuntimeError('database went away')

    for name in ('list_shifts', 'get_shift', 'get_shift_summary'):
        monkeypatch.setattr(shift_service, name, broken)

    response = client.get(url, headers=headers)

    assert response.status_code == 500
    assert response.json == {'error': 'Internal server error'}
