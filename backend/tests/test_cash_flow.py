# Overview: Pytest coverage for the cash book endpoints.

import pytest

from conftest import auth_headers, get_auth_token


@pytest.fixture
def headers(client, manager_a, store_a):
    return auth_headers(get_auth_token(client, 'manager_a'), store_a.id)


def _record(client, headers, **body):
    payload = {'transaction_type': 'disbursement', 'amount': 20000, 'reason': 'Electricity', 'category': 'utilities'}
    payload.update(body)
    return client.post('/api/cash-flow', json=payload, headers=headers)


def test_create_and_summarize(client, headers):
    assert _record(client, headers).status_code == 201
    assert _record(client, headers, transaction_type='receipt', amount=50000, reason='Owner top-up',
                   category='capital').status_code == 201

    response = client.get('/api/cash-flow?include_summary=true', headers=headers)

    assert response.status_code == 200
    assert response.json['count'] == 2
    summary = response.json['summary']
    assert summary['total_receipts'] == 50000
    assert summary['total_disbursements'] == 20000
    assert summary['net'] == 30000
    assert summary['by_category']['utilities']['disbursements'] == 20000


def test_missing_reason_is_400(client, headers):
    response = client.post('/api/cash-flow', json={'transaction_type': 'receipt', 'amount': 1}, headers=headers)

    assert response.status_code == 400


def test_zero_amount_is_400(client, headers):
    assert _record(client, headers, amount=0).status_code == 400


def test_filter_by_type(client, headers):
    _record(client, headers)
    _record(client, headers, transaction_type='receipt', reason='Refund from supplier')

    response = client.get('/api/cash-flow?type=receipt', headers=headers)

    assert [t['transaction_type'] for t in response.json['items']] == ['receipt']


def test_replace_keeps_original_as_replaced(client, headers):
    original = _record(client, headers).json['transaction']

    response = client.put(f"/api/cash-flow/{original['id']}", json={'amount': 25000}, headers=headers)

    assert response.status_code == 200
    replacement = response.json['transaction']
    assert replacement['amount'] == 25000
    assert replacement['reason'] == 'Electricity'
    assert replacement['id'] != original['id']

    old = client.get(f"/api/cash-flow/{original['id']}", headers=headers).json['transaction']
    assert old['status'] == 'replaced'
    assert old['replaced_by_id'] == replacement['id']

    listed = client.get('/api/cash-flow', headers=headers)
    assert [t['id'] for t in listed.json['items']] == [replacement['id']]

    again = client.put(f"/api/cash-flow/{original['id']}", json={'amount': 1}, headers=headers)
    assert again.status_code == 409


def test_categories(client, headers):
    _record(client, headers)
    _record(client, headers, category='rent', reason='Rent')

    response = client.get('/api/cash-flow/categories', headers=headers)

    assert response.json['categories'] == ['rent', 'utilities']
