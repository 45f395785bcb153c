# Overview: Pytest coverage for manager reports.

import pytest

from conftest import auth_headers, get_auth_token


@pytest.fixture
def manager_headers(client, manager_a, store_a):
    return auth_headers(get_auth_token(client, 'manager_a'), store_a.id)


def test_sales_report_totals_and_profit(client, manager_headers, product_a, product_a2, customer_a):
    client.post('/api/sales', json={'items': [{'product_id': product_a.id, 'quantity': 2}]},
                headers=manager_headers)
    client.post('/api/sales', json={'items': [{'product_id': product_a2.id, 'quantity': 1}],
                                    'payment_method': 'credit', 'customer_id': customer_a.id},
                headers=manager_headers)

    response = client.get('/api/reports/sales', headers=manager_headers)

    assert response.status_code == 200
    summary = response.json['summary']
    assert summary['sales_count'] == 2
    assert summary['total_revenue'] == 130000
    assert summary['revenue_by_payment_method'] == {'cash': 100000, 'credit': 30000}
    assert len(response.json['periods']) == 1
    top = response.json['top_products'][0]
    assert top['product_id'] == product_a.id
    assert top['gross_profit'] == 100000 - 2 * 42000


def test_sales_report_rejects_bad_grouping(client, manager_headers):
    assert client.get('/api/reports/sales?group_by=week', headers=manager_headers).status_code == 400


def test_sales_report_rejects_inverted_range(client, manager_headers):
    response = client.get('/api/reports/sales?date_from=2024-02-01&date_to=2024-01-01', headers=manager_headers)

    assert response.status_code == 400


def test_debt_report(client, manager_headers, product_a, customer_a):
    client.post('/api/sales', json={'items': [{'product_id': product_a.id, 'quantity': 5}],
                                    'payment_method': 'credit', 'customer_id': customer_a.id,
                                    'override_credit_limit': True},
                headers=manager_headers)

    response = client.get('/api/reports/debt?over_limit_only=true', headers=manager_headers)

    assert response.status_code == 200
    assert [c['customer_id'] for c in response.json['customers']] == [customer_a.id]
    assert response.json['summary']['total_debt'] == 250000
    assert response.json['summary']['over_limit_count'] == 1


def test_reports_need_manager(client, cashier_a, store_a):
    headers = auth_headers(get_auth_token(client, 'cashier_a'), store_a.id)

    assert client.get('/api/reports/sales', headers=headers).status_code == 403
    assert client.get('/api/reports/debt', headers=headers).status_code == 403
    assert client.get('/api/reports/inventory', headers=headers).status_code == 403


def test_inventory_report_values_stock(client, manager_headers, product_a, product_a2, product_b):
    client.post('/api/sales', json={'items': [{'product_id': product_a.id, 'quantity': 2}]},
                headers=manager_headers)

    response = client.get('/api/reports/inventory', headers=manager_headers)

    assert response.status_code == 200
    assert response.json['low_stock_threshold'] == 10
    items = response.json['items']
    assert [i['sku'] for i in items] == ['OIL-1L', 'RICE-5KG']
    oil, rice = items
    assert rice['stock_quantity'] == 98
    assert rice['stock_value'] == 98 * 42000
    assert rice['retail_value'] == 98 * 50000
    assert rice['sold_quantity'] == 2
    # No cost price: valued at zero
    assert oil['stock_value'] == 0
    assert oil['retail_value'] == 50 * 30000
    assert oil['sold_quantity'] == 0
    assert response.json['summary'] == {
        'product_count': 2,
        'total_stock_quantity': 148,
        'total_stock_value': 98 * 42000,
        'total_retail_value': 98 * 50000 + 50 * 30000,
        'low_stock_count': 0,
    }


def test_inventory_report_low_stock_filter(client, manager_headers, product_a, product_a2):
    response = client.get('/api/reports/inventory?low_stock_only=true&low_stock_threshold=50',
                          headers=manager_headers)

    assert response.status_code == 200
    assert [i['product_id'] for i in response.json['items']] == [product_a2.id]
    assert response.json['items'][0]['is_low_stock'] is True
    assert response.json['summary']['low_stock_count'] == 1


def test_inventory_report_search(client, manager_headers, product_a, product_a2):
    response = client.get('/api/reports/inventory?search=rice', headers=manager_headers)

    assert [i['product_id'] for i in response.json['items']] == [product_a.id]


def test_inventory_report_rejects_negative_threshold(client, manager_headers):
    response = client.get('/api/reports/inventory?low_stock_threshold=-1', headers=manager_headers)

    assert response.status_code == 400
