# Overview: Pytest coverage for analytics backends and routes.

import json

import httpx
import pytest

from retailpos.analytics import AnalyticsError, HttpAnalyticsBackend, MockAnalyticsBackend

from conftest import auth_headers, get_auth_token

BASKETS = [
    {'id': 1, 'items': ['Bread', 'Milk']},
    {'id': 2, 'items': ['Milk', 'Bread', 'Bread']},
    {'id': 3, 'items': ['Bread', 'Eggs']},
]

VALID_RISK = {'risk_level': 'medium', 'risk_score': 0.4, 'factors': ['x'], 'recommendations': []}

FORECAST_REQUEST = {
    'history_days': 30,
    'forecast_period_days': 14,
    'sales': [
        {'product_id': 1, 'quantity': 20, 'date': '2024-01-02T00:00:00Z'},
        {'product_id': 1, 'quantity': 10, 'date': '2024-01-20T00:00:00Z'},
        {'product_id': 2, 'quantity': 3, 'date': '2024-01-05T00:00:00Z'},
    ],
    'inventory': [
        {'product_id': 3, 'product_name': 'Eggs', 'current_stock': 5},
        {'product_id': 2, 'product_name': 'Milk', 'current_stock': 50},
        {'product_id': 1, 'product_name': 'Bread', 'current_stock': 10},
    ],
}

VALID_FORECAST = {
    'analysis_summary': 'ok',
    'forecasted_products': [{
        'product_id': 1, 'product_name': 'Bread', 'current_stock': 10,
        'forecasted_sales': 14, 'suggestion': 'reorder', 'suggested_reorder_quantity': 7,
    }],
}


class FailingBackend(MockAnalyticsBackend):
    name = 'failing'

    def analyze_market_basket(self, transactions):
        raise AnalyticsError('model offline')

    def predict_debt_risk(self, profile):
        raise AnalyticsError('model offline')

    def forecast_sales(self, request):
        raise AnalyticsError('model offline')


# =============================================================================
# MOCK BACKEND
# =============================================================================

def test_market_basket_pairs():
    result = MockAnalyticsBackend().analyze_market_basket(BASKETS)

    assert result['product_pairs'] == [{
        'product_1': 'Bread',
        'product_2': 'Milk',
        'count': 2,
        'support': 0.6667,
        'confidence': 0.6667,
        'lift': 1.0,
    }]
    assert result['product_clusters'] == []
    assert result['recommendations']


def test_market_basket_empty_input():
    result = MockAnalyticsBackend().analyze_market_basket([])

    assert result['product_pairs'] == []
    assert result['insights'][0].startswith('Analyzed 0 transactions')


@pytest.mark.parametrize('profile,level', [
    ({'total_debt': 0, 'credit_limit': 100000}, 'low'),
    ({'total_debt': 50000, 'credit_limit': 200000, 'days_since_last_payment': None}, 'medium'),
    ({'total_debt': 150000, 'credit_limit': 200000, 'days_since_last_payment': 100}, 'high'),
    ({'total_debt': 250000, 'credit_limit': 200000, 'days_since_last_payment': None}, 'critical'),
])
def test_debt_risk_levels(profile, level):
    assert MockAnalyticsBackend().predict_debt_risk(profile)['risk_level'] == level


def test_forecast_reorders_products_selling_faster_than_stock():
    result = MockAnalyticsBackend().forecast_sales(FORECAST_REQUEST)

    bread, milk, eggs = result['forecasted_products']
    # 30 sold in 30 days, 14 day horizon: 14 forecast, 4 short plus a 20% buffer of 3
    assert bread == {
        'product_id': 1, 'product_name': 'Bread', 'current_stock': 10,
        'forecasted_sales': 14, 'suggestion': 'reorder', 'suggested_reorder_quantity': 7,
    }
    assert (milk['forecasted_sales'], milk['suggestion'], milk['suggested_reorder_quantity']) == (2, 'ok', 0)
    assert (eggs['forecasted_sales'], eggs['suggestion']) == (0, 'ok')
    assert '1 of 3 products' in result['analysis_summary']


def test_forecast_without_inventory():
    result = MockAnalyticsBackend().forecast_sales({'history_days': 30, 'forecast_period_days': 7})

    assert result['forecasted_products'] == []


# =============================================================================
# HTTP BACKEND
# =============================================================================

def _http_backend(handler):
    return HttpAnalyticsBackend('http://analytics.test/', api_key='secret',
                                transport=httpx.MockTransport(handler))


def test_http_backend_posts_profile():
    seen = {}

    def handler(request):
        seen['path'] = request.url.path
        seen['auth'] = request.headers.get('Authorization')
        return httpx.Response(200, json=VALID_RISK)

    result = _http_backend(handler).predict_debt_risk({'customer_id': 1})

    assert result == VALID_RISK
    assert seen == {'path': '/debt-risk', 'auth': 'Bearer secret'}


def test_http_backend_error_status():
    backend = _http_backend(lambda request: httpx.Response(503))

    with pytest.raises(AnalyticsError):
        backend.analyze_market_basket([])


def test_http_backend_rejects_malformed_answer():
    backend = _http_backend(lambda request: httpx.Response(200, json={'risk_level': 'extreme'}))

    with pytest.raises(AnalyticsError):
        backend.predict_debt_risk({})


def test_http_backend_requires_endpoint():
    with pytest.raises(AnalyticsError):
        HttpAnalyticsBackend('')


def test_http_backend_posts_forecast_request():
    seen = {}

    def handler(request):
        seen['path'] = request.url.path
        seen['body'] = json.loads(request.content)
        return httpx.Response(200, json=VALID_FORECAST)

    result = _http_backend(handler).forecast_sales(FORECAST_REQUEST)

    assert result == VALID_FORECAST
    assert seen == {'path': '/sales-forecast', 'body': {'request': FORECAST_REQUEST}}


@pytest.mark.parametrize('answer', [
    {'forecasted_products': []},
    {'analysis_summary': 'x', 'forecasted_products': [{'product_id': 1}]},
    {'analysis_summary': 'x', 'forecasted_products': [
        dict(VALID_FORECAST['forecasted_products'][0], suggestion='panic')]},
    {'analysis_summary': 'x', 'forecasted_products': [
        dict(VALID_FORECAST['forecasted_products'][0], forecasted_sales=-1)]},
])
def test_http_backend_rejects_malformed_forecast(answer):
    backend = _http_backend(lambda request: httpx.Response(200, json=answer))

    with pytest.raises(AnalyticsError):
        backend.forecast_sales(FORECAST_REQUEST)


# =============================================================================
# ROUTES
# =============================================================================

@pytest.fixture
def manager_headers(client, manager_a, store_a):
    return auth_headers(get_auth_token(client, 'manager_a'), store_a.id)


def test_market_basket_route(client, manager_headers, product_a, product_a2):
    items = [{'product_id': product_a.id, 'quantity': 1}, {'product_id': product_a2.id, 'quantity': 1}]
    for _ in range(2):
        client.post('/api/sales', json={'items': items}, headers=manager_headers)

    response = client.post('/api/analytics/market-basket', json={'days': 30}, headers=manager_headers)

    assert response.status_code == 200
    assert response.json['transaction_count'] == 2
    assert response.json['backend'] == 'mock'
    assert response.json['product_pairs'][0]['count'] == 2


def test_market_basket_route_cashier_forbidden(client, cashier_a, store_a):
    headers = auth_headers(get_auth_token(client, 'cashier_a'), store_a.id)

    assert client.post('/api/analytics/market-basket', json={}, headers=headers).status_code == 403


def test_debt_risk_route(client, manager_headers, customer_a):
    response = client.get(f'/api/analytics/customers/{customer_a.id}/debt-risk', headers=manager_headers)

    assert response.status_code == 200
    assert response.json['profile']['total_debt'] == 0
    assert response.json['prediction']['risk_level'] == 'low'


def test_backend_failure_is_502(app, client, manager_headers, customer_a, monkeypatch):
    monkeypatch.setitem(app.extensions, 'retailpos.analytics', FailingBackend())

    response = client.get(f'/api/analytics/customers/{customer_a.id}/debt-risk', headers=manager_headers)

    assert response.status_code == 502


def test_sales_forecast_route(client, manager_headers, product_a, product_a2):
    client.post('/api/sales', json={'items': [{'product_id': product_a2.id, 'quantity': 48}]},
                headers=manager_headers)
    client.post('/api/sales', json={'items': [{'product_id': product_a.id, 'quantity': 2}]},
                headers=manager_headers)

    response = client.post('/api/analytics/sales-forecast', json={'days': 7, 'period_days': 7},
                           headers=manager_headers)

    assert response.status_code == 200
    assert (response.json['days'], response.json['period_days']) == (7, 7)
    assert response.json['backend'] == 'mock'
    oil, rice = response.json['forecasted_products']
    assert oil['product_id'] == product_a2.id
    assert oil['current_stock'] == 2
    assert oil['suggestion'] == 'reorder'
    assert oil['suggested_reorder_quantity'] == 48 - 2 + 10
    assert (rice['forecasted_sales'], rice['suggestion']) == (2, 'ok')


def test_sales_forecast_route_rejects_bad_period(client, manager_headers):
    response = client.post('/api/analytics/sales-forecast', json={'period_days': 0}, headers=manager_headers)

    assert response.status_code == 400


def test_sales_forecast_backend_failure_is_502(app, client, manager_headers, monkeypatch):
    monkeypatch.setitem(app.extensions, 'retailpos.analytics', FailingBackend())

    response = client.post('/api/analytics/sales-forecast', json={}, headers=manager_headers)

    assert response.status_code == 502
