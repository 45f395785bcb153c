# Overview: Pytest coverage for login, sessions, and store selection.

"""
Authentication and authorization tests.

Covers login/logout, password changes, role checks, and the store
selection performed by the X-Store-Id header.
"""

from conftest import PASSWORD, auth_headers, get_auth_token


class TestLogin:
    def test_login_returns_token_and_stores(self, client, cashier_a, store_a):
        response = client.post('/api/auth/login', json={'username': 'cashier_a', 'password': PASSWORD})

        assert response.status_code == 200
        assert response.json['token']
        assert response.json['user']['username'] == 'cashier_a'
        assert [s['id'] for s in response.json['stores']] == [store_a.id]

    def test_login_with_email(self, client, cashier_a):
        response = client.post('/api/auth/login', json={'username': 'cashier_a@example.com', 'password': PASSWORD})

        assert response.status_code == 200

    def test_wrong_password_is_401(self, client, cashier_a):
        response = client.post('/api/auth/login', json={'username': 'cashier_a', 'password': 'nope'})

        assert response.status_code == 401
        assert response.json['error'] == 'Invalid credentials'

    def test_missing_fields_is_400(self, client, db_session):
        response = client.post('/api/auth/login', json={'username': 'someone'})

        assert response.status_code == 400


class TestSession:
    def test_me_requires_token(self, client, db_session):
        assert client.get('/api/auth/me').status_code == 401

    def test_me_and_logout(self, client, cashier_a):
        token = get_auth_token(client, 'cashier_a')

        me = client.get('/api/auth/me', headers=auth_headers(token))
        assert me.status_code == 200
        assert me.json['user']['id'] == cashier_a.id

        assert client.post('/api/auth/logout', headers=auth_headers(token)).status_code == 200
        assert client.get('/api/auth/me', headers=auth_headers(token)).status_code == 401

    def test_verify_password(self, client, cashier_a):
        token = get_auth_token(client, 'cashier_a')

        ok = client.post('/api/auth/verify-password', json={'password': PASSWORD}, headers=auth_headers(token))
        bad = client.post('/api/auth/verify-password', json={'password': 'wrong'}, headers=auth_headers(token))

        assert ok.json['valid'] is True
        assert bad.status_code == 401

    def test_change_password_revokes_other_sessions(self, client, cashier_a):
        first = get_auth_token(client, 'cashier_a')
        second = get_auth_token(client, 'cashier_a')

        response = client.post(
            '/api/auth/change-password',
            json={'current_password': PASSWORD, 'new_password': 'N3w-Passw0rd!'},
            headers=auth_headers(first),
        )

        assert response.status_code == 200
        assert client.get('/api/auth/me', headers=auth_headers(first)).status_code == 200
        assert client.get('/api/auth/me', headers=auth_headers(second)).status_code == 401
        assert get_auth_token(client, 'cashier_a', 'N3w-Passw0rd!')

    def test_weak_new_password_rejected(self, client, cashier_a):
        token = get_auth_token(client, 'cashier_a')

        response = client.post(
            '/api/auth/change-password',
            json={'current_password': PASSWORD, 'new_password': 'short'},
            headers=auth_headers(token),
        )

        assert response.status_code == 400


class TestStoreSelection:
    def test_single_grant_is_used_implicitly(self, client, cashier_a, store_a):
        token = get_auth_token(client, 'cashier_a')

        response = client.get('/api/products', headers=auth_headers(token))

        assert response.status_code == 200

    def test_foreign_store_is_403(self, client, cashier_a, store_b):
        token = get_auth_token(client, 'cashier_a')

        response = client.get('/api/products', headers=auth_headers(token, store_b.id))

        assert response.status_code == 403

    def test_admin_must_choose_a_store(self, client, admin_user, store_a, store_b):
        token = get_auth_token(client, 'admin')

        assert client.get('/api/products', headers=auth_headers(token)).status_code == 400
        assert client.get('/api/products', headers=auth_headers(token, store_b.id)).status_code == 200

    def test_non_numeric_store_header_is_400(self, client, cashier_a):
        token = get_auth_token(client, 'cashier_a')

        response = client.get('/api/products', headers={**auth_headers(token), 'X-Store-Id': 'abc'})

        assert response.status_code == 400


class TestUserAdministration:
    def test_cashier_cannot_list_users(self, client, cashier_a):
        token = get_auth_token(client, 'cashier_a')

        response = client.get('/api/users', headers=auth_headers(token))

        assert response.status_code == 403
        assert response.json['required_role'] == 'admin'

    def test_admin_creates_user_with_stores(self, client, admin_user, store_a):
        token = get_auth_token(client, 'admin')

        response = client.post('/api/users', json={
            'username': 'new_cashier',
            'email': 'new@example.com',
            'password': PASSWORD,
            'role': 'cashier',
            'store_ids': [store_a.id],
        }, headers=auth_headers(token))

        assert response.status_code == 201
        assert response.json['user']['store_ids'] == [store_a.id]

        duplicate = client.post('/api/users', json={
            'username': 'new_cashier',
            'email': 'other@example.com',
            'password': PASSWORD,
        }, headers=auth_headers(token))
        assert duplicate.status_code == 409

    def test_deactivated_user_loses_sessions(self, client, admin_user, cashier_a):
        admin_token = get_auth_token(client, 'admin')
        cashier_token = get_auth_token(client, 'cashier_a')

        response = client.patch(
            f'/api/users/{cashier_a.id}', json={'is_active': False}, headers=auth_headers(admin_token)
        )

        assert response.status_code == 200
        assert client.get('/api/auth/me', headers=auth_headers(cashier_token)).status_code == 401

    def test_admin_cannot_deactivate_self(self, client, admin_user):
        token = get_auth_token(client, 'admin')

        response = client.patch(f'/api/users/{admin_user.id}', json={'is_active': False}, headers=auth_headers(token))

        assert response.status_code == 400


def test_health(client, db_session):
    response = client.get('/api/health')

    assert response.status_code == 200
    assert response.json['database']['status'] == 'healthy'
