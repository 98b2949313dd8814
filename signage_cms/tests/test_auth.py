"""
Tests for the authentication routes and login_required.
"""

from datetime import timedelta

from signage_cms.models import User, UserSession, utcnow


class TestCreateAdminUser:

    def test_first_admin_needs_no_auth(self, client, db_session):
        response = client.post('/api/v1/auth/create-admin-user', json={
            'email': 'First@Example.com',
            'name': 'First Admin',
            'password': 'password123',
        })

        assert response.status_code == 201
        data = response.get_json()
        assert data['user']['email'] == 'first@example.com'
        assert 'passwordHash' not in data['user']
        assert User.query.count() == 1

    def test_requires_auth_once_admins_exist(self, client, admin_user):
        response = client.post('/api/v1/auth/create-admin-user', json={
            'email': 'second@example.com',
            'name': 'Second Admin',
            'password': 'password123',
        })

        assert response.status_code == 401
        assert response.get_json()['code'] == 'missing_token'

    def test_authenticated_admin_can_create(self, client, auth_headers):
        response = client.post('/api/v1/auth/create-admin-user', headers=auth_headers, json={
            'email': 'second@example.com',
            'name': 'Second Admin',
            'password': 'password123',
        })

        assert response.status_code == 201

    def test_duplicate_email(self, client, auth_headers):
        response = client.post('/api/v1/auth/create-admin-user', headers=auth_headers, json={
            'email': 'admin@example.com',
            'name': 'Someone',
            'password': 'password123',
        })

        assert response.status_code == 400
        assert 'already registered' in response.get_json()['error']

    def test_validation(self, client, db_session):
        short_password = client.post('/api/v1/auth/create-admin-user', json={
            'email': 'a@example.com', 'name': 'Valid Name', 'password': 'short',
        })
        short_name = client.post('/api/v1/auth/create-admin-user', json={
            'email': 'a@example.com', 'name': 'Al', 'password': 'password123',
        })
        bad_email = client.post('/api/v1/auth/create-admin-user', json={
            'email': 'not-an-email', 'name': 'Valid Name', 'password': 'password123',
        })

        assert short_password.status_code == 400
        assert short_name.status_code == 400
        assert bad_email.status_code == 400


class TestLogin:

    def test_login_returns_token_pair(self, client, admin_user):
        response = client.post('/api/v1/auth/login', json={
            'email': 'admin@example.com',
            'password': 'password123',
        })

        assert response.status_code == 200
        data = response.get_json()
        assert data['accessToken']
        assert data['refreshToken']
        assert data['accessToken'] != data['refreshToken']
        assert data['user']['email'] == 'admin@example.com'

    def test_invalid_credentials(self, client, admin_user):
        response = client.post('/api/v1/auth/login', json={
            'email': 'admin@example.com',
            'password': 'wrong-password',
        })

        assert response.status_code == 400
        assert response.get_json()['error'] == 'Invalid email or password'

    def test_unknown_email(self, client, admin_user):
        response = client.post('/api/v1/auth/login', json={
            'email': 'nobody@example.com',
            'password': 'password123',
        })

        assert response.status_code == 400


class TestRefreshToken:

    def test_rotates_both_tokens(self, client, admin_session):
        old_access = admin_session.token
        old_refresh = admin_session.refresh_token

        response = client.post('/api/v1/auth/refresh-token', json={'refreshToken': old_refresh})

        assert response.status_code == 200
        data = response.get_json()
        assert data['accessToken'] != old_access
        assert data['refreshToken'] != old_refresh

        reused = client.post('/api/v1/auth/refresh-token', json={'refreshToken': old_refresh})
        assert reused.status_code == 401

        me = client.get('/api/v1/auth/me', headers={'Authorization': f"Bearer {data['accessToken']}"})
        assert me.status_code == 200

    def test_unknown_refresh_token(self, client, admin_session):
        response = client.post('/api/v1/auth/refresh-token', json={'refreshToken': 'nope'})

        assert response.status_code == 401
        assert response.get_json()['code'] == 'invalid_refresh_token'

    def test_expired_refresh_token(self, client, db_session, admin_session):
        admin_session.refresh_expires_at = utcnow() - timedelta(minutes=1)
        db_session.commit()

        response = client.post('/api/v1/auth/refresh-token', json={'refreshToken': admin_session.refresh_token})

        assert response.status_code == 401

    def test_missing_refresh_token(self, client):
        response = client.post('/api/v1/auth/refresh-token', json={})

        assert response.status_code == 400


class TestLoginRequired:

    def test_missing_token(self, client):
        response = client.get('/api/v1/auth/me')

        assert response.status_code == 401
        assert response.get_json()['code'] == 'missing_token'

    def test_invalid_token(self, client, admin_user):
        response = client.get('/api/v1/auth/me', headers={'Authorization': 'Bearer bogus'})

        assert response.status_code == 401
        assert response.get_json()['code'] == 'invalid_session'

    def test_expired_access_token(self, client, db_session, admin_session):
        admin_session.expires_at = utcnow() - timedelta(minutes=1)
        db_session.commit()

        response = client.get('/api/v1/auth/me', headers={'Authorization': f'Bearer {admin_session.token}'})

        assert response.status_code == 401

    def test_logout_revokes_session(self, client, db_session, auth_headers):
        response = client.post('/api/v1/auth/logout', headers=auth_headers)

        assert response.status_code == 200
        db_session.expire_all()
        assert UserSession.query.count() == 0
        assert client.get('/api/v1/auth/me', headers=auth_headers).status_code == 401


class TestLoginCookie:

    def _login(self, client):
        return client.post('/api/v1/auth/login', json={
            'email': 'admin@example.com',
            'password': 'password123',
        })

    def test_cookie_reaches_protected_route(self, client, admin_user):
        self._login(client)

        response = client.get('/api/v1/auth/me')

        assert response.status_code == 200
        assert response.get_json()['user']['email'] == 'admin@example.com'

    def test_logout_clears_cookie(self, client, admin_user):
        self._login(client)

        assert client.post('/api/v1/auth/logout').status_code == 200
        response = client.get('/api/v1/auth/me')

        assert response.status_code == 401
        assert response.get_json()['code'] == 'missing_token'

    def test_cookie_admin_can_create_admin(self, client, admin_user):
        self._login(client)

        response = client.post('/api/v1/auth/create-admin-user', json={
            'email': 'second@example.com',
            'name': 'Second Admin',
            'password': 'password123',
        })

        assert response.status_code == 201

    def test_bad_token_is_not_rescued_by_cookie(self, client, admin_user):
        self._login(client)

        response = client.get('/api/v1/auth/me', headers={'Authorization': 'Bearer bogus'})

        assert response.status_code == 401
        assert response.get_json()['code'] == 'invalid_session'
