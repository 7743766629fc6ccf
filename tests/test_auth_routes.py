"""
HTTP tests for /api/auth and staff onboarding.
"""
from datetime import datetime, timedelta
from unittest.mock import patch

from clinic_api.extensions import db
from clinic_api.models import User

PASSWORD = 'password123'


def _login(client, username, password=PASSWORD):
    return client.post('/api/auth/login', json={'username': username, 'password': password})


class TestLogin:

    def test_login_returns_tokens(self, client):
        response = _login(client, 'reception')
        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['token_type'] == 'bearer'
        assert data['access_token']
        assert data['refresh_token']
        assert data['user']['role'] == 'receptionist'
        assert 'password_hash' not in data['user']

    def test_token_works_for_me(self, client):
        token = _login(client, 'doctor').get_json()['data']['access_token']
        response = client.get('/api/auth/me', headers={'Authorization': f'Bearer {token}'})
        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['username'] == 'doctor'
        assert data['clinic']['name'] == 'Main Street Clinic'

    def test_wrong_password(self, client):
        response = _login(client, 'doctor', 'nope-nope')
        assert response.status_code == 401
        assert response.get_json() == {'success': False, 'message': 'Invalid username or password'}

    def test_deactivated_account(self, app, client, ids):
        with app.app_context():
            db.session.get(User, ids['doctor']).is_active = False
            db.session.commit()
        assert _login(client, 'doctor').status_code == 403

    def test_login_tracking(self, app, client, ids):
        _login(client, 'admin')
        with app.app_context():
            user = db.session.get(User, ids['admin'])
            assert user.login_count == 1
            assert user.last_login is not None

    def test_invalid_token(self, client):
        response = client.get('/api/auth/me', headers={'Authorization': 'Bearer not-a-token'})
        assert response.status_code == 401

    def test_refresh(self, client):
        refresh_token = _login(client, 'admin').get_json()['data']['refresh_token']
        response = client.post('/api/auth/refresh', headers={'Authorization': f'Bearer {refresh_token}'})
        assert response.status_code == 200
        assert response.get_json()['data']['access_token']


class TestPasswords:

    def test_forgot_password_does_not_leak(self, client):
        known = client.post('/api/auth/forgot-password', json={'email': 'admin@clinic.test'})
        unknown = client.post('/api/auth/forgot-password', json={'email': 'ghost@clinic.test'})
        assert known.status_code == unknown.status_code == 200
        assert known.get_json()['message'] == unknown.get_json()['message']

    def test_reset_flow(self, app, client, ids):
        with patch('clinic_api.routes.auth.send_password_reset_email', return_value=True) as send:
            client.post('/api/auth/forgot-password', json={'email': 'admin@clinic.test'})
        assert send.call_args.kwargs['reset_link'].startswith('http://localhost:3000/reset-password/')

        with app.app_context():
            token = db.session.get(User, ids['admin']).reset_token
        assert client.post('/api/auth/verify-reset-token', json={'token': token}).status_code == 200

        response = client.post('/api/auth/reset-password', json={'token': token, 'newPassword': 'brand-new-pass'})
        assert response.status_code == 200
        assert _login(client, 'admin', 'brand-new-pass').status_code == 200
        # Tokens are single use
        again = client.post('/api/auth/reset-password', json={'token': token, 'newPassword': 'another-pass'})
        assert again.status_code == 400

    def test_expired_token_rejected(self, app, client, ids):
        with app.app_context():
            user = db.session.get(User, ids['admin'])
            user.reset_token = 'expired-token'
            user.reset_token_expiry = datetime.utcnow() - timedelta(minutes=1)
            db.session.commit()
        response = client.post('/api/auth/verify-reset-token', json={'token': 'expired-token'})
        assert response.status_code == 400

    def test_change_password(self, client, auth):
        headers = auth('accountant')
        wrong = client.post('/api/auth/change-password',
                            json={'currentPassword': 'bad', 'newPassword': 'new-password-1'}, headers=headers)
        assert wrong.status_code == 400
        assert 'current_password' in wrong.get_json()['errors']

        ok = client.post('/api/auth/change-password',
                         json={'currentPassword': PASSWORD, 'newPassword': 'new-password-1'}, headers=headers)
        assert ok.status_code == 200
        assert _login(client, 'accountant', 'new-password-1').status_code == 200

    def test_short_password_rejected(self, client, auth):
        response = client.post('/api/auth/change-password',
                               json={'currentPassword': PASSWORD, 'newPassword': 'short'},
                               headers=auth('accountant'))
        assert response.status_code == 400
        assert 'newPassword' in response.get_json()['errors']


class TestStaffOnboarding:

    def test_new_staff_sets_password_then_logs_in(self, app, client, auth, ids):
        response = client.post(
            '/api/users',
            json={'username': 'nurse', 'email': 'Nurse@Clinic.test', 'firstName': 'Nora', 'role': 'receptionist'},
            headers=auth('admin'),
        )
        assert response.status_code == 201
        data = response.get_json()['data']
        assert data['is_active'] is False
        assert data['clinic_id'] == ids['clinic']
        assert data['email'] == 'nurse@clinic.test'

        with app.app_context():
            token = User.query.filter_by(username='nurse').first().reset_token

        assert client.post('/api/auth/set-password', json={'token': token, 'password': 'welcome-123'}).status_code == 200
        assert _login(client, 'nurse', 'welcome-123').status_code == 200

    def test_duplicate_username(self, client, auth):
        response = client.post(
            '/api/users',
            json={'username': 'doctor', 'email': 'x@clinic.test', 'firstName': 'X', 'role': 'doctor'},
            headers=auth('admin'),
        )
        assert response.status_code == 409

    def test_only_admin_creates_staff(self, client, auth):
        response = client.post(
            '/api/users',
            json={'username': 'sneaky', 'email': 's@clinic.test', 'firstName': 'S', 'role': 'admin'},
            headers=auth('receptionist'),
        )
        assert response.status_code == 403

    def test_admin_cannot_deactivate_self(self, client, auth, ids):
        response = client.delete(f'/api/users/{ids["admin"]}', headers=auth('admin'))
        assert response.status_code == 400
