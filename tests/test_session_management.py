"""
Tests for secure session management.

Covers: cookie flags, session regeneration on login, namespaced
customer/employee records, the absolute lifetime, and the
401/403 split in the route decorators.
"""

import time

import pytest
from flask import session

from payportal.auth.principals import CUSTOMER, EMPLOYEE, Principal
from payportal.auth.sessions import customer_sessions, employee_sessions


class TestSessionCookieFlags:
    """Tests for session cookie security attributes."""

    def test_session_cookie_httponly(self, app, client, helpers):
        helpers.register(client)
        response = helpers.login_customer(client)

        assert app.config['SESSION_COOKIE_HTTPONLY'] is True
        session_cookies = [h for h in response.headers.getlist('Set-Cookie')
                           if h.lower().startswith('session=')]
        assert session_cookies
        assert all('httponly' in c.lower() for c in session_cookies)

    def test_session_cookie_samesite(self, app):
        assert app.config['SESSION_COOKIE_SAMESITE'] == 'Lax'

    def test_production_cookie_secure(self):
        from payportal.config import ProductionConfig
        assert ProductionConfig.SESSION_COOKIE_SECURE is True


class TestSessionLifecycle:

    def test_session_regeneration_on_login(self, client, helpers):
        """Login clears pre-login session data (session fixation prevention)."""
        helpers.register(client)
        with client.session_transaction() as sess:
            sess['pre_login_marker'] = 'should_be_cleared'

        with client:
            helpers.login_customer(client)
            assert 'pre_login_marker' not in session
            assert session['customer']['username'] == helpers.CUSTOMER['username']
            assert 'issued_at' in session['customer']

    def test_login_issues_new_session_id(self, client, helpers):
        """A session ID planted before login is not the authenticated one."""
        helpers.register(client)
        with client.session_transaction() as sess:
            sess['pre_login_marker'] = 'planted'
        planted = client.get_cookie('session').value

        assert helpers.login_customer(client).status_code == 200
        issued = client.get_cookie('session').value
        assert issued != planted

        # Replaying the planted ID gets no authenticated session.
        client.set_cookie('session', planted)
        assert client.get('/api/auth/session').get_json()['authenticated'] is False
        assert client.get('/api/transactions').status_code == 401

    def test_second_portal_login_issues_new_session_id(self, client, helpers):
        helpers.register(client)
        helpers.login_customer(client)
        before = client.get_cookie('session').value

        helpers.login_employee(client)
        assert client.get_cookie('session').value != before
        assert client.get('/api/auth/session').get_json()['authenticated'] is True

    def test_login_rotates_csrf_secret(self, client, helpers):
        helpers.register(client)
        helpers.login_customer(client)
        helpers.csrf_headers(client)
        with client.session_transaction() as sess:
            old_secret = sess['csrf_token']

        helpers.login_customer(client)
        with client.session_transaction() as sess:
            assert 'csrf_token' not in sess

        helpers.csrf_headers(client)
        with client.session_transaction() as sess:
            assert sess['csrf_token'] != old_secret

    def test_customer_and_employee_namespaces_coexist(self, client, helpers):
        helpers.register(client)
        helpers.login_customer(client)
        helpers.login_employee(client)

        assert client.get('/api/auth/session').get_json()['authenticated'] is True
        assert client.get('/api/employee/session').get_json()['authenticated'] is True

        # Logging out of one portal keeps the other.
        client.post('/api/employee/logout')
        assert client.get('/api/auth/session').get_json()['authenticated'] is True
        assert client.get('/api/employee/session').get_json()['authenticated'] is False


class TestAbsoluteLifetime:

    def test_expired_record_resolves_to_none(self, client, helpers):
        helpers.register(client)
        helpers.login_customer(client)

        with client.session_transaction() as sess:
            record = dict(sess['customer'])
            record['issued_at'] = time.time() - 24 * 60 * 60 - 1
            sess['customer'] = record

        response = client.get('/api/transactions')
        assert response.status_code == 401
        assert client.get('/api/auth/session').get_json()['authenticated'] is False

    def test_malformed_record_resolves_to_none(self, app):
        with app.test_request_context():
            session['customer'] = {'id': 'not-a-number', 'issued_at': 'soon'}
            assert customer_sessions.resolve() is None
            session['customer'] = 'garbage'
            assert customer_sessions.resolve() is None


class TestSessionManagerUnit:

    def _principal(self, kind=CUSTOMER):
        return Principal(
            kind=kind, id=7, username='someone', role=kind.name,
            full_name='Some One', display={},
        )

    def test_login_resolve_logout(self, app):
        with app.test_request_context():
            principal = self._principal()
            customer_sessions.login(principal)
            assert customer_sessions.resolve() == principal
            assert session.permanent is True

            assert customer_sessions.logout() == principal
            assert customer_sessions.resolve() is None
            # Idempotent.
            assert customer_sessions.logout() is None

    def test_login_rejects_wrong_principal_type(self, app):
        with app.test_request_context():
            with pytest.raises(ValueError):
                employee_sessions.login(self._principal(CUSTOMER))

    def test_logout_clears_whole_session_when_last(self, app):
        with app.test_request_context():
            customer_sessions.login(self._principal())
            session['csrf_token'] = 'secret'
            customer_sessions.logout()
            assert 'csrf_token' not in session

    def test_logout_keeps_other_namespace(self, app):
        with app.test_request_context():
            customer_sessions.login(self._principal(CUSTOMER))
            employee_sessions.login(self._principal(EMPLOYEE))
            customer_sessions.logout()
            assert employee_sessions.resolve() is not None


class TestRouteGuards:
    """No session is a 401; the other portal's session only is a 403."""

    def test_no_session_is_401(self, client):
        assert client.get('/api/transactions').status_code == 401
        assert client.get('/api/employee/transactions').status_code == 401
        assert client.get('/api/auth/csrf-token').status_code == 401

    def test_customer_on_employee_route_is_403(self, customer_client):
        response = customer_client.get('/api/employee/transactions')
        assert response.status_code == 403
        assert response.get_json()['error'] == 'authorization_error'

    def test_employee_on_customer_route_is_403(self, employee_client):
        response = employee_client.get('/api/transactions')
        assert response.status_code == 403

    def test_customer_cannot_verify(self, customer_client, pending_transaction):
        response = customer_client.patch(
            f'/api/employee/transactions/{pending_transaction["id"]}/verify', json={},
        )
        assert response.status_code == 403
