"""
Pytest fixtures for the payments portal test suite.

Provides multiple app configurations for testing different security
controls in isolation:
- app/client: Base test config (CSRF off, rate limiting off)
- csrf_app/csrf_client: CSRF enabled
- rate_limit_app/rate_limit_client: Rate limiting enabled

Each app gets its own instance folder under tmp_path, so the SQLite
database and session files never leak between tests.
"""

import pytest

from payportal import create_app
from payportal.config import CSRFTestConfig, RateLimitTestConfig, TestConfig

CUSTOMER = {
    'full_name': 'Jane Doe',
    'id_number': '8001015009087',
    'account_number': '1234567890',
    'username': 'jdoe_customer',
    'password': 'Str0ng!Pass',
}

OTHER_CUSTOMER = {
    'full_name': 'Sipho Nkosi',
    'id_number': '8505055009088',
    'account_number': '9876543210',
    'username': 'snkosi',
    'password': 'Str0ng!Pass',
}

EMPLOYEE_USERNAME = 'employee1'
EMPLOYEE_PASSWORD = 'Employee123!'

PAYMENT = {
    'amount': '100.00',
    'currency': 'USD',
    'provider': 'FNB',
    'swift_code': 'FIRNZAJJXXX',
    'beneficiary_account': 'ACC12345',
}


@pytest.fixture
def app(tmp_path):
    """Create a Flask app with the base test configuration."""
    yield create_app(TestConfig, instance_path=str(tmp_path))


@pytest.fixture
def client(app):
    """Test client for the base app configuration."""
    return app.test_client()


@pytest.fixture
def csrf_app(tmp_path):
    """Create a Flask app with CSRF protection enabled."""
    yield create_app(CSRFTestConfig, instance_path=str(tmp_path))


@pytest.fixture
def csrf_client(csrf_app):
    """Test client with CSRF protection enabled."""
    return csrf_app.test_client()


@pytest.fixture
def rate_limit_app(tmp_path):
    """Create a Flask app with rate limiting enabled."""
    yield create_app(RateLimitTestConfig, instance_path=str(tmp_path))


@pytest.fixture
def rate_limit_client(rate_limit_app):
    """Test client with rate limiting enabled."""
    return rate_limit_app.test_client()


# --- Request helpers ---

def register(client, **overrides):
    body = dict(CUSTOMER, **overrides)
    return client.post('/api/auth/register', json=body)


def login_customer(client, customer=CUSTOMER, **overrides):
    body = {
        'username': customer['username'],
        'account_number': customer['account_number'],
        'password': customer['password'],
    }
    body.update(overrides)
    return client.post('/api/auth/login', json=body)


def login_employee(client, username=EMPLOYEE_USERNAME, password=EMPLOYEE_PASSWORD):
    return client.post('/api/employee/login', json={
        'username': username,
        'password': password,
    })


def csrf_headers(client, portal='auth'):
    """Fetch a CSRF token for the logged-in session ('auth' or 'employee')."""
    response = client.get(f'/api/{portal}/csrf-token')
    assert response.status_code == 200, response.get_json()
    return {'X-CSRFToken': response.get_json()['csrf_token']}


def create_payment(client, headers=None, **overrides):
    body = dict(PAYMENT, **overrides)
    return client.post('/api/transactions', json=body, headers=headers or {})


@pytest.fixture
def helpers():
    """Request helpers, so test modules don't import conftest directly."""
    class Helpers:
        CUSTOMER = CUSTOMER
        OTHER_CUSTOMER = OTHER_CUSTOMER
        PAYMENT = PAYMENT
        EMPLOYEE_USERNAME = EMPLOYEE_USERNAME
        EMPLOYEE_PASSWORD = EMPLOYEE_PASSWORD

        register = staticmethod(register)
        login_customer = staticmethod(login_customer)
        login_employee = staticmethod(login_employee)
        csrf_headers = staticmethod(csrf_headers)
        create_payment = staticmethod(create_payment)

    return Helpers


@pytest.fixture
def customer_client(app, client):
    """Test client logged in as a freshly registered customer."""
    assert register(client).status_code == 201
    assert login_customer(client).status_code == 200
    return client


@pytest.fixture
def employee_client(app):
    """Separate test client logged in as the seeded demo employee."""
    employee = app.test_client()
    assert login_employee(employee).status_code == 200
    return employee


@pytest.fixture
def pending_transaction(customer_client):
    """A pending transaction created by the customer; returns its JSON."""
    response = create_payment(customer_client)
    assert response.status_code == 201
    return response.get_json()['transaction']
