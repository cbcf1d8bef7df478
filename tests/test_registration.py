"""
Tests for customer registration.

Covers: successful registration, duplicate detection, field validation
(including the ID number check digit), and password policy at signup.
"""

import pytest

from payportal.auth import models
from payportal.auth.forms import is_valid_sa_id
from payportal.auth.principals import CUSTOMER


class TestRegistration:

    def test_register_success(self, client, app, helpers):
        response = helpers.register(client)
        assert response.status_code == 201
        data = response.get_json()
        assert data['user_id'] > 0

        with app.app_context():
            row = models.get_principal_by_id(CUSTOMER, data['user_id'])
            assert row['username'] == helpers.CUSTOMER['username']
            assert row['role'] == 'customer'
            assert row['login_attempts'] == 0
            # Never stored in plaintext.
            assert helpers.CUSTOMER['password'] not in row['password_hash']
            assert len(models.get_password_history(data['user_id'])) == 1

    def test_register_then_reregister_same_id_number(self, client):
        body = {
            'full_name': 'Jane Doe',
            'id_number': '8001015009087',
            'account_number': '123456789',
            'username': 'janedoe',
            'password': 'Str0ng!Pass',
        }
        assert client.post('/api/auth/register', json=body).status_code == 201

        again = dict(body, account_number='987654321', username='janedoe2')
        response = client.post('/api/auth/register', json=again)
        assert response.status_code == 409
        assert response.get_json()['error'] == 'duplicate_registration'

    def test_register_trims_whitespace(self, client, app, helpers):
        response = helpers.register(client, username='  padded_user  ')
        assert response.status_code == 201
        with app.app_context():
            assert models.get_principal_by_username(CUSTOMER, 'padded_user') is not None

    @pytest.mark.parametrize('field', ['username', 'id_number', 'account_number'])
    def test_duplicate_rejected(self, client, helpers, field):
        assert helpers.register(client).status_code == 201

        other = dict(helpers.OTHER_CUSTOMER)
        other[field] = helpers.CUSTOMER[field]
        response = client.post('/api/auth/register', json=other)
        assert response.status_code == 409
        data = response.get_json()
        assert data['error'] == 'duplicate_registration'
        # Doesn't say which field collided.
        assert field not in data['message']


class TestRegistrationValidation:

    @pytest.mark.parametrize('field,value', [
        ('full_name', 'J'),
        ('full_name', 'Jane <script>'),
        ('id_number', '8001015009088'),  # Bad check digit
        ('id_number', '800101500908'),
        ('account_number', '1234567'),
        ('account_number', '12345abc90'),
        ('username', 'ab'),
        ('username', 'bad user'),
    ])
    def test_invalid_field(self, client, helpers, field, value):
        response = helpers.register(client, **{field: value})
        assert response.status_code == 400
        data = response.get_json()
        assert data['error'] == 'validation_error'
        assert field in data['fields']

    def test_missing_fields(self, client):
        response = client.post('/api/auth/register', json={})
        assert response.status_code == 400
        fields = response.get_json()['fields']
        for field in ('full_name', 'id_number', 'account_number', 'username', 'password'):
            assert field in fields

    def test_weak_password(self, client, helpers):
        response = helpers.register(client, password='password')
        assert response.status_code == 400
        assert 'password' in response.get_json()['fields']

    def test_password_containing_username(self, client, helpers):
        response = helpers.register(client, username='wombat', password='Wombat!9x')
        assert response.status_code == 400
        assert 'password' in response.get_json()['fields']

    def test_non_object_body(self, client):
        response = client.post('/api/auth/register', json=['not', 'an', 'object'])
        assert response.status_code == 400
        assert response.get_json()['error'] == 'validation_error'


class TestIdNumberCheckDigit:

    @pytest.mark.parametrize('id_number', ['8001015009087', '8505055009088', '9001015009086'])
    def test_valid(self, id_number):
        assert is_valid_sa_id(id_number)

    @pytest.mark.parametrize('id_number', ['8001015009080', '80010150090871', 'abcdefghijklm', ''])
    def test_invalid(self, id_number):
        assert not is_valid_sa_id(id_number)
