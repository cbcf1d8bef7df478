"""
End-to-end tests for the payment flow over HTTP.

Covers: customer create/list/get with ownership scoping, and the
employee verify -> submit pipeline including bulk submission and stats.
"""


def _verify(client, transaction_id, **body):
    return client.patch(f'/api/employee/transactions/{transaction_id}/verify', json=body)


def _submit(client, transaction_id):
    return client.patch(f'/api/employee/transactions/{transaction_id}/submit')


class TestCustomerTransactions:

    def test_create_transaction(self, customer_client, helpers):
        response = helpers.create_payment(customer_client)
        assert response.status_code == 201
        data = response.get_json()
        assert data['message'] == 'Transaction created successfully.'

        transaction = data['transaction']
        assert transaction['amount'] == '100.00'
        assert transaction['currency'] == 'USD'
        assert transaction['provider'] == 'FNB'
        assert transaction['swift_code'] == 'FIRNZAJJXXX'
        assert transaction['beneficiary_account'] == 'ACC12345'
        assert transaction['status'] == 'pending'
        assert transaction['submitted_to_swift'] is False
        assert transaction['verified_by'] is None

    def test_list_own_newest_first(self, customer_client, helpers):
        first = helpers.create_payment(customer_client, amount='10.00').get_json()['transaction']
        second = helpers.create_payment(customer_client, amount='20.00').get_json()['transaction']

        transactions = customer_client.get('/api/transactions').get_json()['transactions']
        assert [t['id'] for t in transactions] == [second['id'], first['id']]
        # Customers don't get the employee-facing customer block.
        assert 'customer' not in transactions[0]

    def test_list_empty(self, customer_client):
        assert customer_client.get('/api/transactions').get_json() == {'transactions': []}

    def test_get_own(self, customer_client, pending_transaction):
        response = customer_client.get(f'/api/transactions/{pending_transaction["id"]}')
        assert response.status_code == 200
        assert response.get_json()['transaction']['id'] == pending_transaction['id']

    def test_other_customers_transaction_is_not_found(self, app, pending_transaction, helpers):
        other = app.test_client()
        helpers.register(other, **helpers.OTHER_CUSTOMER)
        helpers.login_customer(other, customer=helpers.OTHER_CUSTOMER)

        response = other.get(f'/api/transactions/{pending_transaction["id"]}')
        assert response.status_code == 404
        assert other.get('/api/transactions').get_json()['transactions'] == []

    def test_unknown_transaction_is_not_found(self, customer_client):
        response = customer_client.get('/api/transactions/9999')
        assert response.status_code == 404
        assert response.get_json()['error'] == 'not_found'

    def test_requires_login(self, client, helpers):
        assert helpers.create_payment(client).status_code == 401
        assert client.get('/api/transactions').status_code == 401


class TestVerifyAndSubmit:

    def test_full_lifecycle(self, customer_client, employee_client, helpers):
        """100.00 USD via FNB: pending -> verified -> submitted, then a repeat submit fails."""
        created = helpers.create_payment(customer_client).get_json()['transaction']
        tid = created['id']

        response = _verify(employee_client, tid, notes='Checked beneficiary')
        assert response.status_code == 200
        verified = response.get_json()['transaction']
        assert verified['status'] == 'verified'
        assert verified['verified_by'] is not None
        assert verified['verified_at'] is not None
        assert verified['employee_notes'] == 'Checked beneficiary'
        assert verified['customer']['username'] == helpers.CUSTOMER['username']

        response = _submit(employee_client, tid)
        assert response.status_code == 200
        submitted = response.get_json()['transaction']
        assert submitted['status'] == 'submitted'
        assert submitted['submitted_to_swift'] is True
        assert submitted['submitted_at'] is not None

        response = _submit(employee_client, tid)
        assert response.status_code == 409
        data = response.get_json()
        assert data['error'] == 'state_conflict'
        assert 'must be verified before submitting' in data['message']
        assert data['current_status'] == 'submitted'

        # The customer sees the new status.
        mine = customer_client.get(f'/api/transactions/{tid}').get_json()['transaction']
        assert mine['status'] == 'submitted'

    def test_verify_without_body(self, employee_client, pending_transaction):
        response = employee_client.patch(
            f'/api/employee/transactions/{pending_transaction["id"]}/verify',
        )
        assert response.status_code == 200
        assert response.get_json()['transaction']['employee_notes'] is None

    def test_verify_twice_conflicts(self, employee_client, pending_transaction):
        tid = pending_transaction['id']
        assert _verify(employee_client, tid).status_code == 200

        response = _verify(employee_client, tid)
        assert response.status_code == 409
        assert response.get_json()['current_status'] == 'verified'

    def test_submit_pending_conflicts(self, employee_client, pending_transaction):
        response = _submit(employee_client, pending_transaction['id'])
        assert response.status_code == 409
        assert response.get_json()['message'] == 'Transaction must be verified before submitting.'

    def test_unknown_transaction(self, employee_client):
        assert _verify(employee_client, 9999).status_code == 404
        assert _submit(employee_client, 9999).status_code == 404

    def test_notes_markup_stripped(self, employee_client, pending_transaction):
        response = _verify(employee_client, pending_transaction['id'],
                           notes='<b>Looks</b> fine')
        assert response.get_json()['transaction']['employee_notes'] == 'Looks fine'


class TestBulkSubmit:

    def test_mixed_batch(self, customer_client, employee_client, helpers):
        ids = [helpers.create_payment(customer_client).get_json()['transaction']['id']
               for _ in range(3)]
        verified_id, pending_id, submitted_id = ids
        _verify(employee_client, verified_id)
        _verify(employee_client, submitted_id)
        _submit(employee_client, submitted_id)

        response = employee_client.post('/api/employee/transactions/submit-bulk',
                                        json={'transaction_ids': ids + [9999]})
        assert response.status_code == 200
        data = response.get_json()
        assert data['submitted_count'] == 1
        assert data['skipped_ids'] == [pending_id, submitted_id, 9999]
        assert data['message'] == '1 transaction(s) submitted to SWIFT.'

        status = employee_client.get(f'/api/employee/transactions/{verified_id}').get_json()
        assert status['transaction']['status'] == 'submitted'
        status = employee_client.get(f'/api/employee/transactions/{pending_id}').get_json()
        assert status['transaction']['status'] == 'pending'

    def test_nothing_eligible(self, employee_client, pending_transaction):
        response = employee_client.post('/api/employee/transactions/submit-bulk',
                                        json={'transaction_ids': [pending_transaction['id']]})
        assert response.status_code == 409
        assert response.get_json()['error'] == 'no_eligible_transactions'


class TestEmployeeQueue:

    def test_list_all_with_customer_details(self, app, customer_client, employee_client, helpers):
        helpers.create_payment(customer_client)
        other = app.test_client()
        helpers.register(other, **helpers.OTHER_CUSTOMER)
        helpers.login_customer(other, customer=helpers.OTHER_CUSTOMER)
        helpers.create_payment(other, amount='55.50')

        transactions = employee_client.get('/api/employee/transactions').get_json()['transactions']
        assert len(transactions) == 2
        usernames = {t['customer']['username'] for t in transactions}
        assert usernames == {helpers.CUSTOMER['username'], helpers.OTHER_CUSTOMER['username']}

    def test_filter_by_status(self, customer_client, employee_client, helpers):
        first = helpers.create_payment(customer_client).get_json()['transaction']['id']
        helpers.create_payment(customer_client)
        _verify(employee_client, first)

        pending = employee_client.get('/api/employee/transactions?status=pending').get_json()
        verified = employee_client.get('/api/employee/transactions?status=verified').get_json()
        assert len(pending['transactions']) == 1
        assert [t['id'] for t in verified['transactions']] == [first]

    def test_stats(self, customer_client, employee_client, helpers):
        a = helpers.create_payment(customer_client, amount='100.00').get_json()['transaction']['id']
        b = helpers.create_payment(customer_client, amount='0.50').get_json()['transaction']['id']
        helpers.create_payment(customer_client, amount='20.25')
        _verify(employee_client, a)
        _verify(employee_client, b)
        _submit(employee_client, b)

        stats = employee_client.get('/api/employee/transactions/stats').get_json()
        assert stats == {
            'pending': 1,
            'verified': 1,
            'submitted': 1,
            'total_amount': '120.75',
        }

    def test_stats_empty(self, employee_client):
        stats = employee_client.get('/api/employee/transactions/stats').get_json()
        assert stats == {'pending': 0, 'verified': 0, 'submitted': 0, 'total_amount': '0.00'}
