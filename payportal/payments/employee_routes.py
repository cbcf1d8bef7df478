"""
Employee verification queue — list, inspect, verify and submit transactions.

Every mutating route is @employee_required then @csrf_protected, so a
customer session (or no session) never reaches the token check.
"""

from flask import jsonify, request

from payportal.auth.csrf import csrf_protected
from payportal.auth.forms import validate_json
from payportal.auth.sessions import employee_required
from payportal.payments import employee_payments_bp, ledger
from payportal.payments.forms import BulkSubmitForm, VerifyForm


@employee_payments_bp.route('', methods=['GET'])
@employee_required
def list_all(principal):
    status = request.args.get('status') or None
    transactions = ledger.list_transactions(principal, status=status)
    return jsonify({'transactions': [t.to_dict() for t in transactions]})


@employee_payments_bp.route('/stats', methods=['GET'])
@employee_required
def stats(principal):
    return jsonify(ledger.transaction_stats(principal))


@employee_payments_bp.route('/<int:transaction_id>', methods=['GET'])
@employee_required
def get_one(principal, transaction_id):
    transaction = ledger.get_transaction(principal, transaction_id)
    return jsonify({'transaction': transaction.to_dict()})


@employee_payments_bp.route('/<int:transaction_id>/verify', methods=['PATCH'])
@employee_required
@csrf_protected
def verify(principal, transaction_id):
    notes = None
    if request.get_data():  # Body is optional; notes are the only field
        notes = validate_json(VerifyForm).notes.data
    transaction = ledger.verify_transaction(principal, transaction_id, notes=notes)
    return jsonify({
        'message': 'Transaction verified successfully.',
        'transaction': transaction.to_dict(),
    })


@employee_payments_bp.route('/<int:transaction_id>/submit', methods=['PATCH'])
@employee_required
@csrf_protected
def submit(principal, transaction_id):
    transaction = ledger.submit_transaction(principal, transaction_id)
    return jsonify({
        'message': 'Transaction submitted to SWIFT successfully.',
        'transaction': transaction.to_dict(),
    })


@employee_payments_bp.route('/submit-bulk', methods=['POST'])
@employee_required
@csrf_protected
def submit_bulk(principal):
    form = validate_json(BulkSubmitForm)
    result = ledger.submit_bulk(principal, form.transaction_ids.data)
    payload = result.to_dict()
    payload['message'] = f'{result.submitted_count} transaction(s) submitted to SWIFT.'
    return jsonify(payload)
