"""
Customer payment routes: create and list the caller's own transactions.
"""

from flask import jsonify

from payportal.auth.csrf import csrf_protected
from payportal.auth.forms import validate_json
from payportal.auth.sessions import customer_required
from payportal.payments import ledger, payments_bp
from payportal.payments.forms import PaymentForm


@payments_bp.route('', methods=['POST'])
@customer_required
@csrf_protected
def create(principal):
    form = validate_json(PaymentForm)
    transaction = ledger.create_transaction(
        principal,
        amount=form.amount.data,
        currency=form.currency.data,
        provider=form.provider.data,
        swift_code=form.swift_code.data,
        beneficiary_account=form.beneficiary_account.data,
    )
    return jsonify({
        'message': 'Transaction created successfully.',
        'transaction': transaction.to_dict(),
    }), 201


@payments_bp.route('', methods=['GET'])
@customer_required
def list_own(principal):
    transactions = ledger.list_transactions(principal)
    return jsonify({'transactions': [t.to_dict() for t in transactions]})


@payments_bp.route('/<int:transaction_id>', methods=['GET'])
@customer_required
def get_own(principal, transaction_id):
    transaction = ledger.get_transaction(principal, transaction_id)
    return jsonify({'transaction': transaction.to_dict()})
