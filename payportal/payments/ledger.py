"""
Transaction ledger: the payment state machine and its role gates.

    pending --(employee verify)--> verified --(employee submit / bulk)--> submitted

Every operation takes the acting Principal explicitly. Transitions are
compare-and-set UPDATEs on ``status``: when two employees race on the
same transaction exactly one UPDATE matches, and the loser is told the
state it found instead of overwriting it.
"""

from typing import Iterable, List, Optional

from markupsafe import Markup

from payportal.auth.principals import Principal
from payportal.auth.security import log_bulk_submitted, log_transaction_event
from payportal.db import get_db, immediate_transaction, utcnow_iso
from payportal.errors import (
    AuthorizationError,
    NoEligibleTransactionsError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from payportal.payments import models
from payportal.payments.models import (
    CURRENCIES,
    NOTES_MAX_LENGTH,
    PROVIDERS,
    BulkSubmitResult,
    Transaction,
    TransactionStatus,
)

PENDING = TransactionStatus.PENDING.value
VERIFIED = TransactionStatus.VERIFIED.value
SUBMITTED = TransactionStatus.SUBMITTED.value


def _require_customer(principal: Principal) -> None:
    if not principal.is_customer:
        raise AuthorizationError('Only customers can perform this action.')


def _require_employee(principal: Principal) -> None:
    if not principal.is_employee:
        raise AuthorizationError('Only employees can perform this action.')


def clean_notes(notes: Optional[str]) -> Optional[str]:
    """Strip markup and cap employee notes at 500 characters."""
    if notes is None:
        return None
    text = Markup(str(notes)).striptags()[:NOTES_MAX_LENGTH]
    return text or None


# --- Customer operations ---

def create_transaction(customer: Principal, amount, currency: str, provider: str,
                       swift_code: str, beneficiary_account: str) -> Transaction:
    """Record a new payment instruction in the pending state."""
    _require_customer(customer)

    amount_cents = models.to_cents(amount)
    if amount_cents is None:
        raise ValidationError(fields={'amount': ['Amount must be between 0.01 and 1,000,000 '
                                                 'with at most 2 decimal places.']})
    if currency not in CURRENCIES:
        raise ValidationError(fields={'currency': ['Currency not supported.']})
    if provider not in PROVIDERS:
        raise ValidationError(fields={'provider': ['Invalid provider selected.']})

    transaction_id = models.insert_transaction(
        customer.id, amount_cents, currency, provider, swift_code, beneficiary_account,
    )
    transaction = models.fetch_transaction(transaction_id)
    log_transaction_event(
        'transaction_created', customer, transaction_id,
        f'Transaction {transaction_id} created: {transaction.amount} {currency} via {provider}',
    )
    return transaction


def list_transactions(principal: Principal, status: Optional[str] = None) -> List[Transaction]:
    """
    Customers get their own transactions; employees get everyone's,
    optionally filtered by status, with customer display fields.
    """
    if principal.is_customer:
        return models.fetch_customer_transactions(principal.id)

    _require_employee(principal)
    if status is None:
        return models.fetch_all_transactions()
    try:
        wanted = TransactionStatus(status)
    except ValueError:
        raise ValidationError(fields={'status': [
            f'Status must be one of: {", ".join(s.value for s in TransactionStatus)}.'
        ]}) from None
    return models.fetch_all_transactions(wanted)


def get_transaction(principal: Principal, transaction_id: int) -> Transaction:
    """
    Fetch one transaction within the caller's scope.

    Another customer's transaction is reported as not found, so ids
    can't be probed.
    """
    if principal.is_customer:
        transaction = models.fetch_transaction(transaction_id)
        if transaction is None or transaction.customer_id != principal.id:
            raise NotFoundError('Transaction not found.')
        return transaction

    _require_employee(principal)
    transaction = models.fetch_transaction(transaction_id, with_customer=True)
    if transaction is None:
        raise NotFoundError('Transaction not found.')
    return transaction


# --- Employee operations ---

def verify_transaction(employee: Principal, transaction_id: int,
                       notes: Optional[str] = None) -> Transaction:
    """
    Move a transaction from pending to verified.

    Re-verifying is an error, not a no-op.
    """
    _require_employee(employee)

    db = get_db()
    cursor = db.execute(
        '''UPDATE transactions
           SET status = ?, verified_by = ?, verified_at = ?, employee_notes = ?
           WHERE id = ? AND status = ?''',
        (VERIFIED, employee.id, utcnow_iso(), clean_notes(notes), transaction_id, PENDING),
    )
    if cursor.rowcount == 0:
        current = models.fetch_transaction(transaction_id)
        if current is None:
            raise NotFoundError('Transaction not found.')
        raise StateConflictError(
            f'Transaction is already {current.status.value}; '
            f'only pending transactions can be verified.',
            current_status=current.status.value,
            required_status=PENDING,
        )

    log_transaction_event(
        'transaction_verified', employee, transaction_id,
        f'Transaction {transaction_id} verified by {employee.username}',
    )
    return models.fetch_transaction(transaction_id, with_customer=True)


def submit_transaction(employee: Principal, transaction_id: int) -> Transaction:
    """Move a verified transaction to submitted. Irreversible."""
    _require_employee(employee)

    db = get_db()
    cursor = db.execute(
        '''UPDATE transactions
           SET status = ?, submitted_to_swift = 1, submitted_at = ?
           WHERE id = ? AND status = ?''',
        (SUBMITTED, utcnow_iso(), transaction_id, VERIFIED),
    )
    if cursor.rowcount == 0:
        current = models.fetch_transaction(transaction_id)
        if current is None:
            raise NotFoundError('Transaction not found.')
        if current.status is TransactionStatus.SUBMITTED:
            message = ('Transaction already submitted to SWIFT; '
                       'it must be verified before submitting.')
        else:
            message = 'Transaction must be verified before submitting.'
        raise StateConflictError(
            message,
            current_status=current.status.value,
            required_status=VERIFIED,
        )

    log_transaction_event(
        'transaction_submitted', employee, transaction_id,
        f'Transaction {transaction_id} submitted to SWIFT by {employee.username}',
    )
    return models.fetch_transaction(transaction_id, with_customer=True)


def submit_bulk(employee: Principal, transaction_ids: Iterable[int]) -> BulkSubmitResult:
    """
    Submit every verified transaction among ``transaction_ids``.

    Ids in any other state (or unknown) are left untouched and reported
    in ``skipped_ids``. Selection and update share one write lock, so a
    concurrent single submit can't slip in between.

    Raises:
        NoEligibleTransactionsError: none of the ids is verified.
    """
    _require_employee(employee)

    requested = list(dict.fromkeys(transaction_ids))  # De-duplicate, keep order
    if not requested:
        raise NoEligibleTransactionsError()

    placeholders = ', '.join('?' for _ in requested)
    with immediate_transaction() as db:
        rows = db.execute(
            f'SELECT id FROM transactions WHERE status = ? AND id IN ({placeholders})',
            (VERIFIED, *requested),
        ).fetchall()
        eligible = {row['id'] for row in rows}
        if eligible:
            eligible_placeholders = ', '.join('?' for _ in eligible)
            db.execute(
                f'''UPDATE transactions
                    SET status = ?, submitted_to_swift = 1, submitted_at = ?
                    WHERE status = ? AND id IN ({eligible_placeholders})''',
                (SUBMITTED, utcnow_iso(), VERIFIED, *eligible),
            )

    if not eligible:
        raise NoEligibleTransactionsError()

    log_bulk_submitted(employee, len(eligible))
    return BulkSubmitResult(
        submitted_count=len(eligible),
        skipped_ids=[tid for tid in requested if tid not in eligible],
    )


def transaction_stats(employee: Principal) -> dict:
    """Counts per status and the total amount across all transactions."""
    _require_employee(employee)
    return models.fetch_stats()
