"""
Transaction records: value types and SQL.

Amounts are stored as integer cents and exposed as decimal strings, so
no float ever touches money.
"""

import enum
import sqlite3
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from payportal.db import get_db, utcnow_iso

CURRENCIES = ('USD', 'EUR', 'GBP', 'ZAR', 'JPY', 'AUD', 'CAD')
PROVIDERS = ('StandardBank', 'FNB', 'ABSA', 'Nedbank', 'Capitec')

MIN_AMOUNT = Decimal('0.01')
MAX_AMOUNT = Decimal('1000000')

NOTES_MAX_LENGTH = 500


class TransactionStatus(str, enum.Enum):
    PENDING = 'pending'
    VERIFIED = 'verified'
    SUBMITTED = 'submitted'


def to_cents(amount) -> Optional[int]:
    """
    Convert a decimal amount to integer cents.

    Returns None for anything that isn't a number with at most two
    fractional digits inside the allowed range.
    """
    try:
        value = Decimal(str(amount).strip())
    except (InvalidOperation, ValueError):
        return None
    if not value.is_finite() or value < MIN_AMOUNT or value > MAX_AMOUNT:
        return None
    if value != value.quantize(Decimal('0.01')):
        return None
    return int(value * 100)


def format_cents(cents: int) -> str:
    return f'{cents // 100}.{cents % 100:02d}'


@dataclass(frozen=True)
class Transaction:
    id: int
    customer_id: int
    amount_cents: int
    currency: str
    provider: str
    swift_code: str
    beneficiary_account: str
    status: TransactionStatus
    created_at: str
    verified_by: Optional[int] = None
    verified_at: Optional[str] = None
    submitted_to_swift: bool = False
    submitted_at: Optional[str] = None
    employee_notes: Optional[str] = None
    # Customer display fields, only on employee-facing reads.
    customer: Optional[Dict[str, Any]] = field(default=None, compare=False)

    @property
    def amount(self) -> str:
        return format_cents(self.amount_cents)

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> 'Transaction':
        keys = row.keys()
        customer = None
        if 'customer_username' in keys:
            customer = {
                'full_name': row['customer_full_name'],
                'username': row['customer_username'],
                'account_number': row['customer_account_number'],
            }
        return cls(
            id=row['id'],
            customer_id=row['customer_id'],
            amount_cents=row['amount_cents'],
            currency=row['currency'],
            provider=row['provider'],
            swift_code=row['swift_code'],
            beneficiary_account=row['beneficiary_account'],
            status=TransactionStatus(row['status']),
            created_at=row['created_at'],
            verified_by=row['verified_by'],
            verified_at=row['verified_at'],
            submitted_to_swift=bool(row['submitted_to_swift']),
            submitted_at=row['submitted_at'],
            employee_notes=row['employee_notes'],
            customer=customer,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'customer_id': self.customer_id,
            'amount': self.amount,
            'currency': self.currency,
            'provider': self.provider,
            'swift_code': self.swift_code,
            'beneficiary_account': self.beneficiary_account,
            'status': self.status.value,
            'created_at': self.created_at,
            'verified_by': self.verified_by,
            'verified_at': self.verified_at,
            'submitted_to_swift': self.submitted_to_swift,
            'submitted_at': self.submitted_at,
            'employee_notes': self.employee_notes,
        }
        if self.customer is not None:
            data['customer'] = self.customer
        return data


@dataclass(frozen=True)
class BulkSubmitResult:
    submitted_count: int
    skipped_ids: List[int]

    def to_dict(self) -> Dict[str, Any]:
        return {'submitted_count': self.submitted_count, 'skipped_ids': self.skipped_ids}


# --- Queries ---

_WITH_CUSTOMER = '''
    SELECT t.*,
           c.full_name      AS customer_full_name,
           c.username       AS customer_username,
           c.account_number AS customer_account_number
    FROM transactions t
    JOIN customers c ON c.id = t.customer_id
'''


def insert_transaction(customer_id: int, amount_cents: int, currency: str, provider: str,
                       swift_code: str, beneficiary_account: str) -> int:
    db = get_db()
    cursor = db.execute(
        '''INSERT INTO transactions
               (customer_id, amount_cents, currency, provider, swift_code,
                beneficiary_account, status, created_at)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?)''',
        (customer_id, amount_cents, currency, provider, swift_code,
         beneficiary_account, TransactionStatus.PENDING.value, utcnow_iso()),
    )
    return cursor.lastrowid


def fetch_transaction(transaction_id: int, with_customer: bool = False) -> Optional[Transaction]:
    db = get_db()
    if with_customer:
        row = db.execute(_WITH_CUSTOMER + ' WHERE t.id = ?', (transaction_id,)).fetchone()
    else:
        row = db.execute('SELECT * FROM transactions WHERE id = ?', (transaction_id,)).fetchone()
    return Transaction.from_row(row) if row is not None else None


def fetch_customer_transactions(customer_id: int) -> List[Transaction]:
    db = get_db()
    rows = db.execute(
        '''SELECT * FROM transactions
           WHERE customer_id = ?
           ORDER BY created_at DESC, id DESC''',
        (customer_id,),
    ).fetchall()
    return [Transaction.from_row(row) for row in rows]


def fetch_all_transactions(status: Optional[TransactionStatus] = None) -> List[Transaction]:
    db = get_db()
    if status is None:
        rows = db.execute(_WITH_CUSTOMER + ' ORDER BY t.created_at DESC, t.id DESC').fetchall()
    else:
        rows = db.execute(
            _WITH_CUSTOMER + ' WHERE t.status = ? ORDER BY t.created_at DESC, t.id DESC',
            (status.value,),
        ).fetchall()
    return [Transaction.from_row(row) for row in rows]


def fetch_stats() -> Dict[str, Any]:
    db = get_db()
    rows = db.execute(
        '''SELECT status, COUNT(*) AS count, COALESCE(SUM(amount_cents), 0) AS total
           FROM transactions
           GROUP BY status'''
    ).fetchall()
    stats = {status.value: 0 for status in TransactionStatus}
    total_cents = 0
    for row in rows:
        stats[row['status']] = row['count']
        total_cents += row['total']
    stats['total_amount'] = format_cents(total_cents)
    return stats
