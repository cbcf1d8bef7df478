"""
Principal persistence — customers, employees and password history.

Table names come from PrincipalType constants, never from user input;
all values go through ? placeholders.
"""

import sqlite3
from datetime import datetime, timezone
from typing import List, Optional

from flask import current_app

from payportal.auth.passwords import PasswordHash
from payportal.auth.principals import PrincipalType
from payportal.db import get_db, immediate_transaction, utcnow_iso
from payportal.errors import DuplicateRegistrationError


def get_principal_by_username(ptype: PrincipalType, username: str) -> Optional[sqlite3.Row]:
    db = get_db()
    return db.execute(
        f'SELECT * FROM {ptype.table} WHERE username = ?',
        (username,),
    ).fetchone()


def get_principal_by_id(ptype: PrincipalType, principal_id: int) -> Optional[sqlite3.Row]:
    db = get_db()
    return db.execute(
        f'SELECT * FROM {ptype.table} WHERE id = ?',
        (principal_id,),
    ).fetchone()


def get_customer_for_login(username: str, account_number: str) -> Optional[sqlite3.Row]:
    """Customers log in with username AND account number."""
    db = get_db()
    return db.execute(
        'SELECT * FROM customers WHERE username = ? AND account_number = ?',
        (username, account_number),
    ).fetchone()


def record_successful_login(ptype: PrincipalType, principal_id: int, ip: Optional[str]) -> None:
    db = get_db()
    db.execute(
        f'''UPDATE {ptype.table}
            SET last_login_date = ?, last_login_ip = ?
            WHERE id = ?''',
        (utcnow_iso(), ip, principal_id),
    )


# --- Customers ---

def customer_exists(username: str, id_number: str, account_number: str) -> bool:
    db = get_db()
    row = db.execute(
        '''SELECT 1 FROM customers
           WHERE username = ? OR id_number = ? OR account_number = ?
           LIMIT 1''',
        (username, id_number, account_number),
    ).fetchone()
    return row is not None


def create_customer(full_name: str, id_number: str, account_number: str,
                    username: str, password: PasswordHash,
                    registration_ip: Optional[str] = None) -> int:
    """
    Insert a customer and seed their password history.

    The UNIQUE constraints are the final word on duplicates; a race
    between two registrations surfaces as DuplicateRegistrationError.
    """
    try:
        with immediate_transaction() as db:
            cursor = db.execute(
                '''INSERT INTO customers
                       (full_name, id_number, account_number, username,
                        password_hash, password_salt, password_changed_at,
                        registration_ip, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)''',
                (full_name, id_number, account_number, username,
                 password.hash, password.salt, password.created_at,
                 registration_ip, utcnow_iso()),
            )
            customer_id = cursor.lastrowid
            _append_history(
                db, customer_id, password, current_app.config['PASSWORD_HISTORY_LENGTH'],
            )
    except sqlite3.IntegrityError as exc:
        raise DuplicateRegistrationError() from exc
    return customer_id


def get_password_history(customer_id: int) -> List[sqlite3.Row]:
    db = get_db()
    return db.execute(
        '''SELECT password_hash, password_salt, algorithm, cost, created_at
           FROM password_history
           WHERE customer_id = ?
           ORDER BY id''',
        (customer_id,),
    ).fetchall()


def _append_history(db: sqlite3.Connection, customer_id: int, password: PasswordHash,
                    history_length: int) -> None:
    db.execute(
        '''INSERT INTO password_history
               (customer_id, password_hash, password_salt, algorithm, cost, created_at)
           VALUES (?, ?, ?, ?, ?, ?)''',
        (customer_id, password.hash, password.salt, password.algorithm,
         password.cost, password.created_at),
    )
    # FIFO eviction: keep only the newest history_length entries.
    db.execute(
        '''DELETE FROM password_history
           WHERE customer_id = ?
             AND id NOT IN (
                 SELECT id FROM password_history
                 WHERE customer_id = ?
                 ORDER BY id DESC
                 LIMIT ?
             )''',
        (customer_id, customer_id, history_length),
    )


def update_customer_password(customer_id: int, password: PasswordHash,
                             history_length: int) -> None:
    with immediate_transaction() as db:
        db.execute(
            '''UPDATE customers
               SET password_hash = ?, password_salt = ?, password_changed_at = ?
               WHERE id = ?''',
            (password.hash, password.salt, password.created_at, customer_id),
        )
        _append_history(db, customer_id, password, history_length)


def get_security_status(customer_id: int) -> Optional[dict]:
    """Password age, failed attempts, last login and history size."""
    db = get_db()
    row = db.execute(
        '''SELECT c.password_changed_at, c.login_attempts, c.last_login_date,
                  (SELECT COUNT(*) FROM password_history h
                   WHERE h.customer_id = c.id) AS history_length
           FROM customers c
           WHERE c.id = ?''',
        (customer_id,),
    ).fetchone()
    if row is None:
        return None

    changed_at = datetime.fromisoformat(row['password_changed_at'])
    password_age = (datetime.now(timezone.utc) - changed_at).days
    return {
        'password_age_days': password_age,
        'failed_attempts': row['login_attempts'],
        'last_login': row['last_login_date'],
        'password_history_length': row['history_length'],
    }


# --- Employees ---

def create_employee(employee_id: str, full_name: str, username: str,
                    password: PasswordHash, role: str = 'employee',
                    department: str = 'International Payments') -> int:
    db = get_db()
    try:
        cursor = db.execute(
            '''INSERT INTO employees
                   (employee_id, full_name, username, password_hash, password_salt,
                    role, department, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)''',
            (employee_id, full_name, username, password.hash, password.salt,
             role, department, utcnow_iso()),
        )
    except sqlite3.IntegrityError as exc:
        raise DuplicateRegistrationError('An employee with these details already exists.') from exc
    return cursor.lastrowid
