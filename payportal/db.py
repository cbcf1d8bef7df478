"""
SQLite persistence — connection management and schema.

Uses parameterized queries exclusively (? placeholders) to prevent
SQL injection.

Connections run in autocommit mode: single statements are atomic on their
own, and multi-statement read-modify-write work goes through
immediate_transaction(), which takes the database write lock up front so
concurrent writers serialize instead of interleaving.
"""

import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator

from flask import current_app, g


SCHEMA = '''
CREATE TABLE IF NOT EXISTS customers (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    full_name           TEXT NOT NULL,
    id_number           TEXT UNIQUE NOT NULL,
    account_number      TEXT UNIQUE NOT NULL,
    username            TEXT UNIQUE NOT NULL,
    password_hash       TEXT NOT NULL,
    password_salt       TEXT NOT NULL,
    password_changed_at TEXT NOT NULL,
    login_attempts      INTEGER NOT NULL DEFAULT 0,
    locked_until        REAL,
    last_failed_login   REAL,
    last_login_date     TEXT,
    last_login_ip       TEXT,
    is_active           INTEGER NOT NULL DEFAULT 1,
    role                TEXT NOT NULL DEFAULT 'customer'
                        CHECK (role IN ('customer', 'employee', 'admin')),
    registration_ip     TEXT,
    created_at          TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS password_history (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    customer_id   INTEGER NOT NULL REFERENCES customers(id) ON DELETE CASCADE,
    password_hash TEXT NOT NULL,
    password_salt TEXT NOT NULL,
    algorithm     TEXT NOT NULL,
    cost          INTEGER NOT NULL,
    created_at    TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_password_history_customer
    ON password_history (customer_id, id);

CREATE TABLE IF NOT EXISTS employees (
    id                INTEGER PRIMARY KEY AUTOINCREMENT,
    employee_id       TEXT UNIQUE NOT NULL,
    full_name         TEXT NOT NULL,
    username          TEXT UNIQUE NOT NULL,
    password_hash     TEXT NOT NULL,
    password_salt     TEXT NOT NULL,
    role              TEXT NOT NULL DEFAULT 'employee'
                      CHECK (role IN ('employee', 'admin')),
    department        TEXT NOT NULL DEFAULT 'International Payments',
    login_attempts    INTEGER NOT NULL DEFAULT 0,
    locked_until      REAL,
    last_failed_login REAL,
    last_login_date   TEXT,
    last_login_ip     TEXT,
    is_active         INTEGER NOT NULL DEFAULT 1,
    created_at        TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS transactions (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    customer_id         INTEGER NOT NULL REFERENCES customers(id),
    amount_cents        INTEGER NOT NULL CHECK (amount_cents > 0),
    currency            TEXT NOT NULL,
    provider            TEXT NOT NULL,
    swift_code          TEXT NOT NULL,
    beneficiary_account TEXT NOT NULL,
    status              TEXT NOT NULL DEFAULT 'pending'
                        CHECK (status IN ('pending', 'verified', 'submitted')),
    verified_by         INTEGER REFERENCES employees(id),
    verified_at         TEXT,
    submitted_to_swift  INTEGER NOT NULL DEFAULT 0,
    submitted_at        TEXT,
    employee_notes      TEXT,
    created_at          TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_transactions_customer
    ON transactions (customer_id, created_at);
CREATE INDEX IF NOT EXISTS idx_transactions_status
    ON transactions (status);
'''


def utcnow_iso() -> str:
    """Current UTC time as an ISO-8601 string (storage format for timestamps)."""
    return datetime.now(timezone.utc).isoformat()


def _database_path(app) -> str:
    return os.path.join(app.instance_path, app.config['DATABASE_NAME'])


def _connect(app) -> sqlite3.Connection:
    conn = sqlite3.connect(
        _database_path(app),
        timeout=app.config.get('DATABASE_TIMEOUT', 10),
        check_same_thread=False,
        isolation_level=None,  # Autocommit; transactions are explicit
    )
    conn.row_factory = sqlite3.Row  # Enables dict-like access: row['username']
    conn.execute('PRAGMA foreign_keys = ON')
    return conn


def get_db() -> sqlite3.Connection:
    """
    Get a database connection for the current request.

    Stored in Flask's g object and reused within a single request.
    Closed automatically via teardown_appcontext.
    """
    if 'db' not in g:
        g.db = _connect(current_app)
    return g.db


def close_db(exception=None) -> None:
    """Close the database connection at the end of the request."""
    db = g.pop('db', None)
    if db is not None:
        db.close()


@contextmanager
def immediate_transaction() -> Iterator[sqlite3.Connection]:
    """
    Run a block inside BEGIN IMMEDIATE ... COMMIT.

    The write lock is taken before the first read, so a read-modify-write
    sequence cannot interleave with another writer.
    """
    db = get_db()
    db.execute('BEGIN IMMEDIATE')
    try:
        yield db
    except BaseException:
        db.execute('ROLLBACK')
        raise
    else:
        db.execute('COMMIT')


def init_db(app) -> None:
    """
    Initialize database tables and seed the demo employee.

    Uses CREATE TABLE IF NOT EXISTS for idempotency — safe to call
    on every app startup without data loss. Must run inside an app
    context (hashing reads the bcrypt configuration).
    """
    conn = _connect(app)

    try:
        conn.execute('PRAGMA journal_mode=WAL')  # Better concurrent reads
        conn.executescript(SCHEMA)

        if app.config.get('SEED_DEMO_EMPLOYEE'):
            count = conn.execute('SELECT COUNT(*) FROM employees').fetchone()[0]
            if count == 0:
                _seed_demo_employee(app, conn)
    finally:
        conn.close()


def _seed_demo_employee(app, conn: sqlite3.Connection) -> None:
    from payportal.auth.passwords import hash_password

    password = app.config['DEMO_EMPLOYEE_PASSWORD']
    hashed = hash_password(password)
    conn.execute(
        '''INSERT INTO employees
               (employee_id, full_name, username, password_hash, password_salt, created_at)
           VALUES (?, ?, ?, ?, ?, ?)''',
        ('EMP001', 'John Verification Officer', 'employee1',
         hashed.hash, hashed.salt, utcnow_iso()),
    )
    app.logger.info('Demo employee created: employee1')
