"""
Security utilities — timing-safe authentication and audit helpers.

This module contains the core security logic that protects against:
- Timing-based user enumeration (dummy hash technique)
- Information leakage through error messages
- Brute force (lockout checked before hashing, updated after)
- Unaudited security events

The same authenticate() serves customers and employees; the
PrincipalType decides which table, which lockout thresholds and which
audit labels apply.

References:
- OWASP ASVS V2.2.1 (anti-automation)
- NIST SP 800-63B §5.2.2 (credential verification)
"""

import logging
import secrets
from typing import Optional

from flask import g, has_request_context, request

from payportal.auth import lockout
from payportal.auth.passwords import verify_password
from payportal.auth.principals import Principal, PrincipalType
from payportal.errors import AuthenticationError, LockedError
from payportal.extensions import bcrypt
from payportal.logging_config import audit_log, mask_identifier, sanitize_log_value

# --- Timing-Safe Credential Verification ---

# Hash used when the requested username doesn't exist. Running the same
# bcrypt check against it keeps the response time of "no such user" equal
# to "wrong password", so timing doesn't reveal which usernames exist.
# Generated at startup with the configured cost factor.
DUMMY_HASH: Optional[str] = None
DUMMY_SALT: Optional[str] = None


def init_dummy_hash(app) -> None:
    """
    Initialize the dummy hash within an app context.

    Called during app factory initialization so bcrypt has access
    to the configured cost factor.
    """
    global DUMMY_HASH, DUMMY_SALT
    DUMMY_SALT = secrets.token_hex(32)
    DUMMY_HASH = bcrypt.generate_password_hash(
        'dummy_password_for_timing' + DUMMY_SALT,
    ).decode('utf-8')


def authenticate(ptype: PrincipalType, row, username: str, password: str) -> Principal:
    """
    Authenticate a principal whose row has already been looked up.

    Order matters:
    1. Unknown/inactive principal: burn a bcrypt check, generic failure.
    2. Lockout check: a locked principal is refused before hashing.
    3. Password verification.
    4. Failure: count it (may lock). Success: reset counters.

    Returns:
        The authenticated Principal.

    Raises:
        AuthenticationError: generic "Invalid credentials", never says
            which part was wrong. Carries attempts_remaining for known
            principals.
        LockedError: locked now, or locked by this very failure.
    """
    if row is None or not row['is_active']:
        verify_password(password, DUMMY_HASH, DUMMY_SALT)  # Result discarded
        log_login_failed(ptype, username, reason='invalid_credentials')
        raise AuthenticationError()

    principal_id = row['id']

    try:
        lockout.check_lock(ptype, principal_id)
    except LockedError:
        log_login_failed(ptype, username, principal_id=principal_id, reason='account_locked')
        raise

    if not verify_password(password, row['password_hash'], row['password_salt']):
        state = lockout.record_failure(ptype, principal_id)
        if state.locked:
            log_account_locked(ptype, username, principal_id, state.attempts)
            raise LockedError(retry_after=state.retry_after())

        log_login_failed(ptype, username, principal_id=principal_id,
                         reason='invalid_credentials', attempts=state.attempts)
        message = None
        if state.warning:
            message = (f'Invalid credentials. Warning: {state.remaining_attempts} '
                       f'attempt(s) remaining before temporary lockout.')
        raise AuthenticationError(message, attempts_remaining=state.remaining_attempts)

    lockout.reset(ptype, principal_id)

    from payportal.auth.models import record_successful_login  # Deferred import avoids circular dependency
    record_successful_login(ptype, principal_id, request.remote_addr)

    principal = Principal.from_row(ptype, row)
    log_login_success(principal)
    return principal


def get_request_context() -> dict:
    """
    Extract security-relevant context from the current request.

    Returns:
        dict with ip, user_agent, and request_id for audit logging.
        User-agent is truncated to 200 chars to prevent log bloat from
        crafted UA strings. Empty outside a request (CLI commands).
    """
    if not has_request_context():
        return {}
    return {
        'ip': request.remote_addr or 'unknown',
        'user_agent': sanitize_log_value(
            request.headers.get('User-Agent', 'unknown'),
            max_length=200,
        ),
        'request_id': g.get('request_id', 'unknown'),
    }


def _principal_context(principal: Principal) -> dict:
    return {
        'principal_type': principal.kind.name,
        'username': sanitize_log_value(principal.username),
        'principal_id': principal.id,
    }


# --- Authentication Events ---

def log_login_success(principal: Principal) -> None:
    """Audit log: successful authentication."""
    audit_log(
        event='login_success',
        message=f'Successful {principal.kind.name} login for {sanitize_log_value(principal.username)}',
        **_principal_context(principal),
        **get_request_context(),
    )


def log_login_failed(ptype: PrincipalType, username: str, principal_id: Optional[int] = None,
                     reason: str = 'invalid_credentials', attempts: Optional[int] = None) -> None:
    """Audit log: failed authentication attempt."""
    audit_log(
        event='login_failed',
        message=f'Failed {ptype.name} login for {sanitize_log_value(username)}: {reason}',
        principal_type=ptype.name,
        username=sanitize_log_value(username),
        principal_id=principal_id,
        reason=reason,
        attempts=attempts,
        **get_request_context(),
    )


def log_account_locked(ptype: PrincipalType, username: str, principal_id: int,
                       attempts: int) -> None:
    """Audit log: account lockout triggered."""
    audit_log(
        event='account_locked',
        message=f'{ptype.name.capitalize()} account locked for {sanitize_log_value(username)}',
        level=logging.WARNING,
        principal_type=ptype.name,
        username=sanitize_log_value(username),
        principal_id=principal_id,
        attempts=attempts,
        **get_request_context(),
    )


def log_logout(principal: Principal) -> None:
    """Audit log: user logout."""
    audit_log(
        event='logout',
        message=f'Logout for {sanitize_log_value(principal.username)}',
        **_principal_context(principal),
        **get_request_context(),
    )


def log_csrf_failure(reason: Optional[str] = None) -> None:
    """Audit log: CSRF token validation failure."""
    audit_log(
        event='csrf_failure',
        message='CSRF token validation failed',
        level=logging.WARNING,
        reason=reason,
        **get_request_context(),
    )


# --- Account Events ---

def log_registration(customer_id: int, username: str) -> None:
    audit_log(
        event='registration',
        message=f'Customer registered: {sanitize_log_value(username)}',
        principal_type='customer',
        username=sanitize_log_value(username),
        principal_id=customer_id,
        **get_request_context(),
    )


def log_duplicate_registration(username: str, id_number: str) -> None:
    """Audit log: registration rejected as a duplicate. ID number is masked."""
    audit_log(
        event='duplicate_registration',
        message=f'Duplicate registration attempt for {sanitize_log_value(username)} '
                f'(id {mask_identifier(id_number)})',
        level=logging.WARNING,
        principal_type='customer',
        username=sanitize_log_value(username),
        **get_request_context(),
    )


def log_password_changed(principal: Principal) -> None:
    audit_log(
        event='password_changed',
        message=f'Password changed for {sanitize_log_value(principal.username)}',
        **_principal_context(principal),
        **get_request_context(),
    )


# --- Payment Events ---

def log_transaction_event(event: str, principal: Principal, transaction_id: int,
                          message: str) -> None:
    """Audit log: transaction_created, transaction_verified, transaction_submitted."""
    audit_log(
        event=event,
        message=message,
        transaction_id=transaction_id,
        **_principal_context(principal),
        **get_request_context(),
    )


def log_bulk_submitted(principal: Principal, count: int) -> None:
    audit_log(
        event='bulk_submitted',
        message=f'{count} transaction(s) submitted to SWIFT by {sanitize_log_value(principal.username)}',
        count=count,
        **_principal_context(principal),
        **get_request_context(),
    )
