"""
Customer authentication routes — register, login, logout, session, password.

Request flow (login POST):
1. Rate limiter (flask-limiter decorator) — outer perimeter
2. WTForms validation — input constraints
3. Lockout check — a locked account is refused before any hashing
4. Timing-safe credential verification — bcrypt runs even for unknown users
5. Success/failure handling with audit logging

Mutating routes that need an authenticated customer go through
@customer_required first and @csrf_protected second.
"""

import uuid

from flask import current_app, g, jsonify, request

from payportal.auth import auth_bp
from payportal.auth import models
from payportal.auth.csrf import csrf_protected, issue
from payportal.auth.forms import (
    ChangePasswordForm,
    CustomerLoginForm,
    RegistrationForm,
    validate_json,
)
from payportal.auth.passwords import hash_password, rotate_password
from payportal.auth.principals import CUSTOMER
from payportal.auth.security import (
    authenticate,
    log_duplicate_registration,
    log_logout,
    log_registration,
)
from payportal.auth.sessions import customer_required, customer_sessions
from payportal.errors import DuplicateRegistrationError, NotFoundError
from payportal.extensions import limiter


def json_field(name: str) -> str:
    """Read a top-level string field from the JSON body, '' if absent."""
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        return ''
    return str(body.get(name) or '').strip().lower()


# --- Request Hooks ---

@auth_bp.before_app_request
def set_request_id() -> None:
    """
    Generate a unique request ID for log correlation.

    Allows tracing a single request across all log entries.
    """
    g.request_id = str(uuid.uuid4())[:8]  # Short ID — enough for log correlation


# --- Routes ---

@auth_bp.route('/register', methods=['POST'])
@limiter.limit(
    lambda: current_app.config.get('REGISTER_RATE_LIMIT_IP', '5/minute'),
    error_message='Too many registration attempts. Please try again later.',
)
def register():
    """
    Customer self-registration.

    Duplicate username, ID number or account number is a 409. The
    message doesn't say which one matched.
    """
    form = validate_json(RegistrationForm)
    username = form.username.data
    id_number = form.id_number.data
    account_number = form.account_number.data

    if models.customer_exists(username, id_number, account_number):
        log_duplicate_registration(username, id_number)
        raise DuplicateRegistrationError()

    hashed = hash_password(form.password.data)
    try:
        customer_id = models.create_customer(
            full_name=form.full_name.data,
            id_number=id_number,
            account_number=account_number,
            username=username,
            password=hashed,
            registration_ip=request.remote_addr,
        )
    except DuplicateRegistrationError:
        # Lost a race with a concurrent registration for the same details.
        log_duplicate_registration(username, id_number)
        raise

    log_registration(customer_id, username)
    return jsonify({'message': 'Registration successful.', 'user_id': customer_id}), 201


@auth_bp.route('/login', methods=['POST'])
@limiter.limit(  # Layer 1: per-IP rate limit (stops single-source automation)
    lambda: current_app.config.get('LOGIN_RATE_LIMIT_IP', '10/minute'),
    error_message='Too many login attempts. Please wait a moment and try again.',
)
@limiter.limit(  # Layer 2: per-account rate limit (stops distributed attacks on one username)
    lambda: current_app.config.get('LOGIN_RATE_LIMIT_ACCOUNT', '5/minute'),
    key_func=lambda: 'customer:' + (json_field('username') or request.remote_addr or ''),
    error_message='Too many login attempts for this account. Please wait a moment.',
)
def login():
    """
    Customer login with username, account number and password.

    Errors never reveal which of the three was wrong; a remaining-attempts
    count is included once the principal is known.
    """
    form = validate_json(CustomerLoginForm)
    username = form.username.data
    row = models.get_customer_for_login(username, form.account_number.data)

    principal = authenticate(CUSTOMER, row, username, form.password.data)
    customer_sessions.login(principal)

    return jsonify({'message': 'Login successful.', 'user': principal.to_dict()})


@auth_bp.route('/logout', methods=['POST'])
def logout():
    """
    Logout endpoint — POST-only, idempotent.

    Server-side invalidation: when no employee login shares the session,
    flask-session deletes the stored record, not just the cookie.
    """
    principal = customer_sessions.logout()
    if principal is not None:
        log_logout(principal)
    return jsonify({'message': 'Logged out successfully.'})


@auth_bp.route('/session', methods=['GET'])
def session_status():
    principal = customer_sessions.resolve()
    payload = {
        'authenticated': principal is not None,
        'idle_timeout': current_app.config['INACTIVITY_TIMEOUT'],
    }
    if principal is not None:
        payload['user'] = principal.to_dict()
    return jsonify(payload)


@auth_bp.route('/csrf-token', methods=['GET'])
@customer_required
def csrf_token(principal):
    return jsonify({'csrf_token': issue()})


@auth_bp.route('/security-status', methods=['GET'])
@customer_required
def security_status(principal):
    status = models.get_security_status(principal.id)
    if status is None:
        raise NotFoundError('Customer not found.')
    return jsonify(status)


@auth_bp.route('/change-password', methods=['POST'])
@customer_required
@csrf_protected
def change_password(principal):
    form = validate_json(ChangePasswordForm)
    rotate_password(principal, form.current_password.data, form.new_password.data)
    return jsonify({'message': 'Password changed successfully.'})
