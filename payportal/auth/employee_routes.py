"""
Employee authentication routes: login, logout, session, CSRF token.

Shares authenticate() with the customer portal; only the principal type
(and therefore table, lockout thresholds and session namespace) differs.
"""

from flask import current_app, jsonify, request

from payportal.auth import employee_auth_bp
from payportal.auth import models
from payportal.auth.csrf import issue
from payportal.auth.forms import EmployeeLoginForm, validate_json
from payportal.auth.principals import EMPLOYEE
from payportal.auth.routes import json_field
from payportal.auth.security import authenticate, log_logout
from payportal.auth.sessions import employee_required, employee_sessions
from payportal.extensions import limiter


@employee_auth_bp.route('/login', methods=['POST'])
@limiter.limit(
    lambda: current_app.config.get('LOGIN_RATE_LIMIT_IP', '10/minute'),
    error_message='Too many login attempts. Please wait a moment and try again.',
)
@limiter.limit(
    lambda: current_app.config.get('LOGIN_RATE_LIMIT_ACCOUNT', '5/minute'),
    key_func=lambda: 'employee:' + (json_field('username') or request.remote_addr or ''),
    error_message='Too many login attempts for this account. Please wait a moment.',
)
def login():
    form = validate_json(EmployeeLoginForm)
    username = form.username.data
    row = models.get_principal_by_username(EMPLOYEE, username)

    principal = authenticate(EMPLOYEE, row, username, form.password.data)
    employee_sessions.login(principal)

    return jsonify({'message': 'Login successful.', 'employee': principal.to_dict()})


@employee_auth_bp.route('/logout', methods=['POST'])
def logout():
    principal = employee_sessions.logout()
    if principal is not None:
        log_logout(principal)
    return jsonify({'message': 'Logged out successfully.'})


@employee_auth_bp.route('/session', methods=['GET'])
def session_status():
    principal = employee_sessions.resolve()
    payload = {
        'authenticated': principal is not None,
        'idle_timeout': current_app.config['INACTIVITY_TIMEOUT'],
    }
    if principal is not None:
        payload['employee'] = principal.to_dict()
    return jsonify(payload)


@employee_auth_bp.route('/csrf-token', methods=['GET'])
@employee_required
def csrf_token(principal):
    return jsonify({'csrf_token': issue()})
