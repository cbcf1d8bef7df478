"""
Error taxonomy and JSON error handlers.

Every failure is scoped to a single request and converted at the boundary
into ``{"error": <kind>, "message": <text>, ...}`` with a stable kind.
Internal details are never included in responses.
"""

from typing import Any, Dict, Optional

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException


class PortalError(Exception):
    """Base class for errors surfaced to API clients."""

    kind = 'error'
    status_code = 400
    default_message = 'Request failed.'

    def __init__(self, message: Optional[str] = None, **extra: Any) -> None:
        self.message = message or self.default_message
        self.extra = {k: v for k, v in extra.items() if v is not None}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        payload = {'error': self.kind, 'message': self.message}
        payload.update(self.extra)
        return payload


class ValidationError(PortalError):
    """Malformed or out-of-range input. Carries per-field messages."""

    kind = 'validation_error'
    status_code = 400
    default_message = 'Validation failed.'

    def __init__(self, message=None, fields=None, **extra):
        super().__init__(message, fields=fields or None, **extra)


class AuthenticationError(PortalError):
    """Wrong credentials, unknown principal, or no session.

    The message is deliberately generic: it never says which part of the
    credentials was wrong.
    """

    kind = 'authentication_error'
    status_code = 401
    default_message = 'Invalid credentials.'


class LockedError(PortalError):
    """Principal temporarily barred after too many failed attempts."""

    kind = 'account_locked'
    status_code = 423

    def __init__(self, retry_after: int, message: Optional[str] = None) -> None:
        minutes = max(1, -(-retry_after // 60))  # Round up to whole minutes
        super().__init__(
            message or f'Account temporarily locked. Try again in {minutes} minute(s).',
            retry_after=retry_after,
        )
        self.retry_after = retry_after


class AuthorizationError(PortalError):
    """Authenticated, but the wrong role for this operation."""

    kind = 'authorization_error'
    status_code = 403
    default_message = 'Access denied.'


class CsrfError(PortalError):
    """Missing or invalid CSRF token. Re-fetch a token and retry."""

    kind = 'csrf_error'
    status_code = 403
    default_message = 'Invalid or missing CSRF token.'


class NotFoundError(PortalError):
    """Resource does not exist or is outside the caller's scope."""

    kind = 'not_found'
    status_code = 404
    default_message = 'Resource not found.'


class StateConflictError(PortalError):
    """Transaction state machine violation."""

    kind = 'state_conflict'
    status_code = 409

    def __init__(self, message, current_status=None, required_status=None):
        super().__init__(
            message,
            current_status=current_status,
            required_status=required_status,
        )
        self.current_status = current_status
        self.required_status = required_status


class NoEligibleTransactionsError(StateConflictError):
    kind = 'no_eligible_transactions'

    def __init__(self, message='No verified transactions found to submit.'):
        super().__init__(message, required_status='verified')


class DuplicateRegistrationError(PortalError):
    kind = 'duplicate_registration'
    status_code = 409
    default_message = 'A user with these details already exists.'


def init_error_handlers(app: Flask) -> None:
    """Register JSON error handlers on the Flask app."""

    @app.errorhandler(PortalError)
    def handle_portal_error(e):
        response = jsonify(e.to_dict())
        response.status_code = e.status_code
        if isinstance(e, LockedError):
            response.headers['Retry-After'] = str(e.retry_after)
        return response

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        """404, 405, 413, 429 and friends as JSON."""
        kinds = {
            404: 'not_found',
            405: 'method_not_allowed',
            413: 'request_too_large',
            429: 'rate_limited',
        }
        response = jsonify({
            'error': kinds.get(e.code, 'http_error'),
            'message': e.description,
        })
        response.status_code = e.code
        return response

    @app.errorhandler(500)
    def handle_server_error(e):
        """Internal server error. No stack traces or internal details."""
        return jsonify({'error': 'internal_error', 'message': 'Internal server error.'}), 500
