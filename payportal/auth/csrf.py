"""
CSRF guard: session-bound tokens via flask-wtf.

The token secret lives in the server-side session, so a token is only
good for the session that fetched it and dies with it. Clients fetch a
token from a csrf-token endpoint and send it back in the X-CSRFToken
header on every mutating request.

The app-wide before_request check is disabled (WTF_CSRF_CHECK_DEFAULT);
views opt in with @csrf_protected below the session decorator, so the
caller is authenticated before the token is looked at.
"""

from functools import wraps

from flask import current_app
from flask_wtf.csrf import CSRFError, generate_csrf

from payportal.auth.security import log_csrf_failure
from payportal.errors import CsrfError
from payportal.extensions import csrf


def issue() -> str:
    """Return the current session's CSRF token, creating the secret if needed."""
    return generate_csrf()


def csrf_protected(f):
    """
    Reject POST/PUT/PATCH/DELETE requests without a valid token.

    Safe methods pass straight through. Enforcement follows
    WTF_CSRF_ENABLED, which only test configurations turn off.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if current_app.config.get('WTF_CSRF_ENABLED', True):
            try:
                csrf.protect()  # No-op for methods outside WTF_CSRF_METHODS
            except CSRFError as e:
                log_csrf_failure(reason=e.description)
                raise CsrfError() from e
        return f(*args, **kwargs)
    return decorated_function
