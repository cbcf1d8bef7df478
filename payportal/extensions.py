"""
Flask extension instances — created here, initialized in the app factory.

Kept apart from __init__.py so blueprints and core modules can import
them without circular imports.
"""

from flask_bcrypt import Bcrypt
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_session import Session
from flask_wtf.csrf import CSRFProtect

# Password hashing — bcrypt with configurable rounds (see config.py).
bcrypt = Bcrypt()

# CSRF token issuance and validation. The automatic before_request check is
# disabled in config; payportal.auth.csrf calls protect() explicitly.
csrf = CSRFProtect()

# Server-side session management — the cookie carries only an opaque ID.
sess = Session()

# Rate limiting — per-IP by default, per-account on the login endpoints.
limiter = Limiter(
    key_func=get_remote_address,
    storage_uri='memory://',
)
