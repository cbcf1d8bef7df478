"""
Application configuration — all security thresholds in one place.

Every threshold includes a comment explaining the value chosen.
Customer and employee policies differ only through the CUSTOMER_* and
EMPLOYEE_* prefixes; the code paths are shared.
"""

import os
import secrets


class BaseConfig:
    """Shared configuration for all environments."""

    # --- Flask Core ---
    # 256-bit random secret for session signing and CSRF tokens.
    SECRET_KEY = os.environ.get('SECRET_KEY') or secrets.token_hex(32)

    # Reject request bodies larger than 16KB.
    # A bulk-submit of a few hundred ids is well under this.
    MAX_CONTENT_LENGTH = 16 * 1024  # 16KB

    # --- Session Configuration (flask-session) ---
    # Server-side filesystem sessions — cookie contains only an opaque ID.
    SESSION_TYPE = 'filesystem'
    SESSION_PERMANENT = True
    # Store TTL. The absolute 24h limit is enforced per namespace record
    # (SESSION_ABSOLUTE_TTL) because the store TTL slides on every write.
    PERMANENT_SESSION_LIFETIME = 24 * 60 * 60  # seconds
    SESSION_ABSOLUTE_TTL = 24 * 60 * 60  # seconds since login
    SESSION_USE_SIGNER = True
    SESSION_KEY_PREFIX = 'session:'

    # --- Session Cookie Flags ---
    SESSION_COOKIE_HTTPONLY = True    # Not readable by client script
    SESSION_COOKIE_SAMESITE = 'Lax'
    SESSION_COOKIE_NAME = 'session'

    # --- Client Inactivity ---
    # Advertised to portals; the client-side monitor logs out after this
    # many idle seconds, well before SESSION_ABSOLUTE_TTL.
    INACTIVITY_TIMEOUT = 30 * 60

    # --- CSRF (flask-wtf) ---
    WTF_CSRF_ENABLED = True
    # The app-wide before_request check is off; protected views call the
    # guard explicitly after the session has been resolved.
    WTF_CSRF_CHECK_DEFAULT = False
    # Tokens live as long as the session that issued them.
    WTF_CSRF_TIME_LIMIT = None
    WTF_CSRF_HEADERS = ['X-CSRFToken', 'X-CSRF-Token']
    # No Referer same-origin check over HTTPS. Tokens are session-bound and
    # header-only, and Referrer-Policy: no-referrer means browsers send none.
    WTF_CSRF_SSL_STRICT = False

    # --- bcrypt ---
    # 12 rounds ≈ 250ms per hash. Slow enough to make offline attacks
    # expensive, fast enough for interactive logins.
    BCRYPT_LOG_ROUNDS = 12
    # Salted input (password + 64 hex chars) exceeds bcrypt's 72-byte limit,
    # so flask-bcrypt pre-hashes it with SHA-256.
    BCRYPT_HANDLE_LONG_PASSWORDS = True

    # --- Password Policy ---
    PASSWORD_HISTORY_LENGTH = 5
    PASSWORD_MIN_LENGTH = 8
    PASSWORD_MAX_LENGTH = 128

    # --- Rate Limiting (flask-limiter) ---
    RATELIMIT_ENABLED = True
    # In-memory storage for single-instance deployment.
    # Production: use Redis ("redis://localhost:6379")
    RATELIMIT_STORAGE_URI = 'memory://'
    RATELIMIT_HEADERS_ENABLED = True
    RATELIMIT_DEFAULT = '200/hour'

    # Per-IP: stops fast automated attacks from a single source.
    LOGIN_RATE_LIMIT_IP = '10/minute'
    # Per-account: stops distributed attacks targeting one username.
    LOGIN_RATE_LIMIT_ACCOUNT = '5/minute'
    REGISTER_RATE_LIMIT_IP = '5/minute'

    # --- Account Lockout ---
    # Customers lock on the 5th consecutive failure, employees on the 6th.
    # Both stay locked for 30 minutes.
    CUSTOMER_LOCKOUT_THRESHOLD = 5
    CUSTOMER_LOCKOUT_WARNING_AT = 3
    CUSTOMER_LOCKOUT_DURATION = 30 * 60
    EMPLOYEE_LOCKOUT_THRESHOLD = 6
    # Employees get a "last attempt" warning on the 5th failure.
    EMPLOYEE_LOCKOUT_WARNING_AT = 5
    EMPLOYEE_LOCKOUT_DURATION = 30 * 60

    # --- Database ---
    DATABASE_NAME = 'portal.db'
    # Seconds a writer waits for the SQLite write lock.
    DATABASE_TIMEOUT = 10

    # Seed EMP001/employee1 on an empty employees table.
    SEED_DEMO_EMPLOYEE = True
    DEMO_EMPLOYEE_PASSWORD = 'Employee123!'


class ProductionConfig(BaseConfig):
    """Production environment — all security controls enforced."""

    DEBUG = False
    TESTING = False

    # Never fall back to a random key (it would invalidate sessions on restart).
    SECRET_KEY = os.environ.get('SECRET_KEY')

    SESSION_COOKIE_SECURE = True       # Cookie only sent over HTTPS
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'

    SEED_DEMO_EMPLOYEE = False

    PROXY_COUNT = int(os.environ.get('PROXY_COUNT', '1'))

    @classmethod
    def init_app(cls, app):
        """Validate required configuration at startup."""
        if not cls.SECRET_KEY:
            raise RuntimeError(
                'SECRET_KEY environment variable is required in production. '
                'Generate one with: python -c "import secrets; print(secrets.token_hex(32))"'
            )
        if not app.config.get('WTF_CSRF_ENABLED'):
            raise RuntimeError('CSRF protection cannot be disabled in production.')


class DevelopmentConfig(BaseConfig):
    """Development environment — relaxed cookie settings for HTTP."""

    DEBUG = True
    SESSION_COOKIE_SECURE = False


class TestConfig(BaseConfig):
    """Test environment — fast bcrypt, CSRF/rate-limiting off by default."""

    TESTING = True
    SESSION_COOKIE_SECURE = False
    # 4 rounds for fast test execution (~4ms vs ~250ms per hash).
    BCRYPT_LOG_ROUNDS = 4
    # Specific test files enable these via dedicated config classes.
    RATELIMIT_ENABLED = False
    WTF_CSRF_ENABLED = False
    DATABASE_NAME = 'test.db'


class RateLimitTestConfig(TestConfig):
    """Test config with rate limiting enabled."""

    RATELIMIT_ENABLED = True


class CSRFTestConfig(TestConfig):
    """Test config with CSRF protection enabled."""

    WTF_CSRF_ENABLED = True
