"""
Flask application factory.

Creates and configures the payments portal API with all security
extensions, middleware, and blueprints. Uses the factory pattern for
testability — each test can create an app with a different config class
and its own instance folder.

Extension initialization order:
1. bcrypt — needed for the dummy hash and for seeding the demo employee
2. csrf — token issuance; enforcement is explicit per view
3. session — server-side session management
4. limiter — enforcement conditional on RATELIMIT_ENABLED config
"""

import os

from flask import Flask
from werkzeug.middleware.proxy_fix import ProxyFix

from payportal.config import DevelopmentConfig


def create_app(config_class=None, instance_path=None):
    """
    Create and configure the Flask application.

    Args:
        config_class: Configuration class to use. Defaults to DevelopmentConfig.
                      Tests pass TestConfig, RateLimitTestConfig, etc.
        instance_path: Folder for the SQLite database and session files.
                       Tests pass a per-test temporary directory.

    Returns:
        Configured Flask application instance.
    """
    if config_class is None:
        config_class = DevelopmentConfig

    app = Flask(__name__, instance_path=instance_path)
    app.config.from_object(config_class)

    # Production refuses to start without a secret key or with CSRF off.
    if hasattr(config_class, 'init_app'):
        config_class.init_app(app)

    # Trust X-Forwarded-For from this many reverse proxies, so audit logs
    # and rate limits see the client address rather than the proxy's.
    proxy_count = app.config.get('PROXY_COUNT', 0)
    if proxy_count:
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=proxy_count, x_proto=proxy_count)

    # Ensure the instance folder exists (for SQLite database and sessions).
    os.makedirs(app.instance_path, exist_ok=True)

    session_dir = os.path.join(app.instance_path, 'flask_sessions')
    os.makedirs(session_dir, exist_ok=True)
    app.config['SESSION_FILE_DIR'] = session_dir

    # --- Initialize Extensions ---

    from payportal.extensions import bcrypt, csrf, limiter, sess

    bcrypt.init_app(app)
    csrf.init_app(app)
    sess.init_app(app)

    limiter.init_app(app)
    # Disabled in most tests (TestConfig) for speed; enabled in RateLimitTestConfig.
    # Decorators remain but skip enforcement.
    limiter.enabled = app.config.get('RATELIMIT_ENABLED', True)

    # --- Security Headers ---
    from payportal.headers import init_security_headers
    init_security_headers(app)

    # --- Logging ---
    from payportal.logging_config import setup_security_logging
    setup_security_logging(app)

    # --- JSON Error Handlers ---
    from payportal.errors import init_error_handlers
    init_error_handlers(app)

    # --- Initialize Dummy Hash for Timing-Safe Verification ---
    from payportal.auth.security import init_dummy_hash
    with app.app_context():  # bcrypt needs app context for BCRYPT_LOG_ROUNDS config
        init_dummy_hash(app)

    # --- Register Blueprints ---
    from payportal.auth import auth_bp, employee_auth_bp
    from payportal.payments import employee_payments_bp, payments_bp
    app.register_blueprint(auth_bp)
    app.register_blueprint(employee_auth_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(employee_payments_bp)

    # --- Operator Commands ---
    from payportal.cli import init_cli
    init_cli(app)

    # --- Database Initialization ---
    from payportal.db import close_db, init_db

    # Register teardown to close DB connections at the end of each request.
    app.teardown_appcontext(close_db)

    with app.app_context():
        init_db(app)

    return app
