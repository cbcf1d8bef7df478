"""
Security response headers middleware.

Applied via @app.after_request to EVERY response. The portal only serves
JSON, so the Content-Security-Policy denies everything: a response that
somehow ends up rendered in a browser can't load or run anything.

Why manual instead of flask-talisman?
- flask-talisman is unmaintained
- Full control over every header and its value
"""

from flask import Flask


def init_security_headers(app: Flask) -> None:
    """Register the security header hook on the Flask app."""

    @app.after_request
    def set_security_headers(response):
        """
        Apply security headers to every response.

        Headers are ordered by the threat they mitigate for readability.
        """
        # --- Content Injection ---

        # JSON API: nothing to load, nothing to frame.
        response.headers['Content-Security-Policy'] = (
            "default-src 'none'; frame-ancestors 'none'; base-uri 'none'; form-action 'none'"
        )

        # X-Content-Type-Options: stops browsers sniffing JSON as HTML/script.
        response.headers['X-Content-Type-Options'] = 'nosniff'

        # --- Clickjacking Protection ---

        # Legacy equivalent of frame-ancestors for older browsers.
        response.headers['X-Frame-Options'] = 'DENY'

        # --- Transport Security ---

        # max-age=31536000 = 1 year. Not in debug mode to avoid pinning
        # HSTS on localhost during development.
        if not app.debug:
            response.headers['Strict-Transport-Security'] = (
                'max-age=31536000; includeSubDomains'
            )

        # --- Privacy & Information Leakage ---

        response.headers['Referrer-Policy'] = 'no-referrer'
        response.headers['Cross-Origin-Opener-Policy'] = 'same-origin'
        response.headers['Cross-Origin-Resource-Policy'] = 'same-origin'
        response.headers['X-Permitted-Cross-Domain-Policies'] = 'none'

        # --- Caching ---

        # Account and payment data must never land in a shared cache.
        response.headers['Cache-Control'] = 'no-store, no-cache, must-revalidate, max-age=0'
        response.headers['Pragma'] = 'no-cache'

        # --- Version Disclosure ---

        response.headers.pop('Server', None)
        response.headers.pop('X-Powered-By', None)

        return response
