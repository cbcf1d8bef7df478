"""
Session management: one namespaced record per principal type.

A browser may hold a customer and an employee login at the same time;
each lives under its own key in the server-side session and never sees
the other's state. Records carry their own issue time so the 24-hour
absolute lifetime holds even though the store TTL slides on every write.
"""

import time
from functools import wraps
from typing import Optional

from flask import current_app, session

from payportal.auth.principals import CUSTOMER, EMPLOYEE, PRINCIPAL_TYPES, Principal, PrincipalType
from payportal.errors import AuthenticationError, AuthorizationError


class SessionManager:
    """Issues, resolves and ends sessions for one principal type."""

    def __init__(self, ptype: PrincipalType):
        self.ptype = ptype

    @property
    def namespace(self) -> str:
        return self.ptype.session_namespace

    def login(self, principal: Principal) -> dict:
        """
        Start an authenticated session for ``principal``.

        The session is cleared and moved to a new session ID, and the old
        server-side record is deleted (session fixation prevention, per
        OWASP ASVS V3.2.1). Clearing also drops the CSRF secret, so a fresh
        token must be fetched after login. Records of the other principal
        types survive and move to the new ID.
        """
        if principal.kind is not self.ptype:
            raise ValueError(f'{self.ptype.name} sessions cannot hold a {principal.kind.name}')

        others = {
            ptype.session_namespace: session[ptype.session_namespace]
            for ptype in PRINCIPAL_TYPES
            if ptype is not self.ptype and ptype.session_namespace in session
        }
        session.clear()
        session.update(others)

        record = {
            'id': principal.id,
            'username': principal.username,
            'role': principal.role,
            'full_name': principal.full_name,
            'display': dict(principal.display),
            'issued_at': time.time(),
        }
        session[self.namespace] = record
        session.permanent = True  # Activates PERMANENT_SESSION_LIFETIME
        # New opaque ID; flask-session only regenerates a non-empty session.
        current_app.session_interface.regenerate(session)
        return record

    def resolve(self) -> Optional[Principal]:
        """Return the session's principal, or None if absent, malformed or expired."""
        record = session.get(self.namespace)
        if not isinstance(record, dict):
            return None

        try:
            issued_at = float(record['issued_at'])
            principal = Principal(
                kind=self.ptype,
                id=int(record['id']),
                username=record['username'],
                role=record['role'],
                full_name=record['full_name'],
                display=dict(record.get('display') or {}),
            )
        except (KeyError, TypeError, ValueError):
            return None

        ttl = current_app.config['SESSION_ABSOLUTE_TTL']
        if time.time() - issued_at > ttl:
            return None
        return principal

    def logout(self) -> Optional[Principal]:
        """
        End this principal type's session. Safe to call repeatedly.

        When no other namespace remains the whole session is cleared, and
        flask-session deletes the server-side record.
        """
        principal = self.resolve()
        session.pop(self.namespace, None)
        if not any(ptype.session_namespace in session for ptype in PRINCIPAL_TYPES):
            session.clear()
        return principal

    def required(self, f):
        """
        Decorator that resolves the principal and passes it as ``principal``.

        No session at all is a 401; a session of another principal type
        only is a 403.
        """
        @wraps(f)
        def decorated_function(*args, **kwargs):
            principal = self.resolve()
            if principal is None:
                if any(sessions.resolve() is not None
                       for sessions in _MANAGERS if sessions is not self):
                    raise AuthorizationError()
                raise AuthenticationError('Authentication required.')
            kwargs['principal'] = principal
            return f(*args, **kwargs)
        return decorated_function


customer_sessions = SessionManager(CUSTOMER)
employee_sessions = SessionManager(EMPLOYEE)

_MANAGERS = (customer_sessions, employee_sessions)

customer_required = customer_sessions.required
employee_required = employee_sessions.required
