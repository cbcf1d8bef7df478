"""
Authentication blueprints — customer and employee login, logout and session routes.
"""

from flask import Blueprint

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')

employee_auth_bp = Blueprint('employee_auth', __name__, url_prefix='/api/employee')

# Import routes to register them with the blueprints.
# This import must be at the bottom to avoid circular imports.
from payportal.auth import employee_routes, routes  # noqa: E402, F401
