"""
Payments blueprints: customer transaction routes and the employee verification queue.
"""

from flask import Blueprint

payments_bp = Blueprint('payments', __name__, url_prefix='/api/transactions')

employee_payments_bp = Blueprint(
    'employee_payments',
    __name__,
    url_prefix='/api/employee/transactions',
)

# Import routes to register them with the blueprints.
# This import must be at the bottom to avoid circular imports.
from payportal.payments import employee_routes, routes  # noqa: E402, F401
