"""
Principal types and the request-scoped principal value.

Customers and employees share one authentication implementation. What
differs between them (table, session namespace, lockout settings, display
fields) is described by a PrincipalType.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Tuple


@dataclass(frozen=True)
class PrincipalType:
    """Static description of one kind of principal."""

    name: str
    table: str
    session_namespace: str
    config_prefix: str
    # Extra columns copied into the session record for display.
    display_columns: Tuple[str, ...] = ()

    def config(self, app_config, key: str):
        """Look up a per-type setting, e.g. CUSTOMER_LOCKOUT_THRESHOLD."""
        return app_config[f'{self.config_prefix}_{key}']


CUSTOMER = PrincipalType(
    name='customer',
    table='customers',
    session_namespace='customer',
    config_prefix='CUSTOMER',
    display_columns=('account_number',),
)

EMPLOYEE = PrincipalType(
    name='employee',
    table='employees',
    session_namespace='employee',
    config_prefix='EMPLOYEE',
    display_columns=('employee_id', 'department'),
)

PRINCIPAL_TYPES = (CUSTOMER, EMPLOYEE)


@dataclass(frozen=True)
class Principal:
    """
    An authenticated actor, resolved from the session for one request.

    Passed explicitly into every core operation; nothing reads the
    current user from ambient state.
    """

    kind: PrincipalType
    id: int
    username: str
    role: str
    full_name: str
    display: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_customer(self) -> bool:
        return self.kind is CUSTOMER

    @property
    def is_employee(self) -> bool:
        return self.kind is EMPLOYEE

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'username': self.username,
            'full_name': self.full_name,
            'role': self.role,
        }
        data.update(self.display)
        return data

    @classmethod
    def from_row(cls, kind: PrincipalType, row) -> 'Principal':
        return cls(
            kind=kind,
            id=row['id'],
            username=row['username'],
            role=row['role'],
            full_name=row['full_name'],
            display={column: row[column] for column in kind.display_columns},
        )
