"""
Credential store: salted bcrypt hashing, strength policy, password history.

Every credential gets its own 32-byte random salt on top of bcrypt's
internal salt, so a salt is never shared between users or between two
passwords of the same user. The salted input is SHA-256 pre-hashed by
flask-bcrypt (BCRYPT_HANDLE_LONG_PASSWORDS) to stay under bcrypt's
72-byte input limit.
"""

import re
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from flask import current_app

from payportal.extensions import bcrypt

ALGORITHM = 'bcrypt'
SALT_BYTES = 32

SPECIAL_CHARACTERS = '@$!%*?&'

COMMON_PASSWORDS = frozenset({
    'password', 'password1', 'password123', '123456', '123456789',
    'qwerty', 'abc123', 'admin', 'letmein', 'welcome', 'monkey',
    'dragon', 'master', 'shadow', 'login', 'superman', 'michael',
    'batman', 'trustno1', 'hello',
})

# Runs of three consecutive characters from any of these (either
# direction) are rejected at registration. Keyboard rows are separate
# sequences so "op" + "as" does not count as a run.
SEQUENCES = (
    'abcdefghijklmnopqrstuvwxyz',
    'qwertyuiop',
    'asdfghjkl',
    'zxcvbnm',
    '0123456789',
)

_PERSONAL_INFO_PATTERNS = (
    re.compile(r'birthday|name|address|phone|email', re.IGNORECASE),
    re.compile(r'\d{4}'),             # Years
    re.compile(r'\d{2,4}/\d{2,4}'),   # Dates
)


@dataclass(frozen=True)
class PasswordHash:
    """A stored credential. Persist all fields together as one unit."""

    hash: str
    salt: str
    algorithm: str
    cost: int
    created_at: str


@dataclass
class StrengthReport:
    score: int
    is_strong: bool
    failed_requirements: List[str] = field(default_factory=list)
    feedback: List[str] = field(default_factory=list)

    def to_dict(self):
        return {
            'score': self.score,
            'is_strong': self.is_strong,
            'failed_requirements': self.failed_requirements,
            'feedback': self.feedback,
        }


def _salted(password: str, salt: str) -> str:
    return password + salt


def hash_password(password: str) -> PasswordHash:
    """
    Hash a password with a fresh salt.

    Raises on hashing failure; there is nothing sensible to store then.
    """
    salt = secrets.token_hex(SALT_BYTES)
    hashed = bcrypt.generate_password_hash(_salted(password, salt)).decode('utf-8')
    return PasswordHash(
        hash=hashed,
        salt=salt,
        algorithm=ALGORITHM,
        cost=current_app.config['BCRYPT_LOG_ROUNDS'],
        created_at=datetime.now(timezone.utc).isoformat(),
    )


def verify_password(password: Optional[str], stored_hash: Optional[str],
                    stored_salt: Optional[str]) -> bool:
    """
    Check a password against a stored hash and salt.

    flask-bcrypt compares with hmac.compare_digest. A malformed stored
    hash counts as a mismatch.
    """
    if not password or not stored_hash or not stored_salt:
        return False
    try:
        return bcrypt.check_password_hash(stored_hash, _salted(password, stored_salt))
    except ValueError:
        return False


# --- Strength Policy ---

def is_common_password(password: str) -> bool:
    lowered = password.lower()
    return any(common in lowered or lowered in common for common in COMMON_PASSWORDS)


def has_sequential_chars(password: str, run: int = 3) -> bool:
    lowered = password.lower()
    for sequence in SEQUENCES:
        for i in range(len(sequence) - run + 1):
            chunk = sequence[i:i + run]
            if chunk in lowered or chunk[::-1] in lowered:
                return True
    return False


def contains_personal_info(password: str, personal_info: Iterable[str] = ()) -> bool:
    if any(pattern.search(password) for pattern in _PERSONAL_INFO_PATTERNS):
        return True
    lowered = password.lower()
    for value in personal_info:
        for part in re.split(r'[\s_\-]+', (value or '').lower()):
            if len(part) >= 3 and part in lowered:
                return True
    return False


def analyze_strength(password: str, personal_info: Iterable[str] = (),
                     registration: bool = False) -> StrengthReport:
    """
    Score a password against the policy.

    The six base checks always apply. The registration variant also
    rejects sequential runs and personal information. ``is_strong`` is
    all-or-nothing; the score is informational.
    """
    config = current_app.config
    min_length = config.get('PASSWORD_MIN_LENGTH', 8)
    max_length = config.get('PASSWORD_MAX_LENGTH', 128)

    checks = [
        ('length', min_length <= len(password) <= max_length,
         f'Password must be {min_length}-{max_length} characters long'),
        ('lowercase', bool(re.search(r'[a-z]', password)),
         'Add lowercase letters (a-z)'),
        ('uppercase', bool(re.search(r'[A-Z]', password)),
         'Add uppercase letters (A-Z)'),
        ('number', bool(re.search(r'\d', password)),
         'Add numbers (0-9)'),
        ('special', any(ch in SPECIAL_CHARACTERS for ch in password),
         f'Add special characters ({SPECIAL_CHARACTERS})'),
        ('not_common', not is_common_password(password),
         'Avoid common passwords'),
    ]
    if registration:
        checks += [
            ('no_sequential', not has_sequential_chars(password),
             'Avoid sequential characters (abc, 123, qwe)'),
            ('no_personal_info', not contains_personal_info(password, personal_info),
             'Avoid personal information'),
        ]

    failed = [(name, message) for name, passed, message in checks if not passed]
    score = round(100 * (len(checks) - len(failed)) / len(checks))

    return StrengthReport(
        score=score,
        is_strong=not failed,
        failed_requirements=[name for name, _ in failed],
        feedback=[message for _, message in failed],
    )


# --- Password History ---

def check_history(customer_id: int, candidate: str) -> bool:
    """Return True if the candidate matches any stored historical password."""
    from payportal.auth.models import get_password_history

    return any(
        verify_password(candidate, entry['password_hash'], entry['password_salt'])
        for entry in get_password_history(customer_id)
    )


def rotate_password(customer, current_password: str, new_password: str) -> PasswordHash:
    """
    Change a customer's password.

    Verifies the current password, enforces strength and history, stores
    the new credential, and appends it to the history (FIFO-capped).
    Raises AuthenticationError or ValidationError.
    """
    from payportal.auth import models
    from payportal.auth.security import log_password_changed
    from payportal.errors import AuthenticationError, ValidationError

    row = models.get_principal_by_id(customer.kind, customer.id)
    if row is None or not verify_password(current_password, row['password_hash'],
                                          row['password_salt']):
        raise AuthenticationError('Current password is incorrect.')

    report = analyze_strength(
        new_password,
        personal_info=(row['username'], row['full_name'], row['id_number']),
        registration=True,
    )
    if not report.is_strong:
        raise ValidationError(
            'Password does not meet security requirements.',
            fields={'new_password': report.feedback},
        )

    if check_history(customer.id, new_password):
        raise ValidationError(
            "Please choose a password you haven't used before.",
            fields={'new_password': ['Password previously used']},
        )

    hashed = hash_password(new_password)
    models.update_customer_password(
        customer.id, hashed, current_app.config['PASSWORD_HISTORY_LENGTH'],
    )
    log_password_changed(customer)
    return hashed
