"""
Login attempt tracking and account lockout.

State lives on the principal row itself (login_attempts, locked_until),
so customers and employees are tracked independently:

    Unlocked(attempts 0..threshold-1) --failure #threshold--> Locked(until)
    Locked(until <= now) --next access--> Unlocked(0)

Counters only move through single UPDATE statements evaluated inside the
database, so two concurrent failures cannot both read "threshold - 1" and
skip the lock.
"""

import time
from dataclasses import dataclass
from typing import Optional

from flask import current_app

from payportal.auth.principals import PrincipalType
from payportal.db import get_db, immediate_transaction
from payportal.errors import LockedError


@dataclass(frozen=True)
class LockoutPolicy:
    threshold: int
    warning_at: int
    duration: int

    @classmethod
    def for_type(cls, ptype: PrincipalType) -> 'LockoutPolicy':
        config = current_app.config
        return cls(
            threshold=ptype.config(config, 'LOCKOUT_THRESHOLD'),
            warning_at=ptype.config(config, 'LOCKOUT_WARNING_AT'),
            duration=ptype.config(config, 'LOCKOUT_DURATION'),
        )


@dataclass(frozen=True)
class LockoutState:
    """Outcome of one recorded failure."""

    attempts: int
    locked: bool
    locked_until: Optional[float]
    remaining_attempts: int
    warning: bool

    def retry_after(self, now: Optional[float] = None) -> int:
        if self.locked_until is None:
            return 0
        now = time.time() if now is None else now
        return max(0, int(round(self.locked_until - now)))


def check_lock(ptype: PrincipalType, principal_id: int) -> None:
    """
    Refuse a locked principal before any password hashing happens.

    An expired lock is cleared here (attempts 0, locked_until NULL). The
    clearing UPDATE re-checks the expiry so it cannot wipe a lock that a
    concurrent failure has just set.

    Raises:
        LockedError: while locked_until is in the future.
    """
    db = get_db()
    now = time.time()
    row = db.execute(
        f'SELECT locked_until FROM {ptype.table} WHERE id = ?',
        (principal_id,),
    ).fetchone()
    if row is None or row['locked_until'] is None:
        return

    locked_until = row['locked_until']
    if locked_until > now:
        raise LockedError(retry_after=max(1, int(round(locked_until - now))))

    db.execute(
        f'''UPDATE {ptype.table}
            SET login_attempts = 0, locked_until = NULL
            WHERE id = ? AND locked_until IS NOT NULL AND locked_until <= ?''',
        (principal_id, now),
    )


def record_failure(ptype: PrincipalType, principal_id: int) -> LockoutState:
    """
    Count one failed verification and lock the principal at the threshold.

    The increment and the lock decision happen in one statement; the
    follow-up read runs under the same write lock.
    """
    policy = LockoutPolicy.for_type(ptype)
    now = time.time()

    with immediate_transaction() as db:
        # SET expressions see the pre-update row, hence "+ 1" in the CASE.
        db.execute(
            f'''UPDATE {ptype.table}
                SET login_attempts = login_attempts + 1,
                    last_failed_login = :now,
                    locked_until = CASE
                        WHEN login_attempts + 1 >= :threshold THEN :now + :duration
                        ELSE locked_until
                    END
                WHERE id = :id''',
            {
                'now': now,
                'threshold': policy.threshold,
                'duration': policy.duration,
                'id': principal_id,
            },
        )
        row = db.execute(
            f'SELECT login_attempts, locked_until FROM {ptype.table} WHERE id = ?',
            (principal_id,),
        ).fetchone()

    attempts = row['login_attempts']
    locked_until = row['locked_until']
    locked = locked_until is not None and locked_until > now
    remaining = 0 if locked else max(0, policy.threshold - attempts)
    return LockoutState(
        attempts=attempts,
        locked=locked,
        locked_until=locked_until if locked else None,
        remaining_attempts=remaining,
        warning=not locked and attempts >= policy.warning_at,
    )


def reset(ptype: PrincipalType, principal_id: int) -> None:
    """Clear attempts and any lock after a successful authentication."""
    db = get_db()
    db.execute(
        f'''UPDATE {ptype.table}
            SET login_attempts = 0, locked_until = NULL
            WHERE id = ?''',
        (principal_id,),
    )
