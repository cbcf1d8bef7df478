"""
Inactivity monitor: idle warnings and forced logout for a portal client.

    ACTIVE -> WARNING_25 -> WARNING_28 -> FINAL_WARNING_29 -> LOGGED_OUT
              (25 min)      (28 min)      (29 min)            (30 min)

Any recorded activity cancels the pending timers, returns to ACTIVE and
re-arms all of them from zero. Each threshold fires at most once per idle
period: a latch per threshold drops duplicates, and a generation counter
drops timers armed before the last reset. At 30 minutes logout() is called
whatever the caller's notify() does.

Timers come from an injectable factory with the threading.Timer signature,
so the monitor runs under any event loop (or none) and tests can drive it
by hand.

Usage:
    monitor = InactivityMonitor(logout=client.logout, notify=show_banner)
    monitor.start()
    ...
    monitor.record_activity()   # on every user interaction
"""

import enum
import threading
from typing import Callable, Optional, Sequence, Tuple


class MonitorState(enum.Enum):
    ACTIVE = 'active'
    WARNING_25 = 'warning_25'
    WARNING_28 = 'warning_28'
    FINAL_WARNING_29 = 'final_warning_29'
    LOGGED_OUT = 'logged_out'


# (idle seconds, state entered). The last entry is the logout.
DEFAULT_THRESHOLDS: Tuple[Tuple[int, MonitorState], ...] = (
    (25 * 60, MonitorState.WARNING_25),
    (28 * 60, MonitorState.WARNING_28),
    (29 * 60, MonitorState.FINAL_WARNING_29),
    (30 * 60, MonitorState.LOGGED_OUT),
)


class InactivityMonitor:
    """
    Cancellable, resettable set of idle timers.

    Args:
        logout: called once when the final threshold is reached.
        notify: called as notify(state, seconds_until_logout) for each
            warning threshold.
        thresholds: ascending (seconds, state) pairs ending in LOGGED_OUT.
        timer_factory: callable(interval, function, args=...) returning an
            object with start() and cancel().
    """

    def __init__(self, logout: Callable[[], None],
                 notify: Optional[Callable[[MonitorState, int], None]] = None,
                 thresholds: Sequence[Tuple[int, MonitorState]] = DEFAULT_THRESHOLDS,
                 timer_factory=threading.Timer):
        if not thresholds or thresholds[-1][1] is not MonitorState.LOGGED_OUT:
            raise ValueError('thresholds must end with LOGGED_OUT')
        seconds = [s for s, _ in thresholds]
        if seconds != sorted(seconds):
            raise ValueError('thresholds must be in ascending order')

        self._logout = logout
        self._notify = notify
        self._thresholds = tuple(thresholds)
        self._timer_factory = timer_factory
        self._timeout = self._thresholds[-1][0]

        self._lock = threading.Lock()
        self._timers = []
        self._fired = set()
        self._generation = 0
        self._running = False
        self.state = MonitorState.ACTIVE

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Arm the timers. A monitor that already logged out stays logged out."""
        with self._lock:
            if self._running or self.state is MonitorState.LOGGED_OUT:
                return
            self._running = True
            self._reset_locked()

    def record_activity(self) -> None:
        """User did something: back to ACTIVE, all timers restart from zero."""
        with self._lock:
            if not self._running:
                return
            self._reset_locked()

    def stop(self) -> None:
        """Cancel all timers without logging out (e.g. after a manual logout)."""
        with self._lock:
            self._running = False
            self._cancel_locked()

    def _reset_locked(self) -> None:
        self._cancel_locked()
        self._fired.clear()
        self.state = MonitorState.ACTIVE
        self._generation += 1
        for index, (seconds, state) in enumerate(self._thresholds):
            timer = self._timer_factory(seconds, self._fire, args=(self._generation, index))
            timer.daemon = True
            self._timers.append(timer)
            timer.start()

    def _cancel_locked(self) -> None:
        for timer in self._timers:
            timer.cancel()
        self._timers = []

    def _fire(self, generation: int, index: int) -> None:
        seconds, state = self._thresholds[index]
        with self._lock:
            if not self._running or generation != self._generation or index in self._fired:
                return
            # A late timer never moves the state backwards.
            if self._fired and index < max(self._fired):
                return
            self._fired.add(index)
            self.state = state
            logging_out = state is MonitorState.LOGGED_OUT
            if logging_out:
                self._running = False
                self._cancel_locked()

        # Callbacks run outside the lock so they may call stop()/record_activity().
        if logging_out:
            self._logout()
        elif self._notify is not None:
            self._notify(state, self._timeout - seconds)
