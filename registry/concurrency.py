"""
Diploma Registry - Concurrency Utilities

Per-key mutual exclusion for mutating registry operations. Issuer operations lock the
issuer key and credential operations lock the credential key, so the write-once and
one-way revocation checks cannot interleave with a competing call on the same key.
"""

import threading
import time
from collections import deque
from contextlib import contextmanager
from datetime import datetime, timezone
from threading import Condition, Lock
from typing import Any, Dict, Optional

from .exceptions import LockTimeoutError


class LockMetrics:
    """Lock performance metrics."""

    def __init__(self):
        self.acquisition_count = 0
        self.contention_count = 0
        self.total_wait_time = 0.0
        self.max_wait_time = 0.0
        self.active_locks = 0
        self.last_acquisition = None
        self.lock_history = deque(maxlen=100)  # Last 100 lock events

    def record_acquisition(self, key: str, wait_time: float, contended: bool) -> None:
        """Record lock acquisition metrics."""
        self.acquisition_count += 1
        self.total_wait_time += wait_time
        self.max_wait_time = max(self.max_wait_time, wait_time)
        self.active_locks += 1
        self.last_acquisition = datetime.now(timezone.utc)

        if contended:
            self.contention_count += 1

        self.lock_history.append({
            'timestamp': self.last_acquisition,
            'key': key,
            'wait_time': wait_time,
            'contended': contended,
            'thread_id': threading.get_ident()
        })

    def record_release(self) -> None:
        """Record lock release."""
        self.active_locks = max(0, self.active_locks - 1)

    def get_contention_ratio(self) -> float:
        """Get lock contention ratio."""
        if self.acquisition_count == 0:
            return 0.0
        return self.contention_count / self.acquisition_count

    def get_average_wait_time(self) -> float:
        """Get average wait time."""
        if self.acquisition_count == 0:
            return 0.0
        return self.total_wait_time / self.acquisition_count


class KeyedLock:
    """
    A family of mutexes indexed by key.

    Each key's lock exists only while held or awaited, so the table does not grow
    with the number of keys ever seen. Locks are not reentrant.
    """

    def __init__(self, name: str = "unnamed", timeout: Optional[float] = 30.0):
        self.name = name
        self.timeout = timeout
        self._lock = Lock()
        self._released = Condition(self._lock)
        self._holders: Dict[str, int] = {}
        self._waiters: Dict[str, int] = {}
        self._metrics = LockMetrics()

    def acquire(self, key: str, timeout: Optional[float] = None) -> bool:
        """Acquire the lock for key. Returns False on timeout."""
        timeout = self.timeout if timeout is None else timeout
        deadline = None if timeout is None else time.monotonic() + timeout
        start_time = time.time()
        contended = False

        with self._lock:
            self._waiters[key] = self._waiters.get(key, 0) + 1
            try:
                while key in self._holders:
                    contended = True
                    remaining = None if deadline is None else deadline - time.monotonic()
                    if remaining is not None and remaining <= 0:
                        return False
                    self._released.wait(timeout=remaining)

                self._holders[key] = threading.get_ident()
                self._metrics.record_acquisition(key, time.time() - start_time, contended)
                return True
            finally:
                self._waiters[key] -= 1
                if not self._waiters[key]:
                    del self._waiters[key]

    def release(self, key: str) -> None:
        """Release the lock for key."""
        with self._lock:
            if key not in self._holders:
                raise RuntimeError(f"Lock {self.name}:{key} is not held")

            del self._holders[key]
            self._metrics.record_release()
            self._released.notify_all()

    def is_locked(self, key: str) -> bool:
        with self._lock:
            return key in self._holders

    @contextmanager
    def hold(self, key: str, timeout: Optional[float] = None):
        """Hold the lock for key for the duration of the block."""
        if not self.acquire(key, timeout):
            raise LockTimeoutError(f"Timed out waiting for {self.name} lock on {key}")
        try:
            yield
        finally:
            self.release(key)

    def get_metrics(self) -> Dict[str, Any]:
        """Get lock performance metrics."""
        with self._lock:
            return {
                'name': self.name,
                'held_keys': len(self._holders),
                'waiting_keys': len(self._waiters),
                'acquisition_count': self._metrics.acquisition_count,
                'contention_count': self._metrics.contention_count,
                'contention_ratio': self._metrics.get_contention_ratio(),
                'average_wait_time': self._metrics.get_average_wait_time(),
                'max_wait_time': self._metrics.max_wait_time,
                'active_locks': self._metrics.active_locks,
                'last_acquisition': self._metrics.last_acquisition
            }
