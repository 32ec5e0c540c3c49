"""Per-facility mutual exclusion for the check-then-insert reservation path."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator


class FacilityLockRegistry:
    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def lock_for(self, facility_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(facility_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[facility_id] = lock
            return lock

    @contextmanager
    def hold(self, facility_id: str) -> Iterator[None]:
        lock = self.lock_for(facility_id)
        with lock:
            yield


facility_locks = FacilityLockRegistry()
