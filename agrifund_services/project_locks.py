"""
agrifund_services.project_locks -- In-process single writer per project.

Responsibility:
    Hands out one lock per project id so that, within a process, every
    mutating engine call on a project runs its whole transaction alone.
    Row locks (SELECT ... FOR UPDATE) in the kernel services cover
    multi-process PostgreSQL deployments; this registry covers SQLite,
    whose driver ignores FOR UPDATE.

Invariants:
    - While any caller holds or waits on a project's lock, that project id
      maps to that same lock object.
    - Locks for different projects never block each other.
    - The registry keeps no lock nobody references, so a long-running
      engine does not accumulate one lock per project ever touched.
"""

from __future__ import annotations

import threading
import weakref
from collections.abc import Iterator
from contextlib import contextmanager
from uuid import UUID


class ProjectLockRegistry:
    """Lazily created per-project locks, dropped once unreferenced."""

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[UUID, threading.Lock] = (
            weakref.WeakValueDictionary()
        )
        self._guard = threading.Lock()

    def lock_for(self, project_id: UUID) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(project_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[project_id] = lock
            return lock

    @contextmanager
    def hold(self, project_id: UUID) -> Iterator[None]:
        """Hold the project's lock for the duration of the block."""
        lock = self.lock_for(project_id)
        with lock:
            yield

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
