"""
Serialization and cancellation primitives.

Operations against different engines run independently, but a load, a
benchmark and a backup targeting the same (engine, table) pair must not
overlap. Each such operation holds that pair's exclusive lock for its whole
duration. Long-running loops poll a CancellationToken between batches or
cases; nothing is interrupted mid-batch.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Generator, Optional, Tuple

from storebench.utils.logging import get_logger

log = get_logger(__name__)


class CancellationToken:
    """Cooperative cancellation flag shared between a caller and a worker."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class TableLockRegistry:
    """Lazily created exclusive lock per (engine, table)."""

    def __init__(self) -> None:
        self._locks: Dict[Tuple[str, str], threading.Lock] = {}
        self._guard = threading.Lock()

    def lock_for(self, engine: str, table: str) -> threading.Lock:
        key = (engine, table)
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    @contextmanager
    def hold(
        self, engine: str, table: str, timeout: Optional[float] = None
    ) -> Generator[None, None, None]:
        """
        Hold the (engine, table) lock for the duration of the block.

        Raises
        ------
        TimeoutError
            If `timeout` seconds pass before the lock is free.
        """
        lock = self.lock_for(engine, table)
        if not lock.acquire(blocking=False):
            log.info("Waiting for table lock", extra={"engine": engine, "table": table})
            if not lock.acquire(timeout=-1 if timeout is None else timeout):
                raise TimeoutError(f"Timed out waiting for lock on {engine}:{table}")
        try:
            yield
        finally:
            lock.release()


_REGISTRY = TableLockRegistry()


def table_lock(engine: str, table: str, timeout: Optional[float] = None):
    """Process-wide exclusive lock for one engine table."""
    return _REGISTRY.hold(engine, table, timeout=timeout)


__all__ = ["CancellationToken", "TableLockRegistry", "table_lock"]
