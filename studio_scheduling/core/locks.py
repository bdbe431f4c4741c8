"""Advisory locking around check-then-commit sequences.

A commit that re-checks conflicts and then inserts assignments must not
interleave with another commit touching the same resource. The guard takes
one process-local lock per ``(kind, id)`` key, always in sorted order, and on
PostgreSQL additionally a transaction-scoped advisory lock per key so that
separate worker processes serialise on the same keys.
"""

from __future__ import annotations

import hashlib
import logging
import threading
import time
from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, List, Optional

from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from studio_scheduling.core.config import settings
from studio_scheduling.core.exceptions import ConcurrencyError
from studio_scheduling.core.resources import ResourceKey

logger = logging.getLogger(__name__)


def advisory_key(key: ResourceKey) -> int:
    """Stable signed 64-bit key for ``pg_advisory_xact_lock``."""

    digest = hashlib.blake2b(key.lock_name.encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big", signed=True)


class ResourceLockManager:
    def __init__(self, *, timeout: Optional[float] = None) -> None:
        self._timeout = settings.RESOURCE_LOCK_TIMEOUT_SECONDS if timeout is None else timeout
        self._locks: Dict[ResourceKey, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, key: ResourceKey) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    @staticmethod
    def _acquire_advisory(db: Session, keys: List[ResourceKey], deadline: float) -> None:
        remaining_ms = max(int((deadline - time.monotonic()) * 1000), 1)
        try:
            db.execute(text(f"SET LOCAL lock_timeout = '{remaining_ms}ms'"))
            for key in keys:
                db.execute(
                    text("SELECT pg_advisory_xact_lock(:key)"),
                    {"key": advisory_key(key)},
                )
        except OperationalError as exc:
            db.rollback()
            raise ConcurrencyError(
                "Timed out waiting for a resource lock held by another worker"
            ) from exc

    @contextmanager
    def guard(
        self,
        keys: Iterable[ResourceKey],
        *,
        db: Optional[Session] = None,
    ) -> Iterator[List[ResourceKey]]:
        """Hold every key for the duration of the block.

        Raises :class:`ConcurrencyError` when a key cannot be taken before the
        configured timeout.
        """

        ordered = sorted(set(keys))
        acquired: List[threading.Lock] = []
        deadline = time.monotonic() + self._timeout
        try:
            for key in ordered:
                remaining = max(deadline - time.monotonic(), 0)
                lock = self._lock_for(key)
                if not lock.acquire(timeout=remaining):
                    logger.warning("Timed out waiting for resource lock %s", key.lock_name)
                    raise ConcurrencyError(
                        f"Resource {key.lock_name} is being modified by another request"
                    )
                acquired.append(lock)

            if db is not None and db.get_bind().dialect.name == "postgresql":
                self._acquire_advisory(db, ordered, deadline)

            yield ordered
        finally:
            for lock in reversed(acquired):
                lock.release()


resource_locks = ResourceLockManager()

__all__ = ["ResourceLockManager", "advisory_key", "resource_locks"]
