"""
Per-date locks that serialize daily list generation.

Supports an in-process fallback for tests/single-instance runs and a
Redis-backed implementation that also serializes across instances.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import ContextManager, Dict, Iterator, Protocol

import redis
from redis import exceptions as redis_exceptions

logger = logging.getLogger(__name__)


class LockUnavailableError(Exception):
    """The lock for a key could not be acquired in time."""


class DateLock(Protocol):
    """Mutual exclusion keyed by a date string."""

    def hold(self, key: str) -> ContextManager[None]:
        ...


@dataclass
class _KeyLock:
    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


@dataclass
class InMemoryDateLock:
    """
    One `threading.Lock` per key. Only serializes within this process.
    A key's lock is dropped once nobody holds or waits for it.
    """

    wait_seconds: float = 30.0
    _locks: Dict[str, _KeyLock] = field(default_factory=dict)
    _guard: threading.Lock = field(default_factory=threading.Lock)

    def _checkout(self, key: str) -> _KeyLock:
        with self._guard:
            entry = self._locks.setdefault(key, _KeyLock())
            entry.users += 1
            return entry

    def _checkin(self, key: str, entry: _KeyLock) -> None:
        with self._guard:
            entry.users -= 1
            if entry.users == 0:
                self._locks.pop(key, None)

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        entry = self._checkout(key)
        try:
            if not entry.lock.acquire(timeout=self.wait_seconds):
                raise LockUnavailableError(f"Timed out waiting for lock on {key}")
            try:
                yield
            finally:
                entry.lock.release()
        finally:
            self._checkin(key, entry)


@dataclass
class RedisDateLock:
    """Redis lock per key, released automatically after `timeout_seconds`."""

    url: str
    key_prefix: str = "sparrow:generate-lists"
    timeout_seconds: float = 120.0
    wait_seconds: float = 30.0

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        lock = self.client.lock(
            f"{self.key_prefix}:{key}",
            timeout=self.timeout_seconds,
            blocking_timeout=self.wait_seconds,
        )
        try:
            acquired = lock.acquire()
        except redis_exceptions.RedisError as e:
            raise LockUnavailableError(f"Could not reach Redis to lock {key}: {e}") from e
        if not acquired:
            raise LockUnavailableError(f"Timed out waiting for lock on {key}")
        try:
            yield
        finally:
            try:
                lock.release()
            except redis_exceptions.LockError:
                # The lock expired while held; the work already finished.
                logger.warning("Lock for %s expired before release", key)
