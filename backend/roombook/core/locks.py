"""Locks serialising booking writes and lifecycle sweeps."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Hashable, Iterator

import redis
from redis.exceptions import LockError

logger = logging.getLogger(__name__)


class RoomLockRegistry:
    """One lock per room for the conflict-check-then-write sequence.

    Covers concurrent requests inside one process. Across processes the
    reservation service also takes a row lock on the room.
    """

    def __init__(self):
        self._locks: Dict[Hashable, threading.Lock] = {}
        self._guard = threading.Lock()

    def lock_for(self, room_id: Hashable) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(room_id)
            if lock is None:
                lock = self._locks[room_id] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, room_id: Hashable) -> Iterator[None]:
        with self.lock_for(room_id):
            yield


class LocalSweepGuard:
    """Skips a sweep while another run of the same sweep is in progress."""

    def __init__(self):
        self._locks: Dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    @contextmanager
    def acquire(self, name: str) -> Iterator[bool]:
        with self._guard:
            lock = self._locks.setdefault(name, threading.Lock())
        acquired = lock.acquire(blocking=False)
        try:
            yield acquired
        finally:
            if acquired:
                lock.release()


class RedisSweepGuard:
    """Run-in-progress flag shared by every worker talking to one Redis."""

    def __init__(self, client: redis.Redis, timeout: int = 240):
        self._client = client
        self._timeout = timeout

    @contextmanager
    def acquire(self, name: str) -> Iterator[bool]:
        lock = self._client.lock(f"roombook:sweep:{name}", timeout=self._timeout)
        acquired = lock.acquire(blocking=False)
        try:
            yield acquired
        finally:
            if acquired:
                try:
                    lock.release()
                except LockError:
                    # Held past the timeout; another worker may own it now
                    logger.warning(f"Sweep lock {name} expired before release")


room_locks = RoomLockRegistry()
sweep_guard = LocalSweepGuard()
