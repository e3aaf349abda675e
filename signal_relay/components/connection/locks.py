"""
Lock Manager for the relay.

Manages one asyncio lock per room so membership changes in unrelated rooms
never contend.

LOCK ORDERING CONSTRAINTS:
==========================
A room switch touches two rooms (the one being left and the one being
joined). hold_rooms() always acquires locks in ascending room id order, so
two connections switching between the same pair of rooms in opposite
directions cannot deadlock. Never nest two hold_rooms() calls.

Rooms are ephemeral, so cached locks are pruned once their room is gone.
A lock is never pruned while any flow holds or is waiting for it: hold_rooms()
registers its interest before acquiring and releases it after.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Collection
from contextlib import asynccontextmanager

from signal_relay.components.core.constants import WSConstants

logger = logging.getLogger(__name__)


class LockManager:
    """
    Manages asyncio locks for room operations.

    Includes cleanup mechanism to prevent unbounded memory growth.
    """

    def __init__(
        self,
        max_cached_locks: int = WSConstants.MAX_CACHED_LOCKS,
        cleanup_threshold: int = WSConstants.LOCK_CLEANUP_THRESHOLD,
    ):
        """
        Initialize the lock manager.

        Args:
            max_cached_locks: Maximum number of locks to cache before cleanup.
            cleanup_threshold: Number of locks that triggers cleanup.
        """
        self._max_cached_locks = max_cached_locks
        self._cleanup_threshold = cleanup_threshold

        self._room_locks: dict[str, asyncio.Lock] = {}
        # room_id -> number of flows holding or waiting for its lock
        self._interest: dict[str, int] = {}

        # Metrics
        self._locks_cleaned = 0

    @property
    def room_lock_count(self) -> int:
        """Number of room locks currently cached."""
        return len(self._room_locks)

    @property
    def locks_cleaned_total(self) -> int:
        """Total number of locks cleaned since startup."""
        return self._locks_cleaned

    @property
    def needs_cleanup(self) -> bool:
        """Whether the cache has grown past the cleanup threshold."""
        return len(self._room_locks) >= self._cleanup_threshold

    @asynccontextmanager
    async def hold_rooms(self, *room_ids: str | None) -> AsyncIterator[None]:
        """
        Hold the locks of every given room for the duration of the block.

        None entries are ignored and duplicates are collapsed, so callers can
        pass (previous_room, new_room) without special-casing.

        Args:
            *room_ids: Rooms to lock.
        """
        keys = sorted({room_id for room_id in room_ids if room_id is not None})

        for key in keys:
            self._interest[key] = self._interest.get(key, 0) + 1

        acquired: list[asyncio.Lock] = []
        try:
            for key in keys:
                lock = self._room_locks.get(key)
                if lock is None:
                    lock = self._room_locks[key] = asyncio.Lock()
                await lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
            for key in keys:
                remaining = self._interest[key] - 1
                if remaining:
                    self._interest[key] = remaining
                else:
                    del self._interest[key]

    def cleanup_stale_locks(self, active_rooms: Collection[str]) -> int:
        """
        Drop cached locks for rooms that no longer exist.

        Args:
            active_rooms: Room ids currently present in the registry.

        Returns:
            Number of locks removed.
        """
        stale = [
            room_id
            for room_id in self._room_locks
            if room_id not in active_rooms and room_id not in self._interest
        ]
        for room_id in stale:
            del self._room_locks[room_id]

        self._locks_cleaned += len(stale)

        if len(self._room_locks) > self._max_cached_locks:
            logger.warning(
                "Room lock cache above limit after cleanup",
                cached=len(self._room_locks),
                max_cached=self._max_cached_locks,
            )

        if stale:
            logger.debug("Cleaned up stale room locks", count=len(stale))

        return len(stale)

    def get_stats(self) -> dict[str, int]:
        """Lock statistics for the detailed health endpoint."""
        return {
            "room_locks_count": len(self._room_locks),
            "room_locks_in_use": len(self._interest),
            "locks_cleaned_total": self._locks_cleaned,
        }
