"""
Room Registry - single source of truth for room membership.

Maps room id -> set of ConnectionSession and keeps each session's own
current_room pointer in step with it:

- a session is a member of at most one room, and
- that room is exactly the one named by session.current_room.

Both sides are updated inside the same critical section, and no critical
section awaits anything other than the room locks themselves. A room exists
only while it has members: it is deleted in the same critical section that
removes its last member, so an empty room is never observable.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import TYPE_CHECKING

from signal_relay.exceptions import SessionClosedError

if TYPE_CHECKING:
    from signal_relay.components.connection.locks import LockManager
    from signal_relay.components.connection.session import ConnectionSession

logger = logging.getLogger(__name__)


class RoomRegistry:
    """
    Room membership registry.

    Mutations (join, leave) and fan-out reads (members_except) take the
    per-room locks from LockManager. Both re-check current_room once the
    locks are held, since it may have changed while they waited.

    snapshot() is lock-free: it runs without suspending, so on the event
    loop thread it always sees a state between two critical sections and
    never blocks behind a join or leave. It must not be called from another
    thread.
    """

    def __init__(self, lock_manager: "LockManager") -> None:
        """
        Initialize an empty registry.

        Args:
            lock_manager: Provides per-room locks.
        """
        self._lock_manager = lock_manager
        self._rooms: dict[str, set[ConnectionSession]] = {}

    # =========================================================================
    # Read-only views
    # =========================================================================

    @property
    def rooms(self) -> MappingProxyType[str, set["ConnectionSession"]]:
        """Room id -> members (immutable view)."""
        return MappingProxyType(self._rooms)

    @property
    def room_count(self) -> int:
        return len(self._rooms)

    @property
    def member_count(self) -> int:
        return sum(len(members) for members in self._rooms.values())

    def __contains__(self, room_id: object) -> bool:
        return room_id in self._rooms

    def get_members(self, room_id: str) -> set["ConnectionSession"]:
        """Get all members of a room (returns copy for safety)."""
        return set(self._rooms.get(room_id, ()))

    def snapshot(self) -> dict[str, int]:
        """
        Room id -> member count.

        Never mutates state and never takes a lock.
        """
        return {room_id: len(members) for room_id, members in self._rooms.items() if members}

    # =========================================================================
    # Membership operations
    # =========================================================================

    async def join(self, session: "ConnectionSession", room_id: str) -> str | None:
        """
        Move a session into a room.

        Leaves the session's previous room first (deleting it if it becomes
        empty) so the session is never counted twice, then adds it to
        room_id, creating the room if absent.

        Args:
            session: The joining session.
            room_id: Target room.

        Returns:
            The room the session left, or None.

        Raises:
            SessionClosedError: If the session has already been destroyed.
        """
        while True:
            previous = session.current_room

            async with self._lock_manager.hold_rooms(previous, room_id):
                if session.closed:
                    raise SessionClosedError(session.session_id, room=room_id)

                # Another join moved the session while we waited; relock
                if session.current_room != previous:
                    continue

                if previous is not None and previous != room_id:
                    self._remove_member(previous, session)

                self._rooms.setdefault(room_id, set()).add(session)
                session.current_room = room_id
                break

        self._maybe_cleanup_locks()
        return previous if previous != room_id else None

    async def leave(self, session: "ConnectionSession") -> str | None:
        """
        Remove a session from its current room.

        No-op if the session has no room.

        Returns:
            The room the session left, or None.
        """
        while True:
            previous = session.current_room
            if previous is None:
                return None

            async with self._lock_manager.hold_rooms(previous):
                if session.current_room != previous:
                    continue

                self._remove_member(previous, session)
                session.current_room = None
                break

        self._maybe_cleanup_locks()
        return previous

    async def members_except(
        self,
        room_id: str,
        session: "ConnectionSession",
    ) -> list["ConnectionSession"]:
        """
        Other members of a room, for fan-out.

        Copied under the room lock: members joining afterwards are not
        included, and iteration over the result can never fail or visit a
        member twice.
        """
        async with self._lock_manager.hold_rooms(room_id):
            members = self._rooms.get(room_id)
            if not members:
                return []
            return [member for member in members if member is not session]

    def prune_locks(self) -> int:
        """Drop cached locks for rooms that no longer exist."""
        return self._lock_manager.cleanup_stale_locks(self._rooms.keys())

    # =========================================================================
    # Internals (caller holds the room lock)
    # =========================================================================

    def _remove_member(self, room_id: str, session: "ConnectionSession") -> None:
        members = self._rooms.get(room_id)
        if members is None:
            return
        members.discard(session)
        if not members:
            del self._rooms[room_id]
            logger.debug("Room deleted", room=room_id)

    def _maybe_cleanup_locks(self) -> None:
        if self._lock_manager.needs_cleanup:
            self.prune_locks()
