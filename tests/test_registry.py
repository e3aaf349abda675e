"""
Tests for room membership: RoomRegistry and LockManager.

Tests verify:
- Registry and session.current_room always agree
- Empty rooms are deleted immediately
- Room switches are atomic and deadlock-free
- Stale room locks are pruned, held ones are not
"""

import asyncio

import pytest

from signal_relay.exceptions import SessionClosedError
from tests.conftest import make_session


class TestJoin:
    """Tests for RoomRegistry.join."""

    @pytest.mark.asyncio
    async def test_join_creates_room(self, registry):
        session = make_session()

        left = await registry.join(session, "room-1")

        assert left is None
        assert session.current_room == "room-1"
        assert registry.get_members("room-1") == {session}
        assert registry.snapshot() == {"room-1": 1}

    @pytest.mark.asyncio
    async def test_switch_leaves_previous_room(self, registry):
        """A switching session is never counted in two rooms."""
        session = make_session()
        other = make_session()
        await registry.join(session, "room-a")
        await registry.join(other, "room-a")

        left = await registry.join(session, "room-b")

        assert left == "room-a"
        assert session.current_room == "room-b"
        assert registry.snapshot() == {"room-a": 1, "room-b": 1}
        assert session not in registry.get_members("room-a")

    @pytest.mark.asyncio
    async def test_switch_deletes_emptied_room(self, registry):
        session = make_session()
        await registry.join(session, "room-a")

        await registry.join(session, "room-b")

        assert "room-a" not in registry
        assert registry.snapshot() == {"room-b": 1}

    @pytest.mark.asyncio
    async def test_rejoining_same_room_is_noop(self, registry):
        session = make_session()
        await registry.join(session, "room-1")

        left = await registry.join(session, "room-1")

        assert left is None
        assert registry.snapshot() == {"room-1": 1}

    @pytest.mark.asyncio
    async def test_join_after_close_rejected(self, registry):
        """A late subscribe from a destroyed session must not resurrect it."""
        session = make_session()
        session.closed = True

        with pytest.raises(SessionClosedError):
            await registry.join(session, "room-1")

        assert "room-1" not in registry
        assert session.current_room is None


class TestLeave:
    """Tests for RoomRegistry.leave."""

    @pytest.mark.asyncio
    async def test_leave_without_room_is_noop(self, registry):
        session = make_session()

        assert await registry.leave(session) is None
        assert registry.room_count == 0

    @pytest.mark.asyncio
    async def test_last_leave_deletes_room(self, registry):
        first, second = make_session(), make_session()
        await registry.join(first, "room-1")
        await registry.join(second, "room-1")

        assert await registry.leave(first) == "room-1"
        assert registry.snapshot() == {"room-1": 1}

        assert await registry.leave(second) == "room-1"
        assert registry.snapshot() == {}
        assert second.current_room is None

    @pytest.mark.asyncio
    async def test_leave_twice(self, registry):
        session = make_session()
        await registry.join(session, "room-1")

        assert await registry.leave(session) == "room-1"
        assert await registry.leave(session) is None


class TestMembersExcept:
    """Tests for the fan-out recipient snapshot."""

    @pytest.mark.asyncio
    async def test_excludes_sender(self, registry):
        sender, peer = make_session(), make_session()
        await registry.join(sender, "room-1")
        await registry.join(peer, "room-1")

        assert await registry.members_except("room-1", sender) == [peer]

    @pytest.mark.asyncio
    async def test_unknown_room_is_empty(self, registry):
        assert await registry.members_except("nowhere", make_session()) == []

    @pytest.mark.asyncio
    async def test_result_is_a_copy(self, registry):
        """Later joins do not show up in an already-taken snapshot."""
        sender, peer = make_session(), make_session()
        await registry.join(sender, "room-1")
        await registry.join(peer, "room-1")

        recipients = await registry.members_except("room-1", sender)
        await registry.join(make_session(), "room-1")

        assert recipients == [peer]


class TestConcurrency:
    """Tests for concurrent membership changes."""

    @pytest.mark.asyncio
    async def test_opposite_switches_do_not_deadlock(self, registry):
        """Two sessions swapping rooms in opposite directions must both finish."""
        sessions_a = [make_session() for _ in range(20)]
        sessions_b = [make_session() for _ in range(20)]
        for session in sessions_a:
            await registry.join(session, "room-a")
        for session in sessions_b:
            await registry.join(session, "room-b")

        switches = [registry.join(s, "room-b") for s in sessions_a]
        switches += [registry.join(s, "room-a") for s in sessions_b]
        await asyncio.wait_for(asyncio.gather(*switches), timeout=2.0)

        assert registry.snapshot() == {"room-a": 20, "room-b": 20}
        assert all(s.current_room == "room-b" for s in sessions_a)
        assert all(s.current_room == "room-a" for s in sessions_b)

    @pytest.mark.asyncio
    async def test_concurrent_joins_and_leaves_stay_consistent(self, registry):
        sessions = [make_session() for _ in range(30)]

        await asyncio.gather(*(registry.join(s, f"room-{i % 3}") for i, s in enumerate(sessions)))
        await asyncio.gather(*(registry.leave(s) for s in sessions[::2]))

        snapshot = registry.snapshot()
        assert sum(snapshot.values()) == 15
        for room_id, members in registry.rooms.items():
            assert members
            assert all(member.current_room == room_id for member in members)

    @pytest.mark.asyncio
    async def test_overlapping_joins_leave_one_room(self, registry, lock_manager):
        """A join waiting on a lock must not act on a room the session already left."""
        session = make_session()

        async with lock_manager.hold_rooms("room-a"):
            pending = asyncio.create_task(registry.join(session, "room-a"))
            await asyncio.sleep(0)
            # pending is parked on room-a's lock; this join does not need it
            await registry.join(session, "room-b")

        await asyncio.wait_for(pending, timeout=1.0)

        assert session.current_room == "room-a"
        assert registry.snapshot() == {"room-a": 1}
        assert [room for room, members in registry.rooms.items() if session in members] == ["room-a"]

    @pytest.mark.asyncio
    async def test_parked_joins_for_one_session_settle_in_one_room(self, registry, lock_manager):
        session = make_session()
        bystander = make_session()
        await registry.join(bystander, "room-c")

        async with lock_manager.hold_rooms("room-a", "room-b", "room-c"):
            pending = [
                asyncio.create_task(registry.join(session, room))
                for room in ("room-a", "room-b", "room-c")
            ]
            await asyncio.sleep(0)

        await asyncio.wait_for(asyncio.gather(*pending), timeout=1.0)

        holding = [room for room, members in registry.rooms.items() if session in members]
        assert holding == [session.current_room]
        assert sum(registry.snapshot().values()) == 2


class TestLockManager:
    """Tests for per-room lock caching and pruning."""

    @pytest.mark.asyncio
    async def test_prune_removes_locks_of_deleted_rooms(self, registry, lock_manager):
        session = make_session()
        await registry.join(session, "room-a")
        await registry.join(session, "room-b")
        assert lock_manager.room_lock_count == 2

        pruned = registry.prune_locks()

        assert pruned == 1
        assert lock_manager.room_lock_count == 1
        assert lock_manager.locks_cleaned_total == 1

    @pytest.mark.asyncio
    async def test_held_lock_is_not_pruned(self, lock_manager):
        async with lock_manager.hold_rooms("room-a"):
            assert lock_manager.cleanup_stale_locks(active_rooms=()) == 0
            assert lock_manager.get_stats()["room_locks_in_use"] == 1

        assert lock_manager.cleanup_stale_locks(active_rooms=()) == 1
        assert lock_manager.get_stats()["room_locks_in_use"] == 0

    @pytest.mark.asyncio
    async def test_hold_rooms_ignores_none_and_duplicates(self, lock_manager):
        async with lock_manager.hold_rooms(None, "room-a", "room-a"):
            assert lock_manager.room_lock_count == 1

    @pytest.mark.asyncio
    async def test_cleanup_triggered_past_threshold(self, registry, lock_manager):
        """Registry prunes automatically once the cache reaches the threshold."""
        session = make_session()
        for i in range(85):
            await registry.join(session, f"room-{i}")

        assert lock_manager.room_lock_count < 80
        assert lock_manager.locks_cleaned_total > 0
        assert registry.snapshot() == {"room-84": 1}
