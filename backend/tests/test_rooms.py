"""Tests for RoomRouter and ClientConnection delivery."""
import asyncio

import pytest

from collabflow.chat.rooms import ClientConnection, RoomRouter


class FakeConnection:
    """In-memory connection that records delivered frames."""

    def __init__(self, connection_id, alive=True):
        self.id = connection_id
        self.alive = alive
        self.frames = []

    def deliver(self, frame):
        if not self.alive:
            return False
        self.frames.append(frame)
        return True


@pytest.fixture
def rooms():
    return RoomRouter()


class TestRoomRouter:
    """Tests for join/leave/broadcast bookkeeping."""

    def test_join_adds_connection(self, rooms):
        conn = FakeConnection("c1")
        assert rooms.join(conn, "ws-1") is True
        assert rooms.room_size("ws-1") == 1
        assert rooms.is_in_room(conn, "ws-1")

    def test_join_is_idempotent(self, rooms):
        conn = FakeConnection("c1")
        rooms.join(conn, "ws-1")
        assert rooms.join(conn, "ws-1") is False
        assert rooms.room_size("ws-1") == 1

    def test_broadcast_reaches_every_member(self, rooms):
        a, b = FakeConnection("a"), FakeConnection("b")
        rooms.join(a, "ws-1")
        rooms.join(b, "ws-1")

        delivered = rooms.broadcast("ws-1", {"event": "newMessage", "data": {"n": 1}})

        assert delivered == 2
        assert a.frames == b.frames == [{"event": "newMessage", "data": {"n": 1}}]

    def test_broadcast_skips_other_rooms(self, rooms):
        member, outsider = FakeConnection("m"), FakeConnection("o")
        rooms.join(member, "ws-1")
        rooms.join(outsider, "ws-2")

        rooms.broadcast("ws-1", {"event": "newMessage"})

        assert len(member.frames) == 1
        assert outsider.frames == []

    def test_broadcast_to_empty_room(self, rooms):
        assert rooms.broadcast("nobody-here", {"event": "newMessage"}) == 0

    def test_leave_single_room(self, rooms):
        conn = FakeConnection("c1")
        rooms.join(conn, "ws-1")
        rooms.join(conn, "ws-2")

        assert rooms.leave(conn, "ws-1") is True
        assert rooms.rooms_of(conn) == {"ws-2"}
        assert rooms.leave(conn, "ws-1") is False

    def test_leave_all_drops_every_room(self, rooms):
        conn, other = FakeConnection("c1"), FakeConnection("c2")
        rooms.join(conn, "ws-1")
        rooms.join(conn, "ws-2")
        rooms.join(other, "ws-2")

        left = rooms.leave_all(conn)

        assert left == ["ws-1", "ws-2"]
        assert rooms.rooms_of(conn) == set()
        assert rooms.broadcast("ws-1", {"event": "x"}) == 0
        assert rooms.broadcast("ws-2", {"event": "x"}) == 1
        assert conn.frames == []

    def test_empty_rooms_are_discarded(self, rooms):
        for i in range(100):
            conn = FakeConnection(f"c{i}")
            rooms.join(conn, f"ws-{i}")
            rooms.leave_all(conn)
        assert rooms.room_count == 0

    def test_dead_connection_removed_on_broadcast(self, rooms):
        alive, dead = FakeConnection("alive"), FakeConnection("dead", alive=False)
        rooms.join(alive, "ws-1")
        rooms.join(dead, "ws-1")
        rooms.join(dead, "ws-2")

        assert rooms.broadcast("ws-1", {"event": "x"}) == 1
        assert rooms.room_size("ws-1") == 1
        assert rooms.rooms_of(dead) == set()
        assert rooms.room_size("ws-2") == 0


class TestClientConnection:
    """Tests for the outbound queue and writer task."""

    def test_frames_sent_in_enqueue_order(self):
        sent = []

        async def slow_send(frame):
            # Yield between writes so broadcasts could interleave.
            await asyncio.sleep(0)
            sent.append(frame["n"])

        async def scenario():
            conn = ClientConnection(slow_send, connection_id="c1")
            conn.start()
            for n in range(20):
                conn.deliver({"n": n})
            await conn.flush()
            conn.close()

        asyncio.run(scenario())
        assert sent == list(range(20))

    def test_failed_send_marks_closed_and_notifies(self):
        rooms = RoomRouter()
        failures = []

        async def broken_send(frame):
            raise ConnectionError("socket gone")

        async def scenario():
            conn = ClientConnection(
                broken_send,
                connection_id="c1",
                on_failure=lambda c: (failures.append(c.id), rooms.leave_all(c)),
            )
            rooms.join(conn, "ws-1")
            conn.start()
            conn.deliver({"n": 1})
            await conn.flush()
            await asyncio.sleep(0)
            return conn

        conn = asyncio.run(scenario())
        assert conn.closed is True
        assert failures == ["c1"]
        assert rooms.room_size("ws-1") == 0
        assert conn.deliver({"n": 2}) is False

    def test_close_rejects_further_frames(self):
        async def send(frame):
            return None

        async def scenario():
            conn = ClientConnection(send)
            conn.start()
            conn.close()
            return conn

        conn = asyncio.run(scenario())
        assert conn.deliver({"n": 1}) is False
