"""Tests for the connection registry."""

from taskflow.realtime.registry import Connection, ConnectionRegistry

from tests.conftest import drain


def test_register_joins_private_user_room(registry):
    conn = registry.register(Connection(user_id=42, user_email="a@example.com"))

    assert conn.rooms == {"user:42"}
    assert registry.is_registered(conn.id)
    assert [c.id for c in registry.connections_in_room("user:42")] == [conn.id]


def test_register_is_idempotent_per_connection_id(registry):
    conn = Connection(user_id=42)
    first = registry.register(conn)
    second = registry.register(Connection(user_id=42, id=conn.id))

    assert second is first
    assert registry.connection_count() == 1


def test_distinct_connections_of_same_user_are_not_merged(registry):
    a = registry.register(Connection(user_id=42))
    b = registry.register(Connection(user_id=42))

    assert a.id != b.id
    assert registry.connection_count() == 2
    assert registry.online_user_count() == 1
    assert {c.id for c in registry.connections_for_user(42)} == {a.id, b.id}


def test_join_room_twice_is_noop(registry):
    conn = registry.register(Connection(user_id=1))

    assert registry.join_room(conn.id, "project:7")
    assert registry.join_room(conn.id, "project:7")

    assert len(registry.connections_in_room("project:7")) == 1
    assert conn.rooms == {"user:1", "project:7"}


def test_unknown_connection_operations_are_noops(registry):
    assert registry.join_room("missing", "project:7") is False
    assert registry.leave_room("missing", "project:7") is False
    assert registry.unregister("missing") is None
    assert registry.emit_to_connection("missing", {"type": "x"}) is False
    assert registry.connections_in_room("project:7") == []


def test_leave_room_not_member_is_silent(registry):
    conn = registry.register(Connection(user_id=1))

    assert registry.leave_room(conn.id, "project:9") is False
    assert conn.rooms == {"user:1"}


def test_unregister_discards_all_state(registry):
    conn = registry.register(Connection(user_id=5))
    registry.join_room(conn.id, "project:1")
    registry.join_room(conn.id, "project:2")

    removed = registry.unregister(conn.id)

    assert removed is conn
    assert removed.rooms == {"user:5", "project:1", "project:2"}
    assert not registry.is_registered(conn.id)
    assert registry.connections_in_room("project:1") == []
    assert registry.connections_in_room("user:5") == []
    assert registry.connections_for_user(5) == []
    assert registry.online_user_count() == 0


def test_presence_counts_connections_per_user():
    registry = ConnectionRegistry()
    a1 = registry.register(Connection(user_id=1, user_email="one@example.com"))
    a2 = registry.register(Connection(user_id=1, user_email="one@example.com"))
    registry.register(Connection(user_id=1, user_email="one@example.com"))  # not in the room
    b = registry.register(Connection(user_id=2, user_email="two@example.com"))

    for conn in (a1, a2, b):
        registry.join_room(conn.id, "project:7")

    presence = registry.list_presence("project:7")

    assert [(p.user_id, p.connection_count) for p in presence] == [(1, 2), (2, 1)]
    assert presence[0].model_dump(by_alias=True) == {
        "userId": 1,
        "userEmail": "one@example.com",
        "connectionCount": 2,
    }


def test_presence_keeps_user_while_a_sibling_connection_remains(registry):
    a1 = registry.register(Connection(user_id=1))
    a2 = registry.register(Connection(user_id=1))
    registry.join_room(a1.id, "project:7")
    registry.join_room(a2.id, "project:7")

    registry.unregister(a1.id)

    presence = registry.list_presence("project:7")
    assert [(p.user_id, p.connection_count) for p in presence] == [(1, 1)]

    registry.unregister(a2.id)
    assert registry.list_presence("project:7") == []


def test_emit_to_room_respects_exclude(registry):
    a = registry.register(Connection(user_id=1))
    b = registry.register(Connection(user_id=2))
    registry.join_room(a.id, "project:7")
    registry.join_room(b.id, "project:7")

    delivered = registry.emit_to_room("project:7", {"type": "user:joined"}, exclude=a.id)

    assert delivered == 1
    assert drain(a) == []
    assert drain(b) == [{"type": "user:joined"}]


def test_emit_to_room_preserves_issue_order(registry):
    conn = registry.register(Connection(user_id=1))
    registry.join_room(conn.id, "project:7")

    for i in range(5):
        registry.emit_to_room("project:7", {"type": "n", "i": i})

    assert [m["i"] for m in drain(conn)] == [0, 1, 2, 3, 4]
