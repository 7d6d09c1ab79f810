from datetime import datetime

from schemas.rooms import Member
from sessions import SessionRegistry


def make_member(sid):
    return Member(connection_id=sid, username="alice", color="", joined_at=datetime(2024, 1, 1))


def test_bind_lookup_unbind():
    registry = SessionRegistry()
    member = make_member("sid-1")

    registry.bind("sid-1", "ABC123", member)

    entry = registry.lookup("sid-1")
    assert entry.room_code == "ABC123"
    assert entry.member is member
    assert "sid-1" in registry
    assert len(registry) == 1

    assert registry.unbind("sid-1") == entry
    assert registry.lookup("sid-1") is None
    assert len(registry) == 0


def test_unbind_unknown_connection_is_none():
    registry = SessionRegistry()
    assert registry.unbind("ghost") is None
    assert registry.lookup("ghost") is None


def test_rebind_replaces_previous_entry():
    registry = SessionRegistry()
    registry.bind("sid-1", "ABC123", make_member("sid-1"))
    registry.bind("sid-1", "XYZ789", make_member("sid-1"))

    assert registry.lookup("sid-1").room_code == "XYZ789"
    assert len(registry) == 1
