import asyncio
from collections import defaultdict
from datetime import datetime, timedelta

import pytest

from backend import RoomStore
from relay import RelayHandler
from sessions import SessionRegistry


class FakeClock:
    def __init__(self, start=datetime(2024, 1, 1, 12, 0, 0)):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class RecordingTransport:
    """In-memory stand-in for the socket server: tracks room subscriptions and records deliveries."""

    def __init__(self):
        self.rooms = defaultdict(set)
        self.deliveries = []
        self.broadcasts = []

    async def send(self, connection_id, event, payload):
        self.deliveries.append((connection_id, event, payload))

    async def broadcast(self, room_code, event, payload, exclude=None):
        self.broadcasts.append((room_code, event, payload, exclude))
        for sid in sorted(self.rooms[room_code]):
            if sid != exclude:
                self.deliveries.append((sid, event, payload))

    async def subscribe(self, connection_id, room_code):
        self.rooms[room_code].add(connection_id)

    async def unsubscribe(self, connection_id, room_code):
        self.rooms[room_code].discard(connection_id)

    def received(self, connection_id, event=None):
        return [
            (name, payload)
            for sid, name, payload in self.deliveries
            if sid == connection_id and (event is None or name == event)
        ]

    def payloads(self, connection_id, event):
        return [payload for _, payload in self.received(connection_id, event)]

    def clear(self):
        self.deliveries.clear()
        self.broadcasts.clear()


class YieldingTransport(RecordingTransport):
    """Gives up the event loop before every call, the way a real socket emit does."""

    async def send(self, connection_id, event, payload):
        await asyncio.sleep(0)
        await super().send(connection_id, event, payload)

    async def broadcast(self, room_code, event, payload, exclude=None):
        await asyncio.sleep(0)
        await super().broadcast(room_code, event, payload, exclude=exclude)

    async def subscribe(self, connection_id, room_code):
        await asyncio.sleep(0)
        await super().subscribe(connection_id, room_code)

    async def unsubscribe(self, connection_id, room_code):
        await asyncio.sleep(0)
        await super().unsubscribe(connection_id, room_code)


def assert_consistent(store, registry):
    """Every member in a room has exactly one session entry pointing at that room, and vice versa."""
    members = {}
    for code in store.codes():
        for member in store.get(code).users:
            assert member.connection_id not in members, f"{member.connection_id} is in two rooms"
            members[member.connection_id] = code
    sessions = {sid: entry.room_code for sid, entry in registry.items()}
    assert members == sessions


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return RoomStore(clock=clock)


@pytest.fixture
def registry():
    return SessionRegistry()


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def relay(store, registry, transport):
    return RelayHandler(store, registry, transport)
