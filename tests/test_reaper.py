import asyncio
from datetime import datetime

import pytest

from reaper import Reaper, log_status_periodically
from schemas.rooms import Member


def add_member(store, code, sid):
    store.get_or_create(code)
    store.add_member(code, Member(connection_id=sid, username="alice", color="", joined_at=datetime(2024, 1, 1)))


async def test_sweep_deletes_only_old_empty_rooms(store, clock):
    store.get_or_create("OLD")
    add_member(store, "BUSY", "sid-1")
    clock.advance(hours=25)
    store.get_or_create("FRESH")

    reaper = Reaper(store, interval=3600, retention=86400)
    deleted = await reaper.sweep()

    assert deleted == ["OLD"]
    assert sorted(store.codes()) == ["BUSY", "FRESH"]


async def test_sweep_keeps_empty_room_within_retention(store, clock):
    store.get_or_create("ABC123")
    clock.advance(hours=23)

    assert await Reaper(store, retention=86400).sweep() == []
    assert store.get("ABC123") is not None


async def test_sweep_is_idempotent(store, clock):
    store.get_or_create("OLD")
    clock.advance(days=2)
    reaper = Reaper(store, retention=86400)

    assert await reaper.sweep() == ["OLD"]
    assert await reaper.sweep() == []
    assert store.list_active() == 0


async def test_sweep_waits_for_room_lock(store, clock):
    store.get_or_create("OLD")
    clock.advance(days=2)
    reaper = Reaper(store, retention=86400)

    async with store.locked("OLD"):
        sweep = asyncio.create_task(reaper.sweep())
        await asyncio.sleep(0)
        # a handler mid-mutation repopulates the room before releasing the lock
        add_member(store, "OLD", "sid-1")

    assert await sweep == []
    assert store.get("OLD") is not None


async def test_start_and_stop_run_periodic_sweeps(store, clock):
    store.get_or_create("OLD")
    clock.advance(days=2)
    reaper = Reaper(store, interval=0.01, retention=86400)

    reaper.start()
    for _ in range(50):
        if store.get("OLD") is None:
            break
        await asyncio.sleep(0.01)
    await reaper.stop()

    assert store.get("OLD") is None


async def test_failed_sweep_does_not_stop_the_loop(store, monkeypatch):
    reaper = Reaper(store, interval=0.01)
    calls = []

    async def flaky_sweep():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("boom")
        return []

    monkeypatch.setattr(reaper, "sweep", flaky_sweep)
    reaper.start()
    for _ in range(50):
        if len(calls) >= 2:
            break
        await asyncio.sleep(0.01)
    await reaper.stop()

    assert len(calls) >= 2


async def test_status_log_reports_counts(store, registry, caplog):
    add_member(store, "ABC123", "sid-1")
    caplog.set_level("INFO", logger="reaper")

    task = asyncio.create_task(log_status_periodically(store, registry, interval=0.01))
    for _ in range(50):
        if any("Status:" in r.getMessage() for r in caplog.records):
            break
        await asyncio.sleep(0.01)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert any("1 rooms, 1 members" in r.getMessage() for r in caplog.records)
