"""Tests for the keyed debounce scheduler."""
import asyncio

import pytest

from transplantflow.services.scheduler import DebounceScheduler


async def test_reschedule_replaces_pending_task():
    scheduler = DebounceScheduler()
    calls = []

    async def record(value):
        calls.append(value)

    scheduler.schedule(("commit", "p001", 4), 0.02, lambda: record("first"))
    scheduler.schedule(("commit", "p001", 4), 0.02, lambda: record("second"))
    await scheduler.join()
    assert calls == ["second"]


async def test_different_keys_run_independently():
    scheduler = DebounceScheduler()
    calls = []

    async def record(value):
        calls.append(value)

    scheduler.schedule(("commit", "p001", 4), 0.01, lambda: record("p001"))
    scheduler.schedule(("commit", "p002", 4), 0.01, lambda: record("p002"))
    await scheduler.join()
    assert sorted(calls) == ["p001", "p002"]


async def test_cancel_prefix_only_hits_matching_keys():
    scheduler = DebounceScheduler()
    calls = []

    async def record(value):
        calls.append(value)

    scheduler.schedule(("commit", "p001", 4), 0.01, lambda: record("p001-4"))
    scheduler.schedule(("commit", "p001", 5), 0.01, lambda: record("p001-5"))
    scheduler.schedule(("commit", "p002", 4), 0.01, lambda: record("p002-4"))
    assert scheduler.cancel_prefix(("commit", "p001")) == 2
    await scheduler.join()
    assert calls == ["p002-4"]


async def test_running_action_is_not_cancelled_by_new_schedule():
    scheduler = DebounceScheduler()
    started = asyncio.Event()
    calls = []

    async def slow():
        started.set()
        await asyncio.sleep(0.03)
        calls.append("slow")

    async def fast():
        calls.append("fast")

    key = ("commit", "p001", 4)
    scheduler.schedule(key, 0, slow)
    await started.wait()
    assert scheduler.is_pending(key) is False
    scheduler.schedule(key, 0.05, fast)
    await scheduler.join()
    assert calls == ["slow", "fast"]


async def test_join_reraises_failure():
    scheduler = DebounceScheduler()

    async def boom():
        raise ValueError("store down")

    scheduler.schedule(("commit", "p001", 1), 0, boom)
    with pytest.raises(ValueError):
        await scheduler.join()


async def test_join_waits_for_chained_tasks():
    scheduler = DebounceScheduler()
    calls = []

    async def second():
        calls.append("second")

    async def first():
        calls.append("first")
        scheduler.schedule(("sync", "p001", 4), 0.01, second)

    scheduler.schedule(("commit", "p001", 4), 0.01, first)
    await scheduler.join()
    assert calls == ["first", "second"]
