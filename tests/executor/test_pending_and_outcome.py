from __future__ import annotations

import asyncio

import pytest

from batchexec import (
    AttemptFailure,
    AttemptSuccess,
    ExecuteOptions,
    PendingEntry,
    PendingMap,
    run_attempt,
)


def run_async(coro):
    return asyncio.run(coro)


def _entry(key) -> PendingEntry:
    future = asyncio.get_running_loop().create_future()
    return PendingEntry(key=key, future=future, options=ExecuteOptions())


def test_pending_map_insert_lookup_and_identity_guarded_remove():
    async def scenario() -> None:
        pending: PendingMap[str] = PendingMap()
        old = _entry("K")
        pending.insert(old)

        assert pending.get("K") is old
        assert "K" in pending
        assert len(pending) == 1

        with pytest.raises(ValueError, match="already has a pending entry"):
            pending.insert(_entry("K"))

        assert pending.remove(old) is True
        assert pending.remove(old) is False

        new = _entry("K")
        pending.insert(new)
        assert pending.remove(old) is False
        assert pending.get("K") is new

    run_async(scenario())


def test_pending_map_pop_all_empties_mapping():
    async def scenario() -> None:
        pending: PendingMap[str] = PendingMap()
        entries = [_entry(key) for key in ("a", "b", "c")]
        for entry in entries:
            pending.insert(entry)

        assert pending.keys() == ["a", "b", "c"]
        assert list(pending) == entries
        assert pending.pop_all() == entries
        assert len(pending) == 0

    run_async(scenario())


def test_pending_entry_disarm_cancels_timer():
    async def scenario() -> None:
        fired = []
        entry = _entry("K")
        entry.timer = asyncio.get_running_loop().call_later(0.01, fired.append, 1)

        entry.disarm()
        await asyncio.sleep(0.03)

        assert entry.timer is None
        assert fired == []
        assert entry.settled is False

    run_async(scenario())


def test_run_attempt_tags_outcomes():
    async def scenario() -> None:
        async def async_ok() -> int:
            return 1

        async def async_fail() -> None:
            raise KeyError("missing")

        def sync_fail() -> None:
            raise ValueError("bad")

        assert await run_attempt(lambda: 2) == AttemptSuccess(value=2)
        assert await run_attempt(async_ok) == AttemptSuccess(value=1)

        failure = await run_attempt(async_fail)
        assert isinstance(failure, AttemptFailure)
        assert failure.ok is False
        assert isinstance(failure.error, KeyError)

        failure = await run_attempt(sync_fail)
        assert not failure.ok
        assert str(failure.error) == "bad"

    run_async(scenario())


def test_run_attempt_lets_cancellation_propagate():
    async def scenario() -> None:
        async def cancelled() -> None:
            raise asyncio.CancelledError()

        with pytest.raises(asyncio.CancelledError):
            await run_attempt(cancelled)

    run_async(scenario())


def test_pending_entry_reports_elapsed_time_since_admission():
    async def scenario() -> None:
        entry = _entry("K")
        await asyncio.sleep(0.02)

        assert entry.elapsed_s >= 0.015
        assert entry.elapsed_s < 5

    run_async(scenario())
