from __future__ import annotations

import asyncio

from batchexec import BatchedTaskExecutor


def run_async(coro):
    return asyncio.run(coro)


def test_concurrent_calls_share_one_execution():
    async def scenario() -> None:
        executor = BatchedTaskExecutor()
        gate = asyncio.Event()
        calls = 0

        async def op() -> str:
            nonlocal calls
            calls += 1
            await gate.wait()
            return "shared"

        waiters = [asyncio.create_task(executor.execute("K", op)) for _ in range(5)]
        await asyncio.sleep(0)
        gate.set()
        results = await asyncio.gather(*waiters)

        assert calls == 1
        assert results == ["shared"] * 5
        assert executor.pending_count == 0

    run_async(scenario())


def test_later_caller_receives_first_callers_result():
    async def scenario() -> None:
        executor = BatchedTaskExecutor()

        first = executor.submit("A", lambda: 42, {})
        second = executor.submit("A", lambda: 99, {})

        assert first is second
        assert await first == 42
        assert await second == 42

    run_async(scenario())


def test_concurrent_callers_observe_the_same_failure():
    async def scenario() -> None:
        executor = BatchedTaskExecutor()
        boom = RuntimeError("boom")

        async def op() -> None:
            await asyncio.sleep(0.01)
            raise boom

        results = await asyncio.gather(
            executor.execute("K", op),
            executor.execute("K", op),
            executor.execute("K", op),
            return_exceptions=True,
        )

        assert all(result is boom for result in results)

    run_async(scenario())


def test_call_after_settlement_starts_new_execution():
    async def scenario() -> None:
        executor = BatchedTaskExecutor()

        assert await executor.execute("K", lambda: "first") == "first"
        assert not executor.is_pending("K")
        assert await executor.execute("K", lambda: "second") == "second"

    run_async(scenario())


def test_distinct_keys_run_independently():
    async def scenario() -> None:
        executor = BatchedTaskExecutor()
        seen: list[tuple[str, int]] = []

        def make(key: tuple[str, int]):
            async def op() -> tuple[str, int]:
                seen.append(key)
                await asyncio.sleep(0.01)
                return key

            return op

        results = await asyncio.gather(
            executor.execute(("user", 1), make(("user", 1))),
            executor.execute(("user", 2), make(("user", 2))),
            executor.execute(("user", 1), make(("user", 1))),
        )

        assert results == [("user", 1), ("user", 2), ("user", 1)]
        assert sorted(seen) == [("user", 1), ("user", 2)]

    run_async(scenario())


def test_sync_and_async_operations_are_supported():
    async def scenario() -> None:
        executor = BatchedTaskExecutor()

        async def async_op() -> int:
            return 7

        assert await executor.execute("sync", lambda: 3) == 3
        assert await executor.execute("async", async_op) == 7

    run_async(scenario())


def test_joining_caller_inherits_first_callers_options():
    async def scenario() -> None:
        executor = BatchedTaskExecutor()
        calls = 0

        async def op() -> None:
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.01)
            raise ValueError("nope")

        first = executor.submit("K", op, {"retries": 0})
        second = executor.submit("K", op, {"retries": 3})

        assert executor.get_entry("K").options.retries == 0
        results = await asyncio.gather(first, second, return_exceptions=True)

        assert calls == 1
        assert all(isinstance(result, ValueError) for result in results)

    run_async(scenario())


def test_pending_entry_tracks_waiters_and_state():
    async def scenario() -> None:
        executor = BatchedTaskExecutor()
        gate = asyncio.Event()

        async def op() -> str:
            await gate.wait()
            return "done"

        future = executor.submit("K", op)
        executor.submit("K", op)
        await asyncio.sleep(0)

        entry = executor.get_entry("K")
        assert entry is not None
        assert entry.waiters == 2
        assert entry.state == "attempting"
        assert entry.attempts == 1
        assert executor.pending_keys() == ["K"]

        gate.set()
        assert await future == "done"
        assert entry.state == "succeeded"
        assert executor.get_entry("K") is None

    run_async(scenario())


def test_cancelled_waiter_does_not_cancel_shared_execution():
    async def scenario() -> None:
        executor = BatchedTaskExecutor()
        gate = asyncio.Event()

        async def op() -> str:
            await gate.wait()
            return "value"

        impatient = asyncio.create_task(executor.execute("K", op))
        patient = asyncio.create_task(executor.execute("K", op))
        await asyncio.sleep(0)

        impatient.cancel()
        await asyncio.sleep(0)
        assert executor.is_pending("K")

        gate.set()
        assert await patient == "value"
        assert impatient.cancelled()

    run_async(scenario())


def test_joining_caller_options_are_not_validated():
    async def scenario() -> None:
        executor = BatchedTaskExecutor()
        gate = asyncio.Event()

        async def op() -> str:
            await gate.wait()
            return "shared"

        first = executor.submit("K", op)
        joined = executor.submit("K", op, {"timeout": 0, "retries": -1})

        assert joined is first
        assert executor.get_entry("K").waiters == 2
        assert executor.get_entry("K").options.timeout_ms is None

        gate.set()
        assert await joined == "shared"

    run_async(scenario())
