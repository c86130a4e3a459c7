"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Batched task executor: one in-flight execution per key, shared by every
concurrent caller of that key.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Hashable
from typing import Any, TypeVar

from .backoff import linear_backoff_delay
from .contracts import OptionsInput, coerce_options
from .errors import ExecutorClosedError, RetryExhaustedError, TaskTimeoutError
from .metrics import (
    ATTEMPTS_RETRIED,
    EXECUTIONS_CANCELLED,
    EXECUTIONS_COALESCED,
    EXECUTIONS_FAILED,
    EXECUTIONS_STARTED,
    EXECUTIONS_SUCCEEDED,
    EXECUTIONS_TIMED_OUT,
    LATE_RESULTS_DISCARDED,
    ExecutorMetrics,
    NoOpExecutorMetrics,
)
from .outcome import AttemptOutcome, TaskOperation, run_attempt
from .pending import TERMINAL_STATES, ExecutionState, PendingEntry, PendingMap
from .settings import ExecutorSettings

logger = logging.getLogger("batchexec.executor")

T = TypeVar("T")

_SETTLED_METRICS: dict[str, str] = {
    "succeeded": EXECUTIONS_SUCCEEDED,
    "failed": EXECUTIONS_FAILED,
    "timed_out": EXECUTIONS_TIMED_OUT,
    "cancelled": EXECUTIONS_CANCELLED,
}


def _consume_future_exception(fut: asyncio.Future[Any]) -> None:
    """Avoid 'Future exception was never retrieved' for shared futures."""
    if not fut.cancelled():
        fut.exception()


class BatchedTaskExecutor:
    """
    Batch and perform same/repeated asynchronous tasks.

    A call with a key that already has an execution in flight joins that
    execution instead of starting a new one; every caller observes the same
    single outcome. Once an execution settles its key is forgotten, so the
    next call starts fresh.

    The first caller's options govern the shared execution: retries with
    linear backoff (`settings.backoff_step_s * attempt`) and an optional
    timeout. A timeout settles the execution for every waiter but lets the
    in-flight attempt run to completion in the background; its result is
    discarded. Pass `cancel_on_timeout=True` to cancel the attempt instead.

    Operations may be plain callables or return awaitables. Plain callables
    run on the event loop thread and block it while they run.

    Usage::

        executor = BatchedTaskExecutor()
        profile = await executor.execute(
            ("profile", user_id),
            lambda: client.fetch_profile(user_id),
            {"timeout": 5000, "retries": 2},
        )
    """

    def __init__(
        self,
        settings: ExecutorSettings | None = None,
        *,
        metrics: ExecutorMetrics | None = None,
    ) -> None:
        self._settings = settings or ExecutorSettings()
        self._defaults = self._settings.default_options()
        self._metrics: ExecutorMetrics = metrics or NoOpExecutorMetrics()
        self._pending: PendingMap[Hashable] = PendingMap()
        self._runners: set[asyncio.Task[None]] = set()
        self._closed = False

    @property
    def settings(self) -> ExecutorSettings:
        return self._settings

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def is_pending(self, key: Hashable) -> bool:
        entry = self._pending.get(key)
        return entry is not None and not entry.settled

    def pending_keys(self) -> list[Hashable]:
        return self._pending.keys()

    def get_entry(self, key: Hashable) -> PendingEntry | None:
        return self._pending.get(key)

    def submit(
        self,
        key: Hashable,
        operation: TaskOperation[T],
        options: OptionsInput = None,
    ) -> asyncio.Future[T]:
        """
        Return the shared future for `key`, starting an execution if needed.

        Must be called from a running event loop. Admission is synchronous:
        the entry is registered, the attempt loop is scheduled and the
        timeout is armed before this method returns.

        Args:
            key: Hashable task key; equal keys share one execution.
            operation: Zero-argument callable returning a value or awaitable.
            options: `ExecuteOptions`, a mapping of option fields, or None.
                Ignored when joining an execution already in flight.

        Raises:
            ExecutorClosedError: If the executor has been closed.
            pydantic.ValidationError: If `options` is malformed and this call
                starts a new execution.
        """
        if self._closed:
            raise ExecutorClosedError("Executor is closed")

        existing = self._pending.get(key)
        if existing is not None:
            if not existing.settled:
                existing.waiters += 1
                self._metrics.incr(EXECUTIONS_COALESCED)
                logger.debug(
                    "Joined in-flight execution for key %r (waiters=%d)",
                    key,
                    existing.waiters,
                )
                return existing.future
            # Shared future was cancelled by a caller and cleanup has not run yet.
            self._abandon(existing)

        resolved = coerce_options(options, self._defaults)
        loop = asyncio.get_running_loop()
        future: asyncio.Future[T] = loop.create_future()
        future.add_done_callback(_consume_future_exception)
        entry = PendingEntry(key=key, future=future, options=resolved)
        self._pending.insert(entry)

        runner = loop.create_task(self._run(entry, operation))
        entry.runner = runner
        self._runners.add(runner)
        runner.add_done_callback(self._runners.discard)

        if resolved.timeout_s is not None:
            entry.timer = loop.call_later(resolved.timeout_s, self._on_timeout, entry)
        future.add_done_callback(functools.partial(self._on_future_done, entry))

        self._metrics.incr(EXECUTIONS_STARTED)
        logger.debug(
            "Started execution for key %r (retries=%d, timeout_ms=%s)",
            key,
            resolved.retries,
            resolved.timeout_ms,
        )
        return future

    async def execute(
        self,
        key: Hashable,
        operation: TaskOperation[T],
        options: OptionsInput = None,
    ) -> T:
        """
        Run `operation` under `key`, or join the execution already in flight.

        Cancelling the awaiting caller does not cancel the shared execution.
        """
        return await asyncio.shield(self.submit(key, operation, options))

    def close(self) -> None:
        """Cancel every pending execution and refuse new submissions."""
        self._closed = True
        entries = self._pending.pop_all()
        for entry in entries:
            self._settle(entry, "cancelled")
        for runner in list(self._runners):
            runner.cancel()
        if entries:
            logger.info("Closed executor with %d pending execution(s)", len(entries))

    async def aclose(self) -> None:
        """Close, then wait for every attempt loop to unwind."""
        runners = list(self._runners)
        self.close()
        if runners:
            await asyncio.gather(*runners, return_exceptions=True)

    async def __aenter__(self) -> "BatchedTaskExecutor":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def _run(self, entry: PendingEntry, operation: TaskOperation[Any]) -> None:
        max_attempts = entry.options.max_attempts
        try:
            for attempt in range(1, max_attempts + 1):
                if entry.settled:
                    return
                entry.attempts = attempt
                entry.state = "attempting"
                outcome = await run_attempt(operation)
                if entry.settled:
                    self._discard_late(entry, outcome)
                    return
                if outcome.ok:
                    self._settle(entry, "succeeded", value=outcome.value)
                    return
                if attempt < max_attempts:
                    delay = linear_backoff_delay(
                        attempt,
                        self._settings.backoff_step_s,
                        self._settings.backoff_max_s,
                    )
                    entry.state = "retrying"
                    self._metrics.incr(ATTEMPTS_RETRIED)
                    logger.warning(
                        "Task %r attempt %d/%d failed, retrying in %.3fs: %s",
                        entry.key,
                        attempt,
                        max_attempts,
                        delay,
                        outcome.error,
                    )
                    await asyncio.sleep(delay)
                    continue
                self._settle(entry, "failed", error=outcome.error)
                return
            self._settle(
                entry,
                "failed",
                error=RetryExhaustedError(entry.key, entry.attempts),
            )
        except asyncio.CancelledError:
            self._settle(entry, "cancelled")
            raise

    def _settle(
        self,
        entry: PendingEntry,
        state: ExecutionState,
        *,
        value: Any = None,
        error: BaseException | None = None,
    ) -> bool:
        """
        Remove `entry` and settle its future, unless it is already settled.

        Returns whether this call performed the settlement.
        """
        if entry.settled:
            return False
        self._pending.remove(entry)
        entry.disarm()
        entry.state = state
        if state == "cancelled":
            entry.future.cancel()
        elif error is not None:
            entry.future.set_exception(error)
        else:
            entry.future.set_result(value)
        self._metrics.incr(_SETTLED_METRICS[state])
        if state == "succeeded":
            logger.debug(
                "Task %r succeeded after %d attempt(s) in %.3fs",
                entry.key,
                entry.attempts,
                entry.elapsed_s,
            )
        elif state == "failed":
            logger.debug(
                "Task %r failed after %d attempt(s) in %.3fs: %s",
                entry.key,
                entry.attempts,
                entry.elapsed_s,
                error,
            )
        return True

    def _on_timeout(self, entry: PendingEntry) -> None:
        entry.timer = None
        timeout_ms = entry.options.timeout_ms
        if entry.settled or timeout_ms is None:
            return
        interrupted = entry.state
        logger.info(
            "Task %r timed out after %gms (elapsed %.3fs, attempt %d, state=%s)",
            entry.key,
            timeout_ms,
            entry.elapsed_s,
            entry.attempts,
            interrupted,
        )
        self._settle(entry, "timed_out", error=TaskTimeoutError(entry.key, timeout_ms))
        # A runner sleeping between attempts has nothing left to finish.
        if entry.runner is not None and (
            entry.options.cancel_on_timeout or interrupted == "retrying"
        ):
            entry.runner.cancel()

    def _on_future_done(self, entry: PendingEntry, future: asyncio.Future[Any]) -> None:
        if future.cancelled() and entry.state not in TERMINAL_STATES:
            self._abandon(entry)

    def _abandon(self, entry: PendingEntry) -> None:
        """Clean up after a caller cancelled the shared future directly."""
        self._pending.remove(entry)
        entry.disarm()
        entry.state = "cancelled"
        self._metrics.incr(EXECUTIONS_CANCELLED)
        if entry.runner is not None:
            entry.runner.cancel()
        logger.info("Execution for key %r was cancelled by a caller", entry.key)

    def _discard_late(self, entry: PendingEntry, outcome: AttemptOutcome[Any]) -> None:
        self._metrics.incr(LATE_RESULTS_DISCARDED)
        logger.info(
            "Discarding late %s for key %r (state=%s)",
            "result" if outcome.ok else "error",
            entry.key,
            entry.state,
        )
