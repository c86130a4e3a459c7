"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Request-coalescing task executor.

Concurrent calls that share a task key share one underlying execution, with
optional per-execution timeout and retry with linear backoff.

Quick start::

    from batchexec import BatchedTaskExecutor

    executor = BatchedTaskExecutor()
    first, second = await asyncio.gather(
        executor.execute("config", load_config, {"retries": 2}),
        executor.execute("config", load_config),
    )
    # load_config ran once; first == second
"""

from .backoff import linear_backoff_delay
from .contracts import ExecuteOptions, OptionsInput, coerce_options
from .errors import (
    BatchExecError,
    ExecutorClosedError,
    RetryExhaustedError,
    TaskTimeoutError,
)
from .executor import BatchedTaskExecutor
from .metrics import (
    EXECUTOR_COUNTERS,
    ExecutorMetrics,
    NoOpExecutorMetrics,
    PrometheusExecutorMetrics,
)
from .outcome import (
    AttemptFailure,
    AttemptOutcome,
    AttemptSuccess,
    TaskOperation,
    run_attempt,
)
from .pending import TERMINAL_STATES, ExecutionState, PendingEntry, PendingMap
from .settings import ExecutorSettings

__all__ = [
    "BatchedTaskExecutor",
    "ExecuteOptions",
    "OptionsInput",
    "coerce_options",
    "ExecutorSettings",
    "AttemptSuccess",
    "AttemptFailure",
    "AttemptOutcome",
    "TaskOperation",
    "run_attempt",
    "PendingEntry",
    "PendingMap",
    "ExecutionState",
    "TERMINAL_STATES",
    "linear_backoff_delay",
    "BatchExecError",
    "TaskTimeoutError",
    "RetryExhaustedError",
    "ExecutorClosedError",
    "EXECUTOR_COUNTERS",
    "ExecutorMetrics",
    "NoOpExecutorMetrics",
    "PrometheusExecutorMetrics",
]
