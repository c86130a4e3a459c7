"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Error taxonomy surfaced by the batched task executor.
"""

from __future__ import annotations

from collections.abc import Hashable


class BatchExecError(RuntimeError):
    """Base class for errors originating from the executor itself."""


class TaskTimeoutError(BatchExecError, TimeoutError):
    """Raised to every waiter when an execution outlives its timeout."""

    def __init__(self, key: Hashable, timeout_ms: float) -> None:
        super().__init__(f"Task {key!r} timed out after {timeout_ms:g}ms")
        self.key = key
        self.timeout_ms = timeout_ms


class RetryExhaustedError(BatchExecError):
    """Raised when the attempt loop ends without a success or a captured error."""

    def __init__(self, key: Hashable, attempts: int) -> None:
        super().__init__(f"Task {key!r} failed after {attempts} attempt(s)")
        self.key = key
        self.attempts = attempts


class ExecutorClosedError(BatchExecError):
    """Raised when submitting to an executor that has been closed."""
