"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Executor settings and explicit config loading.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from .contracts import ExecuteOptions


def _env_float(name: str, default: float | None) -> float | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


@dataclass(frozen=True, slots=True)
class ExecutorSettings:
    """Executor-wide defaults; per-call options override them field by field."""

    backoff_step_s: float = 1.0
    backoff_max_s: float | None = None
    default_timeout_ms: float | None = None
    default_retries: int = 0

    def __post_init__(self) -> None:
        if self.backoff_step_s < 0:
            raise ValueError("backoff_step_s must be >= 0")
        if self.backoff_max_s is not None and self.backoff_max_s < 0:
            raise ValueError("backoff_max_s must be >= 0")

    @staticmethod
    def from_env() -> "ExecutorSettings":
        """Load settings from environment variables."""
        return ExecutorSettings(
            backoff_step_s=_env_float("BATCHEXEC_BACKOFF_STEP_S", 1.0) or 0.0,
            backoff_max_s=_env_float("BATCHEXEC_BACKOFF_MAX_S", None),
            default_timeout_ms=_env_float("BATCHEXEC_DEFAULT_TIMEOUT_MS", None),
            default_retries=_env_int("BATCHEXEC_DEFAULT_RETRIES", 0),
        )

    def default_options(self) -> ExecuteOptions:
        """Build the options applied when a caller passes none."""
        return ExecuteOptions(
            timeout_ms=self.default_timeout_ms,
            retries=self.default_retries,
        )
