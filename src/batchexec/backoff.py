"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: backoff.py.
"""

from __future__ import annotations


def linear_backoff_delay(
    attempt: int,
    step_s: float,
    max_s: float | None = None,
) -> float:
    """
    Return the delay to wait after failed attempt number `attempt`.

    Attempts are counted from 1, so with a 1s step the schedule is
    1s, 2s, 3s, ...
    """
    if attempt < 1:
        raise ValueError(f"attempt must be >= 1, got {attempt}")
    delay = max(0.0, step_s) * attempt
    if max_s is not None:
        delay = min(delay, max_s)
    return delay
