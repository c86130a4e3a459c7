"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Metrics adapters for executor observability.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol

EXECUTIONS_STARTED = "executions_started_total"
EXECUTIONS_COALESCED = "executions_coalesced_total"
ATTEMPTS_RETRIED = "attempts_retried_total"
EXECUTIONS_SUCCEEDED = "executions_succeeded_total"
EXECUTIONS_FAILED = "executions_failed_total"
EXECUTIONS_TIMED_OUT = "executions_timed_out_total"
EXECUTIONS_CANCELLED = "executions_cancelled_total"
LATE_RESULTS_DISCARDED = "late_results_discarded_total"

EXECUTOR_COUNTERS: dict[str, str] = {
    EXECUTIONS_STARTED: "Executions admitted for a key with nothing in flight.",
    EXECUTIONS_COALESCED: "Calls that joined an execution already in flight.",
    ATTEMPTS_RETRIED: "Failed attempts followed by a backoff and another attempt.",
    EXECUTIONS_SUCCEEDED: "Executions settled with a value.",
    EXECUTIONS_FAILED: "Executions settled with the operation's last error.",
    EXECUTIONS_TIMED_OUT: "Executions settled by their timeout.",
    EXECUTIONS_CANCELLED: "Executions cancelled by disposal or by a caller.",
    LATE_RESULTS_DISCARDED: "Attempt outcomes that arrived after settlement.",
}


class ExecutorMetrics(Protocol):
    """Counter sink the executor reports lifecycle events to."""

    def incr(
        self, name: str, value: int = 1, *, tags: Mapping[str, str] | None = None
    ) -> None:
        """Increment counter `name`, one of `EXECUTOR_COUNTERS`."""


class NoOpExecutorMetrics:
    """Default sink when no metrics backend is provided."""

    def incr(
        self, name: str, value: int = 1, *, tags: Mapping[str, str] | None = None
    ) -> None:
        _ = name
        _ = value
        _ = tags


class PrometheusExecutorMetrics(ExecutorMetrics):
    """
    Prometheus counters for the executor.

    Every counter in `EXECUTOR_COUNTERS` is registered up front, so scrapes
    show zeros before the first event. Requires `prometheus_client`.

    Args:
        namespace: Metric name prefix.
        registry: Collector registry; defaults to the global one.
        const_labels: Label values every counter carries, such as the
            owning service. `incr` tags may override the values but not add
            new label names.
    """

    def __init__(
        self,
        *,
        namespace: str = "batchexec",
        registry: Any | None = None,
        const_labels: Mapping[str, str] | None = None,
    ) -> None:
        try:
            from prometheus_client import REGISTRY, Counter
        except ModuleNotFoundError as exc:  # pragma: no cover
            raise RuntimeError(
                "PrometheusExecutorMetrics requires `prometheus_client` to be installed."
            ) from exc

        self._const_labels = dict(const_labels or {})
        self._label_names = tuple(sorted(self._const_labels))
        self._counters = {
            name: Counter(
                name=name,
                documentation=documentation,
                namespace=namespace,
                labelnames=self._label_names,
                registry=registry if registry is not None else REGISTRY,
            )
            for name, documentation in EXECUTOR_COUNTERS.items()
        }

    def incr(self, name: str, value: int = 1, *, tags: Mapping[str, str] | None = None) -> None:
        counter = self._counters.get(name)
        if counter is None:
            raise ValueError(f"Unknown executor counter {name!r}")
        values = {**self._const_labels, **(tags or {})}
        unknown = sorted(set(values) - set(self._label_names))
        if unknown:
            raise ValueError(f"Counter {name!r} got unknown labels {unknown}")
        if not self._label_names:
            counter.inc(value)
            return
        counter.labels(*(str(values[label]) for label in self._label_names)).inc(value)
