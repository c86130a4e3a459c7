#!/usr/bin/env python3
"""
Coalescing benchmark utility for dedup ratio/latency characterization.

Usage examples:
  PYTHONPATH=src python scripts/coalescing_benchmark.py
  PYTHONPATH=src python scripts/coalescing_benchmark.py --num-callers 5000 --num-keys 20 --failure-rate 0.2 --retries 2
"""

from __future__ import annotations

import argparse
import asyncio
import random
import statistics
import time

from batchexec import BatchedTaskExecutor, ExecuteOptions, ExecutorSettings


async def run_benchmark(
    *,
    num_callers: int,
    num_keys: int,
    latency_ms: float,
    failure_rate: float,
    retries: int,
    timeout_ms: float | None,
    backoff_step_ms: float,
) -> None:
    executor = BatchedTaskExecutor(
        ExecutorSettings(backoff_step_s=backoff_step_ms / 1000.0)
    )
    options = ExecuteOptions(timeout_ms=timeout_ms, retries=retries)
    invocations = 0
    latencies: list[float] = []
    failures = 0

    async def operation() -> bool:
        nonlocal invocations
        invocations += 1
        await asyncio.sleep(latency_ms / 1000.0)
        if random.random() < failure_rate:
            raise RuntimeError("simulated upstream failure")
        return True

    async def caller(index: int) -> None:
        nonlocal failures
        # Stagger arrivals so some callers join and others start fresh executions.
        await asyncio.sleep(random.random() * latency_ms / 1000.0 * 4)
        started = time.perf_counter()
        try:
            await executor.execute(f"key-{index % num_keys}", operation, options)
        except Exception:  # noqa: BLE001
            failures += 1
        latencies.append(time.perf_counter() - started)

    started = time.time()
    async with executor:
        await asyncio.gather(*(caller(i) for i in range(num_callers)))
    elapsed = time.time() - started

    p50 = statistics.median(latencies) if latencies else 0.0
    p95 = (
        sorted(latencies)[int(0.95 * (len(latencies) - 1))]
        if latencies
        else 0.0
    )
    dedup_ratio = num_callers / invocations if invocations else 0.0

    print(f"callers={num_callers}")
    print(f"keys={num_keys}")
    print(f"operation_latency_ms={latency_ms:.2f}")
    print(f"underlying_invocations={invocations}")
    print(f"dedup_ratio={dedup_ratio:.2f}")
    print(f"caller_failures={failures}")
    print(f"elapsed_s={elapsed:.3f}")
    print(f"caller_latency_p50_ms={p50 * 1000:.2f}")
    print(f"caller_latency_p95_ms={p95 * 1000:.2f}")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Coalescing benchmark utility")
    parser.add_argument("--num-callers", type=int, default=1000)
    parser.add_argument("--num-keys", type=int, default=10)
    parser.add_argument("--latency-ms", type=float, default=20.0)
    parser.add_argument("--failure-rate", type=float, default=0.0)
    parser.add_argument("--retries", type=int, default=0)
    parser.add_argument("--timeout-ms", type=float, default=None)
    parser.add_argument("--backoff-step-ms", type=float, default=10.0)
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    asyncio.run(
        run_benchmark(
            num_callers=args.num_callers,
            num_keys=args.num_keys,
            latency_ms=args.latency_ms,
            failure_rate=args.failure_rate,
            retries=args.retries,
            timeout_ms=args.timeout_ms,
            backoff_step_ms=args.backoff_step_ms,
        )
    )


if __name__ == "__main__":
    main()
