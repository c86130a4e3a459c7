"""
profile_client.py — Data-fetching client built on the batched executor.

Shows the intended layering: a higher-level client derives keys from its
requests and hands the executor a zero-argument operation. Concurrent
lookups of the same profile share one upstream call.

Usage:
    PYTHONPATH=src python examples/profile_client.py
"""

import asyncio
import logging

from batchexec import BatchedTaskExecutor, ExecutorSettings


class ProfileClient(BatchedTaskExecutor):
    """Fetch user profiles, coalescing concurrent lookups per user."""

    def __init__(self) -> None:
        super().__init__(ExecutorSettings(backoff_step_s=0.1))
        self.upstream_calls = 0

    async def _fetch(self, user_id: int) -> dict[str, object]:
        self.upstream_calls += 1
        await asyncio.sleep(0.2)
        return {"id": user_id, "name": f"user-{user_id}"}

    async def get_profile(self, user_id: int) -> dict[str, object]:
        return await self.execute(
            ("profile", user_id),
            lambda: self._fetch(user_id),
            {"timeout": 2000, "retries": 2},
        )


async def main() -> None:
    logging.basicConfig(level=logging.DEBUG)
    async with ProfileClient() as client:
        profiles = await asyncio.gather(
            *(client.get_profile(user_id) for user_id in (1, 1, 2, 1, 2))
        )
        print(profiles)
        print(f"upstream calls: {client.upstream_calls}")


if __name__ == "__main__":
    asyncio.run(main())
