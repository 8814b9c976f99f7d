"""Detached background work that outlives the request that started it."""

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

logger = logging.getLogger(__name__)


class BackgroundDispatcher:
    """Spawns fire-and-forget coroutines on the running event loop.

    Each job runs inside its own error boundary: failures are logged and never
    reach the caller. References to running jobs are kept until they finish so
    the loop does not garbage-collect them mid-flight.
    """

    def __init__(self):
        self._tasks: set[asyncio.Task] = set()

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: str) -> asyncio.Task:
        task = asyncio.create_task(self._run(coro, name), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, coro: Coroutine[Any, Any, Any], name: str) -> None:
        try:
            await coro
        except asyncio.CancelledError:
            logger.warning(f"Background job {name} was cancelled")
            raise
        except Exception:
            logger.exception(f"Background job {name} failed")

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for all currently running jobs (used at shutdown and in tests)."""
        if not self._tasks:
            return
        done, still_running = await asyncio.wait(set(self._tasks), timeout=timeout)
        if still_running:
            logger.warning(f"{len(still_running)} background jobs still running after drain")
