"""Detached background work — fire-and-forget with a timeout and logging.

Used for best-effort side effects that must never sit on a request's response
path (CRM invoice propagation). Each job runs in its own asyncio task, bounded
by `timeout`; exceptions and timeouts are logged and swallowed.

Tasks are held in a set so they are not garbage-collected mid-flight, and
`drain()` lets the app lifespan wait for in-flight jobs on shutdown.
"""

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

logger = logging.getLogger("vd.tasks")


class BackgroundDispatcher:
    def __init__(self, default_timeout: float = 30.0) -> None:
        self._default_timeout = default_timeout
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(
        self,
        name: str,
        job: Coroutine[Any, Any, Any],
        timeout: float | None = None,
    ) -> asyncio.Task[None]:
        """Schedule `job` and return immediately. The caller never awaits the outcome."""
        task = asyncio.create_task(
            self._run(name, job, timeout or self._default_timeout), name=name
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(
        self, name: str, job: Coroutine[Any, Any, Any], timeout: float
    ) -> None:
        try:
            await asyncio.wait_for(job, timeout=timeout)
        except asyncio.TimeoutError:
            logger.error("background job %s timed out after %.1fs", name, timeout)
        except asyncio.CancelledError:
            logger.warning("background job %s cancelled", name)
            raise
        except Exception:
            logger.exception("background job %s failed", name)

    async def drain(self, timeout: float = 10.0) -> None:
        """Wait for in-flight jobs; cancel whatever is still running after `timeout`."""
        if not self._tasks:
            return
        tasks = list(self._tasks)
        _, still_running = await asyncio.wait(tasks, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            await asyncio.gather(*still_running, return_exceptions=True)
            logger.warning("cancelled %d background jobs on shutdown", len(still_running))
