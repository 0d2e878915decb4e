"""
Job Supervisor

Runs units of work outside the request that started them. Every task is
tracked until it finishes so the server can drain them before shutdown;
a response that has already been sent must never mean a dropped job.
"""

import asyncio
import logging
from typing import Coroutine, Optional, Set

logger = logging.getLogger(__name__)


class JobSupervisor:
    """Holds a strong reference to every running job task."""

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    @property
    def active_count(self) -> int:
        return len(self._tasks)

    def launch(self, job_id: str, unit: Coroutine) -> asyncio.Task:
        """Start the unit of work on the running event loop and track it."""
        task = asyncio.create_task(unit, name=f"job:{job_id}")
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        logger.debug(f"[Supervisor] Launched {job_id} ({self.active_count} active)")
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning(f"[Supervisor] {task.get_name()} was cancelled")
            return
        error = task.exception()
        if error is not None:
            # Units record their own failures; reaching here is a bug
            logger.error(f"[Supervisor] {task.get_name()} crashed: {error!r}")

    async def drain(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for all running jobs.

        Returns True when everything finished, False if the timeout hit
        first (the remaining tasks keep running).
        """
        if not self._tasks:
            return True

        pending_count = len(self._tasks)
        logger.info(f"[Supervisor] Draining {pending_count} job(s)")
        _, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        if pending:
            logger.warning(f"[Supervisor] {len(pending)} job(s) still running after {timeout}s")
            return False
        return True
