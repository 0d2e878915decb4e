"""
Failure handling shared by the networked storage backends.

Every call to Redis or the REST KV service runs inside `RemoteGuard.call`.
Transport errors come out as StorageError. After `threshold` consecutive
transport errors the guard stops sending traffic for `cooldown` seconds and
fails fast, then lets the next call through as a probe of the service.
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import Callable, Optional, Tuple, Type

from briefdesk.errors import StorageError

logger = logging.getLogger(__name__)


class RemoteGuard:

    def __init__(
        self,
        service: str,
        transport_errors: Tuple[Type[BaseException], ...],
        threshold: int = 5,
        cooldown: float = 30.0,
        clock: Callable[[], float] = time.time,
    ):
        if threshold < 1:
            raise ValueError("threshold must be at least 1")
        self.service = service
        self.transport_errors = transport_errors
        self.threshold = threshold
        self.cooldown = cooldown
        self._clock = clock
        self.consecutive_failures = 0
        self.blocked_until: Optional[float] = None

    @property
    def is_blocked(self) -> bool:
        return self.blocked_until is not None and self._clock() < self.blocked_until

    def _record_failure(self) -> None:
        self.consecutive_failures += 1
        # A failed probe after the cool-down blocks again straight away
        if self.consecutive_failures >= self.threshold:
            self.blocked_until = self._clock() + self.cooldown
            logger.warning(
                f"{self.service}: {self.consecutive_failures} consecutive failures, "
                f"failing fast for {self.cooldown:.0f}s"
            )

    def _record_success(self) -> None:
        if self.blocked_until is not None:
            logger.info(f"{self.service}: reachable again")
        self.consecutive_failures = 0
        self.blocked_until = None

    @asynccontextmanager
    async def call(self, operation: str, target: Optional[str] = None):
        details = {"operation": operation}
        if target is not None:
            details["target"] = target

        if self.is_blocked:
            raise StorageError(
                f"{self.service} unavailable (circuit open) during {operation}",
                details=details,
            )

        try:
            yield
        except self.transport_errors as e:
            self._record_failure()
            where = f" for {target}" if target is not None else ""
            raise StorageError(f"{self.service} {operation} failed{where}: {e}", details=details) from e
        self._record_success()
