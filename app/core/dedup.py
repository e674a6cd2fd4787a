"""Single-flight deduplication of concurrent identical requests."""

import asyncio
import hashlib
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from app.core.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class PendingRequest(Generic[T]):
    """An in-flight call shared by every caller using the same key."""

    future: "asyncio.Future[T]"
    started_at: float = field(default_factory=time.monotonic)


class RequestDeduplicator:
    """Collapse concurrent calls with the same key into one underlying call.

    The first caller for a key starts the operation; callers arriving while it
    is in flight (or within a short grace period after it settles) await the
    same future and observe the same result or exception.
    """

    def __init__(
        self,
        ttl: float = 5.0,
        grace_period: float = 0.1,
        name: str = "default",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the deduplicator.

        Args:
            ttl: Seconds a pending entry may be joined before it is considered stale
            grace_period: Seconds an entry is kept after its call settles
            name: Label used in logs
            clock: Monotonic time source, injectable for tests
        """
        self.ttl = ttl
        self.grace_period = grace_period
        self.name = name
        self._clock = clock
        self._pending: dict[str, PendingRequest[Any]] = {}
        self._cleanup_task: asyncio.Task[None] | None = None

    @classmethod
    def from_settings(cls, name: str) -> "RequestDeduplicator":
        return cls(
            ttl=settings.DEDUP_TTL_SECONDS,
            grace_period=settings.DEDUP_GRACE_SECONDS,
            name=name,
        )

    @staticmethod
    def hash_key(key: str) -> str:
        """Hash a caller key into the internal map key."""
        return hashlib.sha256(key.encode("utf-8")).hexdigest()

    async def execute(self, key: str, operation: Callable[[], Awaitable[T]]) -> T:
        """Run ``operation`` once per key among concurrent callers.

        Args:
            key: Logical identity of the request
            operation: Zero-argument coroutine function performing the call

        Returns:
            The shared result of the underlying call
        """
        request_key = self.hash_key(key)

        pending = self._pending.get(request_key)
        if pending is not None and self._clock() - pending.started_at < self.ttl:
            logger.debug(f"Deduplicating {self.name} request for key: {key}")
            return await asyncio.shield(pending.future)

        future: asyncio.Future[T] = asyncio.ensure_future(operation())
        entry = PendingRequest(future=future, started_at=self._clock())
        self._pending[request_key] = entry
        future.add_done_callback(
            lambda _: self._schedule_removal(request_key, entry)
        )
        return await asyncio.shield(future)

    def _schedule_removal(self, request_key: str, entry: PendingRequest[Any]) -> None:
        if self.grace_period <= 0:
            self._remove(request_key, entry)
            return
        loop = asyncio.get_running_loop()
        loop.call_later(self.grace_period, self._remove, request_key, entry)

    def _remove(self, request_key: str, entry: PendingRequest[Any]) -> None:
        # A newer call may have replaced the entry; only drop our own
        if self._pending.get(request_key) is entry:
            del self._pending[request_key]

    def cleanup_expired(self) -> int:
        """Drop entries older than the TTL, settled or not.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        stale = [
            key
            for key, pending in self._pending.items()
            if now - pending.started_at > self.ttl
        ]
        for key in stale:
            del self._pending[key]
        if stale:
            logger.debug(
                f"Cleaned up {len(stale)} expired pending {self.name} requests"
            )
        return len(stale)

    async def _cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(self.ttl)
            self.cleanup_expired()

    def start_cleanup(self) -> None:
        """Start the periodic sweep on the running event loop."""
        if self._cleanup_task is None or self._cleanup_task.done():
            self._cleanup_task = asyncio.create_task(self._cleanup_loop())

    async def stop_cleanup(self) -> None:
        """Cancel the periodic sweep."""
        task, self._cleanup_task = self._cleanup_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def get_stats(self) -> dict[str, float]:
        """Pending entry count and configured TTL."""
        return {"pending_requests": len(self._pending), "ttl": self.ttl}

    def clear(self) -> None:
        """Forget every pending entry without cancelling the underlying calls."""
        self._pending.clear()
