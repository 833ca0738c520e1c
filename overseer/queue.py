"""Named FIFO queues shared by the worker, the router and the producers."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Protocol

from redis.asyncio import Redis
from redis.exceptions import RedisError

from overseer.config import RedisConfig

log = logging.getLogger(__name__)

JOBS_QUEUE = "overseer.jobs"
RESULTS_QUEUE = "overseer.results"


class QueueError(Exception):
    """Raised when the queue server cannot be reached or rejects a command."""


class JobQueue(Protocol):
    """Blocking-pop and push of opaque payloads on named queues."""

    async def pop(self, name: str, timeout: float) -> bytes | None:
        """Pop the oldest payload, waiting at most timeout seconds.

        A timeout of 0 waits forever. Returns None when the wait elapses.
        """

    async def push(self, name: str, payload: bytes) -> None:
        """Append a payload to the queue."""

    async def ping(self) -> None:
        """Check that the queue server is reachable."""


@dataclass(frozen=True, kw_only=True)
class RedisQueue:
    """Queues stored as Redis lists: BLPOP to pop, RPUSH to push."""

    client: Redis = field(repr=False)

    @classmethod
    @asynccontextmanager
    async def from_config(cls, config: RedisConfig) -> AsyncGenerator["RedisQueue", None]:
        """Create a queue with a managed connection lifecycle."""
        client = Redis(
            host=config.host,
            port=config.port,
            db=config.db,
            password=config.password.get_secret_value() or None,
        )
        try:
            yield cls(client=client)
        finally:
            await client.aclose()

    async def pop(self, name: str, timeout: float) -> bytes | None:
        try:
            item = await self.client.blpop([name], timeout=timeout)
        except RedisError as exc:
            raise QueueError(f"Failed to pop from {name}: {exc}") from exc

        if item is None:
            return None
        _, payload = item
        return payload

    async def push(self, name: str, payload: bytes) -> None:
        try:
            await self.client.rpush(name, payload)
        except RedisError as exc:
            raise QueueError(f"Failed to push to {name}: {exc}") from exc

    async def ping(self) -> None:
        try:
            await self.client.ping()
        except RedisError as exc:
            raise QueueError(f"Redis connection failed: {exc}") from exc
