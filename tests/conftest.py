"""Shared fixtures."""

from collections.abc import AsyncGenerator, Generator

import pytest
from aioresponses import aioresponses as aioresponses_cls
from fakeredis import FakeAsyncRedis, FakeServer

from overseer.queue import RedisQueue


@pytest.fixture
def aioresponses() -> Generator[aioresponses_cls, None, None]:
    """Mock every aiohttp request made during the test."""
    with aioresponses_cls() as mocked:
        yield mocked


@pytest.fixture
def redis_server() -> FakeServer:
    """Create a fake Redis server private to the test."""
    return FakeServer()


@pytest.fixture
async def redis_client(redis_server: FakeServer) -> AsyncGenerator[FakeAsyncRedis, None]:
    client = FakeAsyncRedis(server=redis_server)
    yield client
    await client.aclose()


@pytest.fixture
def queue(redis_client: FakeAsyncRedis) -> RedisQueue:
    """Create a queue on the fake server."""
    return RedisQueue(client=redis_client)
