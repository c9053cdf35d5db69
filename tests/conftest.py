"""Shared pytest fixtures for the tam-data-hub test suite."""

from __future__ import annotations

import asyncio
import fnmatch
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from tamdata.config.settings import Settings
from tamdata.interfaces.market_data_provider import IMarketDataProvider
from tamdata.models.cache import RedisCacheConfig

# ---------------------------------------------------------------------------
# Time
# ---------------------------------------------------------------------------


class FakeClock:
    """Manually advanced Unix-seconds clock."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Redis double
# ---------------------------------------------------------------------------


class FakePubSub:
    """Subset of ``redis.asyncio.client.PubSub`` used by RedisCacheProvider."""

    def __init__(self, server: FakeRedis) -> None:
        self._server = server
        self._queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        self.channels: set[str] = set()
        self.closed = False

    async def subscribe(self, *channels: str) -> None:
        self._server.check()
        self.channels.update(channels)
        self._server.subscribers.append(self)

    def deliver(self, channel: str, data: str) -> None:
        if channel in self.channels and not self.closed:
            self._queue.put_nowait({"type": "message", "channel": channel, "data": data})

    async def listen(self) -> AsyncIterator[dict[str, Any]]:
        for channel in sorted(self.channels):
            yield {"type": "subscribe", "channel": channel, "data": 1}
        while not self.closed:
            yield await self._queue.get()

    async def aclose(self) -> None:
        self.closed = True
        if self in self._server.subscribers:
            self._server.subscribers.remove(self)


class FakeRedis:
    """In-memory stand-in for ``redis.asyncio.Redis`` (decode_responses=True).

    Expiry follows the injected clock.  Setting ``fail = True`` makes every
    command raise a connection error, as a dead server would.
    """

    def __init__(self, clock: FakeClock | None = None) -> None:
        self._clock = clock or FakeClock()
        self._data: dict[str, tuple[str, float | None]] = {}
        self.fail = False
        self.published: list[tuple[str, str]] = []
        self.subscribers: list[FakePubSub] = []
        self.closed = False

    def check(self) -> None:
        if self.fail:
            raise RedisConnectionError("Connection refused")

    def _live(self, key: str) -> str | None:
        item = self._data.get(key)
        if item is None:
            return None
        value, expires_at = item
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return None
        return value

    def raw_keys(self) -> list[str]:
        return [key for key in list(self._data) if self._live(key) is not None]

    async def ping(self) -> bool:
        self.check()
        return True

    async def get(self, key: str) -> str | None:
        self.check()
        return self._live(key)

    async def set(
        self, key: str, value: str, px: int | None = None, xx: bool = False
    ) -> bool | None:
        self.check()
        if xx and self._live(key) is None:
            return None
        expires_at = self._clock() + px / 1000 if px else None
        self._data[key] = (value, expires_at)
        return True

    async def delete(self, *keys: str) -> int:
        self.check()
        deleted = 0
        for key in keys:
            if self._live(key) is not None:
                del self._data[key]
                deleted += 1
        return deleted

    async def exists(self, *keys: str) -> int:
        self.check()
        return sum(1 for key in keys if self._live(key) is not None)

    async def scan_iter(self, match: str | None = None) -> AsyncIterator[str]:
        self.check()
        for key in self.raw_keys():
            if match is None or fnmatch.fnmatchcase(key, match):
                yield key

    async def publish(self, channel: str, message: str) -> int:
        self.check()
        self.published.append((channel, message))
        receivers = [sub for sub in self.subscribers if channel in sub.channels]
        for sub in receivers:
            sub.deliver(channel, message)
        return len(receivers)

    def pubsub(self) -> FakePubSub:
        return FakePubSub(self)

    async def info(self, section: str | None = None) -> dict[str, Any]:
        self.check()
        return {"used_memory": 1024, "used_memory_human": "1.00K", "maxmemory": 0}

    async def aclose(self) -> None:
        self.closed = True


class SlowFakeRedis(FakeRedis):
    """A server whose reads never answer in time."""

    async def get(self, key: str) -> str | None:
        await asyncio.sleep(10)
        return await super().get(key)


class SlowPingRedis(FakeRedis):
    """A server whose PING takes ``ping_delay`` seconds (e.g. a blackholed connect)."""

    def __init__(self, clock: FakeClock | None = None, ping_delay: float = 10.0) -> None:
        super().__init__(clock)
        self.ping_delay = ping_delay

    async def ping(self) -> bool:
        if self.ping_delay:
            await asyncio.sleep(self.ping_delay)
        return await super().ping()


# ---------------------------------------------------------------------------
# Provider double
# ---------------------------------------------------------------------------


class StubProvider(IMarketDataProvider):
    """Provider double that records every fetch."""

    def __init__(
        self,
        name: str,
        available: bool = True,
        result: Any = None,
        error: Exception | None = None,
    ) -> None:
        self._name = name
        self._available = available
        self._result = result
        self._error = error
        self.calls: list[tuple[str, str]] = []

    def get_provider_name(self) -> str:
        return self._name

    def is_available(self) -> bool:
        return self._available

    async def fetch_market_size(self, identifier: str, region: str) -> Any:
        self.calls.append((identifier, region))
        if self._error is not None:
            raise self._error
        return self._result


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_redis(clock: FakeClock) -> FakeRedis:
    return FakeRedis(clock)


@pytest.fixture
def redis_config() -> RedisCacheConfig:
    """Remote-cache settings without a background reconnect supervisor."""
    return RedisCacheConfig(max_reconnect_attempts=0)


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    return tmp_path / "cache_data"


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


def make_settings(**overrides: Any) -> Settings:
    """Build a Settings instance that ignores the developer's .env file."""
    defaults: dict[str, Any] = {
        "alpha_vantage_api_key": "",
        "fred_api_key": "",
        "bls_api_key": "",
        "census_api_key": "",
    }
    defaults.update(overrides)
    return Settings(_env_file=None, **defaults)


async def drain_loop(rounds: int = 5) -> None:
    """Let background tasks (pub/sub listeners) run."""
    for _ in range(rounds):
        await asyncio.sleep(0)
