from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

import pytest

from relay_backend.common.config import get_relay_config, get_session_config
from relay_backend.errors import SendError


class FakeClient:
    """Scripted client connection: frames are fed in, sent messages are recorded."""

    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []
        self.is_open = True
        self._frames: asyncio.Queue[bytes | str | None] = asyncio.Queue()

    def feed(self, frame: bytes | str) -> None:
        self._frames.put_nowait(frame)

    def disconnect(self) -> None:
        self._frames.put_nowait(None)

    async def send_json(self, message: dict[str, Any]) -> None:
        if not self.is_open:
            raise SendError("client closed")
        self.sent.append(message)

    def __aiter__(self) -> FakeClient:
        return self

    async def __anext__(self) -> bytes | str:
        frame = await self._frames.get()
        if frame is None:
            self.is_open = False
            raise StopAsyncIteration
        return frame


class FakeUpstream:
    """Stand-in for UpstreamConnection. Pushed items are yielded in order; exceptions are raised."""

    def __init__(self) -> None:
        self.sent: list[bytes | str] = []
        self.is_open = True
        self.closed = False
        self._incoming: asyncio.Queue[Any] = asyncio.Queue()

    def push(self, item: str | Exception) -> None:
        self._incoming.put_nowait(item)

    def finish(self) -> None:
        self._incoming.put_nowait(None)

    async def send_str(self, data: str) -> None:
        if not self.is_open:
            raise SendError("upstream closed")
        self.sent.append(data)

    async def send_bytes(self, data: bytes) -> None:
        if not self.is_open:
            raise SendError("upstream closed")
        self.sent.append(data)

    def __aiter__(self) -> FakeUpstream:
        return self

    async def __anext__(self) -> str:
        item = await self._incoming.get()
        if item is None:
            self.is_open = False
            raise StopAsyncIteration
        if isinstance(item, Exception):
            self.is_open = False
            raise item
        return item

    async def close(self) -> None:
        self.closed = True
        self.is_open = False
        self._incoming.put_nowait(None)


class FakeBootstrapper:
    def __init__(
        self,
        upstream: FakeUpstream,
        *,
        error: Exception | None = None,
        gate: asyncio.Event | None = None,
    ) -> None:
        self.upstream = upstream
        self.error = error
        self.gate = gate
        self.connect_calls = 0
        self.cancelled = False

    async def connect(self) -> FakeUpstream:
        self.connect_calls += 1
        try:
            if self.gate is not None:
                await self.gate.wait()
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        if self.error is not None:
            raise self.error
        return self.upstream


async def _wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.001)

    await asyncio.wait_for(_poll(), timeout=timeout)


@pytest.fixture
def client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def bootstrapper(upstream: FakeUpstream) -> FakeBootstrapper:
    return FakeBootstrapper(upstream)


@pytest.fixture
def wait_until() -> Callable[..., Any]:
    return _wait_until


@pytest.fixture(autouse=True)
def _clear_config_caches():
    get_relay_config.cache_clear()
    get_session_config.cache_clear()
    yield
    get_relay_config.cache_clear()
    get_session_config.cache_clear()
