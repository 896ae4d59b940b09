"""Shared client-side bridge utilities."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Dict

from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from relay_backend.errors import SendError


class FastAPIWebSocketAdapter:
    """Client connection handle over a FastAPI WebSocket.

    Iterating yields each received frame in arrival order: ``str`` for text
    frames and ``bytes`` for binary frames. Iteration stops when the client
    disconnects.
    """

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket
        self.headers: Dict[str, str] = dict(websocket.headers)
        self._closed = False

    @property
    def is_open(self) -> bool:
        return (
            not self._closed
            and self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    async def send_str(self, data: str) -> None:
        if not self.is_open:
            raise SendError("client connection is not open")
        try:
            await self.websocket.send_text(data)
        except (WebSocketDisconnect, RuntimeError) as exc:
            self._closed = True
            raise SendError("client connection closed while sending") from exc

    async def send_json(self, data: Dict[str, Any]) -> None:
        await self.send_str(json.dumps(data))

    async def send_bytes(self, data: bytes) -> None:
        if not self.is_open:
            raise SendError("client connection is not open")
        try:
            await self.websocket.send_bytes(data)
        except (WebSocketDisconnect, RuntimeError) as exc:
            self._closed = True
            raise SendError("client connection closed while sending") from exc

    def __aiter__(self) -> AsyncIterator[bytes | str]:
        return self

    async def __anext__(self) -> bytes | str:
        while True:
            if self._closed:
                raise StopAsyncIteration
            try:
                raw = await self.websocket.receive()
            except (WebSocketDisconnect, RuntimeError):
                self._closed = True
                raise StopAsyncIteration
            if raw.get("type") == "websocket.disconnect":
                self._closed = True
                raise StopAsyncIteration
            if raw.get("text") is not None:
                return raw["text"]
            if raw.get("bytes") is not None:
                return raw["bytes"]

    async def close(self, *, code: int = 1000, reason: str | None = None) -> None:
        if self._closed:
            return
        self._closed = True
        if self.websocket.application_state == WebSocketState.CONNECTED:
            await self.websocket.close(code=code, reason=reason or "")


class BaseRelayBridge(ABC):
    """Interface for client ↔ realtime API bridges."""

    @abstractmethod
    async def handle(self, websocket: WebSocket) -> None:
        """Handle an accepted FastAPI WebSocket for the lifetime of the call."""
        raise NotImplementedError
