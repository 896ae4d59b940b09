"""Client bridge for the OpenAI Realtime API."""

from __future__ import annotations

from fastapi import WebSocket

from relay_backend.relay.session_pair import Bootstrapper, SessionPair

from .base import BaseRelayBridge, FastAPIWebSocketAdapter


class RealtimeRelayBridge(BaseRelayBridge):
    """Pairs every client WebSocket with its own realtime API session."""

    def __init__(self, bootstrapper: Bootstrapper):
        self._bootstrapper = bootstrapper

    async def handle(self, websocket: WebSocket) -> None:
        adapter = FastAPIWebSocketAdapter(websocket)
        await SessionPair(adapter, self._bootstrapper).run()
