"""Outbound connection to the OpenAI Realtime API."""

from __future__ import annotations

import asyncio
import json
import logging
import contextlib
from typing import Any, AsyncIterator, Dict, Optional

import aiohttp
from aiohttp import ClientWebSocketResponse, WSMsgType

from relay_backend.common.config import RelayConfig
from relay_backend.errors import SendError, UpstreamConnectionError

from .helpers import build_session_update

logger = logging.getLogger(__name__)


class UpstreamConnection:
    """Upstream connection handle.

    Iterating yields the text payload of every upstream message. Binary
    messages are skipped, a transport error raises UpstreamConnectionError and
    a close frame ends the iteration.
    """

    def __init__(self, session: aiohttp.ClientSession, ws: ClientWebSocketResponse):
        self._session = session
        self._ws = ws
        self._closing = False

    @property
    def is_open(self) -> bool:
        return not self._ws.closed

    async def send_str(self, data: str) -> None:
        if not self.is_open:
            raise SendError("upstream connection is not open")
        try:
            await self._ws.send_str(data)
        except (ConnectionResetError, aiohttp.ClientError) as exc:
            raise SendError("upstream connection closed while sending") from exc

    async def send_json(self, data: Dict[str, Any]) -> None:
        await self.send_str(json.dumps(data))

    async def send_bytes(self, data: bytes) -> None:
        if not self.is_open:
            raise SendError("upstream connection is not open")
        try:
            await self._ws.send_bytes(data)
        except (ConnectionResetError, aiohttp.ClientError) as exc:
            raise SendError("upstream connection closed while sending") from exc

    def __aiter__(self) -> AsyncIterator[str]:
        return self

    async def __anext__(self) -> str:
        while True:
            msg = await self._ws.receive()
            match msg.type:
                case WSMsgType.TEXT:
                    return msg.data
                case WSMsgType.BINARY:
                    logger.debug("Dropping unexpected binary upstream message (%d bytes)", len(msg.data))
                case WSMsgType.ERROR:
                    raise UpstreamConnectionError(f"upstream websocket error: {self._ws.exception()}")
                case WSMsgType.CLOSE | WSMsgType.CLOSING | WSMsgType.CLOSED:
                    raise StopAsyncIteration
                case _:
                    logger.debug("Ignoring upstream message of type %s", msg.type)

    async def close(self) -> None:
        if self._closing:
            return
        self._closing = True
        try:
            if not self._ws.closed:
                await self._ws.close()
        finally:
            if not self._session.closed:
                await self._session.close()


class UpstreamBootstrapper:
    """Opens and configures one upstream realtime session per call."""

    def __init__(self, config: RelayConfig, session_config: Dict[str, Any]):
        self.endpoint = config.realtime_endpoint
        self.model = config.model
        self._realtime_path = config.realtime_path
        self._api_key = config.api_key
        self._beta_header = config.beta_header
        self._session_config = session_config

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "OpenAI-Beta": self._beta_header,
        }

    @property
    def params(self) -> Dict[str, str]:
        params = {}
        if self.model:
            params["model"] = self.model
        return params

    async def connect(self) -> UpstreamConnection:
        """
        Connects to the realtime endpoint and sends the session configuration.
        Returns:
            UpstreamConnection: An open handle whose first outbound message was the session.update.
        Raises UpstreamConnectionError when the handshake is rejected or the socket
        fails before the configuration went out. No retry is attempted and no
        timeout bounds the handshake.
        """
        session = aiohttp.ClientSession(base_url=self.endpoint, timeout=aiohttp.ClientTimeout(total=None))
        ws: Optional[ClientWebSocketResponse] = None
        try:
            ws = await session.ws_connect(self._realtime_path, headers=self.headers, params=self.params)
            connection = UpstreamConnection(session, ws)
            await connection.send_json(build_session_update(self._session_config))
        except (aiohttp.ClientError, OSError, SendError) as exc:
            await self._discard(session, ws)
            raise UpstreamConnectionError(f"could not open realtime session: {exc}") from exc
        except asyncio.CancelledError:
            await self._discard(session, ws)
            raise

        logger.info("Connected to realtime API model=%s", self.model)
        return connection

    @staticmethod
    async def _discard(session: aiohttp.ClientSession, ws: Optional[ClientWebSocketResponse]) -> None:
        if ws is not None:
            with contextlib.suppress(Exception):
                await ws.close()
        await session.close()
