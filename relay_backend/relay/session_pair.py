"""One client connection paired with at most one upstream realtime connection."""

from __future__ import annotations

import asyncio
import json
import logging
import contextlib
from enum import Enum
from typing import Any, Optional, Protocol

from rich.console import Console

from relay_backend.errors import SendError, UpstreamConnectionError

from .helpers import (
    ERROR_MESSAGE_TYPE,
    START_MESSAGE_TYPE,
    BinaryFrame,
    ControlFrame,
    MalformedFrame,
    build_error_event,
    decode_client_frame,
    is_forwardable_event,
)

console = Console()
logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    BOOTSTRAPPING = "bootstrapping"
    ACTIVE = "active"
    CLOSED = "closed"


class Bootstrapper(Protocol):
    async def connect(self) -> Any: ...


class SessionPair:
    """Mediates all traffic between one client and its upstream session.

    The client stream is read by ``run``; the upstream connect and read loop
    runs in a separate task started by the first "start" message. Both tasks
    live on the same event loop and are the only writers of this pair's state.
    """

    def __init__(self, client: Any, bootstrapper: Bootstrapper):
        self._client = client
        self._bootstrapper = bootstrapper
        self._upstream: Optional[Any] = None
        self._upstream_task: Optional[asyncio.Task] = None
        self.state = SessionState.IDLE

    @property
    def upstream(self) -> Optional[Any]:
        return self._upstream

    async def run(self) -> None:
        console.log("[CLIENT] connected")
        try:
            async for raw in self._client:
                await self.handle_client_frame(raw)
        except Exception:
            logger.exception("Client websocket error")
        finally:
            console.log("[CLIENT] disconnected")
            await self.close()

    async def handle_client_frame(self, raw: bytes | str) -> None:
        try:
            match decode_client_frame(raw):
                case ControlFrame() as frame if frame.message_type == START_MESSAGE_TYPE:
                    self._start_upstream()
                case ControlFrame(message=message):
                    await self._send_upstream_text(json.dumps(message))
                case BinaryFrame(data=data):
                    await self._send_upstream_bytes(data)
                case MalformedFrame(reason=reason):
                    logger.warning("Dropping malformed client message: %s", reason)
        except Exception:
            logger.exception("Error handling client message")

    async def handle_upstream_message(self, data: str) -> None:
        try:
            message = json.loads(data)
        except (ValueError, RecursionError):
            logger.error("Error parsing upstream message: %.200s", data)
            return

        try:
            if is_forwardable_event(message):
                await self._send_client(message)

            if isinstance(message, dict) and message.get("type") == ERROR_MESSAGE_TYPE:
                logger.error("Realtime API error: %s", message.get("error"))
        except Exception:
            logger.exception("Error handling upstream message")

    async def close(self) -> None:
        """Tear down the pair. Closing from the client side also closes the upstream."""
        self.state = SessionState.CLOSED

        upstream, self._upstream = self._upstream, None
        if upstream is not None:
            with contextlib.suppress(Exception):
                await upstream.close()

        task, self._upstream_task = self._upstream_task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await task

    def _start_upstream(self) -> None:
        if self.state is not SessionState.IDLE:
            logger.info("Ignoring start message, session is %s", self.state.value)
            return
        self.state = SessionState.BOOTSTRAPPING
        self._upstream_task = asyncio.create_task(self._run_upstream())

    async def _run_upstream(self) -> None:
        try:
            upstream = await self._bootstrapper.connect()
        except UpstreamConnectionError as exc:
            logger.error("Realtime API connection failed: %s", exc)
            self.state = SessionState.CLOSED
            await self._send_client(build_error_event())
            return
        except Exception:
            logger.exception("Unexpected error while connecting to the realtime API")
            self.state = SessionState.CLOSED
            await self._send_client(build_error_event())
            return

        if self.state is SessionState.CLOSED:
            # Client left while the handshake was in flight.
            with contextlib.suppress(Exception):
                await upstream.close()
            return

        self._upstream = upstream
        self.state = SessionState.ACTIVE
        console.log("[UPSTREAM] connected to realtime API")

        try:
            async for data in upstream:
                await self.handle_upstream_message(data)
        except UpstreamConnectionError as exc:
            logger.error("Realtime API websocket error: %s", exc)
            await self._send_client(build_error_event())
        finally:
            console.log("[UPSTREAM] connection closed")
            self.state = SessionState.CLOSED
            with contextlib.suppress(Exception):
                await upstream.close()

    async def _send_client(self, message: dict[str, Any]) -> None:
        if not self._client.is_open:
            return
        try:
            await self._client.send_json(message)
        except SendError:
            logger.debug("Dropped %s for closed client", message.get("type"))

    def _upstream_ready(self) -> bool:
        return self.state is SessionState.ACTIVE and self._upstream is not None and self._upstream.is_open

    async def _send_upstream_text(self, data: str) -> None:
        if not self._upstream_ready():
            logger.debug("Dropping client control message, session is %s", self.state.value)
            return
        try:
            await self._upstream.send_str(data)
        except SendError:
            logger.debug("Dropped client control message for closed upstream")

    async def _send_upstream_bytes(self, data: bytes) -> None:
        if not self._upstream_ready():
            return
        try:
            await self._upstream.send_bytes(data)
        except SendError:
            logger.debug("Dropped %d audio bytes for closed upstream", len(data))
