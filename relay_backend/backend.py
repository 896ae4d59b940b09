"""FastAPI backend relaying browser audio sessions to the OpenAI Realtime API.

This service has two responsibilities:
- accept client WebSockets and pair each one with its own upstream realtime session,
  so the OpenAI API key never leaves the server.
- answer infrastructure liveness probes on a secondary port (relay port + 1).

Both apps run in a single process and a single event loop; the process runs
until it is terminated externally.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, WebSocket
from rich.console import Console

from relay_backend import __version__
from relay_backend.common.config import RelayConfig, get_relay_config, get_session_config
from relay_backend.health import create_health_app
from relay_backend.relay.bridges.realtime_bridge import RealtimeRelayBridge
from relay_backend.relay.session_pair import Bootstrapper
from relay_backend.relay.upstream import UpstreamBootstrapper


console = Console()
logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(config: RelayConfig, bootstrapper: Optional[Bootstrapper] = None) -> FastAPI:
    """Build the client-facing relay app. Any WebSocket path on the relay port is accepted."""
    if bootstrapper is None:
        bootstrapper = UpstreamBootstrapper(config, get_session_config())
    bridge = RealtimeRelayBridge(bootstrapper)

    app = FastAPI(title="Realtime Audio Relay", version=__version__)

    @app.websocket("/{path:path}")
    async def relay_handler(websocket: WebSocket, path: str) -> None:
        await websocket.accept()
        await bridge.handle(websocket)

    return app


async def serve(config: RelayConfig) -> None:
    relay_server = uvicorn.Server(
        uvicorn.Config(
            create_app(config),
            host=config.host,
            port=config.port,
            log_level=config.log_level.lower(),
        )
    )
    health_server = uvicorn.Server(
        uvicorn.Config(
            create_health_app(),
            host=config.host,
            port=config.health_port,
            log_level=config.log_level.lower(),
            access_log=False,
        )
    )

    console.log(f"✅ WebSocket relay running on port {config.port}")
    console.log(f"✅ Health check server running on port {config.health_port}")
    await asyncio.gather(relay_server.serve(), health_server.serve())


def main() -> None:
    load_dotenv()
    config = get_relay_config()
    configure_logging(config.log_level)
    logger.info("Relaying to %s%s model=%s", config.realtime_endpoint, config.realtime_path, config.model)
    asyncio.run(serve(config))


if __name__ == "__main__":
    main()
