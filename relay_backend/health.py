"""Liveness responder served on its own port, next to the relay."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

_ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def create_health_app() -> FastAPI:
    app = FastAPI(title="Realtime Relay Health", docs_url=None, redoc_url=None, openapi_url=None)

    @app.get("/health", response_class=PlainTextResponse)
    async def health() -> PlainTextResponse:
        return PlainTextResponse("OK")

    @app.api_route("/{path:path}", methods=_ALL_METHODS, response_class=PlainTextResponse)
    async def not_found(path: str) -> PlainTextResponse:
        return PlainTextResponse("Not Found", status_code=404)

    return app
