"""Environment-driven configuration for the relay and the upstream session."""

from __future__ import annotations

import os
import json
from pathlib import Path
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Optional


DEFAULT_PORT = 8080
DEFAULT_HOST = "0.0.0.0"
DEFAULT_REALTIME_ENDPOINT = "wss://api.openai.com"
DEFAULT_REALTIME_PATH = "/v1/realtime"
DEFAULT_REALTIME_MODEL = "gpt-4o-realtime-preview-2024-10-01"
DEFAULT_BETA_HEADER = "realtime=v1"

_default_session_config_path = Path(__file__).parent / "session_config.json"


def _clean_env(name: str, *, default: Optional[str] = None) -> str:
    raw = os.getenv(name, default)
    if raw is None:
        raise RuntimeError(f"Environment variable {name} must be set")
    return raw.strip().strip("\"").strip("'")


def _optional_env(name: str, *, default: Optional[str] = None) -> Optional[str]:
    raw = os.getenv(name, default)
    if raw is None:
        return None
    raw = raw.strip().strip("\"").strip("'")
    return raw or None


@dataclass(frozen=True)
class RelayConfig:
    api_key: str
    port: int = DEFAULT_PORT
    host: str = DEFAULT_HOST
    realtime_endpoint: str = DEFAULT_REALTIME_ENDPOINT
    realtime_path: str = DEFAULT_REALTIME_PATH
    model: str = DEFAULT_REALTIME_MODEL
    beta_header: str = DEFAULT_BETA_HEADER
    log_level: str = "INFO"

    @property
    def health_port(self) -> int:
        """The liveness responder always listens right above the relay port."""
        return self.port + 1


@lru_cache(maxsize=1)
def get_relay_config() -> RelayConfig:
    api_key = _clean_env("OPENAI_API_KEY")
    if not api_key:
        raise RuntimeError("Environment variable OPENAI_API_KEY must not be empty")

    port = _optional_env("PORT")
    realtime_path = _clean_env("OPENAI_REALTIME_PATH", default=DEFAULT_REALTIME_PATH)
    return RelayConfig(
        api_key=api_key,
        port=int(port) if port else DEFAULT_PORT,
        host=_clean_env("HOST", default=DEFAULT_HOST),
        realtime_endpoint=_clean_env("OPENAI_REALTIME_ENDPOINT", default=DEFAULT_REALTIME_ENDPOINT).rstrip("/"),
        realtime_path=realtime_path if realtime_path.startswith("/") else f"/{realtime_path}",
        model=_clean_env("OPENAI_REALTIME_MODEL", default=DEFAULT_REALTIME_MODEL),
        beta_header=_clean_env("OPENAI_BETA_HEADER", default=DEFAULT_BETA_HEADER),
        log_level=_clean_env("LOG_LEVEL", default="INFO").upper(),
    )


@lru_cache(maxsize=1)
def get_session_config() -> dict[str, Any]:
    """Load the static session configuration sent upstream on every new session."""
    override = _optional_env("SESSION_CONFIG_PATH")
    config_path = Path(override) if override else _default_session_config_path
    with open(config_path, "r", encoding="utf-8") as f:
        session_config = json.load(f)
    if not isinstance(session_config, dict):
        raise RuntimeError(f"Session configuration in {config_path} must be a JSON object")
    return session_config
