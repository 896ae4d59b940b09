from __future__ import annotations

import json

import pytest

from relay_backend.common.config import (
    DEFAULT_PORT,
    DEFAULT_REALTIME_ENDPOINT,
    DEFAULT_REALTIME_MODEL,
    RelayConfig,
    get_relay_config,
    get_session_config,
)

_RELAY_ENV = (
    "OPENAI_API_KEY",
    "PORT",
    "HOST",
    "OPENAI_REALTIME_ENDPOINT",
    "OPENAI_REALTIME_PATH",
    "OPENAI_REALTIME_MODEL",
    "OPENAI_BETA_HEADER",
    "LOG_LEVEL",
    "SESSION_CONFIG_PATH",
)


@pytest.fixture(autouse=True)
def _clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _RELAY_ENV:
        monkeypatch.delenv(name, raising=False)


def test_missing_api_key_is_fatal() -> None:
    with pytest.raises(RuntimeError):
        get_relay_config()


def test_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", '"sk-quoted"')

    config = get_relay_config()

    assert config.api_key == "sk-quoted"
    assert config.port == DEFAULT_PORT
    assert config.health_port == DEFAULT_PORT + 1
    assert config.realtime_endpoint == DEFAULT_REALTIME_ENDPOINT
    assert config.realtime_path == "/v1/realtime"
    assert config.model == DEFAULT_REALTIME_MODEL
    assert config.beta_header == "realtime=v1"


def test_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("PORT", "9000")
    monkeypatch.setenv("OPENAI_REALTIME_ENDPOINT", "wss://example.test/")
    monkeypatch.setenv("OPENAI_REALTIME_PATH", "openai/v1/realtime")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    config = get_relay_config()

    assert config.port == 9000
    assert config.health_port == 9001
    assert config.realtime_endpoint == "wss://example.test"
    assert config.realtime_path == "/openai/v1/realtime"
    assert config.log_level == "DEBUG"


def test_health_port_follows_port() -> None:
    assert RelayConfig(api_key="k", port=3000).health_port == 3001


def test_session_config_override(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    path = tmp_path / "session.json"
    path.write_text(json.dumps({"voice": "verse"}), encoding="utf-8")
    monkeypatch.setenv("SESSION_CONFIG_PATH", str(path))

    assert get_session_config() == {"voice": "verse"}


def test_session_config_must_be_an_object(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    path = tmp_path / "session.json"
    path.write_text("[]", encoding="utf-8")
    monkeypatch.setenv("SESSION_CONFIG_PATH", str(path))

    with pytest.raises(RuntimeError):
        get_session_config()
