"""XDG config loading for the client."""

from __future__ import annotations

import os
import sys
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

if sys.version_info >= (3, 11):
    import tomllib
else:  # pragma: no cover
    import tomli as tomllib

from restpoll.polling import PollPolicy
from restpoll.transport import DEFAULT_TIMEOUT_MS, ProxySettings

DEFAULT_CONFIG_PATH = Path("~/.config/restpoll/config.toml").expanduser()
DEFAULT_SERVER_URL = "http://localhost:8080"
SERVER_URL_ENV = "RESTPOLL_SERVER_URL"
PROXY_ENV = "RESTPOLL_PROXY"

_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARN", "ERROR"}


class ClientConfig(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    server_url: str = DEFAULT_SERVER_URL
    timeout_ms: int = Field(default=DEFAULT_TIMEOUT_MS, ge=0)
    proxy_uri: str = ""
    initial_delay_ms: int = Field(default=2000, ge=0)
    max_delay_ms: int = Field(default=10000, ge=0)
    backoff_multiplier: float = Field(default=1.5, ge=1.0)
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        normalized = value.upper()
        if normalized == "WARNING":
            normalized = "WARN"
        if normalized not in _VALID_LOG_LEVELS:
            raise ValueError(f"Invalid log level: {value}")
        return normalized

    def poll_policy(self) -> PollPolicy:
        return PollPolicy(
            initial_delay_ms=self.initial_delay_ms,
            max_delay_ms=max(self.max_delay_ms, self.initial_delay_ms),
            multiplier=self.backoff_multiplier,
        )

    def proxy_settings(self) -> ProxySettings | None:
        if not self.proxy_uri:
            return None
        return ProxySettings(uri=self.proxy_uri)


def get_config_path(path: str | Path | None = None) -> Path:
    if path is None:
        return DEFAULT_CONFIG_PATH
    return Path(path).expanduser()


def _non_negative_int(value: object) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        return None
    return value


def _sanitize(raw: dict[str, object]) -> ClientConfig:
    cfg = ClientConfig()

    server_url = raw.get("server_url")
    if isinstance(server_url, str) and server_url.strip():
        cfg.server_url = server_url.strip()

    proxy_uri = raw.get("proxy_uri")
    if isinstance(proxy_uri, str):
        cfg.proxy_uri = proxy_uri.strip()

    for key in ("timeout_ms", "initial_delay_ms", "max_delay_ms"):
        value = _non_negative_int(raw.get(key))
        if value is not None:
            setattr(cfg, key, value)

    multiplier = raw.get("backoff_multiplier")
    if isinstance(multiplier, (int, float)) and not isinstance(multiplier, bool) and multiplier >= 1:
        cfg.backoff_multiplier = float(multiplier)

    log_level = raw.get("log_level")
    if isinstance(log_level, str) and log_level.upper() in _VALID_LOG_LEVELS | {"WARNING"}:
        cfg.log_level = log_level

    env_server_url = os.getenv(SERVER_URL_ENV, "").strip()
    if env_server_url:
        cfg.server_url = env_server_url
    env_proxy = os.getenv(PROXY_ENV, "").strip()
    if env_proxy:
        cfg.proxy_uri = env_proxy

    return cfg


def load_config(path: str | Path | None = None) -> ClientConfig:
    resolved = get_config_path(path)
    raw: object = {}
    if resolved.exists():
        try:
            with resolved.open("rb") as handle:
                raw = tomllib.load(handle)
        except (tomllib.TOMLDecodeError, OSError):
            raw = {}
    if not isinstance(raw, dict):
        raw = {}
    return _sanitize(raw)
