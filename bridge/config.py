from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml

from bridge.reconnect import DEFAULT_RECONNECT_DELAYS
from shared.log import get_logger

logger = get_logger(__name__)

BUS_PATH = "/androidbus"

_ENV_VARS = {
    "ARCUS_BRIDGE_URL": "base_url",
    "ARCUS_AUTH_TOKEN": "auth_token",
    "ARCUS_USERNAME": "username",
    "ARCUS_PASSWORD": "password",
    "ARCUS_REQUEST_TIMEOUT": "request_timeout",
    "ARCUS_LOG_LEVEL": "log_level",
}


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class BridgeConfig:
    base_url: str = ""
    auth_token: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    request_timeout: float = 30.0
    # Bounded wait for SessionCreated; falls back to request_timeout
    session_timeout: Optional[float] = None
    reconnect_delays: Tuple[float, ...] = DEFAULT_RECONNECT_DELAYS
    event_buffer_size: int = 100
    ping_interval: Optional[float] = 15.0
    log_level: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def announcement_timeout(self) -> float:
        return self.session_timeout if self.session_timeout is not None else self.request_timeout

    def validate(self, *, require_credentials: bool = True) -> 'BridgeConfig':
        if not self.base_url:
            raise ConfigError("base_url is required (ARCUS_BRIDGE_URL)")
        if require_credentials and not self.auth_token and not (self.username and self.password):
            raise ConfigError("either ARCUS_AUTH_TOKEN or ARCUS_USERNAME and ARCUS_PASSWORD are required")
        if self.request_timeout <= 0:
            raise ConfigError("request_timeout must be positive")
        if not self.reconnect_delays or any(d < 0 for d in self.reconnect_delays):
            raise ConfigError("reconnect_delays must be a non-empty list of non-negative numbers")
        if self.event_buffer_size <= 0:
            raise ConfigError("event_buffer_size must be positive")
        return self


def ws_url(base_url: str) -> str:
    """http://host -> ws://host/androidbus, https -> wss"""
    base = base_url.rstrip("/")
    if base.startswith("http"):
        base = "ws" + base[len("http"):]
    return base + BUS_PATH


def _coerce(name: str, value: Any) -> Any:
    if name in ("request_timeout", "session_timeout", "ping_interval"):
        return None if value is None else float(value)
    if name == "event_buffer_size":
        return int(value)
    if name == "reconnect_delays":
        if isinstance(value, str):
            value = [v for v in value.split(",") if v.strip()]
        return tuple(float(v) for v in value)
    return value


def _from_mapping(base: BridgeConfig, data: Mapping[str, Any]) -> BridgeConfig:
    known = {f.name for f in fields(BridgeConfig)} - {"extra"}
    updates: Dict[str, Any] = {}
    extra: Dict[str, Any] = dict(base.extra)
    for key, value in data.items():
        if key in known:
            try:
                updates[key] = _coerce(key, value)
            except (TypeError, ValueError) as e:
                raise ConfigError(f"Invalid value for {key}: {value!r}") from e
        else:
            extra[key] = value
    return replace(base, extra=extra, **updates)


def load_config(path: Optional[Path] = None, env: Optional[Mapping[str, str]] = None) -> BridgeConfig:
    """
    Build configuration from defaults, an optional YAML file and the environment.

    Args:
        path: YAML file whose keys match BridgeConfig field names
        env: Environment mapping (os.environ if omitted)

    Returns:
        Unvalidated BridgeConfig; call validate() before connecting
    """
    config = BridgeConfig()

    if path is not None:
        path = Path(path).expanduser()
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")
        config = _from_mapping(config, data)
        logger.debug("Loaded config from %s", path)

    env = os.environ if env is None else env
    from_env = {name: env[var] for var, name in _ENV_VARS.items() if env.get(var)}
    return _from_mapping(config, from_env)
