"""Configuration loading and merging for the bulb agent."""

import math
import os
import urllib.parse
from dataclasses import dataclass, fields
from pathlib import Path

import yaml

from .bulb import (
    DEFAULT_BRIGHTNESS,
    DEFAULT_COLOR,
    DEFAULT_NAME,
    Bulb,
    ValidationError,
)


DEFAULT_HUB_URL = "http://localhost:9393"
DEFAULT_PORT = 9494

LOG_LEVEL_ENV = "BULB_AGENT_LOG_LEVEL"


class ConfigError(ValueError):
    """Raised when configuration is missing or invalid."""


@dataclass
class AgentConfig:
    # Hub the agent registers with on startup
    hub_url: str = DEFAULT_HUB_URL

    # Listener ("" binds every interface)
    host: str = ""
    port: int = DEFAULT_PORT

    # Registration retry policy (fixed interval, unbounded attempts)
    retry_interval: float = 2.0
    request_timeout: float = 10.0

    log_level: str = ""

    # Initial bulb state
    bulb_name: str = DEFAULT_NAME
    bulb_color: str = DEFAULT_COLOR
    bulb_brightness: int = DEFAULT_BRIGHTNESS

    def initial_bulb(self) -> Bulb:
        """Build the startup Bulb, applying the same rules as PATCH updates."""
        try:
            return Bulb.from_dict({
                "name": self.bulb_name,
                "color": self.bulb_color,
                "brightness": self.bulb_brightness,
            })
        except ValidationError as exc:
            raise ConfigError(f"Invalid initial bulb {exc.field}: {exc.value!r}") from exc

    def resolved_log_level(self) -> str:
        """Config value, else BULB_AGENT_LOG_LEVEL env, else INFO."""
        raw = self.log_level or os.environ.get(LOG_LEVEL_ENV, "")
        return raw.strip().upper() or "INFO"


# Keys accepted under the nested ``bulb:`` mapping of the YAML file
_BULB_KEYS = {"name": "bulb_name", "color": "bulb_color", "brightness": "bulb_brightness"}


def load_config(path: str | Path) -> AgentConfig:
    """Load an AgentConfig from a YAML file."""
    path = Path(path)
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except OSError as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")

    # Flatten the bulb section onto the bulb_* fields
    raw_bulb = data.pop("bulb", None) or {}
    if not isinstance(raw_bulb, dict):
        raise ConfigError("'bulb' section must be a mapping")
    for key, field_name in _BULB_KEYS.items():
        if key in raw_bulb:
            data[field_name] = raw_bulb[key]

    valid_fields = {f.name for f in fields(AgentConfig)}
    filtered = {k: v for k, v in data.items() if k in valid_fields}

    config = AgentConfig(**filtered)
    validate_config(config)
    return config


def merge_cli_args(config: AgentConfig, args) -> AgentConfig:
    """Overlay CLI arguments onto an existing config. CLI values take precedence."""
    for f in fields(AgentConfig):
        cli_val = getattr(args, f.name, None)
        if cli_val is not None:
            setattr(config, f.name, cli_val)
    return config


def validate_config(config: AgentConfig) -> None:
    """Raise ConfigError if any value is out of range."""
    if urllib.parse.urlparse(str(config.hub_url or "")).scheme not in ("http", "https"):
        raise ConfigError(f"hub_url must be an http(s) URL: {config.hub_url!r}")
    try:
        port = int(config.port)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid integer for port: {config.port!r}") from exc
    if not (1 <= port <= 65535):
        raise ConfigError(f"port out of range: {port}")
    config.port = port

    for name in ("retry_interval", "request_timeout"):
        try:
            value = float(getattr(config, name))
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid number for {name}: {getattr(config, name)!r}") from exc
        if not math.isfinite(value):
            raise ConfigError(f"{name} must be a finite number")
        if value < 0:
            raise ConfigError(f"{name} must be >= 0")
        setattr(config, name, value)
    if config.request_timeout == 0:
        raise ConfigError("request_timeout must be > 0")

    # Surfaces bad bulb defaults as ConfigError
    config.initial_bulb()
