from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from .errors import ConfigError

DEFAULT_CACHE_DIR = "/tmp/devchain-cache"

ENV_OVERRIDES: Dict[str, str] = {
    "DEVCHAIN_PORT": "port",
    "DEVCHAIN_BINARY": "binary",
    "DEVCHAIN_CACHE": "cache_dir",
}


@dataclass(frozen=True)
class ChainConfig:
    port: int = 8545
    binary: str = "anvil"
    cache_dir: str = DEFAULT_CACHE_DIR
    probe_attempts: int = 15
    poll_interval: float = 0.25
    rpc_timeout: Optional[float] = None
    preload_state: bool = True
    state_file: Optional[str] = None
    verbose: bool = False

    def __post_init__(self) -> None:
        if not 0 < int(self.port) < 65536:
            raise ConfigError(f"port out of range: {self.port}")
        if int(self.probe_attempts) < 0:
            raise ConfigError(f"probe_attempts must be >= 0, got {self.probe_attempts}")
        if float(self.poll_interval) <= 0:
            raise ConfigError(f"poll_interval must be positive, got {self.poll_interval}")

    @property
    def cache_path(self) -> Path:
        return Path(self.cache_dir).expanduser().resolve()

    def merged(self, overrides: Mapping[str, Any]) -> "ChainConfig":
        """Return a copy with every non-``None`` value in ``overrides`` applied."""
        known = {f.name: f for f in fields(self)}
        updates: Dict[str, Any] = {}
        for key, value in overrides.items():
            if value is None:
                continue
            if key not in known:
                raise ConfigError(f"unknown config key: {key}")
            updates[key] = _coerce(key, value)
        return replace(self, **updates)


def _coerce(key: str, value: Any) -> Any:
    if key in ("port", "probe_attempts"):
        target = int
    elif key in ("poll_interval", "rpc_timeout"):
        target = float
    elif key in ("preload_state", "verbose"):
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes", "on")
        return bool(value)
    else:
        target = str
    try:
        return target(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"invalid value for {key}: {value!r}") from exc


def load_config(
    path: Optional[Union[str, Path]] = None,
    env: Optional[Mapping[str, str]] = None,
    **overrides: Any,
) -> ChainConfig:
    """
    Build the effective configuration.

    Precedence, lowest first: defaults, the ``chain:`` section of the YAML file
    at ``path``, ``DEVCHAIN_*`` environment variables, ``overrides``.
    """
    config = ChainConfig()

    if path is not None:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except OSError as exc:
            raise ConfigError(f"cannot read config file {path}: {exc}") from exc
        except yaml.YAMLError as exc:
            raise ConfigError(f"invalid YAML in {path}: {exc}") from exc
        section = data.get("chain", {}) if isinstance(data, dict) else None
        if not isinstance(section, dict):
            raise ConfigError(f"{path} must contain a 'chain' mapping")
        config = config.merged(section)

    env = os.environ if env is None else env
    config = config.merged({field: env.get(name) for name, field in ENV_OVERRIDES.items()})

    return config.merged(overrides)
