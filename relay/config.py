"""Configuration settings for the relay server."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from common.constants import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_RELAY_HOST,
    DEFAULT_RELAY_PORT,
    DEFAULT_SESSION_QUOTA,
    DEFAULT_STORAGE_ROOT,
)

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean, got {value!r}")


def _parse_int(name: str, value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}") from None


@dataclass(frozen=True)
class RelayConfig:
    """
    Immutable relay settings, built once at process start and passed explicitly
    to the registry, chunk store, protocol handler and application factory.
    """
    storage_root: Path = Path(DEFAULT_STORAGE_ROOT)
    chunk_size: int = DEFAULT_CHUNK_SIZE
    session_quota: int = DEFAULT_SESSION_QUOTA
    min_free_bytes: Optional[int] = None
    strict_admission: bool = False
    auth_enabled: bool = True
    session_ttl_seconds: int = 24 * 3600
    reap_interval_seconds: int = 300
    api_key_ttl_seconds: int = 30 * 24 * 3600
    host: str = DEFAULT_RELAY_HOST
    port: int = DEFAULT_RELAY_PORT
    password_file: Path = field(init=False)
    keys_dir: Path = field(init=False)

    def __post_init__(self):
        object.__setattr__(self, "storage_root", Path(self.storage_root))

        if self.chunk_size < 1:
            raise ValueError("chunk_size must be positive")
        if self.session_quota < self.chunk_size:
            raise ValueError("session_quota must hold at least one chunk")
        if self.session_ttl_seconds < 0:
            raise ValueError("session_ttl_seconds must not be negative")
        if self.reap_interval_seconds < 1:
            raise ValueError("reap_interval_seconds must be positive")
        if self.api_key_ttl_seconds < 0:
            raise ValueError("api_key_ttl_seconds must not be negative")

        floor = 2 * self.chunk_size
        if self.min_free_bytes is None or self.min_free_bytes < floor:
            object.__setattr__(self, "min_free_bytes", floor)

        object.__setattr__(self, "password_file", self.storage_root / ".password")
        object.__setattr__(self, "keys_dir", self.storage_root / ".keys")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "RelayConfig":
        """
        Build configuration from RELAY_* environment variables.

        Raises:
            ValueError: If a variable holds a malformed value
        """
        env = os.environ if environ is None else environ
        kwargs = {}

        if "RELAY_STORAGE_ROOT" in env:
            kwargs["storage_root"] = Path(env["RELAY_STORAGE_ROOT"])
        if "RELAY_HOST" in env:
            kwargs["host"] = env["RELAY_HOST"]

        int_settings = {
            "RELAY_CHUNK_SIZE": "chunk_size",
            "RELAY_SESSION_QUOTA": "session_quota",
            "RELAY_MIN_FREE_BYTES": "min_free_bytes",
            "RELAY_SESSION_TTL": "session_ttl_seconds",
            "RELAY_REAP_INTERVAL": "reap_interval_seconds",
            "RELAY_API_KEY_TTL": "api_key_ttl_seconds",
            "RELAY_PORT": "port",
        }
        for env_name, attr in int_settings.items():
            if env_name in env:
                kwargs[attr] = _parse_int(env_name, env[env_name])

        bool_settings = {
            "RELAY_STRICT_ADMISSION": "strict_admission",
            "RELAY_AUTH_ENABLED": "auth_enabled",
        }
        for env_name, attr in bool_settings.items():
            if env_name in env:
                kwargs[attr] = _parse_bool(env_name, env[env_name])

        return cls(**kwargs)
