"""
core/config.py -- Centralized process configuration via pydantic-settings.

All environment variable reads for the SSO service happen here. No module
should call os.getenv() or os.environ.get() directly -- import get_settings()
instead, or build Settings() explicitly in the bootstrap code.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional env-format file. Field names map to env var names
      (e.g. token_ttl -> TOKEN_TTL). Type coercion and validation are built in.

  CONFIG / --config: points at an alternative env-format file. A path that
      does not exist is a startup failure, never a silent fallback.

These settings are owned by bootstrap code (main.py, asgi.py, api/main.py).
The auth service itself receives plain values (TTL, cost) through its
constructor and never reads Settings.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import os
import re
from datetime import timedelta
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Go-style duration units accepted for TOKEN_TTL ("1h", "30m", "1h30m", "90s").
_DURATION_PART_RE = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_DURATION_UNITS = {"h": 3600.0, "m": 60.0, "s": 1.0, "ms": 0.001}


class ConfigError(RuntimeError):
    """Raised when the process cannot start because its configuration is unusable."""


def parse_duration(value: str) -> timedelta:
    """Parse "1h", "15m", "1h30m", "90s" or a bare number of seconds.

    Raises ValueError for anything else, so pydantic reports the field name.
    """
    raw = value.strip().lower()
    if re.fullmatch(r"\d+(?:\.\d+)?", raw):
        return timedelta(seconds=float(raw))
    parts = _DURATION_PART_RE.findall(raw)
    if not parts or "".join(n + u for n, u in parts) != raw:
        raise ValueError(f"invalid duration: {value!r}")
    return timedelta(seconds=sum(float(n) * _DURATION_UNITS[u] for n, u in parts))


class Settings(BaseSettings):
    """Process settings loaded from environment variables and an env file.

    storage_path is the only field without a usable default: the service
    refuses to start without knowing where its users and apps live.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    env: Literal["local", "dev", "prod"] = "local"
    storage_path: str = ""

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    token_ttl: timedelta = timedelta(hours=1)
    # 10 is bcrypt's library default cost. Fixed per process, never derived
    # from the password.
    bcrypt_cost: int = Field(default=10, ge=4, le=31)

    # ------------------------------------------------------------------
    # HTTP listener
    # ------------------------------------------------------------------

    host: str = "0.0.0.0"  # nosec B104 -- container default, override with HOST
    port: int = Field(default=8080, ge=1, le=65535)

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("token_ttl", mode="before")
    @classmethod
    def parse_token_ttl(cls, value):
        """Accept Go-style durations in addition to pydantic's own formats.

        Strings that are not Go-style ("PT1H", "01:00:00") are left for
        pydantic's timedelta parsing.
        """
        if isinstance(value, str):
            try:
                return parse_duration(value)
            except ValueError:
                return value
        return value

    @model_validator(mode="after")
    def validate_required(self) -> "Settings":
        if not self.storage_path:
            raise ValueError("STORAGE_PATH is required. Set it in the environment or the config file.")
        if self.token_ttl <= timedelta(0):
            raise ValueError("TOKEN_TTL must be positive.")
        return self

    @property
    def storage_url(self) -> str:
        """SQLAlchemy URL for storage_path. Full URLs are passed through unchanged."""
        if "://" in self.storage_path:
            return self.storage_path
        return f"sqlite:///{self.storage_path}"


def load_settings(config_path: Optional[str] = None) -> Settings:
    """Build Settings from the environment plus an optional env-format file.

    config_path falls back to the CONFIG environment variable. Any failure is
    re-raised as ConfigError with a message suitable for a terminal.
    """
    path = config_path or os.environ.get("CONFIG") or None
    if path is not None and not Path(path).is_file():
        raise ConfigError(f"config file does not exist: {path}")
    try:
        if path is not None:
            return Settings(_env_file=path)
        return Settings()
    except ValueError as exc:
        raise ConfigError(f"failed to read config: {exc}") from exc


@lru_cache
def get_settings() -> Settings:
    """Return the process Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return load_settings()
