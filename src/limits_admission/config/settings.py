"""
Application settings using Pydantic.

Provides environment-based configuration loading with LIMITS_ADMISSION_ prefix.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Any

from pydantic import field_validator
from pydantic_settings import BaseSettings

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_duration(value: Any) -> float:
    """Parse seconds or a Go-style duration (``90s``, ``5m``, ``1h30m``) into seconds."""
    if isinstance(value, bool):
        raise ValueError(f"invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        text = str(value).strip()
        try:
            seconds = float(text)
        except ValueError:
            pos = 0
            seconds = 0.0
            for match in _DURATION_PART.finditer(text):
                if match.start() != pos:
                    break
                seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
                pos = match.end()
            if pos == 0 or pos != len(text):
                raise ValueError(f"invalid duration: {text!r}") from None
    if seconds <= 0:
        raise ValueError(f"duration must be positive: {value!r}")
    return seconds


def split_address(addr: str) -> tuple[str, int]:
    """Split ``host:port`` (``:8443`` binds all interfaces)."""
    host, sep, port = addr.rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"invalid address {addr!r}, expected host:port")
    return host or "0.0.0.0", int(port)


class Settings(BaseSettings):
    """Application settings."""

    # Policy document
    config_file: str = "/etc/rra/config.yaml"
    refresh_interval: float = 300.0

    # TLS for the admission server; both or neither
    tls_cert_file: str | None = None
    tls_key_file: str | None = None

    # Listeners
    addr: str = "0.0.0.0:8443"
    ops_addr: str = "0.0.0.0:8090"

    # Logging
    log_level: str = "info"
    log_format: str = "text"

    @field_validator("refresh_interval", mode="before")
    @classmethod
    def _duration(cls, value: Any) -> float:
        return parse_duration(value)

    @field_validator("log_level")
    @classmethod
    def _log_level(cls, value: str) -> str:
        value = value.lower()
        if value not in ("error", "warn", "info", "debug"):
            raise ValueError(f"unsupported log level: {value}")
        return value

    @field_validator("log_format")
    @classmethod
    def _log_format(cls, value: str) -> str:
        value = value.lower()
        if value not in ("text", "json"):
            raise ValueError(f"unsupported log format: {value}")
        return value

    @field_validator("addr", "ops_addr")
    @classmethod
    def _address(cls, value: str) -> str:
        split_address(value)
        return value

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "LIMITS_ADMISSION_"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
