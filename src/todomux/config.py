"""Environment driven settings."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

_PREFIX = "TODOMUX_"
_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off", ""})


@dataclass(slots=True, frozen=True)
class Settings:
    address: str = "127.0.0.1"
    port: int = 8080
    database: str = "todo.db"
    api_key: str = "gintama"
    log_level: str = "INFO"
    otel: bool = False

    @classmethod
    def from_env(cls, environ: Mapping[str, str] = os.environ) -> Settings:
        """Build settings from ``TODOMUX_*`` variables, defaulting the rest."""
        defaults = cls()

        def get(name: str, default: str) -> str:
            return environ.get(_PREFIX + name.upper(), default)

        port_number = parse_port(get("port", str(defaults.port)), _PREFIX + "PORT")

        api_key = get("api_key", defaults.api_key)
        if not api_key:
            msg = f"{_PREFIX}API_KEY must not be empty"
            raise ValueError(msg)

        return cls(
            address=get("address", defaults.address),
            port=port_number,
            database=get("database", defaults.database),
            api_key=api_key,
            log_level=get("log_level", defaults.log_level).upper(),
            otel=_parse_bool(get("otel", "false"), _PREFIX + "OTEL"),
        )


def parse_port(value: str, name: str) -> int:
    try:
        port = int(value)
    except ValueError:
        msg = f"{name} must be an integer, got {value!r}"
        raise ValueError(msg) from None
    if not 0 <= port <= 65535:
        msg = f"{name} must be between 0 and 65535, got {port}"
        raise ValueError(msg)
    return port


def _parse_bool(value: str, name: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    msg = f"{name} must be a boolean, got {value!r}"
    raise ValueError(msg)
