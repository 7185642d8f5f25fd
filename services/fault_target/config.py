from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .domain.scenario import Scenario


DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3000


@dataclass
class Config:
    scenario: Scenario = Scenario.NORMAL
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    log_level: str = "INFO"


def load_config(environ: Optional[Mapping[str, str]] = None) -> Config:
    """Read settings once at startup.

    The address is fixed at ``0.0.0.0:3000``; ``HOST`` and ``PORT`` only exist so
    tests and several targets on one machine can use other ports.
    """

    env = os.environ if environ is None else environ
    scenario = Scenario.parse(env.get("SCENARIO"))
    host = env.get("HOST", DEFAULT_HOST)
    port = _coerce_port(env.get("PORT", str(DEFAULT_PORT)))
    log_level = env.get("LOG_LEVEL", "INFO").upper()
    if not isinstance(logging.getLevelName(log_level), int):
        raise ValueError(f"unknown log level: {log_level}")
    return Config(scenario=scenario, host=host, port=port, log_level=log_level)


def _coerce_port(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"invalid port number: {raw}") from exc
    if value < 0 or value > 65535:
        raise ValueError(f"invalid port number: {raw}")
    return value


__all__ = ["Config", "load_config", "DEFAULT_HOST", "DEFAULT_PORT"]
