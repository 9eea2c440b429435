#!/usr/bin/env python3
"""
Configuration loader for the web agent.

The only setting is the listening port, read from PORT (default 3000).
An optional .env file beside this module is loaded first; variables already
present in the real environment take precedence over it.
"""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent
DEFAULT_PORT = 3000
BIND_HOST = "0.0.0.0"


class ConfigError(ValueError):
    """Raised when the environment holds an unusable setting."""


@dataclass(frozen=True)
class AgentConfig:
    host: str = BIND_HOST
    port: int = DEFAULT_PORT


def parse_port(value) -> int:
    if value is None or str(value).strip() == "":
        return DEFAULT_PORT
    try:
        port = int(str(value).strip())
    except ValueError:
        raise ConfigError(f"PORT must be an integer, got {value!r}") from None
    if not 0 <= port <= 65535:
        raise ConfigError(f"PORT out of range: {port}")
    return port


def load_config(environ=None, env_file=None) -> AgentConfig:
    """Build the agent config from ``environ`` (``os.environ`` when omitted)."""
    if environ is None:
        load_dotenv(env_file or BASE_DIR / ".env", override=False)
        environ = os.environ
    return AgentConfig(port=parse_port(environ.get("PORT")))
