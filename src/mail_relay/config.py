# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Settings loader for the mail relay.

Settings are read once at process start from an INI file (default:
``config.ini``), with environment variables as fallbacks, and returned as an
immutable :class:`Settings` value. The core never reads the environment.

Environment variables:
    RELAY_CONFIG - Path to config.ini file (default: config.ini)
    BIND_ADDR - Server bind address (default: 0.0.0.0)
    BIND_PORT - Server port (default: 3333)
    BIND_WORKERS - Number of worker processes (default: CPU count)
    RELAY_API_TOKEN - Token required in the X-API-Token header (default: none)
    SMTP_HOST - SMTP server host (default: localhost)
    SMTP_PORT - SMTP server port (default: 25)
    SMTP_USERNAME, SMTP_PASSWORD - SMTP credentials (optional, both required)
    SMTP_USE_TLS - Force STARTTLS on/off (default: off for port 25, on otherwise)
    SMTP_TIMEOUT - Seconds per SMTP operation (default: 10)
    SMTP_VALIDATE_CERTS - Verify the server certificate (default: true)
    LOG_LEVEL - Logging level (default: INFO)

Config file sections/keys:
    [server] host, port, workers, api_token
    [smtp] host, port, username, password, use_tls, timeout, validate_certs
    [logging] level

Example:
    config.ini::

        [smtp]
        host = smtp.example.com
        port = 587
        username = mailer
        password = secret
"""

from __future__ import annotations

import configparser
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from .logger import get_logger, normalize_level
from .transport import DEFAULT_TIMEOUT, TransportConfig, build_transport_config

DEFAULT_BIND_ADDR = "0.0.0.0"
DEFAULT_BIND_PORT = 3333
DEFAULT_SMTP_HOST = "localhost"
DEFAULT_SMTP_PORT = 25
DEFAULT_LOG_LEVEL = "INFO"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}

logger = get_logger("Config")


@dataclass(frozen=True)
class Settings:
    """Resolved process settings.

    Attributes:
        bind_addr: HTTP bind address.
        bind_port: HTTP bind port.
        workers: Number of uvicorn worker processes.
        api_token: Token protecting ``/send`` and ``/metrics``, if any.
        log_level: Root logging level name.
        transport: SMTP transport configuration handed to the relay.
    """

    bind_addr: str
    bind_port: int
    workers: int
    api_token: str | None
    log_level: str
    transport: TransportConfig


def default_workers() -> int:
    return os.cpu_count() or 1


def parse_bool(value: str | None) -> bool | None:
    """Parse a boolean setting; unknown or missing values return ``None``."""
    if value is None:
        return None
    normalized = str(value).strip().lower()
    if normalized in _TRUE:
        return True
    if normalized in _FALSE:
        return False
    return None


def load_settings(
    config_path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """Load settings from an INI file with environment variables as fallbacks.

    Args:
        config_path: INI file to read. Defaults to ``$RELAY_CONFIG`` or
            ``config.ini``; a missing file is not an error.
        environ: Environment mapping, ``os.environ`` by default.

    Returns:
        The resolved :class:`Settings`. Unparsable numbers fall back to their
        defaults with a warning.
    """
    env = os.environ if environ is None else environ
    path = Path(config_path or env.get("RELAY_CONFIG", "config.ini"))
    parser = configparser.ConfigParser(interpolation=None)
    if path.exists():
        parser.read(path)
        logger.debug("Loaded configuration file %s", path)

    def get(section: str, option: str, env_name: str) -> str | None:
        if parser.has_option(section, option):
            return parser.get(section, option)
        return env.get(env_name)

    def get_int(section: str, option: str, env_name: str, default: int) -> int:
        value = get(section, option, env_name)
        if value is None or not value.strip():
            return default
        try:
            return int(value)
        except ValueError:
            logger.warning("Invalid integer for %s: %r, using default %s", env_name, value, default)
            return default

    def get_float(section: str, option: str, env_name: str, default: float) -> float:
        value = get(section, option, env_name)
        if value is None or not value.strip():
            return default
        try:
            return float(value)
        except ValueError:
            logger.warning("Invalid number for %s: %r, using default %s", env_name, value, default)
            return default

    def get_str(section: str, option: str, env_name: str) -> str | None:
        value = get(section, option, env_name)
        if value is None:
            return None
        return value.strip() or None

    port = get_int("smtp", "port", "SMTP_PORT", DEFAULT_SMTP_PORT)
    if not 0 < port < 65536:
        logger.warning("SMTP port %s out of range, using default %s", port, DEFAULT_SMTP_PORT)
        port = DEFAULT_SMTP_PORT

    validate_certs = parse_bool(get("smtp", "validate_certs", "SMTP_VALIDATE_CERTS"))
    transport = build_transport_config(
        host=get_str("smtp", "host", "SMTP_HOST") or DEFAULT_SMTP_HOST,
        port=port,
        use_tls=parse_bool(get("smtp", "use_tls", "SMTP_USE_TLS")),
        username=get_str("smtp", "username", "SMTP_USERNAME"),
        password=get("smtp", "password", "SMTP_PASSWORD") or None,
        timeout=get_float("smtp", "timeout", "SMTP_TIMEOUT", DEFAULT_TIMEOUT),
        validate_certs=True if validate_certs is None else validate_certs,
    )

    workers = get_int("server", "workers", "BIND_WORKERS", default_workers())
    return Settings(
        bind_addr=get_str("server", "host", "BIND_ADDR") or DEFAULT_BIND_ADDR,
        bind_port=get_int("server", "port", "BIND_PORT", DEFAULT_BIND_PORT),
        workers=workers if workers > 0 else default_workers(),
        api_token=get_str("server", "api_token", "RELAY_API_TOKEN"),
        log_level=normalize_level(get_str("logging", "level", "LOG_LEVEL") or DEFAULT_LOG_LEVEL),
        transport=transport,
    )
