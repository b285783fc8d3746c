# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Logging utilities for the mail relay.

Modules obtain their logger through :func:`get_logger`. Handlers, level and
format are installed once by :func:`setup_logging`, called from the process
entry points (``main.py``, the ``serve`` CLI command and the ASGI module).

Example:
    Typical usage in a module::

        from mail_relay.logger import get_logger

        logger = get_logger("SmtpClient")
        logger.info("Connection established")
"""

from __future__ import annotations

import logging

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LEVEL_NAMES = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


def get_logger(name: str = "MailRelay") -> logging.Logger:
    """Retrieve a logger instance.

    It does not configure handlers or formatters; that responsibility lies
    with :func:`setup_logging`.

    Args:
        name: The logger name. Defaults to "MailRelay".

    Returns:
        A ``logging.Logger`` instance bound to the given name.
    """
    return logging.getLogger(name)


def normalize_level(level: str | None) -> str:
    """Return ``level`` as an upper-case level name, ``INFO`` if unknown."""
    name = str(level or "").strip().upper()
    return name if name in LEVEL_NAMES else "INFO"


def setup_logging(level: str = "INFO") -> None:
    """Configure the root logger.

    Unknown level names fall back to ``INFO``. ``force=True`` replaces any
    handler installed earlier so repeated calls never duplicate output.
    """
    logging.basicConfig(
        level=normalize_level(level),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        force=True,
    )
