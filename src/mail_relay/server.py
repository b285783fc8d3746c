# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""ASGI application entry point for uvicorn.

Settings are loaded once at import time, so every worker process builds the
same immutable transport configuration.

Usage:
    uvicorn mail_relay.server:app --host 0.0.0.0 --port 3333
"""

from __future__ import annotations

from .api import create_app
from .config import load_settings
from .logger import get_logger, setup_logging
from .relay import MailRelay

_settings = load_settings()
setup_logging(_settings.log_level)

get_logger("MailRelay").debug(
    "SMTP config: host %s port %s use_tls %s auth %s",
    _settings.transport.host,
    _settings.transport.port,
    _settings.transport.use_tls,
    _settings.transport.credentials is not None,
)

app = create_app(MailRelay(_settings.transport), api_token=_settings.api_token)
