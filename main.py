"""Run the mail relay with uvicorn.

Configuration is read from ``config.ini`` (path overridable with
``RELAY_CONFIG``) with environment variables as fallbacks; see
:mod:`mail_relay.config` for the full list.
"""

import uvicorn

from mail_relay.config import load_settings
from mail_relay.logger import get_logger, setup_logging

if __name__ == "__main__":
    settings = load_settings()
    setup_logging(settings.log_level)
    get_logger("MailRelay").debug(
        "Server bind: address %s port %s workers %s",
        settings.bind_addr,
        settings.bind_port,
        settings.workers,
    )
    # Workers import the app by path so each process builds its own relay
    uvicorn.run(
        "mail_relay.server:app",
        host=settings.bind_addr,
        port=settings.bind_port,
        workers=settings.workers,
        log_level=settings.log_level.lower(),
    )
