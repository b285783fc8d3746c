# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""SMTP session client.

Drives one SMTP session per delivery through an explicit sequence of steps,
translating every ``aiosmtplib`` failure into a :class:`DeliveryError`:

1. connect and read the greeting (:class:`ConnectFailedError`)
2. EHLO (:class:`ProtocolError`)
3. STARTTLS, only when ``config.use_tls`` (:class:`TlsFailedError`)
4. AUTH, only when credentials are configured (:class:`AuthFailedError`)
5. MAIL FROM, one RCPT TO per recipient, DATA (:class:`ProtocolError`,
   :class:`RecipientRejectedError`)
6. QUIT, on every exit path

The client is created with ``start_tls=False`` so aiosmtplib never upgrades
on its own; the upgrade happens only in step 3.

A single refused recipient aborts the transaction before DATA: either every
recipient gets the message or none does.

Example:
    Delivering a built message::

        config = build_transport_config("smtp.example.com", 587)
        mail = build_message("a@example.com", ["b@example.com"], "Hi", "hello")
        await send(config, mail)
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager, contextmanager
from email import policy

import aiosmtplib

from .errors import (
    AuthFailedError,
    ConnectFailedError,
    DeliveryError,
    ProtocolError,
    RecipientRejectedError,
    TlsFailedError,
)
from .logger import get_logger
from .message import OutgoingMail
from .transport import TransportConfig

logger = get_logger("SmtpClient")

_NETWORK_ERRORS = (aiosmtplib.SMTPException, OSError, asyncio.TimeoutError)


def _smtp_code(exc: BaseException) -> int | None:
    """Extract the SMTP reply code from an aiosmtplib exception, if any."""
    code = getattr(exc, "code", None)
    return code if isinstance(code, int) and code > 0 else None


def _describe(exc: BaseException) -> str:
    message = getattr(exc, "message", None) or str(exc) or exc.__class__.__name__
    code = _smtp_code(exc)
    return f"{message} (SMTP {code})" if code else message


@contextmanager
def _translate(error_cls: type[DeliveryError], action: str) -> Iterator[None]:
    """Re-raise low-level SMTP and network failures as ``error_cls``."""
    try:
        yield
    except DeliveryError:
        raise
    except _NETWORK_ERRORS as exc:
        raise error_cls(f"{action} failed: {_describe(exc)}", _smtp_code(exc)) from exc


async def _connect(smtp: aiosmtplib.SMTP, config: TransportConfig) -> None:
    logger.debug("Connecting to %s:%s", config.host, config.port)
    try:
        await smtp.connect()
    except aiosmtplib.SMTPConnectResponseError as exc:
        raise ProtocolError(f"Unexpected greeting: {_describe(exc)}", _smtp_code(exc)) from exc
    except _NETWORK_ERRORS as exc:
        raise ConnectFailedError(
            f"Cannot connect to {config.host}:{config.port}: {_describe(exc)}"
        ) from exc


async def _handshake(smtp: aiosmtplib.SMTP, config: TransportConfig) -> None:
    with _translate(ProtocolError, "EHLO"):
        await smtp.ehlo()

    if config.use_tls:
        with _translate(TlsFailedError, "STARTTLS"):
            await smtp.starttls()
        # Capabilities must be re-read over the encrypted channel
        with _translate(ProtocolError, "EHLO after STARTTLS"):
            await smtp.ehlo()
        logger.debug("Session with %s upgraded to TLS", config.host)

    if config.credentials is not None:
        with _translate(AuthFailedError, "Authentication"):
            await smtp.login(config.credentials.username, config.credentials.password)
        logger.debug("Authenticated as %s", config.credentials.username)


async def _close(smtp: aiosmtplib.SMTP) -> None:
    if smtp.is_connected:
        try:
            await smtp.quit()
        except _NETWORK_ERRORS as exc:
            logger.debug("QUIT failed, dropping connection: %s", exc)
    smtp.close()


@asynccontextmanager
async def open_session(config: TransportConfig) -> AsyncIterator[aiosmtplib.SMTP]:
    """Open a ready-to-use SMTP session and guarantee it is closed.

    Connects, greets, upgrades and authenticates according to ``config``.
    The connection is terminated with QUIT (or dropped, if QUIT fails) when
    the block exits, whether normally or by an exception raised at any step.

    Raises:
        ConnectFailedError, ProtocolError, TlsFailedError, AuthFailedError
    """
    smtp = aiosmtplib.SMTP(
        hostname=config.host,
        port=config.port,
        use_tls=False,
        start_tls=False,
        timeout=config.timeout,
        validate_certs=config.validate_certs,
    )
    try:
        await _connect(smtp, config)
        await _handshake(smtp, config)
        yield smtp
    finally:
        await _close(smtp)


async def transmit(smtp: aiosmtplib.SMTP, mail: OutgoingMail) -> None:
    """Run the MAIL FROM / RCPT TO / DATA transaction on an open session."""
    with _translate(ProtocolError, "MAIL FROM"):
        await smtp.mail(mail.sender)

    for address in mail.recipients:
        with _translate(ProtocolError, f"RCPT TO {address}"):
            try:
                await smtp.rcpt(address)
            except aiosmtplib.SMTPRecipientRefused as exc:
                raise RecipientRejectedError(address, _smtp_code(exc), exc.message) from exc

    with _translate(ProtocolError, "DATA"):
        await smtp.data(mail.message.as_bytes(policy=policy.SMTP))


async def send(config: TransportConfig, mail: OutgoingMail) -> None:
    """Deliver ``mail`` in a fresh SMTP session.

    Raises:
        DeliveryError: one of its subclasses, depending on the failing step.
    """
    async with open_session(config) as smtp:
        await transmit(smtp, mail)
    logger.debug("Message %s accepted by %s", mail.message["Message-ID"], config.host)
