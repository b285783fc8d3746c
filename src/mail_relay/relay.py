# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Core orchestration of the mail relay.

:class:`MailRelay` runs the dispatch pipeline for one request::

    MailRequest -> decode -> build message -> SMTP session -> DeliveryOutcome

Client-input problems (undecodable text, bad addresses, no recipients) are
raised to the caller since the request can never succeed as sent. Upstream
failures are folded into a failed :class:`DeliveryOutcome`. Nothing is
retried or persisted.

Example:
    Delivering a request::

        relay = MailRelay(build_transport_config("localhost", 25))
        outcome = await relay.deliver(request)
        if not outcome.ok:
            print(outcome.error)
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Literal

from . import smtp_client
from .encoding import decode_mail
from .errors import DecodeError, DeliveryError, MessageValidationError, RecipientRejectedError
from .logger import get_logger
from .message import OutgoingMail, build_from_decoded
from .models import MailRequest
from .prometheus import MailMetrics
from .transport import TransportConfig

Sender = Callable[[TransportConfig, OutgoingMail], Awaitable[None]]


@dataclass(frozen=True)
class DeliveryOutcome:
    """Result of one delivery attempt.

    Attributes:
        status: ``"sent"`` or ``"failed"``.
        recipients: Recipients as listed in the request.
        error: The delivery error when ``status`` is ``"failed"``.
    """

    status: Literal["sent", "failed"]
    recipients: tuple[str, ...]
    error: DeliveryError | None = None

    @classmethod
    def sent(cls, recipients: tuple[str, ...]) -> DeliveryOutcome:
        return cls(status="sent", recipients=recipients)

    @classmethod
    def failed(cls, recipients: tuple[str, ...], error: DeliveryError) -> DeliveryOutcome:
        return cls(status="failed", recipients=recipients, error=error)

    @property
    def ok(self) -> bool:
        return self.status == "sent"


class MailRelay:
    """Delivers mail requests through the configured SMTP server.

    A relay holds only immutable configuration and thread-safe counters, so a
    single instance serves every concurrent request.

    Attributes:
        config: Transport configuration shared by every delivery.
        metrics: Prometheus counters.
    """

    def __init__(
        self,
        config: TransportConfig,
        metrics: MailMetrics | None = None,
        sender: Sender | None = None,
    ):
        """Create a relay.

        Args:
            config: Resolved transport configuration.
            metrics: Metrics collector; a private one is created when omitted.
            sender: Coroutine performing the SMTP delivery. Defaults to
                :func:`mail_relay.smtp_client.send`.
        """
        self.config = config
        self.metrics = metrics or MailMetrics()
        self._send = sender or smtp_client.send
        self.logger = get_logger("MailRelay")

    async def deliver(self, request: MailRequest) -> DeliveryOutcome:
        """Decode, build and deliver ``request``.

        Raises:
            DecodeError: the text cannot be decoded.
            MessageValidationError: no recipients or a malformed address.
        """
        recipients = tuple(request.to)
        try:
            mail = build_from_decoded(decode_mail(request))
        except (DecodeError, MessageValidationError) as exc:
            self.metrics.inc_rejected(exc.code)
            self.logger.info("Request from %s rejected: %s", request.from_addr, exc)
            raise
        self.logger.debug("Body for %s:\n%s", mail.message["Message-ID"], mail.message.get_content())

        try:
            await self._send(self.config, mail)
        except RecipientRejectedError as exc:
            self.metrics.inc_error(exc.code)
            self.logger.warning("Delivery to %s refused by upstream: %s", ", ".join(recipients), exc)
            return DeliveryOutcome.failed(recipients, exc)
        except DeliveryError as exc:
            self.metrics.inc_error(exc.code)
            self.logger.error(
                "Delivery via %s:%s failed (%s): %s",
                self.config.host,
                self.config.port,
                exc.code,
                exc,
            )
            return DeliveryOutcome.failed(recipients, exc)

        self.metrics.inc_sent()
        self.logger.info("Mail sent to %s", ", ".join(recipients))
        return DeliveryOutcome.sent(recipients)
