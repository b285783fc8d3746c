# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Construction of the outgoing email.

Builds a single-part ``text/plain`` message with From, To, Subject, Date and
Message-ID headers, together with the SMTP envelope (bare sender and
recipient addresses) used by the session client.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formatdate, getaddresses, make_msgid
from typing import Sequence

from .errors import EmptyRecipientsError, InvalidAddressError, InvalidSubjectError, InvalidUtf8Error
from .models import DecodedMail

_ADDR_SPEC = re.compile(r"^[^@\s<>()\[\],;:\"]+@([^@\s<>()\[\],;:\"]+)$")


@dataclass(frozen=True)
class OutgoingMail:
    """A built message plus its SMTP envelope.

    Attributes:
        sender: Bare address used for ``MAIL FROM``.
        recipients: Bare addresses used for ``RCPT TO``, in request order.
        message: The message transmitted with ``DATA``.
    """

    sender: str
    recipients: tuple[str, ...]
    message: EmailMessage


def _is_utf8(value: str) -> bool:
    try:
        value.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


def parse_address(value: str) -> str:
    """Return the bare ``local@domain`` of ``value``.

    Accepts ``user@example.com`` and ``Name <user@example.com>``. The display
    name may be any text; the address itself must be ASCII since the envelope
    is sent without SMTPUTF8.

    Raises:
        InvalidAddressError: ``value`` is not exactly one plausible address.
    """
    if not isinstance(value, str) or "\r" in value or "\n" in value or not _is_utf8(value):
        raise InvalidAddressError(str(value))
    parsed = getaddresses([value])
    if len(parsed) != 1:
        raise InvalidAddressError(value)
    _name, addr = parsed[0]
    match = _ADDR_SPEC.match(addr)
    if not match or not addr.isascii():
        raise InvalidAddressError(value)
    domain = match.group(1)
    if domain.startswith(".") or domain.endswith(".") or ".." in domain:
        raise InvalidAddressError(value)
    return addr


def build_message(from_addr: str, to: Sequence[str], subject: str, body: str) -> OutgoingMail:
    """Assemble a message from validated fields.

    Raises:
        EmptyRecipientsError: ``to`` is empty.
        InvalidAddressError: ``from_addr`` or a recipient is malformed.
        InvalidSubjectError: ``subject`` cannot be encoded as UTF-8.
        InvalidUtf8Error: ``body`` cannot be encoded as UTF-8.
    """
    if not to:
        raise EmptyRecipientsError()
    sender = parse_address(from_addr)
    recipients = tuple(parse_address(addr) for addr in to)
    if not _is_utf8(subject):
        raise InvalidSubjectError()
    if not _is_utf8(body):
        raise InvalidUtf8Error("Text is not valid UTF-8")

    msg = EmailMessage()
    msg["From"] = from_addr
    msg["To"] = ", ".join(to)
    # Header values may not carry line breaks
    msg["Subject"] = " ".join(subject.splitlines())
    msg["Date"] = formatdate(localtime=True)
    msg["Message-ID"] = make_msgid(domain=sender.rsplit("@", 1)[1])
    msg.set_content(body)
    return OutgoingMail(sender=sender, recipients=recipients, message=msg)


def build_from_decoded(mail: DecodedMail) -> OutgoingMail:
    """Build the outgoing message for a decoded request."""
    return build_message(mail.from_addr, mail.to, mail.subject, mail.text)
