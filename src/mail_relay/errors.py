# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Error taxonomy of the mail relay.

Client-input errors (:class:`DecodeError`, :class:`MessageValidationError`)
describe a request that can never succeed as sent. :class:`DeliveryError`
subclasses describe what went wrong talking to the upstream SMTP server.
Every error carries a short machine-readable ``code``.
"""

from __future__ import annotations


class RelayError(Exception):
    """Base class for all errors raised by the relay pipeline."""

    code = "relay_error"


# --------------------------------------------------------------- client input
class DecodeError(RelayError):
    """The message body could not be decoded."""

    code = "decode_error"


class InvalidBase64Error(DecodeError):
    code = "invalid_base64"

    def __init__(self, message: str = "Text is not valid base64"):
        super().__init__(message)


class InvalidUtf8Error(DecodeError):
    code = "invalid_utf8"

    def __init__(self, message: str = "Decoded text is not valid UTF-8"):
        super().__init__(message)


class MessageValidationError(RelayError):
    """The message fields do not form a valid email."""

    code = "validation_error"


class InvalidAddressError(MessageValidationError):
    code = "invalid_address"

    def __init__(self, address: str):
        super().__init__(f"Invalid email address: {address!r}")
        self.address = address


class InvalidSubjectError(MessageValidationError):
    code = "invalid_subject"

    def __init__(self, message: str = "Subject is not valid UTF-8"):
        super().__init__(message)


class EmptyRecipientsError(MessageValidationError):
    code = "empty_recipients"

    def __init__(self, message: str = "At least one recipient is required"):
        super().__init__(message)


# ------------------------------------------------------------------- delivery
class DeliveryError(RelayError):
    """Delivery to the upstream SMTP server failed.

    Attributes:
        smtp_code: Reply code returned by the server, when one was received.
    """

    code = "delivery_error"

    def __init__(self, message: str, smtp_code: int | None = None):
        super().__init__(message)
        self.smtp_code = smtp_code


class ConnectFailedError(DeliveryError):
    code = "connect_failed"


class TlsFailedError(DeliveryError):
    code = "tls_failed"


class ProtocolError(DeliveryError):
    code = "protocol_error"


class AuthFailedError(DeliveryError):
    code = "auth_failed"


class RecipientRejectedError(DeliveryError):
    """The server refused one recipient; the whole transaction was aborted."""

    code = "recipient_rejected"

    def __init__(self, address: str, smtp_code: int | None = None, reply: str = ""):
        message = f"Recipient {address} rejected"
        if reply:
            message = f"{message}: {reply}"
        super().__init__(message, smtp_code)
        self.address = address
        self.reply = reply
