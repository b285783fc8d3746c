# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Pydantic models for the mail relay.

Models:
    - Encoding: Wire representation of the message text.
    - MailRequest: A single send request as received over HTTP.
    - DecodedMail: A request whose text has been decoded.
    - SendMailRequest: Top-level ``POST /send`` body wrapping a MailRequest.
    - RelayResponse: JSend-style response envelope.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field


class Encoding(str, Enum):
    """Encodings accepted for the ``text`` field.

    Attributes:
        PLAIN: Text is sent as-is.
        BASE64: Text is standard base64 of UTF-8 bytes.
    """

    PLAIN = "plain"
    BASE64 = "base64"


class Status(str, Enum):
    """Response status following JSend conventions."""

    OK = "ok"
    FAIL = "fail"
    ERROR = "error"


class MailRequest(BaseModel):
    """Email payload as received from the client.

    Address syntax and the non-empty recipient list are enforced by the
    message builder, so that both surface as domain validation errors.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    from_addr: Annotated[
        str,
        Field(alias="from", description="Sender address (e.g. sender@example.com)")
    ]
    to: Annotated[
        list[str],
        Field(description="Ordered list of recipient addresses")
    ]
    subject: Annotated[
        str,
        Field(description="Subject line")
    ]
    text: Annotated[
        str,
        Field(description="Body text, encoded according to ``encoding``")
    ]
    encoding: Annotated[
        Encoding,
        Field(description="Encoding of the text field (plain or base64)")
    ]


class DecodedMail(BaseModel):
    """Canonical form consumed by the message builder."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    from_addr: str = Field(alias="from")
    to: list[str]
    subject: str
    text: str


class SendMailRequest(BaseModel):
    """Request wrapper for ``POST /send``."""

    mail: MailRequest


class RelayResponse(BaseModel):
    """Standard JSON response returned by every endpoint."""

    status: Status
    message: str
