# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Decoding of the wire-level message text.

Clients may ship the body either verbatim (``plain``) or as standard base64
(``base64``), which avoids JSON escaping issues for arbitrary text. The text
is decoded exactly once, before the message is built.
"""

from __future__ import annotations

import base64
import binascii

from .errors import InvalidBase64Error, InvalidUtf8Error
from .models import DecodedMail, Encoding, MailRequest


def decode(text: str, encoding: Encoding) -> str:
    """Return the raw message text for ``text`` in the given ``encoding``.

    Raises:
        InvalidBase64Error: ``text`` is not padded standard base64.
        InvalidUtf8Error: the decoded bytes are not UTF-8, or plain text
            holds unpaired surrogates.
    """
    if encoding is not Encoding.BASE64:
        # JSON strings may carry lone surrogates
        try:
            text.encode("utf-8")
        except UnicodeEncodeError as exc:
            raise InvalidUtf8Error(f"Text is not valid UTF-8: {exc}") from exc
        return text
    try:
        raw = base64.b64decode(text.encode("ascii"), validate=True)
    except (UnicodeEncodeError, binascii.Error) as exc:
        raise InvalidBase64Error(f"Text is not valid base64: {exc}") from exc
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise InvalidUtf8Error(f"Decoded text is not valid UTF-8: {exc}") from exc


def decode_mail(request: MailRequest) -> DecodedMail:
    """Decode the text of a request into its canonical form."""
    return DecodedMail(
        from_addr=request.from_addr,
        to=list(request.to),
        subject=request.subject,
        text=decode(request.text, request.encoding),
    )
