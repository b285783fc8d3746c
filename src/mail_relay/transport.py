# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Transport configuration and STARTTLS policy.

The transport configuration is resolved once when the process starts and is
then shared, read-only, by every request. Whether a session upgrades with
STARTTLS is decided here and nowhere else:

- an explicit ``use_tls`` setting always wins;
- otherwise port 25 (relay-to-relay transfer) stays in plaintext and any
  other port (587 submission, custom ports) requires STARTTLS.

Example:
    Building the configuration for a submission server::

        config = build_transport_config(
            host="smtp.example.com",
            port=587,
            username="mailer",
            password="secret",
        )
        assert config.use_tls is True
"""

from __future__ import annotations

from dataclasses import dataclass

PLAINTEXT_PORT = 25
DEFAULT_TIMEOUT = 10.0


def resolve_use_tls(port: int, explicit_flag: bool | None) -> bool:
    """Decide whether the SMTP session must use STARTTLS."""
    if explicit_flag is not None:
        return explicit_flag
    return port != PLAINTEXT_PORT


@dataclass(frozen=True)
class Credentials:
    """SMTP AUTH username/password pair."""

    username: str
    password: str

    def __repr__(self) -> str:
        return f"Credentials(username={self.username!r}, password='***')"


@dataclass(frozen=True)
class TransportConfig:
    """Connection parameters for the upstream SMTP server.

    Attributes:
        host: SMTP server hostname or IP address.
        port: SMTP server port.
        use_tls: Resolved STARTTLS decision (see :func:`resolve_use_tls`).
        credentials: Optional AUTH credentials.
        timeout: Seconds allowed for the connect and for each SMTP command,
            TLS handshake included.
        validate_certs: Verify the server certificate during STARTTLS.
    """

    host: str
    port: int
    use_tls: bool
    credentials: Credentials | None = None
    timeout: float = DEFAULT_TIMEOUT
    validate_certs: bool = True


def build_transport_config(
    host: str,
    port: int,
    use_tls: bool | None = None,
    username: str | None = None,
    password: str | None = None,
    timeout: float = DEFAULT_TIMEOUT,
    validate_certs: bool = True,
) -> TransportConfig:
    """Resolve raw settings into an immutable :class:`TransportConfig`.

    Credentials are only set when both username and password are given.
    """
    credentials = Credentials(username, password) if username and password else None
    return TransportConfig(
        host=host,
        port=int(port),
        use_tls=resolve_use_tls(int(port), use_tls),
        credentials=credentials,
        timeout=float(timeout),
        validate_certs=validate_certs,
    )
