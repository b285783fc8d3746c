"""Tests for the SMTP session state machine with a scripted SMTP double."""

import ssl

import aiosmtplib
import pytest

from mail_relay import smtp_client
from mail_relay.errors import (
    AuthFailedError,
    ConnectFailedError,
    ProtocolError,
    RecipientRejectedError,
    TlsFailedError,
)
from mail_relay.message import build_message
from mail_relay.smtp_client import open_session, send
from mail_relay.transport import build_transport_config


class DummySMTP:
    """Records every SMTP step; ``failures`` maps a step name to an exception."""

    def __init__(self, hostname, port, use_tls=False, start_tls=None, timeout=None, validate_certs=True):
        self.hostname = hostname
        self.port = port
        self.use_tls = use_tls
        self.start_tls = start_tls
        self.timeout = timeout
        self.validate_certs = validate_certs
        self.calls: list[str] = []
        self.failures: dict[str, BaseException] = {}
        self.rejected: dict[str, tuple[int, str]] = {}
        self.connected = False
        self.closed = False
        self.data_payload: bytes | None = None

    def _step(self, name: str) -> None:
        self.calls.append(name)
        if name in self.failures:
            raise self.failures[name]

    @property
    def is_connected(self) -> bool:
        return self.connected

    async def connect(self):
        self._step("connect")
        self.connected = True

    async def ehlo(self):
        self._step("ehlo")

    async def starttls(self):
        self._step("starttls")

    async def login(self, username, password):
        self._step(f"login:{username}:{password}")

    async def mail(self, sender):
        self._step(f"mail:{sender}")

    async def rcpt(self, recipient):
        self._step(f"rcpt:{recipient}")
        if recipient in self.rejected:
            code, message = self.rejected[recipient]
            raise aiosmtplib.SMTPRecipientRefused(code, message, recipient)

    async def data(self, message):
        self._step("data")
        self.data_payload = message

    async def quit(self):
        self._step("quit")
        self.connected = False

    def close(self):
        self.closed = True
        self.connected = False


@pytest.fixture
def smtp_factory(monkeypatch):
    """Replace aiosmtplib.SMTP; ``prepare`` configures the next instance."""
    created: list[DummySMTP] = []
    setup: dict = {"failures": {}, "rejected": {}}

    def factory(**kwargs):
        smtp = DummySMTP(**kwargs)
        smtp.failures = dict(setup["failures"])
        smtp.rejected = dict(setup["rejected"])
        created.append(smtp)
        return smtp

    monkeypatch.setattr("mail_relay.smtp_client.aiosmtplib.SMTP", factory)
    return created, setup


@pytest.fixture
def mail():
    return build_message("a@x.com", ["b@y.com", "c@y.com"], "Hi", "hello")


@pytest.mark.asyncio
async def test_plain_session_without_auth(smtp_factory, mail):
    created, _ = smtp_factory
    config = build_transport_config("smtp.local", 25)

    await send(config, mail)

    smtp = created[0]
    assert smtp.start_tls is False
    assert smtp.use_tls is False
    assert smtp.timeout == 10.0
    assert smtp.calls == ["connect", "ehlo", "mail:a@x.com", "rcpt:b@y.com", "rcpt:c@y.com", "data", "quit"]
    assert b"Subject: Hi" in smtp.data_payload
    assert b"\r\n" in smtp.data_payload
    assert smtp.closed is True


@pytest.mark.asyncio
async def test_starttls_and_login_when_configured(smtp_factory, mail):
    created, _ = smtp_factory
    config = build_transport_config("smtp.local", 587, username="user", password="pass", timeout=3)

    await send(config, mail)

    smtp = created[0]
    assert smtp.calls[:5] == ["connect", "ehlo", "starttls", "ehlo", "login:user:pass"]
    assert smtp.calls[-1] == "quit"
    assert smtp.timeout == 3.0


@pytest.mark.asyncio
async def test_explicit_flag_disables_starttls_on_submission_port(smtp_factory, mail):
    created, _ = smtp_factory
    config = build_transport_config("smtp.local", 587, use_tls=False)

    await send(config, mail)

    assert "starttls" not in created[0].calls


@pytest.mark.asyncio
async def test_connect_failure(smtp_factory, mail):
    created, setup = smtp_factory
    setup["failures"]["connect"] = aiosmtplib.SMTPConnectError("Connection refused")

    with pytest.raises(ConnectFailedError) as excinfo:
        await send(build_transport_config("smtp.local", 25), mail)

    assert "smtp.local:25" in str(excinfo.value)
    assert created[0].calls == ["connect"]
    assert created[0].closed is True


@pytest.mark.asyncio
async def test_connect_timeout(smtp_factory, mail):
    _, setup = smtp_factory
    setup["failures"]["connect"] = aiosmtplib.SMTPConnectTimeoutError("Timed out connecting")

    with pytest.raises(ConnectFailedError):
        await send(build_transport_config("smtp.local", 25), mail)


@pytest.mark.asyncio
async def test_bad_greeting_is_protocol_error(smtp_factory, mail):
    _, setup = smtp_factory
    setup["failures"]["connect"] = aiosmtplib.SMTPConnectResponseError(554, "No service")

    with pytest.raises(ProtocolError) as excinfo:
        await send(build_transport_config("smtp.local", 25), mail)
    assert excinfo.value.smtp_code == 554


@pytest.mark.asyncio
async def test_ehlo_failure_is_protocol_error_and_quits(smtp_factory, mail):
    created, setup = smtp_factory
    setup["failures"]["ehlo"] = aiosmtplib.SMTPHeloError(501, "Syntax error")

    with pytest.raises(ProtocolError) as excinfo:
        await send(build_transport_config("smtp.local", 25), mail)

    assert excinfo.value.smtp_code == 501
    assert created[0].calls == ["connect", "ehlo", "quit"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "failure",
    [
        aiosmtplib.SMTPException("SMTP STARTTLS extension not supported by server."),
        aiosmtplib.SMTPResponseException(454, "TLS not available"),
        ssl.SSLError("handshake failure"),
    ],
)
async def test_starttls_failure(smtp_factory, mail, failure):
    created, setup = smtp_factory
    setup["failures"]["starttls"] = failure

    with pytest.raises(TlsFailedError):
        await send(build_transport_config("smtp.local", 587), mail)

    assert created[0].calls == ["connect", "ehlo", "starttls", "quit"]


@pytest.mark.asyncio
async def test_auth_failure(smtp_factory, mail):
    created, setup = smtp_factory
    setup["failures"]["login:user:wrong"] = aiosmtplib.SMTPAuthenticationError(535, "Bad credentials")

    with pytest.raises(AuthFailedError) as excinfo:
        await send(build_transport_config("smtp.local", 25, username="user", password="wrong"), mail)

    assert excinfo.value.smtp_code == 535
    assert created[0].calls[-1] == "quit"
    assert not any(call.startswith("mail:") for call in created[0].calls)


@pytest.mark.asyncio
async def test_rejected_recipient_aborts_before_data(smtp_factory, mail):
    created, setup = smtp_factory
    setup["rejected"]["b@y.com"] = (550, "User unknown")

    with pytest.raises(RecipientRejectedError) as excinfo:
        await send(build_transport_config("smtp.local", 25), mail)

    error = excinfo.value
    assert error.address == "b@y.com"
    assert error.smtp_code == 550
    assert "User unknown" in str(error)
    smtp = created[0]
    assert "data" not in smtp.calls
    assert "rcpt:c@y.com" not in smtp.calls
    assert smtp.calls[-1] == "quit"


@pytest.mark.asyncio
async def test_rejected_last_recipient_still_aborts(smtp_factory, mail):
    created, setup = smtp_factory
    setup["rejected"]["c@y.com"] = (550, "User unknown")

    with pytest.raises(RecipientRejectedError) as excinfo:
        await send(build_transport_config("smtp.local", 25), mail)

    assert excinfo.value.address == "c@y.com"
    assert "data" not in created[0].calls


@pytest.mark.asyncio
async def test_sender_refused_is_protocol_error(smtp_factory, mail):
    created, setup = smtp_factory
    setup["failures"]["mail:a@x.com"] = aiosmtplib.SMTPSenderRefused(553, "Sender not allowed", "a@x.com")

    with pytest.raises(ProtocolError):
        await send(build_transport_config("smtp.local", 25), mail)
    assert created[0].calls[-1] == "quit"


@pytest.mark.asyncio
async def test_data_failure_is_protocol_error(smtp_factory, mail):
    _, setup = smtp_factory
    setup["failures"]["data"] = aiosmtplib.SMTPDataError(554, "Transaction failed")

    with pytest.raises(ProtocolError) as excinfo:
        await send(build_transport_config("smtp.local", 25), mail)
    assert excinfo.value.smtp_code == 554


@pytest.mark.asyncio
async def test_quit_failure_drops_connection(smtp_factory, mail):
    created, setup = smtp_factory
    setup["failures"]["quit"] = aiosmtplib.SMTPServerDisconnected("gone")

    await send(build_transport_config("smtp.local", 25), mail)

    assert created[0].closed is True


@pytest.mark.asyncio
async def test_open_session_closes_on_caller_error(smtp_factory):
    created, _ = smtp_factory

    with pytest.raises(RuntimeError):
        async with open_session(build_transport_config("smtp.local", 25)):
            raise RuntimeError("boom")

    assert created[0].calls == ["connect", "ehlo", "quit"]
    assert created[0].closed is True


def test_smtp_code_ignores_missing_codes():
    assert smtp_client._smtp_code(aiosmtplib.SMTPResponseException(451, "later")) == 451
    assert smtp_client._smtp_code(OSError("refused")) is None
