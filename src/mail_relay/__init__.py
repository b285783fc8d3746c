"""HTTP-to-SMTP mail relay.

Accepts a JSON send request over HTTP and delivers it to a downstream SMTP
server, optionally upgrading the session with STARTTLS and authenticating.

- FastAPI endpoint ``POST /send`` with a liveness probe on ``/``
- Plain or base64 encoded message bodies
- STARTTLS decided once from the SMTP port or an explicit setting
- One fresh SMTP session per request, all-or-nothing recipients
- Prometheus metrics

Example:
    Basic usage with the FastAPI application::

        from mail_relay.api import create_app
        from mail_relay.relay import MailRelay
        from mail_relay.transport import build_transport_config

        relay = MailRelay(build_transport_config("smtp.example.com", 587))
        app = create_app(relay, api_token="secret")

Authors:
    Softwell S.r.l.
"""

__version__ = "0.1.0"
