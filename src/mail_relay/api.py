# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""FastAPI application factory for the mail relay.

Endpoints:

- ``GET /`` and ``HEAD /``: liveness probe, always 200.
- ``POST /send``: deliver one mail through the relay.
- ``GET /metrics``: Prometheus metrics.

Every response body uses the JSend-style envelope
``{"status": "ok" | "fail" | "error", "message": "..."}``. Failures are
mapped as follows:

==========================================  ======
Malformed JSON, missing fields, bad values  400
Undecodable text, bad addresses             400
Missing or wrong API token                  401
Recipient refused by the SMTP server        422
Unexpected server error                     500
Connect / TLS / protocol / auth failure     502
==========================================  ======

When an API token is configured, ``/send`` and ``/metrics`` require it in
the ``X-API-Token`` header.

Example:
    Creating and running the application::

        relay = MailRelay(build_transport_config("localhost", 25))
        app = create_app(relay, api_token="secret-token")
        uvicorn.run(app, host="0.0.0.0", port=3333)
"""

from __future__ import annotations

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from fastapi.security import APIKeyHeader
from starlette.exceptions import HTTPException as StarletteHTTPException

from .errors import (
    AuthFailedError,
    DecodeError,
    DeliveryError,
    MessageValidationError,
    RecipientRejectedError,
)
from .logger import get_logger
from .models import RelayResponse, SendMailRequest, Status
from .relay import DeliveryOutcome, MailRelay

logger = get_logger("RelayAPI")

API_TOKEN_HEADER_NAME = "X-API-Token"
api_key_scheme = APIKeyHeader(name=API_TOKEN_HEADER_NAME, auto_error=False)


async def require_token(request: Request, api_token: str | None = Depends(api_key_scheme)) -> None:
    """Validate the API token carried in the ``X-API-Token`` header.

    When no token has been configured through :func:`create_app` the
    dependency is bypassed.
    """
    expected = getattr(request.app.state, "api_token", None)
    if expected is None:
        return
    if not api_token or api_token != expected:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid or missing API token")


def get_relay(request: Request) -> MailRelay:
    return request.app.state.relay


auth_dependency = Depends(require_token)


def _reply(status_code: int, state: Status, message: str) -> JSONResponse:
    body = RelayResponse(status=state, message=message)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


def delivery_error_status(error: DeliveryError) -> int:
    """HTTP status for a failed delivery."""
    if isinstance(error, RecipientRejectedError):
        return 422
    return status.HTTP_502_BAD_GATEWAY


def outcome_response(outcome: DeliveryOutcome) -> JSONResponse:
    """Map a delivery outcome to the HTTP response returned to the client."""
    if outcome.ok:
        return _reply(status.HTTP_200_OK, Status.OK, f"Mail sent to {', '.join(outcome.recipients)}")
    error = outcome.error
    if isinstance(error, RecipientRejectedError):
        return _reply(delivery_error_status(error), Status.FAIL, str(error))
    if isinstance(error, AuthFailedError):
        return _reply(delivery_error_status(error), Status.ERROR, f"SMTP authentication failed: {error}")
    return _reply(delivery_error_status(error), Status.ERROR, f"Upstream SMTP server unavailable: {error}")


def create_app(relay: MailRelay, api_token: str | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Parameters
    ----------
    relay:
        The :class:`MailRelay` serving every request. It is stored on
        ``app.state`` and never replaced.
    api_token:
        Optional secret protecting ``/send`` and ``/metrics``.

    Returns
    -------
    FastAPI
        A configured application ready to be served by uvicorn.
    """
    api = FastAPI(title="Mail Relay")
    api.state.relay = relay
    api.state.api_token = api_token

    @api.middleware("http")
    async def trim_trailing_slash(request: Request, call_next):
        """Serve ``/send/`` as ``/send``."""
        path = request.scope["path"]
        if len(path) > 1 and path.endswith("/"):
            request.scope["path"] = path.rstrip("/") or "/"
        return await call_next(request)

    @api.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Reject malformed bodies with 400 and the validation details."""
        logger.info("Validation error on %s %s: %s", request.method, request.url.path, exc.errors())
        details = "; ".join(
            f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg')}"
            for err in exc.errors()
        )
        return _reply(status.HTTP_400_BAD_REQUEST, Status.FAIL, f"Invalid request: {details}")

    @api.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Wrap 401/404/405 and friends in the response envelope."""
        state = Status.ERROR if exc.status_code >= 500 else Status.FAIL
        response = _reply(exc.status_code, state, str(exc.detail))
        if exc.headers:
            response.headers.update(exc.headers)
        return response

    @api.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _reply(status.HTTP_500_INTERNAL_SERVER_ERROR, Status.ERROR, "Internal server error")

    @api.api_route("/", methods=["GET", "HEAD"], response_model=RelayResponse)
    async def health():
        """Health check endpoint for container monitoring (no authentication required)."""
        return RelayResponse(status=Status.OK, message="Mail relay up")

    @api.post("/send", response_model=RelayResponse, dependencies=[auth_dependency])
    async def send(request: Request, payload: SendMailRequest, relay: MailRelay = Depends(get_relay)):
        """Deliver one mail through the configured SMTP server."""
        logger.info("send request from host %s", request.headers.get("host", "<none>"))
        try:
            outcome = await relay.deliver(payload.mail)
        except (DecodeError, MessageValidationError) as exc:
            return _reply(status.HTTP_400_BAD_REQUEST, Status.FAIL, str(exc))
        return outcome_response(outcome)

    @api.get("/metrics", dependencies=[auth_dependency])
    async def metrics(relay: MailRelay = Depends(get_relay)):
        """Expose Prometheus metrics collected by the relay."""
        return Response(content=relay.metrics.generate_latest(), media_type="text/plain; version=0.0.4")

    return api
