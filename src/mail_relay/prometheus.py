# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Prometheus metrics for monitoring the mail relay.

Metrics exposed (all with the ``relay_`` prefix):
    - ``relay_sent_total``: Counter of messages accepted by the SMTP server.
    - ``relay_delivery_errors_total``: Counter of failed deliveries by error code.
    - ``relay_rejected_requests_total``: Counter of requests refused before
      delivery (bad encoding, bad addresses) by error code.

Example:
    Scraping via the REST API::

        GET /metrics
"""

from prometheus_client import CollectorRegistry, Counter, generate_latest


class MailMetrics:
    """Prometheus metrics collector for the relay.

    Attributes:
        registry: The Prometheus CollectorRegistry holding all metrics.
        sent: Counter of delivered messages.
        errors: Counter of delivery failures, labeled by ``code``.
        rejected: Counter of invalid requests, labeled by ``code``.
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """Initialize metrics with an optional custom registry.

        Args:
            registry: Optional Prometheus CollectorRegistry. A private
                registry is created when omitted, so several relays (e.g. in
                tests) never collide on metric names.
        """
        self.registry = registry or CollectorRegistry()
        self.sent = Counter(
            "relay_sent_total",
            "Total messages accepted by the SMTP server",
            registry=self.registry,
        )
        self.errors = Counter(
            "relay_delivery_errors_total",
            "Total failed deliveries",
            ["code"],
            registry=self.registry,
        )
        self.rejected = Counter(
            "relay_rejected_requests_total",
            "Total requests rejected before delivery",
            ["code"],
            registry=self.registry,
        )

    def inc_sent(self) -> None:
        self.sent.inc()

    def inc_error(self, code: str) -> None:
        self.errors.labels(code=code).inc()

    def inc_rejected(self, code: str) -> None:
        self.rejected.labels(code=code).inc()

    def generate_latest(self) -> bytes:
        """Export all metrics in Prometheus text exposition format."""
        return generate_latest(self.registry)
