"""
Metrics Collection with Prometheus.

Exposes payment and delivery metrics for monitoring.
"""

from enum import StrEnum

from prometheus_client import Counter, Gauge, Histogram, Info

from payhooks.config import settings


class MetricLabels(StrEnum):
    """Standard metric label names."""

    ENDPOINT = "endpoint"
    METHOD = "method"
    STATUS_CODE = "status_code"
    OPERATION = "operation"
    OUTCOME = "outcome"
    EVENT_TYPE = "event_type"
    ERROR_TYPE = "error_type"


class PaymentMetrics:
    """
    Centralized metrics for the payment handlers.

    Covers:
    - HTTP requests (rate, duration, in flight)
    - Stripe webhook events by type and outcome
    - Crypto verifications by outcome, plus RPC latency
    - Download email sends
    """

    def __init__(self) -> None:
        """Initialize all Prometheus metrics."""

        self.service_info = Info(
            "payhooks_service",
            "Service information",
        )
        self.service_info.info(
            {
                "version": settings.api_version,
                "service_name": settings.service_name,
            }
        )

        # ====================================================================
        # HTTP Metrics
        # ====================================================================
        self.http_requests_total = Counter(
            "payhooks_http_requests_total",
            "Total HTTP requests",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD, MetricLabels.STATUS_CODE],
        )

        self.http_request_duration_seconds = Histogram(
            "payhooks_http_request_duration_seconds",
            "HTTP request duration in seconds",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
            buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
        )

        self.http_requests_in_progress = Gauge(
            "payhooks_http_requests_in_progress",
            "Number of HTTP requests currently being processed",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
        )

        # ====================================================================
        # Payment Metrics
        # ====================================================================
        self.webhook_events_total = Counter(
            "payhooks_webhook_events_total",
            "Stripe webhook deliveries",
            [MetricLabels.EVENT_TYPE, MetricLabels.OUTCOME],
        )

        self.crypto_verifications_total = Counter(
            "payhooks_crypto_verifications_total",
            "Crypto payment verifications",
            [MetricLabels.OUTCOME],
        )

        self.rpc_duration_seconds = Histogram(
            "payhooks_rpc_duration_seconds",
            "Blockchain node call duration in seconds",
            [MetricLabels.OPERATION],
            buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
        )

        self.emails_sent_total = Counter(
            "payhooks_emails_sent_total",
            "Download email send attempts",
            ["success"],
        )

        # ====================================================================
        # Error Metrics
        # ====================================================================
        self.errors_total = Counter(
            "payhooks_errors_total",
            "Total errors by type",
            [MetricLabels.ERROR_TYPE, MetricLabels.OPERATION],
        )

    # ========================================================================
    # Helper Methods
    # ========================================================================

    def record_http_request(
        self, endpoint: str, method: str, status_code: int, duration: float
    ) -> None:
        """Record HTTP request metrics."""
        self.http_requests_total.labels(
            endpoint=endpoint, method=method, status_code=status_code
        ).inc()
        self.http_request_duration_seconds.labels(endpoint=endpoint, method=method).observe(
            duration
        )

    def record_webhook_event(self, event_type: str, outcome: str) -> None:
        self.webhook_events_total.labels(event_type=event_type, outcome=outcome).inc()

    def record_crypto_verification(self, outcome: str) -> None:
        self.crypto_verifications_total.labels(outcome=outcome).inc()

    def record_rpc_call(self, operation: str, duration: float) -> None:
        self.rpc_duration_seconds.labels(operation=operation).observe(duration)

    def record_email(self, success: bool) -> None:
        self.emails_sent_total.labels(success=str(success)).inc()

    def record_error(self, error_type: str, operation: str) -> None:
        """Record error occurrence."""
        self.errors_total.labels(error_type=error_type, operation=operation).inc()


# Global metrics instance
metrics = PaymentMetrics()
