"""Prometheus metric definitions for the relay."""

from prometheus_client import Counter, Gauge, Histogram, generate_latest
from starlette.responses import Response


http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["service", "route", "method", "status_code"],
)
http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration seconds",
    ["service", "route", "method"],
)
webhook_events_total = Counter(
    "webhook_events_total",
    "Classified webhook events by variant",
    ["variant"],
)
webhook_events_dropped_total = Counter(
    "webhook_events_dropped_total",
    "Webhook events dropped during classification or routing",
    ["reason"],
)
duplicate_events_skipped_total = Counter(
    "duplicate_events_skipped_total",
    "Duplicate notifications skipped by the mailbox",
    ["kind"],
)
notifications_stored_total = Counter(
    "notifications_stored_total",
    "Notifications inserted into the mailbox",
    ["kind"],
)
notifications_evicted_total = Counter(
    "notifications_evicted_total",
    "Notifications removed from the mailbox before or after delivery",
    ["reason"],
)
notifications_delivered_total = Counter(
    "notifications_delivered_total",
    "Notifications marked delivered by poll requests",
)
mailbox_live_notifications = Gauge(
    "mailbox_live_notifications",
    "Current count of live notifications held in the mailbox",
)
replies_drained_total = Counter(
    "replies_drained_total",
    "Reply identifiers handed to the polling consumer",
)
outbound_requests_total = Counter(
    "outbound_requests_total",
    "Best-effort outbound deliveries by target and outcome",
    ["target", "outcome"],
)


def metrics_response() -> Response:
    """Expose all registered Prometheus metrics in text format."""

    return Response(content=generate_latest(), media_type="text/plain")
