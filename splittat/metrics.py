"""
Prometheus metrics for the Splittat API.

Tracks HTTP traffic plus registrations, logins, receipt uploads and splits.
"""

from fastapi import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

# Request metrics
http_requests_total = Counter(
    "splittat_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

http_request_duration_seconds = Histogram(
    "splittat_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.075, 0.1, 0.25, 0.5, 0.75, 1.0, 2.5, 5.0),
)

# Auth metrics
registrations_total = Counter(
    "splittat_registrations_total",
    "Total registration attempts",
    ["status"],
)

logins_total = Counter(
    "splittat_logins_total",
    "Total login attempts",
    ["status"],
)

# Receipt metrics
receipt_uploads_total = Counter(
    "splittat_receipt_uploads_total",
    "Total receipt uploads",
    ["status"],
)

receipt_upload_bytes = Histogram(
    "splittat_receipt_upload_bytes",
    "Size of accepted receipt images in bytes",
    buckets=(10_000, 50_000, 100_000, 500_000, 1_000_000, 2_500_000, 5_000_000, 10_000_000),
)

receipt_stage_transitions_total = Counter(
    "splittat_receipt_stage_transitions_total",
    "Receipt processing stage changes",
    ["stage"],
)

# Split metrics
splits_total = Counter(
    "splittat_splits_total",
    "Total split computations",
    ["split_type", "status"],
)


def _status(success: bool) -> str:
    return "success" if success else "failure"


def track_request_metrics(method: str, endpoint: str, status_code: int, duration: float):
    """Track HTTP request metrics."""
    http_requests_total.labels(method=method, endpoint=endpoint, status=status_code).inc()
    http_request_duration_seconds.labels(method=method, endpoint=endpoint).observe(duration)


def track_registration(success: bool):
    """Track registration attempts."""
    registrations_total.labels(status=_status(success)).inc()


def track_login(success: bool):
    """Track login attempts."""
    logins_total.labels(status=_status(success)).inc()


def track_receipt_upload(success: bool, size: int = 0):
    """Track receipt uploads and the size of accepted images."""
    receipt_uploads_total.labels(status=_status(success)).inc()
    if success:
        receipt_upload_bytes.observe(size)


def track_stage_transition(stage: str):
    """Track a receipt entering a processing stage."""
    receipt_stage_transitions_total.labels(stage=stage).inc()


def track_split(split_type: str, success: bool):
    """Track split computations by strategy."""
    splits_total.labels(split_type=split_type, status=_status(success)).inc()


async def metrics_endpoint():
    """
    Prometheus metrics endpoint.

    Returns:
        Response with Prometheus metrics in text format
    """
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
