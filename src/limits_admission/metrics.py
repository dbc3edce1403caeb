"""Prometheus metrics for admission decisions and policy reloads."""

from __future__ import annotations

from prometheus_client import Counter, make_asgi_app

ADMISSION_REQUESTS = Counter(
    "admission_requests",
    "Total admission requests answered, by decision.",
    labelnames=("allowed",),
)

ADMISSION_ERRORS = Counter(
    "errors",
    "Total admission requests that failed with an internal or decode error.",
)

POLICY_RELOADS = Counter(
    "reload",
    "Total policy reload attempts.",
)

POLICY_RELOAD_ERRORS = Counter(
    "reload_errors",
    "Total policy reload attempts that failed and kept the previous generation.",
)

# Export both label values from the start so rate() works before the first deny.
ADMISSION_REQUESTS.labels(allowed="true")
ADMISSION_REQUESTS.labels(allowed="false")


def record_decision(allowed: bool) -> None:
    ADMISSION_REQUESTS.labels(allowed="true" if allowed else "false").inc()


def metrics_app():
    """ASGI app serving the default registry in the Prometheus text format."""
    return make_asgi_app()
