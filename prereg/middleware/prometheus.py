"""Prometheus metrics middleware and custom metrics.

- HTTP request metrics (latency, count, size)
- Registration and referral-edge counters
- Live feed subscriber gauge
- Magic-link lockout counter
"""

from fastapi import FastAPI
from prometheus_client import Counter, Gauge, Info
from prometheus_fastapi_instrumentator import Instrumentator, metrics

# =============================================================================
# Custom Metrics
# =============================================================================

APP_INFO = Info("prereg_app", "Application information")

REGISTRATIONS_TOTAL = Counter(
    "prereg_registrations_total",
    "Completed pre-registrations",
    ["referred"],  # "true" when a referral code was used
)

REGISTRATION_FAILURES = Counter(
    "prereg_registration_failures_total",
    "Rejected or failed pre-registrations",
    ["code"],
)

REFERRAL_EDGES_TOTAL = Counter(
    "prereg_referral_edges_total",
    "Referral edges recorded",
    ["level"],
)

REFERRAL_CODE_COLLISIONS = Counter(
    "prereg_referral_code_collisions_total",
    "Referral code unique-constraint collisions",
)

LIVE_FEED_SUBSCRIBERS = Gauge(
    "prereg_live_feed_subscribers",
    "Active live registration feed subscribers",
)

AUTH_LOCKOUTS_TOTAL = Counter(
    "prereg_auth_lockouts_total",
    "Identity keys locked after repeated magic-link attempts",
)


# =============================================================================
# Instrumentator Setup
# =============================================================================

def setup_prometheus(app: FastAPI, app_version: str = "1.0.0") -> Instrumentator:
    """Setup Prometheus metrics instrumentation.

    Args:
        app: FastAPI application instance
        app_version: Application version string

    Returns:
        Configured Instrumentator instance
    """
    APP_INFO.info({
        "version": app_version,
        "app_name": "prereg",
    })

    instrumentator = Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        should_respect_env_var=True,
        should_instrument_requests_inprogress=True,
        excluded_handlers=["/health", "/metrics"],
        inprogress_name="prereg_http_requests_inprogress",
        inprogress_labels=True,
    )

    instrumentator.add(
        metrics.default(
            metric_namespace="prereg",
            metric_subsystem="http",
            latency_highr_buckets=(0.01, 0.025, 0.05, 0.075, 0.1, 0.25, 0.5, 0.75, 1.0, 2.5),
        )
    )

    instrumentator.instrument(app)
    instrumentator.expose(app, endpoint="/metrics", include_in_schema=True, tags=["Monitoring"])

    return instrumentator


# =============================================================================
# Metric Helper Functions
# =============================================================================

def record_registration(referred: bool) -> None:
    REGISTRATIONS_TOTAL.labels(referred="true" if referred else "false").inc()


def record_registration_failure(code: str) -> None:
    REGISTRATION_FAILURES.labels(code=code).inc()


def record_referral_edge(level: int) -> None:
    """Record a referral edge.

    Args:
        level: 1 for direct, 2 for indirect
    """
    REFERRAL_EDGES_TOTAL.labels(level=str(level)).inc()


def record_code_collision() -> None:
    REFERRAL_CODE_COLLISIONS.inc()


def update_feed_subscribers(count: int) -> None:
    LIVE_FEED_SUBSCRIBERS.set(count)


def record_auth_lockout() -> None:
    AUTH_LOCKOUTS_TOTAL.inc()
