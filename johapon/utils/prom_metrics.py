"""
Prometheus metrics registration and helpers.

Exports:
- observe_request(...): record HTTP request metrics
- observe_conflict_resolution(...): count conflict resolutions by action and outcome
- observe_member_action(...): count member lifecycle actions by action and status
- metrics_latest(): return text exposition from correct registry (handles multiprocess)
- CONTENT_TYPE_LATEST: correct Prometheus content type
"""

import os
from prometheus_client import Counter, Histogram, CollectorRegistry, generate_latest, CONTENT_TYPE_LATEST
from prometheus_client import multiprocess


REQUEST_COUNTER = Counter(
    'johapon_http_requests_total', 'Total HTTP requests', ['endpoint', 'status']
)

REQUEST_LATENCY = Histogram(
    'johapon_http_request_latency_seconds', 'HTTP request latency seconds', ['endpoint']
)

CONFLICT_RESOLUTIONS = Counter(
    'johapon_conflict_resolutions_total', 'Property conflict resolutions', ['action', 'outcome']
)

MEMBER_ACTIONS = Counter(
    'johapon_member_actions_total', 'Member lifecycle actions', ['action', 'status']
)

ACCESS_TOKEN_VERIFICATIONS = Counter(
    'johapon_access_token_verifications_total', 'Guest access token verifications', ['result']
)


def observe_request(endpoint: str, status: int, latency_seconds: float) -> None:
    REQUEST_COUNTER.labels(endpoint=endpoint, status=str(status)).inc()
    REQUEST_LATENCY.labels(endpoint=endpoint).observe(latency_seconds)


def observe_conflict_resolution(action: str, outcome: str) -> None:
    CONFLICT_RESOLUTIONS.labels(action=action, outcome=outcome).inc()


def observe_member_action(action: str, status: str) -> None:
    MEMBER_ACTIONS.labels(action=action, status=status).inc()


def observe_access_token(result: str) -> None:
    ACCESS_TOKEN_VERIFICATIONS.labels(result=result).inc()


def metrics_latest() -> bytes:
    """Return the Prometheus text exposition, multiprocess-aware if configured."""
    prom_mp_dir = os.getenv('PROMETHEUS_MULTIPROC_DIR')
    if prom_mp_dir:
        registry = CollectorRegistry()
        multiprocess.MultiProcessCollector(registry)
        return generate_latest(registry)
    # Default registry
    return generate_latest()
