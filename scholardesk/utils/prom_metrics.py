"""
Prometheus metrics registration and helpers.

Exports:
- observe_request(...): record HTTP request metrics
- observe_token_usage(...): record billed tokens and cost
- observe_analytics_event(...): record a tracked learning action
- metrics_latest(): return text exposition from correct registry (handles multiprocess)
- CONTENT_TYPE_LATEST: correct Prometheus content type
"""

import os
from prometheus_client import Counter, Histogram, CollectorRegistry, generate_latest, CONTENT_TYPE_LATEST
from prometheus_client import multiprocess


REQUEST_COUNTER = Counter(
    'sd_http_requests_total', 'Total HTTP requests', ['endpoint', 'status']
)

REQUEST_LATENCY = Histogram(
    'sd_http_request_latency_seconds', 'HTTP request latency seconds', ['endpoint']
)

TOKENS_BILLED = Counter(
    'sd_tokens_billed_total', 'Total tokens billed', ['action', 'tier']
)

TOKEN_COST = Counter(
    'sd_token_cost_total', 'Total cost of billed tokens', ['tier']
)

TOKEN_USAGE_REJECTED = Counter(
    'sd_token_usage_rejected_total', 'Token usage requests rejected', ['reason']
)

ANALYTICS_EVENTS = Counter(
    'sd_analytics_events_total', 'Tracked learning analytics events', ['action']
)


def observe_request(endpoint: str, status: int, latency_seconds: float) -> None:
    REQUEST_COUNTER.labels(endpoint=endpoint, status=str(status)).inc()
    REQUEST_LATENCY.labels(endpoint=endpoint).observe(latency_seconds)


def observe_token_usage(action: str, tier: str, tokens: int, cost: float) -> None:
    TOKENS_BILLED.labels(action=action, tier=tier).inc(tokens)
    TOKEN_COST.labels(tier=tier).inc(cost)


def observe_token_rejection(reason: str) -> None:
    TOKEN_USAGE_REJECTED.labels(reason=reason).inc()


def observe_analytics_event(action: str) -> None:
    ANALYTICS_EVENTS.labels(action=action).inc()


def metrics_latest() -> bytes:
    """Return the Prometheus text exposition, multiprocess-aware if configured."""
    prom_mp_dir = os.getenv('PROMETHEUS_MULTIPROC_DIR')
    if prom_mp_dir:
        registry = CollectorRegistry()
        multiprocess.MultiProcessCollector(registry)
        return generate_latest(registry)
    # Default registry
    return generate_latest()
