"""Prometheus metrics for the correction service."""

from prometheus_client import Counter, Gauge

from app.core.circuit_breaker import CircuitState

# HTTP metrics
REQUESTS_TOTAL = Counter(
    "app_http_requests_total",
    "Total number of HTTP requests",
    labelnames=["method", "path"],
)

RESPONSES_TOTAL = Counter(
    "app_http_responses_total",
    "Total number of HTTP responses",
    labelnames=["status_code"],
)

# Upstream metrics
UPSTREAM_REQUESTS = Counter(
    "app_upstream_requests_total",
    "Total number of calls to upstream providers",
    ["service", "outcome"],  # success, error, breaker_open
)

GEOCODE_CACHE_EVENTS = Counter(
    "app_geocode_cache_events_total",
    "Geocoding cache lookups",
    ["cache", "event"],  # geocoding/county, hit/miss
)

CIRCUIT_BREAKER_STATE = Gauge(
    "app_circuit_breaker_state",
    "Circuit breaker state (0 closed, 1 half-open, 2 open)",
    ["breaker"],
)

_STATE_VALUES = {
    CircuitState.CLOSED: 0,
    CircuitState.HALF_OPEN: 1,
    CircuitState.OPEN: 2,
}


def record_breaker_state(name: str, state: CircuitState) -> None:
    """State-change hook for circuit breakers."""
    CIRCUIT_BREAKER_STATE.labels(breaker=name).set(_STATE_VALUES[state])


def record_cache_lookup(cache: str, hit: bool) -> None:
    GEOCODE_CACHE_EVENTS.labels(cache=cache, event="hit" if hit else "miss").inc()


def record_upstream_outcome(service: str, outcome: str) -> None:
    UPSTREAM_REQUESTS.labels(service=service, outcome=outcome).inc()
