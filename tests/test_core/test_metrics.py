"""Tests for Prometheus metric helpers."""

from prometheus_client import REGISTRY

from app.core.circuit_breaker import CircuitBreaker, CircuitState
from app.core.metrics import (
    record_breaker_state,
    record_cache_lookup,
    record_upstream_outcome,
)


def value(name: str, labels: dict[str, str]) -> float:
    return REGISTRY.get_sample_value(name, labels) or 0.0


def test_breaker_state_gauge():
    record_breaker_state("metrics-test", CircuitState.OPEN)
    assert value("app_circuit_breaker_state", {"breaker": "metrics-test"}) == 2

    record_breaker_state("metrics-test", CircuitState.HALF_OPEN)
    assert value("app_circuit_breaker_state", {"breaker": "metrics-test"}) == 1


def test_breaker_reports_transitions():
    breaker = CircuitBreaker(
        "metrics-breaker", failure_threshold=1, on_state_change=record_breaker_state
    )
    breaker._on_failure()

    assert value("app_circuit_breaker_state", {"breaker": "metrics-breaker"}) == 2

    breaker.reset()
    assert value("app_circuit_breaker_state", {"breaker": "metrics-breaker"}) == 0


def test_cache_lookup_counter():
    labels = {"cache": "metrics-test", "event": "hit"}
    before = value("app_geocode_cache_events_total", labels)

    record_cache_lookup("metrics-test", hit=True)

    assert value("app_geocode_cache_events_total", labels) == before + 1


def test_upstream_outcome_counter():
    labels = {"service": "metrics-test", "outcome": "error"}
    before = value("app_upstream_requests_total", labels)

    record_upstream_outcome("metrics-test", "error")

    assert value("app_upstream_requests_total", labels) == before + 1
