"""Tests for logging configuration."""

import io
import json
import logging
from logging import DEBUG, INFO, WARNING

import pytest
from structlog.testing import capture_logs

from app.core.logging import configure_logging, get_logger, resolve_level

# Created at import, before any test reconfigures logging
early_logger = get_logger(module="pipeline")
early_production_logger = get_logger(module="pipeline")


@pytest.fixture
def production_logging():
    """Switch to production logging and capture what the root handler writes."""
    configure_logging(testing=False, level="error", json_logs=True)
    stream = io.StringIO()
    handler = logging.getLogger().handlers[0]
    assert isinstance(handler, logging.StreamHandler)
    handler.setStream(stream)
    try:
        yield stream
    finally:
        configure_logging(testing=True)


@pytest.mark.parametrize(
    "level,expected",
    [("debug", DEBUG), ("WARNING", WARNING), (None, INFO), ("verbose", INFO), (10, 10)],
)
def test_resolve_level(level, expected):
    assert resolve_level(level) == expected


def test_get_logger_binds_module():
    with capture_logs() as logs:
        get_logger(module="postal_service").info("usps_lookup", zip_code="48852")

    assert logs == [
        {
            "module": "postal_service",
            "zip_code": "48852",
            "event": "usps_lookup",
            "log_level": "info",
        }
    ]


def test_loggers_created_at_import_see_current_configuration():
    with capture_logs() as logs:
        early_logger.info("captured_after_creation")

    assert logs[0]["module"] == "pipeline"


def test_production_level_and_json_reach_existing_loggers(production_logging):
    early_production_logger.info("below_configured_level")
    early_production_logger.error("lookup_failed", zip_code="48852")

    lines = production_logging.getvalue().strip().splitlines()
    assert len(lines) == 1
    record = json.loads(lines[0])
    assert "lookup_failed" in record["event"]
    assert "pipeline" in record["event"]
    assert "below_configured_level" not in production_logging.getvalue()
