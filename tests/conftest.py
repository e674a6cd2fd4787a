"""Test configuration."""

import os
from pathlib import Path
from typing import List

import pytest
from dotenv import load_dotenv
from pytest import Config

from app.core.logging import configure_logging

# Load .env.test file for tests when present
env_test_file = Path(__file__).parent.parent / ".env.test"
if env_test_file.exists():
    load_dotenv(env_test_file, override=True)

fixture = pytest.fixture


@fixture(scope="session")
def project_root() -> Path:
    """Get the project root directory."""
    return Path(__file__).parent.parent


pytest_plugins: List[str] = [
    "tests.fixtures.upstream",
    "tests.fixtures.api",
]


def pytest_configure(config: Config) -> None:
    """Configure pytest.

    Args:
        config: Pytest configuration object
    """
    os.environ["TESTING"] = "true"
    # Configure logging for test environment
    configure_logging(testing=True)
    config.addinivalue_line("markers", "integration: mark test as an integration test")


class FakeClock:
    """Manually advanced monotonic clock for TTL and breaker tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@fixture
def clock() -> FakeClock:
    return FakeClock()
