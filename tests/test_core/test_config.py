"""Tests for settings."""

from app.core.config import Settings


def make_settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


def test_wildcard_cors_origins_become_localhost():
    settings = make_settings(PORT=8080)

    assert "*" not in settings.cors_origins
    assert "http://localhost:8080" in settings.cors_origins


def test_explicit_cors_origins_are_kept():
    settings = make_settings(cors_origins=["https://example.org"])

    assert settings.cors_origins == ["https://example.org"]


def test_missing_upstream_settings():
    settings = make_settings(
        USPS_TOKEN_URL="",
        USPS_ADDRESS_URL="https://usps.test/addresses/v3",
        USPS_CONSUMER_KEY="key",
        USPS_CONSUMER_SECRET="",
        GMAPS_API_KEY="",
    )

    assert settings.missing_upstream_settings() == [
        "USPS_TOKEN_URL",
        "USPS_CONSUMER_SECRET",
        "GMAPS_API_KEY",
    ]


def test_resilience_defaults():
    settings = make_settings()

    assert settings.DEDUP_TTL_SECONDS == 5.0
    assert settings.CIRCUIT_FAILURE_THRESHOLD == 5
    assert settings.CIRCUIT_RESET_TIMEOUT == 30.0
    assert settings.TRANSIENT_RETRIES == 1
    assert settings.MAX_BATCH_SIZE == 100
