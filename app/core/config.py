"""Application configuration."""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings.

    Environment variables will be loaded and validated using Pydantic.
    """

    app_name: str = "Address Correction Service"
    version: str = "0.2.0"
    api_prefix: str = "/api/v1"

    # CORS Settings
    cors_origins: list[str] = ["*"]  # Default to allow all in development
    cors_allow_credentials: bool = False

    # Service Settings
    ENVIRONMENT: str = "development"
    PORT: int = 3715

    # USPS (postal standardization) Settings
    USPS_TOKEN_URL: str = ""
    USPS_ADDRESS_URL: str = ""
    USPS_CONSUMER_KEY: str = ""
    USPS_CONSUMER_SECRET: str = ""
    USPS_TOKEN_SCOPE: str = "addresses"
    USPS_TIMEOUT: float = Field(default=15.0, gt=0)
    USPS_TOKEN_REFRESH_MARGIN: int = Field(default=60, ge=0)

    # Google Maps (geocoding) Settings
    GMAPS_API_KEY: str = ""
    GMAPS_GEOCODE_URL: str = "https://maps.googleapis.com/maps/api/geocode/json"
    GMAPS_TIMEOUT: float = Field(default=5.0, gt=0)

    # Cache Settings
    GEOCODING_CACHE_SIZE: int = Field(default=1000, gt=0)
    GEOCODING_CACHE_TTL: int = Field(default=3600, gt=0)  # 1 hour
    COUNTY_CACHE_SIZE: int = Field(default=1000, gt=0)
    COUNTY_CACHE_TTL: int = Field(default=86400, gt=0)  # counties rarely move
    CACHE_CLEANUP_INTERVAL: int = Field(default=300, gt=0)

    # Request Deduplication Settings
    DEDUP_TTL_SECONDS: float = Field(default=5.0, gt=0)
    DEDUP_GRACE_SECONDS: float = Field(default=0.1, ge=0)

    # Circuit Breaker Settings
    CIRCUIT_FAILURE_THRESHOLD: int = Field(default=5, gt=0)
    CIRCUIT_RESET_TIMEOUT: float = Field(default=30.0, gt=0)
    CIRCUIT_MONITORING_PERIOD: float = Field(default=60.0, gt=0)
    CIRCUIT_SUCCESS_THRESHOLD: int = Field(default=3, gt=0)

    # Retry Settings
    TRANSIENT_RETRIES: int = Field(default=1, ge=0)

    # Batch Settings
    MAX_BATCH_SIZE: int = Field(default=100, gt=0)

    # Logging Settings
    LOG_LEVEL: str = "INFO"
    JSON_LOGS: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="allow",  # Allow extra fields in environment
    )

    @model_validator(mode="after")
    def validate_origins(self) -> "Settings":
        """Validate CORS origins."""
        if self.cors_origins == ["*"]:
            self.cors_origins = [
                "http://localhost",
                "http://localhost:3000",
                f"http://localhost:{self.PORT}",
            ]
        return self

    def missing_upstream_settings(self) -> list[str]:
        """List the upstream credentials that are not configured.

        Returns:
            Names of empty USPS/Google Maps settings
        """
        required = (
            "USPS_TOKEN_URL",
            "USPS_ADDRESS_URL",
            "USPS_CONSUMER_KEY",
            "USPS_CONSUMER_SECRET",
            "GMAPS_API_KEY",
        )
        return [name for name in required if not getattr(self, name)]


# Create settings instance
settings = Settings()
