"""OAuth client-credentials token handling for the postal API."""

import time
from collections.abc import Callable
from typing import Optional

import httpx

from app.core.circuit_breaker import CircuitBreaker
from app.core.dedup import RequestDeduplicator
from app.core.errors import UpstreamError, map_httpx_error
from app.core.logging import get_logger
from app.core.retry import with_retry

logger = get_logger(module="postal_token")

TOKEN_DEDUP_KEY = "usps:token"
SERVICE_NAME = "usps"


class TokenManager:
    """Owns the cached postal access token and its expiry.

    One instance is shared by the postal client for the whole process.
    Concurrent refreshes collapse onto a single request through the
    deduplicator under a constant key.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        token_url: str,
        client_id: str,
        client_secret: str,
        breaker: CircuitBreaker,
        deduplicator: RequestDeduplicator,
        scope: str = "addresses",
        refresh_margin: float = 60,
        retries: int = 1,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.client = client
        self.token_url = token_url
        self.client_id = client_id
        self.client_secret = client_secret
        self.breaker = breaker
        self.deduplicator = deduplicator
        self.scope = scope
        self.refresh_margin = refresh_margin
        self.retries = retries
        self._clock = clock

        self.token: Optional[str] = None
        self.expires_at: Optional[float] = None

    def has_valid_token(self) -> bool:
        """Whether the cached token is usable without a refresh."""
        return (
            self.token is not None
            and self.expires_at is not None
            and self._clock() < self.expires_at - self.refresh_margin
        )

    async def get_token(self) -> Optional[str]:
        """Return a valid access token, fetching a new one if needed.

        Returns:
            The bearer token, or None when it could not be obtained
        """
        if self.has_valid_token():
            return self.token

        try:
            return await self.deduplicator.execute(
                TOKEN_DEDUP_KEY,
                lambda: self.breaker.execute(
                    lambda: with_retry(self._request_token, retries=self.retries)
                ),
            )
        except UpstreamError as e:
            logger.error("usps_token_fetch_failed", error=str(e), kind=e.kind.value)
            return None

    async def _request_token(self) -> str:
        try:
            response = await self.client.post(
                self.token_url,
                data={
                    "grant_type": "client_credentials",
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "scope": self.scope,
                },
            )
            response.raise_for_status()
            data = response.json()
            token = data["access_token"]
            expires_in = float(data["expires_in"])
        except (httpx.HTTPError, KeyError, TypeError, ValueError) as e:
            raise map_httpx_error(SERVICE_NAME, e) from e

        self.token = token
        self.expires_at = self._clock() + expires_in
        logger.info("usps_token_refreshed", expires_in=expires_in)
        return token

    def invalidate(self) -> None:
        """Forget the cached token so the next call fetches a fresh one."""
        self.token = None
        self.expires_at = None
