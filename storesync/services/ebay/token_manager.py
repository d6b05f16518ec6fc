"""
In-memory eBay credential cache.

Resolution order, first usable path wins:
- a manually issued long-lived token from configuration
- a refresh-token exchange
- a client-credentials exchange

Nothing is written to disk. One manager instance is owned by each sync
orchestrator.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from storesync.core.config import EbayCredentials
from storesync.core.enums import TokenSource
from storesync.core.exceptions import ConfigurationError, EbayAPIError, EbayTokenError
from .auth import EbayAuthClient, TokenGrant

logger = logging.getLogger(__name__)

STATIC_TOKEN_RECHECK_SECONDS = 24 * 60 * 60
EXPIRY_FRACTION = 0.75


@dataclass
class CachedToken:
    value: str
    source: TokenSource
    expires_at: Optional[float]  # None for static tokens
    recheck_at: Optional[float] = None

    def is_valid(self, now: float) -> bool:
        if self.expires_at is None:
            return True
        return now < self.expires_at


class EbayTokenManager:
    """
    Resolves, caches and refreshes the eBay access credential.

    OAuth tokens are cached for 75% of their declared lifetime. A static
    token never expires in the cache; every 24 hours the configured value is
    re-read and the cache replaced if it changed.
    """

    def __init__(
        self,
        credentials: EbayCredentials,
        auth_client: Optional[EbayAuthClient] = None,
        credentials_loader: Optional[Callable[[], EbayCredentials]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.credentials = credentials
        self.auth_client = auth_client or EbayAuthClient(credentials)
        self.credentials_loader = credentials_loader
        self.clock = clock
        self._cached: Optional[CachedToken] = None
        self._lock = asyncio.Lock()

    @property
    def token_source(self) -> Optional[TokenSource]:
        return self._cached.source if self._cached else None

    async def get_token(self) -> str:
        """
        Return a usable access token, exchanging credentials if needed.

        Raises:
            ConfigurationError: no resolution path is configured
            EbayTokenError: every configured path failed
        """
        async with self._lock:
            now = self.clock()
            cached = self._cached

            if cached and cached.source == TokenSource.STATIC:
                if cached.recheck_at is not None and now >= cached.recheck_at:
                    self._recheck_static_token(now)
                if self._cached is not None:
                    return self._cached.value
            elif cached and cached.is_valid(now):
                logger.debug(f"Using cached eBay token ({cached.source.value})")
                return cached.value

            self._cached = await self._resolve(now)
            return self._cached.value

    def invalidate(self) -> None:
        if self._cached is not None:
            logger.info(f"Invalidating cached eBay token ({self._cached.source.value})")
        self._cached = None

    def _recheck_static_token(self, now: float) -> None:
        if self.credentials_loader is not None:
            fresh = self.credentials_loader()
            if fresh.static_token != self.credentials.static_token:
                logger.info("Configured eBay token changed, replacing cached token")
                self.credentials = fresh
                self.auth_client.credentials = fresh
                self._cached = None
                return
        if self._cached is not None:
            self._cached.recheck_at = now + STATIC_TOKEN_RECHECK_SECONDS

    async def _resolve(self, now: float) -> CachedToken:
        credentials = self.credentials

        if credentials.static_token:
            logger.info("Using configured long-lived eBay token")
            return CachedToken(
                value=credentials.static_token,
                source=TokenSource.STATIC,
                expires_at=None,
                recheck_at=now + STATIC_TOKEN_RECHECK_SECONDS,
            )

        if not credentials.has_app_keys:
            raise ConfigurationError(
                "eBay is configured but no usable credential was found: set EBAY_AUTHN_AUTH_TOKEN, "
                "or EBAY_APP_ID with EBAY_CLIENT_SECRET/EBAY_CERT_ID"
            )

        if credentials.refresh_token:
            try:
                grant = await self.auth_client.refresh_access_token()
                return self._cache_grant(grant, TokenSource.REFRESH_TOKEN)
            except EbayTokenError:
                raise
            except EbayAPIError as e:
                logger.warning(f"eBay refresh token rejected, falling back to client credentials: {e}")

        try:
            grant = await self.auth_client.client_credentials_token()
        except EbayTokenError:
            raise
        except EbayAPIError as e:
            raise EbayTokenError(f"Could not obtain an eBay access token: {e}") from e
        return self._cache_grant(grant, TokenSource.CLIENT_CREDENTIALS)

    def _cache_grant(self, grant: TokenGrant, source: TokenSource) -> CachedToken:
        lifetime = max(grant.expires_in, 0) * EXPIRY_FRACTION
        logger.debug(f"Caching eBay {source.value} token for {lifetime:.0f}s")
        return CachedToken(
            value=grant.access_token,
            source=source,
            expires_at=self.clock() + lifetime,
        )
