"""
eBay OAuth token exchanges.

Two grants are supported: refresh_token (user token from a long-lived
refresh token) and client_credentials (application token). Both POST a
form-encoded body to the identity endpoint with HTTP Basic auth built from
the app id and client secret.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional

import httpx

from storesync.core.config import EbayCredentials
from storesync.core.exceptions import ConfigurationError, EbayAPIError, EbayTokenError

logger = logging.getLogger(__name__)

DEFAULT_EXPIRES_IN = 7200


@dataclass(frozen=True)
class TokenGrant:
    access_token: str
    expires_in: int


class EbayAuthClient:
    """
    Performs OAuth token exchanges against the eBay identity endpoint
    """

    def __init__(
        self,
        credentials: EbayCredentials,
        token_url: str = "https://api.ebay.com/identity/v1/oauth2/token",
        scope: str = "https://api.ebay.com/oauth/api_scope",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.credentials = credentials
        self.token_url = token_url
        self.scope = scope
        self.timeout = timeout
        self.transport = transport

    async def refresh_access_token(self) -> TokenGrant:
        """Exchange the configured refresh token for a user access token."""
        if not self.credentials.refresh_token:
            raise ConfigurationError("No eBay refresh token configured")
        return await self._request_token(
            {
                "grant_type": "refresh_token",
                "refresh_token": self.credentials.refresh_token,
                "scope": self.scope,
            },
            grant_name="refresh_token",
        )

    async def client_credentials_token(self) -> TokenGrant:
        """Obtain an application token with the client_credentials grant."""
        return await self._request_token(
            {"grant_type": "client_credentials", "scope": self.scope},
            grant_name="client_credentials",
        )

    async def _request_token(self, data: Dict[str, str], grant_name: str) -> TokenGrant:
        if not self.credentials.has_app_keys:
            raise ConfigurationError("eBay app id and client secret are required for OAuth token exchange")

        auth = httpx.BasicAuth(self.credentials.app_id, self.credentials.oauth_secret)
        last_error: Optional[Exception] = None

        # One retry for transient failures (network errors, 5xx)
        for attempt in range(2):
            try:
                async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                    response = await client.post(
                        self.token_url,
                        data=data,
                        auth=auth,
                        headers={"Content-Type": "application/x-www-form-urlencoded"},
                    )
            except httpx.RequestError as e:
                last_error = e
                logger.warning(f"Network error during eBay {grant_name} exchange (attempt {attempt + 1}): {e}")
                continue

            if response.status_code >= 500:
                last_error = EbayAPIError(f"HTTP {response.status_code}: {response.text}")
                logger.warning(
                    f"eBay {grant_name} exchange returned {response.status_code} (attempt {attempt + 1})"
                )
                continue

            if response.status_code != 200:
                error_text = response.text
                logger.error(f"eBay {grant_name} exchange rejected: {error_text}")
                if "invalid_grant" in error_text:
                    raise EbayAPIError("Invalid refresh token. Please regenerate your eBay tokens.")
                raise EbayAPIError(f"Failed to obtain eBay access token: {error_text}")

            try:
                token_data = response.json()
                access_token = token_data["access_token"]
            except (ValueError, KeyError) as e:
                raise EbayAPIError(f"Malformed eBay token response: {e}")

            expires_in = int(token_data.get("expires_in") or DEFAULT_EXPIRES_IN)
            logger.info(f"Obtained eBay access token via {grant_name} (expires in {expires_in}s)")
            return TokenGrant(access_token=access_token, expires_in=expires_in)

        raise EbayTokenError(f"eBay {grant_name} exchange failed after retry: {last_error}")
