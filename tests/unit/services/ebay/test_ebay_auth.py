# tests/unit/services/ebay/test_ebay_auth.py
import httpx
import pytest
from unittest.mock import AsyncMock

from storesync.core.config import EbayCredentials
from storesync.core.enums import TokenSource
from storesync.core.exceptions import ConfigurationError, EbayAPIError, EbayTokenError
from storesync.services.ebay.auth import EbayAuthClient, TokenGrant
from storesync.services.ebay.token_manager import STATIC_TOKEN_RECHECK_SECONDS, EbayTokenManager


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


APP_KEYS = dict(app_id="app-id", client_secret="secret")

"""
1. OAuth exchanges
"""


@pytest.mark.asyncio
async def test_refresh_token_exchange_posts_basic_auth_form():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"access_token": "user-token", "expires_in": 7200})

    client = EbayAuthClient(
        EbayCredentials(refresh_token="refresh", **APP_KEYS),
        transport=httpx.MockTransport(handler),
    )
    grant = await client.refresh_access_token()

    assert grant == TokenGrant(access_token="user-token", expires_in=7200)
    request = seen[0]
    assert request.url == "https://api.ebay.com/identity/v1/oauth2/token"
    assert request.headers["Authorization"].startswith("Basic ")
    body = request.content.decode()
    assert "grant_type=refresh_token" in body
    assert "refresh_token=refresh" in body
    assert "scope=https%3A%2F%2Fapi.ebay.com%2Foauth%2Fapi_scope" in body


@pytest.mark.asyncio
async def test_exchange_retries_network_error_once_then_fails():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    client = EbayAuthClient(EbayCredentials(**APP_KEYS), transport=httpx.MockTransport(handler))

    with pytest.raises(EbayTokenError):
        await client.client_credentials_token()
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_exchange_recovers_after_one_transient_failure():
    responses = iter([
        httpx.Response(503, text="busy"),
        httpx.Response(200, json={"access_token": "app-token", "expires_in": 3600}),
    ])
    client = EbayAuthClient(
        EbayCredentials(**APP_KEYS),
        transport=httpx.MockTransport(lambda request: next(responses)),
    )

    grant = await client.client_credentials_token()
    assert grant.access_token == "app-token"


@pytest.mark.asyncio
async def test_rejected_refresh_token_raises_api_error():
    client = EbayAuthClient(
        EbayCredentials(refresh_token="stale", **APP_KEYS),
        transport=httpx.MockTransport(
            lambda request: httpx.Response(400, json={"error": "invalid_grant"})
        ),
    )

    with pytest.raises(EbayAPIError) as exc_info:
        await client.refresh_access_token()
    assert not isinstance(exc_info.value, EbayTokenError)
    assert "Invalid refresh token" in str(exc_info.value)


"""
2. Token manager resolution and caching
"""


@pytest.mark.asyncio
async def test_static_token_wins_and_never_calls_oauth():
    auth_client = AsyncMock(spec=EbayAuthClient)
    manager = EbayTokenManager(
        EbayCredentials(static_token="long-lived", refresh_token="refresh", **APP_KEYS),
        auth_client=auth_client,
    )

    assert await manager.get_token() == "long-lived"
    assert manager.token_source == TokenSource.STATIC
    auth_client.refresh_access_token.assert_not_called()
    auth_client.client_credentials_token.assert_not_called()


@pytest.mark.asyncio
async def test_static_token_survives_clock_and_is_rechecked_daily():
    clock = FakeClock()
    loader_calls = []

    def loader():
        loader_calls.append(1)
        return EbayCredentials(static_token="rotated")

    manager = EbayTokenManager(
        EbayCredentials(static_token="original"),
        auth_client=AsyncMock(spec=EbayAuthClient),
        credentials_loader=loader,
        clock=clock,
    )

    assert await manager.get_token() == "original"
    clock.now += STATIC_TOKEN_RECHECK_SECONDS - 1
    assert await manager.get_token() == "original"
    assert loader_calls == []

    clock.now += 2
    assert await manager.get_token() == "rotated"
    assert loader_calls == [1]


@pytest.mark.asyncio
async def test_refresh_token_cached_below_declared_lifetime():
    clock = FakeClock()
    auth_client = AsyncMock(spec=EbayAuthClient)
    auth_client.refresh_access_token.side_effect = [
        TokenGrant("first", 7200),
        TokenGrant("second", 7200),
    ]
    manager = EbayTokenManager(
        EbayCredentials(refresh_token="refresh", **APP_KEYS),
        auth_client=auth_client,
        clock=clock,
    )

    assert await manager.get_token() == "first"
    clock.now += 7200 * 0.75 - 1
    assert await manager.get_token() == "first"
    assert auth_client.refresh_access_token.await_count == 1

    clock.now += 2
    assert await manager.get_token() == "second"
    assert auth_client.refresh_access_token.await_count == 2


@pytest.mark.asyncio
async def test_rejected_refresh_falls_back_to_client_credentials():
    auth_client = AsyncMock(spec=EbayAuthClient)
    auth_client.refresh_access_token.side_effect = EbayAPIError("Invalid refresh token")
    auth_client.client_credentials_token.return_value = TokenGrant("app-token", 7200)
    manager = EbayTokenManager(EbayCredentials(refresh_token="stale", **APP_KEYS), auth_client=auth_client)

    assert await manager.get_token() == "app-token"
    assert manager.token_source == TokenSource.CLIENT_CREDENTIALS


@pytest.mark.asyncio
async def test_transient_refresh_failure_is_not_masked():
    auth_client = AsyncMock(spec=EbayAuthClient)
    auth_client.refresh_access_token.side_effect = EbayTokenError("network down")
    manager = EbayTokenManager(EbayCredentials(refresh_token="refresh", **APP_KEYS), auth_client=auth_client)

    with pytest.raises(EbayTokenError):
        await manager.get_token()
    auth_client.client_credentials_token.assert_not_called()


@pytest.mark.asyncio
async def test_invalidate_forces_one_new_exchange():
    auth_client = AsyncMock(spec=EbayAuthClient)
    auth_client.client_credentials_token.side_effect = [TokenGrant("a", 7200), TokenGrant("b", 7200)]
    manager = EbayTokenManager(EbayCredentials(**APP_KEYS), auth_client=auth_client)

    assert await manager.get_token() == "a"
    manager.invalidate()
    assert await manager.get_token() == "b"
    assert await manager.get_token() == "b"
    assert auth_client.client_credentials_token.await_count == 2


@pytest.mark.asyncio
async def test_no_usable_configuration_raises():
    manager = EbayTokenManager(EbayCredentials(refresh_token="orphan"), auth_client=AsyncMock(spec=EbayAuthClient))

    with pytest.raises(ConfigurationError):
        await manager.get_token()


@pytest.mark.asyncio
async def test_client_credentials_rejection_surfaces_as_token_error():
    auth_client = AsyncMock(spec=EbayAuthClient)
    auth_client.client_credentials_token.side_effect = EbayAPIError("invalid_client")
    manager = EbayTokenManager(EbayCredentials(**APP_KEYS), auth_client=auth_client)

    with pytest.raises(EbayTokenError):
        await manager.get_token()
