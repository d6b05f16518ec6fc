# tests/unit/services/ebay/test_ebay_trading.py
from datetime import datetime, timezone

import httpx
import pytest

from storesync.core.config import EbayCredentials
from storesync.core.exceptions import PlatformAuthError, PlatformResponseError, PlatformTransportError
from storesync.services.ebay.token_manager import EbayTokenManager
from storesync.services.ebay.trading import EbayTradingClient, format_ebay_datetime
from tests.mocks import EbayMock, ebay_error_xml, ebay_items_xml, ebay_orders_xml

WINDOW = (
    datetime(2024, 5, 1, tzinfo=timezone.utc),
    datetime(2024, 5, 2, 23, 59, 59, 999000, tzinfo=timezone.utc),
)


@pytest.fixture
def token_manager():
    return EbayTokenManager(EbayCredentials(static_token="tok&<secret>"))


def make_client(token_manager, mock: EbayMock) -> EbayTradingClient:
    return EbayTradingClient(token_manager, transport=mock.transport)


def test_format_ebay_datetime():
    assert format_ebay_datetime(WINDOW[1]) == "2024-05-02T23:59:59.999Z"
    assert format_ebay_datetime(datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)) == "2024-05-01T12:00:00.000Z"


"""
1. Request shape
"""


@pytest.mark.asyncio
async def test_get_orders_sends_trading_headers_and_window(token_manager):
    mock = EbayMock(responses={"GetOrders": [ebay_orders_xml(["1-1"])]})
    client = make_client(token_manager, mock)

    await client.get_orders_page(1, *WINDOW)

    request = mock.requests_for("GetOrders")[0]
    assert request.headers["X-EBAY-API-IAF-TOKEN"] == "tok&<secret>"
    assert request.headers["X-EBAY-API-SITEID"] == "0"
    assert request.headers["X-EBAY-API-COMPATIBILITY-LEVEL"] == "1421"
    body = request.content.decode()
    assert "<CreateTimeFrom>2024-05-01T00:00:00.000Z</CreateTimeFrom>" in body
    assert "<CreateTimeTo>2024-05-02T23:59:59.999Z</CreateTimeTo>" in body
    assert "<EntriesPerPage>100</EntriesPerPage>" in body
    assert "<PageNumber>1</PageNumber>" in body


@pytest.mark.asyncio
async def test_seller_list_escapes_token_in_body(token_manager):
    mock = EbayMock(responses={"GetSellerList": [ebay_items_xml(["11"])]})
    client = make_client(token_manager, mock)

    await client.get_seller_list_page(1, *WINDOW)

    body = mock.requests_for("GetSellerList")[0].content.decode()
    assert "<eBayAuthToken>tok&amp;&lt;secret&gt;</eBayAuthToken>" in body
    assert "<EntriesPerPage>200</EntriesPerPage>" in body


"""
2. Response parsing
"""


@pytest.mark.asyncio
async def test_orders_page_reports_page_count(token_manager):
    mock = EbayMock(responses={"GetOrders": [ebay_orders_xml(["1-1", "1-2"], page=1, total_pages=3, has_more=True)]})
    client = make_client(token_manager, mock)

    page = await client.get_orders_page(1, *WINDOW)

    assert [order["OrderID"] for order in page.records] == ["1-1", "1-2"]
    assert page.total_pages == 3
    assert page.has_more is True


@pytest.mark.asyncio
async def test_single_element_array_becomes_list(token_manager):
    mock = EbayMock(responses={"GetSellerList": [ebay_items_xml(["42"])]})
    client = make_client(token_manager, mock)

    page = await client.get_seller_list_page(1, *WINDOW)

    assert isinstance(page.records, list)
    assert page.records[0]["ItemID"] == "42"
    assert page.has_more is False


@pytest.mark.asyncio
async def test_empty_order_array(token_manager):
    client = make_client(token_manager, EbayMock())

    page = await client.get_orders_page(1, *WINDOW)

    assert page.records == []


"""
3. Failures
"""


@pytest.mark.asyncio
async def test_invalid_token_raises_auth_error(token_manager):
    mock = EbayMock(responses={"GetOrders": [ebay_error_xml("GetOrders")]})
    client = make_client(token_manager, mock)

    with pytest.raises(PlatformAuthError) as exc_info:
        await client.get_orders_page(1, *WINDOW)
    assert "931" in str(exc_info.value)
    assert exc_info.value.errors[0]["code"] == "931"


@pytest.mark.asyncio
async def test_other_error_raises_response_error(token_manager):
    mock = EbayMock(responses={
        "GetOrders": [ebay_error_xml(
            "GetOrders", code="10007", short_message="Internal error",
            long_message="Internal error. Validation of the authentication token in API request failed.",
        )]
    })
    client = make_client(token_manager, mock)

    with pytest.raises(PlatformResponseError) as exc_info:
        await client.get_orders_page(1, *WINDOW)
    assert not isinstance(exc_info.value, PlatformAuthError)


@pytest.mark.asyncio
async def test_warning_does_not_fail_the_call(token_manager):
    mock = EbayMock(responses={
        "GetOrders": [ebay_error_xml("GetOrders", code="21917062", short_message="Deprecated", severity="Warning")]
    })
    client = make_client(token_manager, mock)

    page = await client.get_orders_page(1, *WINDOW)

    assert page.records == []


@pytest.mark.asyncio
async def test_http_error_raises_transport_error(token_manager):
    client = make_client(token_manager, EbayMock(status={"GetOrders": 503}))

    with pytest.raises(PlatformTransportError) as exc_info:
        await client.get_orders_page(1, *WINDOW)
    assert exc_info.value.status_code == 503


@pytest.mark.asyncio
async def test_malformed_xml_raises_response_error(token_manager):
    client = EbayTradingClient(
        token_manager,
        transport=httpx.MockTransport(lambda request: httpx.Response(200, text="<GetOrdersResponse><Ack>")),
    )

    with pytest.raises(PlatformResponseError):
        await client.get_orders_page(1, *WINDOW)
