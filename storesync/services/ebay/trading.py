# storesync/services/ebay/trading.py
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from xml.parsers.expat import ExpatError
from xml.sax.saxutils import escape

import httpx
import xmltodict

from storesync.core.exceptions import PlatformAuthError, PlatformResponseError, PlatformTransportError
from storesync.core.utils import as_list, safe_int, text_value
from storesync.services.pagination import Page
from .normalizer import extract_errors, format_errors, is_auth_error, is_failure
from .token_manager import EbayTokenManager

logger = logging.getLogger(__name__)

ORDERS_PER_PAGE = 100
ITEMS_PER_PAGE = 200


def format_ebay_datetime(value: datetime) -> str:
    """eBay wants UTC ISO-8601 with milliseconds, e.g. 2024-05-01T00:00:00.000Z"""
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


class EbayTradingClient:
    """
    Thin client for the two Trading API calls the sync needs.

    Each `*_page` method performs one call and returns a `Page` for the
    paginated fetcher. Platform-reported errors are raised as
    PlatformAuthError / PlatformResponseError, HTTP failures as
    PlatformTransportError.
    """

    def __init__(
        self,
        token_manager: EbayTokenManager,
        endpoint: str = "https://api.ebay.com/ws/api.dll",
        site_id: str = "0",
        compatibility_level: str = "1421",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token_manager = token_manager
        self.endpoint = endpoint
        self.site_id = site_id
        self.compatibility_level = compatibility_level
        self.timeout = timeout
        self.transport = transport

    async def execute_call(self, call_name: str, xml_request: str) -> Dict[str, Any]:
        """Run one Trading API call and return the decoded `<{call_name}Response>` body."""
        auth_token = await self.token_manager.get_token()

        headers = {
            "X-EBAY-API-CALL-NAME": call_name,
            "X-EBAY-API-SITEID": self.site_id,
            "X-EBAY-API-COMPATIBILITY-LEVEL": self.compatibility_level,
            "X-EBAY-API-IAF-TOKEN": auth_token,
            "Content-Type": "text/xml; charset=utf-8",
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.endpoint, headers=headers, content=xml_request.encode("utf-8"))
        except httpx.RequestError as e:
            logger.error(f"Network error in Trading API call {call_name}: {str(e)}")
            raise PlatformTransportError(f"Network error in {call_name}: {str(e)}")

        if response.status_code != 200:
            logger.error(f"eBay Trading API error {response.status_code}: {response.text[:500]}")
            raise PlatformTransportError(
                f"{call_name} failed with HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            decoded = xmltodict.parse(response.text)
        except ExpatError as e:
            raise PlatformResponseError(f"{call_name} returned malformed XML: {e}")

        body = decoded.get(f"{call_name}Response") if isinstance(decoded, dict) else None
        if not isinstance(body, dict):
            raise PlatformResponseError(f"{call_name} response has no {call_name}Response element")

        self._check_errors(call_name, body)
        return body

    def _check_errors(self, call_name: str, body: Dict[str, Any]) -> None:
        errors = extract_errors(body)
        if not is_failure(body, errors):
            for warning in errors:
                logger.warning(f"{call_name} warning: {warning['short_message']} {warning['long_message']}".strip())
            return

        message = f"{call_name}: {format_errors(errors)}"
        if is_auth_error(errors):
            raise PlatformAuthError(message, errors=errors)
        raise PlatformResponseError(message, errors=errors)

    async def get_orders_page(self, page_number: int, create_from: datetime, create_to: datetime) -> Page:
        xml_request = f"""<?xml version="1.0" encoding="utf-8"?>
<GetOrdersRequest xmlns="urn:ebay:apis:eBLBaseComponents">
  <ErrorLanguage>en_US</ErrorLanguage>
  <WarningLevel>High</WarningLevel>
  <CreateTimeFrom>{format_ebay_datetime(create_from)}</CreateTimeFrom>
  <CreateTimeTo>{format_ebay_datetime(create_to)}</CreateTimeTo>
  <OrderRole>Seller</OrderRole>
  <OrderStatus>All</OrderStatus>
  <Pagination>
    <EntriesPerPage>{ORDERS_PER_PAGE}</EntriesPerPage>
    <PageNumber>{page_number}</PageNumber>
  </Pagination>
</GetOrdersRequest>"""

        body = await self.execute_call("GetOrders", xml_request)
        orders = as_list((body.get("OrderArray") or {}).get("Order"))
        return self._page(body, orders, more_flag="HasMoreOrders")

    async def get_seller_list_page(self, page_number: int, end_from: datetime, end_to: datetime) -> Page:
        # GetSellerList requires an EndTime or StartTime window of at most 120 days
        auth_token = await self.token_manager.get_token()
        xml_request = f"""<?xml version="1.0" encoding="utf-8"?>
<GetSellerListRequest xmlns="urn:ebay:apis:eBLBaseComponents">
  <RequesterCredentials>
    <eBayAuthToken>{escape(auth_token)}</eBayAuthToken>
  </RequesterCredentials>
  <ErrorLanguage>en_US</ErrorLanguage>
  <WarningLevel>High</WarningLevel>
  <DetailLevel>ReturnAll</DetailLevel>
  <EndTimeFrom>{format_ebay_datetime(end_from)}</EndTimeFrom>
  <EndTimeTo>{format_ebay_datetime(end_to)}</EndTimeTo>
  <Pagination>
    <EntriesPerPage>{ITEMS_PER_PAGE}</EntriesPerPage>
    <PageNumber>{page_number}</PageNumber>
  </Pagination>
</GetSellerListRequest>"""

        body = await self.execute_call("GetSellerList", xml_request)
        items = as_list((body.get("ItemArray") or {}).get("Item"))
        return self._page(body, items, more_flag="HasMoreItems")

    @staticmethod
    def _page(body: Dict[str, Any], records: list, more_flag: str) -> Page:
        pagination = body.get("PaginationResult")
        total_pages = None
        if isinstance(pagination, dict):
            total_pages = safe_int(text_value(pagination.get("TotalNumberOfPages")), 1)
        has_more = text_value(body.get(more_flag)).lower() == "true"
        return Page(records=records, total_pages=total_pages, has_more=has_more)
