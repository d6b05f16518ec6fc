# storesync/services/shopify/client.py
import logging
import re
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

import httpx

from storesync.core.config import ShopifyStoreConfig
from storesync.core.exceptions import ConfigurationError, PlatformResponseError, PlatformTransportError
from storesync.core.utils import safe_decimal
from storesync.services.pagination import Page

logger = logging.getLogger(__name__)

INVENTORY_BATCH_SIZE = 100

CUSTOMER_FIELDS = "id,first_name,last_name,email,orders_count,total_spent,tags,addresses"

_LINK_URL = re.compile(r"<([^>]+)>")
_PAGE_INFO = re.compile(r"[?&]page_info=([^&]+)")


def parse_next_page_info(link_header: Optional[str]) -> Optional[str]:
    """
    Extract the page_info cursor of the rel="next" entry of a Link header.

    Shopify sends `<url>; rel="previous", <url>; rel="next"`; the next
    cursor is absent on the last page.
    """
    if not link_header:
        return None
    for part in link_header.split(","):
        if 'rel="next"' not in part:
            continue
        url_match = _LINK_URL.search(part)
        if not url_match:
            continue
        page_info_match = _PAGE_INFO.search(url_match.group(1))
        if page_info_match:
            return page_info_match.group(1)
    return None


class ShopifyClient:
    """
    Read-only REST Admin API client for one store.

    Authenticated with the store's static access token. Each list call
    returns one `Page` with the next cursor taken from the Link header.
    """

    def __init__(
        self,
        store: ShopifyStoreConfig,
        api_version: str = "2024-07",
        page_limit: int = 250,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not store.is_configured:
            raise ConfigurationError(f"Shopify store {store.name} is missing its domain or access token")
        self.store = store
        self.api_version = api_version
        self.page_limit = page_limit
        self.timeout = timeout
        self.transport = transport

        domain = store.domain.strip().rstrip("/")
        domain = re.sub(r"^https?://", "", domain)
        self.base_url = f"https://{domain}/admin/api/{api_version}"

    def _get_headers(self) -> Dict[str, str]:
        return {
            "X-Shopify-Access-Token": self.store.access_token,
            "Accept": "application/json",
        }

    async def _get(self, resource: str, params: Dict[str, Any]) -> httpx.Response:
        url = f"{self.base_url}/{resource}.json"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(url, headers=self._get_headers(), params=params)
        except httpx.RequestError as e:
            logger.error(f"Network error fetching {resource} from {self.store.name}: {str(e)}")
            raise PlatformTransportError(f"Network error fetching {resource}: {str(e)}")

        if response.status_code >= 300:
            logger.error(
                f"Shopify {self.store.name} {resource} returned {response.status_code}: {response.text[:500]}"
            )
            raise PlatformTransportError(
                f"{resource} request failed with HTTP {response.status_code}",
                status_code=response.status_code,
            )
        return response

    async def _list_page(
        self,
        resource: str,
        cursor: Optional[str],
        first_page_params: Optional[Dict[str, Any]] = None,
    ) -> Page:
        # page_info requests may not repeat the original filters
        if cursor:
            params: Dict[str, Any] = {"limit": self.page_limit, "page_info": cursor}
        else:
            params = {"limit": self.page_limit, **(first_page_params or {})}

        response = await self._get(resource, params)
        try:
            payload = response.json()
        except ValueError as e:
            raise PlatformResponseError(f"{resource} returned invalid JSON: {e}")

        if not isinstance(payload, dict):
            raise PlatformResponseError(f"{resource} returned an unexpected payload")
        if payload.get("errors"):
            raise PlatformResponseError(f"{resource}: {payload['errors']}")

        records = payload.get(resource) or []
        return Page(records=list(records), next_cursor=parse_next_page_info(response.headers.get("link")))

    async def get_orders_page(self, page_number: int, cursor: Optional[str], created_at_min: datetime) -> Page:
        created = created_at_min.astimezone(timezone.utc).isoformat()
        return await self._list_page(
            "orders", cursor, {"status": "any", "created_at_min": created}
        )

    async def get_products_page(self, page_number: int, cursor: Optional[str]) -> Page:
        return await self._list_page("products", cursor)

    async def get_customers_page(self, page_number: int, cursor: Optional[str]) -> Page:
        return await self._list_page("customers", cursor, {"fields": CUSTOMER_FIELDS})

    async def get_inventory_item_costs(self, inventory_item_ids: Iterable[Any]) -> Dict[str, Decimal]:
        """
        Unit cost per inventory item id.

        Costs are optional enrichment: a failing batch is logged and skipped
        so the affected products keep a null cost.
        """
        ids: List[str] = []
        for item_id in inventory_item_ids:
            if item_id is not None and str(item_id) not in ids:
                ids.append(str(item_id))

        costs: Dict[str, Decimal] = {}
        for start in range(0, len(ids), INVENTORY_BATCH_SIZE):
            batch = ids[start:start + INVENTORY_BATCH_SIZE]
            try:
                response = await self._get(
                    "inventory_items", {"ids": ",".join(batch), "limit": INVENTORY_BATCH_SIZE}
                )
                body = response.json()
            except (PlatformTransportError, ValueError) as e:
                logger.warning(f"Could not fetch inventory costs for {self.store.name}: {e}")
                continue
            items = body.get("inventory_items") if isinstance(body, dict) else None
            if not isinstance(items, list):
                logger.warning(f"Unexpected inventory_items response for {self.store.name}; skipping batch")
                continue
            for item in items:
                if isinstance(item, dict) and item.get("cost") not in (None, ""):
                    costs[str(item.get("id"))] = safe_decimal(item.get("cost"))
        return costs
