# storesync/services/ebay/sync.py
import asyncio
import logging
from datetime import timedelta
from functools import partial
from typing import Optional

from storesync.core.config import Settings
from storesync.core.enums import EntityType, PaginationStyle, PlatformType
from storesync.core.utils import utc_now
from storesync.services.base_sync import EntitySyncResult, PlatformSync, SyncWindow, build_window
from storesync.services.persistence import RecordUpserter
from .normalizer import derive_customers, normalize_item, normalize_order
from .token_manager import EbayTokenManager
from .trading import EbayTradingClient

logger = logging.getLogger(__name__)

# GetSellerList accepts an EndTime window of at most 120 days
LISTING_END_LOOKBACK_DAYS = 90
LISTING_END_LOOKAHEAD_DAYS = 30


class EbaySync(PlatformSync):
    """
    eBay orders and listings through the Trading API.

    eBay has no customer endpoint: customers are derived from the orders
    already stored for this store, so they run after orders.
    """

    platform = PlatformType.EBAY

    def __init__(
        self,
        store_name: str,
        client: EbayTradingClient,
        token_manager: EbayTokenManager,
        upserter: RecordUpserter,
        settings: Settings,
        cancel_event: Optional[asyncio.Event] = None,
    ):
        super().__init__(store_name, upserter, settings, cancel_event)
        self.client = client
        self.token_manager = token_manager

    def window(self, is_initial_sync: bool) -> SyncWindow:
        return build_window(
            self.settings,
            is_initial_sync,
            max_lookback_days=self.settings.EBAY_MAX_LOOKBACK_DAYS,
            align_to_day=True,
        )

    async def sync_orders(self, window: SyncWindow, result: EntitySyncResult) -> None:
        fetcher = self.paginate(
            lambda page_number, cursor: self.client.get_orders_page(page_number, window.start, window.end),
            PaginationStyle.PAGE_NUMBER,
            window,
            EntityType.ORDERS,
            on_auth_error=self.token_manager.invalidate,
        )
        fetch = await fetcher.fetch_all()
        self.record_fetch(fetch, result)

        normalize = partial(
            normalize_order,
            store_name=self.store_name,
            default_currency=self.settings.EBAY_DEFAULT_CURRENCY,
        )
        await self.save(self.normalize_all(fetch.records, normalize, result), result)

    async def sync_products(self, window: SyncWindow, result: EntitySyncResult) -> None:
        now = utc_now()
        end_from = now - timedelta(days=LISTING_END_LOOKBACK_DAYS)
        end_to = now + timedelta(days=LISTING_END_LOOKAHEAD_DAYS)

        fetcher = self.paginate(
            lambda page_number, cursor: self.client.get_seller_list_page(page_number, end_from, end_to),
            PaginationStyle.PAGE_NUMBER,
            window,
            EntityType.PRODUCTS,
            on_auth_error=self.token_manager.invalidate,
        )
        fetch = await fetcher.fetch_all()
        self.record_fetch(fetch, result)

        normalize = partial(
            normalize_item,
            store_name=self.store_name,
            default_currency=self.settings.EBAY_DEFAULT_CURRENCY,
        )
        await self.save(self.normalize_all(fetch.records, normalize, result), result)

    async def sync_customers(self, window: SyncWindow, result: EntitySyncResult) -> None:
        rows = await self.upserter.load_order_buyers(self.platform, self.store_name)
        customers = derive_customers(rows, self.store_name)
        result.fetched += len(customers)
        await self.save(customers, result)
