# storesync/services/shopify/sync.py
import asyncio
import logging
from functools import partial
from typing import Optional

from storesync.core.config import Settings
from storesync.core.enums import EntityType, PaginationStyle, PlatformType
from storesync.services.base_sync import EntitySyncResult, PlatformSync, SyncWindow, build_window
from storesync.services.persistence import RecordUpserter
from .client import ShopifyClient
from .normalizer import inventory_item_ids, normalize_customer, normalize_order, normalize_product

logger = logging.getLogger(__name__)


class ShopifySync(PlatformSync):
    """Orders, products and customers for one Shopify store."""

    platform = PlatformType.SHOPIFY

    def __init__(
        self,
        client: ShopifyClient,
        upserter: RecordUpserter,
        settings: Settings,
        cancel_event: Optional[asyncio.Event] = None,
    ):
        super().__init__(client.store.name, upserter, settings, cancel_event)
        self.client = client

    def window(self, is_initial_sync: bool) -> SyncWindow:
        return build_window(self.settings, is_initial_sync)

    async def sync_orders(self, window: SyncWindow, result: EntitySyncResult) -> None:
        fetcher = self.paginate(
            partial(self.client.get_orders_page, created_at_min=window.start),
            PaginationStyle.CURSOR,
            window,
            EntityType.ORDERS,
        )
        fetch = await fetcher.fetch_all()
        self.record_fetch(fetch, result)

        normalize = partial(normalize_order, store_name=self.store_name)
        await self.save(self.normalize_all(fetch.records, normalize, result), result)

    async def sync_products(self, window: SyncWindow, result: EntitySyncResult) -> None:
        fetcher = self.paginate(
            self.client.get_products_page,
            PaginationStyle.CURSOR,
            window,
            EntityType.PRODUCTS,
        )
        fetch = await fetcher.fetch_all()
        self.record_fetch(fetch, result)

        costs = {}
        item_ids = inventory_item_ids(fetch.records)
        if item_ids:
            costs = await self.client.get_inventory_item_costs(item_ids)
            logger.info(f"{self.label}: fetched costs for {len(costs)}/{len(set(item_ids))} inventory items")

        normalize = partial(normalize_product, store_name=self.store_name, costs=costs)
        await self.save(self.normalize_all(fetch.records, normalize, result), result)

    async def sync_customers(self, window: SyncWindow, result: EntitySyncResult) -> None:
        fetcher = self.paginate(
            self.client.get_customers_page,
            PaginationStyle.CURSOR,
            window,
            EntityType.CUSTOMERS,
        )
        fetch = await fetcher.fetch_all()
        self.record_fetch(fetch, result)

        normalize = partial(normalize_customer, store_name=self.store_name)
        await self.save(self.normalize_all(fetch.records, normalize, result), result)
