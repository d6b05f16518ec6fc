# storesync/services/sync_service.py
"""
Sync orchestrator: eBay first, then every configured Shopify store, each
running orders, products and customers. One summary per run.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional

import httpx
from sqlalchemy.ext.asyncio import async_sessionmaker

from storesync.core.config import Settings, get_settings
from storesync.core.exceptions import BaseServiceError, ConfigurationError, EbayTokenError
from storesync.core.enums import EntityType
from storesync.services.base_sync import EntitySyncResult, PlatformSync
from storesync.services.ebay.auth import EbayAuthClient
from storesync.services.ebay.sync import EbaySync
from storesync.services.ebay.token_manager import EbayTokenManager
from storesync.services.ebay.trading import EbayTradingClient
from storesync.services.persistence import RecordUpserter
from storesync.services.shopify.client import ShopifyClient
from storesync.services.shopify.sync import ShopifySync

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """Summary of one run. `success` is false only when nothing at all was synced."""
    success: bool = False
    orders_synced: int = 0
    products_synced: int = 0
    customers_synced: int = 0
    errors: List[str] = field(default_factory=list)
    processing_time_seconds: float = 0.0

    @property
    def total_synced(self) -> int:
        return self.orders_synced + self.products_synced + self.customers_synced

    def add(self, label: str, entity_result: EntitySyncResult) -> None:
        if entity_result.entity == EntityType.ORDERS:
            self.orders_synced += entity_result.synced
        elif entity_result.entity == EntityType.PRODUCTS:
            self.products_synced += entity_result.synced
        else:
            self.customers_synced += entity_result.synced
        for error in entity_result.errors:
            self.errors.append(f"{label} {entity_result.entity.label}: {error}")

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "orders_synced": self.orders_synced,
            "products_synced": self.products_synced,
            "customers_synced": self.customers_synced,
            "errors": list(self.errors),
        }


class SyncService:
    """
    Coordinates one sync run across every configured platform and store.

    Owns the eBay token manager so a cached token survives between runs of
    the same service instance. Concurrent `run_sync` calls are refused.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        token_manager: Optional[EbayTokenManager] = None,
    ):
        self.settings = settings or get_settings()
        self.upserter = RecordUpserter(session_factory, concurrency=self.settings.UPSERT_CONCURRENCY)
        self.transport = transport
        self._token_manager = token_manager
        self._reload_settings = settings is None
        self._run_lock = asyncio.Lock()
        self._cancel_event = asyncio.Event()

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked()

    def cancel(self) -> None:
        """Ask the running sync to stop between pages."""
        if self.is_running:
            logger.info("Sync cancellation requested")
            self._cancel_event.set()

    @property
    def token_manager(self) -> EbayTokenManager:
        if self._token_manager is None:
            credentials = self.settings.ebay_credentials()
            auth_client = EbayAuthClient(
                credentials,
                token_url=self.settings.EBAY_TOKEN_URL,
                scope=self.settings.EBAY_OAUTH_SCOPE,
                timeout=self.settings.HTTP_TIMEOUT_SECONDS,
                transport=self.transport,
            )
            self._token_manager = EbayTokenManager(
                credentials,
                auth_client=auth_client,
                credentials_loader=self._reload_ebay_credentials if self._reload_settings else None,
            )
        return self._token_manager

    @staticmethod
    def _reload_ebay_credentials():
        from storesync.core.config import clear_settings_cache

        clear_settings_cache()
        return get_settings().ebay_credentials()

    async def run_sync(self, is_initial_sync: bool = False) -> SyncResult:
        """
        Run every platform and entity sync once.

        Never raises for platform, entity or record failures; they are
        collected in `errors`. A second call while a run is in progress
        returns a failed result immediately.
        """
        if self._run_lock.locked():
            logger.warning("Sync requested while another sync is running, skipping")
            return SyncResult(success=False, errors=["sync already in progress"])

        async with self._run_lock:
            self._cancel_event.clear()
            return await self._run(is_initial_sync)

    async def _run(self, is_initial_sync: bool) -> SyncResult:
        start = time.monotonic()
        result = SyncResult()
        mode = "FULL HISTORICAL" if is_initial_sync else "INCREMENTAL"
        logger.info(f"Starting {mode} sync (eBay first, then Shopify stores)")

        for label, build in self._platform_syncs():
            if self._cancel_event.is_set():
                break
            try:
                platform_sync = await build()
            except (ConfigurationError, EbayTokenError) as e:
                logger.warning(f"Skipping {label}: {e}")
                result.errors.append(f"{label}: {e}")
                continue
            await self._run_platform(platform_sync, is_initial_sync, result)

        result.success = result.total_synced > 0
        result.processing_time_seconds = time.monotonic() - start

        logger.info(
            f"Sync complete in {result.processing_time_seconds:.1f}s: "
            f"{result.orders_synced} orders, {result.products_synced} products, "
            f"{result.customers_synced} customers, {len(result.errors)} errors"
        )
        for error in result.errors:
            logger.warning(f"  - {error}")
        return result

    async def _run_platform(self, platform_sync: PlatformSync, is_initial_sync: bool, result: SyncResult) -> None:
        try:
            entity_results = await platform_sync.sync_all(is_initial_sync)
        except BaseServiceError as e:
            logger.exception(f"{platform_sync.label} sync crashed")
            result.errors.append(f"{platform_sync.label}: {e}")
            return
        for entity_result in entity_results:
            result.add(platform_sync.label, entity_result)

    def _platform_syncs(self) -> List[tuple]:
        """(label, builder) pairs in run order; builders raise ConfigurationError."""
        builders: List[tuple] = []

        credentials = self.settings.ebay_credentials()
        if credentials.is_configured:
            builders.append((credentials.store_name, self._build_ebay_sync))
        else:
            logger.info("eBay not configured, skipping eBay sync")

        stores = self.settings.shopify_stores()
        logger.info(f"Found {len(stores)} Shopify store(s)")
        for store in stores:
            builders.append((store.name, self._shopify_builder(store)))
        return builders

    async def _build_ebay_sync(self) -> PlatformSync:
        credentials = self.settings.ebay_credentials()
        if not credentials.static_token and not credentials.has_app_keys:
            raise ConfigurationError(
                "eBay credentials are incomplete: set EBAY_AUTHN_AUTH_TOKEN, "
                "or EBAY_APP_ID with EBAY_CLIENT_SECRET/EBAY_CERT_ID"
            )
        # Resolve the credential up front so a broken setup is one error, not one per entity
        await self.token_manager.get_token()
        client = EbayTradingClient(
            self.token_manager,
            endpoint=self.settings.EBAY_TRADING_API_URL,
            site_id=self.settings.EBAY_SITE_ID,
            compatibility_level=self.settings.EBAY_COMPATIBILITY_LEVEL,
            timeout=self.settings.HTTP_TIMEOUT_SECONDS,
            transport=self.transport,
        )
        return EbaySync(
            credentials.store_name,
            client,
            self.token_manager,
            self.upserter,
            self.settings,
            cancel_event=self._cancel_event,
        )

    def _shopify_builder(self, store) -> Callable[[], Awaitable[PlatformSync]]:
        async def build() -> PlatformSync:
            if not store.access_token:
                raise ConfigurationError(f"no access token configured for {store.domain}")
            client = ShopifyClient(
                store,
                api_version=self.settings.SHOPIFY_API_VERSION,
                page_limit=self.settings.SHOPIFY_PAGE_LIMIT,
                timeout=self.settings.HTTP_TIMEOUT_SECONDS,
                transport=self.transport,
            )
            return ShopifySync(client, self.upserter, self.settings, cancel_event=self._cancel_event)
        return build
