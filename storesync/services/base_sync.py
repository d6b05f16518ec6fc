# storesync/services/base_sync.py
"""
Shared plumbing for per-platform sync: window selection, fetch, normalize,
upsert and per-entity error capture.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta, timezone
from typing import Any, Awaitable, Callable, Iterable, List, Optional

from storesync.core.config import Settings
from storesync.core.enums import EntityType, PaginationStyle, PlatformType
from storesync.core.exceptions import PayloadError
from storesync.core.utils import utc_now
from storesync.services.pagination import FetchPage, FetchResult, PaginatedFetcher
from storesync.services.persistence import RecordUpserter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncWindow:
    """Creation-time window plus the page cap for one run."""
    start: datetime
    end: datetime
    is_initial: bool
    max_pages: int


def build_window(
    settings: Settings,
    is_initial_sync: bool,
    now: Optional[datetime] = None,
    max_lookback_days: Optional[int] = None,
    align_to_day: bool = False,
) -> SyncWindow:
    """
    Full syncs look back INITIAL_SYNC_DAYS (capped at the platform's maximum
    lookback); incremental syncs look back INCREMENTAL_SYNC_DAYS.

    With `align_to_day` the window runs from 00:00 UTC of the first day to
    23:59:59.999 UTC of the current day.
    """
    now = (now or utc_now()).astimezone(timezone.utc)
    days = settings.INITIAL_SYNC_DAYS if is_initial_sync else settings.INCREMENTAL_SYNC_DAYS
    if max_lookback_days is not None:
        days = min(days, max_lookback_days)
    days = max(days, 1)

    start = now - timedelta(days=days)
    end = now
    if align_to_day:
        start = datetime.combine(start.date(), time.min, tzinfo=timezone.utc)
        end = datetime.combine(now.date(), time(23, 59, 59, 999000), tzinfo=timezone.utc)

    return SyncWindow(
        start=start,
        end=end,
        is_initial=is_initial_sync,
        max_pages=settings.MAX_PAGES_FULL if is_initial_sync else settings.MAX_PAGES_INCREMENTAL,
    )


@dataclass
class EntitySyncResult:
    entity: EntityType
    synced: int = 0
    fetched: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors


class PlatformSync(ABC):
    """
    One platform/store sync: orders, then products, then customers.

    A failure in one entity type is recorded on that entity's result and
    never stops the next one.
    """

    platform: PlatformType

    def __init__(
        self,
        store_name: str,
        upserter: RecordUpserter,
        settings: Settings,
        cancel_event: Optional[asyncio.Event] = None,
    ):
        self.store_name = store_name
        self.upserter = upserter
        self.settings = settings
        self.cancel_event = cancel_event

    @property
    def label(self) -> str:
        return self.store_name

    @abstractmethod
    def window(self, is_initial_sync: bool) -> SyncWindow:
        ...

    @abstractmethod
    async def sync_orders(self, window: SyncWindow, result: EntitySyncResult) -> None:
        ...

    @abstractmethod
    async def sync_products(self, window: SyncWindow, result: EntitySyncResult) -> None:
        ...

    @abstractmethod
    async def sync_customers(self, window: SyncWindow, result: EntitySyncResult) -> None:
        ...

    async def sync_all(self, is_initial_sync: bool) -> List[EntitySyncResult]:
        window = self.window(is_initial_sync)
        logger.info(
            f"Syncing {self.label} ({self.platform.value}) from {window.start.isoformat()} "
            f"to {window.end.isoformat()}"
        )
        handlers = (
            (EntityType.ORDERS, self.sync_orders),
            (EntityType.PRODUCTS, self.sync_products),
            (EntityType.CUSTOMERS, self.sync_customers),
        )
        results = []
        for entity, handler in handlers:
            if self._cancelled():
                logger.info(f"{self.label}: sync cancelled before {entity.value}")
                break
            results.append(await self._run_entity(entity, handler, window))
        return results

    async def _run_entity(
        self,
        entity: EntityType,
        handler: Callable[[SyncWindow, EntitySyncResult], Awaitable[None]],
        window: SyncWindow,
    ) -> EntitySyncResult:
        result = EntitySyncResult(entity=entity)
        try:
            await handler(window, result)
        except Exception as e:
            # Entity boundary: record and move on to the next entity type
            logger.exception(f"{self.label} {entity.label} sync failed")
            result.errors.append(str(e) or e.__class__.__name__)

        if result.errors:
            logger.warning(f"{self.label} {entity.label}: {result.synced} synced, {len(result.errors)} errors")
        else:
            logger.info(f"{self.label} {entity.label}: {result.synced} synced")
        return result

    def _cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    def paginate(
        self,
        fetch_page: FetchPage,
        style: PaginationStyle,
        window: SyncWindow,
        entity: EntityType,
        on_auth_error: Optional[Callable[[], Any]] = None,
    ) -> PaginatedFetcher:
        return PaginatedFetcher(
            fetch_page=fetch_page,
            style=style,
            max_pages=window.max_pages,
            page_delay=self.settings.PAGE_DELAY_SECONDS,
            label=f"{self.label} {entity.label}",
            cancel_event=self.cancel_event,
            on_auth_error=on_auth_error,
        )

    @staticmethod
    def record_fetch(fetch: FetchResult, result: EntitySyncResult) -> None:
        result.fetched += len(fetch.records)
        if fetch.error is not None:
            result.errors.append(str(fetch.error))

    def normalize_all(
        self,
        raw_records: Iterable[Any],
        normalize: Callable[[Any], Any],
        result: EntitySyncResult,
    ) -> List[Any]:
        """Normalize each payload; a bad payload is reported and skipped."""
        records = []
        for raw in raw_records:
            try:
                records.append(normalize(raw))
            except PayloadError as e:
                logger.warning(f"{self.label} {result.entity.label}: skipping record: {e}")
                result.errors.append(str(e))
        return records

    async def save(self, records: List[Any], result: EntitySyncResult) -> None:
        report = await self.upserter.upsert_many(records, concurrency=self.settings.UPSERT_CONCURRENCY)
        result.synced += report.saved
        result.errors.extend(report.errors)
