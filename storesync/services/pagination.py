"""
Generic page walker shared by every platform client.

A platform client supplies `fetch_page(page_number, cursor)` returning a
`Page`; the walker decides when to stop, sleeps between pages, and turns
upstream failures into a partial `FetchResult` instead of an exception.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional

from storesync.core.enums import PaginationStyle
from storesync.core.exceptions import PlatformAuthError, PlatformServiceError

logger = logging.getLogger(__name__)


@dataclass
class Page:
    records: List[Any]
    next_cursor: Optional[str] = None   # cursor style
    total_pages: Optional[int] = None   # page-number style
    has_more: Optional[bool] = None     # page-number style without a page count


@dataclass
class FetchResult:
    records: List[Any] = field(default_factory=list)
    pages_fetched: int = 0
    restarts: int = 0
    error: Optional[Exception] = None
    cancelled: bool = False
    truncated: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


FetchPage = Callable[[int, Optional[str]], Awaitable[Page]]


class PaginatedFetcher:
    """
    Walks one list endpoint to exhaustion.

    Stops when:
    - cursor style: no next cursor is returned
    - page-number style: the page count is reached, or no count is given and
      `has_more` is not true
    - a page comes back empty
    - `max_pages` pages were fetched (logged as a warning)
    - the cancel event is set (checked between pages)
    - an upstream error occurs (records so far are kept)

    An invalid-credential error on the first page calls `on_auth_error` and
    restarts from page one, at most once per walk.
    """

    def __init__(
        self,
        fetch_page: FetchPage,
        style: PaginationStyle,
        max_pages: int = 50,
        page_delay: float = 0.5,
        label: str = "",
        cancel_event: Optional[asyncio.Event] = None,
        on_auth_error: Optional[Callable[[], Any]] = None,
    ):
        if max_pages < 1:
            raise ValueError("max_pages must be at least 1")
        self.fetch_page = fetch_page
        self.style = PaginationStyle(style)
        self.max_pages = max_pages
        self.page_delay = page_delay
        self.label = label or "fetch"
        self.cancel_event = cancel_event
        self.on_auth_error = on_auth_error

    def _cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    def _is_last_page(self, page: Page, page_number: int) -> bool:
        if not page.records:
            return True
        if self.style == PaginationStyle.CURSOR:
            return not page.next_cursor
        if page.total_pages is not None:
            return page_number >= page.total_pages
        return page.has_more is not True

    async def _handle_auth_error(self) -> None:
        if self.on_auth_error is None:
            return
        outcome = self.on_auth_error()
        if inspect.isawaitable(outcome):
            await outcome

    async def fetch_all(self) -> FetchResult:
        result = FetchResult()
        page_number = 1
        cursor: Optional[str] = None

        while True:
            if self._cancelled():
                logger.info(f"{self.label}: cancelled after {result.pages_fetched} pages")
                result.cancelled = True
                break

            try:
                page = await self.fetch_page(page_number, cursor)
            except PlatformAuthError as e:
                result.pages_fetched += 1
                if page_number == 1 and result.restarts == 0:
                    logger.warning(f"{self.label}: credential rejected, refreshing token and restarting: {e}")
                    await self._handle_auth_error()
                    result.restarts += 1
                    result.records = []
                    cursor = None
                    continue
                logger.error(f"{self.label}: credential rejected on page {page_number}: {e}")
                result.error = e
                break
            except PlatformServiceError as e:
                result.pages_fetched += 1
                logger.error(
                    f"{self.label}: page {page_number} failed, keeping {len(result.records)} records: {e}"
                )
                result.error = e
                break

            result.pages_fetched += 1
            result.records.extend(page.records)
            logger.debug(
                f"{self.label}: page {page_number} returned {len(page.records)} records "
                f"(total {len(result.records)})"
            )

            if self._is_last_page(page, page_number):
                break

            if result.pages_fetched - result.restarts >= self.max_pages:
                logger.warning(
                    f"{self.label}: stopped at the {self.max_pages}-page limit with more pages pending"
                )
                result.truncated = True
                break

            page_number += 1
            cursor = page.next_cursor

            if self.page_delay > 0:
                await asyncio.sleep(self.page_delay)

        logger.info(
            f"{self.label}: fetched {len(result.records)} records in {result.pages_fetched} pages"
        )
        return result
