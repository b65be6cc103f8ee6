"""Multi-page fetch driver.

Calls an adapter's ``fetch_page`` until the source runs dry, the adapter
reports a failure, or the result cap is reached. The cap is checked between
pages and the accumulated list is truncated to exactly ``max_results``; the
page size itself is never shrunk, since page-number sources need a constant
page size to compute offsets.
"""
from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import structlog

from .models.page import Page
from .models.query import PageCursor

logger = structlog.get_logger(__name__)

T = TypeVar("T")

FetchPage = Callable[[Any, PageCursor], Awaitable[Page[T]]]


class PaginationDriver:
    """Drives one multi-page fetch.

    Example:
        driver = PaginationDriver(max_results=1000, page_size=100)
        awards = await driver.drive(source.fetch_page, QueryFilter(agency="DOD"))
    """

    def __init__(self, max_results: int, page_size: int) -> None:
        if max_results < 1:
            raise ValueError("max_results must be positive")
        if page_size < 1:
            raise ValueError("page_size must be positive")
        self.max_results = max_results
        self.page_size = page_size
        self.pages_requested = 0
        self.stop_reason: str | None = None

    async def drive(
        self,
        fetch_page: FetchPage[T],
        query: Any,
        start: PageCursor | None = None,
    ) -> list[T]:
        """Accumulate records page by page.

        Args:
            fetch_page: Adapter page call taking ``(query, cursor)``
            query: Filter passed unchanged to every page call
            start: Initial cursor; defaults to offset 0 and ``page_size``

        Returns:
            Records in page order, at most ``max_results`` of them. A failed
            page ends the run and keeps everything fetched before it.
        """
        cursor = start or PageCursor(offset=0, page_size=self.page_size)
        records: list[T] = []
        self.pages_requested = 0
        self.stop_reason = None

        while True:
            page = await fetch_page(query, cursor)
            self.pages_requested += 1
            records.extend(page.records)

            reason = self._stop_reason(page, cursor, len(records))
            if reason is not None:
                self.stop_reason = reason
                break
            # Advance by what was asked for, not what came back
            cursor = cursor.advance()

        if len(records) > self.max_results:
            del records[self.max_results:]

        log = logger.warning if self.stop_reason == "failed" else logger.debug
        log(
            "pagination.done",
            reason=self.stop_reason,
            pages=self.pages_requested,
            records=len(records),
            outcome=page.info.outcome.value,
        )
        return records

    def _stop_reason(self, page: Page[Any], cursor: PageCursor, total: int) -> str | None:
        if page.info.failed:
            return "failed"
        if len(page) == 0:
            return "empty_page"
        if len(page) < cursor.page_size:
            return "short_page"
        if total >= self.max_results:
            return "cap_reached"
        if not page.info.has_more:
            return "no_more"
        return None
