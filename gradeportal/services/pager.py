"""
Forward/backward navigation over cursor-paginated list results.

The pager keeps one opaque cursor per visited page (the last record of the
previous page) so that moving between pages never rescans skipped results.
Any change to the filter set must go through ``invalidate()``; cursors captured
under one filter set are meaningless under another.

``has_next`` is ``True`` whenever a page comes back exactly full. When the
total number of matches is an exact multiple of the page size this reports one
extra, empty, next page. That boundary is a known approximation and is kept.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class StaleCursorError(LookupError):
    """No cursor was captured for the requested page."""


class PagerBusyError(RuntimeError):
    """A fetch is already in flight."""


@dataclass
class PageResult:
    items: List[Any]
    # Cursor pointing at the last item of this page, ``None`` when empty.
    last_cursor: Optional[str] = None


FetchPage = Callable[[Optional[str], int], PageResult]


@dataclass
class Pager:
    fetch_page: FetchPage
    page_size: int = 20
    current_page: int = 0
    cursor_by_page: Dict[int, str] = field(default_factory=dict)
    has_next: bool = False
    loading: bool = False
    fetched: bool = False
    items: List[Any] = field(default_factory=list)

    @property
    def has_previous(self) -> bool:
        return self.current_page > 0

    @property
    def is_empty(self) -> bool:
        """A query ran and matched nothing (as opposed to never having run)."""
        return self.fetched and not self.items

    def invalidate(self) -> None:
        """Drop every captured cursor and go back to the not-yet-queried state."""
        self.cursor_by_page.clear()
        self.current_page = 0
        self.has_next = False
        self.fetched = False
        self.items = []

    def fetch(self, page: int) -> List[Any]:
        if page < 0:
            raise ValueError("page must be >= 0")
        if self.loading:
            raise PagerBusyError("A page fetch is already in progress")

        cursor: Optional[str] = None
        if page > 0:
            if page not in self.cursor_by_page:
                raise StaleCursorError(
                    f"No cursor captured for page {page}; reset pagination and fetch page 0"
                )
            cursor = self.cursor_by_page[page]

        self.loading = True
        try:
            result = self.fetch_page(cursor, self.page_size)
        except Exception:
            logger.warning(f"Failed to fetch page {page}; keeping page {self.current_page}")
            raise
        finally:
            self.loading = False

        self.items = list(result.items)
        self.fetched = True
        self.current_page = page
        if self.items and result.last_cursor is not None:
            self.cursor_by_page[page + 1] = result.last_cursor
        self.has_next = len(self.items) == self.page_size
        return self.items

    def reset_and_fetch(self) -> List[Any]:
        self.invalidate()
        return self.fetch(0)

    def next_page(self) -> List[Any]:
        if not self.has_next:
            return self.items
        return self.fetch(self.current_page + 1)

    def previous_page(self) -> List[Any]:
        if not self.has_previous:
            return self.items
        return self.fetch(self.current_page - 1)

    def refresh(self) -> List[Any]:
        return self.fetch(self.current_page)
