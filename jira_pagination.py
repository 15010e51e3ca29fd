#!/usr/bin/env python3

"""
Jira Pagination - Follow nextPage chains into one logical collection

Jira list resources hand out one physical page at a time, each pointing at
the next. The Paginator walks that chain until the pointer disappears,
refusing to loop forever on a server that never stops handing one out.
"""

import logging
from typing import Callable, Iterator, List, Optional

from jira_errors import PaginationError
from jira_models import CommentSet, PagedCollection

logger = logging.getLogger(__name__)

DEFAULT_MAX_PAGES = 100

FetchNext = Callable[[str], PagedCollection]


class Paginator:
    """
    Walks a PagedCollection chain.

    Stateless between calls; max_pages counts the first page too.
    """

    def __init__(self, max_pages: int = DEFAULT_MAX_PAGES):
        if max_pages < 1:
            raise ValueError("max_pages must be at least 1")
        self.max_pages = max_pages

    def iter_pages(self, first_page: PagedCollection, fetch_next: FetchNext) -> Iterator[PagedCollection]:
        """
        Yield first_page and every page after it, in order.

        Raises:
            PaginationError: Chain longer than max_pages, or a URL repeats
            TransportError / DecodeError: Propagated from fetch_next
        """
        page = first_page
        seen_urls = set()
        pages = 1
        yield page

        while page.next_page is not None:
            url = page.next_page
            if url in seen_urls:
                raise PaginationError(f"Page chain loops back to {url}")
            if pages >= self.max_pages:
                raise PaginationError(f"Page chain exceeded {self.max_pages} pages (next: {url})")
            seen_urls.add(url)

            logger.debug("Following page %d: %s", pages + 1, url)
            page = fetch_next(url)
            pages += 1
            yield page

    def follow(
        self,
        first_page: PagedCollection,
        fetch_next: FetchNext,
        progress_callback: Optional[Callable[[int, int], None]] = None
    ) -> List:
        """
        Concatenate the values of every page in the chain.

        Nothing is returned unless the whole chain succeeds.

        Args:
            first_page: Already-fetched first page
            fetch_next: Callable(url) -> next PagedCollection
            progress_callback: Optional callback(fetched_count, total) after each page

        Returns:
            All values, page order then in-page order
        """
        values = []
        for page in self.iter_pages(first_page, fetch_next):
            values.extend(page.values)
            if progress_callback:
                progress_callback(len(values), max(page.total, len(values)))
        return values

    def collect_comments(self, fetch_at: Callable[[int], CommentSet]) -> CommentSet:
        """
        Gather a ticket's comments across startAt/maxResults pages.

        The comment resource pages by offset instead of nextPage. Pages are
        requested until `total` comments are in hand, so the result is
        always the complete collection.

        Args:
            fetch_at: Callable(start_at) -> one CommentSet page

        Raises:
            PaginationError: Pages ran dry before total, or more than max_pages were needed
            TransportError / DecodeError: Propagated from fetch_at
        """
        comments = []
        pages = 0
        while True:
            if pages >= self.max_pages:
                raise PaginationError(
                    f"Comments exceeded {self.max_pages} pages ({len(comments)} fetched so far)")
            page = fetch_at(len(comments))
            pages += 1
            comments.extend(page.comments)

            # No total means the server sent everything in one page
            total = len(comments) if page.total is None else page.total
            if len(comments) >= total:
                return CommentSet(comments=comments, start_at=0, max_results=len(comments), total=total)
            if not page.comments:
                raise PaginationError(f"Comment pages stopped at {len(comments)} of {total}")
            logger.debug("Fetched %d of %d comments", len(comments), total)
