"""Pagination over list endpoints."""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from .errors import ValidationError

logger = logging.getLogger(__name__)


@dataclass
class Page:
    """One page of results plus the pointer to the next page (``None`` when exhausted)."""

    items: list[Any] = field(default_factory=list)
    next: Any = None


FetchPage = Callable[[Any, int | None], Awaitable[Page]]


async def paginate(
    fetch_page: FetchPage,
    *,
    return_all: bool,
    limit: int | None = None,
    page_size: int | None = None,
    start: Any = None,
    shrink_last_page: bool = True,
) -> list[Any]:
    """Call ``fetch_page(pointer, size)`` until the source or the limit is exhausted.

    Args:
        fetch_page: Coroutine returning a :class:`Page` for a continuation pointer.
        return_all: Ignore ``limit`` and follow pointers to the end.
        limit: Maximum number of items when ``return_all`` is false.
        page_size: Page size to request, or ``None`` when the API has no such parameter.
        start: Pointer for the first page.
        shrink_last_page: Ask only for the remaining items on the last page. Disable for
            APIs whose pointer is a page number, where the page size must stay constant.

    Returns:
        The accumulated items, at most ``limit`` of them unless ``return_all``.
    """
    if not return_all and (limit is None or limit < 1):
        raise ValidationError("A positive limit is required when not returning all results")
    if limit is not None:
        limit = int(limit)

    results: list[Any] = []
    pointer = start
    pages = 0
    while True:
        size = page_size
        if not return_all and page_size is not None and shrink_last_page:
            size = min(page_size, limit - len(results))

        page = await fetch_page(pointer, size)
        pages += 1
        results.extend(page.items)

        if not return_all and len(results) >= limit:
            del results[limit:]
            break
        # A pointer that did not move means the source has nothing more to give.
        if not page.items or page.next is None or page.next == pointer:
            break
        pointer = page.next

    logger.debug("Fetched %d items in %d page(s)", len(results), pages)
    return results


def take(items: list[Any], return_all: bool, limit: int | None) -> list[Any]:
    """Truncate a single, unpaginated response."""
    if return_all or limit is None:
        return list(items)
    return list(items)[:int(limit)]
