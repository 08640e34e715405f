"""Cursor pagination with per-source merge and termination rules.

Feeds, conversations and castsByParent all page differently; each caller
supplies how to read the cursor, when a page is the last one and how to fold
a page into the accumulated result.
"""
from __future__ import annotations

import logging
from typing import Callable, TypeVar

from .errors import EmptyResultError, IngestError

LOG = logging.getLogger(__name__)

P = TypeVar("P")
M = TypeVar("M")


def paginate(
    fetch_page: Callable[[str | None], P],
    *,
    next_cursor: Callable[[P], str | None],
    is_last_page: Callable[[P], bool],
    start: Callable[[P], M],
    merge: Callable[[M, P], M],
    size: Callable[[M], int] | None = None,
    max_items: int | None = None,
    label: str = "page",
) -> M:
    """Fetch pages in cursor order and fold them into one result.

    ``fetch_page`` is expected to apply its own retry policy. When it
    finally fails, whatever was merged so far is returned; if the very
    first page failed, EmptyResultError is raised.
    """
    merged: M | None = None
    cursor: str | None = None
    pages = 0

    while True:
        try:
            page = fetch_page(cursor)
        except IngestError as e:
            LOG.error("Error fetching %s (cursor: %s) after %d page(s): %s", label, cursor, pages, e)
            break

        pages += 1
        merged = start(page) if merged is None else merge(merged, page)

        cursor = next_cursor(page)
        if not cursor or is_last_page(page):
            break
        if max_items is not None and size is not None and size(merged) >= max_items:
            LOG.warning("Stopping %s pagination at %d items (cap %d)", label, size(merged), max_items)
            break

    if merged is None:
        raise EmptyResultError(f"No {label} received from API")

    LOG.debug("Assembled %s from %d page(s)", label, pages)
    return merged
