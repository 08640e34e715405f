"""Snapchain node HTTP API: reply-graph traversal via castsByParent.

Note: the node returns up to 2x the requested pageSize when more pages
exist, so "short page" means fewer than pageSize cast messages, not fewer
than what was returned last time.
"""
from __future__ import annotations

import base64
import binascii
import logging
from collections import deque
from typing import Callable

from .errors import EmptyResultError
from .http import ApiClient
from .models import TraversalNode
from .paginate import paginate
from .retry import backoff_from_settings, capped_backoff, retry_with_skip

LOG = logging.getLogger(__name__)

PAGE_SIZE = 100
MAX_SIZE = 1000
CASTS_BY_PARENT_PATH = "/castsByParent"

# base64 of this marks the last page
END_TOKEN = b"[null,null]"


def is_end_token(token: str | None) -> bool:
    """True when ``token`` cannot lead to another page."""
    if not token:
        return True
    try:
        decoded = base64.b64decode(token, validate=True)
    except (binascii.Error, ValueError):
        return True
    return decoded == END_TOKEN


def _is_cast_add(message: dict) -> bool:
    data = message.get("data") if isinstance(message, dict) else None
    return bool(isinstance(data, dict) and data.get("castAddBody") and message.get("hash"))


class SnapchainClient:
    def __init__(
        self,
        api: ApiClient,
        *,
        page_size: int = PAGE_SIZE,
        max_messages: int = MAX_SIZE,
        retry_times: int = 5,
        backoff: Callable[[int], float] = capped_backoff,
    ):
        self.api = api
        self.page_size = page_size
        self.max_messages = max_messages
        self.retry_times = retry_times
        self.backoff = backoff

    @classmethod
    def from_settings(cls, settings, api: ApiClient) -> "SnapchainClient":
        return cls(
            api,
            page_size=settings.snapchain_page_size,
            max_messages=settings.snapchain_max_messages,
            retry_times=settings.retry_times,
            backoff=backoff_from_settings(settings),
        )

    def get_casts_by_parent(self, fid: int, cast_hash: str) -> list[dict]:
        """CastAdd messages replying to (fid, hash), best effort."""

        def fetch_page(page_token: str | None) -> dict:
            params = {"fid": fid, "hash": cast_hash, "pageSize": self.page_size, "reverse": "false"}
            if page_token:
                params["pageToken"] = page_token
            res = retry_with_skip(
                lambda: self.api.get_json(CASTS_BY_PARENT_PATH, params),
                times=self.retry_times,
                backoff=self.backoff,
            )
            return {
                "messages": [m for m in res.get("messages") or [] if _is_cast_add(m)],
                "nextPageToken": res.get("nextPageToken"),
            }

        try:
            return paginate(
                fetch_page,
                next_cursor=lambda page: None if is_end_token(page["nextPageToken"]) else page["nextPageToken"],
                is_last_page=lambda page: len(page["messages"]) < self.page_size,
                start=lambda page: list(page["messages"]),
                merge=lambda merged, page: merged + page["messages"],
                size=len,
                max_items=self.max_messages,
                label=f"castsByParent fid={fid} hash={cast_hash}",
            )
        except EmptyResultError:
            return []

    def get_children(self, fid: int, cast_hash: str) -> list[TraversalNode]:
        return [
            TraversalNode(int(m["data"].get("fid") or 0), str(m["hash"]))
            for m in self.get_casts_by_parent(fid, cast_hash)
        ]

    def traverse(self, fid: int | None, cast_hash: str) -> list[TraversalNode]:
        """Breadth-first walk of every reply below (fid, hash), including it.

        Each hash is expanded once, so cycles and shared children are fine.
        """
        seen: dict[str, int] = {}
        queue = deque([TraversalNode(fid or 0, cast_hash)])
        while queue:
            node = queue.popleft()
            if node.hash in seen:
                continue
            seen[node.hash] = node.fid
            queue.extend(self.get_children(node.fid, node.hash))
        LOG.debug("Traversal from %s found %d casts", cast_hash, len(seen))
        return [TraversalNode(f, h) for h, f in seen.items()]
