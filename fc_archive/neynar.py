"""Neynar REST API: user feeds, conversations and batched cast lookups.

Every assembled (multi-page) response is cached forever; a cache hit skips
the network entirely.
"""
from __future__ import annotations

import logging
from typing import Callable

from .errors import ContractViolation, IngestError, PayloadError
from .http import ApiClient
from .models import Cast, Conversation, FeedPage
from .paginate import paginate
from .retry import backoff_from_settings, capped_backoff, retry_with_skip
from .storage.db import ResponseCache, Store

LOG = logging.getLogger(__name__)

PAGE_SIZE = 50
MAX_SIZE = 10000
REPLY_DEPTH = 5
MAX_BATCH = 25

USER_CASTS_PATH = "/farcaster/feed/user/casts/"
USER_REPLIES_PATH = "/farcaster/feed/user/replies_and_recasts/"
CONVERSATION_PATH = "/farcaster/cast/conversation/"
CASTS_PATH = "/farcaster/casts/"


def check_batch(hashes: list[str]) -> None:
    if not hashes:
        raise ContractViolation("hashes is empty")
    if len(hashes) > MAX_BATCH:
        raise ContractViolation(f"hashes can't be more than {MAX_BATCH} at a time (got {len(hashes)})")


def _next_cursor(page: dict) -> str | None:
    return (page.get("next") or {}).get("cursor")


# -----------------------------------------------------------------------------
# Per-source merge rules
# -----------------------------------------------------------------------------


def _start_feed(page: dict) -> dict:
    return {**page, "casts": list(page["casts"])}


def _merge_feed(merged: dict, page: dict) -> dict:
    merged["casts"].extend(page["casts"])
    return merged


def _replies_of(page: dict) -> list:
    return page["conversation"]["cast"].get("direct_replies") or []


def _merge_conversation(merged: dict, page: dict) -> dict:
    convo = page["conversation"]
    base = merged["conversation"]

    replies = convo["cast"].get("direct_replies")
    if replies:
        base["cast"]["direct_replies"] = [*(base["cast"].get("direct_replies") or []), *replies]

    parents = convo.get("chronological_parent_casts")
    if parents:
        base["chronological_parent_casts"] = [*(base.get("chronological_parent_casts") or []), *parents]

    return merged


class NeynarClient:
    def __init__(
        self,
        api: ApiClient,
        cache: ResponseCache,
        store: Store,
        *,
        page_size: int = PAGE_SIZE,
        max_items: int = MAX_SIZE,
        reply_depth: int = REPLY_DEPTH,
        retry_times: int = 5,
        backoff: Callable[[int], float] = capped_backoff,
    ):
        self.api = api
        self.cache = cache
        self.store = store
        self.page_size = page_size
        self.max_items = max_items
        self.reply_depth = reply_depth
        self.retry_times = retry_times
        self.backoff = backoff

    @classmethod
    def from_settings(cls, settings, api: ApiClient, cache: ResponseCache, store: Store) -> "NeynarClient":
        return cls(
            api,
            cache,
            store,
            page_size=settings.page_size,
            max_items=settings.max_items,
            reply_depth=settings.reply_depth,
            retry_times=settings.retry_times,
            backoff=backoff_from_settings(settings),
        )

    def _fetch(self, path: str, params: dict) -> dict:
        return retry_with_skip(lambda: self.api.get_json(path, params), times=self.retry_times, backoff=self.backoff)

    # -------------------------------------------------------------------------
    # Feeds
    # -------------------------------------------------------------------------

    def _paginate_feed(self, path: str, base_params: dict) -> dict:
        def fetch_page(cursor: str | None) -> dict:
            params = {**base_params, "limit": self.page_size}
            if cursor:
                params["cursor"] = cursor
            page = self._fetch(path, params)
            if not isinstance(page.get("casts"), list):
                raise PayloadError(f"{path} response is missing casts")
            return page

        merged = paginate(
            fetch_page,
            next_cursor=_next_cursor,
            is_last_page=lambda page: len(page["casts"]) < self.page_size,
            start=_start_feed,
            merge=_merge_feed,
            size=lambda m: len(m["casts"]),
            max_items=self.max_items,
            label=f"feed {path}",
        )
        # Complete result: nothing left to page through
        merged["next"] = None
        return merged

    def _cached_feed(self, kind: str, fid: int, path: str, params: dict) -> FeedPage:
        payload = self.cache.get(kind, fid)
        if payload is None:
            payload = self._paginate_feed(path, params)
            self.cache.put(kind, fid, payload)
            LOG.info("Fetched %d %s casts for fid %s", len(payload["casts"]), kind, fid)
        else:
            LOG.debug("Cache hit: %s for fid %s", kind, fid)
        return FeedPage.from_dict(payload)

    def get_user_casts(self, fid: int) -> FeedPage:
        """All top-level casts by ``fid``."""
        return self._cached_feed("feed", fid, USER_CASTS_PATH, {"include_replies": "false", "fid": fid})

    def get_replies(self, fid: int) -> FeedPage:
        """All replies by ``fid``."""
        return self._cached_feed("replies", fid, USER_REPLIES_PATH, {"filter": "replies", "fid": fid})

    # -------------------------------------------------------------------------
    # Conversations
    # -------------------------------------------------------------------------

    def _paginate_conversation(self, cast_hash: str) -> dict:
        base_params = {
            "identifier": cast_hash,
            "type": "hash",
            "reply_depth": self.reply_depth,
            "include_chronological_parent_casts": "true",
        }

        def fetch_page(cursor: str | None) -> dict:
            params = {**base_params, "limit": self.page_size}
            if cursor:
                params["cursor"] = cursor
            LOG.debug("Fetching conversation page %s with params %s", CONVERSATION_PATH, params)
            page = self._fetch(CONVERSATION_PATH, params)
            convo = page.get("conversation")
            if not isinstance(convo, dict) or not isinstance(convo.get("cast"), dict):
                raise PayloadError("conversation response is missing conversation.cast")
            return page

        merged = paginate(
            fetch_page,
            next_cursor=_next_cursor,
            is_last_page=lambda page: len(_replies_of(page)) < self.page_size,
            start=lambda page: page,
            merge=_merge_conversation,
            label=f"conversation {cast_hash}",
        )
        merged.pop("next", None)
        return merged

    def get_conversation(self, cast_hash: str) -> Conversation:
        """Thread around ``cast_hash``: ancestors plus all direct replies.

        Raises EmptyResultError if not even the first page could be fetched.
        """
        payload = self.cache.get("conversation", cast_hash)
        if payload is None:
            LOG.info("Getting conversation for %s", cast_hash)
            payload = self._paginate_conversation(cast_hash)
            self.cache.put("conversation", cast_hash, payload)
        return Conversation.from_dict(payload)

    # -------------------------------------------------------------------------
    # Batched lookups
    # -------------------------------------------------------------------------

    def plan(self, hashes: list[str]) -> tuple[list[Cast], list[str]]:
        """Split a batch into casts already archived and hashes still missing."""
        check_batch(hashes)
        cached: list[Cast] = []
        seen: set[str] = set()
        for h in hashes:
            if h in seen:
                continue
            cast = self.store.get_cast(h)
            if cast is not None:
                cached.append(cast)
                seen.add(cast.hash)
        missing = [h for h in dict.fromkeys(hashes) if h not in seen]
        return cached, missing

    def fetch_casts(self, hashes: list[str]) -> list[Cast]:
        """One batched remote lookup. Touches no local state."""
        check_batch(hashes)
        payload = self._fetch(CASTS_PATH, {"casts": ",".join(hashes)})
        casts = (payload.get("result") or {}).get("casts")
        if not isinstance(casts, list):
            raise PayloadError("casts response is missing result.casts")
        return [Cast.from_dict(c) for c in casts]

    def get_casts(self, hashes: list[str]) -> list[Cast]:
        """Archived casts for ``hashes``, fetching and tagging the missing ones.

        On remote failure only the already-archived casts are returned.
        """
        cached, missing = self.plan(hashes)
        if not missing:
            return cached

        try:
            fetched = self.fetch_casts(missing)
        except IngestError as e:
            LOG.error("Error getting casts %s: %s", ",".join(missing), e)
            return cached

        for cast in fetched:
            self.store.tag_cast(cast)
        return [*cached, *fetched]
