"""Ingestion loop: feeds -> conversations -> reply traversal -> hydration.

Casts are processed one at a time. The only concurrent step is hydration,
which fans batched lookups out over a thread pool and tags the results on
the calling thread once every chunk has returned.
"""
from __future__ import annotations

import concurrent.futures
import logging
from collections import Counter
from typing import Iterable

from .errors import IngestError
from .models import Cast, Conversation, TraversalNode
from .neynar import MAX_BATCH, NeynarClient
from .snapchain import SnapchainClient
from .storage.db import Store
from .utils import chunked, pluralize

LOG = logging.getLogger(__name__)


class Ingestor:
    def __init__(
        self,
        neynar: NeynarClient,
        snapchain: SnapchainClient,
        store: Store,
        *,
        batch_size: int = MAX_BATCH,
        workers: int = 4,
    ):
        self.neynar = neynar
        self.snapchain = snapchain
        self.store = store
        self.batch_size = min(batch_size, MAX_BATCH)
        self.workers = max(1, workers)

    @classmethod
    def from_settings(cls, settings, neynar: NeynarClient, snapchain: SnapchainClient, store: Store) -> "Ingestor":
        return cls(neynar, snapchain, store, batch_size=settings.batch_size, workers=settings.hydrate_workers)

    def tag(self, casts: Iterable[Cast]) -> int:
        return sum(1 for cast in casts if self.store.tag_cast(cast))

    def conversation(self, cast_hash: str) -> Conversation | None:
        try:
            return self.neynar.get_conversation(cast_hash)
        except IngestError as e:
            LOG.error("Skipping conversation %s: %s", cast_hash, e)
            return None

    def hydrate(self, nodes: Iterable[TraversalNode]) -> list[Cast]:
        """Archive every cast in ``nodes``; returns those now known locally."""
        hashes = list(dict.fromkeys(node.hash for node in nodes))
        found: dict[str, Cast] = {}
        missing_chunks: list[list[str]] = []

        for chunk in chunked(hashes, self.batch_size):
            cached, missing = self.neynar.plan(chunk)
            for cast in cached:
                found[cast.hash] = cast
            if missing:
                missing_chunks.append(missing)

        if not missing_chunks:
            return list(found.values())

        fetched: list[Cast] = []
        workers = min(self.workers, len(missing_chunks))
        with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as executor:
            future_map = {executor.submit(self.neynar.fetch_casts, chunk): chunk for chunk in missing_chunks}
            for future in concurrent.futures.as_completed(future_map):
                chunk = future_map[future]
                try:
                    fetched.extend(future.result())
                except IngestError as e:
                    LOG.error("Hydration batch of %d failed, keeping cached casts only: %s", len(chunk), e)

        for cast in fetched:
            self.store.tag_cast(cast)
            found.setdefault(cast.hash, cast)
        LOG.info("Hydrated %s (%d fetched)", pluralize(len(found), "cast"), len(fetched))
        return list(found.values())

    def process_cast(self, cast: Cast) -> Counter:
        stats: Counter = Counter()
        stats["new_casts"] += self.tag([cast])

        if cast.thread_hash:
            convo = self.conversation(cast.thread_hash)
            if convo is not None:
                stats["conversations"] += 1
                stats["new_casts"] += self.tag(convo.all_casts())

            if cast.parent_fid and cast.parent_hash:
                thread = self.snapchain.traverse(cast.parent_fid, cast.parent_hash)
                stats["traversed"] += len(thread)
                stats["hydrated"] += len(self.hydrate(thread))
            else:
                LOG.debug("No parent author or hash for cast %s", cast.hash)

        replies = self.conversation(cast.hash)
        if replies is not None:
            stats["conversations"] += 1
            stats["new_casts"] += self.tag(replies.all_casts())

        return stats

    def queue_loop(self, casts: Iterable[Cast]) -> dict:
        totals: Counter = Counter()
        for cast in casts:
            totals["processed"] += 1
            totals.update(self.process_cast(cast))
        return dict(totals)

    def ingest_user(self, fid: int) -> dict:
        """Fetch the user's casts and replies, then walk every thread."""
        casts = self.neynar.get_user_casts(fid)
        replies = self.neynar.get_replies(fid)
        LOG.info(
            "fid %s: %s, %s",
            fid,
            pluralize(len(casts.casts), "cast"),
            pluralize(len(replies.casts), "reply", "replies"),
        )
        summary = self.queue_loop([*casts.casts, *replies.casts])
        summary["feed_casts"] = len(casts.casts)
        summary["feed_replies"] = len(replies.casts)
        return summary
