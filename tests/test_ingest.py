"""Tests for the ingest queue loop and batched hydration fan-out."""
from __future__ import annotations

import threading

from fc_archive.errors import TransientError
from fc_archive.ingest import Ingestor
from fc_archive.models import Cast, TraversalNode
from fc_archive.neynar import NeynarClient
from fc_archive.snapchain import SnapchainClient


class _NeynarApi:
    """Routes Neynar paths to small in-memory fixtures."""

    def __init__(self, make_cast, *, feed=(), replies=(), conversations=None, fail_batches=False):
        self.make_cast = make_cast
        self.feed = list(feed)
        self.replies = list(replies)
        self.conversations = conversations or {}
        self.fail_batches = fail_batches
        self.calls = []
        self.threads = set()
        self._lock = threading.Lock()

    def get_json(self, path, params=None):
        params = dict(params or {})
        with self._lock:
            self.calls.append((path, params))
            self.threads.add(threading.get_ident())
        if path.endswith("/user/casts/"):
            return {"casts": self.feed, "next": None}
        if path.endswith("/replies_and_recasts/"):
            return {"casts": self.replies, "next": None}
        if path.endswith("/cast/conversation/"):
            h = params["identifier"]
            root = dict(self.conversations.get(h) or self.make_cast(h))
            root.setdefault("direct_replies", [])
            return {"conversation": {"cast": root, "chronological_parent_casts": []}, "next": None}
        if path.endswith("/farcaster/casts/"):
            if self.fail_batches:
                raise TransientError("502", status=502)
            return {"result": {"casts": [self.make_cast(h, fid=9) for h in params["casts"].split(",")]}}
        raise AssertionError(f"unexpected path {path}")

    def paths(self):
        return [p for p, _ in self.calls]


class _Snap:
    def __init__(self, nodes=()):
        self.nodes = list(nodes)
        self.calls = []

    def traverse(self, fid, cast_hash):
        self.calls.append((fid, cast_hash))
        return [TraversalNode(fid, cast_hash), *self.nodes]


def _ingestor(api, snap, store, cache, **kw):
    client = NeynarClient(api, cache, store, retry_times=2)
    return Ingestor(client, snap, store, **kw)


# ============================================================================
# Hydration
# ============================================================================


def test_hydrate_chunks_by_25_and_tags_results(make_cast, store, cache):
    api = _NeynarApi(make_cast)
    nodes = [TraversalNode(9, f"0x{i:03d}") for i in range(60)]

    casts = _ingestor(api, _Snap(), store, cache, workers=3).hydrate(nodes)

    batch_calls = [p for path, p in api.calls if path.endswith("/farcaster/casts/")]
    assert sorted(len(p["casts"].split(",")) for p in batch_calls) == [10, 25, 25]
    assert {c.hash for c in casts} == {n.hash for n in nodes}
    assert store.counts()["casts"] == 60


def test_hydrate_skips_archived_casts(make_cast, store, cache):
    for i in range(4):
        store.tag_cast(Cast.from_dict(make_cast(f"0x{i:03d}", fid=9)))
    api = _NeynarApi(make_cast)
    nodes = [TraversalNode(9, f"0x{i:03d}") for i in range(10)]

    casts = _ingestor(api, _Snap(), store, cache).hydrate(nodes)

    (path, params), = api.calls
    assert len(params["casts"].split(",")) == 6
    assert len(casts) == 10


def test_hydrate_dedupes_nodes(make_cast, store, cache):
    api = _NeynarApi(make_cast)
    nodes = [TraversalNode(9, "0xa"), TraversalNode(0, "0xa"), TraversalNode(9, "0xb")]

    casts = _ingestor(api, _Snap(), store, cache).hydrate(nodes)

    assert sorted(c.hash for c in casts) == ["0xa", "0xb"]
    assert len(api.calls) == 1


def test_hydrate_failure_keeps_cached(make_cast, store, cache):
    store.tag_cast(Cast.from_dict(make_cast("0xa", fid=9)))
    api = _NeynarApi(make_cast, fail_batches=True)

    casts = _ingestor(api, _Snap(), store, cache).hydrate([TraversalNode(9, "0xa"), TraversalNode(9, "0xb")])

    assert [c.hash for c in casts] == ["0xa"]
    assert store.get_cast("0xb") is None


def test_hydrate_nothing_missing_makes_no_calls(make_cast, store, cache):
    store.tag_cast(Cast.from_dict(make_cast("0xa", fid=9)))
    api = _NeynarApi(make_cast)

    casts = _ingestor(api, _Snap(), store, cache).hydrate([TraversalNode(9, "0xa")])

    assert [c.hash for c in casts] == ["0xa"]
    assert api.calls == []


# ============================================================================
# Queue loop
# ============================================================================


def test_top_level_cast_fetches_its_own_conversation(make_cast, store, cache):
    top = make_cast("0xtop", fid=1)
    reply = make_cast("0xrep", fid=2, parent_hash="0xtop", parent_fid=1, thread_hash="0xtop")
    api = _NeynarApi(make_cast, conversations={"0xtop": {**top, "direct_replies": [reply]}})
    snap = _Snap()

    stats = _ingestor(api, snap, store, cache).queue_loop([Cast.from_dict(top)])

    assert stats["processed"] == 1
    assert store.get_cast("0xrep") is not None
    # thread_hash == own hash: cached after the first fetch
    assert api.paths().count("/farcaster/cast/conversation/") == 1
    assert snap.calls == []


def test_reply_walks_thread_and_hydrates(make_cast, store, cache):
    reply = make_cast("0xrep", fid=1, parent_hash="0xparent", parent_fid=2, thread_hash="0xroot")
    api = _NeynarApi(make_cast)
    snap = _Snap([TraversalNode(3, "0xsibling"), TraversalNode(4, "0xnephew")])

    stats = _ingestor(api, snap, store, cache).queue_loop([Cast.from_dict(reply)])

    assert snap.calls == [(2, "0xparent")]
    conv_ids = [p["identifier"] for path, p in api.calls if path.endswith("/cast/conversation/")]
    assert conv_ids == ["0xroot", "0xrep"]
    for h in ("0xroot", "0xrep", "0xparent", "0xsibling", "0xnephew"):
        assert store.get_cast(h) is not None, h
    assert stats["traversed"] == 3
    assert stats["hydrated"] == 3
    assert stats["conversations"] == 2


def test_unfetchable_conversation_is_skipped(make_cast, store, cache):
    class _Broken(_NeynarApi):
        def get_json(self, path, params=None):
            if path.endswith("/cast/conversation/"):
                raise TransientError("down")
            return super().get_json(path, params)

    api = _Broken(make_cast)
    cast = make_cast("0xtop", fid=1)

    stats = _ingestor(api, _Snap(), store, cache).queue_loop([Cast.from_dict(cast)])

    assert stats["processed"] == 1
    assert stats.get("conversations", 0) == 0
    assert store.get_cast("0xtop") is not None


def test_ingest_user_is_idempotent(make_cast, store, cache):
    feed = [make_cast(f"0xc{i}", fid=1) for i in range(3)]
    replies = [make_cast("0xr0", fid=1, parent_hash="0xp", parent_fid=2, thread_hash="0xt")]
    api = _NeynarApi(make_cast, feed=feed, replies=replies)
    ingestor = _ingestor(api, _Snap(), store, cache)

    first = ingestor.ingest_user(1)
    calls_after_first = len(api.calls)
    counts_after_first = store.counts()

    second = ingestor.ingest_user(1)

    assert first["feed_casts"] == 3
    assert first["feed_replies"] == 1
    assert second["feed_casts"] == 3
    assert second["new_casts"] == 0
    assert store.counts() == counts_after_first
    assert len(api.calls) == calls_after_first
