"""Command implementations behind the ``fcarchive`` CLI."""
from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from .config import Settings
from .errors import IngestError
from .http import ApiClient, neynar_client, snapchain_client
from .ingest import Ingestor
from .models import TraversalNode
from .neynar import NeynarClient
from .ratelimit import RateLimiter
from .shim import ShimClient
from .snapchain import SnapchainClient
from .storage.db import ResponseCache, Store, ensure_schema, open_db
from .write import write_archive

LOG = logging.getLogger(__name__)


@dataclass
class Archive:
    settings: Settings
    store: Store
    cache: ResponseCache
    neynar: NeynarClient
    snapchain: SnapchainClient
    shim: ShimClient | None
    ingestor: Ingestor
    limiter: RateLimiter


@contextmanager
def open_archive(settings: Settings) -> Iterator[Archive]:
    """Wire every component to one database handle; closes it on exit."""
    conn = open_db(settings.db_path)
    try:
        ensure_schema(conn)
        store = Store(conn)
        cache = ResponseCache(conn)
        limiter = RateLimiter(settings.calls_per_minute)

        neynar = NeynarClient.from_settings(settings, neynar_client(settings, limiter), cache, store)
        snapchain = SnapchainClient.from_settings(settings, snapchain_client(settings, limiter))
        shim = None
        if settings.shim_url:
            shim = ShimClient.from_settings(
                settings, ApiClient(settings.shim_url, timeout=settings.shim_timeout, limiter=limiter)
            )

        yield Archive(
            settings=settings,
            store=store,
            cache=cache,
            neynar=neynar,
            snapchain=snapchain,
            shim=shim,
            ingestor=Ingestor.from_settings(settings, neynar, snapchain, store),
            limiter=limiter,
        )
    finally:
        conn.close()


def _out_dir(args, settings: Settings) -> Path:
    return Path(getattr(args, "out", None) or settings.out_dir)


def run_ingest(args, settings: Settings) -> int:
    with open_archive(settings) as archive:
        try:
            summary = archive.ingestor.ingest_user(args.fid)
        except IngestError as e:
            print(f"❌ Ingest failed for fid {args.fid}: {e}")
            return 1

        print(f"✓ fid {args.fid}: {summary.get('feed_casts', 0)} casts, {summary.get('feed_replies', 0)} replies")
        print(
            f"  processed={summary.get('processed', 0)} new={summary.get('new_casts', 0)} "
            f"conversations={summary.get('conversations', 0)} traversed={summary.get('traversed', 0)} "
            f"hydrated={summary.get('hydrated', 0)}"
        )
        if archive.limiter.throttled_seconds:
            print(f"  throttled {archive.limiter.throttled_seconds:.0f}s over {archive.limiter.calls} requests")

        if not args.no_write:
            written = write_archive(archive.store, _out_dir(args, settings), archive.shim)
            print(f"✓ Wrote {written['users']} user files, {written['casts']} cast files")
    return 0


def run_write(args, settings: Settings) -> int:
    with open_archive(settings) as archive:
        counts = archive.store.counts()
        print(f"📚 Archive: {counts['users']} users, {counts['casts']} casts")
        written = write_archive(archive.store, _out_dir(args, settings), archive.shim)
    print(f"✓ Wrote {written['users']} user files, {written['casts']} cast files")
    return 0


def run_traverse(args, settings: Settings) -> int:
    with open_archive(settings) as archive:
        nodes = archive.snapchain.traverse(args.fid, args.hash)
        if args.hydrate:
            archive.ingestor.hydrate(nodes)

    if args.json:
        print(json.dumps([node._asdict() for node in nodes], indent=2))
    else:
        for node in nodes:
            print(f"{node.fid}\t{node.hash}")
        print(f"({len(nodes)} casts)")
    return 0


def run_cast(args, settings: Settings) -> int:
    with open_archive(settings) as archive:
        casts = archive.ingestor.hydrate(TraversalNode(0, h) for h in args.hashes)

    if args.json:
        print(json.dumps([c.raw for c in casts], indent=2, ensure_ascii=False))
    else:
        for cast in casts:
            print(f"{cast.hash}  @{cast.author.username or cast.fid}: {cast.text[:80]}")
        missing = set(args.hashes) - {c.hash for c in casts}
        if missing:
            print(f"⚠️  Not found: {', '.join(sorted(missing))}")
    return 0
