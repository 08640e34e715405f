"""Pytest configuration and fixtures."""
import sqlite3

import pytest

from fc_archive.storage.db import ResponseCache, Store, ensure_schema


@pytest.fixture
def conn():
    """In-memory archive DB with the full schema."""
    c = sqlite3.connect(":memory:", check_same_thread=False)
    c.row_factory = sqlite3.Row
    ensure_schema(c)
    yield c
    c.close()


@pytest.fixture
def store(conn):
    return Store(conn)


@pytest.fixture
def cache(conn):
    return ResponseCache(conn)


@pytest.fixture(autouse=True)
def sleeps(monkeypatch):
    """Record retry backoff delays instead of sleeping."""
    delays = []
    monkeypatch.setattr("fc_archive.retry.time.sleep", lambda s: delays.append(s))
    return delays


@pytest.fixture
def make_cast():
    """Build a Neynar-shaped cast payload."""

    def _make(
        cast_hash,
        fid=1,
        *,
        username=None,
        text=None,
        timestamp="2025-03-01T12:34:56.000Z",
        parent_hash=None,
        parent_fid=None,
        thread_hash=None,
        channel=None,
        embeds=None,
    ):
        cast = {
            "hash": cast_hash,
            "text": text if text is not None else f"text of {cast_hash}",
            "timestamp": timestamp,
            "author": {
                "fid": fid,
                "username": username or f"user{fid}",
                "display_name": f"User {fid}",
                "pfp_url": f"https://img.example/{fid}.png",
                "profile": {"bio": {"text": f"bio {fid}"}},
            },
            "parent_hash": parent_hash,
            "parent_author": {"fid": parent_fid} if parent_fid is not None else {"fid": None},
            "thread_hash": thread_hash or cast_hash,
            "embeds": embeds or [],
        }
        if channel:
            cast["channel"] = channel
        return cast

    return _make
