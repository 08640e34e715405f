from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Iterator, TypeVar

T = TypeVar("T")


def pluralize(count: int, word: str, plural: str | None = None) -> str:
    return f"{count} {word if count == 1 else (plural or word + 's')}"


def chunked(items: Iterable[T], size: int) -> Iterator[list[T]]:
    """Yield consecutive lists of at most ``size`` items."""
    if size < 1:
        raise ValueError("size must be positive")
    chunk: list[T] = []
    for item in items:
        chunk.append(item)
        if len(chunk) == size:
            yield chunk
            chunk = []
    if chunk:
        yield chunk


def strip_0x(value: str | None) -> str:
    if not value:
        return ""
    return value[2:] if value.startswith("0x") else value


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO timestamp (``Z`` suffix allowed) into aware UTC."""
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def user_slug(username: str | None, fid: int) -> str:
    """File-safe name for a user's documents."""
    return username or f"fid-{fid}"
