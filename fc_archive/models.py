from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, NamedTuple

from .errors import PayloadError


@dataclass
class User:
    fid: int
    username: str | None = None
    display_name: str | None = None
    avatar: str | None = None
    bio: str | None = None
    is_placeholder: bool = False

    @classmethod
    def placeholder(cls, fid: int) -> "User":
        """Stand-in for an author we have no record of."""
        return cls(fid=int(fid), is_placeholder=True)

    @classmethod
    def from_author(cls, d: dict) -> "User":
        """Build from a Neynar ``author`` object."""
        if not isinstance(d, dict) or d.get("fid") is None:
            raise PayloadError("author is missing fid")
        profile = d.get("profile") or {}
        bio = (profile.get("bio") or {}).get("text") if isinstance(profile, dict) else None
        return cls(
            fid=int(d["fid"]),
            username=d.get("username"),
            display_name=d.get("display_name"),
            avatar=d.get("pfp_url"),
            bio=bio,
        )

    @classmethod
    def from_row(cls, row) -> "User":
        return cls(
            fid=int(row["fid"]),
            username=row["username"],
            display_name=row["display_name"],
            avatar=row["avatar"],
            bio=row["bio"],
        )


@dataclass
class Channel:
    id: str | None
    name: str | None
    image_url: str | None = None

    @classmethod
    def from_dict(cls, d: dict | None) -> "Channel | None":
        if not d:
            return None
        return cls(id=d.get("id"), name=d.get("name"), image_url=d.get("image_url"))


@dataclass
class Cast:
    hash: str
    fid: int
    text: str
    timestamp: str
    author: User
    parent_hash: str | None = None
    parent_fid: int | None = None
    thread_hash: str | None = None
    channel: Channel | None = None
    embeds: list[dict] = field(default_factory=list)
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def is_reply(self) -> bool:
        return bool(self.parent_hash)

    @classmethod
    def from_dict(cls, d: dict) -> "Cast":
        """Validate a Neynar cast object, keeping the payload in ``raw``."""
        if not isinstance(d, dict):
            raise PayloadError(f"cast must be an object, got {type(d).__name__}")
        cast_hash = d.get("hash")
        if not isinstance(cast_hash, str) or not cast_hash:
            raise PayloadError("cast is missing hash")
        author = User.from_author(d.get("author") or {})
        parent_author = d.get("parent_author") or {}
        parent_fid = parent_author.get("fid") if isinstance(parent_author, dict) else None
        embeds = d.get("embeds") or []
        return cls(
            hash=cast_hash,
            fid=author.fid,
            text=d.get("text") or "",
            timestamp=d.get("timestamp") or "",
            author=author,
            parent_hash=d.get("parent_hash"),
            parent_fid=int(parent_fid) if parent_fid is not None else None,
            thread_hash=d.get("thread_hash"),
            channel=Channel.from_dict(d.get("channel")),
            embeds=[e for e in embeds if isinstance(e, dict)],
            raw=d,
        )


@dataclass
class FeedPage:
    casts: list[Cast]
    next_cursor: str | None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, d: dict) -> "FeedPage":
        casts = d.get("casts")
        if not isinstance(casts, list):
            raise PayloadError("feed response is missing casts")
        return cls(
            casts=[Cast.from_dict(c) for c in casts],
            next_cursor=(d.get("next") or {}).get("cursor"),
            raw=d,
        )


@dataclass
class Conversation:
    cast: Cast
    direct_replies: list[Cast]
    chronological_parent_casts: list[Cast]
    next_cursor: str | None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    def all_casts(self) -> list[Cast]:
        """Root, then ancestors, then direct replies."""
        return [self.cast, *self.chronological_parent_casts, *self.direct_replies]

    @classmethod
    def from_dict(cls, d: dict) -> "Conversation":
        convo = d.get("conversation")
        if not isinstance(convo, dict) or not isinstance(convo.get("cast"), dict):
            raise PayloadError("conversation response is missing conversation.cast")
        root = convo["cast"]
        return cls(
            cast=Cast.from_dict(root),
            direct_replies=[Cast.from_dict(c) for c in root.get("direct_replies") or []],
            chronological_parent_casts=[Cast.from_dict(c) for c in convo.get("chronological_parent_casts") or []],
            next_cursor=(d.get("next") or {}).get("cursor"),
            raw=d,
        )


class TraversalNode(NamedTuple):
    fid: int
    hash: str
