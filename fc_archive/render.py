"""Markdown rendering of archived users and casts.

Pure functions: callers resolve parents and users beforehand.
"""
from __future__ import annotations

from .models import Cast, User
from .utils import parse_timestamp, pluralize, strip_0x, user_slug

USERS_DIR = "_users_"


def cast_filename(cast: Cast) -> str | None:
    """``YYYYMMDD-HHMMSS-<8 hex>.md`` in UTC, or None without a timestamp."""
    ts = parse_timestamp(cast.timestamp)
    if ts is None:
        return None
    return f"{ts:%Y%m%d-%H%M%S}-{strip_0x(cast.hash)[:8]}.md"


def render_user_header(user: User) -> str:
    display = user.display_name or "unknown"
    lines = [
        f"username: {user.username or 'unknown'}",
        f"fid: {user.fid}",
        f"display name: {display}",
        f"PFP: {f'[{user.avatar}]({user.avatar})' if user.avatar else 'unknown'}",
        f"bio: {user.bio or 'unknown'}",
        "",
        f'<img src="{user.avatar}" height="100" width="100" alt="{display}" />' if user.avatar else "no avatar",
    ]
    if user.is_placeholder:
        lines.append("(no profile on record for this fid)")
    return "\n".join(lines)


def render_user_document(user: User, cast_hashes: list[str]) -> str:
    return render_user_header(user) + "\n---\n" + "\n".join(strip_0x(h) for h in cast_hashes)


def _author_link(cast: Cast) -> str:
    slug = user_slug(cast.author.username, cast.fid)
    return f"[{slug}](../{USERS_DIR}/{slug}.md)"


def render_top_level_header(cast: Cast) -> str:
    return "\n".join([
        "---",
        f"hash: {strip_0x(cast.hash)}",
        f"timestamp: {cast.timestamp}",
        f"fid: {cast.fid}",
        "---",
        _author_link(cast),
    ])


def render_reply_header(cast: Cast, parent: Cast | None, parent_user: User | None) -> str:
    """Header for a reply; a missing parent cast is linked as ``<deleted>``."""
    if parent_user is None:
        parent_name = "unknown"
        parent_path = "<unknown>"
    else:
        parent_name = parent_user.username or "unknown"
        filename = cast_filename(parent) if parent is not None else None
        parent_path = f"../{user_slug(parent_user.username, parent_user.fid)}/{filename}" if filename else "<deleted>"

    return "\n".join([
        "---",
        f"hash: {strip_0x(cast.hash)}",
        f"timestamp: {cast.timestamp}",
        f"fid: {cast.fid}",
        f"parent_fid: {cast.parent_fid if cast.parent_fid is not None else ''}",
        f"parent_hash: {strip_0x(cast.parent_hash)}",
        f"root_parent_hash: {strip_0x(cast.thread_hash)}",
        "---",
        _author_link(cast),
        f"replying to: [{parent_name}]({parent_path})",
    ])


def render_reply_footer(num_replies: int) -> str:
    if num_replies == 0:
        return ""
    return "--\n" + pluralize(num_replies, "Reply", "Replies")


def render_embeds(embeds: list[dict]) -> str:
    """Inline image embeds; other embed kinds are skipped."""
    out = []
    for embed in embeds:
        url = embed.get("url")
        image = (embed.get("metadata") or {}).get("image")
        if not url or image is None:
            continue
        out.append(
            f'<img src="{url}" height={{{image.get("height_px")}}} width={{{image.get("width_px")}}} alt="embedded image" />'
        )
    return "\n".join(out)


def render_channel(cast: Cast) -> str:
    channel = cast.channel
    if channel is None or not channel.name:
        return "{no channel}"
    return f'{channel.name} <img src="{channel.image_url}" height="20" width="20" alt="{channel.name}" />'


def render_cast_document(
    cast: Cast,
    *,
    parent: Cast | None = None,
    parent_user: User | None = None,
    reply_count: int = 0,
) -> str:
    header = render_reply_header(cast, parent, parent_user) if cast.parent_hash else render_top_level_header(cast)
    parts = [
        header,
        "--",
        cast.text,
        render_embeds(cast.embeds),
        render_reply_footer(reply_count),
        "--",
        render_channel(cast),
    ]
    return "\n".join(parts).strip()
