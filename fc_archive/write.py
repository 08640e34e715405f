"""Write the archive out as linked markdown files.

Layout::

    out/_users_/<username>.md         profile + list of cast hashes
    out/<username>/<YYYYMMDD-HHMMSS-hash>.md

Existing files are left untouched, so re-running only adds new documents.
"""
from __future__ import annotations

import logging
from pathlib import Path

from .render import USERS_DIR, cast_filename, render_cast_document, render_user_document
from .shim import ShimClient
from .storage.db import Store
from .users import resolve_user
from .utils import pluralize, user_slug

LOG = logging.getLogger(__name__)


def write_users(store: Store, out_dir: Path, shim: ShimClient | None = None) -> int:
    users_dir = Path(out_dir) / USERS_DIR
    users_dir.mkdir(parents=True, exist_ok=True)

    fids = store.user_fids()
    LOG.info("%s in archive", pluralize(len(fids), "fid"))

    written = 0
    for fid in fids:
        user = resolve_user(store, fid, shim)
        path = users_dir / f"{user_slug(user.username, fid)}.md"
        if path.exists():
            continue
        LOG.debug("Writing user to %s", path)
        path.write_text(render_user_document(user, store.cast_hashes_for(fid)))
        written += 1
    return written


def write_casts(store: Store, out_dir: Path, shim: ShimClient | None = None) -> int:
    out_dir = Path(out_dir)
    written = 0
    for cast in store.iter_casts():
        filename = cast_filename(cast)
        if filename is None:
            LOG.warning("Cast %s has no usable timestamp; skipping", cast.hash)
            continue

        user = resolve_user(store, cast.fid, shim)
        user_dir = out_dir / user_slug(user.username, cast.fid)
        path = user_dir / filename
        if path.exists():
            continue

        parent = parent_user = None
        if cast.parent_hash:
            parent = store.get_cast(cast.parent_hash, cast.parent_fid)
            if cast.parent_fid:
                parent_user = resolve_user(store, cast.parent_fid, shim)

        user_dir.mkdir(parents=True, exist_ok=True)
        LOG.debug("Writing cast to %s", path)
        path.write_text(
            render_cast_document(
                cast,
                parent=parent,
                parent_user=parent_user,
                reply_count=store.count_replies(cast.fid, cast.hash),
            )
        )
        written += 1
    return written


def write_archive(store: Store, out_dir: Path, shim: ShimClient | None = None) -> dict:
    return {
        "users": write_users(store, out_dir, shim),
        "casts": write_casts(store, out_dir, shim),
    }
