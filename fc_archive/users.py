from __future__ import annotations

import logging

from .models import User
from .shim import ShimClient
from .storage.db import Store

LOG = logging.getLogger(__name__)


def resolve_user(store: Store, fid: int, shim: ShimClient | None = None) -> User:
    """Archived user for ``fid``; never raises for unknown authors.

    Falls back to the shim API (and archives the hit), then to a
    placeholder.
    """
    user = store.get_user(fid)
    if user is not None:
        return user

    if shim is not None:
        user = shim.get_user(fid)
        if user is not None:
            store.save_user(user)
            return user

    LOG.debug("User with fid %s not found; using placeholder", fid)
    return User.placeholder(fid)
