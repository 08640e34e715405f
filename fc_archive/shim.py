"""Profile fallback API for authors missing from the archive."""
from __future__ import annotations

import logging
from typing import Callable

from .errors import IngestError
from .http import ApiClient
from .models import User
from .retry import backoff_from_settings, capped_backoff, retry_with_skip

LOG = logging.getLogger(__name__)


class ShimClient:
    def __init__(
        self,
        api: ApiClient,
        *,
        retry_times: int = 2,
        backoff: Callable[[int], float] = capped_backoff,
    ):
        self.api = api
        self.retry_times = retry_times
        self.backoff = backoff

    @classmethod
    def from_settings(cls, settings, api: ApiClient) -> "ShimClient":
        return cls(api, retry_times=min(2, settings.retry_times), backoff=backoff_from_settings(settings))

    def get_user(self, fid: int) -> User | None:
        try:
            res = retry_with_skip(
                lambda: self.api.get_json(f"/user/{fid}"),
                times=self.retry_times,
                backoff=self.backoff,
            )
        except IngestError as e:
            LOG.warning("Shim lookup failed for fid %s: %s", fid, e)
            return None

        user = res.get("user") if res.get("success", True) else None
        if not isinstance(user, dict):
            return None
        return User(
            fid=int(user.get("fid") or fid),
            username=user.get("username"),
            display_name=user.get("displayName"),
            avatar=user.get("pfpUrl"),
            bio=user.get("bio"),
        )
