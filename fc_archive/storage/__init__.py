"""SQLite storage for fc-archive.

One database holds two concerns:
- the response cache (complete feed / replies / conversation payloads);
- archived users and casts, which the markdown writer reads back.
"""

from .db import ResponseCache, Store, ensure_schema, open_db  # noqa: F401
