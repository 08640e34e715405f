"""Archive a Farcaster user's casts and the threads around them."""

__version__ = "0.3.0"
