"""In-memory key-value database engine with Redis-compatible hash, list and key commands."""

__version__ = "0.1.0"
__all__ = ["db", "hashes", "keys", "lists", "replies", "router", "server"]