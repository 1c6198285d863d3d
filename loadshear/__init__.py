"""Payload templating, shard metrics, message handler interface and file resolution for a TCP/UDP load generator."""

__version__ = "1.0.0"

__all__ = ["handlers", "metrics", "payloads", "resolver"]