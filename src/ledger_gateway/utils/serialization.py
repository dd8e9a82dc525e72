"""JSON serialization utilities."""

from __future__ import annotations


def json_default(obj: object) -> object:
    """JSON serializer for objects not serializable by default json code."""
    if isinstance(obj, (bytes, bytearray)):
        return "0x" + bytes(obj).hex()
    return str(obj)
