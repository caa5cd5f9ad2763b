"""
Cache Value Serialization

Both cache backends store the same JSON bytes so a value reads back
identically whether it was served from Redis or the fallback store.
"""

import json
from enum import Enum
from typing import Any


def _default_handler(obj: Any) -> Any:
    if hasattr(obj, "isoformat"):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if hasattr(obj, "__dict__"):
        return obj.__dict__
    return str(obj)


def serialize_value(value: Any) -> bytes:
    """
    Serialize a Python value to bytes for caching.

    Uses JSON with a default handler for non-serializable types
    (datetimes become ISO-8601 strings).
    """
    json_str = json.dumps(value, default=_default_handler, ensure_ascii=False)
    return json_str.encode("utf-8")


def deserialize_value(data: bytes) -> Any:
    """Deserialize bytes back to a Python value."""
    if not data:
        return None
    if isinstance(data, bytes):
        data = data.decode("utf-8")
    return json.loads(data)
