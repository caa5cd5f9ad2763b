"""
Cache Key Derivation

Keys are `namespace:md5(canonical_json(params))`, optionally with a scope
segment (`namespace:user:42:<digest>`) so every entry belonging to one
user can be cleared with a plain substring match.

Canonical JSON sorts keys, uses compact separators and renders dates as
ISO-8601, so two logically identical date ranges always hash identically.
"""

import hashlib
import json
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional


def _canonical_default(obj: Any) -> Any:
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    raise TypeError(f"Object of type {type(obj).__name__} is not cacheable as a key")


def canonical_json(params: Any) -> str:
    """Serialize params to a stable JSON string."""
    return json.dumps(
        params,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=_canonical_default,
    )


def _namespace_value(namespace: Any) -> str:
    return namespace.value if isinstance(namespace, Enum) else str(namespace)


def user_scope(user_id: Any) -> str:
    """Scope segment used for per-user keys."""
    return f"user:{user_id}"


def derive_key(namespace: Any, params: Any, scope: Optional[str] = None) -> str:
    """
    Derive a deterministic cache key.

    Args:
        namespace: Namespace name (or CacheNamespace)
        params: Any JSON-serializable value; dates are allowed
        scope: Optional scope segment placed before the digest

    Returns:
        Fixed-shape key string
    """
    digest = hashlib.md5(canonical_json(params).encode("utf-8")).hexdigest()
    prefix = _namespace_value(namespace)
    if scope:
        return f"{prefix}:{scope}:{digest}"
    return f"{prefix}:{digest}"


def scope_fragment(namespace: Any, scope: str) -> str:
    """
    Substring shared by every key in a namespace scope.

    The trailing separator keeps `user:1:` from matching `user:12:`.
    """
    return f"{_namespace_value(namespace)}:{scope}:"
