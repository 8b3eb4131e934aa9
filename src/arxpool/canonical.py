"""Deterministic canonicalization used as the exact message signed and verified.

Objects have their keys sorted recursively by UTF-16 code unit, arrays keep
their order and scalars pass through untouched. :func:`serialize` renders the canonical form
as compact JSON; strings are returned verbatim so raw string payloads are
signed as-is rather than re-quoted.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping

__all__ = ["canonicalize", "hash_canonical", "serialize"]

_SCALARS = (str, int, float, bool, type(None))


def canonicalize(value: object) -> object:
    """Return ``value`` with every mapping rebuilt in sorted key order.

    Args:
        value: JSON-compatible structure (mappings, lists/tuples, scalars).

    Returns:
        A structurally equal value whose mapping keys are inserted in UTF-16
        code unit order.

    Raises:
        TypeError: If ``value`` contains a non-string key or a type that has no
            JSON representation.
    """

    if isinstance(value, _SCALARS):
        return value
    if isinstance(value, Mapping):
        out: dict[str, object] = {}
        for key in sorted(value.keys(), key=_sort_key):
            out[key] = canonicalize(value[key])
        return out
    if isinstance(value, (list, tuple)):
        return [canonicalize(item) for item in value]
    raise TypeError(f"Object of type {type(value).__name__} cannot be canonicalized")


def serialize(value: object) -> str:
    """Serialize ``value`` to its byte-stable canonical text form."""

    if isinstance(value, str):
        return value
    return json.dumps(
        canonicalize(value),
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )


def hash_canonical(value: object) -> str:
    """Return the SHA-256 hex digest of ``serialize(value)``."""

    return hashlib.sha256(serialize(value).encode("utf-8")).hexdigest()


def _require_str_key(key: object) -> str:
    if not isinstance(key, str):
        raise TypeError(f"Mapping keys must be strings, got {type(key).__name__}")
    return key


def _sort_key(key: object) -> bytes:
    # Big-endian UTF-16 bytes compare like JavaScript's default string sort.
    return _require_str_key(key).encode("utf-16-be", "surrogatepass")
