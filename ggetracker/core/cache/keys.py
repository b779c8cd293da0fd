"""
Cache key composition.

Keys look like ``<namespace>:<version>:<path>?<k=v&...>`` for versioned
entries and ``<namespace>:<path>?<k=v&...>`` for unversioned ones. Query
parameters are sorted by name and ``None`` values are dropped so logically
identical queries always map to the same key. Names and values are
percent-encoded, so ``&`` or ``=`` inside a value cannot forge another
parameter.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Union
from urllib.parse import quote

KeyPart = Union[str, int, float, bool, None]


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def query_key(path: str, params: Optional[Mapping[str, KeyPart]] = None) -> str:
    """
    Serialize a logical query into its stable key suffix.

    Example
    -------
    >>> query_key("/players", {"server": "DE1", "page": 2, "alliance": None})
    '/players?page=2&server=DE1'
    >>> query_key("/castle/analysis/1234010")
    '/castle/analysis/1234010'
    """
    if not params:
        return path

    pairs = [
        f"{quote(str(name), safe='')}={quote(_format_value(value), safe='')}"
        for name, value in sorted(params.items())
        if value is not None
    ]
    if not pairs:
        return path
    return f"{path}?{'&'.join(pairs)}"


def compose_key(namespace: str, key_suffix: str, version: Optional[int] = None) -> str:
    """Join namespace, optional fill version and suffix into a store key."""
    if version is None:
        return f"{namespace}:{key_suffix}"
    return f"{namespace}:{version}:{key_suffix}"


class CacheKeyBuilder:
    """
    Fluent builder for colon-separated keys.

    Null parts and null parameters are skipped; parameters are rendered as
    ``name-value`` in insertion order.

    Example
    -------
    >>> CacheKeyBuilder("DE1").with_part(3).with_params({"page": 1}).build()
    'DE1:3:page-1'
    """

    def __init__(self, base: str) -> None:
        self._parts: List[str] = [base]

    def with_part(self, value: KeyPart) -> "CacheKeyBuilder":
        if value is not None:
            self._parts.append(_format_value(value))
        return self

    def with_params(self, params: Dict[str, KeyPart]) -> "CacheKeyBuilder":
        for name, value in params.items():
            if value is not None:
                self._parts.append(f"{name}-{_format_value(value)}")
        return self

    def build(self) -> str:
        return ":".join(self._parts)
