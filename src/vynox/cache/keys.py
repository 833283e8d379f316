"""Cache key schema for the admin API.

Key format:
    {prefix}:{namespace}:ver                      generation counter
    {prefix}:{namespace}:{generation}:list:{fp}   list entry
    {prefix}:{namespace}:id:{id}                  point entry by id
    {prefix}:{namespace}:name:{name}              point entry by name
    {prefix}:{namespace}:type:{type}              point entry by type
    {prefix}:{namespace}:open:{a}:{b}             point entry by pair
    {prefix}:{namespace}:agg:{fp}                 aggregate entry (TTL only)

Where:
- prefix: API version ("v1"), shared by every namespace
- namespace: one logical entity type
- fp: fingerprint of the normalized query parameters
"""

from __future__ import annotations

import hashlib
from collections.abc import Mapping
from datetime import date, datetime
from enum import Enum
from typing import Any

import orjson
from pydantic import BaseModel

from vynox.config import settings


class Namespace(str, Enum):
    """Cache namespace per logical entity type."""

    ADS = "ads"
    SERVERS = "servers"
    COUNTRIES = "countries"
    CITIES = "cities"
    FAQS = "faqs"
    FEEDBACK = "feedback"
    CONNECTIVITY = "connectivity"
    DROPDOWNS = "dropdowns"
    PAGES = "pages"
    DASHBOARD = "dashboard"


class CacheKeys:
    """Cache key generator for one namespace."""

    PREFIX = settings.cache_key_prefix

    def __init__(self, namespace: Namespace | str):
        self.name = namespace.value if isinstance(namespace, Namespace) else namespace
        self.namespace = f"{self.PREFIX}:{self.name}"

    def version(self) -> str:
        """Key for the namespace generation counter."""
        return f"{self.namespace}:ver"

    def list(self, generation: str, fingerprint: str) -> str:
        """Key for a list entry under a given generation."""
        return f"{self.namespace}:{generation}:list:{fingerprint}"

    def by_id(self, entity_id: str) -> str:
        return f"{self.namespace}:id:{entity_id}"

    def by_name(self, name: str) -> str:
        return f"{self.namespace}:name:{name}"

    def by_type(self, type_: str) -> str:
        return f"{self.namespace}:type:{type_}"

    def open_pair(self, first: str, second: str) -> str:
        """Key for the open instance of a (subject, resource) pair."""
        return f"{self.namespace}:open:{first}:{second}"

    def aggregate(self, fingerprint: str) -> str:
        return f"{self.namespace}:agg:{fingerprint}"

    @classmethod
    def parse_key(cls, key: str) -> dict[str, Any] | None:
        """Parse a cache key into its components.

        Returns None if the key doesn't match the expected format.
        """
        parts = key.split(":")
        if len(parts) < 3 or parts[0] != cls.PREFIX:
            return None

        return {
            "prefix": parts[0],
            "namespace": parts[1],
            "segments": parts[2:],
        }


def _normalize(value: Any) -> Any:
    """Reduce a value to a canonical JSON-compatible form.

    Mappings lose their None entries (absent and null filters are the same
    query), unordered collections are sorted by their canonical encoding.
    """
    if isinstance(value, BaseModel):
        return _normalize(value.model_dump(exclude_none=True))
    if isinstance(value, Enum):
        return _normalize(value.value)
    if isinstance(value, Mapping):
        return {str(k): _normalize(v) for k, v in value.items() if v is not None}
    if isinstance(value, (list, tuple, set, frozenset)):
        items = [_normalize(v) for v in value]
        return sorted(items, key=lambda item: orjson.dumps(item, option=orjson.OPT_SORT_KEYS))
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def canonical_query(payload: Mapping[str, Any] | BaseModel) -> bytes:
    """Serialize query parameters independently of key and element order."""
    return orjson.dumps(_normalize(payload), option=orjson.OPT_SORT_KEYS)


def fingerprint(payload: Mapping[str, Any] | BaseModel) -> str:
    """Fixed-length digest of the normalized query parameters.

    SHA-1 is used for collision resistance of cache keys only.
    """
    return hashlib.sha1(canonical_query(payload), usedforsecurity=False).hexdigest()
