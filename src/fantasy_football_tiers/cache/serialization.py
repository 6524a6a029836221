"""Serialization of cache records.

A record is one JSON object per (group, format) key::

    {"data": [...], "timestamp": ..., "expiry": ..., "source": "api",
     "version": "1.0", "group": "RB", "format": "PPR"}
"""

from __future__ import annotations

import json
from typing import Any

from fantasy_football_tiers.domain.cache_entry import CacheEntry


class CacheEntrySerializer:
    """JSON serializer for CacheEntry records."""

    def serialize(self, value: CacheEntry) -> str:
        return json.dumps(value.to_dict(), separators=(",", ":"))

    def deserialize(self, data: str) -> CacheEntry:
        return CacheEntry.from_dict(self.load_raw(data))

    def load_raw(self, data: str) -> dict[str, Any]:
        """Parse a record without validating it, so the version can be checked first."""
        raw = json.loads(data)
        if not isinstance(raw, dict):
            msg = f"Cache record must be a JSON object, got {type(raw).__name__}"
            raise ValueError(msg)
        return raw
