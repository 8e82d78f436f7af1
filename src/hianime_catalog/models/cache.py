from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class CacheEntry(BaseModel):
    """A single cached payload and the time it was written."""

    key: str
    payload: Any
    stored_at: float  # POSIX seconds

    def is_expired(self, now: float, ttl_seconds: float) -> bool:
        return now - self.stored_at >= ttl_seconds

    def to_record(self) -> dict[str, Any]:
        """Persisted layout: ``{"data": ..., "timestamp": ...}``."""
        return {"data": self.payload, "timestamp": self.stored_at}

    @classmethod
    def from_record(cls, key: str, record: Any) -> CacheEntry:
        if not isinstance(record, dict) or "data" not in record or "timestamp" not in record:
            raise ValueError(f"Malformed cache record for {key!r}")
        return cls(key=key, payload=record["data"], stored_at=record["timestamp"])
