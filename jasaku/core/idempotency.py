"""Replay protection for gateway deliveries."""

import hashlib
import json
import time
from collections import OrderedDict
from datetime import timedelta
from typing import Any


class IdempotencyStore:
    """In-memory record of deliveries already applied.

    Only a fast path for exact replays: the authoritative duplicate check is
    the persisted payment state, so losing entries (restart, another worker,
    eviction) only costs a database round trip.
    """

    def __init__(self, ttl: timedelta = timedelta(hours=24), max_entries: int = 10_000):
        self._entries: OrderedDict[str, tuple[float, dict]] = OrderedDict()
        self._ttl_seconds = ttl.total_seconds()
        self._max_entries = max_entries

    def __len__(self) -> int:
        return len(self._entries)

    def _purge(self, now: float) -> None:
        # Entries are kept in insertion order, so expired ones sit at the front.
        while self._entries:
            key, (expires_at, _) = next(iter(self._entries.items()))
            if expires_at > now:
                break
            del self._entries[key]

    def get(self, key: str) -> dict | None:
        """Return the cached response for ``key``, if still fresh."""
        now = time.monotonic()
        self._purge(now)
        entry = self._entries.get(key)
        if entry is None or entry[0] <= now:
            return None
        return entry[1]

    def set(self, key: str, result: dict) -> None:
        self._entries.pop(key, None)
        self._entries[key] = (time.monotonic() + self._ttl_seconds, result)
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)

    def exists(self, key: str) -> bool:
        return self.get(key) is not None

    def clear(self) -> None:
        self._entries.clear()


def generate_idempotency_key(
    operation: str,
    entity_id: str,
    params: dict[str, Any] | None = None,
) -> str:
    """Deterministic key for one delivery.

    Args:
        operation: Operation name (e.g., "webhook:invoice.paid")
        entity_id: Gateway transaction id
        params: Extra fields that distinguish deliveries

    Returns:
        SHA256 hex digest of the canonical JSON of all three
    """
    canonical = json.dumps(
        {"operation": operation, "entity_id": str(entity_id), "params": params or {}},
        sort_keys=True,
        separators=(",", ":"),
    )
    return hashlib.sha256(canonical.encode()).hexdigest()
