"""In-memory bucketing of field values between flushes."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .values import FieldValue


def quantize(timestamp_ms: int, interval_ms: int) -> int:
    """Round a millisecond timestamp down to the start of its interval."""
    return timestamp_ms // interval_ms * interval_ms


class BucketedQueue:
    """Field values grouped by quantized timestamp, guarded by one lock."""

    def __init__(self) -> None:
        """Create an empty queue."""
        self._lock = threading.Lock()
        self._buckets: dict[int, list[FieldValue]] = {}

    def put(self, key: int, value: FieldValue) -> None:
        """Append a value to the bucket for key."""
        with self._lock:
            self._buckets.setdefault(key, []).append(value)

    def drain_all(self) -> dict[int, list[FieldValue]]:
        """Take every bucket and leave the queue empty."""
        with self._lock:
            snapshot = self._buckets
            self._buckets = {}
        return snapshot

    def clear(self) -> int:
        """Drop all pending values; returns how many were dropped."""
        with self._lock:
            dropped = sum(len(values) for values in self._buckets.values())
            self._buckets = {}
        return dropped

    def restore(
        self,
        snapshot: dict[int, list[FieldValue]],
        *,
        oldest_key: int | None = None,
        max_values: int | None = None,
    ) -> int:
        """
        Put a drained snapshot back; returns how many values were pruned.

        Restored values go in front of anything queued for the same bucket
        since the drain, so newer values still win on field collisions.
        Buckets older than oldest_key are dropped, then the oldest values are
        trimmed until at most max_values remain.
        """
        if not snapshot:
            return 0
        with self._lock:
            for key, values in snapshot.items():
                self._buckets[key] = [*values, *self._buckets.get(key, [])]
            return self._prune(oldest_key, max_values)

    def _prune(self, oldest_key: int | None, max_values: int | None) -> int:
        dropped = 0
        if oldest_key is not None:
            for key in [key for key in self._buckets if key < oldest_key]:
                dropped += len(self._buckets.pop(key))
        if max_values is None:
            return dropped

        excess = sum(len(values) for values in self._buckets.values()) - max_values
        for key in sorted(self._buckets):
            if excess <= 0:
                break
            values = self._buckets[key]
            if len(values) <= excess:
                del self._buckets[key]
                excess -= len(values)
                dropped += len(values)
            else:
                self._buckets[key] = values[excess:]
                dropped += excess
                excess = 0
        return dropped

    @property
    def bucket_count(self) -> int:
        """Return the number of distinct bucket keys."""
        with self._lock:
            return len(self._buckets)

    def __len__(self) -> int:
        with self._lock:
            return sum(len(values) for values in self._buckets.values())
