"""Bucket incoming updates and flush them to InfluxDB once per interval."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .api import InfluxPersistenceError
from .buffer import BucketedQueue, quantize
from .connection import ConnectionManager
from .const import (
    DEFAULT_BUCKET,
    DEFAULT_INTERVAL_MS,
    DEFAULT_ORG,
    LOGGER,
    MEASUREMENT,
    RETRY_MAX_AGE_MS,
    RETRY_MAX_VALUES,
    TAG_SYSTEM,
)
from .values import DataPoint, build_point, classify

if TYPE_CHECKING:
    from collections.abc import Callable

    from .values import FieldValue


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


@dataclass
class PersistenceSettings:
    """Connection parameters and flush behavior."""

    url: str | None = None
    system_id: int | None = None
    username: str | None = None
    password: str | None = None
    org: str = DEFAULT_ORG
    bucket: str = DEFAULT_BUCKET
    interval_ms: int = DEFAULT_INTERVAL_MS
    requeue_on_failure: bool = False
    retry_max_age_ms: int = RETRY_MAX_AGE_MS
    retry_max_values: int = RETRY_MAX_VALUES

    @property
    def is_complete(self) -> bool:
        """Return True if every value needed to connect is present."""
        return None not in (self.url, self.system_id, self.username, self.password)


class InfluxPersistence:
    """
    Receive value updates and periodically persist them as batched points.

    on_update() is the producer side and may be called from any thread.
    run_cycle() is the consumer side; callers must not run two cycles at once.
    """

    def __init__(
        self,
        settings: PersistenceSettings,
        connection: ConnectionManager | None = None,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        """Initialize the persistence service."""
        self._settings = settings
        self._connection = connection or ConnectionManager(settings)
        self._clock = clock
        self._queue = BucketedQueue()
        self._interval_ms = settings.interval_ms

    @property
    def settings(self) -> PersistenceSettings:
        """Return the settings this service was created with."""
        return self._settings

    @property
    def queue(self) -> BucketedQueue:
        """Return the pending bucket queue."""
        return self._queue

    @property
    def connection(self) -> ConnectionManager:
        """Return the connection manager."""
        return self._connection

    @property
    def interval_ms(self) -> int:
        """Return the bucket width, which is also the flush period."""
        return self._interval_ms

    @interval_ms.setter
    def interval_ms(self, value: int) -> None:
        if value <= 0:
            msg = "interval must be > 0"
            raise ValueError(msg)
        self._interval_ms = value

    def on_update(
        self,
        channel_id: str,
        is_config_channel: bool,  # noqa: FBT001
        new_value: Any | None,
    ) -> bool:
        """
        Queue a single update.

        Returns False when the update is ignored: config channels, absent
        values and unsupported types are not persisted.
        """
        if is_config_channel or new_value is None:
            return False

        field_value = classify(channel_id, new_value)
        if field_value is None:
            return False

        key = quantize(self._clock(), self._interval_ms)
        self._queue.put(key, field_value)
        return True

    def initialize(self) -> bool:
        """Return True once a connection to the sink could be established."""
        return self._connection.acquire() is not None

    def run_cycle(self) -> int | None:
        """
        Flush every pending bucket in one batch write.

        Returns the number of points written, or None when no connection is
        available (pending values are dropped) or the write failed.
        """
        client = self._connection.acquire()
        if client is None:
            dropped = self._queue.clear()
            if dropped:
                LOGGER.debug("No InfluxDB connection; dropped %s queued values", dropped)
            return None

        snapshot = self._queue.drain_all()
        points = self.build_points(snapshot)
        if not points:
            return 0

        try:
            client.write_batch(points)
        except InfluxPersistenceError as err:
            if self._settings.requeue_on_failure:
                pruned = self._queue.restore(
                    snapshot,
                    oldest_key=quantize(
                        self._clock() - self._settings.retry_max_age_ms,
                        self._interval_ms,
                    ),
                    max_values=self._settings.retry_max_values,
                )
                LOGGER.error(
                    "Influx batch write failed; keeping %s points for retry"
                    " (%s values pruned): %s",
                    len(points),
                    pruned,
                    err,
                )
            else:
                LOGGER.error(
                    "Influx batch write failed; dropped %s points: %s",
                    len(points),
                    err,
                )
            return None

        LOGGER.debug("Wrote [%s] points to InfluxDB", len(points))
        return len(points)

    def build_points(self, snapshot: dict[int, list[FieldValue]]) -> list[DataPoint]:
        """Turn drained buckets into data points ordered by timestamp."""
        tags = {TAG_SYSTEM: str(self._settings.system_id)}
        return [
            build_point(MEASUREMENT, timestamp, values, tags)
            for timestamp, values in sorted(snapshot.items())
            if values
        ]

    def close(self) -> None:
        """Release the sink connection."""
        self._connection.close()
