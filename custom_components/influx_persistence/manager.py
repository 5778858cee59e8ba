"""Feed Home Assistant state changes into the persistence core and schedule flushes."""

from __future__ import annotations

import asyncio
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from homeassistant.const import (
    EVENT_STATE_CHANGED,
    STATE_UNAVAILABLE,
    STATE_UNKNOWN,
    EntityCategory,
)
from homeassistant.core import callback
from homeassistant.helpers import entity_registry as er
from homeassistant.helpers.event import (
    async_track_state_change_event,
    async_track_time_interval,
)

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from homeassistant.core import Event, HomeAssistant, State

    from .persistence import InfluxPersistence

from .const import LOGGER


class PersistenceManager:
    """Listen for state changes and flush buckets to InfluxDB on a timer."""

    def __init__(
        self,
        hass: HomeAssistant,
        persistence: InfluxPersistence,
        entity_ids: list[str] | None = None,
    ) -> None:
        """Initialize the manager."""
        self._hass = hass
        self._persistence = persistence
        self._entity_ids = list(entity_ids or [])
        self._unsub_state: Callable[[], None] | None = None
        self._unsub_flush: Callable[[], None] | None = None
        self._flush_lock = asyncio.Lock()

    @property
    def entity_ids(self) -> list[str]:
        """Return the tracked entities; empty means every entity."""
        return self._entity_ids

    async def async_start(self) -> None:
        """Start listening for state updates and schedule the flush cycle."""
        if self._entity_ids:
            self._unsub_state = async_track_state_change_event(
                self._hass,
                self._entity_ids,
                self._handle_state_change,
            )
        else:
            self._unsub_state = self._hass.bus.async_listen(
                EVENT_STATE_CHANGED, self._handle_state_change
            )
        self._schedule_flush()

    async def async_stop(self) -> None:
        """Stop listeners and timers."""
        if self._unsub_state:
            self._unsub_state()
            self._unsub_state = None
        if self._unsub_flush:
            self._unsub_flush()
            self._unsub_flush = None
        # Wait for a running flush, then flush remaining points
        async with self._flush_lock:
            if len(self._persistence.queue):
                await self._hass.async_add_executor_job(self._persistence.run_cycle)

    async def async_set_interval(self, interval_ms: int) -> None:
        """Change bucket width and flush period without touching queued data."""
        if interval_ms == self._persistence.interval_ms:
            return
        self._persistence.interval_ms = interval_ms
        LOGGER.debug("Flush interval changed to %s ms", interval_ms)
        if self._unsub_flush is not None:
            self._schedule_flush()

    def _schedule_flush(self) -> None:
        if self._unsub_flush:
            self._unsub_flush()
        self._unsub_flush = async_track_time_interval(
            self._hass,
            self._async_flush,
            timedelta(milliseconds=self._persistence.interval_ms),
        )

    @callback
    def _handle_state_change(self, event: Event) -> None:
        """Handle a new state."""
        entity_id = event.data["entity_id"]
        new_state: State | None = event.data.get("new_state")
        self._persistence.on_update(
            entity_id,
            self._is_config_entity(entity_id),
            self._state_to_value(new_state),
        )

    def _is_config_entity(self, entity_id: str) -> bool:
        """Return True for configuration entities, which are never persisted."""
        entry = er.async_get(self._hass).async_get(entity_id)
        return entry is not None and entry.entity_category is EntityCategory.CONFIG

    async def _async_flush(self, _now: datetime) -> None:
        """Run one flush cycle in the executor."""
        if self._flush_lock.locked():
            LOGGER.debug("Previous flush still running; skipping this cycle")
            return

        async with self._flush_lock:
            await self._hass.async_add_executor_job(self._persistence.run_cycle)

    @staticmethod
    def _state_to_value(state: State | None) -> Any | None:
        """
        Convert a Home Assistant state to a float, or keep it as text.

        Numeric states are always floats so a field keeps one type in
        InfluxDB whether the reading is "20" or "20.5".
        """
        if state is None or state.state in (STATE_UNKNOWN, STATE_UNAVAILABLE):
            return None

        raw = state.state
        try:
            return float(raw)
        except ValueError:
            pass

        return raw
