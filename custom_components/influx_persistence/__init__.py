"""Influx Persistence integration entry point."""

from __future__ import annotations

from typing import TYPE_CHECKING

from homeassistant.exceptions import ConfigEntryNotReady

from .const import (
    CONF_BUCKET,
    CONF_ENTITIES,
    CONF_INTERVAL,
    CONF_ORG,
    CONF_PASSWORD,
    CONF_REQUEUE_ON_FAILURE,
    CONF_SYSTEM_ID,
    CONF_URL,
    CONF_USERNAME,
    DEFAULT_BUCKET,
    DEFAULT_INTERVAL_MS,
    DEFAULT_ORG,
)
from .data import InfluxPersistenceConfigEntry, InfluxPersistenceRuntimeData
from .manager import PersistenceManager
from .persistence import InfluxPersistence, PersistenceSettings

if TYPE_CHECKING:
    from homeassistant.const import Platform
    from homeassistant.core import HomeAssistant

PLATFORMS: list[Platform] = []


async def async_setup_entry(
    hass: HomeAssistant,
    entry: InfluxPersistenceConfigEntry,
) -> bool:
    """Set up the Influx Persistence integration."""
    persistence = InfluxPersistence(build_settings(entry.data, entry.options))

    if not await hass.async_add_executor_job(persistence.initialize):
        await hass.async_add_executor_job(persistence.close)
        msg = f"InfluxDB at {entry.data.get(CONF_URL)} is not available"
        raise ConfigEntryNotReady(msg)

    manager = PersistenceManager(
        hass, persistence, entity_ids=entry.options.get(CONF_ENTITIES)
    )
    await manager.async_start()

    entry.runtime_data = InfluxPersistenceRuntimeData(
        persistence=persistence,
        manager=manager,
    )

    entry.async_on_unload(entry.add_update_listener(async_update_options))
    return True


async def async_unload_entry(
    hass: HomeAssistant,
    entry: InfluxPersistenceConfigEntry,
) -> bool:
    """Handle removal of an entry."""
    runtime = entry.runtime_data
    await runtime.manager.async_stop()
    await hass.async_add_executor_job(runtime.persistence.close)
    return True


async def async_update_options(
    hass: HomeAssistant,
    entry: InfluxPersistenceConfigEntry,
) -> None:
    """Apply an interval change in place; reload for anything else."""
    runtime = entry.runtime_data
    settings = build_settings(entry.data, entry.options)
    entity_ids = list(entry.options.get(CONF_ENTITIES) or [])
    if (
        entity_ids == runtime.manager.entity_ids
        and settings.requeue_on_failure
        == runtime.persistence.settings.requeue_on_failure
    ):
        await runtime.manager.async_set_interval(settings.interval_ms)
        return
    await hass.config_entries.async_reload(entry.entry_id)


def build_settings(data: dict, options: dict) -> PersistenceSettings:
    """Create PersistenceSettings from config entry data and options."""
    system_id = data.get(CONF_SYSTEM_ID)
    return PersistenceSettings(
        url=data.get(CONF_URL),
        system_id=int(system_id) if system_id is not None else None,
        username=data.get(CONF_USERNAME),
        password=data.get(CONF_PASSWORD),
        org=data.get(CONF_ORG) or DEFAULT_ORG,
        bucket=data.get(CONF_BUCKET) or DEFAULT_BUCKET,
        interval_ms=int(options.get(CONF_INTERVAL, DEFAULT_INTERVAL_MS)),
        requeue_on_failure=bool(options.get(CONF_REQUEUE_ON_FAILURE, False)),
    )
