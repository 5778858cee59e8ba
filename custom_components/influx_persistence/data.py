"""Custom types for influx_persistence."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from homeassistant.config_entries import ConfigEntry

    from .manager import PersistenceManager
    from .persistence import InfluxPersistence


type InfluxPersistenceConfigEntry = ConfigEntry[InfluxPersistenceRuntimeData]


@dataclass
class InfluxPersistenceRuntimeData:
    """Runtime data stored on the config entry."""

    persistence: InfluxPersistence
    manager: PersistenceManager
