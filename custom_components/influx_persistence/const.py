"""Constants for the Influx Persistence integration."""

from __future__ import annotations

from logging import Logger, getLogger
from typing import Final

LOGGER: Logger = getLogger(__package__)

DOMAIN = "influx_persistence"

CONF_URL: Final = "url"
CONF_USERNAME: Final = "username"
CONF_PASSWORD: Final = "password"  # noqa: S105
CONF_SYSTEM_ID: Final = "system_id"
CONF_ORG: Final = "org"
CONF_BUCKET: Final = "bucket"
CONF_INTERVAL: Final = "interval"
CONF_ENTITIES: Final = "entities"
CONF_REQUEUE_ON_FAILURE: Final = "requeue_on_failure"

DEFAULT_USERNAME: Final = "root"
DEFAULT_PASSWORD: Final = "root"  # noqa: S105
DEFAULT_ORG: Final = "-"
DEFAULT_BUCKET: Final = "db"
DEFAULT_INTERVAL_MS: Final = 10_000
MIN_INTERVAL_MS: Final = 1_000
RETRY_MAX_AGE_MS: Final = 3_600_000
RETRY_MAX_VALUES: Final = 5_000

MEASUREMENT: Final = "data"
TAG_SYSTEM: Final = "system"
