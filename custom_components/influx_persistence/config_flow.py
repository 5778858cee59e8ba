"""Config flow for the Influx Persistence integration."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import voluptuous as vol
from homeassistant import config_entries
from homeassistant.core import callback
from homeassistant.helpers import selector

from .api import InfluxAuthError, InfluxPersistenceClient, InfluxPersistenceError
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
    DEFAULT_PASSWORD,
    DEFAULT_USERNAME,
    DOMAIN,
    LOGGER,
    MIN_INTERVAL_MS,
)

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant


def _validate_connection(data: dict[str, Any]) -> None:
    """Connect and make sure the bucket exists; blocking."""
    client = InfluxPersistenceClient(
        url=data[CONF_URL],
        username=data[CONF_USERNAME],
        password=data[CONF_PASSWORD],
        org=data[CONF_ORG],
        bucket=data[CONF_BUCKET],
    )
    try:
        client.connect()
        client.ensure_bucket()
    finally:
        client.close()


async def _async_validate_input(
    hass: HomeAssistant,
    user_input: dict[str, Any],
) -> tuple[dict[str, Any], dict[str, str], dict[str, str]]:
    """Normalize and validate connection input; returns data, errors, placeholders."""
    data = {**user_input, CONF_SYSTEM_ID: int(user_input[CONF_SYSTEM_ID])}
    errors: dict[str, str] = {}
    placeholders: dict[str, str] = {}
    try:
        await hass.async_add_executor_job(_validate_connection, data)
    except InfluxAuthError as exc:
        errors["base"] = "invalid_auth"
        placeholders["error"] = str(exc)
        LOGGER.warning("Influx validation failed (%s): %s", type(exc).__name__, exc)
    except InfluxPersistenceError as exc:
        errors["base"] = "cannot_connect"
        placeholders["error"] = str(exc)
        # Keep log terse; full message in warning for diagnostics.
        LOGGER.warning("Influx validation failed (%s): %s", type(exc).__name__, exc)
    except Exception as exc:  # noqa: BLE001
        errors["base"] = "unknown"
        LOGGER.exception("Unexpected error during Influx validation: %s", exc)
    return data, errors, placeholders


class InfluxPersistenceConfigFlow(config_entries.ConfigFlow, domain=DOMAIN):
    """Config flow for Influx Persistence."""

    VERSION = 1
    reconfigure_supported = True

    async def async_step_reconfigure(
        self, user_input: dict | None = None
    ) -> config_entries.ConfigFlowResult:
        """Handle reconfiguration of an existing entry."""
        entry = self._get_reconfigure_entry()

        errors: dict[str, str] = {}
        placeholders: dict[str, str] = {}
        if user_input is not None:
            data, errors, placeholders = await _async_validate_input(
                self.hass, user_input
            )
            if not errors:
                return self.async_update_reload_and_abort(entry, data_updates=data)

        defaults = user_input or entry.data
        return self.async_show_form(
            step_id="reconfigure",
            data_schema=_connection_schema(defaults),
            errors=errors,
            description_placeholders=placeholders or None,
        )

    async def async_step_user(
        self,
        user_input: dict | None = None,
    ) -> config_entries.ConfigFlowResult:
        """Handle a flow initialized by the user."""
        errors: dict[str, str] = {}
        placeholders: dict[str, str] = {}
        if user_input is not None:
            data, errors, placeholders = await _async_validate_input(
                self.hass, user_input
            )
            if not errors:
                unique_id = f"{data[CONF_URL]}::{data[CONF_BUCKET]}"
                await self.async_set_unique_id(unique_id)
                self._abort_if_unique_id_configured()
                return self.async_create_entry(
                    title=f"InfluxDB system {data[CONF_SYSTEM_ID]}",
                    data=data,
                )

        defaults = user_input or {}
        return self.async_show_form(
            step_id="user",
            data_schema=_connection_schema(defaults),
            errors=errors,
            description_placeholders=placeholders or None,
        )

    @staticmethod
    @callback
    def async_get_options_flow(
        config_entry: config_entries.ConfigEntry,
    ) -> config_entries.OptionsFlow:
        """Return the options flow handler."""
        return InfluxPersistenceOptionsFlowHandler(config_entry)


class InfluxPersistenceOptionsFlowHandler(config_entries.OptionsFlow):
    """Handle flush interval and entity selection."""

    def __init__(self, config_entry: config_entries.ConfigEntry) -> None:
        """Initialize options flow."""
        self._config_entry = config_entry

    async def async_step_init(
        self, user_input: dict | None = None
    ) -> config_entries.ConfigFlowResult:
        """Manage the options."""
        if user_input is not None:
            return self.async_create_entry(
                title=self._config_entry.title,
                data=_parse_options_input(user_input),
            )

        return self.async_show_form(
            step_id="init",
            data_schema=_options_schema(dict(self._config_entry.options)),
        )


def _connection_schema(defaults: dict) -> vol.Schema:
    """Build schema for InfluxDB connection fields."""
    return vol.Schema(
        {
            vol.Required(
                CONF_URL,
                default=defaults.get(CONF_URL, vol.UNDEFINED),
            ): selector.TextSelector(
                selector.TextSelectorConfig(
                    type=selector.TextSelectorType.URL,
                ),
            ),
            vol.Required(
                CONF_SYSTEM_ID,
                default=defaults.get(CONF_SYSTEM_ID, vol.UNDEFINED),
            ): selector.NumberSelector(
                selector.NumberSelectorConfig(
                    min=0,
                    step=1,
                    mode=selector.NumberSelectorMode.BOX,
                ),
            ),
            vol.Required(
                CONF_USERNAME,
                default=defaults.get(CONF_USERNAME, DEFAULT_USERNAME),
            ): selector.TextSelector(
                selector.TextSelectorConfig(
                    type=selector.TextSelectorType.TEXT,
                ),
            ),
            vol.Required(
                CONF_PASSWORD,
                default=defaults.get(CONF_PASSWORD, DEFAULT_PASSWORD),
            ): selector.TextSelector(
                selector.TextSelectorConfig(
                    type=selector.TextSelectorType.PASSWORD,
                ),
            ),
            vol.Required(
                CONF_ORG,
                default=defaults.get(CONF_ORG, DEFAULT_ORG),
            ): selector.TextSelector(
                selector.TextSelectorConfig(
                    type=selector.TextSelectorType.TEXT,
                ),
            ),
            vol.Required(
                CONF_BUCKET,
                default=defaults.get(CONF_BUCKET, DEFAULT_BUCKET),
            ): selector.TextSelector(
                selector.TextSelectorConfig(
                    type=selector.TextSelectorType.TEXT,
                ),
            ),
        }
    )


def _options_schema(defaults: dict) -> vol.Schema:
    """Build schema for the flush options."""
    return vol.Schema(
        {
            vol.Required(
                CONF_INTERVAL,
                default=defaults.get(CONF_INTERVAL, DEFAULT_INTERVAL_MS),
            ): selector.NumberSelector(
                selector.NumberSelectorConfig(
                    min=MIN_INTERVAL_MS,
                    step=1000,
                    unit_of_measurement="ms",
                    mode=selector.NumberSelectorMode.BOX,
                ),
            ),
            vol.Optional(
                CONF_ENTITIES,
                default=defaults.get(CONF_ENTITIES, []),
            ): selector.EntitySelector(
                selector.EntitySelectorConfig(multiple=True),
            ),
            vol.Optional(
                CONF_REQUEUE_ON_FAILURE,
                default=bool(defaults.get(CONF_REQUEUE_ON_FAILURE, False)),
            ): selector.BooleanSelector(selector.BooleanSelectorConfig()),
        }
    )


def _parse_options_input(user_input: dict) -> dict[str, Any]:
    interval = int(user_input.get(CONF_INTERVAL, DEFAULT_INTERVAL_MS))
    return {
        CONF_INTERVAL: max(interval, MIN_INTERVAL_MS),
        CONF_ENTITIES: list(user_input.get(CONF_ENTITIES) or []),
        CONF_REQUEUE_ON_FAILURE: bool(user_input.get(CONF_REQUEUE_ON_FAILURE, False)),
    }
