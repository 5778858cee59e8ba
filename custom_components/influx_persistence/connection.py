"""Lazy, cached connection to the InfluxDB sink."""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING

from .api import InfluxPersistenceClient, InfluxPersistenceError
from .const import LOGGER

if TYPE_CHECKING:
    from collections.abc import Callable

    from .persistence import PersistenceSettings


class ConnectionState(StrEnum):
    """Where the connection manager stands."""

    UNCONFIGURED = "unconfigured"
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"


def default_client_factory(settings: PersistenceSettings) -> InfluxPersistenceClient:
    """Build a client from complete settings."""
    return InfluxPersistenceClient(
        url=settings.url,
        username=settings.username,
        password=settings.password,
        org=settings.org,
        bucket=settings.bucket,
    )


class ConnectionManager:
    """
    Hand out a connected client, or None when the sink is unavailable.

    Once a connection succeeds it is kept until close(); there is no health
    check and no reconnect after a failed write. Failed attempts are retried
    on every call.
    """

    def __init__(
        self,
        settings: PersistenceSettings,
        client_factory: Callable[
            [PersistenceSettings], InfluxPersistenceClient
        ] = default_client_factory,
    ) -> None:
        """Initialize the manager."""
        self._settings = settings
        self._client_factory = client_factory
        self._client: InfluxPersistenceClient | None = None
        self._state = (
            ConnectionState.DISCONNECTED
            if settings.is_complete
            else ConnectionState.UNCONFIGURED
        )

    @property
    def state(self) -> ConnectionState:
        """Return the current connection state."""
        return self._state

    def acquire(self) -> InfluxPersistenceClient | None:
        """Return the cached client, connecting first if needed."""
        if self._state is ConnectionState.UNCONFIGURED:
            return None
        if self._state is ConnectionState.CONNECTED:
            return self._client

        client = self._client_factory(self._settings)
        try:
            client.connect()
            client.ensure_bucket()
        except InfluxPersistenceError as err:
            LOGGER.error("Unable to connect to InfluxDB at %s: %s", self._settings.url, err)
            client.close()
            return None

        LOGGER.debug("Connected to InfluxDB at %s", self._settings.url)
        self._client = client
        self._state = ConnectionState.CONNECTED
        return client

    def close(self) -> None:
        """Release the cached client."""
        client = self._client
        self._client = None
        if self._state is ConnectionState.CONNECTED:
            self._state = ConnectionState.DISCONNECTED
        if client is not None:
            client.close()
