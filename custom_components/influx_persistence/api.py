"""InfluxDB access layer for the Influx Persistence integration."""

from __future__ import annotations

import ssl
from typing import TYPE_CHECKING

from influxdb_client import InfluxDBClient, Point, WritePrecision
from influxdb_client.client.write_api import SYNCHRONOUS, WriteApi
from influxdb_client.rest import ApiException
from urllib3.exceptions import HTTPError

from .const import LOGGER

if TYPE_CHECKING:
    from .values import DataPoint

# HTTP status codes
_HTTP_UNAUTHORIZED = 401
_HTTP_FORBIDDEN = 403


class InfluxPersistenceError(Exception):
    """Base exception for InfluxDB issues."""


class InfluxConnectionError(InfluxPersistenceError):
    """Raised when connection to InfluxDB fails."""


class InfluxAuthError(InfluxPersistenceError):
    """Raised when authentication fails."""


def _map_api_error(err: ApiException) -> InfluxPersistenceError:
    if err.status in (_HTTP_UNAUTHORIZED, _HTTP_FORBIDDEN):
        return InfluxAuthError("Invalid credentials or insufficient permissions")
    return InfluxPersistenceError(f"API error: {err}")


def to_influx_point(point: DataPoint) -> Point:
    """Convert a data point into an influxdb-client Point."""
    influx_point = Point(point.measurement)
    for key, value in point.tags.items():
        influx_point.tag(key, value)
    for key, value in point.fields.items():
        # Integers go out as floats so a field never changes type between writes.
        influx_point.field(key, float(value) if isinstance(value, int) else value)
    influx_point.time(point.timestamp_ms, WritePrecision.MS)
    return influx_point


class InfluxPersistenceClient:
    """
    Thin blocking wrapper around the sync InfluxDB client.

    Every method performs network I/O and must run outside the event loop.
    """

    def __init__(
        self,
        url: str,
        username: str,
        password: str,
        org: str,
        bucket: str,
    ) -> None:
        """Create the Influx client wrapper."""
        self._url = url
        self._username = username
        self._password = password
        self._org = org
        self._bucket = bucket
        self._client: InfluxDBClient | None = None
        self._write_api: WriteApi | None = None
        self._ssl = not url.lower().startswith("http://")

    @property
    def bucket(self) -> str:
        """Return the target bucket name."""
        return self._bucket

    def connect(self) -> None:
        """Open the client and prepare the write API."""
        client = self._ensure_client()
        if self._write_api is None:
            self._write_api = client.write_api(write_options=SYNCHRONOUS)

    def ensure_bucket(self) -> None:
        """Create the target bucket unless it already exists."""
        client = self._ensure_client()
        buckets_api = client.buckets_api()
        try:
            if buckets_api.find_bucket_by_name(self._bucket) is not None:
                return
            LOGGER.info("Creating InfluxDB bucket %s", self._bucket)
            buckets_api.create_bucket(bucket_name=self._bucket, org=self._org)
        except ApiException as err:
            raise _map_api_error(err) from err
        except (HTTPError, OSError) as err:
            msg = f"Connection failed: {err}"
            raise InfluxConnectionError(msg) from err

    def write_batch(self, points: list[DataPoint]) -> None:
        """Write multiple points to InfluxDB in a single request."""
        if not points:
            return

        if self._write_api is None:
            self.connect()

        records = [to_influx_point(point) for point in points]
        try:
            self._write_api.write(
                bucket=self._bucket,
                org=self._org,
                record=records,
                write_precision=WritePrecision.MS,
            )
        except ApiException as err:
            if err.status == _HTTP_UNAUTHORIZED:
                raise InfluxAuthError("Authentication failed") from err
            raise InfluxPersistenceError(f"API error: {err}") from err
        except (HTTPError, OSError) as err:
            raise InfluxConnectionError(f"Connection failed: {err}") from err

    def close(self) -> None:
        """Close the client."""
        client = self._client
        self._client = None
        self._write_api = None
        if client is None:
            return
        client.close()

    def _ensure_client(self) -> InfluxDBClient:
        if self._client is not None:
            return self._client

        ssl_param: bool | ssl.SSLContext = (
            ssl.create_default_context() if self._ssl else False
        )
        try:
            self._client = InfluxDBClient(
                url=self._url,
                username=self._username,
                password=self._password,
                org=self._org,
                ssl=ssl_param,
                verify_ssl=self._ssl,
            )
        except (HTTPError, OSError) as err:
            msg = f"Connection failed: {err}"
            raise InfluxConnectionError(msg) from err
        except (ValueError, TypeError) as err:
            msg = f"Invalid configuration: {err}"
            raise InfluxPersistenceError(msg) from err
        return self._client
