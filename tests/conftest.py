"""Pytest configuration for Influx Persistence tests."""

from types import SimpleNamespace

import pytest

from custom_components.influx_persistence import manager as manager_module
from custom_components.influx_persistence.connection import ConnectionManager
from custom_components.influx_persistence.persistence import (
    InfluxPersistence,
    PersistenceSettings,
)


class FakeClient:
    """Stand-in for InfluxPersistenceClient that records batches."""

    def __init__(self, connect_error=None, write_error=None):
        self.connect_error = connect_error
        self.write_error = write_error
        self.connect_calls = 0
        self.ensure_calls = 0
        self.batches = []
        self.closed = False

    def connect(self):
        self.connect_calls += 1
        if self.connect_error is not None:
            raise self.connect_error

    def ensure_bucket(self):
        self.ensure_calls += 1

    def write_batch(self, points):
        if self.write_error is not None:
            raise self.write_error
        self.batches.append(list(points))

    def close(self):
        self.closed = True


class FakeClock:
    """Millisecond clock under test control."""

    def __init__(self, now=0):
        self.now = now

    def __call__(self):
        return self.now


class FakeHass:
    """Runs executor jobs inline and records bus listeners and reloads."""

    def __init__(self):
        self.jobs = 0
        self.listeners = []
        self.reloaded = []
        self.bus = SimpleNamespace(async_listen=self._async_listen)
        self.config_entries = SimpleNamespace(async_reload=self._async_reload)

    async def async_add_executor_job(self, target, *args):
        self.jobs += 1
        return target(*args)

    def _async_listen(self, event_type, handler):
        listener = (event_type, handler)
        self.listeners.append(listener)
        return lambda: self.listeners.remove(listener)

    async def _async_reload(self, entry_id):
        self.reloaded.append(entry_id)


class FakeEntry:
    """Minimal config entry."""

    def __init__(self, data, options=None):
        self.entry_id = "entry-1"
        self.data = data
        self.options = options or {}
        self.runtime_data = None
        self.update_listeners = []
        self.unload_callbacks = []

    def add_update_listener(self, listener):
        self.update_listeners.append(listener)
        return lambda: None

    def async_on_unload(self, func):
        self.unload_callbacks.append(func)


@pytest.fixture
def hass():
    """A fake Home Assistant instance."""
    return FakeHass()


@pytest.fixture
def timers(monkeypatch):
    """Record flush timers instead of scheduling them."""
    scheduled = []

    def fake_track_time_interval(_hass, action, interval):
        timer = SimpleNamespace(action=action, interval=interval, cancelled=False)
        scheduled.append(timer)

        def cancel():
            timer.cancelled = True

        return cancel

    monkeypatch.setattr(
        manager_module, "async_track_time_interval", fake_track_time_interval
    )
    return scheduled


@pytest.fixture
def settings():
    """Complete connection settings."""
    return PersistenceSettings(
        url="http://localhost:8086",
        system_id=7,
        username="root",
        password="root",
    )


@pytest.fixture
def client():
    """A healthy fake sink client."""
    return FakeClient()


@pytest.fixture
def clock():
    """A controllable clock starting at epoch."""
    return FakeClock()


@pytest.fixture
def persistence(settings, client, clock):
    """Persistence service wired to the fake client and clock."""
    connection = ConnectionManager(settings, client_factory=lambda _settings: client)
    return InfluxPersistence(settings, connection=connection, clock=clock)
