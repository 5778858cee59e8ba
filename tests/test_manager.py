"""Tests for the Home Assistant side of the persistence manager."""

import asyncio
from datetime import timedelta
from types import SimpleNamespace

from homeassistant.const import EVENT_STATE_CHANGED, EntityCategory

from custom_components.influx_persistence import manager as manager_module
from custom_components.influx_persistence.api import to_influx_point
from custom_components.influx_persistence.manager import PersistenceManager

from conftest import FakeHass


class MockState:
    """Simple mock for Home Assistant State."""

    def __init__(self, state: str):
        self.state = state


def _event(entity_id, state):
    return SimpleNamespace(
        data={
            "entity_id": entity_id,
            "new_state": MockState(state) if state is not None else None,
        }
    )


class TestStateToValue:
    """Tests for PersistenceManager._state_to_value."""

    def test_none_state(self):
        assert PersistenceManager._state_to_value(None) is None

    def test_unknown_state(self):
        assert PersistenceManager._state_to_value(MockState("unknown")) is None

    def test_unavailable_state(self):
        assert PersistenceManager._state_to_value(MockState("unavailable")) is None

    def test_integer_string_is_float(self):
        value = PersistenceManager._state_to_value(MockState("42"))
        assert value == 42.0
        assert isinstance(value, float)

    def test_float_string(self):
        assert PersistenceManager._state_to_value(MockState("3.14")) == 3.14

    def test_on_state_stays_text(self):
        assert PersistenceManager._state_to_value(MockState("on")) == "on"

    def test_string_state(self):
        assert PersistenceManager._state_to_value(MockState("heating")) == "heating"


class TestHandleStateChange:
    """Tests for routing state changes into the persistence core."""

    def test_numeric_and_text_states_are_queued(self, persistence, monkeypatch):
        monkeypatch.setattr(
            PersistenceManager, "_is_config_entity", lambda _self, _entity_id: False
        )
        manager = PersistenceManager(FakeHass(), persistence)
        manager._handle_state_change(_event("sensor.power", "42"))
        manager._handle_state_change(_event("sensor.mode", "eco"))
        manager._handle_state_change(_event("sensor.gone", None))
        manager._handle_state_change(_event("sensor.lost", "unavailable"))

        (values,) = persistence.queue.drain_all().values()
        assert [(v.field, v.value) for v in values] == [
            ("sensor.power", 42.0),
            ("sensor.mode", "eco"),
        ]

    def test_whole_and_fractional_readings_keep_one_field_type(
        self, persistence, client, clock, monkeypatch
    ):
        monkeypatch.setattr(
            PersistenceManager, "_is_config_entity", lambda _self, _entity_id: False
        )
        manager = PersistenceManager(FakeHass(), persistence)
        clock.now = 1_000
        manager._handle_state_change(_event("sensor.power", "20.5"))
        clock.now = 11_000
        manager._handle_state_change(_event("sensor.power", "20"))

        persistence.run_cycle()
        first, second = client.batches[0]
        assert type(first.fields["sensor.power"]) is float
        assert type(second.fields["sensor.power"]) is float
        assert "sensor.power=20i" not in to_influx_point(second).to_line_protocol()

    def test_config_entities_are_skipped(self, persistence, monkeypatch):
        entries = {
            "number.cycle_time": SimpleNamespace(entity_category=EntityCategory.CONFIG),
            "sensor.power": SimpleNamespace(entity_category=None),
        }
        registry = SimpleNamespace(async_get=entries.get)
        monkeypatch.setattr(manager_module.er, "async_get", lambda _hass: registry)

        manager = PersistenceManager(FakeHass(), persistence)
        manager._handle_state_change(_event("number.cycle_time", "1000"))
        manager._handle_state_change(_event("sensor.power", "5"))
        manager._handle_state_change(_event("sensor.unregistered", "6"))

        (values,) = persistence.queue.drain_all().values()
        assert [v.field for v in values] == ["sensor.power", "sensor.unregistered"]


class TestStart:
    """Tests for subscribing and scheduling."""

    async def test_listens_to_all_entities_by_default(
        self, hass, persistence, timers
    ):
        manager = PersistenceManager(hass, persistence)
        await manager.async_start()

        assert [event_type for event_type, _ in hass.listeners] == [
            EVENT_STATE_CHANGED
        ]
        (timer,) = timers
        assert timer.interval == timedelta(milliseconds=10_000)

        await manager.async_stop()
        assert hass.listeners == []
        assert timer.cancelled

    async def test_listens_to_listed_entities(
        self, hass, persistence, timers, monkeypatch
    ):
        tracked = []

        def fake_track_state_change_event(_hass, entity_ids, _action):
            tracked.append(list(entity_ids))
            return lambda: tracked.clear()

        monkeypatch.setattr(
            manager_module,
            "async_track_state_change_event",
            fake_track_state_change_event,
        )
        manager = PersistenceManager(
            hass, persistence, entity_ids=["sensor.a", "sensor.b"]
        )
        await manager.async_start()

        assert tracked == [["sensor.a", "sensor.b"]]
        assert hass.listeners == []

        await manager.async_stop()
        assert tracked == []

    async def test_interval_change_reschedules_running_timer(
        self, hass, persistence, timers
    ):
        manager = PersistenceManager(hass, persistence)
        await manager.async_start()

        await manager.async_set_interval(5_000)

        first, second = timers
        assert first.cancelled
        assert not second.cancelled
        assert second.interval == timedelta(milliseconds=5_000)
        assert persistence.interval_ms == 5_000

    async def test_same_interval_keeps_timer(self, hass, persistence, timers):
        manager = PersistenceManager(hass, persistence)
        await manager.async_start()

        await manager.async_set_interval(10_000)

        assert len(timers) == 1

    async def test_set_interval_before_start(self, persistence, timers):
        manager = PersistenceManager(FakeHass(), persistence)
        await manager.async_set_interval(5_000)
        assert persistence.interval_ms == 5_000
        assert timers == []

    def test_entity_ids_default_to_all(self, persistence):
        assert PersistenceManager(FakeHass(), persistence).entity_ids == []
        assert PersistenceManager(
            FakeHass(), persistence, entity_ids=["sensor.a"]
        ).entity_ids == ["sensor.a"]


class TestFlush:
    """Tests for the scheduled flush."""

    async def test_flush_runs_cycle_in_executor(self, persistence, client):
        hass = FakeHass()
        persistence.on_update("sensor.power", False, 1)
        manager = PersistenceManager(hass, persistence)

        await manager._async_flush(None)

        assert hass.jobs == 1
        assert len(client.batches) == 1

    async def test_overlapping_flush_is_skipped(self, persistence, client):
        hass = FakeHass()
        persistence.on_update("sensor.power", False, 1)
        manager = PersistenceManager(hass, persistence)

        async with manager._flush_lock:
            await manager._async_flush(None)

        assert hass.jobs == 0
        assert client.batches == []
        assert len(persistence.queue) == 1

    async def test_stop_flushes_remaining(self, persistence, client):
        persistence.on_update("sensor.power", False, 1)
        manager = PersistenceManager(FakeHass(), persistence)

        await manager.async_stop()

        assert len(client.batches) == 1

    async def test_stop_waits_for_running_flush(self, persistence, client):
        persistence.on_update("sensor.power", False, 1)
        manager = PersistenceManager(FakeHass(), persistence)

        await manager._flush_lock.acquire()
        stop = asyncio.create_task(manager.async_stop())
        await asyncio.sleep(0)
        assert not stop.done()
        assert client.batches == []

        manager._flush_lock.release()
        await stop

        assert len(client.batches) == 1
        assert len(persistence.queue) == 0

    async def test_stop_with_empty_queue(self, persistence):
        hass = FakeHass()
        manager = PersistenceManager(hass, persistence)
        await manager.async_stop()
        assert hass.jobs == 0
