"""
Unit tests for MonitoringSessionManager polling sessions.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from services.monitoring import (
    MonitoringSessionManager,
    SessionMode,
    TUNER_STATUS_EVENT,
    ANTENNA_STATUS_EVENT,
)
from tuner.models import TunerStatus

DEVICE = "1053C0CA"
LOCKED = TunerStatus(lock=True, channel="8vsb:33", ss=71, snq=83)
IDLE = TunerStatus(lock=False, channel="none")


class Collector:
    """emit callback that records every event"""

    def __init__(self):
        self.events = []
        self._arrived = asyncio.Event()

    async def __call__(self, event, data):
        self.events.append((event, data))
        self._arrived.set()

    async def wait_for(self, count: int, timeout: float = 2.0):
        async def _wait():
            while len(self.events) < count:
                self._arrived.clear()
                await self._arrived.wait()
        await asyncio.wait_for(_wait(), timeout)


@pytest.fixture
def probe():
    probe = MagicMock()
    probe.get_tuner_status = AsyncMock(return_value=LOCKED)
    probe.get_current_program = AsyncMock(return_value="3")
    probe.get_plp_info = AsyncMock(return_value={"0": {"modulation": "qam256", "lock": True}})
    probe.get_l1_info = AsyncMock(return_value={"fft_size": "16384"})
    return probe


@pytest_asyncio.fixture
async def manager(probe):
    manager = MonitoringSessionManager(probe, {'status_interval_seconds': 0.01})
    yield manager
    await manager.shutdown()


class TestSingleTunerMode:
    """Per-tuner polling with ATSC 3.0 details"""

    @pytest.mark.asyncio
    async def test_emits_status_with_details(self, manager, probe):
        emit = Collector()

        manager.start_monitoring("client-1", DEVICE, 0, emit)
        await emit.wait_for(1)

        event, payload = emit.events[0]
        assert event == TUNER_STATUS_EVENT
        assert payload["channel"] == "8vsb:33"
        assert payload["lock"] is True
        assert payload["ss"] == 71
        assert payload["current_program"] == "3"
        assert payload["plp_info"]["0"]["modulation"] == "qam256"
        assert payload["l1_info"] == {"fft_size": "16384"}
        probe.get_tuner_status.assert_awaited_with(DEVICE, 0)

    @pytest.mark.asyncio
    async def test_idle_tuner_skips_plp_and_l1(self, manager, probe):
        probe.get_tuner_status.return_value = IDLE
        probe.get_current_program.return_value = None
        emit = Collector()

        manager.start_monitoring("client-1", DEVICE, 1, emit)
        await emit.wait_for(1)

        _, payload = emit.events[0]
        assert payload["channel"] == "none"
        assert payload["plp_info"] is None
        assert payload["l1_info"] is None
        probe.get_plp_info.assert_not_awaited()
        probe.get_l1_info.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_keeps_polling_at_interval(self, manager):
        emit = Collector()

        manager.start_monitoring("client-1", DEVICE, 0, emit)
        await emit.wait_for(3)

        assert manager.get_session("client-1").tick_count >= 3

    @pytest.mark.asyncio
    async def test_failed_tick_is_logged_and_polling_continues(self, manager, probe, caplog):
        calls = {"n": 0}

        async def flaky_status(device, tuner):
            calls["n"] += 1
            if calls["n"] == 1:
                raise RuntimeError("device went away")
            return LOCKED

        probe.get_tuner_status.side_effect = flaky_status
        emit = Collector()

        manager.start_monitoring("client-1", DEVICE, 0, emit)
        await emit.wait_for(1)

        assert manager.get_session("client-1").error_count == 1
        assert "device went away" in caplog.text


class TestAntennaMode:
    """All tuners of a device at once"""

    @pytest.mark.asyncio
    async def test_one_entry_per_tuner(self, manager):
        emit = Collector()

        manager.start_antenna_mode("client-1", DEVICE, 4, emit)
        await emit.wait_for(1)

        event, results = emit.events[0]
        assert event == ANTENNA_STATUS_EVENT
        assert [r["tuner"] for r in results] == [0, 1, 2, 3]
        assert all(r["status"]["lock"] is True for r in results)

    @pytest.mark.asyncio
    async def test_failing_tuner_reports_none(self, manager, probe):
        async def status(device, tuner):
            if tuner == 1:
                raise RuntimeError("tuner 1 timeout")
            return LOCKED

        probe.get_tuner_status.side_effect = status
        emit = Collector()

        manager.start_antenna_mode("client-1", DEVICE, 3, emit)
        await emit.wait_for(1)

        _, results = emit.events[0]
        assert len(results) == 3
        assert [r["status"] is None for r in results] == [False, True, False]

    @pytest.mark.asyncio
    async def test_antenna_mode_does_not_fetch_details(self, manager, probe):
        emit = Collector()

        manager.start_antenna_mode("client-1", DEVICE, 2, emit)
        await emit.wait_for(1)

        probe.get_plp_info.assert_not_awaited()
        probe.get_current_program.assert_not_awaited()


class TestSessionLifecycle:
    """Stop, restart and disconnect"""

    @pytest.mark.asyncio
    async def test_stop_twice_is_noop(self, manager):
        emit = Collector()
        manager.start_monitoring("client-1", DEVICE, 0, emit)

        assert manager.stop_monitoring("client-1") is True
        assert manager.stop_monitoring("client-1") is False
        assert manager.get_session("client-1") is None

    @pytest.mark.asyncio
    async def test_stop_without_session(self, manager):
        assert manager.stop_monitoring("never-started") is False

    @pytest.mark.asyncio
    async def test_no_emits_after_stop(self, manager):
        emit = Collector()
        manager.start_monitoring("client-1", DEVICE, 0, emit)
        await emit.wait_for(1)

        manager.stop_monitoring("client-1")
        seen = len(emit.events)
        await asyncio.sleep(0.1)

        assert len(emit.events) == seen

    @pytest.mark.asyncio
    async def test_restart_replaces_session(self, manager):
        first_emit, second_emit = Collector(), Collector()

        first = manager.start_monitoring("client-1", DEVICE, 0, first_emit)
        first_task = first.task
        second = manager.start_antenna_mode("client-1", DEVICE, 2, second_emit)
        await second_emit.wait_for(1)
        await asyncio.sleep(0.05)

        assert first_task.cancelled() or first_task.done()
        assert first.task is None
        assert second.epoch > first.epoch
        assert manager.get_session("client-1") is second
        assert manager.get_session("client-1").mode is SessionMode.ANTENNA
        assert len(manager.active_sessions()) == 1
        assert all(event == ANTENNA_STATUS_EVENT for event, _ in second_emit.events)

    @pytest.mark.asyncio
    async def test_sessions_are_per_client(self, manager):
        emit_a, emit_b = Collector(), Collector()

        manager.start_monitoring("client-a", DEVICE, 0, emit_a)
        manager.start_monitoring("client-b", DEVICE, 1, emit_b)
        await emit_a.wait_for(1)
        await emit_b.wait_for(1)
        manager.client_disconnected("client-a")

        assert manager.get_session("client-a") is None
        assert manager.get_session("client-b") is not None
        assert [s["client_id"] for s in manager.active_sessions()] == ["client-b"]

    @pytest.mark.asyncio
    async def test_shutdown_cancels_everything(self, probe):
        manager = MonitoringSessionManager(probe, {'status_interval_seconds': 0.01})
        a = manager.start_monitoring("client-a", DEVICE, 0, Collector())
        b = manager.start_antenna_mode("client-b", DEVICE, 2, Collector())
        tasks = [a.task, b.task]

        await manager.shutdown()

        assert manager.active_sessions() == []
        assert all(task.done() for task in tasks)

    @pytest.mark.asyncio
    async def test_session_stopped_during_emit_is_not_mutated(self, manager):
        stopped = asyncio.Event()

        async def stop_on_first(event, data):
            manager.stop_monitoring("client-1")
            stopped.set()

        session = manager.start_monitoring("client-1", DEVICE, 0, stop_on_first)
        await asyncio.wait_for(stopped.wait(), 2.0)
        await asyncio.sleep(0.05)

        assert session.tick_count == 0
        assert session.error_count == 0

    @pytest.mark.asyncio
    async def test_failing_emit_after_stop_is_not_counted(self, manager):
        stopped = asyncio.Event()

        async def stop_then_fail(event, data):
            manager.stop_monitoring("client-1")
            stopped.set()
            raise RuntimeError("socket closed")

        session = manager.start_monitoring("client-1", DEVICE, 0, stop_then_fail)
        await asyncio.wait_for(stopped.wait(), 2.0)
        await asyncio.sleep(0.05)

        assert session.error_count == 0
