"""
Monitoring session manager - one polling task per connected client

Each session is a single asyncio task running a fixed-cadence loop, so ticks
for one client never overlap: a slow tick only delays the next one. Every
session gets a new epoch; a finished tick is emitted only if its session is
still the live one for that client.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Any, Callable, Awaitable

from tuner.probe import DeviceProbe

logger = logging.getLogger(__name__)

EmitCallback = Callable[[str, Any], Awaitable[None]]

TUNER_STATUS_EVENT = "tuner-status"
ANTENNA_STATUS_EVENT = "antenna-mode-status"


class SessionMode(Enum):
    """Monitoring mode"""
    SINGLE = "single"
    ANTENNA = "antenna"


@dataclass
class MonitoringSession:
    """Live polling session for one client"""
    client_id: str
    mode: SessionMode
    device_id: str
    epoch: int
    emit: EmitCallback
    tuner: Optional[int] = None
    tuner_count: Optional[int] = None
    task: Optional[asyncio.Task] = None
    started_at: float = 0.0
    tick_count: int = 0
    error_count: int = 0

    def describe(self) -> Dict[str, Any]:
        return {
            "client_id": self.client_id,
            "mode": self.mode.value,
            "device_id": self.device_id,
            "tuner": self.tuner,
            "tuner_count": self.tuner_count,
            "polling": self.task is not None,
            "ticks": self.tick_count,
            "errors": self.error_count,
        }


class MonitoringSessionManager:
    """Starts, stops and runs per-client polling loops"""

    def __init__(self, probe: DeviceProbe, config: Optional[Dict] = None):
        config = config or {}
        self.probe = probe
        self.interval = config.get('status_interval_seconds', 1.0)
        self._sessions: Dict[str, MonitoringSession] = {}
        self._epoch = 0

    # ================== LIFECYCLE ==================

    def start_monitoring(self, client_id: str, device_id: str, tuner: int, emit: EmitCallback) -> MonitoringSession:
        """Poll one tuner with PLP/L1 details"""
        session = self._new_session(client_id, SessionMode.SINGLE, device_id, emit, tuner=tuner)
        logger.info(f"Starting monitoring for client {client_id}: device {device_id}, tuner {tuner}")
        return self._launch(session, self._single_tick)

    def start_antenna_mode(self, client_id: str, device_id: str, tuner_count: int, emit: EmitCallback) -> MonitoringSession:
        """Poll every tuner of a device at once"""
        session = self._new_session(client_id, SessionMode.ANTENNA, device_id, emit, tuner_count=tuner_count)
        logger.info(f"Starting antenna mode for client {client_id}: device {device_id} with {tuner_count} tuners")
        return self._launch(session, self._antenna_tick)

    def stop_monitoring(self, client_id: str) -> bool:
        """Cancel and forget the client's session. Returns False if there was none."""
        session = self._sessions.pop(client_id, None)
        if session is None:
            return False

        if session.task is not None:
            session.task.cancel()
            session.task = None
        logger.info(f"Stopped {session.mode.value} monitoring for client {client_id} after {session.tick_count} ticks")
        return True

    def client_disconnected(self, client_id: str) -> None:
        """A session never outlives its client connection"""
        self.stop_monitoring(client_id)

    async def shutdown(self) -> None:
        """Stop every session and wait for the tasks to finish"""
        tasks = [s.task for s in self._sessions.values() if s.task is not None]
        for client_id in list(self._sessions):
            self.stop_monitoring(client_id)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info(f"Monitoring manager stopped ({len(tasks)} sessions cancelled)")

    def get_session(self, client_id: str) -> Optional[MonitoringSession]:
        return self._sessions.get(client_id)

    def active_sessions(self) -> List[Dict[str, Any]]:
        return [session.describe() for session in self._sessions.values()]

    # ================== INTERNALS ==================

    def _new_session(self, client_id: str, mode: SessionMode, device_id: str, emit: EmitCallback, **kwargs) -> MonitoringSession:
        # Always stop-then-start, never update in place
        self.stop_monitoring(client_id)
        self._epoch += 1
        return MonitoringSession(client_id=client_id, mode=mode, device_id=device_id,
                                 epoch=self._epoch, emit=emit, started_at=time.time(), **kwargs)

    def _launch(self, session: MonitoringSession, tick) -> MonitoringSession:
        self._sessions[session.client_id] = session
        session.task = asyncio.create_task(self._run(session, tick))
        return session

    def _is_live(self, session: MonitoringSession) -> bool:
        current = self._sessions.get(session.client_id)
        return current is not None and current.epoch == session.epoch

    async def _run(self, session: MonitoringSession, tick) -> None:
        """Fixed-cadence loop; a failed tick is logged and skipped"""
        loop = asyncio.get_running_loop()

        while self._is_live(session):
            tick_start = loop.time()
            try:
                event, payload = await tick(session)
                if not self._is_live(session):
                    logger.debug(f"Discarding late tick for client {session.client_id} (epoch {session.epoch})")
                    break
                await session.emit(event, payload)
                # emit may have stopped the session
                if self._is_live(session):
                    session.tick_count += 1
            except asyncio.CancelledError:
                raise
            except Exception as e:
                if self._is_live(session):
                    session.error_count += 1
                logger.error(f"Monitoring tick failed for client {session.client_id}: {e}")

            elapsed = loop.time() - tick_start
            if elapsed > self.interval:
                logger.warning(f"Monitoring tick took {elapsed:.2f}s (>{self.interval}s) for client {session.client_id}")
            await asyncio.sleep(max(0, self.interval - elapsed))

    async def _single_tick(self, session: MonitoringSession):
        device, tuner = session.device_id, session.tuner

        status, current_program = await asyncio.gather(
            self.probe.get_tuner_status(device, tuner),
            self.probe.get_current_program(device, tuner),
        )

        # ATSC 3.0 details only for tuned channels
        plp_info = l1_info = None
        if status and status.channel and status.channel != "none":
            plp_info, l1_info = await asyncio.gather(
                self.probe.get_plp_info(device, tuner),
                self.probe.get_l1_info(device, tuner),
            )

        payload = status.to_dict() if status else {}
        payload.update({
            "current_program": current_program,
            "plp_info": plp_info,
            "l1_info": l1_info,
        })
        return TUNER_STATUS_EVENT, payload

    async def _antenna_tick(self, session: MonitoringSession):
        device = session.device_id

        async def poll(tuner: int) -> Dict[str, Any]:
            try:
                status = await self.probe.get_tuner_status(device, tuner)
            except Exception as e:
                logger.error(f"Error monitoring {device} tuner {tuner}: {e}")
                status = None
            return {"tuner": tuner, "status": status.to_dict() if status else None}

        results = await asyncio.gather(*[poll(n) for n in range(session.tuner_count)])
        return ANTENNA_STATUS_EVENT, list(results)
