"""
Device probe - queries one device/tuner through hdhomerun_config
Status reads degrade to None/[] on failure; channel commands raise
DeviceCommandError so the caller can report them.
"""

import asyncio
import logging
from dataclasses import replace
from typing import List, Dict, Optional, Any

from device_command import DeviceCommandRunner, DeviceCommandError
from .models import TunerStatus, ProgramEntry, ChannelScanResult, DeviceInfo
from . import status_parser
from . import signal_estimator

logger = logging.getLogger(__name__)

MAX_TUNER_PROBE = 8
DEFAULT_TUNER_COUNT = 2
PROGRAM_RETRY_DELAYS = (1.5, 2.0)  # first retry, then every later retry


class DeviceProbe:
    """Reads tuner state and issues channel commands for one device at a time"""

    def __init__(self, runner: DeviceCommandRunner, config: Dict):
        self.runner = runner
        self.poll_timeout = config.get('poll_timeout_seconds', 0.75)
        self.command_timeout = config.get('command_timeout_seconds', 5)
        self.scan_timeout = config.get('scan_timeout_seconds', 90)

    async def _query(self, device: str, path: str, timeout: Optional[float] = None) -> Optional[str]:
        """GET that degrades to None"""
        try:
            return await self.runner.get(device, path, timeout=timeout or self.poll_timeout)
        except DeviceCommandError as e:
            logger.debug(f"Query {path} on {device} failed: {e}")
            return None

    # ================== STATUS READS ==================

    async def get_tuner_status(self, device: str, tuner: int) -> Optional[TunerStatus]:
        """
        Combine /status and /debug for one tuner. Returns None when the
        status query fails (unknown, not idle). A failed debug query only
        drops the dB estimate fields.
        """
        status_text, debug_text = await asyncio.gather(
            self._query(device, f"/tuner{tuner}/status"),
            self._query(device, f"/tuner{tuner}/debug"),
        )
        if status_text is None:
            return None

        status = status_parser.parse_status_line(status_text)
        if status_text.strip() == "none":
            return status

        counters = status_parser.parse_debug_counters(debug_text)
        if counters is None:
            return status

        estimate = signal_estimator.estimate(counters.signal_raw, counters.snr_raw)
        logger.debug(
            f"dB estimate {device}/tuner{tuner}: ss={status.ss} raw={counters.signal_raw} -> {estimate.ss_db}dBm, "
            f"snq={status.snq} raw={counters.snr_raw} -> {estimate.snr_db}dB"
        )
        return replace(status, ss_db=estimate.ss_db, snr_db=estimate.snr_db, debug_raw=counters.raw)

    async def get_current_program(self, device: str, tuner: int) -> Optional[str]:
        program = await self._query(device, f"/tuner{tuner}/program")
        if program and program != "none":
            return program
        return None

    async def get_plp_info(self, device: str, tuner: int) -> Optional[Dict[str, Dict[str, Any]]]:
        """PLP table keyed by PLP id, or None when the tuner has no ATSC 3.0 data"""
        text = await self._query(device, f"/tuner{tuner}/plpinfo")
        if text is None:
            return None
        plps = status_parser.parse_plp_table(text)
        if not plps:
            return None
        return {plp_id: entry.to_dict() for plp_id, entry in plps.items()}

    async def get_l1_info(self, device: str, tuner: int) -> Optional[Dict[str, str]]:
        text = await self._query(device, f"/tuner{tuner}/l1info")
        if text is None:
            return None
        return status_parser.parse_l1_table(text) or None

    async def get_programs_with_retry(self, device: str, tuner: int, max_retries: int = 3) -> List[ProgramEntry]:
        """
        List programs on the tuned channel. A freshly locked tuner needs a
        moment before its stream table populates (especially ATSC 3.0), so an
        empty result is retried with backoff. Unlocked tuners return [] at once.
        """
        status = await self.get_tuner_status(device, tuner)
        if not status or not status.lock or status.is_idle:
            return []

        attempt = 0
        while True:
            text = await self._query(device, f"/tuner{tuner}/streaminfo", timeout=self.command_timeout)
            programs = status_parser.parse_programs(text) if text else []
            if programs or attempt >= max_retries:
                break

            delay = PROGRAM_RETRY_DELAYS[min(attempt, len(PROGRAM_RETRY_DELAYS) - 1)]
            attempt += 1
            logger.debug(f"No programs yet on {device}/tuner{tuner}, retry {attempt}/{max_retries} in {delay}s")
            await asyncio.sleep(delay)

        if not programs:
            logger.info(f"No programs found on {device}/tuner{tuner} after {attempt} retries")
        return programs

    # ================== DEVICE INFO / SCAN ==================

    async def get_device_info(self, device: str) -> DeviceInfo:
        """Model, tuner count and ATSC 3.0 support for a device"""
        try:
            model = await self.runner.get(device, "/sys/model", timeout=self.command_timeout)
        except DeviceCommandError as e:
            logger.warning(f"Could not read model from {device}: {e}")
            return DeviceInfo(model="Unknown", tuners=DEFAULT_TUNER_COUNT, atsc3_support=False)

        tuners = await self.get_tuner_count(device)
        if not tuners:
            tuners = self._guess_tuner_count(model)

        # ATSC 3.0 support shows up later as PLP data; assume capable
        return DeviceInfo(model=model, tuners=tuners, atsc3_support=True)

    async def get_tuner_count(self, device: str) -> int:
        """Count tuners by checking which /tunerN/status variables exist"""
        results = await asyncio.gather(*[
            self._query(device, f"/tuner{n}/status", timeout=self.command_timeout)
            for n in range(MAX_TUNER_PROBE)
        ])
        return sum(1 for result in results if result is not None)

    @staticmethod
    def _guess_tuner_count(model: str) -> int:
        model = model.upper()
        if 'PRIME' in model:
            return 3
        if 'QUATTRO' in model or 'QUATRO' in model:
            return 4
        return DEFAULT_TUNER_COUNT

    async def scan_channels(self, device: str, tuner: int, channel_map: str = "us-bcast") -> List[ChannelScanResult]:
        logger.info(f"Scanning {device}/tuner{tuner} with channel map {channel_map}")
        try:
            output = await self.runner.scan(device, tuner, channel_map, timeout=self.scan_timeout)
        except DeviceCommandError as e:
            logger.error(f"Channel scan on {device}/tuner{tuner} failed: {e}")
            return []
        channels = status_parser.parse_scan_output(output)
        logger.info(f"Scan of {device}/tuner{tuner} found {len(channels)} locked channels")
        return channels

    # ================== CHANNEL COMMANDS ==================

    async def _set_channel_value(self, device: str, tuner: int, value: str) -> str:
        return await self.runner.set(device, f"/tuner{tuner}/channel", value, timeout=self.command_timeout)

    async def set_channel(self, device: str, tuner: int, channel: str) -> str:
        """Tune to a channel, e.g. '8vsb:33', 'auto:27' or 'atsc3:27:0+1'"""
        return await self._set_channel_value(device, tuner, channel)

    async def set_atsc3_channel(self, device: str, tuner: int, channel: str, plps: Optional[List[int]] = None) -> str:
        channel_str = f"atsc3:{channel}"
        if plps:
            channel_str += ":" + "+".join(str(plp) for plp in plps)
        return await self._set_channel_value(device, tuner, channel_str)

    async def increment_channel(self, device: str, tuner: int) -> str:
        return await self._set_channel_value(device, tuner, "+")

    async def decrement_channel(self, device: str, tuner: int) -> str:
        return await self._set_channel_value(device, tuner, "-")

    async def clear_tuner(self, device: str, tuner: int) -> str:
        return await self._set_channel_value(device, tuner, "none")
