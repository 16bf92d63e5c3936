"""
Parsers for hdhomerun_config text output
Pure functions - no I/O, no state. The vendor format is undocumented and
drifts between firmware versions, so every parser skips lines it does not
recognise instead of failing.
"""

import re
import logging
from typing import List, Dict, Optional, Tuple

from .models import (
    TunerStatus, DebugCounters, PlpEntry, ProgramEntry,
    ChannelScanResult, ScanProgram,
)

logger = logging.getLogger(__name__)

STATUS_KEYS = {'ch': 'channel', 'lock': 'lock'}
STATUS_INT_KEYS = ('ss', 'snq', 'seq', 'bps', 'pps')

DEBUG_PATTERN = re.compile(r'dbg=(\d+)-(\d+)/(-?\d+)')
KEY_VALUE_PATTERN = re.compile(r'(\w+)=(\S+)')

PLP_LINE_PATTERN = re.compile(r'^(\d+):')
PLP_FIELDS = {
    'sfi': 'sfi',
    'mod': 'modulation',
    'cod': 'coderate',
    'layer': 'layer',
    'ti': 'time_interleaving',
}
PLP_FLAGS = {'lls': 'lls', 'lock': 'lock'}

# ATSC 1.0: "tsid=0x0001 program=1: 12.1 WHYY (encrypted)"
# ATSC 3.0: "service=1: 12.1 WHYY (atsc3)"
PROGRAM_PATTERN = re.compile(r'(?:program|service)=(\d+):\s*([\d.]+)\s+(.+?)(?:\s+\(([^)]+)\))?$')
PROGRAM_FALLBACK_PATTERN = re.compile(r'(\d+):\s*([\d.]+)\s+(.+?)(?:\s+\(([^)]+)\))?$')

SCANNING_PATTERN = re.compile(r'SCANNING: (\d+) \(([^)]+)\)')
LOCK_PATTERN = re.compile(r'LOCK: (\w+) \(ss=(\d+) snq=(\d+) seq=(\d+)\)')
SCAN_PROGRAM_PATTERN = re.compile(r'PROGRAM (\d+): ([\d.]+) (.+)')

DISCOVER_PATTERN = re.compile(r'hdhomerun device ([A-Fa-f0-9-]+) found at ([0-9.]+)')


def _lines(text: Optional[str]) -> List[str]:
    if not text:
        return []
    return [line.strip() for line in text.splitlines() if line.strip()]


def parse_status_line(text: str) -> TunerStatus:
    """
    Parse a /tunerN/status line such as
    "ch=8vsb:8 lock=8vsb ss=71 snq=83 seq=100 bps=19393000 pps=1670"
    The literal "none" means the tuner is idle.
    """
    line = (text or "").strip()
    if line == "none":
        return TunerStatus(channel="none", lock=False)

    fields = {}
    for token in line.split():
        key, sep, value = token.partition('=')
        if not sep:
            continue
        if key in STATUS_KEYS:
            fields[STATUS_KEYS[key]] = value
        elif key in STATUS_INT_KEYS:
            try:
                fields[key] = int(value)
            except ValueError:
                logger.debug(f"Ignoring non-numeric {key}={value!r}")

    # Only presence matters; the descriptor (8vsb, qam256, none...) is dropped
    fields['lock'] = 'lock' in fields
    return TunerStatus(**fields)


def parse_debug_counters(text: Optional[str]) -> Optional[DebugCounters]:
    """Find the dbg=<signal>-<snr>/<third> token in /tunerN/debug output"""
    if not text:
        return None
    match = DEBUG_PATTERN.search(text)
    if not match:
        return None
    return DebugCounters(
        signal_raw=int(match.group(1)),
        snr_raw=int(match.group(2)),
        third_value=int(match.group(3)),
    )


def parse_plp_table(text: str) -> Dict[str, PlpEntry]:
    """
    Parse /tunerN/plpinfo, one PLP per line:
    "0: sfi=0 mod=qam256 cod=10/15 layer=core ti=cti lls=1 lock=1"
    """
    plps = {}
    for line in _lines(text):
        match = PLP_LINE_PATTERN.match(line)
        if not match:
            continue

        fields = {}
        for key, value in KEY_VALUE_PATTERN.findall(line[match.end():]):
            if key in PLP_FIELDS:
                fields[PLP_FIELDS[key]] = value
            elif key in PLP_FLAGS:
                fields[PLP_FLAGS[key]] = value == '1'
        plps[match.group(1)] = PlpEntry(**fields)
    return plps


def parse_l1_table(text: str) -> Dict[str, str]:
    """Collect every key=value token of /tunerN/l1info; later keys win"""
    l1 = {}
    for line in _lines(text):
        for key, value in KEY_VALUE_PATTERN.findall(line):
            l1[key] = value
    return l1


def _program_from_match(match: re.Match) -> ProgramEntry:
    name = match.group(3).strip()
    status = match.group(4) or ''
    return ProgramEntry(
        program_num=match.group(1),
        virtual_channel=match.group(2),
        name=name,
        callsign=name,
        status=status,
        encrypted='encrypted' in status,
        atsc3='atsc3' in status,
    )


def parse_programs(text: str) -> List[ProgramEntry]:
    """Parse /tunerN/streaminfo into programs, tolerating format drift"""
    programs = []
    for line in _lines(text):
        match = PROGRAM_PATTERN.search(line) or PROGRAM_FALLBACK_PATTERN.search(line)
        if match:
            programs.append(_program_from_match(match))
    return programs


def parse_scan_output(text: str) -> List[ChannelScanResult]:
    """
    Parse streaming scan output. A channel is kept only when its SCANNING
    line is immediately followed by a LOCK line; PROGRAM lines belong to the
    last kept channel until the next SCANNING line.
    """
    channels = []
    pending: Optional[Tuple[str, str]] = None
    current: Optional[ChannelScanResult] = None

    for line in _lines(text):
        scan_match = SCANNING_PATTERN.search(line)
        if scan_match:
            pending = (scan_match.group(1), scan_match.group(2))
            current = None
            continue

        lock_match = LOCK_PATTERN.search(line)
        if lock_match:
            if pending and lock_match.group(1) != 'none':
                current = ChannelScanResult(
                    frequency=pending[0],
                    channel=pending[1],
                    modulation=lock_match.group(1),
                    signal_strength=int(lock_match.group(2)),
                    snr=int(lock_match.group(3)),
                    symbol_quality=int(lock_match.group(4)),
                )
                channels.append(current)
            pending = None
            continue

        # Anything else breaks the SCANNING -> LOCK adjacency
        pending = None

        program_match = SCAN_PROGRAM_PATTERN.search(line)
        if program_match and current is not None:
            current.programs.append(ScanProgram(
                program_num=program_match.group(1),
                virtual_channel=program_match.group(2),
                name=program_match.group(3).strip(),
            ))

    return channels


def parse_discover_output(text: str) -> List[Tuple[str, str]]:
    """Parse 'hdhomerun device 1234ABCD found at 192.168.1.50' lines"""
    found = []
    seen = set()
    for line in _lines(text):
        match = DISCOVER_PATTERN.search(line)
        if not match:
            continue
        device_id = match.group(1).upper()
        if device_id in seen:
            continue
        seen.add(device_id)
        found.append((device_id, match.group(2)))
    return found
