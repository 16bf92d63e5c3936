"""
Tuner data structures and models
"""

from typing import List, Dict, Optional, Any
from dataclasses import dataclass, field, asdict


def _sparse(data: Dict[str, Any]) -> Dict[str, Any]:
    """Drop fields that were not present in the device response"""
    return {key: value for key, value in data.items() if value is not None}


@dataclass(frozen=True)
class SignalEstimate:
    """Estimated signal level (dBm) and SNR (dB) derived from raw debug counters"""
    ss_db: float
    snr_db: float


@dataclass(frozen=True)
class DebugCounters:
    """Raw counters from a dbg=<signal>-<snr>/<third> token"""
    signal_raw: int
    snr_raw: int
    third_value: int

    @property
    def raw(self) -> str:
        return f"{self.signal_raw}-{self.snr_raw}/{self.third_value}"


@dataclass(frozen=True)
class TunerStatus:
    """One poll of a tuner - absent fields stay None and are left out of to_dict()"""
    lock: bool = False
    channel: Optional[str] = None
    ss: Optional[int] = None
    snq: Optional[int] = None
    seq: Optional[int] = None
    bps: Optional[int] = None
    pps: Optional[int] = None
    ss_db: Optional[float] = None
    snr_db: Optional[float] = None
    debug_raw: Optional[str] = None

    @property
    def is_idle(self) -> bool:
        return self.channel is None or self.channel == "none"

    def to_dict(self) -> Dict[str, Any]:
        return _sparse(asdict(self))


@dataclass(frozen=True)
class PlpEntry:
    """One Physical Layer Pipe row from plpinfo"""
    sfi: Optional[str] = None
    modulation: Optional[str] = None
    coderate: Optional[str] = None
    layer: Optional[str] = None
    time_interleaving: Optional[str] = None
    lls: Optional[bool] = None
    lock: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        return _sparse(asdict(self))


@dataclass(frozen=True)
class ProgramEntry:
    """One program (ATSC 1.0) or service (ATSC 3.0) from streaminfo"""
    program_num: str
    virtual_channel: str
    name: str
    callsign: str
    status: str = ""
    encrypted: bool = False
    atsc3: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ScanProgram:
    """Program found while scanning a channel"""
    program_num: str
    virtual_channel: str
    name: str


@dataclass
class ChannelScanResult:
    """A locked channel found by a channel scan"""
    frequency: str
    channel: str
    modulation: str
    signal_strength: int
    snr: int
    symbol_quality: int
    programs: List[ScanProgram] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class DeviceInfo:
    """Model and capability summary for one device"""
    model: str
    tuners: int
    atsc3_support: bool

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
