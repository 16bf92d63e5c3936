"""
Discovery data structures and models
"""

from typing import List, Dict, Any
from dataclasses import dataclass, asdict

PRODUCT_NAME = "HDHomeRun"

@dataclass(frozen=True)
class Device:
    """A tuner device - replaced wholesale on every discovery pass, never mutated"""
    id: str          # vendor device id, or the configured host for manual devices
    ip: str
    name: str
    online: bool = True
    discovery_method: str = "broadcast"  # "broadcast", "cloud", "manual"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

@dataclass(frozen=True)
class DeviceCacheEntry:
    """Per-host lookup cache entry for manually configured devices"""
    device: Device
    timestamp: float

@dataclass
class DiscoveryResult:
    """Results from discovery operations"""
    devices: List[Device]
    method: str
    duration_seconds: float

def device_name(display_id: str, model: str = None) -> str:
    """'HDHomeRun 1234ABCD (HDHR5-4K)', or without the model when unknown"""
    if model:
        return f"{PRODUCT_NAME} {display_id} ({model})"
    return f"{PRODUCT_NAME} {display_id}"
