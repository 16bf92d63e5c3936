"""
Discovery module for tuner device discovery
"""

from .manager import DeviceDiscovery
from .models import Device, DeviceCacheEntry, DiscoveryResult
from .network_discovery import NetworkDiscovery

__all__ = ['DeviceDiscovery', 'Device', 'DeviceCacheEntry', 'DiscoveryResult', 'NetworkDiscovery']
