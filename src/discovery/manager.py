"""
Main discovery manager
Merges UDP broadcast discovery, the HTTPS cloud fallback and manually
configured hosts into one de-duplicated device list.

Two caches:
- per-host lookup cache for manual hosts (TTL, cleared by a forced refresh)
- cloud fallback cache (no TTL, replaced only by a forced refresh) so that
  routine refreshes on a network where broadcast finds nothing do not keep
  hitting the third-party API
"""

import asyncio
import logging
import time
from typing import List, Tuple, Dict, Optional, Callable

from device_command import DeviceCommandRunner, DeviceCommandError
from .models import Device, DeviceCacheEntry, DiscoveryResult, device_name
from .network_discovery import NetworkDiscovery

logger = logging.getLogger(__name__)

class DeviceDiscovery:
    """Discovery service for tuner devices"""

    def __init__(self, config: Dict, runner: DeviceCommandRunner,
                 network: Optional[NetworkDiscovery] = None,
                 clock: Optional[Callable[[], float]] = None):
        self.config = config
        self.runner = runner
        self.network = network or NetworkDiscovery(config, runner)
        self.clock = clock or time.monotonic

        self.auto_discovery = config.get('auto_discovery', True)
        self.manual_devices: List[str] = list(config.get('manual_devices', []))
        self.cache_ttl = config.get('host_cache_ttl_seconds', 300)
        self.model_timeout = config.get('model_timeout_seconds', 5)

        self.devices: List[Device] = []
        self.last_result: Optional[DiscoveryResult] = None
        self._host_cache: Dict[str, DeviceCacheEntry] = {}
        self._cloud_cache: Optional[List[Device]] = None

    # ================== DEVICE LIST ==================

    async def discover_devices(self, force_refresh: bool = False) -> List[Device]:
        """
        Full discovery pass: auto-discovery first, then manual hosts.
        Duplicate ids keep the first device seen.
        """
        start_time = self.clock()

        if force_refresh:
            logger.info("[REFRESH] Forced discovery - clearing host lookup cache")
            self._host_cache = {}

        merged: Dict[str, Device] = {}

        if self.auto_discovery:
            for device in await self.auto_discover_devices(force_refresh):
                merged.setdefault(device.id, device)
        else:
            logger.debug("Auto-discovery disabled by configuration")

        for host in self.manual_devices:
            device = await self.get_device_by_host(host)
            if device.id in merged:
                logger.debug(f"Manual host {host} already discovered - keeping first entry")
                continue
            merged[device.id] = device

        self.devices = list(merged.values())
        duration = self.clock() - start_time
        self.last_result = DiscoveryResult(self.devices, "combined", duration)

        online = sum(1 for d in self.devices if d.online)
        logger.info(f"[PASS] Discovery complete: {len(self.devices)} devices ({online} online) in {duration:.1f}s")
        return self.devices

    def get_device(self, device_id: str) -> Optional[Device]:
        for device in self.devices:
            if device.id == device_id:
                return device
        return None

    # ================== AUTO DISCOVERY ==================

    async def auto_discover_devices(self, force_refresh: bool = False) -> List[Device]:
        """Broadcast first; cloud fallback only when broadcast finds nothing"""
        try:
            found = await self.network.udp_broadcast_discover()
        except Exception as e:
            logger.warning(f"UDP broadcast discovery failed: {e}")
            found = []

        if found:
            return await self._resolve_devices(found, "broadcast")

        if not force_refresh and self._cloud_cache is not None:
            logger.debug(f"Broadcast found nothing - using cached cloud result ({len(self._cloud_cache)} devices)")
            return self._cloud_cache

        logger.info("Broadcast found nothing - falling back to cloud discovery")
        try:
            found = await self.network.http_cloud_discover()
        except Exception as e:
            logger.warning(f"Cloud discovery failed: {e}")
            found = []

        devices = await self._resolve_devices(found, "cloud")
        self._cloud_cache = devices
        return devices

    async def _resolve_devices(self, found: List[Tuple[str, str]], method: str) -> List[Device]:
        """Look up every device's model concurrently to build its display name"""
        models = await asyncio.gather(*[self._read_model(ip) for _, ip in found])
        return [
            Device(id=device_id, ip=ip, name=device_name(device_id, model), online=True, discovery_method=method)
            for (device_id, ip), model in zip(found, models)
        ]

    async def _read_model(self, host: str) -> Optional[str]:
        try:
            return await self.runner.get(host, "/sys/model", timeout=self.model_timeout) or None
        except DeviceCommandError as e:
            logger.debug(f"Model lookup failed for {host}: {e}")
            return None

    # ================== MANUAL HOSTS ==================

    async def get_device_by_host(self, host: str) -> Device:
        """
        Resolve a manually configured host. Unreachable hosts come back as
        online=False placeholders so they stay visible. The id is always the
        configured host, since the vendor id may not be routable from here.
        """
        entry = self._host_cache.get(host)
        if entry and self.clock() - entry.timestamp <= self.cache_ttl:
            return entry.device

        try:
            model = await self.runner.get(host, "/sys/model", timeout=self.model_timeout)
        except DeviceCommandError as e:
            logger.warning(f"Manual device {host} unreachable: {e}")
            device = Device(id=host, ip=host, name=f"{device_name(host)} (offline)",
                            online=False, discovery_method="manual")
            self._host_cache[host] = DeviceCacheEntry(device, self.clock())
            return device

        display_id, ip = host, host
        try:
            located = await self.network.discover_host(host)
            if located:
                display_id, ip = located
        except Exception as e:
            logger.debug(f"Directed discovery of {host} failed, using host as display id: {e}")

        device = Device(id=host, ip=ip, name=device_name(display_id, model or None),
                        online=True, discovery_method="manual")
        self._host_cache[host] = DeviceCacheEntry(device, self.clock())
        logger.info(f"[OK] Manual device resolved: {device.name} ({host})")
        return device
