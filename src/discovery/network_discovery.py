"""
Network discovery methods for tuner devices
UDP broadcast (through hdhomerun_config discover) and the HTTPS cloud fallback
"""

import logging
from typing import List, Tuple, Optional

from device_command import DeviceCommandRunner
from http_helper import create_cloud_session
from tuner.status_parser import parse_discover_output

logger = logging.getLogger(__name__)

DEFAULT_CLOUD_URL = "https://api.hdhomerun.com/discover"

class NetworkDiscovery:
    """Raw discovery primitives - both return (device_id, ip) pairs and raise on failure"""

    def __init__(self, config: dict, runner: DeviceCommandRunner):
        self.config = config
        self.runner = runner
        self.discovery_timeout = config.get('discovery_timeout_seconds', 15)
        self.cloud_url = config.get('cloud_url', DEFAULT_CLOUD_URL)
        self.cloud_timeout = config.get('cloud_timeout_seconds', 10)
        self.ssl_verify = config.get('ssl_verify', True)

    async def udp_broadcast_discover(self) -> List[Tuple[str, str]]:
        """Broadcast discovery on the local network segment"""
        logger.info("Sending UDP broadcast discovery...")
        output = await self.runner.discover(timeout=self.discovery_timeout)
        devices = parse_discover_output(output)
        logger.info(f"UDP broadcast discovery found {len(devices)} devices")
        return devices

    async def discover_host(self, host: str) -> Optional[Tuple[str, str]]:
        """Directed discovery of a single host - recovers its vendor device id"""
        output = await self.runner.discover(host, timeout=self.discovery_timeout)
        devices = parse_discover_output(output)
        return devices[0] if devices else None

    async def http_cloud_discover(self) -> List[Tuple[str, str]]:
        """
        Ask the vendor cloud which devices share our public IP
        Entries without a DeviceID (e.g. storage engines) are skipped
        """
        logger.info(f"Requesting cloud discovery from {self.cloud_url}")
        async with create_cloud_session(self.cloud_timeout, self.ssl_verify) as session:
            async with session.get(self.cloud_url) as response:
                response.raise_for_status()
                data = await response.json(content_type=None)

        if not isinstance(data, list):
            raise ValueError(f"Unexpected cloud discovery response: {type(data).__name__}")

        devices = []
        seen = set()
        for entry in data:
            if not isinstance(entry, dict):
                continue
            device_id = entry.get('DeviceID')
            ip = entry.get('LocalIP')
            if not device_id or not ip or device_id in seen:
                continue
            seen.add(device_id)
            devices.append((device_id, ip))

        logger.info(f"Cloud discovery found {len(devices)} devices")
        return devices
