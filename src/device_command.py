# Device Command Helper for Tuner Connections
# Runs the vendor hdhomerun_config tool once per query with a bounded timeout

import asyncio
import logging
from typing import Optional

logger = logging.getLogger(__name__)


class DeviceCommandError(Exception):
    """Raised when a device query or command cannot be completed"""

    def __init__(self, message: str, args: tuple = (), returncode: Optional[int] = None):
        super().__init__(message)
        self.command_args = args
        self.returncode = returncode


class DeviceCommandRunner:
    """
    Thin async wrapper around the hdhomerun_config binary
    Every call spawns one process and kills it if the timeout expires
    """

    def __init__(self, binary: str = "hdhomerun_config", default_timeout: float = 5):
        self.binary = binary
        self.default_timeout = default_timeout

    async def run(self, *args: str, timeout: Optional[float] = None) -> str:
        """Run the tool with the given arguments and return its trimmed stdout"""
        timeout = self.default_timeout if timeout is None else timeout
        cmd = [self.binary, *[str(a) for a in args]]

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except (FileNotFoundError, PermissionError) as e:
            raise DeviceCommandError(f"Cannot run {self.binary}: {e}", tuple(cmd)) from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError as e:
            process.kill()
            await process.wait()
            raise DeviceCommandError(f"Timed out after {timeout}s: {' '.join(cmd)}", tuple(cmd)) from e

        output = stdout.decode(errors="replace").strip() if stdout else ""

        if process.returncode != 0:
            error_text = stderr.decode(errors="replace").strip()[:500] if stderr else ""
            if not error_text:
                error_text = output[:500] or f"Exit code {process.returncode} (no stderr output)"
            raise DeviceCommandError(error_text, tuple(cmd), process.returncode)

        # The tool reports some failures on stdout with a zero exit code
        if output.startswith("ERROR:"):
            raise DeviceCommandError(output[:500], tuple(cmd), process.returncode)

        return output

    async def get(self, device: str, path: str, timeout: Optional[float] = None) -> str:
        """Read one variable, e.g. get('1234ABCD', '/tuner0/status')"""
        return await self.run(device, "get", path, timeout=timeout)

    async def set(self, device: str, path: str, value: str, timeout: Optional[float] = None) -> str:
        """Write one variable, e.g. set('1234ABCD', '/tuner0/channel', 'none')"""
        logger.debug(f"set {device} {path} {value}")
        return await self.run(device, "set", path, value, timeout=timeout)

    async def scan(self, device: str, tuner: int, channel_map: str, timeout: Optional[float] = None) -> str:
        """Run a full channel scan on one tuner"""
        return await self.run(device, "scan", f"/tuner{tuner}", channel_map, timeout=timeout)

    async def discover(self, host: Optional[str] = None, timeout: Optional[float] = None) -> str:
        """Broadcast discovery, or a directed discovery of a single host"""
        if host:
            return await self.run("discover", host, timeout=timeout)
        return await self.run("discover", timeout=timeout)
