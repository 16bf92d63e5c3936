"""
Tuner Server - Main orchestrator for all services
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Dict, Optional
import uvicorn

# Local imports
from config_loader import load_config, setup_logging
from device_command import DeviceCommandRunner
from discovery.manager import DeviceDiscovery
from tuner.probe import DeviceProbe
from api.main_api import TunerAPI
from .monitoring import MonitoringSessionManager

logger = logging.getLogger(__name__)


def build_components(config: Dict, runner: Optional[DeviceCommandRunner] = None):
    """Wire runner, discovery, probe and session manager from configuration"""
    runner = runner or DeviceCommandRunner(
        binary=config['device']['binary'],
        default_timeout=config['device']['command_timeout_seconds']
    )
    discovery = DeviceDiscovery(config['discovery'], runner)
    probe = DeviceProbe(runner, config['device'])
    sessions = MonitoringSessionManager(probe, config['polling'])
    return runner, discovery, probe, sessions


class TunerServer:
    """Main server orchestrating discovery, monitoring sessions and the HTTP API"""

    def __init__(self, config_path: str = "config/config.yaml"):
        self.config = load_config(config_path)
        setup_logging(self.config)

        self.runner, self.discovery, self.probe, self.sessions = build_components(self.config)
        self.api = TunerAPI(self.discovery, self.probe, self.sessions, self.config)

        self.running = False
        self.tasks = []

    async def start(self):
        """Start all server services"""
        logger.info("Starting Tuner Signal Monitor...")

        try:
            # Initial discovery so the device list is warm for the first client
            devices = await self.discovery.discover_devices(force_refresh=False)
            logger.info(f"[LAUNCH] Startup discovery found {len(devices)} devices")

            self.running = True
            self.tasks = [
                asyncio.create_task(self._discovery_service())
            ]
            logger.info(f"All services started successfully ({len(self.tasks)} background tasks)")

            # Start HTTP API server
            await self._start_api_server()

        except Exception as e:
            logger.error(f"Server startup failed: {e}")
            await self.stop()
            raise

    async def stop(self):
        """Stop all server services gracefully"""
        if not self.running and not self.tasks:
            return
        logger.info("Stopping server...")
        self.running = False

        await self.sessions.shutdown()

        # Cancel all tasks
        for task in self.tasks:
            task.cancel()

        # Wait for tasks to complete
        if self.tasks:
            await asyncio.gather(*self.tasks, return_exceptions=True)
        self.tasks = []
        logger.info("Server stopped")

    async def _discovery_service(self):
        """
        Background service for periodic device discovery
        Never forced, so it reuses the cloud fallback cache
        """
        scan_interval = self.config['discovery']['scan_interval_minutes'] * 60

        logger.info(f"Discovery service started (every {scan_interval/60} minutes)")

        while self.running:
            try:
                await asyncio.sleep(scan_interval)
                if not self.running:
                    break

                logger.info("[REFRESH] Running periodic discovery...")
                await self.discovery.discover_devices(force_refresh=False)

            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Discovery service error: {e}")

    async def _start_api_server(self):
        """Start the FastAPI server"""
        config = uvicorn.Config(
            self.api.app,
            host=self.config['api']['host'],
            port=self.config['api']['port'],
            log_level="info",
            access_log=False  # We handle our own logging
        )

        server = uvicorn.Server(config)

        logger.info(f"Starting API server on {self.config['api']['host']}:{self.config['api']['port']}")
        logger.info(f"API documentation: http://localhost:{self.config['api']['port']}/docs")

        if not self.discovery.auto_discovery:
            logger.info("Auto-discovery disabled - using manual devices only")
        if self.discovery.manual_devices:
            logger.info(f"Manual devices: {', '.join(self.discovery.manual_devices)}")

        await server.serve()


def create_lifespan(discovery: DeviceDiscovery, sessions: MonitoringSessionManager):
    """Lifespan for running the API directly under uvicorn (see asgi.py)"""

    @asynccontextmanager
    async def lifespan(app):
        logger.info("Starting up application...")
        await discovery.discover_devices(force_refresh=False)
        yield
        logger.info("Shutting down application...")
        await sessions.shutdown()
        logger.info("Application shut down complete")

    return lifespan
