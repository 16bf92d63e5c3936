"""
Main FastAPI application setup

Local HTTP API for the Tuner Signal Monitor
Provides REST endpoints for device discovery, tuner status and channel control,
and a WebSocket endpoint for live monitoring sessions
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from typing import Dict
import logging

# Import modular route factories
from .device_routes import create_device_routes
from .system_routes import create_system_routes
from .session_routes import create_session_routes

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"


class TunerAPI:
    """Local HTTP API for tuner discovery, monitoring and control"""

    def __init__(self, discovery, probe, sessions, config: Dict, lifespan=None):
        self.discovery = discovery
        self.probe = probe
        self.sessions = sessions
        self.config = config
        self.app = FastAPI(
            title="Tuner Signal Monitor",
            description="Local API for tuner discovery, signal monitoring and channel control",
            version=API_VERSION,
            lifespan=lifespan
        )
        self._setup_middleware()
        self._setup_routes()

    def _setup_middleware(self):
        origins = self.config.get('api', {}).get('cors_origins', ['*'])
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_methods=["GET", "POST"],
            allow_headers=["*"]
        )

    def _setup_routes(self):
        """Setup FastAPI routes using modular approach"""
        program_max_retries = self.config.get('polling', {}).get('program_max_retries', 3)

        device_router = create_device_routes(self.discovery, self.probe, program_max_retries)
        system_router = create_system_routes(self.discovery, self.sessions, API_VERSION)
        session_router = create_session_routes(self.sessions)

        self.app.include_router(device_router)
        self.app.include_router(system_router)
        self.app.include_router(session_router)
