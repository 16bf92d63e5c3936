"""
API module for tuner discovery, monitoring and control
"""

from .main_api import TunerAPI, API_VERSION
from .device_routes import create_device_routes
from .system_routes import create_system_routes
from .session_routes import create_session_routes

__all__ = ['TunerAPI', 'API_VERSION', 'create_device_routes', 'create_system_routes', 'create_session_routes']
