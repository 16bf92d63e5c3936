"""
Services module - monitoring sessions and the server orchestrator
"""

from .monitoring import MonitoringSessionManager, MonitoringSession, SessionMode

__all__ = ['MonitoringSessionManager', 'MonitoringSession', 'SessionMode']
