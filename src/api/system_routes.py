"""
System health and version API routes
"""

from fastapi import APIRouter
from datetime import datetime, timezone
import logging

logger = logging.getLogger(__name__)

def create_system_routes(discovery, sessions, version: str):
    """Create system monitoring routes"""
    router = APIRouter(prefix="/api", tags=["system"])

    @router.get("/version")
    async def get_version():
        return {"version": version}

    @router.get("/system/health")
    async def system_health():
        """System health check - uses cached state only, never queries devices"""
        last = discovery.last_result
        return {
            "status": "healthy",
            "devices": {
                "known_count": len(discovery.devices),
                "online_count": sum(1 for d in discovery.devices if d.online),
                "auto_discovery": discovery.auto_discovery,
                "manual_devices": discovery.manual_devices,
                "last_discovery_seconds": round(last.duration_seconds, 2) if last else None
            },
            "sessions": sessions.active_sessions(),
            "timestamp": datetime.now(timezone.utc).isoformat()
        }

    return router
