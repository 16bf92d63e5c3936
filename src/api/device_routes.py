"""
Device and tuner control API routes
"""

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel
from typing import List, Optional
import logging

from device_command import DeviceCommandError

logger = logging.getLogger(__name__)

# Request models
class ChannelRequest(BaseModel):
    channel: str

class Atsc3ChannelRequest(BaseModel):
    channel: str
    plps: List[int] = []


async def _execute_tuner_command(action: str, command, *args):
    """Run a channel command; failures are reported to the caller as HTTP 500"""
    try:
        result = await command(*args)
        return {"success": True, "result": result}
    except DeviceCommandError as e:
        logger.error(f"{action} failed for {args[0]}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


def create_device_routes(discovery, probe, program_max_retries: int = 3):
    """Create device listing and tuner control routes"""
    router = APIRouter(prefix="/api", tags=["devices"])

    @router.get("/devices")
    async def list_devices(refresh: bool = False):
        """List discovered and manually configured devices"""
        devices = await discovery.discover_devices(force_refresh=refresh)
        return [d.to_dict() for d in devices]

    @router.get("/devices/{device_id}/info")
    async def get_device_info(device_id: str):
        info = await probe.get_device_info(device_id)
        return info.to_dict()

    @router.get("/devices/{device_id}/scan/{tuner}")
    async def scan_channels(device_id: str, tuner: int, channel_map: str = "us-bcast"):
        channels = await probe.scan_channels(device_id, tuner, channel_map)
        return [c.to_dict() for c in channels]

    @router.get("/devices/{device_id}/tuner/{tuner}/status")
    async def get_tuner_status(device_id: str, tuner: int):
        """Current tuner status; null when the device did not answer"""
        status = await probe.get_tuner_status(device_id, tuner)
        return status.to_dict() if status else None

    @router.get("/devices/{device_id}/tuner/{tuner}/programs")
    async def get_programs(device_id: str, tuner: int):
        programs = await probe.get_programs_with_retry(device_id, tuner, program_max_retries)
        return [p.to_dict() for p in programs]

    @router.get("/devices/{device_id}/tuner/{tuner}/plpinfo")
    async def get_plp_info(device_id: str, tuner: int):
        return await probe.get_plp_info(device_id, tuner)

    @router.get("/devices/{device_id}/tuner/{tuner}/l1info")
    async def get_l1_info(device_id: str, tuner: int):
        return await probe.get_l1_info(device_id, tuner)

    @router.post("/devices/{device_id}/tuner/{tuner}/channel")
    async def set_channel(device_id: str, tuner: int, request: ChannelRequest):
        return await _execute_tuner_command("Set channel", probe.set_channel, device_id, tuner, request.channel)

    @router.post("/devices/{device_id}/tuner/{tuner}/channel/up")
    async def increment_channel(device_id: str, tuner: int):
        return await _execute_tuner_command("Channel up", probe.increment_channel, device_id, tuner)

    @router.post("/devices/{device_id}/tuner/{tuner}/channel/down")
    async def decrement_channel(device_id: str, tuner: int):
        return await _execute_tuner_command("Channel down", probe.decrement_channel, device_id, tuner)

    @router.post("/devices/{device_id}/tuner/{tuner}/clear")
    async def clear_tuner(device_id: str, tuner: int):
        return await _execute_tuner_command("Clear tuner", probe.clear_tuner, device_id, tuner)

    @router.post("/devices/{device_id}/tuner/{tuner}/atsc3")
    async def set_atsc3_channel(device_id: str, tuner: int, request: Atsc3ChannelRequest):
        return await _execute_tuner_command(
            "Set ATSC 3.0 channel", probe.set_atsc3_channel, device_id, tuner, request.channel, request.plps
        )

    return router
