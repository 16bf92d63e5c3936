"""
WebSocket route for live monitoring sessions
Inbound:  {"event": "start-monitoring", "data": {"device_id": "...", "tuner": 0}}
          {"event": "start-antenna-mode", "data": {"device_id": "...", "tuner_count": 4}}
          {"event": "stop-monitoring"}
Outbound: {"event": "tuner-status" | "antenna-mode-status" | "error", "data": ...}
"""

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, Field, ValidationError
import logging
import uuid

logger = logging.getLogger(__name__)

class StartMonitoringRequest(BaseModel):
    device_id: str
    tuner: int = Field(0, ge=0)

class StartAntennaRequest(BaseModel):
    device_id: str
    tuner_count: int = Field(2, ge=1, le=8)


def create_session_routes(sessions):
    """Create the monitoring WebSocket route"""
    router = APIRouter(tags=["sessions"])

    @router.websocket("/ws")
    async def monitoring_socket(websocket: WebSocket):
        await websocket.accept()
        client_id = uuid.uuid4().hex
        logger.info(f"Client connected: {client_id} ({websocket.client})")

        async def emit(event: str, data) -> None:
            await websocket.send_json({"event": event, "data": data})

        try:
            while True:
                try:
                    message = await websocket.receive_json()
                except ValueError:
                    await emit("error", {"message": "Messages must be JSON"})
                    continue
                if not isinstance(message, dict):
                    message = {}
                event = message.get("event")
                data = message.get("data")
                if not isinstance(data, dict):
                    data = {}

                try:
                    if event == "start-monitoring":
                        request = StartMonitoringRequest(**data)
                        sessions.start_monitoring(client_id, request.device_id, request.tuner, emit)
                    elif event == "start-antenna-mode":
                        request = StartAntennaRequest(**data)
                        sessions.start_antenna_mode(client_id, request.device_id, request.tuner_count, emit)
                    elif event == "stop-monitoring":
                        sessions.stop_monitoring(client_id)
                    else:
                        await emit("error", {"message": f"Unknown event: {event}"})
                except ValidationError as e:
                    logger.warning(f"Invalid {event} request from {client_id}: {e}")
                    await emit("error", {"message": f"Invalid {event} request", "details": str(e)})

        except WebSocketDisconnect:
            logger.info(f"Client disconnected: {client_id}")
        finally:
            sessions.client_disconnected(client_id)

    return router
