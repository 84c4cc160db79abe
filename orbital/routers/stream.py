import json
import logging
from typing import Annotated, Set, Union

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import Field, TypeAdapter, ValidationError

from orbital.schemas.events import DragMessage, ToggleMessage, ViewportMessage
from orbital.services.engine import OrbitalEngine
from orbital.services.maps import map_service
from orbital.websocket import manager

logger = logging.getLogger(__name__)

router = APIRouter(tags=["stream"])

ClientMessage = Annotated[
    Union[DragMessage, ToggleMessage, ViewportMessage],
    Field(discriminator="type")
]
client_message_adapter = TypeAdapter(ClientMessage)


def apply_message(
    engine: OrbitalEngine,
    message: Union[DragMessage, ToggleMessage, ViewportMessage],
    drags: Set[str]
):
    """Route a client message to the engine, tracking the drags this client holds"""
    if isinstance(message, ToggleMessage):
        engine.toggle(message.node_id)
    elif isinstance(message, ViewportMessage):
        engine.set_viewport(message.width, message.height)
    elif message.type == "drag_start":
        if engine.start_drag(message.node_id, message.x, message.y):
            drags.add(message.node_id)
    elif message.type == "drag":
        engine.drag_to(message.node_id, message.x, message.y)
    else:
        engine.end_drag(message.node_id)
        drags.discard(message.node_id)


@router.websocket("/ws/maps/{map_id}")
async def map_stream(websocket: WebSocket, map_id: str):
    """
    Stream frames for one map and accept drag/toggle/viewport messages
    """
    engine = map_service.get_map(map_id)
    if engine is None:
        await websocket.close(code=4404)
        return

    drags: Set[str] = set()
    await manager.connect(map_id, websocket)
    try:
        await manager.send(websocket, "frame", engine.frame().model_dump())

        while True:
            raw = await websocket.receive_text()
            try:
                message = client_message_adapter.validate_python(json.loads(raw))
            except (json.JSONDecodeError, ValidationError) as e:
                logger.debug(f"Rejected message on map {map_id}: {e}")
                await manager.send(websocket, "error", {"detail": str(e)})
                continue

            if engine.detached:
                await manager.send(websocket, "error", {"detail": "Map closed"})
                await websocket.close()
                return
            apply_message(engine, message, drags)
    except WebSocketDisconnect:
        logger.debug(f"Client disconnected from map {map_id}")
    finally:
        # A client that goes away mid-drag releases its nodes
        for node_id in drags:
            engine.end_drag(node_id)
        manager.disconnect(map_id, websocket)
