import json
from collections import defaultdict
from typing import Any, Dict, List
from fastapi import WebSocket

from orbital.schemas.layout import LayoutFrame


class ConnectionManager:
    """Manages WebSocket client connections per map and broadcasts frames"""

    def __init__(self):
        self.active_connections: Dict[str, List[WebSocket]] = defaultdict(list)

    async def connect(self, map_id: str, websocket: WebSocket):
        """Accept and store a new WebSocket connection for a map"""
        await websocket.accept()
        self.active_connections[map_id].append(websocket)

    def disconnect(self, map_id: str, websocket: WebSocket):
        """Remove a WebSocket connection"""
        connections = self.active_connections.get(map_id, [])
        if websocket in connections:
            connections.remove(websocket)
        if not connections:
            self.active_connections.pop(map_id, None)

    def connection_count(self, map_id: str) -> int:
        return len(self.active_connections.get(map_id, []))

    async def send(self, websocket: WebSocket, message_type: str, data: Dict[str, Any]):
        """Send a message to a single client"""
        await websocket.send_text(json.dumps({"type": message_type, "data": data}, default=str))

    async def broadcast(self, map_id: str, message_type: str, data: Dict[str, Any]):
        """Broadcast a message to all clients of one map"""
        message = {"type": message_type, "data": data}
        message_json = json.dumps(message, default=str)

        # Send to all connected clients
        disconnected = []
        for connection in list(self.active_connections.get(map_id, [])):
            try:
                await connection.send_text(message_json)
            except Exception:
                # Mark for removal if send fails
                disconnected.append(connection)

        # Remove disconnected clients
        for connection in disconnected:
            self.disconnect(map_id, connection)

    async def broadcast_frame(self, frame: LayoutFrame):
        """Frame callback for engines: fan a frame out to its map's clients"""
        if frame.map_id is None or not self.active_connections.get(frame.map_id):
            return
        await self.broadcast(frame.map_id, "frame", frame.model_dump())


# Global connection manager instance
manager = ConnectionManager()
