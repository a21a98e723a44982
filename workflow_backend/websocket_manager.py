"""
WebSocket Manager - Handles real-time connections and broadcasts.

Editor clients connect to /ws and receive workflow_updated events when the
open workflow changes, plus workflow_saved/workflow_save_failed events as
saves complete.
"""
from fastapi import WebSocket
from typing import Optional, Set
import asyncio
import json
import logging

logger = logging.getLogger(__name__)


class WebSocketManager:
    """Tracks connected editor clients and fans messages out to them."""

    def __init__(self):
        self._clients: Set[WebSocket] = set()
        self._lock = asyncio.Lock()

    @property
    def connection_count(self) -> int:
        return len(self._clients)

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        async with self._lock:
            self._clients.add(websocket)
        logger.info("Editor client connected", extra={"connections": len(self._clients)})

    async def disconnect(self, websocket: WebSocket):
        async with self._lock:
            self._clients.discard(websocket)
        logger.info("Editor client disconnected", extra={"connections": len(self._clients)})

    async def send(self, websocket: WebSocket, message: dict):
        """Send a message to a single client."""
        await websocket.send_text(json.dumps(message))

    async def broadcast(self, message: dict):
        """
        Send a message to every client concurrently.

        A client whose send fails is dropped from the set.
        """
        async with self._lock:
            clients = list(self._clients)
        if not clients:
            return

        payload = json.dumps(message)
        results = await asyncio.gather(
            *(client.send_text(payload) for client in clients),
            return_exceptions=True,
        )
        stale = {client for client, result in zip(clients, results) if isinstance(result, Exception)}
        if stale:
            logger.debug("Dropping %d unreachable editor client(s)", len(stale))
            async with self._lock:
                self._clients -= stale

    async def notify_workflow_updated(self, workflow_id: Optional[str] = None):
        """Clients re-fetch the state via GET /api/workflow on this event."""
        await self.broadcast({"type": "workflow_updated", "workflowId": workflow_id})

    async def notify_workflow_saved(self, workflow_id: str):
        await self.broadcast({"type": "workflow_saved", "workflowId": workflow_id})

    async def notify_save_failed(self, message: str):
        await self.broadcast({"type": "workflow_save_failed", "message": message})
