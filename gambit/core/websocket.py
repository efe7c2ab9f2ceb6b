"""
WebSocket manager for live machine notifications.
Pushes Spin and Award notifications to every subscribed client.
"""

import asyncio
from datetime import datetime
from typing import Dict, Set

from fastapi import WebSocket
import orjson

from gambit.core.logger import get_logger

logger = get_logger("websocket")

TOPICS = ("spins", "awards")


class ConnectionManager:
    """
    Tracks WebSocket connections and their topic subscriptions.
    New connections are subscribed to every topic.
    """

    def __init__(self):
        self.all_connections: Set[WebSocket] = set()
        self.topics: Dict[str, Set[WebSocket]] = {topic: set() for topic in TOPICS}

    async def _send_json(self, websocket: WebSocket, data: dict):
        # orjson.dumps returns bytes, so send_bytes avoids a decode step
        await websocket.send_bytes(orjson.dumps(data))

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        self.all_connections.add(websocket)
        for subscribers in self.topics.values():
            subscribers.add(websocket)
        logger.info(f"WebSocket connected: total={len(self.all_connections)}")

    def disconnect(self, websocket: WebSocket):
        self.all_connections.discard(websocket)
        for subscribers in self.topics.values():
            subscribers.discard(websocket)
        logger.info(f"WebSocket disconnected: total={len(self.all_connections)}")

    async def subscribe(self, websocket: WebSocket, topic: str):
        if topic in self.topics:
            self.topics[topic].add(websocket)
            await self._send_json(websocket, {"type": "status", "message": f"Subscribed to {topic}"})
        else:
            await self._send_json(websocket, {"type": "error", "message": "Topic not found"})

    async def unsubscribe(self, websocket: WebSocket, topic: str):
        if topic in self.topics:
            self.topics[topic].discard(websocket)
            await self._send_json(websocket, {"type": "status", "message": f"Unsubscribed from {topic}"})

    async def broadcast(self, topic: str, message: dict):
        """Send to every subscriber of a topic, dropping connections that fail."""
        if topic not in self.topics:
            logger.warning(f"Broadcast to unknown topic: {topic}")
            return

        subscribers = list(self.topics[topic])
        if not subscribers:
            return

        results = await asyncio.gather(
            *(self._send_json(ws, message) for ws in subscribers),
            return_exceptions=True,
        )
        for ws, result in zip(subscribers, results):
            if isinstance(result, Exception):
                self.disconnect(ws)

    async def broadcast_spin(self, player: str, boosted: bool, block: int):
        await self.broadcast(
            "spins",
            {
                "type": "spin",
                "player": player,
                "boosted": boosted,
                "block": block,
                "timestamp": datetime.now().isoformat(),
            },
        )

    async def broadcast_award(self, player: str, amount: int, block: int):
        await self.broadcast(
            "awards",
            {
                "type": "award",
                "player": player,
                "amount": amount,
                "block": block,
                "timestamp": datetime.now().isoformat(),
            },
        )

    def get_connection_count(self) -> int:
        return len(self.all_connections)


ws_manager = ConnectionManager()
