"""
WebSocket Handler für Real-time Agent Events.

Der ConnectionManager hängt sich als Subscriber an den EventBus und
schickt jedes Event als {"type": <topic>, "data": <payload>} an alle Clients.
"""

import asyncio
import json
import logging
from typing import Iterable, Set

from fastapi import WebSocket

from revision_agents.communication import EventBus, Subscription
from revision_agents.events import MessagePayload, payload_to_dict

logger = logging.getLogger(__name__)


def encode_event(topic: str, payload: MessagePayload) -> dict:
    """Wire-Format eines Bus-Events für WebSocket Clients."""
    return {"type": topic, "data": payload_to_dict(payload)}


class ConnectionManager:
    """Verwaltet die WebSocket Connections einer App-Instanz und ihre Bus-Subscriptions."""

    def __init__(self):
        self.active_connections: Set[WebSocket] = set()
        self.subscriptions: list[Subscription] = []
        self._lock = asyncio.Lock()

    # ===== CONNECTIONS =====

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self.active_connections.add(websocket)
        logger.debug("WebSocket connected (%d active)", len(self.active_connections))

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self._lock:
            self.active_connections.discard(websocket)

    @property
    def connection_count(self) -> int:
        return len(self.active_connections)

    # ===== EVENT FORWARDING =====

    def subscribe_to(self, event_bus: EventBus, topics: Iterable[str]) -> list[Subscription]:
        """Leitet die genannten Topics an alle verbundenen Clients weiter."""
        for topic in topics:
            self.subscriptions.append(event_bus.subscribe(topic, self._forwarder(topic)))
        logger.debug("Forwarding %d topics to WebSocket clients", len(self.subscriptions))
        return list(self.subscriptions)

    def unsubscribe_all(self, event_bus: EventBus) -> None:
        for subscription in self.subscriptions:
            event_bus.unsubscribe(subscription)
        self.subscriptions = []

    def _forwarder(self, topic: str):
        async def forward(payload: MessagePayload) -> None:
            await self.broadcast_event(topic, payload)
        return forward

    async def broadcast_event(self, topic: str, payload: MessagePayload) -> int:
        """
        Schickt ein Bus-Event an alle Clients.

        Returns:
            Anzahl der Clients, die das Event erhalten haben
        """
        return await self.broadcast(encode_event(topic, payload))

    # ===== SENDING =====

    async def broadcast(self, message: dict) -> int:
        """Nachricht an alle Clients senden, tote Connections werden entfernt."""
        if not self.active_connections:
            return 0

        json_message = json.dumps(message, default=str)
        disconnected = set()

        for connection in self.active_connections.copy():
            try:
                await connection.send_text(json_message)
            except Exception as e:
                logger.debug("Dropping WebSocket after send failure: %s", e)
                disconnected.add(connection)

        if disconnected:
            async with self._lock:
                self.active_connections -= disconnected
        return len(self.active_connections)

    async def send_to(self, websocket: WebSocket, message: dict) -> None:
        try:
            await websocket.send_text(json.dumps(message, default=str))
        except Exception as e:
            logger.debug("WebSocket send failed: %s", e)
            await self.disconnect(websocket)
