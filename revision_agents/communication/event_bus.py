"""
Event Bus - Zentraler Pub/Sub Broker für alle Agents.

Jeder Publish (direkt oder über die Queue) landet VOR dem Ausführen der
Handler in der Message History. Handler eines Topics laufen parallel,
der Publisher wartet bis alle fertig sind (Erfolg oder Fehler).
"""

import asyncio
import inspect
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable
from uuid import uuid4

from ..events import MessagePayload, check_payload, payload_field, payload_to_dict
from ..models import Priority

logger = logging.getLogger(__name__)

Handler = Callable[[MessagePayload], Any]

BROADCAST = "broadcast"
DEFAULT_HISTORY_SIZE = 1000


def _generate_id(prefix: str) -> str:
    return f"{prefix}-{int(time.time() * 1000)}-{uuid4().hex[:9]}"


@dataclass(frozen=True)
class Subscription:
    """Handle einer Subscription - wird an unsubscribe() übergeben."""
    topic: str
    id: str


@dataclass(frozen=True)
class AgentMessage:
    """Envelope einer Nachricht. Wird nach dem Erstellen nie verändert."""
    id: str
    sender: str
    recipient: str
    message_type: str
    payload: MessagePayload
    priority: Priority = Priority.MEDIUM
    correlation_id: str = field(default_factory=lambda: _generate_id("CORR"))
    requires_response: bool = False
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def topic(self) -> str:
        """Routing Topic für publish_message: sender.message_type"""
        return f"{self.sender}.{self.message_type}"

    def to_dict(self) -> dict:
        """Konvertiert zu Dict für JSON."""
        return {
            "id": self.id,
            "sender": self.sender,
            "recipient": self.recipient,
            "timestamp": self.timestamp.isoformat(),
            "message_type": self.message_type,
            "priority": self.priority.value,
            "payload": payload_to_dict(self.payload),
            "correlation_id": self.correlation_id,
            "requires_response": self.requires_response,
        }


@dataclass
class HistoryFilter:
    """Filter für get_message_history()."""
    sender: str | None = None
    recipient: str | None = None
    message_type: str | None = None
    since: datetime | None = None

    def matches(self, message: AgentMessage) -> bool:
        if self.sender and message.sender != self.sender:
            return False
        if self.recipient and message.recipient != self.recipient:
            return False
        if self.message_type and message.message_type != self.message_type:
            return False
        if self.since and not message.timestamp > self.since:
            return False
        return True


def _coerce_priority(value: Any) -> Priority:
    if isinstance(value, Priority):
        return value
    try:
        return Priority(value)
    except ValueError:
        return Priority.MEDIUM


class EventBus:
    """
    Pub/Sub Broker mit begrenzter Message History.

    - subscribe/unsubscribe über explizite Subscription Handles
    - publish() wartet auf alle Handler, ein fehlschlagender Handler
      blockiert die anderen nicht
    - publish_message() reiht Envelopes in eine Queue ein, die von genau
      einem Drain-Loop in Reihenfolge abgearbeitet wird
    """

    def __init__(self, history_size: int = DEFAULT_HISTORY_SIZE):
        self._subscribers: dict[str, dict[str, Handler]] = {}  # topic → {subscription_id: handler}
        self._queue: deque[AgentMessage] = deque()
        self._draining = False
        self._history: deque[AgentMessage] = deque(maxlen=history_size)

    # ===== SUBSCRIPTIONS =====

    def subscribe(self, topic: str, handler: Handler) -> Subscription:
        """
        Registriert einen Handler (sync oder async) für ein Topic.

        Returns:
            Subscription Handle für unsubscribe()
        """
        subscription = Subscription(topic=topic, id=uuid4().hex)
        self._subscribers.setdefault(topic, {})[subscription.id] = handler
        return subscription

    def unsubscribe(self, subscription: Subscription) -> bool:
        """
        Entfernt einen Handler. Idempotent.

        Returns:
            True wenn der Handler registriert war
        """
        handlers = self._subscribers.get(subscription.topic)
        if not handlers or subscription.id not in handlers:
            return False
        del handlers[subscription.id]
        if not handlers:
            del self._subscribers[subscription.topic]
        return True

    # ===== PUBLISHING =====

    async def publish(self, topic: str, payload: MessagePayload) -> AgentMessage:
        """
        Publiziert ein Event und wartet auf alle Handler.

        Args:
            topic: Event Name, z.B. "research.finding"
            payload: Event Payload (Dataclass aus events.py oder Dict)

        Returns:
            Die in der History abgelegte AgentMessage

        Raises:
            TypeError: Wenn der Payload nicht zum Topic passt
        """
        logger.debug("Publishing event: %s", topic)
        message = self._create_message(topic, payload)
        self._history.append(message)
        await self._dispatch(topic, payload)
        return message

    async def publish_message(self, message: AgentMessage) -> None:
        """
        Reiht ein fertiges Envelope ein und routet es an sender.message_type.

        Läuft bereits ein Drain-Loop, wird die Nachricht nur angehängt und
        von diesem Loop mit abgearbeitet.
        """
        check_payload(message.message_type, message.payload)
        self._history.append(message)
        self._queue.append(message)

        if self._draining:
            return
        await self._drain_queue()

    async def _drain_queue(self) -> None:
        self._draining = True
        try:
            while self._queue:
                message = self._queue.popleft()
                try:
                    await self._dispatch(message.topic, message.payload)
                except Exception:
                    logger.exception("Error processing message %s", message.id)
        finally:
            self._draining = False

    async def _dispatch(self, topic: str, payload: MessagePayload) -> None:
        # Snapshot: unsubscribe() während des Dispatch ist erlaubt
        handlers = list(self._subscribers.get(topic, {}).values())
        if not handlers:
            return

        results = await asyncio.gather(
            *(self._invoke(handler, payload) for handler in handlers),
            return_exceptions=True,
        )

        for handler, result in zip(handlers, results):
            if isinstance(result, BaseException):
                logger.error(
                    "Error in handler %s for %s: %s",
                    getattr(handler, "__qualname__", repr(handler)),
                    topic,
                    result,
                    exc_info=result,
                )

    @staticmethod
    async def _invoke(handler: Handler, payload: MessagePayload) -> None:
        result = handler(payload)
        if inspect.isawaitable(result):
            await result

    def _create_message(self, topic: str, payload: MessagePayload) -> AgentMessage:
        message_type = topic.split(".")[-1]
        check_payload(message_type, payload)
        correlation_id = payload_field(payload, "correlation_id")
        return AgentMessage(
            id=_generate_id("MSG"),
            sender=payload_field(payload, "agent_id", "unknown"),
            recipient=BROADCAST,
            message_type=message_type,
            payload=payload,
            priority=_coerce_priority(payload_field(payload, "priority", Priority.MEDIUM)),
            correlation_id=correlation_id or _generate_id("CORR"),
            requires_response=bool(payload_field(payload, "requires_response", False)),
        )

    # ===== HISTORY & INTROSPECTION =====

    def get_message_history(self, history_filter: HistoryFilter | None = None) -> list[AgentMessage]:
        """History in Publish-Reihenfolge, optional gefiltert."""
        if history_filter is None:
            return list(self._history)
        return [m for m in self._history if history_filter.matches(m)]

    def clear_history(self) -> None:
        self._history.clear()

    def get_subscriber_count(self, topic: str) -> int:
        return len(self._subscribers.get(topic, {}))

    def get_all_events(self) -> set[str]:
        """Alle Topics mit mindestens einem Subscriber."""
        return set(self._subscribers)

    @property
    def history_size(self) -> int:
        return len(self._history)

    @property
    def is_draining(self) -> bool:
        return self._draining
