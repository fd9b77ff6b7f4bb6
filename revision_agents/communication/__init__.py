"""Inter-Agent Kommunikation."""
from .event_bus import EventBus, AgentMessage, Subscription, HistoryFilter, BROADCAST

__all__ = [
    "EventBus",
    "AgentMessage",
    "Subscription",
    "HistoryFilter",
    "BROADCAST",
]
