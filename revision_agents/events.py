"""
Event Payloads - eine Dataclass pro bekanntem Event-Typ.

AgentMessage.payload ist ein Tagged Union über message_type
(letztes Segment des Topics, z.B. "finding" für "research.finding").
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Union

from .models import Finding, Priority, RevisionPlan


# Topics
RESEARCH_FINDING = "research.finding"
PLAN_CREATED = "planning.plan_created"
IMPLEMENTATION_STATUS = "implementation.status"
VALIDATION_REQUEST = "validation.request"
VALIDATION_RESPONSE = "validation.response"
MANUAL_SCAN_REQUEST = "manual.scan_request"

MONITORED_EVENTS = [
    RESEARCH_FINDING,
    PLAN_CREATED,
    IMPLEMENTATION_STATUS,
    VALIDATION_REQUEST,
    VALIDATION_RESPONSE,
]


@dataclass
class FindingEvent:
    """research.finding - ein signifikantes Finding für den Planning Agent."""
    finding: Finding
    agent_id: str
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def priority(self) -> Priority:
        return self.finding.priority

    def to_dict(self) -> dict:
        return {
            "finding": self.finding.to_dict(),
            "agent_id": self.agent_id,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class PlanCreatedEvent:
    """planning.plan_created - ein validierter, freigegebener Plan."""
    plan: RevisionPlan
    agent_id: str
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        return {
            "plan": self.plan.to_dict(),
            "agent_id": self.agent_id,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class ImplementationStatusEvent:
    """implementation.status - Rückmeldung des Implementation-Collaborators."""
    plan_id: str
    status: str  # "completed" | "failed" | alles andere = in progress
    completed_tasks: list[str] = field(default_factory=list)
    agent_id: str = "implementation"

    def to_dict(self) -> dict:
        return {
            "plan_id": self.plan_id,
            "status": self.status,
            "completed_tasks": self.completed_tasks,
            "agent_id": self.agent_id,
        }


@dataclass
class ValidationRequestEvent:
    """validation.request - Prüfung eines einzelnen Datenpunkts."""
    data_point: str
    current_value: Any
    component: str = "unknown"
    correlation_id: str | None = None
    agent_id: str = "unknown"

    def to_dict(self) -> dict:
        return {
            "data_point": self.data_point,
            "current_value": self.current_value,
            "component": self.component,
            "correlation_id": self.correlation_id,
            "agent_id": self.agent_id,
        }


@dataclass
class ValidationResponseEvent:
    """validation.response - Ergebnis zu einem validation.request."""
    request_id: str | None
    valid: bool
    confidence: float
    suggested_value: Any = None
    sources: list[str] = field(default_factory=list)
    issues: list[str] = field(default_factory=list)
    agent_id: str = "research-agent"

    @property
    def correlation_id(self) -> str | None:
        return self.request_id

    def to_dict(self) -> dict:
        return {
            "request_id": self.request_id,
            "valid": self.valid,
            "confidence": self.confidence,
            "suggested_value": self.suggested_value,
            "sources": self.sources,
            "issues": self.issues,
            "agent_id": self.agent_id,
        }


@dataclass
class ScanRequestEvent:
    """manual.scan_request - manuell ausgelöster Scan."""
    requested_by: str = "user"
    timestamp: datetime = field(default_factory=datetime.now)
    agent_id: str = "manual"

    def to_dict(self) -> dict:
        return {
            "requested_by": self.requested_by,
            "timestamp": self.timestamp.isoformat(),
            "agent_id": self.agent_id,
        }


MessagePayload = Union[
    FindingEvent,
    PlanCreatedEvent,
    ImplementationStatusEvent,
    ValidationRequestEvent,
    ValidationResponseEvent,
    ScanRequestEvent,
    dict,
]

# message_type → Payload-Klasse
PAYLOAD_TYPES: dict[str, type] = {
    "finding": FindingEvent,
    "plan_created": PlanCreatedEvent,
    "status": ImplementationStatusEvent,
    "request": ValidationRequestEvent,
    "response": ValidationResponseEvent,
    "scan_request": ScanRequestEvent,
}


def check_payload(message_type: str, payload: MessagePayload) -> None:
    """
    Prüft, ob der Payload zum message_type passt.

    Dicts sind immer erlaubt, ebenso unbekannte message_types.

    Raises:
        TypeError: Wenn eine Dataclass des falschen Typs verschickt wird
    """
    expected = PAYLOAD_TYPES.get(message_type)
    if expected is None or isinstance(payload, (dict, expected)):
        return
    raise TypeError(
        f"Payload for '{message_type}' must be {expected.__name__} or dict, "
        f"got {type(payload).__name__}"
    )


def payload_field(payload: MessagePayload, name: str, default: Any = None) -> Any:
    """Liest ein Feld aus Dataclass- oder Dict-Payloads."""
    if isinstance(payload, dict):
        return payload.get(name, default)
    value = getattr(payload, name, default)
    return default if value is None else value


def payload_to_dict(payload: MessagePayload) -> dict:
    """Konvertiert einen Payload zu Dict für JSON."""
    if isinstance(payload, dict):
        return payload
    return payload.to_dict()
