"""
Pydantic Models für die Operator API.
"""

from pydantic import BaseModel
from typing import Optional, List, Dict, Any


# ==================== System Models ====================

class SystemStatusResponse(BaseModel):
    """Laufzeit-Status des Agent Systems."""
    running: bool
    overall_health: str
    uptime: float
    queue_size: int
    connections: int


class AgentMetricsModel(BaseModel):
    """Metriken eines Agents."""
    agent_id: str
    uptime: float
    tasks_completed: int
    tasks_failed: int
    average_task_time: float
    error_rate: float
    last_activity: str
    health_status: str


class SystemMetricsResponse(BaseModel):
    """Aggregierte System-Metriken."""
    uptime: float
    agents: List[AgentMetricsModel]
    total_findings: int
    active_plans: int
    message_count: int
    overall_health: str


# ==================== Event Models ====================

class EventResponse(BaseModel):
    """Eine AgentMessage aus der History."""
    id: str
    sender: str
    recipient: str
    timestamp: str
    message_type: str
    priority: str
    payload: Dict[str, Any]
    correlation_id: str
    requires_response: bool


class ScanResponse(BaseModel):
    """Antwort auf einen manuellen Scan-Request."""
    message_id: str
    handlers: int


# ==================== Finding & Plan Models ====================

class FindingResponse(BaseModel):
    """Ein publiziertes Finding."""
    id: str
    source: str
    category: str
    title: str
    description: str
    key_points: List[str] = []
    impact: str
    priority: str
    confidence_score: float
    data: Optional[Dict[str, Any]] = None
    recommended_actions: List[str] = []
    validation_required: bool = False
    created_at: str


class PlanSummaryResponse(BaseModel):
    """Kurzfassung eines Revision Plans."""
    plan_id: str
    status: str
    created_date: str
    finding_ids: List[str]
    phase_count: int
    task_count: int
    total_effort: float
    overall_risk_level: str
    deadline: Optional[str] = None
    conflict_count: int = 0


class ManualPlanRequest(BaseModel):
    """Request: Findings erneut zur Planung publizieren."""
    finding_ids: List[str]


class ManualPlanResponse(BaseModel):
    """Die erneut publizierten Findings."""
    published: List[str]


class ImplementationStatusRequest(BaseModel):
    """Statusmeldung des Implementation-Collaborators."""
    plan_id: str
    status: str
    completed_tasks: List[str] = []
