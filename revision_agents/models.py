"""
Datenmodell des Agent Systems.

Findings, Revision Plans, Phasen, Tasks und Ressourcen als Dataclasses.
Alle Records haben to_dict() für JSON (WebSocket, API, Logs).
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any


class Priority(Enum):
    """Priorität eines Findings."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class FindingCategory(Enum):
    """Kategorie eines Findings."""
    SCIENTIFIC = "scientific"
    LEGISLATIVE = "legislative"
    MARKET = "market"
    TECHNICAL = "technical"


class PlanStatus(Enum):
    """Status eines Revision Plans."""
    DRAFT = "draft"
    APPROVED = "approved"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class TaskType(Enum):
    """Art einer Task."""
    DATA_UPDATE = "data_update"
    FEATURE = "feature"
    BUGFIX = "bugfix"
    REFACTOR = "refactor"


class TaskStatus(Enum):
    """Status einer Task."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class ResourceType(Enum):
    """Art einer Ressource."""
    HUMAN = "human"
    SYSTEM = "system"
    EXTERNAL = "external"


class ResourceAvailability(Enum):
    """Verfügbarkeit einer Ressource."""
    AVAILABLE = "available"
    SCHEDULED = "scheduled"
    UNAVAILABLE = "unavailable"


class HealthStatus(Enum):
    """Health eines Agents. Reihenfolge = Schweregrad."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    CRITICAL = "critical"


class RiskLevel(Enum):
    """Wahrscheinlichkeit / Impact eines Risikos."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TestType(Enum):
    """Art einer Test-Anforderung."""
    __test__ = False  # kein pytest Test

    UNIT = "unit"
    INTEGRATION = "integration"
    E2E = "e2e"
    PERFORMANCE = "performance"


class DataSourceKind(Enum):
    """Art einer Datenquelle."""
    API = "api"
    WEB = "web"
    DATABASE = "database"
    FILE = "file"


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def coerce_datetime(value: Any) -> datetime | None:
    """
    Wandelt Deadlines aus Finding-Daten in datetime um.

    Akzeptiert datetime, date und ISO-Strings ("2025-07-01").
    Zeitzonen-behaftete Werte werden in naive Lokalzeit umgerechnet.
    Unparsebare Werte ergeben None.
    """
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError:
            return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone().replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    return None


@dataclass
class Finding:
    """Eine Beobachtung aus einem Scan - Kandidat für die Planung."""
    id: str
    source: str
    category: FindingCategory
    title: str
    description: str
    impact: str
    priority: Priority
    confidence_score: float
    key_points: list[str] = field(default_factory=list)
    data: dict[str, Any] | None = None
    recommended_actions: list[str] = field(default_factory=list)
    validation_required: bool = False
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def dedup_key(self) -> str:
        """Key für die Deduplizierung innerhalb eines Scans."""
        return f"{self.source}:{self.title}"

    def to_dict(self) -> dict:
        """Konvertiert zu Dict für JSON."""
        return {
            "id": self.id,
            "source": self.source,
            "category": self.category.value,
            "title": self.title,
            "description": self.description,
            "key_points": self.key_points,
            "impact": self.impact,
            "priority": self.priority.value,
            "confidence_score": self.confidence_score,
            "data": self.data,
            "recommended_actions": self.recommended_actions,
            "validation_required": self.validation_required,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class Criteria:
    """Erfolgskriterium einer Test-Anforderung."""
    metric: str
    operator: str  # ">", "<", "=", ">=", "<="
    value: float


@dataclass
class TestRequirement:
    """
    Test-Anforderung einer Task.

    timeout ist in Millisekunden und rein beschreibend - wird vom
    Implementation-Collaborator ausgewertet, nicht hier.
    """
    __test__ = False  # kein pytest Test

    test_type: TestType
    scope: list[str] = field(default_factory=list)
    success_criteria: list[Criteria] = field(default_factory=list)
    timeout: int = 300_000
    status: str | None = None

    def to_dict(self) -> dict:
        return {
            "test_type": self.test_type.value,
            "scope": self.scope,
            "success_criteria": [
                {"metric": c.metric, "operator": c.operator, "value": c.value}
                for c in self.success_criteria
            ],
            "timeout": self.timeout,
            "status": self.status,
        }


@dataclass
class Change:
    """Geplante Dateiänderung einer Task."""
    file_path: str
    change_type: str  # "create" | "update" | "delete"
    content: str = ""
    validation: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "file_path": self.file_path,
            "change_type": self.change_type,
            "content": self.content,
            "validation": self.validation,
        }


@dataclass
class Task:
    """Eine Task innerhalb einer Phase."""
    id: str
    type: TaskType
    title: str
    description: str
    component: str
    priority: int  # 1-10
    estimated_hours: float
    status: TaskStatus = TaskStatus.PENDING
    changes: list[Change] = field(default_factory=list)
    tests: list[TestRequirement] = field(default_factory=list)
    actual_hours: float | None = None
    assigned_to: str | None = None

    def to_dict(self) -> dict:
        """Konvertiert Task zu Dict für JSON."""
        return {
            "id": self.id,
            "type": self.type.value,
            "title": self.title,
            "description": self.description,
            "component": self.component,
            "priority": self.priority,
            "estimated_hours": self.estimated_hours,
            "actual_hours": self.actual_hours,
            "status": self.status.value,
            "assigned_to": self.assigned_to,
            "changes": [c.to_dict() for c in self.changes],
            "tests": [t.to_dict() for t in self.tests],
        }


@dataclass
class Resource:
    """Ressource aus dem Katalog oder eine Allokation davon."""
    type: ResourceType
    name: str
    quantity: int
    availability: ResourceAvailability = ResourceAvailability.AVAILABLE

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "name": self.name,
            "quantity": self.quantity,
            "availability": self.availability.value,
        }


@dataclass
class Phase:
    """Eine Phase eines Revision Plans."""
    phase_number: int
    title: str
    objectives: list[str] = field(default_factory=list)
    tasks: list[Task] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)  # Task IDs früherer Phasen
    duration: int = 1  # Tage
    resources_required: list[Resource] = field(default_factory=list)

    @property
    def total_hours(self) -> float:
        return sum(t.estimated_hours for t in self.tasks)

    def to_dict(self) -> dict:
        return {
            "phase_number": self.phase_number,
            "title": self.title,
            "objectives": self.objectives,
            "tasks": [t.to_dict() for t in self.tasks],
            "dependencies": self.dependencies,
            "duration": self.duration,
            "resources_required": [r.to_dict() for r in self.resources_required],
        }


@dataclass
class Risk:
    """Ein einzelnes Risiko."""
    type: str
    probability: RiskLevel
    impact: RiskLevel
    description: str
    mitigation: str

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "probability": self.probability.value,
            "impact": self.impact.value,
            "description": self.description,
            "mitigation": self.mitigation,
        }


@dataclass
class RiskAssessment:
    """Risiko-Bewertung eines Plans."""
    risks: list[Risk] = field(default_factory=list)
    overall_risk_level: RiskLevel = RiskLevel.LOW
    mitigation_strategies: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "risks": [r.to_dict() for r in self.risks],
            "overall_risk_level": self.overall_risk_level.value,
            "mitigation_strategies": self.mitigation_strategies,
        }


@dataclass
class Metric:
    """Erfolgsmetrik eines Plans."""
    name: str
    target: float
    unit: str
    measurement_method: str

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "target": self.target,
            "unit": self.unit,
            "measurement_method": self.measurement_method,
        }


@dataclass
class ImpactScore:
    """Gewichteter Impact einer Finding-Batch (Skala 0-10)."""
    user_impact: float = 0.0
    data_accuracy: float = 0.0
    compliance: float = 0.0
    competitive: float = 0.0
    total: float = 0.0

    def to_dict(self) -> dict:
        return {
            "user_impact": self.user_impact,
            "data_accuracy": self.data_accuracy,
            "compliance": self.compliance,
            "competitive": self.competitive,
            "total": self.total,
        }


@dataclass
class ResourceConflict:
    """Engpass zwischen Allokation und Katalog."""
    phase: int
    resource: str
    required: int
    available: int
    resolution: str

    def to_dict(self) -> dict:
        return {
            "phase": self.phase,
            "resource": self.resource,
            "required": self.required,
            "available": self.available,
            "resolution": self.resolution,
        }


@dataclass
class ResourcePlan:
    """Ergebnis einer Ressourcen-Allokation."""
    phases: dict[int, list[Resource]] = field(default_factory=dict)
    total_resources: list[Resource] = field(default_factory=list)
    conflicts: list[ResourceConflict] = field(default_factory=list)
    utilization: dict[str, float] = field(default_factory=dict)  # Prozent

    def to_dict(self) -> dict:
        return {
            "phases": {
                str(number): [r.to_dict() for r in resources]
                for number, resources in self.phases.items()
            },
            "total_resources": [r.to_dict() for r in self.total_resources],
            "conflicts": [c.to_dict() for c in self.conflicts],
            "utilization": self.utilization,
        }


@dataclass
class RevisionPlan:
    """Validierter, phasierter Plan als Antwort auf eine Finding-Batch."""
    plan_id: str
    findings: list[Finding]
    phases: list[Phase]
    total_effort: float
    risk_assessment: RiskAssessment
    success_metrics: list[Metric] = field(default_factory=list)
    status: PlanStatus = PlanStatus.DRAFT
    deadline: datetime | None = None
    impact_score: ImpactScore | None = None
    resource_plan: ResourcePlan | None = None
    dependency_cycles: list[list[str]] = field(default_factory=list)
    created_date: datetime = field(default_factory=datetime.now)

    @property
    def all_task_ids(self) -> set[str]:
        return {task.id for phase in self.phases for task in phase.tasks}

    def to_dict(self) -> dict:
        """Konvertiert Plan zu Dict für JSON."""
        return {
            "plan_id": self.plan_id,
            "created_date": self.created_date.isoformat(),
            "status": self.status.value,
            "findings": [f.to_dict() for f in self.findings],
            "phases": [p.to_dict() for p in self.phases],
            "total_effort": self.total_effort,
            "risk_assessment": self.risk_assessment.to_dict(),
            "success_metrics": [m.to_dict() for m in self.success_metrics],
            "deadline": _iso(self.deadline),
            "impact_score": self.impact_score.to_dict() if self.impact_score else None,
            "resource_plan": self.resource_plan.to_dict() if self.resource_plan else None,
            "dependency_cycles": self.dependency_cycles,
        }


@dataclass
class DataSource:
    """Beschreibung einer Datenquelle des Research Agents."""
    name: str
    kind: DataSourceKind
    update_interval: int  # Minuten
    url: str | None = None
    last_updated: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "kind": self.kind.value,
            "url": self.url,
            "update_interval": self.update_interval,
            "last_updated": _iso(self.last_updated),
        }


@dataclass
class AgentMetrics:
    """Snapshot der Metriken eines Agents (bei jedem Lesen neu abgeleitet)."""
    agent_id: str
    uptime: float = 0.0  # Sekunden
    tasks_completed: int = 0
    tasks_failed: int = 0
    average_task_time: float = 0.0  # Sekunden
    error_rate: float = 0.0
    last_activity: datetime = field(default_factory=datetime.now)
    health_status: HealthStatus = HealthStatus.HEALTHY

    def to_dict(self) -> dict:
        return {
            "agent_id": self.agent_id,
            "uptime": self.uptime,
            "tasks_completed": self.tasks_completed,
            "tasks_failed": self.tasks_failed,
            "average_task_time": self.average_task_time,
            "error_rate": self.error_rate,
            "last_activity": self.last_activity.isoformat(),
            "health_status": self.health_status.value,
        }
