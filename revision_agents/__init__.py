"""
Revision Agents - Research/Planning Agent System mit Event Bus.

Key Features:
- Research Agent: Scannt Quellen periodisch, validiert und publiziert Findings
- Planning Agent: Batcht Findings und baut validierte 3-Phasen Revision Plans
- Event Bus: Pub/Sub mit begrenzter History, Handler laufen parallel
- Health: Fehlerrate → healthy / degraded / critical, pro Agent und systemweit

Flow:
  Scanner (parallel) → Dedup → Validierung → research.finding
       → Queue / Batch → Impact + Dependencies + Ressourcen → planning.plan_created
       → implementation.status → Plan Status

Kritische Findings werden sofort geplant, ohne auf den Batch-Loop zu warten.
"""

from .system import AgentSystem, SystemMetrics
from .config import AgentSystemConfig, load_config, default_data_sources
from .communication import EventBus, AgentMessage, Subscription, HistoryFilter
from .errors import RevisionAgentsError, ScanFailure, PlanValidationFailure, UnknownPlanReference
from .research import ResearchAgent, DataValidator
from .planning import PlanningAgent, ImpactAnalyzer, DependencyManager, ResourceAllocator
from .models import (
    Finding, FindingCategory, Priority, RevisionPlan, Phase, Task, PlanStatus,
    AgentMetrics, HealthStatus,
)

__all__ = [
    # System
    "AgentSystem",
    "SystemMetrics",
    "AgentSystemConfig",
    "load_config",
    "default_data_sources",
    # Communication
    "EventBus",
    "AgentMessage",
    "Subscription",
    "HistoryFilter",
    # Agents
    "ResearchAgent",
    "PlanningAgent",
    # Analyzers
    "DataValidator",
    "ImpactAnalyzer",
    "DependencyManager",
    "ResourceAllocator",
    # Errors
    "RevisionAgentsError",
    "ScanFailure",
    "PlanValidationFailure",
    "UnknownPlanReference",
    # Types
    "Finding",
    "FindingCategory",
    "Priority",
    "RevisionPlan",
    "Phase",
    "Task",
    "PlanStatus",
    "AgentMetrics",
    "HealthStatus",
]
