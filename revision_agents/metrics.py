"""
Agent Metrics - Zähler pro Agent, Health wird bei jedem Lesen abgeleitet.
"""

import time
from datetime import datetime

from .models import AgentMetrics, HealthStatus

DEGRADED_ERROR_RATE = 0.1
CRITICAL_ERROR_RATE = 0.25

_SEVERITY = {
    HealthStatus.HEALTHY: 0,
    HealthStatus.DEGRADED: 1,
    HealthStatus.CRITICAL: 2,
}


def health_from_error_rate(error_rate: float) -> HealthStatus:
    """
    Leitet den Health Status aus der Fehlerrate ab.

    <= 0.1 healthy, <= 0.25 degraded, darüber critical.
    """
    if error_rate > CRITICAL_ERROR_RATE:
        return HealthStatus.CRITICAL
    if error_rate > DEGRADED_ERROR_RATE:
        return HealthStatus.DEGRADED
    return HealthStatus.HEALTHY


def worst_health(statuses: list[HealthStatus]) -> HealthStatus:
    """Schlechtester Status: critical > degraded > healthy."""
    return max(statuses, key=lambda s: _SEVERITY[s], default=HealthStatus.HEALTHY)


class MetricsTracker:
    """
    Zählt abgeschlossene und fehlgeschlagene Tasks eines Agents.

    Wird nur über record_success / record_failure verändert, damit die
    Zähler zwischen zwei Suspension Points nie inkonsistent sind.
    """

    def __init__(self, agent_id: str):
        self.agent_id = agent_id
        self.tasks_completed = 0
        self.tasks_failed = 0
        self.average_task_time = 0.0
        self.last_activity = datetime.now()
        self._started_at: float | None = None

    def mark_started(self) -> None:
        self._started_at = time.monotonic()
        self.last_activity = datetime.now()

    def mark_stopped(self) -> None:
        self._started_at = None

    def record_success(self, duration: float) -> None:
        """Zählt eine erfolgreiche Task und aktualisiert den laufenden Durchschnitt."""
        self.tasks_completed += 1
        total = self.average_task_time * (self.tasks_completed - 1)
        self.average_task_time = (total + duration) / self.tasks_completed
        self.last_activity = datetime.now()

    def record_failure(self) -> None:
        self.tasks_failed += 1
        self.last_activity = datetime.now()

    @property
    def error_rate(self) -> float:
        total = self.tasks_completed + self.tasks_failed
        if total == 0:
            return 0.0
        return self.tasks_failed / total

    @property
    def uptime(self) -> float:
        if self._started_at is None:
            return 0.0
        return time.monotonic() - self._started_at

    def snapshot(self) -> AgentMetrics:
        """Aktueller Snapshot, Health frisch abgeleitet."""
        error_rate = self.error_rate
        return AgentMetrics(
            agent_id=self.agent_id,
            uptime=self.uptime,
            tasks_completed=self.tasks_completed,
            tasks_failed=self.tasks_failed,
            average_task_time=self.average_task_time,
            error_rate=error_rate,
            last_activity=self.last_activity,
            health_status=health_from_error_rate(error_rate),
        )
