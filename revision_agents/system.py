"""
Agent System - Verdrahtet EventBus, Research Agent und Planning Agent.

Kein globaler Singleton: der Aufrufer erzeugt das System und besitzt
seinen Lifecycle (AgentSystem(...) → start() → stop()).
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field

from .communication import EventBus, HistoryFilter, AgentMessage
from .config import AgentSystemConfig
from .events import (
    MANUAL_SCAN_REQUEST, MONITORED_EVENTS, RESEARCH_FINDING,
    FindingEvent, MessagePayload, ScanRequestEvent, payload_to_dict,
)
from .metrics import worst_health
from .models import AgentMetrics, Finding, HealthStatus
from .planning import PlanningAgent
from .research import ResearchAgent
from .research.scanners import Scanner

logger = logging.getLogger(__name__)

RESTART_ERROR_RATE = 0.5
EVENT_LOG_PREVIEW = 200


@dataclass
class SystemMetrics:
    """Aggregierte Metriken über beide Agents."""
    uptime: float  # Sekunden
    agents: list[AgentMetrics] = field(default_factory=list)
    total_findings: int = 0
    active_plans: int = 0
    message_count: int = 0
    overall_health: HealthStatus = HealthStatus.HEALTHY

    def to_dict(self) -> dict:
        return {
            "uptime": self.uptime,
            "agents": [a.to_dict() for a in self.agents],
            "total_findings": self.total_findings,
            "active_plans": self.active_plans,
            "message_count": self.message_count,
            "overall_health": self.overall_health.value,
        }


class AgentSystem:
    """
    Orchestrator für beide Agents.

    start()/stop() sind idempotent: ein zweiter Aufruf wird geloggt,
    nicht geworfen.
    """

    def __init__(
        self,
        config: AgentSystemConfig | None = None,
        scanners: list[Scanner] | None = None,
    ):
        self.config = config or AgentSystemConfig()

        self.event_bus = EventBus(history_size=self.config.history_size)
        self.research_agent = ResearchAgent(
            self.event_bus,
            data_sources=self.config.data_sources,
            scanners=scanners,
            scan_interval=self.config.scan_interval,
            confidence_threshold=self.config.confidence_threshold,
            max_findings=self.config.max_findings,
        )
        self.planning_agent = PlanningAgent(
            self.event_bus,
            plan_interval=self.config.plan_interval,
            max_batch_size=self.config.max_batch_size,
            max_plans=self.config.max_plans,
        )

        self._running = False
        self._started_at = time.monotonic()
        self._stop_event: asyncio.Event | None = None
        self._health_task: asyncio.Task | None = None

        self._setup_communication()

    def _setup_communication(self) -> None:
        """Monitoring-Log für alle Kern-Events."""
        for topic in MONITORED_EVENTS:
            self.event_bus.subscribe(topic, self._monitor(topic))

    @staticmethod
    def _monitor(topic: str):
        def log_event(payload: MessagePayload) -> None:
            preview = json.dumps(payload_to_dict(payload), default=str)[:EVENT_LOG_PREVIEW]
            logger.debug("Event %s: %s", topic, preview)
        return log_event

    # ===== LIFECYCLE =====

    async def start(self) -> None:
        if self._running:
            logger.warning("Agent system is already running")
            return

        logger.info("Starting Agent System...")
        self._running = True
        self._started_at = time.monotonic()

        try:
            await asyncio.gather(
                self.research_agent.start(),
                self.planning_agent.start(),
            )
        except Exception:
            logger.exception("Failed to start Agent System")
            self._running = False
            raise

        self._stop_event = asyncio.Event()
        self._health_task = asyncio.create_task(self._monitoring_loop(), name="system-health-check")
        logger.info("Agent System started successfully")

    async def stop(self) -> None:
        if not self._running:
            logger.warning("Agent system is not running")
            return

        logger.info("Stopping Agent System...")
        self._running = False
        self._stop_event.set()
        if self._health_task:
            await self._health_task
            self._health_task = None

        await asyncio.gather(
            self.research_agent.stop(),
            self.planning_agent.stop(),
        )
        logger.info("Agent System stopped")

    def is_system_running(self) -> bool:
        return self._running

    # ===== HEALTH =====

    async def _monitoring_loop(self) -> None:
        while self._running:
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.config.health_check_interval)
            except asyncio.TimeoutError:
                pass

            if self._running:
                self.check_system_health()

    def check_system_health(self) -> SystemMetrics:
        """Meldet degradierte/kritische Agents und loggt die Metriken."""
        metrics = self.get_system_metrics()

        critical = [a for a in metrics.agents if a.health_status == HealthStatus.CRITICAL]
        degraded = [a for a in metrics.agents if a.health_status == HealthStatus.DEGRADED]

        if critical:
            logger.error("Agents in critical state: %s", ", ".join(a.agent_id for a in critical))
            self._handle_critical_state(critical)
        elif degraded:
            logger.warning("Agents in degraded state: %s", ", ".join(a.agent_id for a in degraded))

        logger.info(
            "System metrics: uptime %.0fs, %d findings, %d active plans, health %s",
            metrics.uptime, metrics.total_findings, metrics.active_plans, metrics.overall_health.value,
        )
        return metrics

    def _handle_critical_state(self, critical_agents: list[AgentMetrics]) -> None:
        # Recovery noch nicht implementiert - nur Log
        for agent in critical_agents:
            if agent.error_rate > RESTART_ERROR_RATE:
                logger.warning("Attempting to restart %s (error rate %.2f)", agent.agent_id, agent.error_rate)

    def get_system_metrics(self) -> SystemMetrics:
        agents = [
            self.research_agent.get_metrics(),
            self.planning_agent.get_metrics(),
        ]
        return SystemMetrics(
            uptime=time.monotonic() - self._started_at,
            agents=agents,
            total_findings=len(self.research_agent.get_findings()),
            active_plans=len(self.planning_agent.get_active_plans()),
            message_count=self.event_bus.history_size,
            overall_health=worst_health([a.health_status for a in agents]),
        )

    # ===== OPERATOR ENTRY POINTS =====

    async def trigger_manual_scan(self, requested_by: str = "user") -> AgentMessage:
        """
        Publiziert manual.scan_request.

        Funktioniert auch bei gestopptem System - ohne laufenden
        Research Agent gibt es nur keinen Handler.
        """
        logger.info("Triggering manual scan...")
        return await self.event_bus.publish(MANUAL_SCAN_REQUEST, ScanRequestEvent(requested_by=requested_by))

    async def create_manual_plan(self, finding_ids: list[str]) -> list[Finding]:
        """
        Publiziert die gewählten Findings erneut als research.finding.

        Returns:
            Die publizierten Findings (leer wenn keine ID passt)
        """
        logger.info("Creating manual plan for findings: %s", ", ".join(finding_ids))

        selected = [f for f in self.research_agent.get_findings() if f.id in finding_ids]
        if not selected:
            logger.error("No valid findings found")
            return []

        for finding in selected:
            await self.event_bus.publish(RESEARCH_FINDING, FindingEvent(finding=finding, agent_id="manual"))
        return selected

    def get_event_history(self, history_filter: HistoryFilter | None = None) -> list[AgentMessage]:
        return self.event_bus.get_message_history(history_filter)
