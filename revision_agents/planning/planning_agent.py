"""
Planning Agent - Macht aus Findings validierte, phasierte Revision Plans.

Flow:
  research.finding → Queue → Batch (max 5, kompatibel) → Plan →
  Validierung → planning.plan_created

Kritische Findings umgehen Queue und Intervall und werden sofort geplant.
"""

import asyncio
import logging
import math
import time
from collections import deque
from datetime import datetime, timedelta
from uuid import uuid4

from ..communication import EventBus, Subscription
from ..errors import PlanValidationFailure, UnknownPlanReference
from ..events import (
    RESEARCH_FINDING, IMPLEMENTATION_STATUS, PLAN_CREATED,
    PlanCreatedEvent, MessagePayload, payload_field,
)
from ..metrics import MetricsTracker
from ..models import (
    AgentMetrics, Criteria, Finding, FindingCategory, Metric, Phase, PlanStatus,
    Priority, RevisionPlan, Risk, RiskAssessment, RiskLevel, Task, TaskType,
    TestRequirement, TestType, coerce_datetime,
)
from .dependencies import DependencyManager, DependencyMap
from .impact import ImpactAnalyzer
from .resources import ResourceAllocator

logger = logging.getLogger(__name__)

DEFAULT_PLAN_INTERVAL = 5.0
DEFAULT_MAX_BATCH_SIZE = 5
DEFAULT_MAX_PLANS = 500
EXCESSIVE_EFFORT_HOURS = 500
TIMELINE_RISK_DAYS = 14
DEFAULT_DEADLINE_DAYS = 30
TESTING_PHASE_DAYS = 3

# Reihenfolge = Match-Priorität, Fallback "General"
PLANNING_COMPONENTS = ["ROI Calculator", "Policy Tracker", "Global Comparator", "AI Dashboard"]
GENERAL_COMPONENT = "General"

PRIORITY_SCORES = {
    Priority.CRITICAL: 10,
    Priority.HIGH: 7,
    Priority.MEDIUM: 5,
    Priority.LOW: 3,
}

URGENT_PRIORITIES = (Priority.CRITICAL, Priority.HIGH)
ROUTINE_PRIORITIES = (Priority.MEDIUM, Priority.LOW)


def generate_plan_id() -> str:
    return f"PLAN-{int(time.time() * 1000)}-{uuid4().hex[:9]}"


def generate_task_id() -> str:
    return f"TASK-{int(time.time() * 1000)}-{uuid4().hex[:9]}"


def extract_component(action: str) -> str:
    lowered = action.lower()
    for component in PLANNING_COMPONENTS:
        if component.lower() in lowered:
            return component
    return GENERAL_COMPONENT


def determine_task_type(action: str) -> TaskType:
    lowered = action.lower()
    if "update" in lowered or "modify" in lowered:
        return TaskType.DATA_UPDATE
    if "add" in lowered or "create" in lowered:
        return TaskType.FEATURE
    if "fix" in lowered:
        return TaskType.BUGFIX
    return TaskType.REFACTOR


def estimate_hours(action: str) -> float:
    lowered = action.lower()
    if "update" in lowered or "modify" in lowered:
        return 2
    if "create" in lowered or "implement" in lowered:
        return 8
    if "refactor" in lowered or "optimize" in lowered:
        return 16
    return 4


def estimate_phase_duration(tasks: list[Task]) -> int:
    """Tage bei 8h/Tag mit zwei parallelen Strängen, mindestens 1."""
    total_hours = sum(t.estimated_hours for t in tasks)
    return max(1, math.ceil(total_hours / 16))


class PlanningAgent:
    """
    Planning Agent - Consumer der Research Findings.

    Zustände wie beim Research Agent: nicht gestartet → running → stopped.
    Ein laufender Batch wird bei stop() noch fertig geplant.
    """

    AGENT_ID = "planning-agent"

    def __init__(
        self,
        event_bus: EventBus,
        impact_analyzer: ImpactAnalyzer | None = None,
        dependency_manager: DependencyManager | None = None,
        resource_allocator: ResourceAllocator | None = None,
        plan_interval: float = DEFAULT_PLAN_INTERVAL,
        max_batch_size: int = DEFAULT_MAX_BATCH_SIZE,
        max_plans: int = DEFAULT_MAX_PLANS,
    ):
        self.event_bus = event_bus
        self.impact_analyzer = impact_analyzer or ImpactAnalyzer()
        self.dependency_manager = dependency_manager or DependencyManager()
        self.resource_allocator = resource_allocator or ResourceAllocator()
        self.plan_interval = plan_interval
        self.max_batch_size = max_batch_size
        self.max_plans = max_plans

        self.active_plans: dict[str, RevisionPlan] = {}
        self.plan_queue: deque[Finding] = deque()
        self.metrics = MetricsTracker(self.AGENT_ID)

        self._running = False
        self._stop_event: asyncio.Event | None = None
        self._loop_task: asyncio.Task | None = None
        self._subscriptions: list[Subscription] = []

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def queue_size(self) -> int:
        return len(self.plan_queue)

    # ===== LIFECYCLE =====

    async def start(self) -> bool:
        """
        Abonniert Findings und Status-Updates und startet den Batch-Loop.

        Returns:
            False wenn der Agent bereits läuft (No-Op)
        """
        if self._running:
            logger.warning("Planning Agent already running, ignoring start()")
            return False

        self._running = True
        self._stop_event = asyncio.Event()
        self.metrics.mark_started()

        self._subscriptions = [
            self.event_bus.subscribe(RESEARCH_FINDING, self.handle_finding),
            self.event_bus.subscribe(IMPLEMENTATION_STATUS, self.handle_implementation_status),
        ]
        self._loop_task = asyncio.create_task(self._processing_loop(), name="planning-batch-loop")

        logger.info("Planning Agent started (interval %.1fs, batch size %d)", self.plan_interval, self.max_batch_size)
        return True

    async def stop(self) -> None:
        if not self._running:
            logger.info("Planning Agent is not running")
            return

        self._running = False
        self._stop_event.set()

        for subscription in self._subscriptions:
            self.event_bus.unsubscribe(subscription)
        self._subscriptions = []

        if self._loop_task:
            await self._loop_task
            self._loop_task = None

        self.metrics.mark_stopped()
        logger.info("Planning Agent stopped")

    async def _processing_loop(self) -> None:
        while self._running:
            await self.process_queue()

            if not self._running:
                break
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.plan_interval)
            except asyncio.TimeoutError:
                pass

    async def process_queue(self) -> RevisionPlan | None:
        """Plant einen Batch aus der Queue, falls sie nicht leer ist."""
        if not self.plan_queue:
            return None
        batch = self.get_batch_for_processing()
        return await self.create_revision_plan(batch)

    # ===== EVENT HANDLERS =====

    async def handle_finding(self, payload: MessagePayload) -> None:
        finding = payload_field(payload, "finding")
        if not isinstance(finding, Finding):
            logger.warning("Ignoring research.finding without a Finding payload")
            return

        logger.info("Received finding: %s", finding.title)

        # Kritisch: direkt planen statt einreihen, genau ein Plan pro Finding
        if finding.priority == Priority.CRITICAL:
            await self.create_revision_plan([finding])
            return

        self.plan_queue.append(finding)

    async def handle_implementation_status(self, payload: MessagePayload) -> None:
        plan_id = payload_field(payload, "plan_id")
        status = payload_field(payload, "status", "")
        try:
            self.update_plan_status(plan_id, status)
        except UnknownPlanReference as e:
            logger.error("%s, ignoring status update", e)

    def update_plan_status(self, plan_id: str, status: str) -> RevisionPlan:
        """
        Übernimmt den Status des Implementation-Collaborators.

        completed → completed, failed → draft, alles andere → in_progress.

        Raises:
            UnknownPlanReference: Wenn plan_id nicht bekannt ist
        """
        plan = self.active_plans.get(plan_id)
        if plan is None:
            raise UnknownPlanReference(plan_id)

        if status == "completed":
            plan.status = PlanStatus.COMPLETED
            logger.info("Plan %s completed successfully", plan_id)
        elif status == "failed":
            plan.status = PlanStatus.DRAFT
            logger.warning("Plan %s failed, reverting to draft", plan_id)
        else:
            plan.status = PlanStatus.IN_PROGRESS
        return plan

    # ===== BATCHING =====

    def get_batch_for_processing(self) -> list[Finding]:
        """
        Greedy Batch aus dem Kopf der Queue.

        Ein inkompatibles Finding geht zurück an den Anfang und beendet den Batch.
        """
        batch: list[Finding] = []
        while self.plan_queue and len(batch) < self.max_batch_size:
            finding = self.plan_queue.popleft()
            if not batch or self.can_batch(finding, batch):
                batch.append(finding)
            else:
                self.plan_queue.appendleft(finding)
                break
        return batch

    @staticmethod
    def can_batch(finding: Finding, batch: list[Finding]) -> bool:
        """Gleiche Kategorie wie ein Batch-Mitglied oder überlappende Komponenten."""
        if finding.category in {f.category for f in batch}:
            return True

        batch_components = {
            extract_component(action) for f in batch for action in f.recommended_actions
        }
        finding_components = {extract_component(action) for action in finding.recommended_actions}
        return bool(batch_components & finding_components)

    # ===== PLAN CREATION =====

    async def create_revision_plan(self, findings: list[Finding]) -> RevisionPlan | None:
        """
        Baut, validiert, speichert und publiziert einen Plan.

        Returns:
            Den freigegebenen Plan, None wenn er verworfen wurde
        """
        started = time.monotonic()
        logger.info("Creating revision plan for %d findings", len(findings))

        try:
            plan = self.build_plan(findings)
            self.validate_plan(plan)
        except PlanValidationFailure as e:
            logger.error("%s", e)
            self.metrics.record_failure()
            return None
        except Exception:
            logger.exception("Error creating revision plan")
            self.metrics.record_failure()
            return None

        self.active_plans[plan.plan_id] = plan
        self._prune_plans()
        await self.publish_plan(plan)
        self.metrics.record_success(time.monotonic() - started)
        return plan

    def _prune_plans(self) -> None:
        """Hält active_plans bei max_plans. Abgeschlossene Pläne gehen zuerst, dann die ältesten."""
        while len(self.active_plans) > self.max_plans:
            completed = [
                plan_id for plan_id, plan in self.active_plans.items()
                if plan.status == PlanStatus.COMPLETED
            ]
            evicted = completed[0] if completed else next(iter(self.active_plans))
            del self.active_plans[evicted]
            logger.debug("Evicted plan %s", evicted)

    def build_plan(self, findings: list[Finding], now: datetime | None = None) -> RevisionPlan:
        """Baut einen Plan im Status draft, ohne ihn zu validieren."""
        now = now or datetime.now()

        impact_score = self.impact_analyzer.analyze(findings)
        dependencies = self.dependency_manager.analyze_dependencies(findings, now)
        cycles = self.dependency_manager.detect_cycles(dependencies)
        if cycles:
            logger.warning(
                "Dependency cycles detected: %s",
                "; ".join(" -> ".join(cycle) for cycle in cycles),
            )

        phases = self.create_phases(findings, dependencies)

        resource_plan = self.resource_allocator.allocate(phases)
        for phase in phases:
            phase.resources_required = resource_plan.phases.get(phase.phase_number, [])

        return RevisionPlan(
            plan_id=generate_plan_id(),
            findings=list(findings),
            phases=phases,
            total_effort=sum(phase.total_hours for phase in phases),
            risk_assessment=self.assess_risks(findings, phases),
            success_metrics=self.define_success_metrics(findings),
            status=PlanStatus.DRAFT,
            deadline=self.calculate_deadline(findings, now),
            impact_score=impact_score,
            resource_plan=resource_plan,
            dependency_cycles=cycles,
            created_date=now,
        )

    def create_phases(self, findings: list[Finding], dependencies: DependencyMap | None = None) -> list[Phase]:
        """
        Immer drei Phasen: Critical Updates, Feature Updates, Testing & Validation.

        Hat eine Batch keine Arbeit für Phase 1 oder 2, bekommt die Phase
        Baseline- bzw. Dokumentations-Tasks pro betroffener Komponente.
        """
        components = self.touched_components(findings)

        phase1_tasks = self.tasks_for_priorities(findings, URGENT_PRIORITIES)
        if not phase1_tasks:
            phase1_tasks = [self._baseline_task(c) for c in components]

        phase2_tasks = self.tasks_for_priorities(findings, ROUTINE_PRIORITIES)
        if not phase2_tasks:
            phase2_tasks = [self._documentation_task(c) for c in components]

        phase3_tasks = self.create_testing_tasks(components)

        phase1_ids = [t.id for t in phase1_tasks]
        phase2_ids = [t.id for t in phase2_tasks]

        return [
            Phase(
                phase_number=1,
                title="Critical Updates",
                objectives=["Address critical findings", "Update compliance requirements"],
                tasks=phase1_tasks,
                dependencies=[],
                duration=estimate_phase_duration(phase1_tasks),
            ),
            Phase(
                phase_number=2,
                title="Feature Updates",
                objectives=["Implement new features", "Update calculations"],
                tasks=phase2_tasks,
                dependencies=phase1_ids,
                duration=estimate_phase_duration(phase2_tasks),
            ),
            Phase(
                phase_number=3,
                title="Testing & Validation",
                objectives=["Validate all changes", "Ensure quality standards"],
                tasks=phase3_tasks,
                dependencies=phase1_ids + phase2_ids,
                duration=TESTING_PHASE_DAYS,
            ),
        ]

    @staticmethod
    def touched_components(findings: list[Finding]) -> list[str]:
        components: list[str] = []
        for finding in findings:
            for action in finding.recommended_actions:
                component = extract_component(action)
                if component not in components:
                    components.append(component)
        return components

    @staticmethod
    def tasks_for_priorities(findings: list[Finding], priorities: tuple[Priority, ...]) -> list[Task]:
        """Eine Task pro empfohlener Aktion der Findings mit passender Priorität."""
        return [
            Task(
                id=generate_task_id(),
                type=determine_task_type(action),
                title=action,
                description=f"Implement: {action}",
                component=extract_component(action),
                priority=PRIORITY_SCORES[finding.priority],
                estimated_hours=estimate_hours(action),
            )
            for finding in findings
            if finding.priority in priorities
            for action in finding.recommended_actions
        ]

    @staticmethod
    def _baseline_task(component: str) -> Task:
        return Task(
            id=generate_task_id(),
            type=TaskType.REFACTOR,
            title=f"Capture {component} baseline",
            description=f"Snapshot current {component} behaviour before feature updates",
            component=component,
            priority=PRIORITY_SCORES[Priority.MEDIUM],
            estimated_hours=2,
        )

    @staticmethod
    def _documentation_task(component: str) -> Task:
        return Task(
            id=generate_task_id(),
            type=TaskType.REFACTOR,
            title=f"Document {component} changes",
            description=f"Update documentation and changelog for {component}",
            component=component,
            priority=PRIORITY_SCORES[Priority.LOW],
            estimated_hours=2,
        )

    @staticmethod
    def create_testing_tasks(components: list[str]) -> list[Task]:
        return [
            Task(
                id=generate_task_id(),
                type=TaskType.FEATURE,
                title=f"Test {component}",
                description=f"Comprehensive testing of {component} changes",
                component=component,
                priority=10,
                estimated_hours=4,
                tests=[
                    TestRequirement(
                        test_type=TestType.UNIT,
                        scope=[component],
                        success_criteria=[
                            Criteria("coverage", ">=", 90),
                            Criteria("pass_rate", "=", 100),
                        ],
                        timeout=300_000,
                    ),
                    TestRequirement(
                        test_type=TestType.INTEGRATION,
                        scope=[component],
                        success_criteria=[Criteria("pass_rate", ">=", 95)],
                        timeout=600_000,
                    ),
                ],
            )
            for component in components
        ]

    @staticmethod
    def assess_risks(findings: list[Finding], phases: list[Phase]) -> RiskAssessment:
        categories = {f.category for f in findings}
        risks = []

        if FindingCategory.SCIENTIFIC in categories:
            risks.append(Risk(
                type="data_integrity",
                probability=RiskLevel.MEDIUM,
                impact=RiskLevel.HIGH,
                description="Incorrect data updates could affect calculations",
                mitigation="Implement comprehensive validation and testing",
            ))

        if FindingCategory.LEGISLATIVE in categories:
            risks.append(Risk(
                type="compliance",
                probability=RiskLevel.LOW,
                impact=RiskLevel.HIGH,
                description="Missing regulatory requirements",
                mitigation="Legal review and compliance testing",
            ))

        if sum(phase.duration for phase in phases) > TIMELINE_RISK_DAYS:
            risks.append(Risk(
                type="timeline",
                probability=RiskLevel.MEDIUM,
                impact=RiskLevel.MEDIUM,
                description="Extended implementation timeline",
                mitigation="Parallel execution and resource augmentation",
            ))

        if any(r.probability == RiskLevel.HIGH and r.impact == RiskLevel.HIGH for r in risks):
            overall = RiskLevel.HIGH
        elif any(r.impact == RiskLevel.HIGH for r in risks):
            overall = RiskLevel.MEDIUM
        else:
            overall = RiskLevel.LOW

        return RiskAssessment(
            risks=risks,
            overall_risk_level=overall,
            mitigation_strategies=[r.mitigation for r in risks],
        )

    @staticmethod
    def define_success_metrics(findings: list[Finding]) -> list[Metric]:
        metrics = [
            Metric("Implementation Completion", 100, "%", "Completed tasks / Total tasks"),
            Metric("Test Pass Rate", 95, "%", "Passed tests / Total tests"),
            Metric("Data Accuracy", 99, "%", "Validated data points / Total data points"),
        ]

        categories = {f.category for f in findings}
        if FindingCategory.LEGISLATIVE in categories:
            metrics.append(Metric("Compliance Coverage", 100, "%", "Compliant features / Required features"))
        if FindingCategory.MARKET in categories:
            metrics.append(Metric("Feature Parity", 90, "%", "Implemented features / Competitor features"))

        return metrics

    @staticmethod
    def calculate_deadline(findings: list[Finding], now: datetime | None = None) -> datetime | None:
        """
        Nächste legislative implementation_deadline, sonst +30 Tage bei
        critical/high Findings, sonst keine Deadline.
        """
        legislative_deadlines = [
            deadline
            for finding in findings
            if finding.category == FindingCategory.LEGISLATIVE
            for deadline in [coerce_datetime((finding.data or {}).get("implementation_deadline"))]
            if deadline is not None
        ]
        if legislative_deadlines:
            return min(legislative_deadlines)

        if any(f.priority in URGENT_PRIORITIES for f in findings):
            return (now or datetime.now()) + timedelta(days=DEFAULT_DEADLINE_DAYS)
        return None

    # ===== VALIDATION & PUBLISHING =====

    @staticmethod
    def validate_plan(plan: RevisionPlan) -> None:
        """
        Prüft einen Plan vor der Freigabe.

        Raises:
            PlanValidationFailure: Keine Phasen, leere Phase oder
                Dependency auf eine unbekannte Task-ID
        """
        if not plan.phases:
            raise PlanValidationFailure(plan.plan_id, "plan has no phases")

        for phase in plan.phases:
            if not phase.tasks:
                raise PlanValidationFailure(plan.plan_id, f"phase {phase.phase_number} has no tasks")

        if plan.total_effort > EXCESSIVE_EFFORT_HOURS:
            logger.warning("Plan %s requires excessive effort (%.0fh)", plan.plan_id, plan.total_effort)

        task_ids = plan.all_task_ids
        for phase in plan.phases:
            for dep in phase.dependencies:
                if dep not in task_ids:
                    raise PlanValidationFailure(plan.plan_id, f"invalid dependency {dep}")

    async def publish_plan(self, plan: RevisionPlan) -> None:
        logger.info("Publishing plan %s", plan.plan_id)
        plan.status = PlanStatus.APPROVED

        await self.event_bus.publish(PLAN_CREATED, PlanCreatedEvent(
            plan=plan,
            agent_id=self.AGENT_ID,
        ))

    # ===== ACCESSORS =====

    def get_metrics(self) -> AgentMetrics:
        return self.metrics.snapshot()

    def get_active_plans(self) -> list[RevisionPlan]:
        return list(self.active_plans.values())

    def get_plan(self, plan_id: str) -> RevisionPlan | None:
        return self.active_plans.get(plan_id)
