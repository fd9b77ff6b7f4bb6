"""
Research Agent - Scannt kontinuierlich alle Datenquellen nach neuen Findings.

Pro Scan-Zyklus:
  alle Scanner parallel → flatten → Dedup (source + title) →
  Re-Scoring via DataValidator → Confidence-Filter → signifikante Findings publizieren

Ein fehlgeschlagener Zyklus wird gezählt, der Loop läuft weiter.
"""

import asyncio
import logging
import time
from collections import deque
from dataclasses import replace
from datetime import datetime

from ..communication import EventBus, Subscription
from ..errors import ScanFailure
from ..events import (
    RESEARCH_FINDING, VALIDATION_REQUEST, VALIDATION_RESPONSE, MANUAL_SCAN_REQUEST,
    FindingEvent, ValidationResponseEvent, MessagePayload, payload_field,
)
from ..metrics import MetricsTracker
from ..models import AgentMetrics, DataSource, Finding, FindingCategory, HealthStatus, Priority
from .scanners import Scanner, default_scanners
from .validator import DataValidator

logger = logging.getLogger(__name__)

DEFAULT_SCAN_INTERVAL = 60.0
DEFAULT_CONFIDENCE_THRESHOLD = 0.7
DEFAULT_MAX_FINDINGS = 1000


class ResearchAgent:
    """
    Research Agent - Producer für den Planning Agent.

    Zustände: nicht gestartet → running (start) → stopped (stop).
    stop() beendet den Loop vor der nächsten Iteration, ein laufender
    Scan wird nicht abgebrochen.
    """

    AGENT_ID = "research-agent"

    def __init__(
        self,
        event_bus: EventBus,
        data_sources: list[DataSource] | None = None,
        scanners: list[Scanner] | None = None,
        validator: DataValidator | None = None,
        scan_interval: float = DEFAULT_SCAN_INTERVAL,
        confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
        max_findings: int = DEFAULT_MAX_FINDINGS,
    ):
        self.event_bus = event_bus
        self.data_sources = data_sources or []
        self.scanners = scanners if scanners is not None else default_scanners()
        self.validator = validator or DataValidator()
        self.scan_interval = scan_interval
        self.confidence_threshold = confidence_threshold

        # Ring-Buffer: die ältesten publizierten Findings fallen raus
        self.findings: deque[Finding] = deque(maxlen=max_findings)
        self.last_scan: datetime | None = None
        self.metrics = MetricsTracker(self.AGENT_ID)

        self._running = False
        self._stop_event: asyncio.Event | None = None
        self._loop_task: asyncio.Task | None = None
        self._subscriptions: list[Subscription] = []

    @property
    def is_running(self) -> bool:
        return self._running

    # ===== LIFECYCLE =====

    async def start(self) -> bool:
        """
        Startet den Scan-Loop.

        Returns:
            False wenn der Agent bereits läuft (No-Op)
        """
        if self._running:
            logger.warning("Research Agent already running, ignoring start()")
            return False

        self._running = True
        self._stop_event = asyncio.Event()
        self.metrics.mark_started()

        self._subscriptions = [
            self.event_bus.subscribe(VALIDATION_REQUEST, self._handle_validation_request),
            self.event_bus.subscribe(MANUAL_SCAN_REQUEST, self._handle_scan_request),
        ]
        self._loop_task = asyncio.create_task(self._monitor_loop(), name="research-scan-loop")

        logger.info("Research Agent started (%d scanners, interval %.1fs)", len(self.scanners), self.scan_interval)
        return True

    async def stop(self) -> None:
        """Stoppt den Loop. Ein laufender Scan läuft noch zu Ende."""
        if not self._running:
            logger.info("Research Agent is not running")
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
        logger.info("Research Agent stopped")

    async def _monitor_loop(self) -> None:
        while self._running:
            await self.run_scan_cycle()

            if not self._running:
                break
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.scan_interval)
            except asyncio.TimeoutError:
                pass

    # ===== SCANNING =====

    async def run_scan_cycle(self) -> list[Finding]:
        """
        Führt einen kompletten Scan-Zyklus aus.

        Fehler werden hier gefangen und gezählt, nie weitergereicht.

        Returns:
            Die publizierten Findings (leer bei Fehler)
        """
        started = time.monotonic()
        try:
            published = await self._perform_scan()
        except Exception as e:
            logger.error("Scan failed: %s", e)
            self.metrics.record_failure()
            self._report_health()
            return []

        self.metrics.record_success(time.monotonic() - started)
        return published

    async def _perform_scan(self) -> list[Finding]:
        now = datetime.now()
        raw_findings = await self._fan_out(now)
        findings = self.process_findings(raw_findings, now)

        published = []
        for finding in findings:
            if self.is_significant(finding):
                await self._publish_finding(finding)
                published.append(finding)

        self.last_scan = now
        logger.info(
            "Scan complete: %d raw, %d retained, %d published",
            len(raw_findings), len(findings), len(published),
        )
        return published

    async def _fan_out(self, now: datetime) -> list[Finding]:
        """Alle Scanner parallel. Schlägt einer fehl, schlägt der Zyklus fehl."""
        results = await asyncio.gather(
            *(scanner.scan(now) for scanner in self.scanners),
            return_exceptions=True,
        )

        raw_findings: list[Finding] = []
        for scanner, result in zip(self.scanners, results):
            if isinstance(result, BaseException):
                raise ScanFailure(getattr(scanner, "name", type(scanner).__name__), result) from result
            raw_findings.extend(result)
        return raw_findings

    def process_findings(self, raw_findings: list[Finding], now: datetime | None = None) -> list[Finding]:
        """
        Dedupliziert, validiert und filtert rohe Findings.

        Findings mit validation_required werden durch den DataValidator
        neu bewertet. Bewertet wird eine Kopie, die Objekte des Scanners
        bleiben unverändert.
        """
        scored = [
            replace(f, confidence_score=self.validator.validate_finding(f, now))
            if f.validation_required else f
            for f in self.deduplicate(raw_findings)
        ]
        return [f for f in scored if f.confidence_score >= self.confidence_threshold]

    @staticmethod
    def deduplicate(findings: list[Finding]) -> list[Finding]:
        """Dedup nach source + title, erstes Vorkommen gewinnt."""
        seen: set[str] = set()
        unique = []
        for finding in findings:
            if finding.dedup_key in seen:
                continue
            seen.add(finding.dedup_key)
            unique.append(finding)
        return unique

    @staticmethod
    def is_significant(finding: Finding) -> bool:
        """Ob ein Finding wichtig genug zum Publizieren ist."""
        if finding.priority in (Priority.CRITICAL, Priority.HIGH):
            return True
        if finding.category == FindingCategory.LEGISLATIVE and finding.confidence_score > 0.9:
            return True
        if finding.impact and "compliance" in finding.impact:
            return True
        return finding.confidence_score > 0.85 and finding.priority != Priority.LOW

    async def _publish_finding(self, finding: Finding) -> None:
        logger.info("Publishing finding: %s", finding.title)
        self._remember(finding)

        await self.event_bus.publish(RESEARCH_FINDING, FindingEvent(
            finding=finding,
            agent_id=self.AGENT_ID,
        ))
        await self.store_finding(finding)

    def _remember(self, finding: Finding) -> None:
        """Neuere Version eines Findings (gleicher source + title) ersetzt die ältere."""
        for index, known in enumerate(self.findings):
            if known.dedup_key == finding.dedup_key:
                del self.findings[index]
                break
        self.findings.append(finding)

    async def store_finding(self, finding: Finding) -> None:
        """Persistence Hook - Platzhalter für einen dauerhaften Store."""
        logger.debug("Storing finding %s", finding.id)

    # ===== EVENT HANDLERS =====

    async def _handle_validation_request(self, request: MessagePayload) -> None:
        data_point = payload_field(request, "data_point")
        current_value = payload_field(request, "current_value")
        component = payload_field(request, "component", "unknown")
        logger.info("Validating %s for %s", data_point, component)

        result = self.validator.validate_data_point(data_point, current_value)

        await self.event_bus.publish(VALIDATION_RESPONSE, ValidationResponseEvent(
            request_id=payload_field(request, "correlation_id"),
            valid=result.is_valid,
            confidence=result.confidence,
            suggested_value=result.suggested_value,
            sources=result.sources,
            issues=result.issues,
            agent_id=self.AGENT_ID,
        ))

    async def _handle_scan_request(self, request: MessagePayload) -> None:
        logger.info("Manual scan requested by %s", payload_field(request, "requested_by", "unknown"))
        await self.run_scan_cycle()

    # ===== METRICS =====

    def _report_health(self) -> None:
        snapshot = self.metrics.snapshot()
        if snapshot.health_status != HealthStatus.HEALTHY:
            logger.warning(
                "Research Agent %s (error rate %.2f)",
                snapshot.health_status.value, snapshot.error_rate,
            )

    def get_metrics(self) -> AgentMetrics:
        return self.metrics.snapshot()

    def get_findings(self) -> list[Finding]:
        return list(self.findings)

    def get_finding(self, finding_id: str) -> Finding | None:
        return next((f for f in self.findings if f.id == finding_id), None)
