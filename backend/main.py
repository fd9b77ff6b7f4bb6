"""
FastAPI Backend - Operator API für das Revision Agent System.

Features:
- System Lifecycle (Start, Stop, Status, Metrics)
- Event History, Findings und Revision Plans
- Manuelle Scans und Plans
- Real-time WebSocket Updates für Findings, Plans und Implementation Status

Usage:
    uv run python -m backend.main
"""

import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, WebSocket, WebSocketDisconnect, HTTPException, Request
import uvicorn

from revision_agents import AgentSystem, HistoryFilter, load_config
from revision_agents.events import (
    IMPLEMENTATION_STATUS, MANUAL_SCAN_REQUEST, PLAN_CREATED, RESEARCH_FINDING,
    ImplementationStatusEvent,
)
from revision_agents.logging_setup import setup_logging
from revision_agents.models import RevisionPlan, coerce_datetime

from .models import (
    SystemStatusResponse, SystemMetricsResponse, AgentMetricsModel,
    EventResponse, ScanResponse,
    FindingResponse, PlanSummaryResponse, ManualPlanRequest, ManualPlanResponse,
    ImplementationStatusRequest,
)
from .websocket import ConnectionManager

logger = logging.getLogger(__name__)

# Events, die an WebSocket Clients gehen
BROADCAST_EVENTS = [RESEARCH_FINDING, PLAN_CREATED, IMPLEMENTATION_STATUS]


def plan_summary(plan: RevisionPlan) -> PlanSummaryResponse:
    return PlanSummaryResponse(
        plan_id=plan.plan_id,
        status=plan.status.value,
        created_date=plan.created_date.isoformat(),
        finding_ids=[f.id for f in plan.findings],
        phase_count=len(plan.phases),
        task_count=len(plan.all_task_ids),
        total_effort=plan.total_effort,
        overall_risk_level=plan.risk_assessment.overall_risk_level.value,
        deadline=plan.deadline.isoformat() if plan.deadline else None,
        conflict_count=len(plan.resource_plan.conflicts) if plan.resource_plan else 0,
    )


def create_app(system: Optional[AgentSystem] = None) -> FastAPI:
    """
    Baut die FastAPI App um ein AgentSystem.

    Args:
        system: Bestehendes System (z.B. in Tests). Ohne wird eines aus
            der Umgebungs-Konfiguration erzeugt.
    """
    load_dotenv()
    config = system.config if system else load_config()
    system = system or AgentSystem(config)
    manager = ConnectionManager()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application Lifecycle."""
        setup_logging(config.log_level)
        logger.info("Revision Agent API starting...")
        manager.subscribe_to(system.event_bus, BROADCAST_EVENTS)
        yield
        if system.is_system_running():
            await system.stop()
        manager.unsubscribe_all(system.event_bus)
        logger.info("Shutting down...")

    app = FastAPI(
        title="Revision Agent System",
        description="Research + Planning Agents mit Event Bus",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.system = system
    app.state.manager = manager

    # ==================== System API ====================

    @app.get("/api/system/status")
    async def get_status() -> SystemStatusResponse:
        """Laufzeit-Status."""
        metrics = system.get_system_metrics()
        return SystemStatusResponse(
            running=system.is_system_running(),
            overall_health=metrics.overall_health.value,
            uptime=metrics.uptime,
            queue_size=system.planning_agent.queue_size,
            connections=manager.connection_count,
        )

    @app.post("/api/system/start")
    async def start_system():
        """System starten (No-Op wenn es bereits läuft)."""
        already_running = system.is_system_running()
        await system.start()
        return {"status": "already_running" if already_running else "started"}

    @app.post("/api/system/stop")
    async def stop_system():
        """System stoppen (No-Op wenn es nicht läuft)."""
        was_running = system.is_system_running()
        await system.stop()
        return {"status": "stopped" if was_running else "not_running"}

    @app.get("/api/system/metrics")
    async def get_metrics() -> SystemMetricsResponse:
        """Metriken pro Agent und systemweit."""
        metrics = system.get_system_metrics().to_dict()
        return SystemMetricsResponse(
            uptime=metrics["uptime"],
            agents=[AgentMetricsModel(**a) for a in metrics["agents"]],
            total_findings=metrics["total_findings"],
            active_plans=metrics["active_plans"],
            message_count=metrics["message_count"],
            overall_health=metrics["overall_health"],
        )

    # ==================== Events ====================

    @app.get("/api/events")
    async def get_events(
        sender: Optional[str] = None,
        recipient: Optional[str] = None,
        message_type: Optional[str] = None,
        since: Optional[datetime] = None,
    ) -> list[EventResponse]:
        """Event History in Publish-Reihenfolge, optional gefiltert."""
        history_filter = HistoryFilter(
            sender=sender,
            recipient=recipient,
            message_type=message_type,
            since=coerce_datetime(since),
        )
        return [EventResponse(**m.to_dict()) for m in system.get_event_history(history_filter)]

    @app.post("/api/scan")
    async def trigger_scan() -> ScanResponse:
        """Manuellen Scan anfordern."""
        message = await system.trigger_manual_scan()
        return ScanResponse(
            message_id=message.id,
            handlers=system.event_bus.get_subscriber_count(MANUAL_SCAN_REQUEST),
        )

    # ==================== Findings & Plans ====================

    @app.get("/api/findings")
    async def get_findings() -> list[FindingResponse]:
        """Alle publizierten Findings."""
        return [FindingResponse(**f.to_dict()) for f in system.research_agent.get_findings()]

    @app.get("/api/plans")
    async def get_plans() -> list[PlanSummaryResponse]:
        """Alle gespeicherten Revision Plans."""
        return [plan_summary(p) for p in system.planning_agent.get_active_plans()]

    @app.get("/api/plans/{plan_id}")
    async def get_plan(plan_id: str):
        """Einzelner Plan inkl. Phasen, Tasks und Ressourcen."""
        plan = system.planning_agent.get_plan(plan_id)
        if not plan:
            raise HTTPException(status_code=404, detail="Plan not found")
        return plan.to_dict()

    @app.post("/api/plans")
    async def create_manual_plan(request: ManualPlanRequest) -> ManualPlanResponse:
        """Findings per ID erneut zur Planung publizieren."""
        published = await system.create_manual_plan(request.finding_ids)
        if not published:
            raise HTTPException(status_code=404, detail="No matching findings")
        return ManualPlanResponse(published=[f.id for f in published])

    @app.post("/api/implementation/status")
    async def report_implementation_status(request: ImplementationStatusRequest):
        """Statusmeldung des Implementation-Collaborators auf den Bus legen."""
        message = await system.event_bus.publish(IMPLEMENTATION_STATUS, ImplementationStatusEvent(
            plan_id=request.plan_id,
            status=request.status,
            completed_tasks=request.completed_tasks,
        ))
        plan = system.planning_agent.get_plan(request.plan_id)
        return {
            "message_id": message.id,
            "plan_status": plan.status.value if plan else None,
        }

    # ==================== WebSocket ====================

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        """WebSocket für Real-time Updates."""
        await manager.connect(websocket)

        metrics = system.get_system_metrics()
        await manager.send_to(websocket, {
            "type": "init",
            "running": system.is_system_running(),
            "metrics": metrics.to_dict(),
            "plans": [plan_summary(p).model_dump() for p in system.planning_agent.get_active_plans()],
            "connection_count": manager.connection_count,
        })

        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            await manager.disconnect(websocket)

    @app.get("/health")
    async def health(request: Request):
        """Health Check."""
        return {
            "status": system.get_system_metrics().overall_health.value,
            "running": system.is_system_running(),
            "connections": request.app.state.manager.connection_count,
        }

    return app


def main():
    """Entry Point."""
    load_dotenv()
    uvicorn.run(
        "backend.main:create_app",
        factory=True,
        host=os.getenv("BACKEND_HOST", "0.0.0.0"),
        port=int(os.getenv("BACKEND_PORT", "8000")),
    )


if __name__ == "__main__":
    main()
