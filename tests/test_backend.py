"""
Operator API Tests

FastAPI TestClient gegen ein System ohne Scanner.
"""

import json

import pytest
from fastapi.testclient import TestClient

from backend.main import BROADCAST_EVENTS, create_app
from backend.websocket import ConnectionManager, encode_event
from revision_agents import AgentSystem
from revision_agents.events import IMPLEMENTATION_STATUS, RESEARCH_FINDING, ImplementationStatusEvent
from revision_agents.models import Priority


@pytest.fixture
def system(slow_config):
    return AgentSystem(slow_config, scanners=[])


@pytest.fixture
def client(system):
    with TestClient(create_app(system)) as client:
        yield client


class TestSystemEndpoints:

    def test_status_of_stopped_system(self, client):
        response = client.get("/api/system/status")

        assert response.status_code == 200
        body = response.json()
        assert body["running"] is False
        assert body["overall_health"] == "healthy"
        assert body["queue_size"] == 0

    def test_start_and_stop(self, client, system):
        assert client.post("/api/system/start").json() == {"status": "started"}
        assert client.post("/api/system/start").json() == {"status": "already_running"}
        assert system.is_system_running()

        assert client.post("/api/system/stop").json() == {"status": "stopped"}
        assert client.post("/api/system/stop").json() == {"status": "not_running"}

    def test_metrics(self, client):
        body = client.get("/api/system/metrics").json()
        assert [a["agent_id"] for a in body["agents"]] == ["research-agent", "planning-agent"]
        assert body["message_count"] == 0

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy", "running": False, "connections": 0}


class TestEventEndpoints:

    def test_scan_is_recorded(self, client):
        scan = client.post("/api/scan").json()
        assert scan["handlers"] == 0

        events = client.get("/api/events", params={"sender": "manual"}).json()
        assert [e["id"] for e in events] == [scan["message_id"]]
        assert events[0]["message_type"] == "scan_request"
        assert events[0]["payload"]["requested_by"] == "user"

        assert client.get("/api/events", params={"message_type": "finding"}).json() == []


class TestPlanEndpoints:

    def test_unknown_plan(self, client):
        assert client.get("/api/plans/PLAN-missing").status_code == 404

    def test_manual_plan_without_findings(self, client):
        response = client.post("/api/plans", json={"finding_ids": ["F-missing"]})
        assert response.status_code == 404

    def test_manual_plan_lifecycle(self, client, system, make_finding):
        finding = make_finding(priority=Priority.CRITICAL)
        system.research_agent.findings.append(finding)
        client.post("/api/system/start")

        response = client.post("/api/plans", json={"finding_ids": [finding.id]})
        assert response.json() == {"published": [finding.id]}

        plans = client.get("/api/plans").json()
        assert len(plans) == 1
        summary = plans[0]
        assert summary["phase_count"] == 3
        assert summary["status"] == "approved"
        assert summary["finding_ids"] == [finding.id]

        detail = client.get(f"/api/plans/{summary['plan_id']}").json()
        assert [p["title"] for p in detail["phases"]] == [
            "Critical Updates", "Feature Updates", "Testing & Validation",
        ]

        status = client.post("/api/implementation/status", json={
            "plan_id": summary["plan_id"],
            "status": "completed",
        }).json()
        assert status["plan_status"] == "completed"

        findings = client.get("/api/findings").json()
        assert [f["id"] for f in findings] == [finding.id]


class TestWebSocket:

    def test_init_message(self, client):
        with client.websocket_connect("/ws") as websocket:
            init = websocket.receive_json()

        assert init["type"] == "init"
        assert init["running"] is False
        assert init["plans"] == []
        assert init["connection_count"] == 1

    def test_status_events_are_broadcast(self, client):
        with client.websocket_connect("/ws") as websocket:
            websocket.receive_json()

            client.post("/api/implementation/status", json={"plan_id": "PLAN-missing", "status": "failed"})
            event = websocket.receive_json()

        assert event["type"] == "implementation.status"
        assert event["data"]["plan_id"] == "PLAN-missing"
        assert event["data"]["status"] == "failed"

    def test_forwarding_ends_with_the_app(self, system):
        baseline = system.event_bus.get_subscriber_count(IMPLEMENTATION_STATUS)

        with TestClient(create_app(system)):
            assert system.event_bus.get_subscriber_count(IMPLEMENTATION_STATUS) == baseline + 1
        assert system.event_bus.get_subscriber_count(IMPLEMENTATION_STATUS) == baseline


class FakeWebSocket:
    """Records sent frames, optionally failing every send."""

    def __init__(self, broken=False):
        self.broken = broken
        self.sent = []

    async def accept(self):
        pass

    async def send_text(self, text):
        if self.broken:
            raise RuntimeError("connection closed")
        self.sent.append(json.loads(text))


class TestConnectionManager:

    def test_encode_event(self):
        event = ImplementationStatusEvent("PLAN-1", "completed")
        assert encode_event(IMPLEMENTATION_STATUS, event) == {
            "type": "implementation.status",
            "data": event.to_dict(),
        }

    @pytest.mark.asyncio
    async def test_dead_connections_are_dropped(self):
        manager = ConnectionManager()
        alive, dead = FakeWebSocket(), FakeWebSocket(broken=True)
        await manager.connect(alive)
        await manager.connect(dead)

        delivered = await manager.broadcast_event(RESEARCH_FINDING, {"title": "New study"})

        assert delivered == 1
        assert manager.connection_count == 1
        assert alive.sent == [{"type": "research.finding", "data": {"title": "New study"}}]

    @pytest.mark.asyncio
    async def test_bus_events_reach_clients(self, event_bus):
        manager = ConnectionManager()
        client = FakeWebSocket()
        await manager.connect(client)

        subscriptions = manager.subscribe_to(event_bus, BROADCAST_EVENTS)
        assert [s.topic for s in subscriptions] == BROADCAST_EVENTS

        await event_bus.publish(IMPLEMENTATION_STATUS, ImplementationStatusEvent("PLAN-1", "failed"))
        await event_bus.publish("validation.request", {"data_point": "ivf_cost"})

        assert [m["type"] for m in client.sent] == ["implementation.status"]
        assert client.sent[0]["data"]["status"] == "failed"

        manager.unsubscribe_all(event_bus)
        await event_bus.publish(IMPLEMENTATION_STATUS, ImplementationStatusEvent("PLAN-1", "completed"))
        assert len(client.sent) == 1
