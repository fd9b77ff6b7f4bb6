"""
Revision Agents Test Configuration

Shared fixtures: Finding factory, stub scanners and a config with
intervals long enough that background loops never fire during a test.
"""

import itertools
from datetime import datetime

import pytest

from revision_agents.communication import EventBus
from revision_agents.config import AgentSystemConfig
from revision_agents.models import Finding, FindingCategory, Priority


_ids = itertools.count(1)


class StaticScanner:
    """Scanner stub returning a fixed list of findings."""

    def __init__(self, findings=None, name="static"):
        self.name = name
        self.findings = findings or []
        self.calls = 0

    async def scan(self, now: datetime):
        self.calls += 1
        return list(self.findings)


class FailingScanner:
    """Scanner stub that always raises."""

    name = "failing"

    async def scan(self, now: datetime):
        raise RuntimeError("source unreachable")


@pytest.fixture
def make_finding():
    """Factory for Findings with sensible defaults."""
    def _make(**overrides) -> Finding:
        number = next(_ids)
        defaults = dict(
            id=f"F-test-{number}",
            source="PubMed",
            category=FindingCategory.SCIENTIFIC,
            title=f"Finding {number}",
            description="Test finding",
            impact="Affects ROI calculations",
            priority=Priority.MEDIUM,
            confidence_score=0.9,
            recommended_actions=["Update ROI Calculator"],
        )
        defaults.update(overrides)
        return Finding(**defaults)
    return _make


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def static_scanner():
    return StaticScanner


@pytest.fixture
def failing_scanner():
    return FailingScanner()


@pytest.fixture
def slow_config():
    """Config whose loops only run their first iteration within a test."""
    return AgentSystemConfig(
        scan_interval=3600,
        plan_interval=3600,
        health_check_interval=3600,
    )
