"""
Planning Analyzer Tests

ImpactAnalyzer, DependencyManager and ResourceAllocator.
"""

from datetime import datetime, timedelta

import pytest

from revision_agents.models import (
    FindingCategory, Phase, Priority, Resource, ResourceAvailability, ResourceType,
    Task, TaskType,
)
from revision_agents.planning import DependencyManager, ImpactAnalyzer, ResourceAllocator

NOW = datetime(2025, 6, 1)


def make_task(title="Update ROI Calculator", hours=2.0, task_type=TaskType.DATA_UPDATE) -> Task:
    return Task(
        id=f"TASK-{title}",
        type=task_type,
        title=title,
        description="",
        component="ROI Calculator",
        priority=5,
        estimated_hours=hours,
    )


# ==================== ImpactAnalyzer ====================

class TestImpactAnalyzer:

    def test_empty_batch_scores_zero(self):
        score = ImpactAnalyzer().analyze([])
        assert score.to_dict() == {
            "user_impact": 0.0,
            "data_accuracy": 0.0,
            "compliance": 0.0,
            "competitive": 0.0,
            "total": 0.0,
        }

    def test_scientific_finding(self, make_finding):
        finding = make_finding(
            priority=Priority.CRITICAL,
            impact="Update ROI calculator for users",
            confidence_score=0.9,
            data={"success_rate": 0.5},
        )

        score = ImpactAnalyzer().analyze([finding])

        assert score.user_impact == 10
        assert score.data_accuracy == 10
        assert score.compliance == 0
        assert score.competitive == 0
        assert score.total == pytest.approx(10 * 0.4 + 10 * 0.3)

    def test_sub_scores_are_batch_means(self, make_finding):
        legislative = make_finding(
            category=FindingCategory.LEGISLATIVE,
            impact="New mandate for employers",
            priority=Priority.LOW,
            data={"jurisdiction": "federal"},
        )
        market = make_finding(
            category=FindingCategory.MARKET,
            impact="Feature parity opportunity",
            priority=Priority.LOW,
        )

        score = ImpactAnalyzer().analyze([legislative, market])

        assert score.compliance == pytest.approx(5.0)
        assert score.competitive == pytest.approx(5.0)
        assert score.user_impact == pytest.approx(1.5)
        assert score.total == pytest.approx(1.5 * 0.4 + 5.0 * 0.2 + 5.0 * 0.1)

    def test_compliance_without_mandate(self, make_finding):
        finding = make_finding(category=FindingCategory.LEGISLATIVE, impact="Affects employers")
        assert ImpactAnalyzer().assess_compliance(finding) == 5

    @pytest.mark.parametrize("priority,days,expected", [
        (Priority.LOW, 3, 10),
        (Priority.LOW, -10, 10),
        (Priority.MEDIUM, 20, 8),
        (Priority.HIGH, 60, 7),
        (Priority.LOW, 60, 5),
        (Priority.MEDIUM, 200, 4),
    ])
    def test_urgency_with_deadline(self, make_finding, priority, days, expected):
        finding = make_finding(
            priority=priority,
            data={"effective_date": (NOW + timedelta(days=days)).isoformat()},
        )
        assert ImpactAnalyzer().calculate_urgency(finding, NOW) == expected

    def test_urgency_reads_deadline_field(self, make_finding):
        finding = make_finding(priority=Priority.LOW, data={"deadline": NOW + timedelta(days=2)})
        assert ImpactAnalyzer().calculate_urgency(finding, NOW) == 10

    def test_urgency_without_deadline(self, make_finding):
        assert ImpactAnalyzer().calculate_urgency(make_finding(priority=Priority.CRITICAL), NOW) == 10
        assert ImpactAnalyzer().calculate_urgency(make_finding(priority=Priority.LOW), NOW) == 2


# ==================== DependencyManager ====================

class TestCycleDetection:

    def test_acyclic_graph(self):
        graph = {"A": ["B", "C"], "B": ["C"], "C": []}
        assert DependencyManager().detect_cycles(graph) == []

    def test_single_cycle(self):
        cycles = DependencyManager().detect_cycles({"A": ["B"], "B": ["C"], "C": ["A"]})
        assert len(cycles) == 1
        assert set(cycles[0]) == {"A", "B", "C"}

    def test_self_loop(self):
        assert DependencyManager().detect_cycles({"A": ["A"]}) == [["A"]]

    def test_cycles_from_every_root(self):
        graph = {"A": ["B"], "B": ["A"], "C": ["D"], "D": ["C"]}
        cycles = DependencyManager().detect_cycles(graph)
        assert sorted(sorted(c) for c in cycles) == [["A", "B"], ["C", "D"]]

    def test_cycle_reached_through_prefix(self):
        cycles = DependencyManager().detect_cycles({"X": ["A"], "A": ["B"], "B": ["A"]})
        assert cycles == [["A", "B"]]

    def test_deep_chain_does_not_recurse(self):
        graph = {f"n{i}": [f"n{i + 1}"] for i in range(5000)}
        assert DependencyManager().detect_cycles(graph) == []


class TestDependencyAnalysis:

    def test_static_dependencies(self, make_finding):
        finding = make_finding(recommended_actions=["Update ROI Calculator"])
        deps = DependencyManager().analyze_dependencies([finding], NOW)
        assert deps == {
            "ROI Calculator": ["Calculation Engine", "Cost Data", "Data Sources", "Success Rates"],
        }

    def test_reverse_dependents_and_cycle(self, make_finding):
        findings = [
            make_finding(recommended_actions=["Update ROI Calculator"]),
            make_finding(recommended_actions=["Update AI Dashboard"], impact="New insights"),
        ]
        manager = DependencyManager()

        deps = manager.analyze_dependencies(findings, NOW)

        assert "AI Dashboard" in deps["ROI Calculator"]
        assert "ROI Calculator" in deps["AI Dashboard"]
        assert manager.detect_cycles(deps) == [["ROI Calculator", "AI Dashboard"]]

    def test_component_vocabulary(self, make_finding):
        manager = DependencyManager()
        finding = make_finding(
            recommended_actions=["Migrate Database schema", "Version the public API"],
            impact="Global comparison view",
        )
        assert manager.extract_components([finding]) == ["Database", "API", "Global Comparator"]

    def test_temporal_edges_follow_urgency(self, make_finding):
        low = make_finding(priority=Priority.LOW)
        critical = make_finding(priority=Priority.CRITICAL)
        findings = [low, critical]

        temporal = DependencyManager().analyze_temporal_dependencies(findings, NOW)

        assert temporal == {f"finding-{low.id}": [f"finding-{critical.id}"]}
        assert findings == [low, critical]

    def test_equal_urgency_has_no_temporal_edge(self, make_finding):
        findings = [make_finding(priority=Priority.HIGH), make_finding(priority=Priority.HIGH)]
        assert DependencyManager().analyze_temporal_dependencies(findings, NOW) == {}

    def test_effective_date_raises_urgency(self, make_finding):
        soon = make_finding(
            priority=Priority.MEDIUM,
            data={"effective_date": (NOW + timedelta(days=20)).isoformat()},
        )
        high = make_finding(priority=Priority.HIGH)

        temporal = DependencyManager().analyze_temporal_dependencies([high, soon], NOW)

        # medium 4 + 5 = 9 > high 7
        assert temporal == {f"finding-{high.id}": [f"finding-{soon.id}"]}

    def test_dependency_graph_projection(self):
        graph = DependencyManager().create_dependency_graph({"A": ["B", "C"], "B": ["C"]})

        assert [n.id for n in graph.nodes] == ["A", "B", "C"]
        assert [(e.source, e.target) for e in graph.edges] == [("B", "A"), ("C", "A"), ("C", "B")]
        assert graph.to_dict()["nodes"][0] == {"id": "A", "label": "A"}


# ==================== ResourceAllocator ====================

class TestResourceAllocation:

    def test_phase_allocation(self):
        phase = Phase(phase_number=1, title="Critical Updates", tasks=[make_task()], duration=1)

        allocated = ResourceAllocator().allocate_phase_resources(phase)

        assert [(r.name, r.quantity) for r in allocated] == [
            ("Developer", 1),
            ("Data Analyst", 1),
            ("Development Server", 1),
        ]
        assert all(r.availability == ResourceAvailability.SCHEDULED for r in allocated)

    def test_testing_phase_gets_qa_and_environments(self):
        phase = Phase(
            phase_number=3,
            title="Testing & Validation",
            tasks=[make_task("Test ROI Calculator", 4, TaskType.FEATURE)],
            duration=3,
        )

        names = {r.name: r.quantity for r in ResourceAllocator().allocate_phase_resources(phase)}

        assert names["QA Engineer"] == 1
        assert names["Test Environment"] == 2
        assert "Data Analyst" not in names

    def test_developers_capped(self):
        phase = Phase(1, "Critical Updates", tasks=[make_task(hours=100, task_type=TaskType.FEATURE)], duration=1)
        plan = ResourceAllocator().allocate([phase])

        developer = plan.phases[1][0]
        assert developer.quantity == 3
        assert plan.conflicts == []
        assert plan.utilization["Developer"] == pytest.approx(100.0)

    def test_conflict_when_catalogue_shrinks(self):
        allocator = ResourceAllocator()
        assert allocator.update_resource_availability("Developer", 1) is True
        phase = Phase(1, "Critical Updates", tasks=[make_task(hours=100)], duration=1)

        plan = allocator.allocate([phase])

        conflict = next(c for c in plan.conflicts if c.resource == "Developer")
        assert (conflict.required, conflict.available) == (3, 1)
        assert conflict.resolution == "Consider extending timeline or hiring contractors"

    def test_conflict_iff_quantity_exceeds_catalogue(self):
        allocator = ResourceAllocator()
        allocator.update_resource_availability("Developer", 3)
        phase = Phase(1, "Critical Updates", tasks=[make_task(hours=100)], duration=1)
        assert allocator.allocate([phase]).conflicts == []

        allocator.update_resource_availability("Developer", 2)
        conflicts = allocator.allocate([phase]).conflicts
        assert [c.resolution for c in conflicts] == ["Optimize task allocation or implement overtime"]

    def test_system_resource_conflict(self):
        allocator = ResourceAllocator()
        allocator.update_resource_availability("Test Environment", 1)
        phase = Phase(3, "Testing & Validation", tasks=[make_task("Test X", 4, TaskType.FEATURE)], duration=3)

        conflicts = allocator.allocate([phase]).conflicts

        assert [c.resource for c in conflicts] == ["Test Environment"]
        assert conflicts[0].resolution == "Provision additional cloud resources or virtualize environments"

    def test_total_resources_take_maximum(self):
        phases = [
            Phase(1, "Critical Updates", tasks=[make_task(hours=30)], duration=1),
            Phase(2, "Feature Updates", tasks=[make_task(hours=2)], duration=1),
        ]
        totals = {r.name: r.quantity for r in ResourceAllocator().allocate(phases).total_resources}
        assert totals["Developer"] == 3
        assert totals["Development Server"] == 1

    def test_optimize_allocation_clamps_copy(self):
        allocator = ResourceAllocator()
        allocator.update_resource_availability("Developer", 1)
        plan = allocator.allocate([Phase(1, "Critical Updates", tasks=[make_task(hours=100)], duration=1)])

        optimized = allocator.optimize_allocation(plan)

        assert optimized.phases[1][0].quantity == 1
        assert plan.phases[1][0].quantity == 3

    def test_calculate_cost(self):
        resources = [
            Resource(ResourceType.HUMAN, "Developer", 2),
            Resource(ResourceType.HUMAN, "QA Engineer", 1),
            Resource(ResourceType.EXTERNAL, "Consultant", 5),
        ]
        assert ResourceAllocator.calculate_cost(resources) == 150 * 40 * 2 + 100 * 40

    def test_unknown_resource_names(self):
        allocator = ResourceAllocator()
        assert allocator.get_resource_availability("Wizard") is None
        assert allocator.update_resource_availability("Wizard", 4) is False
        assert allocator.get_resource_availability("QA Engineer").quantity == 2
