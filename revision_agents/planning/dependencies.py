"""
Dependency Manager - Komponenten-Abhängigkeiten einer Finding-Batch.

Drei Arten von Kanten:
  - statisch: hart kodierte Abhängigkeiten pro Komponente
  - reverse: andere betroffene Komponenten, die von dieser abhängen
  - temporal: "dringender zuerst" zwischen Findings (finding-<id> Knoten)
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime

from ..models import Finding, Priority, coerce_datetime

logger = logging.getLogger(__name__)

DependencyMap = dict[str, list[str]]

COMPONENT_DEPENDENCIES: dict[str, set[str]] = {
    "ROI Calculator": {"Data Sources", "Calculation Engine", "Success Rates", "Cost Data"},
    "Policy Tracker": {"Legislative Database", "Compliance Engine", "Notification System"},
    "Global Comparator": {"International Data", "Market Analysis", "Currency Conversion"},
    "AI Dashboard": {"ROI Calculator", "Policy Tracker", "Analytics Engine", "Visualization"},
}

# Reihenfolge = Match-Priorität
ACTION_COMPONENTS = [
    "ROI Calculator",
    "Policy Tracker",
    "Global Comparator",
    "AI Dashboard",
    "Database",
    "API",
]

COMPONENT_KEYWORDS: dict[str, list[str]] = {
    "ROI Calculator": ["roi", "calculator", "calculation"],
    "Policy Tracker": ["policy", "legislation", "compliance"],
    "Global Comparator": ["global", "international", "comparison"],
    "AI Dashboard": ["dashboard", "analytics", "insights"],
}

TEMPORAL_URGENCY = {
    Priority.CRITICAL: 10,
    Priority.HIGH: 7,
    Priority.MEDIUM: 4,
    Priority.LOW: 1,
}


@dataclass(frozen=True)
class GraphNode:
    id: str
    label: str

    def to_dict(self) -> dict:
        return {"id": self.id, "label": self.label}


@dataclass(frozen=True)
class GraphEdge:
    source: str
    target: str

    def to_dict(self) -> dict:
        return {"source": self.source, "target": self.target}


@dataclass
class DependencyGraph:
    """Projektion einer DependencyMap für die Visualisierung."""
    nodes: list[GraphNode]
    edges: list[GraphEdge]

    def to_dict(self) -> dict:
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
        }


def finding_node(finding: Finding) -> str:
    return f"finding-{finding.id}"


class DependencyManager:
    """Analysiert Abhängigkeiten zwischen betroffenen Komponenten."""

    def __init__(self, component_dependencies: dict[str, set[str]] | None = None):
        source = component_dependencies if component_dependencies is not None else COMPONENT_DEPENDENCIES
        self.component_dependencies = {name: set(deps) for name, deps in source.items()}

    # ===== ANALYSIS =====

    def analyze_dependencies(self, findings: list[Finding], now: datetime | None = None) -> DependencyMap:
        """
        Baut die DependencyMap einer Batch.

        Args:
            findings: Die Batch (wird nicht umsortiert)
            now: Referenzzeit für Deadlines

        Returns:
            Komponente bzw. finding-<id> → Liste der Knoten, von denen sie abhängt
        """
        dependencies: DependencyMap = {}
        components = self.extract_components(findings)

        for component in components:
            deps = self.get_component_dependencies(component)
            dependents = self.find_affected_components(component, components)
            if deps or dependents:
                dependencies[component] = deps + dependents

        for key, value in self.analyze_temporal_dependencies(findings, now).items():
            dependencies.setdefault(key, []).extend(value)

        return dependencies

    def extract_components(self, findings: list[Finding]) -> list[str]:
        """Betroffene Komponenten in Reihenfolge des ersten Auftretens."""
        components: list[str] = []

        def add(component: str | None) -> None:
            if component and component not in components:
                components.append(component)

        for finding in findings:
            for action in finding.recommended_actions:
                add(self.component_from_action(action))
            add(self.component_from_text(finding.impact))

        return components

    @staticmethod
    def component_from_action(action: str) -> str | None:
        lowered = action.lower()
        for component in ACTION_COMPONENTS:
            if component.lower() in lowered:
                return component
        return None

    @staticmethod
    def component_from_text(text: str) -> str | None:
        lowered = text.lower()
        for component, keywords in COMPONENT_KEYWORDS.items():
            if any(keyword in lowered for keyword in keywords):
                return component
        return None

    def get_component_dependencies(self, component: str) -> list[str]:
        return sorted(self.component_dependencies.get(component, set()))

    def find_affected_components(self, component: str, all_components: list[str]) -> list[str]:
        """Andere Komponenten der Batch, die von `component` abhängen."""
        return [
            other for other in all_components
            if other != component and component in self.component_dependencies.get(other, set())
        ]

    def analyze_temporal_dependencies(self, findings: list[Finding], now: datetime | None = None) -> DependencyMap:
        """
        "Dringender zuerst" als Kanten.

        Sortiert eine Kopie absteigend nach Dringlichkeit; fällt die
        Dringlichkeit zwischen Nachbarn strikt, hängt der weniger
        dringende vom dringenderen ab.
        """
        now = now or datetime.now()
        scored = sorted(
            ((self.calculate_urgency(f, now), f) for f in findings),
            key=lambda pair: pair[0],
            reverse=True,
        )

        temporal: DependencyMap = {}
        for (current_urgency, current), (next_urgency, following) in zip(scored, scored[1:]):
            if current_urgency > next_urgency:
                temporal.setdefault(finding_node(following), []).append(finding_node(current))
        return temporal

    @staticmethod
    def calculate_urgency(finding: Finding, now: datetime | None = None) -> int:
        urgency = TEMPORAL_URGENCY.get(finding.priority, 0)

        effective_date = coerce_datetime((finding.data or {}).get("effective_date"))
        if effective_date is not None:
            delta = effective_date - (now or datetime.now())
            remaining = math.ceil(delta.total_seconds() / 86400)
            if remaining < 30:
                urgency += 5
            elif remaining < 90:
                urgency += 2

        return urgency

    # ===== GRAPH =====

    def create_dependency_graph(self, dependencies: DependencyMap) -> DependencyGraph:
        """Knoten eindeutig nach id, Kanten jeweils dep → key."""
        nodes: list[GraphNode] = []
        edges: list[GraphEdge] = []
        seen: set[str] = set()

        def add_node(node_id: str) -> None:
            if node_id not in seen:
                seen.add(node_id)
                nodes.append(GraphNode(id=node_id, label=node_id))

        for key, deps in dependencies.items():
            add_node(key)
            for dep in deps:
                add_node(dep)
                edges.append(GraphEdge(source=dep, target=key))

        return DependencyGraph(nodes=nodes, edges=edges)

    def detect_cycles(self, dependencies: DependencyMap) -> list[list[str]]:
        """
        Findet Zyklen per iterativer Tiefensuche.

        Jeder Frame trägt seinen eigenen Pfad als Tuple. Trifft die Suche
        auf einen Knoten im aktuellen Stack, wird der Pfad ab diesem
        Knoten als Zyklus gemeldet. Jeder Knoten wird nur einmal betreten.
        """
        cycles: list[list[str]] = []
        visited: set[str] = set()
        on_stack: set[str] = set()

        for root in dependencies:
            if root in visited:
                continue

            visited.add(root)
            on_stack.add(root)
            stack = [(root, (root,), iter(dependencies.get(root, [])))]

            while stack:
                node, path, pending = stack[-1]
                dep = next(pending, None)

                if dep is None:
                    on_stack.discard(node)
                    stack.pop()
                elif dep not in visited:
                    visited.add(dep)
                    on_stack.add(dep)
                    stack.append((dep, path + (dep,), iter(dependencies.get(dep, []))))
                elif dep in on_stack:
                    cycles.append(list(path[path.index(dep):]))

        if cycles:
            logger.debug("Detected %d dependency cycle(s)", len(cycles))
        return cycles
