"""
Resource Allocator - Verteilt einen festen Ressourcen-Katalog auf Phasen.

Konflikte (Allokation > Katalog) werden als Daten gemeldet, nie geworfen.
Jeder allocate()-Aufruf arbeitet auf einem Snapshot des Katalogs, damit
update_resource_availability() eine laufende Allokation nicht zerreißt.
"""

import copy
import logging
import math

from ..models import (
    Phase, Resource, ResourceAvailability, ResourceConflict, ResourcePlan,
    ResourceType, TaskType,
)

logger = logging.getLogger(__name__)

# Anzeigename → Katalog-Key
RESOURCE_KEYS = {
    "Developer": "developer",
    "QA Engineer": "qa-engineer",
    "Data Analyst": "data-analyst",
    "Development Server": "dev-server",
    "Test Environment": "test-environment",
}

HOURLY_RATES = {
    "Developer": 150,
    "QA Engineer": 100,
    "Data Analyst": 120,
    "Development Server": 50,
    "Test Environment": 30,
}

HOURS_PER_WEEK = 40
WORKDAYS_PER_WEEK = 5
MAX_DEVELOPERS = 3
CONTRACTOR_THRESHOLD = 1.5


def default_catalogue() -> dict[str, Resource]:
    return {
        "developer": Resource(ResourceType.HUMAN, "Developer", 3),
        "qa-engineer": Resource(ResourceType.HUMAN, "QA Engineer", 2),
        "data-analyst": Resource(ResourceType.HUMAN, "Data Analyst", 1),
        "dev-server": Resource(ResourceType.SYSTEM, "Development Server", 2),
        "test-environment": Resource(ResourceType.SYSTEM, "Test Environment", 3),
    }


def is_testing_phase(phase: Phase) -> bool:
    return "test" in phase.title.lower() or phase.phase_number == 3


def _scheduled(resource_type: ResourceType, name: str, quantity: int) -> Resource:
    return Resource(resource_type, name, quantity, ResourceAvailability.SCHEDULED)


class ResourceAllocator:
    """Ordnet Phasen Ressourcen aus dem Katalog zu."""

    def __init__(self, catalogue: dict[str, Resource] | None = None):
        self.available_resources = catalogue if catalogue is not None else default_catalogue()

    def allocate(self, phases: list[Phase]) -> ResourcePlan:
        """
        Allokiert Ressourcen für alle Phasen.

        Returns:
            ResourcePlan mit Allokation pro Phase, Gesamtbedarf,
            Konflikten und Auslastung in Prozent
        """
        snapshot = copy.deepcopy(self.available_resources)
        plan = ResourcePlan()

        for phase in phases:
            allocated = self.allocate_phase_resources(phase)
            plan.phases[phase.phase_number] = allocated
            plan.conflicts.extend(self.check_resource_conflicts(phase, allocated, snapshot))

        plan.total_resources = self.calculate_total_resources(plan.phases)
        plan.utilization = self.calculate_utilization(plan.phases, snapshot)

        if plan.conflicts:
            logger.warning(
                "Resource conflicts: %s",
                ", ".join(f"phase {c.phase} {c.resource} {c.required}/{c.available}" for c in plan.conflicts),
            )
        return plan

    def allocate_phase_resources(self, phase: Phase) -> list[Resource]:
        resources = []
        testing = is_testing_phase(phase)

        # 40h pro Woche, Dauer in Arbeitstagen
        capacity_per_developer = HOURS_PER_WEEK * max(phase.duration, 1) / WORKDAYS_PER_WEEK
        developers_needed = math.ceil(phase.total_hours / capacity_per_developer)
        resources.append(_scheduled(ResourceType.HUMAN, "Developer", min(developers_needed, MAX_DEVELOPERS)))

        if testing:
            resources.append(_scheduled(ResourceType.HUMAN, "QA Engineer", 1))

        has_data_tasks = any(
            task.type == TaskType.DATA_UPDATE or "data" in task.title.lower()
            for task in phase.tasks
        )
        if has_data_tasks:
            resources.append(_scheduled(ResourceType.HUMAN, "Data Analyst", 1))

        resources.append(_scheduled(ResourceType.SYSTEM, "Development Server", 1))

        if testing:
            resources.append(_scheduled(ResourceType.SYSTEM, "Test Environment", 2))

        return resources

    def check_resource_conflicts(
        self,
        phase: Phase,
        allocated: list[Resource],
        catalogue: dict[str, Resource] | None = None,
    ) -> list[ResourceConflict]:
        """Ein Konflikt pro Ressource, deren Menge den Katalog übersteigt."""
        catalogue = catalogue if catalogue is not None else self.available_resources
        conflicts = []

        for resource in allocated:
            available = catalogue.get(RESOURCE_KEYS.get(resource.name, ""))
            if available and resource.quantity > available.quantity:
                conflicts.append(ResourceConflict(
                    phase=phase.phase_number,
                    resource=resource.name,
                    required=resource.quantity,
                    available=available.quantity,
                    resolution=self.suggest_resolution(resource, available),
                ))
        return conflicts

    @staticmethod
    def suggest_resolution(required: Resource, available: Resource) -> str:
        if required.type == ResourceType.HUMAN:
            if required.quantity > available.quantity * CONTRACTOR_THRESHOLD:
                return "Consider extending timeline or hiring contractors"
            return "Optimize task allocation or implement overtime"
        if required.type == ResourceType.SYSTEM:
            return "Provision additional cloud resources or virtualize environments"
        return "Review resource requirements and adjust plan"

    @staticmethod
    def calculate_total_resources(phase_resources: dict[int, list[Resource]]) -> list[Resource]:
        """Maximaler Bedarf pro (Typ, Name) über alle Phasen."""
        totals: dict[tuple[ResourceType, str], Resource] = {}
        for resources in phase_resources.values():
            for resource in resources:
                key = (resource.type, resource.name)
                if key in totals:
                    totals[key].quantity = max(totals[key].quantity, resource.quantity)
                else:
                    totals[key] = copy.copy(resource)
        return list(totals.values())

    def calculate_utilization(
        self,
        phase_resources: dict[int, list[Resource]],
        catalogue: dict[str, Resource] | None = None,
    ) -> dict[str, float]:
        """Höchste Auslastung pro Ressource in Prozent des Katalogs."""
        catalogue = catalogue if catalogue is not None else self.available_resources
        utilization: dict[str, float] = {}

        for resources in phase_resources.values():
            for resource in resources:
                available = catalogue.get(RESOURCE_KEYS.get(resource.name, ""))
                if not available or available.quantity <= 0:
                    continue
                usage = resource.quantity / available.quantity * 100
                utilization[resource.name] = max(utilization.get(resource.name, 0.0), usage)

        return utilization

    @staticmethod
    def optimize_allocation(plan: ResourcePlan) -> ResourcePlan:
        """
        Kürzt konfliktbehaftete Allokationen auf die verfügbare Menge.

        Arbeitet auf einer Kopie. Verteilt nicht zwischen Phasen um.
        """
        optimized = copy.deepcopy(plan)
        for conflict in optimized.conflicts:
            for resource in optimized.phases.get(conflict.phase, []):
                if resource.name == conflict.resource:
                    resource.quantity = conflict.available
                    resource.availability = ResourceAvailability.SCHEDULED
                    break
        return optimized

    @staticmethod
    def calculate_cost(resources: list[Resource]) -> float:
        """Wochenkosten: Stundensatz × 40h × Menge. Unbekannte Namen kosten 0."""
        return sum(
            HOURLY_RATES.get(resource.name, 0) * HOURS_PER_WEEK * resource.quantity
            for resource in resources
        )

    def get_resource_availability(self, resource_name: str) -> Resource | None:
        key = RESOURCE_KEYS.get(resource_name)
        return self.available_resources.get(key) if key else None

    def update_resource_availability(self, resource_name: str, quantity: int) -> bool:
        """
        Setzt die verfügbare Menge einer Katalog-Ressource.

        Returns:
            False wenn der Name unbekannt ist
        """
        resource = self.get_resource_availability(resource_name)
        if resource is None:
            logger.warning("Unknown resource: %s", resource_name)
            return False
        resource.quantity = quantity
        logger.info("Resource %s availability set to %d", resource_name, quantity)
        return True
