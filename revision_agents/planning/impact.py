"""
Impact Analyzer - Gewichtete Bewertung einer Finding-Batch.

Vier Dimensionen auf einer Skala 0-10, gemittelt über die Batch:
User Impact (40%), Data Accuracy (30%), Compliance (20%), Competitive (10%).
"""

import math
from datetime import datetime

from ..models import Finding, FindingCategory, ImpactScore, Priority, coerce_datetime

WEIGHTS = {
    "user_impact": 0.4,
    "data_accuracy": 0.3,
    "compliance": 0.2,
    "competitive": 0.1,
}

USER_IMPACT_BY_PRIORITY = {
    Priority.CRITICAL: 10,
    Priority.HIGH: 7,
    Priority.MEDIUM: 5,
    Priority.LOW: 3,
}

URGENCY_BY_PRIORITY = {
    Priority.CRITICAL: 10,
    Priority.HIGH: 7,
    Priority.MEDIUM: 4,
    Priority.LOW: 2,
}


def days_until(deadline: datetime, now: datetime | None = None) -> int:
    """Ganze Tage bis zur Deadline, aufgerundet (negativ wenn überfällig)."""
    delta = deadline - (now or datetime.now())
    return math.ceil(delta.total_seconds() / 86400)


class ImpactAnalyzer:
    """Bewertet Findings nach Impact und Dringlichkeit."""

    def __init__(self, weights: dict[str, float] | None = None):
        self.weights = weights or dict(WEIGHTS)

    def analyze(self, findings: list[Finding]) -> ImpactScore:
        """
        Mittelt die Einzelbewertungen über die Batch.

        Eine leere Batch ergibt überall 0.
        """
        score = ImpactScore()
        if not findings:
            return score

        count = len(findings)
        score.user_impact = sum(self.assess_user_impact(f) for f in findings) / count
        score.data_accuracy = sum(self.assess_data_accuracy(f) for f in findings) / count
        score.compliance = sum(self.assess_compliance(f) for f in findings) / count
        score.competitive = sum(self.assess_competitive(f) for f in findings) / count

        score.total = (
            score.user_impact * self.weights["user_impact"]
            + score.data_accuracy * self.weights["data_accuracy"]
            + score.compliance * self.weights["compliance"]
            + score.competitive * self.weights["competitive"]
        )
        return score

    def assess_user_impact(self, finding: Finding) -> float:
        impact_text = finding.impact.lower()
        impact = 0

        # Kern-Funktionalität
        if "roi" in impact_text or "calculator" in impact_text:
            impact += 8
        # User Experience
        if "user" in impact_text or "experience" in impact_text:
            impact += 6

        impact += USER_IMPACT_BY_PRIORITY.get(finding.priority, 0)
        return min(impact / 2, 10)

    def assess_data_accuracy(self, finding: Finding) -> float:
        if finding.category != FindingCategory.SCIENTIFIC:
            return 0.0

        accuracy = finding.confidence_score * 10
        data = finding.data or {}
        if "success_rate" in data or "cost" in data or "roi" in data:
            accuracy = min(accuracy + 3, 10)
        return accuracy

    def assess_compliance(self, finding: Finding) -> float:
        if finding.category != FindingCategory.LEGISLATIVE:
            return 0.0

        impact_text = finding.impact.lower()
        if any(word in impact_text for word in ("mandate", "require", "compliance")):
            compliance = 10
        else:
            compliance = 5

        if (finding.data or {}).get("jurisdiction") == "federal":
            compliance = min(compliance + 2, 10)
        return compliance

    def assess_competitive(self, finding: Finding) -> float:
        if finding.category != FindingCategory.MARKET:
            return 0.0

        impact_text = finding.impact.lower()
        competitive = 5
        if "feature" in impact_text or "parity" in impact_text:
            competitive += 3
        if "opportunity" in impact_text or "advantage" in impact_text:
            competitive += 2
        return min(competitive, 10)

    def calculate_urgency(self, finding: Finding, now: datetime | None = None) -> int:
        """
        Dringlichkeit 0-10 aus Priorität und Deadline.

        Deadline < 7 Tage → 10, < 30 Tage → mind. 8, < 90 Tage → mind. 5.
        """
        urgency = URGENCY_BY_PRIORITY.get(finding.priority, 0)

        data = finding.data or {}
        deadline = coerce_datetime(data.get("effective_date") or data.get("deadline"))
        if deadline is not None:
            remaining = days_until(deadline, now)
            if remaining < 7:
                urgency = 10
            elif remaining < 30:
                urgency = max(urgency, 8)
            elif remaining < 90:
                urgency = max(urgency, 5)

        return urgency
