"""
Scanner - Pluggable Producer für den Research Agent.

Vertrag: ein Scanner liefert zu einem Zeitpunkt eine Liste roher
Kandidaten-Findings. Die Default-Scanner arbeiten mit festen Fixture-Daten
und machen keine Netzwerk-Calls.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Protocol, runtime_checkable
from uuid import uuid4

from ..models import Finding, FindingCategory, Priority

logger = logging.getLogger(__name__)


def generate_finding_id() -> str:
    return f"F-{int(time.time() * 1000)}-{uuid4().hex[:9]}"


@runtime_checkable
class Scanner(Protocol):
    """Ein Producer von Kandidaten-Findings."""
    name: str

    async def scan(self, now: datetime) -> list[Finding]:
        ...


# ===== SCIENTIFIC =====

class ScientificScanner:
    """Neue Studien zu Erfolgsraten (PubMed u.ä.)."""

    name = "scientific"

    async def scan(self, now: datetime) -> list[Finding]:
        return [
            Finding(
                id=generate_finding_id(),
                source="PubMed",
                category=FindingCategory.SCIENTIFIC,
                title="Updated IVF Success Rates 2025",
                description="New study shows improved success rates for IVF treatments",
                key_points=[
                    "Success rate increased to 55% for women under 35",
                    "Frozen embryo transfers show 5% higher success",
                    "PGT-A testing improves outcomes by 10%",
                ],
                impact="Update ROI calculator success rate parameters",
                priority=Priority.HIGH,
                confidence_score=0.95,
                data={
                    "success_rate_under_35": 0.55,
                    "success_rate_35_37": 0.42,
                    "success_rate_38_40": 0.31,
                    "success_rate_over_40": 0.12,
                },
                recommended_actions=[
                    "Update success rate constants in ROI calculator",
                    "Revise age-based calculations",
                    "Update documentation with new statistics",
                ],
                validation_required=True,
                created_at=now,
            )
        ]


# ===== LEGISLATIVE =====

@dataclass
class LegislativeUpdate:
    """Ein verfolgtes Gesetzesvorhaben."""
    id: str
    title: str
    description: str
    bill_number: str
    jurisdiction: str  # "federal" | "state"
    status: str
    impact: str
    key_points: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)
    actions: list[str] = field(default_factory=list)
    effective_date: datetime | None = None
    state: str | None = None


FEDERAL_BILLS = [
    LegislativeUpdate(
        id="FED-2025-001",
        title="Veterans Fertility Treatment Act",
        description="Expands VA coverage for fertility treatments",
        bill_number="HR-1234",
        jurisdiction="federal",
        status="Passed House",
        effective_date=datetime(2025, 10, 1),
        key_points=[
            "Covers 3 IVF cycles for veterans",
            "Includes medication coverage",
            "Removes previous restrictions on surrogacy",
        ],
        impact="Major expansion of veteran fertility benefits",
        data={
            "estimated_beneficiaries": 50000,
            "annual_cost": "$500M",
            "bipartisan_support": True,
        },
        actions=[
            "Update veteran-specific calculations",
            "Add VA coverage to policy tracker",
            "Create veteran eligibility checker",
        ],
    ),
]

STATE_BILLS = {
    "CA": [
        LegislativeUpdate(
            id="CA-2025-001",
            title="California Fertility Equity Act",
            description="Mandates fertility coverage for all employers with 50+ employees",
            bill_number="SB-729",
            jurisdiction="state",
            state="CA",
            status="Signed into law",
            effective_date=datetime(2025, 7, 1),
            key_points=[
                "Requires coverage of egg freezing",
                "Mandates 2 IVF cycles minimum",
                "Includes LGBTQ+ family building",
            ],
            impact="Affects all California employers with 50+ employees",
            data={
                "affected_employers": 15000,
                "covered_employees": 2000000,
                "implementation_deadline": "2025-07-01",
            },
            actions=[
                "Update California compliance requirements",
                "Modify ROI calculator for CA employers",
                "Add compliance checker for CA",
            ],
        ),
    ],
}

TRACKED_STATES = ["CA", "NY", "IL", "MA", "NJ"]


class LegislativeTracker:
    """
    Verfolgt Bundes- und Landesgesetze.

    Liefert nur neue oder im Status geänderte Bills. Zusätzlich
    Query-Methoden für Downstream-Collaborators (Deadlines, Bill Status).
    """

    name = "legislative"

    def __init__(
        self,
        federal_bills: list[LegislativeUpdate] | None = None,
        state_bills: dict[str, list[LegislativeUpdate]] | None = None,
    ):
        self.federal_bills = federal_bills if federal_bills is not None else FEDERAL_BILLS
        self.state_bills = state_bills if state_bills is not None else STATE_BILLS
        self.tracked_bills: dict[str, LegislativeUpdate] = {}
        self.last_check: datetime | None = None

    async def check_updates(self, now: datetime | None = None) -> list[LegislativeUpdate]:
        """Neue oder geänderte Bills seit dem letzten Check."""
        candidates = list(self.federal_bills)
        for state in TRACKED_STATES:
            candidates.extend(self.state_bills.get(state, []))

        updates = []
        for update in candidates:
            existing = self.tracked_bills.get(update.id)
            if existing is None or existing.status != update.status:
                self.tracked_bills[update.id] = update
                updates.append(update)

        self.last_check = now or datetime.now()
        logger.debug("Legislative check: %d new or changed bills", len(updates))
        return updates

    async def scan(self, now: datetime) -> list[Finding]:
        updates = await self.check_updates(now)
        return [
            Finding(
                id=generate_finding_id(),
                source="Congress.gov",
                category=FindingCategory.LEGISLATIVE,
                title=update.title,
                description=update.description,
                key_points=update.key_points,
                impact=update.impact,
                priority=self.assess_priority(update, now),
                confidence_score=1.0,
                data=update.data,
                recommended_actions=update.actions,
                validation_required=False,
                created_at=now,
            )
            for update in updates
        ]

    @staticmethod
    def assess_priority(update: LegislativeUpdate, now: datetime) -> Priority:
        if update.effective_date and abs((update.effective_date - now).days) < 30:
            return Priority.CRITICAL
        impact = update.impact.lower()
        if "mandate" in impact or "compliance" in impact:
            return Priority.HIGH
        if update.jurisdiction == "federal":
            return Priority.HIGH
        return Priority.MEDIUM

    def track_bill(self, bill: LegislativeUpdate) -> None:
        self.tracked_bills[bill.id] = bill

    def get_bill_status(self, bill_id: str) -> LegislativeUpdate | None:
        return self.tracked_bills.get(bill_id)

    def get_upcoming_deadlines(
        self, within_days: int = 30, now: datetime | None = None
    ) -> list[LegislativeUpdate]:
        """Bills mit Inkrafttreten innerhalb der nächsten Tage (inkl. überfälliger), sortiert."""
        cutoff = (now or datetime.now()) + timedelta(days=within_days)
        upcoming = [
            bill for bill in self.tracked_bills.values()
            if bill.effective_date and bill.effective_date <= cutoff
        ]
        return sorted(upcoming, key=lambda b: b.effective_date)


# ===== MARKET =====

@dataclass
class MarketTrend:
    """Ein analysierter Markttrend."""
    id: str
    source: str
    title: str
    description: str
    business_impact: str
    significance: float  # 0-1
    confidence: float  # 0-1
    insights: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)
    recommendations: list[str] = field(default_factory=list)


MARKET_TRENDS = [
    MarketTrend(
        id="TREND-ADOPT-2025-001",
        source="Mercer Survey 2025",
        title="Accelerating Fertility Benefit Adoption",
        description="Employer adoption of fertility benefits growing 13.5% YoY",
        insights=[
            "Large employers (1000+) leading adoption at 65%",
            "Tech and finance sectors near saturation (85%+)",
            "Healthcare and retail showing rapid growth",
            "Small businesses (<100) beginning to adopt",
        ],
        business_impact="Market expansion opportunities in mid-size employers",
        significance=0.85,
        confidence=0.92,
        data={
            "current_rate": 0.42,
            "previous_rate": 0.37,
            "growth_rate": 0.135,
            "large_employer_rate": 0.65,
            "small_employer_rate": 0.28,
        },
        recommendations=[
            "Target mid-size employers (100-1000 employees)",
            "Develop simplified packages for small businesses",
            "Focus on healthcare and retail sectors",
        ],
    ),
    MarketTrend(
        id="TREND-PRICE-2025-001",
        source="FertilityIQ Market Report",
        title="Fertility Treatment Costs Stabilizing",
        description="Treatment costs increasing 5% annually, below medical inflation",
        insights=[
            "IVF costs stabilizing around $30-35k per cycle",
            "Medication costs remain volatile",
            "More clinics offering package pricing",
        ],
        business_impact="ROI calculations remain favorable for employers",
        significance=0.7,
        confidence=0.88,
        data={
            "average_ivf_cost": 32000,
            "yoy_increase": 0.05,
            "egg_freezing_cost": 12000,
        },
        recommendations=[
            "Update cost assumptions in ROI calculator",
            "Emphasize value of bulk purchasing",
        ],
    ),
    MarketTrend(
        id="TREND-COMP-CARROT-2025",
        source="Industry Intelligence",
        title="Carrot Fertility Expands AI Capabilities",
        description="Carrot launches AI-powered fertility coaching and prediction",
        insights=[
            "AI coach provides 24/7 personalized guidance",
            "Success prediction algorithm claims 85% accuracy",
            "Integration with wearables for cycle tracking",
        ],
        business_impact="AI becoming table stakes for fertility benefits",
        significance=0.8,
        confidence=0.85,
        data={
            "feature_launch": "2025-01",
            "adoption_rate": 0.3,
            "user_satisfaction": 4.2,
            "cost_reduction": 0.15,
        },
        recommendations=[
            "Evaluate AI integration opportunities",
            "Consider partnership with AI providers",
            "Develop competitive AI roadmap",
        ],
    ),
    MarketTrend(
        id="TREND-DEMAND-2025-001",
        source="SHRM Benefits Survey",
        title="Employee Demand at All-Time High",
        description="68% of employees want fertility benefits from employers",
        insights=[
            "65% would switch jobs for fertility benefits",
            "Millennials and Gen Z driving demand",
            "LGBTQ+ employees highly value inclusive benefits",
        ],
        business_impact="Critical for talent attraction and retention",
        significance=0.9,
        confidence=0.95,
        data={
            "employee_interest": 0.68,
            "would_switch_jobs": 0.65,
            "usage_rate": 0.035,
            "satisfaction_rate": 0.89,
        },
        recommendations=[
            "Emphasize retention value in ROI calculations",
            "Highlight competitive advantage for recruitment",
            "Include diversity and inclusion messaging",
        ],
    ),
]

MARKET_SHARE = {
    "Progyny": 0.35,
    "Carrot": 0.25,
    "Kindbody": 0.15,
    "Maven": 0.10,
    "WINFertility": 0.08,
    "Others": 0.07,
}

MIN_TREND_SIGNIFICANCE = 0.5
MIN_FINDING_SIGNIFICANCE = 0.7


class MarketAnalyzer:
    """
    Analysiert Markttrends und Wettbewerber.

    Hält historische Datenpunkte und Wettbewerber-Infos im Speicher.
    """

    name = "market"

    def __init__(self, trends: list[MarketTrend] | None = None):
        self.trends = trends if trends is not None else MARKET_TRENDS
        self.historical_data: dict[str, list[tuple[datetime, Any]]] = {}
        self.competitor_data: dict[str, dict[str, Any]] = {}

    async def analyze_trends(self) -> list[MarketTrend]:
        """Trends mit Significance > 0.5, absteigend sortiert."""
        relevant = [t for t in self.trends if t.significance > MIN_TREND_SIGNIFICANCE]
        return sorted(relevant, key=lambda t: t.significance, reverse=True)

    async def scan(self, now: datetime) -> list[Finding]:
        trends = await self.analyze_trends()
        return [
            Finding(
                id=generate_finding_id(),
                source=trend.source,
                category=FindingCategory.MARKET,
                title=trend.title,
                description=trend.description,
                key_points=trend.insights,
                impact=trend.business_impact,
                priority=Priority.HIGH if trend.significance > 0.9 else Priority.MEDIUM,
                confidence_score=trend.confidence,
                data=trend.data,
                recommended_actions=trend.recommendations,
                validation_required=True,
                created_at=now,
            )
            for trend in trends
            if trend.significance > MIN_FINDING_SIGNIFICANCE
        ]

    def add_historical_data(self, metric: str, value: Any, at: datetime | None = None) -> None:
        self.historical_data.setdefault(metric, []).append((at or datetime.now(), value))

    def get_historical_trend(self, metric: str, days: int = 30, now: datetime | None = None) -> list[Any]:
        cutoff = (now or datetime.now()) - timedelta(days=days)
        return [value for at, value in self.historical_data.get(metric, []) if at > cutoff]

    def update_competitor_data(self, competitor: str, data: dict[str, Any]) -> None:
        merged = {**self.competitor_data.get(competitor, {}), **data}
        merged["last_updated"] = datetime.now()
        self.competitor_data[competitor] = merged

    def get_market_share(self) -> dict[str, float]:
        return dict(MARKET_SHARE)


# ===== COMPETITORS =====

COMPETITOR_DIGEST = {
    "carrot_fertility": {
        "new_features": ["AI-powered fertility coaching"],
        "pricing_changes": {"enterprise": "+5%"},
        "market_expansion": ["Canada", "UK"],
    },
    "progyny": {
        "new_partnerships": ["Anthem", "Cigna"],
        "service_updates": ["Expanded surrogacy support"],
    },
}


class CompetitorScanner:
    """Quartalsweiser Überblick über Features und Partnerschaften der Wettbewerber."""

    name = "competitor"

    def __init__(self, digest: dict[str, dict[str, Any]] | None = None):
        self.digest = digest if digest is not None else COMPETITOR_DIGEST

    async def scan(self, now: datetime) -> list[Finding]:
        if not self.digest:
            return []
        return [
            Finding(
                id=generate_finding_id(),
                source="Market Intelligence",
                category=FindingCategory.MARKET,
                title="Competitor Updates Q1 2025",
                description="Key competitors have announced new features and partnerships",
                key_points=[
                    "Carrot Fertility launches AI coaching",
                    "Progyny expands insurance partnerships",
                    "Market seeing 5% average price increase",
                ],
                impact="Consider feature parity and pricing strategy",
                priority=Priority.MEDIUM,
                confidence_score=0.85,
                data=self.digest,
                recommended_actions=[
                    "Evaluate AI integration opportunities",
                    "Review pricing competitiveness",
                    "Consider partnership expansion",
                ],
                validation_required=False,
                created_at=now,
            )
        ]


def default_scanners() -> list[Scanner]:
    """Die vier Standard-Scanner des Research Agents."""
    return [
        ScientificScanner(),
        LegislativeTracker(),
        MarketAnalyzer(),
        CompetitorScanner(),
    ]
