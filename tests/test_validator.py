"""
Data Validator Tests
"""

from datetime import datetime, timedelta, timezone

import pytest

from revision_agents.models import FindingCategory
from revision_agents.research.validator import DataValidator, ValueRange


@pytest.fixture
def validator():
    return DataValidator()


class TestValidateFinding:
    """Confidence = declared × source × ranges × cross-reference × freshness."""

    def test_trusted_scientific_source(self, validator, make_finding):
        now = datetime.now()
        finding = make_finding(source="PubMed", confidence_score=0.9, created_at=now)
        assert validator.validate_finding(finding, now) == pytest.approx(0.9 * 0.95)

    def test_unknown_market_source(self, validator, make_finding):
        now = datetime.now()
        finding = make_finding(
            source="Some Blog",
            category=FindingCategory.MARKET,
            confidence_score=0.9,
            created_at=now,
        )
        assert validator.validate_finding(finding, now) == pytest.approx(0.9 * 0.6 * 0.85)

    def test_out_of_range_data_lowers_confidence(self, validator, make_finding):
        now = datetime.now()
        finding = make_finding(
            source="CDC",
            category=FindingCategory.LEGISLATIVE,
            confidence_score=1.0,
            data={"ivf_success_rate": 0.9, "ivf_cost": 30000, "unrelated": "x"},
            created_at=now,
        )
        assert validator.validate_finding(finding, now) == pytest.approx(0.5)

    def test_result_is_clamped(self, validator, make_finding):
        now = datetime.now()
        finding = make_finding(
            source="CDC",
            category=FindingCategory.LEGISLATIVE,
            confidence_score=5.0,
            created_at=now,
        )
        assert validator.validate_finding(finding, now) == 1.0

    @pytest.mark.parametrize("age_days,expected", [
        (0, 1.0),
        (45, 0.95),
        (120, 0.85),
        (200, 0.7),
        (400, 0.5),
    ])
    def test_freshness_steps(self, validator, age_days, expected):
        now = datetime(2025, 6, 1)
        assert validator.assess_freshness(now - timedelta(days=age_days), now) == expected

    def test_freshness_accepts_timezone_aware_dates(self, validator):
        created_at = datetime.now(timezone.utc)

        assert validator.assess_freshness(created_at) == 1.0
        assert validator.assess_freshness(created_at - timedelta(days=45), datetime.now()) == 0.95
        assert validator.assess_freshness(datetime.now(), created_at + timedelta(days=400)) == 0.5

    def test_timezone_aware_finding_is_scored(self, validator, make_finding):
        finding = make_finding(source="CDC", created_at=datetime.now(timezone.utc))
        assert validator.validate_finding(finding) == pytest.approx(0.9 * 0.95)


class TestSourceCredibility:

    @pytest.mark.parametrize("source,expected", [
        ("CDC", 1.0),
        ("Kaiser Family Foundation", 1.0),
        ("stanford.edu", 0.9),
        ("Journal of Reproductive Medicine", 0.9),
        ("ca.gov", 0.95),
        ("Industry Report", 0.8),
        ("Employee Survey", 0.8),
        ("random forum", 0.6),
    ])
    def test_credibility(self, validator, source, expected):
        assert validator.assess_source_credibility(source) == expected


class TestValidateDataPoint:

    def test_out_of_range_and_deviating(self, validator):
        result = validator.validate_data_point("ivf_success_rate", 0.9)

        assert result.is_valid is False
        assert result.confidence == pytest.approx(0.5 * 0.7)
        assert result.suggested_value == pytest.approx(0.55)
        assert result.sources == ["CDC 2025", "SART 2025", "ASRM Study"]
        assert len(result.issues) == 2

    def test_in_range_value_close_to_average(self, validator):
        result = validator.validate_data_point("ivf_success_rate", 0.54)

        assert result.is_valid is True
        assert result.confidence == 1.0
        assert result.suggested_value is None
        assert result.issues == []

    def test_high_variance_between_sources(self, validator):
        result = validator.validate_data_point("ivf_cost", 32000)

        assert result.is_valid is True
        assert result.confidence == pytest.approx(0.8)
        assert "High variance between sources" in result.issues

    def test_unknown_data_point_is_accepted(self, validator):
        result = validator.validate_data_point("unknown_metric", 123)
        assert result.is_valid is True
        assert result.confidence == 1.0
        assert result.sources == []

    def test_custom_tables(self):
        validator = DataValidator(known_ranges={"score": ValueRange(0, 10)}, reference_data={})
        result = validator.validate_data_point("score", 12)
        assert result.is_valid is False
        assert result.suggested_value == 10


class TestStatistics:

    def test_validate_statistic(self, validator):
        assert validator.validate_statistic("ivf_cost", 25000) is True
        assert validator.validate_statistic("ivf_cost", 99000) is False
        assert validator.validate_statistic("unknown", -1) is True

    def test_suggest_correction(self, validator):
        assert validator.suggest_correction("adoption_rate", 0.9) == 0.6
        assert validator.suggest_correction("adoption_rate", 0.3) == 0.3
        assert validator.suggest_correction("unknown", 7) == 7
