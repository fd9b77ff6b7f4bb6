"""Research Agent und seine Collaborators."""
from .research_agent import ResearchAgent
from .validator import DataValidator, ValidationResult, ValueRange
from .scanners import (
    Scanner, ScientificScanner, LegislativeTracker, LegislativeUpdate,
    MarketAnalyzer, MarketTrend, CompetitorScanner, default_scanners,
)

__all__ = [
    # Agent
    "ResearchAgent",
    # Validation
    "DataValidator",
    "ValidationResult",
    "ValueRange",
    # Scanners
    "Scanner",
    "ScientificScanner",
    "LegislativeTracker",
    "LegislativeUpdate",
    "MarketAnalyzer",
    "MarketTrend",
    "CompetitorScanner",
    "default_scanners",
]
