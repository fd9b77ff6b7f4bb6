"""Planning Agent und seine Analyzer."""
from .planning_agent import PlanningAgent
from .impact import ImpactAnalyzer
from .dependencies import DependencyManager, DependencyGraph, GraphNode, GraphEdge
from .resources import ResourceAllocator, RESOURCE_KEYS

__all__ = [
    # Agent
    "PlanningAgent",
    # Analyzers
    "ImpactAnalyzer",
    "DependencyManager",
    "DependencyGraph",
    "GraphNode",
    "GraphEdge",
    "ResourceAllocator",
    "RESOURCE_KEYS",
]
