"""Test impact classification, tracing and aggregation."""

from .impact_types import ImpactType, ImpactedTest, merge_impacts
from .direct_impact import DirectImpactClassifier
from .removed_tests import RemovedTestDetector
from .dependency_tracer import DependencyTracer
from .impact_analyzer import GLOBAL_CHANGE, ImpactAnalyzer

__all__ = [
    "ImpactType", "ImpactedTest", "merge_impacts",
    "DirectImpactClassifier",
    "RemovedTestDetector",
    "DependencyTracer",
    "GLOBAL_CHANGE", "ImpactAnalyzer",
]
