"""
Compliance scoring for compliscore.

This package provides:

- ComplianceCatalog: frameworks, controls and rule mappings
- CoverageCalculator: mapping completeness per framework
- ComplianceAssessor: per-control status and framework score
- GapAnalyzer: ranked non-compliant controls
"""

from compliscore.compliance.assessor import (
    ComplianceAssessor,
    FrameworkComparison,
    FrameworkComparisonEntry,
    rule_verdict,
)
from compliscore.compliance.catalog import ComplianceCatalog
from compliscore.compliance.coverage import (
    CoverageCalculator,
    CoverageLevel,
    FrameworkCoverage,
)
from compliscore.compliance.gaps import (
    AffectedResource,
    ComplianceGap,
    GapAnalysis,
    GapAnalyzer,
    rank_gaps,
    remediation_steps,
)

__all__ = [
    # Catalog
    "ComplianceCatalog",
    # Coverage
    "CoverageCalculator",
    "CoverageLevel",
    "FrameworkCoverage",
    # Assessment
    "ComplianceAssessor",
    "FrameworkComparison",
    "FrameworkComparisonEntry",
    "rule_verdict",
    # Gaps
    "AffectedResource",
    "ComplianceGap",
    "GapAnalysis",
    "GapAnalyzer",
    "rank_gaps",
    "remediation_steps",
]
