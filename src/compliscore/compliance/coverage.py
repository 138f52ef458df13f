"""
Framework coverage for compliscore.

Coverage measures how much of a framework is backed by rule mappings. It
depends only on the compliance catalog, never on an account's findings.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from compliscore.compliance.catalog import ComplianceCatalog


class CoverageLevel(Enum):
    """Qualitative coverage band."""

    EXCELLENT = "Excellent"
    GOOD = "Good"
    FAIR = "Fair"
    POOR = "Poor"

    @classmethod
    def from_percentage(cls, percentage: float) -> CoverageLevel:
        if percentage >= 90:
            return cls.EXCELLENT
        if percentage >= 70:
            return cls.GOOD
        if percentage >= 50:
            return cls.FAIR
        return cls.POOR


@dataclass(frozen=True)
class FrameworkCoverage:
    """Mapping completeness of one framework."""

    framework_id: str
    total_controls: int
    mapped_controls: int
    mapped_rules: int
    total_mappings: int
    coverage_percentage: float
    coverage_level: CoverageLevel

    def to_dict(self) -> dict[str, Any]:
        return {
            "frameworkId": self.framework_id,
            "totalControls": self.total_controls,
            "mappedControls": self.mapped_controls,
            "mappedRules": self.mapped_rules,
            "totalMappings": self.total_mappings,
            "coveragePercentage": self.coverage_percentage,
            "coverageLevel": self.coverage_level.value,
        }


class CoverageCalculator:
    """Computes framework coverage from a compliance catalog."""

    def __init__(self, catalog: ComplianceCatalog):
        self.catalog = catalog

    def coverage(self, framework_id: str) -> FrameworkCoverage:
        """
        Compute coverage for a framework.

        coverage_percentage = 100 * (controls with >= 1 mapping) / controls,
        and 0 for a framework without controls.

        Args:
            framework_id: Framework to measure

        Returns:
            FrameworkCoverage

        Raises:
            FrameworkNotFoundError: If the framework is unknown
        """
        controls = self.catalog.controls_for(framework_id)

        mapped_controls = 0
        total_mappings = 0
        rule_ids: set[str] = set()
        for control in controls:
            mappings = self.catalog.mappings_for(control.id)
            if mappings:
                mapped_controls += 1
            total_mappings += len(mappings)
            rule_ids.update(m.rule_id for m in mappings)

        total = len(controls)
        percentage = 100.0 * mapped_controls / total if total else 0.0

        return FrameworkCoverage(
            framework_id=framework_id,
            total_controls=total,
            mapped_controls=mapped_controls,
            mapped_rules=len(rule_ids),
            total_mappings=total_mappings,
            coverage_percentage=percentage,
            coverage_level=CoverageLevel.from_percentage(percentage),
        )
