"""
Compliance assessor for compliscore.

Rolls the findings of one account's latest scan up into per-control
statuses and an aggregate score for a framework.

Aggregation policy, per control:

1. A control without rule mappings is not_applicable.
2. Each mapped rule gets a verdict over its findings: fail if any
   finding fails, else warn if any warns, else pass; excluded when the
   rule produced no findings at all.
3. Every mapped rule excluded -> not_applicable.
4. Any direct-mapped rule failing -> not_implemented.
5. All non-excluded rules passing, with at least one passing direct
   mapping -> implemented.
6. Anything else -> partially_implemented.

The score is 100 * (implemented + 0.5 * partially) / applicable.
"""

from __future__ import annotations

import json
import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterable

from compliscore.compliance.catalog import ComplianceCatalog
from compliscore.compliance.coverage import CoverageCalculator
from compliscore.errors import InconsistentScanSetError
from compliscore.models import (
    Assessment,
    ComplianceControl,
    ControlAssessment,
    ControlStatus,
    Finding,
    FindingCollection,
    FindingStatus,
    RuleVerdict,
)

logger = logging.getLogger(__name__)


def rule_verdict(findings: Iterable[Finding]) -> RuleVerdict:
    """
    Collapse the findings of one rule into a single verdict.

    Args:
        findings: Findings of one rule across all assets of a scan

    Returns:
        FAIL > WARN > PASS, or EXCLUDED when there are no findings
    """
    statuses = {f.status for f in findings}
    if not statuses:
        return RuleVerdict.EXCLUDED
    if FindingStatus.FAIL in statuses:
        return RuleVerdict.FAIL
    if FindingStatus.WARN in statuses:
        return RuleVerdict.WARN
    return RuleVerdict.PASS


@dataclass(frozen=True)
class FrameworkComparisonEntry:
    """One framework's line in a comparison."""

    framework_id: str
    framework_name: str
    compliance_score: float
    total_controls: int
    mapped_controls: int
    coverage_percentage: float
    assessment_date: datetime | None
    zero_basis: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "frameworkId": self.framework_id,
            "frameworkName": self.framework_name,
            "complianceScore": self.compliance_score,
            "totalControls": self.total_controls,
            "mappedControls": self.mapped_controls,
            "coveragePercentage": self.coverage_percentage,
            "assessmentDate": (
                self.assessment_date.isoformat() if self.assessment_date else None
            ),
            "zeroBasis": self.zero_basis,
        }


@dataclass(frozen=True)
class FrameworkComparison:
    """
    Side-by-side assessment of several frameworks for one account.

    Attributes:
        comparisons: Entries ordered by descending score, ties by framework id
        best_performing: First entry, if any
        worst_performing: Last entry, if any
        average_score: Mean score across entries
        equivalences: rule_id -> catalog control ids from two or more of
                      the compared frameworks mapped to that rule.
                      Informational only; scores are unaffected.
    """

    comparisons: tuple[FrameworkComparisonEntry, ...]
    average_score: float
    equivalences: dict[str, list[str]] = field(default_factory=dict)

    @property
    def best_performing(self) -> FrameworkComparisonEntry | None:
        return self.comparisons[0] if self.comparisons else None

    @property
    def worst_performing(self) -> FrameworkComparisonEntry | None:
        return self.comparisons[-1] if self.comparisons else None

    def to_dict(self) -> dict[str, Any]:
        best = self.best_performing
        worst = self.worst_performing
        return {
            "comparisons": [c.to_dict() for c in self.comparisons],
            "bestPerforming": best.to_dict() if best else None,
            "worstPerforming": worst.to_dict() if worst else None,
            "averageScore": self.average_score,
            "equivalences": {k: list(v) for k, v in self.equivalences.items()},
        }


class ComplianceAssessor:
    """
    Computes framework assessments from single-scan findings.

    Assessment is a pure function of the catalog and the supplied
    findings; the assessor may be shared between threads.
    """

    def __init__(
        self,
        catalog: ComplianceCatalog,
        max_workers: int | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        """
        Initialize the assessor.

        Args:
            catalog: Compliance catalog
            max_workers: Worker pool size for compare_frameworks
            clock: Source of the default assessment date (defaults to UTC now)
        """
        self.catalog = catalog
        self.coverage = CoverageCalculator(catalog)
        self.max_workers = max_workers or os.cpu_count() or 1
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def assess(
        self,
        framework_id: str,
        account_id: str,
        findings: Iterable[Finding],
        assessment_date: datetime | None = None,
        expected_scan_id: str | None = None,
    ) -> Assessment:
        """
        Assess an account against a framework.

        Args:
            framework_id: Framework to assess
            account_id: Account the findings belong to
            findings: Findings of the account's latest completed scan
            assessment_date: Date stamped on the assessment (defaults to now)
            expected_scan_id: Scan the findings should come from. When
                              given, findings of other scans are dropped
                              instead of rejected.

        Returns:
            Assessment

        Raises:
            FrameworkNotFoundError: If the framework is unknown
            InconsistentScanSetError: If findings span several scans and no
                                      expected_scan_id reconciles them
        """
        framework = self.catalog.framework(framework_id)
        collection, scan_id = self._reconcile(
            account_id, FindingCollection(findings), expected_scan_id
        )
        findings_by_rule = collection.by_rule()

        controls = [
            self.assess_control(control, findings_by_rule)
            for control in self.catalog.controls_for(framework.id)
        ]

        assessment = Assessment.from_controls(
            framework_id=framework.id,
            account_id=account_id,
            assessment_date=assessment_date or self._clock(),
            controls=controls,
            scan_id=scan_id,
        )

        logger.debug(
            f"Assessed {framework.id} for account {account_id}: "
            f"score {assessment.compliance_score:.1f} over "
            f"{assessment.applicable_controls}/{assessment.total_controls} "
            f"applicable controls"
        )

        return assessment

    def assess_control(
        self,
        control: ComplianceControl,
        findings_by_rule: dict[str, list[Finding]],
    ) -> ControlAssessment:
        """
        Assess a single control.

        Args:
            control: Control to assess
            findings_by_rule: Scan findings grouped by rule id

        Returns:
            ControlAssessment
        """
        mappings = self.catalog.mappings_for(control.id)
        if not mappings:
            return ControlAssessment(
                control_id=control.id,
                status=ControlStatus.NOT_APPLICABLE,
                comments="No rules mapped to this control",
            )

        verdicts = {
            m.rule_id: rule_verdict(findings_by_rule.get(m.rule_id, ()))
            for m in mappings
        }

        relevant = sorted(
            (f for m in mappings for f in findings_by_rule.get(m.rule_id, ())),
            key=lambda f: (f.rule_id, f.asset_id, f.id),
        )

        if all(v == RuleVerdict.EXCLUDED for v in verdicts.values()):
            return ControlAssessment(
                control_id=control.id,
                status=ControlStatus.NOT_APPLICABLE,
                comments="No resources in scope for mapped rules",
                rule_verdicts=verdicts,
            )

        direct = [verdicts[m.rule_id] for m in mappings if m.is_direct]
        considered = [v for v in verdicts.values() if v != RuleVerdict.EXCLUDED]

        if RuleVerdict.FAIL in direct:
            status = ControlStatus.NOT_IMPLEMENTED
        elif all(v == RuleVerdict.PASS for v in considered) and RuleVerdict.PASS in direct:
            status = ControlStatus.IMPLEMENTED
        else:
            status = ControlStatus.PARTIALLY_IMPLEMENTED

        return ControlAssessment(
            control_id=control.id,
            status=status,
            evidence=tuple(_evidence_line(f) for f in relevant),
            comments=_summarize(relevant),
            findings=tuple(f.id for f in relevant),
            rule_verdicts=verdicts,
        )

    def compare_frameworks(
        self,
        framework_ids: list[str],
        account_id: str,
        findings: Iterable[Finding],
        assessment_date: datetime | None = None,
        expected_scan_id: str | None = None,
    ) -> FrameworkComparison:
        """
        Assess several frameworks independently and rank them.

        Args:
            framework_ids: Frameworks to compare
            account_id: Account to assess
            findings: Findings of the account's latest completed scan
            assessment_date: Date stamped on every assessment
            expected_scan_id: See assess()

        Returns:
            FrameworkComparison

        Raises:
            FrameworkNotFoundError: If any framework is unknown
        """
        frameworks = [self.catalog.framework(fid) for fid in dict.fromkeys(framework_ids)]
        findings = list(findings)
        date = assessment_date or self._clock()

        def run(framework_id: str) -> FrameworkComparisonEntry:
            assessment = self.assess(
                framework_id, account_id, findings, date, expected_scan_id
            )
            coverage = self.coverage.coverage(framework_id)
            return FrameworkComparisonEntry(
                framework_id=framework_id,
                framework_name=self.catalog.framework(framework_id).name,
                compliance_score=assessment.compliance_score,
                total_controls=coverage.total_controls,
                mapped_controls=coverage.mapped_controls,
                coverage_percentage=coverage.coverage_percentage,
                assessment_date=assessment.assessment_date,
                zero_basis=assessment.zero_basis,
            )

        if frameworks:
            workers = min(self.max_workers, len(frameworks))
            with ThreadPoolExecutor(max_workers=workers) as executor:
                entries = list(executor.map(run, [f.id for f in frameworks]))
        else:
            entries = []

        entries.sort(key=lambda e: (-e.compliance_score, e.framework_id))
        average = (
            sum(e.compliance_score for e in entries) / len(entries) if entries else 0.0
        )

        equivalences = {
            rule_id: [c.id for c in controls]
            for rule_id, controls in self.catalog.equivalent_controls(
                [f.id for f in frameworks]
            ).items()
        }

        return FrameworkComparison(
            comparisons=tuple(entries),
            average_score=average,
            equivalences=equivalences,
        )

    def _reconcile(
        self,
        account_id: str,
        findings: FindingCollection,
        expected_scan_id: str | None,
    ) -> tuple[FindingCollection, str | None]:
        """Ensure findings come from a single scan."""
        scan_ids = findings.scan_ids()

        if expected_scan_id is not None:
            kept = findings.for_scan(expected_scan_id)
            dropped = len(findings) - len(kept)
            if dropped:
                logger.warning(
                    f"Dropped {dropped} findings for account {account_id} that do "
                    f"not belong to scan {expected_scan_id}"
                )
            return kept, expected_scan_id

        if len(scan_ids) > 1:
            raise InconsistentScanSetError(account_id, scan_ids)

        return findings, next(iter(scan_ids), None)


def _evidence_line(finding: Finding) -> str:
    evidence = json.dumps(finding.evidence, sort_keys=True, default=str)
    return f"{finding.rule_id}: {finding.status.value} - {evidence}"


def _summarize(findings: list[Finding]) -> str:
    counts = FindingCollection(findings).status_counts()
    failed = counts[FindingStatus.FAIL]
    warned = counts[FindingStatus.WARN]
    passed = counts[FindingStatus.PASS]

    comments: list[str] = []
    if failed:
        comments.append(f"Found {failed} failed checks.")
    if warned:
        comments.append(f"Found {warned} warnings.")
    if passed:
        comments.append(f"Passed {passed} checks.")

    return " ".join(comments) or "No relevant findings."
