"""
Gap analysis for compliscore.

Surfaces not_implemented and partially_implemented controls for
remediation, ranked by control severity and blast radius.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable

from compliscore.compliance.catalog import ComplianceCatalog
from compliscore.models import (
    Assessment,
    ComplianceControl,
    ControlAssessment,
    ControlStatus,
    Finding,
    FindingCollection,
    FindingStatus,
    Severity,
)


@dataclass(frozen=True)
class AffectedResource:
    """An asset with failing findings under a gap's mapped rules."""

    asset_id: str
    findings: tuple[Finding, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "assetId": self.asset_id,
            "findings": [
                {
                    "ruleId": f.rule_id,
                    "severity": f.severity.value,
                    "evidence": f.evidence,
                }
                for f in self.findings
            ],
        }


@dataclass(frozen=True)
class ComplianceGap:
    """
    A non-compliant control.

    Attributes:
        framework_id: Owning framework
        framework_name: Framework display name
        control_id: Catalog control id
        control_code: Human control code within the framework
        control_title: Control title
        status: not_implemented or partially_implemented
        severity: Control severity (None when the framework assigns none)
        total_resources: Distinct assets with a failing finding
        affected_resources: Those assets and their failing findings
        implementation_guidance: Guidance copied from the control
        remediation_steps: Markdown-style remediation lines
    """

    framework_id: str
    framework_name: str
    control_id: str
    control_code: str
    control_title: str
    status: ControlStatus
    severity: Severity | None
    total_resources: int
    affected_resources: tuple[AffectedResource, ...] = ()
    implementation_guidance: str = ""
    remediation_steps: tuple[str, ...] = ()

    @property
    def severity_rank(self) -> int:
        return self.severity.rank if self.severity else 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "frameworkId": self.framework_id,
            "frameworkName": self.framework_name,
            "controlId": self.control_id,
            "controlCode": self.control_code,
            "controlTitle": self.control_title,
            "status": self.status.value,
            "severity": self.severity.value if self.severity else None,
            "totalResources": self.total_resources,
            "affectedResources": [r.to_dict() for r in self.affected_resources],
            "implementationGuidance": self.implementation_guidance,
            "remediationSteps": list(self.remediation_steps),
        }


@dataclass(frozen=True)
class GapAnalysis:
    """Gaps of a single framework assessment."""

    framework_id: str
    account_id: str
    assessment_date: datetime
    compliance_score: float
    gaps: tuple[ComplianceGap, ...] = field(default_factory=tuple)

    @property
    def total_gaps(self) -> int:
        return len(self.gaps)

    def to_dict(self) -> dict[str, Any]:
        return {
            "frameworkId": self.framework_id,
            "accountId": self.account_id,
            "assessmentDate": self.assessment_date.isoformat(),
            "totalGaps": self.total_gaps,
            "complianceScore": self.compliance_score,
            "gaps": [g.to_dict() for g in self.gaps],
        }


def rank_gaps(gaps: Iterable[ComplianceGap]) -> list[ComplianceGap]:
    """Order gaps by severity then affected resource count, both descending."""
    return sorted(
        gaps,
        key=lambda g: (-g.severity_rank, -g.total_resources, g.framework_id, g.control_id),
    )


class GapAnalyzer:
    """Builds and ranks compliance gaps from assessments."""

    def __init__(self, catalog: ComplianceCatalog):
        self.catalog = catalog

    def analyze(
        self,
        assessments: Iterable[Assessment],
        findings: Iterable[Finding] = (),
        limit: int | None = None,
    ) -> list[ComplianceGap]:
        """
        Rank gaps across several framework assessments of one account.

        Args:
            assessments: Assessments to collect gaps from
            findings: The scan findings the assessments were computed from
            limit: Return at most this many gaps

        Returns:
            Gaps ordered critical first, then by total_resources
        """
        by_id = {f.id: f for f in findings}
        gaps = [
            self._build_gap(control_assessment, by_id)
            for assessment in assessments
            for control_assessment in assessment.gaps()
        ]

        ranked = rank_gaps(gaps)
        if limit is not None:
            ranked = ranked[: max(limit, 0)]
        return ranked

    def gap_analysis(
        self, assessment: Assessment, findings: Iterable[Finding] = ()
    ) -> GapAnalysis:
        """
        Build the gap analysis of one framework assessment.

        Args:
            assessment: Framework assessment
            findings: The scan findings the assessment was computed from

        Returns:
            GapAnalysis
        """
        return GapAnalysis(
            framework_id=assessment.framework_id,
            account_id=assessment.account_id,
            assessment_date=assessment.assessment_date,
            compliance_score=assessment.compliance_score,
            gaps=tuple(self.analyze([assessment], findings)),
        )

    def _build_gap(
        self,
        control_assessment: ControlAssessment,
        findings_by_id: dict[str, Finding],
    ) -> ComplianceGap:
        control = self.catalog.control(control_assessment.control_id)
        framework = self.catalog.framework(control.framework_id)

        failing = FindingCollection(
            findings_by_id[fid]
            for fid in control_assessment.findings
            if fid in findings_by_id
        ).with_status(FindingStatus.FAIL)

        by_asset: dict[str, list[Finding]] = {}
        for finding in failing:
            by_asset.setdefault(finding.asset_id, []).append(finding)

        return ComplianceGap(
            framework_id=framework.id,
            framework_name=framework.name,
            control_id=control.id,
            control_code=control.control_id,
            control_title=control.title,
            status=control_assessment.status,
            severity=control.severity,
            total_resources=len(by_asset),
            affected_resources=tuple(
                AffectedResource(asset_id=asset_id, findings=tuple(items))
                for asset_id, items in sorted(by_asset.items())
            ),
            implementation_guidance=control.implementation_guidance,
            remediation_steps=tuple(remediation_steps(control, list(failing))),
        )


def remediation_steps(control: ComplianceControl, findings: list[Finding]) -> list[str]:
    """
    Render remediation guidance for a control.

    Args:
        control: Control with a gap
        findings: Failing findings under the control

    Returns:
        Lines of markdown-style text
    """
    steps = [f"### {control.title}", control.description or ""]

    if control.implementation_guidance:
        steps.extend(["", "**Implementation Guidance:**", control.implementation_guidance])

    if findings:
        steps.extend(["", "**Issues Found:**"])
        for finding in findings:
            evidence = json.dumps(finding.evidence, sort_keys=True, default=str)
            steps.append(f"- {finding.rule_id}: {evidence}")

    if control.references:
        steps.extend(["", "**References:**"])
        steps.extend(f"- {ref}" for ref in control.references)

    return steps
