"""
Compliance data models for compliscore.

Catalog entities (ComplianceFramework, ComplianceControl,
RuleComplianceMapping) are read-only configuration data. Assessment and
ControlAssessment are computed values produced by the assessor.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Iterable

from compliscore.models.finding import Severity


class MappingType(Enum):
    """Weight with which a rule contributes to a control."""

    DIRECT = "direct"
    PARTIAL = "partial"


class ControlStatus(Enum):
    """Implementation status of a control within an assessment."""

    IMPLEMENTED = "implemented"
    PARTIALLY_IMPLEMENTED = "partially_implemented"
    NOT_IMPLEMENTED = "not_implemented"
    NOT_APPLICABLE = "not_applicable"

    @property
    def is_gap(self) -> bool:
        """True for statuses surfaced by gap analysis."""
        return self in (ControlStatus.NOT_IMPLEMENTED, ControlStatus.PARTIALLY_IMPLEMENTED)


class RuleVerdict(Enum):
    """Rule-level verdict over all findings of one rule in one scan."""

    PASS = "pass"
    WARN = "warn"
    FAIL = "fail"
    EXCLUDED = "excluded"


@dataclass(frozen=True)
class ComplianceFramework:
    """A compliance framework; identity is (name, version)."""

    id: str
    name: str
    version: str
    description: str = ""

    @property
    def identity(self) -> tuple[str, str]:
        return (self.name, self.version)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "version": self.version,
            "description": self.description,
        }


@dataclass(frozen=True)
class ComplianceControl:
    """
    An audit requirement within a framework.

    Attributes:
        id: Catalog-wide control identifier (e.g. "cis-aws-1.2")
        framework_id: Owning framework
        control_id: Human control code within the framework (e.g. "1.2")
        title: Short title
        description: Longer description
        category: Grouping within the framework
        severity: Control severity, if the framework assigns one
        implementation_guidance: How to implement the control
        audit_guidance: How an auditor verifies the control
        references: External reference links
    """

    id: str
    framework_id: str
    control_id: str
    title: str
    description: str = ""
    category: str = ""
    severity: Severity | None = None
    implementation_guidance: str = ""
    audit_guidance: str = ""
    references: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "frameworkId": self.framework_id,
            "controlId": self.control_id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "severity": self.severity.value if self.severity else None,
            "implementationGuidance": self.implementation_guidance,
            "auditGuidance": self.audit_guidance,
            "references": list(self.references),
        }


@dataclass(frozen=True)
class RuleComplianceMapping:
    """Many-to-many link between a rule and a control."""

    rule_id: str
    control_id: str
    mapping_type: MappingType = MappingType.DIRECT
    evidence_requirements: tuple[str, ...] = ()

    @property
    def is_direct(self) -> bool:
        return self.mapping_type == MappingType.DIRECT

    def to_dict(self) -> dict[str, Any]:
        return {
            "ruleId": self.rule_id,
            "controlId": self.control_id,
            "mappingType": self.mapping_type.value,
            "evidenceRequirements": list(self.evidence_requirements),
        }


@dataclass(frozen=True)
class ControlAssessment:
    """Assessed status of one control."""

    control_id: str
    status: ControlStatus
    evidence: tuple[str, ...] = ()
    comments: str | None = None
    findings: tuple[str, ...] = ()
    rule_verdicts: dict[str, RuleVerdict] = field(default_factory=dict, compare=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "controlId": self.control_id,
            "status": self.status.value,
            "evidence": list(self.evidence),
            "comments": self.comments,
            "findings": list(self.findings),
            "ruleVerdicts": {k: v.value for k, v in self.rule_verdicts.items()},
        }


@dataclass(frozen=True)
class Assessment:
    """
    Point-in-time compliance result for one account against one framework.

    Use Assessment.from_controls() to build one; it derives every count
    from the control list so the tallies always add up.
    """

    framework_id: str
    account_id: str
    assessment_date: datetime
    compliance_score: float
    total_controls: int
    applicable_controls: int
    implemented_controls: int
    partially_implemented_controls: int
    not_implemented_controls: int
    not_applicable_controls: int
    controls: tuple[ControlAssessment, ...] = ()
    scan_id: str | None = None
    zero_basis: bool = False

    @classmethod
    def from_controls(
        cls,
        framework_id: str,
        account_id: str,
        assessment_date: datetime,
        controls: Iterable[ControlAssessment],
        scan_id: str | None = None,
    ) -> Assessment:
        """
        Tally control statuses and compute the compliance score.

        score = 100 * (implemented + 0.5 * partially) / applicable,
        defined as 0 with zero_basis set when nothing is applicable.
        """
        controls = tuple(controls)
        counts = {status: 0 for status in ControlStatus}
        for control in controls:
            counts[control.status] += 1

        total = len(controls)
        not_applicable = counts[ControlStatus.NOT_APPLICABLE]
        applicable = total - not_applicable
        implemented = counts[ControlStatus.IMPLEMENTED]
        partially = counts[ControlStatus.PARTIALLY_IMPLEMENTED]

        if applicable > 0:
            score = 100.0 * (implemented + 0.5 * partially) / applicable
            score = min(100.0, max(0.0, score))
        else:
            score = 0.0

        return cls(
            framework_id=framework_id,
            account_id=account_id,
            assessment_date=assessment_date,
            compliance_score=score,
            total_controls=total,
            applicable_controls=applicable,
            implemented_controls=implemented,
            partially_implemented_controls=partially,
            not_implemented_controls=counts[ControlStatus.NOT_IMPLEMENTED],
            not_applicable_controls=not_applicable,
            controls=controls,
            scan_id=scan_id,
            zero_basis=applicable == 0,
        )

    def get_control(self, control_id: str) -> ControlAssessment | None:
        """Return the assessment of one control, if present."""
        for control in self.controls:
            if control.control_id == control_id:
                return control
        return None

    def gaps(self) -> list[ControlAssessment]:
        """Controls that are not or only partially implemented."""
        return [c for c in self.controls if c.status.is_gap]

    def to_dict(self) -> dict[str, Any]:
        return {
            "frameworkId": self.framework_id,
            "accountId": self.account_id,
            "assessmentDate": self.assessment_date.isoformat(),
            "complianceScore": self.compliance_score,
            "totalControls": self.total_controls,
            "applicableControls": self.applicable_controls,
            "implementedControls": self.implemented_controls,
            "partiallyImplementedControls": self.partially_implemented_controls,
            "notImplementedControls": self.not_implemented_controls,
            "notApplicableControls": self.not_applicable_controls,
            "controls": [c.to_dict() for c in self.controls],
            "scanId": self.scan_id,
            "zeroBasis": self.zero_basis,
        }
