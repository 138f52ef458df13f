"""
Tests for compliscore gap analysis.
"""

from __future__ import annotations

import pytest

from compliscore.compliance import (
    ComplianceAssessor,
    ComplianceGap,
    GapAnalyzer,
    rank_gaps,
    remediation_steps,
)
from compliscore.models import ControlStatus, Severity


@pytest.fixture
def assessor(compliance_catalog, fixed_clock) -> ComplianceAssessor:
    return ComplianceAssessor(compliance_catalog, clock=fixed_clock)


@pytest.fixture
def analyzer(compliance_catalog) -> GapAnalyzer:
    return GapAnalyzer(compliance_catalog)


@pytest.fixture
def failing_findings(finding_factory):
    """Findings with failures under every mapped control."""
    return [
        finding_factory("rule-encryption", "asset-1", "fail"),
        finding_factory("rule-encryption", "asset-2", "fail"),
        finding_factory("rule-public", "asset-1", "fail"),
        finding_factory("rule-logging", "asset-1", "pass"),
        finding_factory("rule-mfa", "user-1", "fail"),
    ]


def _gap(control_id: str, severity: Severity | None, resources: int, framework_id: str = "fw"):
    return ComplianceGap(
        framework_id=framework_id,
        framework_name=framework_id.upper(),
        control_id=control_id,
        control_code=control_id,
        control_title=control_id,
        status=ControlStatus.NOT_IMPLEMENTED,
        severity=severity,
        total_resources=resources,
    )


class TestRankGaps:
    """Tests for rank_gaps."""

    def test_severity_then_resources(self):
        """Critical before high; more resources first within a severity."""
        gaps = [
            _gap("high-3", Severity.HIGH, 3),
            _gap("crit-1", Severity.CRITICAL, 1),
            _gap("high-10", Severity.HIGH, 10),
        ]

        assert [g.control_id for g in rank_gaps(gaps)] == ["crit-1", "high-10", "high-3"]

    def test_unrated_controls_last(self):
        """Test gaps without severity rank below low."""
        gaps = [_gap("none", None, 50), _gap("low", Severity.LOW, 1)]

        assert [g.control_id for g in rank_gaps(gaps)] == ["low", "none"]

    def test_ties_broken_by_ids(self):
        """Test full ties order by framework then control id."""
        gaps = [
            _gap("b", Severity.MEDIUM, 2, "fw-b"),
            _gap("z", Severity.MEDIUM, 2, "fw-a"),
            _gap("a", Severity.MEDIUM, 2, "fw-a"),
        ]

        assert [(g.framework_id, g.control_id) for g in rank_gaps(gaps)] == [
            ("fw-a", "a"),
            ("fw-a", "z"),
            ("fw-b", "b"),
        ]


class TestGapAnalyzer:
    """Tests for the GapAnalyzer class."""

    def test_only_gaps_returned(self, assessor, analyzer, finding_factory):
        """Test implemented and not applicable controls are not gaps."""
        findings = [
            finding_factory("rule-encryption", status="pass"),
            finding_factory("rule-public", status="fail"),
        ]
        assessment = assessor.assess("test-fw", "acct", findings)

        gaps = analyzer.analyze([assessment], findings)

        assert [g.control_id for g in gaps] == ["test-fw-2"]
        assert gaps[0].status == ControlStatus.NOT_IMPLEMENTED

    def test_ordering_across_frameworks(self, assessor, analyzer, failing_findings):
        """Test gaps from several frameworks are ranked together."""
        assessments = [
            assessor.assess("test-fw", "acct", failing_findings),
            assessor.assess("other-fw", "acct", failing_findings),
        ]

        gaps = analyzer.analyze(assessments, failing_findings)

        assert [g.control_id for g in gaps] == [
            "test-fw-2",
            "other-fw-1",
            "test-fw-1",
            "test-fw-4",
            "other-fw-2",
        ]

    def test_partial_gap_status(self, assessor, analyzer, failing_findings):
        """Test a failing partial mapping yields a partially implemented gap."""
        assessment = assessor.assess("test-fw", "acct", failing_findings)

        gap = next(g for g in analyzer.analyze([assessment], failing_findings)
                   if g.control_id == "test-fw-4")

        assert gap.status == ControlStatus.PARTIALLY_IMPLEMENTED
        assert gap.severity == Severity.LOW

    def test_affected_resources(self, assessor, analyzer, failing_findings):
        """Test failing assets are grouped per gap."""
        assessment = assessor.assess("test-fw", "acct", failing_findings)

        gap = next(g for g in analyzer.analyze([assessment], failing_findings)
                   if g.control_id == "test-fw-1")

        assert gap.total_resources == 2
        assert [r.asset_id for r in gap.affected_resources] == ["asset-1", "asset-2"]
        assert gap.affected_resources[0].findings[0].rule_id == "rule-encryption"

    def test_passing_findings_not_affected(self, assessor, analyzer, failing_findings):
        """Test passing findings under a failing control are not counted."""
        assessment = assessor.assess("test-fw", "acct", failing_findings)

        gap = next(g for g in analyzer.analyze([assessment], failing_findings)
                   if g.control_id == "test-fw-2")

        assert gap.total_resources == 1
        assert [f.rule_id for f in gap.affected_resources[0].findings] == ["rule-public"]

    def test_without_findings(self, assessor, analyzer, failing_findings):
        """Test gaps are still listed when findings are not supplied."""
        assessment = assessor.assess("test-fw", "acct", failing_findings)

        gaps = analyzer.analyze([assessment])

        assert len(gaps) == 3
        assert all(g.total_resources == 0 for g in gaps)

    def test_limit(self, assessor, analyzer, failing_findings):
        """Test the limit keeps the highest ranked gaps."""
        assessment = assessor.assess("test-fw", "acct", failing_findings)

        gaps = analyzer.analyze([assessment], failing_findings, limit=1)

        assert [g.control_id for g in gaps] == ["test-fw-2"]
        assert analyzer.analyze([assessment], failing_findings, limit=0) == []

    def test_gap_carries_control_details(self, assessor, analyzer, failing_findings):
        """Test gaps copy framework and control details."""
        assessment = assessor.assess("test-fw", "acct", failing_findings)

        gap = next(g for g in analyzer.analyze([assessment], failing_findings)
                   if g.control_id == "test-fw-1")

        assert gap.framework_name == "Test Framework"
        assert gap.control_code == "1"
        assert gap.control_title == "Encrypt data at rest"
        assert gap.implementation_guidance == "Enable default encryption."

    def test_gap_analysis(self, assessor, analyzer, failing_findings):
        """Test the single-framework gap analysis wrapper."""
        assessment = assessor.assess("test-fw", "acct", failing_findings)

        analysis = analyzer.gap_analysis(assessment, failing_findings)

        assert analysis.framework_id == "test-fw"
        assert analysis.account_id == "acct"
        assert analysis.total_gaps == 3
        assert analysis.compliance_score == assessment.compliance_score

        data = analysis.to_dict()
        assert data["totalGaps"] == 3
        assert data["assessmentDate"] == "2024-01-15T12:00:00+00:00"
        assert data["gaps"][0]["controlId"] == "test-fw-2"
        assert data["gaps"][0]["severity"] == "critical"


class TestRemediationSteps:
    """Tests for remediation_steps."""

    def test_full_guidance(self, compliance_catalog, finding_factory):
        """Test every section is rendered."""
        control = compliance_catalog.control("test-fw-1")
        findings = [
            finding_factory("rule-encryption", "asset-1", "fail"),
            finding_factory("rule-encryption", "asset-2", "fail", evidence={"sse": None}),
        ]

        assert remediation_steps(control, findings) == [
            "### Encrypt data at rest",
            "Stored data must be encrypted.",
            "",
            "**Implementation Guidance:**",
            "Enable default encryption.",
            "",
            "**Issues Found:**",
            '- rule-encryption: {"resource": "asset-1"}',
            '- rule-encryption: {"sse": null}',
            "",
            "**References:**",
            "- https://example.com/encryption",
        ]

    def test_minimal_control(self, compliance_catalog):
        """Test a control without guidance or findings renders its title only."""
        control = compliance_catalog.control("test-fw-2")

        steps = remediation_steps(control, [])

        assert steps[0] == "### Block public access"
        assert "**Issues Found:**" not in steps
        assert "**References:**" not in steps
