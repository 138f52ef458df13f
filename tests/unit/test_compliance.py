"""
Tests for the compliscore compliance catalog and coverage calculator.
"""

from __future__ import annotations

import pytest

from compliscore.compliance import (
    ComplianceCatalog,
    CoverageCalculator,
    CoverageLevel,
)
from compliscore.errors import (
    ControlNotFoundError,
    FrameworkNotFoundError,
    InvalidMappingError,
)
from compliscore.models import (
    ComplianceControl,
    ComplianceFramework,
    MappingType,
    RuleComplianceMapping,
)


class TestComplianceCatalog:
    """Tests for the ComplianceCatalog class."""

    def test_frameworks_ordered_by_id(self, compliance_catalog):
        """Test frameworks() is sorted by id."""
        assert [f.id for f in compliance_catalog.frameworks()] == ["other-fw", "test-fw"]

    def test_framework_lookup(self, compliance_catalog):
        """Test framework lookups."""
        assert compliance_catalog.has_framework("test-fw")
        assert not compliance_catalog.has_framework("nope")
        assert compliance_catalog.framework("test-fw").name == "Test Framework"

    def test_unknown_framework(self, compliance_catalog):
        """Test unknown frameworks raise FrameworkNotFoundError."""
        with pytest.raises(FrameworkNotFoundError) as exc_info:
            compliance_catalog.framework("nope")
        assert exc_info.value.framework_id == "nope"

        with pytest.raises(FrameworkNotFoundError):
            compliance_catalog.controls_for("nope")

    def test_unknown_control(self, compliance_catalog):
        """Test unknown controls raise ControlNotFoundError."""
        with pytest.raises(ControlNotFoundError) as exc_info:
            compliance_catalog.control("nope")
        assert exc_info.value.control_id == "nope"

    def test_controls_in_definition_order(self, compliance_catalog):
        """Test controls_for keeps definition order."""
        controls = compliance_catalog.controls_for("test-fw")
        assert [c.id for c in controls] == ["test-fw-1", "test-fw-2", "test-fw-3", "test-fw-4"]

    def test_adjacency_in_both_directions(self, compliance_catalog):
        """Test rule -> controls and control -> mappings indexes."""
        assert compliance_catalog.controls_for_rule("rule-encryption") == ("test-fw-1", "other-fw-1")
        assert compliance_catalog.controls_for_rule("unmapped") == ()
        assert [m.rule_id for m in compliance_catalog.mappings_for("test-fw-2")] == [
            "rule-public",
            "rule-logging",
        ]
        assert compliance_catalog.mappings_for("test-fw-3") == ()

    def test_rule_ids_for_framework(self, compliance_catalog):
        """Test rule_ids_for collects every mapped rule."""
        assert compliance_catalog.rule_ids_for("other-fw") == frozenset({"rule-encryption", "rule-mfa"})

    def test_equivalent_controls(self, compliance_catalog):
        """Test controls from different frameworks sharing a rule."""
        equivalences = compliance_catalog.equivalent_controls(["test-fw", "other-fw"])

        assert set(equivalences) == {"rule-encryption", "rule-mfa"}
        assert [c.id for c in equivalences["rule-encryption"]] == ["other-fw-1", "test-fw-1"]

    def test_equivalent_controls_single_framework(self, compliance_catalog):
        """Test one framework never has equivalences."""
        assert compliance_catalog.equivalent_controls(["test-fw"]) == {}


class TestComplianceCatalogValidation:
    """Tests for build-time validation."""

    @pytest.fixture
    def framework(self) -> ComplianceFramework:
        return ComplianceFramework(id="fw", name="FW", version="1")

    @pytest.fixture
    def control(self) -> ComplianceControl:
        return ComplianceControl(id="fw-1", framework_id="fw", control_id="1", title="One")

    def test_duplicate_framework_id(self, framework):
        """Test duplicate framework ids are rejected."""
        other = ComplianceFramework(id="fw", name="Other", version="2")
        with pytest.raises(InvalidMappingError, match="Duplicate framework id"):
            ComplianceCatalog([framework, other], [], [], rule_ids=[])

    def test_duplicate_framework_identity(self, framework):
        """Test duplicate (name, version) is rejected."""
        other = ComplianceFramework(id="fw-copy", name="FW", version="1")
        with pytest.raises(InvalidMappingError, match="version 1"):
            ComplianceCatalog([framework, other], [], [], rule_ids=[])

    def test_control_with_unknown_framework(self, framework):
        """Test controls must reference a known framework."""
        orphan = ComplianceControl(id="x-1", framework_id="x", control_id="1", title="T")
        with pytest.raises(InvalidMappingError) as exc_info:
            ComplianceCatalog([framework], [orphan], [], rule_ids=[])
        assert exc_info.value.control_id == "x-1"

    def test_duplicate_control_code(self, framework, control):
        """Test two controls with the same code in a framework are rejected."""
        twin = ComplianceControl(id="fw-1b", framework_id="fw", control_id="1", title="Twin")
        with pytest.raises(InvalidMappingError, match="Duplicate control 1"):
            ComplianceCatalog([framework], [control, twin], [], rule_ids=[])

    def test_duplicate_control_id(self, framework, control):
        """Test two controls with the same catalog id are rejected."""
        twin = ComplianceControl(id="fw-1", framework_id="fw", control_id="2", title="Twin")
        with pytest.raises(InvalidMappingError, match="Duplicate control id"):
            ComplianceCatalog([framework], [control, twin], [], rule_ids=[])

    def test_mapping_to_unknown_control(self, framework, control):
        """Test mappings must reference a known control."""
        mapping = RuleComplianceMapping("r", "fw-9")
        with pytest.raises(InvalidMappingError) as exc_info:
            ComplianceCatalog([framework], [control], [mapping], rule_ids=["r"])
        assert exc_info.value.control_id == "fw-9"
        assert exc_info.value.rule_id == "r"

    def test_mapping_to_unknown_rule(self, framework, control):
        """Test mappings must reference a known rule."""
        mapping = RuleComplianceMapping("ghost", "fw-1")
        with pytest.raises(InvalidMappingError, match="unknown rule ghost"):
            ComplianceCatalog([framework], [control], [mapping], rule_ids=["r"])

    def test_duplicate_mapping(self, framework, control):
        """Test a rule may be mapped to a control only once."""
        mappings = [
            RuleComplianceMapping("r", "fw-1", MappingType.DIRECT),
            RuleComplianceMapping("r", "fw-1", MappingType.PARTIAL),
        ]
        with pytest.raises(InvalidMappingError, match="more than once"):
            ComplianceCatalog([framework], [control], mappings, rule_ids=["r"])


class TestCoverageLevel:
    """Tests for CoverageLevel bands."""

    @pytest.mark.parametrize(
        "percentage,level",
        [
            (100.0, CoverageLevel.EXCELLENT),
            (90.0, CoverageLevel.EXCELLENT),
            (75.0, CoverageLevel.GOOD),
            (50.0, CoverageLevel.FAIR),
            (49.9, CoverageLevel.POOR),
            (0.0, CoverageLevel.POOR),
        ],
    )
    def test_from_percentage(self, percentage, level):
        """Test band thresholds."""
        assert CoverageLevel.from_percentage(percentage) == level


class TestCoverageCalculator:
    """Tests for the CoverageCalculator class."""

    def test_partial_coverage(self, compliance_catalog):
        """Test coverage of a framework with one unmapped control."""
        coverage = CoverageCalculator(compliance_catalog).coverage("test-fw")

        assert coverage.total_controls == 4
        assert coverage.mapped_controls == 3
        assert coverage.mapped_rules == 4
        assert coverage.total_mappings == 4
        assert coverage.coverage_percentage == 75.0
        assert coverage.coverage_level == CoverageLevel.GOOD

    def test_full_coverage(self, compliance_catalog):
        """Test a fully mapped framework."""
        coverage = CoverageCalculator(compliance_catalog).coverage("other-fw")

        assert coverage.coverage_percentage == 100.0
        assert coverage.coverage_level == CoverageLevel.EXCELLENT

    def test_framework_without_controls(self):
        """Test an empty framework has zero coverage."""
        catalog = ComplianceCatalog(
            [ComplianceFramework(id="empty", name="Empty", version="1")], [], [], rule_ids=[]
        )
        coverage = CoverageCalculator(catalog).coverage("empty")

        assert coverage.total_controls == 0
        assert coverage.coverage_percentage == 0.0
        assert coverage.coverage_level == CoverageLevel.POOR

    def test_unknown_framework(self, compliance_catalog):
        """Test unknown frameworks raise FrameworkNotFoundError."""
        with pytest.raises(FrameworkNotFoundError):
            CoverageCalculator(compliance_catalog).coverage("nope")

    def test_adding_mapping_increases_coverage(
        self, test_rules, test_frameworks, test_controls, test_mappings
    ):
        """Test mapping a previously unmapped control strictly increases coverage."""
        rule_ids = [r.id for r in test_rules]
        before = CoverageCalculator(
            ComplianceCatalog(test_frameworks, test_controls, test_mappings, rule_ids)
        ).coverage("test-fw")

        extended = test_mappings + [RuleComplianceMapping("rule-logging", "test-fw-3")]
        after = CoverageCalculator(
            ComplianceCatalog(test_frameworks, test_controls, extended, rule_ids)
        ).coverage("test-fw")

        assert after.coverage_percentage > before.coverage_percentage
        assert after.coverage_percentage == 100.0

    def test_to_dict(self, compliance_catalog):
        """Test wire names."""
        data = CoverageCalculator(compliance_catalog).coverage("test-fw").to_dict()

        assert data["frameworkId"] == "test-fw"
        assert data["coveragePercentage"] == 75.0
        assert data["coverageLevel"] == "Good"
