"""
Tests for the compliscore engine.

Tests RuleCatalog, RuleEvaluator, CatalogLoader and CatalogContext.
"""

from __future__ import annotations

import json
import logging
from unittest.mock import patch

import pytest

from compliscore.engine import (
    CatalogContext,
    CatalogLoader,
    RuleCatalog,
    RuleEvaluator,
    parse_framework_document,
)
from compliscore.errors import (
    CatalogLoadError,
    DuplicateRuleError,
    InvalidMappingError,
    RuleNotFoundError,
)
from compliscore.models import Asset, FindingStatus, MappingType, Severity
from compliscore.rules import default_rules


class TestRuleCatalog:
    """Tests for the RuleCatalog class."""

    def test_lookup_by_id(self, test_rules):
        """Test rules are indexed by id."""
        catalog = RuleCatalog.from_rules(test_rules)

        assert len(catalog) == 4
        assert "rule-mfa" in catalog
        assert catalog.get("rule-mfa").service == "iam"
        assert catalog.get("missing") is None

    def test_require_unknown_rule(self, test_rules):
        """Test require raises RuleNotFoundError."""
        catalog = RuleCatalog.from_rules(test_rules)

        with pytest.raises(RuleNotFoundError) as exc_info:
            catalog.require("missing")
        assert exc_info.value.rule_id == "missing"

    def test_lookup_by_scope(self, test_rules):
        """Test rules are indexed by (provider, service, resource_type)."""
        catalog = RuleCatalog.from_rules(test_rules)

        s3_rules = catalog.rules_for("aws", "s3", "s3_bucket")
        assert [r.id for r in s3_rules] == ["rule-encryption", "rule-public", "rule-logging"]
        assert catalog.rules_for("aws", "ec2", "instance") == ()

    def test_duplicate_rule_id(self, rule_factory):
        """Test duplicate ids fail to load."""
        with pytest.raises(DuplicateRuleError) as exc_info:
            RuleCatalog.from_rules([rule_factory("dup"), rule_factory("dup")])
        assert exc_info.value.rule_id == "dup"

    def test_iteration(self, test_rules):
        """Test iterating yields every rule."""
        catalog = RuleCatalog.from_rules(test_rules)
        assert {r.id for r in catalog} == catalog.rule_ids


class TestRuleEvaluator:
    """Tests for the RuleEvaluator class."""

    @pytest.fixture
    def evaluator(self, test_rules, fixed_clock) -> RuleEvaluator:
        """Return a RuleEvaluator over the test rules."""
        return RuleEvaluator(RuleCatalog.from_rules(test_rules), max_workers=2, clock=fixed_clock)

    def test_one_finding_per_applicable_rule(self, evaluator, sample_asset):
        """Test evaluate returns one finding per scoped rule."""
        findings = evaluator.evaluate(sample_asset, {"status": "pass"}, "scan-1")

        assert {f.rule_id for f in findings} == {"rule-encryption", "rule-public", "rule-logging"}
        assert all(f.status == FindingStatus.PASS for f in findings)
        assert all(f.scan_id == "scan-1" for f in findings)
        assert all(f.asset_id == sample_asset.id for f in findings)

    def test_finding_inherits_rule_severity(self, evaluator, sample_asset):
        """Test findings carry the rule's severity."""
        findings = {f.rule_id: f for f in evaluator.evaluate(sample_asset, {}, "scan-1")}
        assert findings["rule-public"].severity == Severity.CRITICAL

    def test_no_rules_for_scope(self, evaluator):
        """Test assets without rules produce no findings."""
        asset = Asset(id="vm-1", account_id="1", provider="aws", service="ec2", resource_type="instance")
        assert evaluator.evaluate(asset, {}, "scan-1") == []

    def test_finding_ids_are_deterministic(self, evaluator, sample_asset):
        """Test the same scan, rule and asset give the same id."""
        first = evaluator.evaluate(sample_asset, {"status": "pass"}, "scan-1")
        second = evaluator.evaluate(sample_asset, {"status": "fail"}, "scan-1")
        other_scan = evaluator.evaluate(sample_asset, {"status": "pass"}, "scan-2")

        assert [f.id for f in first] == [f.id for f in second]
        assert {f.id for f in first}.isdisjoint({f.id for f in other_scan})
        assert all(f.id.startswith("finding-") and len(f.id) == 24 for f in first)

    def test_evidence_records_configuration(self, evaluator, sample_asset):
        """Test successful evaluations record the configuration."""
        finding = evaluator.evaluate(sample_asset, {"status": "warn"}, "scan-1")[0]

        assert finding.status == FindingStatus.WARN
        assert finding.evidence["config"] == {"status": "warn"}
        assert finding.evidence["resource"] == "arn:aws:s3:::test-bucket"
        assert "error" not in finding.evidence

    def test_evidence_is_detached_from_caller_config(self, evaluator, sample_asset):
        """Test later changes to the caller's configuration leave evidence intact."""
        config = {"status": "warn", "tags": {"env": "prod"}}
        finding = evaluator.evaluate(sample_asset, config, "scan-1")[0]

        config["status"] = "fail"
        config["tags"]["env"] = "dev"

        assert finding.evidence["config"] == {"status": "warn", "tags": {"env": "prod"}}

    def test_contract_violation_fails_closed(self, evaluator, sample_asset):
        """Test a configuration violating the contract yields FAIL with error evidence."""
        findings = evaluator.evaluate(sample_asset, {"status": 42}, "scan-1")

        assert all(f.status == FindingStatus.FAIL for f in findings)
        assert all("expected str, got int" in f.evidence["error"] for f in findings)
        assert all("config" not in f.evidence for f in findings)

    def test_predicate_exception_fails_closed(self, rule_factory, sample_asset, caplog):
        """Test a raising predicate yields FAIL and logs the failure."""

        def broken(config, evaluated_at):
            raise KeyError("Rules")

        catalog = RuleCatalog.from_rules([rule_factory("broken", evaluate=broken)])
        evaluator = RuleEvaluator(catalog)

        with caplog.at_level(logging.WARNING, logger="compliscore"):
            (finding,) = evaluator.evaluate(sample_asset, {}, "scan-1")

        assert finding.status == FindingStatus.FAIL
        assert "KeyError" in finding.evidence["error"]
        assert "broken" in caplog.text

    def test_invalid_verdict_fails_closed(self, rule_factory, sample_asset):
        """Test a predicate returning garbage yields FAIL."""
        catalog = RuleCatalog.from_rules([rule_factory("odd", evaluate=lambda c, at: "maybe")])
        (finding,) = RuleEvaluator(catalog).evaluate(sample_asset, {}, "scan-1")

        assert finding.status == FindingStatus.FAIL
        assert "invalid verdict" in finding.evidence["error"]

    def test_string_verdict_accepted(self, rule_factory, sample_asset):
        """Test a predicate may return the status value as a string."""
        catalog = RuleCatalog.from_rules([rule_factory("text", evaluate=lambda c, at: "warn")])
        (finding,) = RuleEvaluator(catalog).evaluate(sample_asset, {}, "scan-1")

        assert finding.status == FindingStatus.WARN

    def test_created_at_uses_clock(self, evaluator, sample_asset, fixed_clock):
        """Test created_at comes from the injected clock."""
        finding = evaluator.evaluate(sample_asset, {}, "scan-1")[0]
        assert finding.created_at == fixed_clock()

    def test_predicate_receives_clock_time(self, rule_factory, sample_asset, fixed_clock):
        """Test predicates are evaluated at the injected clock's time."""
        seen = []

        def record(config, evaluated_at):
            seen.append(evaluated_at)
            return "pass"

        catalog = RuleCatalog.from_rules([rule_factory("timed", evaluate=record)])
        (finding,) = RuleEvaluator(catalog, clock=fixed_clock).evaluate(sample_asset, {}, "scan-1")

        assert seen == [fixed_clock()]
        assert finding.created_at == fixed_clock()

    def test_evaluate_batch(self, evaluator):
        """Test batch evaluation tallies per-rule results."""
        buckets = [
            (
                Asset(id=f"b-{i}", account_id="1", provider="aws", service="s3", resource_type="s3_bucket"),
                {"status": status},
            )
            for i, status in enumerate(["pass", "fail", "warn"])
        ]
        user = (
            Asset(id="u-1", account_id="1", provider="aws", service="iam", resource_type="iam_user"),
            {"status": 1},
        )

        findings, result = evaluator.evaluate_batch(buckets + [user], "scan-1")

        assert len(findings) == 10
        assert result.assets_evaluated == 4
        assert result.findings_generated == 10
        encryption = result.rule_results["rule-encryption"]
        assert (encryption.evaluated, encryption.passed, encryption.failed, encryption.warned) == (3, 1, 1, 1)
        assert result.rule_results["rule-mfa"].failed == 1
        assert result.error_count == 1

    def test_evaluate_builtin_rules_against_s3_bucket(self, sample_asset):
        """Test built-in rules evaluate a realistic bucket."""
        evaluator = RuleEvaluator(RuleCatalog.from_rules(default_rules(["aws"])))
        config = {
            "encryption": {
                "Rules": [{"ApplyServerSideEncryptionByDefault": {"SSEAlgorithm": "aws:kms"}}]
            },
            "versioning": {"Status": "Enabled"},
        }

        findings = {f.rule_id: f for f in evaluator.evaluate(sample_asset, config, "scan-1")}

        assert findings["aws-s3-bucket-encryption"].status == FindingStatus.PASS
        assert findings["aws-s3-bucket-versioning"].status == FindingStatus.PASS
        assert findings["aws-s3-bucket-public-access"].status == FindingStatus.WARN
        assert findings["aws-s3-bucket-mfa-delete"].status == FindingStatus.FAIL


class TestParseFrameworkDocument:
    """Tests for parse_framework_document."""

    def test_camel_case_document(self):
        """Test parsing the file format."""
        framework, controls, mappings = parse_framework_document({
            "framework": {"id": "fw", "name": "Framework", "version": 1.0},
            "controls": [
                {"controlId": "1.1", "title": "First", "severity": "high"},
                {"id": "fw-custom", "controlId": "1.2", "title": "Second"},
            ],
            "mappings": [
                {"ruleId": "r", "controlId": "fw-1.1", "mappingType": "PARTIAL"},
            ],
        })

        assert framework.version == "1.0"
        assert controls[0].id == "fw-1.1"
        assert controls[0].severity == Severity.HIGH
        assert controls[1].id == "fw-custom"
        assert controls[1].severity is None
        assert mappings[0].mapping_type == MappingType.PARTIAL

    def test_snake_case_document(self):
        """Test snake_case keys are accepted."""
        _, controls, mappings = parse_framework_document({
            "framework": {"id": "fw", "name": "Framework", "version": "1"},
            "controls": [
                {"control_id": "A", "title": "A", "implementation_guidance": "Do it"},
            ],
            "mappings": [{"rule_id": "r", "control_id": "fw-A"}],
        })

        assert controls[0].implementation_guidance == "Do it"
        assert mappings[0].mapping_type == MappingType.DIRECT

    def test_missing_framework(self):
        """Test a document without framework raises KeyError."""
        with pytest.raises(KeyError):
            parse_framework_document({"controls": []})


class TestCatalogLoader:
    """Tests for the CatalogLoader class."""

    def _write(self, directory, name: str, content: str) -> str:
        path = directory / name
        path.write_text(content)
        return str(path)

    def test_load_bundled_frameworks(self):
        """Test the bundled frameworks load."""
        frameworks, controls, mappings = CatalogLoader().load_all()

        ids = {f.id for f in frameworks}
        assert {"cis-aws-1.5.0", "soc2-2023", "pcidss-4.0", "cloud-security-baseline"} <= ids
        assert controls
        assert mappings

    def test_load_custom_directory(self, tmp_path):
        """Test YAML and JSON files in a custom directory load."""
        self._write(tmp_path, "a.yaml", (
            "framework:\n"
            "  id: custom-a\n"
            "  name: Custom A\n"
            "  version: '1'\n"
            "controls:\n"
            "  - controlId: A1\n"
            "    title: First\n"
        ))
        self._write(tmp_path, "b.json", json.dumps({
            "framework": {"id": "custom-b", "name": "Custom B", "version": "1"},
            "controls": [],
        }))
        self._write(tmp_path, "notes.txt", "ignored")

        loader = CatalogLoader([str(tmp_path)], include_bundled=False)
        frameworks, controls, mappings = loader.load_all()

        assert [f.id for f in frameworks] == ["custom-a", "custom-b"]
        assert [c.id for c in controls] == ["custom-a-A1"]
        assert mappings == []

    def test_missing_directory_is_skipped(self, tmp_path):
        """Test unknown directories are ignored."""
        loader = CatalogLoader([str(tmp_path / "nope")], include_bundled=False)
        assert loader.load_all() == ([], [], [])

    def test_invalid_yaml(self, tmp_path):
        """Test unparseable YAML raises CatalogLoadError naming the file."""
        path = self._write(tmp_path, "bad.yaml", "framework: [unclosed")
        loader = CatalogLoader([str(tmp_path)], include_bundled=False)

        with pytest.raises(CatalogLoadError) as exc_info:
            loader.load_all()
        assert exc_info.value.source_path == path

    def test_missing_required_field(self, tmp_path):
        """Test a framework without a name raises CatalogLoadError."""
        self._write(tmp_path, "bad.yaml", "framework:\n  id: x\n  version: '1'\n")
        loader = CatalogLoader([str(tmp_path)], include_bundled=False)

        with pytest.raises(CatalogLoadError, match="name"):
            loader.load_all()

    def test_invalid_severity(self, tmp_path):
        """Test an unknown severity raises CatalogLoadError."""
        self._write(tmp_path, "bad.yaml", (
            "framework: {id: x, name: X, version: '1'}\n"
            "controls:\n"
            "  - {controlId: '1', title: T, severity: urgent}\n"
        ))
        loader = CatalogLoader([str(tmp_path)], include_bundled=False)

        with pytest.raises(CatalogLoadError, match="Invalid severity"):
            loader.load_all()

    def test_top_level_not_mapping(self, tmp_path):
        """Test a list document raises CatalogLoadError."""
        self._write(tmp_path, "bad.yaml", "- a\n- b\n")
        loader = CatalogLoader([str(tmp_path)], include_bundled=False)

        with pytest.raises(CatalogLoadError, match="mapping"):
            loader.load_all()

    def test_unreadable_file(self, tmp_path):
        """Test a read failure raises CatalogLoadError."""
        with patch("builtins.open", side_effect=OSError("denied")):
            with pytest.raises(CatalogLoadError, match="Cannot read file"):
                CatalogLoader().load_file(str(tmp_path / "x.yaml"))


class TestCatalogContext:
    """Tests for the CatalogContext class."""

    def test_load_default(self):
        """Test the built-in rules and bundled frameworks are consistent."""
        context = CatalogContext.load_default()

        assert len(context.rules) == len(default_rules())
        assert context.compliance.has_framework("cis-aws-1.5.0")
        assert context.compliance.mappings_for("cis-aws-1.2")[0].rule_id == "aws-iam-user-mfa-enabled"

    def test_build_rejects_unknown_rule(self, test_rules, test_frameworks, test_controls, test_mappings):
        """Test mappings to unregistered rules fail at build time."""
        with pytest.raises(InvalidMappingError):
            CatalogContext.build(test_rules[:1], test_frameworks, test_controls, test_mappings)

    def test_build_rejects_duplicate_rules(self, rule_factory):
        """Test duplicate rules fail at build time."""
        with pytest.raises(DuplicateRuleError):
            CatalogContext.build([rule_factory("r"), rule_factory("r")], [], [], [])

    def test_load_with_custom_directory(self, tmp_path, rule_factory):
        """Test loading frameworks from a custom directory with custom rules."""
        (tmp_path / "fw.yaml").write_text(
            "framework: {id: fw, name: FW, version: '1'}\n"
            "controls:\n"
            "  - {controlId: '1', title: One}\n"
            "mappings:\n"
            "  - {ruleId: r, controlId: fw-1}\n"
        )

        context = CatalogContext.load(
            rules=[rule_factory("r")],
            catalog_dirs=[str(tmp_path)],
            include_bundled=False,
        )

        assert [f.id for f in context.compliance.frameworks()] == ["fw"]
        assert context.compliance.rule_ids_for("fw") == frozenset({"r"})

    def test_context_is_immutable(self, catalog_context):
        """Test the context cannot be reassigned."""
        with pytest.raises(AttributeError):
            catalog_context.rules = None
