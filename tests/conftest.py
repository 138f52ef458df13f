"""
Pytest configuration and fixtures for compliscore tests.

This module provides common fixtures used across unit tests: a small
two-framework catalog built from test rules, finding factories, and
storage backends.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Generator
from unittest.mock import MagicMock, patch

import pytest

from compliscore.compliance import ComplianceCatalog
from compliscore.engine import CatalogContext
from compliscore.models import (
    Asset,
    ComplianceControl,
    ComplianceFramework,
    FieldSpec,
    Finding,
    FindingStatus,
    MappingType,
    Rule,
    RuleComplianceMapping,
    RuleContract,
    Severity,
)
from compliscore.storage import (
    InMemoryFindingsSource,
    InMemorySnapshotStore,
    LocalFindingsSource,
    LocalSnapshotStore,
)

FIXED_NOW = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)
ACCOUNT_ID = "123456789012"


def _status_predicate(config: dict[str, Any], evaluated_at: datetime) -> FindingStatus:
    """Return the status named in the configuration."""
    return FindingStatus.from_string(config.get("status", "pass"))


# Clock fixtures


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    """Return a clock frozen at FIXED_NOW."""
    return lambda: FIXED_NOW


# Rule fixtures


@pytest.fixture
def rule_factory() -> Callable[..., Rule]:
    """Return a factory for rules whose verdict is read from the config."""

    def _make(
        rule_id: str,
        provider: str = "aws",
        service: str = "s3",
        resource_type: str = "s3_bucket",
        severity: Severity = Severity.MEDIUM,
        evaluate: Callable[[dict[str, Any], datetime], Any] = _status_predicate,
        contract: RuleContract | None = None,
    ) -> Rule:
        return Rule(
            id=rule_id,
            provider=provider,
            service=service,
            resource_type=resource_type,
            severity=severity,
            evaluate=evaluate,
            description=f"Test rule {rule_id}",
            remediation=f"Fix {rule_id}",
            contract=contract or RuleContract({"status": FieldSpec((str,))}),
        )

    return _make


@pytest.fixture
def test_rules(rule_factory) -> list[Rule]:
    """Return the rules used by the test frameworks."""
    return [
        rule_factory("rule-encryption", severity=Severity.HIGH),
        rule_factory("rule-public", severity=Severity.CRITICAL),
        rule_factory("rule-logging", severity=Severity.LOW),
        rule_factory("rule-mfa", service="iam", resource_type="iam_user"),
    ]


# Finding fixtures


@pytest.fixture
def finding_factory() -> Callable[..., Finding]:
    """Return a factory for findings."""

    def _make(
        rule_id: str,
        asset_id: str = "asset-1",
        status: str | FindingStatus = FindingStatus.PASS,
        scan_id: str = "scan-1",
        severity: Severity = Severity.MEDIUM,
        evidence: dict[str, Any] | None = None,
    ) -> Finding:
        if isinstance(status, str):
            status = FindingStatus.from_string(status)
        return Finding(
            id=f"finding-{scan_id}-{rule_id}-{asset_id}",
            rule_id=rule_id,
            asset_id=asset_id,
            scan_id=scan_id,
            status=status,
            severity=severity,
            evidence=evidence if evidence is not None else {"resource": asset_id},
            created_at=FIXED_NOW,
        )

    return _make


@pytest.fixture
def sample_asset() -> Asset:
    """Return a sample S3 bucket asset."""
    return Asset(
        id="asset-bucket-1",
        account_id=ACCOUNT_ID,
        provider="aws",
        service="s3",
        resource_type="s3_bucket",
        resource_id="arn:aws:s3:::test-bucket",
        region="us-east-1",
        tags={"Environment": "test"},
    )


# Catalog fixtures


@pytest.fixture
def test_frameworks() -> list[ComplianceFramework]:
    """Return two small frameworks."""
    return [
        ComplianceFramework(
            id="test-fw",
            name="Test Framework",
            version="1.0",
            description="Framework used by the unit tests",
        ),
        ComplianceFramework(id="other-fw", name="Other Framework", version="2.0"),
    ]


@pytest.fixture
def test_controls() -> list[ComplianceControl]:
    """Return the controls of the test frameworks."""
    return [
        ComplianceControl(
            id="test-fw-1",
            framework_id="test-fw",
            control_id="1",
            title="Encrypt data at rest",
            description="Stored data must be encrypted.",
            severity=Severity.HIGH,
            implementation_guidance="Enable default encryption.",
            references=("https://example.com/encryption",),
        ),
        ComplianceControl(
            id="test-fw-2",
            framework_id="test-fw",
            control_id="2",
            title="Block public access",
            severity=Severity.CRITICAL,
        ),
        ComplianceControl(
            id="test-fw-3",
            framework_id="test-fw",
            control_id="3",
            title="Physical security",
            severity=Severity.MEDIUM,
        ),
        ComplianceControl(
            id="test-fw-4",
            framework_id="test-fw",
            control_id="4",
            title="Strong authentication",
            severity=Severity.LOW,
        ),
        ComplianceControl(
            id="other-fw-1",
            framework_id="other-fw",
            control_id="1",
            title="Encryption",
            severity=Severity.HIGH,
        ),
        ComplianceControl(
            id="other-fw-2",
            framework_id="other-fw",
            control_id="2",
            title="Multi-factor authentication",
        ),
    ]


@pytest.fixture
def test_mappings() -> list[RuleComplianceMapping]:
    """
    Return the mappings of the test frameworks.

    test-fw-3 is deliberately unmapped.
    """
    return [
        RuleComplianceMapping("rule-encryption", "test-fw-1", MappingType.DIRECT),
        RuleComplianceMapping("rule-public", "test-fw-2", MappingType.DIRECT),
        RuleComplianceMapping("rule-logging", "test-fw-2", MappingType.PARTIAL),
        RuleComplianceMapping("rule-mfa", "test-fw-4", MappingType.PARTIAL),
        RuleComplianceMapping("rule-encryption", "other-fw-1", MappingType.DIRECT),
        RuleComplianceMapping("rule-mfa", "other-fw-2", MappingType.DIRECT),
    ]


@pytest.fixture
def compliance_catalog(
    test_rules, test_frameworks, test_controls, test_mappings
) -> ComplianceCatalog:
    """Return the compliance catalog of the test frameworks."""
    return ComplianceCatalog(
        test_frameworks,
        test_controls,
        test_mappings,
        rule_ids=[r.id for r in test_rules],
    )


@pytest.fixture
def catalog_context(
    test_rules, test_frameworks, test_controls, test_mappings
) -> CatalogContext:
    """Return a CatalogContext over the test rules and frameworks."""
    return CatalogContext.build(test_rules, test_frameworks, test_controls, test_mappings)


# Storage fixtures


@pytest.fixture
def findings_source() -> InMemoryFindingsSource:
    """Return an empty in-memory findings source."""
    return InMemoryFindingsSource()


@pytest.fixture
def snapshot_store() -> InMemorySnapshotStore:
    """Return an empty in-memory snapshot store."""
    return InMemorySnapshotStore()


@pytest.fixture
def local_snapshot_store(tmp_path) -> LocalSnapshotStore:
    """Return a LocalSnapshotStore backed by a temporary database."""
    return LocalSnapshotStore(db_path=str(tmp_path / "test_compliscore.db"))


@pytest.fixture
def local_findings_source(tmp_path) -> LocalFindingsSource:
    """Return a LocalFindingsSource backed by a temporary database."""
    return LocalFindingsSource(str(tmp_path / "test_compliscore.db"))


# Mock fixtures for AWS services


@pytest.fixture
def mock_s3_client() -> Generator[MagicMock, None, None]:
    """Patch boto3.client and return the mocked S3 client."""
    with patch("boto3.client") as mock_client:
        client = MagicMock()
        mock_client.return_value = client
        yield client
