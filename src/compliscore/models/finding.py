"""
Finding data model for compliscore.

This module defines the Finding class representing the outcome of one
rule evaluated against one asset during one scan, together with the
Severity and FindingStatus enums shared across the package.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Iterator


class Severity(Enum):
    """Severity level of a rule, finding, or control."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Numeric ordering used for prioritization (critical=4 .. low=1)."""
        return _SEVERITY_RANK[self]

    @classmethod
    def from_string(cls, value: str) -> Severity:
        """
        Parse a severity name, ignoring case.

        Raises:
            ValueError: If value names no severity
        """
        try:
            return cls(value.lower())
        except ValueError:
            raise ValueError(f"Invalid severity: {value}") from None


_SEVERITY_RANK = {
    Severity.CRITICAL: 4,
    Severity.HIGH: 3,
    Severity.MEDIUM: 2,
    Severity.LOW: 1,
}


class FindingStatus(Enum):
    """Outcome of a rule evaluation."""

    PASS = "pass"
    WARN = "warn"
    FAIL = "fail"

    @classmethod
    def from_string(cls, value: str) -> FindingStatus:
        """Parse a status name, ignoring case; raises ValueError if unknown."""
        try:
            return cls(value.lower())
        except ValueError:
            raise ValueError(f"Invalid status: {value}") from None


@dataclass(frozen=True)
class Finding:
    """
    Result of evaluating one rule against one asset at one scan.

    Findings are immutable once written. Several findings may exist for
    the same (rule_id, asset_id) pair across scans; only those from the
    most recent completed scan take part in an assessment.

    Attributes:
        id: Unique finding identifier
        rule_id: Rule that produced the finding
        asset_id: Asset the rule was evaluated against
        scan_id: Scan during which the evaluation happened
        status: pass, warn, or fail
        severity: Severity inherited from the rule
        evidence: Free-form evidence describing the evaluation
        created_at: When the finding was recorded
    """

    id: str
    rule_id: str
    asset_id: str
    scan_id: str
    status: FindingStatus
    severity: Severity
    evidence: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None

    def is_failing(self) -> bool:
        """Return True if the finding status is FAIL."""
        return self.status == FindingStatus.FAIL

    def to_dict(self) -> dict[str, Any]:
        """
        Convert finding to its wire representation.

        Returns:
            Dictionary keyed by the camelCase field names
        """
        return {
            "id": self.id,
            "ruleId": self.rule_id,
            "assetId": self.asset_id,
            "scanId": self.scan_id,
            "status": self.status.value,
            "severity": self.severity.value,
            "evidence": self.evidence,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Finding:
        """
        Build a Finding from its wire form.

        snake_case attribute names are accepted as well as the camelCase
        wire names. Status and severity may be enum members or strings.
        """

        def pick(wire: str, attr: str, default: Any = None) -> Any:
            return data.get(wire, data.get(attr, default))

        created_at = pick("createdAt", "created_at")
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)

        status = data.get("status", FindingStatus.FAIL)
        severity = data.get("severity", Severity.MEDIUM)

        return cls(
            id=data["id"],
            rule_id=pick("ruleId", "rule_id", ""),
            asset_id=pick("assetId", "asset_id", ""),
            scan_id=pick("scanId", "scan_id", ""),
            status=FindingStatus.from_string(status) if isinstance(status, str) else status,
            severity=Severity.from_string(severity) if isinstance(severity, str) else severity,
            evidence=data.get("evidence") or {},
            created_at=created_at,
        )


class FindingCollection:
    """
    Read-only view over the findings handed to an assessment.

    Iteration preserves input order.
    """

    def __init__(self, findings: Iterable[Finding] = ()) -> None:
        self._items: tuple[Finding, ...] = tuple(findings)

    @property
    def findings(self) -> tuple[Finding, ...]:
        return self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Finding]:
        return iter(self._items)

    def scan_ids(self) -> set[str]:
        """Distinct scan ids present in the collection."""
        return {f.scan_id for f in self._items}

    def for_scan(self, scan_id: str) -> FindingCollection:
        """Only the findings recorded during `scan_id`."""
        return FindingCollection(f for f in self._items if f.scan_id == scan_id)

    def with_status(self, status: FindingStatus) -> FindingCollection:
        return FindingCollection(f for f in self._items if f.status == status)

    def by_rule(self) -> dict[str, list[Finding]]:
        """Group findings by rule id, keeping input order within each group."""
        grouped: dict[str, list[Finding]] = {}
        for finding in self._items:
            grouped.setdefault(finding.rule_id, []).append(finding)
        return grouped

    def status_counts(self) -> dict[FindingStatus, int]:
        """Number of findings per status; every status is present."""
        counts = dict.fromkeys(FindingStatus, 0)
        for finding in self._items:
            counts[finding.status] += 1
        return counts


@dataclass(frozen=True)
class ScanFindings:
    """Findings of a single completed scan, as handed over by a findings source."""

    scan_id: str
    findings: tuple[Finding, ...] = ()
    completed_at: datetime | None = None
