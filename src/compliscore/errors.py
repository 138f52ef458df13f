"""
Error taxonomy for compliscore.

Catalog construction errors (CatalogError and subclasses) are fatal at
load time. Per-request errors (NotFoundError, AccountHasNoCompletedScanError,
InconsistentScanSetError) are returned to the caller. EvaluationError is
raised inside the rule evaluator only and is always converted into a
failing finding.
"""

from __future__ import annotations


class ComplianceError(Exception):
    """Base class for all compliscore errors."""


class NotFoundError(ComplianceError):
    """A framework, control, rule, or account could not be found."""


class FrameworkNotFoundError(NotFoundError):
    """Raised when a framework id is not present in the catalog."""

    def __init__(self, framework_id: str):
        self.framework_id = framework_id
        super().__init__(f"Framework not found: {framework_id}")


class ControlNotFoundError(NotFoundError):
    """Raised when a control id is not present in the catalog."""

    def __init__(self, control_id: str):
        self.control_id = control_id
        super().__init__(f"Control not found: {control_id}")


class RuleNotFoundError(NotFoundError):
    """Raised when a rule id is not present in the rule catalog."""

    def __init__(self, rule_id: str):
        self.rule_id = rule_id
        super().__init__(f"Rule not found: {rule_id}")


class AccountHasNoCompletedScanError(ComplianceError):
    """Raised when an account has no completed scan to assess."""

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"No completed scans found for account: {account_id}")


class InconsistentScanSetError(ComplianceError):
    """Raised when findings from more than one scan are supplied together."""

    def __init__(self, account_id: str, scan_ids: set[str]):
        self.account_id = account_id
        self.scan_ids = set(scan_ids)
        super().__init__(
            f"Findings for account {account_id} span multiple scans: "
            f"{', '.join(sorted(self.scan_ids))}"
        )


class CatalogError(ComplianceError):
    """Base class for catalog build-time errors."""


class DuplicateRuleError(CatalogError):
    """Raised when two rules share the same id."""

    def __init__(self, rule_id: str):
        self.rule_id = rule_id
        super().__init__(f"Duplicate rule id: {rule_id}")


class InvalidMappingError(CatalogError):
    """Raised when catalog relationships are not referentially sound."""

    def __init__(
        self,
        message: str,
        rule_id: str | None = None,
        control_id: str | None = None,
    ):
        self.rule_id = rule_id
        self.control_id = control_id
        super().__init__(message)


class CatalogLoadError(CatalogError):
    """Raised when a framework definition file cannot be loaded."""

    def __init__(self, message: str, source_path: str | None = None):
        self.source_path = source_path
        prefix = f"{source_path}: " if source_path else ""
        super().__init__(f"{prefix}{message}")


class EvaluationError(ComplianceError):
    """Raised when a rule cannot be evaluated against a configuration."""

    def __init__(self, rule_id: str, message: str):
        self.rule_id = rule_id
        super().__init__(f"Rule {rule_id} could not be evaluated: {message}")


class UnsupportedExportFormatError(ComplianceError):
    """Raised for export formats this package does not render."""

    def __init__(self, format: str):
        self.format = format
        super().__init__(f"Unsupported export format: {format}")
