"""Built-in GitHub repository rules."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from compliscore.models import FieldSpec, FindingStatus, Rule, RuleContract, Severity

# Fewer than this many checks enabled is a failure rather than a warning
_PARTIAL_THRESHOLD = 2


def _grade(checks: list[bool]) -> FindingStatus:
    if all(checks):
        return FindingStatus.PASS
    if sum(1 for check in checks if check) >= _PARTIAL_THRESHOLD:
        return FindingStatus.WARN
    return FindingStatus.FAIL


def _repository_protection(config: dict[str, Any], evaluated_at: datetime) -> FindingStatus:
    rules = config.get("protectionRules")
    if not rules:
        return FindingStatus.FAIL

    status_checks = rules.get("requiredStatusChecks") or {}
    return _grade([
        status_checks.get("strict") is True,
        rules.get("enforceAdmins") is True,
        rules.get("requiredLinearHistory") is True,
        not rules.get("allowForcePushes"),
    ])


def _feature_enabled(features: dict[str, Any], name: str) -> bool:
    return (features.get(name) or {}).get("status") == "enabled"


def _repository_security(config: dict[str, Any], evaluated_at: datetime) -> FindingStatus:
    if not config.get("repository"):
        return FindingStatus.FAIL

    analysis = config.get("securityAndAnalysis") or {}
    advanced = analysis.get("advancedSecurity")
    if not advanced:
        return FindingStatus.FAIL

    return _grade([
        _feature_enabled(advanced, "dependabotSecurityUpdates"),
        _feature_enabled(advanced, "codeScanningAlerts"),
        _feature_enabled(advanced, "secretScanning"),
    ])


GITHUB_RULES: list[Rule] = [
    Rule(
        id="github-repository-protection",
        provider="github",
        service="repository",
        resource_type="repository",
        severity=Severity.MEDIUM,
        description="Checks default branch protection settings",
        remediation=(
            "Require strict status checks, enforce rules for admins, require "
            "linear history and block force pushes on the default branch."
        ),
        evaluate=_repository_protection,
        contract=RuleContract({"protectionRules": FieldSpec((dict,))}),
    ),
    Rule(
        id="github-repository-security",
        provider="github",
        service="repository",
        resource_type="repository",
        severity=Severity.HIGH,
        description="Checks GitHub Advanced Security features",
        remediation=(
            "Enable Dependabot security updates, code scanning and secret "
            "scanning for the repository."
        ),
        evaluate=_repository_security,
        contract=RuleContract({
            "repository": FieldSpec((dict,)),
            "securityAndAnalysis": FieldSpec((dict,)),
        }),
    ),
]
