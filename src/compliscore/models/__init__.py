"""
Data models for compliscore.

This package provides the core data models:

- Asset: A discovered resource that rules are scoped to
- Rule: A provider-specific predicate with a structural contract
- Finding: The outcome of one rule on one asset at one scan
- ComplianceFramework / ComplianceControl / RuleComplianceMapping:
  the read-only compliance catalog entities
- Assessment / ControlAssessment: computed compliance results
"""

from compliscore.models.asset import Asset
from compliscore.models.compliance import (
    Assessment,
    ComplianceControl,
    ComplianceFramework,
    ControlAssessment,
    ControlStatus,
    MappingType,
    RuleComplianceMapping,
    RuleVerdict,
)
from compliscore.models.finding import (
    Finding,
    FindingCollection,
    FindingStatus,
    ScanFindings,
    Severity,
)
from compliscore.models.rule import FieldSpec, Predicate, Rule, RuleContract

__all__ = [
    # Asset module
    "Asset",
    # Finding module
    "Finding",
    "FindingCollection",
    "FindingStatus",
    "ScanFindings",
    "Severity",
    # Rule module
    "FieldSpec",
    "Predicate",
    "Rule",
    "RuleContract",
    # Compliance module
    "Assessment",
    "ComplianceControl",
    "ComplianceFramework",
    "ControlAssessment",
    "ControlStatus",
    "MappingType",
    "RuleComplianceMapping",
    "RuleVerdict",
]
