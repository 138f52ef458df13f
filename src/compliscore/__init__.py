"""
compliscore - Compliance scoring over cloud security findings

Turns rule findings from a cloud configuration scan into per-framework
compliance assessments (CIS, SOC 2, PCI DSS and custom frameworks),
ranks remediation gaps and tracks scores over time.

Key Features:
- Fail-closed rule evaluation with per-rule structural contracts
- Conservative control aggregation: a failing direct rule dominates
- Frameworks defined as YAML files, validated when loaded
- Append-only score history (memory, SQLite or S3)
- JSON and CSV export

Quick Start:
    >>> from compliscore import ComplianceService, CatalogContext
    >>> from compliscore.storage import InMemoryFindingsSource
    >>>
    >>> source = InMemoryFindingsSource()
    >>> source.record_scan("123456789012", "scan-1", findings)
    >>> service = ComplianceService(CatalogContext.load_default(), source)
    >>> assessment = service.assess("cis-aws-1.5.0", "123456789012")
    >>> print(f"Score: {assessment.compliance_score:.1f}")
"""

from __future__ import annotations

__version__ = "0.1.0"

# Core models
from compliscore.models import (
    Asset,
    Assessment,
    ComplianceControl,
    ComplianceFramework,
    ControlAssessment,
    ControlStatus,
    Finding,
    FindingStatus,
    MappingType,
    Rule,
    RuleComplianceMapping,
    RuleContract,
    ScanFindings,
    Severity,
)

# Errors
from compliscore.errors import (
    AccountHasNoCompletedScanError,
    CatalogError,
    ComplianceError,
    ControlNotFoundError,
    DuplicateRuleError,
    FrameworkNotFoundError,
    InconsistentScanSetError,
    InvalidMappingError,
    NotFoundError,
    UnsupportedExportFormatError,
)

# Engine
from compliscore.engine import (
    CatalogContext,
    CatalogLoader,
    RuleCatalog,
    RuleEvaluator,
)

# Compliance
from compliscore.compliance import (
    ComplianceAssessor,
    ComplianceCatalog,
    CoverageCalculator,
    GapAnalyzer,
)

# Trends and export
from compliscore.reporting import TrendTracker
from compliscore.export import ExportFormat, export_assessment

# Configuration and service
from compliscore.config import EngineConfiguration, load_config_from_env
from compliscore.service import ComplianceService

__all__ = [
    "__version__",
    # Models
    "Asset",
    "Assessment",
    "ComplianceControl",
    "ComplianceFramework",
    "ControlAssessment",
    "ControlStatus",
    "Finding",
    "FindingStatus",
    "MappingType",
    "Rule",
    "RuleComplianceMapping",
    "RuleContract",
    "ScanFindings",
    "Severity",
    # Errors
    "AccountHasNoCompletedScanError",
    "CatalogError",
    "ComplianceError",
    "ControlNotFoundError",
    "DuplicateRuleError",
    "FrameworkNotFoundError",
    "InconsistentScanSetError",
    "InvalidMappingError",
    "NotFoundError",
    "UnsupportedExportFormatError",
    # Engine
    "CatalogContext",
    "CatalogLoader",
    "RuleCatalog",
    "RuleEvaluator",
    # Compliance
    "ComplianceAssessor",
    "ComplianceCatalog",
    "CoverageCalculator",
    "GapAnalyzer",
    # Trends and export
    "TrendTracker",
    "ExportFormat",
    "export_assessment",
    # Configuration and service
    "EngineConfiguration",
    "ComplianceService",
    "load_config_from_env",
]
