"""
Compliance service for compliscore.

High-level entry point over the scoring core: it pulls the latest
completed scan of an account from a findings source, assesses it
against the catalog, keeps the trend history and shapes results for
transport layers.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Iterable

from compliscore.compliance import (
    ComplianceAssessor,
    ComplianceGap,
    CoverageCalculator,
    FrameworkComparison,
    FrameworkCoverage,
    GapAnalysis,
    GapAnalyzer,
)
from compliscore.config import EngineConfiguration
from compliscore.engine import CatalogContext, EvaluationResult, RuleEvaluator
from compliscore.errors import AccountHasNoCompletedScanError, ComplianceError
from compliscore.export import ExportFormat, create_export_manager
from compliscore.models import Asset, Assessment, Finding, ScanFindings
from compliscore.observability import get_logger
from compliscore.reporting import TrendMetrics, TrendSample, TrendTracker
from compliscore.storage import (
    FindingsSource,
    InMemoryFindingsSource,
    InMemorySnapshotStore,
    LocalFindingsSource,
    SnapshotStore,
    get_snapshot_store,
)

logger = logging.getLogger(__name__)
_events = get_logger(__name__)


class ComplianceService:
    """
    Facade exposing the compliance operations.

    Every operation reads the account's most recent completed scan, so
    an assessment is never computed from a mix of scans.
    """

    def __init__(
        self,
        context: CatalogContext,
        findings_source: FindingsSource,
        snapshot_store: SnapshotStore | None = None,
        max_workers: int | None = None,
        clock: Callable[[], datetime] | None = None,
        trend_days: int = 30,
        gap_limit: int = 10,
    ):
        """
        Initialize the service.

        Args:
            context: Rule and compliance catalogs
            findings_source: Provider of each account's latest completed scan
            snapshot_store: Trend history store (defaults to in-memory)
            max_workers: Worker pool size for evaluation and comparisons
            clock: Source of "now" (defaults to UTC now)
            trend_days: Default trend window in days
            gap_limit: Default number of gaps for top-gap queries
        """
        self.context = context
        self.findings_source = findings_source
        self.snapshot_store = (
            snapshot_store if snapshot_store is not None else InMemorySnapshotStore()
        )
        self.trend_days = trend_days
        self.gap_limit = gap_limit

        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.evaluator = RuleEvaluator(context.rules, max_workers=max_workers, clock=self._clock)
        self.assessor = ComplianceAssessor(
            context.compliance, max_workers=max_workers, clock=self._clock
        )
        self.coverage = CoverageCalculator(context.compliance)
        self.gaps = GapAnalyzer(context.compliance)
        self.trends = TrendTracker(self.snapshot_store, clock=self._clock)

    @classmethod
    def from_config(
        cls,
        config: EngineConfiguration,
        findings_source: FindingsSource | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> ComplianceService:
        """
        Wire a service from configuration.

        Without an explicit findings source, the local backend reads scans
        from the same SQLite database as the snapshots and the memory
        backend starts with an empty in-memory source.

        Raises:
            CatalogError: If the catalog fails to load
            ValueError: If no findings source can be derived from the backend
        """
        context = CatalogContext.load(
            catalog_dirs=config.catalog_dirs,
            include_bundled=config.include_bundled,
        )

        storage = config.storage
        backend = storage.backend.lower()
        if backend == "local":
            store = get_snapshot_store("local", db_path=storage.db_path)
        elif backend == "s3":
            store = get_snapshot_store(
                "s3",
                bucket=storage.s3_bucket,
                prefix=storage.s3_prefix,
                region=storage.s3_region,
            )
        else:
            store = get_snapshot_store(backend)

        if findings_source is None:
            if backend == "local":
                findings_source = LocalFindingsSource(storage.db_path)
            elif backend == "memory":
                findings_source = InMemoryFindingsSource()
            else:
                raise ValueError(
                    f"A findings source is required for storage backend: {backend}"
                )

        return cls(
            context=context,
            findings_source=findings_source,
            snapshot_store=store,
            max_workers=config.max_workers,
            clock=clock,
            trend_days=config.trend_days,
            gap_limit=config.gap_limit,
        )

    # Evaluation

    def evaluate_assets(
        self,
        items: Iterable[tuple[Asset, dict[str, Any]]],
        scan_id: str,
    ) -> tuple[list[Finding], EvaluationResult]:
        """
        Evaluate collected configurations into findings for one scan.

        Rules that cannot be evaluated fail closed; nothing is raised for
        a bad configuration.

        Args:
            items: (asset, configuration) pairs
            scan_id: Scan the findings belong to

        Returns:
            Tuple of (findings, EvaluationResult)
        """
        return self.evaluator.evaluate_batch(items, scan_id)

    # Assessment

    def assess(self, framework_id: str, account_id: str, record: bool = True) -> Assessment:
        """
        Assess an account against a framework.

        Args:
            framework_id: Framework to assess
            account_id: Account to assess
            record: Append the score to the trend history

        Returns:
            Assessment

        Raises:
            FrameworkNotFoundError: If the framework is unknown
            AccountHasNoCompletedScanError: If the account has no completed scan
        """
        self.context.compliance.framework(framework_id)
        scan = self._latest_scan(account_id)
        assessment = self._assess(framework_id, account_id, scan)

        if record:
            self.trends.record_snapshot(framework_id, account_id, assessment)
            _events.snapshot_recorded(framework_id, account_id, assessment.compliance_score)

        return assessment

    def compare_frameworks(self, framework_ids: list[str], account_id: str) -> FrameworkComparison:
        """
        Assess several frameworks against the same scan and rank them.

        Raises:
            FrameworkNotFoundError: If any framework is unknown
            AccountHasNoCompletedScanError: If the account has no completed scan
        """
        for framework_id in framework_ids:
            self.context.compliance.framework(framework_id)
        scan = self._latest_scan(account_id)

        return self.assessor.compare_frameworks(
            framework_ids,
            account_id,
            scan.findings,
            expected_scan_id=scan.scan_id,
        )

    def get_account_compliance_summary(self, account_id: str) -> dict[str, Any]:
        """
        Assess an account against every framework.

        A framework that cannot be assessed contributes a zero-score entry
        with no assessment date instead of failing the batch. The overall
        score is the mean of the non-zero framework scores.

        Args:
            account_id: Account to summarize

        Returns:
            Summary dictionary with per-framework entries, best score first
        """
        entries = []
        for framework_id, result in self._assess_all(account_id).items():
            framework = self.context.compliance.framework(framework_id)
            coverage = self.coverage.coverage(framework_id)
            entry = {
                "frameworkId": framework.id,
                "frameworkName": framework.name,
                "frameworkVersion": framework.version,
                "complianceScore": 0.0,
                "totalControls": 0,
                "implementedControls": 0,
                "partiallyImplementedControls": 0,
                "coveragePercentage": 0.0,
                "lastAssessed": None,
            }
            if isinstance(result, Assessment):
                entry.update({
                    "complianceScore": result.compliance_score,
                    "totalControls": result.total_controls,
                    "implementedControls": result.implemented_controls,
                    "partiallyImplementedControls": result.partially_implemented_controls,
                    "coveragePercentage": coverage.coverage_percentage,
                    "lastAssessed": result.assessment_date.isoformat(),
                })
            entries.append(entry)

        scored = [e["complianceScore"] for e in entries if e["complianceScore"] > 0]
        overall = sum(scored) / len(scored) if scored else 0.0
        entries.sort(key=lambda e: (-e["complianceScore"], e["frameworkId"]))

        return {
            "accountId": account_id,
            "overallComplianceScore": overall,
            "frameworksAssessed": len(scored),
            "totalFrameworks": len(entries),
            "frameworks": entries,
            "assessmentDate": self._clock().isoformat(),
        }

    # Coverage and gaps

    def get_coverage(self, framework_id: str) -> FrameworkCoverage:
        """Rule coverage of a framework's controls."""
        return self.coverage.coverage(framework_id)

    def get_gap_analysis(self, framework_id: str, account_id: str) -> GapAnalysis:
        """
        Gaps of one framework for an account's latest scan.

        Raises:
            FrameworkNotFoundError: If the framework is unknown
            AccountHasNoCompletedScanError: If the account has no completed scan
        """
        self.context.compliance.framework(framework_id)
        scan = self._latest_scan(account_id)
        assessment = self._assess(framework_id, account_id, scan)
        return self.gaps.gap_analysis(assessment, scan.findings)

    def get_top_non_compliant_controls(
        self, account_id: str, limit: int | None = None
    ) -> list[ComplianceGap]:
        """
        Rank gaps across every framework for an account.

        Frameworks that cannot be assessed are skipped.

        Args:
            account_id: Account to analyze
            limit: Maximum gaps to return (defaults to the configured gap limit)

        Returns:
            Gaps ordered critical first, then by affected resources
        """
        scan = self.findings_source.get_latest_findings(account_id)
        results = self._assess_all(account_id, scan)
        assessments = [r for r in results.values() if isinstance(r, Assessment)]
        findings = scan.findings if scan else ()

        return self.gaps.analyze(
            assessments,
            findings,
            limit=self.gap_limit if limit is None else limit,
        )

    def get_control_details(self, control_id: str) -> dict[str, Any]:
        """
        Describe a control with its framework and rule mappings.

        Raises:
            ControlNotFoundError: If the control is unknown
        """
        compliance = self.context.compliance
        control = compliance.control(control_id)
        framework = compliance.framework(control.framework_id)

        mappings = []
        for mapping in compliance.mappings_for(control.id):
            entry = mapping.to_dict()
            rule = self.context.rules.get(mapping.rule_id)
            if rule is not None:
                entry["rule"] = rule.to_dict()
            mappings.append(entry)

        return {
            "control": control.to_dict(),
            "framework": framework.to_dict(),
            "mappings": mappings,
        }

    # Trends

    def get_trend(
        self, framework_id: str, account_id: str, days: int | None = None
    ) -> list[TrendSample]:
        """
        Recorded scores within the window, oldest first.

        Returns an empty list when nothing has been recorded.

        Raises:
            FrameworkNotFoundError: If the framework is unknown
        """
        self.context.compliance.framework(framework_id)
        return self.trends.trend(
            framework_id, account_id, self.trend_days if days is None else days
        )

    def get_trend_summary(
        self, framework_id: str, account_id: str, days: int | None = None
    ) -> TrendMetrics:
        """Trend metrics over the window."""
        self.context.compliance.framework(framework_id)
        return self.trends.summarize(
            framework_id, account_id, self.trend_days if days is None else days
        )

    # Export

    def export(
        self,
        framework_id: str,
        account_id: str,
        format: ExportFormat | str = ExportFormat.JSON,
    ) -> Any:
        """
        Assess and shape the result for transport.

        Raises:
            UnsupportedExportFormatError: For "pdf" or an unknown format
            FrameworkNotFoundError: If the framework is unknown
            AccountHasNoCompletedScanError: If the account has no completed scan
        """
        if isinstance(format, str):
            format = ExportFormat.from_string(format)
        exporter = create_export_manager().get_exporter(format)
        assessment = self.assess(framework_id, account_id, record=False)
        return exporter.shape(assessment)

    # Internals

    def _latest_scan(self, account_id: str) -> ScanFindings:
        scan = self.findings_source.get_latest_findings(account_id)
        if scan is None:
            raise AccountHasNoCompletedScanError(account_id)
        return scan

    def _assess(self, framework_id: str, account_id: str, scan: ScanFindings) -> Assessment:
        assessment = self.assessor.assess(
            framework_id,
            account_id,
            scan.findings,
            expected_scan_id=scan.scan_id,
        )
        _events.assessment_completed(
            framework_id,
            account_id,
            assessment.scan_id,
            assessment.compliance_score,
            assessment.zero_basis,
        )
        return assessment

    def _assess_all(
        self, account_id: str, scan: ScanFindings | None = None
    ) -> dict[str, Assessment | ComplianceError]:
        """Assess every framework, keeping each framework's failure separate."""
        if scan is None:
            scan = self.findings_source.get_latest_findings(account_id)

        results: dict[str, Assessment | ComplianceError] = {}
        for framework in self.context.compliance.frameworks():
            try:
                if scan is None:
                    raise AccountHasNoCompletedScanError(account_id)
                results[framework.id] = self._assess(framework.id, account_id, scan)
            except ComplianceError as e:
                _events.assessment_failed(framework.id, account_id, str(e))
                results[framework.id] = e

        logger.debug(
            f"Assessed {sum(isinstance(r, Assessment) for r in results.values())}"
            f"/{len(results)} frameworks for account {account_id}"
        )
        return results
