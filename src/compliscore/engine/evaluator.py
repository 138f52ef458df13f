"""
Rule evaluator for compliscore.

Runs the applicable rules of a RuleCatalog against collected resource
configurations and produces one Finding per (rule, asset) pair.
Evaluation is fail-closed: a configuration that violates a rule's
contract, or a predicate that raises, yields a FAIL finding whose
evidence describes the error.
"""

from __future__ import annotations

import copy
import hashlib
import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterable

from compliscore.engine.catalog import RuleCatalog
from compliscore.errors import EvaluationError
from compliscore.models import Asset, Finding, FindingStatus, Rule
from compliscore.observability import get_logger

logger = logging.getLogger(__name__)
_events = get_logger(__name__)


@dataclass
class RuleEvalResult:
    """Per-rule tallies from a batch evaluation."""

    rule_id: str
    evaluated: int = 0
    passed: int = 0
    warned: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)

    def record(self, finding: Finding) -> None:
        self.evaluated += 1
        if finding.status == FindingStatus.PASS:
            self.passed += 1
        elif finding.status == FindingStatus.WARN:
            self.warned += 1
        else:
            self.failed += 1
        if "error" in finding.evidence:
            self.errors.append(f"{finding.asset_id}: {finding.evidence['error']}")


@dataclass
class EvaluationResult:
    """Result of evaluating a batch of assets."""

    scan_id: str
    assets_evaluated: int
    findings_generated: int
    duration_seconds: float
    rule_results: dict[str, RuleEvalResult] = field(default_factory=dict)

    @property
    def error_count(self) -> int:
        return sum(len(r.errors) for r in self.rule_results.values())


class RuleEvaluator:
    """
    Evaluates rules against asset configurations.

    The evaluator holds no mutable state; it may be shared freely between
    threads.
    """

    def __init__(
        self,
        catalog: RuleCatalog,
        max_workers: int | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        """
        Initialize the rule evaluator.

        Args:
            catalog: Rule catalog to draw applicable rules from
            max_workers: Worker pool size for batch evaluation.
                         Defaults to the number of CPUs.
            clock: Timestamp source for created_at (defaults to UTC now)
        """
        self.catalog = catalog
        self.max_workers = max_workers or os.cpu_count() or 1
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def evaluate(
        self, asset: Asset, config: dict[str, Any], scan_id: str
    ) -> list[Finding]:
        """
        Evaluate every rule scoped to the asset.

        Args:
            asset: Asset being evaluated
            config: Raw configuration snapshot of the asset
            scan_id: Scan the findings belong to

        Returns:
            One Finding per applicable rule
        """
        rules = self.catalog.rules_for(*asset.scope)
        if not rules:
            logger.debug(
                f"No rules registered for {asset.provider}/{asset.service}/"
                f"{asset.resource_type}; skipping asset {asset.id}"
            )
        return [self.evaluate_rule(rule, asset, config, scan_id) for rule in rules]

    def evaluate_rule(
        self, rule: Rule, asset: Asset, config: dict[str, Any], scan_id: str
    ) -> Finding:
        """
        Evaluate a single rule against a single asset.

        Args:
            rule: Rule to evaluate
            asset: Asset being evaluated
            config: Raw configuration snapshot of the asset
            scan_id: Scan the finding belongs to

        Returns:
            Finding with the rule's verdict, or FAIL if evaluation errored
        """
        evaluated_at = self._clock()
        evidence: dict[str, Any] = {
            "rule": rule.description,
            "resource": asset.resource_id or asset.id,
        }

        try:
            status = self._run_predicate(rule, config, evaluated_at)
            # Snapshot so later changes to the caller's dict never reach the finding
            evidence["config"] = copy.deepcopy(config)
        except EvaluationError as e:
            _events.evaluation_failed(rule.id, asset.id, str(e))
            status = FindingStatus.FAIL
            evidence["error"] = str(e)

        return Finding(
            id=self._generate_finding_id(scan_id, rule.id, asset.id),
            rule_id=rule.id,
            asset_id=asset.id,
            scan_id=scan_id,
            status=status,
            severity=rule.severity,
            evidence=evidence,
            created_at=evaluated_at,
        )

    def evaluate_batch(
        self,
        items: Iterable[tuple[Asset, dict[str, Any]]],
        scan_id: str,
    ) -> tuple[list[Finding], EvaluationResult]:
        """
        Evaluate many (asset, config) pairs on a bounded worker pool.

        Findings are returned in no particular order.

        Args:
            items: (asset, configuration) pairs
            scan_id: Scan the findings belong to

        Returns:
            Tuple of (findings, EvaluationResult)
        """
        start_time = time.time()
        pairs = list(items)
        findings: list[Finding] = []

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {
                executor.submit(self.evaluate, asset, config, scan_id): asset
                for asset, config in pairs
            }
            for future in as_completed(futures):
                findings.extend(future.result())

        rule_results: dict[str, RuleEvalResult] = {}
        for finding in findings:
            result = rule_results.setdefault(
                finding.rule_id, RuleEvalResult(rule_id=finding.rule_id)
            )
            result.record(finding)

        evaluation = EvaluationResult(
            scan_id=scan_id,
            assets_evaluated=len(pairs),
            findings_generated=len(findings),
            duration_seconds=time.time() - start_time,
            rule_results=rule_results,
        )

        logger.info(
            f"Evaluation complete: {len(findings)} findings from "
            f"{len(rule_results)} rules against {len(pairs)} assets"
        )

        return findings, evaluation

    def _run_predicate(self, rule: Rule, config: Any, evaluated_at: datetime) -> FindingStatus:
        """Validate the contract, run the predicate and normalise its verdict."""
        violations = rule.contract.validate(config)
        if violations:
            raise EvaluationError(rule.id, "; ".join(violations))

        try:
            verdict = rule.evaluate(config, evaluated_at)
        except Exception as e:
            raise EvaluationError(rule.id, f"{type(e).__name__}: {e}") from e

        if isinstance(verdict, FindingStatus):
            return verdict
        if isinstance(verdict, str):
            try:
                return FindingStatus.from_string(verdict)
            except ValueError:
                pass
        raise EvaluationError(rule.id, f"predicate returned invalid verdict {verdict!r}")

    def _generate_finding_id(self, scan_id: str, rule_id: str, asset_id: str) -> str:
        """
        Generate a deterministic finding ID.

        The same scan, rule and asset always produce the same ID.
        """
        combined = f"{scan_id}:{rule_id}:{asset_id}"
        hash_digest = hashlib.sha256(combined.encode()).hexdigest()[:16]
        return f"finding-{hash_digest}"
