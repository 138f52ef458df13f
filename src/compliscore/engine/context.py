"""
Catalog context for compliscore.

CatalogContext bundles the rule catalog and the compliance catalog into
one immutable object that is built once and handed to the evaluator,
the assessor and the service facade.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from compliscore.compliance import ComplianceCatalog
from compliscore.engine.catalog import RuleCatalog
from compliscore.engine.loader import CatalogLoader
from compliscore.models import (
    ComplianceControl,
    ComplianceFramework,
    Rule,
    RuleComplianceMapping,
)
from compliscore.rules import default_rules

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CatalogContext:
    """Read-only rule and compliance catalogs shared by all assessments."""

    rules: RuleCatalog
    compliance: ComplianceCatalog

    @classmethod
    def build(
        cls,
        rules: Iterable[Rule],
        frameworks: Iterable[ComplianceFramework],
        controls: Iterable[ComplianceControl],
        mappings: Iterable[RuleComplianceMapping],
    ) -> CatalogContext:
        """
        Build both catalogs, validating every relationship.

        Raises:
            DuplicateRuleError: If two rules share an id
            InvalidMappingError: If the compliance relationships are inconsistent
        """
        rule_catalog = RuleCatalog.from_rules(rules)
        compliance = ComplianceCatalog(
            frameworks, controls, mappings, rule_ids=rule_catalog.rule_ids
        )
        return cls(rules=rule_catalog, compliance=compliance)

    @classmethod
    def load(
        cls,
        rules: Iterable[Rule] | None = None,
        catalog_dirs: list[str] | None = None,
        include_bundled: bool = True,
    ) -> CatalogContext:
        """
        Load framework files from disk and build the context.

        Args:
            rules: Rule definitions (defaults to the built-in rules)
            catalog_dirs: Extra framework directories
            include_bundled: Whether to load the bundled frameworks

        Raises:
            CatalogError: If loading or validation fails
        """
        loader = CatalogLoader(catalog_dirs, include_bundled=include_bundled)
        frameworks, controls, mappings = loader.load_all()
        return cls.build(
            default_rules() if rules is None else rules,
            frameworks,
            controls,
            mappings,
        )

    @classmethod
    def load_default(cls) -> CatalogContext:
        """Build the context from the built-in rules and bundled frameworks."""
        return cls.load()
