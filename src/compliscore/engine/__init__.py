"""
Rule engine for compliscore.

This package provides:

- RuleCatalog: immutable rule registry indexed by id and resource scope
- RuleEvaluator: runs rules against configurations, fail-closed
- CatalogLoader: reads framework definition files
- CatalogContext: the rule and compliance catalogs bundled together
"""

from compliscore.engine.catalog import RuleCatalog
from compliscore.engine.context import CatalogContext
from compliscore.engine.evaluator import (
    EvaluationResult,
    RuleEvalResult,
    RuleEvaluator,
)
from compliscore.engine.loader import CatalogLoader, parse_framework_document

__all__ = [
    "CatalogContext",
    "CatalogLoader",
    "EvaluationResult",
    "RuleCatalog",
    "RuleEvalResult",
    "RuleEvaluator",
    "parse_framework_document",
]
