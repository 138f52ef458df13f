"""
Rule catalog for compliscore.

Immutable registry of rule definitions indexed by rule id and by
(provider, service, resource_type). Built once at startup and shared by
every evaluation; no locking is needed for concurrent reads.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Iterable, Iterator, Mapping

from compliscore.errors import DuplicateRuleError, RuleNotFoundError
from compliscore.models import Rule

logger = logging.getLogger(__name__)

ScopeKey = tuple[str, str, str]


class RuleCatalog:
    """
    Read-only rule registry.

    Use RuleCatalog.from_rules() to build one; construction fails with
    DuplicateRuleError if two rules share an id.
    """

    def __init__(
        self,
        by_id: Mapping[str, Rule],
        by_scope: Mapping[ScopeKey, tuple[Rule, ...]],
    ):
        self._by_id = MappingProxyType(dict(by_id))
        self._by_scope = MappingProxyType(dict(by_scope))

    @classmethod
    def from_rules(cls, rules: Iterable[Rule]) -> RuleCatalog:
        """
        Build the id and scope indexes.

        Args:
            rules: Rule definitions to register

        Returns:
            New RuleCatalog

        Raises:
            DuplicateRuleError: If two rules share an id
        """
        by_id: dict[str, Rule] = {}
        by_scope: dict[ScopeKey, list[Rule]] = {}

        for rule in rules:
            if rule.id in by_id:
                raise DuplicateRuleError(rule.id)
            by_id[rule.id] = rule
            by_scope.setdefault(rule.scope, []).append(rule)

        logger.debug(
            f"Rule catalog built with {len(by_id)} rules across "
            f"{len(by_scope)} resource scopes"
        )

        return cls(by_id, {k: tuple(v) for k, v in by_scope.items()})

    def __len__(self) -> int:
        return len(self._by_id)

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._by_id.values())

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._by_id

    @property
    def rule_ids(self) -> frozenset[str]:
        """All registered rule ids."""
        return frozenset(self._by_id)

    def get(self, rule_id: str) -> Rule | None:
        """Return a rule by id, or None."""
        return self._by_id.get(rule_id)

    def require(self, rule_id: str) -> Rule:
        """
        Return a rule by id.

        Raises:
            RuleNotFoundError: If the rule is unknown
        """
        rule = self._by_id.get(rule_id)
        if rule is None:
            raise RuleNotFoundError(rule_id)
        return rule

    def rules_for(self, provider: str, service: str, resource_type: str) -> tuple[Rule, ...]:
        """Return the rules scoped to (provider, service, resource_type)."""
        return self._by_scope.get((provider, service, resource_type), ())
