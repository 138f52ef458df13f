"""
Compliance catalog for compliscore.

Holds the Framework -> Control -> RuleComplianceMapping relationships as
in-memory adjacency maps. Referential integrity is checked once, at
construction; afterwards the catalog is read-only and safe for
concurrent readers.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Iterable

from compliscore.errors import (
    ControlNotFoundError,
    FrameworkNotFoundError,
    InvalidMappingError,
)
from compliscore.models import (
    ComplianceControl,
    ComplianceFramework,
    RuleComplianceMapping,
)

logger = logging.getLogger(__name__)


class ComplianceCatalog:
    """
    Immutable store of frameworks, controls and rule mappings.

    Construction raises InvalidMappingError when:
    - two frameworks share an id or a (name, version) identity
    - two controls share an id or a (framework_id, control_id) pair
    - a control references an unknown framework
    - a mapping references an unknown control or rule
    - the same (rule_id, control_id) pair is mapped twice
    """

    def __init__(
        self,
        frameworks: Iterable[ComplianceFramework],
        controls: Iterable[ComplianceControl],
        mappings: Iterable[RuleComplianceMapping],
        rule_ids: Iterable[str],
    ):
        """
        Build and validate the catalog.

        Args:
            frameworks: Framework definitions
            controls: Control definitions
            mappings: Rule-to-control mappings
            rule_ids: Ids of every rule known to the rule catalog

        Raises:
            InvalidMappingError: If the relationships are inconsistent
        """
        known_rules = frozenset(rule_ids)

        frameworks_by_id: dict[str, ComplianceFramework] = {}
        identities: set[tuple[str, str]] = set()
        for framework in frameworks:
            if framework.id in frameworks_by_id:
                raise InvalidMappingError(f"Duplicate framework id: {framework.id}")
            if framework.identity in identities:
                raise InvalidMappingError(
                    f"Duplicate framework {framework.name} version {framework.version}"
                )
            frameworks_by_id[framework.id] = framework
            identities.add(framework.identity)

        controls_by_id: dict[str, ComplianceControl] = {}
        controls_by_framework: dict[str, list[str]] = {fid: [] for fid in frameworks_by_id}
        codes: set[tuple[str, str]] = set()
        for control in controls:
            if control.framework_id not in frameworks_by_id:
                raise InvalidMappingError(
                    f"Control {control.id} references unknown framework "
                    f"{control.framework_id}",
                    control_id=control.id,
                )
            if control.id in controls_by_id:
                raise InvalidMappingError(
                    f"Duplicate control id: {control.id}", control_id=control.id
                )
            code = (control.framework_id, control.control_id)
            if code in codes:
                raise InvalidMappingError(
                    f"Duplicate control {control.control_id} in framework "
                    f"{control.framework_id}",
                    control_id=control.id,
                )
            controls_by_id[control.id] = control
            controls_by_framework[control.framework_id].append(control.id)
            codes.add(code)

        mappings_by_control: dict[str, list[RuleComplianceMapping]] = {}
        controls_by_rule: dict[str, list[str]] = {}
        pairs: set[tuple[str, str]] = set()
        for mapping in mappings:
            if mapping.control_id not in controls_by_id:
                raise InvalidMappingError(
                    f"Mapping for rule {mapping.rule_id} references unknown "
                    f"control {mapping.control_id}",
                    rule_id=mapping.rule_id,
                    control_id=mapping.control_id,
                )
            if mapping.rule_id not in known_rules:
                raise InvalidMappingError(
                    f"Mapping for control {mapping.control_id} references unknown "
                    f"rule {mapping.rule_id}",
                    rule_id=mapping.rule_id,
                    control_id=mapping.control_id,
                )
            pair = (mapping.rule_id, mapping.control_id)
            if pair in pairs:
                raise InvalidMappingError(
                    f"Rule {mapping.rule_id} is mapped to control "
                    f"{mapping.control_id} more than once",
                    rule_id=mapping.rule_id,
                    control_id=mapping.control_id,
                )
            pairs.add(pair)
            mappings_by_control.setdefault(mapping.control_id, []).append(mapping)
            controls_by_rule.setdefault(mapping.rule_id, []).append(mapping.control_id)

        self._frameworks = MappingProxyType(frameworks_by_id)
        self._controls = MappingProxyType(controls_by_id)
        self._controls_by_framework = MappingProxyType(
            {k: tuple(v) for k, v in controls_by_framework.items()}
        )
        self._mappings_by_control = MappingProxyType(
            {k: tuple(v) for k, v in mappings_by_control.items()}
        )
        self._controls_by_rule = MappingProxyType(
            {k: tuple(v) for k, v in controls_by_rule.items()}
        )

        logger.debug(
            f"Compliance catalog built: {len(frameworks_by_id)} frameworks, "
            f"{len(controls_by_id)} controls, {len(pairs)} mappings"
        )

    def frameworks(self) -> list[ComplianceFramework]:
        """Return all frameworks ordered by id."""
        return [self._frameworks[fid] for fid in sorted(self._frameworks)]

    def has_framework(self, framework_id: str) -> bool:
        return framework_id in self._frameworks

    def framework(self, framework_id: str) -> ComplianceFramework:
        """
        Return a framework by id.

        Raises:
            FrameworkNotFoundError: If the framework is unknown
        """
        framework = self._frameworks.get(framework_id)
        if framework is None:
            raise FrameworkNotFoundError(framework_id)
        return framework

    def control(self, control_id: str) -> ComplianceControl:
        """
        Return a control by its catalog id.

        Raises:
            ControlNotFoundError: If the control is unknown
        """
        control = self._controls.get(control_id)
        if control is None:
            raise ControlNotFoundError(control_id)
        return control

    def controls_for(self, framework_id: str) -> list[ComplianceControl]:
        """
        Return the controls of a framework in definition order.

        Raises:
            FrameworkNotFoundError: If the framework is unknown
        """
        if framework_id not in self._frameworks:
            raise FrameworkNotFoundError(framework_id)
        return [self._controls[cid] for cid in self._controls_by_framework[framework_id]]

    def mappings_for(self, control_id: str) -> tuple[RuleComplianceMapping, ...]:
        """Return the rule mappings of a control (empty when unmapped)."""
        return self._mappings_by_control.get(control_id, ())

    def controls_for_rule(self, rule_id: str) -> tuple[str, ...]:
        """Return the ids of every control a rule is mapped to."""
        return self._controls_by_rule.get(rule_id, ())

    def rule_ids_for(self, framework_id: str) -> frozenset[str]:
        """Return every rule id mapped into a framework."""
        return frozenset(
            mapping.rule_id
            for control in self.controls_for(framework_id)
            for mapping in self.mappings_for(control.id)
        )

    def equivalent_controls(
        self, framework_ids: Iterable[str]
    ) -> dict[str, list[ComplianceControl]]:
        """
        Find controls across frameworks that are mapped to the same rule.

        Args:
            framework_ids: Frameworks to compare

        Returns:
            rule_id -> controls, keeping only rules whose controls span at
            least two of the given frameworks
        """
        selected = set(framework_ids)
        equivalences: dict[str, list[ComplianceControl]] = {}

        for rule_id in sorted(self._controls_by_rule):
            controls = [
                self._controls[cid]
                for cid in self._controls_by_rule[rule_id]
                if self._controls[cid].framework_id in selected
            ]
            if len({c.framework_id for c in controls}) >= 2:
                equivalences[rule_id] = sorted(
                    controls, key=lambda c: (c.framework_id, c.control_id)
                )

        return equivalences
